"""
System Program

The built-in program that owns every plain wallet account. It is the only
way a transaction can create accounts, move lamports out of wallets, or
hand an account over to another program.

Instruction data is a one-byte tag followed by little-endian fields:

    CreateAccount  0 | lamports u64 | space u64 | owner [32]
    Assign         1 | owner [32]
    Transfer       2 | lamports u64
    Allocate       8 | space u64

Based on: https://docs.rs/solana-program/latest/solana_program/system_instruction
"""

from enum import IntEnum
from typing import List

from ..config import MAX_PERMITTED_DATA_LENGTH, SYSTEM_PROGRAM_ID
from ..core.accounts import AccountInfo, AccountMeta
from ..core.errors import AccountAlreadyExistsError, MissingSignerError
from ..core.transactions import Instruction


class SystemInstruction(IntEnum):
    CREATE_ACCOUNT = 0
    ASSIGN = 1
    TRANSFER = 2
    ALLOCATE = 8


def _u64(data: bytes, offset: int) -> int:
    if len(data) < offset + 8:
        raise ValueError("Instruction data too short")
    return int.from_bytes(data[offset:offset + 8], 'little')


def _pubkey(data: bytes, offset: int) -> str:
    if len(data) < offset + 32:
        raise ValueError("Instruction data too short")
    return data[offset:offset + 32].hex()


class SystemProgram:
    """Processor and helpers for the system program."""

    program_id = SYSTEM_PROGRAM_ID

    @staticmethod
    def process(ctx, program_id: str, accounts: List[AccountInfo], data: bytes) -> None:
        """Dispatch one system instruction."""
        if not data:
            raise ValueError("Empty system instruction")

        try:
            instruction = SystemInstruction(data[0])
        except ValueError:
            raise ValueError(f"Unknown system instruction {data[0]}") from None

        if instruction is SystemInstruction.CREATE_ACCOUNT:
            SystemProgram._create_account(ctx, accounts, _u64(data, 1), _u64(data, 9), _pubkey(data, 17))
        elif instruction is SystemInstruction.ASSIGN:
            SystemProgram._assign(ctx, accounts, _pubkey(data, 1))
        elif instruction is SystemInstruction.TRANSFER:
            SystemProgram._transfer(ctx, accounts, _u64(data, 1))
        elif instruction is SystemInstruction.ALLOCATE:
            SystemProgram._allocate(ctx, accounts, _u64(data, 1))

    @staticmethod
    def _create_account(ctx, accounts: List[AccountInfo], lamports: int, space: int, owner: str) -> None:
        funder, new_account = _require_accounts(accounts, 2)
        _require_signer(funder)
        _require_signer(new_account)
        if new_account.lamports or new_account.data or new_account.owner != SYSTEM_PROGRAM_ID:
            raise AccountAlreadyExistsError(new_account.key)

        funder.transfer_lamports_to(new_account, lamports)
        SystemProgram._allocate_data(new_account, space)
        new_account.owner = owner
        ctx.log(f"Created account {new_account.key[:8]}... ({space} bytes) owned by {owner[:8]}...")

    @staticmethod
    def _assign(ctx, accounts: List[AccountInfo], owner: str) -> None:
        (account,) = _require_accounts(accounts, 1)
        _require_signer(account)
        account.owner = owner

    @staticmethod
    def _transfer(ctx, accounts: List[AccountInfo], lamports: int) -> None:
        source, destination = _require_accounts(accounts, 2)
        _require_signer(source)
        if source.data:
            raise ValueError("Transfer source must not carry data")
        source.transfer_lamports_to(destination, lamports)

    @staticmethod
    def _allocate(ctx, accounts: List[AccountInfo], space: int) -> None:
        (account,) = _require_accounts(accounts, 1)
        _require_signer(account)
        SystemProgram._allocate_data(account, space)

    @staticmethod
    def _allocate_data(account: AccountInfo, space: int) -> None:
        if account.data or account.owner != SYSTEM_PROGRAM_ID:
            raise AccountAlreadyExistsError(account.key)
        if space > MAX_PERMITTED_DATA_LENGTH:
            raise ValueError(f"Requested {space} bytes exceeds the data limit")
        account.data[:] = bytes(space)


def _require_accounts(accounts: List[AccountInfo], count: int) -> List[AccountInfo]:
    if len(accounts) < count:
        raise ValueError(f"Expected {count} accounts, got {len(accounts)}")
    return accounts[:count]


def _require_signer(account: AccountInfo) -> None:
    if not account.is_signer:
        raise MissingSignerError(account.key)


# Instruction builders

def create_transfer_instruction(from_pubkey: str, to_pubkey: str, lamports: int) -> Instruction:
    """Create a simple SOL transfer instruction."""
    data = bytearray([SystemInstruction.TRANSFER])
    data.extend(lamports.to_bytes(8, 'little'))

    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=[
            AccountMeta(from_pubkey, is_signer=True, is_writable=True),
            AccountMeta(to_pubkey, is_signer=False, is_writable=True),
        ],
        data=bytes(data),
    )


def create_account_instruction(payer: str, new_account: str, lamports: int,
                               space: int, owner: str) -> Instruction:
    """Create an account creation instruction."""
    data = bytearray([SystemInstruction.CREATE_ACCOUNT])
    data.extend(lamports.to_bytes(8, 'little'))
    data.extend(space.to_bytes(8, 'little'))
    data.extend(bytes.fromhex(owner))

    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=[
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(new_account, is_signer=True, is_writable=True),
        ],
        data=bytes(data),
    )


def assign_instruction(pubkey: str, owner: str) -> Instruction:
    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=[AccountMeta(pubkey, is_signer=True, is_writable=True)],
        data=bytes([SystemInstruction.ASSIGN]) + bytes.fromhex(owner),
    )


def allocate_instruction(pubkey: str, space: int) -> Instruction:
    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=[AccountMeta(pubkey, is_signer=True, is_writable=True)],
        data=bytes([SystemInstruction.ALLOCATE]) + space.to_bytes(8, 'little'),
    )
