"""
Transaction and Instruction Model

This implements Solana's transaction structure where:
- Transactions contain multiple instructions that execute atomically
- All account access is declared upfront in an ordered account list
- Instructions specify program, accounts, and data explicitly
- Every account marked as a signer must sign the serialized message

A transaction moves through a fixed lifecycle:

    BUILT -> SIGNED -> SUBMITTED -> CONFIRMED | FAILED

It cannot change once signed, and a transaction that reached CONFIRMED or
FAILED cannot be submitted again.

Based on: https://solana.com/docs/core/transactions
"""

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .accounts import AccountMeta
from .errors import (
    MissingSignerError,
    SignatureUnavailableError,
    TransactionStateError,
)
from .identity import Keypair, Signer, signer_pubkey, verify_signature


@dataclass(frozen=True)
class MessageHeader:
    """
    Transaction message header with account access metadata.

    This tells the runtime how many accounts need to sign and
    which accounts are read-only vs writable.
    """
    num_required_signatures: int         # Number of signatures required
    num_readonly_signed_accounts: int    # Read-only accounts that must sign
    num_readonly_unsigned_accounts: int  # Read-only accounts (no signature)


@dataclass(frozen=True)
class CompiledInstruction:
    """
    Instruction compiled to reference accounts by index.

    Instead of embedding full account keys, we reference them by their
    position in the transaction's account array.
    """
    program_id_index: int           # Index into account_keys for program
    accounts: Tuple[int, ...]       # Indices into account_keys
    data: bytes                     # Program-specific instruction data

    def __str__(self) -> str:
        return f"Instruction(program_id_index={self.program_id_index}, accounts={list(self.accounts)}, data_len={len(self.data)})"


@dataclass(frozen=True)
class TransactionMessage:
    """
    The message every signer signs.

    Account keys are ordered: writable signers, readonly signers, writable
    non-signers, readonly non-signers. The fee payer is always first.
    """
    header: MessageHeader
    account_keys: Tuple[str, ...]        # All account public keys referenced
    recent_blockhash: str                # Recent blockhash for replay protection
    instructions: Tuple[CompiledInstruction, ...]

    def serialize(self) -> bytes:
        """
        Serialize message for signing.

        A simplified version of Solana's wire format: one-byte counts,
        raw 32-byte keys, two-byte data lengths.
        """
        parts = []

        # Header
        parts.append(self.header.num_required_signatures.to_bytes(1, 'little'))
        parts.append(self.header.num_readonly_signed_accounts.to_bytes(1, 'little'))
        parts.append(self.header.num_readonly_unsigned_accounts.to_bytes(1, 'little'))

        # Account keys
        parts.append(len(self.account_keys).to_bytes(1, 'little'))
        for key in self.account_keys:
            parts.append(bytes.fromhex(key))

        # Recent blockhash
        parts.append(bytes.fromhex(self.recent_blockhash))

        # Instructions
        parts.append(len(self.instructions).to_bytes(1, 'little'))
        for instruction in self.instructions:
            parts.append(instruction.program_id_index.to_bytes(1, 'little'))
            parts.append(len(instruction.accounts).to_bytes(1, 'little'))
            parts.extend(acc.to_bytes(1, 'little') for acc in instruction.accounts)
            parts.append(len(instruction.data).to_bytes(2, 'little'))
            parts.append(instruction.data)

        return b''.join(parts)

    @property
    def fee_payer(self) -> str:
        """Get the fee payer (always the first signer)."""
        return self.account_keys[0]

    @property
    def signer_keys(self) -> Tuple[str, ...]:
        return self.account_keys[:self.header.num_required_signatures]

    def is_signer(self, index: int) -> bool:
        return index < self.header.num_required_signatures

    def is_writable(self, index: int) -> bool:
        """Whether the account at index may be modified by this transaction."""
        header = self.header
        if index < header.num_required_signatures:
            return index < header.num_required_signatures - header.num_readonly_signed_accounts
        return index < len(self.account_keys) - header.num_readonly_unsigned_accounts

    def get_writable_accounts(self) -> Set[str]:
        return {key for i, key in enumerate(self.account_keys) if self.is_writable(i)}

    def get_readonly_accounts(self) -> Set[str]:
        """Get all accounts this transaction only reads from."""
        return set(self.account_keys) - self.get_writable_accounts()


@dataclass(frozen=True)
class Instruction:
    """
    High-level instruction before compilation to indices.

    This is the developer-friendly format for building transactions.
    """
    program_id: str                     # Program to invoke
    accounts: Tuple[AccountMeta, ...]   # Accounts with access metadata
    data: bytes = b""                   # Instruction data

    def __post_init__(self):
        object.__setattr__(self, 'accounts', tuple(self.accounts))
        object.__setattr__(self, 'data', bytes(self.data))

    def __str__(self) -> str:
        return f"Instruction({self.program_id[:8]}..., {len(self.accounts)} accounts, {len(self.data)} bytes)"


class TransactionState(Enum):
    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionState.CONFIRMED, TransactionState.FAILED)


class Transaction:
    """
    A compiled message plus its signatures and lifecycle state.

    Only the bank moves a transaction past SIGNED.
    """

    def __init__(self, message: TransactionMessage, keypairs: Iterable[Keypair] = ()):
        self._message = message
        self._keypairs: Dict[str, Keypair] = {kp.pubkey: kp for kp in keypairs}
        self._signatures: Tuple[bytes, ...] = ()
        self._state = TransactionState.BUILT
        self.slot: Optional[int] = None
        self.error: Optional[Exception] = None

    @property
    def message(self) -> TransactionMessage:
        return self._message

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def signatures(self) -> Tuple[bytes, ...]:
        return self._signatures

    @property
    def signature(self) -> Optional[str]:
        """Transaction id: the fee payer's signature in hex."""
        return self._signatures[0].hex() if self._signatures else None

    @property
    def fee_payer(self) -> str:
        return self._message.fee_payer

    def hash(self) -> str:
        """Compute deterministic message hash."""
        return hashlib.sha256(self._message.serialize()).hexdigest()

    def sign(self, keypairs: Iterable[Keypair] = ()) -> 'Transaction':
        """
        Sign the message with every required signer.

        Keypairs recorded at build time are used first; keypairs passed here
        fill in any the builder only knew by address.
        """
        if self._state is not TransactionState.BUILT:
            raise TransactionStateError(f"Cannot sign a transaction in state {self._state.value}")

        available = dict(self._keypairs)
        available.update((kp.pubkey, kp) for kp in keypairs)

        payload = self._message.serialize()
        signatures = []
        for pubkey in self._message.signer_keys:
            keypair = available.get(pubkey)
            if keypair is None:
                raise SignatureUnavailableError(pubkey)
            signatures.append(keypair.sign(payload))

        self._signatures = tuple(signatures)
        self._keypairs = {}
        self._state = TransactionState.SIGNED
        return self

    def verify_signatures(self) -> bool:
        """
        Verify all transaction signatures.

        Each required signer must provide a valid Ed25519 signature
        over the serialized message.
        """
        signer_keys = self._message.signer_keys
        if len(self._signatures) != len(signer_keys):
            return False

        payload = self._message.serialize()
        return all(
            verify_signature(pubkey, signature, payload)
            for pubkey, signature in zip(signer_keys, self._signatures)
        )

    # Lifecycle transitions, driven by the bank

    def mark_submitted(self) -> None:
        if self._state is not TransactionState.SIGNED:
            raise TransactionStateError(f"Cannot submit a transaction in state {self._state.value}")
        self._state = TransactionState.SUBMITTED

    def mark_confirmed(self, slot: int) -> None:
        self._require_submitted()
        self.slot = slot
        self._state = TransactionState.CONFIRMED

    def mark_failed(self, error: Exception) -> None:
        self._require_submitted()
        self.error = error
        self._state = TransactionState.FAILED

    def _require_submitted(self) -> None:
        if self._state is not TransactionState.SUBMITTED:
            raise TransactionStateError(f"Transaction is {self._state.value}, not submitted")

    def __repr__(self) -> str:
        ident = self.signature[:16] if self.signature else self.hash()[:16]
        return f"Transaction({ident}..., {self._state.value})"


class TransactionBuilder:
    """
    Builder for constructing transactions.

    This handles the logic of ordering accounts correctly and compiling
    instructions to their index-based format.
    """

    def __init__(self, fee_payer: str, recent_blockhash: str):
        """
        Initialize transaction builder.

        Args:
            fee_payer: Account that pays transaction fees (must be signer)
            recent_blockhash: Recent blockhash for replay protection
        """
        self.fee_payer = fee_payer
        self.recent_blockhash = recent_blockhash
        self.instructions: List[Instruction] = []

    def add_instruction(self, instruction: Instruction) -> 'TransactionBuilder':
        """Add an instruction to the transaction (fluent interface)."""
        self.instructions.append(instruction)
        return self

    def add_instructions(self, instructions: Iterable[Instruction]) -> 'TransactionBuilder':
        """Add multiple instructions at once."""
        self.instructions.extend(instructions)
        return self

    def compile(self) -> TransactionMessage:
        """
        Compile the instructions into a message.

        This performs the task of:
        1. Collecting all unique accounts and merging their access flags
        2. Ordering them according to Solana's rules
        3. Compiling instructions to use indices
        4. Creating the proper message header
        """
        signer_accounts = {self.fee_payer}    # Fee payer always signs
        writable_accounts = {self.fee_payer}  # Fee payer always writable
        all_accounts = {self.fee_payer}

        for instruction in self.instructions:
            all_accounts.add(instruction.program_id)
            for account in instruction.accounts:
                all_accounts.add(account.pubkey)
                if account.is_signer:
                    signer_accounts.add(account.pubkey)
                if account.is_writable:
                    writable_accounts.add(account.pubkey)

        # Order accounts the way Solana's runtime expects:
        # 1. Writable signers, fee payer first
        # 2. Readonly signers
        # 3. Writable non-signers
        # 4. Readonly non-signers
        writable_signers = sorted((signer_accounts & writable_accounts) - {self.fee_payer})
        readonly_signers = sorted(signer_accounts - writable_accounts)
        writable_non_signers = sorted(writable_accounts - signer_accounts)
        readonly_non_signers = sorted(all_accounts - signer_accounts - writable_accounts)

        account_keys = ([self.fee_payer] + writable_signers + readonly_signers
                        + writable_non_signers + readonly_non_signers)
        if len(account_keys) > 255:
            raise ValueError("Transaction references more than 255 accounts")
        if len(self.instructions) > 255:
            raise ValueError("Transaction has more than 255 instructions")
        for i, instruction in enumerate(self.instructions):
            if len(instruction.accounts) > 255:
                raise ValueError(f"Instruction {i} lists more than 255 accounts")
            if len(instruction.data) > 0xFFFF:
                raise ValueError(f"Instruction {i} data is {len(instruction.data)} bytes, limit is 65535")

        account_index = {key: i for i, key in enumerate(account_keys)}
        compiled_instructions = tuple(
            CompiledInstruction(
                program_id_index=account_index[instruction.program_id],
                accounts=tuple(account_index[acc.pubkey] for acc in instruction.accounts),
                data=instruction.data,
            )
            for instruction in self.instructions
        )

        header = MessageHeader(
            num_required_signatures=1 + len(writable_signers) + len(readonly_signers),
            num_readonly_signed_accounts=len(readonly_signers),
            num_readonly_unsigned_accounts=len(readonly_non_signers),
        )

        return TransactionMessage(
            header=header,
            account_keys=tuple(account_keys),
            recent_blockhash=self.recent_blockhash,
            instructions=compiled_instructions,
        )

    def build(self, signers: Sequence[Signer] = ()) -> Transaction:
        """
        Compile and wrap the message in an unsigned transaction.

        Every address the message needs a signature from must appear in
        signers, either as a Keypair or as a bare address whose keypair will
        be supplied at signing time.
        """
        if not self.instructions:
            raise ValueError("Transaction has no instructions")

        message = self.compile()
        provided = {signer_pubkey(signer) for signer in signers}
        for pubkey in message.signer_keys:
            if pubkey not in provided:
                raise MissingSignerError(pubkey)

        keypairs = [signer for signer in signers if isinstance(signer, Keypair)]
        return Transaction(message, keypairs)


def build_transaction(instructions: Iterable[Instruction], fee_payer: Signer,
                      signers: Sequence[Signer], recent_blockhash: str) -> Transaction:
    """Build an unsigned transaction in one call."""
    payer = signer_pubkey(fee_payer)
    if isinstance(fee_payer, Keypair) and fee_payer not in signers:
        signers = [fee_payer, *signers]
    return TransactionBuilder(payer, recent_blockhash).add_instructions(instructions).build(signers)


def sign_transaction(transaction: Transaction, keypairs: Iterable[Keypair] = ()) -> Transaction:
    """Sign a built transaction; see Transaction.sign."""
    return transaction.sign(keypairs)
