"""
Account Model and Account Store

This module implements the ledger's state: a single mapping from address to
account, where every account has:
- a lamport balance (unsigned 64-bit)
- an opaque data buffer
- an owner program, the only program allowed to change the data or debit it
- an executable flag marking program accounts

The AccountStore is the only place account state lives. Everything else
(transactions, programs, the test context) goes through it, and every
mutation it performs conserves the total supply of lamports, except the
explicit funding done by create_account.

Based on: https://solana.com/docs/core/accounts
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from ..config import MAX_LAMPORTS, MAX_PERMITTED_DATA_LENGTH, SYSTEM_PROGRAM_ID
from .errors import (
    AccountAlreadyExistsError,
    AccountNotFoundError,
    InsufficientFundsError,
    UnbalancedEffectError,
)


logger = logging.getLogger(__name__)

# Rent parameters from Solana's default Rent sysvar
ACCOUNT_STORAGE_OVERHEAD = 128
LAMPORTS_PER_BYTE_YEAR = 3480
EXEMPTION_THRESHOLD_YEARS = 2


def rent_exempt_minimum(data_len: int) -> int:
    """
    Lamports an account of data_len bytes needs to be rent-exempt.

    Programs that create accounts fund them with at least this much.
    """
    return (ACCOUNT_STORAGE_OVERHEAD + data_len) * LAMPORTS_PER_BYTE_YEAR * EXEMPTION_THRESHOLD_YEARS


@dataclass
class Account:
    """
    Account state as stored in the ledger.

    The address is not part of the record; it is the key the AccountStore
    files the account under.
    """
    lamports: int                          # Balance in lamports (1 SOL = 1_000_000_000 lamports)
    data: bytes = b""                      # Account data (up to 10 MiB)
    owner: str = SYSTEM_PROGRAM_ID         # Program ID that owns this account
    executable: bool = False               # Whether this account contains executable code
    rent_epoch: int = 0

    def __post_init__(self):
        self.data = bytes(self.data)
        self.validate()

    def validate(self) -> None:
        """Check account invariants, raising ValueError if any is broken."""
        if self.lamports < 0:
            raise ValueError("Lamports cannot be negative")
        if self.lamports > MAX_LAMPORTS:
            raise ValueError("Lamports exceed u64 range")
        if len(self.data) > MAX_PERMITTED_DATA_LENGTH:
            raise ValueError("Account data exceeds 10 MiB limit")

    @property
    def sol_balance(self) -> float:
        """Convert lamports to SOL for human-readable display."""
        return self.lamports / 1_000_000_000

    def is_rent_exempt(self) -> bool:
        return self.lamports >= rent_exempt_minimum(len(self.data))

    def copy(self) -> 'Account':
        """Create an independent copy of this account."""
        return replace(self)


@dataclass
class AccountInfo:
    """
    Account view handed to a program during instruction execution.

    Programs mutate lamports, data and owner in place; the runtime checks
    the changes against the access rules and writes them back to the store
    when the instruction completes.
    """
    key: str                     # Account public key
    lamports: int                # Current lamport balance
    data: bytearray              # Mutable account data
    owner: str                   # Program that owns this account
    executable: bool             # Whether account is a program
    is_signer: bool              # Signed the transaction
    is_writable: bool            # Can be modified by the instruction
    rent_epoch: int = 0
    exists: bool = True          # False for addresses with no account yet

    @classmethod
    def from_account(cls, key: str, account: Optional[Account],
                     is_signer: bool, is_writable: bool) -> 'AccountInfo':
        """Build a view over a stored account, or over an empty address."""
        if account is None:
            return cls(key=key, lamports=0, data=bytearray(), owner=SYSTEM_PROGRAM_ID,
                       executable=False, is_signer=is_signer, is_writable=is_writable,
                       exists=False)
        return cls(key=key, lamports=account.lamports, data=bytearray(account.data),
                   owner=account.owner, executable=account.executable,
                   is_signer=is_signer, is_writable=is_writable,
                   rent_epoch=account.rent_epoch)

    def to_account(self) -> Account:
        return Account(lamports=self.lamports, data=bytes(self.data), owner=self.owner,
                       executable=self.executable, rent_epoch=self.rent_epoch)

    def is_untouched_empty(self) -> bool:
        """An address with no account that the instruction left alone."""
        return (not self.exists and self.lamports == 0 and not self.data
                and self.owner == SYSTEM_PROGRAM_ID)

    def transfer_lamports_to(self, other: 'AccountInfo', amount: int) -> None:
        """Transfer lamports between accounts."""
        if amount < 0:
            raise ValueError("Cannot transfer negative amount")
        if self.lamports < amount:
            raise InsufficientFundsError(self.key, self.lamports, amount)

        self.lamports -= amount
        other.lamports += amount


@dataclass(frozen=True)
class AccountMeta:
    """
    Account metadata for instruction building.

    This tells the runtime how an instruction wants to access each account.
    """
    pubkey: str          # Account public key
    is_signer: bool      # Must sign transaction
    is_writable: bool    # Can be modified

    @classmethod
    def writable(cls, pubkey: str, is_signer: bool = False) -> 'AccountMeta':
        return cls(pubkey, is_signer=is_signer, is_writable=True)

    @classmethod
    def readonly(cls, pubkey: str, is_signer: bool = False) -> 'AccountMeta':
        return cls(pubkey, is_signer=is_signer, is_writable=False)

    def __str__(self) -> str:
        """Human-readable representation."""
        flags = []
        if self.is_signer:
            flags.append("signer")
        if self.is_writable:
            flags.append("writable")
        flag_str = f"({', '.join(flags)})" if flags else "(readonly)"
        return f"{self.pubkey[:8]}...{flag_str}"


AccountSnapshot = Dict[str, Account]


class AccountStore:
    """
    The ledger's single source of truth for account state.

    All mutation goes through create_account, transfer_lamports,
    apply_program_effect(s) and commit. They share one lock, so no two
    mutations can interleave their reads and writes. Reads return copies;
    callers never hold a live reference to stored state.
    """

    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self._lock = threading.RLock()

    # Mutations

    def create_account(self, pubkey: str, lamports: int = 0, owner: Optional[str] = None,
                       executable: bool = False, data: bytes = b"", space: int = 0,
                       rent_epoch: int = 0) -> Account:
        """
        Create a new account, funding it with lamports out of thin air.

        This is the bootstrap path (seeding payers, registering programs);
        transactions create accounts through the system program instead.
        """
        if data and space:
            raise ValueError("Pass either data or space, not both")
        account = Account(
            lamports=lamports,
            data=data or bytes(space),
            owner=owner or SYSTEM_PROGRAM_ID,
            executable=executable,
            rent_epoch=rent_epoch,
        )

        with self._lock:
            if pubkey in self._accounts:
                raise AccountAlreadyExistsError(pubkey)
            self._accounts[pubkey] = account

        logger.debug("Created account %s... with %d lamports", pubkey[:8], lamports)
        return account.copy()

    def transfer_lamports(self, from_pubkey: str, to_pubkey: str, amount: int) -> None:
        """
        Move exactly amount lamports from one existing account to another.

        Both balances change or neither does.
        """
        if amount < 0:
            raise ValueError("Cannot transfer negative amount")

        with self._lock:
            from_account = self._accounts.get(from_pubkey)
            to_account = self._accounts.get(to_pubkey)
            if from_account is None:
                raise AccountNotFoundError(from_pubkey)
            if to_account is None:
                raise AccountNotFoundError(to_pubkey)
            if from_account.lamports < amount:
                raise InsufficientFundsError(from_pubkey, from_account.lamports, amount)
            if from_pubkey == to_pubkey:
                return

            updated_from = from_account.copy()
            updated_to = to_account.copy()
            updated_from.lamports -= amount
            updated_to.lamports += amount
            updated_to.validate()

            self._accounts[from_pubkey] = updated_from
            self._accounts[to_pubkey] = updated_to

        logger.debug("Transferred %d lamports %s... -> %s...", amount, from_pubkey[:8], to_pubkey[:8])

    def apply_program_effect(self, pubkey: str, mutator: Callable[[Account], None]) -> Account:
        """
        Let a program mutate one account in place.

        The mutator gets a private copy. A mutation that changes the balance
        would create or destroy lamports, so it is rejected; move lamports
        with apply_program_effects or a transfer instead.
        """
        return self.apply_program_effects({pubkey: mutator})[pubkey]

    def apply_program_effects(self, mutators: Mapping[str, Callable[[Account], None]]) -> Dict[str, Account]:
        """
        Apply several mutators as one unit.

        Lamports may move between the mutated accounts, but their total must
        stay the same.
        """
        with self._lock:
            updates = {}
            for pubkey, mutator in mutators.items():
                account = self._accounts.get(pubkey)
                if account is None:
                    raise AccountNotFoundError(pubkey)
                working = account.copy()
                mutator(working)
                updates[pubkey] = working
            self.commit(updates)
            return {pubkey: account.copy() for pubkey, account in updates.items()}

    def commit(self, updates: Mapping[str, Account]) -> None:
        """
        Write a batch of account states, creating any that do not exist.

        The batch is rejected as a whole if any account is invalid or if the
        sum of lamports over the batch differs from what is stored now.
        """
        with self._lock:
            before = sum(self._accounts[pubkey].lamports
                         for pubkey in updates if pubkey in self._accounts)
            after = 0
            for account in updates.values():
                account.validate()
                after += account.lamports
            if before != after:
                raise UnbalancedEffectError(before, after)

            for pubkey, account in updates.items():
                self._accounts[pubkey] = account.copy()

    def snapshot(self) -> AccountSnapshot:
        """Capture the full ledger state."""
        with self._lock:
            return {pubkey: account.copy() for pubkey, account in self._accounts.items()}

    def restore(self, snapshot: AccountSnapshot) -> None:
        """Replace the full ledger state with a previously captured snapshot."""
        with self._lock:
            self._accounts = {pubkey: account.copy() for pubkey, account in snapshot.items()}

    # Queries

    def get_account(self, pubkey: str) -> Optional[Account]:
        """Get a copy of the account at pubkey, or None."""
        with self._lock:
            account = self._accounts.get(pubkey)
            return account.copy() if account else None

    def account_exists(self, pubkey: str) -> bool:
        """Check if account exists."""
        return pubkey in self._accounts

    def get_balance(self, pubkey: str) -> int:
        """Get account balance in lamports (0 for missing accounts)."""
        account = self._accounts.get(pubkey)
        return account.lamports if account else 0

    def get_accounts_by_owner(self, owner: str) -> Dict[str, Account]:
        """Get all accounts owned by a specific program."""
        with self._lock:
            return {
                pubkey: account.copy()
                for pubkey, account in self._accounts.items()
                if account.owner == owner
            }

    def get_program_accounts(self) -> Dict[str, Account]:
        """Get all executable accounts (programs)."""
        with self._lock:
            return {
                pubkey: account.copy()
                for pubkey, account in self._accounts.items()
                if account.executable
            }

    def total_lamports(self) -> int:
        """Get total lamports in all accounts."""
        with self._lock:
            return sum(account.lamports for account in self._accounts.values())

    def items(self) -> List[Tuple[str, Account]]:
        with self._lock:
            return [(pubkey, account.copy()) for pubkey, account in self._accounts.items()]

    def __len__(self) -> int:
        """Number of accounts in the store."""
        return len(self._accounts)

    def __contains__(self, pubkey: str) -> bool:
        """Check if account exists using 'in' operator."""
        return pubkey in self._accounts

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._accounts))

    def __getitem__(self, pubkey: str) -> Account:
        """Get account using bracket notation."""
        account = self.get_account(pubkey)
        if account is None:
            raise AccountNotFoundError(pubkey)
        return account
