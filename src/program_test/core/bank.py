"""
Bank: Atomic Transaction Processing

The bank ties the pieces together:
- the account store holding all ledger state
- the slot clock and its blockhash chain
- the program runtime that executes instructions

Transactions are processed one at a time. Every instruction of a
transaction is applied in order against the store; if any instruction
fails, the store is restored to exactly the state it had before the
transaction started and the failure is reported with the index of the
failing instruction. There is never a partially applied transaction.

BanksClient puts the same operations behind coroutines, the shape a real
ledger client has. In this in-memory bank every commitment level is
reached as soon as the transaction is applied, so the coroutines never
wait.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config import HarnessConfig
from ..programs.runtime import ProgramRuntime, Processor
from .accounts import Account, AccountStore
from .clock import Clock, ClockController
from .commitment import CommitmentLevel
from .errors import (
    AlreadyProcessedError,
    BlockhashNotFoundError,
    InstructionError,
    SignatureVerificationError,
    TransactionStateError,
)
from .transactions import Transaction, TransactionState


logger = logging.getLogger(__name__)


@dataclass
class TransactionStatus:
    """Outcome of a processed transaction."""
    signature: str
    slot: int
    confirmation_status: CommitmentLevel
    err: Optional[Exception] = None
    logs: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.err is None

    def satisfies(self, commitment: CommitmentLevel) -> bool:
        return self.err is None and self.confirmation_status >= commitment


@dataclass
class SimulationResult:
    """What a transaction would do, computed without keeping its effects."""
    err: Optional[Exception]
    logs: List[str]
    accounts: Dict[str, Optional[Account]]


class Bank:
    """
    A single authoritative in-memory ledger.

    Mutation of account state happens only inside process_transaction, or
    through the store's bootstrap and effect APIs, and never concurrently.
    """

    def __init__(self, config: Optional[HarnessConfig] = None):
        self.config = config or HarnessConfig()
        self.accounts = AccountStore()
        self.clock = ClockController(self.config)
        self.runtime = ProgramRuntime(self.accounts, self.clock)
        self._lock = threading.RLock()
        self._statuses: Dict[str, TransactionStatus] = {}

        self._stats = {
            'transactions_processed': 0,
            'transactions_failed': 0,
        }

    # Programs

    def add_program(self, name: str, program_id: str, processor: Processor) -> None:
        self.runtime.add_program(name, program_id, processor)

    def add_builtin(self, name: str, program_id: str, processor: Processor) -> None:
        self.runtime.add_builtin(name, program_id, processor)

    # Transactions

    def process_transaction(self, transaction: Transaction,
                            commitment: CommitmentLevel = CommitmentLevel.CONFIRMED) -> TransactionStatus:
        """
        Apply a signed transaction atomically.

        Raises InstructionError (after rolling back) if an instruction fails,
        and the other harness errors if the transaction is rejected before
        execution. Returns once commitment is reached, which here is
        immediately.
        """
        with self._lock:
            if transaction.state is not TransactionState.SIGNED:
                raise TransactionStateError(
                    f"Only signed transactions can be submitted, not {transaction.state.value} ones"
                )
            transaction.mark_submitted()
            signature = transaction.signature

            try:
                self._check_transaction(transaction)
            except Exception as e:
                transaction.mark_failed(e)
                raise

            logs: List[str] = []
            snapshot = self.accounts.snapshot()
            slot = self.clock.current_slot()
            for index in range(len(transaction.message.instructions)):
                try:
                    self.runtime.process_message_instruction(transaction.message, index, logs)
                except Exception as e:
                    self.accounts.restore(snapshot)
                    error = InstructionError(index, e, signature)
                    transaction.mark_failed(error)
                    self._statuses[signature] = TransactionStatus(signature, slot, commitment, error, logs)
                    self._stats['transactions_failed'] += 1
                    logger.warning("Transaction %s... rolled back: %s", signature[:16], error)
                    raise error from e

            transaction.mark_confirmed(slot)
            status = TransactionStatus(signature, slot, commitment, None, logs)
            self._statuses[signature] = status
            self._stats['transactions_processed'] += 1
            logger.info("Transaction %s... confirmed in slot %d", signature[:16], slot)
            return status

    def simulate_transaction(self, transaction: Transaction) -> SimulationResult:
        """
        Run a transaction and throw its effects away.

        The transaction does not need signatures and its state is not
        changed, so it can still be signed and submitted afterwards.
        """
        with self._lock:
            message = transaction.message
            logs: List[str] = []
            snapshot = self.accounts.snapshot()
            err = None
            try:
                if not self.clock.is_blockhash_valid(message.recent_blockhash):
                    raise BlockhashNotFoundError(message.recent_blockhash)
                for index in range(len(message.instructions)):
                    try:
                        self.runtime.process_message_instruction(message, index, logs)
                    except Exception as e:
                        raise InstructionError(index, e) from e
            except (BlockhashNotFoundError, InstructionError) as e:
                err = e
            finally:
                accounts = {key: self.accounts.get_account(key) for key in message.account_keys}
                self.accounts.restore(snapshot)
            return SimulationResult(err=err, logs=logs, accounts=accounts)

    def get_transaction_status(self, signature: str) -> Optional[TransactionStatus]:
        return self._statuses.get(signature)

    def _check_transaction(self, transaction: Transaction) -> None:
        if transaction.signature in self._statuses:
            raise AlreadyProcessedError(transaction.signature)
        if not self.clock.is_blockhash_valid(transaction.message.recent_blockhash):
            raise BlockhashNotFoundError(transaction.message.recent_blockhash)
        if not transaction.verify_signatures():
            raise SignatureVerificationError(f"Invalid signatures on {transaction.signature[:16]}...")

    # State queries

    def get_account(self, pubkey: str) -> Optional[Account]:
        """Get account by public key."""
        return self.accounts.get_account(pubkey)

    def get_balance(self, pubkey: str) -> int:
        """Get account balance in lamports."""
        return self.accounts.get_balance(pubkey)

    def current_slot(self) -> int:
        return self.clock.current_slot()

    def get_clock(self) -> Clock:
        return self.clock.get_clock()

    def latest_blockhash(self) -> str:
        """Get a recent blockhash for transaction creation."""
        return self.clock.latest_blockhash()

    def warp_to_slot(self, slot: int) -> int:
        with self._lock:
            return self.clock.warp_to_slot(slot)

    def advance_slots(self, slots: int) -> int:
        with self._lock:
            return self.clock.advance(slots)

    def get_stats(self) -> Dict[str, int]:
        return {
            **self._stats,
            'current_slot': self.current_slot(),
            'total_accounts': len(self.accounts),
            'total_lamports': self.accounts.total_lamports(),
        }


class BanksClient:
    """
    Coroutine interface over a Bank.

    Mirrors the client a test would use against a real validator. Each
    coroutine completes without suspending.
    """

    def __init__(self, bank: Bank):
        self.bank = bank

    async def process_transaction_with_commitment(self, transaction: Transaction,
                                                  commitment: CommitmentLevel) -> TransactionStatus:
        return self.bank.process_transaction(transaction, commitment)

    async def process_transaction(self, transaction: Transaction) -> TransactionStatus:
        return self.bank.process_transaction(transaction, CommitmentLevel.CONFIRMED)

    async def simulate_transaction(self, transaction: Transaction) -> SimulationResult:
        return self.bank.simulate_transaction(transaction)

    async def get_transaction_status(self, signature: str) -> Optional[TransactionStatus]:
        return self.bank.get_transaction_status(signature)

    async def get_account(self, pubkey: str) -> Optional[Account]:
        return self.bank.get_account(pubkey)

    async def get_balance(self, pubkey: str) -> int:
        return self.bank.get_balance(pubkey)

    async def get_clock(self) -> Clock:
        return self.bank.get_clock()

    async def get_latest_blockhash(self) -> str:
        return self.bank.latest_blockhash()

    async def warp_to_slot(self, slot: int) -> int:
        return self.bank.warp_to_slot(slot)
