"""
Harness Error Types

Every failure the harness reports is a subclass of ProgramTestError, so a
scenario can catch the whole family or a single kind. Errors carry the
addresses and amounts involved as attributes for assertions.
"""

from typing import Optional


class ProgramTestError(Exception):
    """Base class for all harness errors."""


class AccountNotFoundError(ProgramTestError):
    """An operation referenced an address with no account behind it."""

    def __init__(self, pubkey: str):
        super().__init__(f"Account {pubkey} not found")
        self.pubkey = pubkey


class AccountAlreadyExistsError(ProgramTestError):
    """Tried to create an account at an address that is already in use."""

    def __init__(self, pubkey: str):
        super().__init__(f"Account {pubkey} already exists")
        self.pubkey = pubkey


class InsufficientFundsError(ProgramTestError):
    """A debit would take an account's balance below zero."""

    def __init__(self, pubkey: str, balance: int, amount: int):
        super().__init__(f"Insufficient funds in {pubkey}: {balance} < {amount}")
        self.pubkey = pubkey
        self.balance = balance
        self.amount = amount


class UnbalancedEffectError(ProgramTestError):
    """A batch of account updates created or destroyed lamports."""

    def __init__(self, before: int, after: int):
        super().__init__(f"Lamports not conserved: {before} before, {after} after")
        self.before = before
        self.after = after


class MissingSignerError(ProgramTestError):
    """An instruction requires a signature from an address not in the signer set."""

    def __init__(self, pubkey: str):
        super().__init__(f"Missing signer: {pubkey}")
        self.pubkey = pubkey


class SignatureUnavailableError(ProgramTestError):
    """No private key is available for a required signer."""

    def __init__(self, pubkey: str):
        super().__init__(f"No keypair available to sign for {pubkey}")
        self.pubkey = pubkey


class SignatureVerificationError(ProgramTestError):
    """A transaction's signatures do not match its message."""


class TransactionStateError(ProgramTestError):
    """A transaction was used in a lifecycle state that does not allow it."""


class AlreadyProcessedError(ProgramTestError):
    """A transaction with this signature has already been processed."""

    def __init__(self, signature: str):
        super().__init__(f"Transaction {signature[:16]}... already processed")
        self.signature = signature


class BlockhashNotFoundError(ProgramTestError):
    """The transaction's recent blockhash is unknown or too old."""

    def __init__(self, blockhash: str):
        super().__init__(f"Blockhash {blockhash[:16]}... not found")
        self.blockhash = blockhash


class InvalidSeedsError(ProgramTestError):
    """Seeds hash to a point on the Ed25519 curve."""


class MaxSeedLengthExceededError(ProgramTestError):
    """Too many seeds, or a seed longer than the permitted length."""


class NoValidBumpFoundError(ProgramTestError):
    """Every bump candidate produced an on-curve address."""


class NegativeAdvanceError(ProgramTestError):
    """The clock was asked to move backwards."""

    def __init__(self, slots: int):
        super().__init__(f"Cannot advance clock by {slots} slots")
        self.slots = slots


class SlotOverflowError(ProgramTestError):
    """The clock was asked to move past the last representable slot."""

    def __init__(self, slot: int, slots: int):
        super().__init__(f"Cannot advance clock by {slots} slots from slot {slot}")
        self.slot = slot
        self.slots = slots


class InstructionError(ProgramTestError):
    """
    Instruction `index` of a transaction failed.

    The enclosing transaction has already been rolled back when this is
    raised; `cause` is the error the instruction itself raised.
    """

    def __init__(self, index: int, cause: Exception, signature: Optional[str] = None):
        super().__init__(f"Instruction {index} failed: {cause}")
        self.index = index
        self.cause = cause
        self.signature = signature
