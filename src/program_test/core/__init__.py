"""
Ledger Core Components

Accounts, identities, the slot clock, transactions and the bank that
applies them. Import order matters here: the bank pulls in the program
runtime, which builds on everything above it.
"""

from .errors import (
    ProgramTestError,
    AccountNotFoundError,
    AccountAlreadyExistsError,
    InsufficientFundsError,
    UnbalancedEffectError,
    MissingSignerError,
    SignatureUnavailableError,
    SignatureVerificationError,
    TransactionStateError,
    AlreadyProcessedError,
    BlockhashNotFoundError,
    InvalidSeedsError,
    MaxSeedLengthExceededError,
    NoValidBumpFoundError,
    NegativeAdvanceError,
    SlotOverflowError,
    InstructionError,
)
from .identity import Keypair, Signer, verify_signature, is_on_curve
from .accounts import Account, AccountInfo, AccountMeta, AccountStore, rent_exempt_minimum
from .clock import Clock, ClockController
from .commitment import CommitmentLevel
from .transactions import (
    Transaction,
    TransactionMessage,
    TransactionState,
    MessageHeader,
    CompiledInstruction,
    Instruction,
    TransactionBuilder,
    build_transaction,
    sign_transaction,
)
from .bank import Bank, BanksClient, TransactionStatus, SimulationResult

__all__ = [
    'ProgramTestError', 'AccountNotFoundError', 'AccountAlreadyExistsError',
    'InsufficientFundsError', 'UnbalancedEffectError', 'MissingSignerError',
    'SignatureUnavailableError', 'SignatureVerificationError', 'TransactionStateError',
    'AlreadyProcessedError', 'BlockhashNotFoundError', 'InvalidSeedsError',
    'MaxSeedLengthExceededError', 'NoValidBumpFoundError', 'NegativeAdvanceError',
    'SlotOverflowError', 'InstructionError',
    'Keypair', 'Signer', 'verify_signature', 'is_on_curve',
    'Account', 'AccountInfo', 'AccountMeta', 'AccountStore', 'rent_exempt_minimum',
    'Clock', 'ClockController',
    'CommitmentLevel',
    'Transaction', 'TransactionMessage', 'TransactionState', 'MessageHeader',
    'CompiledInstruction', 'Instruction', 'TransactionBuilder',
    'build_transaction', 'sign_transaction',
    'Bank', 'BanksClient', 'TransactionStatus', 'SimulationResult',
]
