"""
In-Memory Ledger Test Harness

A deterministic, single-process stand-in for a Solana cluster, built for
integration tests of on-chain programs. It keeps the parts of Solana a
program can observe and drops everything else.

Key Features:
- ✅ Account store with lamport conservation and atomic rollback
- ✅ Ed25519 signer identities and signed, ordered transactions
- ✅ Program Derived Addresses with canonical bump search
- ✅ Program runtime enforcing ownership rules, with cross-program calls
- ✅ Logical slot clock and recent-blockhash window
- ✅ Async BanksClient and explicit per-test context

Based on: https://docs.rs/solana-program-test
"""

__version__ = "1.0.0"

# Core exports for easy importing
from .config import (
    HarnessConfig,
    INITIAL_LAMPORTS,
    TEST_STAKE_AMOUNT,
    TEST_AI_AGENT_ID,
    LAMPORTS_PER_SOL,
    SYSTEM_PROGRAM_ID,
)
from .core import *
from .core import __all__ as _core_all
from .programs import *
from .programs import __all__ as _programs_all
from .context import (
    ProgramTest,
    ProgramTestContext,
    TestUser,
    MockProposal,
    create_test_user,
    fund_account,
    get_account_balance,
    get_current_slot,
    advance_slot,
    create_mock_ai_agent,
    create_mock_proposal,
)

__all__ = [
    'HarnessConfig',
    'INITIAL_LAMPORTS',
    'TEST_STAKE_AMOUNT',
    'TEST_AI_AGENT_ID',
    'LAMPORTS_PER_SOL',
    'SYSTEM_PROGRAM_ID',
    *_core_all,
    *_programs_all,

    # Scenario surface
    'ProgramTest',
    'ProgramTestContext',
    'TestUser',
    'MockProposal',
    'create_test_user',
    'fund_account',
    'get_account_balance',
    'get_current_slot',
    'advance_slot',
    'create_mock_ai_agent',
    'create_mock_proposal',
]
