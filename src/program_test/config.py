"""
Harness Configuration

Constants and tunables shared across the harness. The numbers mirror the
values Solana's own program-test environment uses so that programs behave the
same way here as they would against a local validator.

Based on: https://docs.rs/solana-program-test
"""

from dataclasses import dataclass


LAMPORTS_PER_SOL = 1_000_000_000
MAX_LAMPORTS = 2**64 - 1          # Balances are unsigned 64-bit
MAX_SLOT = 2**64 - 1              # Slots are unsigned 64-bit

# Funding used by the test-context helpers
INITIAL_LAMPORTS = 10_000_000_000   # 10 SOL for test accounts
TEST_STAKE_AMOUNT = 1_000_000_000   # 1 SOL for staking in tests
TEST_AI_AGENT_ID = 1

# Well-known program ids (hex encoded 32-byte addresses)
SYSTEM_PROGRAM_ID = "00" * 32
BPF_LOADER_ID = "02a8f6914e88a1b0e210153ef763ae2b00c2b93d16c124d2c0537a1004800000"
NATIVE_LOADER_ID = "05" + "00" * 31     # Owner of built-in programs

# Address derivation limits
MAX_SEEDS = 16
MAX_SEED_LEN = 32
PDA_MARKER = b"ProgramDerivedAddress"

MAX_PERMITTED_DATA_LENGTH = 10 * 1024 * 1024  # 10 MiB
MAX_RECENT_BLOCKHASHES = 150
MAX_INVOKE_DEPTH = 4
SLOTS_PER_EPOCH = 432_000


@dataclass(frozen=True)
class HarnessConfig:
    """
    Tunables for a single test environment.

    Every field has a deterministic default, so two environments built from
    the same config produce identical blockhashes, clocks and addresses.
    """
    genesis_seed: str = "genesis"             # Seeds the blockhash chain
    genesis_unix_timestamp: int = 1_700_000_000
    slot_duration_ms: int = 400                # 400ms slots like Solana
    slots_per_epoch: int = SLOTS_PER_EPOCH
    max_recent_blockhashes: int = MAX_RECENT_BLOCKHASHES
    payer_funding_multiple: int = 10           # Payer gets 10x INITIAL_LAMPORTS

    def __post_init__(self):
        if self.slot_duration_ms <= 0:
            raise ValueError("slot_duration_ms must be positive")
        if self.slots_per_epoch <= 0:
            raise ValueError("slots_per_epoch must be positive")
        if self.max_recent_blockhashes <= 0:
            raise ValueError("max_recent_blockhashes must be positive")

    @property
    def payer_lamports(self) -> int:
        """Starting balance for the context's fee payer."""
        return INITIAL_LAMPORTS * self.payer_funding_multiple
