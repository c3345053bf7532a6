"""
Test Context and Scenario Helpers

ProgramTest collects the programs and accounts a scenario needs and starts
a fresh bank from them. The resulting ProgramTestContext is the only state
a scenario carries around: every helper below takes it explicitly, so
there is no shared global environment between tests.

    test = ProgramTest()
    test.add_program("agents", AGENT_PROGRAM_ID, process_agent_instruction)
    ctx = test.start_with_context()

    user = await create_test_user(ctx)
    agent = await create_mock_ai_agent(ctx, AGENT_PROGRAM_ID, user, TEST_AI_AGENT_ID)
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from .config import INITIAL_LAMPORTS, SYSTEM_PROGRAM_ID, HarnessConfig
from .core.accounts import Account, AccountMeta
from .core.bank import Bank, BanksClient, TransactionStatus
from .core.commitment import CommitmentLevel
from .core.errors import AccountNotFoundError
from .core.identity import Keypair
from .core.transactions import Transaction, build_transaction
from .programs.encoding import anchor_discriminator, encode_string, encode_u64
from .programs.invoker import PdaMeta, ProgramInvoker
from .programs.pda import seed_from_address, seed_from_u64
from .programs.runtime import Processor
from .programs.system import create_transfer_instruction


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TestUser:
    """A funded test actor."""
    __test__ = False  # Not a pytest test class

    keypair: Keypair
    pubkey: str

    @classmethod
    def from_keypair(cls, keypair: Keypair) -> 'TestUser':
        return cls(keypair=keypair, pubkey=keypair.pubkey)


class ProgramTest:
    """
    Builder for a test environment.

    Programs and accounts added here exist from genesis. Call
    start_with_context() (or await start()) once everything is added.
    """

    def __init__(self, config: Optional[HarnessConfig] = None, **overrides):
        config = config or HarnessConfig()
        self.config = replace(config, **overrides) if overrides else config
        self._programs: List[Tuple[str, str, Processor]] = []
        self._accounts: Dict[str, Account] = {}
        self._payer: Optional[Keypair] = None

    def add_program(self, name: str, program_id: str, processor: Processor) -> 'ProgramTest':
        """Register an external program (name, id, processor)."""
        self._programs.append((name, program_id, processor))
        return self

    def add_account(self, pubkey: str, account: Account) -> 'ProgramTest':
        """Pre-seed an account at genesis."""
        if pubkey in self._accounts:
            raise ValueError(f"Account {pubkey[:8]}... added twice")
        self._accounts[pubkey] = account.copy()
        return self

    def add_account_with_lamports(self, pubkey: str, lamports: int,
                                  owner: str = SYSTEM_PROGRAM_ID) -> 'ProgramTest':
        return self.add_account(pubkey, Account(lamports=lamports, owner=owner))

    def set_payer(self, payer: Keypair) -> 'ProgramTest':
        """Use a specific payer instead of a fresh one."""
        self._payer = payer
        return self

    def start_with_context(self) -> 'ProgramTestContext':
        """Create the bank, seed it, and return the scenario context."""
        bank = Bank(self.config)
        for name, program_id, processor in self._programs:
            bank.add_program(name, program_id, processor)

        payer = self._payer or Keypair.generate()
        accounts = dict(self._accounts)
        if payer.pubkey not in accounts:
            accounts[payer.pubkey] = Account(lamports=self.config.payer_lamports)

        for pubkey, account in accounts.items():
            bank.accounts.create_account(
                pubkey,
                lamports=account.lamports,
                owner=account.owner,
                executable=account.executable,
                data=account.data,
                rent_epoch=account.rent_epoch,
            )

        logger.info("Started test bank with %d programs and %d accounts",
                    len(self._programs), len(accounts))
        return ProgramTestContext(bank=bank, payer=payer)

    async def start(self) -> Tuple[BanksClient, Keypair, str]:
        """Start and return (banks_client, payer, last_blockhash)."""
        ctx = self.start_with_context()
        return ctx.banks_client, ctx.payer, ctx.last_blockhash


class ProgramTestContext:
    """Everything a running scenario needs, passed explicitly."""

    def __init__(self, bank: Bank, payer: Keypair):
        self.bank = bank
        self.banks_client = BanksClient(bank)
        self.payer = payer
        self.invoker = ProgramInvoker(bank)

    @property
    def last_blockhash(self) -> str:
        return self.bank.latest_blockhash()

    def warp_to_slot(self, slot: int) -> int:
        return self.bank.warp_to_slot(slot)

    def get_new_latest_blockhash(self) -> str:
        """Move one slot forward so the next transaction gets a fresh blockhash."""
        self.bank.advance_slots(1)
        return self.bank.latest_blockhash()

    def build_and_sign(self, instructions, signers=()) -> Transaction:
        """Build a transaction paid for by the context payer and sign it."""
        transaction = build_transaction(instructions, self.payer, list(signers), self.last_blockhash)
        return transaction.sign()


# Scenario helpers

async def create_test_user(ctx: ProgramTestContext, lamports: int = INITIAL_LAMPORTS) -> TestUser:
    """Create a new identity funded by a transfer from the payer."""
    user = TestUser.from_keypair(Keypair.generate())
    transaction = ctx.build_and_sign([create_transfer_instruction(ctx.payer.pubkey, user.pubkey, lamports)])
    await ctx.banks_client.process_transaction_with_commitment(transaction, CommitmentLevel.CONFIRMED)
    return user


async def fund_account(ctx: ProgramTestContext, pubkey: str, amount: int) -> TransactionStatus:
    """Send amount lamports from the payer to pubkey."""
    transaction = ctx.build_and_sign([create_transfer_instruction(ctx.payer.pubkey, pubkey, amount)])
    return await ctx.banks_client.process_transaction_with_commitment(transaction, CommitmentLevel.CONFIRMED)


async def get_account_balance(ctx: ProgramTestContext, pubkey: str) -> int:
    """Balance of an existing account; raises AccountNotFoundError otherwise."""
    account = await ctx.banks_client.get_account(pubkey)
    if account is None:
        raise AccountNotFoundError(pubkey)
    return account.lamports


async def get_current_slot(ctx: ProgramTestContext) -> int:
    clock = await ctx.banks_client.get_clock()
    return clock.slot


async def advance_slot(ctx: ProgramTestContext, slots: int) -> int:
    """Move the clock forward by slots, for time-dependent program logic."""
    current_slot = await get_current_slot(ctx)
    return await ctx.banks_client.warp_to_slot(current_slot + slots)


@dataclass(frozen=True)
class MockProposal:
    """Arguments of a governance proposal."""
    id: int
    title: str
    description: str
    creator: str


AI_AGENT_SEED = b"ai_agent"
PROPOSAL_SEED = b"proposal"


def initialize_ai_agent_data(agent_id: int) -> bytes:
    return anchor_discriminator("initialize_ai_agent") + encode_u64(agent_id)


def create_proposal_data(proposal: MockProposal) -> bytes:
    return (anchor_discriminator("create_proposal") + encode_u64(proposal.id)
            + encode_string(proposal.title) + encode_string(proposal.description))


async def create_mock_ai_agent(ctx: ProgramTestContext, program_id: str,
                               owner: TestUser, agent_id: int) -> str:
    """
    Ask program_id to initialize an AI agent account and return its PDA.

    The agent PDA is derived from ("ai_agent", owner, agent_id as u64 LE).
    What the program stores there is up to the program.
    """
    result = ctx.invoker.invoke(
        program_id,
        [
            PdaMeta((AI_AGENT_SEED, seed_from_address(owner.pubkey), seed_from_u64(agent_id))),
            AccountMeta(owner.pubkey, is_signer=True, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        initialize_ai_agent_data(agent_id),
        signers=[ctx.payer, owner.keypair],
        payer=ctx.payer,
    )
    return result.address


async def create_mock_proposal(ctx: ProgramTestContext, program_id: str, creator: TestUser,
                               proposal_id: int, title: str = "Test Proposal",
                               description: str = "A test proposal") -> str:
    """
    Ask program_id to create a governance proposal and return its PDA.

    The proposal PDA is derived from ("proposal", proposal_id as u64 LE).
    """
    proposal = MockProposal(id=proposal_id, title=title, description=description, creator=creator.pubkey)
    result = ctx.invoker.invoke(
        program_id,
        [
            PdaMeta((PROPOSAL_SEED, seed_from_u64(proposal_id))),
            AccountMeta(creator.pubkey, is_signer=True, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        create_proposal_data(proposal),
        signers=[ctx.payer, creator.keypair],
        payer=ctx.payer,
    )
    return result.address
