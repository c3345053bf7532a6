"""
Scenario tests: the test context, funding helpers and the mock governance
program driven through the invoker.
"""

import pytest

from program_test import (
    INITIAL_LAMPORTS,
    SYSTEM_PROGRAM_ID,
    AccountMeta,
    PdaMeta,
    create_transfer_instruction,
    TEST_AI_AGENT_ID,
    TEST_STAKE_AMOUNT,
    Account,
    AccountNotFoundError,
    AlreadyProcessedError,
    HarnessConfig,
    InstructionError,
    InsufficientFundsError,
    Keypair,
    MockProposal,
    ProgramError,
    ProgramTest,
    TransactionState,
    advance_slot,
    create_mock_ai_agent,
    create_mock_proposal,
    create_test_user,
    derive,
    fund_account,
    get_account_balance,
    get_current_slot,
    seed_from_address,
    seed_from_u64,
)
from program_test.context import AI_AGENT_SEED, PROPOSAL_SEED, create_proposal_data, initialize_ai_agent_data
from program_test.programs.encoding import PayloadReader, anchor_discriminator

from conftest import AGENT_PROGRAM_ID, UNKNOWN_INSTRUCTION


# =============================================================================
# Environment setup
# =============================================================================

def test_payer_is_funded(ctx):
    assert ctx.bank.get_balance(ctx.payer.pubkey) == HarnessConfig().payer_lamports
    assert ctx.bank.get_account(AGENT_PROGRAM_ID).executable


def test_overrides_reach_the_config():
    test = ProgramTest(payer_funding_multiple=1, slots_per_epoch=32)
    assert test.config.payer_lamports == INITIAL_LAMPORTS
    assert test.config.slots_per_epoch == 32


def test_seeded_accounts_and_payer():
    payer = Keypair.generate()
    holder = Keypair.generate().pubkey
    ctx = (ProgramTest()
           .set_payer(payer)
           .add_account_with_lamports(holder, 123)
           .add_account(payer.pubkey, Account(lamports=5))
           .start_with_context())

    assert ctx.payer is payer
    assert ctx.bank.get_balance(payer.pubkey) == 5
    assert ctx.bank.get_balance(holder) == 123


def test_account_added_twice_rejected():
    test = ProgramTest().add_account_with_lamports("01" * 32, 1)
    with pytest.raises(ValueError):
        test.add_account_with_lamports("01" * 32, 1)


def test_contexts_are_independent(program_test):
    first = program_test.start_with_context()
    second = program_test.start_with_context()
    first.warp_to_slot(50)
    assert second.bank.current_slot() == 0
    assert first.payer.pubkey != second.payer.pubkey

    # Starting again must not carry the first payer into the new bank
    assert second.bank.get_account(first.payer.pubkey) is None
    assert first.bank.get_account(second.payer.pubkey) is None
    assert second.bank.accounts.total_lamports() == first.bank.accounts.total_lamports()


async def test_start_returns_client_payer_and_blockhash(program_test):
    client, payer, blockhash = await program_test.start()
    assert await client.get_balance(payer.pubkey) == HarnessConfig().payer_lamports
    assert blockhash == await client.get_latest_blockhash()


# =============================================================================
# Funding and balances
# =============================================================================

async def test_reference_scenario(ctx):
    payer = ctx.payer.pubkey
    start = await get_account_balance(ctx, payer)

    user = await create_test_user(ctx)
    assert await get_account_balance(ctx, user.pubkey) == 10_000_000_000
    assert await get_account_balance(ctx, payer) == start - 10_000_000_000

    await fund_account(ctx, user.pubkey, TEST_STAKE_AMOUNT)
    assert await get_account_balance(ctx, payer) == start - 11_000_000_000
    assert await get_account_balance(ctx, user.pubkey) == 11_000_000_000

    available = await get_account_balance(ctx, payer)
    with pytest.raises(InstructionError) as excinfo:
        await fund_account(ctx, user.pubkey, available + 1)
    assert isinstance(excinfo.value.cause, InsufficientFundsError)
    assert await get_account_balance(ctx, payer) == available
    assert await get_account_balance(ctx, user.pubkey) == 11_000_000_000

    seeds = ["agent", seed_from_address(user.pubkey), seed_from_u64(TEST_AI_AGENT_ID)]
    first = derive(seeds, AGENT_PROGRAM_ID)
    second = derive(seeds, AGENT_PROGRAM_ID)
    assert (first.address, first.bump) == (second.address, second.bump)


async def test_balance_of_missing_account(ctx):
    with pytest.raises(AccountNotFoundError):
        await get_account_balance(ctx, Keypair.generate().pubkey)


async def test_repeated_funding_needs_a_new_blockhash(ctx):
    target = Keypair.generate().pubkey
    await fund_account(ctx, target, 5)
    with pytest.raises(AlreadyProcessedError):
        await fund_account(ctx, target, 5)

    ctx.get_new_latest_blockhash()
    status = await fund_account(ctx, target, 5)
    assert status.succeeded
    assert await get_account_balance(ctx, target) == 10


async def test_supply_is_conserved(ctx):
    total = ctx.bank.accounts.total_lamports()
    user = await create_test_user(ctx)
    await fund_account(ctx, user.pubkey, TEST_STAKE_AMOUNT)
    await create_mock_ai_agent(ctx, AGENT_PROGRAM_ID, user, TEST_AI_AGENT_ID)
    assert ctx.bank.accounts.total_lamports() == total


# =============================================================================
# Slots
# =============================================================================

async def test_advance_slot(ctx):
    assert await get_current_slot(ctx) == 0
    assert await advance_slot(ctx, 10) == 10
    assert await advance_slot(ctx, 0) == 10
    assert await get_current_slot(ctx) == 10


async def test_transactions_do_not_move_time(ctx):
    await create_test_user(ctx)
    assert await get_current_slot(ctx) == 0


async def test_advancing_refreshes_the_blockhash(ctx):
    before = ctx.last_blockhash
    await advance_slot(ctx, 1)
    assert ctx.last_blockhash != before


# =============================================================================
# Mock governance program
# =============================================================================

async def test_create_mock_ai_agent(ctx):
    user = await create_test_user(ctx)
    address = await create_mock_ai_agent(ctx, AGENT_PROGRAM_ID, user, TEST_AI_AGENT_ID)

    expected = derive([AI_AGENT_SEED, seed_from_address(user.pubkey), seed_from_u64(TEST_AI_AGENT_ID)],
                      AGENT_PROGRAM_ID)
    assert address == expected.address

    account = ctx.bank.get_account(address)
    assert account.owner == AGENT_PROGRAM_ID
    assert account.is_rent_exempt()

    reader = PayloadReader(account.data)
    assert reader.discriminator() == anchor_discriminator("initialize_ai_agent")
    assert reader.take(32).hex() == user.pubkey
    assert reader.u64() == TEST_AI_AGENT_ID
    assert reader.remaining() == 0

    assert await get_account_balance(ctx, user.pubkey) == INITIAL_LAMPORTS - account.lamports


async def test_agent_cannot_be_created_twice(ctx):
    user = await create_test_user(ctx)
    await create_mock_ai_agent(ctx, AGENT_PROGRAM_ID, user, TEST_AI_AGENT_ID)
    ctx.get_new_latest_blockhash()
    before = ctx.bank.accounts.snapshot()

    with pytest.raises(InstructionError):
        await create_mock_ai_agent(ctx, AGENT_PROGRAM_ID, user, TEST_AI_AGENT_ID)
    assert ctx.bank.accounts.snapshot() == before


async def test_agents_are_per_owner_and_id(ctx):
    alice = await create_test_user(ctx)
    bob = await create_test_user(ctx, lamports=INITIAL_LAMPORTS // 2)
    addresses = {
        await create_mock_ai_agent(ctx, AGENT_PROGRAM_ID, alice, 1),
        await create_mock_ai_agent(ctx, AGENT_PROGRAM_ID, alice, 2),
        await create_mock_ai_agent(ctx, AGENT_PROGRAM_ID, bob, 1),
    }
    assert len(addresses) == 3


async def test_create_mock_proposal(ctx):
    creator = await create_test_user(ctx)
    address = await create_mock_proposal(ctx, AGENT_PROGRAM_ID, creator, 7, "Raise quorum", "From 10% to 20%")

    assert address == derive([PROPOSAL_SEED, seed_from_u64(7)], AGENT_PROGRAM_ID).address
    reader = PayloadReader(ctx.bank.get_account(address).data)
    assert reader.discriminator() == anchor_discriminator("create_proposal")
    assert reader.take(32).hex() == creator.pubkey
    assert reader.u64() == 7
    assert reader.string() == "Raise quorum"
    assert reader.string() == "From 10% to 20%"


def test_proposal_payload_layout():
    proposal = MockProposal(id=3, title="T", description="Desc", creator="01" * 32)
    reader = PayloadReader(create_proposal_data(proposal))
    assert reader.discriminator() == anchor_discriminator("create_proposal")
    assert reader.u64() == 3
    assert reader.string() == "T"
    assert reader.string() == "Desc"
    assert reader.remaining() == 0


async def test_invoker_surfaces_program_errors(ctx):
    user = await create_test_user(ctx)
    with pytest.raises(InstructionError) as excinfo:
        ctx.invoker.invoke(AGENT_PROGRAM_ID, [], anchor_discriminator("unknown"), signers=[ctx.payer, user.keypair])

    cause = excinfo.value.cause
    assert isinstance(cause, ProgramError)
    assert cause.code == UNKNOWN_INSTRUCTION


async def test_invoker_reports_status(ctx):
    user = await create_test_user(ctx)

    result = ctx.invoker.invoke(
        AGENT_PROGRAM_ID,
        [
            PdaMeta((AI_AGENT_SEED, seed_from_address(user.pubkey), seed_from_u64(9))),
            AccountMeta(user.pubkey, is_signer=True, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        initialize_ai_agent_data(9),
        signers=[user.keypair],
    )

    assert result.status.succeeded
    assert result.signature == result.status.signature
    assert len(result.derived_addresses) == 1
    assert result.address == result.derived_addresses[0].address
    status = await ctx.banks_client.get_transaction_status(result.signature)
    assert any(line.startswith("Program log: Initialized") for line in status.logs)


def test_build_and_sign_uses_context_payer(ctx):
    transaction = ctx.build_and_sign([create_transfer_instruction(ctx.payer.pubkey, "02" * 32, 1)])
    assert transaction.fee_payer == ctx.payer.pubkey
    assert transaction.state is TransactionState.SIGNED
