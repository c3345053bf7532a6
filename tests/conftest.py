"""
conftest.py - Shared pytest fixtures for harness tests

Provides:
- Bare banks and account stores
- Funded wallets
- A mock governance program (AI agents and proposals) that creates its
  accounts through a cross-program call to the system program
- A started ProgramTestContext with the mock program registered
"""

import pytest

from program_test import (
    INITIAL_LAMPORTS,
    AccountStore,
    Bank,
    HarnessConfig,
    Keypair,
    MissingSignerError,
    ProgramError,
    ProgramTest,
    PayloadReader,
    anchor_discriminator,
    create_account_instruction,
    derive,
    encode_string,
    encode_u64,
    rent_exempt_minimum,
    seed_from_u64,
)
from program_test.context import AI_AGENT_SEED, PROPOSAL_SEED


AGENT_PROGRAM_ID = "a1" * 32

UNKNOWN_INSTRUCTION = 6000
INITIALIZE_AI_AGENT = anchor_discriminator("initialize_ai_agent")
CREATE_PROPOSAL = anchor_discriminator("create_proposal")


def process_agent_instruction(ctx, program_id, accounts, data):
    """
    Mock governance program.

    Accounts: [derived account (writable), authority (signer), system program].
    The derived account is created through the system program and filled
    with discriminator + authority + arguments.
    """
    reader = PayloadReader(data)
    tag = reader.discriminator()
    if tag not in (INITIALIZE_AI_AGENT, CREATE_PROPOSAL):
        raise ProgramError("Unknown instruction", program_id, code=UNKNOWN_INSTRUCTION)
    target, authority = accounts[0], accounts[1]

    if tag == INITIALIZE_AI_AGENT:
        agent_id = reader.u64()
        seeds = (AI_AGENT_SEED, bytes.fromhex(authority.key), seed_from_u64(agent_id))
        body = bytes.fromhex(authority.key) + encode_u64(agent_id)
    else:
        proposal_id = reader.u64()
        title = reader.string()
        description = reader.string()
        seeds = (PROPOSAL_SEED, seed_from_u64(proposal_id))
        body = (bytes.fromhex(authority.key) + encode_u64(proposal_id)
                + encode_string(title) + encode_string(description))

    if not authority.is_signer:
        raise MissingSignerError(authority.key)

    pda = derive(seeds, program_id)
    if pda.address != target.key:
        raise ProgramError("Derived account mismatch", program_id)

    space = len(tag) + len(body)
    ctx.invoke_signed(
        create_account_instruction(authority.key, target.key, rent_exempt_minimum(space), space, program_id),
        [pda.signer_seeds],
    )
    target.data[:] = tag + body
    ctx.log(f"Initialized {target.key[:8]}")


@pytest.fixture
def config():
    return HarnessConfig()


@pytest.fixture
def store():
    return AccountStore()


@pytest.fixture
def bank(config):
    return Bank(config)


@pytest.fixture
def alice(bank):
    """A wallet holding INITIAL_LAMPORTS."""
    keypair = Keypair.generate()
    bank.accounts.create_account(keypair.pubkey, lamports=INITIAL_LAMPORTS)
    return keypair


@pytest.fixture
def bob(bank):
    keypair = Keypair.generate()
    bank.accounts.create_account(keypair.pubkey, lamports=INITIAL_LAMPORTS)
    return keypair


@pytest.fixture
def program_test():
    test = ProgramTest()
    test.add_program("mock_governance", AGENT_PROGRAM_ID, process_agent_instruction)
    return test


@pytest.fixture
def ctx(program_test):
    return program_test.start_with_context()
