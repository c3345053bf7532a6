"""
Account store tests.

Conservation is checked as a property: any sequence of transfers between
existing accounts leaves the total supply unchanged and never drives a
balance negative.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from program_test import (
    Account,
    AccountAlreadyExistsError,
    AccountNotFoundError,
    AccountStore,
    InsufficientFundsError,
    SYSTEM_PROGRAM_ID,
    rent_exempt_minimum,
)
from program_test.config import MAX_LAMPORTS, MAX_PERMITTED_DATA_LENGTH
from program_test.core.errors import UnbalancedEffectError


PROGRAM = "bb" * 32
A, B, C = "0a" * 32, "0b" * 32, "0c" * 32


# =============================================================================
# Account record
# =============================================================================

def test_account_defaults():
    account = Account(lamports=5)
    assert account.data == b""
    assert account.owner == SYSTEM_PROGRAM_ID
    assert not account.executable
    assert account.rent_epoch == 0


@pytest.mark.parametrize("lamports", [-1, MAX_LAMPORTS + 1])
def test_account_rejects_out_of_range_lamports(lamports):
    with pytest.raises(ValueError):
        Account(lamports=lamports)


def test_account_rejects_oversized_data():
    with pytest.raises(ValueError):
        Account(lamports=0, data=bytes(MAX_PERMITTED_DATA_LENGTH + 1))


def test_rent_exempt_minimum_matches_default_rent():
    assert rent_exempt_minimum(0) == 890_880
    assert Account(lamports=890_880).is_rent_exempt()
    assert not Account(lamports=890_879).is_rent_exempt()


# =============================================================================
# Creation and queries
# =============================================================================

def test_create_and_get(store):
    store.create_account(A, lamports=100, space=16, owner=PROGRAM)
    account = store.get_account(A)
    assert account.lamports == 100
    assert account.data == bytes(16)
    assert account.owner == PROGRAM
    assert A in store
    assert len(store) == 1


def test_create_existing_account_fails(store):
    store.create_account(A, lamports=100)
    with pytest.raises(AccountAlreadyExistsError) as excinfo:
        store.create_account(A, lamports=1)
    assert excinfo.value.pubkey == A
    assert store.get_balance(A) == 100


def test_create_with_data_and_space_fails(store):
    with pytest.raises(ValueError):
        store.create_account(A, data=b"x", space=4)


def test_reads_return_copies(store):
    store.create_account(A, lamports=100)
    account = store.get_account(A)
    account.lamports = 1
    assert store.get_balance(A) == 100


def test_missing_account_queries(store):
    assert store.get_account(A) is None
    assert store.get_balance(A) == 0
    assert not store.account_exists(A)
    with pytest.raises(AccountNotFoundError):
        store[A]


def test_owner_and_program_queries(store):
    store.create_account(A, lamports=1, owner=PROGRAM)
    store.create_account(B, lamports=1)
    store.create_account(PROGRAM, lamports=1, executable=True, data=b"prog")

    assert set(store.get_accounts_by_owner(PROGRAM)) == {A}
    assert set(store.get_program_accounts()) == {PROGRAM}
    assert store.total_lamports() == 3
    assert sorted(store) == sorted([A, B, PROGRAM])


# =============================================================================
# Transfers
# =============================================================================

def test_transfer_moves_exact_amount(store):
    store.create_account(A, lamports=1_000)
    store.create_account(B, lamports=0)
    store.transfer_lamports(A, B, 400)
    assert store.get_balance(A) == 600
    assert store.get_balance(B) == 400


def test_insufficient_funds_leaves_balances_unchanged(store):
    store.create_account(A, lamports=1_000)
    store.create_account(B, lamports=5)
    with pytest.raises(InsufficientFundsError) as excinfo:
        store.transfer_lamports(A, B, 1_001)
    assert excinfo.value.balance == 1_000
    assert excinfo.value.amount == 1_001
    assert store.get_balance(A) == 1_000
    assert store.get_balance(B) == 5


def test_transfer_requires_both_accounts(store):
    store.create_account(A, lamports=1_000)
    with pytest.raises(AccountNotFoundError) as excinfo:
        store.transfer_lamports(A, B, 1)
    assert excinfo.value.pubkey == B
    with pytest.raises(AccountNotFoundError):
        store.transfer_lamports(B, A, 1)
    assert store.get_balance(A) == 1_000


def test_negative_transfer_rejected(store):
    store.create_account(A, lamports=10)
    store.create_account(B, lamports=10)
    with pytest.raises(ValueError):
        store.transfer_lamports(A, B, -1)


def test_self_transfer_is_a_no_op(store):
    store.create_account(A, lamports=10)
    store.transfer_lamports(A, A, 10)
    assert store.get_balance(A) == 10


def test_transfer_cannot_overflow_u64(store):
    store.create_account(A, lamports=10)
    store.create_account(B, lamports=MAX_LAMPORTS)
    with pytest.raises(ValueError):
        store.transfer_lamports(A, B, 1)
    assert store.get_balance(A) == 10


@settings(max_examples=50, deadline=None)
@given(st.lists(
    st.tuples(st.sampled_from([A, B, C]), st.sampled_from([A, B, C]), st.integers(0, 3_000)),
    max_size=30,
))
def test_transfers_conserve_total_supply(transfers):
    store = AccountStore()
    for pubkey, lamports in ((A, 1_000), (B, 2_000), (C, 0)):
        store.create_account(pubkey, lamports=lamports)
    total = store.total_lamports()

    for source, destination, amount in transfers:
        try:
            store.transfer_lamports(source, destination, amount)
        except InsufficientFundsError:
            pass
        assert store.total_lamports() == total
        assert all(account.lamports >= 0 for _, account in store.items())


# =============================================================================
# Program effects, commits and snapshots
# =============================================================================

def test_program_effect_may_change_data(store):
    store.create_account(A, lamports=10, owner=PROGRAM)

    def write(account):
        account.data = b"state"

    updated = store.apply_program_effect(A, write)
    assert updated.data == b"state"
    assert store.get_account(A).data == b"state"


def test_program_effect_cannot_mint(store):
    store.create_account(A, lamports=10, owner=PROGRAM)

    def mint(account):
        account.lamports += 1

    with pytest.raises(UnbalancedEffectError):
        store.apply_program_effect(A, mint)
    assert store.get_balance(A) == 10


def test_program_effects_may_move_lamports(store):
    store.create_account(A, lamports=10, owner=PROGRAM)
    store.create_account(B, lamports=0, owner=PROGRAM)

    def debit(account):
        account.lamports -= 4

    def credit(account):
        account.lamports += 4

    store.apply_program_effects({A: debit, B: credit})
    assert store.get_balance(A) == 6
    assert store.get_balance(B) == 4


def test_program_effect_on_missing_account(store):
    with pytest.raises(AccountNotFoundError):
        store.apply_program_effect(A, lambda account: None)


def test_commit_creates_accounts_only_with_balanced_lamports(store):
    store.create_account(A, lamports=10)
    store.commit({A: Account(lamports=3), B: Account(lamports=7)})
    assert store.get_balance(B) == 7

    with pytest.raises(UnbalancedEffectError) as excinfo:
        store.commit({C: Account(lamports=1)})
    assert (excinfo.value.before, excinfo.value.after) == (0, 1)
    assert C not in store


def test_snapshot_and_restore(store):
    store.create_account(A, lamports=10)
    store.create_account(B, lamports=0)
    snapshot = store.snapshot()

    store.transfer_lamports(A, B, 10)
    store.create_account(C, lamports=1)
    store.restore(snapshot)

    assert store.snapshot() == snapshot
    assert C not in store
    assert store.get_balance(A) == 10
