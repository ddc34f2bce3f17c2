"""
Atomicity Conformance Tests

INVARIANT: Ledger operations are all-or-nothing.

    ∀ operation op:
        op succeeds ⟹ the loan record, the token balances and the event
                      log all reflect it
        op raises   ⟹ none of them changed

Failures are injected at every collaborator call site (pool collect and
disburse, custody hold and release) as well as by business-rule
rejections.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from chainflow import LendingError

from tests.fakes import FailingPool, FailingReleaseVault, make_deployment


def snapshot(d):
    ledger = d.ledger
    loans = tuple(ledger.get_loan(i) for i in range(1, ledger.loan_count + 1))
    holders = ("alice", "bob", "carol", "liquidator", "pool", "vault")
    return (
        loans,
        len(ledger.events),
        tuple(d.wmatic.balance_of(h) for h in holders),
        tuple(d.usdc.balance_of(h) for h in holders),
        tuple(d.vault.held_by(h) for h in ("alice", "bob", "carol")),
    )


class TestAtomicityProperties:

    @given(
        collateral=st.integers(min_value=1, max_value=2_000 * 10 ** 18),
        debt=st.integers(min_value=1, max_value=20_000 * 10 ** 6),
        fail_disburse=st.booleans(),
    )
    @settings(max_examples=100, deadline=None)
    def test_open_all_or_nothing(self, collateral, debt, fail_disburse):
        d = make_deployment()
        failing = FailingPool(d.pool, fail_disburse=fail_disburse)
        d.ledger.pool = failing
        before = snapshot(d)
        try:
            d.ledger.open_loan("alice", collateral, debt)
        except LendingError:
            assert snapshot(d) == before
        else:
            assert not fail_disburse
            assert d.ledger.loan_count == 1
            assert d.vault.held_by("alice") == collateral
            assert d.usdc.balance_of("alice") == 500 * 10 ** 6 + debt

    @given(
        amount=st.integers(min_value=1, max_value=50 * 10 ** 6),
        elapsed=st.integers(min_value=0, max_value=2 * 365 * 86_400),
        fail_collect=st.booleans(),
        fail_release=st.booleans(),
    )
    @settings(max_examples=100, deadline=None)
    def test_repay_all_or_nothing(self, amount, elapsed, fail_collect, fail_release):
        d = make_deployment(custody_cls=FailingReleaseVault)
        loan_id = d.ledger.open_loan("alice", 100 * 10 ** 18, 35 * 10 ** 6)
        d.ledger.pool = FailingPool(d.pool, fail_collect=fail_collect)
        d.vault.fail_release = fail_release
        d.ledger.advance_time(elapsed)
        before = snapshot(d)
        try:
            remaining = d.ledger.repay(loan_id, "alice", amount)
        except LendingError:
            assert snapshot(d) == before
        else:
            assert not fail_collect
            assert d.ledger.get_loan(loan_id).debt_amount == remaining
            if remaining == 0:
                assert not fail_release
                assert d.vault.held_by("alice") == 0

    @given(
        price=st.integers(min_value=10 ** 17, max_value=6 * 10 ** 17),
        max_repay=st.integers(min_value=1, max_value=40 * 10 ** 6),
        fail_collect=st.booleans(),
        fail_release=st.booleans(),
    )
    @settings(max_examples=100, deadline=None)
    def test_liquidate_all_or_nothing(self, price, max_repay, fail_collect, fail_release):
        d = make_deployment(custody_cls=FailingReleaseVault)
        loan_id = d.ledger.open_loan("alice", 100 * 10 ** 18, 35 * 10 ** 6)
        d.oracle.set_price(price)
        d.ledger.pool = FailingPool(d.pool, fail_collect=fail_collect)
        d.vault.fail_release = fail_release
        before = snapshot(d)
        try:
            seized = d.ledger.liquidate(loan_id, "liquidator", max_repay)
        except LendingError:
            assert snapshot(d) == before
        else:
            assert not (fail_collect or fail_release)
            assert d.wmatic.balance_of("liquidator") == seized
            assert d.ledger.get_loan(loan_id).collateral_amount == 100 * 10 ** 18 - seized


def test_snapshot_detects_changes():
    d = make_deployment()
    before = snapshot(d)
    d.ledger.open_loan("alice", 100 * 10 ** 18, 1 * 10 ** 6)
    assert snapshot(d) != before


@pytest.mark.parametrize("op", ["open", "repay", "liquidate"])
def test_paused_operations_change_nothing(op):
    d = make_deployment()
    loan_id = d.ledger.open_loan("alice", 100 * 10 ** 18, 35 * 10 ** 6)
    d.oracle.set_price(3 * 10 ** 17)
    d.ledger.pause("owner")
    before = snapshot(d)
    with pytest.raises(LendingError):
        if op == "open":
            d.ledger.open_loan("bob", 100 * 10 ** 18, 1 * 10 ** 6)
        elif op == "repay":
            d.ledger.repay(loan_id, "alice", 1 * 10 ** 6)
        else:
            d.ledger.liquidate(loan_id, "liquidator", 1 * 10 ** 6)
    assert snapshot(d) == before
