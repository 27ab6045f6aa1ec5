"""
test_pool.py - Tests for the LendingPool execution discipline

Tests:
- Construction against a ledger
- Owner-only administration and pausing
- Event log ordering and verbose output
- Reentrancy through asset transfer rules
- Clock handling
- Concurrent callers
"""

import pytest
import threading
from datetime import timedelta
from decimal import Decimal

from lendpool import (
    Ledger, LendingPool, PoolConfig, EventKind, token,
    UnitNotRegistered, Unauthorized, PoolPaused, ReentrantCall, InvalidAccount,
    InsufficientBalance, InvalidAmount, TransferFailed,
)

from conftest import BASE, COLLATERAL, T0, make_ledger, make_pool, approve, supply


def _config():
    return PoolConfig(
        owner="treasury", base_asset=BASE, collateral_asset=COLLATERAL,
        collateral_ratio=8000, fee_recipient="treasury",
    )


class TestConstruction:

    def test_registers_pool_wallet(self, ledger):
        assert not ledger.is_registered("lending_pool")
        pool = make_pool(ledger)
        assert ledger.is_registered(pool.wallet)

    def test_custom_pool_wallet(self, ledger):
        pool = make_pool(ledger, pool_wallet="vault")
        assert pool.wallet == "vault"
        assert ledger.is_registered("vault")

    def test_assets_must_exist(self):
        ledger = Ledger("bare", T0, verbose=False)
        ledger.register_unit(token(BASE, "USD Coin"))
        with pytest.raises(UnitNotRegistered):
            LendingPool(ledger, _config())

    def test_starts_empty(self, pool):
        assert pool.total_supplied == Decimal("0")
        assert pool.events == []
        assert not pool.paused
        assert pool.verify_accounting()["valid"]


class TestAdministration:

    def test_set_fee_recipient(self, pool):
        event = pool.set_fee_recipient("treasury", "carol")
        assert pool.config.fee_recipient == "carol"
        assert event.kind == EventKind.FEE_RECIPIENT_CHANGED
        assert event.details == {"previous": "treasury", "recipient": "carol"}

    def test_set_fee_recipient_registers_wallet(self, pool, ledger):
        pool.set_fee_recipient("treasury", "dao")
        assert ledger.is_registered("dao")

    def test_fee_goes_to_new_recipient(self):
        ledger = make_ledger(decimal_places=2)
        pool = make_pool(ledger)
        pool.set_fee_recipient("treasury", "carol")
        supply(pool, "alice", 1000)
        approve(pool, "bob", COLLATERAL, 1000)
        pool.deposit_collateral("bob", 1000)
        pool.borrow("bob", 800)
        ledger.advance_time(T0 + timedelta(days=95))
        approve(pool, "bob", BASE, 864)
        pool.repay("bob", 800)
        assert ledger.get_balance("carol", BASE) == Decimal("10000.96")
        assert ledger.get_balance("treasury", BASE) == Decimal("0")

    def test_fee_recipient_cannot_be_pool(self, pool):
        with pytest.raises(InvalidAccount):
            pool.set_fee_recipient("treasury", "lending_pool")

    def test_non_owner(self, pool):
        with pytest.raises(Unauthorized):
            pool.set_fee_recipient("alice", "alice")
        assert pool.config.fee_recipient == "treasury"
        assert pool.events == []

    def test_transfer_ownership(self, pool):
        pool.transfer_ownership("treasury", "carol")
        assert pool.config.owner == "carol"
        with pytest.raises(Unauthorized):
            pool.pause("treasury")
        pool.pause("carol")
        assert pool.paused

    def test_pause_blocks_entry_only(self, funded_pool):
        funded_pool.pause("treasury")
        approve(funded_pool, "alice", BASE, 10)
        with pytest.raises(PoolPaused):
            funded_pool.deposit("alice", 10)
        funded_pool.withdraw("alice", 10)
        assert funded_pool.get_lender_balance("alice") == Decimal("990")

    def test_unpause(self, pool):
        pool.pause("treasury")
        pool.unpause("treasury")
        supply(pool, "alice", 10)
        assert [e.kind for e in pool.events] == [EventKind.PAUSED, EventKind.UNPAUSED, EventKind.DEPOSIT]

    def test_non_owner_cannot_pause(self, pool):
        with pytest.raises(Unauthorized):
            pool.pause("alice")
        assert not pool.paused


class TestEvents:

    def test_sequence_numbers(self, active_loan_pool):
        events = active_loan_pool.events
        assert [e.sequence for e in events] == [0, 1, 2]
        assert [e.kind for e in events] == [
            EventKind.DEPOSIT, EventKind.COLLATERAL_DEPOSIT, EventKind.BORROW,
        ]

    def test_event_matches_ledger_log(self, funded_pool, ledger):
        tx = ledger.transaction_log[-1]
        assert tx.origin.event_type == "DEPOSIT"
        assert tx.origin.account == "alice"
        assert tx.timestamp == funded_pool.events[-1].timestamp

    def test_failures_emit_nothing(self, funded_pool):
        with pytest.raises(InsufficientBalance):
            funded_pool.withdraw("alice", 5000)
        assert len(funded_pool.events) == 1

    def test_verbose_output(self, ledger, capsys):
        pool = make_pool(ledger)
        pool.verbose = True
        supply(pool, "alice", 10)
        assert "PoolEvent(#0 deposit alice: amount=10)" in capsys.readouterr().out

    def test_verbose_failure(self, ledger, capsys):
        pool = make_pool(ledger)
        pool.verbose = True
        with pytest.raises(TransferFailed):
            pool.deposit("alice", 10)
        assert "FAILED deposit alice" in capsys.readouterr().out


class TestReentrancy:
    """An asset transfer rule calling back into the pool cannot mutate it."""

    def test_callback_rejected_and_nothing_applied(self):
        holder = {}
        seen = []

        def call_back(view, move):
            pool = holder["pool"]
            seen.append(pool.get_lender_balance("alice"))
            pool.withdraw("alice", 1)

        ledger = make_ledger(transfer_rule=call_back)
        pool = make_pool(ledger)
        holder["pool"] = pool
        approve(pool, "alice", BASE, 10)

        with pytest.raises(ReentrantCall):
            pool.deposit("alice", 10)

        assert seen == [Decimal("0")]
        assert pool.total_supplied == Decimal("0")
        assert pool.events == []
        assert ledger.get_balance("alice", BASE) == Decimal("100000")
        assert ledger.transaction_log == []

    def test_pool_usable_after_rejected_callback(self):
        calls = []

        def call_back(view, move):
            calls.append(move)
            if len(calls) == 1:
                holder["pool"].deposit("alice", 1)

        holder = {}
        ledger = make_ledger(transfer_rule=call_back)
        pool = make_pool(ledger)
        holder["pool"] = pool

        with pytest.raises(ReentrantCall):
            supply(pool, "alice", 5)
        supply(pool, "alice", 5)
        assert pool.total_supplied == Decimal("5")


class TestClock:

    def test_custom_clock_advances_ledger(self, ledger):
        now = [T0 + timedelta(days=95)]
        pool = LendingPool(ledger, _config(), clock=lambda: now[0])
        approve(pool, "bob", COLLATERAL, 10)
        pool.deposit_collateral("bob", 10)
        assert ledger.current_time == now[0]
        assert pool.get_borrower("bob").borrow_timestamp == now[0]

    def test_failed_precondition_keeps_ledger_time(self, ledger):
        pool = LendingPool(ledger, _config(), clock=lambda: T0 + timedelta(days=10))
        with pytest.raises(InvalidAmount):
            pool.deposit("alice", 0)
        assert ledger.current_time == T0

    def test_failed_transfer_keeps_ledger_time(self, ledger):
        pool = LendingPool(ledger, _config(), clock=lambda: T0 + timedelta(days=10))
        with pytest.raises(TransferFailed):
            pool.deposit("alice", 10)
        assert ledger.current_time == T0
        assert pool.events == []

    def test_reads_use_clock(self, ledger):
        now = [T0]
        pool = LendingPool(ledger, _config(), clock=lambda: now[0])
        supply(pool, "alice", 1000)
        approve(pool, "bob", COLLATERAL, 1000)
        pool.deposit_collateral("bob", 1000)
        pool.borrow("bob", 800)
        now[0] = T0 + timedelta(days=95)
        assert pool.calculate_total_debt("bob") == Decimal("864")


class TestConcurrency:

    def test_parallel_deposits(self, pool):
        approve(pool, "alice", BASE, 400)
        errors = []

        def worker():
            try:
                for _ in range(50):
                    pool.deposit("alice", 1)
            except Exception as exc:  # surfaced below
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert pool.total_supplied == Decimal("400")
        assert len(pool.events) == 400
        assert sorted(e.sequence for e in pool.events) == list(range(400))
        assert pool.verify_accounting()["valid"]
