"""
Shared hypothesis strategies and drivers for the conformance suite.

An operation is (name, account, amount, approved, days). Before each
operation the clock moves forward `days`; if `approved` is set the paying
account approves the pool for what the operation will pull.
"""

from datetime import timedelta
from decimal import Decimal

from hypothesis import strategies as st

from lendpool import EventKind

from conftest import BASE, COLLATERAL, approve


OPERATIONS = (
    "deposit", "withdraw", "collateral_in", "collateral_out",
    "borrow", "repay", "liquidate",
)
ACCOUNTS = ("alice", "bob", "carol")

operation = st.tuples(
    st.sampled_from(OPERATIONS),
    st.sampled_from(ACCOUNTS),
    st.integers(min_value=0, max_value=1500),
    st.booleans(),
    st.integers(min_value=0, max_value=60),
)
operation_sequences = st.lists(operation, min_size=1, max_size=30)


def prepare(pool, name, account, amount, approved, days):
    """Advance the clock and grant allowances for the operation."""
    if days:
        pool.ledger.advance_time(pool.ledger.current_time + timedelta(days=days))
    if not approved or amount <= 0:
        return
    if name == "deposit":
        approve(pool, account, BASE, amount)
    elif name == "collateral_in":
        approve(pool, account, COLLATERAL, amount)
    elif name == "repay":
        approve(pool, account, BASE, pool.quote_repayment(account, amount).total_due)
    elif name == "liquidate":
        owed = pool.get_borrower(account).amount_borrowed
        approve(pool, "liq", BASE, owed if owed > 0 else amount)


def act(pool, name, account, amount):
    if name == "deposit":
        return pool.deposit(account, amount)
    if name == "withdraw":
        return pool.withdraw(account, amount)
    if name == "collateral_in":
        return pool.deposit_collateral(account, amount)
    if name == "collateral_out":
        return pool.withdraw_collateral(account, amount)
    if name == "borrow":
        return pool.borrow(account, amount)
    if name == "repay":
        return pool.repay(account, amount)
    return pool.liquidate("liq", account)


def snapshot(pool):
    """Everything an operation may change, excluding allowances."""
    ledger = pool.ledger
    balances = {
        (wallet, unit): ledger.get_balance(wallet, unit)
        for wallet in sorted(ledger.list_wallets())
        for unit in (BASE, COLLATERAL)
    }
    return {
        "lenders": dict(pool.store.lenders()),
        "borrowers": dict(pool.store.borrowers()),
        "total_supplied": pool.total_supplied,
        "balances": balances,
        "events": len(pool.events),
        "transactions": len(ledger.transaction_log),
    }


def retained_interest(pool) -> Decimal:
    """Interest kept by the pool according to the event log."""
    retained = Decimal("0")
    for event in pool.events:
        if event.kind == EventKind.REPAY:
            retained += event.amounts["interest"] - event.amounts["fee"]
    return retained
