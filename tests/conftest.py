"""
conftest.py - Shared pytest fixtures for lending pool tests

Provides common fixtures used across unit, conformance and functional tests:
- An asset ledger with a base asset (USDC) and a collateral asset (WETH)
- A pool at an 80% collateral ratio
- A pool with lender liquidity and a collateralized borrower
- Helpers to approve, fund and move the clock
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from lendpool import Ledger, LendingPool, PoolConfig, token


T0 = datetime(2025, 1, 1)

BASE = "USDC"
COLLATERAL = "WETH"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def make_ledger(decimal_places: int = 0, **token_kwargs) -> Ledger:
    """Ledger with USDC/WETH and funded wallets for alice, bob, carol and liq."""
    ledger = Ledger("test", T0, verbose=False, test_mode=True)
    ledger.register_unit(token(BASE, "USD Coin", decimal_places=decimal_places, **token_kwargs))
    ledger.register_unit(token(COLLATERAL, "Wrapped Ether", decimal_places=decimal_places))
    for wallet in ("alice", "bob", "carol", "liq", "treasury"):
        ledger.register_wallet(wallet)

    ledger.set_balance("alice", BASE, Decimal("100000"))
    ledger.set_balance("bob", BASE, Decimal("10000"))
    ledger.set_balance("bob", COLLATERAL, Decimal("10000"))
    ledger.set_balance("carol", BASE, Decimal("10000"))
    ledger.set_balance("carol", COLLATERAL, Decimal("10000"))
    ledger.set_balance("liq", BASE, Decimal("100000"))
    return ledger


def make_pool(ledger: Ledger, collateral_ratio: int = 8000, **config_kwargs) -> LendingPool:
    config = PoolConfig(
        owner="treasury",
        base_asset=BASE,
        collateral_asset=COLLATERAL,
        collateral_ratio=collateral_ratio,
        fee_recipient="treasury",
        **config_kwargs,
    )
    return LendingPool(ledger, config)


def approve(pool: LendingPool, account: str, unit: str, amount) -> None:
    """Let the pool pull up to amount of unit from account."""
    pool.ledger.approve(account, pool.wallet, unit, Decimal(str(amount)))


def supply(pool: LendingPool, account: str, amount) -> None:
    approve(pool, account, BASE, amount)
    pool.deposit(account, amount)


def lock_collateral(pool: LendingPool, account: str, amount) -> None:
    approve(pool, account, COLLATERAL, amount)
    pool.deposit_collateral(account, amount)


def at_day(ledger: Ledger, days: float) -> datetime:
    """Move the ledger clock to T0 + days and return the new time."""
    when = T0 + timedelta(days=days)
    ledger.advance_time(when)
    return when


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def ledger():
    """Fresh asset ledger with whole-unit USDC/WETH and funded wallets."""
    return make_ledger()


@pytest.fixture
def pool(ledger):
    """Empty pool at an 80% collateral ratio."""
    return make_pool(ledger)


@pytest.fixture
def funded_pool(pool):
    """Pool with 1000 USDC supplied by alice."""
    supply(pool, "alice", 1000)
    return pool


@pytest.fixture
def borrower_pool(funded_pool):
    """Funded pool where bob has 1000 WETH locked and nothing borrowed."""
    lock_collateral(funded_pool, "bob", 1000)
    return funded_pool


@pytest.fixture
def active_loan_pool(borrower_pool):
    """bob borrowed 800 USDC at T0 against 1000 WETH."""
    borrower_pool.borrow("bob", 800)
    return borrower_pool
