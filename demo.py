#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Lending Pool Step by Step

A walk through one pool's life. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup        - The asset ledger, the pool, approvals
  4-6:  Credit       - Collateral, borrowing limits, quarterly interest
  7-8:  Risk         - Liquidation rules and a third-party close-out
  9:    Audit        - Event log, transaction log, accounting check

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import sys

from lendpool import (
    Ledger, LendingPool, PoolConfig, token,
    LendingError, CollateralLimitExceeded,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    lender_usdc: Decimal = Decimal("5000.00")
    borrower_usdc: Decimal = Decimal("500.00")
    borrower_weth: Decimal = Decimal("2000.00")
    liquidator_usdc: Decimal = Decimal("5000.00")

    collateral_ratio: int = 8000
    supplied: Decimal = Decimal("1000.00")
    collateral: Decimal = Decimal("1000.00")
    borrowed: Decimal = Decimal("800.00")


CONFIG = DemoConfig()
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_balances(ledger: Ledger, wallets):
    for wallet in wallets:
        balances = ledger.get_wallet_balances(wallet)
        shown = ", ".join(f"{u}={balances[u]}" for u in sorted(balances)) or "empty"
        print(f"  {wallet:<14} {shown}")


# ============================================================================
# SETUP (Steps 1-3)
# ============================================================================

def step_01_asset_ledger() -> Ledger:
    step_header(1, "The Asset Ledger",
        "Every unit of value the pool touches lives in a double-entry ledger.")

    print("""
    The pool never keeps balances of its own. USDC (lent out) and WETH
    (locked as collateral) are units in a ledger, and every transfer is a
    Move between wallets applied all-or-nothing.
    """)
    wait_for_enter()

    ledger = Ledger("tutorial", CONFIG.start_time, verbose=False, test_mode=True)
    ledger.register_unit(token("USDC", "USD Coin", decimal_places=2))
    ledger.register_unit(token("WETH", "Wrapped Ether", decimal_places=2))
    for wallet in ("alice", "bob", "liq", "treasury"):
        ledger.register_wallet(wallet)

    ledger.set_balance("alice", "USDC", CONFIG.lender_usdc)
    ledger.set_balance("bob", "USDC", CONFIG.borrower_usdc)
    ledger.set_balance("bob", "WETH", CONFIG.borrower_weth)
    ledger.set_balance("liq", "USDC", CONFIG.liquidator_usdc)

    section_header("Starting Balances")
    show_balances(ledger, ("alice", "bob", "liq"))
    return ledger


def step_02_create_pool(ledger: Ledger) -> LendingPool:
    step_header(2, "Creating the Pool",
        "A pool is a configuration plus a dedicated wallet on the ledger.")

    config = PoolConfig(
        owner="treasury",
        base_asset="USDC",
        collateral_asset="WETH",
        collateral_ratio=CONFIG.collateral_ratio,
        fee_recipient="treasury",
    )
    print(f">>> pool = LendingPool(ledger, {config!r})")
    pool = LendingPool(ledger, config, verbose=True)

    section_header("Key Insight")
    print(f"""
    The pool registered its own wallet '{pool.wallet}'. Collateral ratio
    {config.collateral_ratio} bp means 1000 WETH backs at most
    {config.collateral_ratio / 100:.0f}% of its value in USDC.
    """)
    wait_for_enter()
    return pool


def step_03_approve_and_supply(pool: LendingPool):
    step_header(3, "Approvals and Supply",
        "The pool can only pull what an account approved.")

    section_header("Deposit Without Approval")
    try:
        pool.deposit("alice", CONFIG.supplied)
    except LendingError as e:
        print(f"  Rejected: {e}")

    section_header("Approve, Then Deposit")
    pool.ledger.approve("alice", pool.wallet, "USDC", CONFIG.supplied)
    pool.deposit("alice", CONFIG.supplied)
    print(f"  total_supplied = {pool.total_supplied}")
    wait_for_enter()


# ============================================================================
# CREDIT (Steps 4-6)
# ============================================================================

def step_04_collateral(pool: LendingPool):
    step_header(4, "Locking Collateral",
        "Collateral sets the borrowing capacity.")

    pool.ledger.approve("bob", pool.wallet, "WETH", CONFIG.collateral)
    pool.deposit_collateral("bob", CONFIG.collateral)
    print(f"  bob can borrow up to {pool.get_max_borrowable('bob')} USDC")
    wait_for_enter()


def step_05_borrow(pool: LendingPool):
    step_header(5, "Borrowing",
        "Draws are capped by collateral and by pool liquidity.")

    pool.borrow("bob", CONFIG.borrowed)
    try:
        pool.borrow("bob", Decimal("0.01"))
    except CollateralLimitExceeded as e:
        print(f"  One cent more is refused: {e}")
    print(f"  collateral ratio: {pool.get_collateral_ratio('bob')} bp")
    print(f"  liquidity left:   {pool.total_supplied}")
    wait_for_enter()


def step_06_quarterly_interest(pool: LendingPool):
    step_header(6, "Quarterly Interest",
        "Interest is a flat rate for the loan's current quarter, not compounded.")

    for days in (30, 95, 200, 300):
        when = CONFIG.start_time + timedelta(days=days)
        if when > pool.ledger.current_time:
            pool.ledger.advance_time(when)
        quote = pool.quote_repayment("bob", CONFIG.borrowed)
        print(f"  day {days:>3}: Q{quote.bracket.quarter} interest={quote.interest} "
              f"fee={quote.fee} total_due={quote.total_due}")

    section_header("Key Insight")
    print("""
    Bob has repaid nothing and the loan is in its fourth quarter. That
    breaks a repayment milestone, which the next step acts on.
    """)
    wait_for_enter()


# ============================================================================
# RISK (Steps 7-8)
# ============================================================================

def step_07_liquidation_rules(pool: LendingPool):
    step_header(7, "Liquidation Rules",
        "Anyone may close out a position that breaks a rule.")

    reasons = pool.liquidation_reasons("bob")
    print(f"  reasons: {[r.value for r in reasons]}")
    wait_for_enter()


def step_08_liquidate(pool: LendingPool):
    step_header(8, "Third-Party Liquidation",
        "The liquidator repays the principal and takes all the collateral.")

    owed = pool.get_borrower("bob").amount_borrowed
    pool.ledger.approve("liq", pool.wallet, "USDC", owed)
    pool.liquidate("liq", "bob")

    section_header("Balances After")
    show_balances(pool.ledger, ("alice", "bob", "liq", pool.wallet))
    wait_for_enter()


# ============================================================================
# AUDIT (Step 9)
# ============================================================================

def step_09_audit(pool: LendingPool):
    step_header(9, "Audit Trail",
        "Every applied operation is one event and one ledger transaction.")

    for event in pool.events:
        print(f"  {event!r}")
    print(f"\n  ledger transactions: {len(pool.ledger.transaction_log)}")

    report = pool.verify_accounting()
    print(f"  accounting valid:    {report['valid']}")
    print(f"  total_supplied:      {report['total_supplied']}")

    pool.withdraw("alice", CONFIG.supplied)
    print(f"\n  alice withdrew {CONFIG.supplied}; pool keeps "
          f"{pool.ledger.get_balance(pool.wallet, 'USDC')} USDC")


def main():
    print("""
    ======================================================================
                   LENDING POOL TUTORIAL
    ======================================================================
    """)
    ledger = step_01_asset_ledger()
    pool = step_02_create_pool(ledger)
    step_03_approve_and_supply(pool)
    step_04_collateral(pool)
    step_05_borrow(pool)
    step_06_quarterly_interest(pool)
    step_07_liquidation_rules(pool)
    step_08_liquidate(pool)
    step_09_audit(pool)


if __name__ == "__main__":
    main()
