"""
credit.py - Borrowing, repayment and debt accounting.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES: BorrowerRecord (from store) and RepaymentQuote
2. PURE CALCULATION FUNCTIONS (calculate_*): explicit inputs, no store access
3. TRANSITION FUNCTIONS (compute_*): validate, then return a PoolUpdate

Per-borrower state machine:

    NO_LOAN --borrow--> ACTIVE --repay (full)--> NO_LOAN
                          |--repay (partial)--> ACTIVE
                          `--liquidate--> NO_LOAN

Key Formulas:
    max_borrowable   = collateral_deposited * collateral_ratio / 10000
    interest         = amount_borrowed * quarter_interest_bps / 10000
    closure fee      = interest * quarter_fee_bps / 10000
    collateral_ratio = collateral_deposited * 10000 / amount_borrowed

Interest is charged on the whole outstanding principal at every repayment,
and the fee is taken only when a repayment closes the loan.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN
from enum import Enum
from typing import Any, List, Optional

from .config import PoolConfig
from .core import (
    AccountId, BPS_DENOMINATOR, ZERO, Unit,
    InsufficientLiquidity, CollateralLimitExceeded, NoCollateral,
    NoActiveLoan, OverRepayment,
    to_amount,
)
from .rates import RateBracket, apply_bps, calculate_interest, loan_age, rate_bracket_for
from .store import BorrowerRecord, EventKind, PoolEvent, PoolUpdate
from .transfers import pool_transaction, pull, push


# Reported collateral ratio when nothing is borrowed.
COLLATERAL_RATIO_INFINITE = Decimal("Infinity")


class LoanStatus(Enum):
    NO_LOAN = "no_loan"
    ACTIVE = "active"


@dataclass(frozen=True, slots=True)
class RepaymentQuote:
    """
    What a repayment of `principal` costs right now.

    total_due is the amount pulled from the borrower; fee is the part of the
    interest forwarded to the fee recipient (zero unless the loan closes).
    """
    principal: Decimal
    interest: Decimal
    fee: Decimal
    total_due: Decimal
    closes_loan: bool
    bracket: RateBracket


# ============================================================================
# PURE CALCULATIONS
# ============================================================================

def calculate_max_borrowable(collateral_deposited: Decimal, collateral_ratio: int, base_unit: Unit) -> Decimal:
    """Borrowing capacity of a collateral amount, in base-asset units (collateral valued 1:1)."""
    return apply_bps(collateral_deposited, collateral_ratio, base_unit)


def calculate_total_debt(borrower: BorrowerRecord, now: datetime, base_unit: Unit) -> Decimal:
    """Outstanding principal plus interest for the current quarter; 0 with no active loan."""
    if not borrower.has_active_loan:
        return ZERO
    interest = calculate_interest(borrower.amount_borrowed, borrower.borrow_timestamp, now, base_unit)
    return borrower.amount_borrowed + interest


def calculate_collateral_ratio(borrower: BorrowerRecord) -> Decimal:
    """
    Collateral over outstanding principal, in whole basis points (rounded down).

    Returns COLLATERAL_RATIO_INFINITE when there is no active loan.
    """
    if not borrower.has_active_loan:
        return COLLATERAL_RATIO_INFINITE
    ratio = borrower.collateral_deposited * BPS_DENOMINATOR / borrower.amount_borrowed
    return ratio.to_integral_value(rounding=ROUND_DOWN)


def loan_status(borrower: BorrowerRecord) -> LoanStatus:
    return LoanStatus.ACTIVE if borrower.has_active_loan else LoanStatus.NO_LOAN


def current_bracket(borrower: BorrowerRecord, now: datetime) -> Optional[RateBracket]:
    """Rate bracket of the active loan, or None when there is none."""
    if not borrower.has_active_loan:
        return None
    age = loan_age(borrower.borrow_timestamp, now)
    if age is None:
        return None
    return rate_bracket_for(age)


def quote_repayment(
    borrower: BorrowerRecord,
    principal: Decimal,
    now: datetime,
    base_unit: Unit,
) -> RepaymentQuote:
    """
    Price a repayment of `principal` without validating it.

    Interest is taken on the full outstanding principal, not on the part
    being repaid.
    """
    age = loan_age(borrower.borrow_timestamp, now)
    bracket = rate_bracket_for(age if age is not None else timedelta(0))
    interest = calculate_interest(borrower.amount_borrowed, borrower.borrow_timestamp, now, base_unit)
    closes_loan = principal == borrower.amount_borrowed
    fee = apply_bps(interest, bracket.fee_bps, base_unit) if closes_loan else ZERO
    return RepaymentQuote(
        principal=principal,
        interest=interest,
        fee=fee,
        total_due=principal + interest,
        closes_loan=closes_loan,
        bracket=bracket,
    )


# ============================================================================
# TRANSITIONS
# ============================================================================

def compute_borrow(
    config: PoolConfig,
    base_unit: Unit,
    borrower: BorrowerRecord,
    total_supplied: Decimal,
    account: AccountId,
    amount: Any,
    now: datetime,
) -> PoolUpdate:
    """
    Draw base asset against deposited collateral.

    Args:
        config: Pool configuration (collateral ratio, pool wallet)
        base_unit: Lendable asset
        borrower: Current record of the borrowing account
        total_supplied: Liquidity currently available in the pool
        account: Borrowing account
        amount: Principal to draw
        now: Clock reading for this operation

    Returns:
        PoolUpdate pushing `amount` to the account, growing amount_borrowed
        and initial_borrow_amount, restamping borrow_timestamp and
        last_iteration, and shrinking pool liquidity.

    Raises:
        InvalidAmount: amount is not a positive amount of the base asset
        NoCollateral: the account has no collateral deposited
        CollateralLimitExceeded: amount_borrowed + amount > max borrowable
        InsufficientLiquidity: amount > total_supplied
    """
    amount = to_amount(amount, base_unit)

    if borrower.collateral_deposited <= ZERO:
        raise NoCollateral(f"{account} has no collateral deposited")

    max_borrowable = calculate_max_borrowable(
        borrower.collateral_deposited, config.collateral_ratio, base_unit
    )
    if borrower.amount_borrowed + amount > max_borrowable:
        raise CollateralLimitExceeded(
            f"{account} would owe {borrower.amount_borrowed + amount} {base_unit.symbol}, "
            f"limit is {max_borrowable}"
        )
    if amount > total_supplied:
        raise InsufficientLiquidity(
            f"pool has {total_supplied} {base_unit.symbol} available, cannot lend {amount}"
        )

    new_borrower = replace(
        borrower,
        amount_borrowed=borrower.amount_borrowed + amount,
        initial_borrow_amount=borrower.initial_borrow_amount + amount,
        borrow_timestamp=now,
        last_iteration=now,
    )
    event = PoolEvent(EventKind.BORROW, account, {"amount": amount}, now)
    moves = [push(config, base_unit, account, amount, "borrow")]
    return PoolUpdate(
        transaction=pool_transaction(config, moves, event, now),
        event=event,
        borrowers=((account, new_borrower),),
        total_supplied=total_supplied - amount,
    )


def compute_repay(
    config: PoolConfig,
    base_unit: Unit,
    borrower: BorrowerRecord,
    total_supplied: Decimal,
    account: AccountId,
    principal_amount: Any,
    now: datetime,
) -> PoolUpdate:
    """
    Repay principal plus the current quarter's interest.

    The borrower pays principal_amount + interest, where interest is charged
    on the whole outstanding principal. The principal returns to pool
    liquidity; the interest stays in the pool wallet. When the repayment
    closes the loan, borrow_timestamp is cleared and the quarter's fee rate
    applied to the interest is forwarded to the fee recipient.

    Raises:
        InvalidAmount: principal_amount is not a positive amount of the base asset
        NoActiveLoan: nothing is borrowed
        OverRepayment: principal_amount > amount_borrowed
    """
    principal_amount = to_amount(principal_amount, base_unit)

    if not borrower.has_active_loan:
        raise NoActiveLoan(f"{account} has no active loan")
    if principal_amount > borrower.amount_borrowed:
        raise OverRepayment(
            f"{account} owes {borrower.amount_borrowed} {base_unit.symbol} principal, "
            f"cannot repay {principal_amount}"
        )

    quote = quote_repayment(borrower, principal_amount, now, base_unit)
    remaining = borrower.amount_borrowed - principal_amount

    new_borrower = replace(
        borrower,
        amount_borrowed=remaining,
        amount_repaid=borrower.amount_repaid + principal_amount,
        last_iteration=now,
    )
    if quote.closes_loan:
        new_borrower = replace(new_borrower, borrow_timestamp=None)

    moves: List = [pull(config, base_unit, account, quote.total_due, "repay")]
    if quote.fee > ZERO:
        moves.append(push(config, base_unit, config.fee_recipient, quote.fee, "repay_fee"))

    event = PoolEvent(
        EventKind.REPAY,
        account,
        {
            "principal": principal_amount,
            "interest": quote.interest,
            "fee": quote.fee,
            "total": quote.total_due,
        },
        now,
        details={"quarter": str(quote.bracket.quarter), "closed": str(quote.closes_loan)},
    )
    return PoolUpdate(
        transaction=pool_transaction(config, moves, event, now),
        event=event,
        borrowers=((account, new_borrower),),
        total_supplied=total_supplied + principal_amount,
    )
