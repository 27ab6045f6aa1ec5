"""
liquidation.py - Liquidation eligibility and execution.

A position with an active loan can be closed out by any account when at
least one rule fires:

    MATURITY_EXCEEDED       loan age > 365 days
    UNDERCOLLATERALIZED     collateral ratio < pool collateral_ratio
    REPAYMENT_SHORTFALL_Q3  180 < age <= 270 days and repaid < 25% of initial borrow
    REPAYMENT_SHORTFALL_Q4  270 < age <= 365 days and repaid < 50% of initial borrow

Liquidation is always total: the liquidator pays the outstanding principal
into the pool and receives every unit of the borrower's collateral.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import List, Tuple

from .config import PoolConfig
from .core import AccountId, BPS_DENOMINATOR, NoActiveLoan, NotLiquidatable, Unit, ZERO
from .credit import calculate_collateral_ratio
from .rates import LOAN_TERM, QUARTER, loan_age
from .store import BorrowerRecord, EventKind, PoolEvent, PoolUpdate
from .transfers import pool_transaction, pull, push


# Minimum share of initial_borrow_amount repaid, in basis points
Q3_MIN_REPAID_BPS = 2500
Q4_MIN_REPAID_BPS = 5000


class LiquidationReason(Enum):
    MATURITY_EXCEEDED = "maturity_exceeded"
    UNDERCOLLATERALIZED = "undercollateralized"
    REPAYMENT_SHORTFALL_Q3 = "repayment_shortfall_q3"
    REPAYMENT_SHORTFALL_Q4 = "repayment_shortfall_q4"


def _repaid_below(borrower: BorrowerRecord, min_bps: int) -> bool:
    return borrower.amount_repaid * BPS_DENOMINATOR < borrower.initial_borrow_amount * Decimal(min_bps)


def liquidation_reasons(
    borrower: BorrowerRecord,
    collateral_ratio: int,
    now: datetime,
) -> Tuple[LiquidationReason, ...]:
    """
    Every liquidation rule the position currently breaks.

    Empty when there is no active loan.
    """
    if not borrower.has_active_loan:
        return ()

    reasons: List[LiquidationReason] = []
    age = loan_age(borrower.borrow_timestamp, now)
    if age is None:
        age = timedelta(0)

    if age > LOAN_TERM:
        reasons.append(LiquidationReason.MATURITY_EXCEEDED)
    if calculate_collateral_ratio(borrower) < Decimal(collateral_ratio):
        reasons.append(LiquidationReason.UNDERCOLLATERALIZED)
    if 2 * QUARTER < age <= 3 * QUARTER and _repaid_below(borrower, Q3_MIN_REPAID_BPS):
        reasons.append(LiquidationReason.REPAYMENT_SHORTFALL_Q3)
    if 3 * QUARTER < age <= LOAN_TERM and _repaid_below(borrower, Q4_MIN_REPAID_BPS):
        reasons.append(LiquidationReason.REPAYMENT_SHORTFALL_Q4)
    return tuple(reasons)


def is_liquidatable(borrower: BorrowerRecord, collateral_ratio: int, now: datetime) -> bool:
    return bool(liquidation_reasons(borrower, collateral_ratio, now))


def compute_liquidation(
    config: PoolConfig,
    base_unit: Unit,
    collateral_unit: Unit,
    borrower_record: BorrowerRecord,
    total_supplied: Decimal,
    liquidator: AccountId,
    borrower: AccountId,
    now: datetime,
) -> PoolUpdate:
    """
    Close out a position in full.

    The debt taken from the liquidator is the outstanding principal; accrued
    interest is not collected. Pool liquidity grows by that debt. Lifetime
    totals (initial_borrow_amount, amount_repaid) are left as they were.

    Raises:
        NoActiveLoan: the borrower owes nothing
        NotLiquidatable: no liquidation rule fires
    """
    if not borrower_record.has_active_loan:
        raise NoActiveLoan(f"{borrower} has no active loan")
    reasons = liquidation_reasons(borrower_record, config.collateral_ratio, now)
    if not reasons:
        raise NotLiquidatable(f"{borrower} is not liquidatable")

    debt = borrower_record.amount_borrowed
    collateral = borrower_record.collateral_deposited

    new_record = replace(
        borrower_record,
        amount_borrowed=ZERO,
        collateral_deposited=ZERO,
        borrow_timestamp=None,
        last_iteration=now,
    )

    moves = [pull(config, base_unit, liquidator, debt, "liquidate")]
    if collateral > ZERO:
        moves.append(push(config, collateral_unit, liquidator, collateral, "liquidate_collateral"))

    event = PoolEvent(
        EventKind.LIQUIDATE,
        borrower,
        {"debt": debt, "collateral": collateral},
        now,
        details={
            "liquidator": liquidator,
            "reasons": ",".join(r.value for r in reasons),
        },
    )
    return PoolUpdate(
        transaction=pool_transaction(config, moves, event, now),
        event=event,
        borrowers=((borrower, new_record),),
        total_supplied=total_supplied + debt,
    )
