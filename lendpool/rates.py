"""
rates.py - Quarterly interest and fee schedule.

Loan age is bucketed into four fixed quarters. Each quarter carries a simple
(non-compounding) interest rate and a closure fee rate, both in basis points,
applied to the principal outstanding at the time of the calculation.

    Q1  age <= 90 days    450 bp interest  100 bp fee
    Q2  age <= 180 days   800 bp interest  150 bp fee
    Q3  age <= 270 days  1050 bp interest  200 bp fee
    Q4  anything older   1300 bp interest  250 bp fee

Loans older than a year stay in Q4 for pricing; overdue handling lives in the
liquidation rules.

All functions here are pure.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from .core import BPS_DENOMINATOR, Unit


QUARTER = timedelta(days=90)
LOAN_TERM = timedelta(days=365)


@dataclass(frozen=True, slots=True)
class RateBracket:
    """One row of the quarterly schedule. max_age of None means unbounded."""
    quarter: int
    max_age: Optional[timedelta]
    interest_bps: int
    fee_bps: int

    def contains(self, age: timedelta) -> bool:
        return self.max_age is None or age <= self.max_age


QUARTERLY_SCHEDULE: Tuple[RateBracket, ...] = (
    RateBracket(quarter=1, max_age=QUARTER, interest_bps=450, fee_bps=100),
    RateBracket(quarter=2, max_age=2 * QUARTER, interest_bps=800, fee_bps=150),
    RateBracket(quarter=3, max_age=3 * QUARTER, interest_bps=1050, fee_bps=200),
    RateBracket(quarter=4, max_age=None, interest_bps=1300, fee_bps=250),
)


def loan_age(borrow_timestamp: Optional[datetime], now: datetime) -> Optional[timedelta]:
    """Time since the loan started, or None when there is no start stamp."""
    if borrow_timestamp is None:
        return None
    return now - borrow_timestamp


def rate_bracket_for(
    age: timedelta,
    schedule: Tuple[RateBracket, ...] = QUARTERLY_SCHEDULE,
) -> RateBracket:
    """Return the first bracket whose upper bound (inclusive) covers age."""
    for bracket in schedule:
        if bracket.contains(age):
            return bracket
    return schedule[-1]


def apply_bps(amount: Decimal, bps: int, unit: Unit) -> Decimal:
    """
    amount * bps / 10000, truncated to the unit's precision.

    With a whole-unit asset this matches integer division:
        apply_bps(Decimal("64"), 150, whole_unit_token) == Decimal("0")
    """
    return unit.round_down(amount * Decimal(bps) / BPS_DENOMINATOR)


def calculate_interest(
    principal: Decimal,
    borrow_timestamp: Optional[datetime],
    now: datetime,
    unit: Unit,
) -> Decimal:
    """Interest owed on principal for the loan's current quarter (0 without a loan start)."""
    age = loan_age(borrow_timestamp, now)
    if age is None or principal <= 0:
        return Decimal("0")
    return apply_bps(principal, rate_bracket_for(age).interest_bps, unit)
