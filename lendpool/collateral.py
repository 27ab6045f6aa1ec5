"""
collateral.py - Collateral bookkeeping for borrowers.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from typing import Any

from .config import PoolConfig
from .core import AccountId, CollateralLimitExceeded, InsufficientBalance, Unit, to_amount
from .credit import calculate_max_borrowable
from .store import BorrowerRecord, EventKind, PoolEvent, PoolUpdate
from .transfers import pool_transaction, pull, push


def compute_deposit_collateral(
    config: PoolConfig,
    collateral_unit: Unit,
    borrower: BorrowerRecord,
    account: AccountId,
    amount: Any,
    now: datetime,
) -> PoolUpdate:
    """
    Lock collateral for an account.

    borrow_timestamp is stamped here even though no loan exists yet; the next
    borrow overwrites it.
    """
    amount = to_amount(amount, collateral_unit)

    new_borrower = replace(
        borrower,
        collateral_deposited=borrower.collateral_deposited + amount,
        borrow_timestamp=now,
    )
    event = PoolEvent(EventKind.COLLATERAL_DEPOSIT, account, {"amount": amount}, now)
    moves = [pull(config, collateral_unit, account, amount, "collateral_deposit")]
    return PoolUpdate(
        transaction=pool_transaction(config, moves, event, now),
        event=event,
        borrowers=((account, new_borrower),),
    )


def compute_withdraw_collateral(
    config: PoolConfig,
    base_unit: Unit,
    collateral_unit: Unit,
    borrower: BorrowerRecord,
    account: AccountId,
    amount: Any,
    now: datetime,
) -> PoolUpdate:
    """
    Release collateral that is not backing outstanding principal.

    Raises:
        InvalidAmount: amount is not a positive amount of the collateral asset
        InsufficientBalance: amount exceeds the deposited collateral
        CollateralLimitExceeded: the remaining collateral would no longer
            cover amount_borrowed at the pool's collateral ratio
    """
    amount = to_amount(amount, collateral_unit)

    if amount > borrower.collateral_deposited:
        raise InsufficientBalance(
            f"{account} has {borrower.collateral_deposited} {collateral_unit.symbol} deposited, "
            f"cannot withdraw {amount}"
        )
    remaining = borrower.collateral_deposited - amount
    capacity = calculate_max_borrowable(remaining, config.collateral_ratio, base_unit)
    if borrower.amount_borrowed > capacity:
        raise CollateralLimitExceeded(
            f"withdrawing {amount} leaves capacity {capacity} below outstanding {borrower.amount_borrowed}"
        )

    new_borrower = replace(borrower, collateral_deposited=remaining)
    event = PoolEvent(EventKind.COLLATERAL_WITHDRAW, account, {"amount": amount}, now)
    moves = [push(config, collateral_unit, account, amount, "collateral_withdraw")]
    return PoolUpdate(
        transaction=pool_transaction(config, moves, event, now),
        event=event,
        borrowers=((account, new_borrower),),
    )
