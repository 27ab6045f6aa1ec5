"""
supply.py - Lender deposits and withdrawals of the base asset.

Pure functions: each takes the current lender record and pool total
explicitly and returns a PoolUpdate. Nothing here touches the store or the
asset ledger.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from .config import PoolConfig
from .core import AccountId, InsufficientBalance, InsufficientLiquidity, Unit, to_amount
from .store import EventKind, LenderRecord, PoolEvent, PoolUpdate
from .transfers import pool_transaction, pull, push


def compute_deposit(
    config: PoolConfig,
    base_unit: Unit,
    lender: LenderRecord,
    total_supplied: Decimal,
    account: AccountId,
    amount: Any,
    now: datetime,
) -> PoolUpdate:
    """
    Supply base asset to the pool.

    Credits the lender, restamps deposit_timestamp and grows pool liquidity.
    The amount is pulled from the account, so the account must have approved
    the pool wallet for at least this much.

    Raises:
        InvalidAmount: amount is not a positive amount of the base asset
    """
    amount = to_amount(amount, base_unit)

    new_lender = replace(
        lender,
        amount_supplied=lender.amount_supplied + amount,
        deposit_timestamp=now,
    )
    event = PoolEvent(EventKind.DEPOSIT, account, {"amount": amount}, now)
    moves = [pull(config, base_unit, account, amount, "deposit")]
    return PoolUpdate(
        transaction=pool_transaction(config, moves, event, now),
        event=event,
        lenders=((account, new_lender),),
        total_supplied=total_supplied + amount,
    )


def compute_withdraw(
    config: PoolConfig,
    base_unit: Unit,
    lender: LenderRecord,
    total_supplied: Decimal,
    account: AccountId,
    amount: Any,
    now: datetime,
) -> PoolUpdate:
    """
    Return supplied base asset to the lender.

    Raises:
        InvalidAmount: amount is not a positive amount of the base asset
        InsufficientBalance: amount exceeds the lender's supplied balance
        InsufficientLiquidity: the amount is currently lent out
    """
    amount = to_amount(amount, base_unit)

    if amount > lender.amount_supplied:
        raise InsufficientBalance(
            f"{account} has {lender.amount_supplied} {base_unit.symbol} supplied, cannot withdraw {amount}"
        )
    if amount > total_supplied:
        raise InsufficientLiquidity(
            f"pool has {total_supplied} {base_unit.symbol} available, cannot withdraw {amount}"
        )

    new_lender = replace(lender, amount_supplied=lender.amount_supplied - amount)
    event = PoolEvent(EventKind.WITHDRAW, account, {"amount": amount}, now)
    moves = [push(config, base_unit, account, amount, "withdraw")]
    return PoolUpdate(
        transaction=pool_transaction(config, moves, event, now),
        event=event,
        lenders=((account, new_lender),),
        total_supplied=total_supplied - amount,
    )
