"""
transfers.py - Moves between accounts and the pool wallet.

A pull moves value from an account into the pool wallet and needs the
account's prior approval of the pool wallet on the asset ledger. A push moves
value out of the pool wallet and needs nothing but the pool's balance.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import List

from .config import PoolConfig
from .core import (
    AccountId, Move, OriginType, PendingTransaction, TransactionOrigin, Unit,
    build_transaction,
)
from .store import PoolEvent


def pull(config: PoolConfig, unit: Unit, account: AccountId, quantity: Decimal, contract_id: str) -> Move:
    return Move(
        quantity=quantity,
        unit_symbol=unit.symbol,
        source=account,
        dest=config.pool_wallet,
        contract_id=contract_id,
        spender=config.pool_wallet,
    )


def push(config: PoolConfig, unit: Unit, account: AccountId, quantity: Decimal, contract_id: str) -> Move:
    return Move(
        quantity=quantity,
        unit_symbol=unit.symbol,
        source=config.pool_wallet,
        dest=account,
        contract_id=contract_id,
    )


def pool_transaction(
    config: PoolConfig,
    moves: List[Move],
    event: PoolEvent,
    timestamp: datetime,
) -> PendingTransaction:
    """Wrap an operation's moves with an origin naming the pool operation."""
    origin = TransactionOrigin(
        origin_type=OriginType.POOL,
        source_id=config.pool_wallet,
        event_type=event.kind.name,
        account=event.account,
    )
    return build_transaction(moves, timestamp, origin)
