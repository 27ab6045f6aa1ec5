"""
config.py - Immutable pool configuration.

PoolConfig is fixed at construction. The only way to change the owner or the
fee recipient afterwards is through the LendingPool admin transitions, which
swap in a new PoolConfig built with dataclasses.replace().
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import POOL_WALLET, SYSTEM_WALLET


# Collateral ratio bounds (basis points)
MIN_COLLATERAL_RATIO_BPS = 5000
MAX_COLLATERAL_RATIO_BPS = 9500
MAX_FEE_BPS = 10000


@dataclass(frozen=True, slots=True)
class PoolConfig:
    """
    Construction-time parameters of a lending pool.

    Attributes:
        owner: Privileged identity allowed to run admin transitions.
        base_asset: Symbol of the lendable asset.
        collateral_asset: Symbol of the asset borrowers lock.
        collateral_ratio: Borrow limit in basis points of collateral, in [5000, 9500].
        fee_recipient: Identity receiving the closure fee.
        protocol_fee_bps: Recorded protocol fee rate in basis points, in [0, 10000].
            Closure fees follow the quarterly schedule; this value is kept for
            reporting.
        pool_wallet: Ledger wallet holding pooled liquidity and collateral.
    """
    owner: str
    base_asset: str
    collateral_asset: str
    collateral_ratio: int
    fee_recipient: str
    protocol_fee_bps: int = 0
    pool_wallet: str = POOL_WALLET

    def __post_init__(self):
        if not self.owner or not self.owner.strip():
            raise ValueError("owner cannot be empty")
        if not self.fee_recipient or not self.fee_recipient.strip():
            raise ValueError("fee_recipient cannot be empty")
        if not self.base_asset or not self.base_asset.strip():
            raise ValueError("base_asset cannot be empty")
        if not self.collateral_asset or not self.collateral_asset.strip():
            raise ValueError("collateral_asset cannot be empty")
        if self.base_asset == self.collateral_asset:
            raise ValueError("base_asset and collateral_asset must be different")
        if not self.pool_wallet or not self.pool_wallet.strip():
            raise ValueError("pool_wallet cannot be empty")
        if self.pool_wallet in (self.owner, self.fee_recipient, SYSTEM_WALLET):
            raise ValueError(f"pool_wallet '{self.pool_wallet}' must be a dedicated wallet")
        if isinstance(self.collateral_ratio, bool) or not isinstance(self.collateral_ratio, int):
            raise ValueError(f"collateral_ratio must be an integer, got {self.collateral_ratio!r}")
        if not MIN_COLLATERAL_RATIO_BPS <= self.collateral_ratio <= MAX_COLLATERAL_RATIO_BPS:
            raise ValueError(
                f"collateral_ratio must be between {MIN_COLLATERAL_RATIO_BPS} and "
                f"{MAX_COLLATERAL_RATIO_BPS} bps, got {self.collateral_ratio}"
            )
        if isinstance(self.protocol_fee_bps, bool) or not isinstance(self.protocol_fee_bps, int):
            raise ValueError(f"protocol_fee_bps must be an integer, got {self.protocol_fee_bps!r}")
        if not 0 <= self.protocol_fee_bps <= MAX_FEE_BPS:
            raise ValueError(
                f"protocol_fee_bps must be between 0 and {MAX_FEE_BPS}, got {self.protocol_fee_bps}"
            )
