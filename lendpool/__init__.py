"""
lendpool - Collateralized Lending Pool on a Double-Entry Ledger

Lenders supply a base asset to a shared pool, borrowers lock a collateral
asset and draw against it up to a collateral-ratio limit, interest and closure
fees follow a fixed quarterly schedule, and overdue or undercollateralized
positions can be liquidated by anyone.

Usage:
    from datetime import datetime
    from decimal import Decimal
    from lendpool import Ledger, LendingPool, PoolConfig, token

    ledger = Ledger("main", datetime(2025, 1, 1))
    ledger.register_unit(token("USDC", "USD Coin"))
    ledger.register_unit(token("WETH", "Wrapped Ether"))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")

    pool = LendingPool(ledger, PoolConfig(
        owner="treasury",
        base_asset="USDC",
        collateral_asset="WETH",
        collateral_ratio=8000,
        fee_recipient="treasury",
    ))

    # Accounts approve the pool wallet before the pool can pull from them
    ledger.approve("alice", pool.wallet, "USDC", Decimal("1000"))
    pool.deposit("alice", Decimal("1000"))
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Unit,
    ExecuteResult,
    token,
    to_amount,
    # Exceptions
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
    TransferRuleViolation,
    LendingError,
    InvalidAmount,
    InsufficientBalance,
    InsufficientLiquidity,
    CollateralLimitExceeded,
    NoCollateral,
    NoActiveLoan,
    OverRepayment,
    NotLiquidatable,
    TransferFailed,
    Unauthorized,
    PoolPaused,
    ReentrantCall,
    InvalidAccount,
    # Constants
    SYSTEM_WALLET,
    POOL_WALLET,
    UNIT_TYPE_TOKEN,
    BPS_DENOMINATOR,
)

# Asset ledger
from .ledger import Ledger

# Configuration
from .config import (
    PoolConfig,
    MIN_COLLATERAL_RATIO_BPS,
    MAX_COLLATERAL_RATIO_BPS,
)

# Records and events
from .store import (
    LenderRecord,
    BorrowerRecord,
    LedgerStore,
    PoolEvent,
    PoolUpdate,
    EventKind,
)

# Rate schedule
from .rates import (
    RateBracket,
    QUARTERLY_SCHEDULE,
    QUARTER,
    LOAN_TERM,
    loan_age,
    rate_bracket_for,
    apply_bps,
    calculate_interest,
)

# Engines
from .supply import compute_deposit, compute_withdraw
from .collateral import compute_deposit_collateral, compute_withdraw_collateral
from .credit import (
    LoanStatus,
    RepaymentQuote,
    COLLATERAL_RATIO_INFINITE,
    calculate_max_borrowable,
    calculate_total_debt,
    calculate_collateral_ratio,
    loan_status,
    current_bracket,
    quote_repayment,
    compute_borrow,
    compute_repay,
)
from .liquidation import (
    LiquidationReason,
    liquidation_reasons,
    is_liquidatable,
    compute_liquidation,
)

# Facade
from .pool import LendingPool


__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'build_transaction',
    'Unit', 'ExecuteResult', 'token', 'to_amount',
    # Exceptions
    'LedgerError', 'UnitNotRegistered', 'WalletNotRegistered', 'TransferRuleViolation',
    'LendingError', 'InvalidAmount', 'InsufficientBalance', 'InsufficientLiquidity',
    'CollateralLimitExceeded', 'NoCollateral', 'NoActiveLoan', 'OverRepayment',
    'NotLiquidatable', 'TransferFailed', 'Unauthorized', 'PoolPaused',
    'ReentrantCall', 'InvalidAccount',
    # Constants
    'SYSTEM_WALLET', 'POOL_WALLET', 'UNIT_TYPE_TOKEN', 'BPS_DENOMINATOR',
    'MIN_COLLATERAL_RATIO_BPS', 'MAX_COLLATERAL_RATIO_BPS',
    # Ledger and config
    'Ledger', 'PoolConfig',
    # Records
    'LenderRecord', 'BorrowerRecord', 'LedgerStore', 'PoolEvent', 'PoolUpdate', 'EventKind',
    # Rates
    'RateBracket', 'QUARTERLY_SCHEDULE', 'QUARTER', 'LOAN_TERM',
    'loan_age', 'rate_bracket_for', 'apply_bps', 'calculate_interest',
    # Engines
    'compute_deposit', 'compute_withdraw',
    'compute_deposit_collateral', 'compute_withdraw_collateral',
    'LoanStatus', 'RepaymentQuote', 'COLLATERAL_RATIO_INFINITE',
    'calculate_max_borrowable', 'calculate_total_debt', 'calculate_collateral_ratio',
    'loan_status', 'current_bracket', 'quote_repayment', 'compute_borrow', 'compute_repay',
    'LiquidationReason', 'liquidation_reasons', 'is_liquidatable', 'compute_liquidation',
    # Facade
    'LendingPool',
]
