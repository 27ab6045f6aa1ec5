"""
Core types and pure helpers for the lending pool.

This module provides the foundational data structures shared by the asset
ledger and the lending engines:
1. Protocols: LedgerView for read-only access to asset balances
2. Immutable data structures: Move, PendingTransaction, Transaction, Unit
3. Exceptions: LedgerError for the asset layer, LendingError for the pool
4. Constants: basis points, wallet names, unit types
5. Amount coercion and the token() unit factory

Nothing in this module mutates ledger or pool state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, InvalidOperation, getcontext
from enum import Enum
from typing import (
    Dict, List, Set, Optional, Callable, Any, Protocol,
    Tuple, FrozenSet, runtime_checkable,
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Basis-point products of large balances must not lose digits before they are
# rounded down to the asset's precision.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance and redemption; exempt from balance validation.
SYSTEM_WALLET = "system"

# Default wallet holding pooled liquidity and locked collateral.
POOL_WALLET = "lending_pool"

UNIT_TYPE_TOKEN = "TOKEN"

# 10000 basis points = 100%
BPS_DENOMINATOR = Decimal("10000")

# Quantities with absolute value below this threshold are treated as zero.
QUANTITY_EPSILON = Decimal("1e-12")

ZERO = Decimal("0")


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, Decimal]

# Opaque account identity. The asset ledger keys wallets by string.
AccountId = str


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to asset ledger state.

    Transfer rules and the pool's read paths take a LedgerView to declare that
    they never move value themselves.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """Return the balance of a unit in a wallet (Decimal("0") if none)."""
        ...

    def get_allowance(self, owner: str, spender: str, unit_symbol: str) -> Decimal:
        """Return how much of a unit spender may still pull from owner."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    REJECTED: Transaction failed validation (balance, allowance, transfer rule,
              registration or timestamp checks). Nothing was applied.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Manual transfer between wallets
    POOL = "pool"                         # Lending pool operation
    SYSTEM = "system"                     # Issuance, initial setup


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    pass


class TransferRuleViolation(LedgerError):
    """Raised by a transfer rule when a move is not allowed."""
    pass


class LendingError(LedgerError):
    """Base exception for lending pool operations. Raised before any state changes."""
    pass


class InvalidAmount(LendingError):
    """Amount is zero, negative, non-finite, non-numeric or finer than the asset allows."""
    pass


class InsufficientBalance(LendingError):
    """Withdrawal exceeds the recorded balance."""
    pass


class InsufficientLiquidity(LendingError):
    """The pool does not hold enough unlent base asset."""
    pass


class CollateralLimitExceeded(LendingError):
    """The position would exceed its collateral-backed borrowing capacity."""
    pass


class NoCollateral(CollateralLimitExceeded):
    """Borrow attempted without any collateral deposited."""
    pass


class NoActiveLoan(LendingError):
    """The borrower has no outstanding principal."""
    pass


class OverRepayment(LendingError):
    """Repayment principal exceeds the outstanding principal."""
    pass


class NotLiquidatable(LendingError):
    """The position does not meet any liquidation rule."""
    pass


class TransferFailed(LendingError):
    """The asset ledger rejected the transfer; no state was changed."""
    pass


class Unauthorized(LendingError):
    """Caller is not the pool owner."""
    pass


class PoolPaused(LendingError):
    """Entry operations are disabled while the pool is paused."""
    pass


class ReentrantCall(LendingError):
    """The pool was called back into while one of its operations was in flight."""
    pass


class InvalidAccount(LendingError):
    """Account identity is empty or reserved."""
    pass


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Identifier of the specific source (pool name, user ID, etc.)
        event_type: Operation within the source (e.g., "DEPOSIT", "LIQUIDATE")
        account: Account the operation was performed for, if any
    """
    origin_type: OriginType
    source_id: str
    event_type: Optional[str] = None
    account: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.event_type:
            parts.append(f"event={self.event_type}")
        if self.account:
            parts.append(f"account={self.account}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer (must be finite and positive).
        unit_symbol: The symbol of the unit being transferred (e.g., "USDC").
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.
        spender: Wallet pulling the value on the source's behalf. A move with a
            spender is a pull and consumes the source's allowance for that spender.
    """
    quantity: Decimal
    unit_symbol: str
    source: str
    dest: str
    contract_id: str
    spender: Optional[str] = None

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if self.quantity.is_infinite() or self.quantity.is_nan():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if self.quantity < QUANTITY_EPSILON:
            raise ValueError("Move quantity must be positive")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    @property
    def is_pull(self) -> bool:
        return self.spender is not None and self.spender != self.source

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A set of moves before execution - represents INTENT.

    Built by the lending engines and submitted to Ledger.execute(), which
    applies every move or none of them.

    Attributes:
        moves: Tuple of value transfers between wallets
        origin: Who/what created this transaction and why
        timestamp: When this pending transaction was created
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime

    def is_empty(self) -> bool:
        """Return True if this pending transaction has no moves."""
        return not self.moves

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {self.origin})"


def build_transaction(
    moves: List[Move],
    timestamp: datetime,
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves.

    Args:
        moves: Moves to include in the transaction
        timestamp: Logical time the transaction was built at
        origin: Transaction origin (defaults to a USER_ACTION origin)

    Example:
        tx = build_transaction(
            [Move(Decimal("100"), "USDC", "alice", "bob", "payment_001")],
            ledger.current_time,
        )
        ledger.execute(tx)
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.USER_ACTION,
            source_id="user",
        )
    return PendingTransaction(
        moves=tuple(moves),
        origin=origin,
        timestamp=timestamp,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger balance changes - represents FACT.

    Attributes:
        moves: Tuple of value transfers between wallets
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was created
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed and logged
        sequence_number: Monotonic sequence within the ledger (for ordering)
        contract_ids: Set of contract IDs from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        moves = ", ".join(
            f"{m.quantity} {m.unit_symbol}: {m.source}→{m.dest}" for m in self.moves
        )
        return f"Transaction({self.exec_id}, {self.origin}, [{moves}])"


# Transfer rules validate moves and raise TransferRuleViolation if invalid.
TransferRule = Callable[[LedgerView, Move], None]


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a transferable asset in the ledger.

    Attributes:
        symbol: Short identifier for the unit (e.g., "USDC", "WETH").
        name: Human-readable name for the unit.
        unit_type: Category of the unit.
        min_balance: Minimum allowed balance in any wallet.
        max_balance: Maximum allowed balance in any wallet.
        decimal_places: Number of decimal places amounts are held at (None = unrestricted).
        transfer_rule: Optional function to validate moves involving this unit.
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: Decimal = Decimal("0")
    max_balance: Decimal = Decimal("Infinity")
    decimal_places: Optional[int] = None
    transfer_rule: Optional[TransferRule] = None

    def round(self, value: Decimal) -> Decimal:
        """
        Round a value to this unit's decimal precision using quantize.

        Returns the value unchanged if decimal_places is None.
        """
        if self.decimal_places is None:
            return value
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        quantizer = Decimal(10) ** -self.decimal_places
        return value.quantize(quantizer, rounding=ROUND_HALF_EVEN)

    def round_down(self, value: Decimal) -> Decimal:
        """Truncate a value to this unit's precision (integer-division semantics)."""
        if self.decimal_places is None:
            return value
        quantizer = Decimal(10) ** -self.decimal_places
        return value.quantize(quantizer, rounding=ROUND_DOWN)

    def is_representable(self, value: Decimal) -> bool:
        """True if value carries no digits beyond this unit's precision."""
        if self.decimal_places is None:
            return True
        return self.round_down(value) == value


# ============================================================================
# AMOUNTS
# ============================================================================

def to_amount(value: Any, unit: Unit) -> Decimal:
    """
    Coerce a caller-supplied amount to a Decimal held at the unit's precision.

    Ints, strings and Decimals are accepted; floats go through str() the way
    the rest of the ledger converts them.

    Raises:
        InvalidAmount: if the value is not a finite positive number
                       representable at the unit's precision.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise InvalidAmount(f"amount must be numeric, got {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidAmount(f"amount is not a number: {value!r}") from None
    if amount.is_nan() or amount.is_infinite():
        raise InvalidAmount(f"amount must be finite, got {value!r}")
    if amount <= ZERO:
        raise InvalidAmount(f"amount must be positive, got {value!r}")
    if not unit.is_representable(amount):
        raise InvalidAmount(
            f"amount {amount} has more than {unit.decimal_places} decimal places for {unit.symbol}"
        )
    return amount


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def token(
    symbol: str,
    name: str,
    decimal_places: Optional[int] = 0,
    transfer_rule: Optional[TransferRule] = None,
) -> Unit:
    """
    Create a fungible token unit.

    Balances may not go negative. The default of 0 decimal places gives
    whole-unit amounts, so basis-point products round down like integer
    division.

    Args:
        symbol: Token symbol (e.g., "USDC").
        name: Full name of the token.
        decimal_places: Number of decimal places for amounts (default: 0).
        transfer_rule: Optional rule checked for every move of this token.
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_TOKEN,
        min_balance=Decimal("0"),
        decimal_places=decimal_places,
        transfer_rule=transfer_rule,
    )
