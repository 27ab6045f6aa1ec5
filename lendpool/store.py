"""
store.py - Lender and borrower records.

Records are frozen dataclasses with value semantics: every state change builds
a new instance with dataclasses.replace(). LedgerStore is the single owner of
the records and the pool-wide total; it has no business rules of its own and
changes only through apply(PoolUpdate).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterator, Mapping, Optional, Tuple

from .core import AccountId, PendingTransaction, ZERO


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class LenderRecord:
    """Supplied base asset for one account."""
    amount_supplied: Decimal = ZERO
    deposit_timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class BorrowerRecord:
    """
    Credit position for one account.

    borrow_timestamp of None plays the role of the zero timestamp: there is no
    loan age to measure. initial_borrow_amount and amount_repaid are lifetime
    totals and survive full repayment and liquidation.
    """
    amount_borrowed: Decimal = ZERO
    initial_borrow_amount: Decimal = ZERO
    collateral_deposited: Decimal = ZERO
    borrow_timestamp: Optional[datetime] = None
    last_iteration: Optional[datetime] = None
    amount_repaid: Decimal = ZERO

    @property
    def has_active_loan(self) -> bool:
        return self.amount_borrowed > ZERO


EMPTY_LENDER = LenderRecord()
EMPTY_BORROWER = BorrowerRecord()


# ============================================================================
# EVENTS
# ============================================================================

class EventKind(Enum):
    """Kinds of notification emitted by pool operations."""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    COLLATERAL_DEPOSIT = "collateral_deposit"
    COLLATERAL_WITHDRAW = "collateral_withdraw"
    BORROW = "borrow"
    REPAY = "repay"
    LIQUIDATE = "liquidate"
    FEE_RECIPIENT_CHANGED = "fee_recipient_changed"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"
    PAUSED = "paused"
    UNPAUSED = "unpaused"


@dataclass(frozen=True, slots=True)
class PoolEvent:
    """
    Structured audit record of one applied pool operation.

    Attributes:
        kind: What happened
        account: Account the operation was performed for
        amounts: Named amounts (e.g. {"principal": ..., "interest": ...})
        timestamp: Clock reading the operation ran at
        sequence: Position in the pool's event log (set on commit)
        details: Non-amount context (e.g. liquidator, liquidation reasons)
    """
    kind: EventKind
    account: AccountId
    amounts: Mapping[str, Decimal]
    timestamp: datetime
    sequence: int = -1
    details: Mapping[str, str] = field(default_factory=dict)

    def __repr__(self) -> str:
        amounts = ", ".join(f"{k}={v}" for k, v in self.amounts.items())
        return f"PoolEvent(#{self.sequence} {self.kind.value} {self.account}: {amounts})"


# ============================================================================
# UPDATES
# ============================================================================

@dataclass(frozen=True, slots=True)
class PoolUpdate:
    """
    Everything one pool operation changes, computed before anything is applied.

    Attributes:
        transaction: Asset moves to execute against the ledger
        event: Notification to emit once committed
        lenders: Replacement lender records, by account
        borrowers: Replacement borrower records, by account
        total_supplied: New pool liquidity, or None if unchanged
    """
    transaction: PendingTransaction
    event: PoolEvent
    lenders: Tuple[Tuple[AccountId, LenderRecord], ...] = ()
    borrowers: Tuple[Tuple[AccountId, BorrowerRecord], ...] = ()
    total_supplied: Optional[Decimal] = None


# ============================================================================
# STORE
# ============================================================================

class LedgerStore:
    """
    Per-account lender and borrower records plus the pool-wide total.

    Reads of unknown accounts return the empty record without creating one.
    """

    def __init__(self):
        self._lenders: Dict[AccountId, LenderRecord] = {}
        self._borrowers: Dict[AccountId, BorrowerRecord] = {}
        self.total_supplied: Decimal = ZERO

    def lender(self, account: AccountId) -> LenderRecord:
        return self._lenders.get(account, EMPTY_LENDER)

    def borrower(self, account: AccountId) -> BorrowerRecord:
        return self._borrowers.get(account, EMPTY_BORROWER)

    def has_lender(self, account: AccountId) -> bool:
        return account in self._lenders

    def has_borrower(self, account: AccountId) -> bool:
        return account in self._borrowers

    def lenders(self) -> Iterator[Tuple[AccountId, LenderRecord]]:
        return iter(list(self._lenders.items()))

    def borrowers(self) -> Iterator[Tuple[AccountId, BorrowerRecord]]:
        return iter(list(self._borrowers.items()))

    def total_lender_balances(self) -> Decimal:
        return sum((r.amount_supplied for r in self._lenders.values()), ZERO)

    def total_outstanding(self) -> Decimal:
        return sum((r.amount_borrowed for r in self._borrowers.values()), ZERO)

    def total_collateral(self) -> Decimal:
        return sum((r.collateral_deposited for r in self._borrowers.values()), ZERO)

    def apply(self, update: PoolUpdate) -> None:
        """Commit the record changes of an update whose transfers have been applied."""
        for account, record in update.lenders:
            self._lenders[account] = record
        for account, record in update.borrowers:
            self._borrowers[account] = record
        if update.total_supplied is not None:
            self.total_supplied = update.total_supplied
