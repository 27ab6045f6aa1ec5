"""
pool.py - LendingPool: the single writer over the lending records.

Every mutating entry point runs the same cycle under the pool lock:

    1. Sample the clock once
    2. Call the pure compute_* function of the relevant module; it checks
       every precondition and returns a PoolUpdate
    3. Execute the update's moves against the asset ledger (all or nothing);
       a clock reading ahead of the ledger moves ledger time only if they apply
    4. Commit the record changes and emit the event only if step 3 applied

A failure at any step raises before step 4, so records, pool totals and
balances are left exactly as they were.

The pool is not reentrant. While an operation is in flight, any call back
into the pool from the same thread (for example from an asset transfer rule)
raises ReentrantCall. Reads from that thread see committed state.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
import threading

from .collateral import compute_deposit_collateral, compute_withdraw_collateral
from .config import PoolConfig
from .core import (
    AccountId, ExecuteResult, Unit, SYSTEM_WALLET,
    InvalidAccount, PoolPaused, ReentrantCall, TransferFailed, Unauthorized,
    to_amount,
)
from .credit import (
    LoanStatus, RepaymentQuote, RateBracket,
    calculate_collateral_ratio, calculate_max_borrowable, calculate_total_debt,
    compute_borrow, compute_repay, current_bracket, loan_status, quote_repayment,
)
from .ledger import Ledger
from .liquidation import (
    LiquidationReason, compute_liquidation, is_liquidatable, liquidation_reasons,
)
from .store import (
    BorrowerRecord, EventKind, LedgerStore, LenderRecord, PoolEvent, PoolUpdate,
)
from .supply import compute_deposit, compute_withdraw


Clock = Callable[[], datetime]


class LendingPool:
    """
    Collateralized lending pool over a double-entry asset ledger.

    Lenders supply the base asset; borrowers lock the collateral asset and
    draw base asset up to the configured collateral ratio. Value only moves
    through the ledger, and accounts must approve the pool wallet before the
    pool can pull from them.

    Thread Safety:
        All entry points, reads included, are serialized by one lock.

    Example:
        ledger = Ledger("main", datetime(2025, 1, 1))
        ledger.register_unit(token("USDC", "USD Coin"))
        ledger.register_unit(token("WETH", "Wrapped Ether"))
        for wallet in ("alice", "bob", "treasury"):
            ledger.register_wallet(wallet)

        pool = LendingPool(ledger, PoolConfig(
            owner="treasury", base_asset="USDC", collateral_asset="WETH",
            collateral_ratio=8000, fee_recipient="treasury",
        ))
        ledger.approve("alice", pool.wallet, "USDC", Decimal("1000"))
        pool.deposit("alice", Decimal("1000"))
    """

    def __init__(
        self,
        ledger: Ledger,
        config: PoolConfig,
        clock: Optional[Clock] = None,
        verbose: Optional[bool] = None,
    ):
        """
        Create a pool on an existing ledger.

        Args:
            ledger: Asset ledger holding both assets (must already be registered)
            config: Immutable pool configuration
            clock: Zero-argument callable returning the current time
                   (default: the ledger's logical time)
            verbose: Print one line per operation (default: follow the ledger)

        Raises:
            UnitNotRegistered: If either asset is not registered in the ledger
        """
        self.ledger = ledger
        self._config = config
        self.base_unit: Unit = ledger.get_unit(config.base_asset)
        self.collateral_unit: Unit = ledger.get_unit(config.collateral_asset)
        self.store = LedgerStore()
        self.events: List[PoolEvent] = []
        self.verbose = ledger.verbose if verbose is None else verbose
        self._clock: Clock = clock or (lambda: ledger.current_time)
        self._paused = False
        self._lock = threading.Lock()
        self._active_thread: Optional[int] = None

        for wallet in (config.pool_wallet, config.owner, config.fee_recipient):
            if not ledger.is_registered(wallet):
                ledger.register_wallet(wallet)

    # ========================================================================
    # EXECUTION DISCIPLINE
    # ========================================================================

    @contextmanager
    def _exclusive(self) -> Iterator[datetime]:
        """Hold the pool for one mutating operation and yield its clock reading."""
        me = threading.get_ident()
        if self._active_thread == me:
            raise ReentrantCall("pool operation already in progress")
        with self._lock:
            self._active_thread = me
            try:
                yield self._clock()
            finally:
                self._active_thread = None

    @contextmanager
    def _reading(self) -> Iterator[datetime]:
        if self._active_thread == threading.get_ident():
            yield self._clock()
            return
        with self._lock:
            yield self._clock()

    def _submit(self, update: PoolUpdate) -> PoolEvent:
        """Execute an update's moves and commit its records if they applied."""
        result = self.ledger.execute(update.transaction, advance=True)
        if result != ExecuteResult.APPLIED:
            reason = self.ledger.last_rejection or result.value
            if self.verbose:
                print(f"FAILED {update.event.kind.value} {update.event.account}: {reason}")
            raise TransferFailed(
                f"{update.event.kind.value} for {update.event.account} failed: {reason}"
            )
        self.store.apply(update)
        return self._record(update.event)

    def _record(self, event: PoolEvent) -> PoolEvent:
        event = replace(event, sequence=len(self.events))
        self.events.append(event)
        if self.verbose:
            print(repr(event))
        return event

    def _require_account(self, account: AccountId) -> None:
        if not isinstance(account, str) or not account.strip():
            raise InvalidAccount(f"account must be a non-empty string, got {account!r}")
        if account in (self._config.pool_wallet, SYSTEM_WALLET):
            raise InvalidAccount(f"account '{account}' is reserved")

    def _require_open(self) -> None:
        if self._paused:
            raise PoolPaused("pool is paused")

    def _require_owner(self, caller: AccountId) -> None:
        if caller != self._config.owner:
            raise Unauthorized(f"{caller} is not the pool owner")

    # ========================================================================
    # SUPPLY
    # ========================================================================

    def deposit(self, account: AccountId, amount: Any) -> PoolEvent:
        """Supply base asset. See supply.compute_deposit."""
        self._require_account(account)
        with self._exclusive() as now:
            self._require_open()
            update = compute_deposit(
                self._config, self.base_unit, self.store.lender(account),
                self.store.total_supplied, account, amount, now,
            )
            return self._submit(update)

    def withdraw(self, account: AccountId, amount: Any) -> PoolEvent:
        """Withdraw supplied base asset. See supply.compute_withdraw."""
        self._require_account(account)
        with self._exclusive() as now:
            update = compute_withdraw(
                self._config, self.base_unit, self.store.lender(account),
                self.store.total_supplied, account, amount, now,
            )
            return self._submit(update)

    # ========================================================================
    # COLLATERAL
    # ========================================================================

    def deposit_collateral(self, account: AccountId, amount: Any) -> PoolEvent:
        self._require_account(account)
        with self._exclusive() as now:
            self._require_open()
            update = compute_deposit_collateral(
                self._config, self.collateral_unit, self.store.borrower(account),
                account, amount, now,
            )
            return self._submit(update)

    def withdraw_collateral(self, account: AccountId, amount: Any) -> PoolEvent:
        self._require_account(account)
        with self._exclusive() as now:
            update = compute_withdraw_collateral(
                self._config, self.base_unit, self.collateral_unit,
                self.store.borrower(account), account, amount, now,
            )
            return self._submit(update)

    # ========================================================================
    # CREDIT
    # ========================================================================

    def borrow(self, account: AccountId, amount: Any) -> PoolEvent:
        """Draw base asset against collateral. See credit.compute_borrow."""
        self._require_account(account)
        with self._exclusive() as now:
            self._require_open()
            update = compute_borrow(
                self._config, self.base_unit, self.store.borrower(account),
                self.store.total_supplied, account, amount, now,
            )
            return self._submit(update)

    def repay(self, account: AccountId, principal_amount: Any) -> PoolEvent:
        """
        Repay principal plus the current quarter's interest.

        The account must have approved the pool wallet for the total due,
        which quote_repayment() reports ahead of time.
        """
        self._require_account(account)
        with self._exclusive() as now:
            update = compute_repay(
                self._config, self.base_unit, self.store.borrower(account),
                self.store.total_supplied, account, principal_amount, now,
            )
            return self._submit(update)

    # ========================================================================
    # LIQUIDATION
    # ========================================================================

    def liquidate(self, liquidator: AccountId, borrower: AccountId) -> PoolEvent:
        """
        Close out a liquidatable position.

        Open to any account. The liquidator must have approved the pool wallet
        for the borrower's outstanding principal.
        """
        self._require_account(liquidator)
        self._require_account(borrower)
        with self._exclusive() as now:
            update = compute_liquidation(
                self._config, self.base_unit, self.collateral_unit,
                self.store.borrower(borrower), self.store.total_supplied,
                liquidator, borrower, now,
            )
            return self._submit(update)

    # ========================================================================
    # ADMIN
    # ========================================================================

    def set_fee_recipient(self, caller: AccountId, recipient: AccountId) -> PoolEvent:
        with self._exclusive() as now:
            self._require_owner(caller)
            self._require_account(recipient)
            if not self.ledger.is_registered(recipient):
                self.ledger.register_wallet(recipient)
            previous = self._config.fee_recipient
            self._config = replace(self._config, fee_recipient=recipient)
            return self._record(PoolEvent(
                EventKind.FEE_RECIPIENT_CHANGED, caller, {}, now,
                details={"previous": previous, "recipient": recipient},
            ))

    def transfer_ownership(self, caller: AccountId, new_owner: AccountId) -> PoolEvent:
        with self._exclusive() as now:
            self._require_owner(caller)
            self._require_account(new_owner)
            self._config = replace(self._config, owner=new_owner)
            return self._record(PoolEvent(
                EventKind.OWNERSHIP_TRANSFERRED, caller, {}, now,
                details={"previous": caller, "owner": new_owner},
            ))

    def pause(self, caller: AccountId) -> PoolEvent:
        """Stop new deposits, collateral deposits and borrows. Exits stay open."""
        with self._exclusive() as now:
            self._require_owner(caller)
            self._paused = True
            return self._record(PoolEvent(EventKind.PAUSED, caller, {}, now))

    def unpause(self, caller: AccountId) -> PoolEvent:
        with self._exclusive() as now:
            self._require_owner(caller)
            self._paused = False
            return self._record(PoolEvent(EventKind.UNPAUSED, caller, {}, now))

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def config(self) -> PoolConfig:
        return self._config

    @property
    def wallet(self) -> str:
        return self._config.pool_wallet

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def total_supplied(self) -> Decimal:
        with self._reading():
            return self.store.total_supplied

    def get_lender_balance(self, account: AccountId) -> Decimal:
        with self._reading():
            return self.store.lender(account).amount_supplied

    def get_lender(self, account: AccountId) -> LenderRecord:
        with self._reading():
            return self.store.lender(account)

    def get_borrower(self, account: AccountId) -> BorrowerRecord:
        with self._reading():
            return self.store.borrower(account)

    def calculate_total_debt(self, account: AccountId) -> Decimal:
        with self._reading() as now:
            return calculate_total_debt(self.store.borrower(account), now, self.base_unit)

    def get_collateral_ratio(self, account: AccountId) -> Decimal:
        with self._reading():
            return calculate_collateral_ratio(self.store.borrower(account))

    def get_max_borrowable(self, account: AccountId) -> Decimal:
        with self._reading():
            record = self.store.borrower(account)
            return calculate_max_borrowable(
                record.collateral_deposited, self._config.collateral_ratio, self.base_unit
            )

    def get_loan_status(self, account: AccountId) -> LoanStatus:
        with self._reading():
            return loan_status(self.store.borrower(account))

    def get_rate_bracket(self, account: AccountId) -> Optional[RateBracket]:
        with self._reading() as now:
            return current_bracket(self.store.borrower(account), now)

    def quote_repayment(self, account: AccountId, principal_amount: Any) -> RepaymentQuote:
        """Price a repayment without running its preconditions."""
        principal_amount = to_amount(principal_amount, self.base_unit)
        with self._reading() as now:
            return quote_repayment(self.store.borrower(account), principal_amount, now, self.base_unit)

    def is_liquidatable(self, account: AccountId) -> bool:
        with self._reading() as now:
            return is_liquidatable(self.store.borrower(account), self._config.collateral_ratio, now)

    def liquidation_reasons(self, account: AccountId) -> Tuple[LiquidationReason, ...]:
        with self._reading() as now:
            return liquidation_reasons(self.store.borrower(account), self._config.collateral_ratio, now)

    def verify_accounting(self) -> Dict[str, Any]:
        """
        Check the pool's records against each other and against the ledger.

        Checks:
        - Σ lender balances == total_supplied + Σ outstanding principal
        - pool wallet base balance >= total_supplied
        - pool wallet collateral balance == Σ deposited collateral

        Returns:
            Dict with 'valid' (bool) and 'discrepancies' (list of descriptions)
        """
        with self._reading():
            discrepancies: List[str] = []
            supplied = self.store.total_lender_balances()
            outstanding = self.store.total_outstanding()
            if supplied != self.store.total_supplied + outstanding:
                discrepancies.append(
                    f"lender balances {supplied} != total_supplied {self.store.total_supplied} "
                    f"+ outstanding {outstanding}"
                )
            base_held = self.ledger.get_balance(self.wallet, self.base_unit.symbol)
            if base_held < self.store.total_supplied:
                discrepancies.append(
                    f"pool holds {base_held} {self.base_unit.symbol} < total_supplied {self.store.total_supplied}"
                )
            collateral_held = self.ledger.get_balance(self.wallet, self.collateral_unit.symbol)
            collateral = self.store.total_collateral()
            if collateral_held != collateral:
                discrepancies.append(
                    f"pool holds {collateral_held} {self.collateral_unit.symbol} != deposited {collateral}"
                )
            return {
                'valid': not discrepancies,
                'discrepancies': discrepancies,
                'total_supplied': self.store.total_supplied,
                'outstanding': outstanding,
                'retained_interest': base_held - self.store.total_supplied,
            }
