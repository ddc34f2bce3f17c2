"""
ledger.py - Stateful Loan Ledger

The LoanLedger is the central state manager of the lending engine. It is
the only module that mutates loan records, ensuring controlled and
auditable changes.

Key responsibilities:
    - Owns the loan table and the monotonic loan id counter
    - Enforces LTV at origination, accrues interest, computes health
      factor and processes liquidation
    - Orders every operation verify-then-commit: new loan values are
      computed purely, collaborator side effects run next, and the loan
      table is updated last
    - Serializes mutations per loan; different loans proceed in parallel
    - Records an event for every committed mutation
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional
import logging
import threading

from .core import (
    # Types
    Loan, LoanHealth, LiquidationParams, TierParams,
    LedgerEvent, LoanOpened, LoanRepaid, LoanLiquidated,
    TierParamsUpdated, LiquidationParamsUpdated, PauseToggled,
    # Protocols
    PriceOracle, CreditTierSource, CollateralCustody, LiquidityPool,
    # Constants
    BPS, COLLATERAL_DECIMALS, DEBT_DECIMALS, WAD,
    Identity, TierCode,
    # Exceptions
    ConfigurationError, NoCreditScore, ExceedsLTV, InsufficientLiquidity,
    LoanNotFound, LoanNotActive, NotBorrower, RepayExceedsDebt,
    HealthFactorOk, SeizureExceedsCollateral, OracleError, ClockRegression,
    Unauthorized, LendingPaused,
    require_amount,
)
from .fixed_point import wad_scale
from .loans import (
    calculate_accrual,
    calculate_collateral_value,
    calculate_debt_value,
    calculate_loan_health,
    calculate_max_debt,
    calculate_seizure,
)
from .tier_policy import TierPolicy, parse_tier


logger = logging.getLogger(__name__)

DEFAULT_LIQUIDATION_PARAMS = LiquidationParams(threshold_bps=8500, bonus_bps=500)


class LoanLedger:
    """
    Loan book with origination, repayment, health and liquidation.

    Collaborators are passed in explicitly, so any number of independent
    ledgers can coexist (one per test, one per market).

    Time:
        The ledger keeps a logical clock in integer seconds (block
        timestamp semantics). advance_time() moves it forward; a `clock`
        callable may be supplied instead to read wall-clock time.

    Thread Safety:
        Mutations of one loan are serialized by a per-loan lock. The loan
        table and id counter are guarded by a ledger lock that is never
        held across collaborator calls.

    Example:
        ledger = LoanLedger("main", oracle, registry, vault, pool, admin="owner")
        loan_id = ledger.open_loan("alice", 100 * 10**18, 35_000_000)
        ledger.advance_time(ledger.current_time + 365 * 86400)
        remaining = ledger.repay(loan_id, "alice", ledger.preview_debt(loan_id))
    """

    def __init__(
        self,
        name: str,
        oracle: PriceOracle,
        tier_source: CreditTierSource,
        custody: CollateralCustody,
        pool: LiquidityPool,
        admin: Identity,
        tier_policy: Optional[TierPolicy] = None,
        liquidation_params: Optional[LiquidationParams] = None,
        initial_time: int = 0,
        collateral_decimals: int = COLLATERAL_DECIMALS,
        debt_decimals: int = DEBT_DECIMALS,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier (used in logs)
            oracle: Collateral price source (18 decimals)
            tier_source: Credit tier lookup for borrowers
            custody: Collateral custody collaborator
            pool: Debt-asset liquidity pool
            admin: Identity allowed to change parameters and pause
            tier_policy: Tier table (defaults to the A/B/C table)
            liquidation_params: Threshold and bonus (defaults 8500 / 500)
            initial_time: Starting logical time in seconds
            collateral_decimals: Native decimals of the collateral token
            debt_decimals: Native decimals of the debt token
            clock: Optional callable returning the current time
        """
        if not admin or not str(admin).strip():
            raise ConfigurationError("admin identity cannot be empty")
        # Validates both decimal conventions up front.
        wad_scale(collateral_decimals)
        wad_scale(debt_decimals)

        self.name = name
        self.oracle = oracle
        self.tier_source = tier_source
        self.custody = custody
        self.pool = pool
        self.admin = admin
        self.tier_policy = tier_policy or TierPolicy()
        self._liquidation_params = self._validate_liquidation_params(
            liquidation_params or DEFAULT_LIQUIDATION_PARAMS
        )
        self.collateral_decimals = collateral_decimals
        self.debt_decimals = debt_decimals
        self.paused = False

        self._clock = clock
        self._current_time = initial_time
        self._loans: Dict[int, Loan] = {}
        self._loan_locks: Dict[int, threading.RLock] = {}
        self._next_id = 1
        self._lock = threading.RLock()
        self.events: List[LedgerEvent] = []

    # ========================================================================
    # TIME
    # ========================================================================

    @property
    def current_time(self) -> int:
        """Current time in seconds (logical, or from the injected clock)."""
        if self._clock is not None:
            return int(self._clock())
        return self._current_time

    def advance_time(self, new_time: int) -> None:
        """
        Move the logical clock forward.

        Raises:
            ClockRegression: If new_time is earlier than the current time.
        """
        if self._clock is not None:
            raise ConfigurationError("advance_time() is unavailable when a clock is injected")
        with self._lock:
            if new_time < self._current_time:
                raise ClockRegression(
                    f"Cannot move time backwards: {new_time} < {self._current_time}"
                )
            self._current_time = new_time

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def liquidation_params(self) -> LiquidationParams:
        return self._liquidation_params

    def get_loan(self, loan_id: int) -> Loan:
        """Return the stored loan snapshot (closed loans included)."""
        with self._lock:
            loan = self._loans.get(loan_id)
        if loan is None:
            raise LoanNotFound(f"Loan {loan_id} does not exist")
        return loan

    def loans_of(self, borrower: Identity) -> List[Loan]:
        """All loans opened by a borrower, in id order."""
        with self._lock:
            return [loan for _, loan in sorted(self._loans.items()) if loan.borrower == borrower]

    def active_loans(self) -> List[Loan]:
        with self._lock:
            return [loan for _, loan in sorted(self._loans.items()) if loan.active]

    @property
    def loan_count(self) -> int:
        with self._lock:
            return len(self._loans)

    def preview_debt(self, loan_id: int) -> int:
        """
        Current debt with interest accrued to now, without persisting it.

        Closed loans report zero.
        """
        loan = self.get_loan(loan_id)
        if not loan.active:
            return 0
        return calculate_accrual(loan, self.current_time).debt_amount

    def loan_health(self, loan_id: int) -> LoanHealth:
        """
        Full health summary of an active loan at the current time.

        Raises:
            LoanNotActive: If the loan is closed.
            OracleError: If the price feed is unusable.
        """
        loan = self.get_loan(loan_id)
        if not loan.active:
            raise LoanNotActive(f"Loan {loan_id} is not active")
        return calculate_loan_health(
            loan, self._read_price(), self.current_time,
            self.collateral_decimals, self.debt_decimals,
        )

    def health_factor(self, loan_id: int) -> int:
        """
        Health factor of an active loan; WAD (1e18) represents 1.0.

        Reflects interest accrued up to now, though nothing is persisted.
        A debt-free loan returns MAX_HEALTH_FACTOR.
        """
        return self.loan_health(loan_id).health_factor

    # ========================================================================
    # ORIGINATION
    # ========================================================================

    def open_loan(self, borrower: Identity, collateral_amount: int, desired_debt: int) -> int:
        """
        Open a loan against collateral, gated by the borrower's tier LTV.

        Order: validate inputs, tier, price and LTV; verify pool liquidity;
        hold collateral; disburse debt; commit the record. If disbursement
        fails after the hold, the hold is released again so no collateral
        stays locked.

        Args:
            borrower: Borrower identity
            collateral_amount: Collateral posted (native collateral units)
            desired_debt: Debt requested (native debt units)

        Returns:
            The new loan id.

        Raises:
            InvalidAmount, LendingPaused, NoCreditScore, ConfigurationError,
            OracleError, ExceedsLTV, InsufficientLiquidity, CustodyError
        """
        require_amount("collateral_amount", collateral_amount)
        require_amount("desired_debt", desired_debt)
        self._require_not_paused()

        tier = self.tier_source.get_tier(borrower)
        if tier is None:
            raise NoCreditScore(f"No credit score set for {borrower}")
        terms = self.tier_policy.lookup(tier)

        price = self._read_price()
        collateral_value = calculate_collateral_value(collateral_amount, price, self.collateral_decimals)
        desired_debt_value = calculate_debt_value(desired_debt, self.debt_decimals)
        max_debt = calculate_max_debt(collateral_value, terms.ltv_bps)
        if desired_debt_value > max_debt:
            logger.debug(
                "%s: open_loan rejected for %s: debt value %d > max %d",
                self.name, borrower, desired_debt_value, max_debt,
            )
            raise ExceedsLTV(
                f"Exceeds LTV limit: debt value {desired_debt_value} > max {max_debt} "
                f"(tier {tier}, ltv {terms.ltv_bps} bps)"
            )

        available = self.pool.balance()
        if available < desired_debt:
            raise InsufficientLiquidity(
                f"Insufficient liquidity: pool holds {available}, requested {desired_debt}"
            )

        self.custody.hold(borrower, collateral_amount)
        try:
            self.pool.disburse(borrower, desired_debt)
        except Exception:
            self.custody.release(borrower, collateral_amount)
            raise

        now = self.current_time
        with self._lock:
            loan_id = self._next_id
            self._next_id += 1
            loan = Loan(
                id=loan_id,
                borrower=borrower,
                collateral_amount=collateral_amount,
                debt_amount=desired_debt,
                interest_rate_bps=terms.apr_bps,
                created_at=now,
                last_accrued_at=now,
                active=True,
            )
            self._loans[loan_id] = loan
            self._loan_locks[loan_id] = threading.RLock()
        self._emit(LoanOpened(loan_id, borrower, collateral_amount, desired_debt, terms.apr_bps, now))
        return loan_id

    # ========================================================================
    # ACCRUAL
    # ========================================================================

    def accrue_interest(self, loan_id: int) -> int:
        """
        Persist interest accrued up to now into the loan's debt.

        No-op on a zero-debt loan or when no time has elapsed since the
        last accrual. Returns the (possibly updated) debt amount.
        """
        with self._loan_lock(loan_id):
            loan = self.get_loan(loan_id)
            accrued = calculate_accrual(loan, self.current_time)
            if accrued is not loan:
                self._commit(accrued)
            return accrued.debt_amount

    # ========================================================================
    # REPAYMENT
    # ========================================================================

    def repay(self, loan_id: int, borrower: Identity, repay_amount: int) -> int:
        """
        Repay part or all of a loan's current debt.

        Interest is accrued to now first. Repaying exactly the current
        debt closes the loan and releases all collateral to the borrower.

        Returns:
            Remaining debt after the repayment.

        Raises:
            InvalidAmount, LendingPaused, LoanNotFound, LoanNotActive,
            NotBorrower, RepayExceedsDebt, CustodyError
        """
        require_amount("repay_amount", repay_amount)
        self._require_not_paused()

        with self._loan_lock(loan_id):
            loan = self.get_loan(loan_id)
            if not loan.active:
                raise LoanNotActive(f"Loan {loan_id} is not active")
            if borrower != loan.borrower:
                raise NotBorrower(f"{borrower} is not the borrower of loan {loan_id}")

            now = self.current_time
            accrued = calculate_accrual(loan, now)
            if repay_amount > accrued.debt_amount:
                raise RepayExceedsDebt(
                    f"Repay {repay_amount} exceeds current debt {accrued.debt_amount} on loan {loan_id}"
                )

            remaining = accrued.debt_amount - repay_amount
            self.pool.collect(borrower, repay_amount)
            if remaining == 0:
                try:
                    self.custody.release(borrower, loan.collateral_amount)
                except Exception:
                    self.pool.disburse(borrower, repay_amount)
                    raise
                updated = accrued.with_balances(debt_amount=0, collateral_amount=0)
            else:
                updated = accrued.with_balances(debt_amount=remaining)

            self._commit(updated)
        self._emit(LoanRepaid(loan_id, repay_amount, remaining, now))
        return remaining

    # ========================================================================
    # LIQUIDATION
    # ========================================================================

    def liquidate(self, loan_id: int, liquidator: Identity, max_repay: int) -> int:
        """
        Repay debt of an under-collateralized loan in exchange for collateral.

        Permitted only while the health factor is strictly below 1.0. The
        liquidator repays min(max_repay, current debt) and receives that
        amount plus the bonus, converted to collateral at the current
        price. A liquidator can under-fill with a smaller max_repay when a
        full repayment would seize more than is posted.

        Returns:
            Collateral seized (native collateral units).

        Raises:
            InvalidAmount, LendingPaused, LoanNotFound, LoanNotActive,
            OracleError, HealthFactorOk, SeizureExceedsCollateral, CustodyError
        """
        return self.execute_liquidation(loan_id, liquidator, max_repay).seized_collateral

    def execute_liquidation(self, loan_id: int, liquidator: Identity, max_repay: int) -> LoanLiquidated:
        """
        Same as liquidate(), returning the LoanLiquidated event it records.

        A liquidation that repays the whole debt always seizes all posted
        collateral: HF < 1.0 means the collateral is worth less than the
        debt, so the seizure for the full debt is at least the collateral
        or the call fails with SeizureExceedsCollateral.
        """
        require_amount("max_repay", max_repay)
        self._require_not_paused()

        with self._loan_lock(loan_id):
            loan = self.get_loan(loan_id)
            if not loan.active:
                raise LoanNotActive(f"Loan {loan_id} is not active")

            now = self.current_time
            price = self._read_price()
            health = calculate_loan_health(
                loan, price, now, self.collateral_decimals, self.debt_decimals
            )
            if health.health_factor >= WAD:
                raise HealthFactorOk(
                    f"Loan {loan_id} health factor {health.health_factor} is not below {WAD}"
                )

            accrued = calculate_accrual(loan, now)
            repay_amount = min(max_repay, accrued.debt_amount)
            seized = calculate_seizure(
                repay_amount, self._liquidation_params.bonus_bps, price,
                self.collateral_decimals, self.debt_decimals,
            )
            if seized > accrued.collateral_amount:
                raise SeizureExceedsCollateral(
                    f"Seizure {seized} exceeds collateral {accrued.collateral_amount} on loan {loan_id}"
                )

            self.pool.collect(liquidator, repay_amount)
            try:
                self.custody.release(loan.borrower, seized, recipient=liquidator)
            except Exception:
                self.pool.disburse(liquidator, repay_amount)
                raise

            updated = accrued.with_balances(
                debt_amount=accrued.debt_amount - repay_amount,
                collateral_amount=accrued.collateral_amount - seized,
            )
            self._commit(updated)
            event = LoanLiquidated(loan_id, liquidator, seized, repay_amount, now)
            self._emit(event)
        return event

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    def set_tier_params(self, caller: Identity, tier: TierCode, ltv_bps: int, apr_bps: int) -> TierParams:
        """
        Update the terms of one tier. Existing loans keep their rate.

        Raises:
            Unauthorized: If caller is not the admin.
            ConfigurationError: For an unknown tier or ltv_bps > 10000.
        """
        self._require_admin(caller)
        code = parse_tier(tier)
        with self._lock:
            params = self.tier_policy.set_params(code, ltv_bps, apr_bps)
        self._emit(TierParamsUpdated(code, params.ltv_bps, params.apr_bps, self.current_time))
        return params

    def set_liquidation_params(self, caller: Identity, threshold_bps: int, bonus_bps: int) -> LiquidationParams:
        """
        Update liquidation threshold and bonus.

        The threshold is stored but liquidate() only checks HF < 1.0.
        """
        self._require_admin(caller)
        params = self._validate_liquidation_params(LiquidationParams(threshold_bps, bonus_bps))
        with self._lock:
            self._liquidation_params = params
        self._emit(LiquidationParamsUpdated(threshold_bps, bonus_bps, self.current_time))
        return params

    def pause(self, caller: Identity) -> None:
        """Block open_loan, repay and liquidate until unpause()."""
        self._set_paused(caller, True)

    def unpause(self, caller: Identity) -> None:
        self._set_paused(caller, False)

    # ========================================================================
    # INTERNALS
    # ========================================================================

    @staticmethod
    def _validate_liquidation_params(params: LiquidationParams) -> LiquidationParams:
        for name in ("threshold_bps", "bonus_bps"):
            value = getattr(params, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value < 0 or value > BPS:
                raise ConfigurationError(f"{name} must be in [0, {BPS}], got {value}")
        return params

    def _set_paused(self, caller: Identity, paused: bool) -> None:
        self._require_admin(caller)
        with self._lock:
            self.paused = paused
        self._emit(PauseToggled(paused, caller, self.current_time))

    def _require_admin(self, caller: Identity) -> None:
        if caller != self.admin:
            raise Unauthorized(f"{caller} is not the admin of ledger {self.name}")

    def _require_not_paused(self) -> None:
        if self.paused:
            raise LendingPaused(f"Ledger {self.name} is paused")

    def _read_price(self) -> int:
        price = self.oracle.get_price()
        if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
            raise OracleError(f"Invalid oracle price {price!r}")
        return price

    @contextmanager
    def _loan_lock(self, loan_id: int) -> Iterator[None]:
        with self._lock:
            lock = self._loan_locks.get(loan_id)
        if lock is None:
            raise LoanNotFound(f"Loan {loan_id} does not exist")
        with lock:
            yield

    def _commit(self, loan: Loan) -> None:
        with self._lock:
            previous = self._loans[loan.id]
            if loan.last_accrued_at < previous.last_accrued_at:
                raise ValueError(f"Loan {loan.id}: last_accrued_at would move backwards")
            if loan.collateral_amount > previous.collateral_amount:
                raise ValueError(f"Loan {loan.id}: collateral cannot increase after origination")
            self._loans[loan.id] = loan

    def _emit(self, event: LedgerEvent) -> None:
        with self._lock:
            self.events.append(event)
        logger.info("%s: %s", self.name, event)

    def __repr__(self):
        return (
            f"LoanLedger({self.name!r}, loans={self.loan_count}, "
            f"active={len(self.active_loans())}, paused={self.paused})"
        )
