"""
Core types, constants and protocols for the ChainFlow lending ledger.

This module provides the foundational data structures for the loan engine:
1. Fixed-point constants: WAD (1e18), BPS, decimal conventions
2. Protocols: the external collaborators the ledger consumes
3. Immutable data structures: Loan, TierParams, LiquidationParams, events
4. Exceptions: LendingError and one class per business rule

All amounts are plain Python ints in the smallest unit of their asset.
Collateral amounts and prices use 18 decimals, debt amounts use 6 decimals.
Nothing in this module mutates state.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional, Protocol, Union, runtime_checkable


# ============================================================================
# CONSTANTS
# ============================================================================

# 18-decimal fixed point basis. A health factor of exactly 1.0 is WAD.
WAD = 10 ** 18

# Basis point denominator (10000 bps = 100%).
BPS = 10_000

SECONDS_PER_DAY = 86_400
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

# Default decimal conventions (WMATIC-style collateral, USDC-style debt).
COLLATERAL_DECIMALS = 18
DEBT_DECIMALS = 6

# Bridge from 6-decimal debt units to the 18-decimal basis.
DEBT_TO_WAD = 10 ** (18 - DEBT_DECIMALS)

# Largest uint256; the health factor of a debt-free loan.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

# Tier codes as stored by the score registry (A best, C worst).
TIER_C = 0
TIER_B = 1
TIER_A = 2

TIER_LETTERS = {"A": TIER_A, "B": TIER_B, "C": TIER_C}
TIER_NAMES = {code: letter for letter, code in TIER_LETTERS.items()}

# Borrower / liquidator / admin identities are opaque (address-equivalent).
Identity = str
TierCode = Union[int, str]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LendingError(Exception):
    """Base exception for all lending-ledger errors."""
    pass


class ConfigurationError(LendingError):
    """Raised for an unknown tier code or an out-of-range parameter."""
    pass


class NoCreditScore(LendingError):
    """Raised when the borrower has no tier in the credit tier source."""
    pass


class InvalidAmount(LendingError, ValueError):
    """Raised when an amount is zero, negative or not an integer."""
    pass


class ExceedsLTV(LendingError):
    """Raised when requested debt exceeds collateral value times the tier LTV."""
    pass


class InsufficientLiquidity(LendingError):
    """Raised when the lending pool cannot fund the requested debt."""
    pass


class LoanNotFound(LendingError):
    """Raised when a loan id was never assigned by this ledger."""
    pass


class LoanNotActive(LendingError):
    """Raised when operating on a closed loan."""
    pass


class NotBorrower(LendingError):
    """Raised when someone other than the borrower repays a loan."""
    pass


class RepayExceedsDebt(LendingError):
    """Raised when a repayment is larger than the current debt."""
    pass


class HealthFactorOk(LendingError):
    """Raised when liquidating a loan whose health factor is at or above 1.0."""
    pass


class SeizureExceedsCollateral(LendingError):
    """Raised when a liquidation would seize more collateral than is posted."""
    pass


class OracleError(LendingError):
    """Raised when the price feed is stale, missing or non-positive."""
    pass


class ClockRegression(LendingError, ValueError):
    """Raised when time reads earlier than a loan's last accrual or the ledger clock."""
    pass


class Unauthorized(LendingError):
    """Raised when a caller without the admin capability invokes an admin operation."""
    pass


class LendingPaused(LendingError):
    """Raised when a mutating operation is attempted while the ledger is paused."""
    pass


class CustodyError(LendingError):
    """Raised when custody or the lending pool refuses a token movement."""
    pass


# ============================================================================
# PROTOCOLS - External Collaborators
# ============================================================================

@runtime_checkable
class PriceOracle(Protocol):
    """
    Read-only price capability for the collateral asset.

    Returns the price of one whole collateral token as an 18-decimal
    fixed-point integer. Implementations raise OracleError when the
    feed is stale or the answer is not positive.
    """

    def get_price(self) -> int:
        ...


@runtime_checkable
class CreditTierSource(Protocol):
    """Supplies the credit tier (0, 1, 2) for a borrower, or None if unscored."""

    def get_tier(self, borrower: Identity) -> Optional[int]:
        ...


@runtime_checkable
class CollateralCustody(Protocol):
    """
    Holds collateral on behalf of borrowers.

    The ledger never touches tokens directly; it only issues hold and
    release instructions. release() sends to the borrower unless a
    recipient (e.g. a liquidator) is given, and returns the amount moved.
    """

    def hold(self, borrower: Identity, amount: int) -> None:
        ...

    def release(self, borrower: Identity, amount: int, recipient: Optional[Identity] = None) -> int:
        ...


@runtime_checkable
class LiquidityPool(Protocol):
    """Debt-asset treasury that funds loans and receives repayments."""

    def balance(self) -> int:
        ...

    def disburse(self, to: Identity, amount: int) -> None:
        ...

    def collect(self, from_: Identity, amount: int) -> None:
        ...


# ============================================================================
# PARAMETER RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class TierParams:
    """
    Lending terms for one credit tier.

    Attributes:
        ltv_bps: Maximum loan-to-value at origination, in basis points.
        apr_bps: Annual interest rate fixed into new loans, in basis points.
    """
    ltv_bps: int
    apr_bps: int


@dataclass(frozen=True, slots=True)
class LiquidationParams:
    """
    Process-wide liquidation configuration.

    Attributes:
        threshold_bps: Stored and settable, never consulted by liquidate().
            Liquidation is gated only on health factor < 1.0.
        bonus_bps: Liquidator premium on seized collateral.
    """
    threshold_bps: int
    bonus_bps: int


# ============================================================================
# LOAN
# ============================================================================

@dataclass(frozen=True, slots=True)
class Loan:
    """
    Immutable snapshot of a loan record.

    Each state change produces a NEW instance (value semantics); the
    ledger swaps the stored snapshot only after every check and side
    effect of an operation has succeeded.

    Attributes:
        id: Sequential id assigned by the ledger, never reused.
        borrower: Borrower identity.
        collateral_amount: Posted collateral, smallest collateral units.
        debt_amount: Running balance in smallest debt units, including
            accrued-but-unpaid interest.
        interest_rate_bps: APR fixed at origination.
        created_at: Origination timestamp (seconds).
        last_accrued_at: Timestamp through which interest is in debt_amount.
        active: False once debt reaches exactly zero.
    """
    id: int
    borrower: Identity
    collateral_amount: int
    debt_amount: int
    interest_rate_bps: int
    created_at: int
    last_accrued_at: int
    active: bool = True

    def with_balances(
        self,
        debt_amount: Optional[int] = None,
        collateral_amount: Optional[int] = None,
        last_accrued_at: Optional[int] = None,
    ) -> Loan:
        """
        Return a copy with updated money-account fields.

        Write-once fields (id, borrower, rate, created_at) cannot be
        changed through this method. active follows debt_amount.
        """
        debt = self.debt_amount if debt_amount is None else debt_amount
        return replace(
            self,
            debt_amount=debt,
            collateral_amount=self.collateral_amount if collateral_amount is None else collateral_amount,
            last_accrued_at=self.last_accrued_at if last_accrued_at is None else last_accrued_at,
            active=self.active and debt > 0,
        )


@dataclass(frozen=True, slots=True)
class LoanHealth:
    """
    Point-in-time risk summary of a loan.

    Computed on demand against interest accrued up to `timestamp`
    without persisting the accrual.
    """
    loan_id: int
    timestamp: int
    price: int
    current_debt: int
    collateral_value: int
    debt_value: int
    health_factor: int

    @property
    def liquidatable(self) -> bool:
        return self.health_factor < WAD


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class LoanOpened:
    loan_id: int
    borrower: Identity
    collateral_amount: int
    debt_amount: int
    interest_rate_bps: int
    timestamp: int


@dataclass(frozen=True, slots=True)
class LoanRepaid:
    loan_id: int
    repay_amount: int
    remaining_debt: int
    timestamp: int


@dataclass(frozen=True, slots=True)
class LoanLiquidated:
    loan_id: int
    liquidator: Identity
    seized_collateral: int
    repay_amount: int
    timestamp: int


@dataclass(frozen=True, slots=True)
class TierParamsUpdated:
    tier: int
    ltv_bps: int
    apr_bps: int
    timestamp: int


@dataclass(frozen=True, slots=True)
class LiquidationParamsUpdated:
    threshold_bps: int
    bonus_bps: int
    timestamp: int


@dataclass(frozen=True, slots=True)
class PauseToggled:
    paused: bool
    caller: Identity
    timestamp: int


LedgerEvent = Union[
    LoanOpened, LoanRepaid, LoanLiquidated,
    TierParamsUpdated, LiquidationParamsUpdated, PauseToggled,
]


def require_amount(name: str, value: int, allow_zero: bool = False) -> int:
    """
    Validate an integer amount crossing the library boundary.

    bool is rejected even though it is an int subclass.

    Raises:
        InvalidAmount: If value is not an int, is negative, or is zero
            when allow_zero is False.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidAmount(f"{name} must be positive, got {value}")
    return value
