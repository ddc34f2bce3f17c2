"""
loans.py - Pure loan calculations

ARCHITECTURE (Pure Function Pattern):
=====================================

Every function here takes its inputs explicitly and returns a value.
No ledger, no collaborators, no hidden state. LoanLedger composes these
functions and is the only place that commits results.

Key Formulas (integer arithmetic, truncating division):
    interest         = debt * rate_bps * elapsed / (365 * 86400 * 10000)
    collateral_value = collateral * price / 1e18          (18-decimal USD)
    debt_value       = debt * 1e12                        (6 -> 18 decimals)
    max_debt         = collateral_value * ltv_bps / 10000
    health_factor    = collateral_value * 1e18 / debt_value   (1e18 == 1.0)
    seized           = (repay + repay * bonus_bps / 10000) * 1e12 * 1e18 / price

Accrual compounds at call granularity: each accrual adds simple interest
on the balance left by the previous one. Frequent accrual yields slightly
more interest than rare accrual. This is the contract behaviour and is
kept on purpose.
"""

from __future__ import annotations

from .core import (
    BPS, COLLATERAL_DECIMALS, DEBT_DECIMALS, MAX_HEALTH_FACTOR,
    SECONDS_PER_YEAR, WAD,
    ClockRegression, Loan, LoanHealth, OracleError,
)
from .fixed_point import bps_of, mul_div, to_wad, wad_scale


# ============================================================================
# INTEREST ACCRUAL
# ============================================================================

def calculate_interest(debt_amount: int, interest_rate_bps: int, elapsed: int) -> int:
    """
    Simple interest on debt_amount over `elapsed` seconds.

    Returns 0 for zero debt or zero elapsed time.
    """
    if debt_amount <= 0 or elapsed <= 0:
        return 0
    return debt_amount * interest_rate_bps * elapsed // (SECONDS_PER_YEAR * BPS)


def calculate_accrual(loan: Loan, now: int) -> Loan:
    """
    Roll interest up to `now` into the loan's debt.

    PURE FUNCTION - returns a new Loan (or the same one when nothing
    changes); the caller decides whether to persist it.

    No-op when debt is zero or when `now` equals last_accrued_at, so
    calling it twice at one timestamp is idempotent.

    Raises:
        ClockRegression: If now is before last_accrued_at.
    """
    if loan.debt_amount == 0:
        return loan
    elapsed = now - loan.last_accrued_at
    if elapsed < 0:
        raise ClockRegression(
            f"Loan {loan.id}: accrual time {now} precedes last accrual {loan.last_accrued_at}"
        )
    if elapsed == 0:
        return loan
    interest = calculate_interest(loan.debt_amount, loan.interest_rate_bps, elapsed)
    return loan.with_balances(
        debt_amount=loan.debt_amount + interest,
        last_accrued_at=now,
    )


def calculate_current_debt(loan: Loan, now: int) -> int:
    """Debt including interest accrued to `now`, without persisting it."""
    return calculate_accrual(loan, now).debt_amount


# ============================================================================
# VALUATION
# ============================================================================

def calculate_collateral_value(
    collateral_amount: int,
    price: int,
    collateral_decimals: int = COLLATERAL_DECIMALS,
) -> int:
    """
    18-decimal value of collateral at an 18-decimal price.

    The collateral amount is lifted to 18 decimals first, so tokens with
    fewer decimals value the same as their 18-decimal equivalent.
    """
    return mul_div(to_wad(collateral_amount, collateral_decimals), price, WAD)


def calculate_debt_value(debt_amount: int, debt_decimals: int = DEBT_DECIMALS) -> int:
    """18-decimal value of a debt amount (x1e12 at 6 decimals)."""
    return to_wad(debt_amount, debt_decimals)


def calculate_max_debt(collateral_value: int, ltv_bps: int) -> int:
    """Largest 18-decimal debt value allowed at origination."""
    return bps_of(collateral_value, ltv_bps)


def calculate_health_factor(collateral_value: int, debt_value: int) -> int:
    """
    collateral_value / debt_value scaled so that WAD (1e18) is 1.0.

    A debt-free position is infinitely healthy and returns
    MAX_HEALTH_FACTOR.
    """
    if debt_value == 0:
        return MAX_HEALTH_FACTOR
    return mul_div(collateral_value, WAD, debt_value)


def calculate_loan_health(
    loan: Loan,
    price: int,
    now: int,
    collateral_decimals: int = COLLATERAL_DECIMALS,
    debt_decimals: int = DEBT_DECIMALS,
) -> LoanHealth:
    """
    Health of a loan at `now` with interest accrued to that time.

    PURE FUNCTION - suitable for stress testing with hypothetical
    prices or future timestamps:
        health = calculate_loan_health(loan, price // 2, now + 30 * 86400)
    """
    current_debt = calculate_current_debt(loan, now)
    collateral_value = calculate_collateral_value(loan.collateral_amount, price, collateral_decimals)
    debt_value = calculate_debt_value(current_debt, debt_decimals)
    return LoanHealth(
        loan_id=loan.id,
        timestamp=now,
        price=price,
        current_debt=current_debt,
        collateral_value=collateral_value,
        debt_value=debt_value,
        health_factor=calculate_health_factor(collateral_value, debt_value),
    )


# ============================================================================
# LIQUIDATION
# ============================================================================

def calculate_seizure(
    repay_amount: int,
    bonus_bps: int,
    price: int,
    collateral_decimals: int = COLLATERAL_DECIMALS,
    debt_decimals: int = DEBT_DECIMALS,
) -> int:
    """
    Collateral (native units) owed to a liquidator who repays `repay_amount`.

    The debt amount plus bonus is lifted to 18 decimals and multiplied by
    WAD before the single division by price, so precision is lost only
    once.

    Example:
        # 10 USDC repaid, 5% bonus, price 0.5 -> 21 WMATIC
        calculate_seizure(10_000_000, 500, 5 * 10**17) == 21 * 10**18
    """
    if price <= 0:
        raise OracleError(f"Price must be positive, got {price}")
    seized_debt_units = repay_amount + bps_of(repay_amount, bonus_bps)
    numerator = seized_debt_units * wad_scale(debt_decimals) * WAD
    return numerator // (price * wad_scale(collateral_decimals))


def calculate_max_coverable_repay(
    collateral_amount: int,
    bonus_bps: int,
    price: int,
    collateral_decimals: int = COLLATERAL_DECIMALS,
    debt_decimals: int = DEBT_DECIMALS,
) -> int:
    """
    Largest repay amount whose seizure (with bonus) fits in the collateral.

    Used by keepers to size a partial liquidation of an underwater loan.
    Starts from the algebraic inverse of calculate_seizure, then steps to
    the exact truncated maximum (the estimate can be off by a unit either
    way).
    """
    if price <= 0:
        raise OracleError(f"Price must be positive, got {price}")
    value_limit = collateral_amount * price * wad_scale(collateral_decimals)
    repay = value_limit * BPS // (wad_scale(debt_decimals) * WAD * (BPS + bonus_bps))

    def fits(amount: int) -> bool:
        return calculate_seizure(
            amount, bonus_bps, price, collateral_decimals, debt_decimals
        ) <= collateral_amount

    while fits(repay + 1):
        repay += 1
    while repay > 0 and not fits(repay):
        repay -= 1
    return repay
