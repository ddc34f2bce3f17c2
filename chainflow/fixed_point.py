"""
fixed_point.py - Integer fixed-point helpers

Every boundary computation in the ledger (LTV gate, health factor,
seizure) runs on Python ints with truncating division, matching the
contract arithmetic it replaces. Floats are never used here.
"""

from __future__ import annotations

from .core import BPS, ConfigurationError

MAX_DECIMALS = 18


def _check_decimals(decimals: int) -> None:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise ConfigurationError(f"decimals must be an integer, got {decimals!r}")
    if decimals < 0 or decimals > MAX_DECIMALS:
        raise ConfigurationError(f"decimals must be in [0, {MAX_DECIMALS}], got {decimals}")


def wad_scale(decimals: int) -> int:
    """Factor that lifts a `decimals`-precision amount to 18 decimals."""
    _check_decimals(decimals)
    return 10 ** (MAX_DECIMALS - decimals)


def to_wad(amount: int, decimals: int) -> int:
    """
    Normalize a native-decimal amount to the 18-decimal basis.

    Example:
        to_wad(35_000_000, 6) == 35 * 10**18
    """
    return amount * wad_scale(decimals)


def from_wad(amount_wad: int, decimals: int) -> int:
    """Convert an 18-decimal amount back to native decimals, truncating."""
    return amount_wad // wad_scale(decimals)


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    Compute a * b / denominator with truncation toward zero.

    Inputs are non-negative in every ledger call site, so floor
    division and truncation agree.
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    return a * b // denominator


def bps_of(amount: int, bps: int) -> int:
    """Return amount * bps / 10000, truncated."""
    return mul_div(amount, bps, BPS)
