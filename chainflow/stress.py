"""
stress.py - Price-path stress testing for loans

Monte-Carlo geometric Brownian motion paths for the collateral price, and
the exact integer health-factor check applied along each path.

Floats appear only in path generation and in the closed-form barrier
probability. Every liquidation decision converts the simulated price to
an 18-decimal int first and goes through the same pure functions the
ledger uses, so a path flags a loan exactly when the ledger would.
"""

import math
import numpy as np
from dataclasses import dataclass
from typing import List, Optional
from scipy.special import ndtr

from .core import COLLATERAL_DECIMALS, DEBT_DECIMALS, SECONDS_PER_YEAR, WAD, Loan
from .fixed_point import to_wad
from .loans import (
    calculate_collateral_value,
    calculate_current_debt,
    calculate_debt_value,
    calculate_health_factor,
)


@dataclass(frozen=True)
class StressResult:
    """
    Outcome of a path scan.

    Attributes:
        probability: Fraction of paths on which HF fell below 1.0.
        first_hit_steps: Per path, the first step index with HF < 1.0, or None.
    """
    probability: float
    first_hit_steps: List[Optional[int]]

    @property
    def n_paths(self) -> int:
        return len(self.first_hit_steps)


def simulate_price_paths(
    initial_price: int,
    volatility: float,
    drift: float,
    horizon_seconds: int,
    steps: int,
    n_paths: int,
    seed: Optional[int] = None,
) -> np.ndarray:
    """
    Simulate GBM price paths in 18-decimal units.

    Args:
        initial_price: Starting price (18 decimals)
        volatility: Annualized volatility (e.g. 0.8 for 80%)
        drift: Annualized drift
        horizon_seconds: Total simulated time
        steps: Number of time steps
        n_paths: Number of paths
        seed: Seed for numpy's default_rng (reproducible when given)

    Returns:
        Float array of shape (n_paths, steps + 1); column 0 is the initial price.
    """
    if initial_price <= 0:
        raise ValueError(f"initial_price must be positive, got {initial_price}")
    if steps <= 0 or n_paths <= 0 or horizon_seconds <= 0:
        raise ValueError("steps, n_paths and horizon_seconds must be positive")
    if volatility < 0:
        raise ValueError(f"volatility cannot be negative, got {volatility}")

    rng = np.random.default_rng(seed)
    dt = horizon_seconds / steps / SECONDS_PER_YEAR
    shocks = rng.standard_normal((n_paths, steps))
    increments = (drift - 0.5 * volatility ** 2) * dt + volatility * math.sqrt(dt) * shocks
    log_paths = np.concatenate([np.zeros((n_paths, 1)), np.cumsum(increments, axis=1)], axis=1)
    return float(initial_price) * np.exp(log_paths)


def liquidation_price(
    loan: Loan,
    now: int,
    collateral_decimals: int = COLLATERAL_DECIMALS,
    debt_decimals: int = DEBT_DECIMALS,
) -> int:
    """
    Lowest 18-decimal price at which the loan is not liquidatable at `now`.

    Any price one unit lower gives HF < 1.0.
    """
    debt_value = calculate_debt_value(calculate_current_debt(loan, now), debt_decimals)
    collateral_wad = to_wad(loan.collateral_amount, collateral_decimals)
    if collateral_wad == 0:
        raise ValueError(f"Loan {loan.id} has no collateral")
    # ceil(debt_value * WAD / collateral_wad)
    return -(-debt_value * WAD // collateral_wad)


def liquidation_probability(
    loan: Loan,
    paths: np.ndarray,
    start_time: int,
    step_seconds: int,
    collateral_decimals: int = COLLATERAL_DECIMALS,
    debt_decimals: int = DEBT_DECIMALS,
) -> StressResult:
    """
    Fraction of price paths on which the loan becomes liquidatable.

    Column i of `paths` is the price at start_time + i * step_seconds;
    debt at each step includes interest accrued to that time.
    """
    n_steps = paths.shape[1]
    debt_values = [
        calculate_debt_value(
            calculate_current_debt(loan, start_time + i * step_seconds), debt_decimals
        )
        for i in range(n_steps)
    ]

    first_hits: List[Optional[int]] = []
    for row in paths:
        hit = None
        for i, raw_price in enumerate(row):
            price = int(raw_price)
            if price <= 0:
                hit = i
                break
            collateral_value = calculate_collateral_value(
                loan.collateral_amount, price, collateral_decimals
            )
            if calculate_health_factor(collateral_value, debt_values[i]) < WAD:
                hit = i
                break
        first_hits.append(hit)

    hits = sum(1 for h in first_hits if h is not None)
    return StressResult(probability=hits / len(first_hits), first_hit_steps=first_hits)


def barrier_hit_probability(
    initial_price: float,
    barrier: float,
    volatility: float,
    drift: float,
    horizon_years: float,
) -> float:
    """
    Closed-form probability that GBM touches a lower barrier within the horizon.

    Continuous monitoring, constant debt; a reference point for the
    Monte-Carlo estimate (which monitors discretely and so reads lower).
    """
    if barrier >= initial_price:
        return 1.0
    if barrier <= 0 or volatility == 0 or horizon_years <= 0:
        return 0.0
    mu = drift - 0.5 * volatility ** 2
    b = math.log(barrier / initial_price)
    sig_t = volatility * math.sqrt(horizon_years)
    first = ndtr((b - mu * horizon_years) / sig_t)
    second = math.exp(2.0 * mu * b / volatility ** 2) * ndtr((b + mu * horizon_years) / sig_t)
    return float(min(1.0, first + second))
