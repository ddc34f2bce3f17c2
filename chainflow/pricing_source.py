"""
pricing_source.py - Collateral price oracles

Provides price capabilities for the loan ledger. Every oracle returns the
price of one whole collateral token as an 18-decimal integer.

Classes:
- StaticPriceOracle: Fixed price, updatable by hand
- TimeSeriesPriceOracle: Time-varying prices with historical data
- MockPriceFeed: In-memory aggregator with configurable decimals
- PriceFeedRouter: Staleness-checked adapter from an aggregator feed

The router is what production wiring uses; the other oracles are for
simulation and tests.
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Tuple, runtime_checkable
import threading

from .core import OracleError


DEFAULT_MAX_STALENESS = 3600


class StaticPriceOracle:
    """
    Oracle with a static price (time-independent).

    The price stays constant until set_price() is called.
    """

    def __init__(self, price: int):
        self._price = price

    def get_price(self) -> int:
        if self._price <= 0:
            raise OracleError(f"Non-positive price {self._price}")
        return self._price

    def set_price(self, price: int) -> None:
        self._price = price

    def __repr__(self):
        return f"StaticPriceOracle({self._price})"


class TimeSeriesPriceOracle:
    """
    Oracle with time-varying prices.

    Uses the most recent observation at or before the clock time.

    Examples:
        # Batch initialization with a price path
        oracle = TimeSeriesPriceOracle([(0, 5 * 10**17), (86400, 4 * 10**17)], clock=lambda: ledger.current_time)

        # Incremental
        oracle = TimeSeriesPriceOracle(clock=lambda: ledger.current_time)
        oracle.add_price(0, 5 * 10**17)
    """

    def __init__(
        self,
        path: Optional[List[Tuple[int, int]]] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._clock = clock or (lambda: 0)
        self.history: List[Tuple[int, int]] = sorted(path or [], key=lambda x: x[0])

    def add_price(self, timestamp: int, price: int) -> None:
        """Add a price observation, keeping the history in time order."""
        self.history.append((timestamp, price))
        self.history.sort(key=lambda x: x[0])

    def price_at(self, timestamp: int) -> int:
        """
        Price at or before `timestamp`.

        Raises:
            OracleError: If no observation exists at or before the time,
                or the observed price is not positive.
        """
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            raise OracleError(f"No price available at or before {timestamp}")
        price = self.history[idx - 1][1]
        if price <= 0:
            raise OracleError(f"Non-positive price {price} at {timestamp}")
        return price

    def get_price(self) -> int:
        return self.price_at(self._clock())

    def __repr__(self):
        return f"TimeSeriesPriceOracle({len(self.history)} observations)"


# ============================================================================
# AGGREGATOR FEEDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class RoundData:
    """One answer from an aggregator feed."""
    answer: int
    updated_at: int


@runtime_checkable
class AggregatorFeed(Protocol):
    """Chainlink-style aggregator: latest answer plus its decimals."""

    decimals: int

    def latest_round_data(self) -> RoundData:
        ...


class MockPriceFeed:
    """Settable in-memory aggregator for local setups and tests."""

    def __init__(self, decimals: int = 18, clock: Optional[Callable[[], int]] = None):
        self.decimals = decimals
        self._clock = clock or (lambda: 0)
        self._round = RoundData(answer=0, updated_at=0)
        self._lock = threading.Lock()

    def set_price(self, answer: int, updated_at: Optional[int] = None) -> None:
        with self._lock:
            self._round = RoundData(
                answer=answer,
                updated_at=self._clock() if updated_at is None else updated_at,
            )

    def latest_round_data(self) -> RoundData:
        with self._lock:
            return self._round


class PriceFeedRouter:
    """
    Adapter from an aggregator feed to the PriceOracle capability.

    Rejects non-positive answers, rounds dated after the clock and answers
    older than max_staleness seconds, then normalizes the feed's decimals
    to 18. There is no fallback to a last-good price: callers retry once
    the feed is fresh.
    """

    def __init__(
        self,
        feed: AggregatorFeed,
        max_staleness: int = DEFAULT_MAX_STALENESS,
        clock: Optional[Callable[[], int]] = None,
    ):
        if feed.decimals < 0 or feed.decimals > 36:
            raise OracleError(f"Unsupported feed decimals {feed.decimals}")
        self.feed = feed
        self.max_staleness = max_staleness
        self._clock = clock or (lambda: 0)

    def get_price(self) -> int:
        data = self.feed.latest_round_data()
        if data.answer <= 0:
            raise OracleError(f"Invalid price answer {data.answer}")
        now = self._clock()
        if data.updated_at > now:
            raise OracleError(f"Price round dated {data.updated_at} is ahead of the clock ({now})")
        age = now - data.updated_at
        if age > self.max_staleness:
            raise OracleError(f"Stale price: updated {age}s ago (max {self.max_staleness}s)")
        if self.feed.decimals <= 18:
            return data.answer * 10 ** (18 - self.feed.decimals)
        price = data.answer // 10 ** (self.feed.decimals - 18)
        if price <= 0:
            raise OracleError(f"Price {data.answer} rounds to zero at 18 decimals")
        return price

    def __repr__(self):
        return f"PriceFeedRouter(decimals={self.feed.decimals}, max_staleness={self.max_staleness})"

