"""
pricing_source.py - Price oracles and the oracle adapter

Provides the price side of collateral valuation.

Classes:
- StaticPriceOracle: Settable prices, one observation per asset
- TimeSeriesPriceOracle: Price paths with an as-of time
- OracleAdapter: Validates quotes and normalizes them to 18 decimals

Oracles return raw integer prices in their own decimals. Only the adapter
decides whether a quote is usable; the engine never reads an oracle directly.
"""

from datetime import datetime, timedelta
from typing import Dict, Optional, List, Tuple, Callable
from bisect import bisect_right

from .core import (
    OracleQuote, PriceOracle,
    DEFAULT_FEED_DECIMALS,
    OracleUnavailable, InvalidPrice, StalePrice,
)


EPOCH = datetime(1970, 1, 1)


class StaticPriceOracle:
    """
    Price oracle with settable prices (time-independent).

    Each asset has exactly one current observation. Updating a price replaces
    it and stamps it with the given observation time.

    Example:
        oracle = StaticPriceOracle({"WETH": 2000_00000000})
        oracle.latest_quote("WETH").price  # 200000000000
    """

    def __init__(
        self,
        prices: Optional[Dict[str, int]] = None,
        decimals: int = DEFAULT_FEED_DECIMALS,
        observed_at: Optional[datetime] = None,
    ):
        """
        Initialize with a static price map.

        Args:
            prices: Asset id -> integer price scaled by 10**decimals
            decimals: Decimals reported by this feed
            observed_at: Observation time stamped on the initial prices (default: epoch)
        """
        self.decimals = decimals
        self.quotes: Dict[str, OracleQuote] = {}
        for asset_id, price in (prices or {}).items():
            self.update_price(asset_id, price, observed_at)

    def latest_quote(self, asset_id: str) -> OracleQuote:
        quote = self.quotes.get(asset_id)
        if quote is None:
            raise OracleUnavailable(f"No price for {asset_id}")
        return quote

    def update_price(self, asset_id: str, price: int, observed_at: Optional[datetime] = None) -> None:
        """Replace the price of an asset."""
        self.quotes[asset_id] = OracleQuote(
            asset_id=asset_id,
            price=price,
            decimals=self.decimals,
            observed_at=observed_at or EPOCH,
        )

    def update_prices(self, prices: Dict[str, int], observed_at: Optional[datetime] = None) -> None:
        """Replace several prices at once."""
        for asset_id, price in prices.items():
            self.update_price(asset_id, price, observed_at)

    def __repr__(self):
        return f"StaticPriceOracle({len(self.quotes)} prices, decimals={self.decimals})"


class TimeSeriesPriceOracle:
    """
    Price oracle backed by historical observations.

    latest_quote() returns the most recent observation at or before the
    oracle's as-of time, or the most recent observation overall when no
    as-of time is set. Uses binary search over sorted timestamps.

    Example:
        oracle = TimeSeriesPriceOracle({
            'WETH': [(t0, 2000_00000000), (t1, 1800_00000000)],
        })
        oracle.set_time(t0)
        oracle.latest_quote('WETH').price  # 200000000000
    """

    def __init__(
        self,
        price_paths: Optional[Dict[str, List[Tuple[datetime, int]]]] = None,
        decimals: int = DEFAULT_FEED_DECIMALS,
        as_of: Optional[datetime] = None,
    ):
        self.decimals = decimals
        self.as_of = as_of
        self.price_history: Dict[str, List[Tuple[datetime, int]]] = {}

        if price_paths:
            for asset_id, path in price_paths.items():
                if not path:
                    continue
                self.price_history[asset_id] = sorted(path, key=lambda x: x[0])

    def add_price(self, asset_id: str, timestamp: datetime, price: int) -> None:
        """Add a price observation, keeping history in timestamp order."""
        history = self.price_history.setdefault(asset_id, [])
        history.append((timestamp, price))
        history.sort(key=lambda x: x[0])

    def set_time(self, as_of: Optional[datetime]) -> None:
        """Move the oracle's as-of time (None means latest observation)."""
        self.as_of = as_of

    def latest_quote(self, asset_id: str) -> OracleQuote:
        history = self.price_history.get(asset_id)
        if not history:
            raise OracleUnavailable(f"No price history for {asset_id}")

        if self.as_of is None:
            idx = len(history)
        else:
            timestamps = [ts for ts, _ in history]
            idx = bisect_right(timestamps, self.as_of)
        if idx == 0:
            raise OracleUnavailable(f"No price for {asset_id} at or before {self.as_of}")

        observed_at, price = history[idx - 1]
        return OracleQuote(
            asset_id=asset_id,
            price=price,
            decimals=self.decimals,
            observed_at=observed_at,
        )

    def __repr__(self):
        total = sum(len(history) for history in self.price_history.values())
        return f"TimeSeriesPriceOracle({len(self.price_history)} assets, {total} observations)"


class OracleAdapter:
    """
    Validates oracle quotes and normalizes them to 18-decimal fixed point.

    The adapter is the only component that reads from an oracle. It rejects
    non-positive prices, negative decimals and, when a maximum age is
    configured, quotes that are stale relative to the supplied clock.
    """

    def __init__(
        self,
        oracles: Dict[str, PriceOracle],
        clock: Callable[[], datetime],
        max_quote_age: Optional[timedelta] = None,
    ):
        """
        Args:
            oracles: Asset id -> oracle reference
            clock: Returns the current time used for staleness checks
            max_quote_age: Maximum accepted age of a quote (None disables the check)
        """
        self._oracles = oracles
        self._clock = clock
        self.max_quote_age = max_quote_age

    def oracle_for(self, asset_id: str) -> PriceOracle:
        oracle = self._oracles.get(asset_id)
        if oracle is None:
            raise OracleUnavailable(f"No oracle registered for {asset_id}")
        return oracle

    def quote(self, asset_id: str) -> OracleQuote:
        """
        Fetch and validate the latest quote for an asset.

        Raises:
            OracleUnavailable: No oracle is registered, or the oracle has no quote
            InvalidPrice: price <= 0 or decimals < 0
            StalePrice: max_quote_age is set and the quote is too old or from the future
        """
        quote = self.oracle_for(asset_id).latest_quote(asset_id)
        if quote.price <= 0:
            raise InvalidPrice(f"Invalid price for {asset_id}: {quote.price}")
        if quote.decimals < 0:
            raise InvalidPrice(f"Invalid feed decimals for {asset_id}: {quote.decimals}")

        if self.max_quote_age is not None:
            now = self._clock()
            if quote.observed_at > now:
                raise StalePrice(
                    f"Quote for {asset_id} observed in the future: {quote.observed_at} > {now}"
                )
            age = now - quote.observed_at
            if age > self.max_quote_age:
                raise StalePrice(
                    f"Quote for {asset_id} is {age} old (max {self.max_quote_age})"
                )
        return quote

    def normalized_price(self, asset_id: str) -> int:
        """Validated price of one whole asset unit in 18-decimal USD."""
        normalized = self.quote(asset_id).normalized_price()
        if normalized <= 0:
            # Feeds with more than 18 decimals can truncate a tiny price to zero.
            raise InvalidPrice(f"Price for {asset_id} truncates to zero at 18 decimals")
        return normalized
