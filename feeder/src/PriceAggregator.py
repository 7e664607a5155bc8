"""PriceAggregator: Concurrent multi-source fetching and fixed-point combination.

Algorithm:
    1. Fetch the asset price from every configured source concurrently
    2. Wait for all fetches to settle (one failing source never aborts others)
    3. Scale every successful reading to an 18-decimal integer
    4. Raise NoDataError if fewer than min_sources readings survived
    5. Combine the readings via mean or median, using exact integer arithmetic

.. code-block:: python

    >>> median([1, 2, 3, 4])
    2
    >>> mean([100000000000000000000, 100020000000000000000])
    100010000000000000000
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .errors import NoDataError
from .fixed_point import from_fixed, to_fixed

if TYPE_CHECKING:
    from .fetchers import BaseFetcher

logger = logging.getLogger(__name__)


def median(values: list[int]) -> int:
    """Median of fixed-point integers.

    Even-length inputs average the two middle values with truncating integer
    division.

    :param values: Non-empty list of integers.
    :returns: Median value.
    :raises NoDataError: If values is empty.
    """
    if not values:
        raise NoDataError("Cannot compute the median of no values")
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return _truncating_div(ordered[mid - 1] + ordered[mid], 2)
    return ordered[mid]


def mean(values: list[int]) -> int:
    """Arithmetic mean of fixed-point integers, truncated.

    :param values: Non-empty list of integers.
    :returns: Mean value.
    :raises NoDataError: If values is empty.
    """
    if not values:
        raise NoDataError("Cannot compute the mean of no values")
    return _truncating_div(sum(values), len(values))


def _truncating_div(numerator: int, denominator: int) -> int:
    # Truncate toward zero, unlike floor division on negatives
    quotient = abs(numerator) // denominator
    return quotient if numerator >= 0 else -quotient


class CombineMethod(str, Enum):
    """Rule used to fold readings into one price."""

    MEAN = "mean"
    MEDIAN = "median"

    def combine(self, values: list[int]) -> int:
        """Apply this rule to a list of fixed-point values."""
        if self is CombineMethod.MEDIAN:
            return median(values)
        return mean(values)


@dataclass(frozen=True)
class PriceReading:
    """One successful reading from a single source.

    :ivar source: Source name (e.g., "coingecko").
    :ivar price: Price scaled by 10**18.
    """

    source: str
    price: int


@dataclass(frozen=True)
class AggregatedPrice:
    """Price combined from one or more readings.

    :ivar value: Combined price scaled by 10**18.
    :ivar method: Combination rule that produced the value.
    :ivar readings: Readings the value was computed from.
    :ivar failed: Mapping of excluded source names to their error message.
    """

    value: int
    method: CombineMethod
    readings: tuple[PriceReading, ...]
    failed: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.readings:
            raise NoDataError("An aggregated price needs at least one reading")

    @classmethod
    def from_readings(
        cls,
        readings: list[PriceReading],
        method: CombineMethod,
        failed: dict[str, str] | None = None,
    ) -> AggregatedPrice:
        """Combine readings into an aggregated price.

        :param readings: Successful readings.
        :param method: Combination rule.
        :param failed: Optional mapping of failed sources to error text.
        :returns: AggregatedPrice instance.
        :raises NoDataError: If readings is empty.
        """
        if not readings:
            raise NoDataError("No price available from any source")
        value = method.combine([r.price for r in readings])
        return cls(
            value=value,
            method=method,
            readings=tuple(readings),
            failed=dict(failed or {}),
        )

    @property
    def sources(self) -> list[str]:
        """Names of the sources that contributed to the value."""
        return [r.source for r in self.readings]


class PriceAggregator:
    """Fetches an asset price from several sources and combines the readings.

    :ivar fetchers: Dict mapping source names to fetcher instances.
    :ivar method: Combination rule (mean or median).
    :ivar min_sources: Minimum successful readings required.
    :ivar fetch_timeout: Per-source timeout in seconds.
    """

    def __init__(
        self,
        fetchers: dict[str, BaseFetcher],
        method: CombineMethod | str = CombineMethod.MEAN,
        min_sources: int = 1,
        fetch_timeout: float = 10.0,
    ) -> None:
        """Initialize the aggregator.

        :param fetchers: Dict mapping source names to fetcher instances.
        :param method: Combination rule, "mean" (default) or "median".
        :param min_sources: Minimum number of successful readings (default: 1).
        :param fetch_timeout: Timeout applied to each source fetch (default: 10.0).
        :raises ValueError: If parameters are invalid.
        """
        if not fetchers:
            raise ValueError("At least one price source must be configured")
        if min_sources < 1:
            raise ValueError("min_sources must be at least 1")

        self.fetchers = fetchers
        self.method = CombineMethod(method)
        self.min_sources = min_sources
        self.fetch_timeout = fetch_timeout

    async def _fetch_source(self, source: str, asset: str) -> int:
        """Fetch one source and scale its price.

        :raises Exception: Whatever the fetcher raised, or asyncio.TimeoutError.
        """
        price = await asyncio.wait_for(
            self.fetchers[source].fetch(asset),
            timeout=self.fetch_timeout,
        )
        return to_fixed(price)

    async def collect(self, asset: str) -> tuple[list[PriceReading], dict[str, str]]:
        """Fetch every source and split the outcomes into readings and failures.

        :param asset: Asset symbol to price.
        :returns: Tuple of (successful readings, {source: error message}).
        """
        sources = list(self.fetchers)
        outcomes = await asyncio.gather(
            *(self._fetch_source(source, asset) for source in sources),
            return_exceptions=True,
        )

        readings: list[PriceReading] = []
        failed: dict[str, str] = {}
        for source, outcome in zip(sources, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                message = str(outcome) or type(outcome).__name__
                logger.warning(f"[{source}] Excluded from aggregation: {message}")
                failed[source] = message
            else:
                logger.info(f"[{source}] {asset}/usd = {from_fixed(outcome)}")
                readings.append(PriceReading(source=source, price=outcome))

        return readings, failed

    async def aggregate(self, asset: str) -> AggregatedPrice:
        """Fetch and combine the USD price of an asset.

        :param asset: Asset symbol to price.
        :returns: AggregatedPrice built from the surviving readings.
        :raises NoDataError: If fewer than min_sources readings succeeded.
        """
        readings, failed = await self.collect(asset)

        if len(readings) < self.min_sources:
            raise NoDataError(
                f"No price available for {asset}: {len(readings)} of "
                f"{len(self.fetchers)} sources answered, {self.min_sources} required"
            )

        result = AggregatedPrice.from_readings(readings, self.method, failed)
        logger.info(
            f"{asset}/usd: {from_fixed(result.value)} "
            f"({result.method.value} of {result.sources}"
            + (f", failed: {list(failed)}" if failed else "")
            + ")"
        )
        return result
