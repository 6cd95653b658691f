"""Market-cap history repository contract and an in-memory implementation."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable

from capweight.models.market_cap import MarketCapSample, as_utc


@runtime_checkable
class MarketCapRepository(Protocol):
    """Read access to collected market-cap history.

    Persistence backends (SQL, document stores) implement this protocol
    outside of this package.
    """

    async def list_historical_many(
        self, quote_symbol: str, lookback_days: int
    ) -> list[list[MarketCapSample]]:
        """List recent history for every asset quoted in ``quote_symbol``.

        Args:
            quote_symbol: Quote currency of the markets to list.
            lookback_days: How many days of history to include.

        Returns:
            One list per asset, each ordered descending by ``updated``.
        """
        ...


class InMemoryMarketCapRepository:
    """Market-cap history held in memory, for tests and offline runs.

    Args:
        samples: Initial samples in any order.
        now: Fixed reference time; defaults to the current UTC time per query.
    """

    def __init__(self, samples: Iterable[MarketCapSample] = (), now: datetime | None = None) -> None:
        self._samples: list[MarketCapSample] = list(samples)
        self._now = now

    def add(self, sample: MarketCapSample) -> None:
        self._samples.append(sample)

    def add_many(self, samples: Iterable[MarketCapSample]) -> None:
        self._samples.extend(samples)

    async def list_historical_many(
        self, quote_symbol: str, lookback_days: int
    ) -> list[list[MarketCapSample]]:
        # Cutoff is whole days, inclusive; sampler tolerances do not widen it.
        now = as_utc(self._now) if self._now is not None else datetime.now(UTC)
        cutoff = now - timedelta(days=lookback_days)
        quote_symbol = quote_symbol.upper()

        groups: dict[str, list[MarketCapSample]] = {}
        for sample in self._samples:
            if sample.market.quote_symbol != quote_symbol or sample.updated < cutoff:
                continue
            groups.setdefault(sample.market.base_symbol, []).append(sample)

        return [
            sorted(group, key=lambda s: s.updated, reverse=True)
            for group in groups.values()
        ]
