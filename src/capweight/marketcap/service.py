"""Smoothed latest market caps, combining repository, sampler and EMA."""

from __future__ import annotations

from datetime import datetime

from capweight.config import MarketCapConfig
from capweight.logging import get_logger
from capweight.marketcap.repository import MarketCapRepository
from capweight.marketcap.sampler import SamplingTolerance, daily_candidates
from capweight.marketcap.smoothing import smooth_latest
from capweight.models.market_cap import MarketCapSample

logger = get_logger("marketcap.service")


class MarketCapService:
    """Produce one smoothed market-cap sample per asset.

    Args:
        repository: Source of raw market-cap history.
        tolerance: Sampling tolerance around the one-day mark.
    """

    def __init__(
        self,
        repository: MarketCapRepository,
        tolerance: SamplingTolerance | None = None,
    ) -> None:
        self._repository = repository
        self._tolerance = tolerance or SamplingTolerance()

    @classmethod
    def from_config(
        cls, repository: MarketCapRepository, config: MarketCapConfig
    ) -> MarketCapService:
        """Create a service using the sampling tolerances in ``config``."""
        return cls(
            repository,
            tolerance=SamplingTolerance(
                early_minutes=config.early_tolerance_minutes,
                late_minutes=config.late_tolerance_minutes,
            ),
        )

    @property
    def tolerance(self) -> SamplingTolerance:
        return self._tolerance

    async def list_daily_candidates(
        self, quote_symbol: str, lookback_days: int, now: datetime | None = None
    ) -> list[list[MarketCapSample]]:
        """Daily candidates for every asset, newest first per asset."""
        history = await self._repository.list_historical_many(quote_symbol, lookback_days)
        return [
            list(daily_candidates(samples, self._tolerance, now=now))
            for samples in history
        ]

    async def list_latest(
        self, quote_symbol: str, smoothing: int, now: datetime | None = None
    ) -> list[MarketCapSample]:
        """Latest sample of each asset with its market cap EMA-smoothed.

        Args:
            quote_symbol: Quote currency of the markets.
            smoothing: EMA lookback in daily periods.
            now: Anchor for the first daily slot; defaults to current UTC time.

        Returns:
            One sample per asset, sorted by smoothed market cap descending.
            Assets without any daily candidate are left out.
        """
        candidates_many = await self.list_daily_candidates(quote_symbol, smoothing + 1, now=now)

        latest: list[MarketCapSample] = []
        for candidates in candidates_many:
            smoothed = smooth_latest(candidates, smoothing)
            if smoothed is not None:
                latest.append(smoothed)

        latest.sort(key=lambda s: s.market_cap, reverse=True)

        logger.debug(
            "market_caps_smoothed",
            quote_symbol=quote_symbol,
            smoothing=smoothing,
            assets=len(latest),
        )
        return latest
