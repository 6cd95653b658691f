"""Market-cap history sampling and smoothing."""

from capweight.marketcap.repository import InMemoryMarketCapRepository, MarketCapRepository
from capweight.marketcap.sampler import SamplingTolerance, daily_candidates
from capweight.marketcap.service import MarketCapService
from capweight.marketcap.smoothing import ema, smooth_latest

__all__ = [
    "InMemoryMarketCapRepository",
    "MarketCapRepository",
    "MarketCapService",
    "SamplingTolerance",
    "daily_candidates",
    "ema",
    "smooth_latest",
]
