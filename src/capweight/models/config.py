"""Per-user rebalancing policy."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class RebalanceConfig(BaseModel):
    """Rebalancing policy of a single user.

    Attributes:
        quote_takeout: Absolute amount of quote currency kept out of the allocation.
        quote_allocation: Percentage of the portfolio kept as quote currency.
        alt_weighting_factors: Per base symbol multiplier applied to the weight (default 1).
        tags_to_ignore: Assets carrying any of these tags are skipped.
        tags_to_include: If set, only assets carrying one of these tags are kept.
        top_ranking_count: Number of top-ranked assets to allocate to.
        smoothing: EMA lookback in daily periods.
        nth_root: Dampening exponent; values above 1 flatten market-cap dominance.
        current_alloc_weighting_mult: Ranking bias for assets already held; the
            reported weight is not affected.
        minimum_diff_quote: Minimum deviation in quote currency worth rebalancing.
        minimum_diff_allocation: Minimum deviation as percentage of the portfolio.
        automation_enabled: Whether an external scheduler may trigger runs.
        interval_hours: Minimum hours between automated runs.
        last_rebalance: UTC timestamp of the last completed run.
    """

    quote_takeout: Decimal = Field(default=Decimal(0), ge=0)
    quote_allocation: Decimal = Field(default=Decimal(0), ge=0, le=100)
    alt_weighting_factors: dict[str, Decimal] = Field(default_factory=dict)
    tags_to_ignore: list[str] = Field(default_factory=lambda: ["stablecoin"])
    tags_to_include: list[str] = Field(default_factory=list)
    top_ranking_count: int = Field(default=10, ge=0, le=70)
    smoothing: int = Field(default=8, ge=1, le=72)
    nth_root: float = Field(default=2.5, ge=1, le=25)
    current_alloc_weighting_mult: float = Field(default=1.0, ge=0)
    minimum_diff_quote: Decimal = Field(default=Decimal(5), ge=0)
    minimum_diff_allocation: Decimal = Field(default=Decimal(1), ge=0, le=100)
    automation_enabled: bool = False
    interval_hours: int = Field(default=6, ge=1, le=672)
    last_rebalance: datetime | None = None

    def weighting_factor(self, base_symbol: str) -> Decimal | None:
        """Explicit weighting factor for ``base_symbol``, if configured."""
        for symbol, factor in self.alt_weighting_factors.items():
            if symbol.upper() == base_symbol.upper():
                return factor
        return None
