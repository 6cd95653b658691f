"""Target allocation from smoothed market caps.

Ranks assets by a dampened, optionally re-weighted market cap and returns
them as unnormalized target weights. Normalization is left to the rebalance
engine, since some ranked assets may turn out not to be tradable on the
target exchange.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from decimal import Decimal

from capweight.config import MarketCapConfig
from capweight.logging import get_logger
from capweight.models.allocation import AbsoluteAllocation
from capweight.models.config import RebalanceConfig
from capweight.models.market import Market
from capweight.models.market_cap import MarketCapSample

logger = get_logger("allocation.calculator")


def compile_tag_pattern(tags: Iterable[str]) -> re.Pattern[str] | None:
    """Compile a pattern matching any of ``tags`` as a whole token.

    Tokens are delimited by ``-``, ``_`` or whitespace, and matching is
    case-insensitive, so ``"stablecoin"`` matches ``"usd-stablecoin"``.

    Returns:
        The compiled pattern, or None if ``tags`` is empty.
    """
    alternatives = [rf"^(.*[-_\s])?({re.escape(tag)})([-_\s].*)?$" for tag in tags if tag]
    if not alternatives:
        return None
    return re.compile("|".join(alternatives), re.IGNORECASE)


class TargetAllocationCalculator:
    """Compute ranked target weights from smoothed market-cap samples.

    Args:
        min_records: Minimum number of samples required; fewer means the
            market-cap history is incomplete and no ranking is produced.
        required_base_symbols: Assets that must be present for the data to
            be considered complete.
    """

    def __init__(
        self,
        min_records: int = 100,
        required_base_symbols: Sequence[str] = ("BTC",),
    ) -> None:
        self._min_records = min_records
        self._required = {symbol.upper() for symbol in required_base_symbols}

    @classmethod
    def from_config(cls, config: MarketCapConfig) -> TargetAllocationCalculator:
        """Create a calculator using the data sufficiency rules in ``config``."""
        return cls(
            min_records=config.min_records,
            required_base_symbols=config.required_base_symbols,
        )

    def has_sufficient_data(self, samples: Sequence[MarketCapSample]) -> bool:
        """Whether ``samples`` is complete enough to rank."""
        if len(samples) < self._min_records:
            return False
        present = {s.market.base_symbol for s in samples}
        return self._required <= present

    def compute(
        self,
        config: RebalanceConfig,
        samples: Sequence[MarketCapSample],
        current_assets: Iterable[Market] | None = None,
        full_ranking: bool = False,
    ) -> list[AbsoluteAllocation] | None:
        """Rank assets and return their target weights.

        Steps:
        1. Skip assets whose weighting factor is zero or negative.
        2. Unless the asset has an explicit weighting factor, keep it only if
           it carries one of ``config.tags_to_include`` (when any are set)
           and none of ``config.tags_to_ignore``.
        3. Weight = factor * market_cap ** (1 / nth_root).
        4. Sort descending by weight, with the weight of assets in
           ``current_assets`` multiplied by
           ``config.current_alloc_weighting_mult`` for ordering only.
        5. Keep the top ``config.top_ranking_count`` entries, unless
           ``full_ranking`` is set.

        The rebalance engine applies ``top_ranking_count`` itself after
        resolving market statuses, so its input should be the full ranking;
        otherwise there are no lower-ranked assets left to move up in place
        of untradable ones.

        Args:
            config: Rebalancing policy.
            samples: Smoothed samples, one per asset, for one quote currency.
            current_assets: Markets currently held.
            full_ranking: Return every ranked asset instead of the top entries.

        Returns:
            Target weights ordered by rank, or None if data is insufficient.
        """
        if not self.has_sufficient_data(samples):
            logger.warning(
                "insufficient_market_cap_data",
                records=len(samples),
                min_records=self._min_records,
                required=sorted(self._required),
            )
            return None

        include_pattern = compile_tag_pattern(config.tags_to_include)
        ignore_pattern = compile_tag_pattern(config.tags_to_ignore)
        held = set(current_assets or ())
        exponent = 1.0 / config.nth_root

        ranked: list[tuple[float, float, MarketCapSample]] = []
        for sample in samples:
            base_symbol = sample.market.base_symbol
            factor = config.weighting_factor(base_symbol)
            has_factor = factor is not None
            weighting = factor if has_factor else Decimal(1)

            if weighting <= 0:
                continue

            if not has_factor:
                if include_pattern is not None and not _has_matching_tag(include_pattern, sample):
                    logger.debug(
                        "asset_not_included_by_tag", base_symbol=base_symbol, tags=list(sample.tags)
                    )
                    continue
                if ignore_pattern is not None and _has_matching_tag(ignore_pattern, sample):
                    logger.debug(
                        "asset_ignored_by_tag", base_symbol=base_symbol, tags=list(sample.tags)
                    )
                    continue

            dampened = max(0.0, sample.market_cap) ** exponent
            weight = float(weighting) * dampened
            rank_weight = weight
            if sample.market in held:
                rank_weight *= config.current_alloc_weighting_mult
            ranked.append((rank_weight, weight, sample))

        ranked.sort(key=lambda item: item[0], reverse=True)
        if not full_ranking:
            ranked = ranked[: config.top_ranking_count]

        return [
            AbsoluteAllocation(
                market=sample.market,
                absolute_weight=Decimal(str(weight)),
            )
            for _, weight, sample in ranked
        ]


def _has_matching_tag(pattern: re.Pattern[str], sample: MarketCapSample) -> bool:
    return any(pattern.match(tag) for tag in sample.tags)


def compute_target_allocation(
    config: RebalanceConfig,
    samples: Sequence[MarketCapSample],
    min_records: int = 100,
    required_base_symbols: Sequence[str] = ("BTC",),
    current_assets: Iterable[Market] | None = None,
    full_ranking: bool = False,
) -> list[AbsoluteAllocation] | None:
    """Convenience wrapper around :meth:`TargetAllocationCalculator.compute`."""
    calculator = TargetAllocationCalculator(
        min_records=min_records, required_base_symbols=required_base_symbols
    )
    return calculator.compute(
        config, samples, current_assets=current_assets, full_ranking=full_ranking
    )
