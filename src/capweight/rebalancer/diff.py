"""Target resolution and allocation diff computation."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from capweight.connectors.base import BaseExchange
from capweight.logging import get_logger
from capweight.models import (
    AbsoluteAllocation,
    AllocationDiff,
    Balance,
    Market,
    MarketStatus,
    RebalanceConfig,
)

logger = get_logger("rebalancer.diff")


def reserve_ratio(config: RebalanceConfig, amount_quote_total: Decimal) -> Decimal:
    """Fraction of the portfolio kept as quote currency.

    Combines the absolute takeout and the relative quote allocation, clamped
    to ``[0, 1]``. An empty portfolio reserves nothing.
    """
    if amount_quote_total == 0:
        return Decimal(0)
    ratio = config.quote_takeout / amount_quote_total + config.quote_allocation / 100
    return max(Decimal(0), min(Decimal(1), ratio))


async def resolve_market_status(
    exchange: BaseExchange, target: AbsoluteAllocation
) -> AbsoluteAllocation:
    """Fill in an unknown market status by asking ``exchange``.

    Targets whose status is already known are returned unchanged. If the
    exchange does not list the market the status stays ``UNKNOWN``.
    """
    if target.market_status is not MarketStatus.UNKNOWN:
        return target
    market = Market(exchange.quote_symbol, target.market.base_symbol)
    data = await exchange.get_market(market)
    return target.with_status(data.status if data is not None else MarketStatus.UNKNOWN)


async def top_ranking_targets(
    exchange: BaseExchange,
    targets: Iterable[AbsoluteAllocation],
    top_ranking_count: int,
) -> list[AbsoluteAllocation]:
    """Resolve statuses in rank order until ``top_ranking_count`` are known.

    Targets whose status stays unknown are dropped and do not count toward
    the quota, so lower-ranked assets move up in their place.

    Args:
        exchange: Exchange to resolve market statuses on.
        targets: Target weights ordered by rank.
        top_ranking_count: Number of targets with a known status to keep.

    Returns:
        At most ``top_ranking_count`` targets, all with a known status.
    """
    selected: list[AbsoluteAllocation] = []
    if top_ranking_count <= 0:
        return selected

    for target in targets:
        resolved = await resolve_market_status(exchange, target)
        if resolved.market_status is MarketStatus.UNKNOWN:
            logger.debug("target_status_unknown", market=str(target.market))
            continue
        selected.append(resolved)
        if len(selected) >= top_ranking_count:
            break

    return selected


def compute_allocation_diffs(
    targets: Sequence[AbsoluteAllocation],
    balance: Balance,
    config: RebalanceConfig,
    quote_symbol: str,
) -> list[AllocationDiff]:
    """Deviation of every current and target allocation from its target value.

    Only targets quoted in ``quote_symbol`` that are either trading or
    currently held take part in the weight total. That total is scaled by
    ``1 / (1 - reserve_ratio)`` so the reserved share of the portfolio stays
    in quote currency.

    A held asset whose target is present but not trading is left out
    entirely. A held asset without a target gets a target of zero, except
    the quote currency itself, whose target is the reserved share. A
    trading target that is not held yet yields a diff against zero.

    The quote currency's diff is taken against the reserved share rather
    than against zero, so a reviewed diff list shows cash above or below its
    reserve. Callers never trade that row; the engine skips quote markets.

    Args:
        targets: Unnormalized target weights.
        balance: Current balance snapshot; not modified.
        config: Rebalancing policy.
        quote_symbol: Quote currency of the exchange.

    Returns:
        One diff per held allocation, followed by one per missing target.
        Positive diffs are oversized, negative diffs undersized.
    """
    quote_symbol = quote_symbol.upper()

    included = [
        target
        for target in targets
        if (
            target.market_status is MarketStatus.TRADING
            or balance.get_allocation(target.market.base_symbol) is not None
        )
        and target.market.quote_symbol == quote_symbol
        and not target.market.is_quote_market
    ]
    total_weight = sum((target.absolute_weight for target in included), Decimal(0))

    amount_quote_total = balance.amount_quote_total
    reserved = reserve_ratio(config, amount_quote_total)
    divisor = 1 - reserved
    scaled_total = Decimal(0) if divisor == 0 else total_weight / divisor

    def target_value(target: AbsoluteAllocation | None) -> Decimal:
        if target is None or scaled_total == 0:
            return Decimal(0)
        return target.absolute_weight / scaled_total * amount_quote_total

    remaining = list(included)
    diffs: list[AllocationDiff] = []

    for allocation in balance:
        if allocation.market.base_symbol == quote_symbol:
            # Cash is measured against the reserved share of the portfolio.
            diffs.append(
                AllocationDiff(
                    market=allocation.market,
                    price=allocation.price,
                    amount=allocation.amount,
                    amount_quote=allocation.amount_quote,
                    amount_quote_diff=allocation.amount_quote - reserved * amount_quote_total,
                )
            )
            continue

        target = next((t for t in remaining if t.market == allocation.market), None)
        if target is not None:
            remaining.remove(target)
            if target.market_status is not MarketStatus.TRADING:
                continue

        diffs.append(
            AllocationDiff(
                market=allocation.market,
                price=allocation.price,
                amount=allocation.amount,
                amount_quote=allocation.amount_quote,
                amount_quote_diff=allocation.amount_quote - target_value(target),
            )
        )

    for target in remaining:
        if target.market_status is not MarketStatus.TRADING:
            continue
        diffs.append(
            AllocationDiff(
                market=target.market,
                price=Decimal(0),
                amount=Decimal(0),
                amount_quote=Decimal(0),
                amount_quote_diff=-target_value(target),
            )
        )

    return diffs
