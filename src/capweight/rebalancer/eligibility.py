"""Decide whether a portfolio deviates enough to be worth rebalancing."""

from __future__ import annotations

from collections.abc import Iterable

from capweight.models import AllocationDiff, Balance, RebalanceConfig


def is_eligible_for_rebalance(
    config: RebalanceConfig,
    diffs: Iterable[AllocationDiff],
    balance: Balance,
) -> bool:
    """Whether any diff justifies a rebalance.

    A diff qualifies if its absolute value reaches both
    ``config.minimum_diff_quote`` and ``config.minimum_diff_allocation``
    percent of the portfolio, or if it would exit the position entirely.

    Args:
        config: Rebalancing policy.
        diffs: Allocation diffs computed against ``balance``.
        balance: Current balance.

    Returns:
        True if at least one diff qualifies.
    """
    total = balance.amount_quote_total
    min_share = config.minimum_diff_allocation / 100

    for diff in diffs:
        size = abs(diff.amount_quote_diff)
        if (
            size >= config.minimum_diff_quote
            and total != 0
            and size / total >= min_share
        ):
            return True
        if diff.price > 0 and diff.amount_quote_diff / diff.price == diff.amount:
            return True
    return False
