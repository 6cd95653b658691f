"""Exponential moving average over daily market-cap candidates."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from capweight.models.market_cap import MarketCapSample


def ema(values: Sequence[float] | np.ndarray, lookback: int) -> float:
    """Final value of a standard exponential moving average.

    The series is seeded with the simple mean of the first ``lookback``
    values, then updated with ``k = 2 / (lookback + 1)``. The effective
    lookback is clamped to ``[1, len(values)]``.

    Args:
        values: Series ordered oldest first.
        lookback: Lookback period.

    Returns:
        The last EMA value, or 0.0 for an empty series.
    """
    series = np.asarray(values, dtype=float)
    if series.size == 0:
        return 0.0

    lookback = max(1, min(int(lookback), series.size))
    k = 2.0 / (lookback + 1)

    value = float(np.mean(series[:lookback]))
    for x in series[lookback:]:
        value += k * (float(x) - value)
    return value


def smooth_latest(candidates: Sequence[MarketCapSample], lookback: int) -> MarketCapSample | None:
    """Replace the newest candidate's market cap with the EMA of the series.

    Args:
        candidates: Daily candidates of one asset, newest first.
        lookback: EMA lookback period.

    Returns:
        Copy of the newest candidate carrying the smoothed market cap, or
        None if there are no candidates.
    """
    if not candidates:
        return None

    oldest_first = [c.market_cap for c in reversed(candidates)]
    return candidates[0].model_copy(update={"market_cap": ema(oldest_first, lookback)})
