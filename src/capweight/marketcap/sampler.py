"""Daily candidate selection from irregularly collected market-cap samples.

Snapshots are collected roughly hourly, with jitter. For smoothing we want
one sample per ~24h slot, each as close as possible to exactly one day
before the previously selected sample. The scan is greedy and single pass:
once a sample has been emitted for a slot it is never revisited.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from capweight.models.market_cap import MarketCapSample, as_utc

MINUTES_PER_DAY = 1440


@dataclass(frozen=True)
class SamplingTolerance:
    """Timing tolerance around the one-day mark.

    Attributes:
        early_minutes: How much earlier than the ideal mark a sample may be.
        late_minutes: How much later than the ideal mark a sample may be.
    """

    early_minutes: float = 6.0
    late_minutes: float = 9.0

    def is_broad_candidate(self, offset_minutes: float) -> bool:
        """Whether a sample is not yet older than about one day past the anchor."""
        return offset_minutes >= -MINUTES_PER_DAY - self.late_minutes - self.early_minutes

    def is_tight_match(self, offset_minutes: float) -> bool:
        """Whether a sample lies close to exactly one day before the anchor."""
        return self.is_broad_candidate(offset_minutes) and (
            offset_minutes <= -MINUTES_PER_DAY + self.early_minutes + self.late_minutes
        )


def _offset_minutes(updated: datetime, anchor: datetime) -> float:
    return (updated - anchor).total_seconds() / 60


def daily_candidates(
    samples: Sequence[MarketCapSample],
    tolerance: SamplingTolerance | None = None,
    now: datetime | None = None,
) -> Iterator[MarketCapSample]:
    """Yield at most one sample per ~24h slot, newest first.

    Args:
        samples: Samples of one asset ordered strictly descending by ``updated``.
        tolerance: Timing tolerance; defaults to 6 minutes early, 9 minutes late.
        now: Initial anchor; defaults to the current UTC time. A naive value
            is taken to be UTC.

    Yields:
        The winning sample of each slot. Iteration stops at the first gap
        that cannot be bridged (no sample within the broad window).
    """
    tolerance = tolerance or SamplingTolerance()
    anchor = as_utc(now) if now is not None else datetime.now(UTC)
    anchored = False
    candidate: MarketCapSample | None = None

    i = 0
    while i < len(samples):
        sample = samples[i]
        offset = _offset_minutes(sample.updated, anchor)
        is_broad = tolerance.is_broad_candidate(offset)

        if is_broad:
            candidate = sample
            # Keep looking for a sample nearer to the one-day mark.
            if anchored and not tolerance.is_tight_match(offset):
                i += 1
                continue

        if candidate is None:
            break

        yield candidate
        anchor = candidate.updated
        anchored = True
        candidate = None

        # A sample outside the window is re-evaluated against the new anchor.
        if is_broad:
            i += 1
