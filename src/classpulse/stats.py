"""Summary: Stats assembly, trend calculation and type filtering.

Importance: Turns raw window counts into the result object callers consume.
Alternatives: Let each caller compute totals and trends itself.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from classpulse.models import DailyBucket, StatsResult, TypeFilter


@dataclass(frozen=True)
class WindowCounts:
    """Summary: Sent and received counts for one time window.

    Importance: Unit of exchange between the aggregator and the assembler.
    Alternatives: Pass bare tuples of integers.
    """

    sent: int = 0
    received: int = 0

    @property
    def total(self) -> int:
        return self.sent + self.received


def trend(current: int, prior: int) -> int:
    """Summary: Signed percentage change from the prior period, rounded half up.

    Importance: A zero baseline reports 0 rather than an infinite increase.
    Alternatives: Report None when there is no prior data.
    """

    if prior <= 0:
        return 0
    change = (current - prior) * 100
    return (2 * change + prior) // (2 * prior)


def period_label(window_days: int) -> str:
    return f"{window_days} days"


def assemble(
    current: WindowCounts,
    prior: WindowCounts,
    daily: Sequence[DailyBucket],
    window_days: int,
) -> StatsResult:
    """Summary: Merge aggregator output into a StatsResult.

    Importance: The trend always uses unfiltered current and prior totals.
    Alternatives: Compute the trend lazily in the presentation layer.
    """

    return StatsResult(
        sent=current.sent,
        received=current.received,
        trend_percent=trend(current.total, prior.total),
        daily_breakdown=tuple(daily),
        period_label=period_label(window_days),
    )


def apply_type_filter(result: StatsResult, type_filter: TypeFilter | str) -> StatsResult:
    """Summary: Zero the non-selected direction after aggregation.

    Importance: Sent-only and received-only views reuse the same provider results.
    Alternatives: Issue a second, direction-specific aggregation.
    """

    selected = TypeFilter(type_filter)
    if selected is TypeFilter.SENT:
        return replace(
            result,
            received=0,
            daily_breakdown=tuple(replace(bucket, received_count=0) for bucket in result.daily_breakdown),
            type_filter=selected,
        )
    if selected is TypeFilter.RECEIVED:
        return replace(
            result,
            sent=0,
            daily_breakdown=tuple(replace(bucket, sent_count=0) for bucket in result.daily_breakdown),
            type_filter=selected,
        )
    return replace(result, type_filter=TypeFilter.ALL)
