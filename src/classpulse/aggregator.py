"""Summary: Concurrent windowed aggregation of student email counts.

Importance: Fans out window, prior-window and daily provider queries and reduces them.
Alternatives: Download every message once and bucket locally.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Iterable

from classpulse.errors import (
    AuthenticationExpired,
    MailProviderError,
    PermissionScope,
    ProviderTimeout,
    StatsUnavailable,
)
from classpulse.gmail import MailProvider
from classpulse.models import DailyBucket, Direction, QuerySpec, StatsResult, TimeWindow
from classpulse.policies import DegradeToZero
from classpulse.query import build_spec, render
from classpulse.stats import WindowCounts, assemble


logger = logging.getLogger(__name__)

BREAKDOWN_DAYS = 7
DEFAULT_PAGE_SIZE = 500
DEFAULT_DAILY_PAGE_SIZE = 100


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WindowAggregator:
    """Summary: Orchestrates the provider calls behind one statistics request.

    Importance: Current-window calls gate the request; everything else degrades to zero.
    Alternatives: Run every call with the same failure semantics.
    """

    def __init__(
        self,
        provider: MailProvider,
        domains: Iterable[str] = (),
        page_size: int = DEFAULT_PAGE_SIZE,
        daily_page_size: int = DEFAULT_DAILY_PAGE_SIZE,
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if page_size < 1 or daily_page_size < 1:
            raise ValueError("page sizes must be positive")
        self._provider = provider
        self._domains = tuple(domains)
        self._page_size = page_size
        self._daily_page_size = daily_page_size
        self._tz = tz
        self._clock = clock

    async def aggregate(self, window_days: int, keywords: Iterable[str] = ()) -> StatsResult:
        """Summary: Compute totals, trend and the seven-day breakdown.

        Importance: Raises only for credential failures or a fully failed current window.
        Alternatives: Return partial results with an error list.
        """

        if window_days < 1:
            raise ValueError("window_days must be at least 1")
        now = self._clock()
        current_window = TimeWindow(start=now - timedelta(days=window_days), end=now)
        base = build_spec(current_window, Direction.EITHER, self._domains, keywords)

        current = await self._current_counts(base)
        prior, daily = await asyncio.gather(
            self._degraded_counts(base.with_window(current_window.shifted_back()), "prior window"),
            self._daily_buckets(base, now),
        )
        result = assemble(current, prior, daily, window_days)
        logger.info(
            "Aggregated student email stats: total=%s sent=%s received=%s trend=%s",
            result.total,
            result.sent,
            result.received,
            result.trend_percent,
        )
        return result

    def day_windows(self, now: datetime) -> list[TimeWindow]:
        """Summary: Calendar-day windows for the last seven days, oldest first.

        Importance: The breakdown always ends with today regardless of window size.
        Alternatives: Use rolling 24-hour windows.
        """

        today = now.astimezone(self._tz).date()
        windows: list[TimeWindow] = []
        for days_back in range(BREAKDOWN_DAYS - 1, -1, -1):
            day = today - timedelta(days=days_back)
            start = datetime.combine(day, time.min, tzinfo=self._tz)
            end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=self._tz)
            windows.append(TimeWindow(start=start, end=end))
        return windows

    async def _current_counts(self, base: QuerySpec) -> WindowCounts:
        sent, received = await asyncio.gather(
            self._count(base.with_direction(Direction.SENT), self._page_size),
            self._count(base.with_direction(Direction.RECEIVED), self._page_size),
            return_exceptions=True,
        )
        outcomes = [sent, received]
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, MailProviderError):
                raise outcome
        for error_type in (AuthenticationExpired, PermissionScope):
            for outcome in outcomes:
                if isinstance(outcome, error_type):
                    raise outcome
        failures = [outcome for outcome in outcomes if isinstance(outcome, MailProviderError)]
        for failure in failures:
            if isinstance(failure, ProviderTimeout):
                raise StatsUnavailable(
                    "Timed out fetching current-window statistics", cause_kind=failure.kind
                ) from failure
        if len(failures) == len(outcomes):
            raise StatsUnavailable(
                "Failed to fetch student email stats", cause_kind=failures[0].kind
            ) from failures[0]
        for failure in failures:
            logger.warning("current window call degraded to zero: %s", failure.kind)
        return WindowCounts(
            sent=0 if isinstance(sent, MailProviderError) else sent,
            received=0 if isinstance(received, MailProviderError) else received,
        )

    async def _degraded_counts(
        self, spec: QuerySpec, label: str, page_size: int | None = None
    ) -> WindowCounts:
        cap = page_size or self._page_size
        sent, received = await asyncio.gather(
            self._degraded_count(spec.with_direction(Direction.SENT), cap, f"{label} sent"),
            self._degraded_count(spec.with_direction(Direction.RECEIVED), cap, f"{label} received"),
        )
        return WindowCounts(sent=sent, received=received)

    async def _daily_buckets(self, base: QuerySpec, now: datetime) -> list[DailyBucket]:
        windows = self.day_windows(now)
        counts = await asyncio.gather(
            *(
                self._degraded_counts(
                    base.with_window(window),
                    f"day {window.start.date().isoformat()}",
                    self._daily_page_size,
                )
                for window in windows
            )
        )
        return [
            DailyBucket(date=window.start.date(), sent_count=count.sent, received_count=count.received)
            for window, count in zip(windows, counts)
        ]

    async def _count(self, spec: QuerySpec, max_results: int) -> int:
        listing = await self._provider.list_messages(render(spec), max_results)
        return len(listing.get("messages") or [])

    async def _degraded_count(self, spec: QuerySpec, max_results: int, label: str) -> int:
        listing = await DegradeToZero(label).run(
            lambda: self._provider.list_messages(render(spec), max_results)
        )
        return len(listing.get("messages") or [])