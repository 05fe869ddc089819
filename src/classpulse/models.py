"""Summary: Domain model dataclasses for ClassPulse.

Importance: Defines the request-scoped value objects shared by the statistics core.
Alternatives: Use Pydantic models or plain dictionaries throughout.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum


class Direction(str, Enum):
    """Summary: Message direction used when composing provider queries.

    Importance: Separates sent from received counts in a single search syntax.
    Alternatives: Query by label IDs instead of search operators.
    """

    SENT = "sent"
    RECEIVED = "received"
    EITHER = "either"


class TypeFilter(str, Enum):
    """Summary: Post-aggregation filter requested by the caller.

    Importance: Lets dashboards show sent-only or received-only figures.
    Alternatives: Push the filter into provider queries.
    """

    ALL = "all"
    SENT = "sent"
    RECEIVED = "received"


@dataclass(frozen=True)
class TimeWindow:
    """Summary: Half-open time interval ``[start, end)``.

    Importance: Drives the date-range clause of every provider query.
    Alternatives: Pass raw epoch seconds between components.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("TimeWindow start must be before end")

    def shifted_back(self) -> "TimeWindow":
        """Return the equal-length window immediately preceding this one."""

        length = self.end - self.start
        return TimeWindow(start=self.start - length, end=self.start)


@dataclass(frozen=True)
class QuerySpec:
    """Summary: Immutable description of a provider search.

    Importance: Keeps query composition deterministic and testable.
    Alternatives: Build query strings inline at each call site.
    """

    window: TimeWindow | None
    direction: Direction
    domain_filter: tuple[str, ...] = ()
    keyword_filter: tuple[str, ...] = ()

    def with_window(self, window: TimeWindow | None) -> "QuerySpec":
        return replace(self, window=window)

    def with_direction(self, direction: Direction) -> "QuerySpec":
        return replace(self, direction=direction)


@dataclass(frozen=True)
class DailyBucket:
    """Summary: One calendar day of sent and received counts.

    Importance: Feeds the seven-day breakdown chart.
    Alternatives: Return raw message timestamps and bucket in the UI.
    """

    date: date
    sent_count: int = 0
    received_count: int = 0

    @property
    def day(self) -> str:
        return self.date.strftime("%a")

    @property
    def total(self) -> int:
        return self.sent_count + self.received_count

    def to_dict(self) -> dict[str, str | int]:
        return {
            "date": self.date.isoformat(),
            "day": self.day,
            "sent": self.sent_count,
            "received": self.received_count,
        }


@dataclass(frozen=True)
class StatsResult:
    """Summary: Final communication statistics for one request.

    Importance: Single object consumed by the API, CLI and dashboards.
    Alternatives: Return loosely typed dictionaries from the aggregator.
    """

    sent: int
    received: int
    trend_percent: int
    daily_breakdown: tuple[DailyBucket, ...]
    period_label: str
    type_filter: TypeFilter = TypeFilter.ALL
    kind: str = "student_emails"

    @property
    def total(self) -> int:
        return self.sent + self.received

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "sent": self.sent,
            "received": self.received,
            "trend": self.trend_percent,
            "dailyBreakdown": [bucket.to_dict() for bucket in self.daily_breakdown],
            "period": self.period_label,
            "typeFilter": self.type_filter.value,
            "type": self.kind,
        }


@dataclass(frozen=True)
class ThreadSummary:
    """Summary: Display metadata for one matching conversation thread.

    Importance: Powers the recent student conversations list.
    Alternatives: Return raw provider thread payloads.
    """

    id: str
    subject: str
    sender: str
    recipients: str
    date: str
    message_count: int
    snippet: str = ""
    kind: str = "student_communication"

    def __post_init__(self) -> None:
        if self.message_count < 1:
            raise ValueError("ThreadSummary requires at least one message")

    def to_dict(self) -> dict[str, str | int]:
        return {
            "id": self.id,
            "subject": self.subject,
            "from": self.sender,
            "to": self.recipients,
            "date": self.date,
            "snippet": self.snippet,
            "messageCount": self.message_count,
            "type": self.kind,
        }


@dataclass(frozen=True)
class CaseNote:
    """Summary: Advisor case note about a client conversation.

    Importance: Captures discussion, barriers and next steps for follow-up.
    Alternatives: Store notes as free text in an external document.
    """

    id: str
    date: str
    client_name: str
    discussion: str
    barriers: str = ""
    solutions: str = ""
    next_steps: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "date": self.date,
            "clientName": self.client_name,
            "discussion": self.discussion,
            "barriers": self.barriers,
            "solutions": self.solutions,
            "nextSteps": self.next_steps,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class CaseNoteStats:
    """Summary: Counts shown above the case-note list."""

    total: int
    this_month: int

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "thisMonth": self.this_month}
