"""Summary: Core application services for ClassPulse.

Importance: Exposes the statistics, thread and case-note operations used by the API and CLI.
Alternatives: Call aggregators and stores directly from request handlers.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Iterable

from classpulse.aggregator import WindowAggregator, utc_now
from classpulse.classifier import StudentClassifier
from classpulse.gmail import MailProvider
from classpulse.models import CaseNote, CaseNoteStats, StatsResult, ThreadSummary, TypeFilter
from classpulse.stats import apply_type_filter
from classpulse.storage.case_notes import CaseNoteStore
from classpulse.threads import DEFAULT_THREAD_LIMIT, ThreadRetriever


logger = logging.getLogger(__name__)

CASE_NOTE_DATE_FORMAT = "%m/%d/%y"

ProviderFactory = Callable[[str], MailProvider]


@dataclass(frozen=True)
class CommunicationStatsService:
    """Summary: Caller-facing student communication statistics.

    Importance: Builds a request-scoped provider per bearer token and closes it afterwards.
    Alternatives: Share one provider across requests and users.
    """

    provider_factory: ProviderFactory
    domains: tuple[str, ...] = ()
    default_window_days: int = 30
    page_size: int = 500
    daily_page_size: int = 100
    thread_limit: int = DEFAULT_THREAD_LIMIT
    tz: tzinfo = timezone.utc
    clock: Callable[[], datetime] = utc_now

    async def get_stats(
        self,
        access_token: str,
        window_days: int | None = None,
        keywords: Iterable[str] = (),
        type_filter: TypeFilter | str = TypeFilter.ALL,
    ) -> StatsResult:
        """Summary: Aggregate student email statistics for a window.

        Importance: The type filter is applied after aggregation so the trend stays unfiltered.
        Alternatives: Push the type filter into provider queries.
        """

        selected = TypeFilter(type_filter)
        days = self.default_window_days if window_days is None else window_days
        provider = self.provider_factory(access_token)
        try:
            aggregator = WindowAggregator(
                provider,
                domains=self.domains,
                page_size=self.page_size,
                daily_page_size=self.daily_page_size,
                tz=self.tz,
                clock=self.clock,
            )
            result = await aggregator.aggregate(days, keywords)
        finally:
            await provider.close()
        return apply_type_filter(result, selected)

    async def get_recent_threads(
        self,
        access_token: str,
        keywords: Iterable[str] = (),
        max_results: int | None = None,
    ) -> list[ThreadSummary]:
        """Summary: Fetch recent student conversation threads.

        Importance: Shares the domain and keyword filters with the statistics query.
        Alternatives: List the whole inbox and classify locally.
        """

        provider = self.provider_factory(access_token)
        try:
            retriever = ThreadRetriever(provider, domains=self.domains)
            return await retriever.recent_threads(
                retriever.query(keywords), max_results or self.thread_limit
            )
        finally:
            await provider.close()

    async def classify_messages(
        self,
        access_token: str,
        message_ids: Iterable[str],
        keywords: Iterable[str] = (),
    ) -> list[str]:
        """Summary: Keep the message ids whose headers look student-related.

        Importance: Confirms individual messages against the configured allowlists.
        Alternatives: Trust the provider search and skip header checks.
        """

        classifier = StudentClassifier(domains=self.domains, keywords=tuple(keywords))
        provider = self.provider_factory(access_token)
        try:
            return await classifier.filter_ids(provider, message_ids)
        finally:
            await provider.close()

    async def email_stats(
        self, access_token: str, window_days: int | None = None, keywords: Iterable[str] = ()
    ) -> StatsResult:
        """Deprecated alias of ``get_stats`` kept for older dashboard clients."""

        return await self.get_stats(access_token, window_days, keywords)

    async def recent_email_threads(
        self, access_token: str, max_results: int | None = None
    ) -> list[ThreadSummary]:
        """Deprecated alias of ``get_recent_threads`` using the default keywords."""

        return await self.get_recent_threads(access_token, (), max_results)


@dataclass(frozen=True)
class CaseNoteService:
    """Summary: Validates, lists and summarizes advisor case notes.

    Importance: Keeps request validation out of the storage backends.
    Alternatives: Validate only in the HTTP layer.
    """

    store: CaseNoteStore
    today: Callable[[], date] = date.today

    def create(
        self,
        date_text: str,
        client_name: str,
        discussion: str,
        barriers: str = "",
        solutions: str = "",
        next_steps: str = "",
    ) -> CaseNote:
        """Summary: Validate and store a new case note.

        Importance: Date, client name and discussion are required.
        Alternatives: Accept partial notes and complete them later.
        """

        if not date_text or not date_text.strip():
            raise ValueError("Date is required")
        if not client_name or not client_name.strip():
            raise ValueError("Client name is required")
        if not discussion or not discussion.strip():
            raise ValueError("Discussion is required")
        parse_note_date(date_text.strip())
        note = CaseNote(
            id=f"case-note-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}",
            date=date_text.strip(),
            client_name=client_name.strip(),
            discussion=discussion.strip(),
            barriers=(barriers or "").strip(),
            solutions=(solutions or "").strip(),
            next_steps=(next_steps or "").strip(),
        )
        self.store.append(note)
        logger.info("Stored case note %s", note.id)
        return note

    def list(self, client_name: str | None = None) -> list[CaseNote]:
        """Summary: List notes newest date first, optionally filtered by client name."""

        notes = self.store.list()
        if client_name:
            needle = client_name.lower()
            notes = [note for note in notes if needle in note.client_name.lower()]
        return sorted(notes, key=lambda note: parse_note_date(note.date), reverse=True)

    def delete(self, note_id: str) -> bool:
        return self.store.delete(note_id)

    def stats(self) -> CaseNoteStats:
        notes = self.store.list()
        today = self.today()
        this_month = 0
        for note in notes:
            noted = parse_note_date(note.date)
            if noted.year == today.year and noted.month == today.month:
                this_month += 1
        return CaseNoteStats(total=len(notes), this_month=this_month)


def parse_note_date(raw: str) -> date:
    try:
        return datetime.strptime(raw, CASE_NOTE_DATE_FORMAT).date()
    except ValueError as exc:
        raise ValueError(f"Invalid case note date {raw!r}, expected MM/DD/YY") from exc
