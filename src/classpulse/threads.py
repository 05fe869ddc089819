"""Summary: Recent student conversation threads for display.

Importance: Shapes a bounded list of matching threads into ThreadSummary records.
Alternatives: Return raw provider thread payloads to the UI.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping

from classpulse.errors import MailProviderError
from classpulse.gmail import METADATA_HEADERS, MailProvider, header_map
from classpulse.models import Direction, ThreadSummary
from classpulse.query import compose


logger = logging.getLogger(__name__)

DEFAULT_THREAD_LIMIT = 10


class ThreadRetriever:
    """Summary: Lists matching threads and hydrates their metadata concurrently.

    Importance: A thread whose metadata cannot be fetched is dropped, not zero-filled.
    Alternatives: Fail the whole listing on the first bad thread.
    """

    def __init__(self, provider: MailProvider, domains: Iterable[str] = ()) -> None:
        self._provider = provider
        self._domains = tuple(domains)

    def query(self, keywords: Iterable[str] = ()) -> str:
        return compose(None, Direction.EITHER, self._domains, keywords)

    async def recent_threads(
        self, query: str, max_results: int = DEFAULT_THREAD_LIMIT
    ) -> list[ThreadSummary]:
        """Summary: Fetch up to ``max_results`` threads in provider order.

        Importance: Listing failures propagate; per-thread failures are filtered out.
        Alternatives: Re-sort threads by date locally.
        """

        if max_results < 1:
            raise ValueError("max_results must be at least 1")
        listing = await self._provider.list_threads(query, max_results)
        thread_ids = [item["id"] for item in listing.get("threads") or [] if item.get("id")]
        hydrated = await asyncio.gather(
            *(self._hydrate(thread_id) for thread_id in thread_ids[:max_results])
        )
        return [summary for summary in hydrated if summary is not None]

    async def _hydrate(self, thread_id: str) -> ThreadSummary | None:
        try:
            thread = await self._provider.get_thread_metadata(thread_id, METADATA_HEADERS)
            return summarize_thread(thread, fallback_id=thread_id)
        except (MailProviderError, ValueError) as exc:
            logger.warning("Dropping thread %s: %s", thread_id, getattr(exc, "kind", type(exc).__name__))
            return None


def summarize_thread(thread: Mapping[str, Any], fallback_id: str = "") -> ThreadSummary:
    """Summary: Build a ThreadSummary from the first message's headers.

    Importance: Mirrors how mail clients label a conversation.
    Alternatives: Use the latest message's headers instead.
    """

    messages = thread.get("messages") or []
    if not messages:
        raise ValueError("thread has no messages")
    first = messages[0]
    headers = header_map(first)
    return ThreadSummary(
        id=thread.get("id") or fallback_id,
        subject=headers.get("subject", ""),
        sender=headers.get("from", ""),
        recipients=headers.get("to", ""),
        date=headers.get("date", ""),
        message_count=len(messages),
        snippet=first.get("snippet", ""),
    )
