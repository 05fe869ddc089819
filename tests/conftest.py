"""Summary: Shared fixtures for ClassPulse tests.

Importance: Provides an in-memory mail provider so tests never touch the network.
Alternatives: Record and replay live Gmail responses.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

import pytest

from classpulse.gmail import METADATA_HEADERS, MailProvider


FIXED_NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)

_RANGE = re.compile(r"after:(\d+) before:(\d+)")


@dataclass(frozen=True)
class ParsedQuery:
    after: int | None
    before: int | None
    direction: str


def parse_query(query: str) -> ParsedQuery:
    match = _RANGE.search(query)
    if query.endswith("-in:sent"):
        direction = "received"
    elif query.endswith("in:sent"):
        direction = "sent"
    else:
        direction = "either"
    if not match:
        return ParsedQuery(after=None, before=None, direction=direction)
    return ParsedQuery(after=int(match.group(1)), before=int(match.group(2)), direction=direction)


class FakeMailProvider(MailProvider):
    """Summary: In-memory provider driven by a resolver callback.

    Importance: Lets each test decide counts or failures per query.
    Alternatives: Patch aiohttp sessions in every test.
    """

    def __init__(
        self,
        resolver: Callable[[ParsedQuery], int | Exception] | None = None,
        threads: Iterable[tuple[str, dict[str, Any] | Exception]] = (),
        messages: dict[str, dict[str, Any] | Exception] | None = None,
        thread_list_error: Exception | None = None,
    ) -> None:
        self._resolver = resolver or (lambda parsed: 0)
        self._threads = list(threads)
        self._messages = messages or {}
        self._thread_list_error = thread_list_error
        self.message_queries: list[tuple[str, int]] = []
        self.thread_queries: list[tuple[str, int]] = []
        self.closed = False

    async def list_messages(self, query: str, max_results: int) -> dict[str, Any]:
        self.message_queries.append((query, max_results))
        outcome = self._resolver(parse_query(query))
        if isinstance(outcome, Exception):
            raise outcome
        count = min(outcome, max_results)
        return {"messages": [{"id": f"m{index}"} for index in range(count)]}

    async def list_threads(self, query: str, max_results: int) -> dict[str, Any]:
        self.thread_queries.append((query, max_results))
        if self._thread_list_error is not None:
            raise self._thread_list_error
        return {"threads": [{"id": thread_id} for thread_id, _ in self._threads[:max_results]]}

    async def get_message_metadata(
        self, message_id: str, headers: Iterable[str] = METADATA_HEADERS
    ) -> dict[str, Any]:
        outcome = self._messages[message_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def get_thread_metadata(
        self, thread_id: str, headers: Iterable[str] = METADATA_HEADERS
    ) -> dict[str, Any]:
        outcome = dict(self._threads)[thread_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


def gmail_message(sender: str = "", to: str = "", subject: str = "", date: str = "", snippet: str = "") -> dict[str, Any]:
    headers = [
        {"name": "From", "value": sender},
        {"name": "To", "value": to},
        {"name": "Subject", "value": subject},
        {"name": "Date", "value": date},
    ]
    return {"snippet": snippet, "payload": {"headers": headers}}


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW
