"""Summary: Tests for the async Gmail provider and its helpers.

Importance: Ensures Gmail responses map onto the error taxonomy and retries are bounded.
Alternatives: Use integration tests with the live Gmail API.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import aiohttp
import pytest
from conftest import FIXED_NOW, parse_query

from classpulse.aggregator import WindowAggregator
from classpulse.errors import (
    AuthenticationExpired,
    MailProviderError,
    NetworkOrTransient,
    PermissionScope,
    ProviderTimeout,
    RateLimited,
)
from classpulse.gmail import GmailMailProvider, error_for_response, header_map, retry_delay


class _FakeResponse:
    def __init__(self, status: int, payload: Any, headers: dict[str, str] | None = None, delay: float = 0.0, tracker=None) -> None:
        self.status = status
        self._payload = payload
        self.headers = headers or {}
        self._delay = delay
        self._tracker = tracker

    async def __aenter__(self) -> "_FakeResponse":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def json(self, content_type: str | None = None) -> Any:
        if self._tracker is not None:
            self._tracker.enter()
        try:
            await asyncio.sleep(self._delay)
        finally:
            if self._tracker is not None:
                self._tracker.exit()
        return self._payload


class _FakeSession:
    """Summary: Minimal stand-in for aiohttp.ClientSession.get.

    Importance: Replays scripted responses and records request parameters.
    Alternatives: Run an aiohttp test server.
    """

    def __init__(self, outcomes: list[Any]) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[tuple[str, dict[str, str], list[tuple[str, str]]]] = []
        self.closed = False

    def get(self, url: str, headers: dict[str, str], params: list[tuple[str, str]]) -> _FakeResponse:
        self.calls.append((url, headers, params))
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


class _Tracker:
    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    def enter(self) -> None:
        self.active += 1
        self.peak = max(self.peak, self.active)

    def exit(self) -> None:
        self.active -= 1


def _provider(session: _FakeSession, sleeps: list[float], **kwargs: Any) -> GmailMailProvider:
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return GmailMailProvider(
        access_token="token-123",
        base_url="https://gmail.example/gmail/v1/",
        session=session,
        sleep=_sleep,
        **kwargs,
    )


@pytest.fixture(autouse=True)
def _no_jitter(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("classpulse.gmail.random.uniform", lambda low, high: 0.0)


def test_header_map_is_case_insensitive_and_first_wins() -> None:
    """Summary: Verify header parsing returns lower-cased names.

    Importance: Confirms Gmail headers are matched regardless of case.
    Alternatives: Access header list directly in parsing logic.
    """

    message = {
        "payload": {
            "headers": [
                {"name": "Subject", "value": "Hello"},
                {"name": "FROM", "value": "sender@example.com"},
                {"name": "subject", "value": "Ignored"},
            ]
        }
    }
    parsed = header_map(message)
    assert parsed["subject"] == "Hello"
    assert parsed["from"] == "sender@example.com"
    assert header_map({"headers": [{"name": "To", "value": "x@y.org"}]}) == {"to": "x@y.org"}


@pytest.mark.parametrize(
    ("status", "payload", "expected"),
    [
        (401, {}, AuthenticationExpired),
        (403, {}, PermissionScope),
        (403, {"error": {"errors": [{"reason": "userRateLimitExceeded"}]}}, RateLimited),
        (429, {}, RateLimited),
        (500, {}, NetworkOrTransient),
        (503, {}, NetworkOrTransient),
    ],
)
def test_error_for_response_maps_status(status: int, payload: dict, expected: type) -> None:
    error = error_for_response(status, payload)
    assert type(error) is expected
    assert error.status_code == status


def test_error_for_response_other_client_errors() -> None:
    error = error_for_response(404, {"error": {"message": "not found"}})
    assert type(error) is MailProviderError
    assert error.kind == "provider_error"


def test_retry_delay_is_capped() -> None:
    assert retry_delay(0, 0.5, 8.0) == 0.5
    assert retry_delay(2, 0.5, 8.0) == 2.0
    assert retry_delay(10, 0.5, 8.0) == 8.0


@pytest.mark.asyncio
async def test_list_messages_sends_query_and_token() -> None:
    session = _FakeSession([_FakeResponse(200, {"messages": [{"id": "a"}], "resultSizeEstimate": 1})])
    provider = _provider(session, [])
    listing = await provider.list_messages("in:sent", 500)
    assert listing["messages"] == [{"id": "a"}]
    url, headers, params = session.calls[0]
    assert url == "https://gmail.example/gmail/v1/users/me/messages"
    assert headers["Authorization"] == "Bearer token-123"
    assert ("q", "in:sent") in params
    assert ("maxResults", "500") in params


@pytest.mark.asyncio
async def test_empty_listing_defaults_to_no_messages() -> None:
    session = _FakeSession([_FakeResponse(200, {"resultSizeEstimate": 0})])
    listing = await _provider(session, []).list_messages("x", 10)
    assert listing["messages"] == []


@pytest.mark.asyncio
async def test_metadata_requests_repeat_header_params() -> None:
    session = _FakeSession([_FakeResponse(200, {"id": "t1", "messages": []})])
    await _provider(session, []).get_thread_metadata("t1", ("From", "Subject"))
    url, _, params = session.calls[0]
    assert url.endswith("/users/me/threads/t1")
    assert params == [("format", "metadata"), ("metadataHeaders", "From"), ("metadataHeaders", "Subject")]


@pytest.mark.asyncio
async def test_rate_limit_honors_retry_after() -> None:
    """Summary: A 429 with Retry-After sleeps that long and then succeeds.

    Importance: Backoff follows provider guidance when it is given.
    Alternatives: Always use exponential delays.
    """

    session = _FakeSession(
        [
            _FakeResponse(429, {}, headers={"Retry-After": "3"}),
            _FakeResponse(200, {"messages": []}),
        ]
    )
    sleeps: list[float] = []
    listing = await _provider(session, sleeps).list_messages("q", 5)
    assert listing == {"messages": []}
    assert sleeps == [3.0]
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_server_errors_back_off_exponentially() -> None:
    session = _FakeSession(
        [_FakeResponse(503, {}), _FakeResponse(502, {}), _FakeResponse(200, {"threads": []})]
    )
    sleeps: list[float] = []
    await _provider(session, sleeps, retry_base_delay=0.5).list_threads("q", 5)
    assert sleeps == [0.5, 1.0]


@pytest.mark.asyncio
async def test_retries_are_bounded() -> None:
    session = _FakeSession([_FakeResponse(500, {})])
    sleeps: list[float] = []
    with pytest.raises(NetworkOrTransient):
        await _provider(session, sleeps, max_retries=2).list_messages("q", 5)
    assert len(session.calls) == 3
    assert len(sleeps) == 2


@pytest.mark.asyncio
async def test_authentication_error_is_not_retried() -> None:
    session = _FakeSession([_FakeResponse(401, {"error": {"code": 401}})])
    sleeps: list[float] = []
    with pytest.raises(AuthenticationExpired):
        await _provider(session, sleeps).list_messages("q", 5)
    assert len(session.calls) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_connection_errors_become_transient() -> None:
    session = _FakeSession([aiohttp.ClientConnectionError("reset")])
    with pytest.raises(NetworkOrTransient):
        await _provider(session, [], max_retries=1).list_messages("q", 5)
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_deadline_raises_provider_timeout() -> None:
    session = _FakeSession([_FakeResponse(200, {}, delay=1.0)])
    with pytest.raises(ProviderTimeout):
        await _provider(session, [], timeout_seconds=0.01).list_messages("q", 5)
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_concurrency_is_bounded_by_semaphore() -> None:
    """Summary: At most max_concurrency requests are in flight at once.

    Importance: Protects the provider quota when the aggregator fans out.
    Alternatives: Rely on the HTTP connector limit.
    """

    tracker = _Tracker()
    session = _FakeSession([_FakeResponse(200, {"messages": []}, delay=0.01, tracker=tracker)])
    provider = _provider(session, [], max_concurrency=2)
    await asyncio.gather(*(provider.list_messages(f"q{index}", 5) for index in range(6)))
    assert tracker.peak == 2
    assert len(session.calls) == 6


@pytest.mark.asyncio
async def test_close_leaves_injected_session_open() -> None:
    session = _FakeSession([_FakeResponse(200, {})])
    async with _provider(session, []) as provider:
        await provider.list_messages("q", 1)
    assert session.closed is False


@pytest.mark.asyncio
async def test_non_object_body_is_a_transient_error() -> None:
    """Summary: A 2xx response whose JSON body is not an object is rejected.

    Importance: Callers always receive a mapping or a MailProviderError.
    Alternatives: Coerce unexpected bodies to an empty listing.
    """

    session = _FakeSession([_FakeResponse(200, [{"id": "x"}])])
    with pytest.raises(NetworkOrTransient):
        await _provider(session, [], max_retries=0).list_messages("q", 5)
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_undecodable_body_is_retried_then_succeeds() -> None:
    session = _FakeSession([_FakeResponse(200, None), _FakeResponse(200, {"messages": [{"id": "a"}]})])
    sleeps: list[float] = []
    listing = await _provider(session, sleeps).list_messages("q", 5)
    assert listing["messages"] == [{"id": "a"}]
    assert len(sleeps) == 1


class _RoutingSession(_FakeSession):
    """Summary: Session answering by query, with one day returning a list body."""

    def __init__(self, broken_after: int) -> None:
        super().__init__([])
        self._broken_after = broken_after

    def get(self, url: str, headers: dict[str, str], params: list[tuple[str, str]]) -> _FakeResponse:
        self.calls.append((url, headers, params))
        parsed = parse_query(dict(params)["q"])
        if parsed.after == self._broken_after:
            return _FakeResponse(200, [{"id": "x"}])
        return _FakeResponse(200, {"messages": [{"id": "a"}, {"id": "b"}]})


@pytest.mark.asyncio
async def test_malformed_daily_body_degrades_only_that_day() -> None:
    """Summary: A malformed body for one day zeroes that bucket and nothing else.

    Importance: Individual provider calls degrade instead of aborting aggregation.
    Alternatives: Surface the malformed body as a server error.
    """

    broken_day = datetime(2026, 10, 17, tzinfo=timezone.utc)
    session = _RoutingSession(int(broken_day.timestamp()))
    provider = _provider(session, [], max_retries=0)
    aggregator = WindowAggregator(provider, domains=("@school.org",), clock=lambda: FIXED_NOW)
    result = await aggregator.aggregate(30)
    assert (result.sent, result.received) == (2, 2)
    by_day = {bucket.date.isoformat(): bucket.total for bucket in result.daily_breakdown}
    assert by_day.pop("2026-10-17") == 0
    assert set(by_day.values()) == {4}
