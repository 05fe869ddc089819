"""Summary: Mail provider interface and async Gmail REST implementation.

Importance: Encapsulates every network call the statistics core makes.
Alternatives: Use the google-api-python-client discovery SDK.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable, Mapping

import aiohttp

from classpulse.errors import (
    AuthenticationExpired,
    MailProviderError,
    NetworkOrTransient,
    PermissionScope,
    ProviderTimeout,
    RateLimited,
)


logger = logging.getLogger(__name__)

METADATA_HEADERS = ("From", "To", "Subject", "Date")
RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded", "quotaExceeded"}
TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class MailProvider(ABC):
    """Summary: Abstract interface for mailbox search and metadata.

    Importance: Lets the aggregator run against Gmail or an in-memory fake.
    Alternatives: Call the Gmail client directly from services.
    """

    @abstractmethod
    async def list_messages(self, query: str, max_results: int) -> dict[str, Any]:
        """Summary: List message ids matching a search query.

        Importance: Counts are the length of the returned ``messages`` list.
        Alternatives: Use the provider's result-size estimate.
        """

    @abstractmethod
    async def list_threads(self, query: str, max_results: int) -> dict[str, Any]:
        """Summary: List thread ids matching a search query."""

    @abstractmethod
    async def get_message_metadata(
        self, message_id: str, headers: Iterable[str] = METADATA_HEADERS
    ) -> dict[str, Any]:
        """Summary: Fetch header metadata for one message."""

    @abstractmethod
    async def get_thread_metadata(
        self, thread_id: str, headers: Iterable[str] = METADATA_HEADERS
    ) -> dict[str, Any]:
        """Summary: Fetch header metadata for every message in a thread."""

    async def close(self) -> None:
        return None


class GmailMailProvider(MailProvider):
    """Summary: Reads Gmail search results via the REST API using a bearer token.

    Importance: Bounds concurrency and backs off on rate limits for one request.
    Alternatives: Use IMAP search or a provider SDK.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str,
        max_concurrency: int = 8,
        timeout_seconds: float = 15.0,
        max_retries: int = 3,
        retry_base_delay: float = 0.5,
        retry_max_delay: float = 8.0,
        session: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Summary: Initialize the Gmail provider.

        Importance: The token is read-only shared state for every call in the request.
        Alternatives: Refresh tokens lazily inside the provider.
        """

        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep

    async def __aenter__(self) -> "GmailMailProvider":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def list_messages(self, query: str, max_results: int) -> dict[str, Any]:
        params = [("q", query), ("maxResults", str(max_results))]
        payload = await self._get("/users/me/messages", params)
        payload.setdefault("messages", [])
        return payload

    async def list_threads(self, query: str, max_results: int) -> dict[str, Any]:
        params = [("q", query), ("maxResults", str(max_results))]
        payload = await self._get("/users/me/threads", params)
        payload.setdefault("threads", [])
        return payload

    async def get_message_metadata(
        self, message_id: str, headers: Iterable[str] = METADATA_HEADERS
    ) -> dict[str, Any]:
        params = [("format", "metadata")] + [("metadataHeaders", name) for name in headers]
        return await self._get(f"/users/me/messages/{message_id}", params)

    async def get_thread_metadata(
        self, thread_id: str, headers: Iterable[str] = METADATA_HEADERS
    ) -> dict[str, Any]:
        params = [("format", "metadata")] + [("metadataHeaders", name) for name in headers]
        return await self._get(f"/users/me/threads/{thread_id}", params)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout_seconds)
            )
            self._owns_session = True
        return self._session

    async def _get(self, path: str, params: list[tuple[str, str]]) -> dict[str, Any]:
        """Summary: Issue a GET with bounded concurrency, deadline and backoff.

        Importance: Rate-limit and 5xx responses are retried; credential errors are not.
        Alternatives: Retry every failure uniformly.
        """

        url = f"{self._base_url}{path}"
        headers = {"Authorization": f"Bearer {self._access_token}", "Accept": "application/json"}
        attempt = 0
        while True:
            try:
                async with self._semaphore:
                    status, payload, retry_after = await asyncio.wait_for(
                        self._request(url, headers, params), timeout=self._timeout_seconds
                    )
            except asyncio.TimeoutError as exc:
                raise ProviderTimeout(f"Gmail request timed out: {path}") from exc
            except aiohttp.ClientError as exc:
                error: MailProviderError = NetworkOrTransient(
                    f"Gmail network error: {type(exc).__name__}"
                )
                retry_after = None
            else:
                if 200 <= status < 300 and isinstance(payload, dict):
                    return payload
                if 200 <= status < 300:
                    error = NetworkOrTransient(
                        f"Gmail returned a malformed response body: {path}", status
                    )
                else:
                    error = error_for_response(status, payload)
            if not isinstance(error, NetworkOrTransient) or attempt >= self._max_retries:
                raise error
            delay = retry_after if retry_after is not None else retry_delay(
                attempt, self._retry_base_delay, self._retry_max_delay
            )
            delay += random.uniform(0, self._retry_base_delay)
            logger.warning(
                "Gmail %s on attempt %s/%s, retrying in %.2fs",
                error.kind,
                attempt + 1,
                self._max_retries + 1,
                delay,
            )
            await self._sleep(delay)
            attempt += 1

    async def _request(
        self, url: str, headers: dict[str, str], params: list[tuple[str, str]]
    ) -> tuple[int, Any, float | None]:
        session = self._get_session()
        async with session.get(url, headers=headers, params=params) as response:
            try:
                payload = await response.json(content_type=None)
            except ValueError:
                payload = None
            return response.status, payload, _parse_retry_after(response.headers)


def error_for_response(status: int, payload: Mapping[str, Any]) -> MailProviderError:
    """Summary: Map a non-2xx Gmail response onto the error taxonomy.

    Importance: Separates re-authentication, re-consent and retryable failures.
    Alternatives: Inspect provider error text at the call site.
    """

    error_info = payload.get("error") if isinstance(payload, Mapping) else None
    reasons: set[str] = set()
    if isinstance(error_info, Mapping):
        for item in error_info.get("errors") or []:
            reason = item.get("reason") if isinstance(item, Mapping) else None
            if reason:
                reasons.add(reason)
    details = {"status": status, "reasons": sorted(reasons)}
    if status == 401:
        return AuthenticationExpired("Invalid or expired authentication token", status, details)
    if status == 403:
        if reasons & RATE_LIMIT_REASONS:
            return RateLimited("Gmail rate limit exceeded", status, details)
        return PermissionScope("Token lacks the required Gmail scope", status, details)
    if status == 429:
        return RateLimited("Gmail rate limit exceeded", status, details)
    if status in TRANSIENT_STATUS_CODES or status >= 500:
        return NetworkOrTransient(f"Gmail service error ({status})", status, details)
    return MailProviderError(f"Gmail request failed ({status})", status, details)


def retry_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    return min(base_delay * (2**attempt), max_delay)


def _parse_retry_after(headers: Mapping[str, str]) -> float | None:
    raw = headers.get("Retry-After") if headers else None
    if not raw:
        return None
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return None


def header_map(message: Mapping[str, Any]) -> dict[str, str]:
    """Summary: Normalize Gmail header lists into a lower-cased dictionary.

    Importance: Header names are matched case-insensitively.
    Alternatives: Scan header lists inline for each field.
    """

    payload = message.get("payload")
    raw_headers = payload.get("headers", []) if isinstance(payload, Mapping) else message.get("headers", [])
    normalized: dict[str, str] = {}
    for header in raw_headers or []:
        name = header.get("name")
        value = header.get("value")
        if name and value is not None and name.lower() not in normalized:
            normalized[name.lower()] = value
    return normalized
