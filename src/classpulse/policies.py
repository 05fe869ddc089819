"""Summary: Named failure policies for classification and aggregation.

Importance: Makes fail-closed and degrade-to-zero behaviour explicit and testable.
Alternatives: Scatter try/except blocks with silent fallbacks at call sites.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from classpulse.errors import MailProviderError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailClosed:
    """Summary: Evaluate a predicate and answer False when it cannot be evaluated.

    Importance: One unreadable message must not abort a classification batch.
    Alternatives: Propagate the error and let the caller skip the message.
    """

    label: str = "classification"

    async def evaluate(self, predicate: Callable[[], Awaitable[bool]]) -> bool:
        try:
            return await predicate()
        except (MailProviderError, KeyError, ValueError) as exc:
            logger.warning("%s failed closed: %s", self.label, _kind(exc))
            return False


@dataclass(frozen=True)
class DegradeToZero:
    """Summary: Absorb a failed provider call as an empty listing.

    Importance: Keeps the dashboard usable when a single bucket cannot be fetched.
    Alternatives: Fail the whole aggregation on the first error.
    """

    label: str = "provider call"

    async def run(self, call: Callable[[], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
        try:
            return await call()
        except MailProviderError as exc:
            logger.warning("%s degraded to zero: %s", self.label, _kind(exc))
            return {"messages": []}


def _kind(exc: Exception) -> str:
    return getattr(exc, "kind", type(exc).__name__)
