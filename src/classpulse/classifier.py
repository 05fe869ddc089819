"""Summary: Student-communication classification helpers.

Importance: Decides whether a single message belongs on the student dashboard.
Alternatives: Use an LLM-based classifier for higher recall.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from classpulse.gmail import MailProvider, header_map
from classpulse.policies import FailClosed
from classpulse.query import DEFAULT_STUDENT_KEYWORDS


CLASSIFIER_HEADERS = ("From", "To", "Subject")


def is_student_related(
    message: Mapping[str, Any],
    domains: Iterable[str] = (),
    keywords: Iterable[str] = (),
) -> bool:
    """Summary: Check message headers against domain and keyword allowlists.

    Importance: Domains match sender or recipient; keywords also match the subject.
    Alternatives: Match on message body text as well.
    """

    headers = header_map(message)
    sender = headers.get("from", "").lower()
    recipients = headers.get("to", "").lower()
    subject = headers.get("subject", "").lower()
    for domain in domains:
        needle = domain.strip().lower()
        if needle and (needle in sender or needle in recipients):
            return True
    active_keywords = [keyword.strip().lower() for keyword in keywords if keyword.strip()]
    for keyword in active_keywords or DEFAULT_STUDENT_KEYWORDS:
        if keyword in subject or keyword in sender or keyword in recipients:
            return True
    return False


@dataclass(frozen=True)
class StudentClassifier:
    """Summary: Classifier bound to a configured domain and keyword allowlist.

    Importance: Offers deterministic, fast classification without AI.
    Alternatives: Pass allowlists on every call.
    """

    domains: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    policy: FailClosed = field(default_factory=lambda: FailClosed("student classification"))

    def matches(self, message: Mapping[str, Any]) -> bool:
        return is_student_related(message, self.domains, self.keywords)

    async def classify_id(self, provider: MailProvider, message_id: str) -> bool:
        """Summary: Fetch headers for a message id and classify it, failing closed.

        Importance: A message whose headers cannot be read counts as not student-related.
        Alternatives: Raise and let the batch caller decide.
        """

        async def _check() -> bool:
            message = await provider.get_message_metadata(message_id, CLASSIFIER_HEADERS)
            return self.matches(message)

        return await self.policy.evaluate(_check)

    async def filter_ids(self, provider: MailProvider, message_ids: Iterable[str]) -> list[str]:
        ids = list(message_ids)
        results = await asyncio.gather(
            *(self.classify_id(provider, message_id) for message_id in ids)
        )
        return [message_id for message_id, matched in zip(ids, results) if matched]
