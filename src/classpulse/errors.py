"""Summary: Error taxonomy for mail provider and statistics failures.

Importance: Lets callers choose between retrying and re-authenticating.
Alternatives: Raise generic RuntimeError with provider text.
"""

from __future__ import annotations

from typing import Any


class ClassPulseError(Exception):
    """Summary: Root of all ClassPulse errors.

    Importance: Carries a stable ``kind`` that survives serialization.
    Alternatives: Encode the error kind in the message string.
    """

    kind = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class MailProviderError(ClassPulseError):
    """Summary: A mail provider call did not succeed.

    Importance: Base for every failure raised at the provider boundary.
    Alternatives: Let aiohttp exceptions escape to callers.
    """

    kind = "provider_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class AuthenticationExpired(MailProviderError):
    """The provider rejected the bearer token outright."""

    kind = "authentication_expired"


class PermissionScope(MailProviderError):
    """The token is valid but lacks the scope needed for the call."""

    kind = "permission_scope"


class NetworkOrTransient(MailProviderError):
    """Connectivity failure or provider 5xx."""

    kind = "transient"


class ProviderTimeout(NetworkOrTransient):
    kind = "timeout"


class RateLimited(NetworkOrTransient):
    kind = "rate_limited"


class StatsUnavailable(ClassPulseError):
    """Summary: Whole-aggregation failure with no usable credential error.

    Importance: Reported when every top-level call failed transiently.
    Alternatives: Return a zero-filled result and hide the outage.
    """

    kind = "unavailable"

    def __init__(self, message: str, cause_kind: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        self.cause_kind = cause_kind

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["cause"] = self.cause_kind
        return payload
