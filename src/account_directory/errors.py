"""
Error taxonomy shared by the server, the flow controller, and the HTTP client.

Every failure surfaced to a caller is a :class:`DirectoryError` subclass with a
stable ``kind`` string. The server renders errors as
``{"detail": <message>, "error": <kind>}`` with ``status_code``; the client
maps the ``kind`` back to the same class via :func:`error_for_kind`.

Kinds:
    invalid_request      malformed query or out-of-order flow call (400)
    unauthorized         no usable authorized session (401)
    invalid_credentials  login mismatch, never says which part was wrong (401)
    invalid_code         wrong second-factor code (401)
    invalid_token        unknown, used, or foreign verification token (401)
    flow_conflict        login while another flow is pending (409)
    challenge_expired    second-factor window elapsed (410)
    token_expired        verification token elapsed (410)
    expired              overall session lifetime elapsed (410)
    rate_limited         resend too soon, or login during rejection cooldown (429)
    service_unavailable  transport, timeout, or storage failure (503)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class DirectoryError(Exception):
    """Base class for all errors surfaced to callers."""

    kind = "service_unavailable"
    status_code = 503
    default_message = "Service unavailable"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON error body."""
        return {"detail": self.message, "error": self.kind}


class InvalidRequest(DirectoryError):
    kind = "invalid_request"
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(DirectoryError):
    kind = "unauthorized"
    status_code = 401
    default_message = "Invalid or expired session"


class InvalidCredentials(DirectoryError):
    kind = "invalid_credentials"
    status_code = 401
    default_message = "Invalid username or password"


class InvalidCode(DirectoryError):
    """Wrong second-factor code.

    ``attempts_remaining`` is 0 when this attempt exhausted the challenge.
    """

    kind = "invalid_code"
    status_code = 401
    default_message = "Invalid verification code"

    def __init__(self, message: str | None = None, *, attempts_remaining: int = 0) -> None:
        super().__init__(message)
        self.attempts_remaining = attempts_remaining

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "attempts_remaining": self.attempts_remaining}


class InvalidToken(DirectoryError):
    kind = "invalid_token"
    status_code = 401
    default_message = "Invalid verification token"


class FlowConflict(DirectoryError):
    kind = "flow_conflict"
    status_code = 409
    default_message = "An authentication flow is already in progress"


class ChallengeExpired(DirectoryError):
    kind = "challenge_expired"
    status_code = 410
    default_message = "Verification code window has expired"


class TokenExpired(DirectoryError):
    kind = "token_expired"
    status_code = 410
    default_message = "Verification token has expired"


class Expired(DirectoryError):
    kind = "expired"
    status_code = 410
    default_message = "Session has expired"


class RateLimited(DirectoryError):
    kind = "rate_limited"
    status_code = 429
    default_message = "Too many requests"

    def __init__(self, message: str | None = None, *, retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "retry_after": self.retry_after}


class ServiceUnavailable(DirectoryError):
    kind = "service_unavailable"
    status_code = 503
    default_message = "Service unavailable"


ERROR_KINDS: dict[str, type[DirectoryError]] = {
    cls.kind: cls
    for cls in (
        InvalidRequest,
        Unauthorized,
        InvalidCredentials,
        InvalidCode,
        InvalidToken,
        FlowConflict,
        ChallengeExpired,
        TokenExpired,
        Expired,
        RateLimited,
        ServiceUnavailable,
    )
}


def error_for_kind(
    kind: str | None,
    message: str | None = None,
    body: Mapping[str, Any] | None = None,
) -> DirectoryError:
    """Build the error instance for a wire ``kind``.

    ``body`` is the full error body; it supplies ``attempts_remaining`` and
    ``retry_after`` where present. Unknown kinds map to
    :class:`ServiceUnavailable` so an unrecognized response never advances a
    caller's state.
    """
    body = body or {}
    cls = ERROR_KINDS.get(kind or "", ServiceUnavailable)
    if cls is ServiceUnavailable and kind not in ERROR_KINDS:
        return ServiceUnavailable(
            f"Unrecognized response from server: {message}" if message else None
        )
    if cls is InvalidCode:
        return InvalidCode(message, attempts_remaining=_as_int(body.get("attempts_remaining")))
    if cls is RateLimited:
        return RateLimited(message, retry_after=_as_int(body.get("retry_after")))
    return cls(message)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
