"""
Test doubles shared by fixtures and test modules.

- FakeClock: manually advanced aware UTC clock for the flow controller
- RecordingMailer: keeps verification links instead of sending them
- token_from_link / wrong_code: small helpers for driving the flow
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs, urlparse

from account_directory.auth import second_factor
from account_directory.auth.mailer import MailDeliveryError


class FakeClock:
    """Manually advanced aware UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingMailer:
    """Mailer that keeps every verification link it was asked to send.

    Set ``fail`` to make delivery raise :class:`MailDeliveryError`. Set
    ``on_send`` to run a callback while a delivery is in progress.
    """

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = False
        self.on_send: Callable[[], None] | None = None

    def send_verification(self, to_address: str, link: str) -> None:
        if self.on_send is not None:
            self.on_send()
        if self.fail:
            raise MailDeliveryError("relay unavailable")
        self.sent.append((to_address, link))

    @property
    def last_link(self) -> str:
        return self.sent[-1][1]

    @property
    def last_token(self) -> str:
        return token_from_link(self.last_link)


def token_from_link(link: str) -> str:
    """Extract the ``token`` query parameter from a verification link."""
    return parse_qs(urlparse(link).query)["token"][0]


def wrong_code(secret: str, at: datetime) -> str:
    """Return a six digit code that is not accepted for ``secret`` at ``at``."""
    valid = {
        second_factor.current_code(secret, at + timedelta(seconds=offset))
        for offset in (-30, 0, 30)
    }
    for candidate in ("000000", "111111", "222222", "333333"):
        if candidate not in valid:
            return candidate
    raise AssertionError("no rejected code found")
