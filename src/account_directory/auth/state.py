"""
Authentication flow state model.

The flow is not a linear pipeline. A session carries one boolean per gate and
the visible state is *derived* from them:

    credentials_ok   password matched at login
    second_factor_ok the 2FA gate is satisfied (or does not apply)
    email_ok         the email gate is satisfied (or does not apply)

``None`` for a gate means "not evaluated yet" and yields
``credentials_submitted``. Terminal outcomes (``rejected``/``expired``) are
recorded separately and always win over the gates.

Derivation order:

    terminal marker                      -> rejected / expired
    lifetime elapsed                     -> expired
    credentials not ok                   -> anonymous
    any gate not evaluated               -> credentials_submitted
    second factor pending                -> awaiting_second_factor
    email pending                        -> awaiting_email_verification
    otherwise                            -> authorized

Because ``email_ok`` is tracked independently, a visitor may redeem the
verification token before, between, or after second-factor attempts; only the
combination decides ``authorized``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class FlowState(str, Enum):
    """Visible state of an authentication flow."""

    ANONYMOUS = "anonymous"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    AWAITING_SECOND_FACTOR = "awaiting_second_factor"
    AWAITING_EMAIL_VERIFICATION = "awaiting_email_verification"
    AUTHORIZED = "authorized"
    REJECTED = "rejected"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowState.REJECTED, FlowState.EXPIRED)

    @property
    def is_pending(self) -> bool:
        """True while the flow awaits further input from the visitor."""
        return self in (
            FlowState.CREDENTIALS_SUBMITTED,
            FlowState.AWAITING_SECOND_FACTOR,
            FlowState.AWAITING_EMAIL_VERIFICATION,
        )


@dataclass
class Gates:
    """Independent preconditions for ``authorized``."""

    credentials_ok: bool = False
    second_factor_ok: bool | None = None
    email_ok: bool | None = None


def derive_state(
    gates: Gates,
    *,
    terminal: FlowState | None = None,
    lifetime_elapsed: bool = False,
) -> FlowState:
    """Compute the visible state from gate booleans and terminal markers."""
    if terminal is not None:
        return terminal
    if lifetime_elapsed:
        return FlowState.EXPIRED
    if not gates.credentials_ok:
        return FlowState.ANONYMOUS
    if gates.second_factor_ok is None or gates.email_ok is None:
        return FlowState.CREDENTIALS_SUBMITTED
    if not gates.second_factor_ok:
        return FlowState.AWAITING_SECOND_FACTOR
    if not gates.email_ok:
        return FlowState.AWAITING_EMAIL_VERIFICATION
    return FlowState.AUTHORIZED


@dataclass
class AuthChallenge:
    """Pending second-factor challenge with a bounded window and retry budget."""

    expires_at: datetime
    attempts_remaining: int

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class AuthSession:
    """
    Server-side record of one visitor's authentication flow.

    Attributes:
        session_id: Flow handle returned at login; grants nothing by itself.
        account_id: Authenticated account.
        username: Account username, for logs and responses.
        created_at: Login time; the overall lifetime counts from here.
        expires_at: Hard end of the session, whatever its state.
        gates: Gate booleans the state is derived from.
        challenge: Pending second-factor challenge, if any.
        terminal: ``rejected``/``expired`` once the flow failed for good.
        credential: Opaque bearer credential, only set once authorized.
        verification_sent_at: Last time a verification mail was issued.
    """

    session_id: str
    account_id: int
    username: str
    created_at: datetime
    expires_at: datetime
    gates: Gates = field(default_factory=lambda: Gates(credentials_ok=True))
    challenge: AuthChallenge | None = None
    terminal: FlowState | None = None
    credential: str | None = None
    verification_sent_at: datetime | None = None

    def lifetime_elapsed(self, now: datetime) -> bool:
        return now >= self.expires_at

    def state(self, now: datetime) -> FlowState:
        return derive_state(
            self.gates,
            terminal=self.terminal,
            lifetime_elapsed=self.lifetime_elapsed(now),
        )

    def usable_credential(self, now: datetime) -> str | None:
        """The bearer credential, only while the session is authorized."""
        if self.state(now) is FlowState.AUTHORIZED:
            return self.credential
        return None


@dataclass(frozen=True)
class FlowStatus:
    """Snapshot of a flow as reported to the visitor.

    ``credential`` is only ever set when ``state`` is ``authorized``.
    """

    session_id: str
    state: FlowState
    message: str
    credential: str | None = None
    attempts_remaining: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "message": self.message,
            "credential": self.credential,
            "attempts_remaining": self.attempts_remaining,
        }
