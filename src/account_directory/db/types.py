"""Shared DB-layer dataclasses for repository contracts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class AccountRecord:
    """
    Credential-bearing account row.

    Attributes:
        id: Account identifier.
        username: Unique login identifier and directory display name.
        email: Address verification mail is sent to.
        password_hash: bcrypt hash of the account secret.
        totp_secret: Base32 TOTP secret, or None when 2FA was never set up.
        two_factor_enabled: True when the account opted into 2FA.
        email_verified: True once a verification token was redeemed.
    """

    id: int
    username: str
    email: str
    password_hash: str
    totp_secret: str | None
    two_factor_enabled: bool
    email_verified: bool


@dataclass(slots=True)
class VerificationRecord:
    """
    Email verification token row.

    Attributes:
        account_id: Account the token verifies.
        token: Opaque single-use token value.
        created_at: Issue time (UTC).
        expires_at: Time after which the token is rejected as expired.
        used_at: Redemption time, or None while unused.
    """

    account_id: int
    token: str
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None

    @property
    def is_used(self) -> bool:
        return self.used_at is not None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
