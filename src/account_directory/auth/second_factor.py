"""TOTP second factor backed by pyotp."""

from __future__ import annotations

from datetime import datetime

import pyotp


def generate_secret() -> str:
    """Return a new base32 TOTP secret."""
    return pyotp.random_base32()


def provisioning_uri(secret: str, account_name: str, issuer: str) -> str:
    """Return the ``otpauth://`` URI an authenticator app can enroll."""
    return pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=issuer)


def current_code(secret: str, at: datetime | None = None) -> str:
    """Return the code valid for ``at`` (now when omitted)."""
    totp = pyotp.TOTP(secret)
    return totp.at(at) if at is not None else totp.now()


def verify_code(secret: str | None, code: str, at: datetime) -> bool:
    """Check ``code`` against ``secret``, allowing one step of clock drift."""
    if not secret:
        return False
    code = code.strip().replace(" ", "")
    if not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(code, for_time=at, valid_window=1)
