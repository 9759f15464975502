"""Self-service account registration."""

from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

from account_directory.auth import second_factor
from account_directory.auth.mailer import MailDeliveryError, Mailer
from account_directory.auth.passwords import hash_password, password_problems
from account_directory.db import accounts_repo, verifications_repo
from account_directory.errors import InvalidRequest

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 2
USERNAME_MAX_LENGTH = 20
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a successful registration.

    ``otpauth_uri`` is only set when the account enrolled a second factor;
    it is shown once and never stored in clear anywhere else.
    """

    account_id: int
    username: str
    otpauth_uri: str | None = None


def validate_registration(username: str, email: str, password: str) -> None:
    """Raise :class:`InvalidRequest` describing the first bad field."""
    if len(username) < USERNAME_MIN_LENGTH or len(username) > USERNAME_MAX_LENGTH:
        raise InvalidRequest(
            f"Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} characters"
        )
    if not _EMAIL_PATTERN.match(email):
        raise InvalidRequest("Invalid email address")
    problems = password_problems(password)
    if problems:
        raise InvalidRequest(" ".join(problems))


def register_account(
    username: str,
    email: str,
    password: str,
    *,
    enable_two_factor: bool,
    mailer: Mailer,
    now: datetime | None = None,
) -> RegistrationResult:
    """
    Create an unverified account and mail its verification link.

    A mail delivery failure does not undo the registration; the visitor can
    request a new link after signing in.

    Raises:
        InvalidRequest: Invalid field or username already taken.
    """
    from account_directory.config import config

    username = (username or "").strip()
    email = (email or "").strip()
    password = password or ""
    validate_registration(username, email, password)

    if accounts_repo.username_exists(username):
        raise InvalidRequest("Username already taken")

    now = now or datetime.now(UTC)
    totp_secret = second_factor.generate_secret() if enable_two_factor else None
    account_id = accounts_repo.create_account(
        username,
        email,
        hash_password(password),
        totp_secret=totp_secret,
        two_factor_enabled=enable_two_factor,
        created_at=now,
    )
    if account_id is None:
        raise InvalidRequest("Username already taken")

    token = secrets.token_urlsafe(32)
    ttl = timedelta(minutes=config.auth.verification_token_ttl_minutes)
    verifications_repo.issue_token(account_id, token, created_at=now, expires_at=now + ttl)
    link = f"{config.email.verification_url}?{urlencode({'token': token})}"
    try:
        mailer.send_verification(email, link)
    except MailDeliveryError as exc:
        logger.warning("Verification mail for new account %s not delivered: %s", username, exc)

    logger.info("Registered account %s (2FA %s)", username, "on" if enable_two_factor else "off")
    otpauth_uri = (
        second_factor.provisioning_uri(totp_secret, username, config.auth.totp_issuer)
        if totp_secret
        else None
    )
    return RegistrationResult(account_id=account_id, username=username, otpauth_uri=otpauth_uri)
