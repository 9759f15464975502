"""
Authentication flow controller.

Drives one visitor from credentials to an authorized session:

    login                 -> credentials checked, gates evaluated
    submit_second_factor  -> satisfies the 2FA gate (bounded attempts)
    verify_email          -> satisfies the email gate (any time it is pending)
    verify_email_link     -> same, from the out-of-band link without a session
    resend_verification   -> new token, rate limited per session
    status / logout       -> inspect or discard a flow
    require_authorized    -> resolve a bearer credential for the directory

The visible state is always derived from gate booleans (see
:mod:`account_directory.auth.state`); this module only flips gates and
records terminal outcomes. A bearer credential is minted the moment a session
becomes ``authorized`` and is never exposed before that.
"""

from __future__ import annotations

import logging
import math
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

from account_directory.auth.mailer import MailDeliveryError, Mailer
from account_directory.auth.passwords import burn_verification, verify_password
from account_directory.auth.second_factor import verify_code
from account_directory.auth.state import AuthChallenge, AuthSession, FlowState, FlowStatus
from account_directory.auth.store import SessionStore
from account_directory.config import AuthSettings
from account_directory.db import accounts_repo, verifications_repo
from account_directory.db.types import AccountRecord
from account_directory.errors import (
    ChallengeExpired,
    Expired,
    InvalidCode,
    InvalidCredentials,
    InvalidRequest,
    InvalidToken,
    RateLimited,
    TokenExpired,
    Unauthorized,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

STATE_MESSAGES: dict[FlowState, str] = {
    FlowState.ANONYMOUS: "Not signed in",
    FlowState.CREDENTIALS_SUBMITTED: "Credentials accepted",
    FlowState.AWAITING_SECOND_FACTOR: "Enter the code from your authenticator app",
    FlowState.AWAITING_EMAIL_VERIFICATION: "Check your email for a verification link",
    FlowState.AUTHORIZED: "Authentication complete",
    FlowState.REJECTED: "Authentication rejected",
    FlowState.EXPIRED: "Session has expired",
}


def utc_now() -> datetime:
    return datetime.now(UTC)


class AuthFlowController:
    """
    Server-side authentication flow.

    Args:
        store: Session store owned by the application.
        mailer: Delivers verification links.
        clock: Returns the current aware UTC time; injectable for tests.
        settings: Flow settings. Defaults to ``config.auth``.
        verification_url: Base URL of the verification link. Defaults to
            ``config.email.verification_url``.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        mailer: Mailer,
        clock: Clock | None = None,
        settings: AuthSettings | None = None,
        verification_url: str | None = None,
    ) -> None:
        if settings is None or verification_url is None:
            from account_directory.config import config

            settings = settings or config.auth
            verification_url = verification_url or config.email.verification_url
        self.store = store
        self.mailer = mailer
        self.clock = clock or utc_now
        self.settings = settings
        self.verification_url = verification_url
        self._rejected_at: dict[int, datetime] = {}

    # ------------------------------------------------------------------
    # Gate policy
    # ------------------------------------------------------------------

    def _second_factor_required(self, account: AccountRecord) -> bool:
        policy = self.settings.second_factor_gate
        if policy == "never":
            return False
        if policy == "always":
            if not account.totp_secret:
                raise Unauthorized("Two-factor authentication is required but not set up")
            return True
        return account.two_factor_enabled and bool(account.totp_secret)

    def _email_required(self, account: AccountRecord) -> bool:
        if self.settings.email_gate == "never":
            return False
        return not account.email_verified

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _status(
        self,
        session: AuthSession,
        now: datetime,
        message: str | None = None,
    ) -> FlowStatus:
        state = session.state(now)
        challenge = session.challenge
        return FlowStatus(
            session_id=session.session_id,
            state=state,
            message=message or STATE_MESSAGES[state],
            credential=session.usable_credential(now),
            attempts_remaining=challenge.attempts_remaining if challenge else None,
        )

    def _release(self, session: AuthSession) -> None:
        """Make a failed session's pending challenge and tokens unusable."""
        session.challenge = None
        if session.gates.email_ok is False:
            invalidated = verifications_repo.invalidate_tokens_for_account(session.account_id)
            if invalidated:
                logger.debug(
                    "Invalidated %d verification token(s) for %s", invalidated, session.username
                )

    def _expire(self, session: AuthSession) -> None:
        session.terminal = FlowState.EXPIRED
        self._release(session)
        logger.info("Authentication flow for %s expired", session.username)

    def _active_session(self, session_id: str, now: datetime) -> AuthSession:
        """Look up a session that can still make progress.

        Raises:
            Unauthorized: Unknown session or one already rejected/expired.
            Expired: The session's lifetime elapsed just now.
        """
        session = self.store.get(session_id) if session_id else None
        if session is None or session.terminal is not None:
            raise Unauthorized()
        if session.lifetime_elapsed(now):
            self._expire(session)
            raise Expired()
        return session

    def _maybe_authorize(self, session: AuthSession, now: datetime) -> None:
        if session.state(now) is FlowState.AUTHORIZED and session.credential is None:
            self.store.bind_credential(session, secrets.token_urlsafe(32))
            logger.info("Authentication flow for %s authorized", session.username)

    def _check_rejection_cooldown(self, account: AccountRecord, now: datetime) -> None:
        rejected_at = self._rejected_at.get(account.id)
        if rejected_at is None:
            return
        release_at = rejected_at + timedelta(seconds=self.settings.rejection_cooldown_seconds)
        if now >= release_at:
            del self._rejected_at[account.id]
            return
        retry_after = math.ceil((release_at - now).total_seconds())
        logger.info("Login for %s refused during rejection cooldown", account.username)
        raise RateLimited(
            f"Too many invalid codes, try again in {retry_after} seconds",
            retry_after=retry_after,
        )

    def _send_verification(self, account: AccountRecord, now: datetime) -> None:
        """Issue a token and mail its link. Called without the store lock held."""
        token = secrets.token_urlsafe(32)
        ttl = timedelta(minutes=self.settings.verification_token_ttl_minutes)
        verifications_repo.issue_token(account.id, token, created_at=now, expires_at=now + ttl)

        link = f"{self.verification_url}?{urlencode({'token': token})}"
        try:
            self.mailer.send_verification(account.email, link)
        except MailDeliveryError as exc:
            logger.warning("Verification mail for %s not delivered: %s", account.username, exc)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def login(self, identifier: str, secret: str) -> FlowStatus:
        """Check credentials and open a flow.

        Unknown identifiers and wrong secrets fail identically.

        Raises:
            InvalidCredentials: On any credential mismatch.
            Unauthorized: The 2FA gate applies to everyone but the account
                has no second factor configured.
            RateLimited: The account's last flow was rejected for wrong codes
                within the rejection cooldown.
        """
        identifier = (identifier or "").strip()
        secret = secret or ""
        account = accounts_repo.get_account_by_username(identifier) if identifier else None
        if account is None:
            burn_verification(secret)
            logger.info("Failed login for unknown identifier")
            raise InvalidCredentials()
        if not verify_password(secret, account.password_hash):
            logger.info("Failed login for %s", account.username)
            raise InvalidCredentials()

        now = self.clock()
        second_factor_required = self._second_factor_required(account)
        email_required = self._email_required(account)

        with self.store.locked():
            self._check_rejection_cooldown(account, now)
            for other in self.store.for_account(account.id):
                if other.state(now) is not FlowState.AUTHORIZED:
                    self.store.remove(other.session_id)

            session = AuthSession(
                session_id=secrets.token_urlsafe(32),
                account_id=account.id,
                username=account.username,
                created_at=now,
                expires_at=now + timedelta(minutes=self.settings.session_lifetime_minutes),
            )
            if second_factor_required:
                session.challenge = AuthChallenge(
                    expires_at=now + timedelta(seconds=self.settings.challenge_ttl_seconds),
                    attempts_remaining=self.settings.challenge_max_attempts,
                )
            session.gates.second_factor_ok = not second_factor_required
            session.gates.email_ok = not email_required
            self.store.add(session)

            if email_required:
                session.verification_sent_at = now
            self._maybe_authorize(session, now)
            status = self._status(session, now)

        if email_required:
            self._send_verification(account, now)
        logger.info("Login for %s: %s", account.username, status.state.value)
        return status

    def submit_second_factor(self, session_id: str, code: str) -> FlowStatus:
        """Answer the pending second-factor challenge.

        Raises:
            InvalidRequest: No challenge is pending for this session.
            ChallengeExpired: The challenge window elapsed; the flow expires.
            InvalidCode: Wrong code; the last allowed miss rejects the flow.
        """
        now = self.clock()
        with self.store.locked():
            session = self._active_session(session_id, now)
            challenge = session.challenge
            if session.gates.second_factor_ok is not False or challenge is None:
                raise InvalidRequest("No second-factor challenge is pending")

            if challenge.is_expired(now):
                self._expire(session)
                raise ChallengeExpired()

            account = accounts_repo.get_account_by_id(session.account_id)
            if not verify_code(account.totp_secret if account else None, code or "", now):
                challenge.attempts_remaining -= 1
                remaining = challenge.attempts_remaining
                logger.info(
                    "Invalid second-factor code for %s (%d left)", session.username, remaining
                )
                if remaining <= 0:
                    session.terminal = FlowState.REJECTED
                    self._rejected_at[session.account_id] = now
                    self._release(session)
                    raise InvalidCode("Too many invalid codes, sign in again", attempts_remaining=0)
                raise InvalidCode(
                    f"Invalid verification code, {remaining} attempt(s) remaining",
                    attempts_remaining=remaining,
                )

            session.gates.second_factor_ok = True
            session.challenge = None
            self._maybe_authorize(session, now)
            return self._status(session, now)

    def verify_email(self, session_id: str, token: str) -> FlowStatus:
        """Redeem a verification token inside a flow.

        A failed redemption leaves the session exactly as it was.

        Raises:
            InvalidRequest: The email gate is not pending.
            InvalidToken: Unknown, used, or another account's token.
            TokenExpired: The token's lifetime elapsed.
        """
        now = self.clock()
        with self.store.locked():
            session = self._active_session(session_id, now)
            if session.gates.email_ok is not False:
                raise InvalidRequest("Email verification is not pending")

            token = (token or "").strip()
            record = verifications_repo.get_token(token) if token else None
            if record is None or record.is_used or record.account_id != session.account_id:
                raise InvalidToken()
            if record.is_expired(now):
                raise TokenExpired()
            if not verifications_repo.redeem_token(token, used_at=now):
                raise InvalidToken()

            session.gates.email_ok = True
            logger.info("Email verified for %s", session.username)
            self._maybe_authorize(session, now)
            return self._status(session, now)

    def verify_email_link(self, token: str) -> str:
        """Redeem a verification token from the emailed link.

        Open flows of the account see the verified email immediately.

        Returns:
            The verified account's username.

        Raises:
            InvalidToken: Unknown or already used token.
            TokenExpired: The token's lifetime elapsed.
        """
        now = self.clock()
        token = (token or "").strip()
        record = verifications_repo.get_token(token) if token else None
        if record is None or record.is_used:
            raise InvalidToken()
        if record.is_expired(now):
            raise TokenExpired()
        if not verifications_repo.redeem_token(token, used_at=now):
            raise InvalidToken()

        account = accounts_repo.get_account_by_id(record.account_id)
        username = account.username if account else ""
        with self.store.locked():
            for session in self.store.for_account(record.account_id):
                if session.terminal is None and session.gates.email_ok is False:
                    session.gates.email_ok = True
                    self._maybe_authorize(session, now)
        logger.info("Email verified for %s via link", username)
        return username

    def resend_verification(self, session_id: str) -> FlowStatus:
        """Issue a fresh verification token; older ones stop working.

        Raises:
            InvalidRequest: The email gate is not pending.
            RateLimited: Called again within the resend cooldown.
        """
        now = self.clock()
        with self.store.locked():
            session = self._active_session(session_id, now)
            if session.gates.email_ok is not False:
                raise InvalidRequest("Email verification is not pending")

            cooldown = timedelta(seconds=self.settings.resend_cooldown_seconds)
            sent_at = session.verification_sent_at
            if sent_at is not None and now < sent_at + cooldown:
                retry_after = math.ceil((sent_at + cooldown - now).total_seconds())
                raise RateLimited(
                    f"Please wait {retry_after} seconds before requesting another email",
                    retry_after=retry_after,
                )

            session.verification_sent_at = now
            account_id = session.account_id
            status = self._status(session, now, "Verification email sent")

        account = accounts_repo.get_account_by_id(account_id)
        if account is None:
            raise Unauthorized()
        self._send_verification(account, now)
        return status

    def status(self, session_id: str) -> FlowStatus:
        """Report a flow's current state, including terminal ones.

        Raises:
            Unauthorized: Unknown session.
        """
        now = self.clock()
        with self.store.locked():
            session = self.store.get(session_id) if session_id else None
            if session is None:
                raise Unauthorized()
            if session.terminal is None and session.lifetime_elapsed(now):
                self._expire(session)
            return self._status(session, now)

    def logout(self, handle: str) -> None:
        """Discard the flow identified by a session id or bearer credential."""
        with self.store.locked():
            session = self.store.get(handle) or self.store.get_by_credential(handle)
            if session is None:
                return
            self.store.remove(session.session_id)
            if session.terminal is None:
                self._release(session)
        logger.info("Logged out %s", session.username)

    def require_authorized(self, credential: str) -> AuthSession:
        """Resolve a bearer credential to its authorized session.

        Raises:
            Unauthorized: Missing, unknown, or no longer authorized credential.
        """
        now = self.clock()
        with self.store.locked():
            session = self.store.get_by_credential(credential) if credential else None
            if session is None:
                raise Unauthorized()
            if session.terminal is None and session.lifetime_elapsed(now):
                self._expire(session)
            if session.state(now) is not FlowState.AUTHORIZED:
                raise Unauthorized()
            return session

    def sweep(self) -> int:
        """Drop expired and failed sessions, stale rejections, and old tokens.

        Expired tokens stay in storage for the retention window so that a late
        redemption still reports ``TokenExpired``.

        Returns:
            Number of sessions removed.
        """
        now = self.clock()
        cooldown = timedelta(seconds=self.settings.rejection_cooldown_seconds)
        with self.store.locked():
            removed = self.store.sweep_expired(now)
            for account_id, rejected_at in list(self._rejected_at.items()):
                if now >= rejected_at + cooldown:
                    del self._rejected_at[account_id]
        for session in removed:
            if session.terminal is None:
                self._release(session)
        retention = timedelta(hours=self.settings.verification_token_retention_hours)
        purged = verifications_repo.delete_expired_tokens(now - retention)
        if removed or purged:
            logger.debug("Swept %d session(s) and %d expired token(s)", len(removed), purged)
        return len(removed)
