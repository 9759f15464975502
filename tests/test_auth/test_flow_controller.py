"""
Tests for the server-side authentication flow (account_directory/auth/flow.py).

Tests cover:
- Login outcomes for every gate combination and gate policy
- Bounded second-factor attempts and challenge expiry
- Email verification in any order relative to the second factor
- Resend rate limiting, status, logout, bearer resolution, and sweeping

All tests use a fake clock, a recording mailer, and a temporary database.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from account_directory.auth import second_factor
from account_directory.auth.state import FlowState
from account_directory.db import accounts_repo, verifications_repo
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
from tests.constants import TEST_PASSWORD, TEST_VERIFICATION_URL
from tests.helpers import wrong_code


def _code(account, clock) -> str:
    return second_factor.current_code(account.totp_secret, clock())


# ============================================================================
# LOGIN TESTS
# ============================================================================


@pytest.mark.auth
class TestLogin:
    """Test credential checks and initial gate evaluation."""

    def test_verified_account_without_2fa_is_authorized(self, controller, make_account):
        make_account("alice")

        status = controller.login("alice", TEST_PASSWORD)

        assert status.state is FlowState.AUTHORIZED
        assert status.credential
        assert status.message == "Authentication complete"

    def test_second_factor_account_awaits_code(self, controller, make_account, auth_settings):
        make_account("alice", two_factor=True)

        status = controller.login("alice", TEST_PASSWORD)

        assert status.state is FlowState.AWAITING_SECOND_FACTOR
        assert status.credential is None
        assert status.attempts_remaining == auth_settings.challenge_max_attempts

    def test_unverified_account_awaits_email(self, controller, make_account, mailer):
        make_account("alice", email_verified=False)

        status = controller.login("alice", TEST_PASSWORD)

        assert status.state is FlowState.AWAITING_EMAIL_VERIFICATION
        assert status.credential is None
        assert len(mailer.sent) == 1
        to_address, link = mailer.sent[0]
        assert to_address == "alice@example.com"
        assert link.startswith(f"{TEST_VERIFICATION_URL}?token=")

    def test_both_gates_start_with_second_factor(self, controller, make_account, mailer):
        make_account("alice", two_factor=True, email_verified=False)

        status = controller.login("alice", TEST_PASSWORD)

        assert status.state is FlowState.AWAITING_SECOND_FACTOR
        assert len(mailer.sent) == 1

    def test_identifier_is_trimmed(self, controller, make_account):
        make_account("alice")

        assert controller.login("  alice ", TEST_PASSWORD).state is FlowState.AUTHORIZED

    def test_mail_failure_keeps_flow_pending(self, controller, make_account, mailer):
        make_account("alice", email_verified=False)
        mailer.fail = True

        status = controller.login("alice", TEST_PASSWORD)

        assert status.state is FlowState.AWAITING_EMAIL_VERIFICATION

    def test_new_login_discards_pending_flow(self, controller, make_account):
        make_account("alice", two_factor=True)
        first = controller.login("alice", TEST_PASSWORD)

        controller.login("alice", TEST_PASSWORD)

        with pytest.raises(Unauthorized):
            controller.status(first.session_id)

    def test_new_login_keeps_authorized_flow(self, controller, make_account):
        make_account("alice")
        first = controller.login("alice", TEST_PASSWORD)

        controller.login("alice", TEST_PASSWORD)

        assert controller.status(first.session_id).state is FlowState.AUTHORIZED


@pytest.mark.auth
@pytest.mark.security
class TestLoginFailures:
    """Credential mismatches never reveal which part was wrong."""

    def test_wrong_password(self, controller, make_account, store):
        make_account("alice")

        with pytest.raises(InvalidCredentials) as exc_info:
            controller.login("alice", "not-the-password")

        assert exc_info.value.message == "Invalid username or password"
        assert len(store) == 0

    def test_unknown_identifier(self, controller, store):
        with pytest.raises(InvalidCredentials) as exc_info:
            controller.login("nobody", TEST_PASSWORD)

        assert exc_info.value.message == "Invalid username or password"
        assert len(store) == 0

    def test_empty_identifier(self, controller):
        with pytest.raises(InvalidCredentials):
            controller.login("", "")

    def test_username_is_case_sensitive(self, controller, make_account):
        make_account("alice")

        with pytest.raises(InvalidCredentials):
            controller.login("ALICE", TEST_PASSWORD)


@pytest.mark.auth
class TestGatePolicies:
    """Test the account / always / never gate policies."""

    def test_second_factor_never(self, controller, make_account, auth_settings):
        auth_settings.second_factor_gate = "never"
        make_account("alice", two_factor=True)

        assert controller.login("alice", TEST_PASSWORD).state is FlowState.AUTHORIZED

    def test_second_factor_always_uses_enrolled_secret(
        self, controller, make_account, auth_settings
    ):
        auth_settings.second_factor_gate = "always"
        make_account("alice", totp_secret=second_factor.generate_secret())

        status = controller.login("alice", TEST_PASSWORD)

        assert status.state is FlowState.AWAITING_SECOND_FACTOR

    def test_second_factor_always_without_secret(self, controller, make_account, auth_settings):
        auth_settings.second_factor_gate = "always"
        make_account("alice")

        with pytest.raises(Unauthorized, match="not set up"):
            controller.login("alice", TEST_PASSWORD)

    def test_account_policy_ignores_secret_without_opt_in(self, controller, make_account):
        make_account("alice", totp_secret=second_factor.generate_secret())

        assert controller.login("alice", TEST_PASSWORD).state is FlowState.AUTHORIZED

    def test_email_never(self, controller, make_account, auth_settings, mailer):
        auth_settings.email_gate = "never"
        make_account("alice", email_verified=False)

        assert controller.login("alice", TEST_PASSWORD).state is FlowState.AUTHORIZED
        assert mailer.sent == []


# ============================================================================
# SECOND FACTOR TESTS
# ============================================================================


@pytest.mark.auth
class TestSecondFactor:
    """Test TOTP submission, attempt bounds, and challenge expiry."""

    def test_correct_code_authorizes(self, controller, make_account, clock):
        account = make_account("alice", two_factor=True)
        started = controller.login("alice", TEST_PASSWORD)

        status = controller.submit_second_factor(started.session_id, _code(account, clock))

        assert status.state is FlowState.AUTHORIZED
        assert status.credential
        assert status.attempts_remaining is None

    def test_correct_code_with_email_pending(self, controller, make_account, clock):
        account = make_account("alice", two_factor=True, email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)

        status = controller.submit_second_factor(started.session_id, _code(account, clock))

        assert status.state is FlowState.AWAITING_EMAIL_VERIFICATION
        assert status.credential is None

    def test_previous_time_step_accepted(self, controller, make_account, clock):
        account = make_account("alice", two_factor=True)
        started = controller.login("alice", TEST_PASSWORD)
        code = _code(account, clock)

        clock.advance(seconds=30)
        status = controller.submit_second_factor(started.session_id, code)

        assert status.state is FlowState.AUTHORIZED

    def test_one_fewer_than_max_wrong_codes_still_allows_success(
        self, controller, make_account, clock, auth_settings
    ):
        account = make_account("alice", two_factor=True)
        started = controller.login("alice", TEST_PASSWORD)
        bad = wrong_code(account.totp_secret, clock())

        remaining = []
        for _ in range(auth_settings.challenge_max_attempts - 1):
            with pytest.raises(InvalidCode) as exc_info:
                controller.submit_second_factor(started.session_id, bad)
            remaining.append(exc_info.value.attempts_remaining)

        assert remaining == [2, 1]
        assert controller.status(started.session_id).attempts_remaining == 1

        status = controller.submit_second_factor(started.session_id, _code(account, clock))
        assert status.state is FlowState.AUTHORIZED

    def test_max_wrong_codes_rejects(self, controller, make_account, clock, auth_settings):
        account = make_account("alice", two_factor=True)
        started = controller.login("alice", TEST_PASSWORD)
        bad = wrong_code(account.totp_secret, clock())

        for _ in range(auth_settings.challenge_max_attempts - 1):
            with pytest.raises(InvalidCode):
                controller.submit_second_factor(started.session_id, bad)
        with pytest.raises(InvalidCode) as exc_info:
            controller.submit_second_factor(started.session_id, bad)

        assert exc_info.value.attempts_remaining == 0
        assert controller.status(started.session_id).state is FlowState.REJECTED

        with pytest.raises(Unauthorized):
            controller.submit_second_factor(started.session_id, _code(account, clock))

    @pytest.mark.security
    def test_rejection_cooldown_blocks_new_flow(
        self, controller, make_account, clock, auth_settings
    ):
        """A rejected account cannot restart with a full attempt budget right away."""
        account = make_account("alice", two_factor=True)
        started = controller.login("alice", TEST_PASSWORD)
        bad = wrong_code(account.totp_secret, clock())
        for _ in range(auth_settings.challenge_max_attempts):
            with pytest.raises(InvalidCode):
                controller.submit_second_factor(started.session_id, bad)

        with pytest.raises(RateLimited) as exc_info:
            controller.login("alice", TEST_PASSWORD)
        assert exc_info.value.retry_after == auth_settings.rejection_cooldown_seconds

        clock.advance(seconds=auth_settings.rejection_cooldown_seconds)
        status = controller.login("alice", TEST_PASSWORD)
        assert status.state is FlowState.AWAITING_SECOND_FACTOR
        assert status.attempts_remaining == auth_settings.challenge_max_attempts

    def test_rejection_cooldown_disabled(self, controller, make_account, clock, auth_settings):
        auth_settings.rejection_cooldown_seconds = 0
        account = make_account("alice", two_factor=True)
        started = controller.login("alice", TEST_PASSWORD)
        bad = wrong_code(account.totp_secret, clock())
        for _ in range(auth_settings.challenge_max_attempts):
            with pytest.raises(InvalidCode):
                controller.submit_second_factor(started.session_id, bad)

        assert controller.login("alice", TEST_PASSWORD).state is (
            FlowState.AWAITING_SECOND_FACTOR
        )

    def test_non_numeric_code_counts_as_wrong(self, controller, make_account):
        make_account("alice", two_factor=True)
        started = controller.login("alice", TEST_PASSWORD)

        with pytest.raises(InvalidCode) as exc_info:
            controller.submit_second_factor(started.session_id, "abcdef")

        assert exc_info.value.attempts_remaining == 2

    def test_expired_challenge(self, controller, make_account, clock, auth_settings):
        account = make_account("alice", two_factor=True)
        started = controller.login("alice", TEST_PASSWORD)

        clock.advance(seconds=auth_settings.challenge_ttl_seconds)
        with pytest.raises(ChallengeExpired):
            controller.submit_second_factor(started.session_id, _code(account, clock))

        assert controller.status(started.session_id).state is FlowState.EXPIRED

    def test_no_pending_challenge(self, controller, make_account):
        make_account("alice", email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)

        with pytest.raises(InvalidRequest):
            controller.submit_second_factor(started.session_id, "123456")

    def test_unknown_session(self, controller):
        with pytest.raises(Unauthorized):
            controller.submit_second_factor("no-such-session", "123456")

    def test_session_lifetime_elapsed(self, controller, make_account, clock, auth_settings):
        account = make_account("alice", two_factor=True)
        auth_settings.challenge_ttl_seconds = 3600
        started = controller.login("alice", TEST_PASSWORD)

        clock.advance(minutes=auth_settings.session_lifetime_minutes)
        with pytest.raises(Expired):
            controller.submit_second_factor(started.session_id, _code(account, clock))


# ============================================================================
# EMAIL VERIFICATION TESTS
# ============================================================================


@pytest.mark.auth
class TestEmailVerification:
    """Test token redemption inside and outside a flow."""

    def test_verify_email_authorizes(self, controller, make_account, mailer):
        account = make_account("alice", email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)

        status = controller.verify_email(started.session_id, mailer.last_token)

        assert status.state is FlowState.AUTHORIZED
        assert status.credential
        assert accounts_repo.get_account_by_id(account.id).email_verified is True

    def test_email_before_second_factor(self, controller, make_account, mailer, clock):
        account = make_account("alice", two_factor=True, email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)

        after_email = controller.verify_email(started.session_id, mailer.last_token)
        assert after_email.state is FlowState.AWAITING_SECOND_FACTOR

        final = controller.submit_second_factor(started.session_id, _code(account, clock))
        assert final.state is FlowState.AUTHORIZED

    def test_second_factor_before_email(self, controller, make_account, mailer, clock):
        account = make_account("alice", two_factor=True, email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)

        controller.submit_second_factor(started.session_id, _code(account, clock))
        final = controller.verify_email(started.session_id, mailer.last_token)

        assert final.state is FlowState.AUTHORIZED

    def test_email_between_wrong_codes(self, controller, make_account, mailer, clock):
        account = make_account("alice", two_factor=True, email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)
        bad = wrong_code(account.totp_secret, clock())

        with pytest.raises(InvalidCode):
            controller.submit_second_factor(started.session_id, bad)
        controller.verify_email(started.session_id, mailer.last_token)
        final = controller.submit_second_factor(started.session_id, _code(account, clock))

        assert final.state is FlowState.AUTHORIZED

    def test_unknown_token_leaves_state(self, controller, make_account):
        make_account("alice", email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)

        with pytest.raises(InvalidToken):
            controller.verify_email(started.session_id, "not-a-token")

        status = controller.status(started.session_id)
        assert status.state is FlowState.AWAITING_EMAIL_VERIFICATION

    def test_expired_token_leaves_state(
        self, controller, make_account, mailer, clock, auth_settings
    ):
        auth_settings.verification_token_ttl_minutes = 5
        make_account("alice", email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)

        clock.advance(minutes=6)
        with pytest.raises(TokenExpired):
            controller.verify_email(started.session_id, mailer.last_token)

        status = controller.status(started.session_id)
        assert status.state is FlowState.AWAITING_EMAIL_VERIFICATION

    def test_expired_token_still_reported_after_sweep(
        self, controller, make_account, mailer, clock, auth_settings
    ):
        auth_settings.session_lifetime_minutes = 240
        make_account("alice", email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)

        clock.advance(minutes=auth_settings.verification_token_ttl_minutes + 1)
        controller.sweep()

        with pytest.raises(TokenExpired):
            controller.verify_email(started.session_id, mailer.last_token)

    @pytest.mark.security
    def test_other_accounts_token_rejected(self, controller, make_account, mailer):
        make_account("alice", email_verified=False)
        make_account("bob", email_verified=False)
        alice = controller.login("alice", TEST_PASSWORD)
        alice_token = mailer.last_token
        bob = controller.login("bob", TEST_PASSWORD)

        with pytest.raises(InvalidToken):
            controller.verify_email(bob.session_id, alice_token)

        assert controller.verify_email(alice.session_id, alice_token).state is (
            FlowState.AUTHORIZED
        )

    def test_not_pending(self, controller, make_account):
        make_account("alice", two_factor=True)
        started = controller.login("alice", TEST_PASSWORD)

        with pytest.raises(InvalidRequest):
            controller.verify_email(started.session_id, "token")


@pytest.mark.auth
class TestVerificationLink:
    """Test redemption from the emailed link."""

    def test_link_authorizes_open_flow(self, controller, make_account, mailer):
        make_account("alice", email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)

        username = controller.verify_email_link(mailer.last_token)

        assert username == "alice"
        status = controller.status(started.session_id)
        assert status.state is FlowState.AUTHORIZED
        assert status.credential

    def test_link_is_single_use(self, controller, make_account, mailer):
        make_account("alice", email_verified=False)
        controller.login("alice", TEST_PASSWORD)
        token = mailer.last_token

        controller.verify_email_link(token)
        with pytest.raises(InvalidToken):
            controller.verify_email_link(token)

    def test_expired_link(self, controller, make_account, mailer, clock, auth_settings):
        auth_settings.verification_token_ttl_minutes = 5
        make_account("alice", email_verified=False)
        controller.login("alice", TEST_PASSWORD)

        clock.advance(minutes=5)
        with pytest.raises(TokenExpired):
            controller.verify_email_link(mailer.last_token)

    def test_late_click_after_sweep_reports_expiry(
        self, controller, make_account, mailer, clock, auth_settings
    ):
        auth_settings.session_lifetime_minutes = 240
        make_account("alice", email_verified=False)
        controller.login("alice", TEST_PASSWORD)

        clock.advance(minutes=auth_settings.verification_token_ttl_minutes + 1)
        controller.sweep()

        with pytest.raises(TokenExpired):
            controller.verify_email_link(mailer.last_token)

    def test_sweep_purges_tokens_past_retention(
        self, controller, make_account, mailer, clock, auth_settings
    ):
        auth_settings.session_lifetime_minutes = 240
        auth_settings.verification_token_retention_hours = 1
        make_account("alice", email_verified=False)
        controller.login("alice", TEST_PASSWORD)
        token = mailer.last_token

        clock.advance(minutes=auth_settings.verification_token_ttl_minutes + 30)
        controller.sweep()
        assert verifications_repo.get_token(token) is not None

        clock.advance(minutes=31)
        controller.sweep()
        assert verifications_repo.get_token(token) is None

    def test_empty_token(self, controller):
        with pytest.raises(InvalidToken):
            controller.verify_email_link("")


# ============================================================================
# RESEND TESTS
# ============================================================================


@pytest.mark.auth
class TestResendVerification:
    """Test rate-limited resending of verification links."""

    def test_resend_within_cooldown_is_rate_limited(self, controller, make_account, clock):
        make_account("alice", email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)

        clock.advance(seconds=20)
        with pytest.raises(RateLimited) as exc_info:
            controller.resend_verification(started.session_id)

        assert exc_info.value.retry_after == 40

    def test_resend_after_cooldown_replaces_token(self, controller, make_account, mailer, clock):
        make_account("alice", email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)
        old_token = mailer.last_token

        clock.advance(seconds=61)
        status = controller.resend_verification(started.session_id)

        assert status.message == "Verification email sent"
        assert status.state is FlowState.AWAITING_EMAIL_VERIFICATION
        assert len(mailer.sent) == 2
        with pytest.raises(InvalidToken):
            controller.verify_email(started.session_id, old_token)
        final = controller.verify_email(started.session_id, mailer.last_token)
        assert final.state is FlowState.AUTHORIZED

    def test_resend_when_not_pending(self, controller, make_account):
        make_account("alice")
        started = controller.login("alice", TEST_PASSWORD)

        with pytest.raises(InvalidRequest):
            controller.resend_verification(started.session_id)


# ============================================================================
# CONCURRENCY TESTS
# ============================================================================


def _resolve_from_other_thread(controller, credential, seen: list[str]):
    """Callback resolving another visitor's credential on a worker thread.

    The worker gives up after two seconds, so a store lock held across the
    mail handoff fails the test instead of hanging it.
    """

    def _callback() -> None:
        pool = ThreadPoolExecutor(max_workers=1)
        try:
            future = pool.submit(controller.require_authorized, credential)
            seen.append(future.result(timeout=2).username)
        finally:
            pool.shutdown(wait=False)

    return _callback


@pytest.mark.auth
class TestMailOutsideStoreLock:
    """Slow mail delivery must not stall other visitors."""

    def test_login_mail(self, controller, make_account, mailer):
        make_account("alice", email_verified=False)
        make_account("bob")
        credential = controller.login("bob", TEST_PASSWORD).credential
        seen: list[str] = []
        mailer.on_send = _resolve_from_other_thread(controller, credential, seen)

        status = controller.login("alice", TEST_PASSWORD)

        assert seen == ["bob"]
        assert status.state is FlowState.AWAITING_EMAIL_VERIFICATION

    def test_resend_mail(self, controller, make_account, mailer, clock, auth_settings):
        make_account("alice", email_verified=False)
        make_account("bob")
        started = controller.login("alice", TEST_PASSWORD)
        credential = controller.login("bob", TEST_PASSWORD).credential
        seen: list[str] = []
        mailer.on_send = _resolve_from_other_thread(controller, credential, seen)

        clock.advance(seconds=auth_settings.resend_cooldown_seconds)
        controller.resend_verification(started.session_id)

        assert seen == ["bob"]
        assert len(mailer.sent) == 2


# ============================================================================
# STATUS, LOGOUT, AND BEARER TESTS
# ============================================================================


@pytest.mark.auth
class TestSessionLifecycle:
    """Test status, expiry, logout, and bearer resolution."""

    def test_status_unknown_session(self, controller):
        with pytest.raises(Unauthorized):
            controller.status("missing")

    def test_status_reports_expiry(self, controller, make_account, clock, auth_settings):
        make_account("alice")
        started = controller.login("alice", TEST_PASSWORD)

        clock.advance(minutes=auth_settings.session_lifetime_minutes)
        status = controller.status(started.session_id)

        assert status.state is FlowState.EXPIRED
        assert status.credential is None

    @pytest.mark.security
    def test_expiry_invalidates_pending_token(
        self, controller, make_account, mailer, clock, auth_settings
    ):
        make_account("alice", email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)
        token = mailer.last_token

        clock.advance(minutes=auth_settings.session_lifetime_minutes)
        controller.status(started.session_id)

        assert verifications_repo.get_token(token) is None
        with pytest.raises(InvalidToken):
            controller.verify_email_link(token)

    @pytest.mark.security
    def test_rejection_invalidates_pending_token(
        self, controller, make_account, mailer, clock, auth_settings
    ):
        account = make_account("alice", two_factor=True, email_verified=False)
        started = controller.login("alice", TEST_PASSWORD)
        token = mailer.last_token
        bad = wrong_code(account.totp_secret, clock())

        for _ in range(auth_settings.challenge_max_attempts):
            with pytest.raises(InvalidCode):
                controller.submit_second_factor(started.session_id, bad)

        assert verifications_repo.get_token(token) is None

    def test_require_authorized(self, controller, make_account):
        make_account("alice")
        status = controller.login("alice", TEST_PASSWORD)

        session = controller.require_authorized(status.credential)

        assert session.username == "alice"

    @pytest.mark.security
    def test_require_authorized_rejects_session_id(self, controller, make_account):
        make_account("alice")
        status = controller.login("alice", TEST_PASSWORD)

        with pytest.raises(Unauthorized):
            controller.require_authorized(status.session_id)
        with pytest.raises(Unauthorized):
            controller.require_authorized("")

    def test_require_authorized_after_expiry(self, controller, make_account, clock):
        make_account("alice")
        status = controller.login("alice", TEST_PASSWORD)

        clock.advance(hours=1)
        with pytest.raises(Unauthorized):
            controller.require_authorized(status.credential)

    def test_logout_by_session_id(self, controller, make_account, store):
        make_account("alice")
        status = controller.login("alice", TEST_PASSWORD)

        controller.logout(status.session_id)

        assert len(store) == 0
        with pytest.raises(Unauthorized):
            controller.require_authorized(status.credential)

    def test_logout_by_credential(self, controller, make_account, store):
        make_account("alice")
        status = controller.login("alice", TEST_PASSWORD)

        controller.logout(status.credential)

        assert store.get(status.session_id) is None

    def test_logout_unknown_is_silent(self, controller):
        controller.logout("never-issued")

    def test_accounts_are_independent(self, controller, make_account):
        make_account("alice", two_factor=True)
        make_account("bob")

        alice = controller.login("alice", TEST_PASSWORD)
        bob = controller.login("bob", TEST_PASSWORD)

        assert alice.state is FlowState.AWAITING_SECOND_FACTOR
        assert bob.state is FlowState.AUTHORIZED


@pytest.mark.auth
def test_sweep_removes_expired_sessions_and_tokens(
    controller, make_account, clock, store, mailer, auth_settings
):
    make_account("alice", email_verified=False)
    make_account("bob")
    controller.login("alice", TEST_PASSWORD)
    token = mailer.last_token
    controller.login("bob", TEST_PASSWORD)

    clock.advance(minutes=auth_settings.session_lifetime_minutes)
    removed = controller.sweep()

    assert removed == 2
    assert len(store) == 0
    assert verifications_repo.get_token(token) is None
