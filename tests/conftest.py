"""
Shared pytest fixtures for the account directory test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary SQLite databases wired in through ``use_test_database``
- A controllable clock and a mailer that records instead of sending
- Account factories (verified, unverified, with or without 2FA)
- A flow controller over a fresh session store
- A FastAPI TestClient bound to those same collaborators

Fixtures are function scoped unless hashing cost makes that wasteful.
"""

import shutil
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from account_directory.api.server import create_app
from account_directory.auth import second_factor
from account_directory.auth.flow import AuthFlowController
from account_directory.auth.passwords import hash_password
from account_directory.auth.store import SessionStore
from account_directory.config import AuthSettings, ServerConfig, use_test_database
from account_directory.db import accounts_repo
from account_directory.db.schema import init_database
from account_directory.db.types import AccountRecord

# Import shared test constants
from tests.constants import TEST_PASSWORD, TEST_VERIFICATION_URL
from tests.helpers import FakeClock, RecordingMailer

# ============================================================================
# TIME AND MAIL DOUBLES
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at a fixed instant until a test advances it."""
    return FakeClock()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """
    Create a temporary database file for testing.

    This fixture creates a unique temporary database for each test function,
    ensuring complete isolation between tests. Uses the config system's
    use_test_database context manager.

    Yields:
        Path to temporary database file

    Cleanup:
        Removes temporary database after test completes
    """
    temp_dir = tempfile.mkdtemp()
    temp_db = Path(temp_dir) / "test_directory.db"

    with use_test_database(temp_db):
        yield temp_db

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="function")
def test_db(temp_db_path: Path) -> Generator[None, None, None]:
    """
    Initialize a test database with schema but no data.

    Args:
        temp_db_path: Path to temporary database (from fixture)

    Yields:
        None (database is initialized and ready to use)
    """
    init_database()

    yield


@pytest.fixture(scope="session")
def test_password_hash() -> str:
    """bcrypt hash of TEST_PASSWORD, computed once per run."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture
def make_account(test_db, test_password_hash: str) -> Callable[..., AccountRecord]:
    """
    Factory creating accounts with password TEST_PASSWORD.

    Usage:
        account = make_account("alice", two_factor=True, email_verified=False)
    """

    def _make(
        username: str,
        *,
        email_verified: bool = True,
        two_factor: bool = False,
        totp_secret: str | None = None,
    ) -> AccountRecord:
        if two_factor and totp_secret is None:
            totp_secret = second_factor.generate_secret()
        account_id = accounts_repo.create_account(
            username,
            f"{username}@example.com",
            test_password_hash,
            totp_secret=totp_secret,
            two_factor_enabled=two_factor,
            email_verified=email_verified,
        )
        assert account_id is not None
        account = accounts_repo.get_account_by_id(account_id)
        assert account is not None
        return account

    return _make


# ============================================================================
# FLOW CONTROLLER FIXTURES
# ============================================================================


@pytest.fixture
def auth_settings() -> AuthSettings:
    """Default flow settings, independent of any local server.ini."""
    return AuthSettings()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def controller(
    test_db,
    store: SessionStore,
    mailer: RecordingMailer,
    clock: FakeClock,
    auth_settings: AuthSettings,
) -> AuthFlowController:
    """Flow controller over a fresh store, test database, and fake clock."""
    return AuthFlowController(
        store,
        mailer=mailer,
        clock=clock,
        settings=auth_settings,
        verification_url=TEST_VERIFICATION_URL,
    )


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def server_config(auth_settings: AuthSettings) -> ServerConfig:
    cfg = ServerConfig(auth=auth_settings)
    cfg.email.verification_url = TEST_VERIFICATION_URL
    return cfg


@pytest.fixture
def app(test_db, server_config: ServerConfig, store, mailer, clock):
    """Application wired to the test store, mailer, and clock (no sweeper)."""
    return create_app(
        settings=server_config,
        store=store,
        mailer=mailer,
        clock=clock,
        sweep=False,
    )


@pytest.fixture
def test_client(app) -> Generator[TestClient, None, None]:
    """
    FastAPI TestClient with the application lifespan running.

    Yields:
        TestClient for making HTTP requests
    """
    with TestClient(app) as client:
        yield client


@pytest.fixture
def authorized_headers(test_client: TestClient, make_account) -> dict[str, str]:
    """Bearer header of an authorized session for a verified account without 2FA."""
    make_account("viewer")
    response = test_client.post(
        "/auth/login", json={"identifier": "viewer", "secret": TEST_PASSWORD}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['credential']}"}
