"""Account repository operations for the SQLite backend.

Accounts carry the credentials checked by the authentication flow and own the
characters/scores the directory is built from.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime

from account_directory.db.connection import connection_scope
from account_directory.db.errors import raise_read_error, raise_write_error
from account_directory.db.types import AccountRecord

_ACCOUNT_COLUMNS = (
    "id, username, email, password_hash, totp_secret, two_factor_enabled, email_verified"
)


def _row_to_account(row: tuple) -> AccountRecord:
    return AccountRecord(
        id=int(row[0]),
        username=row[1],
        email=row[2],
        password_hash=row[3],
        totp_secret=row[4],
        two_factor_enabled=bool(row[5]),
        email_verified=bool(row[6]),
    )


def create_account(
    username: str,
    email: str,
    password_hash: str,
    *,
    totp_secret: str | None = None,
    two_factor_enabled: bool = False,
    email_verified: bool = False,
    created_at: datetime | None = None,
) -> int | None:
    """Insert an account row.

    Returns:
        The new account id, or ``None`` when the username is already taken.
    """
    created = (created_at or datetime.now(UTC)).isoformat()
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO accounts (
                    username, email, password_hash, totp_secret,
                    two_factor_enabled, email_verified, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    username,
                    email,
                    password_hash,
                    totp_secret,
                    int(two_factor_enabled),
                    int(email_verified),
                    created,
                ),
            )
            return int(cursor.lastrowid) if cursor.lastrowid is not None else None
    except sqlite3.IntegrityError:
        return None
    except Exception as exc:
        raise_write_error("accounts.create_account", exc, details=f"username={username!r}")


def username_exists(username: str) -> bool:
    """Return ``True`` when an account with ``username`` exists."""
    try:
        with connection_scope() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM accounts WHERE username = ?", (username,))
            return cursor.fetchone() is not None
    except Exception as exc:
        raise_read_error("accounts.username_exists", exc, details=f"username={username!r}")


def get_account_by_username(username: str) -> AccountRecord | None:
    """Return the account for ``username`` or ``None``."""
    try:
        with connection_scope() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE username = ?",  # nosec B608
                (username,),
            )
            row = cursor.fetchone()
        return _row_to_account(row) if row else None
    except Exception as exc:
        raise_read_error("accounts.get_account_by_username", exc, details=f"username={username!r}")


def get_account_by_id(account_id: int) -> AccountRecord | None:
    """Return the account with ``account_id`` or ``None``."""
    try:
        with connection_scope() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = ?",  # nosec B608
                (account_id,),
            )
            row = cursor.fetchone()
        return _row_to_account(row) if row else None
    except Exception as exc:
        raise_read_error("accounts.get_account_by_id", exc, details=f"account_id={account_id}")


def mark_email_verified(account_id: int) -> bool:
    """Set the verified flag. Returns ``False`` when the account is missing."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute("UPDATE accounts SET email_verified = 1 WHERE id = ?", (account_id,))
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error("accounts.mark_email_verified", exc, details=f"account_id={account_id}")


def set_two_factor(account_id: int, totp_secret: str | None, *, enabled: bool) -> bool:
    """Store or clear the TOTP secret and toggle 2FA for an account."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE accounts SET totp_secret = ?, two_factor_enabled = ? WHERE id = ?",
                (totp_secret, int(enabled), account_id),
            )
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error("accounts.set_two_factor", exc, details=f"account_id={account_id}")


def record_score(account_id: int, class_name: str, reward_score: int) -> int:
    """Record a reward score for the account's character of ``class_name``.

    The character row is created on first use.

    Returns:
        The id of the inserted score row.
    """
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT OR IGNORE INTO characters (account_id, class_name) VALUES (?, ?)",
                (account_id, class_name),
            )
            cursor.execute(
                "SELECT id FROM characters WHERE account_id = ? AND class_name = ?",
                (account_id, class_name),
            )
            character_id = int(cursor.fetchone()[0])
            cursor.execute(
                "INSERT INTO scores (character_id, reward_score) VALUES (?, ?)",
                (character_id, reward_score),
            )
            return int(cursor.lastrowid)
    except Exception as exc:
        raise_write_error(
            "accounts.record_score",
            exc,
            details=f"account_id={account_id}, class_name={class_name!r}",
        )
