"""Email verification token persistence.

Tokens are single use. Issuing a new token for an account deletes that
account's older unused tokens, so only the most recent link works.
"""

from __future__ import annotations

from datetime import datetime

from account_directory.db.connection import connection_scope
from account_directory.db.errors import raise_read_error, raise_write_error
from account_directory.db.types import VerificationRecord


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def issue_token(account_id: int, token: str, *, created_at: datetime, expires_at: datetime) -> None:
    """Store ``token`` for ``account_id`` and drop older unused tokens."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM email_verifications WHERE account_id = ? AND used_at IS NULL",
                (account_id,),
            )
            cursor.execute(
                """
                INSERT INTO email_verifications (account_id, token, created_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (account_id, token, created_at.isoformat(), expires_at.isoformat()),
            )
    except Exception as exc:
        raise_write_error("verifications.issue_token", exc, details=f"account_id={account_id}")


def get_token(token: str) -> VerificationRecord | None:
    """Return the token row or ``None`` when unknown."""
    try:
        with connection_scope() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT account_id, token, created_at, expires_at, used_at
                FROM email_verifications WHERE token = ?
                """,
                (token,),
            )
            row = cursor.fetchone()
    except Exception as exc:
        raise_read_error("verifications.get_token", exc)
    if not row:
        return None
    return VerificationRecord(
        account_id=int(row[0]),
        token=row[1],
        created_at=datetime.fromisoformat(row[2]),
        expires_at=datetime.fromisoformat(row[3]),
        used_at=_parse(row[4]),
    )


def redeem_token(token: str, *, used_at: datetime) -> bool:
    """Mark ``token`` used and its account verified in one transaction.

    Returns:
        ``False`` when the token was already used (or vanished) meanwhile.
    """
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE email_verifications SET used_at = ? WHERE token = ? AND used_at IS NULL",
                (used_at.isoformat(), token),
            )
            if int(cursor.rowcount or 0) == 0:
                return False
            cursor.execute(
                """
                UPDATE accounts SET email_verified = 1
                WHERE id = (SELECT account_id FROM email_verifications WHERE token = ?)
                """,
                (token,),
            )
            return True
    except Exception as exc:
        raise_write_error("verifications.redeem_token", exc)


def invalidate_tokens_for_account(account_id: int) -> int:
    """Delete unused tokens of ``account_id`` and return how many were removed."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM email_verifications WHERE account_id = ? AND used_at IS NULL",
                (account_id,),
            )
            return int(cursor.rowcount or 0)
    except Exception as exc:
        raise_write_error(
            "verifications.invalidate_tokens_for_account",
            exc,
            details=f"account_id={account_id}",
        )


def delete_expired_tokens(cutoff: datetime) -> int:
    """Delete tokens, used or not, that expired at or before ``cutoff``.

    Callers pass a cutoff well behind the current time so that a recently
    expired token is still found and reported as expired.
    """
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM email_verifications WHERE expires_at <= ?",
                (cutoff.isoformat(),),
            )
            return int(cursor.rowcount or 0)
    except Exception as exc:
        raise_write_error("verifications.delete_expired_tokens", exc)
