"""Schema creation for the SQLite backend.

Tables:
    accounts:            credentials, second-factor secret, email verification flag
    characters:          one row per (account, class) the account plays
    scores:              reward scores recorded for characters
    email_verifications: single-use verification tokens with expiry

The directory row of an account is derived at query time (best score and the
class that holds it), so there is no denormalized leaderboard table to keep in
sync.
"""

from __future__ import annotations

import logging

from account_directory.db.connection import connection_scope
from account_directory.db.errors import raise_write_error

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        email TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        totp_secret TEXT,
        two_factor_enabled INTEGER NOT NULL DEFAULT 0,
        email_verified INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS characters (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        class_name TEXT NOT NULL,
        UNIQUE (account_id, class_name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scores (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
        reward_score INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS email_verifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        token TEXT UNIQUE NOT NULL,
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        used_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_characters_account ON characters(account_id)",
    "CREATE INDEX IF NOT EXISTS idx_scores_character ON scores(character_id)",
    (
        "CREATE INDEX IF NOT EXISTS idx_email_verifications_account "
        "ON email_verifications(account_id, used_at)"
    ),
)


def init_database() -> None:
    """Create all tables and indexes if they do not exist."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            for statement in SCHEMA_STATEMENTS:
                cursor.execute(statement)
    except Exception as exc:
        raise_write_error("schema.init_database", exc)
    logger.info("Database schema verified")
