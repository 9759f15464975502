"""Development data for the directory.

Creates verified accounts without a second factor, each owning one character
per class with a random reward score, so a fresh database has something to
page through.
"""

from __future__ import annotations

import logging
import random

from account_directory.auth.passwords import hash_password
from account_directory.db import accounts_repo
from account_directory.db.constants import CHARACTER_CLASSES, SEED_SCORE_MAX, SEED_SCORE_MIN

logger = logging.getLogger(__name__)

SEED_PASSWORD = "seed-password"  # nosec B105 - development fixture
SEED_USERNAME_PREFIX = "user"


def seed_directory(
    count: int,
    rng: random.Random | None = None,
    *,
    password: str = SEED_PASSWORD,
) -> list[int]:
    """
    Insert ``count`` seed accounts.

    Usernames continue from the highest free ``userN`` so repeated runs add
    rows instead of colliding. All accounts share one password hash.

    Args:
        count: Number of accounts to create.
        rng: Source of reward scores; pass a seeded ``random.Random`` for
            reproducible data.
        password: Password for every seeded account.

    Returns:
        Ids of the created accounts.
    """
    rng = rng or random.Random()  # nosec B311 - not security sensitive
    password_hash = hash_password(password)
    created: list[int] = []
    index = 1
    while len(created) < count:
        username = f"{SEED_USERNAME_PREFIX}{index}"
        index += 1
        account_id = accounts_repo.create_account(
            username,
            f"{username}@example.com",
            password_hash,
            email_verified=True,
        )
        if account_id is None:
            continue
        for class_name in CHARACTER_CLASSES:
            accounts_repo.record_score(
                account_id, class_name, rng.randint(SEED_SCORE_MIN, SEED_SCORE_MAX)
            )
        created.append(account_id)

    logger.info("Seeded %d account(s)", len(created))
    return created
