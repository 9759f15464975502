"""Shared database constants for the DB package."""

from __future__ import annotations

# Character classes an account can play. Class ids in the original data set
# ran 1..8; we store the class name directly.
CHARACTER_CLASSES = (
    "warrior",
    "mage",
    "rogue",
    "cleric",
    "ranger",
    "paladin",
    "warlock",
    "bard",
)

# Reward score bounds used when seeding fake directory data.
SEED_SCORE_MIN = 10
SEED_SCORE_MAX = 1000
