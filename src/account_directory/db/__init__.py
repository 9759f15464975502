"""SQLite persistence for accounts, scores, and verification tokens."""
