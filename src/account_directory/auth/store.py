"""Owned, in-memory store of authentication sessions.

One :class:`SessionStore` is created per application and handed to the flow
controller; there is no module-level session registry. Sessions are keyed by
their flow ``session_id``; authorized sessions are also indexed by bearer
credential. Expired and terminal sessions stay visible until
:meth:`SessionStore.sweep_expired` removes them.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from account_directory.auth.state import AuthSession


class SessionStore:
    """Session registry guarded by a re-entrant lock."""

    def __init__(self) -> None:
        self._sessions: dict[str, AuthSession] = {}
        self._by_credential: dict[str, str] = {}
        self._lock = threading.RLock()

    @contextmanager
    def locked(self) -> Iterator[SessionStore]:
        """Hold the store lock for a multi-step read-modify-write."""
        with self._lock:
            yield self

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def add(self, session: AuthSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def get(self, session_id: str) -> AuthSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def get_by_credential(self, credential: str) -> AuthSession | None:
        with self._lock:
            session_id = self._by_credential.get(credential)
            return self._sessions.get(session_id) if session_id else None

    def bind_credential(self, session: AuthSession, credential: str) -> None:
        """Attach a bearer credential to ``session`` and index it."""
        with self._lock:
            session.credential = credential
            self._by_credential[credential] = session.session_id

    def remove(self, session_id: str) -> AuthSession | None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is not None and session.credential:
                self._by_credential.pop(session.credential, None)
            return session

    def for_account(self, account_id: int) -> list[AuthSession]:
        with self._lock:
            return [s for s in self._sessions.values() if s.account_id == account_id]

    def sweep_expired(self, now: datetime) -> list[AuthSession]:
        """Remove sessions past their lifetime or in a terminal state.

        Returns:
            The removed sessions, so callers can release what they held.
        """
        with self._lock:
            doomed = [
                s
                for s in self._sessions.values()
                if s.terminal is not None or s.lifetime_elapsed(now)
            ]
            for session in doomed:
                self.remove(session.session_id)
            return doomed
