"""
Client-side mirror of one visitor's authentication flow.

:class:`AuthFlow` remembers the flow handle, the last state the server
reported, and, once authorized, the bearer credential. Flow operations are
serialized by an ``asyncio.Lock``; directory queries are not, so a visitor may
have several in flight and abandon any of them.

State only moves on a response the server actually gave. A timeout, transport
failure, or unrecognized response leaves the mirror where it was, and the
second-factor submission is never retried automatically.
"""

from __future__ import annotations

import asyncio
import logging

from account_directory.auth.state import FlowState, FlowStatus
from account_directory.client.api_client import DirectoryAPIClient
from account_directory.directory.query import QueryRequest, QueryResult
from account_directory.errors import (
    ChallengeExpired,
    DirectoryError,
    Expired,
    FlowConflict,
    InvalidCode,
    InvalidRequest,
    Unauthorized,
)

logger = logging.getLogger(__name__)


class AuthFlow:
    """One visitor's view of the authentication flow."""

    def __init__(self, client: DirectoryAPIClient) -> None:
        self.client = client
        self.state = FlowState.ANONYMOUS
        self.session_id: str | None = None
        self.credential: str | None = None
        self.message = ""
        self.attempts_remaining: int | None = None
        self._lock = asyncio.Lock()

    @property
    def is_authorized(self) -> bool:
        return self.state is FlowState.AUTHORIZED and self.credential is not None

    def _apply(self, status: FlowStatus) -> FlowStatus:
        self.session_id = status.session_id
        self.state = status.state
        self.message = status.message
        self.attempts_remaining = status.attempts_remaining
        self.credential = status.credential if status.state is FlowState.AUTHORIZED else None
        return status

    def _reset(self, state: FlowState = FlowState.ANONYMOUS) -> None:
        self.state = state
        self.credential = None
        self.attempts_remaining = None
        if state is FlowState.ANONYMOUS:
            self.session_id = None

    def _absorb(self, error: DirectoryError) -> None:
        """Move the mirror for errors that end the flow; ignore the rest."""
        if isinstance(error, (ChallengeExpired, Expired)):
            self._reset(FlowState.EXPIRED)
        elif isinstance(error, InvalidCode) and error.attempts_remaining <= 0:
            self._reset(FlowState.REJECTED)
        elif isinstance(error, InvalidCode):
            self.attempts_remaining = error.attempts_remaining
        elif isinstance(error, Unauthorized):
            self._reset()

    def _require_session(self) -> str:
        if not self.session_id or not self.state.is_pending:
            raise InvalidRequest("No authentication flow is in progress")
        return self.session_id

    async def login(self, identifier: str, secret: str) -> FlowStatus:
        """
        Start a flow.

        Raises:
            FlowConflict: Another flow for this visitor is still pending.
        """
        async with self._lock:
            if self.state.is_pending:
                raise FlowConflict()
            status = await self.client.login(identifier, secret)
            return self._apply(status)

    async def submit_second_factor(self, code: str) -> FlowStatus:
        async with self._lock:
            session_id = self._require_session()
            if self.state is not FlowState.AWAITING_SECOND_FACTOR:
                raise InvalidRequest("No second-factor challenge is pending")
            try:
                status = await self.client.submit_second_factor(session_id, code)
            except DirectoryError as exc:
                self._absorb(exc)
                raise
            return self._apply(status)

    async def verify_email(self, token: str) -> FlowStatus:
        async with self._lock:
            session_id = self._require_session()
            try:
                status = await self.client.verify_email(session_id, token)
            except DirectoryError as exc:
                self._absorb(exc)
                raise
            return self._apply(status)

    async def resend_verification(self) -> FlowStatus:
        async with self._lock:
            session_id = self._require_session()
            try:
                status = await self.client.resend_verification(session_id)
            except DirectoryError as exc:
                self._absorb(exc)
                raise
            return self._apply(status)

    async def refresh(self) -> FlowState:
        """Re-read the flow state, e.g. after the email link was opened elsewhere."""
        async with self._lock:
            if not self.session_id:
                return self.state
            try:
                status = await self.client.status(self.session_id)
            except DirectoryError as exc:
                self._absorb(exc)
                raise
            self._apply(status)
            return self.state

    async def logout(self) -> None:
        """Forget the flow locally; tell the server if it can be reached."""
        async with self._lock:
            session_id = self.session_id
            self._reset()
            if session_id:
                try:
                    await self.client.logout(session_id)
                except DirectoryError as exc:
                    logger.info("Server-side logout failed, flow dropped locally: %s", exc)

    async def query(self, request: QueryRequest) -> QueryResult:
        """
        Fetch a directory page with the flow's credential.

        Raises:
            Unauthorized: The flow is not authorized (the mirror resets when
                the server rejects the credential).
        """
        if not self.is_authorized:
            raise Unauthorized("Sign in to view the directory")
        try:
            return await self.client.query_accounts(request, self.credential or "")
        except Unauthorized:
            self._reset()
            raise
