"""
Async HTTP client for the account directory API.

The client is an async context manager owning one ``httpx.AsyncClient``:

    async with DirectoryAPIClient(config) as client:
        status = await client.login("alice", "correct horse")
        page = await client.query_accounts(QueryRequest(page=2), status.credential)

Every failure surfaces as a :class:`DirectoryError`. Server errors are mapped
back from their ``error`` kind; timeouts, transport failures, non-JSON bodies
and unknown kinds all become :class:`ServiceUnavailable`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from account_directory.auth.state import FlowState, FlowStatus
from account_directory.client.config import ClientConfig
from account_directory.directory.query import QueryRequest, QueryResult
from account_directory.errors import ServiceUnavailable, error_for_kind

logger = logging.getLogger(__name__)


def _parse_status(data: dict[str, Any]) -> FlowStatus:
    try:
        state = FlowState(data["state"])
        return FlowStatus(
            session_id=str(data["session_id"]),
            state=state,
            message=str(data.get("message", "")),
            credential=data.get("credential") if state is FlowState.AUTHORIZED else None,
            attempts_remaining=data.get("attempts_remaining"),
        )
    except (KeyError, ValueError, TypeError) as exc:
        raise ServiceUnavailable("Unrecognized response from server") from exc


@dataclass
class DirectoryAPIClient:
    """
    Async client for the directory and authentication endpoints.

    Attributes:
        config: Server URL, timeout, and local page-size bound.
        transport: Optional httpx transport (tests pass a mock transport).
    """

    config: ClientConfig = field(default_factory=ClientConfig.from_env)
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    _http_client: httpx.AsyncClient | None = field(default=None, repr=False)

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> DirectoryAPIClient:
        self._http_client = httpx.AsyncClient(
            base_url=self.config.server_url,
            timeout=self.config.timeout,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """
        Raises:
            RuntimeError: If accessed outside of the async context manager.
        """
        if self._http_client is None:
            raise RuntimeError(
                "DirectoryAPIClient must be used as an async context manager. "
                "Use 'async with DirectoryAPIClient(config) as client:'"
            )
        return self._http_client

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return its JSON object body.

        Raises:
            DirectoryError: Mapped from the server's error kind.
            ServiceUnavailable: Timeout, transport failure, or unusable body.
        """
        try:
            response = await self.http_client.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise ServiceUnavailable(f"Request to {path} timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ServiceUnavailable(
                f"Cannot connect to server at {self.config.server_url}"
            ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ServiceUnavailable(
                f"Server returned invalid response (status {response.status_code})"
            ) from exc
        if not isinstance(data, dict):
            raise ServiceUnavailable(
                f"Server returned invalid response (status {response.status_code})"
            )

        if response.is_success:
            return data

        error = error_for_kind(data.get("error"), data.get("detail"), data)
        if response.status_code >= 500 and error.status_code < 500:
            # A 5xx never carries a client-side error kind.
            error = ServiceUnavailable(error.message)
        raise error

    # -------------------------------------------------------------------------
    # Authentication flow
    # -------------------------------------------------------------------------

    async def login(self, identifier: str, secret: str) -> FlowStatus:
        data = await self._request(
            "POST", "/auth/login", json={"identifier": identifier, "secret": secret}
        )
        return _parse_status(data)

    async def submit_second_factor(self, session_id: str, code: str) -> FlowStatus:
        data = await self._request(
            "POST", "/auth/second-factor", json={"session_id": session_id, "code": code}
        )
        return _parse_status(data)

    async def verify_email(self, session_id: str, token: str) -> FlowStatus:
        data = await self._request(
            "POST", "/auth/verify-email", json={"session_id": session_id, "token": token}
        )
        return _parse_status(data)

    async def resend_verification(self, session_id: str) -> FlowStatus:
        data = await self._request(
            "POST", "/auth/resend-verification", json={"session_id": session_id}
        )
        return _parse_status(data)

    async def status(self, session_id: str) -> FlowStatus:
        data = await self._request("GET", "/auth/status", params={"session_id": session_id})
        return _parse_status(data)

    async def logout(self, session_id: str) -> None:
        await self._request("POST", "/auth/logout", json={"session_id": session_id})

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        *,
        enable_two_factor: bool = False,
    ) -> dict[str, Any]:
        """Create an account. The returned dict may carry ``otpauth_uri``."""
        return await self._request(
            "POST",
            "/register",
            json={
                "username": username,
                "email": email,
                "password": password,
                "enable_two_factor": enable_two_factor,
            },
        )

    async def verify_email_link(self, token: str) -> dict[str, Any]:
        return await self._request("GET", "/verify-email", params={"token": token})

    # -------------------------------------------------------------------------
    # Directory
    # -------------------------------------------------------------------------

    async def query_accounts(self, request: QueryRequest, credential: str) -> QueryResult:
        """
        Fetch one directory page.

        The request is validated locally first, so a malformed request never
        reaches the network.

        Raises:
            InvalidRequest: Malformed request (local or server side).
            Unauthorized: Credential missing or no longer authorized.
            ServiceUnavailable: Transport, timeout, or storage failure.
        """
        request.validate(self.config.max_limit)
        data = await self._request(
            "GET",
            "/accounts",
            params=request.to_params(),
            headers={"Authorization": f"Bearer {credential}"},
        )
        try:
            return QueryResult.from_dict(data, limit=request.limit)
        except (KeyError, ValueError, TypeError) as exc:
            raise ServiceUnavailable("Unrecognized directory response") from exc

    async def get_health(self) -> dict[str, Any]:
        return await self._request("GET", "/health")

