"""FastAPI dependencies resolving per-app services from ``app.state``."""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from account_directory.auth.flow import AuthFlowController
from account_directory.auth.mailer import Mailer
from account_directory.auth.state import AuthSession
from account_directory.directory.service import DirectoryQueryService
from account_directory.errors import Unauthorized

bearer_scheme = HTTPBearer(auto_error=False)


def get_controller(request: Request) -> AuthFlowController:
    return request.app.state.controller


def get_directory_service(request: Request) -> DirectoryQueryService:
    return request.app.state.directory


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def require_authorized_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    controller: AuthFlowController = Depends(get_controller),
) -> AuthSession:
    """Resolve the bearer credential to an authorized session or fail with 401."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("Missing bearer credential")
    return controller.require_authorized(credentials.credentials)
