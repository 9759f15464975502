"""Gated directory endpoint."""

from fastapi import APIRouter, Depends, Request

from account_directory.api.dependencies import get_directory_service, require_authorized_session
from account_directory.api.models import ErrorResponse
from account_directory.auth.state import AuthSession
from account_directory.directory.query import QueryRequest
from account_directory.directory.service import DirectoryQueryService


def router() -> APIRouter:
    """Build the directory router."""
    api = APIRouter(
        responses={
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        }
    )

    @api.get("/accounts")
    def list_accounts(
        request: Request,
        session: AuthSession = Depends(require_authorized_session),
        service: DirectoryQueryService = Depends(get_directory_service),
    ):
        """
        One page of the directory.

        Query parameters: ``page``, ``limit``, ``search``, ``class``,
        ``minScore``, ``maxScore``, ``sort`` (rank, username, class, score,
        id) and ``order`` (asc, desc). Requires an authorized bearer
        credential.
        """
        query = QueryRequest.from_params(request.query_params, default_limit=service.default_limit)
        return service.query_accounts(query).to_dict()

    return api
