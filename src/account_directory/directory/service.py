"""Server-side directory query service."""

from __future__ import annotations

import logging

from account_directory.db import directory_repo
from account_directory.db.errors import DatabaseError
from account_directory.directory.query import QueryRequest, QueryResult
from account_directory.errors import ServiceUnavailable

logger = logging.getLogger(__name__)


class DirectoryQueryService:
    """
    Answers directory queries against the database.

    Stateless per call and read-only; the service never retries. Callers are
    trusted to be authorized (the HTTP layer enforces the gate).

    Args:
        max_limit: Largest page size accepted. Defaults to
            ``config.directory.max_limit`` at call time.
        default_limit: Page size used when a request names none. Defaults to
            ``config.directory.default_limit``.
    """

    def __init__(self, max_limit: int | None = None, default_limit: int | None = None) -> None:
        self._max_limit = max_limit
        self._default_limit = default_limit

    @property
    def max_limit(self) -> int:
        if self._max_limit is not None:
            return self._max_limit
        from account_directory.config import config

        return config.directory.max_limit

    @property
    def default_limit(self) -> int:
        if self._default_limit is not None:
            return self._default_limit
        from account_directory.config import config

        return config.directory.default_limit

    def query_accounts(self, request: QueryRequest) -> QueryResult:
        """Return one page of the directory for ``request``.

        Raises:
            InvalidRequest: If the request is out of bounds.
            ServiceUnavailable: If the database cannot be read.
        """
        request.validate(self.max_limit)
        try:
            total = directory_repo.count_entries(request)
            rows = directory_repo.query_entries(request) if request.offset < total else []
        except DatabaseError as exc:
            logger.error("Directory query failed: %s", exc)
            raise ServiceUnavailable("Failed to fetch accounts") from exc

        logger.debug(
            "Directory page %d (limit %d, sort %s %s): %d of %d rows",
            request.page,
            request.limit,
            request.sort,
            request.order,
            len(rows),
            total,
        )
        return QueryResult(data=rows, total=total, page=request.page, limit=request.limit)
