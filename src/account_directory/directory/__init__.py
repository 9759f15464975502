"""Directory query contract: requests, results, and the query service."""

from account_directory.directory.query import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    SORT_FIELDS,
    DirectoryEntry,
    QueryRequest,
    QueryResult,
)

__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_PAGE",
    "SORT_FIELDS",
    "DirectoryEntry",
    "QueryRequest",
    "QueryResult",
]
