"""Directory read model over accounts, characters, and scores.

Each listed account appears once, with its best reward score and the class of
the character holding that score (ties on score go to the class name that
sorts first). ``rank`` is ``RANK()`` over score descending, so equal scores
share a rank. Accounts with no recorded score are not listed.

Filtering happens before the count and before sorting/pagination, so
``total`` always describes the filtered set.
"""

from __future__ import annotations

from account_directory.db.connection import connection_scope
from account_directory.db.errors import raise_read_error
from account_directory.directory.query import DirectoryEntry, QueryRequest

_RANKED_CTE = """
    WITH per_character AS (
        SELECT
            a.id AS id,
            a.username AS username,
            c.class_name AS class_name,
            MAX(s.reward_score) AS score
        FROM accounts a
        JOIN characters c ON c.account_id = a.id
        JOIN scores s ON s.character_id = c.id
        GROUP BY a.id, a.username, c.class_name
    ),
    best AS (
        SELECT
            id, username, class_name, score,
            ROW_NUMBER() OVER (PARTITION BY id ORDER BY score DESC, class_name ASC) AS pick
        FROM per_character
    ),
    ranked AS (
        SELECT
            id, username, class_name, score,
            RANK() OVER (ORDER BY score DESC) AS rank
        FROM best
        WHERE pick = 1
    )
"""


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so the search text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _where_clause(request: QueryRequest) -> tuple[str, list[object]]:
    """Build the conjunctive filter for ``request``."""
    clauses = ["1 = 1"]
    params: list[object] = []

    if request.search:
        clauses.append("casefold(username) LIKE ? ESCAPE '\\'")
        params.append(f"%{_escape_like(request.search.casefold())}%")

    if request.class_filter:
        clauses.append("class_name = ?")
        params.append(request.class_filter)

    if request.min_score is not None:
        clauses.append("score >= ?")
        params.append(request.min_score)

    if request.max_score is not None:
        clauses.append("score <= ?")
        params.append(request.max_score)

    return " AND ".join(clauses), params


def count_entries(request: QueryRequest) -> int:
    """Count directory rows matching the request filters (pagination ignored)."""
    where, params = _where_clause(request)
    sql = f"{_RANKED_CTE} SELECT COUNT(*) FROM ranked WHERE {where}"  # nosec B608
    try:
        with connection_scope() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            row = cursor.fetchone()
        return int(row[0]) if row else 0
    except Exception as exc:
        raise_read_error("directory.count_entries", exc)


def query_entries(request: QueryRequest) -> list[DirectoryEntry]:
    """Return one page of filtered, sorted directory rows.

    The sort column comes from the :data:`SORT_FIELDS` whitelist, never from
    caller text. ``id ASC`` is always the final tie-breaker.
    """
    where, params = _where_clause(request)
    direction = "DESC" if request.order == "desc" else "ASC"
    column = request.sort_column
    order_by = f"{column} {direction}"
    if column != "id":
        order_by = f"{order_by}, id ASC"
    sql = f"""
        {_RANKED_CTE}
        SELECT id, username, rank, class_name, score
        FROM ranked
        WHERE {where}
        ORDER BY {order_by}
        LIMIT ? OFFSET ?
    """  # nosec B608
    try:
        with connection_scope() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, [*params, request.limit, request.offset])
            rows = cursor.fetchall()
    except Exception as exc:
        raise_read_error("directory.query_entries", exc)
    return [
        DirectoryEntry(
            id=int(row[0]),
            username=row[1],
            rank=int(row[2]),
            class_name=row[3],
            score=int(row[4]),
        )
        for row in rows
    ]
