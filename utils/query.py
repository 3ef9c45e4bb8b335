"""Shared SQL query builder utilities for the API routes.

Provides the WHERE clause and ORDER BY construction used by tasks.py,
public.py and download.py.
"""

from typing import Any

ALLOWED_TASK_SORTS = {
    "id", "title", "clientName", "taskType", "subType", "status",
    "paymentStatus", "assignedName", "dueDate", "completionDate",
    "assignmentDate", "createdAt",
}

TASK_SEARCH_COLUMNS = ("title", "clientName", "assignedName", "subType", "comment")


def _like(value: str) -> str:
    escaped = value.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_task_where_clause(
    status: list[str] | None = None,
    payment_status: list[str] | None = None,
    task_type: list[str] | None = None,
    sub_type: str | None = None,
    assignee_name: str | None = None,
    comment: str | None = None,
    search_term: str | None = None,
    client_id: int | None = None,
    assigned_to: str | None = None,
    ids: list[int] | None = None,
) -> tuple[str, list[Any]]:
    """Build a SQL WHERE clause for the tasks table.

    Args:
        status: Exact status value(s).
        payment_status: Exact payment status value(s).
        task_type: Exact task type value(s).
        sub_type: Case-insensitive substring of subType.
        assignee_name: Case-insensitive substring of assignedName.
        comment: Case-insensitive substring of comment.
        search_term: Case-insensitive substring over TASK_SEARCH_COLUMNS.
        client_id: Restrict to one client.
        assigned_to: Restrict to one assignee principal.
        ids: Restrict to these task ids.

    Returns:
        Tuple of (where_clause_string, params_list). The where_clause_string
        starts with "WHERE " if any conditions exist, or is "" if none.
    """
    conditions: list[str] = []
    params: list[Any] = []

    for column, values in (("status", status),
                           ("paymentStatus", payment_status),
                           ("taskType", task_type)):
        if values:
            placeholders = ",".join("?" * len(values))
            conditions.append(f"{column} IN ({placeholders})")
            params.extend(values)

    for column, value in (("subType", sub_type),
                          ("assignedName", assignee_name),
                          ("comment", comment)):
        if value and value.strip():
            conditions.append(f"lower(coalesce({column}, '')) LIKE ? ESCAPE '\\'")
            params.append(_like(value))

    if search_term and search_term.strip():
        pattern = _like(search_term)
        ors = " OR ".join(
            f"lower(coalesce({c}, '')) LIKE ? ESCAPE '\\'" for c in TASK_SEARCH_COLUMNS
        )
        conditions.append(f"({ors})")
        params.extend([pattern] * len(TASK_SEARCH_COLUMNS))

    if client_id is not None:
        conditions.append("clientId = ?")
        params.append(client_id)

    if assigned_to is not None:
        conditions.append("assignedTo = ?")
        params.append(assigned_to)

    if ids is not None:
        if not ids:
            # Empty selection → no rows match
            return "WHERE 1=0", []
        id_placeholders = ",".join("?" * len(ids))
        conditions.append(f"id IN ({id_placeholders})")
        params.extend(ids)

    where = "WHERE " + " AND ".join(conditions) if conditions else ""
    return where, params


def build_like_clause(columns: tuple[str, ...], term: str | None) -> tuple[str, list[Any]]:
    """WHERE clause matching *term* as a substring of any of *columns*."""
    if not term or not term.strip():
        return "", []
    pattern = _like(term)
    ors = " OR ".join(f"lower(coalesce({c}, '')) LIKE ? ESCAPE '\\'" for c in columns)
    return f"WHERE ({ors})", [pattern] * len(columns)


def build_order_clause(
    sort_by: str,
    sort_dir: str,
    allowed_sorts: set[str] | None = None,
    default_sort: str = "id",
) -> str:
    """Build a safe SQL ORDER BY clause.

    Text columns sort case-insensitively.  The status column sorts by domain
    rank rather than lexically.

    Returns:
        ORDER BY clause string, e.g. "ORDER BY dueDate ASC, id ASC".
    """
    if allowed_sorts is None:
        allowed_sorts = ALLOWED_TASK_SORTS
    col = sort_by if sort_by in allowed_sorts else default_sort
    direction = "DESC" if sort_dir.lower() == "desc" else "ASC"
    if col == "status":
        expr = ("CASE status WHEN 'pending' THEN 0 WHEN 'inProgress' THEN 1 "
                "WHEN 'docsPending' THEN 2 WHEN 'hold' THEN 3 WHEN 'completed' THEN 4 "
                "ELSE 5 END")
    elif col in ("title", "clientName", "subType", "assignedName"):
        expr = f"lower(coalesce({col}, ''))"
    else:
        expr = col
    tie = "" if col == "id" else ", id ASC"
    return f"ORDER BY {expr} {direction}{tie}"
