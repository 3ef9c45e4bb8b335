"""
Spreadsheet downloads.

GET /api/v1/download/tasks                task report (optionally ?ids=1&ids=2)
GET /api/v1/download/public-tasks         public task search results
GET /api/v1/download/tasks-by-assignee    public by-assignee search results
GET /api/v1/download/todos                the caller's to-do list

Every endpoint takes fmt=csv|xlsx and sets X-Total-Count so clients can show
the record count before the body arrives.  Dates are dd/mm/yyyy and enum
values use their display labels.
"""

import sqlite3

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from api.auth import require_user
from api.database import get_db
from api.routes.public import search_public_tasks, search_tasks_by_assignee
from api.routes.tasks import fetch_tasks
from api.routes.todos import fetch_todos
from utils.exporting import (
    XLSX_MEDIA_TYPE,
    ExportTable,
    assignee_task_export,
    public_task_export,
    render_csv,
    render_xlsx,
    task_report,
    todo_export,
)
from utils.query import build_task_where_clause

router = APIRouter(prefix="/download", tags=["download"])

_FMT = Query("csv", pattern="^(csv|xlsx)$", description="Output format")


def _stream(table: ExportTable, fmt: str, filters: str = "none") -> StreamingResponse:
    headers = {
        "Content-Disposition": f"attachment; filename={table.filename(fmt)}",
        "X-Total-Count": str(len(table)),
    }
    if fmt == "xlsx":
        content = render_xlsx(table, metadata={"Filters": filters})
        headers["Content-Length"] = str(len(content))
        return StreamingResponse(iter([content]), media_type=XLSX_MEDIA_TYPE, headers=headers)
    return StreamingResponse(iter([render_csv(table)]), media_type="text/csv", headers=headers)


@router.get("/tasks", summary="Download the task report")
def download_tasks(
    fmt: str = _FMT,
    ids: list[int] | None = Query(None, description="Only these task ids"),
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> StreamingResponse:
    """Export all tasks, or only the selected ones when ids are given."""
    where, params = build_task_where_clause(ids=ids)
    tasks = fetch_tasks(conn, where, params)
    filters = f"ids={','.join(map(str, ids))}" if ids else "none"
    return _stream(task_report(tasks), fmt, filters)


@router.get("/public-tasks", summary="Download public task search results")
def download_public_tasks(
    fmt: str = _FMT,
    term: str = Query("", description="Same search term as POST /public/tasks"),
    conn: sqlite3.Connection = Depends(get_db),
) -> StreamingResponse:
    table = public_task_export(search_public_tasks(conn, term))
    return _stream(table, fmt, f"term={term}" if term else "none")


@router.get("/tasks-by-assignee", summary="Download tasks for an assignee search")
def download_tasks_by_assignee(
    fmt: str = _FMT,
    term: str = Query("", description="Assignee name search term"),
    conn: sqlite3.Connection = Depends(get_db),
) -> StreamingResponse:
    table = assignee_task_export(search_tasks_by_assignee(conn, term))
    return _stream(table, fmt, f"term={term}" if term else "none")


@router.get("/todos", summary="Download the caller's to-do list")
def download_todos(
    fmt: str = _FMT,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> StreamingResponse:
    return _stream(todo_export(fetch_todos(conn, caller)), fmt)
