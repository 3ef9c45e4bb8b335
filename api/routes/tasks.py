"""
Task endpoints.

CRUD:
    GET    /api/v1/tasks                      getTasks (multi-column ?sort=col:dir)
    GET    /api/v1/tasks/{id}
    POST   /api/v1/tasks                      createTask
    PUT    /api/v1/tasks/{id}                 updateTask
    PUT    /api/v1/tasks                      updateTasks
    DELETE /api/v1/tasks/{id}                 deleteTask
    POST   /api/v1/tasks/bulk-delete          deleteTasks
    POST   /api/v1/tasks/bulk                 bulkImportTasks (JSON records)

Partial updates:
    PATCH  /api/v1/tasks/{id}/status|comment|bill|payment|captains|assignee

Queries:
    GET    /api/v1/tasks/by-status/{status}   getTasksByStatus
    GET    /api/v1/tasks/by-type/{type}       getTasksByType
    POST   /api/v1/tasks/filter               filterTasks
    POST   /api/v1/tasks/filter/by-client     filterAndSortByClientName
    GET    /api/v1/tasks/by-date              filterTasksByDate
    GET    /api/v1/tasks/search-by-date       searchTasksByDate
    GET    /api/v1/tasks/export               getTasksForExport / getAllTasksForExport
    POST   /api/v1/tasks/export/selected      getSelectedTasksForExport

Spreadsheet import:
    GET    /api/v1/tasks/import/template
    POST   /api/v1/tasks/import/preview
    POST   /api/v1/tasks/import

Only the assignee, a captain or an admin may modify or delete a task.
Every write clears the dashboard aggregate cache.
"""

import json
import logging
import sqlite3
from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from api.auth import check_can_edit_task, require_user
from api.database import get_db
from api.models import (
    AssigneeUpdate,
    BillUpdate,
    CaptainsUpdate,
    CommentUpdate,
    DateSearchResult,
    DeleteResult,
    IdList,
    ImportPreviewOut,
    ImportResult,
    PaymentUpdate,
    StatusUpdate,
    Task,
    TaskFilter,
    TaskIn,
    TaskUpdate,
)
from utils.cache import TTLCache
from utils.config import AppConfig
from utils.database import batch_insert, placeholders, query_to_dicts
from utils.exporting import task_template
from utils.formatting import compute_outstanding
from utils.importing import preview_task_import, read_upload
from utils.labels import TaskStatus, TaskType
from utils.query import build_order_clause, build_task_where_clause
from utils.sorting import SortState, sort_records, task_sort_keys
from utils.timestamps import day_number, now_nanos

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])

# Dashboard aggregates; cleared on every task or client write.
aggregate_cache: TTLCache = TTLCache(maxsize=64, ttl_seconds=AppConfig.from_env().dashboard_cache_ttl)

_TASK_COLUMNS = (
    "clientId", "clientName", "title", "taskType", "subType", "status",
    "paymentStatus", "comment", "assignedTo", "assignedName", "captains",
    "recurring", "createdAt", "assignmentDate", "manualAssignmentDate",
    "dueDate", "completionDate", "bill", "advanceReceived", "outstandingAmount",
)


def invalidate_aggregates() -> None:
    aggregate_cache.invalidate()


# ── Row helpers (shared with dashboard, public and download routes) ───────────

def row_to_task(row: sqlite3.Row | dict) -> dict[str, Any]:
    task = dict(row)
    task["captains"] = json.loads(task.get("captains") or "[]")
    return task


def fetch_tasks(conn: sqlite3.Connection, where: str = "", params: list[Any] | None = None,
                order: str = "ORDER BY id ASC") -> list[dict[str, Any]]:
    rows = conn.execute(f"SELECT * FROM tasks {where} {order}", params or []).fetchall()
    return [row_to_task(r) for r in rows]


def fetch_task(conn: sqlite3.Connection, task_id: int) -> dict[str, Any]:
    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    if row is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return row_to_task(row)


def resolve_client(conn: sqlite3.Connection, client_id: int) -> sqlite3.Row:
    row = conn.execute("SELECT id, name FROM clients WHERE id = ?", (client_id,)).fetchone()
    if row is None:
        raise HTTPException(status_code=404, detail=f"Client {client_id} not found")
    return row


def display_name_for(conn: sqlite3.Connection, principal: str) -> str:
    """Team member name, else profile name, else the principal itself."""
    row = conn.execute("SELECT name FROM team_members WHERE principal = ?", (principal,)).fetchone()
    if row is None:
        row = conn.execute("SELECT name FROM user_profiles WHERE principal = ?", (principal,)).fetchone()
    return row["name"] if row else principal


def _completion_for(status: str, requested: int | None, previous: int | None, now: int) -> int | None:
    if status != TaskStatus.completed.value:
        return None
    return requested or previous or now


def _insert_task(conn: sqlite3.Connection, record: dict[str, Any]) -> int:
    values = []
    for col in _TASK_COLUMNS:
        value = record.get(col)
        if col == "captains":
            value = json.dumps(value or [])
        values.append(value)
    ids = batch_insert(
        conn,
        f"INSERT INTO tasks ({', '.join(_TASK_COLUMNS)}) VALUES ({placeholders(len(_TASK_COLUMNS))})",
        [tuple(values)],
    )
    return ids[0]


def _update_fields(conn: sqlite3.Connection, task_id: int, fields: dict[str, Any]) -> None:
    if "captains" in fields:
        fields = {**fields, "captains": json.dumps(fields["captains"] or [])}
    assignments = ", ".join(f"{k} = ?" for k in fields)
    conn.execute(f"UPDATE tasks SET {assignments} WHERE id = ?", [*fields.values(), task_id])


def build_new_task(conn: sqlite3.Connection, body: dict[str, Any], caller: str) -> dict[str, Any]:
    """Fill server-owned fields for a task about to be inserted."""
    client = resolve_client(conn, body["clientId"])
    now = now_nanos()
    assigned_to = body.get("assignedTo") or caller
    assigned_name = body.get("assignedName") or display_name_for(conn, assigned_to)
    status = _enum_value(body.get("status")) or TaskStatus.pending.value
    record = {
        **{k: _enum_value(v) for k, v in body.items()},
        "clientName": client["name"],
        "status": status,
        "assignedTo": assigned_to,
        "assignedName": assigned_name,
        "captains": body.get("captains") or [],
        "createdAt": now,
        "assignmentDate": now,
        "completionDate": _completion_for(status, body.get("completionDate"), None, now),
        "outstandingAmount": compute_outstanding(body.get("bill"), body.get("advanceReceived")),
    }
    record.setdefault("recurring", "none")
    record.setdefault("paymentStatus", "pending")
    return record


def _enum_value(value):
    return getattr(value, "value", value)


def _apply_full_update(conn: sqlite3.Connection, existing: dict[str, Any], body: TaskIn) -> None:
    data = {k: _enum_value(v) for k, v in body.model_dump().items()}
    client = resolve_client(conn, data["clientId"])
    now = now_nanos()
    assigned_to = data.get("assignedTo") or existing["assignedTo"]
    if assigned_to != existing["assignedTo"]:
        assigned_name = data.get("assignedName") or display_name_for(conn, assigned_to)
        assignment_date = now
    else:
        assigned_name = data.get("assignedName") or existing["assignedName"]
        assignment_date = existing["assignmentDate"]
    fields = {
        "clientId": client["id"],
        "clientName": client["name"],
        "title": data["title"],
        "taskType": data["taskType"],
        "subType": data["subType"],
        "status": data["status"],
        "paymentStatus": data["paymentStatus"],
        "comment": data["comment"],
        "assignedTo": assigned_to,
        "assignedName": assigned_name,
        "assignmentDate": assignment_date,
        "captains": data["captains"],
        "recurring": data["recurring"],
        "dueDate": data["dueDate"],
        "manualAssignmentDate": data["manualAssignmentDate"],
        "completionDate": _completion_for(
            data["status"], data["completionDate"], existing["completionDate"], now
        ),
        "bill": data["bill"],
        "advanceReceived": data["advanceReceived"],
        "outstandingAmount": compute_outstanding(data["bill"], data["advanceReceived"]),
    }
    _update_fields(conn, existing["id"], fields)


def _editable_task(conn: sqlite3.Connection, task_id: int, caller: str) -> dict[str, Any]:
    task = fetch_task(conn, task_id)
    check_can_edit_task(conn, caller, task)
    return task


def _commit_and_fetch(conn: sqlite3.Connection, task_id: int) -> dict[str, Any]:
    conn.commit()
    invalidate_aggregates()
    return fetch_task(conn, task_id)


# ── Listing and queries ───────────────────────────────────────────────────────

@router.get("", response_model=list[Task], summary="List all tasks")
def get_tasks(
    sort: list[str] | None = Query(
        None,
        description=(
            "Sort columns as column:dir, most significant first "
            "(e.g. sort=status:asc&sort=dueDate:desc). Status sorts by workflow rank."
        ),
    ),
    missing_dates_last: bool = Query(False, description="Sort undated tasks after dated ones"),
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    """Return every task, optionally sorted by several columns."""
    tasks = fetch_tasks(conn)
    state = SortState.parse(sort)
    if state:
        tasks = sort_records(tasks, state, task_sort_keys(missing_last=missing_dates_last))
    return tasks


@router.get("/by-status/{status}", response_model=list[Task], summary="Tasks with a status")
def get_tasks_by_status(
    status: TaskStatus,
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    where, params = build_task_where_clause(status=[status.value])
    return fetch_tasks(conn, where, params)


@router.get("/by-type/{task_type}", response_model=list[Task], summary="Tasks of a type")
def get_tasks_by_type(
    task_type: TaskType,
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    where, params = build_task_where_clause(task_type=[task_type.value])
    return fetch_tasks(conn, where, params)


def _filter_where(task_filter: TaskFilter) -> tuple[str, list[Any]]:
    return build_task_where_clause(
        status=[task_filter.status.value] if task_filter.status else None,
        payment_status=[task_filter.paymentStatus.value] if task_filter.paymentStatus else None,
        task_type=[task_filter.taskType.value] if task_filter.taskType else None,
        sub_type=task_filter.subType,
        assignee_name=task_filter.assigneeName,
        comment=task_filter.comment,
        search_term=task_filter.searchTerm,
    )


@router.post("/filter", response_model=list[Task], summary="Filter tasks")
def filter_tasks(
    task_filter: TaskFilter,
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    """Return tasks matching every given criterion.

    status, paymentStatus and taskType match exactly; subType,
    assigneeName and comment are case-insensitive substrings; searchTerm
    matches title, client, assignee, sub type or comment.
    """
    where, params = _filter_where(task_filter)
    return fetch_tasks(conn, where, params)


@router.post("/filter/by-client", response_model=list[Task], summary="Filter and sort by client name")
def filter_and_sort_by_client_name(
    task_filter: TaskFilter,
    ascending: bool = Query(True, description="Sort A-Z when true, Z-A when false"),
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    where, params = _filter_where(task_filter)
    order = build_order_clause("clientName", "asc" if ascending else "desc")
    return fetch_tasks(conn, where, params, order)


@router.get("/by-date", response_model=list[Task], summary="Tasks due or completed on a day")
def filter_tasks_by_date(
    date: int = Query(..., description="Any nanosecond timestamp within the UTC day"),
    includeDue: bool = Query(True, description="Match tasks due that day"),
    includeCompletion: bool = Query(False, description="Match tasks completed that day"),
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    """Return tasks whose due date and/or completion date fall on the day of *date*."""
    day = day_number(date)
    result = []
    for task in fetch_tasks(conn):
        due_hit = includeDue and task["dueDate"] is not None and day_number(task["dueDate"]) == day
        done_hit = (includeCompletion and task["completionDate"] is not None
                    and day_number(task["completionDate"]) == day)
        if due_hit or done_hit:
            result.append(task)
    return result


@router.get("/search-by-date", response_model=DateSearchResult, summary="Tasks touching a day")
def search_tasks_by_date(
    date: int = Query(..., description="Any nanosecond timestamp within the UTC day"),
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> DateSearchResult:
    """Tasks due, assigned or completed on the UTC day of *date*."""
    day = day_number(date)
    fields = ("dueDate", "completionDate", "manualAssignmentDate", "assignmentDate")
    tasks = [
        t for t in fetch_tasks(conn)
        if any(t[f] is not None and day_number(t[f]) == day for f in fields)
    ]
    return DateSearchResult(date=date, tasks=tasks)


@router.get("/export", response_model=list[Task], summary="Tasks for export")
def get_tasks_for_export(
    mine: bool = Query(False, description="Only tasks assigned to the caller"),
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    where, params = build_task_where_clause(assigned_to=caller if mine else None)
    return fetch_tasks(conn, where, params, build_order_clause("createdAt", "asc"))


@router.post("/export/selected", response_model=list[Task], summary="Selected tasks for export")
def get_selected_tasks_for_export(
    body: IdList,
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    where, params = build_task_where_clause(ids=body.ids)
    return fetch_tasks(conn, where, params)


# ── Spreadsheet import ────────────────────────────────────────────────────────

def _known_names(conn: sqlite3.Connection) -> tuple[list[dict], list[dict]]:
    clients = query_to_dicts(conn, "SELECT id, name FROM clients ORDER BY id")
    members = query_to_dicts(conn, "SELECT principal, name FROM team_members ORDER BY name")
    return clients, members


@router.get("/import/template", summary="Download the task import template")
def task_import_template(
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> Response:
    clients, members = _known_names(conn)
    return Response(
        content=task_template(clients, members),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=task_import_template.csv"},
    )


async def _preview_upload(conn: sqlite3.Connection, file: UploadFile):
    rows = read_upload(file.filename or "", await file.read())
    clients, members = _known_names(conn)
    return preview_task_import(rows, clients, members)


@router.post("/import/preview", response_model=ImportPreviewOut, summary="Validate a task upload")
async def preview_task_upload(
    file: UploadFile = File(..., description=".csv or .xlsx in the task template layout"),
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    """Parse and validate an upload without writing anything."""
    return (await _preview_upload(conn, file)).to_dict()


def insert_tasks(conn: sqlite3.Connection, records: list[dict[str, Any]], caller: str) -> list[int]:
    ids = [_insert_task(conn, build_new_task(conn, r, caller)) for r in records]
    conn.commit()
    invalidate_aggregates()
    return ids


@router.post("/import", response_model=ImportResult, status_code=201, summary="Import tasks from a file")
async def import_task_upload(
    file: UploadFile = File(..., description=".csv or .xlsx in the task template layout"),
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> ImportResult:
    """Insert every valid row; rows with errors are skipped and counted."""
    preview = await _preview_upload(conn, file)
    if not preview.can_commit():
        detail = preview.file_errors or [r.error for r in preview.invalid_rows()]
        raise HTTPException(status_code=400, detail={"message": "No valid tasks to import", "errors": detail})
    ids = insert_tasks(conn, preview.valid_records(), caller)
    logger.info("tasks_imported caller=%s count=%d skipped=%d", caller, len(ids), len(preview.invalid_rows()))
    return ImportResult(
        imported=len(ids), skipped=len(preview.invalid_rows()), ids=ids,
        message=f"Successfully imported {len(ids)} task(s)",
    )


@router.post("/bulk", response_model=list[Task], status_code=201, summary="Create many tasks")
def bulk_import_tasks(
    body: list[TaskIn],
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    """Insert already-validated task records in one transaction."""
    if not body:
        raise HTTPException(status_code=400, detail="No tasks to import")
    ids = insert_tasks(conn, [t.model_dump() for t in body], caller)
    logger.info("tasks_bulk_created caller=%s count=%d", caller, len(ids))
    where, params = build_task_where_clause(ids=ids)
    return fetch_tasks(conn, where, params)


@router.post("/bulk-delete", response_model=DeleteResult, summary="Delete many tasks")
def delete_tasks(
    body: IdList,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> DeleteResult:
    """All-or-nothing: fails with 404/403 before deleting anything."""
    ids = list(dict.fromkeys(body.ids))
    for task_id in ids:
        _editable_task(conn, task_id, caller)
    if ids:
        conn.execute(f"DELETE FROM tasks WHERE id IN ({placeholders(len(ids))})", ids)
        conn.commit()
        invalidate_aggregates()
    logger.info("tasks_deleted caller=%s count=%d", caller, len(ids))
    return DeleteResult(deleted=len(ids))


# ── Single-task CRUD ──────────────────────────────────────────────────────────

@router.post("", response_model=Task, status_code=201, summary="Create a task")
def create_task(
    body: TaskIn,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    """Create a task.  assignedTo defaults to the caller; clientName comes from clientId."""
    task_id = _insert_task(conn, build_new_task(conn, body.model_dump(), caller))
    return _commit_and_fetch(conn, task_id)


@router.put("", response_model=list[Task], summary="Update many tasks")
def update_tasks(
    body: list[TaskUpdate],
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    existing = [_editable_task(conn, t.id, caller) for t in body]
    for current, update in zip(existing, body):
        _apply_full_update(conn, current, update)
    conn.commit()
    invalidate_aggregates()
    where, params = build_task_where_clause(ids=[t.id for t in body])
    return fetch_tasks(conn, where, params)


@router.get("/{task_id}", response_model=Task, summary="Get a task")
def get_task(
    task_id: int,
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    return fetch_task(conn, task_id)


@router.put("/{task_id}", response_model=Task, summary="Update a task")
def update_task(
    task_id: int,
    body: TaskIn,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    existing = _editable_task(conn, task_id, caller)
    _apply_full_update(conn, existing, body)
    return _commit_and_fetch(conn, task_id)


@router.delete("/{task_id}", response_model=DeleteResult, summary="Delete a task")
def delete_task(
    task_id: int,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> DeleteResult:
    _editable_task(conn, task_id, caller)
    conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
    conn.commit()
    invalidate_aggregates()
    return DeleteResult(deleted=1)


# ── Partial updates ───────────────────────────────────────────────────────────

@router.patch("/{task_id}/status", response_model=Task, summary="Update task status")
def update_task_status(
    task_id: int,
    body: StatusUpdate,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    """Completing a task stamps completionDate; leaving completed clears it."""
    task = _editable_task(conn, task_id, caller)
    completion = _completion_for(body.status.value, body.completionDate, task["completionDate"], now_nanos())
    _update_fields(conn, task_id, {"status": body.status.value, "completionDate": completion})
    return _commit_and_fetch(conn, task_id)


@router.patch("/{task_id}/comment", response_model=Task, summary="Update task comment")
def update_task_comment(
    task_id: int,
    body: CommentUpdate,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    _editable_task(conn, task_id, caller)
    comment = body.comment.strip() if body.comment else None
    _update_fields(conn, task_id, {"comment": comment or None})
    return _commit_and_fetch(conn, task_id)


@router.patch("/{task_id}/bill", response_model=Task, summary="Update bill and advance")
def update_task_bill(
    task_id: int,
    body: BillUpdate,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    _editable_task(conn, task_id, caller)
    _update_fields(conn, task_id, {
        "bill": body.bill,
        "advanceReceived": body.advanceReceived,
        "outstandingAmount": compute_outstanding(body.bill, body.advanceReceived),
    })
    return _commit_and_fetch(conn, task_id)


@router.patch("/{task_id}/payment", response_model=Task, summary="Update payment status")
def update_payment_status(
    task_id: int,
    body: PaymentUpdate,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    """Set payment status, optionally updating advance and bill in the same call."""
    task = _editable_task(conn, task_id, caller)
    bill = body.bill if body.bill is not None else task["bill"]
    advance = body.advanceReceived if body.advanceReceived is not None else task["advanceReceived"]
    _update_fields(conn, task_id, {
        "paymentStatus": body.paymentStatus.value,
        "bill": bill,
        "advanceReceived": advance,
        "outstandingAmount": compute_outstanding(bill, advance),
    })
    return _commit_and_fetch(conn, task_id)


@router.patch("/{task_id}/captains", response_model=Task, summary="Replace task captains")
def update_task_captains(
    task_id: int,
    body: CaptainsUpdate,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    _editable_task(conn, task_id, caller)
    captains = list(dict.fromkeys(p.strip() for p in body.captains if p.strip()))
    _update_fields(conn, task_id, {"captains": captains})
    return _commit_and_fetch(conn, task_id)


@router.patch("/{task_id}/assignee", response_model=Task, summary="Reassign a task")
def assign_task(
    task_id: int,
    body: AssigneeUpdate,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    task = _editable_task(conn, task_id, caller)
    fields: dict[str, Any] = {"assignedTo": body.assignedTo, "assignedName": body.assignedName}
    if body.assignedTo != task["assignedTo"]:
        fields["assignmentDate"] = now_nanos()
    _update_fields(conn, task_id, fields)
    logger.info("task_reassigned task_id=%d to=%s by=%s", task_id, body.assignedTo, caller)
    return _commit_and_fetch(conn, task_id)
