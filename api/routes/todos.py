"""
Personal to-do endpoints.  Every item belongs to the principal that created it.

GET    /api/v1/todos?filter=all|today    getUserToDos / filterToDosByUser
POST   /api/v1/todos                     addToDoItem
PUT    /api/v1/todos/{id}                updateToDoItem
DELETE /api/v1/todos/{id}                deleteToDoItem
GET    /api/v1/todos/export              getToDosForExport
GET    /api/v1/todos/user/{principal}    another owner's list (admin)
"""

import logging
import sqlite3

from fastapi import APIRouter, Depends, HTTPException, Query

from api.auth import require_admin, require_user
from api.database import get_db
from api.models import DeleteResult, ToDoItem, ToDoItemCreate, ToDoItemUpdate
from utils.database import batch_insert
from utils.filtering import filter_todos
from utils.labels import ToDoFilterType
from utils.timestamps import now_nanos

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/todos", tags=["todos"])


def _row_to_todo(row: sqlite3.Row) -> dict:
    todo = dict(row)
    todo["completed"] = bool(todo["completed"])
    return todo


def fetch_todos(conn: sqlite3.Connection, owner: str) -> list[dict]:
    rows = conn.execute(
        "SELECT * FROM todos WHERE owner = ? ORDER BY createdAt, id", (owner,)
    ).fetchall()
    return [_row_to_todo(r) for r in rows]


def _owned_todo(conn: sqlite3.Connection, todo_id: int, caller: str) -> dict:
    row = conn.execute("SELECT * FROM todos WHERE id = ?", (todo_id,)).fetchone()
    if row is None:
        raise HTTPException(status_code=404, detail=f"To-do {todo_id} not found")
    if row["owner"] != caller:
        raise HTTPException(status_code=403, detail="Can only modify your own to-do items")
    return _row_to_todo(row)


@router.get("", response_model=list[ToDoItem], summary="List the caller's to-dos")
def get_user_todos(
    filter: ToDoFilterType = Query(ToDoFilterType.all, description="all | today"),
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    """Return the caller's items; ``filter=today`` keeps those due on the current UTC day."""
    return filter_todos(fetch_todos(conn, caller), filter)


@router.get("/export", response_model=list[ToDoItem], summary="The caller's to-dos for export")
def get_todos_for_export(
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    return fetch_todos(conn, caller)


@router.get("/user/{principal}", response_model=list[ToDoItem], summary="Another owner's to-dos")
def get_todos_for_user(
    principal: str,
    _caller: str = Depends(require_admin),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    return fetch_todos(conn, principal)


@router.post("", response_model=ToDoItem, status_code=201, summary="Add a to-do")
def add_todo_item(
    body: ToDoItemCreate,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    now = now_nanos()
    (todo_id,) = batch_insert(
        conn,
        "INSERT INTO todos (owner, title, description, dueDate, completed, createdAt, modifiedAt) "
        "VALUES (?, ?, ?, ?, 0, ?, ?)",
        [(caller, body.title.strip(), body.description, body.dueDate, now, now)],
    )
    conn.commit()
    return _owned_todo(conn, todo_id, caller)


@router.put("/{todo_id}", response_model=ToDoItem, summary="Update a to-do")
def update_todo_item(
    todo_id: int,
    body: ToDoItemUpdate,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    _owned_todo(conn, todo_id, caller)
    conn.execute(
        "UPDATE todos SET title = ?, completed = ?, dueDate = ?, description = ?, modifiedAt = ? "
        "WHERE id = ?",
        (body.title.strip(), int(body.completed), body.dueDate, body.description, now_nanos(), todo_id),
    )
    conn.commit()
    return _owned_todo(conn, todo_id, caller)


@router.delete("/{todo_id}", response_model=DeleteResult, summary="Delete a to-do")
def delete_todo_item(
    todo_id: int,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> DeleteResult:
    _owned_todo(conn, todo_id, caller)
    conn.execute("DELETE FROM todos WHERE id = ?", (todo_id,))
    conn.commit()
    return DeleteResult(deleted=1)
