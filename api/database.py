"""
Database connection management and schema for the API.

Provides a get_db() dependency that opens a per-request SQLite connection and
closes it after the response is sent.  The database path is resolved once at
startup from the APP_DB_PATH environment variable (default: taskdesk.sqlite);
create_app(db_path=...) overrides it for tests.

Friendly 503 error when the database file is missing.
"""

import logging
import os
import sqlite3
from collections.abc import Generator
from pathlib import Path

from fastapi import HTTPException

from utils.database import init_pragmas

logger = logging.getLogger(__name__)

_DB_PATH: Path = Path(os.getenv("APP_DB_PATH", "taskdesk.sqlite"))

SCHEMA = """
CREATE TABLE IF NOT EXISTS clients (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    name          TEXT NOT NULL,
    contactInfo   TEXT NOT NULL DEFAULT '',
    status        TEXT NOT NULL DEFAULT 'active',
    recurring     TEXT NOT NULL DEFAULT 'none',
    taskCategory  TEXT NOT NULL DEFAULT 'Other',
    subCategory   TEXT,
    gstin         TEXT,
    pan           TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_clients_name ON clients (lower(name));

CREATE TABLE IF NOT EXISTS team_members (
    principal     TEXT PRIMARY KEY,
    name          TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    clientId              INTEGER NOT NULL REFERENCES clients (id),
    clientName            TEXT NOT NULL,
    title                 TEXT NOT NULL,
    taskType              TEXT NOT NULL,
    subType               TEXT,
    status                TEXT NOT NULL DEFAULT 'pending',
    paymentStatus         TEXT NOT NULL DEFAULT 'pending',
    comment               TEXT,
    assignedTo            TEXT NOT NULL,
    assignedName          TEXT NOT NULL,
    captains              TEXT NOT NULL DEFAULT '[]',
    recurring             TEXT NOT NULL DEFAULT 'none',
    createdAt             INTEGER NOT NULL,
    assignmentDate        INTEGER,
    manualAssignmentDate  INTEGER,
    dueDate               INTEGER,
    completionDate        INTEGER,
    bill                  TEXT,
    advanceReceived       INTEGER,
    outstandingAmount     INTEGER
);
CREATE INDEX IF NOT EXISTS idx_tasks_client ON tasks (clientId);
CREATE INDEX IF NOT EXISTS idx_tasks_assignee ON tasks (assignedTo);
CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks (dueDate);

CREATE TABLE IF NOT EXISTS todos (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    owner         TEXT NOT NULL,
    title         TEXT NOT NULL,
    description   TEXT,
    dueDate       INTEGER,
    completed     INTEGER NOT NULL DEFAULT 0,
    createdAt     INTEGER NOT NULL,
    modifiedAt    INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_todos_owner ON todos (owner);

CREATE TABLE IF NOT EXISTS user_profiles (
    principal     TEXT PRIMARY KEY,
    name          TEXT NOT NULL,
    role          TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS user_roles (
    principal     TEXT PRIMARY KEY,
    role          TEXT NOT NULL
);
"""

TABLES = ("clients", "team_members", "tasks", "todos", "user_profiles", "user_roles")


def get_db_path() -> Path:
    """Return the configured database path."""
    return _DB_PATH


def set_db_path(db_path: Path) -> None:
    global _DB_PATH
    _DB_PATH = Path(db_path)


def _make_conn(db_path: Path) -> sqlite3.Connection:
    """Open a single SQLite connection with standard pragmas."""
    conn = sqlite3.connect(str(db_path), check_same_thread=False, timeout=10)
    conn.row_factory = sqlite3.Row
    init_pragmas(conn)
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Create any missing tables and indexes."""
    conn.executescript(SCHEMA)
    conn.commit()


def ensure_database(db_path: Path | None = None) -> Path:
    """Create the database file and schema if needed; return its path."""
    path = Path(db_path) if db_path is not None else _DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = _make_conn(path)
    try:
        init_schema(conn)
    finally:
        conn.close()
    logger.info("database ready at %s", path)
    return path


def get_db() -> Generator[sqlite3.Connection, None, None]:
    """FastAPI dependency: yield a SQLite connection, close on exit.

    Connections are opened with WAL mode, busy_timeout, and NORMAL
    synchronous for resilience under concurrent access.  Raises HTTP 503
    with a friendly message if the database file is missing, instead of
    letting SQLite create an empty one.

    Usage in a route::

        from api.database import get_db
        from fastapi import Depends

        @router.get("/example")
        def example(conn=Depends(get_db)):
            ...
    """
    if not _DB_PATH.exists():
        raise HTTPException(
            status_code=503,
            detail=(
                f"Database not found at '{_DB_PATH}'. "
                "Start the server once with a writable APP_DB_PATH to create it."
            ),
        )
    conn = _make_conn(_DB_PATH)
    try:
        yield conn
    finally:
        conn.close()
