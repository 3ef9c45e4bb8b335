"""Database utilities shared by the API and the tests.

Provides reusable functions for:
- Connection pragmas
- Batch inserts
- Row counts
- Query results as dicts
"""

import sqlite3
from typing import Any, Dict, List, Sequence


def init_pragmas(conn: sqlite3.Connection) -> None:
    """Initialize SQLite reliability pragmas.

    - WAL mode so readers do not block the writer
    - NORMAL synchronous mode for speed without data loss
    - busy_timeout so concurrent requests wait instead of failing
    - foreign keys enforced

    Args:
        conn: SQLite connection to configure
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA foreign_keys=ON")


def batch_insert(conn: sqlite3.Connection, query: str, rows: List[tuple]) -> List[int]:
    """Insert rows one by one inside the caller's transaction.

    Unlike executemany(), this returns the rowid of every inserted row so
    bulk imports can answer with the ids they created.

    Args:
        conn: SQLite connection
        query: SQL INSERT query with ? placeholders
        rows: List of parameter tuples

    Returns:
        Inserted row ids, in input order
    """
    ids: List[int] = []
    for row in rows:
        cur = conn.execute(query, row)
        ids.append(cur.lastrowid)
    return ids


def get_table_count(conn: sqlite3.Connection, table: str) -> int:
    """Get row count for a table."""
    result = conn.execute(f"SELECT COUNT(*) as cnt FROM {table}").fetchone()
    return result[0] if result else 0


def query_to_dicts(conn: sqlite3.Connection, query: str,
                   params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    """Execute query and return results as list of dicts.

    Args:
        conn: SQLite connection (must have row_factory set)
        query: SQL query string
        params: Query parameters

    Returns:
        List of row dicts
    """
    cursor = conn.execute(query, tuple(params))
    return [dict(row) for row in cursor.fetchall()]


def placeholders(n: int) -> str:
    """``"?,?,?"`` for *n* parameters."""
    return ",".join("?" * n)
