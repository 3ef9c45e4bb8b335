"""
Tests for utils/query.py

Checks the generated SQL fragments and, for the WHERE builders, that they
select the right rows from a small in-memory tasks table.
"""
import sqlite3

import pytest

from utils.query import (
    TASK_SEARCH_COLUMNS,
    build_like_clause,
    build_order_clause,
    build_task_where_clause,
)


@pytest.fixture()
def conn():
    c = sqlite3.connect(":memory:")
    c.execute(
        "CREATE TABLE tasks (id INTEGER PRIMARY KEY, title TEXT, clientName TEXT, "
        "assignedName TEXT, subType TEXT, comment TEXT, status TEXT, paymentStatus TEXT, "
        "taskType TEXT, clientId INTEGER, assignedTo TEXT, dueDate INTEGER)"
    )
    c.executemany(
        "INSERT INTO tasks VALUES (?,?,?,?,?,?,?,?,?,?,?,?)",
        [
            (1, "File GST", "Acme Ltd", "Priya Sharma", "GSTR-3B", "100% done", "pending", "pending", "GST", 7, "p-cai", 30),
            (2, "Statutory audit", "Globex Corp", "Rahul Mehta", None, None, "completed", "paid", "Audit", 8, "r-cai", 10),
            (3, "TDS return", "acme ltd", "Rahul Mehta", "Q4", "gst_recon", "hold", "overdue", "TDS", 7, "r-cai", None),
        ],
    )
    yield c
    c.close()


def _ids(conn, where, params, order="ORDER BY id"):
    return [r[0] for r in conn.execute(f"SELECT id FROM tasks {where} {order}", params)]


class TestBuildTaskWhereClause:
    def test_no_filters(self):
        assert build_task_where_clause() == ("", [])

    def test_status_in(self, conn):
        where, params = build_task_where_clause(status=["pending", "hold"])
        assert where == "WHERE status IN (?,?)"
        assert _ids(conn, where, params) == [1, 3]

    def test_substring_is_case_insensitive(self, conn):
        where, params = build_task_where_clause(assignee_name="RAHUL")
        assert _ids(conn, where, params) == [2, 3]

    def test_search_term_spans_columns(self, conn):
        where, params = build_task_where_clause(search_term="acme")
        assert len(params) == len(TASK_SEARCH_COLUMNS)
        assert _ids(conn, where, params) == [1, 3]

    def test_like_wildcards_escaped(self, conn):
        where, params = build_task_where_clause(comment="%")
        assert _ids(conn, where, params) == [1]
        where, params = build_task_where_clause(comment="_")
        assert _ids(conn, where, params) == [3]

    def test_blank_text_ignored(self):
        assert build_task_where_clause(sub_type="  ", search_term="") == ("", [])

    def test_combined(self, conn):
        where, params = build_task_where_clause(client_id=7, assigned_to="r-cai", task_type=["TDS"])
        assert where.count(" AND ") == 2
        assert _ids(conn, where, params) == [3]

    def test_ids(self, conn):
        where, params = build_task_where_clause(ids=[2, 3])
        assert _ids(conn, where, params) == [2, 3]

    def test_empty_ids_match_nothing(self, conn):
        where, params = build_task_where_clause(status=["pending"], ids=[])
        assert (where, params) == ("WHERE 1=0", [])
        assert _ids(conn, where, params) == []


class TestBuildLikeClause:
    def test_empty_term(self):
        assert build_like_clause(("name",), "  ") == ("", [])

    def test_term(self, conn):
        where, params = build_like_clause(("title", "subType"), "q4")
        assert params == ["%q4%", "%q4%"]
        assert _ids(conn, where, params) == [3]


class TestBuildOrderClause:
    def test_default_column(self):
        assert build_order_clause("id", "asc") == "ORDER BY id ASC"

    def test_unknown_column_falls_back(self):
        assert build_order_clause("1; DROP TABLE tasks", "desc") == "ORDER BY id DESC"

    def test_text_column_case_insensitive(self):
        assert build_order_clause("clientName", "asc") == (
            "ORDER BY lower(coalesce(clientName, '')) ASC, id ASC"
        )

    def test_status_by_rank(self, conn):
        order = build_order_clause("status", "asc")
        assert _ids(conn, "", [], order) == [1, 3, 2]

    def test_desc(self, conn):
        assert _ids(conn, "", [], build_order_clause("dueDate", "DESC")) == [1, 2, 3]

    def test_custom_allowed(self):
        assert build_order_clause("name", "asc", allowed_sorts={"name"}, default_sort="name") == (
            "ORDER BY name ASC, id ASC"
        )
