"""
Tests for api/routes/download.py: CSV and xlsx exports over HTTP.
"""
import csv
import io

import pytest

from conftest import ADMIN, MAR_31_2026, MEMBER, as_user, make_task

from utils.exporting import ASSIGNEE_TASK_COLUMNS, PUBLIC_TASK_COLUMNS, TASK_REPORT_COLUMNS, TODO_COLUMNS

URL = "/api/v1/download"


@pytest.fixture()
def tasks(client, seeded):
    return [
        make_task(client, seeded["acme"], title="File GST", status="inProgress", dueDate=MAR_31_2026,
                  bill="50000", advanceReceived=25000),
        make_task(client, seeded["globex"], principal=ADMIN, title="Audit", taskType="ITNotice"),
    ]


def _rows(resp) -> list[list[str]]:
    return list(csv.reader(io.StringIO(resp.text)))


class TestTaskReport:
    def test_csv(self, client, tasks):
        resp = client.get(f"{URL}/tasks", headers=as_user(MEMBER))
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.headers["X-Total-Count"] == "2"
        assert "task_report_" in resp.headers["Content-Disposition"]
        rows = _rows(resp)
        assert rows[0] == TASK_REPORT_COLUMNS
        first = dict(zip(rows[0], rows[1]))
        assert first["Status"] == "In Progress"
        assert first["Due Date"] == "31/03/2026"
        assert first["Outstanding Amount"] == "25000"
        assert dict(zip(rows[0], rows[2]))["Task Category"] == "IT Notice"

    def test_selected_ids(self, client, tasks):
        resp = client.get(f"{URL}/tasks", params={"ids": [tasks[1]["id"]]}, headers=as_user(MEMBER))
        assert resp.headers["X-Total-Count"] == "1"
        assert _rows(resp)[1][1] == "Audit"

    def test_xlsx(self, client, tasks):
        openpyxl = pytest.importorskip("openpyxl")
        resp = client.get(f"{URL}/tasks", params={"fmt": "xlsx", "ids": [tasks[0]["id"]]},
                          headers=as_user(MEMBER))
        assert resp.headers["Content-Disposition"].endswith(".xlsx")
        assert int(resp.headers["Content-Length"]) == len(resp.content)
        wb = openpyxl.load_workbook(io.BytesIO(resp.content))
        meta = {r[0]: r[1] for r in wb["Metadata"].iter_rows(values_only=True)}
        assert meta["Total Records"] == 1
        assert meta["Filters"] == f"ids={tasks[0]['id']}"
        rows = list(wb["Tasks"].iter_rows(values_only=True))
        assert rows[1][0] == "Acme Ltd"

    def test_bad_format(self, client, tasks):
        assert client.get(f"{URL}/tasks", params={"fmt": "pdf"}, headers=as_user(MEMBER)).status_code == 422

    def test_needs_sign_in(self, client, tasks):
        assert client.get(f"{URL}/tasks").status_code == 401


class TestPublicDownloads:
    def test_public_tasks(self, client, tasks):
        resp = client.get(f"{URL}/public-tasks", params={"term": "gst"})
        rows = _rows(resp)
        assert rows[0] == PUBLIC_TASK_COLUMNS
        assert len(rows) == 2
        assert "public_search_tasks_" in resp.headers["Content-Disposition"]

    def test_tasks_by_assignee(self, client, tasks):
        resp = client.get(f"{URL}/tasks-by-assignee", params={"term": "asha"})
        rows = _rows(resp)
        assert rows[0] == ASSIGNEE_TASK_COLUMNS
        assert [r[0] for r in rows[1:]] == ["Audit"]


class TestTodoDownload:
    def test_todos(self, client, seeded):
        client.post("/api/v1/todos", json={"title": "Renew DSC", "dueDate": MAR_31_2026}, headers=as_user(MEMBER))
        resp = client.get(f"{URL}/todos", headers=as_user(MEMBER))
        rows = _rows(resp)
        assert rows[0] == TODO_COLUMNS
        assert rows[1][:4] == ["Renew DSC", "", "31/03/2026", "Pending"]
        assert "todo_list_" in resp.headers["Content-Disposition"]
