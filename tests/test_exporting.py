"""Tests for utils/exporting.py: export tables, CSV/xlsx rendering and templates."""
import csv
import io
from datetime import datetime, timezone

import pytest

from utils.exporting import (
    PUBLIC_TASK_COLUMNS,
    TASK_REPORT_COLUMNS,
    ExportTable,
    assignee_task_export,
    client_template,
    public_task_export,
    render_csv,
    render_xlsx,
    task_report,
    task_template,
    team_member_template,
    todo_export,
)
from utils.importing import parse_delimited_text, preview_client_import, preview_task_import, preview_team_member_import

MAR_31_2026 = 1_774_915_200_000_000_000
JAN_15_2026 = 1_768_435_200_000_000_000

TASK = {
    "clientName": "Acme, Ltd", "title": "File GST", "taskType": "ITNotice", "subType": "Scrutiny",
    "status": "inProgress", "comment": 'Client said "soon"', "assignedName": "Priya Sharma",
    "dueDate": MAR_31_2026, "assignmentDate": MAR_31_2026, "manualAssignmentDate": JAN_15_2026,
    "completionDate": None, "bill": "50000", "advanceReceived": 25000, "outstandingAmount": 25000,
    "paymentStatus": "overdue", "createdAt": JAN_15_2026,
}


def _read_csv(text: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(text)))


class TestTaskReport:
    def test_row_labels_and_dates(self):
        table = task_report([TASK])
        assert table.columns == TASK_REPORT_COLUMNS
        row = dict(zip(table.columns, table.rows[0]))
        assert row["Task Category"] == "IT Notice"
        assert row["Status"] == "In Progress"
        assert row["Payment Status"] == "Overdue"
        assert row["Due Date"] == "31/03/2026"
        assert row["Assignment Date"] == "15/01/2026"
        assert row["Completion Date"] == ""
        assert row["Advance Received"] == "25000"

    def test_csv_quotes_commas_and_quotes(self):
        rows = _read_csv(render_csv(task_report([TASK])))
        assert rows[0] == TASK_REPORT_COLUMNS
        assert rows[1][0] == "Acme, Ltd"
        assert rows[1][5] == 'Client said "soon"'

    def test_filename(self):
        table = task_report([])
        when = datetime(2026, 3, 31, tzinfo=timezone.utc)
        assert table.filename("csv", when) == "task_report_2026-03-31.csv"
        assert len(table) == 0


class TestPublicExports:
    def test_public_row(self):
        task = {**TASK, "taskSubType": "ITNotice", "assignedDate": JAN_15_2026,
                "status": "completed", "completionDate": MAR_31_2026}
        table = public_task_export([task])
        row = dict(zip(PUBLIC_TASK_COLUMNS, table.rows[0]))
        assert row["Task Sub Type"] == "IT Notice"
        assert row["Assigned To"] == "Priya Sharma"
        assert row["Completion Date"] == "31/03/2026"

    def test_completion_hidden_unless_completed(self):
        task = {**TASK, "completionDate": MAR_31_2026}
        row = public_task_export([task]).rows[0]
        assert row[PUBLIC_TASK_COLUMNS.index("Completion Date")] == ""

    def test_assignee_export_drops_assignee(self):
        table = assignee_task_export([{**TASK, "taskStatus": "hold", "status": "hold"}])
        assert "Assigned To" not in table.columns
        assert len(table.rows[0]) == len(table.columns)
        assert table.file_stem == "team_member_tasks"


class TestTodoExport:
    def test_completion_text(self):
        todos = [
            {"title": "Call bank", "description": None, "dueDate": None, "completed": True,
             "createdAt": JAN_15_2026, "modifiedAt": MAR_31_2026},
            {"title": "Renew DSC", "description": "Director", "dueDate": MAR_31_2026, "completed": False,
             "createdAt": JAN_15_2026, "modifiedAt": JAN_15_2026},
        ]
        table = todo_export(todos)
        assert [r[3] for r in table.rows] == ["Completed", "Pending"]
        assert table.rows[1][2] == "31/03/2026"


class TestRenderXlsx:
    def test_metadata_and_data_sheets(self):
        openpyxl = pytest.importorskip("openpyxl")
        table = ExportTable("Tasks", "task_report", ["A", "B"], [["x", 1], ["y", 2]])
        data = render_xlsx(table, metadata={"Filters": "none"})
        wb = openpyxl.load_workbook(io.BytesIO(data))
        assert wb.sheetnames == ["Metadata", "Tasks"]
        meta = {r[0]: r[1] for r in wb["Metadata"].iter_rows(values_only=True)}
        assert meta["Source"] == "TaskDesk"
        assert meta["Total Records"] == 2
        assert meta["Filters"] == "none"
        rows = list(wb["Tasks"].iter_rows(values_only=True))
        assert rows[0] == ("A", "B")
        assert len(rows) == 3


class TestTemplates:
    def test_client_template_imports_cleanly(self):
        preview = preview_client_import(parse_delimited_text(client_template()))
        assert preview.can_commit()
        assert len(preview.valid_rows()) == 7
        assert preview.valid_records()[2]["taskCategory"] == "ITNotice"

    def test_task_template_uses_real_names(self):
        clients = [{"id": 1, "name": "Acme Ltd"}, {"id": 2, "name": "Globex Corp"}]
        members = [{"principal": "p-cai", "name": "Priya Sharma"}]
        text = task_template(clients, members)
        assert "# Available Clients:" in text
        assert "# Priya Sharma (Principal: p-cai)" in text
        preview = preview_task_import(parse_delimited_text(text), clients, members)
        assert preview.can_commit()
        assert len(preview.valid_rows()) == 3

    def test_task_template_sample_names(self):
        text = task_template([], [])
        assert "Available Clients" not in text
        assert "John Doe" in text
        assert "# Status: Pending, In Progress, Completed, Docs Pending, Hold" in text

    def test_team_member_template(self):
        preview = preview_team_member_import(parse_delimited_text(team_member_template()))
        assert preview.can_commit()
        assert len(preview.valid_rows()) == 5
