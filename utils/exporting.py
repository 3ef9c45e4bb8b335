"""CSV and Excel export builders, plus the import templates.

Each export is described by an ExportTable (sheet title, header, rows, file
stem).  Route handlers only pick the table and the output format; the
rendering lives here so the same table can be written as CSV text or as an
xlsx workbook.

Dates are written as dd/mm/yyyy in UTC and labels use their display form
("In Progress", "IT Notice"), so an exported task can be pasted back into the
import template without translation.
"""

import csv
import io
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from utils.formatting import format_export_date
from utils.labels import (
    PAYMENT_STATUS_LABELS,
    RECURRING_LABELS,
    TASK_STATUS_LABELS,
    TASK_TYPE_LABELS,
    payment_status_label,
    task_status_label,
    task_type_label,
)
from utils.importing import CLIENT_COLUMNS, MAX_TEAM_MEMBERS_PER_IMPORT, TASK_COLUMNS, TEAM_MEMBER_COLUMNS
from utils.strings import safe_filename

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TASK_REPORT_COLUMNS = [
    "Client Name", "Task Name", "Task Category", "Sub Category", "Status",
    "Comment", "Assigned Name", "Due Date", "Assignment Date",
    "Completion Date", "Bill", "Advance Received", "Outstanding Amount",
    "Payment Status", "Created Date",
]
PUBLIC_TASK_COLUMNS = [
    "Title", "Client Name", "Task Type", "Task Sub Type", "Assigned To",
    "Status", "Payment Status", "Assigned Date", "Due Date",
    "Completion Date", "Comment",
]
ASSIGNEE_TASK_COLUMNS = [
    "Title", "Client Name", "Task Type", "Task Sub Type", "Task Status",
    "Payment Status", "Assigned Date", "Due Date", "Completion Date",
    "Comment",
]
TODO_COLUMNS = [
    "Title", "Description", "Due Date", "Completion Status", "Created Date",
    "Modified Date",
]


class ExportTable:
    """A titled table ready to be rendered as CSV or xlsx."""

    def __init__(self, title: str, file_stem: str, columns: list[str],
                 rows: list[list[Any]]):
        self.title = title
        self.file_stem = file_stem
        self.columns = columns
        self.rows = rows

    def __len__(self) -> int:
        return len(self.rows)

    def filename(self, fmt: str, today: Optional[datetime] = None) -> str:
        """``<stem>_YYYY-MM-DD.<fmt>``"""
        today = today or datetime.now(timezone.utc)
        return f"{safe_filename(self.file_stem)}_{today.strftime('%Y-%m-%d')}.{fmt}"


def _text(value) -> str:
    return "" if value is None else str(value)


# ── Row builders ──────────────────────────────────────────────────────────────

def task_report_row(task: dict) -> list[str]:
    assignment = task.get("manualAssignmentDate") or task.get("assignmentDate")
    return [
        _text(task.get("clientName")),
        _text(task.get("title")),
        task_type_label(task.get("taskType")),
        _text(task.get("subType")),
        task_status_label(task.get("status")),
        _text(task.get("comment")),
        _text(task.get("assignedName")),
        format_export_date(task.get("dueDate")),
        format_export_date(assignment),
        format_export_date(task.get("completionDate")),
        _text(task.get("bill")),
        _text(task.get("advanceReceived")),
        _text(task.get("outstandingAmount")),
        payment_status_label(task.get("paymentStatus")),
        format_export_date(task.get("createdAt")),
    ]


def public_task_row(task: dict, include_assignee: bool = True) -> list[str]:
    status = task.get("status") or task.get("taskStatus")
    completion = task.get("completionDate") if status == "completed" else None
    row = [
        _text(task.get("title")),
        _text(task.get("clientName")),
        task_type_label(task.get("taskType")),
        task_type_label(task.get("taskSubType")),
    ]
    if include_assignee:
        row.append(_text(task.get("assignedName")))
    row += [
        task_status_label(status),
        payment_status_label(task.get("paymentStatus")),
        format_export_date(task.get("assignedDate")),
        format_export_date(task.get("dueDate")),
        format_export_date(completion),
        _text(task.get("comment")),
    ]
    return row


def todo_row(todo: dict) -> list[str]:
    return [
        _text(todo.get("title")),
        _text(todo.get("description")),
        format_export_date(todo.get("dueDate")),
        "Completed" if todo.get("completed") else "Pending",
        format_export_date(todo.get("createdAt")),
        format_export_date(todo.get("modifiedAt")),
    ]


def task_report(tasks: Iterable[dict]) -> ExportTable:
    return ExportTable("Tasks", "task_report", TASK_REPORT_COLUMNS,
                       [task_report_row(t) for t in tasks])


def public_task_export(tasks: Iterable[dict]) -> ExportTable:
    return ExportTable("Tasks", "public_search_tasks", PUBLIC_TASK_COLUMNS,
                       [public_task_row(t) for t in tasks])


def assignee_task_export(tasks: Iterable[dict]) -> ExportTable:
    return ExportTable("Tasks", "team_member_tasks", ASSIGNEE_TASK_COLUMNS,
                       [public_task_row(t, include_assignee=False) for t in tasks])


def todo_export(todos: Iterable[dict]) -> ExportTable:
    return ExportTable("To-Do List", "todo_list", TODO_COLUMNS,
                       [todo_row(t) for t in todos])


# ── Renderers ─────────────────────────────────────────────────────────────────

def render_csv(table: ExportTable, comments: Iterable[str] = ()) -> str:
    """Render as CSV text.  Cells with commas, quotes or newlines are quoted.

    *comments* are appended as ``# ...`` lines, which the importer skips.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(table.columns)
    writer.writerows(table.rows)
    comments = list(comments)
    if comments:
        buf.write("\n")
        for line in comments:
            buf.write(f"# {line}\n" if line else "\n")
    return buf.getvalue()


def render_xlsx(table: ExportTable, metadata: Optional[dict[str, Any]] = None) -> bytes:
    """Render as an xlsx workbook with a Metadata sheet and a data sheet."""
    import openpyxl

    wb = openpyxl.Workbook(write_only=True)
    meta_ws = wb.create_sheet("Metadata")
    meta_ws.append(["Source", "TaskDesk"])
    meta_ws.append(["Export Date", datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")])
    meta_ws.append(["Total Records", len(table.rows)])
    for key, value in (metadata or {}).items():
        meta_ws.append([key, value])
    ws = wb.create_sheet(table.title[:31])
    ws.append(table.columns)
    for row in table.rows:
        ws.append(list(row))
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ── Import templates ──────────────────────────────────────────────────────────

_TASK_TYPE_NOTE = "Task Types: " + ", ".join(TASK_TYPE_LABELS.values())
_STATUS_NOTE = "Status: " + ", ".join(TASK_STATUS_LABELS.values())
_PAYMENT_NOTE = "Payment Status: " + ", ".join(PAYMENT_STATUS_LABELS.values())


def client_template() -> str:
    rows = [
        ["ABC Enterprises Ltd", "27AABCU9603R1ZM", "AABCU9603R", "GST", "GST Return Filing", "Monthly"],
        ["XYZ Consultants Pvt Ltd", "29AACFX1234A1Z5", "AACFX1234A", "Audit", "Internal Audit", "Yearly"],
        ["Tech Solutions Inc", "", "AADCT5678B", "IT Notice", "Assessment Notice", "Quarterly"],
        ["Global Trading Co", "19AABCG9876C1ZX", "", "TDS", "TDS Return Filing", "Quarterly"],
        ["Finance Corp", "", "AABCF1234D", "Accounts", "Bookkeeping", "Monthly"],
        ["Legal Services Ltd", "", "AABCL5678E", "Form Filing", "Annual Returns", "Yearly"],
        ["Consulting Group", "", "AABCC9012F", "CA Certificate", "Certification", ""],
    ]
    recurring = ", ".join(v for k, v in RECURRING_LABELS.items() if k.value != "none")
    notes = [
        "Reference Information:",
        "- Name of Client: Required field",
        "- GSTIN: Optional, 15-character alphanumeric code",
        "- PAN: Optional, 10-character alphanumeric code",
        f"- Task Category: Optional ({', '.join(TASK_TYPE_LABELS.values())})",
        "- Sub Category: Optional, any text",
        f"- Recurring of Task: Optional ({recurring})",
    ]
    return render_csv(ExportTable("Clients", "client_import_template", CLIENT_COLUMNS, rows), notes)


def task_template(clients: list[dict], team_members: list[dict]) -> str:
    """Task template filled with real client and member names when available."""
    if clients and team_members:
        member = team_members[0]["name"]
        rows = [[clients[0]["name"], "GST Filing for Q1", "GST", "GST Return Filing", "Pending",
                 "Initial review completed", member, "2026-03-31", "2026-01-15", "50000", "25000", "Pending"]]
        if len(clients) > 1:
            rows.append([clients[1]["name"], "Annual Audit Review", "Audit", "Internal Audit", "In Progress",
                         "Awaiting final documents", member, "2026-04-15", "2026-02-01", "100000", "100000", "Paid"])
            rows.append([clients[0]["name"], "TDS Return Filing", "TDS", "Quarterly TDS", "Pending",
                         "Follow up required", member, "2026-02-28", "2026-01-10", "25000", "10000", "Overdue"])
    else:
        rows = [
            ["ABC Enterprises Ltd", "GST Filing for Q1", "GST", "GST Return Filing", "Pending",
             "Initial review completed", "John Doe", "2026-03-31", "2026-01-15", "50000", "25000", "Pending"],
            ["XYZ Consultants Pvt Ltd", "Annual Audit Review", "Audit", "Internal Audit", "In Progress",
             "Awaiting final documents", "Jane Smith", "2026-04-15", "2026-02-01", "100000", "100000", "Paid"],
        ]

    notes: list[str] = []
    if clients or team_members:
        notes.append("Available Clients:")
        notes += [c["name"] for c in clients]
        notes.append("")
        notes.append("Available Team Members:")
        notes += [f"{m['name']} (Principal: {m['principal']})" for m in team_members]
        notes.append("")
    notes += [
        _TASK_TYPE_NOTE,
        _STATUS_NOTE,
        _PAYMENT_NOTE,
        "Due Date: Format YYYY-MM-DD (e.g., 2026-03-31)",
        "Assignment Date: Format YYYY-MM-DD (e.g., 2026-01-15) - optional manual assignment date",
        "Bill: Numeric amount (e.g., 50000)",
        "Advance Received: Numeric amount (e.g., 25000)",
        "Note: Outstanding balance is calculated automatically (Bill - Advance Received)",
    ]
    return render_csv(ExportTable("Tasks", "task_import_template", TASK_COLUMNS, rows), notes)


def team_member_template() -> str:
    rows = [["John Doe"], ["Jane Smith"], ["Robert Johnson"], ["Emily Davis"], ["Michael Brown"]]
    notes = [
        "Reference Information:",
        "- Name: Required field - Team member's display name",
        f"- Maximum {MAX_TEAM_MEMBERS_PER_IMPORT} team members per upload",
        "- Principal IDs will be automatically generated by the system",
    ]
    return render_csv(ExportTable("Team Members", "team_member_import_template", TEAM_MEMBER_COLUMNS, rows), notes)
