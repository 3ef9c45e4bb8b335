"""Bulk import parsing for clients, tasks and team members.

Uploads arrive either as comma-separated text or as an .xlsx workbook.
Both are reduced to ``(line_number, cells)`` pairs, then validated row by row
into an ImportPreview.  Nothing here touches the database: callers pass in the
known clients and team members to match names against, and write
``preview.valid_records()`` themselves.

Column order is positional and matches the downloadable templates:

    Tasks:   Client Name, Title, Task Type, Sub Type, Status, Comment,
             Assigned Name, Due Date, Assignment Date, Bill,
             Advance Received, Payment Status
    Clients: Name of Client, GSTIN, PAN, Task Category, Sub Category,
             Recurring of Task
    Team:    Name
"""

import csv
import io
import logging
import uuid
from datetime import date, datetime
from typing import Iterable, Optional

from utils.labels import (
    ClientStatus,
    PaymentStatus,
    Recurring,
    parse_payment_status,
    parse_recurring_or_none,
    parse_task_category,
    parse_task_status,
    parse_task_type,
)
from utils.patterns import IMPORTABLE_EXTENSIONS
from utils.strings import empty_to_none, normalize_whitespace
from utils.timestamps import parse_date_to_nanos
from utils.validation import ImportPreview, ImportRow

logger = logging.getLogger(__name__)

TASK_COLUMNS = [
    "Client Name", "Title", "Task Type", "Sub Type", "Status", "Comment",
    "Assigned Name", "Due Date", "Assignment Date", "Bill",
    "Advance Received", "Payment Status",
]
CLIENT_COLUMNS = [
    "Name of Client", "GSTIN", "PAN", "Task Category", "Sub Category",
    "Recurring of Task",
]
TEAM_MEMBER_COLUMNS = ["Name"]

MIN_TASK_COLUMNS = 5
MAX_TEAM_MEMBERS_PER_IMPORT = 20

Rows = list[tuple[int, list[str]]]


class ImportFormatError(ValueError):
    """The uploaded file could not be read as CSV or xlsx."""


# ── Readers ───────────────────────────────────────────────────────────────────

def split_csv_line(line: str) -> list[str]:
    """Split one line with the same CSV dialect the exports are written in.

    Cells are trimmed.
    """
    cells = next(csv.reader([line], skipinitialspace=True), [])
    return [cell.strip() for cell in cells]


def parse_delimited_text(text: str) -> Rows:
    """Parse comma-separated text into numbered rows.

    Blank lines and lines starting with ``#`` (template reference notes)
    are skipped.  Line numbers are 1-based positions in the original text.
    """
    rows: Rows = []
    for index, raw in enumerate(text.splitlines()):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        rows.append((index + 1, split_csv_line(line)))
    return rows


def _cell_to_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.hour == value.minute == value.second == 0 and not value.microsecond:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return normalize_whitespace(str(value))


def read_xlsx_rows(data: bytes) -> Rows:
    """Read the first worksheet of an xlsx file into numbered rows.

    Raises:
        ImportFormatError: If the bytes are not a readable workbook.
    """
    import openpyxl

    try:
        wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise ImportFormatError(f"Could not read Excel file: {exc}") from exc
    try:
        ws = wb.worksheets[0]
        rows: Rows = []
        for number, values in enumerate(ws.iter_rows(values_only=True), start=1):
            cells = [_cell_to_text(v) for v in values]
            while cells and cells[-1] == "":
                cells.pop()
            if not cells or cells[0].startswith("#"):
                continue
            rows.append((number, cells))
        return rows
    finally:
        wb.close()


def read_upload(filename: str, data: bytes) -> Rows:
    """Dispatch on the upload's extension.

    Raises:
        ImportFormatError: Unsupported extension or undecodable content.
    """
    if not IMPORTABLE_EXTENSIONS.search(filename or ""):
        raise ImportFormatError(
            f"Unsupported file type: '{filename}'. Upload a .csv or .xlsx file"
        )
    if filename.lower().endswith(".xlsx"):
        return read_xlsx_rows(data)
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ImportFormatError("CSV file must be UTF-8 encoded") from exc
    return parse_delimited_text(text)


def _pad(cells: list[str], width: int) -> list[str]:
    return cells + [""] * (width - len(cells))


def _skip_header(rows: Rows, marker: str) -> Rows:
    if rows and rows[0][1] and marker in rows[0][1][0].lower():
        return rows[1:]
    return rows


# ── Tasks ─────────────────────────────────────────────────────────────────────

def _parse_advance(text: str) -> Optional[int]:
    if not text:
        return None
    amount = int(float(text.replace(",", "")))
    if amount < 0:
        raise ValueError("negative advance")
    return amount


def preview_task_import(rows: Rows, clients: Iterable[dict],
                        team_members: Iterable[dict]) -> ImportPreview:
    """Validate task rows against known clients and team members.

    Args:
        rows: Output of parse_delimited_text / read_xlsx_rows.
        clients: Dicts with at least ``id`` and ``name``.
        team_members: Dicts with ``principal`` and ``name``.

    Returns:
        ImportPreview whose valid records are ready for insert.
    """
    clients_by_name = {c["name"].strip().lower(): c for c in clients}
    members_by_name = {m["name"].strip().lower(): m for m in team_members}
    preview = ImportPreview("tasks")

    for line, cells in _skip_header(rows, "client"):
        if len(cells) < MIN_TASK_COLUMNS:
            preview.add_row(ImportRow(line, cells, errors=[
                f"Invalid format on line {line}. Expected: {', '.join(TASK_COLUMNS)}"
            ]))
            continue

        (client_name, title, task_type, sub_type, status, comment, assigned_name,
         due_date, assignment_date, bill, advance, payment) = _pad(cells, len(TASK_COLUMNS))[:12]
        errors: list[str] = []

        client = clients_by_name.get(client_name.lower())
        if client is None:
            errors.append("Client not found")
        if not title:
            errors.append("Title required")
        parsed_type = parse_task_type(task_type)
        if parsed_type is None:
            errors.append("Invalid Task Type")
        parsed_status = parse_task_status(status)
        if parsed_status is None:
            errors.append("Invalid Status")
        member = members_by_name.get(assigned_name.lower()) if assigned_name else None
        if member is None:
            errors.append("Team member not found")
        parsed_payment = parse_payment_status(payment) if payment else PaymentStatus.pending
        if parsed_payment is None:
            errors.append("Invalid Payment Status")

        due_ns = assignment_ns = advance_amount = None
        try:
            due_ns = parse_date_to_nanos(due_date)
        except ValueError:
            errors.append("Invalid Due Date")
        try:
            assignment_ns = parse_date_to_nanos(assignment_date)
        except ValueError:
            errors.append("Invalid Assignment Date")
        try:
            advance_amount = _parse_advance(advance)
        except ValueError:
            errors.append("Invalid Advance Received")

        if errors:
            preview.add_row(ImportRow(line, cells, errors=errors))
            continue

        record = {
            "clientId": client["id"],
            "clientName": client["name"],
            "title": title,
            "taskType": parsed_type.value,
            "subType": empty_to_none(sub_type),
            "status": parsed_status.value,
            "comment": empty_to_none(comment),
            "assignedTo": member["principal"],
            "assignedName": member["name"],
            "dueDate": due_ns,
            "manualAssignmentDate": assignment_ns,
            "bill": empty_to_none(bill),
            "advanceReceived": advance_amount,
            "paymentStatus": parsed_payment.value,
            "recurring": Recurring.none.value,
        }
        preview.add_row(ImportRow(line, cells, record=record))

    if not preview.rows:
        preview.add_file_error("No valid tasks found in file")
    logger.info("task import preview: %d rows, %d valid",
                len(preview.rows), len(preview.valid_rows()))
    return preview


# ── Clients ───────────────────────────────────────────────────────────────────

def preview_client_import(rows: Rows) -> ImportPreview:
    """Validate client rows.  Only the name is required."""
    preview = ImportPreview("clients")
    for line, cells in _skip_header(rows, "name"):
        name, gstin, pan, category, sub_category, recurring = _pad(cells, len(CLIENT_COLUMNS))[:6]
        if not name:
            preview.add_row(ImportRow(line, cells, errors=[
                f'Missing required field "Name of Client" on row {line}'
            ]))
            continue
        preview.add_row(ImportRow(line, cells, record={
            "name": name,
            "gstin": empty_to_none(gstin),
            "pan": empty_to_none(pan),
            "taskCategory": parse_task_category(category).value,
            "subCategory": empty_to_none(sub_category),
            "recurring": parse_recurring_or_none(recurring).value,
            "contactInfo": "",
            "status": ClientStatus.active.value,
        }))
    if not preview.rows:
        preview.add_file_error("No valid clients found in file")
    logger.info("client import preview: %d rows, %d valid",
                len(preview.rows), len(preview.valid_rows()))
    return preview


# ── Team members ──────────────────────────────────────────────────────────────

def generate_principal() -> str:
    """Return a fresh principal id for a member created by import."""
    raw = uuid.uuid4().hex
    return "-".join(raw[i:i + 5] for i in range(0, 25, 5)) + "-cai"


def preview_team_member_import(rows: Rows) -> ImportPreview:
    """Validate team member rows.  The header row must name a Name column."""
    preview = ImportPreview("team_members")
    if not rows:
        preview.add_file_error("File is empty")
        return preview

    _, header = rows[0]
    name_col = next((i for i, h in enumerate(header) if h.strip().lower() == "name"), None)
    if name_col is None:
        preview.add_file_error('Could not find "Name" column in the file')
        return preview

    data_rows = rows[1:]
    if not data_rows:
        preview.add_file_error("No data rows found in file")
        return preview
    if len(data_rows) > MAX_TEAM_MEMBERS_PER_IMPORT:
        preview.add_file_error(
            f"Cannot import more than {MAX_TEAM_MEMBERS_PER_IMPORT} team members at once"
        )

    for position, (line, cells) in enumerate(data_rows, start=2):
        name = cells[name_col].strip() if name_col < len(cells) else ""
        if not name:
            preview.add_row(ImportRow(line, cells, errors=[f"Row {position}: Name is required"]))
            continue
        preview.add_row(ImportRow(line, cells, record={
            "name": name,
            "principal": generate_principal(),
        }))
    logger.info("team member import preview: %d rows, %d valid",
                len(preview.rows), len(preview.valid_rows()))
    return preview
