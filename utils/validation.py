"""Row validation results for bulk imports.

Every parsed row of an upload becomes an ImportRow carrying its source line,
raw cell values, the record it would create, and any problems found.  An
ImportPreview collects the rows so callers can show the whole table before
committing; only rows without errors are ever written.
"""

from typing import Any, Dict, List, Optional


class ImportRow:
    """One data row from an uploaded file."""

    def __init__(self, line: int, values: List[str],
                 record: Optional[Dict[str, Any]] = None,
                 errors: Optional[List[str]] = None):
        """Initialize an import row.

        Args:
            line: 1-based line (CSV) or row (xlsx) number in the upload
            values: Trimmed cell strings as read from the file
            record: Parsed record ready to insert, if parsing got that far
            errors: Human-readable problems; empty means the row is valid
        """
        self.line = line
        self.values = values
        self.record = record
        self.errors: List[str] = list(errors or [])

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def error(self) -> Optional[str]:
        """All errors joined the way they are shown in the preview table."""
        return ", ".join(self.errors) if self.errors else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line": self.line,
            "values": self.values,
            "record": self.record,
            "valid": self.is_valid,
            "error": self.error,
        }

    def __repr__(self) -> str:
        return f"ImportRow(line={self.line}, valid={self.is_valid})"


class ImportPreview:
    """Collects parsed rows plus file-level errors for one upload."""

    def __init__(self, kind: str):
        self.kind = kind
        self.rows: List[ImportRow] = []
        self.file_errors: List[str] = []

    def add_row(self, row: ImportRow) -> None:
        self.rows.append(row)

    def add_file_error(self, message: str) -> None:
        self.file_errors.append(message)

    def valid_rows(self) -> List[ImportRow]:
        return [r for r in self.rows if r.is_valid]

    def invalid_rows(self) -> List[ImportRow]:
        return [r for r in self.rows if not r.is_valid]

    def valid_records(self) -> List[Dict[str, Any]]:
        return [r.record for r in self.valid_rows() if r.record is not None]

    def can_commit(self) -> bool:
        """True when there is no file-level error and at least one valid row."""
        return not self.file_errors and bool(self.valid_rows())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "rows": [r.to_dict() for r in self.rows],
            "file_errors": self.file_errors,
            "summary": {
                "total_rows": len(self.rows),
                "valid_rows": len(self.valid_rows()),
                "invalid_rows": len(self.invalid_rows()),
                "can_commit": self.can_commit(),
            },
        }
