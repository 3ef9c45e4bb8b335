"""Status ranking and multi-column table sorting.

Column headers cycle through three states when clicked:

    unsorted -> asc -> desc -> unsorted

A SortState keeps the active columns in priority order (first clicked is most
significant).  sort_records() applies them with repeated stable sorts, least
significant column first, which is the standard trick for multi-key sorts with
mixed directions.
"""

import math
from functools import cmp_to_key
from typing import Any, Callable, Iterable, Optional

from utils.formatting import parse_bill_amount

TASK_STATUS_ORDER: dict[str, int] = {
    "pending": 0,
    "inProgress": 1,
    "docsPending": 2,
    "hold": 3,
    "completed": 4,
}


def status_rank(status) -> Optional[int]:
    """Return the rank of a status value, or None if it is unknown."""
    return TASK_STATUS_ORDER.get(getattr(status, "value", status))


def compare_task_status(a, b, direction: str = "asc") -> int:
    """Compare two statuses by domain rank.

    Unknown statuses go after every known status when ascending and before
    them when descending (the whole ordering is reversed).  Two unknown
    statuses compare equal.
    """
    ra, rb = status_rank(a), status_rank(b)
    if ra is None and rb is None:
        result = 0
    elif ra is None:
        result = 1
    elif rb is None:
        result = -1
    else:
        result = (ra > rb) - (ra < rb)
    return -result if direction == "desc" else result


class SortState:
    """Ordered (column, direction) pairs with tri-state toggling.

    Usage::

        state = SortState()
        state.toggle("dueDate")     # [("dueDate", "asc")]
        state.toggle("dueDate")     # [("dueDate", "desc")]
        state.toggle("dueDate")     # []
    """

    def __init__(self, columns: Optional[list[tuple[str, str]]] = None) -> None:
        self.columns: list[tuple[str, str]] = list(columns or [])

    def direction(self, column: str) -> Optional[str]:
        for col, direction in self.columns:
            if col == column:
                return direction
        return None

    def toggle(self, column: str, multi: bool = True) -> Optional[str]:
        """Advance *column* to its next state and return the new direction.

        Args:
            column: Column key that was clicked.
            multi: Keep other sorted columns.  When False, a column that
                is not yet sorted replaces all others.

        Returns:
            "asc", "desc", or None when the column became unsorted.
        """
        current = self.direction(column)
        if current is None:
            if not multi:
                self.columns = []
            self.columns.append((column, "asc"))
            return "asc"
        if current == "asc":
            self.columns = [(c, "desc" if c == column else d) for c, d in self.columns]
            return "desc"
        self.columns = [(c, d) for c, d in self.columns if c != column]
        return None

    def clear(self) -> None:
        self.columns = []

    def __bool__(self) -> bool:
        return bool(self.columns)

    def __repr__(self) -> str:
        return f"SortState({self.columns!r})"

    @classmethod
    def parse(cls, specs: Optional[Iterable[str]]) -> "SortState":
        """Build a state from ``column:dir`` strings (dir defaults to asc).

        Raises:
            ValueError: If a direction is not asc/desc.
        """
        state = cls()
        for spec in specs or []:
            column, _, direction = spec.partition(":")
            direction = (direction or "asc").lower()
            if direction not in ("asc", "desc"):
                raise ValueError(f"Invalid sort direction '{direction}' for column '{column}'")
            state.columns = [(c, d) for c, d in state.columns if c != column]
            state.columns.append((column.strip(), direction))
        return state


def _date_key(field: str, missing_last: bool) -> Callable[[dict], float]:
    missing = math.inf if missing_last else 0

    def key(record: dict) -> float:
        value = record.get(field)
        return missing if value is None else value
    return key


def _text_key(field: str) -> Callable[[dict], str]:
    def key(record: dict) -> str:
        return (record.get(field) or "").lower()
    return key


def task_sort_keys(missing_last: bool = False) -> dict[str, Callable[[dict], Any]]:
    """Key functions for sortable task columns.

    Missing dates sort as 0 by default.  With ``missing_last`` they sort as
    +inf so undated tasks end up at the bottom of an ascending list.
    """
    return {
        "dueDate": _date_key("dueDate", missing_last),
        "completionDate": _date_key("completionDate", missing_last),
        "assignmentDate": _date_key("assignmentDate", missing_last),
        "createdAt": _date_key("createdAt", missing_last),
        "clientName": _text_key("clientName"),
        "subType": _text_key("subType"),
        "title": _text_key("title"),
        "assignedName": _text_key("assignedName"),
        "taskType": _text_key("taskType"),
        "bill": lambda r: parse_bill_amount(r.get("bill")),
    }


def sort_records(records: Iterable[dict], state: SortState,
                 key_funcs: Optional[dict[str, Callable[[dict], Any]]] = None,
                 status_field: str = "status") -> list[dict]:
    """Sort *records* by every column in *state*.

    The status column (named by *status_field*) is ordered by rank through
    compare_task_status rather than lexically.

    Raises:
        ValueError: If a column has no key function.
    """
    if key_funcs is None:
        key_funcs = task_sort_keys()
    result = list(records)
    for column, direction in reversed(state.columns):
        if column in ("status", status_field):
            cmp = cmp_to_key(
                lambda x, y: compare_task_status(x.get(status_field), y.get(status_field), direction)
            )
            result.sort(key=cmp)
            continue
        key = key_funcs.get(column)
        if key is None:
            raise ValueError(
                f"Invalid sort column: '{column}'. "
                f"Must be one of: {', '.join(sorted([*key_funcs, 'status']))}"
            )
        result.sort(key=key, reverse=(direction == "desc"))
    return result
