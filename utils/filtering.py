"""In-memory search-term and task filtering.

These mirror the SQL filters in utils.query for records that are already
loaded (public search results, export selections, to-do lists).
"""

from typing import Iterable, Optional

from utils.timestamps import day_number, today_day_number

TASK_SEARCH_FIELDS = ("title", "clientName", "assignedName", "subType", "comment")


def _contains(haystack, needle: str) -> bool:
    return haystack is not None and needle in str(haystack).lower()


def matches_search_term(record: dict, term: Optional[str],
                        fields: Iterable[str]) -> bool:
    """Case-insensitive substring match of *term* over *fields*.

    An empty or whitespace-only term matches every record.
    """
    if term is None or not term.strip():
        return True
    needle = term.strip().lower()
    return any(_contains(record.get(f), needle) for f in fields)


def filter_by_search_term(records: Iterable[dict], term: Optional[str],
                          fields: Iterable[str]) -> list[dict]:
    fields = tuple(fields)
    return [r for r in records if matches_search_term(r, term, fields)]


def apply_task_filter(tasks: Iterable[dict], task_filter: dict) -> list[dict]:
    """Apply a TaskFilter dict to already-loaded tasks.

    status, paymentStatus and taskType match exactly; subType, assigneeName
    and comment are substring matches; searchTerm spans TASK_SEARCH_FIELDS.
    Missing or empty criteria are ignored.
    """
    def _get(key):
        value = task_filter.get(key)
        return getattr(value, "value", value) or None

    status, payment, task_type = _get("status"), _get("paymentStatus"), _get("taskType")
    substrings = {
        "subType": _get("subType"),
        "assignedName": _get("assigneeName"),
        "comment": _get("comment"),
    }
    term = _get("searchTerm")

    result = []
    for task in tasks:
        if status and task.get("status") != status:
            continue
        if payment and task.get("paymentStatus") != payment:
            continue
        if task_type and task.get("taskType") != task_type:
            continue
        if any(v and not _contains(task.get(k), v.strip().lower())
               for k, v in substrings.items()):
            continue
        if not matches_search_term(task, term, TASK_SEARCH_FIELDS):
            continue
        result.append(task)
    return result


def is_due_today(item: dict, now_ns: Optional[int] = None) -> bool:
    """True when the item's dueDate falls on the current UTC day."""
    due = item.get("dueDate")
    if due is None:
        return False
    return day_number(due) == today_day_number(now_ns)


def filter_todos(todos: Iterable[dict], filter_type: str = "all",
                 now_ns: Optional[int] = None) -> list[dict]:
    filter_type = getattr(filter_type, "value", filter_type)
    if filter_type == "today":
        return [t for t in todos if is_due_today(t, now_ns)]
    if filter_type != "all":
        raise ValueError(f"Invalid to-do filter: '{filter_type}'. Must be one of: all, today")
    return list(todos)
