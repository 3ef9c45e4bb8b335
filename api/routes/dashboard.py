"""Dashboard revenue cards, due-date cards and their drill-down data."""

import sqlite3
from typing import Any

from fastapi import APIRouter, Depends, Query

from api.auth import require_user
from api.database import get_db
from api.models import (
    DashboardTasksRequest,
    DashboardTasksResponse,
    DueDateCountResponse,
    DueDateModalResponse,
    RevenueModalResponse,
    RevenueResponse,
)
from api.routes.tasks import aggregate_cache, fetch_tasks
from utils.formatting import format_export_date, parse_bill_amount
from utils.labels import DueDateDayType, PaymentStatus, RevenueCardType, TaskStatus
from utils.sorting import SortState, sort_records, task_sort_keys
from utils.timestamps import NANOS_PER_DAY, day_number, today_day_number

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

_REVENUE_CARDS = {
    RevenueCardType.totalRevenue: ("Total Revenue", "All tasks with bill amounts"),
    RevenueCardType.totalCollected: ("Total Collected", "Tasks with paid status"),
    RevenueCardType.totalOutstanding: ("Total Outstanding", "Tasks with outstanding balance"),
}


def _bill(task: dict) -> int:
    return int(parse_bill_amount(task.get("bill")))


def _outstanding(task: dict) -> int:
    if task.get("outstandingAmount") is not None:
        return task["outstandingAmount"]
    return max(_bill(task) - (task.get("advanceReceived") or 0), 0)


def _card_amount(card: RevenueCardType, task: dict) -> int:
    paid = task.get("paymentStatus") == PaymentStatus.paid.value
    if card is RevenueCardType.totalRevenue:
        return _bill(task)
    if card is RevenueCardType.totalCollected:
        return _bill(task) if paid else (task.get("advanceReceived") or 0)
    return 0 if paid else _outstanding(task)


def _revenue_items(tasks: list[dict], card: RevenueCardType) -> list[tuple[int, dict]]:
    """(amount, task) pairs with a non-zero amount, largest first."""
    pairs = [(_card_amount(card, t), t) for t in tasks]
    pairs = [p for p in pairs if p[0] > 0]
    pairs.sort(key=lambda p: p[0], reverse=True)
    return pairs


@router.get("/revenue", response_model=RevenueResponse, summary="Revenue card totals")
def get_revenue_cards(
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> RevenueResponse:
    def compute() -> RevenueResponse:
        tasks = fetch_tasks(conn)
        return RevenueResponse(**{
            card.value: sum(_card_amount(card, t) for t in tasks) for card in RevenueCardType
        })

    return aggregate_cache.get_or_set(("revenue",), compute)


@router.get("/revenue/{card_type}", response_model=RevenueModalResponse, summary="Revenue drill-down")
def get_revenue_modal(
    card_type: RevenueCardType,
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> RevenueModalResponse:
    """List the tasks behind one revenue card, largest amount first."""
    def compute() -> RevenueModalResponse:
        pairs = _revenue_items(fetch_tasks(conn), card_type)
        title, description = _REVENUE_CARDS[card_type]
        return RevenueModalResponse(
            title=title,
            description=description,
            totalAmount=sum(amount for amount, _ in pairs),
            items=[
                {
                    "taskName": t["title"],
                    "clientName": t["clientName"],
                    "paymentStatus": t["paymentStatus"],
                    "bill": t["bill"],
                    "advanceReceived": t["advanceReceived"],
                    "outstandingAmount": _outstanding(t),
                }
                for _, t in pairs
            ],
        )

    return aggregate_cache.get_or_set(("revenue", card_type.value), compute)


# ── Due dates ─────────────────────────────────────────────────────────────────

def _open_tasks_with_due_date(conn: sqlite3.Connection) -> list[dict]:
    return [
        t for t in fetch_tasks(conn, order="ORDER BY dueDate ASC, id ASC")
        if t["dueDate"] is not None and t["status"] != TaskStatus.completed.value
    ]


def _due_on(tasks: list[dict], day: int) -> list[dict]:
    return [t for t in tasks if day_number(t["dueDate"]) == day]


@router.get("/due-dates", response_model=DueDateCountResponse, summary="Due-date card counts")
def get_due_date_counts(
    customDate: int | None = Query(None, description="Nanosecond timestamp; defaults to today"),
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> DueDateCountResponse:
    """Count open tasks due today, tomorrow, on customDate and on any date."""
    today = today_day_number()
    custom = day_number(customDate) if customDate is not None else today

    def compute() -> DueDateCountResponse:
        tasks = _open_tasks_with_due_date(conn)
        return DueDateCountResponse(
            dueTodayCount=len(_due_on(tasks, today)),
            dueTomorrowCount=len(_due_on(tasks, today + 1)),
            customDateCount=len(_due_on(tasks, custom)),
            anyDateCount=len(tasks),
        )

    return aggregate_cache.get_or_set(("due-dates", today, custom), compute)


@router.get("/due-dates/{day_type}", response_model=DueDateModalResponse, summary="Due-date drill-down")
def get_due_date_modal(
    day_type: DueDateDayType,
    customDate: int | None = Query(None, description="Nanosecond timestamp; defaults to today"),
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> DueDateModalResponse:
    today = today_day_number()
    custom = day_number(customDate) if customDate is not None else today

    def compute() -> DueDateModalResponse:
        tasks = _open_tasks_with_due_date(conn)
        if day_type is DueDateDayType.dueToday:
            title, selected = "Tasks Due Today", _due_on(tasks, today)
        elif day_type is DueDateDayType.dueTomorrow:
            title, selected = "Tasks Due Tomorrow", _due_on(tasks, today + 1)
        elif day_type is DueDateDayType.anyDate:
            title, selected = "All Tasks with Due Dates", tasks
        else:
            title = f"Tasks Due on {format_export_date(custom * NANOS_PER_DAY)}"
            selected = _due_on(tasks, custom)
        return DueDateModalResponse(
            title=title,
            taskCount=len(selected),
            items=[_due_item(t) for t in selected],
        )

    return aggregate_cache.get_or_set(("due-dates", day_type.value, today, custom), compute)


def _due_item(task: dict) -> dict[str, Any]:
    return {
        "taskTitle": task["title"],
        "clientName": task["clientName"],
        "assignee": task["assignedName"],
        "status": task["status"],
        "paymentStatus": task["paymentStatus"],
        "dueDate": task["dueDate"],
        "comments": task["comment"],
    }


@router.post("/tasks", response_model=DashboardTasksResponse, summary="Dashboard task lists")
def get_dashboard_tasks(
    body: DashboardTasksRequest | None = None,
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> DashboardTasksResponse:
    """Completed tasks by completion date and open tasks by due date."""
    body = body or DashboardTasksRequest()
    tasks = fetch_tasks(conn)
    keys = task_sort_keys()
    completed = [t for t in tasks if t["status"] == TaskStatus.completed.value]
    open_due = [t for t in tasks if t["status"] != TaskStatus.completed.value and t["dueDate"] is not None]
    return DashboardTasksResponse(
        completionDateSorted=sort_records(
            completed, SortState([("completionDate", body.completionDateSortDirection.value)]), keys
        ),
        dueDateSorted=sort_records(
            open_due, SortState([("dueDate", body.dueDateSortDirection.value)]), keys
        ),
    )
