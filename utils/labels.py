"""Domain enumerations, display labels and label parsing.

Values are the canonical wire spellings (``inProgress``, ``ITNotice``).
Labels are what people type into spreadsheets and see in exports
(``In Progress``, ``IT Notice``).  The ``parse_*`` functions accept either,
case-insensitively and ignoring spaces, underscores and hyphens.
"""

from enum import Enum
from typing import Optional

from utils.strings import label_key


class TaskStatus(str, Enum):
    pending = "pending"
    inProgress = "inProgress"
    docsPending = "docsPending"
    hold = "hold"
    completed = "completed"


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    overdue = "overdue"


class Recurring(str, Enum):
    none = "none"
    quarterly = "quarterly"
    monthly = "monthly"
    yearly = "yearly"


class TaskType(str, Enum):
    GST = "GST"
    TDS = "TDS"
    ITNotice = "ITNotice"
    Accounts = "Accounts"
    Audit = "Audit"
    Other = "Other"
    FormFiling = "FormFiling"
    CACertificate = "CACertificate"


class ClientStatus(str, Enum):
    active = "active"
    inactive = "inactive"


class UserRole(str, Enum):
    admin = "admin"
    user = "user"
    guest = "guest"


class RevenueCardType(str, Enum):
    totalCollected = "totalCollected"
    totalOutstanding = "totalOutstanding"
    totalRevenue = "totalRevenue"


class SortDirection(str, Enum):
    asc = "asc"
    desc = "desc"


class ToDoFilterType(str, Enum):
    all = "all"
    today = "today"


class DueDateDayType(str, Enum):
    dueToday = "dueToday"
    dueTomorrow = "dueTomorrow"
    anyDate = "anyDate"
    customDate = "customDate"


# ── Display labels ────────────────────────────────────────────────────────────

TASK_TYPE_LABELS: dict[TaskType, str] = {
    TaskType.GST: "GST",
    TaskType.Audit: "Audit",
    TaskType.ITNotice: "IT Notice",
    TaskType.TDS: "TDS",
    TaskType.Accounts: "Accounts",
    TaskType.FormFiling: "Form Filing",
    TaskType.CACertificate: "CA Certificate",
    TaskType.Other: "Other",
}

TASK_STATUS_LABELS: dict[TaskStatus, str] = {
    TaskStatus.pending: "Pending",
    TaskStatus.inProgress: "In Progress",
    TaskStatus.completed: "Completed",
    TaskStatus.docsPending: "Docs Pending",
    TaskStatus.hold: "Hold",
}

PAYMENT_STATUS_LABELS: dict[PaymentStatus, str] = {
    PaymentStatus.pending: "Pending",
    PaymentStatus.paid: "Paid",
    PaymentStatus.overdue: "Overdue",
}

RECURRING_LABELS: dict[Recurring, str] = {
    Recurring.none: "None",
    Recurring.quarterly: "Quarterly",
    Recurring.monthly: "Monthly",
    Recurring.yearly: "Yearly",
}

# Extra spellings seen in uploaded sheets, keyed by label_key().
_TASK_TYPE_ALIASES = {"others": TaskType.Other}
_TASK_STATUS_ALIASES = {"onhold": TaskStatus.hold, "todo": TaskStatus.pending}
_RECURRING_ALIASES = {"annual": Recurring.yearly, "annually": Recurring.yearly}


def _build_lookup(enum_cls, labels: dict, aliases: dict) -> dict:
    lookup = {}
    for member in enum_cls:
        lookup[label_key(member.value)] = member
        lookup[label_key(labels.get(member, member.value))] = member
    lookup.update(aliases)
    return lookup


_TASK_TYPE_LOOKUP = _build_lookup(TaskType, TASK_TYPE_LABELS, _TASK_TYPE_ALIASES)
_TASK_STATUS_LOOKUP = _build_lookup(TaskStatus, TASK_STATUS_LABELS, _TASK_STATUS_ALIASES)
_PAYMENT_STATUS_LOOKUP = _build_lookup(PaymentStatus, PAYMENT_STATUS_LABELS, {})
_RECURRING_LOOKUP = _build_lookup(Recurring, RECURRING_LABELS, _RECURRING_ALIASES)


def parse_task_type(value: Optional[str]) -> Optional[TaskType]:
    """Return the TaskType for *value*, or None if it is not recognised."""
    return _TASK_TYPE_LOOKUP.get(label_key(value))


def parse_task_status(value: Optional[str]) -> Optional[TaskStatus]:
    return _TASK_STATUS_LOOKUP.get(label_key(value))


def parse_payment_status(value: Optional[str]) -> Optional[PaymentStatus]:
    return _PAYMENT_STATUS_LOOKUP.get(label_key(value))


def parse_recurring(value: Optional[str]) -> Optional[Recurring]:
    return _RECURRING_LOOKUP.get(label_key(value))


def parse_task_category(value: Optional[str]) -> TaskType:
    """Client import: unknown categories fall back to Other."""
    return parse_task_type(value) or TaskType.Other


def parse_recurring_or_none(value: Optional[str]) -> Recurring:
    return parse_recurring(value) or Recurring.none


def parse_payment_status_or_pending(value: Optional[str]) -> PaymentStatus:
    return parse_payment_status(value) or PaymentStatus.pending


def task_type_label(value) -> str:
    member = parse_task_type(value)
    return TASK_TYPE_LABELS[member] if member else (value or "")


def task_status_label(value) -> str:
    member = parse_task_status(value)
    return TASK_STATUS_LABELS[member] if member else (value or "")


def payment_status_label(value) -> str:
    member = parse_payment_status(value)
    return PAYMENT_STATUS_LABELS[member] if member else (value or "")


def recurring_label(value) -> str:
    member = parse_recurring(value)
    return RECURRING_LABELS[member] if member else (value or "")
