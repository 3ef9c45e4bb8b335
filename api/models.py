"""
Pydantic request/response models for the API.

Field names use the camelCase spelling of the wire interface.  Optional
fields default to None so that rows with NULL columns validate.  All
timestamps are integer nanoseconds since the epoch (UTC).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from utils.labels import (
    ClientStatus,
    PaymentStatus,
    Recurring,
    SortDirection,
    TaskStatus,
    TaskType,
    UserRole,
)

_NS = "Nanoseconds since the Unix epoch (UTC)"


# ── Profiles and roles ────────────────────────────────────────────────────────

class UserProfile(BaseModel):
    """Display profile saved by a caller."""
    name: str = Field(..., min_length=1, description="Display name", examples=["Priya Sharma"])
    role: str = Field("", description="Free-text job title shown next to the name", examples=["Senior Associate"])


class RoleOut(BaseModel):
    principal: str = Field(..., description="Principal the role applies to")
    role: UserRole = Field(..., description="admin | user | guest", examples=["user"])


class RoleAssignment(BaseModel):
    role: UserRole = Field(..., description="Role to assign", examples=["admin"])


# ── Clients ───────────────────────────────────────────────────────────────────

class ClientIn(BaseModel):
    """Client fields accepted on create and update."""
    name: str = Field(..., min_length=1, description="Client name (unique, case-insensitive)", examples=["Acme Ltd"])
    contactInfo: str = Field("", description="Free-text contact details")
    status: ClientStatus = Field(ClientStatus.active, description="active | inactive")
    recurring: Recurring = Field(Recurring.none, description="none | quarterly | monthly | yearly")
    taskCategory: TaskType = Field(TaskType.Other, description="Default task type for the client", examples=["GST"])
    subCategory: str | None = Field(None, description="Free-text sub category", examples=["GST Return Filing"])
    gstin: str | None = Field(None, description="15-character GST identification number", examples=["27AABCU9603R1ZM"])
    pan: str | None = Field(None, description="10-character PAN", examples=["AABCU9603R"])


class Client(ClientIn):
    id: int = Field(..., description="Client id", examples=[1])


class ClientUpdate(ClientIn):
    """A client update inside a bulk update request."""
    id: int = Field(..., description="Client id to update")


# ── Team members ──────────────────────────────────────────────────────────────

class TeamMember(BaseModel):
    principal: str = Field(..., min_length=1, description="Member principal", examples=["rrkah-fqaaa-aaaaa-aaaaq-cai"])
    name: str = Field(..., min_length=1, description="Display name", examples=["John Doe"])


# ── Tasks ─────────────────────────────────────────────────────────────────────

class TaskIn(BaseModel):
    """Task fields accepted on create and full update."""
    clientId: int = Field(..., description="Owning client id; clientName is resolved from it")
    title: str = Field(..., min_length=1, description="Task title", examples=["File GST"])
    taskType: TaskType = Field(..., description="Task type", examples=["GST"])
    subType: str | None = Field(None, description="Free-text sub type", examples=["GSTR-3B"])
    status: TaskStatus = Field(TaskStatus.pending, description="Workflow status")
    paymentStatus: PaymentStatus = Field(PaymentStatus.pending, description="pending | paid | overdue")
    comment: str | None = Field(None, description="Free-text comment")
    assignedTo: str | None = Field(None, description="Assignee principal; defaults to the caller")
    assignedName: str | None = Field(None, description="Assignee display name; defaults to the member's name")
    captains: list[str] = Field(default_factory=list, description="Principals that may also edit the task")
    recurring: Recurring = Field(Recurring.none, description="Recurrence")
    dueDate: int | None = Field(None, description=_NS)
    manualAssignmentDate: int | None = Field(None, description=_NS)
    completionDate: int | None = Field(None, description=_NS)
    bill: str | None = Field(None, description="Bill amount as entered", examples=["50000"])
    advanceReceived: int | None = Field(None, ge=0, description="Advance received", examples=[25000])


class Task(BaseModel):
    """A stored task."""
    id: int
    status: TaskStatus
    title: str
    clientId: int
    clientName: str
    paymentStatus: PaymentStatus
    subType: str | None = None
    completionDate: int | None = Field(None, description=_NS)
    assignedTo: str
    assignedName: str
    assignmentDate: int | None = Field(None, description=_NS)
    manualAssignmentDate: int | None = Field(None, description=_NS)
    bill: str | None = None
    advanceReceived: int | None = None
    outstandingAmount: int | None = Field(None, description="max(bill - advanceReceived, 0)")
    createdAt: int = Field(..., description=_NS)
    recurring: Recurring
    dueDate: int | None = Field(None, description=_NS)
    taskType: TaskType
    comment: str | None = None
    captains: list[str] = Field(default_factory=list)


class TaskUpdate(TaskIn):
    """A task update inside a bulk update request."""
    id: int = Field(..., description="Task id to update")


class StatusUpdate(BaseModel):
    status: TaskStatus
    completionDate: int | None = Field(None, description=_NS)


class CommentUpdate(BaseModel):
    comment: str | None = None


class BillUpdate(BaseModel):
    bill: str | None = None
    advanceReceived: int | None = Field(None, ge=0)


class PaymentUpdate(BaseModel):
    paymentStatus: PaymentStatus
    advanceReceived: int | None = Field(None, ge=0, description="Also update the advance when given")
    bill: str | None = Field(None, description="Also update the bill when given")


class CaptainsUpdate(BaseModel):
    captains: list[str] = Field(default_factory=list)


class AssigneeUpdate(BaseModel):
    assignedTo: str = Field(..., min_length=1)
    assignedName: str = Field(..., min_length=1)


class IdList(BaseModel):
    ids: list[int] = Field(..., description="Record ids", examples=[[1, 2, 3]])


class DeleteResult(BaseModel):
    deleted: int = Field(..., description="Number of records removed", examples=[3])


class TaskFilter(BaseModel):
    """Criteria for POST /tasks/filter; all given criteria must match."""
    status: TaskStatus | None = None
    paymentStatus: PaymentStatus | None = None
    subType: str | None = None
    assigneeName: str | None = None
    searchTerm: str | None = None
    taskType: TaskType | None = None
    comment: str | None = None


class DateSearchResult(BaseModel):
    date: int = Field(..., description=_NS)
    tasks: list[Task]


# ── Public projections ────────────────────────────────────────────────────────

class PublicSearchFilter(BaseModel):
    searchTerm: str = Field("", description="Free-text term; empty matches everything", examples=["gst"])


class PublicTeamMember(BaseModel):
    name: str


class PublicClient(BaseModel):
    name: str
    status: ClientStatus


class PublicTask(BaseModel):
    title: str
    clientName: str
    taskType: TaskType
    taskSubType: TaskType = Field(..., description="Task type, repeated for grouping")
    subType: str | None = None
    status: TaskStatus
    paymentStatus: PaymentStatus
    assignedName: str
    assignedDate: int | None = Field(None, description=_NS)
    dueDate: int | None = Field(None, description=_NS)
    completionDate: int | None = Field(None, description=_NS)
    comment: str | None = None


class PublicTaskByAssignee(BaseModel):
    title: str
    clientName: str
    taskType: TaskType
    taskSubType: TaskType
    status: TaskStatus
    taskStatus: TaskStatus
    paymentStatus: PaymentStatus
    assignedName: str
    assignedDate: int | None = Field(None, description=_NS)
    dueDate: int | None = Field(None, description=_NS)
    completionDate: int | None = Field(None, description=_NS)
    comment: str | None = None


# ── Dashboard ─────────────────────────────────────────────────────────────────

class RevenueResponse(BaseModel):
    totalCollected: int = Field(..., examples=[125000])
    totalOutstanding: int = Field(..., examples=[40000])
    totalRevenue: int = Field(..., examples=[165000])


class RevenueTaskDetails(BaseModel):
    taskName: str
    clientName: str
    paymentStatus: PaymentStatus
    bill: str | None = None
    advanceReceived: int | None = None
    outstandingAmount: int | None = None


class RevenueModalResponse(BaseModel):
    title: str = Field(..., description="Card title", examples=["Total Revenue"])
    description: str = Field(..., examples=["All tasks with bill amounts"])
    totalAmount: int
    items: list[RevenueTaskDetails]


class DueDateCountResponse(BaseModel):
    dueTodayCount: int
    dueTomorrowCount: int
    customDateCount: int
    anyDateCount: int


class DueDateTaskDetails(BaseModel):
    taskTitle: str
    clientName: str
    assignee: str
    status: TaskStatus
    paymentStatus: PaymentStatus
    dueDate: int | None = Field(None, description=_NS)
    comments: str | None = None


class DueDateModalResponse(BaseModel):
    title: str = Field(..., examples=["Tasks Due Today"])
    taskCount: int
    items: list[DueDateTaskDetails]


class DashboardTasksRequest(BaseModel):
    completionDateSortDirection: SortDirection = SortDirection.desc
    dueDateSortDirection: SortDirection = SortDirection.asc


class DashboardTasksResponse(BaseModel):
    completionDateSorted: list[Task]
    dueDateSorted: list[Task]


# ── To-dos ────────────────────────────────────────────────────────────────────

class ToDoItemCreate(BaseModel):
    title: str = Field(..., min_length=1, examples=["Call the bank"])
    dueDate: int | None = Field(None, description=_NS)
    description: str | None = None


class ToDoItemUpdate(BaseModel):
    title: str = Field(..., min_length=1)
    completed: bool
    dueDate: int | None = Field(None, description=_NS)
    description: str | None = None


class ToDoItem(BaseModel):
    id: int
    title: str
    owner: str
    createdAt: int = Field(..., description=_NS)
    modifiedAt: int = Field(..., description=_NS)
    completed: bool
    dueDate: int | None = Field(None, description=_NS)
    description: str | None = None


# ── Imports ───────────────────────────────────────────────────────────────────

class ImportRowOut(BaseModel):
    line: int = Field(..., description="Line (CSV) or row (xlsx) number in the upload")
    values: list[str]
    record: dict[str, Any] | None = None
    valid: bool
    error: str | None = Field(None, description="Problems joined with ', '")


class ImportPreviewOut(BaseModel):
    kind: str = Field(..., examples=["tasks"])
    rows: list[ImportRowOut]
    file_errors: list[str]
    summary: dict[str, Any]


class ImportResult(BaseModel):
    imported: int = Field(..., examples=[12])
    skipped: int = Field(..., description="Rows left out because they had errors", examples=[1])
    ids: list[Any] = Field(default_factory=list, description="Ids (or principals) created")
    message: str = Field(..., examples=["Successfully imported 12 task(s)"])


# ── Error model ───────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Standard error response body."""
    error: str = Field(..., description="Short error category", examples=["Bad request"])
    detail: Any | None = Field(None, description="Extended error detail")
    status_code: int = Field(..., ge=400, le=599, description="HTTP status code", examples=[400])
