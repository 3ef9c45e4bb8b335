"""
Public read-only search.  No identity is required and responses carry only
the public projection of each record (no ids, principals or amounts).

POST /api/v1/public/team-members        publicSearchTeamMembers
POST /api/v1/public/clients             publicSearchClients
POST /api/v1/public/tasks               publicSearchTasks
POST /api/v1/public/tasks-by-assignee   publicSearchTasksByAssignee
"""

import sqlite3

from fastapi import APIRouter, Depends

from api.database import get_db
from api.models import (
    PublicClient,
    PublicSearchFilter,
    PublicTask,
    PublicTaskByAssignee,
    PublicTeamMember,
)
from api.routes.tasks import fetch_tasks
from utils.database import query_to_dicts
from utils.filtering import TASK_SEARCH_FIELDS, filter_by_search_term

router = APIRouter(prefix="/public", tags=["public"])


def public_task(task: dict) -> dict:
    return {
        "title": task["title"],
        "clientName": task["clientName"],
        "taskType": task["taskType"],
        "taskSubType": task["taskType"],
        "subType": task["subType"],
        "status": task["status"],
        "paymentStatus": task["paymentStatus"],
        "assignedName": task["assignedName"],
        "assignedDate": task["manualAssignmentDate"] or task["assignmentDate"],
        "dueDate": task["dueDate"],
        "completionDate": task["completionDate"],
        "comment": task["comment"],
    }


def public_task_by_assignee(task: dict) -> dict:
    projected = public_task(task)
    projected.pop("subType")
    projected["taskStatus"] = projected["status"]
    return projected


def search_public_tasks(conn: sqlite3.Connection, term: str | None) -> list[dict]:
    return [public_task(t) for t in filter_by_search_term(fetch_tasks(conn), term, TASK_SEARCH_FIELDS)]


def search_tasks_by_assignee(conn: sqlite3.Connection, term: str | None) -> list[dict]:
    tasks = filter_by_search_term(fetch_tasks(conn), term, ("assignedName",))
    return [public_task_by_assignee(t) for t in tasks]


@router.post("/team-members", response_model=list[PublicTeamMember], summary="Search team members")
def public_search_team_members(
    body: PublicSearchFilter,
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    members = query_to_dicts(conn, "SELECT name FROM team_members ORDER BY lower(name)")
    return filter_by_search_term(members, body.searchTerm, ("name",))


@router.post("/clients", response_model=list[PublicClient], summary="Search clients")
def public_search_clients(
    body: PublicSearchFilter,
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    clients = query_to_dicts(conn, "SELECT name, status FROM clients ORDER BY lower(name)")
    return filter_by_search_term(clients, body.searchTerm, ("name",))


@router.post("/tasks", response_model=list[PublicTask], summary="Search tasks")
def public_search_tasks(
    body: PublicSearchFilter,
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    """Match the term against title, client, assignee, sub type and comment."""
    return search_public_tasks(conn, body.searchTerm)


@router.post("/tasks-by-assignee", response_model=list[PublicTaskByAssignee],
             summary="Search tasks by assignee name")
def public_search_tasks_by_assignee(
    body: PublicSearchFilter,
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    return search_tasks_by_assignee(conn, body.searchTerm)
