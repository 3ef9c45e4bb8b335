"""
Caller identity and role checks.

The caller's principal is read from the ``X-Principal`` request header; a
missing or blank header means the anonymous principal.  Identity proof is the
job of whatever sits in front of the API (gateway, reverse proxy), so this
module only maps principals to roles:

    anonymous principal         -> guest
    listed in APP_ADMIN_PRINCIPALS -> admin
    row in user_roles           -> that role
    anyone else                 -> user

The first non-anonymous caller to save a profile while no admin exists is
recorded as admin, so a fresh database always gets one.
"""

import logging
import sqlite3

from fastapi import Depends, HTTPException, Request

from api.database import get_db
from utils.config import ANONYMOUS_PRINCIPAL, AppConfig
from utils.labels import UserRole

logger = logging.getLogger(__name__)

PRINCIPAL_HEADER = "X-Principal"

_ADMIN_PRINCIPALS: set[str] = AppConfig.from_env().admin_principals


def get_caller(request: Request) -> str:
    """FastAPI dependency: the caller's principal (may be anonymous)."""
    principal = request.headers.get(PRINCIPAL_HEADER, "").strip()
    return principal or ANONYMOUS_PRINCIPAL


def role_of(conn: sqlite3.Connection, principal: str) -> UserRole:
    if principal == ANONYMOUS_PRINCIPAL:
        return UserRole.guest
    if principal in _ADMIN_PRINCIPALS:
        return UserRole.admin
    row = conn.execute(
        "SELECT role FROM user_roles WHERE principal = ?", (principal,)
    ).fetchone()
    return UserRole(row["role"]) if row else UserRole.user


def admin_exists(conn: sqlite3.Connection) -> bool:
    if _ADMIN_PRINCIPALS:
        return True
    row = conn.execute(
        "SELECT 1 FROM user_roles WHERE role = ? LIMIT 1", (UserRole.admin.value,)
    ).fetchone()
    return row is not None


def set_role(conn: sqlite3.Connection, principal: str, role: UserRole) -> None:
    conn.execute(
        "INSERT INTO user_roles (principal, role) VALUES (?, ?) "
        "ON CONFLICT(principal) DO UPDATE SET role = excluded.role",
        (principal, role.value),
    )


def require_user(principal: str = Depends(get_caller)) -> str:
    """FastAPI dependency: reject anonymous callers with 401."""
    if principal == ANONYMOUS_PRINCIPAL:
        raise HTTPException(
            status_code=401,
            detail=f"Sign-in required: send the {PRINCIPAL_HEADER} header",
        )
    return principal


def require_admin(
    principal: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> str:
    """FastAPI dependency: reject non-admin callers with 403."""
    if role_of(conn, principal) != UserRole.admin:
        logger.warning("admin_required principal=%s", principal)
        raise HTTPException(status_code=403, detail="Only admins can perform this action")
    return principal


def can_edit_task(conn: sqlite3.Connection, principal: str, task: dict) -> bool:
    """Admins, the assignee and the task's captains may edit or delete it."""
    if principal == task.get("assignedTo") or principal in (task.get("captains") or []):
        return True
    return role_of(conn, principal) == UserRole.admin


def check_can_edit_task(conn: sqlite3.Connection, principal: str, task: dict) -> None:
    if not can_edit_task(conn, principal, task):
        logger.warning("task_edit_denied principal=%s task_id=%s", principal, task.get("id"))
        raise HTTPException(
            status_code=403,
            detail=f"Only the assignee, a captain or an admin can modify task {task.get('id')}",
        )
