"""
Caller profile and role endpoints.

GET  /api/v1/profile                 getCallerUserProfile
PUT  /api/v1/profile                 saveCallerUserProfile
GET  /api/v1/profile/{principal}     getUserProfile
GET  /api/v1/roles/me                getCallerUserRole
GET  /api/v1/roles/me/is-admin       isCallerAdmin
PUT  /api/v1/roles/{principal}       assignCallerUserRole (admin only)
"""

import logging
import sqlite3

from fastapi import APIRouter, Depends, HTTPException

from api.auth import admin_exists, get_caller, require_admin, require_user, role_of, set_role
from api.database import get_db
from api.models import RoleAssignment, RoleOut, UserProfile
from utils.labels import UserRole

logger = logging.getLogger(__name__)

router = APIRouter(tags=["profile"])


def _load_profile(conn: sqlite3.Connection, principal: str) -> UserProfile | None:
    row = conn.execute(
        "SELECT name, role FROM user_profiles WHERE principal = ?", (principal,)
    ).fetchone()
    return UserProfile(name=row["name"], role=row["role"]) if row else None


@router.get("/profile", response_model=UserProfile | None, summary="Get the caller's profile")
def get_caller_profile(
    principal: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
):
    """Return the caller's saved profile, or null if none has been saved."""
    return _load_profile(conn, principal)


@router.put("/profile", response_model=UserProfile, summary="Save the caller's profile")
def save_caller_profile(
    profile: UserProfile,
    principal: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> UserProfile:
    """Create or replace the caller's profile.

    The first caller to save a profile on a database with no admin becomes
    admin.
    """
    conn.execute(
        "INSERT INTO user_profiles (principal, name, role) VALUES (?, ?, ?) "
        "ON CONFLICT(principal) DO UPDATE SET name = excluded.name, role = excluded.role",
        (principal, profile.name.strip(), profile.role.strip()),
    )
    if not admin_exists(conn):
        set_role(conn, principal, UserRole.admin)
        logger.info("bootstrap_admin principal=%s", principal)
    conn.commit()
    return _load_profile(conn, principal)


@router.get("/profile/{principal}", response_model=UserProfile, summary="Get a user's profile")
def get_user_profile(
    principal: str,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> UserProfile:
    """Callers may read their own profile; admins may read anyone's."""
    if caller != principal and role_of(conn, caller) != UserRole.admin:
        raise HTTPException(status_code=403, detail="Can only view your own profile")
    profile = _load_profile(conn, principal)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No profile for principal '{principal}'")
    return profile


@router.get("/roles/me", response_model=RoleOut, summary="Get the caller's role")
def get_caller_role(
    principal: str = Depends(get_caller),
    conn: sqlite3.Connection = Depends(get_db),
) -> RoleOut:
    return RoleOut(principal=principal, role=role_of(conn, principal))


@router.get("/roles/me/is-admin", response_model=bool, summary="Is the caller an admin")
def is_caller_admin(
    principal: str = Depends(get_caller),
    conn: sqlite3.Connection = Depends(get_db),
) -> bool:
    return role_of(conn, principal) == UserRole.admin


@router.put("/roles/{principal}", response_model=RoleOut, summary="Assign a role")
def assign_role(
    principal: str,
    body: RoleAssignment,
    caller: str = Depends(require_admin),
    conn: sqlite3.Connection = Depends(get_db),
) -> RoleOut:
    """Set *principal*'s role.  Admins cannot demote themselves."""
    if principal == caller and body.role != UserRole.admin:
        raise HTTPException(status_code=400, detail="Admins cannot remove their own admin role")
    set_role(conn, principal, body.role)
    conn.commit()
    logger.info("role_assigned by=%s principal=%s role=%s", caller, principal, body.role.value)
    return RoleOut(principal=principal, role=role_of(conn, principal))
