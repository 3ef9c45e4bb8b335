"""
Team member endpoints.

GET    /api/v1/team-members                     getAllTeamMembers
POST   /api/v1/team-members                     createTeamMember (admin)
PUT    /api/v1/team-members/{principal}         rename a member (admin)
DELETE /api/v1/team-members/{principal}         remove a member (admin)
GET    /api/v1/team-members/import/template
POST   /api/v1/team-members/import/preview
POST   /api/v1/team-members/import              bulkImportTeamMembers (admin)
"""

import logging
import sqlite3

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from api.auth import require_admin, require_user
from api.database import get_db
from api.models import DeleteResult, ImportPreviewOut, ImportResult, TeamMember
from utils.database import batch_insert, query_to_dicts
from utils.exporting import team_member_template
from utils.importing import preview_team_member_import, read_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/team-members", tags=["team-members"])


class _Rename(BaseModel):
    name: str = Field(..., min_length=1)


def _all_members(conn: sqlite3.Connection) -> list[dict]:
    return query_to_dicts(conn, "SELECT principal, name FROM team_members ORDER BY lower(name)")


@router.get("", response_model=list[TeamMember], summary="List team members")
def get_all_team_members(
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    return _all_members(conn)


@router.post("", response_model=TeamMember, status_code=201, summary="Add a team member")
def create_team_member(
    body: TeamMember,
    caller: str = Depends(require_admin),
    conn: sqlite3.Connection = Depends(get_db),
) -> TeamMember:
    principal, name = body.principal.strip(), body.name.strip()
    if conn.execute("SELECT 1 FROM team_members WHERE principal = ?", (principal,)).fetchone():
        raise HTTPException(status_code=400, detail=f"Team member '{principal}' already exists")
    conn.execute("INSERT INTO team_members (principal, name) VALUES (?, ?)", (principal, name))
    conn.commit()
    logger.info("team_member_added by=%s principal=%s", caller, principal)
    return TeamMember(principal=principal, name=name)


@router.get("/import/template", summary="Download the team member import template")
def team_member_import_template(_caller: str = Depends(require_user)) -> Response:
    return Response(
        content=team_member_template(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=team_member_import_template.csv"},
    )


@router.post("/import/preview", response_model=ImportPreviewOut, summary="Validate a team member upload")
async def preview_team_member_upload(
    file: UploadFile = File(..., description=".csv or .xlsx with a Name column"),
    _caller: str = Depends(require_admin),
) -> dict:
    rows = read_upload(file.filename or "", await file.read())
    return preview_team_member_import(rows).to_dict()


@router.post("/import", response_model=ImportResult, status_code=201, summary="Import team members")
async def import_team_member_upload(
    file: UploadFile = File(..., description=".csv or .xlsx with a Name column"),
    caller: str = Depends(require_admin),
    conn: sqlite3.Connection = Depends(get_db),
) -> ImportResult:
    """Create one member per valid row, each with a freshly generated principal.

    Any file-level problem (no Name column, more than 20 rows) rejects the
    whole upload.
    """
    preview = preview_team_member_import(read_upload(file.filename or "", await file.read()))
    if not preview.can_commit():
        detail = preview.file_errors or [r.error for r in preview.invalid_rows()]
        raise HTTPException(status_code=400, detail={"message": "No valid team members to import", "errors": detail})
    records = preview.valid_records()
    batch_insert(
        conn,
        "INSERT INTO team_members (principal, name) VALUES (?, ?)",
        [(r["principal"], r["name"]) for r in records],
    )
    conn.commit()
    logger.info("team_members_imported by=%s count=%d", caller, len(records))
    return ImportResult(
        imported=len(records),
        skipped=len(preview.invalid_rows()),
        ids=[r["principal"] for r in records],
        message=f"Successfully imported {len(records)} team member(s)",
    )


def _require_member(conn: sqlite3.Connection, principal: str) -> None:
    if conn.execute("SELECT 1 FROM team_members WHERE principal = ?", (principal,)).fetchone() is None:
        raise HTTPException(status_code=404, detail=f"Team member '{principal}' not found")


@router.put("/{principal}", response_model=TeamMember, summary="Rename a team member")
def rename_team_member(
    principal: str,
    body: _Rename,
    _caller: str = Depends(require_admin),
    conn: sqlite3.Connection = Depends(get_db),
) -> TeamMember:
    _require_member(conn, principal)
    name = body.name.strip()
    conn.execute("UPDATE team_members SET name = ? WHERE principal = ?", (name, principal))
    conn.commit()
    return TeamMember(principal=principal, name=name)


@router.delete("/{principal}", response_model=DeleteResult, summary="Remove a team member")
def delete_team_member(
    principal: str,
    caller: str = Depends(require_admin),
    conn: sqlite3.Connection = Depends(get_db),
) -> DeleteResult:
    """Remove a member.  Tasks keep their stored assignee name."""
    _require_member(conn, principal)
    conn.execute("DELETE FROM team_members WHERE principal = ?", (principal,))
    conn.commit()
    logger.info("team_member_removed by=%s principal=%s", caller, principal)
    return DeleteResult(deleted=1)
