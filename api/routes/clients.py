"""
Client endpoints.

GET    /api/v1/clients                   getClients
GET    /api/v1/clients/search?term=      searchClients
GET    /api/v1/clients/{id}              getClient
POST   /api/v1/clients                   addClient / addClients (object or list)
PUT    /api/v1/clients/{id}              updateClient
PUT    /api/v1/clients                   updateClients
DELETE /api/v1/clients/{id}              deleteClient
POST   /api/v1/clients/bulk-delete       deleteClients
GET    /api/v1/clients/import/template
POST   /api/v1/clients/import/preview
POST   /api/v1/clients/import

Client names are unique ignoring case.  Renaming a client rewrites the
denormalised clientName on its tasks.  A client that still owns tasks
cannot be deleted.
"""

import logging
import sqlite3
from typing import Any

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from api.auth import require_user
from api.database import get_db
from api.models import Client, ClientIn, ClientUpdate, DeleteResult, IdList, ImportPreviewOut, ImportResult
from api.routes.tasks import invalidate_aggregates
from utils.database import batch_insert, placeholders, query_to_dicts
from utils.exporting import client_template
from utils.importing import preview_client_import, read_upload
from utils.query import build_like_clause

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])

_CLIENT_COLUMNS = ("name", "contactInfo", "status", "recurring", "taskCategory", "subCategory", "gstin", "pan")


def _values(client: dict[str, Any]) -> tuple:
    return tuple(getattr(client.get(c), "value", client.get(c)) for c in _CLIENT_COLUMNS)


def _fetch_client(conn: sqlite3.Connection, client_id: int) -> dict:
    row = conn.execute("SELECT * FROM clients WHERE id = ?", (client_id,)).fetchone()
    if row is None:
        raise HTTPException(status_code=404, detail=f"Client {client_id} not found")
    return dict(row)


def _check_name_free(conn: sqlite3.Connection, name: str, exclude_id: int | None = None) -> None:
    row = conn.execute(
        "SELECT id FROM clients WHERE lower(name) = lower(?) AND id IS NOT ?", (name, exclude_id)
    ).fetchone()
    if row is not None:
        raise HTTPException(status_code=400, detail=f"A client named '{name}' already exists")


def _insert_clients(conn: sqlite3.Connection, clients: list[dict[str, Any]]) -> list[int]:
    seen: set[str] = set()
    for client in clients:
        client["name"] = client["name"].strip()
        key = client["name"].lower()
        if key in seen:
            raise HTTPException(status_code=400, detail=f"Duplicate client name '{client['name']}' in request")
        seen.add(key)
        _check_name_free(conn, client["name"])
    ids = batch_insert(
        conn,
        f"INSERT INTO clients ({', '.join(_CLIENT_COLUMNS)}) VALUES ({placeholders(len(_CLIENT_COLUMNS))})",
        [_values(c) for c in clients],
    )
    conn.commit()
    return ids


def _update_client(conn: sqlite3.Connection, client_id: int, body: ClientIn) -> None:
    existing = _fetch_client(conn, client_id)
    data = body.model_dump()
    data["name"] = data["name"].strip()
    _check_name_free(conn, data["name"], exclude_id=client_id)
    assignments = ", ".join(f"{c} = ?" for c in _CLIENT_COLUMNS)
    conn.execute(f"UPDATE clients SET {assignments} WHERE id = ?", (*_values(data), client_id))
    if existing["name"] != data["name"]:
        conn.execute("UPDATE tasks SET clientName = ? WHERE clientId = ?", (data["name"], client_id))
        logger.info("client_renamed id=%d from=%r to=%r", client_id, existing["name"], data["name"])


def _fetch_many(conn: sqlite3.Connection, ids: list[int]) -> list[dict]:
    if not ids:
        return []
    return query_to_dicts(
        conn, f"SELECT * FROM clients WHERE id IN ({placeholders(len(ids))}) ORDER BY id", ids
    )


@router.get("", response_model=list[Client], summary="List clients")
def get_clients(
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    return query_to_dicts(conn, "SELECT * FROM clients ORDER BY lower(name)")


@router.get("/search", response_model=list[Client], summary="Search clients by name or contact")
def search_clients(
    term: str = Query("", description="Case-insensitive substring; empty returns all"),
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    where, params = build_like_clause(("name", "contactInfo", "gstin", "pan"), term)
    return query_to_dicts(conn, f"SELECT * FROM clients {where} ORDER BY lower(name)", params)


@router.get("/import/template", summary="Download the client import template")
def client_import_template(_caller: str = Depends(require_user)) -> Response:
    return Response(
        content=client_template(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=client_import_template.csv"},
    )


@router.post("/import/preview", response_model=ImportPreviewOut, summary="Validate a client upload")
async def preview_client_upload(
    file: UploadFile = File(..., description=".csv or .xlsx in the client template layout"),
    _caller: str = Depends(require_user),
) -> dict:
    rows = read_upload(file.filename or "", await file.read())
    return preview_client_import(rows).to_dict()


@router.post("/import", response_model=ImportResult, status_code=201, summary="Import clients from a file")
async def import_client_upload(
    file: UploadFile = File(..., description=".csv or .xlsx in the client template layout"),
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> ImportResult:
    """Insert every valid row.  Names that already exist are skipped."""
    preview = preview_client_import(read_upload(file.filename or "", await file.read()))
    if not preview.can_commit():
        detail = preview.file_errors or [r.error for r in preview.invalid_rows()]
        raise HTTPException(status_code=400, detail={"message": "No valid clients to import", "errors": detail})

    existing = {r["name"].lower() for r in query_to_dicts(conn, "SELECT name FROM clients")}
    fresh, duplicates = [], 0
    for record in preview.valid_records():
        key = record["name"].strip().lower()
        if key in existing:
            duplicates += 1
            continue
        existing.add(key)
        fresh.append(record)
    ids = _insert_clients(conn, fresh) if fresh else []
    invalidate_aggregates()
    skipped = len(preview.invalid_rows()) + duplicates
    logger.info("clients_imported caller=%s count=%d skipped=%d", caller, len(ids), skipped)
    return ImportResult(
        imported=len(ids), skipped=skipped, ids=ids,
        message=f"Successfully imported {len(ids)} client(s)",
    )


@router.post("/bulk-delete", response_model=DeleteResult, summary="Delete many clients")
def delete_clients(
    body: IdList,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> DeleteResult:
    ids = list(dict.fromkeys(body.ids))
    for client_id in ids:
        _check_deletable(conn, client_id)
    if ids:
        conn.execute(f"DELETE FROM clients WHERE id IN ({placeholders(len(ids))})", ids)
        conn.commit()
    logger.info("clients_deleted caller=%s count=%d", caller, len(ids))
    return DeleteResult(deleted=len(ids))


@router.post("", response_model=list[Client] | Client, status_code=201, summary="Add one or more clients")
def add_clients(
    body: ClientIn | list[ClientIn] = Body(..., description="A client object or a list of them"),
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
):
    """Create clients.  A single object returns the created client; a list returns a list."""
    many = isinstance(body, list)
    clients = [c.model_dump() for c in (body if many else [body])]
    if not clients:
        raise HTTPException(status_code=400, detail="No clients to add")
    ids = _insert_clients(conn, clients)
    logger.info("clients_added caller=%s count=%d", caller, len(ids))
    created = _fetch_many(conn, ids)
    return created if many else created[0]


@router.put("", response_model=list[Client], summary="Update many clients")
def update_clients(
    body: list[ClientUpdate],
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict]:
    for update in body:
        _update_client(conn, update.id, update)
    conn.commit()
    invalidate_aggregates()
    return _fetch_many(conn, [u.id for u in body])


@router.get("/{client_id}", response_model=Client, summary="Get a client")
def get_client(
    client_id: int,
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    return _fetch_client(conn, client_id)


@router.put("/{client_id}", response_model=Client, summary="Update a client")
def update_client(
    client_id: int,
    body: ClientIn,
    _caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    _update_client(conn, client_id, body)
    conn.commit()
    invalidate_aggregates()
    return _fetch_client(conn, client_id)


def _check_deletable(conn: sqlite3.Connection, client_id: int) -> None:
    _fetch_client(conn, client_id)
    count = conn.execute("SELECT COUNT(*) FROM tasks WHERE clientId = ?", (client_id,)).fetchone()[0]
    if count:
        raise HTTPException(
            status_code=400,
            detail=f"Client {client_id} still has {count} task(s); delete or move them first",
        )


@router.delete("/{client_id}", response_model=DeleteResult, summary="Delete a client")
def delete_client(
    client_id: int,
    caller: str = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> DeleteResult:
    _check_deletable(conn, client_id)
    conn.execute("DELETE FROM clients WHERE id = ?", (client_id,))
    conn.commit()
    logger.info("client_deleted caller=%s id=%d", caller, client_id)
    return DeleteResult(deleted=1)
