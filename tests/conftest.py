"""
Pytest fixtures for TaskDesk tests.

Provides a fresh SQLite database per test, a FastAPI TestClient wired to it,
principal header helpers, and a seeded fixture with one admin, one team
member and two clients.
"""

from pathlib import Path

import pytest

ADMIN = "admin-aaaaa-cai"
MEMBER = "member-bbbbb-cai"
OUTSIDER = "outsider-ccccc-cai"

# 2026-03-31T00:00:00Z
MAR_31_2026 = 1_774_915_200_000_000_000
# 2026-01-15T00:00:00Z
JAN_15_2026 = 1_768_435_200_000_000_000
DAY_NS = 86_400_000_000_000


def as_user(principal: str) -> dict[str, str]:
    """Request headers identifying *principal* as the caller."""
    return {"X-Principal": principal}


@pytest.fixture()
def db_path(tmp_path) -> Path:
    return tmp_path / "taskdesk.sqlite"


@pytest.fixture()
def client(db_path):
    """TestClient on an empty database with rate limits reset."""
    pytest.importorskip("fastapi")
    pytest.importorskip("httpx")
    from fastapi.testclient import TestClient

    from api.app import create_app, reset_rate_limits

    reset_rate_limits()
    app = create_app(db_path=db_path)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture()
def seeded(client):
    """Admin profile, one team member and two clients.

    Returns a dict with the client ids under ``acme`` and ``globex``.
    """
    resp = client.put("/api/v1/profile", json={"name": "Asha Admin", "role": "Partner"},
                      headers=as_user(ADMIN))
    assert resp.status_code == 200
    client.put("/api/v1/profile", json={"name": "Priya Sharma"}, headers=as_user(MEMBER))
    for principal, name in ((ADMIN, "Asha Admin"), (MEMBER, "Priya Sharma")):
        resp = client.post("/api/v1/team-members", json={"principal": principal, "name": name},
                           headers=as_user(ADMIN))
        assert resp.status_code == 201
    resp = client.post(
        "/api/v1/clients",
        json=[{"name": "Acme Ltd", "taskCategory": "GST"}, {"name": "Globex Corp"}],
        headers=as_user(ADMIN),
    )
    assert resp.status_code == 201
    ids = {c["name"]: c["id"] for c in resp.json()}
    return {"acme": ids["Acme Ltd"], "globex": ids["Globex Corp"]}


def make_task(client, client_id: int, principal: str = MEMBER, **fields) -> dict:
    """Create a task through the API and return it."""
    body = {"clientId": client_id, "title": "File GST", "taskType": "GST", **fields}
    resp = client.post("/api/v1/tasks", json=body, headers=as_user(principal))
    assert resp.status_code == 201, resp.text
    return resp.json()
