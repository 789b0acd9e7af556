from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient

from vanish import create_app
from vanish.db import dispose_db
from vanish.domain.models import PasteRecord
from vanish.repositories.paste_repository import StorageUnavailableError
from vanish.store import get_paste_store


@pytest.fixture
def app(tmp_path) -> Generator[Flask, None, None]:
    app = create_app(
        "testing",
        {
            "SQLALCHEMY_DATABASE_URI": f"sqlite+pysqlite:///{tmp_path / 'api.db'}",
            "PUBLIC_BASE_URL": "https://vanish.test",
        },
    )
    try:
        yield app
    finally:
        dispose_db()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


def _create(client: FlaskClient, **payload) -> dict:
    response = client.post("/api/pastes", json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


# ---------------------------------------------------------------------------
# POST /api/pastes
# ---------------------------------------------------------------------------


def test_create_paste_returns_share_link(client: FlaskClient) -> None:
    response = client.post(
        "/api/pastes",
        json={"content": "hello", "title": "greeting", "expiresIn": 24, "maxViews": 3},
    )

    assert response.status_code == 201
    body = response.get_json()
    assert body["success"] is True
    data = body["data"]
    assert set(data) == {"id", "title", "url", "createdAt", "expiresAt"}
    assert data["title"] == "greeting"
    assert data["url"] == f"https://vanish.test/?id={data['id']}"
    assert data["expiresAt"] is not None


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"content": ""},
        {"content": 42},
        {"content": "x", "title": "t" * 256},
        {"content": "x", "expiresIn": "5"},
        {"content": "x", "expiresIn": 8761},
        {"content": "x", "maxViews": 0},
        {"content": "x", "maxViews": 1_000_001},
    ],
)
def test_create_paste_rejects_invalid_input(client: FlaskClient, payload: dict) -> None:
    response = client.post("/api/pastes", json=payload)

    assert response.status_code == 400
    body = response.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["message"]


def test_create_paste_with_non_json_body_is_validation_error(client: FlaskClient) -> None:
    response = client.post("/api/pastes", data="content=hello")

    assert response.status_code == 400
    assert response.get_json()["error"]["code"] == "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# GET /api/pastes/<id>
# ---------------------------------------------------------------------------


def test_single_view_paste_lifecycle(client: FlaskClient) -> None:
    paste_id = _create(client, content="hello", maxViews=1)["id"]

    first = client.get(f"/api/pastes/{paste_id}")
    assert first.status_code == 200
    data = first.get_json()["data"]
    assert data["content"] == "hello"
    assert data["viewCount"] == 1
    assert data["maxViews"] == 1
    assert data["isLastView"] is True
    assert data["title"] == "Untitled"

    second = client.get(f"/api/pastes/{paste_id}")
    assert second.status_code == 404
    assert second.get_json()["error"]["code"] == "PASTE_NOT_FOUND"


def test_unlimited_paste_counts_views(client: FlaskClient) -> None:
    paste_id = _create(client, content="again and again")["id"]

    counts = []
    for _ in range(5):
        data = client.get(f"/api/pastes/{paste_id}").get_json()["data"]
        counts.append(data["viewCount"])
        assert data["isLastView"] is False
        assert data["maxViews"] is None
        assert data["expiresAt"] is None

    assert counts == [1, 2, 3, 4, 5]
    assert client.get(f"/api/pastes/{paste_id}").status_code == 200


def test_time_expired_paste_is_gone_then_not_found(app: Flask, client: FlaskClient) -> None:
    now = datetime.now(timezone.utc)
    with app.app_context():
        get_paste_store().create(
            PasteRecord(
                id="stale00000",
                title="Untitled",
                content="too late",
                created_at=now - timedelta(hours=2),
                expires_at=now - timedelta(hours=1),
            )
        )

    expired = client.get("/api/pastes/stale00000")
    assert expired.status_code == 410
    assert expired.get_json()["error"]["code"] == "PASTE_EXPIRED"

    assert client.get("/api/pastes/stale00000").status_code == 404


@pytest.mark.parametrize("paste_id", ["missing000", "short", "bad*chars!", "x" * 11])
def test_unknown_or_malformed_ids_are_not_found(client: FlaskClient, paste_id: str) -> None:
    response = client.get(f"/api/pastes/{paste_id}")

    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "PASTE_NOT_FOUND"


def test_storage_failure_is_internal_error(app: Flask, client: FlaskClient, monkeypatch) -> None:
    with app.app_context():
        store = get_paste_store()

    def _down(_paste_id: str):
        raise StorageUnavailableError("statement timeout")

    monkeypatch.setattr(store, "get", _down)

    response = client.get("/api/pastes/abcdefghij")
    assert response.status_code == 500
    error = response.get_json()["error"]
    assert error["code"] == "INTERNAL_ERROR"
    assert "timeout" not in error["message"]


# ---------------------------------------------------------------------------
# Health / cross-cutting
# ---------------------------------------------------------------------------


def test_health_reports_connected_database(client: FlaskClient) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["timestamp"]


def test_health_reports_unreachable_database(app: Flask, client: FlaskClient, monkeypatch) -> None:
    with app.app_context():
        store = get_paste_store()

    def _down() -> bool:
        raise StorageUnavailableError("connection refused")

    monkeypatch.setattr(store, "ping", _down)

    response = client.get("/api/health")
    assert response.status_code == 503
    assert response.get_json() == {
        "success": False,
        "status": "unhealthy",
        "error": "Database connection failed",
    }


def test_correlation_id_is_propagated(client: FlaskClient) -> None:
    response = client.get("/api/health", headers={"X-Correlation-ID": "req-123"})
    assert response.headers["X-Correlation-ID"] == "req-123"

    generated = client.get("/api/health")
    assert generated.headers["X-Correlation-ID"]


def test_memory_backend_serves_the_same_api() -> None:
    app = create_app("testing", {"STORE_BACKEND": "memory", "PUBLIC_BASE_URL": "https://vanish.test"})
    client = app.test_client()

    paste_id = _create(client, content="in memory", maxViews=2)["id"]

    assert client.get(f"/api/pastes/{paste_id}").get_json()["data"]["isLastView"] is False
    assert client.get(f"/api/pastes/{paste_id}").get_json()["data"]["isLastView"] is True
    assert client.get(f"/api/pastes/{paste_id}").status_code == 404
