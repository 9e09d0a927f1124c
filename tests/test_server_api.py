"""Trusted server endpoint tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from server.api import create_app
from tools.auth_session import static_token_verifier
from tools.object_storage import LocalObjectStorage
from tools.remote_store import RemoteStoreError, SQLiteWardrobeTable
from tools.vision_providers import ProviderError

from conftest import FakeStorage, FakeTable

AUTH = {"Authorization": "Bearer tok-1"}
OTHER_AUTH = {"Authorization": "Bearer tok-2"}


class FakeTagger:
    def __init__(self, error: str | None = None) -> None:
        self.error = error
        self.calls = []

    def analyze(self, image_base64: str, mode: str = "tag"):
        self.calls.append((image_base64, mode))
        if self.error:
            raise ProviderError("gemini", self.error)
        return {"tags": ["Black leather jacket"]}


@pytest.fixture()
def backends(tmp_path: Path):
    table = SQLiteWardrobeTable(tmp_path / "wardrobe.db")
    storage = LocalObjectStorage(tmp_path / "bucket", "http://files.test/wardrobe")
    return table, storage


@pytest.fixture()
def client(backends) -> TestClient:
    table, storage = backends
    verify = static_token_verifier({"tok-1": "user-1", "tok-2": "user-2"})
    return TestClient(create_app(table, storage, verify, tagger=FakeTagger()))


def _add(client: TestClient, **overrides):
    body = {"name": "Blue Jeans", "category": "bottom", "description": "Straight leg"}
    body.update(overrides)
    return client.post("/api/wardrobe/add", json=body, headers=AUTH)


def test_healthz(client: TestClient) -> None:
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_missing_or_invalid_token_is_unauthorized(client: TestClient) -> None:
    assert client.post("/api/wardrobe/add", json={}).json() == {"error": "Unauthorized"}
    response = client.post("/api/wardrobe/add", json={}, headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_add_sets_owner_and_identity(client: TestClient) -> None:
    response = _add(client, user_id="spoofed", item_id="client-id")

    assert response.status_code == 200
    record = response.json()
    assert record["user_id"] == "user-1"
    assert record["item_id"] == "client-id"
    assert record["created_at"]


def test_add_invalid_item_is_bad_request(client: TestClient) -> None:
    response = _add(client, category="spaceship")

    assert response.status_code == 400
    assert "Unsupported category" in response.json()["error"]


class DescriptionlessTable(FakeTable):
    """Rejects any insert that still carries a description."""

    def insert(self, row):
        if "description" in row:
            self.calls.append("insert")
            raise RemoteStoreError("Could not find the 'description' column of 'wardrobe'", "PGRST204")
        return super().insert(row)


def test_add_retries_without_description_column() -> None:
    table = DescriptionlessTable()
    app = create_app(table, FakeStorage(), static_token_verifier({"tok-1": "user-1"}))

    response = TestClient(app).post(
        "/api/wardrobe/add",
        json={"name": "Tee", "category": "top", "description": "Soft"},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert "description" not in response.json()
    assert table.calls == ["insert", "insert"]


def test_add_other_errors_are_server_errors() -> None:
    table = FakeTable()
    table.errors["insert"] = RemoteStoreError("connection reset")
    app = create_app(table, FakeStorage(), static_token_verifier({"tok-1": "user-1"}))

    response = TestClient(app).post("/api/wardrobe/add", json={"name": "Tee", "category": "top"}, headers=AUTH)

    assert response.status_code == 500
    assert response.json() == {"error": "connection reset"}


def test_update_is_owner_scoped(client: TestClient) -> None:
    item_id = _add(client).json()["item_id"]

    updated = client.post("/api/wardrobe/update", json={"item_id": item_id, "updates": {"size": "32"}}, headers=AUTH)
    assert updated.status_code == 200
    assert updated.json()["size"] == "32"

    foreign = client.post(
        "/api/wardrobe/update", json={"item_id": item_id, "updates": {"size": "30"}}, headers=OTHER_AUTH
    )
    assert foreign.status_code == 404


def test_update_rejects_lower_wear_count(client: TestClient, backends) -> None:
    table, _ = backends
    item_id = _add(client, wear_count=4).json()["item_id"]

    lowered = client.post("/api/wardrobe/update", json={"item_id": item_id, "updates": {"wear_count": 1}}, headers=AUTH)
    assert lowered.status_code == 400
    assert lowered.json() == {"error": "Wear count cannot decrease"}
    assert table.get(item_id)["wear_count"] == 4

    raised = client.post("/api/wardrobe/update", json={"item_id": item_id, "updates": {"wear_count": 5}}, headers=AUTH)
    assert raised.json()["wear_count"] == 5


def test_update_requires_valid_body(client: TestClient) -> None:
    response = client.post("/api/wardrobe/update", json={"updates": {}}, headers=AUTH)

    assert response.status_code == 400
    assert "error" in response.json()


def test_delete_checks_existence_and_owner(client: TestClient, backends) -> None:
    table, storage = backends
    storage.upload("user-1/photo.jpg", b"img", "image/jpeg")
    item_id = _add(client, image_path="http://files.test/wardrobe/user-1/photo.jpg").json()["item_id"]

    assert client.delete("/api/wardrobe/delete", params={"id": "missing"}, headers=AUTH).status_code == 404
    assert client.delete("/api/wardrobe/delete", params={"id": item_id}, headers=OTHER_AUTH).status_code == 403

    response = client.delete("/api/wardrobe/delete", params={"id": item_id}, headers=AUTH)
    assert response.json() == {"success": True, "item_id": item_id}
    assert table.get(item_id) is None
    assert not (storage.base_dir / "user-1" / "photo.jpg").exists()


def test_upload_stores_under_owner(client: TestClient, backends) -> None:
    _, storage = backends
    response = client.post(
        "/api/wardrobe/upload",
        files={"file": ("jacket.png", b"png-bytes", "image/png")},
        data={"userId": "user-1"},
        headers=AUTH,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["path"].startswith("user-1/") and body["path"].endswith(".png")
    assert body["publicUrl"] == f"http://files.test/wardrobe/{body['path']}"
    assert (storage.base_dir / body["path"]).read_bytes() == b"png-bytes"


def test_upload_for_another_user_is_forbidden(client: TestClient) -> None:
    response = client.post(
        "/api/wardrobe/upload",
        files={"file": ("jacket.png", b"png-bytes", "image/png")},
        data={"userId": "user-2"},
        headers=AUTH,
    )

    assert response.status_code == 403


def test_upload_rejects_non_images(client: TestClient) -> None:
    response = client.post(
        "/api/wardrobe/upload",
        files={"file": ("notes.txt", b"text", "text/plain")},
        data={"userId": "user-1"},
        headers=AUTH,
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Please upload an image file"}


def test_clothes_finder(client: TestClient) -> None:
    missing = client.post("/api/clothes-finder", json={"mode": "tag"})
    assert missing.status_code == 400
    assert missing.json() == {"error": "No image data received"}

    response = client.post("/api/clothes-finder", json={"imageBase64": "data:image/png;base64,YWJj"})
    assert response.json() == {"tags": ["Black leather jacket"]}


def test_clothes_finder_failures(backends) -> None:
    table, storage = backends
    verify = static_token_verifier({})
    failing = TestClient(create_app(table, storage, verify, tagger=FakeTagger(error="AI quota exceeded")))
    unconfigured = TestClient(create_app(table, storage, verify))

    response = failing.post("/api/clothes-finder", json={"imageBase64": "YWJj"})
    assert response.status_code == 500
    assert response.json() == {"error": "AI quota exceeded"}
    assert unconfigured.post("/api/clothes-finder", json={"imageBase64": "YWJj"}).status_code == 503
