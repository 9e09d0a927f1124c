"""Shared fakes for pipeline tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from memory.item_collection import ItemCollection
from models.image_file import ImageFile
from tools.auth_session import StaticAuthSession
from tools.object_storage import ObjectStorage, StorageError
from tools.remote_store import RemoteStoreError, WardrobeTable
from tools.trusted_api import TrustedApiError


class FakeTable(WardrobeTable):
    """In-memory table that can be told to fail or touch nothing per operation."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {row["item_id"]: dict(row) for row in rows or []}
        self.errors: Dict[str, RemoteStoreError] = {}
        self.empty: set[str] = set()
        self.calls: List[str] = []

    def _check(self, operation: str) -> bool:
        self.calls.append(operation)
        if operation in self.errors:
            raise self.errors[operation]
        return operation not in self.empty

    def insert(self, row: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not self._check("insert"):
            return []
        self.rows[row["item_id"]] = dict(row)
        return [dict(row)]

    def update(self, item_id: str, user_id: str, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not self._check("update"):
            return []
        row = self.rows.get(item_id)
        if not row or row.get("user_id") != user_id:
            return []
        row.update(values)
        return [dict(row)]

    def delete(self, item_id: str, user_id: str) -> List[Dict[str, Any]]:
        if not self._check("delete"):
            return []
        row = self.rows.get(item_id)
        if not row or row.get("user_id") != user_id:
            return []
        return [self.rows.pop(item_id)]

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        self.calls.append("get")
        row = self.rows.get(item_id)
        return dict(row) if row else None

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return [dict(row) for row in self.rows.values() if row.get("user_id") == user_id]


class FakeStorage(ObjectStorage):
    def __init__(self, fail_upload: bool = False, fail_remove: bool = False) -> None:
        self.objects: Dict[str, bytes] = {}
        self.removed: List[str] = []
        self.upload_calls = 0
        self.fail_upload = fail_upload
        self.fail_remove = fail_remove

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        self.upload_calls += 1
        if self.fail_upload:
            raise StorageError("new row violates row-level security policy")
        self.objects[path] = data

    def public_url(self, path: str) -> str:
        return f"https://cdn.test/storage/v1/object/public/wardrobe/{path}"

    def remove(self, paths: List[str]) -> None:
        if self.fail_remove:
            raise StorageError("remove failed")
        self.removed.extend(paths)


class FakeTrustedApi:
    """Stands in for :class:`tools.trusted_api.TrustedApiClient`."""

    def __init__(self, error: Optional[TrustedApiError] = None) -> None:
        self.error = error
        self.calls: List[tuple] = []

    def _maybe_fail(self) -> None:
        if self.error:
            raise self.error

    def add_item(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("add", payload))
        self._maybe_fail()
        return {**payload, "via": "server"}

    def update_item(self, item_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("update", item_id, updates))
        self._maybe_fail()
        return {"item_id": item_id, **updates, "via": "server"}

    def delete_item(self, item_id: str) -> Dict[str, Any]:
        self.calls.append(("delete", item_id))
        self._maybe_fail()
        return {"success": True, "item_id": item_id}

    def upload_file(self, image: ImageFile, user_id: str) -> str:
        self.calls.append(("upload", image.name, user_id))
        self._maybe_fail()
        return f"https://api.test/storage/{user_id}/server-{image.name}"


@pytest.fixture()
def session() -> StaticAuthSession:
    return StaticAuthSession("user-123")


@pytest.fixture()
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture()
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def trusted_api() -> FakeTrustedApi:
    return FakeTrustedApi()


@pytest.fixture()
def collection() -> ItemCollection:
    return ItemCollection()


@pytest.fixture()
def jacket_photo() -> ImageFile:
    return ImageFile(
        name="black-leather-jacket.jpg",
        content=b"\xff\xd8\xff\xe0fake-jpeg",
        content_type="image/jpeg",
        last_modified=1_700_000_000.0,
    )
