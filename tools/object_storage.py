"""Object storage adapters for item photos."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import httpx
from storage3.utils import StorageException
from supabase import Client

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when an object cannot be stored, resolved or removed."""


class ObjectStorage:
    """Bucket-scoped blob store addressed by ``{owner}/{file}`` paths."""

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    def public_url(self, path: str) -> str:
        raise NotImplementedError

    def remove(self, paths: List[str]) -> None:
        raise NotImplementedError


class SupabaseObjectStorage(ObjectStorage):
    """Supabase Storage bucket accessed through the official client."""

    def __init__(self, client: Client, bucket: str = "wardrobe") -> None:
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        try:
            self._bucket().upload(
                path=path,
                file=data,
                file_options={"content-type": content_type, "cache-control": "3600", "upsert": "false"},
            )
        except (StorageException, httpx.HTTPError) as exc:
            raise StorageError(f"Error uploading image: {exc}") from exc

    def public_url(self, path: str) -> str:
        try:
            url = self._bucket().get_public_url(path)
        except (StorageException, httpx.HTTPError) as exc:
            raise StorageError(f"Error resolving public URL: {exc}") from exc
        if not url:
            raise StorageError("Storage returned no public URL")
        return url

    def remove(self, paths: List[str]) -> None:
        try:
            self._bucket().remove(paths)
        except (StorageException, httpx.HTTPError) as exc:
            raise StorageError(f"Error removing objects: {exc}") from exc


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed bucket used for offline runs and tests."""

    def __init__(self, base_dir: str | Path = "data/storage", base_url: str = "http://localhost:8080/storage") -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.base_dir / path).resolve()
        if self.base_dir.resolve() not in target.parents:
            raise StorageError(f"Refusing path outside the bucket: {path}")
        return target

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        if target.exists():
            raise StorageError(f"Object already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Error uploading image: {exc}") from exc
        logger.debug("Stored object", extra={"path": path, "bytes": len(data), "content_type": content_type})

    def public_url(self, path: str) -> str:
        if not self._resolve(path).exists():
            raise StorageError(f"Object not found: {path}")
        return f"{self.base_url}/{path}"

    def remove(self, paths: List[str]) -> None:
        for path in paths:
            try:
                self._resolve(path).unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(f"Error removing {path}: {exc}") from exc


__all__ = ["LocalObjectStorage", "ObjectStorage", "StorageError", "SupabaseObjectStorage"]
