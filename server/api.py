"""FastAPI trusted server backing the wardrobe fallback endpoints."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from closet_app.logging_config import correlation_context, get_logger, log_event
from logic.upload_coordinator import object_path, path_from_url
from models.image_file import MAX_IMAGE_BYTES
from models.wardrobe_item import from_record, sanitize_payload, validate_updates
from tools.auth_session import TokenVerifier
from tools.gemini_tagger import GeminiImageTagger
from tools.object_storage import ObjectStorage, StorageError
from tools.remote_store import RemoteStoreError, WardrobeTable
from tools.vision_providers import ProviderError

logger = get_logger(__name__)


class ApiError(Exception):
    """Error rendered as ``{"error": message}`` with the given status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class UpdateRequest(BaseModel):
    item_id: str = Field(..., min_length=1)
    updates: Dict[str, Any] = Field(default_factory=dict)


class ClothesFinderRequest(BaseModel):
    imageBase64: Optional[str] = None
    mode: str = "tag"


def _is_description_column_error(message: str) -> bool:
    lowered = message.lower()
    return "description" in lowered and "column" in lowered


def create_app(
    table: WardrobeTable,
    storage: ObjectStorage,
    verify_token: TokenVerifier,
    tagger: GeminiImageTagger | None = None,
    max_upload_bytes: int = MAX_IMAGE_BYTES,
    environment: str | None = None,
) -> FastAPI:
    """Build the trusted server around an elevated-trust table and bucket."""

    app = FastAPI(title="Closet API", version="0.1.0")

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request"})

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        with correlation_context(request.headers.get("x-correlation-id")) as correlation_id:
            response = await call_next(request)
            response.headers["x-correlation-id"] = correlation_id
            return response

    def require_user(request: Request) -> str:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        user_id = verify_token(token.strip()) if scheme.lower() == "bearer" and token.strip() else None
        if not user_id:
            raise ApiError(401, "Unauthorized")
        return user_id

    @app.get("/healthz")
    def healthcheck() -> dict:
        """Lightweight readiness probe."""

        return {"status": "ok", "service": "closet-api", "environment": environment or "local"}

    @app.post("/api/wardrobe/add")
    def add_item(payload: Dict[str, Any] = Body(...), user_id: str = Depends(require_user)) -> dict:
        """Insert an item for the caller, bypassing row-level security."""

        row = sanitize_payload(payload, allow_identity=False)
        row["user_id"] = user_id
        row["item_id"] = payload.get("item_id") or str(uuid.uuid4())
        row["created_at"] = datetime.now(timezone.utc).isoformat()
        try:
            row = from_record(row).to_record()
        except ValueError as exc:
            raise ApiError(400, str(exc)) from exc

        try:
            rows = table.insert(row)
        except RemoteStoreError as exc:
            if not _is_description_column_error(exc.message):
                log_event(logger, logging.ERROR, "server_add_failed", error=exc.message)
                raise ApiError(500, exc.message) from exc
            log_event(logger, logging.WARNING, "server_add_retry_without_description", error=exc.message)
            row.pop("description", None)
            try:
                rows = table.insert(row)
            except RemoteStoreError as retry_exc:
                raise ApiError(500, retry_exc.message) from retry_exc
        if not rows:
            raise ApiError(500, "Insert returned no rows")
        log_event(logger, logging.INFO, "server_item_added", item_id=row["item_id"])
        return rows[0]

    @app.post("/api/wardrobe/update")
    def update_item(request: UpdateRequest, user_id: str = Depends(require_user)) -> dict:
        try:
            updates = validate_updates(request.updates)
        except ValueError as exc:
            raise ApiError(400, str(exc)) from exc
        if not updates:
            raise ApiError(400, "No valid fields to update")
        try:
            if "wear_count" in updates:
                existing = table.get(request.item_id)
                if existing is None or existing.get("user_id") != user_id:
                    raise ApiError(404, "Item not found")
                if updates["wear_count"] < int(existing.get("wear_count") or 0):
                    raise ApiError(400, "Wear count cannot decrease")
            rows = table.update(request.item_id, user_id, updates)
        except RemoteStoreError as exc:
            raise ApiError(500, exc.message) from exc
        if not rows:
            raise ApiError(404, "Item not found")
        return rows[0]

    @app.delete("/api/wardrobe/delete")
    def delete_item(item_id: str = Query(..., alias="id"), user_id: str = Depends(require_user)) -> dict:
        try:
            existing = table.get(item_id)
            if existing is None:
                raise ApiError(404, "Item not found")
            if existing.get("user_id") != user_id:
                raise ApiError(403, "You do not have permission to delete this item")
            table.delete(item_id, user_id)
        except RemoteStoreError as exc:
            raise ApiError(500, exc.message) from exc

        asset_path = path_from_url(existing.get("image_path") or "")
        if asset_path:
            try:
                storage.remove([asset_path])
            except StorageError as exc:
                log_event(logger, logging.WARNING, "server_asset_remove_failed", error=str(exc))
        return {"success": True, "item_id": item_id}

    @app.post("/api/wardrobe/upload")
    def upload_file(
        file: UploadFile = File(...),
        userId: str = Form(...),
        user_id: str = Depends(require_user),
    ) -> dict:
        if userId != user_id:
            raise ApiError(403, "Cannot upload files for another user")
        content_type = file.content_type or ""
        if not content_type.startswith("image/"):
            raise ApiError(400, "Please upload an image file")
        data = file.file.read()
        if not data:
            raise ApiError(400, "Image file is empty")
        if len(data) > max_upload_bytes:
            raise ApiError(400, f"Image size should be less than {max_upload_bytes / 1024 / 1024:g}MB")

        extension = Path(file.filename or "").suffix.lstrip(".").lower() or "jpg"
        path = object_path(userId, extension)
        try:
            storage.upload(path, data, content_type)
            public_url = storage.public_url(path)
        except StorageError as exc:
            log_event(logger, logging.ERROR, "server_upload_failed", error=str(exc))
            raise ApiError(500, str(exc)) from exc
        return {"publicUrl": public_url, "path": path}

    @app.post("/api/clothes-finder")
    def clothes_finder(request: ClothesFinderRequest) -> dict:
        if not request.imageBase64:
            raise ApiError(400, "No image data received")
        if tagger is None:
            raise ApiError(503, "Image analysis is not configured")
        try:
            return tagger.analyze(request.imageBase64, request.mode)
        except ValueError as exc:
            raise ApiError(400, str(exc)) from exc
        except ProviderError as exc:
            log_event(logger, logging.ERROR, "clothes_finder_failed", error=exc.message)
            raise ApiError(500, exc.message) from exc

    return app


def get_app() -> FastAPI:
    """Build the configured FastAPI instance for ASGI servers."""

    from closet_app.app import build_server_app

    return build_server_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:get_app", factory=True, host="0.0.0.0", port=int("8080"), reload=False)
