"""Photo upload with a storage-first, server-second fallback."""

from __future__ import annotations

import logging
import uuid
from typing import Optional
from urllib.parse import unquote, urlparse

from closet_app.logging_config import get_logger, log_event
from models.image_file import ImageFile
from tools.auth_session import AuthSession
from tools.object_storage import ObjectStorage, StorageError
from tools.trusted_api import TrustedApiClient, TrustedApiError

logger = get_logger(__name__)


class UploadError(RuntimeError):
    """Raised when neither storage nor the trusted server accepted a photo."""


def object_path(owner_id: str, extension: str) -> str:
    return f"{owner_id}/{uuid.uuid4()}.{extension}"


def path_from_url(url: str) -> Optional[str]:
    """Return ``{owner}/{file}`` from the last two segments of a public URL."""

    segments = [segment for segment in urlparse(url or "").path.split("/") if segment]
    if len(segments) < 2:
        return None
    return "/".join(unquote(segment) for segment in segments[-2:])


class AssetUploadCoordinator:
    """Turns a local photo into a durable public URL."""

    def __init__(self, storage: ObjectStorage, trusted_api: TrustedApiClient, session: AuthSession) -> None:
        self.storage = storage
        self.trusted_api = trusted_api
        self.session = session

    def upload(self, image: ImageFile) -> str:
        user = self.session.current_user
        if not user:
            raise UploadError("You must be logged in to upload images")

        path = object_path(user.id, image.extension)
        try:
            self.storage.upload(path, image.content, image.content_type)
            url = self.storage.public_url(path)
        except StorageError as exc:
            primary_error = str(exc)
            log_event(
                logger,
                logging.WARNING,
                "upload_primary_failed",
                file_name=image.name,
                size=image.size,
                error=primary_error,
            )
        else:
            log_event(logger, logging.INFO, "upload_completed", path="primary", size=image.size)
            return url

        try:
            url = self.trusted_api.upload_file(image, user.id)
        except TrustedApiError as exc:
            log_event(logger, logging.ERROR, "upload_failed", file_name=image.name, error=exc.message)
            raise UploadError(
                f"Failed to upload image. Storage: {primary_error}. Server: {exc.message}"
            ) from exc
        log_event(logger, logging.INFO, "upload_completed", path="fallback", size=image.size)
        return url

    def remove_asset(self, url: Optional[str]) -> bool:
        """Best-effort removal of a stored photo. Never raises."""

        path = path_from_url(url or "")
        if not path:
            logger.warning("Could not derive storage path from asset URL")
            return False
        try:
            self.storage.remove([path])
        except StorageError as exc:
            log_event(logger, logging.WARNING, "asset_remove_failed", error=str(exc))
            return False
        return True


__all__ = ["AssetUploadCoordinator", "UploadError", "object_path", "path_from_url"]
