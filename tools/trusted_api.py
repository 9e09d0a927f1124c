"""HTTP client for the trusted server's wardrobe endpoints.

These endpoints are the fallback path: they perform the same writes as the
hosted store but with elevated trust on the server side.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from pydantic import BaseModel, ValidationError

from models.image_file import ImageFile
from tools.auth_session import AuthSession
from tools.observability import instrument_tool

logger = logging.getLogger(__name__)


class TrustedApiError(RuntimeError):
    """Raised when a trusted endpoint is unreachable or answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class _ErrorBody(BaseModel):
    error: str


class _UploadResponse(BaseModel):
    publicUrl: str
    path: Optional[str] = None


class TrustedApiClient:
    """Calls ``/api/wardrobe/*`` with the signed-in user's bearer token."""

    def __init__(
        self,
        base_url: str,
        session: AuthSession | None = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout_seconds = timeout_seconds
        self._send = instrument_tool("trusted_api_request")(self._request)

    def _headers(self) -> Dict[str, str]:
        user = self.session.current_user if self.session else None
        if user and user.access_token:
            return {"Authorization": f"Bearer {user.access_token}"}
        return {}

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        try:
            response = requests.request(
                method, url, headers=self._headers(), timeout=self.timeout_seconds, **kwargs
            )
        except requests.RequestException as exc:
            logger.warning("Trusted API unreachable", extra={"endpoint": endpoint, "error": str(exc)})
            raise TrustedApiError(f"Could not reach {endpoint}: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not 200 <= response.status_code < 300:
            try:
                message = _ErrorBody.model_validate(body).error
            except ValidationError:
                message = f"{endpoint} failed with status {response.status_code}"
            raise TrustedApiError(message, status_code=response.status_code)
        if not isinstance(body, dict):
            raise TrustedApiError(f"{endpoint} returned an unexpected payload", response.status_code)
        return body

    def add_item(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._send(method="POST", endpoint="/api/wardrobe/add", json=payload)

    def update_item(self, item_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return self._send(
            method="POST",
            endpoint="/api/wardrobe/update",
            json={"item_id": item_id, "updates": updates},
        )

    def delete_item(self, item_id: str) -> Dict[str, Any]:
        return self._send(method="DELETE", endpoint="/api/wardrobe/delete", params={"id": item_id})

    def upload_file(self, image: ImageFile, user_id: str) -> str:
        """Upload through the server and return the stored object's public URL."""

        body = self._send(
            method="POST",
            endpoint="/api/wardrobe/upload",
            files={"file": (image.name, image.content, image.content_type)},
            data={"userId": user_id},
        )
        try:
            return _UploadResponse.model_validate(body).publicUrl
        except ValidationError as exc:
            raise TrustedApiError("Upload response did not include a public URL") from exc


__all__ = ["TrustedApiClient", "TrustedApiError"]
