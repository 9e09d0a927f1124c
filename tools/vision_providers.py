"""Image analysis provider abstractions and implementations.

Every provider turns its endpoint's response into the same normalized shape,
``{"tags": [...], "labels": [...]}``, or raises :class:`ProviderError`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ValidationError

from models.image_file import ImageFile
from tools.auth_session import AuthSession
from tools.observability import instrument_tool

LOGGER = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Raised when a provider cannot produce an analysis."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class _AnalyzeRequest(BaseModel):
    imageBase64: str
    mode: str = "tag"


class _ClothesFinderResponse(BaseModel):
    tags: List[str] = []
    error: Optional[str] = None


class _DetectedClothing(BaseModel):
    name: Optional[str] = None
    confidence: Optional[float] = None


class _DominantColor(BaseModel):
    hex: Optional[str] = None
    score: Optional[float] = None


class _VisionResponse(BaseModel):
    detectedClothing: List[_DetectedClothing] = []
    dominantColors: List[_DominantColor] = []
    error: Optional[str] = None


class TagProvider(ABC):
    """Abstract analysis provider interface."""

    name: str = "provider"

    @abstractmethod
    def analyze(self, image: ImageFile) -> Dict[str, Any]:
        """Return ``{"tags": [...], "labels": [...]}`` for the image."""


class _HttpTagProvider(TagProvider):
    endpoint = ""

    def __init__(
        self,
        base_url: str,
        session: AuthSession | None = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout_seconds = timeout_seconds
        self._call = instrument_tool(f"provider.{self.name}", input_model=_AnalyzeRequest)(self._post)

    def _post(self, imageBase64: str, mode: str = "tag") -> Dict[str, Any]:
        headers = {}
        user = self.session.current_user if self.session else None
        if user and user.access_token:
            headers["Authorization"] = f"Bearer {user.access_token}"
        try:
            response = requests.post(
                f"{self.base_url}{self.endpoint}",
                json={"imageBase64": imageBase64, "mode": mode},
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise ProviderError(self.name, f"request failed: {exc}") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(self.name, f"non-JSON response ({response.status_code})") from exc
        if not 200 <= response.status_code < 300:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise ProviderError(self.name, message or f"status {response.status_code}")
        if not isinstance(payload, dict):
            raise ProviderError(self.name, "unexpected payload")
        return payload


class ClothesFinderProvider(_HttpTagProvider):
    """Generative tagger behind ``POST /api/clothes-finder`` in tag mode."""

    name = "clothes_finder"
    endpoint = "/api/clothes-finder"

    def analyze(self, image: ImageFile) -> Dict[str, Any]:
        payload = self._call(imageBase64=image.to_data_url(), mode="tag")
        try:
            parsed = _ClothesFinderResponse.model_validate(payload)
        except ValidationError as exc:
            raise ProviderError(self.name, "response schema validation failed") from exc
        if parsed.error:
            raise ProviderError(self.name, parsed.error)
        tags = [tag.strip() for tag in parsed.tags if tag and tag.strip()]
        return {"tags": tags, "labels": []}


class VisionLabelProvider(_HttpTagProvider):
    """Object-detection labeler behind ``POST /api/vision/analyze``."""

    name = "vision"
    endpoint = "/api/vision/analyze"

    def analyze(self, image: ImageFile) -> Dict[str, Any]:
        payload = self._call(imageBase64=image.to_data_url())
        try:
            parsed = _VisionResponse.model_validate(payload)
        except ValidationError as exc:
            raise ProviderError(self.name, "response schema validation failed") from exc
        if parsed.error:
            raise ProviderError(self.name, parsed.error)
        labels = [item.name.lower() for item in parsed.detectedClothing if item.name]
        colors = [color.hex for color in parsed.dominantColors if color.hex]
        return {"tags": [], "labels": labels, "colors": colors}


class MockTagProvider(TagProvider):
    """Offline deterministic provider for tests and local runs."""

    def __init__(
        self,
        name: str = "mock",
        tags: Optional[List[str]] = None,
        labels: Optional[List[str]] = None,
        error: Optional[str] = None,
    ) -> None:
        self.name = name
        self.tags = list(tags or [])
        self.labels = list(labels or [])
        self.error = error
        self.calls = 0

    def analyze(self, image: ImageFile) -> Dict[str, Any]:
        self.calls += 1
        LOGGER.info("Returning mock analysis", extra={"provider": self.name, "file_name": image.name})
        if self.error:
            raise ProviderError(self.name, self.error)
        return {"tags": list(self.tags), "labels": list(self.labels)}


__all__ = [
    "ClothesFinderProvider",
    "MockTagProvider",
    "ProviderError",
    "TagProvider",
    "VisionLabelProvider",
]
