"""Image file value object handed to the upload and analysis pipeline."""

from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

MAX_IMAGE_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class ImageFile:
    """A user supplied photo: file name, raw bytes and metadata."""

    name: str
    content: bytes = field(repr=False)
    content_type: str = "image/jpeg"
    last_modified: float = 0.0

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        suffix = Path(self.name).suffix.lstrip(".").lower()
        if suffix:
            return suffix
        guessed = mimetypes.guess_extension(self.content_type) or ".jpg"
        return guessed.lstrip(".")

    @property
    def fingerprint(self) -> str:
        """Fast identity proxy used as the analysis cache key.

        Not a content hash: two different files sharing name, size and
        modification time collide.
        """

        return f"{self.name}-{self.size}-{int(self.last_modified * 1000)}"

    def to_base64(self) -> str:
        return base64.b64encode(self.content).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.content_type};base64,{self.to_base64()}"

    @classmethod
    def from_path(cls, path: str | Path) -> "ImageFile":
        file_path = Path(path)
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        return cls(
            name=file_path.name,
            content=file_path.read_bytes(),
            content_type=content_type,
            last_modified=file_path.stat().st_mtime,
        )


def validate_image_file(image: ImageFile, max_bytes: int = MAX_IMAGE_BYTES) -> ImageFile:
    """Reject non-image or oversized files before they reach the pipeline."""

    if not image.content_type.startswith("image/"):
        raise ValueError("Please upload an image file")
    if image.size == 0:
        raise ValueError("Image file is empty")
    if image.size > max_bytes:
        limit_mb = max_bytes / 1024 / 1024
        raise ValueError(f"Image size should be less than {limit_mb:g}MB")
    return image


__all__ = ["ImageFile", "MAX_IMAGE_BYTES", "validate_image_file"]
