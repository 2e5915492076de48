"""File validation against the session's content type and size policy."""
from __future__ import annotations

from typing import Optional

from album_uploader.models import (
    MB,
    MediaFile,
    MediaKind,
    UploadConfig,
    ValidationResult,
)

UNSUPPORTED_TYPE = "unsupported_type"
IMAGE_TOO_LARGE = "image_too_large"
VIDEO_TOO_LARGE = "video_too_large"

_SIZE_CODES = {
    MediaKind.IMAGE: IMAGE_TOO_LARGE,
    MediaKind.VIDEO: VIDEO_TOO_LARGE,
}


def _format_limit(limit: int) -> str:
    if limit % MB == 0:
        return f"{limit // MB} MB"
    return f"{limit / MB:.1f} MB"


def validate(file: MediaFile, config: Optional[UploadConfig] = None) -> ValidationResult:
    """
    Classify a file as acceptable or rejected.

    Size is checked before type membership: an oversized image of an
    unsupported subtype reports the size violation. Never raises.
    """
    config = config or UploadConfig()
    kind = MediaKind.from_content_type(file.content_type)
    if kind is None:
        return ValidationResult.reject(
            UNSUPPORTED_TYPE,
            f"Unsupported file type: {file.content_type or 'unknown'}",
        )

    limit = config.max_bytes_for(kind)
    if file.size > limit:
        return ValidationResult.reject(
            _SIZE_CODES[kind],
            f"{kind.value.capitalize()} files must be {_format_limit(limit)} or smaller",
        )

    content_type = file.content_type.strip().lower()
    if content_type not in config.accepted_types_for(kind):
        return ValidationResult.reject(
            UNSUPPORTED_TYPE,
            f"Unsupported {kind.value} format: {content_type}",
        )

    return ValidationResult.ok()


class ValidateFileUseCase:
    """Validate intake files against a fixed configuration."""

    def __init__(self, config: Optional[UploadConfig] = None):
        self._config = config or UploadConfig()

    def execute(self, file: MediaFile) -> ValidationResult:
        return validate(file, self._config)

    def revalidate(self, file: MediaFile) -> ValidationResult:
        """
        Re-check a file at transfer time.

        Files backed by a local path are re-stat'ed so a file that was
        deleted or grew past its limit since intake is caught.
        """
        if file.path is None:
            return validate(file, self._config)
        try:
            current_size = file.path.stat().st_size
        except OSError as exc:
            return ValidationResult.reject(
                "file_unavailable", f"File is no longer available: {exc.strerror or exc}"
            )
        if current_size != file.size:
            return ValidationResult.reject(
                "file_changed",
                f"File changed since it was added ({file.size} -> {current_size} bytes)",
            )
        return validate(file, self._config)
