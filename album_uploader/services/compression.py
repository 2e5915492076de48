"""
Compression Service - Single Responsibility: prepare image payloads.

Images larger than the configured edge are downscaled (aspect ratio kept)
and re-encoded before transfer. Videos and unreadable images pass through
unchanged.
"""
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from PIL import Image, ImageOps

from ..models import MediaKind, UploadCandidate, UploadConfig

logger = logging.getLogger(__name__)

_PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}


@dataclass(frozen=True)
class PreparedPayload:
    """Bytes to transfer plus metadata describing how they were produced."""
    content: bytes
    content_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ImageCompressor:
    """Downscale and re-encode images with Pillow."""

    def __init__(self, config: Optional[UploadConfig] = None):
        self._config = config or UploadConfig()

    def prepare(self, candidate: UploadCandidate) -> PreparedPayload:
        """
        Read the candidate's file and return the payload to send.

        Raises FileNotFoundError when the candidate has no local file.
        """
        if candidate.path is None:
            raise FileNotFoundError(f"{candidate.name} has no local file to transfer")
        raw = Path(candidate.path).read_bytes()
        original_size = len(raw)

        if candidate.kind is not MediaKind.IMAGE:
            return PreparedPayload(
                content=raw,
                content_type=candidate.content_type,
                metadata={"original_size": original_size},
            )

        pil_format = _PIL_FORMATS.get(candidate.content_type.lower())
        try:
            with Image.open(io.BytesIO(raw)) as img:
                width, height = img.size
                if not self._config.compress_images or pil_format is None:
                    return self._passthrough(candidate, raw, width, height)

                img = ImageOps.exif_transpose(img)
                img.thumbnail((self._config.compress_max_dimension,) * 2)
                if pil_format == "JPEG" and img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")
                out = io.BytesIO()
                save_kwargs = {"optimize": True}
                if pil_format in ("JPEG", "WEBP"):
                    save_kwargs["quality"] = self._config.compress_quality
                img.save(out, pil_format, **save_kwargs)
                new_width, new_height = img.size
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            logger.warning("[compress] Sending %s unmodified: %s", candidate.name, exc)
            return self._passthrough(candidate, raw, None, None)

        compressed = out.getvalue()
        if len(compressed) >= original_size:
            # Never send more than the original.
            return self._passthrough(candidate, raw, width, height)

        logger.debug(
            "[compress] %s: %d -> %d bytes (%dx%d)",
            candidate.name, original_size, len(compressed), new_width, new_height,
        )
        return PreparedPayload(
            content=compressed,
            content_type=candidate.content_type,
            width=new_width,
            height=new_height,
            metadata={
                "original_size": original_size,
                "compressed_size": len(compressed),
                "compression_ratio": len(compressed) / original_size if original_size else 1,
            },
        )

    @staticmethod
    def _passthrough(
        candidate: UploadCandidate,
        raw: bytes,
        width: Optional[int],
        height: Optional[int],
    ) -> PreparedPayload:
        return PreparedPayload(
            content=raw,
            content_type=candidate.content_type,
            width=width,
            height=height,
            metadata={
                "original_size": len(raw),
                "compressed_size": len(raw),
                "compression_ratio": 1,
            },
        )
