"""
Preview Service - Single Responsibility: local preview resources.

Image candidates get a PreviewHandle backed by a Pillow thumbnail written to
a per-manager temporary directory. Every handle lives in the manager's
registry until released; release_all() and close() sweep whatever is left,
so teardown releases each handle exactly once regardless of exit path.
"""
import logging
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from PIL import Image, UnidentifiedImageError

from ..errors import PreviewReleasedError
from ..models import CandidateId, MediaKind, UploadCandidate

logger = logging.getLogger(__name__)


class PreviewHandle:
    """Ephemeral display reference for one image candidate."""

    def __init__(self, handle_id: str, candidate_id: CandidateId, path: Optional[Path]):
        self._id = handle_id
        self._candidate_id = candidate_id
        self._path = path
        self._released = False

    @property
    def id(self) -> str:
        return self._id

    @property
    def candidate_id(self) -> CandidateId:
        return self._candidate_id

    @property
    def released(self) -> bool:
        return self._released

    @property
    def path(self) -> Optional[Path]:
        """Thumbnail file, or None when no thumbnail could be rendered."""
        if self._released:
            raise PreviewReleasedError(f"preview {self._id} for {self._candidate_id} was released")
        return self._path

    def _mark_released(self) -> Optional[Path]:
        if self._released:
            raise PreviewReleasedError(f"preview {self._id} for {self._candidate_id} released twice")
        self._released = True
        path, self._path = self._path, None
        return path

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"PreviewHandle({self._candidate_id.name!r}, {state})"


class PreviewManager:
    """
    Registry of live preview handles for one session.

    Usage:
        with PreviewManager() as previews:
            handle = previews.acquire(candidate)
            ...
            previews.release(handle)
        # anything still live is released on exit
    """

    def __init__(self, max_size: int = 300, quality: int = 70):
        self._max_size = max_size
        self._quality = quality
        self._live: Dict[CandidateId, PreviewHandle] = {}
        self._temp_dir: Optional[Path] = None
        self._closed = False
        self.acquired_count = 0
        self.released_count = 0

    def __enter__(self) -> "PreviewManager":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def live_count(self) -> int:
        return len(self._live)

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, candidate_id: CandidateId) -> Optional[PreviewHandle]:
        return self._live.get(candidate_id)

    def live_handles(self) -> List[PreviewHandle]:
        return list(self._live.values())

    def acquire(self, candidate: UploadCandidate) -> Optional[PreviewHandle]:
        """Create a preview for an image candidate; None for other kinds."""
        if self._closed:
            raise RuntimeError("PreviewManager is closed")
        if candidate.kind is not MediaKind.IMAGE:
            return None
        existing = self._live.get(candidate.id)
        if existing is not None:
            return existing

        handle_id = uuid.uuid4().hex
        thumb_path = self._render(candidate, handle_id)
        handle = PreviewHandle(handle_id, candidate.id, thumb_path)
        self._live[candidate.id] = handle
        self.acquired_count += 1
        logger.debug("[preview] Acquired %s (thumbnail=%s)", candidate.name, thumb_path)
        return handle

    def release(self, handle: PreviewHandle) -> None:
        """Release a handle. Releasing twice raises PreviewReleasedError."""
        thumb_path = handle._mark_released()
        if self._live.get(handle.candidate_id) is handle:
            del self._live[handle.candidate_id]
        self.released_count += 1
        if thumb_path is not None:
            thumb_path.unlink(missing_ok=True)
        logger.debug("[preview] Released %s", handle.candidate_id.name)

    def release_for(self, candidate_id: CandidateId) -> bool:
        """Release the live handle of a candidate, if it has one."""
        handle = self._live.get(candidate_id)
        if handle is None:
            return False
        self.release(handle)
        return True

    def release_all(self) -> int:
        handles = list(self._live.values())
        for handle in handles:
            self.release(handle)
        return len(handles)

    def close(self) -> None:
        """Release every live handle and remove the temporary directory."""
        if self._closed:
            return
        released = self.release_all()
        if released:
            logger.debug("[preview] Swept %d live preview(s) on close", released)
        if self._temp_dir is not None:
            shutil.rmtree(self._temp_dir, ignore_errors=True)
            self._temp_dir = None
        self._closed = True

    @contextmanager
    def scoped(self, candidate: UploadCandidate) -> Iterator[Optional[PreviewHandle]]:
        """Acquire for the duration of a block; released on every exit path."""
        handle = self.acquire(candidate)
        try:
            yield handle
        finally:
            if handle is not None and not handle.released:
                self.release(handle)

    def _render(self, candidate: UploadCandidate, handle_id: str) -> Optional[Path]:
        source = candidate.path
        if source is None:
            return None
        if self._temp_dir is None:
            self._temp_dir = Path(tempfile.mkdtemp(prefix="preview_"))
        target = self._temp_dir / f"{handle_id}.jpg"
        try:
            with Image.open(source) as img:
                img.thumbnail((self._max_size, self._max_size))
                img.convert("RGB").save(target, "JPEG", quality=self._quality)
        except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as exc:
            logger.warning("[preview] Could not render thumbnail for %s: %s", candidate.name, exc)
            target.unlink(missing_ok=True)
            return None
        return target
