"""Upload session state."""
import uuid
from typing import Dict, List, Optional

from ..errors import SessionAbort, SessionBusy
from ..models import (
    CandidateId,
    CommittedUnit,
    ProgressState,
    SessionSnapshot,
    SessionStats,
    UploadCandidate,
)
from ..services.preview import PreviewManager
from ..utils.events import EventEmitter
from .progress import ProgressTracker


class UploadSession:
    """
    Everything one upload session owns: the candidate set (in intake
    order), its progress records, its preview handles, the local view of
    items committed to the destination collection, and the busy/cancel
    flags. Nothing about a session lives outside this object.

    Sessions are created and driven by UploadOrchestrator.
    """

    def __init__(
        self,
        collection_id: Optional[str],
        previews: Optional[PreviewManager] = None,
        events: Optional[EventEmitter] = None,
    ):
        self.id = uuid.uuid4().hex[:12]
        self._collection_id = collection_id or None
        self.events = events or EventEmitter()
        self.previews = previews or PreviewManager()
        self.candidates: Dict[CandidateId, UploadCandidate] = {}
        self.tracker = ProgressTracker(self.candidates, self.events)
        self.collection_items: List[CommittedUnit] = []
        self._busy = False
        self._cancel_requested = False
        self._closed = False

    def __repr__(self) -> str:
        return (
            f"UploadSession(id={self.id!r}, collection={self._collection_id!r}, "
            f"candidates={len(self.candidates)}, busy={self._busy})"
        )

    # State properties
    @property
    def collection_id(self) -> Optional[str]:
        return self._collection_id

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_empty(self) -> bool:
        return not self.candidates and not self.tracker.records()

    def stats(self) -> SessionStats:
        return self.tracker.stats()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            collection_id=self._collection_id,
            candidates=tuple(self.candidates.values()),
            progress=self.tracker.views(),
            stats=self.stats(),
            is_busy=self._busy,
        )

    def transferable(self) -> List[UploadCandidate]:
        """Valid candidates, in intake order, not yet committed."""
        result = []
        for candidate in self.candidates.values():
            if not candidate.is_valid:
                continue
            record = self.tracker.get(candidate.id)
            if record is not None and record.state is ProgressState.COMPLETED:
                continue
            result.append(candidate)
        return result

    # Guards
    def ensure_open(self) -> None:
        if self._closed:
            raise SessionAbort(f"session {self.id} is closed")

    def ensure_idle(self, operation: str) -> None:
        self.ensure_open()
        if self._busy:
            raise SessionBusy(operation)

    # Run lifecycle, driven by the orchestrator
    def begin_run(self) -> None:
        self.ensure_idle("commit")
        self._busy = True
        self._cancel_requested = False

    def end_run(self) -> None:
        self._busy = False
        self._cancel_requested = False
        if self._closed:
            self._discard_state()

    def request_cancel(self) -> None:
        self._cancel_requested = True

    def close(self) -> None:
        """
        Release every preview and discard all state. Idempotent.

        Closing during a run stops it after the in-flight candidate; state
        is discarded when the run ends.
        """
        if self._closed:
            return
        self._cancel_requested = True
        self.previews.close()
        self._closed = True
        if not self._busy:
            self._discard_state()

    def _discard_state(self) -> None:
        self.candidates.clear()
        self.tracker.clear()
