"""Per-candidate progress state machine and derived session statistics."""
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import InvalidTransition
from ..models import (
    CandidateId,
    ProgressRecord,
    ProgressState,
    ProgressView,
    SessionStats,
    UploadCandidate,
)
from ..utils.events import EventEmitter

logger = logging.getLogger(__name__)

# Progress reported while transferring stays below this; only completion emits 100.
MAX_IN_FLIGHT_PROGRESS = 99


def compute_stats(
    candidates: Iterable[UploadCandidate],
    records: Iterable[ProgressRecord],
) -> SessionStats:
    """Derive aggregate statistics from the current candidates and records."""
    total = valid = 0
    for candidate in candidates:
        total += 1
        if candidate.is_valid:
            valid += 1
    counts = {state: 0 for state in ProgressState}
    for record in records:
        counts[record.state] += 1
    return SessionStats(
        total=total,
        valid=valid,
        invalid=total - valid,
        pending=counts[ProgressState.PENDING],
        in_flight=counts[ProgressState.TRANSFERRING],
        completed=counts[ProgressState.COMPLETED],
        failed=counts[ProgressState.FAILED],
    )


class ProgressTracker:
    """
    Owns the ProgressRecords of one session.

    Transitions:
        pending -> transferring -> (transferring)* -> completed | failed

    Every transition emits "transition" (ProgressView) and "stats"
    (SessionStats) on the session's EventEmitter.
    """

    def __init__(
        self,
        candidates: Mapping[CandidateId, UploadCandidate],
        events: Optional[EventEmitter] = None,
    ):
        self._candidates = candidates
        self._events = events or EventEmitter()
        self._records: Dict[CandidateId, ProgressRecord] = {}
        self._run_ids: Tuple[CandidateId, ...] = ()

    @property
    def run_ids(self) -> Tuple[CandidateId, ...]:
        """Candidates admitted to the most recent run, in transfer order."""
        return self._run_ids

    def get(self, candidate_id: CandidateId) -> Optional[ProgressRecord]:
        return self._records.get(candidate_id)

    def records(self) -> List[ProgressRecord]:
        return list(self._records.values())

    def views(self) -> Tuple[ProgressView, ...]:
        return tuple(ProgressView.of(record) for record in self._records.values())

    def stats(self) -> SessionStats:
        return compute_stats(self._candidates.values(), self._records.values())

    def start_run(self, candidate_ids: Iterable[CandidateId]) -> None:
        """Create a fresh pending record for each candidate of a new run."""
        self._run_ids = tuple(candidate_ids)
        for candidate_id in self._run_ids:
            existing = self._records.pop(candidate_id, None)
            if existing is not None and existing.state is ProgressState.COMPLETED:
                raise InvalidTransition(f"{candidate_id} already completed; it cannot be transferred again")
            self._records[candidate_id] = ProgressRecord(candidate_id)
            self._publish(self._records[candidate_id])

    def begin(self, candidate_id: CandidateId) -> None:
        record = self._require(candidate_id, ProgressState.PENDING, "begin transfer")
        record.state = ProgressState.TRANSFERRING
        self._publish(record)

    def advance(self, candidate_id: CandidateId, percent: float) -> bool:
        """
        Raise the progress of a transferring record.

        Reports that would lower the value, and reports for records that
        are not transferring, are ignored. Returns True if the value moved.
        """
        record = self._records.get(candidate_id)
        if record is None or record.state is not ProgressState.TRANSFERRING:
            logger.debug("Ignoring progress %s for %s (not transferring)", percent, candidate_id)
            return False
        value = min(int(percent), MAX_IN_FLIGHT_PROGRESS)
        if value <= record.progress:
            return False
        record.progress = value
        self._publish(record)
        return True

    def complete(self, candidate_id: CandidateId) -> None:
        record = self._require(candidate_id, ProgressState.TRANSFERRING, "complete")
        record.state = ProgressState.COMPLETED
        record.progress = 100
        self._publish(record)

    def fail(self, candidate_id: CandidateId, error: str) -> None:
        record = self._require(candidate_id, ProgressState.TRANSFERRING, "fail")
        record.state = ProgressState.FAILED
        record.error = error or "Transfer failed"
        self._publish(record)

    def drop_pending(self) -> List[CandidateId]:
        """Remove records that never left pending; returns their ids."""
        dropped = [cid for cid, r in self._records.items() if r.state is ProgressState.PENDING]
        for candidate_id in dropped:
            del self._records[candidate_id]
        if dropped:
            self._events.emit("stats", self.stats())
        return dropped

    def discard(self, candidate_id: CandidateId) -> None:
        """Forget a record, e.g. when its candidate is removed."""
        self._records.pop(candidate_id, None)

    def clear(self) -> None:
        self._records.clear()
        self._run_ids = ()

    def _require(self, candidate_id: CandidateId, state: ProgressState, action: str) -> ProgressRecord:
        record = self._records.get(candidate_id)
        if record is None:
            raise InvalidTransition(f"cannot {action}: no progress record for {candidate_id}")
        if record.state is not state:
            raise InvalidTransition(
                f"cannot {action} {candidate_id}: state is {record.state.value}, expected {state.value}"
            )
        return record

    def _publish(self, record: ProgressRecord) -> None:
        self._events.emit("transition", ProgressView.of(record))
        self._events.emit("stats", self.stats())
