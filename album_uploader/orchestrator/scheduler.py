"""Sequential transfer of a session's valid candidates."""
import asyncio
import logging
from typing import List, Optional

from ..errors import SessionAbort
from ..models import CandidateId, SessionOutcome, UploadCandidate, UploadConfig
from ..protocols import IDestinationStore
from ..use_cases.validation import ValidateFileUseCase
from .session import UploadSession

logger = logging.getLogger(__name__)


def _describe_exception(exc: BaseException) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"


class TransferScheduler:
    """
    Transfers candidates one at a time, in intake order.

    A failing candidate is recorded as failed and the run moves on to the
    next one. Cancellation is checked before each candidate is dequeued;
    the candidate in flight always finishes or fails normally.
    """

    def __init__(
        self,
        store: IDestinationStore,
        config: Optional[UploadConfig] = None,
        validator: Optional[ValidateFileUseCase] = None,
    ):
        self._store = store
        self._config = config or UploadConfig()
        self._validator = validator or ValidateFileUseCase(self._config)

    async def run(self, session: UploadSession) -> SessionOutcome:
        collection_id = session.collection_id
        if not collection_id:
            raise SessionAbort("no destination collection selected")

        queue = session.transferable()
        tracker = session.tracker
        tracker.start_run(c.id for c in queue)
        total = len(queue)
        logger.info("[transfer] Starting run of %d file(s) into %s", total, collection_id)

        committed: List[CandidateId] = []
        failed: List[CandidateId] = []
        cancelled: List[CandidateId] = []
        try:
            for index, candidate in enumerate(queue, 1):
                if session.cancel_requested:
                    cancelled = tracker.drop_pending()
                    logger.info("[transfer] Run cancelled, %d file(s) not sent", len(cancelled))
                    break
                if await self._transfer_one(session, candidate, index, total):
                    committed.append(candidate.id)
                else:
                    failed.append(candidate.id)
        except asyncio.CancelledError:
            tracker.drop_pending()
            raise

        logger.info(
            "[transfer] Run complete: %d committed, %d failed, %d cancelled",
            len(committed), len(failed), len(cancelled),
        )
        return SessionOutcome(
            collection_id=collection_id,
            committed=committed,
            failed=failed,
            cancelled=cancelled,
        )

    async def _transfer_one(
        self,
        session: UploadSession,
        candidate: UploadCandidate,
        index: int,
        total: int,
    ) -> bool:
        tracker = session.tracker
        candidate_id = candidate.id
        tracker.begin(candidate_id)
        logger.info("[%d/%d] Uploading: %s (%.2f MB)", index, total, candidate.name, candidate.size / (1024 * 1024))

        if self._config.revalidate_on_transfer:
            check = self._validator.revalidate(candidate.file)
            if not check.valid:
                logger.warning("[%d/%d] Rejected at transfer time: %s: %s", index, total, candidate.name, check.reason)
                tracker.fail(candidate_id, check.reason)
                return False

        def on_progress(percent: int) -> None:
            tracker.advance(candidate_id, percent)

        timeout = self._config.commit_timeout
        try:
            commit = self._store.commit_one(candidate, session.collection_id, progress_callback=on_progress)
            if timeout:
                unit = await asyncio.wait_for(commit, timeout)
            else:
                unit = await commit
        except asyncio.CancelledError:
            tracker.fail(candidate_id, "Transfer cancelled")
            raise
        except asyncio.TimeoutError:
            logger.error("[%d/%d] Timed out after %ss: %s", index, total, timeout, candidate.name)
            tracker.fail(candidate_id, f"Transfer timed out after {timeout}s")
            return False
        except Exception as exc:
            error_msg = _describe_exception(exc)
            logger.error("[%d/%d] Error uploading %s: %s", index, total, candidate.name, error_msg)
            logger.debug("Transfer failure detail for %s", candidate.name, exc_info=True)
            tracker.fail(candidate_id, error_msg)
            return False

        tracker.complete(candidate_id)
        session.collection_items.append(unit)
        logger.info("[%d/%d] ✓ Success: %s", index, total, candidate.name)
        return True
