"""Core orchestrator - public session operations."""
import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional

import httpx

from ..errors import SessionAbort
from ..models import (
    CandidateId,
    IntakeReport,
    MediaFile,
    MediaKind,
    Notification,
    SessionOutcome,
    SessionSnapshot,
    UploadCandidate,
    UploadConfig,
)
from ..protocols import IDestinationStore, INotificationSink, IPermissionGuard
from ..services.api_client import HTTPAPIClient
from ..services.compression import ImageCompressor
from ..services.destination import HTTPDestinationStore
from ..services.notifications import LoggingNotificationSink
from ..services.permissions import HTTPPermissionGuard
from ..services.preview import PreviewManager
from ..use_cases.deduplication import FilterNewFilesUseCase
from ..use_cases.validation import ValidateFileUseCase
from .scheduler import TransferScheduler
from .session import UploadSession

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Drives upload sessions: intake, remove, clear, commit, cancel.

    Every operation takes the UploadSession it acts on; the orchestrator
    itself only holds collaborators and configuration.

    Usage:
        # Against the album HTTP API
        async with UploadOrchestrator(api_url, token=token) as uploader:
            with uploader.session("album-1") as session:
                report = uploader.intake(session, files)
                outcome = await uploader.commit(session)

        # With an injected destination store
        uploader = UploadOrchestrator(store=my_store)
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        store: Optional[IDestinationStore] = None,
        config: Optional[UploadConfig] = None,
        notifier: Optional[INotificationSink] = None,
        permission_guard: Optional[IPermissionGuard] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            api_url: Album API URL, used when no store is injected
            store: Destination store (skips building the HTTP adapters)
            config: Upload configuration
            notifier: Notification sink (defaults to logging)
            permission_guard: Permission guard exposed to callers
            token: Bearer token for the album API
            transport: httpx transport override for the album API
        """
        self._api_url = api_url
        self._token = token
        self._transport = transport
        self._config = config or UploadConfig()
        self._store = store
        self._notifier = notifier or LoggingNotificationSink()
        self._permission_guard = permission_guard
        self._api_client: Optional[HTTPAPIClient] = None

        self._validator = ValidateFileUseCase(self._config)
        self._dedup = FilterNewFilesUseCase(self._config.dedup_policy)
        self._scheduler: Optional[TransferScheduler] = None
        if store is not None:
            self._scheduler = TransferScheduler(store, self._config, self._validator)
        self._sessions: List[UploadSession] = []

    async def __aenter__(self):
        """Build the HTTP adapters when no store was injected."""
        if self._store is None:
            if not self._api_url:
                raise ValueError("Either api_url or store must be provided")
            self._api_client = HTTPAPIClient(self._api_url, token=self._token, transport=self._transport)
            await self._api_client.__aenter__()
            self._store = HTTPDestinationStore(self._api_client, ImageCompressor(self._config))
            if self._permission_guard is None:
                self._permission_guard = HTTPPermissionGuard(self._api_client)
            self._scheduler = TransferScheduler(self._store, self._config, self._validator)
        return self

    async def __aexit__(self, *args):
        """Close every open session, then the API client."""
        self.close_all()
        if self._api_client:
            await self._api_client.__aexit__(*args)
            self._api_client = None

    @property
    def config(self) -> UploadConfig:
        return self._config

    @property
    def store(self) -> Optional[IDestinationStore]:
        return self._store

    @property
    def permission_guard(self) -> Optional[IPermissionGuard]:
        return self._permission_guard

    # Session lifecycle
    def open_session(self, collection_id: Optional[str] = None) -> UploadSession:
        session = UploadSession(
            collection_id,
            previews=PreviewManager(max_size=self._config.preview_max_size),
        )
        self._sessions.append(session)
        logger.debug("Opened session %s for collection %s", session.id, collection_id)
        return session

    def close_session(self, session: UploadSession) -> None:
        session.close()
        if session in self._sessions:
            self._sessions.remove(session)
        logger.debug("Closed session %s", session.id)

    def close_all(self) -> None:
        for session in list(self._sessions):
            self.close_session(session)

    @contextmanager
    def session(self, collection_id: Optional[str] = None) -> Iterator[UploadSession]:
        """Open a session that is closed, previews included, on every exit path."""
        session = self.open_session(collection_id)
        try:
            yield session
        finally:
            self.close_session(session)

    # Operations
    def intake(self, session: UploadSession, files: Iterable[MediaFile]) -> IntakeReport:
        """
        Validate, deduplicate and append files to the session.

        Invalid files are kept as candidates so their reason can be shown;
        duplicates and files beyond the session limit are not added.
        """
        session.ensure_idle("add files")
        files = list(files)
        fresh, duplicates = self._dedup.execute(session.candidates.values(), files)

        room = max(0, self._config.max_candidates_per_session - len(session.candidates))
        admitted, overflow = fresh[:room], fresh[room:]

        accepted: List[CandidateId] = []
        rejected: List[CandidateId] = []
        for file in admitted:
            candidate = UploadCandidate(
                file=file,
                kind=MediaKind.from_content_type(file.content_type),
                validation=self._validator.execute(file),
            )
            session.candidates[candidate.id] = candidate
            session.previews.acquire(candidate)
            if candidate.is_valid:
                accepted.append(candidate.id)
            else:
                rejected.append(candidate.id)
                self._notify(Notification.warning(f"{candidate.name}: {candidate.rejection_reason}"))

        report = IntakeReport(
            accepted=tuple(accepted),
            duplicates=tuple(f.name for f in duplicates),
            rejected=tuple(rejected),
            overflow=tuple(f.name for f in overflow),
        )
        if duplicates:
            self._notify(Notification.info(
                f"Skipped {len(duplicates)} duplicate file(s): {', '.join(report.duplicates)}"
            ))
        if overflow:
            self._notify(Notification.warning(
                f"Session limit of {self._config.max_candidates_per_session} files reached; "
                f"{len(overflow)} file(s) not added"
            ))
        logger.info(
            "[intake] session=%s accepted=%d duplicates=%d rejected=%d overflow=%d",
            session.id, len(accepted), len(duplicates), len(rejected), len(overflow),
        )
        session.events.emit("intake", report)
        session.events.emit("stats", session.stats())
        return report

    def remove(self, session: UploadSession, candidate_id: CandidateId) -> None:
        """Remove one candidate and release its preview. Unknown ids raise KeyError."""
        session.ensure_idle("remove files")
        if candidate_id not in session.candidates:
            raise KeyError(f"no candidate {candidate_id!s} in session {session.id}")
        del session.candidates[candidate_id]
        session.tracker.discard(candidate_id)
        session.previews.release_for(candidate_id)
        session.events.emit("stats", session.stats())

    def clear(self, session: UploadSession) -> None:
        """Release all previews and discard all candidates and records."""
        session.ensure_idle("clear the session")
        session.previews.release_all()
        session.candidates.clear()
        session.tracker.clear()
        session.events.emit("stats", session.stats())

    async def commit(self, session: UploadSession) -> SessionOutcome:
        """
        Run one transfer of the session's valid, not yet committed candidates.

        Raises SessionAbort (SessionBusy during a run) before any transfer
        when the session has no destination or nothing valid to send.
        Per-candidate failures are reported in the outcome, not raised.
        """
        session.ensure_idle("commit")
        if self._scheduler is None:
            raise SessionAbort("no destination store configured; use 'async with' or pass store=")
        if not session.collection_id:
            raise SessionAbort("no destination collection selected")
        if not session.transferable():
            raise SessionAbort("no valid files to upload")

        session.begin_run()
        outcome: Optional[SessionOutcome] = None
        try:
            outcome = await self._scheduler.run(session)
        finally:
            self._finish_run(session, interrupted=outcome is None)
            session.end_run()

        self._notify_outcome(outcome)
        session.events.emit("outcome", outcome)
        return outcome

    def cancel(self, session: UploadSession) -> None:
        """
        Stop the active run after the in-flight candidate, or, when idle,
        drop every candidate. Remaining previews are released either way.
        """
        session.ensure_open()
        if session.is_busy:
            session.request_cancel()
            logger.info("[transfer] Cancel requested for session %s", session.id)
            return
        dropped = len(session.candidates)
        session.previews.release_all()
        session.candidates.clear()
        session.tracker.clear()
        session.events.emit("stats", session.stats())
        if dropped:
            self._notify(Notification.info(f"Upload cancelled; {dropped} file(s) discarded"))

    def snapshot(self, session: UploadSession) -> SessionSnapshot:
        return session.snapshot()

    # Internal methods
    def _finish_run(self, session: UploadSession, interrupted: bool) -> None:
        tracker = session.tracker
        for candidate_id in tracker.run_ids:
            record = tracker.get(candidate_id)
            if record is not None and record.is_terminal:
                session.previews.release_for(candidate_id)
            elif candidate_id in session.candidates:
                # Never sent: the run was cancelled before reaching it.
                tracker.discard(candidate_id)
                del session.candidates[candidate_id]
                session.previews.release_for(candidate_id)
        if interrupted or session.cancel_requested:
            session.previews.release_all()
        session.events.emit("stats", session.stats())

    def _notify_outcome(self, outcome: SessionOutcome) -> None:
        committed, failed, cancelled = len(outcome.committed), len(outcome.failed), len(outcome.cancelled)
        if cancelled:
            self._notify(Notification.warning(
                f"Upload cancelled: {committed} uploaded, {failed} failed, {cancelled} not sent"
            ))
        elif not failed:
            self._notify(Notification.info(f"Uploaded {committed} file(s) to {outcome.collection_id}"))
        elif committed:
            self._notify(Notification.warning(
                f"Uploaded {committed} of {committed + failed} file(s); {failed} failed"
            ))
        else:
            self._notify(Notification.error(f"Upload failed for all {failed} file(s)"))

    def _notify(self, notification: Notification) -> None:
        try:
            self._notifier.notify(notification)
        except Exception as e:
            logger.error(f"Notification sink failed: {e}")
