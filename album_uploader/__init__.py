"""
album_uploader - Upload orchestration for shared photo albums.

Takes a batch of user-supplied files, validates and deduplicates them,
keeps local previews for images, and commits the valid ones one by one to
a destination collection. One failing file never stops the others.

Usage:
    from album_uploader import UploadOrchestrator, MediaFile

    async with UploadOrchestrator(api_url, token=token) as uploader:
        with uploader.session("album-1") as session:
            report = uploader.intake(session, [MediaFile.from_path(p) for p in paths])
            print(report.accepted_count, report.duplicate_count, report.rejected_count)

            session.events.on("transition", lambda view: print(view.candidate_id, view.progress))
            outcome = await uploader.commit(session)
            print(outcome.committed, outcome.failed)
"""
from .errors import (
    APIError,
    InvalidTransition,
    PreviewReleasedError,
    SessionAbort,
    SessionBusy,
    TransferError,
    UploaderError,
)
from .models import (
    CandidateId,
    CommittedUnit,
    IntakeReport,
    MediaFile,
    MediaKind,
    Notification,
    NotificationLevel,
    ProgressRecord,
    ProgressState,
    ProgressView,
    SessionOutcome,
    SessionSnapshot,
    SessionStats,
    UploadCandidate,
    UploadConfig,
    ValidationResult,
)
from .orchestrator import TransferScheduler, UploadOrchestrator, UploadSession
from .services import (
    HTTPDestinationStore,
    HTTPPermissionGuard,
    ImageCompressor,
    LoggingNotificationSink,
    PreviewHandle,
    PreviewManager,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "UploadSession",
    "TransferScheduler",
    # Models
    "CandidateId",
    "CommittedUnit",
    "IntakeReport",
    "MediaFile",
    "MediaKind",
    "Notification",
    "NotificationLevel",
    "ProgressRecord",
    "ProgressState",
    "ProgressView",
    "SessionOutcome",
    "SessionSnapshot",
    "SessionStats",
    "UploadCandidate",
    "UploadConfig",
    "ValidationResult",
    # Errors
    "APIError",
    "InvalidTransition",
    "PreviewReleasedError",
    "SessionAbort",
    "SessionBusy",
    "TransferError",
    "UploaderError",
    # Services
    "HTTPDestinationStore",
    "HTTPPermissionGuard",
    "ImageCompressor",
    "LoggingNotificationSink",
    "PreviewHandle",
    "PreviewManager",
]
