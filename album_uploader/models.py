"""
Models for album_uploader.

Immutable dataclasses for values that cross component boundaries; the only
mutable records are owned by a single UploadSession.
"""
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

MB = 1024 * 1024

DEFAULT_IMAGE_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
})
DEFAULT_VIDEO_TYPES = frozenset({
    "video/mp4",
    "video/mov",
    "video/quicktime",
    "video/avi",
    "video/x-msvideo",
    "video/webm",
})


class MediaKind(Enum):
    """Media kind derived from the declared content type."""
    IMAGE = "image"
    VIDEO = "video"

    @classmethod
    def from_content_type(cls, content_type: Optional[str]) -> Optional["MediaKind"]:
        if not content_type:
            return None
        prefix = content_type.split("/", 1)[0].strip().lower()
        if prefix == "image":
            return cls.IMAGE
        if prefix == "video":
            return cls.VIDEO
        return None


class ProgressState(Enum):
    """State of a single ProgressRecord."""
    PENDING = "pending"
    TRANSFERRING = "transferring"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressState.COMPLETED, ProgressState.FAILED)


class NotificationLevel(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class CandidateId:
    """Weak candidate identity: file name plus byte size."""
    name: str
    size: int

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class MediaFile:
    """A raw file offered for intake."""
    name: str
    size: int
    content_type: str = ""
    path: Optional[Path] = None

    @classmethod
    def from_path(cls, path: Path, content_type: Optional[str] = None) -> "MediaFile":
        """Build from a local file; content type is guessed from the extension."""
        path = Path(path)
        if content_type is None:
            content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            size=path.stat().st_size,
            content_type=content_type or "application/octet-stream",
            path=path,
        )

    @property
    def identity(self) -> CandidateId:
        return CandidateId(self.name, self.size)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one file. reason/code are set iff invalid."""
    valid: bool
    reason: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def reject(cls, code: str, reason: str) -> "ValidationResult":
        return cls(valid=False, reason=reason, code=code)


@dataclass(frozen=True)
class UploadCandidate:
    """A file admitted to a session's candidate set."""
    file: MediaFile
    kind: Optional[MediaKind]
    validation: ValidationResult

    @property
    def id(self) -> CandidateId:
        return self.file.identity

    @property
    def name(self) -> str:
        return self.file.name

    @property
    def size(self) -> int:
        return self.file.size

    @property
    def content_type(self) -> str:
        return self.file.content_type

    @property
    def path(self) -> Optional[Path]:
        return self.file.path

    @property
    def is_valid(self) -> bool:
        return self.validation.valid

    @property
    def rejection_reason(self) -> Optional[str]:
        return self.validation.reason


@dataclass
class ProgressRecord:
    """
    Transfer progress of one candidate within one run.

    Mutated only through ProgressTracker.
    """
    candidate_id: CandidateId
    state: ProgressState = ProgressState.PENDING
    progress: int = 0
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


@dataclass(frozen=True)
class ProgressView:
    """Read-only copy of a ProgressRecord for snapshots and events."""
    candidate_id: CandidateId
    state: ProgressState
    progress: int
    error: Optional[str] = None

    @classmethod
    def of(cls, record: ProgressRecord) -> "ProgressView":
        return cls(record.candidate_id, record.state, record.progress, record.error)


@dataclass(frozen=True)
class SessionStats:
    """Aggregate statistics, always derived from candidates and records."""
    total: int = 0
    valid: int = 0
    invalid: int = 0
    pending: int = 0
    in_flight: int = 0
    completed: int = 0
    failed: int = 0


@dataclass(frozen=True)
class IntakeReport:
    """What happened to each file of one intake call."""
    accepted: Tuple[CandidateId, ...] = ()
    duplicates: Tuple[str, ...] = ()
    rejected: Tuple[CandidateId, ...] = ()
    overflow: Tuple[str, ...] = ()

    @property
    def accepted_count(self) -> int:
        return len(self.accepted)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)

    @property
    def rejected_count(self) -> int:
        return len(self.rejected) + len(self.overflow)


@dataclass(frozen=True)
class CommittedUnit:
    """Acknowledgement from the Destination Store for one candidate."""
    candidate_id: CandidateId
    collection_id: str
    item_id: str
    url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SessionOutcome:
    """Result of one transfer run. Failures do not make the run itself fail."""
    collection_id: str
    committed: List[CandidateId] = field(default_factory=list)
    failed: List[CandidateId] = field(default_factory=list)
    cancelled: List[CandidateId] = field(default_factory=list)

    @property
    def all_success(self) -> bool:
        return not self.failed and not self.cancelled


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only projection of a session for rendering."""
    collection_id: Optional[str]
    candidates: Tuple[UploadCandidate, ...]
    progress: Tuple[ProgressView, ...]
    stats: SessionStats
    is_busy: bool


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str

    @classmethod
    def info(cls, message: str) -> "Notification":
        return cls(NotificationLevel.INFO, message)

    @classmethod
    def warning(cls, message: str) -> "Notification":
        return cls(NotificationLevel.WARNING, message)

    @classmethod
    def error(cls, message: str) -> "Notification":
        return cls(NotificationLevel.ERROR, message)


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload sessions."""
    max_image_bytes: int = 10 * MB
    max_video_bytes: int = 100 * MB
    accepted_image_types: FrozenSet[str] = DEFAULT_IMAGE_TYPES
    accepted_video_types: FrozenSet[str] = DEFAULT_VIDEO_TYPES
    max_candidates_per_session: int = 50
    dedup_policy: str = "name_and_size"
    preview_max_size: int = 300
    revalidate_on_transfer: bool = True
    commit_timeout: Optional[float] = None
    compress_images: bool = True
    compress_max_dimension: int = 1920
    compress_quality: int = 80

    def max_bytes_for(self, kind: MediaKind) -> int:
        if kind is MediaKind.VIDEO:
            return self.max_video_bytes
        return self.max_image_bytes

    def accepted_types_for(self, kind: MediaKind) -> FrozenSet[str]:
        if kind is MediaKind.VIDEO:
            return self.accepted_video_types
        return self.accepted_image_types
