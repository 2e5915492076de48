"""
Protocols (Interfaces) for the collaborators the engine consumes.

Small, focused interfaces; concrete adapters live in album_uploader.services.
"""
from typing import Any, Callable, List, Optional, Protocol, runtime_checkable

from .models import CommittedUnit, Notification, UploadCandidate

ProgressCallback = Callable[[int], None]


@runtime_checkable
class IDestinationStore(Protocol):
    """Persists committed media into a named collection."""

    async def commit_one(
        self,
        candidate: UploadCandidate,
        collection_id: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> CommittedUnit:
        """
        Transfer one candidate. Raises on failure.

        progress_callback receives percentages in [0, 100).
        """
        ...

    async def list_collection_items(self, collection_id: str) -> List[Any]:
        """List items already stored in the collection."""
        ...


@runtime_checkable
class IPermissionGuard(Protocol):
    """Checked by the caller before intake is enabled."""

    async def can_upload(self, collection_id: str) -> bool:
        ...


@runtime_checkable
class INotificationSink(Protocol):
    """Fire-and-forget user notifications."""

    def notify(self, notification: Notification) -> None:
        ...
