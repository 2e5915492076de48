"""Shared fixtures for album_uploader tests."""
import asyncio
from typing import Callable, Dict, Iterable, List, Optional

import pytest

from album_uploader.errors import TransferError
from album_uploader.models import MB, CommittedUnit, MediaFile, UploadCandidate, UploadConfig
from album_uploader.orchestrator import UploadOrchestrator
from album_uploader.services.notifications import CollectingNotificationSink


def image(name: str, size_mb: float = 2, content_type: str = "image/jpeg") -> MediaFile:
    return MediaFile(name=name, size=int(size_mb * MB), content_type=content_type)


def video(name: str, size_mb: float = 20, content_type: str = "video/mp4") -> MediaFile:
    return MediaFile(name=name, size=int(size_mb * MB), content_type=content_type)


class RecordingStore:
    """In-memory destination store that records commit order."""

    def __init__(
        self,
        fail: Iterable[str] = (),
        progress_steps: Iterable[int] = (25, 50, 75),
        on_commit: Optional[Callable[[UploadCandidate], None]] = None,
    ):
        self.fail = set(fail)
        self.progress_steps = list(progress_steps)
        self.on_commit = on_commit
        self.calls: List[str] = []
        self.items: Dict[str, List[CommittedUnit]] = {}

    async def commit_one(self, candidate, collection_id, progress_callback=None):
        self.calls.append(candidate.name)
        if self.on_commit is not None:
            self.on_commit(candidate)
        for step in self.progress_steps:
            if progress_callback is not None:
                progress_callback(step)
            await asyncio.sleep(0)
        if candidate.name in self.fail:
            raise TransferError(f"backend rejected {candidate.name}")
        unit = CommittedUnit(
            candidate_id=candidate.id,
            collection_id=collection_id,
            item_id=f"item-{len(self.calls)}",
        )
        self.items.setdefault(collection_id, []).append(unit)
        return unit

    async def list_collection_items(self, collection_id):
        return list(self.items.get(collection_id, []))


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def notifier():
    return CollectingNotificationSink()


@pytest.fixture
def uploader(store, notifier):
    return UploadOrchestrator(store=store, notifier=notifier, config=UploadConfig())
