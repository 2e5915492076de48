"""Deduplication of intake files against the candidates a session already holds."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple

from blake3 import blake3

from album_uploader.models import MediaFile, UploadCandidate

logger = logging.getLogger(__name__)

DedupKey = Callable[[MediaFile], Hashable]

NAME_AND_SIZE = "name_and_size"
CONTENT_HASH = "content_hash"


def blake3_file(path: Path) -> str:
    """BLAKE3 hex digest of a file, read in 64KB chunks."""
    hasher = blake3()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(65536)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def name_and_size_key(file: MediaFile) -> Hashable:
    return ("name_and_size", file.name, file.size)


def content_hash_key(file: MediaFile) -> Hashable:
    """
    Content digest when the file is on disk, name and size otherwise.

    Unreadable files fall back to name and size so intake never fails on
    a hashing error.
    """
    if file.path is None:
        return name_and_size_key(file)
    try:
        return ("content_hash", blake3_file(file.path))
    except OSError as exc:
        logger.debug("Hash failed for %s, using name and size: %s", file.name, exc)
        return name_and_size_key(file)


DEDUP_POLICIES: Dict[str, DedupKey] = {
    NAME_AND_SIZE: name_and_size_key,
    CONTENT_HASH: content_hash_key,
}


def resolve_policy(name: str) -> DedupKey:
    try:
        return DEDUP_POLICIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown dedup policy {name!r} (expected one of: {', '.join(sorted(DEDUP_POLICIES))})"
        ) from None


@dataclass(frozen=True)
class DedupResult:
    """Files to admit and files dropped as duplicates."""

    accepted: List[MediaFile]
    skipped: List[MediaFile]

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def filter_new(
    existing: Iterable[UploadCandidate],
    incoming: Iterable[MediaFile],
    key: Optional[DedupKey] = None,
) -> DedupResult:
    """
    Drop incoming files that duplicate a held candidate or an earlier file
    of the same batch. Order of the accepted files is preserved.
    """
    key = key or name_and_size_key
    seen = {key(candidate.file) for candidate in existing}
    accepted: List[MediaFile] = []
    skipped: List[MediaFile] = []
    for file in incoming:
        file_key = key(file)
        if file_key in seen:
            skipped.append(file)
            continue
        seen.add(file_key)
        accepted.append(file)
    return DedupResult(accepted=accepted, skipped=skipped)


class FilterNewFilesUseCase:
    """Apply the configured dedup policy to an intake batch."""

    def __init__(self, policy: str = NAME_AND_SIZE):
        self._policy = policy
        self._key = resolve_policy(policy)

    @property
    def policy(self) -> str:
        return self._policy

    def execute(
        self,
        existing: Iterable[UploadCandidate],
        incoming: Iterable[MediaFile],
    ) -> Tuple[List[MediaFile], List[MediaFile]]:
        existing = list(existing)
        result = filter_new(existing, incoming, self._key)
        if self._key is not name_and_size_key:
            # Candidate identity is (name, size) under every policy.
            identity = filter_new(existing, result.accepted, name_and_size_key)
            result = DedupResult(identity.accepted, result.skipped + identity.skipped)
        if result.skipped:
            logger.debug(
                "[intake] %d duplicate(s) skipped by %s policy: %s",
                result.skipped_count,
                self._policy,
                ", ".join(f.name for f in result.skipped),
            )
        return result.accepted, result.skipped
