"""Application use cases for intake workflows."""

from .deduplication import (
    CONTENT_HASH,
    DEDUP_POLICIES,
    NAME_AND_SIZE,
    DedupResult,
    FilterNewFilesUseCase,
    blake3_file,
    filter_new,
    resolve_policy,
)
from .validation import ValidateFileUseCase, validate

__all__ = [
    "CONTENT_HASH",
    "DEDUP_POLICIES",
    "NAME_AND_SIZE",
    "DedupResult",
    "FilterNewFilesUseCase",
    "blake3_file",
    "filter_new",
    "resolve_policy",
    "ValidateFileUseCase",
    "validate",
]
