"""Orchestrator package - upload sessions and transfer runs."""
from .core import UploadOrchestrator
from .progress import ProgressTracker, compute_stats
from .scheduler import TransferScheduler
from .session import UploadSession

__all__ = [
    "UploadOrchestrator",
    "ProgressTracker",
    "compute_stats",
    "TransferScheduler",
    "UploadSession",
]
