"""Sync engine for PyDataprius - one-way remote to local backups."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .engine import SyncEngine, SyncStats
from .operations import (
    FetchResult,
    FetchStatus,
    SyncOperations,
    apply_remote_mtime,
    local_path_for,
)
from .progress import SyncProgressEvent, SyncProgressInfo, SyncProgressTracker
from .scanner import LocalFile

__all__ = [
    "SyncEngine",
    "SyncStats",
    "SyncOperations",
    "FetchResult",
    "FetchStatus",
    "apply_remote_mtime",
    "local_path_for",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "LocalFile",
    "SyncProgressEvent",
    "SyncProgressInfo",
    "SyncProgressTracker",
]
