"""Structured progress events emitted by the sync engine.

The engine reports what it does through a :class:`SyncProgressTracker`.
Front ends (such as the rich display in ``cli_progress``) subscribe by
passing a callback; formatting is entirely up to them.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SyncProgressEvent(str, Enum):
    """Kinds of progress events."""

    SYNC_STARTED = "sync_started"
    FOLDER_STARTED = "folder_started"
    FILE_SKIPPED = "file_skipped"
    FILE_DOWNLOADED = "file_downloaded"
    FILE_FAILED = "file_failed"
    FOLDER_FAILED = "folder_failed"
    SYNC_FINISHED = "sync_finished"


@dataclass
class SyncProgressInfo:
    """One progress event with running totals."""

    event: SyncProgressEvent
    local_path: Optional[Path] = None
    folder_id: str = ""
    file_name: str = ""
    bytes_downloaded: int = 0
    folder_files_total: int = 0
    files_downloaded: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    folders_done: int = 0
    error: str = ""


class SyncProgressTracker:
    """Collects running totals and forwards events to a callback."""

    def __init__(
        self, callback: Optional[Callable[[SyncProgressInfo], None]] = None
    ) -> None:
        self.callback = callback
        self.files_downloaded = 0
        self.files_skipped = 0
        self.files_failed = 0
        self.folders_done = 0
        self._lock = threading.Lock()

    def _emit(self, info: SyncProgressInfo) -> None:
        info.files_downloaded = self.files_downloaded
        info.files_skipped = self.files_skipped
        info.files_failed = self.files_failed
        info.folders_done = self.folders_done
        if self.callback is None:
            return
        try:
            self.callback(info)
        except Exception as e:
            # A broken display must not abort the backup
            logger.debug("Progress callback failed: %s", e)

    def on_sync_started(self, local_path: Path, folder_id: str) -> None:
        with self._lock:
            self._emit(
                SyncProgressInfo(
                    SyncProgressEvent.SYNC_STARTED,
                    local_path=local_path,
                    folder_id=folder_id,
                )
            )

    def on_folder_started(
        self, local_path: Path, folder_id: str, file_count: int
    ) -> None:
        with self._lock:
            self._emit(
                SyncProgressInfo(
                    SyncProgressEvent.FOLDER_STARTED,
                    local_path=local_path,
                    folder_id=folder_id,
                    folder_files_total=file_count,
                )
            )

    def on_file_skipped(self, local_path: Path) -> None:
        with self._lock:
            self.files_skipped += 1
            self._emit(
                SyncProgressInfo(
                    SyncProgressEvent.FILE_SKIPPED,
                    local_path=local_path,
                    file_name=local_path.name,
                )
            )

    def on_file_downloaded(self, local_path: Path, size: int) -> None:
        with self._lock:
            self.files_downloaded += 1
            self._emit(
                SyncProgressInfo(
                    SyncProgressEvent.FILE_DOWNLOADED,
                    local_path=local_path,
                    file_name=local_path.name,
                    bytes_downloaded=size,
                )
            )

    def on_file_failed(self, local_path: Path, error: Exception) -> None:
        with self._lock:
            self.files_failed += 1
            self._emit(
                SyncProgressInfo(
                    SyncProgressEvent.FILE_FAILED,
                    local_path=local_path,
                    file_name=local_path.name,
                    error=str(error),
                )
            )

    def on_folder_done(self) -> None:
        with self._lock:
            self.folders_done += 1

    def on_folder_failed(
        self, local_path: Path, folder_id: str, error: Exception
    ) -> None:
        with self._lock:
            self._emit(
                SyncProgressInfo(
                    SyncProgressEvent.FOLDER_FAILED,
                    local_path=local_path,
                    folder_id=folder_id,
                    error=str(error),
                )
            )

    def on_sync_finished(self, local_path: Path) -> None:
        with self._lock:
            self._emit(
                SyncProgressInfo(SyncProgressEvent.SYNC_FINISHED, local_path=local_path)
            )
