"""Freshness decision for remote files against the local filesystem."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..models import FileRecord
from ..utils import MTIME_TOLERANCE_MS, to_epoch_ms
from .scanner import LocalFile


class SyncAction(str, Enum):
    """Actions that can be taken for a remote file."""

    DOWNLOAD = "download"
    """Download remote file to local"""

    SKIP = "skip"
    """Skip file (local copy is up to date)"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    local_file: Optional[LocalFile]
    """Local file (if exists)"""

    remote_file: FileRecord
    """Remote file record"""

    local_path: Path
    """Destination path of the file"""


class FileComparator:
    """Decides whether a remote file has to be downloaded.

    A local file is up to date when it exists, its size matches the size
    declared by the remote record (if any) and its modification time is
    within ``tolerance_ms`` of the remote modification time.
    """

    def __init__(self, tolerance_ms: int = MTIME_TOLERANCE_MS):
        """Initialize file comparator.

        Args:
            tolerance_ms: Allowed modification time difference in milliseconds
        """
        self.tolerance_ms = tolerance_ms

    def compare(self, local_path: Path, remote_file: FileRecord) -> SyncDecision:
        """Compare a remote record with the file at ``local_path``.

        Args:
            local_path: Where the file is (or would be) stored locally
            remote_file: Remote file metadata

        Returns:
            SyncDecision with DOWNLOAD or SKIP
        """
        local_file = LocalFile.from_path(local_path)

        def decide(action: SyncAction, reason: str) -> SyncDecision:
            return SyncDecision(
                action=action,
                reason=reason,
                local_file=local_file,
                remote_file=remote_file,
                local_path=local_path,
            )

        if local_file is None:
            return decide(SyncAction.DOWNLOAD, "New remote file")

        # A missing or zero remote size disables the size check
        if remote_file.size and local_file.size != remote_file.size:
            return decide(
                SyncAction.DOWNLOAD,
                f"Size differs ({local_file.size} vs {remote_file.size})",
            )

        if remote_file.modified_at is None:
            # Nothing to compare against; the existing copy is kept
            return decide(SyncAction.SKIP, "Remote modification time unavailable")

        time_diff = abs(to_epoch_ms(remote_file.modified_at) - local_file.mtime_ms)
        if time_diff > self.tolerance_ms:
            return decide(
                SyncAction.DOWNLOAD,
                f"Modification time differs by {time_diff} ms",
            )

        return decide(SyncAction.SKIP, "Up to date")

    def is_up_to_date(self, local_path: Path, remote_file: FileRecord) -> bool:
        """Return True if the local copy of ``remote_file`` needs no download."""
        return self.compare(local_path, remote_file).action == SyncAction.SKIP
