"""Download operations that materialize remote files on local disk."""

import functools
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from ..api import DatapriusClient
from ..exceptions import (
    DatapriusAuthenticationError,
    DatapriusDownloadError,
    DatapriusError,
)
from ..models import FileRecord
from ..utils import is_safe_name, normalize_name, to_epoch_ns
from .comparator import FileComparator, SyncAction

logger = logging.getLogger(__name__)


class FetchStatus(str, Enum):
    """Outcome of fetching one file."""

    SKIPPED = "skipped"
    """Local copy was up to date, nothing was downloaded"""

    DOWNLOADED = "downloaded"
    """Content written and modification time applied"""

    DOWNLOADED_MTIME_FAILED = "downloaded_mtime_failed"
    """Content written but the modification time could not be applied"""


@dataclass
class FetchResult:
    """Result of a successful fetch."""

    status: FetchStatus
    local_path: Path
    reason: str = ""
    bytes_written: int = 0

    @property
    def downloaded(self) -> bool:
        return self.status != FetchStatus.SKIPPED


def local_path_for(remote_file: FileRecord, local_dir: Path) -> Path:
    """Destination of a remote file inside ``local_dir`` (NFC-normalized name).

    Raises:
        DatapriusDownloadError: If the name cannot be used as a file name
    """
    name = normalize_name(remote_file.name)
    if not is_safe_name(name):
        raise DatapriusDownloadError(f"Unusable file name: {remote_file.name!r}")
    return Path(local_dir) / name


def apply_remote_mtime(local_path: Path, modified_at: Optional[datetime]) -> bool:
    """Set access and modification time of ``local_path`` to ``modified_at``.

    Returns:
        True if the times were applied, False otherwise
    """
    if modified_at is None:
        logger.debug("No remote modification time for %s", local_path)
        return False
    try:
        ns = to_epoch_ns(modified_at)
        os.utime(local_path, ns=(ns, ns))
    except (OSError, OverflowError, ValueError) as e:
        logger.warning("Could not set modification time of %s: %s", local_path, e)
        return False
    return True


@functools.lru_cache(maxsize=None)
def _new_file_mode() -> int:
    """Mode of newly created files under the process umask (0666 & ~umask)."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_file_atomic(local_path: Path, content: bytes) -> None:
    """Write ``content`` to a temporary sibling and move it onto ``local_path``."""
    local_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{local_path.name}.", suffix=".part", dir=local_path.parent
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        # mkstemp creates the file with mode 0600
        os.chmod(tmp_name, _new_file_mode())
        os.replace(tmp_name, local_path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class SyncOperations:
    """Fetches single remote files into a local directory."""

    def __init__(
        self, client: DatapriusClient, comparator: Optional[FileComparator] = None
    ):
        """Initialize sync operations.

        Args:
            client: Dataprius API client
            comparator: Freshness evaluator (default: 2 s tolerance)
        """
        self.client = client
        self.comparator = comparator or FileComparator()

    def fetch_file(self, remote_file: FileRecord, local_dir: Path) -> FetchResult:
        """Download a remote file unless the local copy is up to date.

        Args:
            remote_file: Remote file to fetch
            local_dir: Directory the file belongs in

        Returns:
            FetchResult describing what happened

        Raises:
            DatapriusDownloadError: If downloading or writing the file fails
        """
        local_path = local_path_for(remote_file, local_dir)
        decision = self.comparator.compare(local_path, remote_file)

        if decision.action == SyncAction.SKIP:
            return FetchResult(FetchStatus.SKIPPED, local_path, decision.reason)

        logger.info(
            "Downloading %s (%s): %s", local_path, remote_file.id, decision.reason
        )

        try:
            content = self.client.get_file_content(remote_file.id)
        except DatapriusAuthenticationError:
            raise
        except DatapriusError as e:
            raise DatapriusDownloadError(
                f"Failed to download {remote_file.name} ({remote_file.id}): {e}"
            ) from e

        try:
            write_file_atomic(local_path, content)
        except OSError as e:
            raise DatapriusDownloadError(f"Failed to write {local_path}: {e}") from e

        if apply_remote_mtime(local_path, remote_file.modified_at):
            status = FetchStatus.DOWNLOADED
        else:
            status = FetchStatus.DOWNLOADED_MTIME_FAILED

        return FetchResult(status, local_path, decision.reason, len(content))
