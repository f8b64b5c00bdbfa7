"""Core sync engine that mirrors a remote folder tree onto local disk."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..api import DatapriusClient
from ..config import BackupConfig, destination_for
from ..exceptions import (
    DatapriusAuthenticationError,
    DatapriusDownloadError,
    DatapriusListError,
)
from ..folder_entries_manager import FolderEntriesManager
from ..models import FileRecord, FolderRecord
from ..utils import DEFAULT_MAX_PAGES, is_safe_name, normalize_name
from .comparator import FileComparator
from .operations import FetchResult, FetchStatus, SyncOperations, local_path_for
from .progress import SyncProgressTracker

logger = logging.getLogger(__name__)


@dataclass
class SyncStats:
    """Counters for one backup run."""

    downloads: int = 0
    skips: int = 0
    errors: int = 0
    folders: int = 0
    folder_errors: int = 0
    mtime_failures: int = 0
    cycles_skipped: int = 0
    bytes_downloaded: int = 0
    failed_files: list[str] = field(default_factory=list)
    failed_folders: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True if every folder could be listed.

        Failed single files do not make a run unsuccessful.
        """
        return self.folder_errors == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "downloads": self.downloads,
            "skips": self.skips,
            "errors": self.errors,
            "folders": self.folders,
            "folder_errors": self.folder_errors,
            "mtime_failures": self.mtime_failures,
            "cycles_skipped": self.cycles_skipped,
            "bytes_downloaded": self.bytes_downloaded,
            "failed_files": list(self.failed_files),
            "failed_folders": list(self.failed_folders),
            "ok": self.ok,
        }


class SyncEngine:
    """Recursively backs up a remote folder into a local directory.

    Folders are visited depth-first using an explicit stack. Within a
    folder all files are processed before its subfolders are listed, and
    subfolders are visited in the order the backend lists them.

    Examples:
        >>> engine = SyncEngine(client)
        >>> stats = engine.backup("/Archive", Path("/backups"))
        >>> print(f"Downloaded {stats.downloads} file(s)")
    """

    def __init__(
        self,
        client: DatapriusClient,
        progress: Optional[SyncProgressTracker] = None,
        max_workers: int = 1,
        max_pages: int = DEFAULT_MAX_PAGES,
        comparator: Optional[FileComparator] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Dataprius API client
            progress: Receiver of progress events
            max_workers: Number of parallel downloads within a folder (default: 1)
            max_pages: Maximum number of pages per listing
            comparator: Freshness evaluator
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.client = client
        self.progress = progress or SyncProgressTracker()
        self.max_workers = max_workers
        self.manager = FolderEntriesManager(client, max_pages=max_pages)
        self.operations = SyncOperations(client, comparator)
        self._stats_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        client: DatapriusClient,
        config: BackupConfig,
        progress: Optional[SyncProgressTracker] = None,
    ) -> "SyncEngine":
        return cls(
            client,
            progress=progress,
            max_workers=config.max_workers,
            max_pages=config.max_pages,
        )

    def resolve_root(self, source_path: str) -> str:
        """Resolve the configured remote path to a folder identity."""
        return self.manager.resolve_path(source_path)

    def backup(self, source_path: str, backup_dir: Path) -> SyncStats:
        """Back up the remote folder at ``source_path`` below ``backup_dir``.

        The local copy is written to ``backup_dir`` joined with the segments
        of ``source_path`` (``backup_dir/root`` for the remote root).

        Args:
            source_path: Remote folder path (e.g., "/Archive")
            backup_dir: Local backup root directory

        Returns:
            SyncStats for the run

        Raises:
            DatapriusAuthenticationError: If no valid token can be obtained
            DatapriusResolutionError: If ``source_path`` is not a folder
        """
        logger.info('Resolving folder ID for path "%s" ...', source_path)
        root_folder_id = self.resolve_root(source_path)

        destination = destination_for(Path(backup_dir), source_path)
        logger.info("Starting backup in: %s", destination)
        return self.sync_folder(root_folder_id, destination)

    def sync_folder(self, root_folder_id: str, root_local_dir: Path) -> SyncStats:
        """Materialize the remote subtree of ``root_folder_id`` in ``root_local_dir``.

        A folder whose listing fails is reported and skipped together with
        its subtree; the rest of the tree is still processed.

        Args:
            root_folder_id: Identity of the remote folder
            root_local_dir: Local directory receiving its contents

        Returns:
            SyncStats for the run
        """
        start_time = time.time()
        stats = SyncStats()
        root_local_dir = Path(root_local_dir)
        self.progress.on_sync_started(root_local_dir, root_folder_id)

        stack: list[tuple[str, Path]] = [(root_folder_id, root_local_dir)]
        visited: set[str] = set()

        while stack:
            folder_id, local_dir = stack.pop()

            if folder_id in visited:
                logger.warning(
                    "Folder %s already visited, skipping %s", folder_id, local_dir
                )
                stats.cycles_skipped += 1
                continue
            visited.add(folder_id)

            try:
                subfolders = self._sync_single_folder(folder_id, local_dir, stats)
            except (DatapriusListError, OSError) as e:
                logger.error("Failed to back up folder %s: %s", local_dir, e)
                stats.folder_errors += 1
                stats.failed_folders.append(str(local_dir))
                self.progress.on_folder_failed(local_dir, folder_id, e)
                continue

            # Reversed so that the first listed subfolder is popped first
            for subfolder in reversed(subfolders):
                child_dir = self._child_dir(local_dir, subfolder)
                if child_dir is None:
                    stats.folder_errors += 1
                    stats.failed_folders.append(str(local_dir / subfolder.name))
                    continue
                stack.append((subfolder.id, child_dir))

        elapsed = time.time() - start_time
        logger.debug(
            "Backup of %s took %.2fs: %s", root_local_dir, elapsed, stats.to_dict()
        )
        self.progress.on_sync_finished(root_local_dir)
        return stats

    def _child_dir(self, local_dir: Path, subfolder: FolderRecord) -> Optional[Path]:
        name = normalize_name(subfolder.name)
        if not is_safe_name(name):
            logger.error(
                "Skipping folder %s in %s: unusable name %r",
                subfolder.id,
                local_dir,
                subfolder.name,
            )
            return None
        return local_dir / name

    def _sync_single_folder(
        self, folder_id: str, local_dir: Path, stats: SyncStats
    ) -> list[FolderRecord]:
        """Back up the files of one folder and return its subfolders."""
        logger.info("Listing localDir: %s", local_dir)
        local_dir.mkdir(parents=True, exist_ok=True)

        files = self.manager.list_files(folder_id)
        logger.info("Found %d files in folder %s", len(files), folder_id)
        self.progress.on_folder_started(local_dir, folder_id, len(files))

        if self.max_workers > 1 and len(files) > 1:
            self._fetch_files_parallel(files, local_dir, stats)
        else:
            for remote_file in files:
                self._fetch_with_stats(remote_file, local_dir, stats)

        subfolders = self.manager.list_subfolders(folder_id)
        stats.folders += 1
        self.progress.on_folder_done()
        return subfolders

    def _fetch_with_stats(
        self, remote_file: FileRecord, local_dir: Path, stats: SyncStats
    ) -> Optional[FetchResult]:
        """Fetch one file, recording the outcome instead of raising.

        Authentication failures are re-raised; every other failure only
        affects this file.
        """
        try:
            result = self.operations.fetch_file(remote_file, local_dir)
        except DatapriusAuthenticationError:
            raise
        except Exception as e:
            self._record_failure(remote_file, local_dir, stats, e)
            return None

        with self._stats_lock:
            if result.status == FetchStatus.SKIPPED:
                stats.skips += 1
            else:
                stats.downloads += 1
                stats.bytes_downloaded += result.bytes_written
                if result.status == FetchStatus.DOWNLOADED_MTIME_FAILED:
                    stats.mtime_failures += 1

        if result.status == FetchStatus.SKIPPED:
            self.progress.on_file_skipped(result.local_path)
        else:
            self.progress.on_file_downloaded(result.local_path, result.bytes_written)
        return result

    def _record_failure(
        self,
        remote_file: FileRecord,
        local_dir: Path,
        stats: SyncStats,
        error: Exception,
    ) -> None:
        local_path = Path(local_dir) / normalize_name(remote_file.name)
        logger.warning(
            "ERROR downloading file %s in %s: %s", remote_file.name, local_dir, error
        )
        with self._stats_lock:
            stats.errors += 1
            stats.failed_files.append(str(local_path))
        self.progress.on_file_failed(local_path, error)

    def _fetch_files_parallel(
        self, files: list[FileRecord], local_dir: Path, stats: SyncStats
    ) -> None:
        """Fetch files of one folder with a thread pool.

        Records that map to the same local path are fetched by the same
        task, one after another.
        """
        groups: dict[Path, list[FileRecord]] = {}
        for remote_file in files:
            try:
                local_path = local_path_for(remote_file, local_dir)
            except DatapriusDownloadError as e:
                self._record_failure(remote_file, local_dir, stats, e)
                continue
            groups.setdefault(local_path, []).append(remote_file)

        def fetch_group(records: list[FileRecord]) -> None:
            for record in records:
                self._fetch_with_stats(record, local_dir, stats)

        logger.debug(
            "Fetching %d file(s) in %s with %d workers",
            len(files),
            local_dir,
            self.max_workers,
        )
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(fetch_group, records) for records in groups.values()
            ]
            for future in as_completed(futures):
                # Only authentication errors escape fetch_group
                future.result()
