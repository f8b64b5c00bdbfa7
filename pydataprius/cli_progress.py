"""CLI progress display for backups.

This module provides a Rich-based progress display that works with
the SyncProgressTracker from the sync engine.
"""

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.progress import (
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.engine import SyncEngine, SyncStats
from .sync.progress import SyncProgressEvent, SyncProgressInfo, SyncProgressTracker
from .utils import format_size


class SyncProgressDisplay:
    """Rich-based progress display for backups.

    Shows the folder currently being processed together with running
    totals of downloaded, skipped and failed files.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize the progress display."""
        self._console = console
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self._bytes_downloaded = 0
        self._root: Optional[Path] = None

    def create_tracker(self) -> SyncProgressTracker:
        """Create a SyncProgressTracker that updates this display."""
        return SyncProgressTracker(callback=self._handle_event)

    def _format_totals(self, info: SyncProgressInfo) -> str:
        """Format running totals, e.g. "3 downloaded (1.5 MB), 10 skipped"."""
        text = (
            f"{info.files_downloaded} downloaded "
            f"({format_size(self._bytes_downloaded)}), "
            f"{info.files_skipped} skipped"
        )
        if info.files_failed:
            text += f", [red]{info.files_failed} failed[/red]"
        return text

    def _folder_label(self, local_path: Optional[Path]) -> str:
        if local_path is None:
            return ""
        if self._root is not None:
            try:
                relative = local_path.relative_to(self._root).as_posix()
                return relative if relative != "." else self._root.name
            except ValueError:
                pass
        return str(local_path)

    def _handle_event(self, info: SyncProgressInfo) -> None:
        """Handle a progress event from the tracker."""
        if self._progress is None or self._task is None:
            return

        if info.event == SyncProgressEvent.SYNC_STARTED:
            self._root = info.local_path
            self._progress.update(self._task, description="Listing remote folders...")

        elif info.event == SyncProgressEvent.FOLDER_STARTED:
            self._progress.update(
                self._task,
                description=f"Backing up: {self._folder_label(info.local_path)}",
                totals=self._format_totals(info),
            )

        elif info.event == SyncProgressEvent.FILE_DOWNLOADED:
            self._bytes_downloaded += info.bytes_downloaded
            self._progress.update(self._task, totals=self._format_totals(info))

        elif info.event in (
            SyncProgressEvent.FILE_SKIPPED,
            SyncProgressEvent.FILE_FAILED,
        ):
            self._progress.update(self._task, totals=self._format_totals(info))

        elif info.event == SyncProgressEvent.FOLDER_FAILED:
            self._progress.console.print(
                f"[red]Failed to back up folder "
                f"{self._folder_label(info.local_path)}: {info.error}[/red]"
            )

        elif info.event == SyncProgressEvent.SYNC_FINISHED:
            self._progress.update(
                self._task,
                description="Backup complete",
                totals=self._format_totals(info),
            )

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            TextColumn("[cyan]{task.fields[totals]}"),
            TimeElapsedColumn(),
            console=self._console,
            refresh_per_second=4,
            transient=False,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(
            "Preparing backup...", total=None, totals="0 downloaded (0 B), 0 skipped"
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


def run_backup_with_progress(
    engine_factory,
    source_path: str,
    backup_dir: Path,
) -> SyncStats:
    """Run a backup with a Rich progress display.

    Args:
        engine_factory: Callable taking a SyncProgressTracker and returning
            a SyncEngine
        source_path: Remote folder path
        backup_dir: Local backup root directory

    Returns:
        SyncStats of the run
    """
    with SyncProgressDisplay() as display:
        engine: SyncEngine = engine_factory(display.create_tracker())
        return engine.backup(source_path, backup_dir)
