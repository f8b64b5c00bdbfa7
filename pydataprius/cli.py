"""CLI interface for Dataprius backups."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import DatapriusClient
from .cli_progress import run_backup_with_progress
from .config import BackupConfig
from .exceptions import DatapriusConfigError, DatapriusError
from .folder_entries_manager import FolderEntriesManager
from .output import OutputFormatter
from .sync.engine import SyncEngine
from .sync.progress import SyncProgressTracker
from .utils import format_size

logger = logging.getLogger(__name__)


def _create_client(ctx: Any, config: BackupConfig) -> DatapriusClient:
    """Validate the configuration and build an API client, or exit."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        client = DatapriusClient.from_config(config)
    except DatapriusConfigError as e:
        out.error(str(e))
        out.info("Set them in the environment or in a .env file")
        ctx.exit(1)
    return client


@click.group()
@click.option("--client-id", help="Dataprius API client ID (env: DP_CLIENT_ID)")
@click.option(
    "--client-secret", help="Dataprius API client secret (env: DP_CLIENT_SECRET)"
)
@click.option("--api-url", help="Dataprius API base URL (env: DP_API_URL)")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Read environment variables from this file (default: .env)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option()
@click.pass_context
def main(
    ctx: Any,
    client_id: Optional[str],
    client_secret: Optional[str],
    api_url: Optional[str],
    env_file: Optional[Path],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """PyDataprius - Back up Dataprius folders to a local directory."""
    ctx.ensure_object(dict)
    out = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["out"] = out

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pydataprius").setLevel(logging.DEBUG)
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        config = BackupConfig.from_env(env_file=env_file)
    except DatapriusConfigError as e:
        out.error(str(e))
        ctx.exit(1)

    ctx.obj["config"] = config.with_overrides(
        client_id=client_id,
        client_secret=client_secret,
        api_url=api_url,
    )


@main.command()
@click.option(
    "--source",
    "-s",
    "source_path",
    help="Remote folder to back up (env: DP_FOLDER_DIR, default: /TEST)",
)
@click.option(
    "--dest",
    "-d",
    "backup_dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Local backup directory (env: BACKUP_DIR, default: ./dataprius_backup)",
)
@click.option(
    "--workers",
    "-j",
    type=int,
    default=None,
    help="Number of parallel downloads per folder (env: DP_WORKERS, default: 1)",
)
@click.option(
    "--max-pages",
    type=int,
    default=None,
    help="Maximum pages fetched for one folder listing (env: DP_MAX_PAGES)",
)
@click.option("--no-progress", is_flag=True, help="Disable progress display")
@click.pass_context
def backup(
    ctx: Any,
    source_path: Optional[str],
    backup_dir: Optional[Path],
    workers: Optional[int],
    max_pages: Optional[int],
    no_progress: bool,
) -> None:
    """Back up a remote folder tree.

    Only files that are missing locally or whose size or modification time
    differ from the remote copy are downloaded. Files are never deleted.

    Examples:
        pydataprius backup                          # Use DP_FOLDER_DIR / BACKUP_DIR
        pydataprius backup -s /Archive -d ./backup  # Explicit paths
        pydataprius backup -s /Archive -j 4         # 4 parallel downloads
    """
    out: OutputFormatter = ctx.obj["out"]
    config: BackupConfig = ctx.obj["config"].with_overrides(
        source_path=source_path,
        backup_dir=backup_dir,
        max_workers=workers,
        max_pages=max_pages,
    )

    client = _create_client(ctx, config)

    def create_engine(tracker: Optional[SyncProgressTracker]) -> SyncEngine:
        return SyncEngine.from_config(client, config, progress=tracker)

    out.info(f"Backing up {config.source_path} to {config.destination}")
    if config.max_workers > 1:
        out.info(f"Parallel workers: {config.max_workers}")

    try:
        if no_progress or out.quiet or out.json_output:
            stats = create_engine(None).backup(config.source_path, config.backup_dir)
        else:
            stats = run_backup_with_progress(
                create_engine, config.source_path, config.backup_dir
            )
    except KeyboardInterrupt:
        out.warning("\nBackup cancelled by user")
        ctx.exit(1)
    except DatapriusError as e:
        out.error(f"Backup failed: {e}")
        ctx.exit(1)
    finally:
        client.close()

    if out.json_output:
        out.output_json(stats.to_dict())
    else:
        out.print_summary(
            "Backup Summary",
            [
                ("Destination", str(config.destination)),
                ("Folders", str(stats.folders)),
                (
                    "Downloaded",
                    f"{stats.downloads} ({format_size(stats.bytes_downloaded)})",
                ),
                ("Up to date", str(stats.skips)),
                ("Failed files", str(stats.errors)),
                ("Failed folders", str(stats.folder_errors)),
            ],
        )
        for failed in stats.failed_files:
            out.warning(f"  Failed: {failed}")
        if stats.mtime_failures:
            out.warning(
                f"Could not set modification time on {stats.mtime_failures} file(s)"
            )

    if not stats.ok:
        out.error(
            f"Backup failed: {stats.folder_errors} folder(s) could not be backed up"
        )
        for failed in stats.failed_folders:
            out.warning(f"  Folder: {failed}")
        ctx.exit(1)

    out.success("Backup finished successfully.")


@main.command()
@click.argument("path", type=str)
@click.pass_context
def resolve(ctx: Any, path: str) -> None:
    """Print the folder ID of a remote folder path.

    PATH: Remote folder path (e.g., /Archive/2024)
    """
    out: OutputFormatter = ctx.obj["out"]
    client = _create_client(ctx, ctx.obj["config"])

    try:
        folder_id = FolderEntriesManager(client).resolve_path(path)
    except DatapriusError as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        client.close()

    if out.json_output:
        out.output_json({"path": path, "id": folder_id})
    else:
        click.echo(folder_id)


@main.command()
@click.argument("path", type=str, required=False, default=None)
@click.pass_context
def ls(ctx: Any, path: Optional[str]) -> None:
    """List subfolders and files of a remote folder.

    PATH: Remote folder path (defaults to DP_FOLDER_DIR)
    """
    out: OutputFormatter = ctx.obj["out"]
    config: BackupConfig = ctx.obj["config"]
    path = path or config.source_path
    client = _create_client(ctx, config)

    try:
        manager = FolderEntriesManager(client, max_pages=config.max_pages)
        folder_id = manager.resolve_path(path)
        folders = manager.list_subfolders(folder_id)
        files = manager.list_files(folder_id)
    except DatapriusError as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        client.close()

    rows: list[tuple[str, ...]] = [("folder", f.name, "", "", f.id) for f in folders]
    for f in files:
        rows.append(
            (
                "file",
                f.name,
                format_size(f.size) if f.size is not None else "",
                f.modified_at.isoformat() if f.modified_at else "",
                f.id,
            )
        )

    if not rows and not out.json_output:
        out.info(f"{path} is empty")
        return
    out.print_table(path, ["Type", "Name", "Size", "Modified", "ID"], rows)


if __name__ == "__main__":
    main()
