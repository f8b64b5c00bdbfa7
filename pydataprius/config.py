"""Configuration for Dataprius backups."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv

from .exceptions import DatapriusConfigError
from .utils import DEFAULT_API_URL, DEFAULT_MAX_PAGES

DEFAULT_SOURCE_PATH = "/TEST"
DEFAULT_BACKUP_DIR = "dataprius_backup"

ENV_CLIENT_ID = "DP_CLIENT_ID"
ENV_CLIENT_SECRET = "DP_CLIENT_SECRET"
ENV_API_URL = "DP_API_URL"
ENV_SOURCE_PATH = "DP_FOLDER_DIR"
ENV_BACKUP_DIR = "BACKUP_DIR"
ENV_WORKERS = "DP_WORKERS"
ENV_MAX_PAGES = "DP_MAX_PAGES"


def _int_from_env(env: Any, name: str, default: int) -> int:
    value = env.get(name)
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise DatapriusConfigError(
            f"{name} must be an integer, got {value!r}"
        ) from e


@dataclass(frozen=True)
class BackupConfig:
    """Resolved settings for one backup run.

    Instances are immutable and passed explicitly to the client and the
    sync engine.
    """

    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    api_url: str = DEFAULT_API_URL
    source_path: str = DEFAULT_SOURCE_PATH
    backup_dir: Path = field(default_factory=lambda: Path(DEFAULT_BACKUP_DIR))
    max_workers: int = 1
    max_pages: int = DEFAULT_MAX_PAGES
    timeout: float = 60.0

    @classmethod
    def from_env(
        cls,
        env_file: str | Path | None = None,
        environ: dict[str, str] | None = None,
    ) -> BackupConfig:
        """Build a configuration from environment variables.

        Variables from ``env_file`` (or a ``.env`` file found from the
        current directory) are loaded first without overriding variables
        that are already set.

        Args:
            env_file: Optional path to a dotenv file
            environ: Mapping to read instead of ``os.environ``

        Returns:
            BackupConfig instance

        Raises:
            DatapriusConfigError: If a numeric variable is not an integer
        """
        if environ is None:
            if env_file is not None:
                load_dotenv(dotenv_path=env_file, override=False)
            else:
                load_dotenv(find_dotenv(usecwd=True), override=False)
            environ = dict(os.environ)

        return cls(
            client_id=environ.get(ENV_CLIENT_ID, ""),
            client_secret=environ.get(ENV_CLIENT_SECRET, ""),
            api_url=environ.get(ENV_API_URL) or DEFAULT_API_URL,
            source_path=environ.get(ENV_SOURCE_PATH) or DEFAULT_SOURCE_PATH,
            backup_dir=Path(environ.get(ENV_BACKUP_DIR) or DEFAULT_BACKUP_DIR),
            max_workers=_int_from_env(environ, ENV_WORKERS, 1),
            max_pages=_int_from_env(environ, ENV_MAX_PAGES, DEFAULT_MAX_PAGES),
        )

    def with_overrides(self, **overrides: Any) -> BackupConfig:
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if "backup_dir" in values:
            values["backup_dir"] = Path(values["backup_dir"])
        return replace(self, **values)

    def validate(self) -> None:
        """Check that the configuration can be used for a backup.

        Raises:
            DatapriusConfigError: If credentials are missing or limits are invalid
        """
        if not self.client_id or not self.client_secret:
            raise DatapriusConfigError(
                "API credentials not configured. Please set "
                f"{ENV_CLIENT_ID} and {ENV_CLIENT_SECRET} environment variables."
            )
        if self.max_workers < 1:
            raise DatapriusConfigError("max_workers must be at least 1")
        if self.max_pages < 1:
            raise DatapriusConfigError("max_pages must be at least 1")

    @property
    def destination(self) -> Path:
        """Local directory mirroring ``source_path``.

        ``/Archive/2024`` with backup dir ``/backups`` maps to
        ``/backups/Archive/2024``; the remote root maps to ``/backups/root``.
        """
        return destination_for(self.backup_dir, self.source_path)


def destination_for(backup_dir: Path, source_path: str) -> Path:
    """Map a remote source path onto a directory below ``backup_dir``."""
    parts = [p for p in source_path.strip().split("/") if p]
    if not parts:
        return Path(backup_dir) / "root"
    return Path(backup_dir).joinpath(*parts)
