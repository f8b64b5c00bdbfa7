"""Local file state used for freshness checks."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalFile:
    """Represents a local file with metadata, read at decision time."""

    path: Path
    """Absolute path to the file"""

    size: int
    """File size in bytes"""

    mtime_ns: int
    """Last modification time (nanoseconds since the epoch)"""

    @property
    def mtime(self) -> float:
        """Last modification time (Unix timestamp)."""
        return self.mtime_ns / 1e9

    @property
    def mtime_ms(self) -> int:
        """Last modification time in whole milliseconds since the epoch."""
        return self.mtime_ns // 1_000_000

    @classmethod
    def from_path(cls, file_path: Path) -> Optional["LocalFile"]:
        """Stat a path.

        Args:
            file_path: Path to the file

        Returns:
            LocalFile instance, or None if no regular file exists there
        """
        try:
            stat = file_path.stat()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.debug("Cannot stat %s: %s", file_path, e)
            return None

        if not file_path.is_file():
            return None

        return cls(path=file_path, size=stat.st_size, mtime_ns=stat.st_mtime_ns)
