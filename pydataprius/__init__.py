"""PyDataprius - back up Dataprius folders to the local filesystem."""

from .api import DatapriusClient
from .auth import TokenProvider
from .config import BackupConfig
from .exceptions import (
    DatapriusAPIError,
    DatapriusAuthenticationError,
    DatapriusConfigError,
    DatapriusDownloadError,
    DatapriusError,
    DatapriusInvalidResponseError,
    DatapriusListError,
    DatapriusNetworkError,
    DatapriusNotFoundError,
    DatapriusPaginationError,
    DatapriusPermissionError,
    DatapriusRateLimitError,
    DatapriusResolutionError,
)
from .folder_entries_manager import EntryKind, FolderEntriesManager
from .models import FileRecord, FolderRecord
from .utils import normalize_name

__all__ = [
    "DatapriusClient",
    "TokenProvider",
    "BackupConfig",
    "FolderEntriesManager",
    "EntryKind",
    "FileRecord",
    "FolderRecord",
    "DatapriusError",
    "DatapriusAPIError",
    "DatapriusAuthenticationError",
    "DatapriusConfigError",
    "DatapriusDownloadError",
    "DatapriusInvalidResponseError",
    "DatapriusListError",
    "DatapriusNetworkError",
    "DatapriusNotFoundError",
    "DatapriusPaginationError",
    "DatapriusPermissionError",
    "DatapriusRateLimitError",
    "DatapriusResolutionError",
    "normalize_name",
]
