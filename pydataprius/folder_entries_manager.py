"""Paginated folder listings and remote path resolution."""

import logging
from collections.abc import Generator
from enum import Enum
from typing import Any, Callable, Union

from .api import DatapriusClient
from .exceptions import (
    DatapriusAuthenticationError,
    DatapriusError,
    DatapriusListError,
    DatapriusPaginationError,
    DatapriusResolutionError,
)
from .models import EntriesPage, FileRecord, FolderRecord
from .utils import DEFAULT_MAX_PAGES

logger = logging.getLogger(__name__)


class EntryKind(str, Enum):
    """Collections that can be listed for a folder."""

    FILES = "files"
    """Files directly inside the folder"""

    SUBFOLDERS = "subfolders"
    """Direct child folders"""


class FolderEntriesManager:
    """Fetches folder listings across all pages and resolves remote paths."""

    def __init__(self, client: DatapriusClient, max_pages: int = DEFAULT_MAX_PAGES):
        """Initialize the folder entries manager.

        Args:
            client: Dataprius API client
            max_pages: Maximum number of pages fetched for one listing
        """
        self.client = client
        self.max_pages = max_pages

    def _page_fetcher(self, kind: EntryKind) -> Callable[[str, int], Any]:
        if kind == EntryKind.FILES:
            return self.client.list_files
        return self.client.list_folders

    def iter_pages(
        self, folder_id: str, kind: EntryKind
    ) -> Generator[EntriesPage, None, None]:
        """Yield the pages of a listing in page order.

        Page 1 is always requested. After each page the page number is
        advanced and the listing stops once it exceeds the total page count
        reported by the latest response.

        Args:
            folder_id: Identity of the folder to list
            kind: Whether to list files or subfolders

        Yields:
            EntriesPage for pages 1, 2, 3, ...

        Raises:
            DatapriusListError: If fetching any page fails
            DatapriusPaginationError: If more than ``max_pages`` pages are needed
        """
        fetch = self._page_fetcher(kind)
        page = 1

        while True:
            if page > self.max_pages:
                raise DatapriusPaginationError(
                    f"Listing {kind.value} of folder {folder_id} did not finish "
                    f"after {self.max_pages} pages",
                    folder_id=folder_id,
                    page=page,
                )

            try:
                response = fetch(folder_id, page)
            except DatapriusAuthenticationError:
                raise
            except DatapriusError as e:
                raise DatapriusListError(
                    f"Failed to list {kind.value} of folder {folder_id} "
                    f"(page {page}): {e}",
                    folder_id=folder_id,
                    page=page,
                ) from e

            result = EntriesPage.from_api_response(response)
            logger.debug(
                "Folder %s %s page %d/%d: %d item(s)",
                folder_id,
                kind.value,
                page,
                result.total_pages,
                len(result.items),
            )
            yield result

            page += 1
            if page > result.total_pages:
                break

    def list_entries(
        self, folder_id: str, kind: EntryKind
    ) -> list[Union[FileRecord, FolderRecord]]:
        """Get a complete listing, preserving backend order.

        Args:
            folder_id: Identity of the folder to list
            kind: Whether to list files or subfolders

        Returns:
            Items of all pages, page by page, in the order returned
        """
        parse: Callable[[dict[str, Any]], Union[FileRecord, FolderRecord]]
        if kind == EntryKind.FILES:
            parse = FileRecord.from_dict
        else:
            parse = FolderRecord.from_dict
        records: list[Union[FileRecord, FolderRecord]] = []
        for page in self.iter_pages(folder_id, kind):
            records.extend(parse(item) for item in page.items)
        return records

    def list_files(self, folder_id: str) -> list[FileRecord]:
        """Get all files directly inside a folder."""
        return [
            r
            for r in self.list_entries(folder_id, EntryKind.FILES)
            if isinstance(r, FileRecord)
        ]

    def list_subfolders(self, folder_id: str) -> list[FolderRecord]:
        """Get all direct child folders of a folder."""
        return [
            r
            for r in self.list_entries(folder_id, EntryKind.SUBFOLDERS)
            if isinstance(r, FolderRecord)
        ]

    def resolve_path(self, path: str) -> str:
        """Resolve a remote folder path to its folder identity.

        The first match returned by the backend is used.

        Args:
            path: Remote path (e.g., "/Archive/2024")

        Returns:
            Folder identity as a string

        Raises:
            DatapriusResolutionError: If no folder matches the path
        """
        logger.debug("Resolving folder id for path %r", path)
        try:
            response = self.client.get_folder_path(path)
        except DatapriusAuthenticationError:
            raise
        except DatapriusError as e:
            raise DatapriusResolutionError(
                f"Could not resolve folder path '{path}': {e}"
            ) from e

        data = response.get("data") if isinstance(response, dict) else None
        if not data or not isinstance(data, list) or not isinstance(data[0], dict):
            raise DatapriusResolutionError(f"Folder not found: '{path}'")

        folder_id = data[0].get("ID")
        if folder_id is None or str(folder_id) == "":
            raise DatapriusResolutionError(
                f"Can't find folder id in getpath response for '{path}'"
            )
        logger.debug("Resolved %r to folder id %s", path, folder_id)
        return str(folder_id)
