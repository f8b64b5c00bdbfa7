"""Data models for Dataprius API responses."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from .utils import parse_iso_timestamp


def _get_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


@dataclass(frozen=True)
class FolderRecord:
    """A child folder returned by a folder listing."""

    id: str
    """Opaque folder identity"""

    name: str
    """Display name of the folder"""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FolderRecord":
        """Create a FolderRecord from an API item (``ID``, ``Name``)."""
        return cls(id=_get_str(data, "ID"), name=_get_str(data, "Name"))


@dataclass(frozen=True)
class FileRecord:
    """Metadata of one remote file as of listing time."""

    id: str
    """Opaque file identity"""

    name: str
    """File name as stored remotely (not normalized)"""

    size: Optional[int]
    """Size in bytes, None if the backend did not report it"""

    modified_at: Optional[datetime]
    """Remote modification time (timezone aware)"""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileRecord":
        """Create a FileRecord from an API item.

        Args:
            data: Item with ``ID``, ``Name``, ``Size`` and ``Modified`` keys

        Returns:
            FileRecord instance
        """
        raw_size = data.get("Size")
        size: Optional[int]
        try:
            size = int(raw_size) if raw_size not in (None, "") else None
        except (TypeError, ValueError):
            size = None

        modified = data.get("Modified")
        return cls(
            id=_get_str(data, "ID"),
            name=_get_str(data, "Name"),
            size=size,
            modified_at=parse_iso_timestamp(str(modified)) if modified else None,
        )


Record = Union[FileRecord, FolderRecord]


@dataclass
class EntriesPage:
    """One page of a paginated listing."""

    items: list[dict[str, Any]] = field(default_factory=list)
    """Raw items in backend order"""

    current_page: Optional[int] = None
    """Page number reported by the backend"""

    total_pages: int = 1
    """Total number of pages reported by the backend"""

    @classmethod
    def from_api_response(cls, response: Any) -> "EntriesPage":
        """Parse a listing response.

        The response looks like::

            {"data": [...], "meta": {"pagination": {"total_pages": 3, ...}}}

        A response without pagination metadata counts as a single page.
        """
        if not isinstance(response, dict):
            return cls()

        items = response.get("data") or []
        if not isinstance(items, list):
            items = []

        meta = response.get("meta")
        pagination = meta.get("pagination") if isinstance(meta, dict) else None

        total_pages = 1
        current_page = None
        if isinstance(pagination, dict):
            try:
                total_pages = int(pagination.get("total_pages", 1))
            except (TypeError, ValueError):
                total_pages = 1
            try:
                current_page = int(pagination["current_page"])
            except (KeyError, TypeError, ValueError):
                current_page = None

        return cls(
            items=[i for i in items if isinstance(i, dict)],
            current_page=current_page,
            total_pages=total_pages,
        )
