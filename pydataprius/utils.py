"""Utility functions for Dataprius backups."""

import unicodedata
from datetime import datetime, timedelta, timezone
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

DEFAULT_API_URL: str = "https://api.v2.dataprius.com"

# Retry configuration for transient HTTP errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Upper bound on pages fetched for a single listing
DEFAULT_MAX_PAGES: int = 10000

# Allowed skew between remote and local modification times
MTIME_TOLERANCE_MS: int = 2000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)
_ONE_US = timedelta(microseconds=1)


# =============================================================================
# Timestamp utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp from the Dataprius API.

    A trailing ``Z`` or an explicit offset is honoured. Timestamps without an
    offset are interpreted in the local timezone.

    Args:
        timestamp_str: Timestamp string (e.g., "2024-01-01T00:00:00Z")

    Returns:
        Timezone-aware datetime, or None if the value cannot be parsed

    Examples:
        >>> parse_iso_timestamp("2024-01-01T00:00:00Z").isoformat()
        '2024-01-01T00:00:00+00:00'
    """
    if not timestamp_str:
        return None

    value = timestamp_str.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        # Some servers send more than six fractional digits
        if "." not in value:
            return None
        head, _, tail = value.partition(".")
        fraction, offset = tail, ""
        for sign in ("+", "-"):
            if sign in tail:
                fraction, rest = tail.split(sign, 1)
                offset = sign + rest
                break
        digits = "".join(c for c in fraction if c.isdigit()).ljust(6, "0")[:6]
        try:
            dt = datetime.fromisoformat(f"{head}.{digits}{offset}")
        except ValueError:
            return None

    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt


def to_epoch_ms(dt: datetime) -> int:
    """Convert an aware datetime to integer milliseconds since the epoch."""
    return (dt - _EPOCH) // _ONE_MS


def to_epoch_ns(dt: datetime) -> int:
    """Convert an aware datetime to integer nanoseconds since the epoch."""
    return ((dt - _EPOCH) // _ONE_US) * 1000


# =============================================================================
# Name utilities
# =============================================================================


def normalize_name(name: str) -> str:
    """Normalize a remote entry name to Unicode NFC.

    Visually identical names with different combining-character sequences
    map to the same local file name.

    Examples:
        >>> normalize_name("cafe\\u0301") == "caf\\u00e9"
        True
    """
    return unicodedata.normalize("NFC", name)


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def is_safe_name(name: str) -> bool:
    """Check that a remote name can be used as a single local path component.

    Examples:
        >>> is_safe_name("report.pdf")
        True
        >>> is_safe_name("../etc")
        False
    """
    return name not in ("", ".", "..") and "/" not in name and "\\" not in name
