"""Unit tests for utility functions."""

from datetime import datetime, timedelta, timezone

from pydataprius.utils import (
    format_size,
    is_safe_name,
    normalize_name,
    parse_iso_timestamp,
    to_epoch_ms,
    to_epoch_ns,
)


class TestParseIsoTimestamp:
    """Tests for parse_iso_timestamp."""

    def test_parse_utc_suffix(self):
        """A trailing Z is read as UTC."""
        dt = parse_iso_timestamp("2024-01-01T00:00:00Z")
        assert dt == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_parse_explicit_offset(self):
        """An explicit offset is kept."""
        dt = parse_iso_timestamp("2024-01-01T02:00:00+02:00")
        assert dt is not None
        assert dt.utcoffset() == timedelta(hours=2)
        assert dt == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_parse_milliseconds(self):
        """Fractional seconds are preserved."""
        dt = parse_iso_timestamp("2024-01-01T00:00:00.123Z")
        assert dt is not None
        assert dt.microsecond == 123000

    def test_parse_short_fraction(self):
        """One or two fractional digits are accepted on every Python version."""
        dt = parse_iso_timestamp("2024-01-01T00:00:00.5Z")
        assert dt is not None
        assert dt.microsecond == 500000

        dt = parse_iso_timestamp("2024-01-01T00:00:00.25-05:00")
        assert dt is not None
        assert dt.microsecond == 250000
        assert dt.utcoffset() == timedelta(hours=-5)

    def test_parse_long_fraction(self):
        """More than six fractional digits are truncated."""
        dt = parse_iso_timestamp("2024-01-01T00:00:00.1234567+00:00")
        assert dt is not None
        assert dt.microsecond == 123456
        assert dt.utcoffset() == timedelta(0)

    def test_parse_naive_is_aware(self):
        """Timestamps without offset become aware in local time."""
        dt = parse_iso_timestamp("2024-01-01T00:00:00")
        assert dt is not None
        assert dt.tzinfo is not None
        assert dt.replace(tzinfo=None) == datetime(2024, 1, 1)

    def test_parse_empty(self):
        """Empty and None values give None."""
        assert parse_iso_timestamp("") is None
        assert parse_iso_timestamp(None) is None

    def test_parse_garbage(self):
        """Unparseable values give None."""
        assert parse_iso_timestamp("not a date") is None
        assert parse_iso_timestamp("2024-13-45T99:00:00.5Z") is None


class TestEpochConversion:
    """Tests for to_epoch_ms and to_epoch_ns."""

    def test_epoch_is_zero(self):
        """The Unix epoch converts to zero."""
        epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert to_epoch_ms(epoch) == 0
        assert to_epoch_ns(epoch) == 0

    def test_milliseconds_are_exact(self):
        """Conversion uses integer arithmetic without float rounding."""
        dt = datetime(2024, 1, 1, 0, 0, 0, 123000, tzinfo=timezone.utc)
        assert to_epoch_ms(dt) == 1704067200123
        assert to_epoch_ns(dt) == 1704067200123000000

    def test_sub_millisecond_truncated(self):
        """Microseconds below one millisecond are dropped for ms."""
        dt = datetime(2024, 1, 1, 0, 0, 0, 999, tzinfo=timezone.utc)
        assert to_epoch_ms(dt) == 1704067200000


class TestNames:
    """Tests for name helpers."""

    def test_normalize_name_nfc(self):
        """Decomposed characters are composed."""
        assert normalize_name("cafe\u0301.txt") == "caf\u00e9.txt"

    def test_normalize_name_unchanged(self):
        """Already composed names are unchanged."""
        assert normalize_name("caf\u00e9.txt") == "caf\u00e9.txt"

    def test_safe_names(self):
        """Ordinary names are accepted."""
        assert is_safe_name("report.pdf")
        assert is_safe_name(".hidden")
        assert is_safe_name("...")

    def test_unsafe_names(self):
        """Names that escape or span directories are rejected."""
        assert not is_safe_name("")
        assert not is_safe_name(".")
        assert not is_safe_name("..")
        assert not is_safe_name("a/b")
        assert not is_safe_name("a\\b")


class TestFormatSize:
    """Tests for format_size."""

    def test_bytes(self):
        assert format_size(0) == "0 B"
        assert format_size(512) == "512 B"

    def test_larger_units(self):
        assert format_size(1536) == "1.5 KB"
        assert format_size(1024 * 1024) == "1.0 MB"
        assert format_size(3 * 1024**3) == "3.0 GB"
