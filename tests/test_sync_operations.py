"""Tests for single-file fetch operations."""

import os
import stat
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest

from pydataprius.exceptions import (
    DatapriusAuthenticationError,
    DatapriusDownloadError,
    DatapriusNetworkError,
)
from pydataprius.models import FileRecord
from pydataprius.sync.operations import (
    FetchStatus,
    SyncOperations,
    apply_remote_mtime,
    local_path_for,
    write_file_atomic,
)
from pydataprius.utils import to_epoch_ns

REMOTE_TIME = datetime(2024, 3, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)


def _remote(name="a.txt", content=b"hello", modified_at=REMOTE_TIME) -> FileRecord:
    return FileRecord(
        id="f1", name=name, size=len(content), modified_at=modified_at
    )


@pytest.fixture
def mock_client():
    """Create a mock API client returning fixed content."""
    client = Mock()
    client.get_file_content.return_value = b"hello"
    return client


class TestLocalPathFor:
    """Tests for local_path_for."""

    def test_nfc_normalized(self, tmp_path):
        """Decomposed names map to their composed form."""
        path = local_path_for(_remote(name="cafe\u0301.txt"), tmp_path)
        assert path == tmp_path / "caf\u00e9.txt"

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b", "..\\x"])
    def test_unsafe_names_rejected(self, tmp_path, name):
        """Names that would leave the directory are rejected."""
        with pytest.raises(DatapriusDownloadError):
            local_path_for(_remote(name=name), tmp_path)


class TestWriteHelpers:
    """Tests for write_file_atomic and apply_remote_mtime."""

    def test_write_creates_parent(self, tmp_path):
        """Missing parent directories are created."""
        target = tmp_path / "sub" / "a.txt"
        write_file_atomic(target, b"data")
        assert target.read_bytes() == b"data"

    def test_write_replaces_existing(self, tmp_path):
        """An existing file is replaced and no temporary file remains."""
        target = tmp_path / "a.txt"
        target.write_bytes(b"old content")
        write_file_atomic(target, b"new")
        assert target.read_bytes() == b"new"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.txt"]

    def test_write_uses_default_file_mode(self, tmp_path):
        """Written files get the same mode as any new file under the umask."""
        reference = tmp_path / "reference.txt"
        reference.write_bytes(b"x")
        target = tmp_path / "a.txt"

        write_file_atomic(target, b"data")

        assert stat.S_IMODE(target.stat().st_mode) == stat.S_IMODE(
            reference.stat().st_mode
        )

    def test_write_failure_cleans_up(self, tmp_path):
        """A failed rename leaves the old file and no temporary file."""
        target = tmp_path / "a.txt"
        target.write_bytes(b"old")
        with patch("pydataprius.sync.operations.os.replace", side_effect=OSError):
            with pytest.raises(OSError):
                write_file_atomic(target, b"new")
        assert target.read_bytes() == b"old"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.txt"]

    def test_apply_remote_mtime(self, tmp_path):
        """Access and modification time are set with full precision."""
        target = tmp_path / "a.txt"
        target.write_bytes(b"x")
        assert apply_remote_mtime(target, REMOTE_TIME)
        st = target.stat()
        assert st.st_mtime_ns == to_epoch_ns(REMOTE_TIME)
        assert st.st_atime_ns == to_epoch_ns(REMOTE_TIME)

    def test_apply_remote_mtime_missing_time(self, tmp_path):
        """No remote time means nothing is applied."""
        target = tmp_path / "a.txt"
        target.write_bytes(b"x")
        assert not apply_remote_mtime(target, None)

    def test_apply_remote_mtime_failure(self, tmp_path):
        """OS errors are reported as False."""
        assert not apply_remote_mtime(tmp_path / "missing", REMOTE_TIME)


class TestFetchFile:
    """Tests for SyncOperations.fetch_file."""

    def test_downloads_new_file(self, tmp_path, mock_client):
        """A missing file is downloaded and gets the remote mtime."""
        ops = SyncOperations(mock_client)

        result = ops.fetch_file(_remote(), tmp_path)

        assert result.status == FetchStatus.DOWNLOADED
        assert result.downloaded
        assert result.bytes_written == 5
        assert (tmp_path / "a.txt").read_bytes() == b"hello"
        assert (tmp_path / "a.txt").stat().st_mtime_ns == to_epoch_ns(REMOTE_TIME)
        mock_client.get_file_content.assert_called_once_with("f1")

    def test_skip_makes_no_request(self, tmp_path, mock_client):
        """An up to date file is skipped without contacting the server."""
        target = tmp_path / "a.txt"
        target.write_bytes(b"hello")
        ns = to_epoch_ns(REMOTE_TIME)
        os.utime(target, ns=(ns, ns))

        result = SyncOperations(mock_client).fetch_file(_remote(), tmp_path)

        assert result.status == FetchStatus.SKIPPED
        assert not result.downloaded
        mock_client.get_file_content.assert_not_called()

    def test_second_fetch_skips(self, tmp_path, mock_client):
        """Fetching the same record twice downloads only once."""
        ops = SyncOperations(mock_client)
        ops.fetch_file(_remote(), tmp_path)
        result = ops.fetch_file(_remote(), tmp_path)

        assert result.status == FetchStatus.SKIPPED
        assert mock_client.get_file_content.call_count == 1

    def test_mtime_failure_status(self, tmp_path, mock_client):
        """Content is kept when the modification time cannot be applied."""
        with patch(
            "pydataprius.sync.operations.os.utime", side_effect=OSError("denied")
        ):
            result = SyncOperations(mock_client).fetch_file(_remote(), tmp_path)

        assert result.status == FetchStatus.DOWNLOADED_MTIME_FAILED
        assert result.downloaded
        assert (tmp_path / "a.txt").read_bytes() == b"hello"

    def test_download_error_leaves_existing_file(self, tmp_path, mock_client):
        """A failed download does not touch the existing copy."""
        target = tmp_path / "a.txt"
        target.write_bytes(b"old")
        mock_client.get_file_content.side_effect = DatapriusNetworkError("reset")

        with pytest.raises(DatapriusDownloadError, match="reset"):
            SyncOperations(mock_client).fetch_file(_remote(), tmp_path)

        assert target.read_bytes() == b"old"

    def test_authentication_error_propagates(self, tmp_path, mock_client):
        """Authentication failures are not wrapped."""
        mock_client.get_file_content.side_effect = DatapriusAuthenticationError("x")

        with pytest.raises(DatapriusAuthenticationError):
            SyncOperations(mock_client).fetch_file(_remote(), tmp_path)

    def test_write_error_is_download_error(self, tmp_path, mock_client):
        """Local write failures are reported as download errors."""
        with patch(
            "pydataprius.sync.operations.write_file_atomic",
            side_effect=PermissionError("read-only"),
        ):
            with pytest.raises(DatapriusDownloadError, match="read-only"):
                SyncOperations(mock_client).fetch_file(_remote(), tmp_path)
