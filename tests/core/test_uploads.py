"""Tests for storage upload helpers."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from tutoring.backend import StorageError
from tutoring.backend.memory import InMemoryStorageGateway
from tutoring.core.uploads import (
    build_object_path,
    fetch_file,
    remove_by_url,
    safe_file_name,
    store_upload,
)


class TestObjectNames:
    """Tests for object naming."""

    def test_build_object_path(self):
        """Paths are prefix/epoch-ms_name."""
        assert build_object_path("answer-keys", "key.pdf", now_ms=1700000000000) == (
            "answer-keys/1700000000000_key.pdf"
        )

    def test_prefix_slashes_trimmed(self):
        """Leading and trailing slashes in the prefix are dropped."""
        assert build_object_path("/worksheets/7/", "a.pdf", now_ms=1) == "worksheets/7/1_a.pdf"

    def test_safe_file_name(self):
        """Directories and unsafe characters are removed."""
        assert safe_file_name("../../etc/passwd") == "passwd"
        assert safe_file_name("My Worksheet (1).pdf") == "My_Worksheet_1_.pdf"
        assert safe_file_name("C:\\Users\\ana\\hw.docx") == "hw.docx"
        assert safe_file_name("...") == "upload"


class TestStoreAndFetch:
    """Tests for store_upload / fetch_file / remove_by_url."""

    @pytest.fixture
    def storage(self):
        return InMemoryStorageGateway()

    def test_store_upload(self, storage):
        """Stored files get a public URL inside the bucket."""
        stored = store_upload(storage, "worksheets", "worksheets/3", "hw.pdf", b"pdf-bytes")

        assert stored.path.startswith("worksheets/3/")
        assert stored.path.endswith("_hw.pdf")
        assert stored.url.endswith(f"/worksheets/{stored.path}")
        assert storage.download("worksheets", stored.path) == b"pdf-bytes"

    def test_fetch_from_bucket(self, storage):
        """URLs inside a known bucket are read from storage."""
        stored = store_upload(storage, "assignments", "answer-keys", "key.txt", b"answers")

        with patch("tutoring.core.uploads.httpx.get") as get:
            assert fetch_file(storage, stored.url, ["worksheets", "assignments"]) == b"answers"
        get.assert_not_called()

    def test_fetch_over_http(self, storage):
        """Other URLs are downloaded over HTTP."""
        response = MagicMock()
        response.content = b"remote"
        with patch("tutoring.core.uploads.httpx.get", return_value=response) as get:
            assert fetch_file(storage, "https://cdn.example.com/key.pdf", ["worksheets"]) == b"remote"
        assert get.call_args.args[0] == "https://cdn.example.com/key.pdf"

    def test_fetch_http_error(self, storage):
        """HTTP failures become StorageError."""
        with patch(
            "tutoring.core.uploads.httpx.get", side_effect=httpx.ConnectError("refused")
        ):
            with pytest.raises(StorageError):
                fetch_file(storage, "https://cdn.example.com/key.pdf", ["worksheets"])

    def test_remove_by_url(self, storage):
        """Objects are removed by their public URL."""
        stored = store_upload(storage, "worksheets", "worksheets/1", "a.pdf", b"x")

        assert remove_by_url(storage, "worksheets", stored.url) is True
        with pytest.raises(StorageError):
            storage.download("worksheets", stored.path)
        assert remove_by_url(storage, "worksheets", "https://elsewhere/a.pdf") is False
