"""Tests for the in-memory backend gateways."""

import time

import pytest

from tutoring.backend import AuthError, InMemoryBackend, RecordNotFoundError, StorageError
from tutoring.backend.memory import InMemoryAuthGateway, InMemoryStorageGateway, InMemoryTableGateway


class TestInMemoryAuth:
    """Tests for accounts and tokens."""

    @pytest.fixture
    def auth(self):
        return InMemoryAuthGateway()

    def test_sign_up_and_in(self, auth):
        """A registered user can sign in and resolve their token."""
        user = auth.sign_up("Teacher@Example.com", "secret123", {"name": "T"})
        signed_in, session = auth.sign_in("teacher@example.com", "secret123")

        assert signed_in.id == user.id
        assert user.email == "teacher@example.com"
        assert user.user_metadata == {"name": "T"}
        assert session.access_token
        assert session.refresh_token
        assert auth.get_user(session.access_token).id == user.id

    def test_duplicate_sign_up(self, auth):
        """Registering the same email twice fails."""
        auth.sign_up("a@example.com", "secret123", {})
        with pytest.raises(AuthError, match="already registered"):
            auth.sign_up("A@example.com", "other-pass", {})

    def test_wrong_password(self, auth):
        """Bad credentials are rejected."""
        auth.sign_up("a@example.com", "secret123", {})
        with pytest.raises(AuthError, match="Invalid login credentials"):
            auth.sign_in("a@example.com", "wrong")

    def test_unknown_token(self, auth):
        """Unknown tokens are rejected."""
        with pytest.raises(AuthError):
            auth.get_user("not-a-token")

    def test_expired_token(self, auth, monkeypatch):
        """Tokens stop working after their TTL."""
        auth.sign_up("a@example.com", "secret123", {})
        _, session = auth.sign_in("a@example.com", "secret123")

        real_time = time.time
        monkeypatch.setattr("tutoring.backend.memory.time.time", lambda: real_time() + 7200)
        with pytest.raises(AuthError):
            auth.get_user(session.access_token)

    def test_sign_out_revokes_token(self, auth):
        """Signed-out tokens no longer resolve."""
        auth.sign_up("a@example.com", "secret123", {})
        _, session = auth.sign_in("a@example.com", "secret123")
        auth.sign_out(session.access_token)

        with pytest.raises(AuthError):
            auth.get_user(session.access_token)

    def test_update_metadata_merges(self, auth):
        """Metadata updates merge into existing values."""
        user = auth.sign_up("a@example.com", "secret123", {"name": "A"})
        updated = auth.update_user_metadata(user.id, {"school": "Lincoln"})
        assert updated.user_metadata == {"name": "A", "school": "Lincoln"}


class TestInMemoryTables:
    """Tests for row operations."""

    @pytest.fixture
    def tables(self):
        return InMemoryTableGateway()

    def test_insert_assigns_ids_and_defaults(self, tables):
        """Inserted rows get ids and timestamp defaults."""
        rows = tables.insert("worksheets", [{"file_name": "a.pdf"}, {"file_name": "b.pdf"}])

        assert [r["id"] for r in rows] == [1, 2]
        assert all("created_at" in r and "upload_date" in r for r in rows)

    def test_select_filters_compare_as_strings(self, tables):
        """Path-style string ids match integer columns."""
        tables.insert("students", [{"name": "Ana"}, {"name": "Ben"}])
        assert tables.select("students", {"id": "2"})[0]["name"] == "Ben"

    def test_select_order(self, tables):
        """order_by sorts rows, descending when asked."""
        tables.insert("t", [{"v": "b"}, {"v": "a"}, {"v": "c"}])
        assert [r["v"] for r in tables.select("t", order_by="v")] == ["a", "b", "c"]
        assert [r["v"] for r in tables.select("t", order_by="v", descending=True)] == ["c", "b", "a"]

    def test_select_returns_copies(self, tables):
        """Mutating a returned row does not change storage."""
        tables.insert("t", [{"v": 1}])
        tables.select("t")[0]["v"] = 99
        assert tables.select("t")[0]["v"] == 1

    def test_select_one_missing(self, tables):
        """select_one raises when nothing matches."""
        with pytest.raises(RecordNotFoundError):
            tables.select_one("t", {"id": 1})

    def test_update_and_delete(self, tables):
        """update and delete return the affected rows."""
        tables.insert("t", [{"v": 1}, {"v": 2}])

        updated = tables.update("t", {"v": 10}, {"id": 1})
        assert updated[0]["v"] == 10

        deleted = tables.delete("t", {"id": 2})
        assert [r["id"] for r in deleted] == [2]
        assert len(tables.select("t")) == 1
        assert tables.delete("t", {"id": 2}) == []


class TestInMemoryStorage:
    """Tests for object storage."""

    @pytest.fixture
    def storage(self):
        return InMemoryStorageGateway()

    def test_upload_download_and_url(self, storage):
        """Uploaded bytes are downloadable and have a public URL."""
        storage.upload("worksheets", "a/b.txt", b"hello", content_type="text/plain")

        assert storage.download("worksheets", "a/b.txt") == b"hello"
        assert storage.public_url("worksheets", "a/b.txt") == (
            "https://storage.test/storage/v1/object/public/worksheets/a/b.txt"
        )

    def test_upload_conflict_without_upsert(self, storage):
        """Re-uploading to the same path needs upsert."""
        storage.upload("b", "x", b"1")
        with pytest.raises(StorageError):
            storage.upload("b", "x", b"2")
        storage.upload("b", "x", b"2", upsert=True)
        assert storage.download("b", "x") == b"2"

    def test_remove(self, storage):
        """Removed objects are gone."""
        storage.upload("b", "x", b"1")
        storage.remove("b", ["x", "missing"])
        with pytest.raises(StorageError):
            storage.download("b", "x")


class TestInMemoryBackend:
    """Tests for the backend bundle."""

    def test_reset(self):
        """reset drops all state."""
        backend = InMemoryBackend()
        backend.auth.sign_up("a@example.com", "secret123", {})
        backend.tables.insert("t", [{"v": 1}])
        backend.storage.upload("b", "x", b"1")

        backend.reset()

        assert backend.auth.users == {}
        assert backend.tables.select("t") == []
        assert backend.storage.objects == {}
