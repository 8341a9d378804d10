"""In-memory backend: test double for the hosted provider.

Mirrors the observable behaviour the API relies on (generated ids and
timestamps, opaque tokens, public URLs) without any network access. Also
selected with `backend.kind: memory` for offline development; nothing is
persisted across restarts.
"""

from __future__ import annotations

import copy
import hashlib
import secrets
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from tutoring.backend.base import (
    AuthError,
    AuthSession,
    AuthUser,
    BackendError,
    Filters,
    RecordNotFoundError,
    Row,
    StorageError,
)

SESSION_TTL_SECONDS = 3600

# Columns filled by database defaults on insert
TIMESTAMP_DEFAULTS: dict[str, tuple[str, ...]] = {
    "answer_keys": ("upload_date",),
    "worksheets": ("upload_date",),
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


@dataclass
class _StoredUser:
    user: AuthUser
    password_hash: str


class InMemoryAuthGateway:
    """Email/password accounts and bearer tokens held in dictionaries."""

    def __init__(self) -> None:
        self.users: dict[str, _StoredUser] = {}
        self.sessions: dict[str, tuple[str, int]] = {}

    def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> AuthUser:
        key = email.strip().lower()
        if key in self.users:
            raise AuthError("User already registered")
        user = AuthUser(
            id=str(uuid.uuid4()),
            email=key,
            created_at=_now_iso(),
            user_metadata=dict(metadata),
        )
        self.users[key] = _StoredUser(user=user, password_hash=_hash_password(password))
        return user

    def sign_in(self, email: str, password: str) -> tuple[AuthUser, AuthSession]:
        stored = self.users.get(email.strip().lower())
        if stored is None or stored.password_hash != _hash_password(password):
            raise AuthError("Invalid login credentials")

        expires_at = int(time.time()) + SESSION_TTL_SECONDS
        access_token = secrets.token_urlsafe(32)
        self.sessions[access_token] = (stored.user.id, expires_at)
        session = AuthSession(
            access_token=access_token,
            refresh_token=secrets.token_urlsafe(24),
            expires_at=expires_at,
        )
        return stored.user, session

    def get_user(self, access_token: str) -> AuthUser:
        entry = self.sessions.get(access_token)
        if entry is None:
            raise AuthError("The provided token is invalid or expired")
        user_id, expires_at = entry
        if expires_at < int(time.time()):
            del self.sessions[access_token]
            raise AuthError("The provided token is invalid or expired")
        return self._user_by_id(user_id)

    def sign_out(self, access_token: str) -> None:
        self.sessions.pop(access_token, None)

    def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> AuthUser:
        user = self._user_by_id(user_id)
        user.user_metadata = {**user.user_metadata, **(metadata or {})}
        return user

    def _user_by_id(self, user_id: str) -> AuthUser:
        for stored in self.users.values():
            if stored.user.id == user_id:
                return stored.user
        raise AuthError(f"User not found: {user_id}")


class InMemoryTableGateway:
    """Tables as lists of dict rows with auto-increment integer ids."""

    def __init__(self) -> None:
        self.tables: dict[str, list[Row]] = {}
        self._next_id: dict[str, int] = {}

    @staticmethod
    def _matches(row: Row, filters: Filters | None) -> bool:
        for column, value in (filters or {}).items():
            if str(row.get(column)) != str(value):
                return False
        return True

    def select(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        rows = [copy.deepcopy(r) for r in self.tables.get(table, []) if self._matches(r, filters)]
        if order_by:
            # id breaks ties between rows written within the same microsecond
            rows.sort(
                key=lambda r: (str(r.get(order_by) or ""), r.get("id") or 0),
                reverse=descending,
            )
        return rows

    def select_one(self, table: str, filters: Filters) -> Row:
        rows = self.select(table, filters)
        if not rows:
            raise RecordNotFoundError(table, filters)
        return rows[0]

    def insert(self, table: str, rows: list[Row]) -> list[Row]:
        stored_rows = self.tables.setdefault(table, [])
        inserted = []
        for row in rows:
            if not isinstance(row, dict):
                raise BackendError(f"insert into {table} failed: row must be an object")
            new_row = copy.deepcopy(row)
            next_id = self._next_id.get(table, 1)
            new_row.setdefault("id", next_id)
            self._next_id[table] = max(next_id, int(new_row["id"])) + 1
            new_row.setdefault("created_at", _now_iso())
            for column in TIMESTAMP_DEFAULTS.get(table, ()):
                new_row.setdefault(column, _now_iso())
            stored_rows.append(new_row)
            inserted.append(copy.deepcopy(new_row))
        return inserted

    def update(self, table: str, values: Row, filters: Filters) -> list[Row]:
        updated = []
        for row in self.tables.get(table, []):
            if self._matches(row, filters):
                row.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(row))
        return updated

    def delete(self, table: str, filters: Filters) -> list[Row]:
        rows = self.tables.get(table, [])
        deleted = [r for r in rows if self._matches(r, filters)]
        self.tables[table] = [r for r in rows if not self._matches(r, filters)]
        return deleted


class InMemoryStorageGateway:
    """Objects kept as bytes keyed by (bucket, path)."""

    def __init__(self, base_url: str = "https://storage.test") -> None:
        self.base_url = base_url
        self.objects: dict[tuple[str, str], tuple[bytes, str | None]] = {}

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> None:
        if (bucket, path) in self.objects and not upsert:
            raise StorageError(f"The resource already exists: {bucket}/{path}")
        self.objects[(bucket, path)] = (bytes(data), content_type)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"

    def download(self, bucket: str, path: str) -> bytes:
        stored = self.objects.get((bucket, path))
        if stored is None:
            raise StorageError(f"Object not found: {bucket}/{path}")
        return stored[0]

    def remove(self, bucket: str, paths: list[str]) -> None:
        for path in paths:
            self.objects.pop((bucket, path), None)


@dataclass
class InMemoryBackend:
    """Backend bundle backed by process memory."""

    auth: InMemoryAuthGateway = field(default_factory=InMemoryAuthGateway)
    tables: InMemoryTableGateway = field(default_factory=InMemoryTableGateway)
    storage: InMemoryStorageGateway = field(default_factory=InMemoryStorageGateway)

    def reset(self) -> None:
        """Drop all users, rows and objects."""
        self.auth = InMemoryAuthGateway()
        self.tables = InMemoryTableGateway()
        self.storage = InMemoryStorageGateway(self.storage.base_url)
