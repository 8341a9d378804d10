"""Contracts for the hosted backend (auth, tables, object storage).

The API never talks to the provider SDK directly: route handlers and
repositories go through the three gateways defined here. Two
implementations exist:

- SupabaseBackend: the hosted provider (production)
- InMemoryBackend: test double, also usable for offline development
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

Row = dict[str, Any]
Filters = dict[str, Any]


# =============================================================================
# RECORDS
# =============================================================================


@dataclass
class AuthUser:
    """Authenticated user as returned by the provider."""

    id: str
    email: str
    created_at: str
    user_metadata: dict[str, Any] = field(default_factory=dict)

    def to_public_dict(self, include_metadata: bool = False) -> dict[str, Any]:
        """User fields safe to return to clients."""
        data: dict[str, Any] = {
            "id": self.id,
            "email": self.email,
            "created_at": self.created_at,
        }
        if include_metadata:
            data["user_metadata"] = self.user_metadata
        return data


@dataclass
class AuthSession:
    """Session tokens issued at login."""

    access_token: str
    refresh_token: str
    expires_at: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }


# =============================================================================
# ERRORS
# =============================================================================


class BackendError(Exception):
    """Error reported by the hosted backend."""

    pass


class BackendConfigError(BackendError):
    """Backend is not configured (missing URL or key)."""

    pass


class AuthError(BackendError):
    """Authentication rejected: bad credentials, invalid or expired token."""

    pass


class RecordNotFoundError(BackendError):
    """A single-row lookup matched no row."""

    def __init__(self, table: str, filters: Filters):
        self.table = table
        self.filters = filters
        super().__init__(f"No row in '{table}' matching {filters}")


class StorageError(BackendError):
    """Object storage operation failed."""

    pass


# =============================================================================
# GATEWAYS
# =============================================================================


class AuthGateway(Protocol):
    """Operations the API needs from the auth provider."""

    def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> AuthUser:
        ...

    def sign_in(self, email: str, password: str) -> tuple[AuthUser, AuthSession]:
        ...

    def get_user(self, access_token: str) -> AuthUser:
        ...

    def sign_out(self, access_token: str) -> None:
        ...

    def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> AuthUser:
        ...


class TableGateway(Protocol):
    """Equality-filtered row operations on named tables."""

    def select(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        ...

    def select_one(self, table: str, filters: Filters) -> Row:
        ...

    def insert(self, table: str, rows: list[Row]) -> list[Row]:
        ...

    def update(self, table: str, values: Row, filters: Filters) -> list[Row]:
        ...

    def delete(self, table: str, filters: Filters) -> list[Row]:
        ...


class StorageGateway(Protocol):
    """Object storage operations, addressed by bucket and path."""

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> None:
        ...

    def public_url(self, bucket: str, path: str) -> str:
        ...

    def download(self, bucket: str, path: str) -> bytes:
        ...

    def remove(self, bucket: str, paths: list[str]) -> None:
        ...


class Backend(Protocol):
    """Bundle of the three gateways."""

    auth: AuthGateway
    tables: TableGateway
    storage: StorageGateway


def object_path_from_url(bucket: str, url: str | None) -> str | None:
    """Recover the object path from a public URL of the given bucket.

    Returns None when the URL does not point into the bucket.
    """
    if not url:
        return None
    marker = f"/{bucket}/"
    if marker not in url:
        return None
    path = url.split(marker, 1)[1]
    return path.split("?", 1)[0] or None
