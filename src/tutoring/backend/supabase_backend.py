"""Supabase implementation of the backend gateways.

Two SDK clients are kept apart: one for password sign-in/sign-up (it holds
the user's session) and one for table and storage access, which must keep
using the service key.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any

import structlog
from supabase import Client, ClientOptions, create_client

from tutoring.backend.base import (
    AuthError,
    AuthSession,
    AuthUser,
    BackendConfigError,
    BackendError,
    Filters,
    RecordNotFoundError,
    Row,
    StorageError,
)
from tutoring.config.app_config import BackendSettings

logger = structlog.get_logger(__name__)


def _iso(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value) if value is not None else ""


def _to_auth_user(user: Any) -> AuthUser:
    return AuthUser(
        id=str(user.id),
        email=user.email or "",
        created_at=_iso(user.created_at),
        user_metadata=dict(user.user_metadata or {}),
    )


def _client_options() -> ClientOptions:
    return ClientOptions(auto_refresh_token=False, persist_session=False)


class SupabaseAuthGateway:
    """Auth operations via Supabase Auth (GoTrue)."""

    def __init__(self, session_client: Client, admin_client: Client):
        self._session_client = session_client
        self._admin_client = admin_client

    def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> AuthUser:
        try:
            response = self._session_client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": metadata}}
            )
        except Exception as e:
            raise AuthError(str(e)) from e

        if response.user is None:
            raise AuthError("Signup did not return a user")
        return _to_auth_user(response.user)

    def sign_in(self, email: str, password: str) -> tuple[AuthUser, AuthSession]:
        try:
            response = self._session_client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            raise AuthError(str(e)) from e

        if response.user is None or response.session is None:
            raise AuthError("Invalid login credentials")

        session = AuthSession(
            access_token=response.session.access_token,
            refresh_token=response.session.refresh_token,
            expires_at=response.session.expires_at,
        )
        return _to_auth_user(response.user), session

    def get_user(self, access_token: str) -> AuthUser:
        try:
            response = self._admin_client.auth.get_user(access_token)
        except Exception as e:
            raise AuthError(str(e)) from e

        if response is None or response.user is None:
            raise AuthError("The provided token is invalid or expired")
        return _to_auth_user(response.user)

    def sign_out(self, access_token: str) -> None:
        try:
            self._admin_client.auth.admin.sign_out(access_token)
        except Exception as e:
            raise BackendError(f"Logout failed: {e}") from e

    def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> AuthUser:
        try:
            response = self._admin_client.auth.admin.update_user_by_id(
                user_id, {"user_metadata": metadata}
            )
        except Exception as e:
            raise BackendError(str(e)) from e
        return _to_auth_user(response.user)


class SupabaseTableGateway:
    """Row operations via PostgREST."""

    def __init__(self, client: Client):
        self._client = client

    @staticmethod
    def _apply_filters(query: Any, filters: Filters | None) -> Any:
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        return query

    def select(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        try:
            query = self._apply_filters(self._client.table(table).select("*"), filters)
            if order_by:
                query = query.order(order_by, desc=descending)
            return list(query.execute().data or [])
        except Exception as e:
            raise BackendError(f"select from {table} failed: {e}") from e

    def select_one(self, table: str, filters: Filters) -> Row:
        rows = self.select(table, filters)
        if not rows:
            raise RecordNotFoundError(table, filters)
        return rows[0]

    def insert(self, table: str, rows: list[Row]) -> list[Row]:
        try:
            return list(self._client.table(table).insert(rows).execute().data or [])
        except Exception as e:
            raise BackendError(f"insert into {table} failed: {e}") from e

    def update(self, table: str, values: Row, filters: Filters) -> list[Row]:
        try:
            query = self._apply_filters(self._client.table(table).update(values), filters)
            return list(query.execute().data or [])
        except Exception as e:
            raise BackendError(f"update of {table} failed: {e}") from e

    def delete(self, table: str, filters: Filters) -> list[Row]:
        try:
            query = self._apply_filters(self._client.table(table).delete(), filters)
            return list(query.execute().data or [])
        except Exception as e:
            raise BackendError(f"delete from {table} failed: {e}") from e


class SupabaseStorageGateway:
    """Object operations via Supabase Storage."""

    def __init__(self, client: Client):
        self._client = client

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> None:
        file_options = {"upsert": "true" if upsert else "false"}
        if content_type:
            file_options["content-type"] = content_type
        try:
            self._client.storage.from_(bucket).upload(
                path=path, file=data, file_options=file_options
            )
        except Exception as e:
            raise StorageError(f"upload to {bucket}/{path} failed: {e}") from e

    def public_url(self, bucket: str, path: str) -> str:
        return str(self._client.storage.from_(bucket).get_public_url(path)).rstrip("?")

    def download(self, bucket: str, path: str) -> bytes:
        try:
            return self._client.storage.from_(bucket).download(path)
        except Exception as e:
            raise StorageError(f"download of {bucket}/{path} failed: {e}") from e

    def remove(self, bucket: str, paths: list[str]) -> None:
        try:
            self._client.storage.from_(bucket).remove(paths)
        except Exception as e:
            raise StorageError(f"remove from {bucket} failed: {e}") from e


class SupabaseBackend:
    """Hosted backend: Supabase Auth, PostgREST tables and Storage."""

    def __init__(self, url: str, key: str):
        admin_client = create_client(url, key, options=_client_options())
        session_client = create_client(url, key, options=_client_options())

        self.auth = SupabaseAuthGateway(session_client, admin_client)
        self.tables = SupabaseTableGateway(admin_client)
        self.storage = SupabaseStorageGateway(admin_client)

    @classmethod
    def from_settings(cls, settings: BackendSettings) -> SupabaseBackend:
        """Build the backend from environment-provided URL and key.

        Raises:
            BackendConfigError: If the URL or key is not set
        """
        url = settings.get_url()
        key = settings.get_key()
        if not url or not key:
            raise BackendConfigError(
                f"Missing Supabase environment variables ({settings.url_env}, "
                f"{' or '.join(settings.key_envs)})"
            )

        primary = os.environ.get(settings.key_envs[0]) if settings.key_envs else None
        key_kind = "service role" if key == primary else "anon"
        logger.info("supabase_backend.initialized", url=url, key=key_kind)
        return cls(url, key)
