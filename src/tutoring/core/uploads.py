"""Storage helpers for uploaded files.

Object names are `{prefix}/{epoch_ms}_{safe_name}` so repeated uploads of
the same file never collide. Files are read back either straight from the
bucket (when the public URL points into it) or over HTTP.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from pathlib import PurePath

import httpx
import structlog

from tutoring.backend.base import StorageError, StorageGateway, object_path_from_url

logger = structlog.get_logger(__name__)

DOWNLOAD_TIMEOUT = 30.0
UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class StoredFile:
    """A file written to a storage bucket."""

    bucket: str
    path: str
    url: str
    file_name: str


def safe_file_name(file_name: str) -> str:
    """Base name with anything outside [A-Za-z0-9._-] replaced by '_'."""
    name = PurePath(file_name.replace("\\", "/")).name
    cleaned = UNSAFE_CHARS.sub("_", name).strip("._")
    return cleaned or "upload"


def build_object_path(prefix: str, file_name: str, now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{prefix.strip('/')}/{now_ms}_{safe_file_name(file_name)}"


def store_upload(
    storage: StorageGateway,
    bucket: str,
    prefix: str,
    file_name: str,
    data: bytes,
    content_type: str | None = None,
    upsert: bool = False,
) -> StoredFile:
    """Upload bytes under a timestamped name and return the public URL.

    Raises:
        StorageError: If the upload fails
    """
    path = build_object_path(prefix, file_name)
    storage.upload(bucket, path, data, content_type=content_type, upsert=upsert)
    url = storage.public_url(bucket, path)
    logger.info("uploads.stored", bucket=bucket, path=path, size=len(data))
    return StoredFile(bucket=bucket, path=path, url=url, file_name=file_name)


def fetch_file(storage: StorageGateway, url: str, buckets: list[str]) -> bytes:
    """Read a previously uploaded file back by its public URL.

    Args:
        storage: Storage gateway
        url: Public URL of the object
        buckets: Buckets to try before falling back to an HTTP GET

    Raises:
        StorageError: If the file cannot be read
    """
    for bucket in buckets:
        path = object_path_from_url(bucket, url)
        if path:
            return storage.download(bucket, path)

    try:
        response = httpx.get(url, timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise StorageError(f"download of {url} failed: {e}") from e
    return response.content


def remove_by_url(storage: StorageGateway, bucket: str, url: str | None) -> bool:
    """Remove the object a public URL points to.

    Returns:
        True if the URL pointed into the bucket and the object was removed
    """
    path = object_path_from_url(bucket, url)
    if not path:
        return False
    storage.remove(bucket, [path])
    logger.info("uploads.removed", bucket=bucket, path=path)
    return True
