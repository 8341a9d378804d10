"""Repository functions for the answer_keys table."""

from __future__ import annotations

from typing import Any

import structlog

from tutoring.backend.base import Row, TableGateway

logger = structlog.get_logger(__name__)

TABLE = "answer_keys"


def create_answer_key(
    tables: TableGateway,
    file_url: str,
    file_name: str,
    uploader_id: str,
    subject: str | None = None,
    grade: str | None = None,
) -> Row:
    """Insert an answer key record for an uploaded file.

    Raises:
        BackendError: If the insert fails
    """
    rows = tables.insert(
        TABLE,
        [
            {
                "file_url": file_url,
                "file_name": file_name,
                "subject": subject,
                "grade": grade,
                "uploader_id": uploader_id,
            }
        ],
    )
    logger.debug("answer_keys.created", answer_key_id=rows[0].get("id"))
    return rows[0]


def get_answer_key(tables: TableGateway, answer_key_id: Any) -> Row | None:
    rows = tables.select(TABLE, {"id": answer_key_id})
    return rows[0] if rows else None


def list_answer_keys(
    tables: TableGateway, subject: str | None = None, grade: str | None = None
) -> list[Row]:
    """List answer keys, newest upload first, optionally filtered."""
    filters: dict[str, Any] = {}
    if subject:
        filters["subject"] = subject
    if grade:
        filters["grade"] = grade
    return tables.select(TABLE, filters, order_by="upload_date", descending=True)
