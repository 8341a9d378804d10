"""Helpers for multipart uploads in route handlers.

Turns UploadFile parts into bytes and extracted text and runs the
worksheet analysis, mapping failures onto HTTP errors.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from fastapi import HTTPException, UploadFile, status

from tutoring.backend import Backend, StorageError
from tutoring.config import load_app_config
from tutoring.core.text_extractor import (
    ExtractedText,
    TextExtractionError,
    UnsupportedFileTypeError,
    extract_text,
)
from tutoring.core.uploads import fetch_file
from tutoring.core.worksheet_analyzer import WorksheetAnalysis, analyze_worksheet
from tutoring.llm.client import LLMClient, LLMError

logger = structlog.get_logger(__name__)


@dataclass
class UploadedFile:
    """An uploaded part read into memory."""

    file_name: str
    content_type: str | None
    data: bytes


def has_file(upload: UploadFile | None) -> bool:
    return upload is not None and bool(upload.filename)


def read_upload(upload: UploadFile) -> UploadedFile:
    """Read an uploaded part, enforcing the configured size limit.

    Raises:
        HTTPException: 413 if the file is larger than server.max_upload_mb
    """
    max_bytes = load_app_config().server.max_upload_mb * 1024 * 1024
    data = upload.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {max_bytes // (1024 * 1024)} MB limit",
        )
    return UploadedFile(
        file_name=upload.filename or "upload",
        content_type=upload.content_type,
        data=data,
    )


def extract_upload_text(uploaded: UploadedFile) -> ExtractedText:
    """Extract text from an uploaded file.

    Raises:
        HTTPException: 400 if the file type is unsupported or unreadable
    """
    try:
        return extract_text(uploaded.data, uploaded.file_name)
    except UnsupportedFileTypeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except TextExtractionError as e:
        logger.warning("uploads.extraction_failed", file_name=uploaded.file_name, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


def analyze_texts(
    worksheet_text: str, answer_key_text: str | None, client: LLMClient | None
) -> WorksheetAnalysis:
    """Run the worksheet analysis with the configured fallback policy.

    Raises:
        HTTPException: 500 if the LLM fails and the mock fallback is disabled
    """
    settings = load_app_config().analysis
    try:
        return analyze_worksheet(
            worksheet_text,
            answer_key_text,
            client,
            use_mock_on_failure=settings.use_mock_on_failure,
        )
    except LLMError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Worksheet analysis failed: {e}",
        ) from e


def answer_key_text_from_url(backend: Backend, url: str | None) -> str | None:
    """Text of a stored answer key, or None when it cannot be read.

    An unreadable key is logged and the worksheet is analysed without it.
    """
    if not url:
        return None

    settings = load_app_config().backend
    buckets = [settings.worksheets_bucket, settings.assignments_bucket]
    try:
        data = fetch_file(backend.storage, url, buckets)
        return extract_text(data, url.split("?", 1)[0]).text or None
    except (StorageError, TextExtractionError) as e:
        logger.warning("uploads.answer_key_unreadable", url=url, error=str(e))
        return None
