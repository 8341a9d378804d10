"""Answer key and worksheet endpoints.

Worksheets are stored in the worksheets bucket, recorded as 'analyzing',
analysed against the selected answer key and written back as 'completed'.
A worksheet whose analysis fails is removed again, row and file.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from tutoring.backend import AuthUser, Backend, BackendError
from tutoring.config import load_app_config
from tutoring.core.uploads import remove_by_url, store_upload
from tutoring.db import answer_keys_repository, students_repository, worksheets_repository
from tutoring.llm.client import LLMClient
from tutoring.web.deps import get_backend_dep, get_current_user, get_llm_client
from tutoring.web.files import (
    analyze_texts,
    answer_key_text_from_url,
    extract_upload_text,
    has_file,
    read_upload,
)
from tutoring.web.schemas import MessageResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["worksheets"])


def _no_file() -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")


def _require_student(backend: Backend, student_id: str, user: AuthUser) -> None:
    if students_repository.get_student(backend.tables, student_id, user.id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")


def _discard_worksheet(backend: Backend, worksheet_id: Any, file_url: str) -> None:
    """Drop the row and stored file of a worksheet whose analysis failed."""
    try:
        worksheets_repository.delete_worksheet(backend.tables, worksheet_id)
        remove_by_url(backend.storage, load_app_config().backend.worksheets_bucket, file_url)
    except BackendError as e:
        logger.warning("worksheets.discard_failed", worksheet_id=worksheet_id, error=str(e))
    else:
        logger.info("worksheets.discarded", worksheet_id=worksheet_id)


@router.post("/answer-keys", status_code=status.HTTP_201_CREATED)
def upload_answer_key(
    file: UploadFile | None = File(default=None),
    subject: str | None = Form(default=None),
    grade: str | None = Form(default=None),
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """Store an answer key file and record it."""
    if not has_file(file):
        raise _no_file()
    uploaded = read_upload(file)

    try:
        stored = store_upload(
            backend.storage,
            load_app_config().backend.worksheets_bucket,
            "answer-keys",
            uploaded.file_name,
            uploaded.data,
            content_type=uploaded.content_type,
            upsert=True,
        )
        row = answer_keys_repository.create_answer_key(
            backend.tables,
            file_url=stored.url,
            file_name=uploaded.file_name,
            uploader_id=user.id,
            subject=subject,
            grade=grade,
        )
    except BackendError as e:
        logger.error("answer_keys.upload_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to upload answer key: {e}",
        ) from e

    return {"message": "Answer key uploaded", "answerKey": row}


@router.get("/answer-keys")
def list_answer_keys(
    subject: str | None = Query(default=None),
    grade: str | None = Query(default=None),
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """List answer keys, newest first."""
    try:
        rows = answer_keys_repository.list_answer_keys(backend.tables, subject=subject, grade=grade)
    except BackendError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch answer keys: {e}",
        ) from e
    return {"answerKeys": rows}


@router.post("/students/{student_id}/worksheets", status_code=status.HTTP_201_CREATED)
def upload_worksheet(
    student_id: str,
    file: UploadFile | None = File(default=None),
    answerKeyId: str | None = Form(default=None),
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
    client: LLMClient | None = Depends(get_llm_client),
) -> dict[str, Any]:
    """Upload a student's worksheet and analyse it."""
    if not has_file(file):
        raise _no_file()
    _require_student(backend, student_id, user)

    uploaded = read_upload(file)
    worksheet_text = extract_upload_text(uploaded).text

    try:
        answer_key_url = None
        if answerKeyId:
            answer_key = answer_keys_repository.get_answer_key(backend.tables, answerKeyId)
            answer_key_url = answer_key.get("file_url") if answer_key else None

        stored = store_upload(
            backend.storage,
            load_app_config().backend.worksheets_bucket,
            f"worksheets/{student_id}",
            uploaded.file_name,
            uploaded.data,
            content_type=uploaded.content_type,
            upsert=True,
        )
        row = worksheets_repository.create_worksheet(
            backend.tables,
            student_id=student_id,
            file_url=stored.url,
            file_name=uploaded.file_name,
            answer_key_id=answerKeyId or None,
            answer_key_url=answer_key_url,
        )

        try:
            answer_key_text = answer_key_text_from_url(backend, answer_key_url)
            analysis = analyze_texts(worksheet_text, answer_key_text, client)
            row = worksheets_repository.complete_worksheet(
                backend.tables, row["id"], analysis.to_dict()
            )
        except (HTTPException, BackendError):
            _discard_worksheet(backend, row["id"], stored.url)
            raise
        students_repository.record_activity(backend.tables, student_id, analysis.weak_topics)
    except BackendError as e:
        logger.error("worksheets.upload_failed", student_id=student_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to upload worksheet: {e}",
        ) from e

    return {"message": "Worksheet uploaded and analyzed", "worksheet": row}


@router.get("/students/{student_id}/worksheets")
def list_worksheets(
    student_id: str,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """List a student's worksheets, newest first."""
    _require_student(backend, student_id, user)
    try:
        rows = worksheets_repository.list_student_worksheets(backend.tables, student_id)
    except BackendError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch worksheets: {e}",
        ) from e
    return {"worksheets": rows}


@router.delete("/worksheets/{worksheet_id}", response_model=MessageResponse)
def delete_worksheet(
    worksheet_id: str,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> MessageResponse:
    """Delete a worksheet and its stored file."""
    worksheet = worksheets_repository.get_worksheet(backend.tables, worksheet_id)
    if worksheet is None or (
        students_repository.get_student(backend.tables, worksheet.get("student_id"), user.id)
        is None
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Worksheet not found")

    try:
        remove_by_url(
            backend.storage, load_app_config().backend.worksheets_bucket, worksheet.get("file_url")
        )
        worksheets_repository.delete_worksheet(backend.tables, worksheet_id)
    except BackendError as e:
        logger.error("worksheets.delete_failed", worksheet_id=worksheet_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete worksheet: {e}",
        ) from e

    return MessageResponse(message="Worksheet deleted")
