"""Student endpoints, scoped to the authenticated teacher."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from tutoring.backend import AuthUser, Backend, BackendError
from tutoring.config import load_app_config
from tutoring.core.uploads import store_upload
from tutoring.db import students_repository, worksheets_repository
from tutoring.llm.client import LLMClient
from tutoring.web.deps import get_backend_dep, get_current_user, get_llm_client
from tutoring.web.files import analyze_texts, extract_upload_text, has_file, read_upload
from tutoring.web.schemas import MessageResponse, StudentPayload

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/students", tags=["students"])


def _validate(payload: StudentPayload) -> tuple[str, str, list[str]]:
    """Required fields of a create/replace body.

    Raises:
        HTTPException: 400 for missing fields or an empty subject list
    """
    if not payload.name or payload.grade in (None, "") or payload.subjects is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name, grade, and subjects are required",
        )
    if not isinstance(payload.subjects, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subjects must be a list",
        )
    subjects = [str(s).strip() for s in payload.subjects if str(s).strip()]
    if not subjects:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one subject is required",
        )
    return payload.name.strip(), str(payload.grade), subjects


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")


@router.get("")
def list_students(
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """List the teacher's students, newest first."""
    rows = students_repository.list_students(backend.tables, user.id)
    return {
        "message": "Students retrieved successfully",
        "students": [students_repository.format_student(r) for r in rows],
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_student(
    payload: StudentPayload,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """Create a student for the teacher."""
    name, grade, subjects = _validate(payload)

    try:
        row = students_repository.create_student(
            backend.tables,
            teacher_id=user.id,
            name=name,
            grade=grade,
            subjects=subjects,
            weak_topics=payload.weakTopics,
            avatar=payload.avatar,
        )
    except BackendError as e:
        logger.error("students.create_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to create student: {e}",
        ) from e

    return {
        "message": "Student created successfully",
        "student": students_repository.format_student(row, last_activity="Just added"),
    }


@router.get("/{student_id}")
def get_student(
    student_id: str,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """Get one of the teacher's students."""
    row = students_repository.get_student(backend.tables, student_id, user.id)
    if row is None:
        raise _not_found()
    return {
        "message": "Student retrieved successfully",
        "student": students_repository.format_student(row),
    }


@router.put("/{student_id}")
def update_student(
    student_id: str,
    payload: StudentPayload,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """Replace a student's fields."""
    name, grade, subjects = _validate(payload)

    try:
        row = students_repository.update_student(
            backend.tables,
            student_id,
            user.id,
            name=name,
            grade=grade,
            subjects=subjects,
            weak_topics=payload.weakTopics,
            avatar=payload.avatar,
        )
    except BackendError as e:
        logger.error("students.update_failed", student_id=student_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to update student: {e}",
        ) from e

    if row is None:
        raise _not_found()
    return {
        "message": "Student updated successfully",
        "student": students_repository.format_student(row),
    }


@router.delete("/{student_id}", response_model=MessageResponse)
def delete_student(
    student_id: str,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> MessageResponse:
    """Delete one of the teacher's students."""
    try:
        deleted = students_repository.delete_student(backend.tables, student_id, user.id)
    except BackendError as e:
        logger.error("students.delete_failed", student_id=student_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to delete student: {e}",
        ) from e

    if not deleted:
        raise _not_found()
    return MessageResponse(message="Student deleted successfully")


@router.post("/{student_id}/worksheet-with-answer-key")
def analyze_worksheet_with_answer_key(
    student_id: str,
    assignment_id: str | None = Query(default=None, alias="assignmentId"),
    worksheet: UploadFile | None = File(default=None),
    answerKey: UploadFile | None = File(default=None),
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
    client: LLMClient | None = Depends(get_llm_client),
) -> dict[str, Any]:
    """Analyse a worksheet against an answer key uploaded alongside it."""
    if not has_file(worksheet) or not has_file(answerKey):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Both worksheet and answer key files are required.",
        )
    if students_repository.get_student(backend.tables, student_id, user.id) is None:
        raise _not_found()

    worksheet_file = read_upload(worksheet)
    answer_key_file = read_upload(answerKey)
    worksheet_text = extract_upload_text(worksheet_file).text
    answer_key_text = extract_upload_text(answer_key_file).text

    analysis = analyze_texts(worksheet_text, answer_key_text, client)
    ai_result = analysis.to_dict()

    bucket = load_app_config().backend.worksheets_bucket
    try:
        stored_worksheet = store_upload(
            backend.storage,
            bucket,
            f"worksheets/{student_id}",
            worksheet_file.file_name,
            worksheet_file.data,
            content_type=worksheet_file.content_type,
        )
        stored_key = store_upload(
            backend.storage,
            bucket,
            "answer-keys",
            answer_key_file.file_name,
            answer_key_file.data,
            content_type=answer_key_file.content_type,
            upsert=True,
        )
        row = worksheets_repository.create_worksheet(
            backend.tables,
            student_id=student_id,
            file_url=stored_worksheet.url,
            file_name=worksheet_file.file_name,
            status=worksheets_repository.STATUS_COMPLETED,
            assignment_id=assignment_id,
            answer_key_url=stored_key.url,
            analysis=ai_result,
        )
        students_repository.record_activity(backend.tables, student_id, analysis.weak_topics)
    except BackendError as e:
        logger.error("students.worksheet_analysis_failed", student_id=student_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to analyze worksheet and answer key.",
        ) from e

    return {
        "message": "Worksheet and answer key analyzed successfully!",
        "aiResult": ai_result,
        "worksheet": row,
    }
