"""Assignment endpoints, scoped to the teacher who created each assignment.

Covers assignment CRUD, student links, answer keys attached to an
assignment, worksheet submissions per student and the practice questions
generated from their weak topics.
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from tutoring.backend import AuthUser, Backend, BackendError
from tutoring.config import load_app_config
from tutoring.core.question_generator import QuestionGenerationError, generate_questions
from tutoring.core.uploads import store_upload
from tutoring.db import (
    answer_keys_repository,
    assignments_repository,
    generated_questions_repository,
    students_repository,
    worksheets_repository,
)
from tutoring.llm.client import LLMClient
from tutoring.web.deps import get_backend_dep, get_current_user, get_llm_client
from tutoring.web.files import (
    analyze_texts,
    answer_key_text_from_url,
    extract_upload_text,
    has_file,
    read_upload,
)
from tutoring.web.schemas import AssignmentUpdate, AssignStudentsRequest, MessageResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/assignments", tags=["assignments"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")


def _server_error(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


def _require_assignment(backend: Backend, assignment_id: str, user: AuthUser) -> dict[str, Any]:
    assignment = assignments_repository.get_assignment(backend.tables, assignment_id, user.id)
    if assignment is None:
        raise _not_found()
    return assignment


def _require_student(backend: Backend, student_id: str, user: AuthUser) -> None:
    if students_repository.get_student(backend.tables, student_id, user.id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")


def _owned_student_ids(backend: Backend, student_ids: list[Any], user: AuthUser) -> list[Any]:
    """The subset of ids that name the teacher's own students."""
    owned = [
        sid
        for sid in student_ids
        if students_repository.get_student(backend.tables, sid, user.id) is not None
    ]
    if len(owned) < len(student_ids):
        logger.warning(
            "assignments.foreign_students_skipped", skipped=len(student_ids) - len(owned)
        )
    return owned


def _normalize_student_id(value: Any) -> Any:
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return value


def _parse_student_ids(raw: str | None) -> list[Any]:
    """Student ids from the JSON-array form field.

    Raises:
        HTTPException: 400 if the field is not a JSON array
    """
    if raw is None or not raw.strip():
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="studentIds must be a JSON array",
        ) from e
    if not isinstance(value, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="studentIds must be a JSON array",
        )
    return [_normalize_student_id(v) for v in value]


# =============================================================================
# ASSIGNMENTS
# =============================================================================


@router.get("")
def list_assignments(
    grade: str | None = Query(default=None),
    subject: str | None = Query(default=None),
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """List the teacher's assignments with students and answer key."""
    try:
        rows = assignments_repository.list_assignments(
            backend.tables, user.id, grade=grade, subject=subject
        )
    except BackendError as e:
        logger.error("assignments.list_failed", error=str(e))
        raise _server_error("Failed to fetch assignments") from e
    return {"assignments": rows}


@router.get("/student/{student_id}")
def list_student_assignments(
    student_id: str,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """Assignments linked to one student."""
    try:
        rows = assignments_repository.list_student_assignments(backend.tables, student_id, user.id)
    except BackendError as e:
        logger.error("assignments.student_list_failed", student_id=student_id, error=str(e))
        raise _server_error("Failed to fetch student assignments") from e
    return {"assignments": rows}


@router.get("/{assignment_id}")
def get_assignment(
    assignment_id: str,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    return _require_assignment(backend, assignment_id, user)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_assignment(
    title: str | None = Form(default=None),
    subject: str | None = Form(default=None),
    grade: str | None = Form(default=None),
    dueDate: str | None = Form(default=None),
    studentIds: str | None = Form(default=None),
    answerKey: UploadFile | None = File(default=None),
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """Create an assignment, optionally with an answer key and students."""
    if not title or not title.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title is required")
    student_ids = _parse_student_ids(studentIds)

    answer_key_id = None
    answer_key_url = None
    try:
        if has_file(answerKey):
            uploaded = read_upload(answerKey)
            stored = store_upload(
                backend.storage,
                load_app_config().backend.assignments_bucket,
                "answer-keys",
                uploaded.file_name,
                uploaded.data,
                content_type=uploaded.content_type,
            )
            answer_key = answer_keys_repository.create_answer_key(
                backend.tables,
                file_url=stored.url,
                file_name=uploaded.file_name,
                uploader_id=user.id,
                subject=subject,
                grade=grade,
            )
            answer_key_id = answer_key["id"]
            answer_key_url = stored.url

        row = assignments_repository.create_assignment(
            backend.tables,
            user.id,
            title=title.strip(),
            subject=subject,
            grade=grade,
            due_date=dueDate,
            answer_key_id=answer_key_id,
            answer_key_url=answer_key_url,
        )
    except BackendError as e:
        logger.error("assignments.create_failed", error=str(e))
        raise _server_error(f"Failed to create assignment: {e}") from e

    if student_ids:
        try:
            student_ids = _owned_student_ids(backend, student_ids, user)
            assignments_repository.link_students(backend.tables, row["id"], student_ids)
        except BackendError as e:
            logger.error("assignments.link_failed", assignment_id=row["id"], error=str(e))

    return row


@router.put("/{assignment_id}")
def update_assignment(
    assignment_id: str,
    payload: AssignmentUpdate,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """Update the fields present in the body."""
    try:
        row = assignments_repository.update_assignment(
            backend.tables, assignment_id, user.id, payload.model_dump(exclude_unset=True)
        )
    except BackendError as e:
        logger.error("assignments.update_failed", assignment_id=assignment_id, error=str(e))
        raise _server_error("Failed to update assignment") from e

    if row is None:
        raise _not_found()
    return row


@router.delete("/{assignment_id}", response_model=MessageResponse)
def delete_assignment(
    assignment_id: str,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> MessageResponse:
    try:
        deleted = assignments_repository.delete_assignment(backend.tables, assignment_id, user.id)
    except BackendError as e:
        logger.error("assignments.delete_failed", assignment_id=assignment_id, error=str(e))
        raise _server_error("Failed to delete assignment") from e

    if not deleted:
        raise _not_found()
    return MessageResponse(message="Assignment deleted successfully")


@router.post("/{assignment_id}/assign", response_model=MessageResponse)
def assign_students(
    assignment_id: str,
    payload: AssignStudentsRequest,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> MessageResponse:
    """Link students to an assignment."""
    if not isinstance(payload.student_ids, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="student_ids array is required",
        )
    _require_assignment(backend, assignment_id, user)

    student_ids = [_normalize_student_id(v) for v in payload.student_ids]
    try:
        student_ids = _owned_student_ids(backend, student_ids, user)
        assignments_repository.link_students(backend.tables, assignment_id, student_ids)
    except BackendError as e:
        logger.error("assignments.link_failed", assignment_id=assignment_id, error=str(e))
        raise _server_error("Failed to assign students to assignment") from e

    return MessageResponse(message="Students assigned to assignment successfully")


@router.post("/{assignment_id}/answer-key", status_code=status.HTTP_201_CREATED)
def upload_assignment_answer_key(
    assignment_id: str,
    answerKey: UploadFile | None = File(default=None),
    subject: str | None = Form(default=None),
    grade: str | None = Form(default=None),
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """Attach a new answer key to an assignment."""
    if not has_file(answerKey):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    _require_assignment(backend, assignment_id, user)
    uploaded = read_upload(answerKey)

    try:
        stored = store_upload(
            backend.storage,
            load_app_config().backend.assignments_bucket,
            "answer-keys",
            uploaded.file_name,
            uploaded.data,
            content_type=uploaded.content_type,
        )
        answer_key = answer_keys_repository.create_answer_key(
            backend.tables,
            file_url=stored.url,
            file_name=uploaded.file_name,
            uploader_id=user.id,
            subject=subject,
            grade=grade,
        )
        assignments_repository.update_assignment(
            backend.tables,
            assignment_id,
            user.id,
            {"answer_key_id": answer_key["id"], "answer_key_url": stored.url},
        )
    except BackendError as e:
        logger.error("assignments.answer_key_failed", assignment_id=assignment_id, error=str(e))
        raise _server_error(f"Failed to upload answer key: {e}") from e

    return {"message": "Answer key uploaded and assignment updated", "answerKey": answer_key}


# =============================================================================
# SUBMISSIONS
# =============================================================================


@router.post(
    "/{assignment_id}/students/{student_id}/worksheet",
    status_code=status.HTTP_201_CREATED,
)
def submit_worksheet(
    assignment_id: str,
    student_id: str,
    file: UploadFile | None = File(default=None),
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
    client: LLMClient | None = Depends(get_llm_client),
) -> dict[str, Any]:
    """Upload a student's worksheet for an assignment and analyse it."""
    if not has_file(file):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    assignment = _require_assignment(backend, assignment_id, user)
    _require_student(backend, student_id, user)

    uploaded = read_upload(file)
    worksheet_text = extract_upload_text(uploaded).text

    try:
        stored = store_upload(
            backend.storage,
            load_app_config().backend.worksheets_bucket,
            f"worksheets/{student_id}",
            uploaded.file_name,
            uploaded.data,
            content_type=uploaded.content_type,
        )
        answer_key_url = assignment.get("answer_key_url")
        answer_key_text = answer_key_text_from_url(backend, answer_key_url)
        analysis = analyze_texts(worksheet_text, answer_key_text, client)

        row = worksheets_repository.create_worksheet(
            backend.tables,
            student_id=student_id,
            file_url=stored.url,
            file_name=uploaded.file_name,
            status=worksheets_repository.STATUS_COMPLETED,
            assignment_id=assignment_id,
            answer_key_id=assignment.get("answer_key_id"),
            answer_key_url=answer_key_url,
            analysis=analysis.to_dict(),
        )
        students_repository.record_activity(backend.tables, student_id, analysis.weak_topics)
    except BackendError as e:
        logger.error(
            "assignments.worksheet_failed",
            assignment_id=assignment_id,
            student_id=student_id,
            error=str(e),
        )
        raise _server_error(f"Failed to upload worksheet: {e}") from e

    return {"message": "Worksheet uploaded and analyzed", "worksheet": row}


@router.get("/{assignment_id}/students/{student_id}/worksheet")
def get_submitted_worksheet(
    assignment_id: str,
    student_id: str,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """Latest worksheet a student submitted for an assignment."""
    _require_assignment(backend, assignment_id, user)
    _require_student(backend, student_id, user)
    row = worksheets_repository.latest_worksheet(backend.tables, assignment_id, student_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Worksheet not found")
    return {"worksheet": row}


@router.post("/{assignment_id}/students/{student_id}/generate-questions")
def generate_practice_questions(
    assignment_id: str,
    student_id: str,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
    client: LLMClient | None = Depends(get_llm_client),
) -> dict[str, Any]:
    """Generate practice questions from the latest worksheet's weak topics."""
    _require_assignment(backend, assignment_id, user)
    _require_student(backend, student_id, user)
    worksheet = worksheets_repository.latest_worksheet(backend.tables, assignment_id, student_id)
    weak_topics = (worksheet or {}).get("weak_topics") or []

    try:
        questions = generate_questions(weak_topics, client)
    except QuestionGenerationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    try:
        generated_questions_repository.save_questions(
            backend.tables, assignment_id, student_id, questions
        )
    except BackendError as e:
        logger.error("assignments.questions_save_failed", error=str(e))
        raise _server_error("Failed to store generated questions") from e

    return {"questions": questions}


@router.get("/{assignment_id}/students/{student_id}/generated-questions")
def get_generated_questions(
    assignment_id: str,
    student_id: str,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> dict[str, Any]:
    """Most recently generated questions, or an empty list."""
    _require_assignment(backend, assignment_id, user)
    _require_student(backend, student_id, user)
    try:
        questions = generated_questions_repository.latest_questions(
            backend.tables, assignment_id, student_id
        )
    except BackendError as e:
        raise _server_error("Failed to fetch generated questions") from e
    return {"questions": questions}
