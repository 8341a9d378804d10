"""Repository functions for the students table.

Provides CRUD operations scoped to the owning teacher, plus the
camelCase view the frontend reads.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from tutoring.backend.base import Row, TableGateway

logger = structlog.get_logger(__name__)

TABLE = "students"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_student(row: Row, last_activity: str | None = None) -> dict[str, Any]:
    """Shape a students row for API responses.

    Args:
        row: Row from the students table
        last_activity: Override for the lastActivity field

    Returns:
        Dict with id, name, grade, subjects, weakTopics, lastActivity, avatar
    """
    return {
        "id": row.get("id"),
        "name": row.get("name"),
        "grade": row.get("grade"),
        "subjects": row.get("subjects") or [],
        "weakTopics": row.get("weak_topics") or [],
        "lastActivity": last_activity if last_activity is not None else row.get("last_activity"),
        "avatar": row.get("avatar"),
    }


def list_students(tables: TableGateway, teacher_id: str) -> list[Row]:
    """List a teacher's students, newest first."""
    return tables.select(
        TABLE, {"teacher_id": teacher_id}, order_by="created_at", descending=True
    )


def get_student(tables: TableGateway, student_id: Any, teacher_id: str) -> Row | None:
    """Get a student owned by the teacher.

    Returns:
        The row if found, None otherwise
    """
    rows = tables.select(TABLE, {"id": student_id, "teacher_id": teacher_id})
    return rows[0] if rows else None


def create_student(
    tables: TableGateway,
    teacher_id: str,
    name: str,
    grade: str,
    subjects: list[str],
    weak_topics: list[str] | None = None,
    avatar: str | None = None,
) -> Row:
    """Insert a student for the teacher.

    Args:
        tables: Table gateway
        teacher_id: Owning teacher (auth user id)
        name: Student name
        grade: Grade label
        subjects: Non-empty list of subjects
        weak_topics: Known weak topics
        avatar: Avatar URL

    Returns:
        The stored row

    Raises:
        BackendError: If the insert fails
    """
    rows = tables.insert(
        TABLE,
        [
            {
                "name": name,
                "grade": grade,
                "subjects": subjects,
                "weak_topics": weak_topics or [],
                "avatar": avatar,
                "teacher_id": teacher_id,
                "last_activity": _now_iso(),
            }
        ],
    )
    logger.debug("students.created", student_id=rows[0].get("id"), teacher_id=teacher_id)
    return rows[0]


def update_student(
    tables: TableGateway,
    student_id: Any,
    teacher_id: str,
    name: str,
    grade: str,
    subjects: list[str],
    weak_topics: list[str] | None = None,
    avatar: str | None = None,
) -> Row | None:
    """Replace a student's editable fields.

    Returns:
        The updated row, or None if the teacher has no such student
    """
    rows = tables.update(
        TABLE,
        {
            "name": name,
            "grade": grade,
            "subjects": subjects,
            "weak_topics": weak_topics or [],
            "avatar": avatar,
            "updated_at": _now_iso(),
        },
        {"id": student_id, "teacher_id": teacher_id},
    )
    if not rows:
        return None
    logger.debug("students.updated", student_id=student_id)
    return rows[0]


def record_activity(
    tables: TableGateway, student_id: Any, weak_topics: list[str] | None = None
) -> None:
    """Stamp last_activity and merge newly found weak topics.

    Args:
        tables: Table gateway
        student_id: Student the worksheet belongs to
        weak_topics: Topics from the latest analysis
    """
    rows = tables.select(TABLE, {"id": student_id})
    if not rows:
        return

    values: Row = {"last_activity": _now_iso()}
    if weak_topics:
        merged = list(rows[0].get("weak_topics") or [])
        for topic in weak_topics:
            if topic not in merged:
                merged.append(topic)
        values["weak_topics"] = merged

    tables.update(TABLE, values, {"id": student_id})
    logger.debug("students.activity_recorded", student_id=student_id)


def delete_student(tables: TableGateway, student_id: Any, teacher_id: str) -> bool:
    """Delete a student owned by the teacher.

    Returns:
        True if a row was deleted
    """
    rows = tables.delete(TABLE, {"id": student_id, "teacher_id": teacher_id})
    if rows:
        logger.debug("students.deleted", student_id=student_id)
    return bool(rows)
