"""Repository functions for the generated_questions table."""

from __future__ import annotations

from typing import Any

import structlog

from tutoring.backend.base import Row, TableGateway

logger = structlog.get_logger(__name__)

TABLE = "generated_questions"


def save_questions(
    tables: TableGateway,
    assignment_id: Any,
    student_id: Any,
    questions: list[dict[str, Any]],
) -> Row:
    """Store a generated question set for a student's assignment.

    Raises:
        BackendError: If the insert fails
    """
    rows = tables.insert(
        TABLE,
        [{"assignment_id": assignment_id, "student_id": student_id, "questions": questions}],
    )
    logger.debug(
        "generated_questions.saved",
        assignment_id=assignment_id,
        student_id=student_id,
        count=len(questions),
    )
    return rows[0]


def latest_questions(
    tables: TableGateway, assignment_id: Any, student_id: Any
) -> list[dict[str, Any]]:
    """Questions from the newest stored set, or [] when none exist."""
    rows = tables.select(
        TABLE,
        {"assignment_id": assignment_id, "student_id": student_id},
        order_by="created_at",
        descending=True,
    )
    if not rows:
        return []
    return list(rows[0].get("questions") or [])
