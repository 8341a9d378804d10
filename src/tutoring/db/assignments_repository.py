"""Repository functions for the assignments and assignment_students tables.

Assignments are scoped to the teacher who created them. List views are
enriched in Python with the linked students and the answer key, the
shape the frontend expects.
"""

from __future__ import annotations

from typing import Any

import structlog

from tutoring.backend.base import Row, TableGateway
from tutoring.db import answer_keys_repository, students_repository

logger = structlog.get_logger(__name__)

TABLE = "assignments"
LINK_TABLE = "assignment_students"

# Columns a partial update may touch
UPDATABLE_COLUMNS = ("title", "subject", "grade", "due_date", "answer_key_id", "answer_key_url")


def get_assignment(tables: TableGateway, assignment_id: Any, owner_id: str) -> Row | None:
    """Get an assignment created by the teacher.

    Returns:
        The row if found, None otherwise
    """
    rows = tables.select(TABLE, {"id": assignment_id, "created_by": owner_id})
    return rows[0] if rows else None


def list_assignments(
    tables: TableGateway,
    owner_id: str,
    grade: str | None = None,
    subject: str | None = None,
) -> list[Row]:
    """List the teacher's assignments, newest first, with students and answerKey.

    Args:
        tables: Table gateway
        owner_id: Creating teacher
        grade: Optional grade filter
        subject: Optional subject filter

    Returns:
        Assignment rows, each with 'students' and 'answerKey' added
    """
    filters: dict[str, Any] = {"created_by": owner_id}
    if grade:
        filters["grade"] = grade
    if subject:
        filters["subject"] = subject

    rows = tables.select(TABLE, filters, order_by="created_at", descending=True)
    return [_enrich(tables, row, owner_id) for row in rows]


def list_student_assignments(tables: TableGateway, student_id: Any, owner_id: str) -> list[Row]:
    """Assignments linked to a student, newest first, with answerKey."""
    links = tables.select(LINK_TABLE, {"student_id": student_id})
    assignments = []
    for link in links:
        row = get_assignment(tables, link.get("assignment_id"), owner_id)
        if row is not None:
            row["answerKey"] = resolve_answer_key(tables, row)
            assignments.append(row)

    assignments.sort(key=lambda r: (str(r.get("created_at") or ""), r.get("id") or 0), reverse=True)
    return assignments


def create_assignment(
    tables: TableGateway,
    owner_id: str,
    title: str,
    subject: str | None = None,
    grade: str | None = None,
    due_date: str | None = None,
    answer_key_id: Any = None,
    answer_key_url: str | None = None,
) -> Row:
    """Insert an assignment.

    Raises:
        BackendError: If the insert fails
    """
    rows = tables.insert(
        TABLE,
        [
            {
                "title": title,
                "subject": subject,
                "grade": grade,
                "due_date": due_date,
                "answer_key_id": answer_key_id,
                "answer_key_url": answer_key_url,
                "created_by": owner_id,
            }
        ],
    )
    logger.debug("assignments.created", assignment_id=rows[0].get("id"), owner_id=owner_id)
    return rows[0]


def update_assignment(
    tables: TableGateway, assignment_id: Any, owner_id: str, values: dict[str, Any]
) -> Row | None:
    """Apply a partial update; keys outside UPDATABLE_COLUMNS are ignored.

    Returns:
        The updated row, or None if the teacher has no such assignment
    """
    changes = {k: v for k, v in values.items() if k in UPDATABLE_COLUMNS}
    if not changes:
        return get_assignment(tables, assignment_id, owner_id)

    rows = tables.update(TABLE, changes, {"id": assignment_id, "created_by": owner_id})
    if not rows:
        return None
    logger.debug("assignments.updated", assignment_id=assignment_id, fields=sorted(changes))
    return rows[0]


def delete_assignment(tables: TableGateway, assignment_id: Any, owner_id: str) -> bool:
    """Delete an assignment and its student links.

    Returns:
        True if the assignment existed
    """
    rows = tables.delete(TABLE, {"id": assignment_id, "created_by": owner_id})
    if rows:
        tables.delete(LINK_TABLE, {"assignment_id": assignment_id})
        logger.debug("assignments.deleted", assignment_id=assignment_id)
    return bool(rows)


def link_students(tables: TableGateway, assignment_id: Any, student_ids: list[Any]) -> list[Row]:
    """Link students to an assignment, skipping links that already exist.

    Raises:
        BackendError: If the insert fails
    """
    existing = {str(r.get("student_id")) for r in tables.select(LINK_TABLE, {"assignment_id": assignment_id})}
    new_links = [
        {"assignment_id": assignment_id, "student_id": sid}
        for sid in dict.fromkeys(student_ids)
        if str(sid) not in existing
    ]
    if not new_links:
        return []

    rows = tables.insert(LINK_TABLE, new_links)
    logger.debug("assignments.students_linked", assignment_id=assignment_id, count=len(rows))
    return rows


def linked_students(tables: TableGateway, assignment_id: Any, owner_id: str) -> list[Row]:
    """Formatted students linked to an assignment.

    Only students belonging to the owning teacher are returned.
    """
    students = []
    for link in tables.select(LINK_TABLE, {"assignment_id": assignment_id}):
        rows = tables.select(
            students_repository.TABLE, {"id": link.get("student_id"), "teacher_id": owner_id}
        )
        if rows:
            students.append(students_repository.format_student(rows[0]))
    return students


def resolve_answer_key(tables: TableGateway, assignment: Row) -> Row | None:
    """The assignment's answer key row, or {file_url} when only a URL is known."""
    answer_key_id = assignment.get("answer_key_id")
    if answer_key_id is not None:
        row = answer_keys_repository.get_answer_key(tables, answer_key_id)
        if row is not None:
            return row
    if assignment.get("answer_key_url"):
        return {"file_url": assignment["answer_key_url"]}
    return None


def _enrich(tables: TableGateway, row: Row, owner_id: str) -> Row:
    row["students"] = linked_students(tables, row.get("id"), owner_id)
    row["answerKey"] = resolve_answer_key(tables, row)
    return row
