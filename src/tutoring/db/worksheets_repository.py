"""Repository functions for the worksheets table.

A worksheet row is inserted when the file is stored and moves from
'analyzing' to 'completed' once the analysis is written back.
"""

from __future__ import annotations

from typing import Any

import structlog

from tutoring.backend.base import Row, TableGateway

logger = structlog.get_logger(__name__)

TABLE = "worksheets"

STATUS_ANALYZING = "analyzing"
STATUS_COMPLETED = "completed"


def create_worksheet(
    tables: TableGateway,
    student_id: Any,
    file_url: str,
    file_name: str,
    status: str = STATUS_ANALYZING,
    assignment_id: Any = None,
    answer_key_id: Any = None,
    answer_key_url: str | None = None,
    analysis: dict[str, Any] | None = None,
) -> Row:
    """Insert a worksheet record.

    Args:
        tables: Table gateway
        student_id: Student who submitted the worksheet
        file_url: Public URL of the stored file
        file_name: Original file name
        status: 'analyzing' or 'completed'
        assignment_id: Assignment the worksheet answers, if any
        answer_key_id: Answer key record used, if any
        answer_key_url: Public URL of the answer key used, if any
        analysis: Analysis dict (score, weakTopics, suggestions) for rows
            that are stored already completed

    Returns:
        The stored row
    """
    row: Row = {
        "student_id": student_id,
        "file_url": file_url,
        "file_name": file_name,
        "status": status,
        "answer_key_id": answer_key_id,
        "answer_key_url": answer_key_url,
    }
    if assignment_id is not None:
        row["assignment_id"] = assignment_id
    if analysis is not None:
        row.update(analysis_columns(analysis))

    rows = tables.insert(TABLE, [row])
    logger.debug("worksheets.created", worksheet_id=rows[0].get("id"), status=status)
    return rows[0]


def analysis_columns(analysis: dict[str, Any]) -> Row:
    """Map an analysis dict onto worksheet columns."""
    return {
        "score": analysis.get("score"),
        "weak_topics": analysis.get("weakTopics") or [],
        "ai_suggestions": analysis.get("suggestions") or [],
    }


def complete_worksheet(tables: TableGateway, worksheet_id: Any, analysis: dict[str, Any]) -> Row:
    """Write analysis results and mark the worksheet completed.

    Returns:
        The updated row
    """
    values = {"status": STATUS_COMPLETED, **analysis_columns(analysis)}
    rows = tables.update(TABLE, values, {"id": worksheet_id})
    logger.debug("worksheets.completed", worksheet_id=worksheet_id, score=values["score"])
    return rows[0] if rows else tables.select_one(TABLE, {"id": worksheet_id})


def get_worksheet(tables: TableGateway, worksheet_id: Any) -> Row | None:
    rows = tables.select(TABLE, {"id": worksheet_id})
    return rows[0] if rows else None


def list_student_worksheets(tables: TableGateway, student_id: Any) -> list[Row]:
    """List a student's worksheets, newest upload first."""
    return tables.select(
        TABLE, {"student_id": student_id}, order_by="upload_date", descending=True
    )


def latest_worksheet(tables: TableGateway, assignment_id: Any, student_id: Any) -> Row | None:
    """Most recent worksheet a student submitted for an assignment."""
    rows = tables.select(
        TABLE,
        {"assignment_id": assignment_id, "student_id": student_id},
        order_by="upload_date",
        descending=True,
    )
    return rows[0] if rows else None


def delete_worksheet(tables: TableGateway, worksheet_id: Any) -> bool:
    rows = tables.delete(TABLE, {"id": worksheet_id})
    if rows:
        logger.debug("worksheets.deleted", worksheet_id=worksheet_id)
    return bool(rows)
