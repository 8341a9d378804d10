"""Table-level repositories on top of the backend table gateway."""

from tutoring.db import (
    answer_keys_repository,
    assignments_repository,
    generated_questions_repository,
    students_repository,
    worksheets_repository,
)

__all__ = [
    "answer_keys_repository",
    "assignments_repository",
    "generated_questions_repository",
    "students_repository",
    "worksheets_repository",
]
