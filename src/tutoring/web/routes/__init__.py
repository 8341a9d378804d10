"""Route handlers for the web API."""

from tutoring.web.routes.assignments import router as assignments_router
from tutoring.web.routes.auth import router as auth_router
from tutoring.web.routes.health import router as health_router
from tutoring.web.routes.students import router as students_router
from tutoring.web.routes.worksheets import router as worksheets_router

__all__ = [
    "assignments_router",
    "auth_router",
    "health_router",
    "students_router",
    "worksheets_router",
]
