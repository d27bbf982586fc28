"""Route handlers for Web API."""

from progression.web.routes.health import router as health_router
from progression.web.routes.grades import router as grades_router
from progression.web.routes.levels import router as levels_router
from progression.web.routes.students import router as students_router

__all__ = [
    "health_router",
    "grades_router",
    "levels_router",
    "students_router",
]
