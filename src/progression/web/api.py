"""FastAPI application factory.

Main entry point for the Progression Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from progression.config.app_config import get_db_path, load_app_config
from progression.config.catalog import load_catalog
from progression.core.errors import (
    ConflictError,
    InconsistentStateError,
    NotFoundError,
    ProgressionError,
    ValidationError,
)
from progression.db.database import init_db
from progression.web.routes import (
    grades_router,
    health_router,
    levels_router,
    students_router,
)

logger = structlog.get_logger(__name__)

# HTTP status for each domain error
ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    InconsistentStateError: 422,  # constant name differs across Starlette releases
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    config = load_app_config()
    db_path = get_db_path(config)
    init_db(db_path)
    catalog = load_catalog()
    logger.info(
        "api_startup",
        db_path=str(db_path),
        pass_rule=config.progression.pass_rule,
        courses=len(catalog.list_courses()),
    )
    yield
    # Shutdown (nothing to do for now)


async def progression_error_handler(request: Request, exc: ProgressionError) -> JSONResponse:
    """Map domain errors to HTTP responses."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, InconsistentStateError):
        logger.warning("api.inconsistent_state", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Progression API",
        description="Grade finalization and level progression",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware for web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ProgressionError, progression_error_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(grades_router)
    app.include_router(levels_router)
    app.include_router(students_router)

    return app


# Default app instance for uvicorn
app = create_app()
