"""
FastAPI application for Achievement Tracker.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .achievements.coordinator import AchievementCoordinator
from .achievements.errors import AchievementError
from .achievements.files import LocalFileStorage
from .achievements.identity import DirectoryIdentityResolver
from .achievements.policy import AccessPolicy
from .achievements.routes import router as achievements_router
from .achievements.sql_stores import SqlContentStore, SqlReferenceStore
from .config import Settings, get_settings
from .db.base import create_store_engine, get_session_factory, init_databases
from .log import configure_logging

# Initialize structured logging
logger = structlog.get_logger()

settings = get_settings()


def build_coordinator(
    settings: Settings, create_schema: bool = True
) -> AchievementCoordinator:
    """Wire both stores, the identity directory and file storage from settings."""
    reference_engine = create_store_engine(settings.reference_database_url)
    content_engine = create_store_engine(settings.content_database_url)
    if create_schema:
        init_databases(reference_engine, content_engine)

    if settings.identity_directory_path:
        identity = DirectoryIdentityResolver.from_file(settings.identity_directory_path)
    else:
        logger.warning("No identity directory configured; only admins can act")
        identity = DirectoryIdentityResolver()

    return AchievementCoordinator(
        references=SqlReferenceStore(get_session_factory(reference_engine)),
        contents=SqlContentStore(get_session_factory(content_engine)),
        policy=AccessPolicy(identity),
        files=LocalFileStorage(Path(settings.upload_dir), settings.upload_url_prefix),
        compensation_timeout_seconds=settings.compensation_timeout_seconds,
        max_upload_bytes=settings.max_upload_bytes,
        max_page_size=settings.max_page_size,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Achievement Tracker")

    if getattr(app.state, "coordinator", None) is None:
        try:
            app.state.coordinator = build_coordinator(settings)
            logger.info("Stores initialized")
        except Exception as e:
            logger.error(f"Failed to start application: {e}")
            raise

    yield

    # Shutdown
    logger.info("Shutdown complete")


async def achievement_error_handler(request: Request, exc: AchievementError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Invalid request",
            "errors": errors,
        },
    )


def create_app(coordinator: Optional[AchievementCoordinator] = None) -> FastAPI:
    """Build the application.

    When ``coordinator`` is given it is used as-is and the lifespan does not
    touch the configured databases.
    """
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Student achievement lifecycle: draft, submit, verify",
        version=importlib.metadata.version("achievement-tracker"),
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AchievementError, achievement_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    app.include_router(achievements_router)
    app.mount(
        settings.upload_url_prefix,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )

    @app.get("/health", tags=["system"])
    async def health() -> dict:
        """Basic health check endpoint."""
        return {"status": "ok"}

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/version")
    def version() -> dict[str, str]:
        """Return the version of the application."""
        return {"version": importlib.metadata.version("achievement-tracker")}

    return app


app = create_app()
