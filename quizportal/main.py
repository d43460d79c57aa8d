"""
Main application entry point for the quiz portal backend.

This module builds the FastAPI application, wires the services onto the
configured storage backend and registers the component routers.

Usage:
    - Direct: python -m quizportal.main
    - ASGI server: uvicorn quizportal.main:app
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from quizportal import __version__
from quizportal.analytics.controllers import router as analytics_router
from quizportal.api import (
    portal_error_handler,
    register_module,
    validation_exception_handler,
)
from quizportal.assignments.controllers import router as assignments_router
from quizportal.attempts.controllers import router as attempts_router
from quizportal.catalog.controllers import router as catalog_router
from quizportal.common.exceptions import PortalError
from quizportal.common.logger import app_logger
from quizportal.config import Settings, get_settings
from quizportal.database.session import (
    close_database,
    get_session_factory,
    initialize_database,
)
from quizportal.dependencies import (
    Services,
    build_memory_services,
    build_sql_services,
)
from quizportal.learning.controllers import router as modules_router

logger = app_logger.getChild("main")


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Application settings; the process-wide settings when omitted
        services: Prebuilt services; built from STORAGE_BACKEND when omitted

    Returns:
        The configured application
    """
    settings = settings or get_settings()
    uses_database = services is None and settings.uses_sql_storage

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if uses_database:
            try:
                await initialize_database(
                    database_url=settings.DATABASE_URL,
                    echo=settings.SQL_ECHO,
                    pool_size=settings.DB_POOL_SIZE,
                    max_overflow=settings.DB_MAX_OVERFLOW,
                    pool_timeout=settings.DB_POOL_TIMEOUT,
                )
            except Exception as e:
                logger.error(f"Failed to initialize application: {str(e)}")
                raise
            app.state.services = build_sql_services(settings, get_session_factory())
        logger.info("Application startup complete")
        yield
        if uses_database:
            await close_database()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="API for authoring, assigning, taking and analysing tests and learning modules",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PortalError, portal_error_handler)

    if services is not None:
        app.state.services = services
    elif not uses_database:
        app.state.services = build_memory_services(settings)

    main_router = APIRouter()
    register_module(main_router, "tests", catalog_router)
    register_module(main_router, "assignments", assignments_router)
    register_module(main_router, "attempts", attempts_router)
    register_module(main_router, "modules", modules_router)
    register_module(main_router, "analytics", analytics_router)
    app.include_router(main_router, prefix=settings.API_V1_STR)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": f"Welcome to {settings.PROJECT_NAME} API"}

    logger.info(f"Application initialized with {len(app.routes)} routes")
    return app


app = create_app()

# Entry point for running the application directly
if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))
    reload_enabled = os.environ.get("RELOAD", "false").lower() == "true"

    logger.info(f"Starting server on {host}:{port} (reload: {reload_enabled})")

    uvicorn.run(
        "quizportal.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
        log_level="info"
    )
