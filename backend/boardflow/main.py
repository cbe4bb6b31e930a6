"""FastAPI application entry point.

This module defines the main FastAPI application with CORS middleware,
lifespan management, and API routing configuration.

Logging:
    Initializes structured logging on application startup.
    All application events are logged with appropriate context.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from boardflow import __version__
from boardflow.api import router as api_router
from boardflow.core.config import settings
from boardflow.core.logging import get_logger, setup_logging
from boardflow.db.session import engine
from boardflow.services.automation.handlers.registry import (
    get_action_registry,
    get_condition_registry,
    get_trigger_registry,
)

# Initialize logging system
setup_logging(
    log_level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    service_name=settings.PROJECT_NAME,
    enable_json=settings.LOG_JSON_FORMAT,
)

# Get application logger
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:  # noqa: ARG001 - Required by FastAPI lifespan interface
    """Application lifespan context manager.

    Loads the handler registries on startup so a bad
    ``AUTOMATION_ACTION_HANDLERS`` entry fails fast, and disposes the
    database engine on shutdown.
    """
    # Startup
    logger.info(
        f"Starting {settings.PROJECT_NAME}",
        extra={
            "context": {
                "action": "application_startup",
                "version": __version__,
                "debug": settings.DEBUG,
                "log_level": settings.LOG_LEVEL,
            }
        },
    )

    registered = {
        "triggers": get_trigger_registry().list_registered(),
        "conditions": get_condition_registry().list_registered(),
        "actions": get_action_registry().list_registered(),
    }

    logger.info(
        "Application startup completed",
        extra={
            "context": {
                "action": "application_startup",
                "status": "success",
                "handlers": registered,
            }
        },
    )

    yield

    # Shutdown
    logger.info(
        f"Shutting down {settings.PROJECT_NAME}",
        extra={"context": {"action": "application_shutdown"}},
    )

    await engine.dispose()

    logger.info(
        "Application shutdown completed",
        extra={"context": {"action": "application_shutdown", "status": "success"}},
    )


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Project-scoped automation rules for task boards",
    version=__version__,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns a simple status indicating the service is running.
    """
    return {"status": "healthy"}


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint.

    Returns basic API information.
    """
    return {
        "name": settings.PROJECT_NAME,
        "version": __version__,
        "docs": "/docs",
    }


# Development entry point: python -m boardflow.main
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("boardflow.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
