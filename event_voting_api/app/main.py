"""
Main entrypoint for the Event Voting API.

This module assembles the FastAPI application, sets up logging and
includes versioned routers.  ``create_app`` builds and configures the
app, which is instantiated at import time as ``app``::

    uvicorn event_voting_api.app.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api.v1.router import router as v1_router
from .core.config import settings
from .core.db import init_db
from .core.logging_config import setup_logging
from .services.event_service import EventService


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Apply migrations, then close events whose deadline passed while
    # the service was down.  There is no background scheduler.
    init_db()
    await EventService.close_expired_events()
    yield


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Logging is configured first so that everything below can log.
    Routes are mounted under ``/api/v1``.
    """
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(
        title=settings.project_name,
        version=settings.api_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.include_router(v1_router, prefix="/api/v1")
    return app


# Create the application instance at import time so that uvicorn can
# discover it without calling create_app manually.
app = create_app()
