"""
Main application entry point for the Elpris service.
Initializes FastAPI app, preferences store, scheduler, and starts the service.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from elpris.api.routes import router as api_router
from elpris.config import settings
from elpris.database.service import db_service
from elpris.exceptions import DatabaseError
from elpris.logging_config import get_logger, setup_logging
from elpris.scheduler.simple_scheduler import simple_scheduler

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown procedures.
    """
    # Startup
    setup_logging()
    try:
        await db_service.init_database()
    except DatabaseError as e:
        # Charts still work on default preferences
        logger.error("Preferences store unavailable", error=str(e))
    if settings.refresh_enabled:
        await simple_scheduler.start()

    yield

    # Shutdown
    await simple_scheduler.stop()
    await db_service.close()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title="Elpris API",
        description="Nordic day-ahead electricity spot prices as chart data",
        version="1.0.0",
        docs_url="/docs" if settings.api_debug else None,
        redoc_url="/redoc" if settings.api_debug else None,
        lifespan=lifespan,
    )

    # Include API routes
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "elpris.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
