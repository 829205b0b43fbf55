"""
Bubble Map API - Main Application Entry Point.

This module builds and configures the FastAPI application for the Bubble Map:
a location-based ephemeral social map where users drop geotagged "bubbles"
that fade unless people vote on them, next to bot bubbles imported from event
feeds.

Key Responsibilities:
- Configure logging and build the service container from the settings.
- Create the database tables; a store that cannot be initialized stops the
  process.
- Start the periodic tasks (expiry sweep, bot import, decay heartbeat) and
  warm the venue caches in the background.
- Install middleware for correlation IDs, error translation and timing.
- Mount the bubble, suggestion, health and WebSocket routers and the uploaded
  media directory.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from api.dependencies import build_container
from api.endpoints import router, websocket_router
from api.health_router import health_router, monitoring_router
from api.suggestion_endpoints import router as suggestion_router
from core.config import Settings, get_settings
from core.logging_config import setup_logging, get_logger
from core.middleware import ErrorHandlingMiddleware, RequestContextMiddleware


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(settings)
        logger = get_logger("api.startup")

        container = build_container(settings)
        app.state.container = container

        try:
            await container.database.create_db_and_tables()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.critical(f"Database initialization failed, shutting down: {e}")
            raise

        container.media_storage.ensure_directory()

        warm_up_task = None
        if settings.ENABLE_SCHEDULER:
            warm_up_task = asyncio.create_task(container.importer.warm_up())
            container.scheduler.start_all()
            logger.info("Periodic tasks started")

        logger.info("Service startup completed")
        yield

        # Cleanup on shutdown
        logger.info("Shutting down Bubble Map API")
        await container.scheduler.stop_all()
        if warm_up_task and not warm_up_task.done():
            warm_up_task.cancel()
        await container.database.dispose()
        logger.info("Cleanup completed")

    app = FastAPI(
        title="Bubble Map API",
        description="Ephemeral geotagged posts with voting, decay and live updates",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Added last runs first: correlation ID is set before errors are rendered
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health routers FIRST (no identity required for monitoring)
    app.include_router(health_router)
    app.include_router(monitoring_router)

    app.include_router(router)
    app.include_router(suggestion_router)
    app.include_router(websocket_router)

    app.mount(
        settings.MEDIA_URL_PREFIX,
        StaticFiles(directory=settings.UPLOADS_DIR, check_dir=False),
        name="uploads",
    )

    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "3000")),
        reload=False,
        log_level="info",
    )
