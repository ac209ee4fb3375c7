"""Main FastAPI application"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import Database
from .exceptions import WalkError
from .routes import location_socket_router, review_router, users_router, walks_router
from .services import (
    InMemoryConnectionRegistry,
    SessionWorkerPool,
    WalkService,
    make_sample_handler,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize application on startup"""
    settings = get_settings()

    # Create data directory for SQLite if needed
    if settings.is_sqlite:
        # Extract path from sqlite URL (e.g., sqlite+aiosqlite:///./data/db.db)
        db_path = settings.database_url.split("///")[-1]
        db_dir = os.path.dirname(db_path)
        if db_dir and db_path != ":memory:":
            os.makedirs(db_dir, exist_ok=True)

    # Initialize database
    db = Database(settings.database_url)
    await db.init_db()
    app.state.db = db
    logger.info(f"Database initialized: {settings.database_url}")

    walks = WalkService(db, settings)
    connections = InMemoryConnectionRegistry()
    app.state.walks = walks
    app.state.connections = connections

    # Start per-session sample workers
    workers = SessionWorkerPool(
        make_sample_handler(walks, connections),
        queue_size=settings.sample_queue_size,
        sample_timeout=settings.sample_timeout_seconds,
        idle_timeout=settings.worker_idle_seconds,
    )
    await workers.start()
    app.state.workers = workers

    yield

    # Cleanup
    await workers.stop()
    await db.close()
    logger.info("Database connection closed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # Include routers
    app.include_router(walks_router)
    app.include_router(location_socket_router)
    app.include_router(users_router)
    app.include_router(review_router)

    @app.exception_handler(WalkError)
    async def walk_error_handler(request: Request, exc: WalkError):
        """Rejected walk operations, the session is unchanged"""
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        workers = getattr(app.state, "workers", None)
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "active_workers": workers.active_workers if workers else 0,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
