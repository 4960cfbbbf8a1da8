"""FastAPI application setup"""
import logging
import random
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from impulse import __version__
from impulse.api.routes import router
from impulse.api.metrics_routes import router as metrics_router
from impulse.api.middleware import setup_cors, setup_rate_limiting
from impulse.config import LOG_LEVEL
from impulse.db.store import HabitStore
from impulse.observability.metrics import errors_total
from impulse.services.container import init_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper())
)

logger = logging.getLogger(__name__)


def create_api_application(
    store: Optional[HabitStore] = None,
    rng: Optional[random.Random] = None
) -> FastAPI:
    """
    Create and configure FastAPI application

    Args:
        store: Store to serve from (built from STORE_BACKEND when None)
        rng: Optional random source for reward draws
    """
    container = init_container(store=store, rng=rng)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle manager for FastAPI application"""
        # Startup
        logger.info("Starting API server...")
        await container.store.open()
        logger.info(f"{type(container.store).__name__} ready")

        yield

        # Shutdown
        logger.info("Shutting down API server...")
        await container.store.close()

    app = FastAPI(
        title="Impulse: The Habit Casino API",
        description="Habit tracking with randomized rewards, streaks and loot",
        version=__version__,
        lifespan=lifespan
    )

    # Setup middleware
    setup_cors(app)
    setup_rate_limiting(app)

    # Include routes
    app.include_router(router)
    app.include_router(metrics_router)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        errors_total.labels(error_type=type(exc).__name__, component="api").inc()
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    logger.info("FastAPI application created")

    return app
