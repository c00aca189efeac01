"""
Sales Flow Back Office - Main FastAPI Application

Entry point for the task-workflow API: reservation and commission flows,
task status, assignments, comments, rescission and notification counts.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from .config.settings import settings
from .api.deps import close_notification_hub
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .realtime.change_feed import close_change_feed
from .repositories.mongo_client import create_indexes, close_connection, health_check
from .scheduler.cleanup_scheduler import start_scheduler, stop_scheduler
from .utils.logger import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)

VERSION = "1.0.0"


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create MongoDB indexes, start the cleanup scheduler.
    Shutdown: stop the scheduler, close notification sessions, the change feed and the connection.
    """
    logger.info("Starting Sales Flow Back Office...")

    try:
        create_indexes()
    except PyMongoError as e:
        logger.error(f"Failed to create indexes: {e}")

    start_scheduler()
    logger.info("Application started successfully")

    yield

    logger.info("Shutting down...")
    stop_scheduler()
    close_notification_hub()
    close_change_feed()
    close_connection()
    logger.info("Application shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    application = FastAPI(
        title="Sales Flow Back Office",
        description="Reservation and commission task workflows",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    _configure_middleware(application)
    register_error_handlers(application)
    _configure_routes(application)

    return application


def _configure_middleware(app: FastAPI) -> None:
    # allow_credentials must be False when every origin is allowed
    allow_all = settings.cors_origins.strip() == "*"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )
    app.add_middleware(CorrelationIdMiddleware)


def _configure_routes(app: FastAPI) -> None:
    app.include_router(api_router, prefix="/api/v1")

    # Health check endpoint (no auth required)
    @app.get("/health", tags=["Health"])
    def health():
        mongo_health = health_check()
        return {
            "status": "healthy" if mongo_health.get("status") == "healthy" else "degraded",
            "version": VERSION,
            "environment": settings.environment,
            "mongo": mongo_health
        }


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()
