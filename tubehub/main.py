import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from tubehub.core.config import Settings, get_settings
from tubehub.core.logging import setup_logging
from tubehub.core.redis import create_redis_client, close_redis_client, health_check
from tubehub.database.session import Database
from tubehub.middleware.logging import RequestLoggingMiddleware
from tubehub.middleware.error_handling import ErrorHandlingMiddleware
from tubehub.api.endpoints import engagement, uploads, videos, webhooks
from tubehub.models.schemas import HealthResponse
from tubehub.providers import build_provider_registry
from tubehub.services.background import BackgroundDispatcher
from tubehub.services.engagement_service import EngagementService
from tubehub.services.feed_service import FeedService
from tubehub.services.thumbnail_storage import ThumbnailStorage
from tubehub.services.upload_service import UploadCredentialIssuer

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, settings: Settings, db: Database, redis=None, providers=None, storage=None) -> None:
    """Build services around explicitly constructed resources and attach them to app.state."""
    providers = providers if providers is not None else build_provider_registry(settings)
    storage = storage if storage is not None else ThumbnailStorage.from_settings(settings)
    dispatcher = BackgroundDispatcher(shutdown_timeout=settings.background_shutdown_timeout_seconds)

    app.state.settings = settings
    app.state.db = db
    app.state.redis = redis
    app.state.providers = providers
    app.state.dispatcher = dispatcher
    app.state.feed_service = FeedService(
        db,
        redis,
        ttl_seconds=settings.feed_cache_ttl_seconds,
        page_size=settings.feed_page_size,
    )
    app.state.engagement_service = EngagementService(db, dispatcher, settings)
    app.state.upload_issuer = UploadCredentialIssuer(db, providers, storage, settings)


def create_app(settings: Optional[Settings] = None, manage_resources: bool = True) -> FastAPI:
    """
    Build the application.

    With manage_resources=False the caller attaches state itself through
    init_state (tests).
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not manage_resources:
            yield
            await app.state.dispatcher.shutdown()
            return

        db = Database.from_settings(settings)
        redis = create_redis_client(settings)
        init_state(app, settings, db, redis)
        logger.info(f"{settings.app_name} {settings.app_version} started")
        try:
            yield
        finally:
            await app.state.dispatcher.shutdown()
            await close_redis_client(redis)
            await db.close()
            logger.info(f"{settings.app_name} stopped")

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

    # Add middleware (order matters - last added runs first)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(uploads.router, prefix="/api", tags=["uploads"])
    app.include_router(webhooks.router, prefix="/api", tags=["webhooks"])
    app.include_router(videos.router, prefix="/api", tags=["videos"])
    app.include_router(engagement.router, prefix="/api", tags=["engagement"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": settings.app_name, "version": settings.app_version}

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        database_status = "connected"
        try:
            async with app.state.db.session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            database_status = "disconnected"

        redis_status = "connected" if await health_check(app.state.redis) else "disconnected"
        return HealthResponse(
            status="healthy" if database_status == "connected" else "degraded",
            database=database_status,
            redis=redis_status,
            providers=app.state.providers.names(),
        )

    return app


settings = get_settings()

# Initialize logging system
setup_logging(log_level=settings.log_level, log_dir=settings.log_dir, console=settings.log_to_console)

app = create_app(settings)
