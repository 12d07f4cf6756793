"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from vibe.config import get_settings
from vibe.database import close_db, create_schema, get_session, init_db
from vibe.engagement.router import router as engagement_router
from vibe.engagement.trending_index import TrendingIndex
from vibe.health.router import router as health_router
from vibe.middleware import setup_middleware
from vibe.progression.router import router as progression_router
from vibe.progression.seed import seed_definitions
from vibe.redis_client import close_redis, get_redis, init_redis
from vibe.social.notification_router import router as notification_router
from vibe.social.router import router as social_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.auto_create_schema:
        await create_schema()
    if settings.redis_enabled:
        await init_redis(settings.redis_url)

    # Seed learning definitions (idempotent)
    if settings.seed_definitions:
        async for db in get_session():
            await seed_definitions(db)
            break

    # Postgres is the source of truth; re-derive the Redis ranking from it
    if settings.redis_enabled and settings.trending_backend == "redis":
        index = TrendingIndex(get_redis(), key=settings.trending_index_key)
        async for db in get_session():
            await index.rebuild(db)
            break

    logger.info("Vibe engine started (%s)", settings.environment)
    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Vibe Engine API",
        description="Engagement and progression engine: connections, reactions, trending, learning and notifications",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(social_router)
    app.include_router(notification_router)
    app.include_router(engagement_router)
    app.include_router(progression_router)

    return app


app = create_app()
