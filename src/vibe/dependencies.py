"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.config import get_settings
from vibe.database import get_session
from vibe.engagement.reaction_service import ReactionService
from vibe.engagement.trending_index import TrendingIndex
from vibe.redis_client import get_redis


async def get_current_user_id(x_user_id: str | None = Header(None)) -> int:
    """Caller identity, asserted by the upstream gateway in X-User-Id."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id header") from None
    if user_id < 1:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id header")
    return user_id


async def get_redis_dep() -> Redis | None:
    """The Redis client, or None when running without Redis."""
    if not get_settings().redis_enabled:
        return None
    return get_redis()


async def get_trending_index(redis: Redis | None = Depends(get_redis_dep)) -> TrendingIndex | None:
    """Redis trending index when configured, else None (SQL ranking)."""
    settings = get_settings()
    if settings.trending_backend != "redis" or redis is None:
        return None
    return TrendingIndex(redis, key=settings.trending_index_key)


async def get_reaction_service(
    db: AsyncSession = Depends(get_session),
    trending_index: TrendingIndex | None = Depends(get_trending_index),
) -> ReactionService:
    return ReactionService(db, trending_index=trending_index)
