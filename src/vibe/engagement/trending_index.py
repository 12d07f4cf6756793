"""Trending index: Redis sorted set of like counts for O(log N) ranking.

Score is the content item's like count. Members encode the creation time and
id as zero-padded digits, so ZREVRANGE breaks score ties newest first (Redis
orders equal scores lexicographically) exactly like the SQL ranking:
ORDER BY like_count DESC, created_at DESC, id DESC.

PostgreSQL stays the source of truth; ``rebuild`` re-derives the set from it.
Services only stage writes. Staged writes reach Redis through ``flush`` once
the database transaction has committed and are dropped when it rolls back.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import NamedTuple

from redis.asyncio import Redis
from sqlalchemy import and_, event, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.db.models import ContentItem, Reaction

logger = logging.getLogger(__name__)

_PAD = 20


def build_member(content_id: int, created_at: datetime) -> str:
    """Sortable member string: '<created_at micros>:<content id>'."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    micros = int(created_at.timestamp() * 1_000_000)
    return f"{micros:0{_PAD}d}:{content_id:0{_PAD}d}"


def parse_member(member: str | bytes) -> int:
    """Extract the content id from a member string."""
    if isinstance(member, bytes):
        member = member.decode()
    return int(member.rsplit(":", 1)[1])


class RankedMember(NamedTuple):
    content_id: int
    member: str
    like_count: int


class TrendingIndex:
    """Incrementally maintained trending ranking backed by a Redis ZSET."""

    def __init__(self, redis: Redis, key: str = "trending:likes") -> None:
        self.redis = redis
        self.key = key
        self._pending: list[tuple[str, str, int]] = []
        self._bound: AsyncSession | None = None

    # --- Transaction-bound writes ---

    def bind(self, db: AsyncSession) -> None:
        """Drop staged writes whenever ``db`` rolls back."""
        if self._bound is db:
            return
        event.listen(db.sync_session, "after_soft_rollback", self._on_rollback)
        self._bound = db

    def _on_rollback(self, session, previous_transaction) -> None:
        if self._pending:
            logger.debug("Discarding %d staged trending writes", len(self._pending))
        self.discard()

    def stage_add(self, content_id: int, created_at: datetime) -> None:
        self._pending.append(("add", build_member(content_id, created_at), 0))

    def stage_delta(self, content_id: int, created_at: datetime, delta: int) -> None:
        if delta == 0:
            return
        self._pending.append(("incr", build_member(content_id, created_at), delta))

    def stage_remove(self, content_id: int, created_at: datetime) -> None:
        self._pending.append(("remove", build_member(content_id, created_at), 0))

    @property
    def pending(self) -> int:
        return len(self._pending)

    def discard(self) -> None:
        self._pending.clear()

    async def flush(self) -> int:
        """Apply staged writes in order. Call only after the commit succeeded."""
        ops, self._pending = self._pending, []
        for op, member, delta in ops:
            if op == "add":
                await self.redis.zadd(self.key, {member: 0}, nx=True)
            elif op == "incr":
                await self.redis.zincrby(self.key, delta, member)
            else:
                await self.redis.zrem(self.key, member)
        return len(ops)

    # --- Direct access ---

    async def remove_members(self, members: list[str]) -> None:
        if members:
            await self.redis.zrem(self.key, *members)

    async def top(self, limit: int, offset: int = 0) -> list[RankedMember]:
        """Return the ``limit`` highest-ranked entries starting at ``offset``."""
        entries = await self.redis.zrevrange(
            self.key, offset, offset + limit - 1, withscores=True,
        )
        ranked = []
        for member, score in entries:
            if isinstance(member, bytes):
                member = member.decode()
            ranked.append(RankedMember(parse_member(member), member, int(score)))
        return ranked

    async def rebuild(self, db: AsyncSession) -> int:
        """Rebuild the sorted set from the reactions table. Returns item count."""
        like_count = func.count(Reaction.id).label("like_count")
        result = await db.execute(
            select(ContentItem.id, ContentItem.created_at, like_count)
            .outerjoin(
                Reaction,
                and_(Reaction.content_id == ContentItem.id, Reaction.is_like.is_(True)),
            )
            .group_by(ContentItem.id, ContentItem.created_at)
        )
        mapping = {
            build_member(row.id, row.created_at): row.like_count
            for row in result
        }

        pipe = self.redis.pipeline()
        pipe.delete(self.key)
        if mapping:
            pipe.zadd(self.key, mapping)
        await pipe.execute()

        logger.info("Rebuilt trending index %s with %d items", self.key, len(mapping))
        return len(mapping)
