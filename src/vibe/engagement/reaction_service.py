"""Reaction aggregation and trending ranking.

set_reaction keeps exactly one row per (content, user). The row is written
with single-statement compare-and-swap steps so the caller learns whether
its call changed the like state:
1. UPDATE .. SET is_like = :v WHERE is_like <> :v   (flip an existing vote)
2. INSERT .. ON CONFLICT DO NOTHING                  (first vote)
3. neither matched: the row already holds :v, unless a concurrent writer
   changed it between the two statements, in which case retry.

Only a transition into is_like = true notifies the author and bumps the
trending score; re-confirming an existing like does neither.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import NamedTuple

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.config import get_settings
from vibe.database import upsert_insert
from vibe.db.models import ContentItem, Reaction
from vibe.engagement.content_service import ContentService
from vibe.engagement.trending_index import TrendingIndex, build_member
from vibe.errors import ConflictError, ValidationError
from vibe.events import ReactionRecorded
from vibe.social.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

MAX_CAS_ATTEMPTS = 5


class TrendingItem(NamedTuple):
    content: ContentItem
    like_count: int


class ReactionService:
    """Records likes/dislikes and ranks content by likes."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
        trending_index: TrendingIndex | None = None,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher or NotificationDispatcher(db)
        self.trending_index = trending_index
        self.content = ContentService(db, self.dispatcher, trending_index)

    async def set_reaction(self, user_id: int, content_id: int, is_like: bool) -> Reaction:
        """Upsert the user's vote on a content item and return the stored row."""
        item = await self.content.get_content(content_id)
        previous = await self._write_vote(user_id, content_id, is_like)

        changed = previous is not is_like
        if changed:
            logger.debug(
                "Reaction %s -> %s by user %s on content %s",
                previous, is_like, user_id, content_id,
            )

        if self.trending_index is not None and changed:
            delta = 1 if is_like else (-1 if previous else 0)
            self.trending_index.stage_delta(item.id, item.created_at, delta)

        if changed and is_like and user_id != item.author_id:
            await self.dispatcher.emit(
                ReactionRecorded(
                    recipient_id=item.author_id,
                    actor_id=user_id,
                    subject_id=item.id,
                )
            )

        return await self._load(user_id, content_id)

    async def commit(self) -> None:
        await self.content.commit()

    async def _write_vote(self, user_id: int, content_id: int, is_like: bool) -> bool | None:
        """Apply the vote; return the like state it replaced (None if there was no row)."""
        now = datetime.now(timezone.utc)
        for _ in range(MAX_CAS_ATTEMPTS):
            flipped = await self.db.execute(
                update(Reaction)
                .where(
                    Reaction.content_id == content_id,
                    Reaction.user_id == user_id,
                    Reaction.is_like.is_(not is_like),
                )
                .values(is_like=is_like, updated_at=now)
                .returning(Reaction.id)
            )
            if flipped.first() is not None:
                return not is_like

            inserted = await self.db.execute(
                upsert_insert(self.db, Reaction)
                .values(
                    content_id=content_id,
                    user_id=user_id,
                    is_like=is_like,
                    created_at=now,
                    updated_at=now,
                )
                .on_conflict_do_nothing(index_elements=["content_id", "user_id"])
                .returning(Reaction.id)
            )
            if inserted.first() is not None:
                return None

            current = await self.db.execute(
                select(Reaction.is_like).where(
                    Reaction.content_id == content_id,
                    Reaction.user_id == user_id,
                )
            )
            if current.scalar_one_or_none() is is_like:
                return is_like

        raise ConflictError("Reaction is being updated concurrently, try again")

    async def _load(self, user_id: int, content_id: int) -> Reaction:
        result = await self.db.execute(
            select(Reaction)
            .where(Reaction.content_id == content_id, Reaction.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def get_reaction(self, user_id: int, content_id: int) -> Reaction | None:
        result = await self.db.execute(
            select(Reaction).where(
                Reaction.content_id == content_id, Reaction.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_reactions(self, content_id: int) -> list[Reaction]:
        """All votes on a content item, oldest first."""
        await self.content.get_content(content_id)
        result = await self.db.execute(
            select(Reaction)
            .where(Reaction.content_id == content_id)
            .order_by(Reaction.created_at.asc(), Reaction.id.asc())
        )
        return list(result.scalars().all())

    async def get_reaction_counts(self, content_id: int) -> dict[str, int]:
        """Like and dislike totals for a content item."""
        await self.content.get_content(content_id)
        result = await self.db.execute(
            select(Reaction.is_like, func.count(Reaction.id))
            .where(Reaction.content_id == content_id)
            .group_by(Reaction.is_like)
        )
        counts = {bool(is_like): count for is_like, count in result}
        return {"likes": counts.get(True, 0), "dislikes": counts.get(False, 0)}

    # --- Trending ---

    async def compute_trending(self, limit: int | None = None) -> list[TrendingItem]:
        """Top content by like count, ties broken newest first. No time decay."""
        settings = get_settings()
        if limit is None:
            limit = settings.trending_default_limit
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        if limit > settings.trending_max_limit:
            raise ValidationError(f"limit must be at most {settings.trending_max_limit}")

        if self.trending_index is not None:
            return await self._trending_from_index(limit)

        like_count = func.count(Reaction.id).label("like_count")
        result = await self.db.execute(
            select(ContentItem, like_count)
            .outerjoin(
                Reaction,
                and_(Reaction.content_id == ContentItem.id, Reaction.is_like.is_(True)),
            )
            .group_by(ContentItem.id)
            .order_by(like_count.desc(), ContentItem.created_at.desc(), ContentItem.id.desc())
            .limit(limit)
        )
        return [TrendingItem(content=row[0], like_count=row[1]) for row in result]

    async def _trending_from_index(self, limit: int) -> list[TrendingItem]:
        """Read the ranking from Redis, skipping members without a matching row.

        Members whose row is gone (deleted, or an id reused by a newer item)
        are pruned from the set, and the next page is read to fill ``limit``.
        """
        index = self.trending_index
        ranked: list[TrendingItem] = []
        seen: set[int] = set()
        offset = 0
        while len(ranked) < limit:
            page = await index.top(limit, offset)
            if not page:
                break
            offset += len(page)

            ids = {entry.content_id for entry in page}
            result = await self.db.execute(select(ContentItem).where(ContentItem.id.in_(ids)))
            items = {item.id: item for item in result.scalars()}

            stale = []
            for entry in page:
                item = items.get(entry.content_id)
                if item is None or build_member(item.id, item.created_at) != entry.member:
                    stale.append(entry.member)
                    continue
                if item.id in seen:
                    continue
                seen.add(item.id)
                ranked.append(TrendingItem(content=item, like_count=entry.like_count))
                if len(ranked) == limit:
                    break

            if stale:
                logger.warning("Pruning %d stale trending members", len(stale))
                await index.remove_members(stale)
                offset -= len(stale)
            if len(page) < limit:
                break
        return ranked
