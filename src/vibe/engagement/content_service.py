"""Content lookup, tag queries, feed and comments.

Content items are owned by the authoring service; ``register_content`` is
its write path into the tables the engine reads (id, author, created_at,
tags).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.db.models import Comment, ContentItem, ContentTag, Reaction
from vibe.engagement.trending_index import TrendingIndex
from vibe.errors import ForbiddenError, NotFoundError, ValidationError
from vibe.events import CommentPosted
from vibe.social.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

MAX_TAG_LENGTH = 64


def normalize_tag(tag: str) -> str:
    """Lower-case a tag and strip whitespace and a leading '#'."""
    return tag.strip().lstrip("#").strip().lower()


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Normalize, de-duplicate and drop empty tags, preserving first-seen order."""
    seen: dict[str, None] = {}
    for tag in tags:
        norm = normalize_tag(tag)
        if not norm:
            continue
        if len(norm) > MAX_TAG_LENGTH:
            raise ValidationError(f"Tag too long: {norm[:16]}...")
        seen.setdefault(norm, None)
    return list(seen)


class ContentService:
    """Reads content items and records comments on them."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
        trending_index: TrendingIndex | None = None,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher or NotificationDispatcher(db)
        self.trending_index = trending_index
        if trending_index is not None:
            trending_index.bind(db)

    async def commit(self) -> None:
        """Commit the session, then publish staged trending writes."""
        await self.db.commit()
        if self.trending_index is not None:
            await self.trending_index.flush()

    async def register_content(
        self,
        author_id: int,
        body: str | None = None,
        tags: Iterable[str] = (),
        media_url: str | None = None,
        media_type: str | None = None,
        created_at: datetime | None = None,
    ) -> ContentItem:
        """Store a content item with its normalized tag set."""
        item = ContentItem(
            author_id=author_id,
            body=body,
            media_url=media_url,
            media_type=media_type,
            created_at=created_at or datetime.now(timezone.utc),
            tags=[ContentTag(tag=t) for t in normalize_tags(tags)],
        )
        self.db.add(item)
        await self.db.flush()

        if self.trending_index is not None:
            self.trending_index.stage_add(item.id, item.created_at)
        return item

    async def get_content(self, content_id: int) -> ContentItem:
        """Fetch a content item or raise NotFoundError."""
        item = await self.db.get(ContentItem, content_id)
        if item is None:
            raise NotFoundError("Content not found")
        return item

    async def delete_content(self, user_id: int, content_id: int) -> None:
        """Delete the caller's own content item with its tags, comments and votes."""
        item = await self.get_content(content_id)
        if item.author_id != user_id:
            raise ForbiddenError("Not authorized to delete this content")

        await self.db.execute(delete(Comment).where(Comment.content_id == item.id))
        await self.db.execute(delete(Reaction).where(Reaction.content_id == item.id))
        await self.db.delete(item)
        await self.db.flush()

        if self.trending_index is not None:
            self.trending_index.stage_remove(item.id, item.created_at)
        logger.info("User %s deleted content %s", user_id, item.id)

    async def query_by_tag(self, tag: str) -> list[ContentItem]:
        """Content carrying ``tag`` (case-insensitive, exact), newest first."""
        norm = normalize_tag(tag)
        if not norm:
            return []
        result = await self.db.execute(
            select(ContentItem)
            .join(ContentTag, ContentTag.content_id == ContentItem.id)
            .where(ContentTag.tag == norm)
            .order_by(ContentItem.created_at.desc(), ContentItem.id.desc())
        )
        return list(result.scalars().all())

    async def list_feed(self, limit: int = 10, offset: int = 0) -> list[ContentItem]:
        """All content, newest first."""
        result = await self.db.execute(
            select(ContentItem)
            .order_by(ContentItem.created_at.desc(), ContentItem.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_by_author(self, author_id: int) -> list[ContentItem]:
        """A single author's content, newest first."""
        result = await self.db.execute(
            select(ContentItem)
            .where(ContentItem.author_id == author_id)
            .order_by(ContentItem.created_at.desc(), ContentItem.id.desc())
        )
        return list(result.scalars().all())

    # --- Comments ---

    async def add_comment(self, user_id: int, content_id: int, body: str) -> Comment:
        """Comment on a content item and notify its author."""
        if not body or not body.strip():
            raise ValidationError("Comment must not be empty")
        item = await self.get_content(content_id)

        comment = Comment(
            content_id=item.id,
            user_id=user_id,
            body=body,
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(comment)
        await self.db.flush()

        # Dispatcher drops the event when the author comments on their own post
        await self.dispatcher.emit(
            CommentPosted(
                recipient_id=item.author_id,
                actor_id=user_id,
                subject_id=item.id,
                text=body,
            )
        )
        return comment

    async def list_comments(self, content_id: int) -> list[Comment]:
        """Comments on a content item, oldest first."""
        await self.get_content(content_id)
        result = await self.db.execute(
            select(Comment)
            .where(Comment.content_id == content_id)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        return list(result.scalars().all())
