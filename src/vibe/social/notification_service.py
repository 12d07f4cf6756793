"""Notification dispatch and read-state service.

Domain events from the connection, engagement and progression services are
translated here into persisted Notification rows:
1. Self-notifications (actor == recipient) are dropped
2. Content-bearing events (comment, message) get a truncated snippet
3. Rows are append-only; only is_read ever changes

Authorization of read-state changes is the transport's job; this service
trusts the notification id it is given.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.config import get_settings
from vibe.db.models import Notification
from vibe.domain_types import NotificationType
from vibe.errors import NotFoundError
from vibe.events import DomainEvent

logger = logging.getLogger(__name__)


def make_snippet(text: str | None, length: int) -> str | None:
    """Return the first ``length`` characters of ``text`` (None stays None)."""
    if text is None:
        return None
    return text[:length]


def build_notification(event: DomainEvent, snippet_length: int) -> Notification | None:
    """Pure mapping from a domain event to an unsaved Notification.

    Returns None when the event would address its own actor.
    """
    if event.actor_id is not None and event.actor_id == event.recipient_id:
        return None

    notification_type: NotificationType = event.notification_type
    content = event.body
    if event.carries_content:
        content = make_snippet(content, snippet_length)

    return Notification(
        recipient_id=event.recipient_id,
        type=notification_type,
        actor_id=event.actor_id,
        subject_id=event.subject_id,
        content=content,
        is_read=False,
        created_at=datetime.now(timezone.utc),
    )


class NotificationDispatcher:
    """Persists notifications for domain events and manages read state."""

    def __init__(self, db: AsyncSession, snippet_length: int | None = None) -> None:
        self.db = db
        self.snippet_length = (
            snippet_length if snippet_length is not None else get_settings().notification_snippet_length
        )

    async def emit(self, event: DomainEvent) -> Notification | None:
        """Persist the notification for ``event``. Returns None if dropped."""
        notification = build_notification(event, self.snippet_length)
        if notification is None:
            logger.warning(
                "Dropped self-notification %s for user %s",
                event.notification_type.value,
                event.recipient_id,
            )
            return None

        self.db.add(notification)
        await self.db.flush()
        logger.debug(
            "Notification %s (%s) -> user %s",
            notification.id,
            notification.type.value,
            notification.recipient_id,
        )
        return notification

    async def get_notification(self, notification_id: int) -> Notification:
        """Fetch a notification or raise NotFoundError."""
        notification = await self.db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        return notification

    async def mark_read(self, notification_id: int) -> Notification:
        """Flip is_read to true (idempotent)."""
        result = await self.db.execute(
            update(Notification)
            .where(Notification.id == notification_id)
            .values(is_read=True)
            .returning(Notification.id)
        )
        if result.first() is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        await self.db.flush()
        return await self._reload(notification_id)

    async def mark_all_read(self, recipient_id: int) -> int:
        """Mark every unread notification of a user as read. Returns count updated."""
        result = await self.db.execute(
            update(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await self.db.flush()
        return result.rowcount

    async def list_notifications(
        self,
        recipient_id: int,
        is_read: bool | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Notification], int]:
        """Get a user's notifications (paginated, most recent first)."""
        filters = [Notification.recipient_id == recipient_id]
        if is_read is not None:
            filters.append(Notification.is_read.is_(is_read))

        total_result = await self.db.execute(
            select(func.count()).select_from(Notification).where(*filters)
        )
        total = total_result.scalar_one()

        result = await self.db.execute(
            select(Notification)
            .where(*filters)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        return list(result.scalars().all()), total

    async def get_unread_count(self, recipient_id: int) -> int:
        """Get count of unread notifications."""
        result = await self.db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
        )
        return result.scalar_one()

    async def _reload(self, notification_id: int) -> Notification:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.id == notification_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
