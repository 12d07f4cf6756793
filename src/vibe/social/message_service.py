"""Direct messages between users."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.db.models import Message
from vibe.errors import ValidationError
from vibe.events import MessageSent
from vibe.social.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)


class MessageService:
    """Sends messages and lists conversations."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher or NotificationDispatcher(db)

    async def send_message(self, sender_id: int, receiver_id: int, body: str) -> Message:
        """Persist a message and notify the receiver with a snippet of it."""
        if sender_id == receiver_id:
            raise ValidationError("Cannot message yourself")
        if not body or not body.strip():
            raise ValidationError("Message body must not be empty")

        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            body=body,
            is_read=False,
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(message)
        await self.db.flush()

        await self.dispatcher.emit(
            MessageSent(
                recipient_id=receiver_id,
                actor_id=sender_id,
                subject_id=message.id,
                text=body,
            )
        )
        return message

    async def get_conversation(self, user_id: int, other_user_id: int) -> list[Message]:
        """Messages exchanged between two users, oldest first."""
        result = await self.db.execute(
            select(Message)
            .where(
                or_(
                    and_(Message.sender_id == user_id, Message.receiver_id == other_user_id),
                    and_(Message.sender_id == other_user_id, Message.receiver_id == user_id),
                )
            )
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(result.scalars().all())
