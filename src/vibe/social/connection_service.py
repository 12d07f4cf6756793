"""Connection graph: directed requests with accept/reject resolution.

State machine (see VALID_CONNECTION_TRANSITIONS):
    pending -> accepted | rejected, both terminal.

At most one row exists per ordered (requester, recipient) pair, enforced by
the unique constraint and an INSERT .. ON CONFLICT DO NOTHING, so a rejected
request permanently blocks a new request in the same direction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.database import upsert_insert
from vibe.db.models import Connection
from vibe.domain_types import VALID_CONNECTION_TRANSITIONS, ConnectionStatus
from vibe.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from vibe.events import ConnectionAccepted, ConnectionRequested
from vibe.social.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)


def validate_transition(current: ConnectionStatus, target: ConnectionStatus) -> None:
    """Raise ConflictError if ``current -> target`` is not an allowed transition."""
    valid = VALID_CONNECTION_TRANSITIONS.get(current, [])
    if target not in valid:
        raise ConflictError(
            f"Invalid transition: {current.value} -> {target.value}. "
            f"Valid transitions: {[s.value for s in valid]}"
        )


def parse_decision(decision: str | ConnectionStatus) -> ConnectionStatus:
    """Coerce a response decision, rejecting anything but accepted/rejected."""
    try:
        status = ConnectionStatus(decision)
    except ValueError:
        raise ValidationError(f"Invalid decision: {decision}") from None
    if status is ConnectionStatus.PENDING:
        raise ValidationError("Decision must be 'accepted' or 'rejected'")
    return status


class ConnectionService:
    """Creates, resolves and lists connections."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher or NotificationDispatcher(db)

    async def request_connection(self, requester_id: int, recipient_id: int) -> Connection:
        """Create a pending connection request and notify the recipient."""
        if requester_id == recipient_id:
            raise ValidationError("Cannot connect to yourself")

        stmt = (
            upsert_insert(self.db, Connection)
            .values(
                requester_id=requester_id,
                recipient_id=recipient_id,
                status=ConnectionStatus.PENDING,
                created_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_nothing(index_elements=["requester_id", "recipient_id"])
            .returning(Connection.id)
        )
        inserted = (await self.db.execute(stmt)).first()
        if inserted is None:
            raise ConflictError("Connection already exists")

        connection = await self._reload(inserted.id)
        logger.info(
            "Connection %s requested: %s -> %s", connection.id, requester_id, recipient_id,
        )

        await self.dispatcher.emit(
            ConnectionRequested(
                recipient_id=recipient_id,
                actor_id=requester_id,
                subject_id=connection.id,
            )
        )
        return connection

    async def respond_to_connection(
        self,
        connection_id: int,
        responder_id: int,
        decision: str | ConnectionStatus,
    ) -> Connection:
        """Accept or reject a pending request. Only the recipient may respond."""
        target = parse_decision(decision)
        connection = await self.get_connection(connection_id)

        if connection.recipient_id != responder_id:
            raise ForbiddenError("Not authorized to update this connection")

        validate_transition(connection.status, target)

        # Guard on status so a concurrent response cannot apply a second transition
        result = await self.db.execute(
            update(Connection)
            .where(
                Connection.id == connection_id,
                Connection.status == ConnectionStatus.PENDING,
            )
            .values(status=target, responded_at=datetime.now(timezone.utc))
            .returning(Connection.id)
        )
        if result.first() is None:
            raise ConflictError("Connection has already been resolved")

        connection = await self._reload(connection_id)
        logger.info("Connection %s %s by %s", connection_id, target.value, responder_id)

        if target is ConnectionStatus.ACCEPTED:
            await self.dispatcher.emit(
                ConnectionAccepted(
                    recipient_id=connection.requester_id,
                    actor_id=responder_id,
                    subject_id=connection.id,
                )
            )
        return connection

    async def list_connections(
        self,
        user_id: int,
        status: str | ConnectionStatus | None = None,
    ) -> list[Connection]:
        """All connections where the user is either party, newest first."""
        query = select(Connection).where(
            or_(Connection.requester_id == user_id, Connection.recipient_id == user_id)
        )
        if status is not None:
            try:
                status = ConnectionStatus(status)
            except ValueError:
                raise ValidationError(f"Invalid status filter: {status}") from None
            query = query.where(Connection.status == status)

        result = await self.db.execute(
            query.order_by(Connection.created_at.desc(), Connection.id.desc())
        )
        return list(result.scalars().all())

    async def get_connection(self, connection_id: int) -> Connection:
        """Fetch a connection or raise NotFoundError."""
        connection = await self.db.get(Connection, connection_id)
        if connection is None:
            raise NotFoundError("Connection not found")
        return connection

    async def _reload(self, connection_id: int) -> Connection:
        result = await self.db.execute(
            select(Connection)
            .where(Connection.id == connection_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
