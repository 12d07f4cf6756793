"""Connection graph against a real (SQLite) database."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from vibe.db.models import Connection, Notification
from vibe.domain_types import ConnectionStatus, NotificationType
from vibe.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from vibe.social.connection_service import ConnectionService


async def _notifications(db, recipient_id):
    result = await db.execute(
        select(Notification).where(Notification.recipient_id == recipient_id).order_by(Notification.id)
    )
    return list(result.scalars().all())


class TestRequestConnection:
    @pytest.mark.asyncio
    async def test_creates_pending_and_notifies_recipient(self, db_session):
        connection = await ConnectionService(db_session).request_connection(1, 2)

        assert connection.status is ConnectionStatus.PENDING
        assert connection.requester_id == 1
        assert connection.recipient_id == 2
        assert connection.responded_at is None

        notes = await _notifications(db_session, 2)
        assert len(notes) == 1
        assert notes[0].type is NotificationType.CONNECTION_REQUEST
        assert notes[0].actor_id == 1
        assert notes[0].subject_id == connection.id

    @pytest.mark.asyncio
    async def test_self_connection_rejected(self, db_session):
        with pytest.raises(ValidationError):
            await ConnectionService(db_session).request_connection(4, 4)

    @pytest.mark.asyncio
    async def test_duplicate_request_conflicts(self, db_session):
        service = ConnectionService(db_session)
        await service.request_connection(1, 2)
        with pytest.raises(ConflictError):
            await service.request_connection(1, 2)

        count = await db_session.scalar(select(func.count()).select_from(Connection))
        assert count == 1

    @pytest.mark.asyncio
    async def test_reverse_direction_is_a_separate_pair(self, db_session):
        service = ConnectionService(db_session)
        await service.request_connection(1, 2)
        reverse = await service.request_connection(2, 1)
        assert reverse.requester_id == 2

    @pytest.mark.asyncio
    async def test_rejection_blocks_new_request(self, db_session):
        service = ConnectionService(db_session)
        connection = await service.request_connection(1, 2)
        await service.respond_to_connection(connection.id, 2, "rejected")
        with pytest.raises(ConflictError):
            await service.request_connection(1, 2)


class TestRespondToConnection:
    @pytest.mark.asyncio
    async def test_accept_notifies_requester(self, db_session):
        service = ConnectionService(db_session)
        connection = await service.request_connection(1, 2)

        accepted = await service.respond_to_connection(connection.id, 2, "accepted")

        assert accepted.status is ConnectionStatus.ACCEPTED
        assert accepted.responded_at is not None
        notes = await _notifications(db_session, 1)
        assert [n.type for n in notes] == [NotificationType.CONNECTION_ACCEPTED]
        assert notes[0].actor_id == 2

    @pytest.mark.asyncio
    async def test_reject_does_not_notify(self, db_session):
        service = ConnectionService(db_session)
        connection = await service.request_connection(1, 2)

        rejected = await service.respond_to_connection(connection.id, 2, "rejected")

        assert rejected.status is ConnectionStatus.REJECTED
        assert await _notifications(db_session, 1) == []

    @pytest.mark.asyncio
    async def test_only_recipient_may_respond(self, db_session):
        service = ConnectionService(db_session)
        connection = await service.request_connection(1, 2)
        for outsider in (1, 3):
            with pytest.raises(ForbiddenError):
                await service.respond_to_connection(connection.id, outsider, "accepted")

        still = await service.get_connection(connection.id)
        assert still.status is ConnectionStatus.PENDING

    @pytest.mark.asyncio
    async def test_terminal_status_is_final(self, db_session):
        service = ConnectionService(db_session)
        connection = await service.request_connection(1, 2)
        await service.respond_to_connection(connection.id, 2, "accepted")

        with pytest.raises(ConflictError):
            await service.respond_to_connection(connection.id, 2, "rejected")
        with pytest.raises(ConflictError):
            await service.respond_to_connection(connection.id, 2, "accepted")

        final = await service.get_connection(connection.id)
        assert final.status is ConnectionStatus.ACCEPTED
        # Requester got exactly one acceptance notification
        assert len(await _notifications(db_session, 1)) == 1

    @pytest.mark.asyncio
    async def test_missing_connection(self, db_session):
        with pytest.raises(NotFoundError):
            await ConnectionService(db_session).respond_to_connection(999, 2, "accepted")

    @pytest.mark.asyncio
    async def test_invalid_decision(self, db_session):
        service = ConnectionService(db_session)
        connection = await service.request_connection(1, 2)
        with pytest.raises(ValidationError):
            await service.respond_to_connection(connection.id, 2, "pending")


class TestListConnections:
    @pytest.mark.asyncio
    async def test_lists_both_directions_newest_first(self, db_session):
        service = ConnectionService(db_session)
        first = await service.request_connection(1, 2)
        second = await service.request_connection(3, 1)
        await service.request_connection(2, 3)

        connections = await service.list_connections(1)
        assert [c.id for c in connections] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_status_filter(self, db_session):
        service = ConnectionService(db_session)
        a = await service.request_connection(1, 2)
        await service.request_connection(1, 3)
        await service.respond_to_connection(a.id, 2, "accepted")

        accepted = await service.list_connections(1, status="accepted")
        pending = await service.list_connections(1, status=ConnectionStatus.PENDING)
        assert [c.id for c in accepted] == [a.id]
        assert len(pending) == 1

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            await ConnectionService(db_session).list_connections(1, status="friends")
