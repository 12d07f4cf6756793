"""NotificationDispatcher against the database."""

from __future__ import annotations

import pytest

from vibe.domain_types import NotificationType
from vibe.errors import NotFoundError
from vibe.events import CommentPosted, ConnectionRequested, LevelUp, ReactionRecorded
from vibe.social.notification_service import NotificationDispatcher


@pytest.fixture
def dispatcher(db_session) -> NotificationDispatcher:
    return NotificationDispatcher(db_session, snippet_length=50)


class TestEmit:
    @pytest.mark.asyncio
    async def test_persists_unread(self, dispatcher):
        notification = await dispatcher.emit(ReactionRecorded(recipient_id=2, actor_id=1, subject_id=3))
        assert notification.id is not None
        assert notification.is_read is False
        assert notification.type is NotificationType.LIKE

    @pytest.mark.asyncio
    async def test_self_notification_not_stored(self, dispatcher):
        dropped = await dispatcher.emit(ConnectionRequested(recipient_id=5, actor_id=5, subject_id=1))
        assert dropped is None
        assert await dispatcher.get_unread_count(5) == 0

    @pytest.mark.asyncio
    async def test_snippet_length_from_settings(self, db_session):
        dispatcher = NotificationDispatcher(db_session)
        notification = await dispatcher.emit(
            CommentPosted(recipient_id=2, actor_id=1, subject_id=3, text="c" * 120),
        )
        assert notification.content == "c" * 50


class TestReadState:
    @pytest.mark.asyncio
    async def test_mark_read_is_idempotent(self, dispatcher):
        notification = await dispatcher.emit(LevelUp(recipient_id=4, new_level=2, title="Explorer"))

        first = await dispatcher.mark_read(notification.id)
        second = await dispatcher.mark_read(notification.id)

        assert first.is_read is True
        assert second.is_read is True
        assert await dispatcher.get_unread_count(4) == 0

    @pytest.mark.asyncio
    async def test_mark_read_missing(self, dispatcher):
        with pytest.raises(NotFoundError):
            await dispatcher.mark_read(999)

    @pytest.mark.asyncio
    async def test_mark_all_read(self, dispatcher):
        for subject in range(3):
            await dispatcher.emit(ReactionRecorded(recipient_id=2, actor_id=1, subject_id=subject))
        await dispatcher.emit(ReactionRecorded(recipient_id=9, actor_id=1, subject_id=1))

        assert await dispatcher.mark_all_read(2) == 3
        assert await dispatcher.mark_all_read(2) == 0
        assert await dispatcher.get_unread_count(2) == 0
        assert await dispatcher.get_unread_count(9) == 1


class TestListNotifications:
    @pytest.mark.asyncio
    async def test_newest_first_with_total(self, dispatcher):
        ids = []
        for subject in range(5):
            n = await dispatcher.emit(ReactionRecorded(recipient_id=2, actor_id=1, subject_id=subject))
            ids.append(n.id)

        page, total = await dispatcher.list_notifications(2, page=1, per_page=2)

        assert total == 5
        assert [n.id for n in page] == [ids[4], ids[3]]

    @pytest.mark.asyncio
    async def test_filter_by_read_state(self, dispatcher):
        a = await dispatcher.emit(ReactionRecorded(recipient_id=2, actor_id=1, subject_id=1))
        await dispatcher.emit(ReactionRecorded(recipient_id=2, actor_id=1, subject_id=2))
        await dispatcher.mark_read(a.id)

        unread, unread_total = await dispatcher.list_notifications(2, is_read=False)
        read, read_total = await dispatcher.list_notifications(2, is_read=True)

        assert (unread_total, read_total) == (1, 1)
        assert [n.id for n in read] == [a.id]
        assert unread[0].id != a.id
