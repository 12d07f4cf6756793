"""Reaction aggregation: one vote per user, like notifications on transition only."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from vibe.db.models import Notification, Reaction
from vibe.domain_types import NotificationType
from vibe.engagement.reaction_service import ReactionService
from vibe.errors import NotFoundError

AUTHOR = 10
FAN = 20


async def _like_notifications(db) -> list[Notification]:
    result = await db.execute(
        select(Notification).where(Notification.type == NotificationType.LIKE)
    )
    return list(result.scalars().all())


@pytest.fixture
def service(db_session) -> ReactionService:
    return ReactionService(db_session)


class TestSetReaction:
    @pytest.mark.asyncio
    async def test_like_notifies_author(self, service, db_session):
        item = await service.content.register_content(AUTHOR, body="hello", tags=["greeting"])

        reaction = await service.set_reaction(FAN, item.id, True)

        assert reaction.is_like is True
        notes = await _like_notifications(db_session)
        assert len(notes) == 1
        assert notes[0].recipient_id == AUTHOR
        assert notes[0].actor_id == FAN
        assert notes[0].subject_id == item.id

    @pytest.mark.asyncio
    async def test_repeated_likes_notify_once(self, service, db_session):
        item = await service.content.register_content(AUTHOR, body="hello")

        for _ in range(3):
            await service.set_reaction(FAN, item.id, True)

        assert len(await _like_notifications(db_session)) == 1
        count = await db_session.scalar(select(func.count()).select_from(Reaction))
        assert count == 1

    @pytest.mark.asyncio
    async def test_vote_overwrites_single_row(self, service, db_session):
        item = await service.content.register_content(AUTHOR, body="hello")

        await service.set_reaction(FAN, item.id, True)
        reaction = await service.set_reaction(FAN, item.id, False)

        assert reaction.is_like is False
        rows = (await db_session.execute(select(Reaction))).scalars().all()
        assert len(rows) == 1
        assert rows[0].is_like is False

    @pytest.mark.asyncio
    async def test_like_dislike_like_leaves_one_like(self, service, db_session):
        item = await service.content.register_content(AUTHOR, body="hello")

        for is_like in (True, False, True):
            await service.set_reaction(FAN, item.id, is_like)

        rows = (await db_session.execute(select(Reaction))).scalars().all()
        assert [(r.user_id, r.is_like) for r in rows] == [(FAN, True)]

    @pytest.mark.asyncio
    async def test_dislike_never_notifies(self, service, db_session):
        item = await service.content.register_content(AUTHOR, body="hello")
        await service.set_reaction(FAN, item.id, False)
        assert await _like_notifications(db_session) == []

    @pytest.mark.asyncio
    async def test_dislike_to_like_notifies(self, service, db_session):
        item = await service.content.register_content(AUTHOR, body="hello")
        await service.set_reaction(FAN, item.id, False)
        await service.set_reaction(FAN, item.id, True)
        assert len(await _like_notifications(db_session)) == 1

    @pytest.mark.asyncio
    async def test_author_liking_own_content_is_silent(self, service, db_session):
        item = await service.content.register_content(AUTHOR, body="hello")
        reaction = await service.set_reaction(AUTHOR, item.id, True)
        assert reaction.is_like is True
        assert await _like_notifications(db_session) == []

    @pytest.mark.asyncio
    async def test_unknown_content(self, service):
        with pytest.raises(NotFoundError):
            await service.set_reaction(FAN, 12345, True)


class TestReactionQueries:
    @pytest.mark.asyncio
    async def test_counts(self, service):
        item = await service.content.register_content(AUTHOR, body="hello")
        await service.set_reaction(1, item.id, True)
        await service.set_reaction(2, item.id, True)
        await service.set_reaction(3, item.id, False)

        assert await service.get_reaction_counts(item.id) == {"likes": 2, "dislikes": 1}

    @pytest.mark.asyncio
    async def test_counts_empty(self, service):
        item = await service.content.register_content(AUTHOR, body="hello")
        assert await service.get_reaction_counts(item.id) == {"likes": 0, "dislikes": 0}

    @pytest.mark.asyncio
    async def test_get_and_list(self, service):
        item = await service.content.register_content(AUTHOR, body="hello")
        assert await service.get_reaction(FAN, item.id) is None

        await service.set_reaction(FAN, item.id, True)
        await service.set_reaction(AUTHOR, item.id, False)

        mine = await service.get_reaction(FAN, item.id)
        assert mine.is_like is True
        listed = await service.list_reactions(item.id)
        assert [r.user_id for r in listed] == [FAN, AUTHOR]
