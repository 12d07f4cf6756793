"""Learning catalog seed data: modules, quests and achievements keyed by slug."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.database import upsert_insert
from vibe.db.models import Achievement, LearningModule, Quest

logger = logging.getLogger(__name__)

MODULE_SEED_DATA: list[dict] = [
    {
        "slug": "getting-started",
        "title": "Getting Started",
        "description": "Set up your profile and learn how the community works",
        "level": 1,
        "xp_reward": 100,
        "content": "Welcome! Share your first post, tag it, and say hello to a few people.",
    },
    {
        "slug": "creating-content",
        "title": "Creating Great Content",
        "description": "Write posts people want to like and share",
        "level": 1,
        "xp_reward": 100,
        "content": "Short posts with a clear idea and one or two tags travel furthest.",
    },
    {
        "slug": "building-connections",
        "title": "Building Connections",
        "description": "Grow a network of people who share your interests",
        "level": 2,
        "xp_reward": 150,
        "content": "Send requests to people whose posts you like, then keep the conversation going.",
    },
    {
        "slug": "going-viral",
        "title": "Going Viral",
        "description": "Understand what makes a post trend",
        "level": 3,
        "xp_reward": 200,
        "content": "Trending ranks posts by likes. Newer posts win ties.",
    },
]

QUEST_SEED_DATA: list[dict] = [
    {
        "slug": "first-post",
        "title": "First Post",
        "description": "Publish your first piece of content",
        "xp_reward": 50,
        "module_slug": "getting-started",
    },
    {
        "slug": "tag-it",
        "title": "Tag It",
        "description": "Publish a post with at least two tags",
        "xp_reward": 50,
        "module_slug": "creating-content",
    },
    {
        "slug": "first-connection",
        "title": "First Connection",
        "description": "Have a connection request accepted",
        "xp_reward": 75,
        "module_slug": "building-connections",
    },
    {
        "slug": "say-hello",
        "title": "Say Hello",
        "description": "Send a direct message to one of your connections",
        "xp_reward": 50,
        "module_slug": "building-connections",
    },
    {
        "slug": "trendsetter",
        "title": "Trendsetter",
        "description": "Get one of your posts into the trending list",
        "xp_reward": 150,
        "module_slug": "going-viral",
    },
]

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "slug": "first-like",
        "title": "First Like",
        "description": "Receive your first like",
        "required_progress": 1,
    },
    {
        "slug": "crowd-pleaser",
        "title": "Crowd Pleaser",
        "description": "Receive 100 likes",
        "required_progress": 100,
    },
    {
        "slug": "socialite",
        "title": "Socialite",
        "description": "Make 10 connections",
        "required_progress": 10,
    },
    {
        "slug": "storyteller",
        "title": "Storyteller",
        "description": "Publish 25 posts",
        "required_progress": 25,
    },
    {
        "slug": "scholar",
        "title": "Scholar",
        "description": "Complete every learning module",
        "required_progress": len(MODULE_SEED_DATA),
    },
]


async def _upsert_by_slug(db: AsyncSession, model, rows: list[dict]) -> int:
    for row in rows:
        stmt = upsert_insert(db, model).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={key: stmt.excluded[key] for key in row if key != "slug"},
        )
        await db.execute(stmt)
    return len(rows)


async def seed_definitions(db: AsyncSession) -> int:
    """Upsert the module, quest and achievement catalogs. Returns rows seeded."""
    seeded = await _upsert_by_slug(db, LearningModule, MODULE_SEED_DATA)

    module_ids = dict((await db.execute(select(LearningModule.slug, LearningModule.id))).all())
    quests = []
    for quest in QUEST_SEED_DATA:
        row = {k: v for k, v in quest.items() if k != "module_slug"}
        row["related_module_id"] = module_ids.get(quest["module_slug"])
        quests.append(row)
    seeded += await _upsert_by_slug(db, Quest, quests)
    seeded += await _upsert_by_slug(db, Achievement, ACHIEVEMENT_SEED_DATA)

    await db.commit()
    logger.info("Seeded %d learning definitions", seeded)
    return seeded
