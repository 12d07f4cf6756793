"""Progression engine: quest/module completion, achievements, XP and level.

State machines per (user, target):
    quest / module:  absent -> completed                       (terminal)
    achievement:     absent -> in_progress(0..required) -> unlocked (terminal)

Every transition is a single conditional statement (INSERT .. ON CONFLICT
DO NOTHING or UPDATE .. WHERE completed = false), and XP is granted only by
the call whose statement performed the transition, so completing twice never
grants XP twice.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.database import upsert_insert
from vibe.db.models import (
    Achievement,
    LearningModule,
    Quest,
    UserAchievementProgress,
    UserLevel,
    UserModuleProgress,
    UserQuestProgress,
    XPLedger,
)
from vibe.errors import NotFoundError, ValidationError
from vibe.events import AchievementUnlocked
from vibe.progression.level_thresholds import LEVEL_THRESHOLDS, validate_thresholds
from vibe.progression.xp_service import get_or_create_level, get_xp_history, grant_xp
from vibe.social.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

COMPLETE_PROGRESS = 100


class ProgressionService:
    """Progression engine: completion tracking, achievement progress, XP awards."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
        thresholds: list[dict] | None = None,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher or NotificationDispatcher(db)
        self.thresholds = thresholds or LEVEL_THRESHOLDS
        validate_thresholds(self.thresholds)

    # --- Definitions ---

    async def get_quest(self, quest_id: int) -> Quest:
        quest = await self.db.get(Quest, quest_id)
        if quest is None:
            raise NotFoundError("Quest not found")
        return quest

    async def get_module(self, module_id: int) -> LearningModule:
        module = await self.db.get(LearningModule, module_id)
        if module is None:
            raise NotFoundError("Learning module not found")
        return module

    async def get_achievement(self, achievement_id: int) -> Achievement:
        achievement = await self.db.get(Achievement, achievement_id)
        if achievement is None:
            raise NotFoundError("Achievement not found")
        return achievement

    async def list_quests(self) -> list[Quest]:
        result = await self.db.execute(select(Quest).order_by(Quest.id))
        return list(result.scalars().all())

    async def list_quests_for_module(self, module_id: int) -> list[Quest]:
        await self.get_module(module_id)
        result = await self.db.execute(
            select(Quest).where(Quest.related_module_id == module_id).order_by(Quest.id)
        )
        return list(result.scalars().all())

    async def list_modules(self) -> list[LearningModule]:
        result = await self.db.execute(
            select(LearningModule).order_by(LearningModule.level, LearningModule.id)
        )
        return list(result.scalars().all())

    async def list_achievements(self) -> list[Achievement]:
        result = await self.db.execute(select(Achievement).order_by(Achievement.id))
        return list(result.scalars().all())

    # --- Completion ---

    async def complete_quest(self, user_id: int, quest_id: int) -> UserQuestProgress:
        """Complete a quest once; only the completing call grants its XP."""
        quest = await self.get_quest(quest_id)
        completed_now = await self._mark_completed(
            UserQuestProgress, UserQuestProgress.quest_id, "quest_id", user_id, quest.id,
        )
        if completed_now:
            logger.info("User %s completed quest %s", user_id, quest.id)
            await self.award_xp(
                user_id,
                quest.xp_reward,
                source="quest",
                source_id=str(quest.id),
                description=f"Completed quest: {quest.title}",
                idempotency_key=f"quest:{quest.id}:{user_id}",
            )
        return await self._load_record(UserQuestProgress, UserQuestProgress.quest_id, user_id, quest.id)

    async def complete_module(self, user_id: int, module_id: int) -> UserModuleProgress:
        """Complete a learning module once; only the completing call grants its XP."""
        module = await self.get_module(module_id)
        completed_now = await self._mark_completed(
            UserModuleProgress, UserModuleProgress.module_id, "module_id", user_id, module.id,
        )
        if completed_now:
            logger.info("User %s completed module %s", user_id, module.id)
            await self.award_xp(
                user_id,
                module.xp_reward,
                source="module",
                source_id=str(module.id),
                description=f"Completed module: {module.title}",
                idempotency_key=f"module:{module.id}:{user_id}",
            )
        return await self._load_record(UserModuleProgress, UserModuleProgress.module_id, user_id, module.id)

    async def update_module_progress(
        self,
        user_id: int,
        module_id: int,
        progress: int,
    ) -> UserModuleProgress:
        """Record externally reported progress (0-100). Never lowers progress or completes."""
        if progress < 0:
            raise ValidationError("Progress must not be negative")
        module = await self.get_module(module_id)
        progress = min(progress, COMPLETE_PROGRESS)
        now = datetime.now(timezone.utc)

        await self.db.execute(
            upsert_insert(self.db, UserModuleProgress)
            .values(user_id=user_id, module_id=module.id, progress=0, completed=False, started_at=now)
            .on_conflict_do_nothing(index_elements=["user_id", "module_id"])
        )
        await self.db.execute(
            update(UserModuleProgress)
            .where(
                UserModuleProgress.user_id == user_id,
                UserModuleProgress.module_id == module.id,
                UserModuleProgress.completed.is_(False),
                UserModuleProgress.progress < progress,
            )
            .values(progress=progress)
        )
        return await self._load_record(UserModuleProgress, UserModuleProgress.module_id, user_id, module.id)

    async def _mark_completed(
        self,
        model: type[UserQuestProgress] | type[UserModuleProgress],
        target_column,
        target_key: str,
        user_id: int,
        target_id: int,
    ) -> bool:
        """Transition (user, target) to completed. True only for the call that did it."""
        now = datetime.now(timezone.utc)
        inserted = await self.db.execute(
            upsert_insert(self.db, model)
            .values(
                user_id=user_id,
                progress=COMPLETE_PROGRESS,
                completed=True,
                completed_at=now,
                **{target_key: target_id},
            )
            .on_conflict_do_nothing(index_elements=["user_id", target_key])
            .returning(model.id)
        )
        if inserted.first() is not None:
            return True

        # A record exists: complete it only if it is still open
        upgraded = await self.db.execute(
            update(model)
            .where(
                model.user_id == user_id,
                target_column == target_id,
                model.completed.is_(False),
            )
            .values(progress=COMPLETE_PROGRESS, completed=True, completed_at=now)
            .returning(model.id)
        )
        return upgraded.first() is not None

    async def _load_record(self, model, target_column, user_id: int, target_id: int):
        result = await self.db.execute(
            select(model)
            .where(model.user_id == user_id, target_column == target_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    # --- Achievements ---

    async def increment_achievement_progress(
        self,
        user_id: int,
        achievement_id: int,
        amount: int = 1,
    ) -> UserAchievementProgress:
        """Add to achievement progress, clamped at the requirement; unlock exactly once."""
        if amount < 0:
            raise ValidationError("Progress increment must not be negative")
        achievement = await self.get_achievement(achievement_id)
        required = achievement.required_progress
        now = datetime.now(timezone.utc)

        await self.db.execute(
            upsert_insert(self.db, UserAchievementProgress)
            .values(user_id=user_id, achievement_id=achievement.id, progress=0, unlocked=False)
            .on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
        )

        incremented = UserAchievementProgress.progress + amount
        await self.db.execute(
            update(UserAchievementProgress)
            .where(
                UserAchievementProgress.user_id == user_id,
                UserAchievementProgress.achievement_id == achievement.id,
                UserAchievementProgress.unlocked.is_(False),
            )
            .values(progress=case((incremented >= required, required), else_=incremented))
            .execution_options(synchronize_session=False)
        )

        # Only the statement that flips unlocked returns a row
        unlocked = await self.db.execute(
            update(UserAchievementProgress)
            .where(
                UserAchievementProgress.user_id == user_id,
                UserAchievementProgress.achievement_id == achievement.id,
                UserAchievementProgress.unlocked.is_(False),
                UserAchievementProgress.progress >= required,
            )
            .values(unlocked=True, unlocked_at=now)
            .returning(UserAchievementProgress.id)
            .execution_options(synchronize_session=False)
        )
        if unlocked.first() is not None:
            logger.info("User %s unlocked achievement %s", user_id, achievement.id)
            await self.dispatcher.emit(
                AchievementUnlocked(
                    recipient_id=user_id,
                    subject_id=achievement.id,
                    title=achievement.title,
                )
            )

        return await self._load_record(
            UserAchievementProgress, UserAchievementProgress.achievement_id, user_id, achievement.id,
        )

    # --- XP / Level ---

    async def award_xp(
        self,
        user_id: int,
        amount: int,
        source: str = "manual",
        source_id: str | None = None,
        description: str | None = None,
        idempotency_key: str | None = None,
    ) -> UserLevel:
        """Add XP and recompute the (monotonic) level. Negative amounts are rejected."""
        level, _granted = await grant_xp(
            self.db,
            user_id,
            amount,
            source=source,
            source_id=source_id,
            description=description,
            idempotency_key=idempotency_key,
            dispatcher=self.dispatcher,
            thresholds=self.thresholds,
        )
        return level

    async def get_level(self, user_id: int) -> UserLevel:
        return await get_or_create_level(self.db, user_id, self.thresholds)

    async def get_xp_history(self, user_id: int, page: int = 1, per_page: int = 20) -> list[XPLedger]:
        return await get_xp_history(self.db, user_id, page, per_page)

    # --- Per-user progress listings ---

    async def list_quest_progress(self, user_id: int) -> list[UserQuestProgress]:
        result = await self.db.execute(
            select(UserQuestProgress)
            .where(UserQuestProgress.user_id == user_id)
            .order_by(UserQuestProgress.quest_id)
        )
        return list(result.scalars().all())

    async def list_module_progress(self, user_id: int) -> list[UserModuleProgress]:
        result = await self.db.execute(
            select(UserModuleProgress)
            .where(UserModuleProgress.user_id == user_id)
            .order_by(UserModuleProgress.module_id)
        )
        return list(result.scalars().all())

    async def list_achievement_progress(self, user_id: int) -> list[UserAchievementProgress]:
        result = await self.db.execute(
            select(UserAchievementProgress)
            .where(UserAchievementProgress.user_id == user_id)
            .order_by(UserAchievementProgress.achievement_id)
        )
        return list(result.scalars().all())
