"""XP grant service with idempotency and level-up detection."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.database import upsert_insert
from vibe.db.models import UserLevel, XPLedger
from vibe.errors import ValidationError
from vibe.events import LevelUp
from vibe.progression.level_thresholds import LEVEL_THRESHOLDS, compute_level
from vibe.social.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)


async def get_or_create_level(
    db: AsyncSession,
    user_id: int,
    thresholds: list[dict] | None = None,
) -> UserLevel:
    """Get or create the level row for a user in a single find-or-create statement."""
    table = thresholds or LEVEL_THRESHOLDS
    await db.execute(
        upsert_insert(db, UserLevel)
        .values(
            user_id=user_id,
            level=table[0]["level"],
            level_title=table[0]["title"],
            xp=0,
            updated_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    return await _load_level(db, user_id)


async def _load_level(db: AsyncSession, user_id: int) -> UserLevel:
    result = await db.execute(
        select(UserLevel)
        .where(UserLevel.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def grant_xp(
    db: AsyncSession,
    user_id: int,
    amount: int,
    source: str = "manual",
    source_id: str | None = None,
    description: str | None = None,
    idempotency_key: str | None = None,
    dispatcher: NotificationDispatcher | None = None,
    thresholds: list[dict] | None = None,
) -> tuple[UserLevel, bool]:
    """Grant XP to a user. Returns (level row, granted).

    granted is False when ``idempotency_key`` was already used.

    After granting:
    1. Insert into xp_ledger
    2. Atomically add to user_levels.xp
    3. Recompute level from xp, only ever raising it
    4. If level changed, emit a level_up notification
    """
    if amount < 0:
        raise ValidationError("XP amount must not be negative")

    table = thresholds or LEVEL_THRESHOLDS
    now = datetime.now(timezone.utc)

    ledger_values = {
        "user_id": user_id,
        "amount": amount,
        "source": source,
        "source_id": source_id,
        "description": description,
        "idempotency_key": idempotency_key,
        "created_at": now,
    }
    if idempotency_key is not None:
        inserted = await db.execute(
            upsert_insert(db, XPLedger)
            .values(**ledger_values)
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
            .returning(XPLedger.id)
        )
        if inserted.first() is None:
            return await get_or_create_level(db, user_id, table), False
    else:
        db.add(XPLedger(**ledger_values))

    await get_or_create_level(db, user_id, table)

    result = await db.execute(
        update(UserLevel)
        .where(UserLevel.user_id == user_id)
        .values(xp=UserLevel.xp + amount, updated_at=now)
        .returning(UserLevel.xp, UserLevel.level)
    )
    new_xp, old_level = result.one()

    level_info = compute_level(new_xp, table)
    if level_info["level"] > old_level:
        # Guarded so a slower concurrent grant can never lower the level
        raised = await db.execute(
            update(UserLevel)
            .where(UserLevel.user_id == user_id, UserLevel.level < level_info["level"])
            .values(level=level_info["level"], level_title=level_info["title"])
            .returning(UserLevel.id)
        )
        if raised.first() is not None:
            logger.info(
                "User %s leveled up %s -> %s", user_id, old_level, level_info["level"],
            )
            if dispatcher is not None:
                await dispatcher.emit(
                    LevelUp(
                        recipient_id=user_id,
                        old_level=old_level,
                        new_level=level_info["level"],
                        title=level_info["title"],
                    )
                )

    await db.flush()
    return await _load_level(db, user_id), True


async def get_xp_history(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
) -> list[XPLedger]:
    """XP ledger entries for a user, newest first."""
    result = await db.execute(
        select(XPLedger)
        .where(XPLedger.user_id == user_id)
        .order_by(XPLedger.created_at.desc(), XPLedger.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all())
