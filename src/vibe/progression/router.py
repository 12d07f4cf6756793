"""Learning and progression endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.database import get_session
from vibe.db.models import UserLevel
from vibe.dependencies import get_current_user_id
from vibe.progression.level_thresholds import LEVEL_THRESHOLDS, compute_level
from vibe.progression.progression_service import ProgressionService
from vibe.progression.schemas import (
    AchievementProgressRequest,
    AchievementProgressResponse,
    AchievementResponse,
    LevelEntry,
    LevelResponse,
    ModuleProgressRequest,
    ModuleProgressResponse,
    ModuleResponse,
    ProgressSummaryResponse,
    QuestProgressResponse,
    QuestResponse,
    XPHistoryEntry,
    XPHistoryResponse,
)

router = APIRouter(prefix="/api/v1/learning", tags=["Learning"])


def _level_response(state: UserLevel) -> LevelResponse:
    info = compute_level(state.xp)
    return LevelResponse(
        level=state.level,
        title=state.level_title,
        xp=state.xp,
        xp_into_level=info["xp_into_level"],
        xp_for_level=info["xp_for_level"],
        next_level=info["next_level"],
        next_title=info["next_title"],
    )


# ── Catalog (public) ──


@router.get("/modules", response_model=list[ModuleResponse])
async def list_modules(db: AsyncSession = Depends(get_session)):
    modules = await ProgressionService(db).list_modules()
    return [ModuleResponse.model_validate(m) for m in modules]


@router.get("/modules/{module_id}", response_model=ModuleResponse)
async def get_module(module_id: int, db: AsyncSession = Depends(get_session)):
    module = await ProgressionService(db).get_module(module_id)
    return ModuleResponse.model_validate(module)


@router.get("/modules/{module_id}/quests", response_model=list[QuestResponse])
async def list_module_quests(module_id: int, db: AsyncSession = Depends(get_session)):
    quests = await ProgressionService(db).list_quests_for_module(module_id)
    return [QuestResponse.model_validate(q) for q in quests]


@router.get("/quests", response_model=list[QuestResponse])
async def list_quests(db: AsyncSession = Depends(get_session)):
    quests = await ProgressionService(db).list_quests()
    return [QuestResponse.model_validate(q) for q in quests]


@router.get("/achievements", response_model=list[AchievementResponse])
async def list_achievements(db: AsyncSession = Depends(get_session)):
    achievements = await ProgressionService(db).list_achievements()
    return [AchievementResponse.model_validate(a) for a in achievements]


@router.get("/levels", response_model=list[LevelEntry])
async def list_levels():
    """The level threshold table."""
    return [LevelEntry(**t) for t in LEVEL_THRESHOLDS]


# ── Caller progress ──


@router.post("/quests/{quest_id}/complete", response_model=QuestProgressResponse)
async def complete_quest(
    quest_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Complete a quest; XP is granted on the first completion only."""
    record = await ProgressionService(db).complete_quest(user_id, quest_id)
    await db.commit()
    return QuestProgressResponse.model_validate(record)


@router.post("/modules/{module_id}/complete", response_model=ModuleProgressResponse)
async def complete_module(
    module_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    record = await ProgressionService(db).complete_module(user_id, module_id)
    await db.commit()
    return ModuleProgressResponse.model_validate(record)


@router.put("/modules/{module_id}/progress", response_model=ModuleProgressResponse)
async def update_module_progress(
    module_id: int,
    body: ModuleProgressRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    record = await ProgressionService(db).update_module_progress(user_id, module_id, body.progress)
    await db.commit()
    return ModuleProgressResponse.model_validate(record)


@router.post("/achievements/{achievement_id}/progress", response_model=AchievementProgressResponse)
async def increment_achievement_progress(
    achievement_id: int,
    body: AchievementProgressRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    record = await ProgressionService(db).increment_achievement_progress(
        user_id, achievement_id, body.amount,
    )
    await db.commit()
    return AchievementProgressResponse.model_validate(record)


@router.get("/level", response_model=LevelResponse)
async def get_level(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    state = await ProgressionService(db).get_level(user_id)
    await db.commit()
    return _level_response(state)


@router.get("/progress", response_model=ProgressSummaryResponse)
async def get_progress(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Level plus every quest, module and achievement record of the caller."""
    service = ProgressionService(db)
    state = await service.get_level(user_id)
    quests = await service.list_quest_progress(user_id)
    modules = await service.list_module_progress(user_id)
    achievements = await service.list_achievement_progress(user_id)
    await db.commit()
    return ProgressSummaryResponse(
        level=_level_response(state),
        quests=[QuestProgressResponse.model_validate(q) for q in quests],
        modules=[ModuleProgressResponse.model_validate(m) for m in modules],
        achievements=[AchievementProgressResponse.model_validate(a) for a in achievements],
    )


@router.get("/xp/history", response_model=XPHistoryResponse)
async def get_xp_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    entries = await ProgressionService(db).get_xp_history(user_id, page, per_page)
    return XPHistoryResponse(
        entries=[XPHistoryEntry.model_validate(e) for e in entries],
        page=page,
        per_page=per_page,
    )
