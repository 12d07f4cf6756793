"""Pydantic schemas for learning and progression endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ModuleResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    slug: str
    title: str
    description: str | None = None
    level: int
    xp_reward: int
    content: str | None = None


class QuestResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    slug: str
    title: str
    description: str | None = None
    xp_reward: int
    related_module_id: int | None = None


class AchievementResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    slug: str
    title: str
    description: str | None = None
    required_progress: int


class QuestProgressResponse(BaseModel):
    model_config = {"from_attributes": True}

    quest_id: int
    progress: int
    completed: bool
    completed_at: datetime | None = None


class ModuleProgressResponse(BaseModel):
    model_config = {"from_attributes": True}

    module_id: int
    progress: int
    completed: bool
    started_at: datetime
    completed_at: datetime | None = None


class AchievementProgressResponse(BaseModel):
    model_config = {"from_attributes": True}

    achievement_id: int
    progress: int
    unlocked: bool
    unlocked_at: datetime | None = None


class ModuleProgressRequest(BaseModel):
    progress: int = Field(..., ge=0, le=100)


class AchievementProgressRequest(BaseModel):
    amount: int = Field(1, ge=0)


class LevelResponse(BaseModel):
    level: int
    title: str
    xp: int
    xp_into_level: int
    xp_for_level: int
    next_level: int
    next_title: str


class ProgressSummaryResponse(BaseModel):
    level: LevelResponse
    quests: list[QuestProgressResponse]
    modules: list[ModuleProgressResponse]
    achievements: list[AchievementProgressResponse]


class XPHistoryEntry(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    amount: int
    source: str
    source_id: str | None = None
    description: str | None = None
    created_at: datetime


class XPHistoryResponse(BaseModel):
    entries: list[XPHistoryEntry]
    page: int
    per_page: int


class LevelEntry(BaseModel):
    level: int
    title: str
    xp_required: int
    cumulative: int
