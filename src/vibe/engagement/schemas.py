"""Pydantic schemas for content, reaction and trending endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreateContentRequest(BaseModel):
    body: str | None = Field(None, max_length=10000)
    tags: list[str] = Field(default_factory=list, max_length=32)
    media_url: str | None = Field(None, max_length=512)
    media_type: str | None = Field(None, max_length=16)


class ContentResponse(BaseModel):
    id: int
    author_id: int
    body: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    tags: list[str]
    created_at: datetime


class ContentListResponse(BaseModel):
    items: list[ContentResponse]
    total: int


class FeedResponse(BaseModel):
    items: list[ContentResponse]
    page: int
    per_page: int


# --- Reactions ---


class ReactionRequest(BaseModel):
    is_like: bool


class ReactionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    content_id: int
    user_id: int
    is_like: bool
    created_at: datetime
    updated_at: datetime


class ReactionCountsResponse(BaseModel):
    content_id: int
    likes: int
    dislikes: int


# --- Trending ---


class TrendingEntry(BaseModel):
    rank: int
    like_count: int
    content: ContentResponse


class TrendingResponse(BaseModel):
    items: list[TrendingEntry]


# --- Comments ---


class CreateCommentRequest(BaseModel):
    body: str = Field(..., min_length=1, max_length=5000)


class CommentResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    content_id: int
    user_id: int
    body: str
    created_at: datetime


class CommentListResponse(BaseModel):
    comments: list[CommentResponse]
    total: int
