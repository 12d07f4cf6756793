"""Content, reaction, trending, tag and comment endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.config import get_settings
from vibe.database import get_session
from vibe.db.models import ContentItem
from vibe.dependencies import get_current_user_id, get_reaction_service
from vibe.engagement.reaction_service import ReactionService
from vibe.engagement.schemas import (
    CommentListResponse,
    CommentResponse,
    ContentListResponse,
    ContentResponse,
    CreateCommentRequest,
    CreateContentRequest,
    FeedResponse,
    ReactionCountsResponse,
    ReactionRequest,
    ReactionResponse,
    TrendingEntry,
    TrendingResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Engagement"])


def _content_response(item: ContentItem) -> ContentResponse:
    return ContentResponse(
        id=item.id,
        author_id=item.author_id,
        body=item.body,
        media_url=item.media_url,
        media_type=item.media_type,
        tags=item.tag_names,
        created_at=item.created_at,
    )


# ── Content ──


@router.post("/content", response_model=ContentResponse, status_code=201)
async def create_content(
    body: CreateContentRequest,
    user_id: int = Depends(get_current_user_id),
    service: ReactionService = Depends(get_reaction_service),
):
    """Register a content item authored by the caller."""
    item = await service.content.register_content(
        user_id,
        body=body.body,
        tags=body.tags,
        media_url=body.media_url,
        media_type=body.media_type,
    )
    await service.commit()
    return _content_response(item)


@router.get("/content/{content_id}", response_model=ContentResponse)
async def get_content(
    content_id: int,
    service: ReactionService = Depends(get_reaction_service),
):
    item = await service.content.get_content(content_id)
    return _content_response(item)


@router.delete("/content/{content_id}", status_code=204)
async def delete_content(
    content_id: int,
    user_id: int = Depends(get_current_user_id),
    service: ReactionService = Depends(get_reaction_service),
):
    """Delete one of the caller's own content items."""
    await service.content.delete_content(user_id, content_id)
    await service.commit()


@router.get("/feed", response_model=FeedResponse)
async def get_feed(
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1, le=100),
    service: ReactionService = Depends(get_reaction_service),
):
    """All content, newest first."""
    per_page = per_page or get_settings().feed_page_size
    items = await service.content.list_feed(limit=per_page, offset=(page - 1) * per_page)
    return FeedResponse(
        items=[_content_response(i) for i in items],
        page=page,
        per_page=per_page,
    )


@router.get("/users/{author_id}/content", response_model=ContentListResponse)
async def list_author_content(
    author_id: int,
    service: ReactionService = Depends(get_reaction_service),
):
    items = await service.content.list_by_author(author_id)
    return ContentListResponse(items=[_content_response(i) for i in items], total=len(items))


@router.get("/tags/{tag}/content", response_model=ContentListResponse)
async def query_by_tag(
    tag: str,
    service: ReactionService = Depends(get_reaction_service),
):
    """Content carrying a tag (case-insensitive), newest first."""
    items = await service.content.query_by_tag(tag)
    return ContentListResponse(items=[_content_response(i) for i in items], total=len(items))


# ── Reactions ──


@router.put("/content/{content_id}/reaction", response_model=ReactionResponse)
async def set_reaction(
    content_id: int,
    body: ReactionRequest,
    user_id: int = Depends(get_current_user_id),
    service: ReactionService = Depends(get_reaction_service),
):
    """Like or dislike a content item; repeating a vote is a no-op."""
    reaction = await service.set_reaction(user_id, content_id, body.is_like)
    await service.commit()
    return ReactionResponse.model_validate(reaction)


@router.get("/content/{content_id}/reactions", response_model=ReactionCountsResponse)
async def get_reaction_counts(
    content_id: int,
    service: ReactionService = Depends(get_reaction_service),
):
    counts = await service.get_reaction_counts(content_id)
    return ReactionCountsResponse(content_id=content_id, **counts)


@router.get("/trending", response_model=TrendingResponse)
async def get_trending(
    limit: int | None = Query(None, ge=1, le=get_settings().trending_max_limit),
    service: ReactionService = Depends(get_reaction_service),
):
    """Most-liked content, ties broken newest first."""
    ranked = await service.compute_trending(limit)
    return TrendingResponse(
        items=[
            TrendingEntry(rank=i, like_count=entry.like_count, content=_content_response(entry.content))
            for i, entry in enumerate(ranked, start=1)
        ]
    )


# ── Comments ──


@router.post("/content/{content_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment(
    content_id: int,
    body: CreateCommentRequest,
    user_id: int = Depends(get_current_user_id),
    service: ReactionService = Depends(get_reaction_service),
    db: AsyncSession = Depends(get_session),
):
    comment = await service.content.add_comment(user_id, content_id, body.body)
    await db.commit()
    return CommentResponse.model_validate(comment)


@router.get("/content/{content_id}/comments", response_model=CommentListResponse)
async def list_comments(
    content_id: int,
    service: ReactionService = Depends(get_reaction_service),
):
    comments = await service.content.list_comments(content_id)
    return CommentListResponse(
        comments=[CommentResponse.model_validate(c) for c in comments],
        total=len(comments),
    )
