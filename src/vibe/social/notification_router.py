"""Notification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.config import get_settings
from vibe.database import get_session
from vibe.dependencies import get_current_user_id
from vibe.errors import NotFoundError
from vibe.social.notification_service import NotificationDispatcher
from vibe.social.schemas import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Notifications"])


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1, le=100),
    is_read: bool | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """List the caller's notifications (paginated, newest first)."""
    per_page = per_page or get_settings().notification_page_size
    notifications, total = await NotificationDispatcher(db).list_notifications(
        user_id, is_read=is_read, page=page, per_page=per_page,
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def get_unread_notification_count(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    count = await NotificationDispatcher(db).get_unread_count(user_id)
    return UnreadCountResponse(unread_count=count)


@router.post("/notifications/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    count = await NotificationDispatcher(db).mark_all_read(user_id)
    await db.commit()
    return MarkAllReadResponse(updated=count)


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Mark one of the caller's notifications as read."""
    dispatcher = NotificationDispatcher(db)
    try:
        notification = await dispatcher.get_notification(notification_id)
    except NotFoundError:
        notification = None
    # Someone else's notification is reported as missing
    if notification is None or notification.recipient_id != user_id:
        raise HTTPException(status_code=404, detail="Notification not found")
    notification = await dispatcher.mark_read(notification_id)
    await db.commit()
    return NotificationResponse.model_validate(notification)
