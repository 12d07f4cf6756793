"""Pydantic schemas for social endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from vibe.domain_types import ConnectionStatus, NotificationType


# --- Connections ---


class ConnectionRequest(BaseModel):
    recipient_id: int = Field(..., ge=1)


class ConnectionDecisionRequest(BaseModel):
    decision: Literal["accepted", "rejected"]


class ConnectionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    requester_id: int
    recipient_id: int
    status: ConnectionStatus
    created_at: datetime
    responded_at: datetime | None = None


class ConnectionListResponse(BaseModel):
    connections: list[ConnectionResponse]
    total: int


# --- Messages ---


class SendMessageRequest(BaseModel):
    receiver_id: int = Field(..., ge=1)
    body: str = Field(..., min_length=1, max_length=5000)


class MessageResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    sender_id: int
    receiver_id: int
    body: str
    is_read: bool
    created_at: datetime


class ConversationResponse(BaseModel):
    messages: list[MessageResponse]
    total: int


# --- Notifications ---


class NotificationResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    type: NotificationType
    actor_id: int | None = None
    subject_id: int | None = None
    content: str | None = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    page: int
    per_page: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int
