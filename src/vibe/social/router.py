"""Connection and direct-message endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vibe.database import get_session
from vibe.dependencies import get_current_user_id
from vibe.domain_types import ConnectionStatus
from vibe.social.connection_service import ConnectionService
from vibe.social.message_service import MessageService
from vibe.social.schemas import (
    ConnectionDecisionRequest,
    ConnectionListResponse,
    ConnectionRequest,
    ConnectionResponse,
    ConversationResponse,
    MessageResponse,
    SendMessageRequest,
)

router = APIRouter(prefix="/api/v1", tags=["Social"])


# ── Connections ──


@router.post("/connections", response_model=ConnectionResponse, status_code=201)
async def request_connection(
    body: ConnectionRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Send a connection request to another user."""
    connection = await ConnectionService(db).request_connection(user_id, body.recipient_id)
    await db.commit()
    return ConnectionResponse.model_validate(connection)


@router.get("/connections", response_model=ConnectionListResponse)
async def list_connections(
    status: ConnectionStatus | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Connections where the caller is either party, newest first."""
    connections = await ConnectionService(db).list_connections(user_id, status)
    return ConnectionListResponse(
        connections=[ConnectionResponse.model_validate(c) for c in connections],
        total=len(connections),
    )


@router.get("/connections/{connection_id}", response_model=ConnectionResponse)
async def get_connection(
    connection_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    connection = await ConnectionService(db).get_connection(connection_id)
    return ConnectionResponse.model_validate(connection)


@router.put("/connections/{connection_id}", response_model=ConnectionResponse)
async def respond_to_connection(
    connection_id: int,
    body: ConnectionDecisionRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Accept or reject a pending request addressed to the caller."""
    connection = await ConnectionService(db).respond_to_connection(
        connection_id, user_id, body.decision,
    )
    await db.commit()
    return ConnectionResponse.model_validate(connection)


# ── Messages ──


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    message = await MessageService(db).send_message(user_id, body.receiver_id, body.body)
    await db.commit()
    return MessageResponse.model_validate(message)


@router.get("/messages/{other_user_id}", response_model=ConversationResponse)
async def get_conversation(
    other_user_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Conversation between the caller and another user, oldest first."""
    messages = await MessageService(db).get_conversation(user_id, other_user_id)
    return ConversationResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        total=len(messages),
    )
