"""Closed enumerations shared by models, services and schemas."""

from __future__ import annotations

from enum import Enum


class ConnectionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# pending is the only non-terminal state
VALID_CONNECTION_TRANSITIONS: dict[ConnectionStatus, list[ConnectionStatus]] = {
    ConnectionStatus.PENDING: [ConnectionStatus.ACCEPTED, ConnectionStatus.REJECTED],
    ConnectionStatus.ACCEPTED: [],
    ConnectionStatus.REJECTED: [],
}


class NotificationType(str, Enum):
    CONNECTION_REQUEST = "connection_request"
    CONNECTION_ACCEPTED = "connection_accepted"
    LIKE = "like"
    COMMENT = "comment"
    MESSAGE = "message"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    LEVEL_UP = "level_up"
