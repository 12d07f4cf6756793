"""Domain events emitted by the engine services.

Each event class maps to exactly one NotificationType; the dispatcher turns
an event into a Notification row. System events (level-up, achievement
unlock) have no actor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from vibe.domain_types import NotificationType


@dataclass(frozen=True)
class DomainEvent:
    recipient_id: int
    actor_id: int | None = None
    subject_id: int | None = None

    notification_type: ClassVar[NotificationType]
    # Body text to snippet into the notification (comment, message)
    carries_content: ClassVar[bool] = False

    @property
    def body(self) -> str | None:
        return None


@dataclass(frozen=True)
class ConnectionRequested(DomainEvent):
    notification_type: ClassVar[NotificationType] = NotificationType.CONNECTION_REQUEST


@dataclass(frozen=True)
class ConnectionAccepted(DomainEvent):
    notification_type: ClassVar[NotificationType] = NotificationType.CONNECTION_ACCEPTED


@dataclass(frozen=True)
class ReactionRecorded(DomainEvent):
    notification_type: ClassVar[NotificationType] = NotificationType.LIKE


@dataclass(frozen=True)
class CommentPosted(DomainEvent):
    text: str = ""

    notification_type: ClassVar[NotificationType] = NotificationType.COMMENT
    carries_content: ClassVar[bool] = True

    @property
    def body(self) -> str | None:
        return self.text


@dataclass(frozen=True)
class MessageSent(DomainEvent):
    text: str = ""

    notification_type: ClassVar[NotificationType] = NotificationType.MESSAGE
    carries_content: ClassVar[bool] = True

    @property
    def body(self) -> str | None:
        return self.text


@dataclass(frozen=True)
class AchievementUnlocked(DomainEvent):
    title: str = ""

    notification_type: ClassVar[NotificationType] = NotificationType.ACHIEVEMENT_UNLOCKED

    @property
    def body(self) -> str | None:
        return f"Achievement unlocked: {self.title}" if self.title else None


@dataclass(frozen=True)
class LevelUp(DomainEvent):
    old_level: int = 1
    new_level: int = 1
    title: str = ""

    notification_type: ClassVar[NotificationType] = NotificationType.LEVEL_UP

    @property
    def body(self) -> str | None:
        return f"Level {self.new_level}: {self.title}"
