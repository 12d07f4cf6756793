"""Engine error taxonomy.

Every error is raised synchronously from a single entity mutation and never
retried internally. ``http_status`` lets the transport translate an error
without a lookup table of its own.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""

    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EngineError):
    """Malformed input (self-connection, negative XP, unknown decision)."""

    http_status = 400


class NotFoundError(EngineError):
    """Referenced entity does not exist."""

    http_status = 404


class ConflictError(EngineError):
    """Duplicate connection or transition out of a terminal state."""

    http_status = 409


class ForbiddenError(EngineError):
    """Actor is not allowed to perform the requested transition."""

    http_status = 403
