"""Session models."""

from .session import (
    DeliveryMethod,
    Mode,
    Session,
    SessionOutcome,
    SessionStatus,
)

__all__ = [
    "DeliveryMethod",
    "Mode",
    "Session",
    "SessionOutcome",
    "SessionStatus",
]
