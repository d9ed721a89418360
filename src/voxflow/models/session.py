"""Session model for one transcript-to-output unit of work.

A session is created when a recording starts and is finished by delivery,
failure, or supersession by a newer session.

Pydantic v2.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..llm.models import ChatMessage


def _utcnow() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


class Mode(str, Enum):
    """Pipeline selected for a session."""
    dictation = "dictation"
    command = "command"
    write = "write"


class SessionStatus(str, Enum):
    """Controller state of a session."""
    idle = "idle"
    recording = "recording"
    transcribing = "transcribing"
    enhancing = "enhancing"
    delivering = "delivering"
    error = "error"
    cancelled = "cancelled"


class DeliveryMethod(str, Enum):
    """Hint for how the output dispatcher should deliver text."""
    typed = "typed"
    clipboard = "clipboard"
    history_only = "history_only"


# States from which no further transition happens
TERMINAL_STATUSES = {SessionStatus.idle, SessionStatus.cancelled}


class Session(BaseModel):
    """State of one recording through to delivery.

    The history is owned by the session and only ever appended to.
    """
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: str(uuid4()))
    mode: Mode
    status: SessionStatus = SessionStatus.recording
    transcript: str = ""
    selected_text: Optional[str] = Field(
        default=None,
        description="Text to rewrite (Write mode with a selection)",
    )
    history: List[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None

    result: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = False
    delivered: bool = False

    def is_finished(self) -> bool:
        return self.finished_at is not None

    def transition(self, status: SessionStatus) -> None:
        """Move to ``status``; terminal states stamp ``finished_at``."""
        self.status = status
        if status in TERMINAL_STATUSES and self.finished_at is None:
            self.finished_at = _utcnow()

    def duration_ms(self) -> int:
        end = self.finished_at or _utcnow()
        return int((end - self.created_at).total_seconds() * 1000)


class SessionOutcome(BaseModel):
    """What the controller reports back once a session is done."""
    model_config = ConfigDict(extra="forbid")

    session_id: str
    mode: Mode
    status: SessionStatus
    text: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = False
    delivered: bool = False
