"""voxflow: mode pipeline and provider orchestration for voice input."""

from .config import OrchestratorConfig
from .llm import ChatMessage, ErrorResult, ProviderClient, TextResponse, ToolCallsRequested
from .models import DeliveryMethod, Mode, Session, SessionOutcome, SessionStatus
from .providers import ProviderProfile, ProviderRegistry, ReasoningConfig
from .services import ModeController, ToolCallOrchestrator

__version__ = "0.1.0"

__all__ = [
    "OrchestratorConfig",
    "ChatMessage",
    "ErrorResult",
    "ProviderClient",
    "TextResponse",
    "ToolCallsRequested",
    "DeliveryMethod",
    "Mode",
    "Session",
    "SessionOutcome",
    "SessionStatus",
    "ProviderProfile",
    "ProviderRegistry",
    "ReasoningConfig",
    "ModeController",
    "ToolCallOrchestrator",
]
