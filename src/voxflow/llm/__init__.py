"""LLM provider layer.

This module provides one client for every OpenAI-compatible chat-completions
backend (hosted, self-hosted, gateways), with typed results instead of
exceptions for provider failures.
"""

from .client import ProviderClient, extract_error_message
from .endpoints import is_local_endpoint, is_reasoning_model, resolve_endpoint
from .errors import (
    DecodeError,
    LLMError,
    NetworkError,
    OrchestrationError,
    ProtocolError,
    TimeoutError,
    ToolArgumentError,
    ToolExecutionError,
)
from .models import (
    ChatMessage,
    ChatRequest,
    ChatResult,
    ErrorResult,
    FunctionCall,
    FunctionDefinition,
    TextResponse,
    ToolCall,
    ToolCallsRequested,
    ToolDefinition,
)

__all__ = [
    "ProviderClient",
    "extract_error_message",
    "is_local_endpoint",
    "is_reasoning_model",
    "resolve_endpoint",
    "ChatMessage",
    "ChatRequest",
    "ChatResult",
    "ErrorResult",
    "FunctionCall",
    "FunctionDefinition",
    "TextResponse",
    "ToolCall",
    "ToolCallsRequested",
    "ToolDefinition",
    "LLMError",
    "NetworkError",
    "TimeoutError",
    "ProtocolError",
    "DecodeError",
    "ToolArgumentError",
    "ToolExecutionError",
    "OrchestrationError",
]
