"""LLM data models.

Wire-level request/response models for the OpenAI-compatible
chat-completions protocol shared by every provider, plus the typed result
returned by ``ProviderClient``.
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from .errors import (
    DecodeError,
    LLMError,
    NetworkError,
    ProtocolError,
    RETRYABLE_ERRORS,
    ToolArgumentError,
)
from .errors import TimeoutError as LLMTimeoutError


class FunctionCall(BaseModel):
    """Function name and JSON-encoded arguments, as sent on the wire."""

    name: str
    arguments: str = ""


class ToolCall(BaseModel):
    """A model-issued request to invoke a tool.

    ``arguments`` stays a raw string so the history sent back to the provider
    is byte-for-byte what the provider produced.
    """

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall

    @property
    def name(self) -> str:
        return self.function.name

    def parse_arguments(self) -> dict[str, Any]:
        """Decode the argument string into a JSON object.

        Raises:
            ToolArgumentError: Arguments are not a JSON object.
        """
        try:
            value = json.loads(self.function.arguments)
        except (json.JSONDecodeError, TypeError) as e:
            raise ToolArgumentError(
                f"Invalid JSON arguments for tool '{self.name}': {e}",
                tool_name=self.name,
                call_id=self.id,
            ) from e

        if not isinstance(value, dict):
            raise ToolArgumentError(
                f"Arguments for tool '{self.name}' must be a JSON object",
                tool_name=self.name,
                call_id=self.id,
            )
        return value


class ChatMessage(BaseModel):
    """A single message in the conversation."""

    model_config = ConfigDict(extra="ignore")

    role: Literal["system", "user", "assistant", "tool"]
    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: list[ToolCall] | None = None) -> "ChatMessage":
        return cls(role="assistant", content=content, tool_calls=tool_calls or [])

    @classmethod
    def tool_result(cls, call: ToolCall, content: str) -> "ChatMessage":
        return cls(role="tool", content=content, tool_call_id=call.id, name=call.name)

    def to_wire(self) -> dict[str, Any]:
        """Encode for the request body. Empty tool_calls and None fields are omitted."""
        data = self.model_dump(exclude_none=True)
        if not self.tool_calls:
            data.pop("tool_calls", None)
        return data

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "ChatMessage":
        """Decode a message object from a response body."""
        payload = dict(data)
        if payload.get("tool_calls") is None:
            payload.pop("tool_calls", None)
        return cls.model_validate(payload)


class FunctionDefinition(BaseModel):
    """Tool schema. ``parameters`` is arbitrary JSON Schema."""

    name: str
    description: str | None = None
    parameters: JsonValue = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ToolDefinition(BaseModel):
    """A tool the model may call."""

    type: Literal["function"] = "function"
    function: FunctionDefinition

    @property
    def name(self) -> str:
        return self.function.name

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ChatRequest(BaseModel):
    """Vendor-neutral chat request.

    ``temperature`` is a preference: the client drops it for reasoning models.
    """

    messages: list[ChatMessage]
    model: str
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = None
    tools: list[ToolDefinition] | None = None
    tool_choice: Literal["auto", "none", "required"] | None = None
    stream: bool = False
    extra_parameters: dict[str, Any] = Field(default_factory=dict)


class TextResponse(BaseModel):
    """The model answered with text."""

    kind: Literal["text"] = "text"
    text: str
    thinking: str | None = None
    finish_reason: str | None = None


class ToolCallsRequested(BaseModel):
    """The model asked for one or more tools to be run."""

    kind: Literal["tool_calls"] = "tool_calls"
    tool_calls: list[ToolCall]
    text: str | None = None  # content sent alongside the calls
    thinking: str | None = None
    finish_reason: str | None = None


ErrorKind = Literal["network", "timeout", "protocol", "decode", "other"]


class ErrorResult(BaseModel):
    """A provider call failed. Carries a user-presentable message."""

    kind: Literal["error"] = "error"
    message: str
    error_type: ErrorKind = "other"
    status_code: int | None = None
    provider: str | None = None
    retryable: bool = False

    @classmethod
    def from_exception(cls, error: LLMError) -> "ErrorResult":
        if isinstance(error, NetworkError):
            error_type: ErrorKind = "timeout" if isinstance(error, LLMTimeoutError) else "network"
        elif isinstance(error, ProtocolError):
            error_type = "protocol"
        elif isinstance(error, DecodeError):
            error_type = "decode"
        else:
            error_type = "other"

        return cls(
            message=error.message,
            error_type=error_type,
            status_code=error.status_code,
            provider=error.provider,
            retryable=isinstance(error, RETRYABLE_ERRORS),
        )


ChatResult = Annotated[
    Union[TextResponse, ToolCallsRequested, ErrorResult],
    Field(discriminator="kind"),
]
