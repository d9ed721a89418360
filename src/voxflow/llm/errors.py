"""LLM error hierarchy.

Custom exceptions for provider calls and tool orchestration.
Used to build user-facing failure messages and the retry affordance.
"""


class LLMError(Exception):
    """Base exception for LLM operations."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.provider:
            parts.append(f"provider={self.provider}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        return " ".join(parts)


class NetworkError(LLMError):
    """DNS failure, refused connection, dropped connection.

    Retryable. Surfaced to the user with a retry affordance.
    """

    pass


class TimeoutError(NetworkError):
    """Request exceeded the configured timeout."""

    pass


class ProtocolError(LLMError):
    """Non-2xx HTTP response.

    The message is extracted from the provider's error envelope when possible.
    """

    pass


class DecodeError(LLMError):
    """Response body did not match the chat-completions envelope.

    Also raised for a well-formed response with zero choices.
    """

    pass


class ToolArgumentError(LLMError):
    """Tool-call arguments are not valid JSON.

    The call is dropped; the remaining calls still run.
    """

    def __init__(self, message: str, tool_name: str | None = None, call_id: str | None = None):
        super().__init__(message)
        self.tool_name = tool_name
        self.call_id = call_id


class ToolExecutionError(LLMError):
    """A tool executor reported a failure.

    Converted into a tool-result message instead of aborting the round.
    """

    def __init__(self, message: str, tool_name: str | None = None):
        super().__init__(message)
        self.tool_name = tool_name


class OrchestrationError(LLMError):
    """The tool-calling loop exhausted its round budget."""

    pass


# Error classification for the retry affordance
RETRYABLE_ERRORS = (NetworkError,)
