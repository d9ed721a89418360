"""Provider client for the OpenAI-compatible chat-completions protocol.

One client serves every backend: hosted clouds, self-hosted local servers and
gateways. The request shape is derived from the provider profile and the model
name (endpoint path, auth header, temperature, reasoning parameters).
"""

import asyncio
import json
import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

import httpx

from ..config import (
    DEFAULT_CONNECTIVITY_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TEMPERATURE,
    OrchestratorConfig,
)
from ..providers.profiles import ProviderProfile
from .endpoints import (
    is_local_endpoint,
    is_reasoning_model,
    model_extra_parameters,
    resolve_endpoint,
)
from .errors import DecodeError, LLMError, NetworkError, ProtocolError, TimeoutError
from .models import (
    ChatMessage,
    ChatRequest,
    ChatResult,
    ErrorResult,
    FunctionCall,
    TextResponse,
    ToolCall,
    ToolCallsRequested,
    ToolDefinition,
)
from .thinking import StreamingThinkingParser, merge_thinking, strip_thinking_tags

logger = logging.getLogger(__name__)

# Request bodies are logged truncated to this many characters
LOG_BODY_LIMIT = 500

ContentCallback = Callable[[str], None]


class ProviderClient:
    """Capability-aware chat-completions client.

    Features:
    - Endpoint resolution that leaves complete gateway URLs untouched
    - No Authorization header for loopback/private-network endpoints
    - Temperature omitted and reasoning parameters injected for reasoning models
    - HTTP, network and envelope failures returned as ``ErrorResult``
    - Optional SSE streaming with thinking-token separation

    Every call is a single POST bounded by a total timeout. The client keeps
    no per-call state and never mutates the profiles it is given.
    """

    def __init__(
        self,
        timeout: float | None = None,
        connectivity_timeout: float | None = None,
        temperature: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        config: OrchestratorConfig | None = None,
    ):
        """Initialize the provider client.

        Args:
            timeout: Total per-call timeout in seconds. Defaults to config value.
            connectivity_timeout: Timeout for ``check_connection``.
            temperature: Temperature sent to non-reasoning models.
            http_client: Pre-built httpx client (tests inject a MockTransport).
            config: Source of defaults when explicit values are not given.
        """
        self._timeout = (
            timeout
            if timeout is not None
            else (config.request_timeout if config else DEFAULT_REQUEST_TIMEOUT)
        )
        self._connectivity_timeout = (
            connectivity_timeout
            if connectivity_timeout is not None
            else (config.connectivity_timeout if config else DEFAULT_CONNECTIVITY_TIMEOUT)
        )
        self._temperature = (
            temperature
            if temperature is not None
            else (config.temperature if config else DEFAULT_TEMPERATURE)
        )
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-initialized httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    @property
    def timeout(self) -> float:
        return self._timeout

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ProviderClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def send_chat(
        self,
        profile: ProviderProfile,
        model: str,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
        tool_choice: str | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> ChatResult:
        """Send one chat request and return a typed result.

        Args:
            profile: Provider to call.
            model: Model name.
            messages: Conversation so far, in order.
            tools: Tool schemas offered to the model.
            tool_choice: "auto", "none" or "required". Ignored without tools.
            max_tokens: Optional completion token limit.
            timeout: Overrides the client timeout for this call.

        Returns:
            TextResponse, ToolCallsRequested or ErrorResult. Never raises for
            HTTP or network failures.
        """
        request = ChatRequest(
            messages=messages,
            model=model,
            tools=tools or None,
            tool_choice=tool_choice,
            max_tokens=max_tokens,
        )
        return await self.generate(profile, request, timeout=timeout)

    async def generate(
        self,
        profile: ProviderProfile,
        request: ChatRequest,
        timeout: float | None = None,
    ) -> ChatResult:
        """Send a prepared request (non-streaming)."""
        timeout = timeout if timeout is not None else self._timeout
        start_time = time.perf_counter()

        try:
            result = await asyncio.wait_for(
                self._post(profile, request.model_copy(update={"stream": False})),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            return self._failure(
                TimeoutError(f"Request timed out after {timeout:g}s", provider=profile.id),
                profile,
                request,
            )
        except LLMError as e:
            return self._failure(e, profile, request)

        self._log_success(profile, request, result, start_time)
        return result

    async def stream_chat(
        self,
        profile: ProviderProfile,
        request: ChatRequest,
        on_content: ContentCallback | None = None,
        timeout: float | None = None,
    ) -> ChatResult:
        """Send a streaming request and assemble the final result.

        Args:
            profile: Provider to call.
            request: Request to send; ``stream`` is forced on.
            on_content: Called with each released chunk of answer text.
                Thinking text is never passed to it.
            timeout: Total time allowed for the whole stream.

        Returns:
            The same result types as ``generate``.
        """
        timeout = timeout if timeout is not None else self._timeout
        start_time = time.perf_counter()

        try:
            result = await asyncio.wait_for(
                self._post_streaming(profile, request.model_copy(update={"stream": True}), on_content),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            return self._failure(
                TimeoutError(f"Request timed out after {timeout:g}s", provider=profile.id),
                profile,
                request,
            )
        except LLMError as e:
            return self._failure(e, profile, request)

        self._log_success(profile, request, result, start_time)
        return result

    async def check_connection(self, profile: ProviderProfile, model: str) -> ChatResult:
        """Verify a provider answers with a short request."""
        return await self.send_chat(
            profile,
            model,
            [ChatMessage.user("Reply with OK.")],
            timeout=self._connectivity_timeout,
        )

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_headers(self, profile: ProviderProfile) -> dict[str, str]:
        """Content type always; bearer auth only for remote endpoints with a key."""
        headers = {"Content-Type": "application/json"}
        if not is_local_endpoint(profile.base_url) and profile.api_key:
            headers["Authorization"] = f"Bearer {profile.api_key}"
        return headers

    def _build_request(self, profile: ProviderProfile, request: ChatRequest) -> dict[str, Any]:
        """Convert a ChatRequest to the JSON body for this profile and model."""
        reasoning = is_reasoning_model(request.model)

        body: dict[str, Any] = {
            "model": request.model,
            "messages": [msg.to_wire() for msg in request.messages],
        }

        # Reasoning models reject temperature outright
        if not reasoning:
            body["temperature"] = (
                request.temperature if request.temperature is not None else self._temperature
            )

        # tool_choice without tools is rejected by several providers
        if request.tools:
            body["tools"] = [tool.to_wire() for tool in request.tools]
            body["tool_choice"] = request.tool_choice or "auto"

        if request.stream:
            body["stream"] = True

        # Extra fields, later layers override earlier ones:
        # model family defaults, then user/preset reasoning config, then per-request
        body.update(model_extra_parameters(request.model))

        reasoning_config = profile.reasoning_config_for(request.model)
        if reasoning_config is not None:
            body.update(reasoning_config.as_request_fields())

        body.update(request.extra_parameters)

        if request.max_tokens:
            token_key = "max_completion_tokens" if reasoning else "max_tokens"
            body[token_key] = request.max_tokens

        return body

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(self, profile: ProviderProfile, request: ChatRequest) -> ChatResult:
        url = resolve_endpoint(profile.base_url)
        body = self._build_request(profile, request)
        self._log_request(profile, url, body)

        try:
            response = await self.client.post(url, json=body, headers=self._build_headers(profile))
        except httpx.HTTPError as e:
            raise self._transport_error(e, profile) from e

        if response.status_code >= 400:
            raise self._protocol_error(response.status_code, response, profile)

        try:
            data = response.json()
        except ValueError as e:
            raise DecodeError(
                "Invalid response from LLM: body is not JSON",
                provider=profile.id,
                status_code=response.status_code,
            ) from e

        return self._parse_response(data, profile)

    async def _post_streaming(
        self,
        profile: ProviderProfile,
        request: ChatRequest,
        on_content: ContentCallback | None,
    ) -> ChatResult:
        url = resolve_endpoint(profile.base_url)
        body = self._build_request(profile, request)
        self._log_request(profile, url, body)

        parser = StreamingThinkingParser.for_model(request.model)
        reasoning_parts: list[str] = []
        tool_parts: dict[int, dict[str, str]] = {}
        stray_payloads: list[str] = []
        saw_choice = False
        finish_reason: str | None = None

        try:
            async with self.client.stream(
                "POST", url, json=body, headers=self._build_headers(profile)
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise self._protocol_error(response.status_code, response, profile)

                async for raw_line in response.aiter_lines():
                    payload = _sse_payload(raw_line)
                    if payload is None:
                        continue
                    choice = _first_choice(payload)
                    if choice is None:
                        stray_payloads.append(payload)
                        continue

                    saw_choice = True
                    if choice.get("finish_reason"):
                        finish_reason = choice["finish_reason"]
                    delta = choice.get("delta")
                    if not isinstance(delta, dict):
                        continue

                    reasoning = delta.get("reasoning_content")
                    if isinstance(reasoning, str) and reasoning:
                        reasoning_parts.append(reasoning)

                    content = delta.get("content")
                    if isinstance(content, str) and content:
                        released = parser.feed(content)
                        if released and on_content is not None:
                            on_content(released)

                    for fragment in delta.get("tool_calls") or []:
                        _accumulate_tool_fragment(tool_parts, fragment)
        except httpx.HTTPError as e:
            raise self._transport_error(e, profile) from e

        if not saw_choice:
            message = _stream_error_message(stray_payloads)
            raise DecodeError(
                f"No response from LLM: {message}" if message else "No response from LLM",
                provider=profile.id,
                status_code=response.status_code,
            )

        tail = parser.flush()
        if tail and on_content is not None:
            on_content(tail)
        tag_thinking, text = parser.finish()
        thinking = merge_thinking("".join(reasoning_parts), tag_thinking)

        tool_calls = [
            ToolCall(
                id=part.get("id") or _generated_call_id(),
                function=FunctionCall(name=part["name"], arguments=part.get("arguments", "")),
            )
            for _, part in sorted(tool_parts.items())
            if part.get("name")
        ]

        logger.debug(
            "Stream complete: %d chars content, %d chars thinking, %d tool calls",
            len(text),
            len(thinking or ""),
            len(tool_calls),
            extra={"provider": profile.id, "model": request.model},
        )

        if tool_calls:
            return ToolCallsRequested(
                tool_calls=tool_calls,
                text=text or None,
                thinking=thinking,
                finish_reason=finish_reason,
            )
        return TextResponse(text=text, thinking=thinking, finish_reason=finish_reason)

    # ------------------------------------------------------------------
    # Response decoding
    # ------------------------------------------------------------------

    def _parse_response(self, data: Any, profile: ProviderProfile) -> ChatResult:
        """Convert a chat-completions response body to a ChatResult."""
        if not isinstance(data, dict) or not isinstance(data.get("choices"), list):
            raise DecodeError("Invalid response from LLM", provider=profile.id)

        choices = data["choices"]
        if not choices:
            raise DecodeError("No response from LLM", provider=profile.id)

        choice = choices[0]
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise DecodeError("Invalid response from LLM: missing message", provider=profile.id)

        finish_reason = choice.get("finish_reason")
        raw_content = _content_text(message.get("content"))
        tag_thinking, text = strip_thinking_tags(raw_content)
        thinking = merge_thinking(tag_thinking, message.get("reasoning_content"))

        tool_calls = self._parse_tool_calls(message.get("tool_calls"), profile)
        if tool_calls:
            return ToolCallsRequested(
                tool_calls=tool_calls,
                text=text or None,
                thinking=thinking,
                finish_reason=finish_reason,
            )

        return TextResponse(text=text, thinking=thinking, finish_reason=finish_reason)

    def _parse_tool_calls(self, raw_calls: Any, profile: ProviderProfile) -> list[ToolCall]:
        """Decode wire tool calls. Arguments stay raw; structurally broken entries are skipped."""
        if not isinstance(raw_calls, list):
            return []

        tool_calls: list[ToolCall] = []
        for raw in raw_calls:
            function = raw.get("function") if isinstance(raw, dict) else None
            if not isinstance(function, dict) or not isinstance(function.get("name"), str):
                logger.warning(
                    "Skipping malformed tool call entry",
                    extra={"provider": profile.id},
                )
                continue

            arguments = function.get("arguments")
            if not isinstance(arguments, str):
                # Some local servers send the arguments object unencoded
                arguments = json.dumps(arguments) if arguments is not None else ""

            tool_calls.append(
                ToolCall(
                    id=raw.get("id") or _generated_call_id(),
                    function=FunctionCall(name=function["name"], arguments=arguments),
                )
            )
        return tool_calls

    # ------------------------------------------------------------------
    # Errors and logging
    # ------------------------------------------------------------------

    def _transport_error(self, error: httpx.HTTPError, profile: ProviderProfile) -> LLMError:
        """Map httpx exceptions onto the error taxonomy."""
        if isinstance(error, httpx.TimeoutException):
            return TimeoutError(f"Request to {profile.id} timed out", provider=profile.id)
        if isinstance(error, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
            return LLMError(f"Invalid Base URL: {profile.base_url}", provider=profile.id)
        if isinstance(error, httpx.TransportError):
            return NetworkError(f"Network error: {error}", provider=profile.id)
        return LLMError(f"Request failed: {error}", provider=profile.id)

    def _protocol_error(
        self, status_code: int, response: httpx.Response, profile: ProviderProfile
    ) -> ProtocolError:
        message = extract_error_message(response)
        logger.error(
            "HTTP %d from provider: %s",
            status_code,
            message[:200],
            extra={"provider": profile.id, "status_code": status_code},
        )
        return ProtocolError(
            f"HTTP {status_code}: {message}",
            provider=profile.id,
            status_code=status_code,
        )

    def _failure(self, error: LLMError, profile: ProviderProfile, request: ChatRequest) -> ErrorResult:
        logger.error(
            "Provider call failed: %s",
            error.message,
            extra={
                "provider": profile.id,
                "model": request.model,
                "error_type": type(error).__name__,
            },
        )
        return ErrorResult.from_exception(error)

    def _log_request(self, profile: ProviderProfile, url: str, body: dict[str, Any]) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        serialized = json.dumps(body)
        if len(serialized) > LOG_BODY_LIMIT:
            serialized = serialized[:LOG_BODY_LIMIT] + "..."
        logger.debug(
            "Request to %s (%d messages, model=%s): %s",
            url,
            len(body.get("messages", [])),
            body.get("model"),
            serialized,
            extra={"provider": profile.id},
        )

    def _log_success(
        self,
        profile: ProviderProfile,
        request: ChatRequest,
        result: ChatResult,
        start_time: float,
    ) -> None:
        latency_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "LLM request succeeded",
            extra={
                "provider": profile.id,
                "model": request.model,
                "latency_ms": latency_ms,
                "result_kind": result.kind,
                "finish_reason": getattr(result, "finish_reason", None),
            },
        )


def extract_error_message(response: httpx.Response) -> str:
    """Pull a readable message out of a provider error body.

    Checks ``error.message``, a string ``error``, then a top-level ``message``;
    falls back to the raw body text.
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    message = _error_body_message(body)
    if message:
        return message

    text = response.text.strip()
    return text or response.reason_phrase or "Unknown error"


def _error_body_message(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str) and error:
        return error
    if isinstance(body.get("message"), str):
        return body["message"]
    return None


def _content_text(content: Any) -> str:
    """Content may be a string, null, or a list of typed parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return ""


def _generated_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:8]}"


def _sse_payload(raw_line: str) -> str | None:
    """Payload of one stream line; None for blank, comment and ``[DONE]`` lines."""
    line = raw_line.strip()
    if not line or line.startswith(":"):
        return None
    if line.startswith("data:"):
        line = line[5:].strip()
    if not line or line == "[DONE]":
        return None
    return line


def _first_choice(payload: str) -> dict[str, Any] | None:
    """First choice of a streamed chunk, or None when it carries none."""
    try:
        chunk = json.loads(payload)
    except json.JSONDecodeError:
        return None

    choices = chunk.get("choices") if isinstance(chunk, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    return choices[0]


def _stream_error_message(payloads: list[str]) -> str | None:
    """Provider error message from a stream that never produced a choice.

    Some providers answer 200 with a plain JSON error envelope instead of SSE.
    """
    candidates = ["\n".join(payloads), *payloads] if payloads else []
    for candidate in candidates:
        try:
            message = _error_body_message(json.loads(candidate))
        except json.JSONDecodeError:
            continue
        if message:
            return message
    return None


def _accumulate_tool_fragment(parts: dict[int, dict[str, str]], fragment: Any) -> None:
    """Merge one streamed tool-call fragment into ``parts`` by index."""
    if not isinstance(fragment, dict):
        return

    index = fragment.get("index", 0)
    part = parts.setdefault(index if isinstance(index, int) else 0, {})

    if isinstance(fragment.get("id"), str):
        part["id"] = fragment["id"]

    function = fragment.get("function")
    if isinstance(function, dict):
        if isinstance(function.get("name"), str):
            part["name"] = function["name"]
        if isinstance(function.get("arguments"), str):
            part["arguments"] = part.get("arguments", "") + function["arguments"]
