"""Tool-calling orchestration for Command mode.

Drives the multi-round protocol:
1. Ask the model with the tool schemas (tool_choice="auto")
2. Text answer -> done
3. Tool calls -> run each parsable call through the ToolExecutor and append
   one tool-result message per executed call (failures included)
4. Ask again; once the tool-round allowance is used up the request omits
   tools (tool_choice="none") to force a final answer

A hard round budget stops a model that never stops calling tools.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import (
    DEFAULT_MAX_TOOL_ROUNDS,
    DEFAULT_TOOL_ROUNDS_BEFORE_FINAL,
    OrchestratorConfig,
)
from ..llm.client import ContentCallback, ProviderClient
from ..llm.errors import OrchestrationError, ToolArgumentError, ToolExecutionError
from ..llm.models import (
    ChatMessage,
    ChatRequest,
    ChatResult,
    ErrorResult,
    ToolCall,
    ToolCallsRequested,
    ToolDefinition,
)
from ..providers.profiles import ProviderProfile
from .ports import ToolExecutor
from .prompts import FINAL_ANSWER_FALLBACK, MAX_ROUNDS_MESSAGE

logger = logging.getLogger(__name__)


class OrchestrationResult(BaseModel):
    """Outcome of one orchestration run."""
    model_config = ConfigDict(extra="forbid")

    text: Optional[str] = None
    thinking: Optional[str] = None
    history: list[ChatMessage] = Field(default_factory=list)
    rounds: int = 0
    tool_calls_executed: int = 0
    error: Optional[ErrorResult] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None


class ToolCallOrchestrator:
    """Bounded tool-calling loop on top of ProviderClient.

    The history passed to ``run`` is copied; the caller's list is not
    modified. Every appended message lands at the end, in call order.
    """

    def __init__(
        self,
        client: ProviderClient,
        executor: ToolExecutor,
        max_rounds: int | None = None,
        tool_rounds_before_final: int | None = None,
        config: OrchestratorConfig | None = None,
    ):
        """Initialize orchestrator.

        Args:
            client: Provider client used for every model call.
            executor: Runs the tools the model asks for.
            max_rounds: Hard cap on model calls per run.
            tool_rounds_before_final: Rounds that may execute tools before
                the request stops offering them.
            config: Source of defaults when explicit values are not given.
        """
        self._client = client
        self._executor = executor
        self._max_rounds = (
            max_rounds
            if max_rounds is not None
            else (config.max_tool_rounds if config else DEFAULT_MAX_TOOL_ROUNDS)
        )
        self._tool_rounds_before_final = (
            tool_rounds_before_final
            if tool_rounds_before_final is not None
            else (config.tool_rounds_before_final if config else DEFAULT_TOOL_ROUNDS_BEFORE_FINAL)
        )
        if self._max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")

    @property
    def max_rounds(self) -> int:
        return self._max_rounds

    async def run(
        self,
        profile: ProviderProfile,
        model: str,
        history: list[ChatMessage],
        tools: list[ToolDefinition],
        timeout: float | None = None,
        stream: bool = False,
        on_content: ContentCallback | None = None,
    ) -> OrchestrationResult:
        """Run the loop until the model answers, fails, or the budget runs out.

        Args:
            profile: Provider to call.
            model: Model name.
            history: Conversation so far (system prompt and user turn included).
            tools: Tool schemas offered to the model.
            timeout: Per-call timeout override.
            stream: Use SSE streaming for each call.
            on_content: Streaming callback for answer text.

        Returns:
            OrchestrationResult with the final text or an error.
        """
        conversation = list(history)
        tool_rounds = 0
        executed_total = 0

        for round_number in range(1, self._max_rounds + 1):
            forced_final = bool(tools) and tool_rounds >= self._tool_rounds_before_final
            offer_tools = bool(tools) and not forced_final

            request = ChatRequest(
                messages=conversation,
                model=model,
                tools=tools if offer_tools else None,
                tool_choice="auto" if offer_tools else ("none" if tools else None),
            )

            logger.debug(
                "Orchestration round %d/%d (tools offered: %s)",
                round_number,
                self._max_rounds,
                offer_tools,
                extra={"provider": profile.id, "model": model, "round": round_number},
            )

            result = await self._call(profile, request, timeout, stream, on_content)

            if isinstance(result, ErrorResult):
                return OrchestrationResult(
                    history=conversation,
                    rounds=round_number,
                    tool_calls_executed=executed_total,
                    error=result,
                )

            if not isinstance(result, ToolCallsRequested):
                conversation.append(ChatMessage.assistant(result.text))
                return OrchestrationResult(
                    text=result.text,
                    thinking=result.thinking,
                    history=conversation,
                    rounds=round_number,
                    tool_calls_executed=executed_total,
                )

            if forced_final or not tools:
                # Tool calls after being told to answer are never executed
                logger.warning(
                    "Model requested %d tool calls on the final round; ignoring them",
                    len(result.tool_calls),
                    extra={"provider": profile.id, "model": model, "round": round_number},
                )
                text = result.text if result.text else FINAL_ANSWER_FALLBACK
                conversation.append(ChatMessage.assistant(text))
                return OrchestrationResult(
                    text=text,
                    thinking=result.thinking,
                    history=conversation,
                    rounds=round_number,
                    tool_calls_executed=executed_total,
                )

            executable = self._executable_calls(result.tool_calls)
            if executable:
                conversation.append(ChatMessage.assistant(result.text, tool_calls=[c for c, _ in executable]))
                for call, arguments in executable:
                    content = await self._execute(call, arguments, round_number)
                    conversation.append(ChatMessage.tool_result(call, content))
                executed_total += len(executable)

            tool_rounds += 1

        logger.warning(
            "Orchestration stopped after %d rounds",
            self._max_rounds,
            extra={"provider": profile.id, "model": model},
        )
        return OrchestrationResult(
            history=conversation,
            rounds=self._max_rounds,
            tool_calls_executed=executed_total,
            error=ErrorResult.from_exception(OrchestrationError(MAX_ROUNDS_MESSAGE, provider=profile.id)),
        )

    async def _call(
        self,
        profile: ProviderProfile,
        request: ChatRequest,
        timeout: float | None,
        stream: bool,
        on_content: ContentCallback | None,
    ) -> ChatResult:
        if stream:
            return await self._client.stream_chat(profile, request, on_content=on_content, timeout=timeout)
        return await self._client.generate(profile, request, timeout=timeout)

    def _executable_calls(self, tool_calls: list[ToolCall]) -> list[tuple[ToolCall, dict]]:
        """Parse arguments; calls that fail to parse are dropped."""
        executable: list[tuple[ToolCall, dict]] = []
        for call in tool_calls:
            try:
                executable.append((call, call.parse_arguments()))
            except ToolArgumentError as e:
                # TODO: feed a tool-result error back to the model instead of dropping the call
                logger.warning(
                    "Dropping tool call %s: %s",
                    call.id,
                    e.message,
                    extra={"tool": call.name, "call_id": call.id},
                )
        return executable

    async def _execute(self, call: ToolCall, arguments: dict, round_number: int) -> str:
        """Run one call; failures become the tool-result content."""
        logger.info(
            "Executing tool %s",
            call.name,
            extra={"tool": call.name, "call_id": call.id, "round": round_number},
        )
        try:
            output = await self._executor.execute(call.name, arguments)
        except ToolExecutionError as e:
            logger.warning(
                "Tool %s failed: %s",
                call.name,
                e.message,
                extra={"tool": call.name, "call_id": call.id},
            )
            return f"Error: {e.message}"
        except Exception as e:
            logger.exception(
                "Tool %s raised an unexpected error",
                call.name,
                extra={"tool": call.name, "call_id": call.id},
            )
            return f"Error: {e}"

        return output if isinstance(output, str) else str(output)
