"""Mode controller.

Owns the life cycle of recording sessions and routes each transcript through
the pipeline of its mode:

- Dictation: optional AI cleanup of the raw transcript
- Write: generate text, or rewrite the selected text
- Command: tool-calling orchestration

At most one session is current. Starting a new recording supersedes the
current session: its task is cancelled and its result is never delivered.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional

from ..config import OrchestratorConfig
from ..llm.client import ProviderClient
from ..llm.errors import LLMError, TimeoutError
from ..llm.models import (
    ChatMessage,
    ChatRequest,
    ErrorResult,
    ToolCallsRequested,
    ToolDefinition,
)
from ..models.session import Mode, Session, SessionOutcome, SessionStatus
from ..providers.profiles import APPLE_INTELLIGENCE_ID, ProviderProfile
from ..providers.registry import ProviderRegistry
from .ports import (
    AnalyticsSink,
    OnDeviceModel,
    OutputDispatcher,
    SettingsStore,
    ToolExecutor,
    Transcriber,
)
from .prompts import (
    COMMAND_SYSTEM_PROMPT,
    REWRITE_SYSTEM_PROMPT,
    WRITE_SYSTEM_PROMPT,
    build_dictation_system_prompt,
    build_rewrite_user_prompt,
)
from .tool_orchestrator import ToolCallOrchestrator

logger = logging.getLogger(__name__)


class ModeController:
    """Single-flight session controller.

    Usage:
        controller = ModeController(client, registry, settings, dispatcher)
        await controller.start_recording(Mode.dictation)
        outcome = await controller.submit_transcript("um buy milk")
    """

    def __init__(
        self,
        client: ProviderClient,
        registry: ProviderRegistry,
        settings: SettingsStore,
        dispatcher: OutputDispatcher,
        executor: Optional[ToolExecutor] = None,
        tools: Optional[list[ToolDefinition]] = None,
        transcriber: Optional[Transcriber] = None,
        analytics: Optional[AnalyticsSink] = None,
        on_device: Optional[OnDeviceModel] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        """Initialize controller.

        Args:
            client: Provider client for every network model call.
            registry: Resolves the provider and model selected for a mode.
            settings: Read-only user configuration.
            dispatcher: Delivers final text.
            executor: Runs Command mode tools.
            tools: Tool schemas offered in Command mode.
            transcriber: Source of transcripts for ``finish_recording``.
            analytics: Receives coarse session events.
            on_device: Local model used when Apple Intelligence is selected.
            config: Timeouts, round budget and streaming switch.
        """
        self._client = client
        self._registry = registry
        self._settings = settings
        self._dispatcher = dispatcher
        self._executor = executor
        self._tools = list(tools or [])
        self._transcriber = transcriber
        self._analytics = analytics
        self._on_device = on_device
        self._config = config or OrchestratorConfig()

        self._current: Optional[Session] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def current_session(self) -> Optional[Session]:
        return self._current

    @property
    def status(self) -> SessionStatus:
        """Status of the current session, idle when there is none."""
        if self._current is None:
            return SessionStatus.idle
        return self._current.status

    # ------------------------------------------------------------------
    # Session life cycle
    # ------------------------------------------------------------------

    async def start_recording(self, mode: Mode, selected_text: Optional[str] = None) -> Session:
        """Begin a new session, superseding the current one.

        Args:
            mode: Pipeline the transcript will go through.
            selected_text: Text to rewrite (Write mode only).

        Returns:
            The new current session, in ``recording`` state.
        """
        previous, previous_task = self._current, self._task

        session = Session(mode=mode, selected_text=selected_text or None)
        self._current = session
        self._task = None

        if previous is not None:
            await self._supersede(previous, previous_task)

        logger.info(
            "Recording started",
            extra={"session_id": session.id, "mode": mode.value},
        )
        return session

    async def submit_transcript(self, text: str) -> Optional[SessionOutcome]:
        """Run the current session's pipeline on ``text``.

        Returns:
            The session outcome, or None when no session is recording.
        """
        session = self._recording_session()
        if session is None:
            return None
        return await self._launch(session, self._process(session, text))

    async def finish_recording(self) -> Optional[SessionOutcome]:
        """Pull the transcript from the Transcriber and run the pipeline."""
        session = self._recording_session()
        if session is None:
            return None
        return await self._launch(session, self._transcribe_and_process(session))

    async def cancel(self) -> Optional[SessionOutcome]:
        """Abort the current session without delivering anything."""
        session, task = self._current, self._task
        if session is None or session.is_finished():
            return None

        self._current = None
        self._task = None
        await self._supersede(session, task)
        return self._outcome(session)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _recording_session(self) -> Optional[Session]:
        session = self._current
        if session is None or session.status != SessionStatus.recording:
            logger.warning("No recording session to process")
            return None
        return session

    async def _launch(self, session: Session, pipeline: Coroutine[Any, Any, None]) -> SessionOutcome:
        task = asyncio.create_task(pipeline)
        self._task = task

        try:
            await asyncio.wait([task])
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Session pipeline crashed",
                exc_info=task.exception(),
                extra={"session_id": session.id},
            )
            if not session.is_finished():
                self._fail(session, f"Unexpected error: {task.exception()}", retryable=False)

        if self._task is task:
            self._task = None
        return self._outcome(session)

    async def _transcribe_and_process(self, session: Session) -> None:
        session.transition(SessionStatus.transcribing)
        if self._transcriber is None:
            self._fail(session, "No transcriber configured", retryable=False)
            return

        try:
            text = await self._transcriber.transcribe()
        except Exception as e:
            logger.exception("Transcription failed", extra={"session_id": session.id})
            self._fail(session, f"Transcription failed: {e}", retryable=False)
            return

        if not self._is_current(session):
            return
        await self._process(session, text)

    async def _process(self, session: Session, text: str) -> None:
        session.transcript = text
        logger.debug(
            "Transcript received: %s",
            text,
            extra={"session_id": session.id, "mode": session.mode.value},
        )

        if not text.strip():
            logger.info("Empty transcript, nothing to do", extra={"session_id": session.id})
            session.transition(SessionStatus.idle)
            return

        session.transition(SessionStatus.enhancing)
        if session.mode == Mode.dictation:
            outcome = await self._run_dictation(session)
        elif session.mode == Mode.write:
            outcome = await self._run_write(session)
        else:
            outcome = await self._run_command(session)

        if not self._is_current(session):
            logger.info(
                "Discarding result of superseded session",
                extra={"session_id": session.id, "mode": session.mode.value},
            )
            return

        if isinstance(outcome, ErrorResult):
            self._fail(session, outcome.message, retryable=outcome.retryable, error_type=outcome.error_type)
            return

        await self._deliver(session, outcome)

    async def _deliver(self, session: Session, text: str) -> None:
        session.result = text
        session.transition(SessionStatus.delivering)

        try:
            await self._dispatcher.deliver(text, self._settings.delivery_method(session.mode))
        except Exception as e:
            logger.exception("Delivery failed", extra={"session_id": session.id})
            self._fail(session, f"Delivery failed: {e}", retryable=False)
            return

        session.delivered = True
        session.transition(SessionStatus.idle)
        logger.info(
            "Session completed",
            extra={"session_id": session.id, "mode": session.mode.value, "duration_ms": session.duration_ms()},
        )
        self._track("session_completed", session)

    def _is_current(self, session: Session) -> bool:
        return self._current is session and session.status != SessionStatus.cancelled

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def _run_dictation(self, session: Session) -> str | ErrorResult:
        """Clean up the transcript, or pass it through when AI is off."""
        provider_id = self._settings.selected_provider_id(Mode.dictation)
        if not self._registry.is_ai_configured(provider_id):
            logger.debug("AI enhancement not configured, delivering raw transcript")
            return session.transcript

        session.history = [
            ChatMessage.system(build_dictation_system_prompt(self._settings.dictation_prompt())),
            ChatMessage.user(session.transcript),
        ]
        outcome = await self._complete(session, provider_id)
        if isinstance(outcome, ErrorResult):
            return outcome
        # An empty cleanup is treated as no cleanup
        return outcome.strip() or session.transcript

    async def _run_write(self, session: Session) -> str | ErrorResult:
        if session.selected_text:
            session.history = [
                ChatMessage.system(REWRITE_SYSTEM_PROMPT),
                ChatMessage.user(build_rewrite_user_prompt(session.selected_text, session.transcript)),
            ]
        else:
            session.history = [
                ChatMessage.system(WRITE_SYSTEM_PROMPT),
                ChatMessage.user(session.transcript),
            ]

        outcome = await self._complete(session, self._settings.selected_provider_id(Mode.write))
        if isinstance(outcome, ErrorResult):
            return outcome
        if not outcome.strip():
            return ErrorResult(message="Model returned an empty response", error_type="decode")
        return outcome.strip()

    async def _run_command(self, session: Session) -> str | ErrorResult:
        provider_id = self._settings.selected_provider_id(Mode.command)
        if provider_id == APPLE_INTELLIGENCE_ID:
            return ErrorResult(
                message="Command mode requires a provider with tool support",
                provider=provider_id,
            )
        if self._executor is None:
            return ErrorResult(message="No tool executor configured")

        target = self._target(provider_id)
        if isinstance(target, ErrorResult):
            return target
        profile, model = target

        orchestrator = ToolCallOrchestrator(self._client, self._executor, config=self._config)
        result = await orchestrator.run(
            profile,
            model,
            [ChatMessage.system(COMMAND_SYSTEM_PROMPT), ChatMessage.user(session.transcript)],
            self._tools,
            timeout=self._config.request_timeout,
            stream=self._config.enable_streaming,
        )
        session.history = result.history
        if result.error is not None:
            return result.error
        return result.text or ""

    # ------------------------------------------------------------------
    # Model calls
    # ------------------------------------------------------------------

    def _target(self, provider_id: str) -> tuple[ProviderProfile, str] | ErrorResult:
        profile = self._registry.resolve(provider_id)
        model = self._registry.selected_model(provider_id)
        if not model:
            return ErrorResult(
                message=f"No model selected for provider {provider_id}",
                provider=profile.id,
            )
        return profile, model

    async def _complete(self, session: Session, provider_id: str) -> str | ErrorResult:
        """One model call over the session history; appends the reply."""
        if provider_id == APPLE_INTELLIGENCE_ID:
            return await self._complete_on_device(session)

        target = self._target(provider_id)
        if isinstance(target, ErrorResult):
            return target
        profile, model = target

        request = ChatRequest(messages=list(session.history), model=model)
        timeout = self._config.request_timeout
        if self._config.enable_streaming:
            result = await self._client.stream_chat(profile, request, timeout=timeout)
        else:
            result = await self._client.generate(profile, request, timeout=timeout)

        if isinstance(result, ErrorResult):
            return result
        if isinstance(result, ToolCallsRequested):
            logger.warning(
                "Ignoring %d unexpected tool calls",
                len(result.tool_calls),
                extra={"session_id": session.id, "provider": profile.id, "model": model},
            )
        text = result.text or ""
        session.history.append(ChatMessage.assistant(text))
        return text

    async def _complete_on_device(self, session: Session) -> str | ErrorResult:
        if self._on_device is None or not self._settings.on_device_model_available():
            return ErrorResult(message="On-device model is not available", provider=APPLE_INTELLIGENCE_ID)

        timeout = self._config.request_timeout
        try:
            text = await asyncio.wait_for(self._on_device.generate(list(session.history)), timeout=timeout)
        except asyncio.TimeoutError:
            return ErrorResult.from_exception(
                TimeoutError(f"Request timed out after {timeout:g}s", provider=APPLE_INTELLIGENCE_ID)
            )
        except Exception as e:
            logger.exception("On-device generation failed", extra={"session_id": session.id})
            return ErrorResult.from_exception(LLMError(str(e), provider=APPLE_INTELLIGENCE_ID))

        session.history.append(ChatMessage.assistant(text))
        return text

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    async def _supersede(self, session: Session, task: Optional[asyncio.Task]) -> None:
        if session.is_finished():
            return

        session.transition(SessionStatus.cancelled)
        logger.info(
            "Session cancelled",
            extra={"session_id": session.id, "mode": session.mode.value},
        )
        self._track("session_cancelled", session)

        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])

    def _fail(
        self,
        session: Session,
        message: str,
        retryable: bool,
        error_type: str = "other",
    ) -> None:
        session.error = message
        session.retryable = retryable
        session.transition(SessionStatus.error)
        logger.error(
            "Session failed: %s",
            message,
            extra={"session_id": session.id, "mode": session.mode.value, "error_type": error_type},
        )
        self._track("session_failed", session, error_type=error_type, retryable=retryable)
        session.transition(SessionStatus.idle)

    def _track(self, event: str, session: Session, **properties: Any) -> None:
        if self._analytics is None:
            return
        payload = {"mode": session.mode.value, "duration_ms": session.duration_ms(), **properties}
        try:
            self._analytics.track(event, payload)
        except Exception:
            logger.warning("Analytics sink failed for %s", event, exc_info=True)

    def _outcome(self, session: Session) -> SessionOutcome:
        return SessionOutcome(
            session_id=session.id,
            mode=session.mode,
            status=SessionStatus.error if session.error else session.status,
            text=session.result,
            error=session.error,
            retryable=session.retryable,
            delivered=session.delivered,
        )
