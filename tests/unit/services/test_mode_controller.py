"""Unit tests for ModeController.

Tests cover:
- Dictation with and without AI enhancement
- Write and rewrite prompts
- Command mode through the tool orchestrator
- Supersession: a newer session cancels the older one, whose result is never delivered
- Failures ending in error then idle, with the retry flag
- Analytics events without transcript content
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from voxflow.config import OrchestratorConfig
from voxflow.llm.models import (
    ErrorResult,
    FunctionCall,
    FunctionDefinition,
    TextResponse,
    ToolCall,
    ToolCallsRequested,
    ToolDefinition,
)
from voxflow.models.session import DeliveryMethod, Mode, SessionStatus
from voxflow.providers.profiles import APPLE_INTELLIGENCE_ID
from voxflow.providers.registry import ProviderRegistry
from voxflow.services.mode_controller import ModeController
from voxflow.services.prompts import (
    COMMAND_SYSTEM_PROMPT,
    DICTATION_BASE_PROMPT,
    REWRITE_SYSTEM_PROMPT,
    WRITE_SYSTEM_PROMPT,
)
from voxflow.services.settings_store import InMemorySettingsStore


@pytest.fixture
def settings() -> InMemorySettingsStore:
    return InMemorySettingsStore(
        api_keys={"openai": "sk-test"},
        selected_models={"openai": "gpt-4.1"},
        available_models={"openai": ["gpt-4.1"]},
    )


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.generate = AsyncMock(return_value=TextResponse(text="Cleaned text."))
    client.stream_chat = AsyncMock()
    return client


@pytest.fixture
def dispatcher() -> MagicMock:
    dispatcher = MagicMock()
    dispatcher.deliver = AsyncMock()
    return dispatcher


@pytest.fixture
def analytics() -> MagicMock:
    return MagicMock()


@pytest.fixture
def controller(client, settings, dispatcher, analytics) -> ModeController:
    return ModeController(
        client,
        ProviderRegistry(settings),
        settings,
        dispatcher,
        analytics=analytics,
        config=OrchestratorConfig(request_timeout=5.0),
    )


def sent_messages(client: MagicMock, index: int = 0):
    return client.generate.call_args_list[index].args[1].messages


def tracked_events(analytics: MagicMock) -> list[str]:
    return [c.args[0] for c in analytics.track.call_args_list]


class TestDictation:
    """Tests for the Dictation pipeline."""

    @pytest.mark.asyncio
    async def test_enhanced_and_delivered(self, controller, client, dispatcher):
        """Test the cleaned transcript is delivered with the dictation prompt."""
        await controller.start_recording(Mode.dictation)

        outcome = await controller.submit_transcript("um buy milk no wait buy water")

        assert outcome.delivered is True
        assert outcome.status == SessionStatus.idle
        assert outcome.text == "Cleaned text."
        dispatcher.deliver.assert_awaited_once_with("Cleaned text.", DeliveryMethod.typed)

        messages = sent_messages(client)
        assert messages[0].content.startswith(DICTATION_BASE_PROMPT)
        assert messages[1].content == "um buy milk no wait buy water"
        assert client.generate.call_args.kwargs["timeout"] == 5.0

    @pytest.mark.asyncio
    async def test_without_ai_delivers_raw(self, controller, client, dispatcher, settings):
        """Test no API key means the raw transcript is delivered."""
        settings.api_keys.clear()
        await controller.start_recording(Mode.dictation)

        outcome = await controller.submit_transcript("hello there")

        client.generate.assert_not_awaited()
        dispatcher.deliver.assert_awaited_once_with("hello there", DeliveryMethod.typed)
        assert outcome.delivered is True

    @pytest.mark.asyncio
    async def test_enhancement_disabled(self, controller, client, dispatcher, settings):
        """Test disabled enhancement delivers the raw transcript."""
        settings.enhancement_enabled = False
        await controller.start_recording(Mode.dictation)

        await controller.submit_transcript("hello there")

        client.generate.assert_not_awaited()
        dispatcher.deliver.assert_awaited_once_with("hello there", DeliveryMethod.typed)

    @pytest.mark.asyncio
    async def test_empty_cleanup_falls_back_to_transcript(self, controller, client, dispatcher):
        """Test an empty cleanup result delivers the raw transcript."""
        client.generate.return_value = TextResponse(text="")
        await controller.start_recording(Mode.dictation)

        await controller.submit_transcript("keep me")

        dispatcher.deliver.assert_awaited_once_with("keep me", DeliveryMethod.typed)

    @pytest.mark.asyncio
    async def test_custom_prompt_body(self, controller, client, settings):
        """Test a custom dictation prompt is appended to the base prompt."""
        settings.custom_dictation_prompt = "Always use British spelling."
        await controller.start_recording(Mode.dictation)

        await controller.submit_transcript("color")

        system = sent_messages(client)[0].content
        assert system.startswith(DICTATION_BASE_PROMPT)
        assert system.endswith("Always use British spelling.")

    @pytest.mark.asyncio
    async def test_empty_transcript_skipped(self, controller, client, dispatcher, analytics):
        """Test a blank transcript makes no provider call and delivers nothing."""
        await controller.start_recording(Mode.dictation)

        outcome = await controller.submit_transcript("   ")

        client.generate.assert_not_awaited()
        dispatcher.deliver.assert_not_awaited()
        assert outcome.status == SessionStatus.idle
        assert outcome.delivered is False


class TestWrite:
    """Tests for the Write pipeline."""

    @pytest.mark.asyncio
    async def test_write_prompt(self, controller, client, dispatcher):
        """Test Write mode sends the write system prompt."""
        client.generate.return_value = TextResponse(text="Dear boss, ...")
        await controller.start_recording(Mode.write)

        await controller.submit_transcript("write an email asking for friday off")

        messages = sent_messages(client)
        assert messages[0].content == WRITE_SYSTEM_PROMPT
        assert messages[1].content == "write an email asking for friday off"
        dispatcher.deliver.assert_awaited_once_with("Dear boss, ...", DeliveryMethod.typed)

    @pytest.mark.asyncio
    async def test_rewrite_with_selection(self, controller, client):
        """Test selected text switches to the rewrite prompt."""
        client.generate.return_value = TextResponse(text="See you tomorrow.")
        await controller.start_recording(Mode.write, selected_text="see u tmrw")

        outcome = await controller.submit_transcript("make it formal")

        messages = sent_messages(client)
        assert messages[0].content == REWRITE_SYSTEM_PROMPT
        assert '"see u tmrw"' in messages[1].content
        assert "User's instruction: make it formal" in messages[1].content
        assert outcome.text == "See you tomorrow."

    @pytest.mark.asyncio
    async def test_empty_reply_is_error(self, controller, client, dispatcher):
        """Test a blank Write reply fails instead of delivering."""
        client.generate.return_value = TextResponse(text="  ")
        await controller.start_recording(Mode.write)

        outcome = await controller.submit_transcript("write something")

        assert outcome.status == SessionStatus.error
        dispatcher.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delivery_method_from_settings(self, controller, client, dispatcher, settings):
        """Test the per-mode delivery method is passed to the dispatcher."""
        settings.delivery_methods[Mode.write] = DeliveryMethod.clipboard
        await controller.start_recording(Mode.write)

        await controller.submit_transcript("write a haiku")

        dispatcher.deliver.assert_awaited_once_with("Cleaned text.", DeliveryMethod.clipboard)


class TestCommand:
    """Tests for the Command pipeline."""

    @pytest.mark.asyncio
    async def test_runs_orchestrator(self, client, settings, dispatcher):
        """Test Command mode offers tools and stores the orchestrated history."""
        tools = [ToolDefinition(function=FunctionDefinition(name="open_app"))]
        executor = MagicMock()
        executor.execute = AsyncMock(return_value="ok")
        client.generate.return_value = TextResponse(text="Opened Safari.")
        controller = ModeController(
            client, ProviderRegistry(settings), settings, dispatcher, executor=executor, tools=tools,
        )
        await controller.start_recording(Mode.command)

        outcome = await controller.submit_transcript("open safari")

        request = client.generate.call_args.args[1]
        assert request.messages[0].content == COMMAND_SYSTEM_PROMPT
        assert request.tool_choice == "auto"
        assert outcome.text == "Opened Safari."
        assert controller.current_session.history[-1].content == "Opened Safari."

    @pytest.mark.asyncio
    async def test_on_device_rejected(self, controller, client, settings, dispatcher):
        """Test Command mode cannot run on the on-device model."""
        settings.selected_providers[Mode.command] = APPLE_INTELLIGENCE_ID
        await controller.start_recording(Mode.command)

        outcome = await controller.submit_transcript("open safari")

        assert outcome.status == SessionStatus.error
        client.generate.assert_not_awaited()
        dispatcher.deliver.assert_not_awaited()


class TestFailures:
    """Tests for error handling."""

    @pytest.mark.asyncio
    async def test_provider_error(self, controller, client, dispatcher, analytics):
        """Test a network failure ends in error then idle with a retry flag."""
        client.generate.return_value = ErrorResult(
            message="Network error: connection refused", error_type="network", retryable=True,
        )
        await controller.start_recording(Mode.dictation)

        outcome = await controller.submit_transcript("hello")

        assert outcome.status == SessionStatus.error
        assert outcome.error == "Network error: connection refused"
        assert outcome.retryable is True
        assert controller.status == SessionStatus.idle
        dispatcher.deliver.assert_not_awaited()
        assert tracked_events(analytics) == ["session_failed"]

    @pytest.mark.asyncio
    async def test_delivery_failure(self, controller, dispatcher):
        """Test a dispatcher exception ends the session in error."""
        dispatcher.deliver.side_effect = RuntimeError("no focused field")
        await controller.start_recording(Mode.dictation)

        outcome = await controller.submit_transcript("hello")

        assert outcome.status == SessionStatus.error
        assert "no focused field" in outcome.error
        assert outcome.delivered is False

    @pytest.mark.asyncio
    async def test_no_recording_session(self, controller):
        """Test submitting without a recording session returns None."""
        assert await controller.submit_transcript("hello") is None


class TestTranscriber:
    """Tests for finish_recording."""

    @pytest.mark.asyncio
    async def test_pulls_transcript(self, client, settings, dispatcher):
        """Test finish_recording pulls text from the transcriber."""
        transcriber = MagicMock()
        transcriber.transcribe = AsyncMock(return_value="from the mic")
        controller = ModeController(
            client, ProviderRegistry(settings), settings, dispatcher, transcriber=transcriber,
        )
        await controller.start_recording(Mode.dictation)

        outcome = await controller.finish_recording()

        transcriber.transcribe.assert_awaited_once()
        assert sent_messages(client)[1].content == "from the mic"
        assert outcome.delivered is True

    @pytest.mark.asyncio
    async def test_missing_transcriber(self, controller):
        """Test finish_recording without a transcriber fails."""
        await controller.start_recording(Mode.dictation)

        outcome = await controller.finish_recording()

        assert outcome.status == SessionStatus.error
        assert outcome.error == "No transcriber configured"


class TestSupersession:
    """Tests for the single-flight guarantee."""

    @pytest.mark.asyncio
    async def test_newer_session_wins(self, controller, client, dispatcher, analytics):
        """Test session A's late result is never delivered once B has started."""
        release_a = asyncio.Event()

        async def generate(profile, request, timeout=None):
            if request.messages[-1].content == "first":
                await release_a.wait()
                return TextResponse(text="A result")
            return TextResponse(text="B result")

        client.generate.side_effect = generate

        await controller.start_recording(Mode.dictation)
        a_task = asyncio.create_task(controller.submit_transcript("first"))
        while client.generate.call_count == 0:
            await asyncio.sleep(0)

        session_b = await controller.start_recording(Mode.dictation)
        release_a.set()
        a_outcome = await a_task

        assert a_outcome.status == SessionStatus.cancelled
        assert a_outcome.delivered is False

        b_outcome = await controller.submit_transcript("second")

        assert b_outcome.session_id == session_b.id
        dispatcher.deliver.assert_awaited_once_with("B result", DeliveryMethod.typed)
        assert tracked_events(analytics) == ["session_cancelled", "session_completed"]

    @pytest.mark.asyncio
    async def test_command_superseded_during_tool(self, client, settings, dispatcher):
        """Test a Command session replaced mid-tool makes no further call and delivers nothing."""
        tool_started = asyncio.Event()

        async def execute(name, arguments):
            tool_started.set()
            await asyncio.sleep(10)
            return "opened"

        executor = MagicMock()
        executor.execute = AsyncMock(side_effect=execute)
        client.generate.side_effect = [
            ToolCallsRequested(tool_calls=[
                ToolCall(id="call_1", function=FunctionCall(name="open_app", arguments='{"name": "Safari"}')),
            ]),
            TextResponse(text="Opened Safari."),
        ]
        controller = ModeController(
            client,
            ProviderRegistry(settings),
            settings,
            dispatcher,
            executor=executor,
            tools=[ToolDefinition(function=FunctionDefinition(name="open_app"))],
        )

        await controller.start_recording(Mode.command)
        a_task = asyncio.create_task(controller.submit_transcript("open safari"))
        await tool_started.wait()

        session_b = await controller.start_recording(Mode.dictation)
        a_outcome = await a_task

        assert a_outcome.status == SessionStatus.cancelled
        assert a_outcome.delivered is False
        executor.execute.assert_awaited_once_with("open_app", {"name": "Safari"})
        assert client.generate.await_count == 1
        dispatcher.deliver.assert_not_awaited()
        assert controller.current_session is session_b

    @pytest.mark.asyncio
    async def test_cancel_in_flight(self, controller, client, dispatcher):
        """Test cancel stops an in-flight session without delivering."""
        started = asyncio.Event()

        async def generate(profile, request, timeout=None):
            started.set()
            await asyncio.sleep(10)
            return TextResponse(text="never")

        client.generate.side_effect = generate
        await controller.start_recording(Mode.write)
        task = asyncio.create_task(controller.submit_transcript("write a poem"))
        await started.wait()

        cancelled = await controller.cancel()
        outcome = await task

        assert cancelled.status == SessionStatus.cancelled
        assert outcome.status == SessionStatus.cancelled
        dispatcher.deliver.assert_not_awaited()
        assert controller.current_session is None
        assert controller.status == SessionStatus.idle

    @pytest.mark.asyncio
    async def test_finished_session_not_cancelled(self, controller, analytics):
        """Test starting a new recording after completion emits no cancel event."""
        await controller.start_recording(Mode.dictation)
        await controller.submit_transcript("hello")

        await controller.start_recording(Mode.dictation)

        assert "session_cancelled" not in tracked_events(analytics)


class TestAnalytics:
    """Tests for analytics events."""

    @pytest.mark.asyncio
    async def test_completed_event_has_no_transcript(self, controller, analytics):
        """Test the completed event carries mode and duration only."""
        await controller.start_recording(Mode.dictation)
        await controller.submit_transcript("my secret password is swordfish")

        event, properties = analytics.track.call_args.args
        assert event == "session_completed"
        assert properties["mode"] == "dictation"
        assert isinstance(properties["duration_ms"], int)
        assert "swordfish" not in repr(analytics.track.call_args_list)

    @pytest.mark.asyncio
    async def test_sink_failure_ignored(self, controller, analytics, dispatcher):
        """Test an analytics sink exception does not fail the session."""
        analytics.track.side_effect = RuntimeError("sink down")
        await controller.start_recording(Mode.dictation)

        outcome = await controller.submit_transcript("hello")

        assert outcome.delivered is True
