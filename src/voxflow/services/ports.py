"""Collaborator ports.

These protocols define the boundaries between the orchestration core and
the host application (capture, ASR, settings UI, delivery, analytics).
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from ..llm.models import ChatMessage
from ..models.session import DeliveryMethod, Mode
from ..providers.profiles import ProviderProfile, ReasoningConfig


@runtime_checkable
class Transcriber(Protocol):
    """Speech-to-text engine. Produces the transcript that seeds a session."""

    async def transcribe(self) -> str:
        """Return the final transcript of the recording that just stopped."""


@runtime_checkable
class ToolExecutor(Protocol):
    """Runs tools requested by the model in Command mode."""

    async def execute(self, name: str, arguments: dict[str, Any]) -> str:
        """Run a tool and return its textual result.

        Raises:
            ToolExecutionError: The tool ran and failed.
        """


@runtime_checkable
class OutputDispatcher(Protocol):
    """Delivers final text to the user."""

    async def deliver(self, text: str, method: DeliveryMethod) -> None:
        """Type, paste or record ``text`` according to ``method``."""


@runtime_checkable
class SettingsStore(Protocol):
    """Read access to user configuration. Mutated only by the host UI."""

    def saved_providers(self) -> list[ProviderProfile]:
        """User-defined providers."""

    def provider_api_keys(self) -> dict[str, str]:
        """API keys keyed by provider id or normalized key."""

    def selected_provider_id(self, mode: Mode) -> str:
        """Provider chosen for a mode."""

    def selected_model_by_provider(self) -> dict[str, str]:
        """Model selection keyed by provider key."""

    def available_models_by_provider(self) -> dict[str, list[str]]:
        """Known model lists keyed by provider key."""

    def reasoning_overrides(self) -> dict[str, ReasoningConfig]:
        """User reasoning overrides keyed by ``provider:model``."""

    def ai_enhancement_enabled(self) -> bool:
        """Whether dictation enhancement is switched on."""

    def on_device_model_available(self) -> bool:
        """Whether the on-device model can be used."""

    def delivery_method(self, mode: Mode) -> DeliveryMethod:
        """How results of a mode are delivered."""

    def dictation_prompt(self) -> Optional[str]:
        """User override of the dictation cleanup prompt body."""


@runtime_checkable
class OnDeviceModel(Protocol):
    """Local model without a chat-completions endpoint (no tool support)."""

    async def generate(self, messages: list[ChatMessage]) -> str:
        """Return the model's reply to the conversation."""


@runtime_checkable
class AnalyticsSink(Protocol):
    """Receives coarse events. Never transcript content."""

    def track(self, event: str, properties: dict[str, Any]) -> None:
        """Record an event."""
