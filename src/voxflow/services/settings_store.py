"""In-memory settings store.

Implements the ``SettingsStore`` port for the CLI and tests. A host
application supplies its own store backed by its preferences system.

Settings files are YAML:

    providers:
      - id: MyOllama
        base_url: http://localhost:11434/v1
        models: [llama3.2]
    api_keys:
      openai: sk-...
    selected_providers:
      dictation: openai
      command: openai
    selected_models:
      openai: gpt-4.1
    reasoning:
      "openai:o3-mini": {parameter_name: reasoning_effort, parameter_value: high}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from ..models.session import DeliveryMethod, Mode
from ..providers.profiles import ProviderProfile, ReasoningConfig

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_ID = "openai"


class InMemorySettingsStore(BaseModel):
    """Plain settings snapshot satisfying the SettingsStore protocol."""
    model_config = ConfigDict(extra="forbid")

    providers: list[ProviderProfile] = Field(default_factory=list)
    api_keys: dict[str, str] = Field(default_factory=dict)
    selected_providers: dict[Mode, str] = Field(default_factory=dict)
    selected_models: dict[str, str] = Field(default_factory=dict)
    available_models: dict[str, list[str]] = Field(default_factory=dict)
    reasoning: dict[str, ReasoningConfig] = Field(
        default_factory=dict,
        description="Reasoning overrides keyed by provider:model",
    )
    enhancement_enabled: bool = True
    on_device_available: bool = False
    delivery_methods: dict[Mode, DeliveryMethod] = Field(default_factory=dict)
    custom_dictation_prompt: Optional[str] = None

    def saved_providers(self) -> list[ProviderProfile]:
        return list(self.providers)

    def provider_api_keys(self) -> dict[str, str]:
        return dict(self.api_keys)

    def selected_provider_id(self, mode: Mode) -> str:
        return self.selected_providers.get(mode, DEFAULT_PROVIDER_ID)

    def selected_model_by_provider(self) -> dict[str, str]:
        return dict(self.selected_models)

    def available_models_by_provider(self) -> dict[str, list[str]]:
        return {key: list(models) for key, models in self.available_models.items()}

    def reasoning_overrides(self) -> dict[str, ReasoningConfig]:
        return dict(self.reasoning)

    def ai_enhancement_enabled(self) -> bool:
        return self.enhancement_enabled

    def on_device_model_available(self) -> bool:
        return self.on_device_available

    def delivery_method(self, mode: Mode) -> DeliveryMethod:
        return self.delivery_methods.get(mode, DeliveryMethod.typed)

    def dictation_prompt(self) -> Optional[str]:
        return self.custom_dictation_prompt


def load_settings_file(path: str | Path) -> InMemorySettingsStore:
    """Load a YAML settings file.

    Args:
        path: Path to the YAML file.

    Returns:
        Populated settings store.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a YAML mapping or fails validation.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")

    logger.debug("Loaded settings from %s", path)
    return InMemorySettingsStore.model_validate(data)
