"""Provider profiles and reasoning configuration.

Pydantic v2. Profiles are owned by the settings collaborator; this package
only reads them.
"""

from __future__ import annotations

from typing import Any, Optional, List

from pydantic import BaseModel, ConfigDict, Field

CUSTOM_PREFIX = "custom:"

# Built-in hosted providers whose ids are used as keys without a namespace
RESERVED_PROVIDER_IDS = ("openai", "groq")

APPLE_INTELLIGENCE_ID = "apple-intelligence"

# id -> (display name, default base URL, default models)
BUILT_IN_PROVIDERS: dict[str, tuple[str, str, tuple[str, ...]]] = {
    "openai": ("OpenAI", "https://api.openai.com/v1", ("gpt-4.1",)),
    "anthropic": ("Anthropic", "https://api.anthropic.com/v1", ("claude-sonnet-4-20250514",)),
    "xai": ("xAI", "https://api.x.ai/v1", ("grok-3-fast",)),
    "groq": ("Groq", "https://api.groq.com/openai/v1", ("openai/gpt-oss-120b",)),
    "cerebras": ("Cerebras", "https://api.cerebras.ai/v1", ("gpt-oss-120b",)),
    "google": ("Google", "https://generativelanguage.googleapis.com/v1beta/openai", ("gemini-2.5-flash",)),
    "openrouter": ("OpenRouter", "https://openrouter.ai/api/v1", ("openai/gpt-oss-20b",)),
    "ollama": ("Ollama", "http://localhost:11434/v1", ()),
    "lmstudio": ("LM Studio", "http://localhost:1234/v1", ()),
    APPLE_INTELLIGENCE_ID: ("Apple Intelligence", "", ("System Model",)),
}


class ReasoningConfig(BaseModel):
    """Model-specific reasoning/thinking request parameter."""

    model_config = ConfigDict(extra="forbid")

    parameter_name: str = Field(default="reasoning_effort", description="e.g. reasoning_effort, enable_thinking")
    parameter_value: str = Field(default="low", description="e.g. low, medium, high, true")
    is_enabled: bool = True

    def as_request_fields(self) -> dict[str, Any]:
        """Return the extra top-level request field, or {} when disabled.

        ``enable_thinking`` is a boolean flag on the wire; every other
        parameter is sent as a string.
        """
        if not self.is_enabled or not self.parameter_name:
            return {}
        if self.parameter_name == "enable_thinking":
            return {self.parameter_name: self.parameter_value.lower() == "true"}
        return {self.parameter_name: self.parameter_value}


# Presets applied when the user has no override for a model
OPENAI_GPT5_REASONING = ReasoningConfig(parameter_name="reasoning_effort", parameter_value="low")
OPENAI_O_SERIES_REASONING = ReasoningConfig(parameter_name="reasoning_effort", parameter_value="medium")
GPT_OSS_REASONING = ReasoningConfig(parameter_name="reasoning_effort", parameter_value="low")
DEEPSEEK_REASONER_REASONING = ReasoningConfig(parameter_name="enable_thinking", parameter_value="true")


def default_reasoning_config(model: str) -> Optional[ReasoningConfig]:
    """Smart default for well-known reasoning families, or None."""
    name = model.lower()
    if name.startswith("gpt-5") or "gpt-5." in name:
        return OPENAI_GPT5_REASONING
    if name.startswith(("o1", "o3")):
        return OPENAI_O_SERIES_REASONING
    if "gpt-oss" in name or name.startswith("openai/"):
        return GPT_OSS_REASONING
    if "deepseek" in name and "reasoner" in name:
        return DEEPSEEK_REASONER_REASONING
    return None


class ProviderProfile(BaseModel):
    """Configuration identifying one language-model backend."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(description="Normalized provider key")
    name: str = ""
    base_url: str = ""
    api_key: str = ""
    models: List[str] = Field(default_factory=list)
    reasoning: dict[str, ReasoningConfig] = Field(
        default_factory=dict,
        description="User reasoning overrides keyed by model name",
    )

    @property
    def is_custom(self) -> bool:
        return self.id.startswith(CUSTOM_PREFIX)

    def reasoning_config_for(self, model: str) -> Optional[ReasoningConfig]:
        """Override for the model (None if disabled), else the preset."""
        override = self.reasoning.get(model)
        if override is not None:
            return override if override.is_enabled else None
        return default_reasoning_config(model)
