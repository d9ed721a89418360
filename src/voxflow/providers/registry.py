"""Provider registry.

Normalizes provider keys, reconciles stale model selections and resolves a
provider id into a ready-to-use ``ProviderProfile``. All data is read from
the settings collaborator at call time; nothing here writes configuration.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .profiles import (
    APPLE_INTELLIGENCE_ID,
    BUILT_IN_PROVIDERS,
    CUSTOM_PREFIX,
    RESERVED_PROVIDER_IDS,
    ProviderProfile,
    ReasoningConfig,
)
from ..llm.endpoints import DEFAULT_BASE_URL, is_local_endpoint

if TYPE_CHECKING:
    from ..services.ports import SettingsStore

logger = logging.getLogger(__name__)


def normalize_provider_key(provider_id: str) -> str:
    """Return the storage key for a provider id.

    Reserved hosted ids pass through lowercased. Keys already carrying the
    ``custom:`` namespace pass through unchanged. Anything else is wrapped.
    """
    provider_id = provider_id.strip()
    if provider_id.lower() in RESERVED_PROVIDER_IDS:
        return provider_id.lower()
    if provider_id.startswith(CUSTOM_PREFIX):
        return provider_id
    return f"{CUSTOM_PREFIX}{provider_id}"


def reconcile(
    available_models_by_provider: dict[str, list[str]],
    selected_model_by_provider: dict[str, str],
) -> dict[str, str]:
    """Drop selections whose model is no longer available for that provider.

    Args:
        available_models_by_provider: Current model lists keyed by provider key.
        selected_model_by_provider: Selected model keyed by provider key.

    Returns:
        A new selection map containing only entries still backed by a model.
    """
    reconciled: dict[str, str] = {}
    for key, model in selected_model_by_provider.items():
        available = available_models_by_provider.get(key) or []
        if model in available:
            reconciled[key] = model
        else:
            logger.debug(
                "Dropping stale model selection %s for %s",
                model,
                key,
                extra={"provider": key},
            )
    return reconciled


class ProviderRegistry:
    """Read-only view over provider configuration.

    Usage:
        registry = ProviderRegistry(settings)
        profile = registry.resolve("openai")
        model = registry.selected_model("openai")
    """

    def __init__(self, settings: "SettingsStore"):
        self._settings = settings

    def get_api_key(self, provider_id: str) -> str:
        """Exact key first, then the canonical key. Whitespace is stripped."""
        keys = self._settings.provider_api_keys()
        key = keys.get(provider_id)
        if key is None:
            key = keys.get(normalize_provider_key(provider_id))
        return (key or "").strip()

    def available_models(self) -> dict[str, list[str]]:
        """Model lists keyed by normalized provider key."""
        normalized: dict[str, list[str]] = {}
        for key, models in self._settings.available_models_by_provider().items():
            normalized[normalize_provider_key(key)] = list(models)
        return normalized

    def reconciled_selection(self) -> dict[str, str]:
        """Selected models with stale entries removed."""
        available = self.available_models()
        for profile in self._settings.saved_providers():
            available.setdefault(normalize_provider_key(profile.id), list(profile.models))
        for provider_id in RESERVED_PROVIDER_IDS:
            available.setdefault(provider_id, list(BUILT_IN_PROVIDERS[provider_id][2]))

        selected = {
            normalize_provider_key(key): model
            for key, model in self._settings.selected_model_by_provider().items()
        }
        return reconcile(available, selected)

    def resolve(self, provider_id: str) -> ProviderProfile:
        """Build the profile for a provider id from current settings."""
        key = normalize_provider_key(provider_id)
        saved = self._find_saved(provider_id)

        if saved is not None:
            name = saved.name or provider_id
            base_url = saved.base_url.strip()
            models = self.available_models().get(key) or list(saved.models)
            api_key = self.get_api_key(provider_id) or saved.api_key.strip()
        elif key in RESERVED_PROVIDER_IDS or provider_id in BUILT_IN_PROVIDERS:
            built_in_id = key if key in RESERVED_PROVIDER_IDS else provider_id
            name, base_url, defaults = BUILT_IN_PROVIDERS[built_in_id]
            models = self.available_models().get(key) or list(defaults)
            api_key = self.get_api_key(provider_id)
        else:
            logger.warning(
                "Unknown provider %s, falling back to default endpoint",
                provider_id,
                extra={"provider": key},
            )
            name, base_url, models = provider_id, "", []
            api_key = self.get_api_key(provider_id)

        return ProviderProfile(
            id=key,
            name=name,
            base_url=base_url or DEFAULT_BASE_URL,
            api_key=api_key,
            models=models,
            reasoning=self._reasoning_overrides(key),
        )

    def selected_model(self, provider_id: str) -> Optional[str]:
        """Reconciled selection for the provider, else its first model."""
        key = normalize_provider_key(provider_id)
        selected = self.reconciled_selection().get(key)
        if selected:
            return selected
        profile = self.resolve(provider_id)
        return profile.models[0] if profile.models else None

    def get_reasoning_config(self, model: str, provider_id: str) -> Optional[ReasoningConfig]:
        """User override for (provider, model), else the family preset."""
        return self.resolve(provider_id).reasoning_config_for(model)

    def is_ai_configured(self, provider_id: str) -> bool:
        """Whether dictation enhancement can run for this provider.

        Requires enhancement to be enabled, then either a local endpoint or a
        non-empty API key. The on-device model is gated on its availability.
        """
        if not self._settings.ai_enhancement_enabled():
            return False
        if provider_id == APPLE_INTELLIGENCE_ID:
            return self._settings.on_device_model_available()

        profile = self.resolve(provider_id)
        if is_local_endpoint(profile.base_url):
            return True
        return bool(profile.api_key)

    def _find_saved(self, provider_id: str) -> Optional[ProviderProfile]:
        key = normalize_provider_key(provider_id)
        for profile in self._settings.saved_providers():
            if profile.id == provider_id or normalize_provider_key(profile.id) == key:
                return profile
        return None

    def _reasoning_overrides(self, key: str) -> dict[str, ReasoningConfig]:
        prefix = f"{key}:"
        return {
            stored_key[len(prefix):]: config
            for stored_key, config in self._settings.reasoning_overrides().items()
            if stored_key.startswith(prefix)
        }
