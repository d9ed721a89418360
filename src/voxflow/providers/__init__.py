"""Provider profiles and registry.

Profiles are supplied by the settings collaborator and read at call time.
"""

from .profiles import (
    BUILT_IN_PROVIDERS,
    RESERVED_PROVIDER_IDS,
    ProviderProfile,
    ReasoningConfig,
    default_reasoning_config,
)
from .registry import ProviderRegistry, normalize_provider_key, reconcile

__all__ = [
    "BUILT_IN_PROVIDERS",
    "RESERVED_PROVIDER_IDS",
    "ProviderProfile",
    "ReasoningConfig",
    "default_reasoning_config",
    "ProviderRegistry",
    "normalize_provider_key",
    "reconcile",
]
