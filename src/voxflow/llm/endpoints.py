"""Endpoint and model classification helpers.

Small pure predicates over base URLs and model names. Adding a provider or a
model family should only require editing the tables below.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_COMPLETIONS_PATH = "/chat/completions"

# Path segments that mark a base URL as already pointing at a completions route
COMPLETIONS_PATH_MARKERS = ("/chat/completions", "/api/chat", "/api/generate")

LOCAL_HOSTNAMES = {"localhost", "127.0.0.1"}

# Single-octet private/loopback prefixes: 127.0.0.0/8, 10.0.0.0/8
LOCAL_FIRST_OCTETS = {"127", "10"}

# 172.16.0.0/12 is matched on the second octet, never on a string prefix
PRIVATE_172_SECOND_OCTETS = range(16, 32)

# Reasoning families. Prefixes are matched against the lowercased name.
REASONING_MODEL_PREFIXES = ("gpt-5", "o1", "o3", "openai/")
REASONING_MODEL_SUBSTRINGS = ("gpt-5.", "gpt-oss")
# Every token in a group must be present
REASONING_MODEL_TOKEN_GROUPS = (("deepseek", "reasoner"),)

# Extra request fields some model families need regardless of user settings
MODEL_EXTRA_PARAMETERS: tuple[tuple[tuple[str, ...], dict[str, Any]], ...] = (
    (("nemotron",), {"enable_thinking": True}),
    (("nemo",), {"enable_thinking": True}),
    (("deepseek", "r1"), {"enable_reasoning": True}),
)

# Families that open with bare thinking text and only emit the closing tag
ORPHAN_CLOSE_TAG_MODEL_TOKENS = ("nemo",)


def resolve_endpoint(base_url: str | None) -> str:
    """Return the full chat-completions URL for a provider base URL.

    A base URL that already names a completions-style route is used verbatim,
    so gateways with unusual paths are not rewritten. Anything else gets the
    default completions path appended.

    Args:
        base_url: Base URL from the provider profile. Empty means OpenAI.

    Returns:
        Absolute endpoint URL.
    """
    endpoint = (base_url or "").strip()
    if not endpoint:
        endpoint = DEFAULT_BASE_URL

    if any(marker in endpoint for marker in COMPLETIONS_PATH_MARKERS):
        return endpoint

    return endpoint.rstrip("/") + DEFAULT_COMPLETIONS_PATH


def is_local_endpoint(base_url: str | None) -> bool:
    """Check whether a base URL points at loopback or a private network.

    Local endpoints get no Authorization header at all; self-hosted servers
    frequently reject a bearer header when no key is configured.
    """
    if not base_url:
        return False

    try:
        host = urlsplit(base_url.strip()).hostname
    except ValueError:
        return False
    if not host:
        return False

    host = host.lower()
    if host in LOCAL_HOSTNAMES:
        return True

    octets = host.split(".")
    if octets[0] in LOCAL_FIRST_OCTETS:
        return True

    if len(octets) >= 2 and octets[0] == "192" and octets[1] == "168":
        return True

    if len(octets) >= 2 and octets[0] == "172":
        try:
            second = int(octets[1])
        except ValueError:
            return False
        return second in PRIVATE_172_SECOND_OCTETS

    return False


def is_reasoning_model(model: str | None) -> bool:
    """Check whether a model belongs to a reasoning family.

    Reasoning models reject ``temperature`` and take ``max_completion_tokens``.
    """
    if not model:
        return False

    name = model.lower()
    if name.startswith(REASONING_MODEL_PREFIXES):
        return True
    if any(token in name for token in REASONING_MODEL_SUBSTRINGS):
        return True
    return any(all(token in name for token in group) for group in REASONING_MODEL_TOKEN_GROUPS)


def model_extra_parameters(model: str | None) -> dict[str, Any]:
    """Return request fields a model family always needs (first match wins)."""
    if not model:
        return {}

    name = model.lower()
    for tokens, params in MODEL_EXTRA_PARAMETERS:
        if all(token in name for token in tokens):
            return dict(params)
    return {}


def emits_orphan_close_tag(model: str | None) -> bool:
    """Whether a model starts its reply inside an unopened thinking block."""
    if not model:
        return False
    name = model.lower()
    return any(token in name for token in ORPHAN_CLOSE_TAG_MODEL_TOKENS)
