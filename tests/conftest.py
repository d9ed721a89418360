"""Pytest fixtures for testing."""

import json
from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio

from voxflow.config import OrchestratorConfig
from voxflow.llm.client import ProviderClient
from voxflow.providers.profiles import ProviderProfile

Handler = Callable[[httpx.Request], httpx.Response]


def chat_completion(content: str | None = "Hello", tool_calls: list[dict[str, Any]] | None = None,
                    finish_reason: str = "stop", **message_fields: Any) -> dict[str, Any]:
    """Build a chat-completions response body."""
    message: dict[str, Any] = {"role": "assistant", "content": content, **message_fields}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
    }


def wire_tool_call(call_id: str, name: str, arguments: str) -> dict[str, Any]:
    """Build a tool call as it appears on the wire."""
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


class RecordingTransport:
    """Serves queued responses and records every request body."""

    def __init__(self, *responses: httpx.Response | Handler):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if callable(response):
            return response(request)
        # Fresh copy so a queued response can be served more than once
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)


@pytest.fixture
def openai_profile() -> ProviderProfile:
    """Hosted provider with an API key."""
    return ProviderProfile(
        id="openai",
        name="OpenAI",
        base_url="https://api.openai.com/v1",
        api_key="sk-test",
        models=["gpt-4.1"],
    )


@pytest.fixture
def local_profile() -> ProviderProfile:
    """Self-hosted provider on the local network."""
    return ProviderProfile(
        id="custom:MyOllama",
        name="MyOllama",
        base_url="http://localhost:11434/v1",
        api_key="ignored-key",
        models=["llama3.2"],
    )


@pytest.fixture
def config() -> OrchestratorConfig:
    return OrchestratorConfig(request_timeout=5.0, connectivity_timeout=5.0)


@pytest_asyncio.fixture
async def make_client(config: OrchestratorConfig) -> AsyncGenerator[Callable[[RecordingTransport], ProviderClient], None]:
    """Factory for ProviderClient instances backed by an httpx.MockTransport."""
    http_clients: list[httpx.AsyncClient] = []

    def factory(transport: RecordingTransport) -> ProviderClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        http_clients.append(http_client)
        return ProviderClient(http_client=http_client, config=config)

    yield factory

    for http_client in http_clients:
        await http_client.aclose()
