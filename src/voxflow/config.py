"""Orchestrator configuration.

Values come from environment variables (a ``.env`` file is honoured via
python-dotenv) or explicit constructor arguments.

Configuration (env vars):
- VOXFLOW_REQUEST_TIMEOUT_SECONDS: Provider call timeout (default: 30)
- VOXFLOW_CONNECTIVITY_TIMEOUT_SECONDS: Connection check timeout (default: 30)
- VOXFLOW_MAX_TOOL_ROUNDS: Command mode round budget (default: 20)
- VOXFLOW_TOOL_ROUNDS_BEFORE_FINAL: Tool rounds before a final answer is forced (default: 1)
- VOXFLOW_TEMPERATURE: Temperature for non-reasoning models (default: 0.2)
- VOXFLOW_ENABLE_STREAMING: Use SSE streaming for provider calls (default: false)
- VOXFLOW_LOG_LEVEL: Root log level for the CLI (default: INFO)
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_CONNECTIVITY_TIMEOUT = 30.0
DEFAULT_MAX_TOOL_ROUNDS = 20
DEFAULT_TOOL_ROUNDS_BEFORE_FINAL = 1
DEFAULT_TEMPERATURE = 0.2

_TRUE_VALUES = {"1", "true", "yes", "on"}


class OrchestratorConfig(BaseModel):
    """Runtime knobs for the provider client and mode controller."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)
    connectivity_timeout: float = Field(default=DEFAULT_CONNECTIVITY_TIMEOUT, gt=0)
    max_tool_rounds: int = Field(default=DEFAULT_MAX_TOOL_ROUNDS, ge=1)
    tool_rounds_before_final: int = Field(default=DEFAULT_TOOL_ROUNDS_BEFORE_FINAL, ge=1)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    enable_streaming: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, load_dotenv_file: bool = True) -> "OrchestratorConfig":
        """Build configuration from the environment."""
        if load_dotenv_file:
            load_dotenv()

        return cls(
            request_timeout=float(
                os.environ.get("VOXFLOW_REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT)
            ),
            connectivity_timeout=float(
                os.environ.get("VOXFLOW_CONNECTIVITY_TIMEOUT_SECONDS", DEFAULT_CONNECTIVITY_TIMEOUT)
            ),
            max_tool_rounds=int(
                os.environ.get("VOXFLOW_MAX_TOOL_ROUNDS", DEFAULT_MAX_TOOL_ROUNDS)
            ),
            tool_rounds_before_final=int(
                os.environ.get("VOXFLOW_TOOL_ROUNDS_BEFORE_FINAL", DEFAULT_TOOL_ROUNDS_BEFORE_FINAL)
            ),
            temperature=float(os.environ.get("VOXFLOW_TEMPERATURE", DEFAULT_TEMPERATURE)),
            enable_streaming=os.environ.get("VOXFLOW_ENABLE_STREAMING", "false").lower() in _TRUE_VALUES,
            log_level=os.environ.get("VOXFLOW_LOG_LEVEL", "INFO").upper(),
        )
