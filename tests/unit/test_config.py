"""Unit tests for OrchestratorConfig."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from voxflow.config import OrchestratorConfig


class TestOrchestratorConfig:
    """Tests for configuration defaults and environment loading."""

    def test_defaults(self):
        config = OrchestratorConfig()
        assert config.request_timeout == 30.0
        assert config.connectivity_timeout == 30.0
        assert config.max_tool_rounds == 20
        assert config.tool_rounds_before_final == 1
        assert config.temperature == 0.2
        assert config.enable_streaming is False

    def test_environment_configuration(self):
        """Test configuration from environment variables."""
        with patch.dict(os.environ, {
            "VOXFLOW_REQUEST_TIMEOUT_SECONDS": "12.5",
            "VOXFLOW_CONNECTIVITY_TIMEOUT_SECONDS": "3",
            "VOXFLOW_MAX_TOOL_ROUNDS": "8",
            "VOXFLOW_TOOL_ROUNDS_BEFORE_FINAL": "2",
            "VOXFLOW_TEMPERATURE": "0.7",
            "VOXFLOW_ENABLE_STREAMING": "TRUE",
            "VOXFLOW_LOG_LEVEL": "debug",
        }):
            config = OrchestratorConfig.from_env(load_dotenv_file=False)

        assert config.request_timeout == 12.5
        assert config.connectivity_timeout == 3.0
        assert config.max_tool_rounds == 8
        assert config.tool_rounds_before_final == 2
        assert config.temperature == 0.7
        assert config.enable_streaming is True
        assert config.log_level == "DEBUG"

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            OrchestratorConfig(max_tool_rounds=0)
        with pytest.raises(ValidationError):
            OrchestratorConfig(request_timeout=0)

    def test_frozen(self):
        config = OrchestratorConfig()
        with pytest.raises(ValidationError):
            config.request_timeout = 1.0
