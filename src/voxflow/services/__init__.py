"""Mode pipelines, tool orchestration and collaborator ports."""

from .mode_controller import ModeController
from .ports import (
    AnalyticsSink,
    OnDeviceModel,
    OutputDispatcher,
    SettingsStore,
    ToolExecutor,
    Transcriber,
)
from .settings_store import InMemorySettingsStore, load_settings_file
from .tool_orchestrator import OrchestrationResult, ToolCallOrchestrator

__all__ = [
    "ModeController",
    "AnalyticsSink",
    "OnDeviceModel",
    "OutputDispatcher",
    "SettingsStore",
    "ToolExecutor",
    "Transcriber",
    "InMemorySettingsStore",
    "load_settings_file",
    "OrchestrationResult",
    "ToolCallOrchestrator",
]
