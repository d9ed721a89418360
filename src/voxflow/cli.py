"""Command-line entry point.

Usage:
    voxflow check --provider openai --model gpt-4.1
    voxflow run --mode dictation "um so buy milk no wait buy water"
    voxflow run --mode write --selected-text "see you tmrw" "make it formal"
    voxflow --settings settings.yaml run --mode command "what time is it"

Environment variables are read from ``.env`` (see ``voxflow.config``).
Without a settings file, OPENAI_API_KEY is used for the openai provider.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from .config import OrchestratorConfig
from .llm.client import ProviderClient
from .llm.errors import ToolExecutionError
from .llm.models import ErrorResult
from .models.session import DeliveryMethod, Mode
from .providers.registry import ProviderRegistry
from .services.mode_controller import ModeController
from .services.settings_store import InMemorySettingsStore, load_settings_file


class PrintDispatcher:
    """Writes delivered text to stdout."""

    async def deliver(self, text: str, method: DeliveryMethod) -> None:
        print(text)


class NoToolsExecutor:
    """Executor for running Command mode without any tools registered."""

    async def execute(self, name: str, arguments: dict[str, Any]) -> str:
        raise ToolExecutionError(f"Tool {name} is not available", tool_name=name)


def _load_settings(path: Optional[Path]) -> InMemorySettingsStore:
    if path is not None:
        return load_settings_file(path)
    api_key = os.environ.get("OPENAI_API_KEY", "")
    return InMemorySettingsStore(api_keys={"openai": api_key} if api_key else {})


async def _check(args: argparse.Namespace, config: OrchestratorConfig) -> int:
    registry = ProviderRegistry(_load_settings(args.settings))
    profile = registry.resolve(args.provider)
    model = args.model or registry.selected_model(args.provider)
    if not model:
        print(f"Error: no model known for provider {args.provider}")
        return 1

    async with ProviderClient(config=config) as client:
        result = await client.check_connection(profile, model)

    if isinstance(result, ErrorResult):
        print(f"FAIL {profile.id} ({model}): {result.message}")
        return 1
    print(f"OK {profile.id} ({model})")
    return 0


async def _run(args: argparse.Namespace, config: OrchestratorConfig) -> int:
    settings = _load_settings(args.settings)
    mode = Mode(args.mode)
    if args.provider:
        settings.selected_providers[mode] = args.provider

    async with ProviderClient(config=config) as client:
        controller = ModeController(
            client,
            ProviderRegistry(settings),
            settings,
            PrintDispatcher(),
            executor=NoToolsExecutor(),
            config=config,
        )
        await controller.start_recording(mode, selected_text=args.selected_text)
        outcome = await controller.submit_transcript(args.text)

    if outcome is None or outcome.error:
        message = outcome.error if outcome else "no session"
        print(f"Error: {message}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="voxflow",
        description="Run transcripts through the dictation, write and command pipelines",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="YAML settings file (default: OPENAI_API_KEY with the openai provider)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Verify a provider answers")
    check.add_argument("--provider", default="openai", help="Provider id (default: openai)")
    check.add_argument("--model", default=None, help="Model name (default: selected model)")

    run = subparsers.add_parser("run", help="Send a transcript through a mode")
    run.add_argument(
        "--mode",
        choices=[m.value for m in Mode],
        default=Mode.dictation.value,
        help="Pipeline to use (default: dictation)"
    )
    run.add_argument("--provider", default=None, help="Override the provider selected for the mode")
    run.add_argument("--selected-text", default=None, help="Text to rewrite (write mode)")
    run.add_argument("text", help="Transcript text")

    args = parser.parse_args(argv)

    config = OrchestratorConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.settings is not None and not args.settings.exists():
        print(f"Error: Settings file {args.settings} does not exist")
        return 1

    if args.command == "check":
        return asyncio.run(_check(args, config))
    return asyncio.run(_run(args, config))


if __name__ == "__main__":
    sys.exit(main())
