"""Shared helpers for CLI commands."""

import asyncio
import logging
import sys
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click

from ifsmcp import setup_logging
from ifsmcp.bridge import CommandBridge
from ifsmcp.config import Settings, load_settings
from ifsmcp.errors import (
    CommandFailed,
    ConfigError,
    IfsMcpError,
    NotInstalled,
    format_error,
    format_structured_error,
    format_suggestion,
)
from ifsmcp.models import VersionRecord
from ifsmcp.sequencer import CommandSequencer, Stage
from ifsmcp.session import ServerSession
from ifsmcp.tui import AutoPrompter, InteractivePrompter, Prompter, describe_version, pick_version

EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_NOT_INSTALLED = 3

_logging = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    prompter: Prompter
    bridge: CommandBridge
    session: ServerSession

    def sequencer(self) -> CommandSequencer:
        return CommandSequencer(self.bridge, on_progress=echo_progress)


def build_context(ctx: click.Context, yes: bool = False) -> AppContext:
    """Load settings and wire the bridge, session and prompter for a command."""
    obj = ctx.obj or {}
    setup_logging(obj.get("debug", False))
    config_path = obj.get("config_path")
    try:
        settings = load_settings(Path(config_path) if config_path else None)
    except ConfigError as e:
        report_error(e)
        sys.exit(EXIT_USAGE)
    prompter: Prompter = AutoPrompter() if yes else InteractivePrompter()
    bridge = CommandBridge(settings)
    return AppContext(
        settings=settings,
        prompter=prompter,
        bridge=bridge,
        session=ServerSession(bridge),
    )


def report_error(error: IfsMcpError) -> None:
    if isinstance(error, CommandFailed):
        click.echo(format_error(format_structured_error(error.error)), err=True)
        return
    if error.suggestions:
        click.echo(format_suggestion(error.message, error.suggestions[0]), err=True)
        for suggestion in error.suggestions[1:]:
            click.echo(f"  • {suggestion}", err=True)
        return
    click.echo(format_error(error.message), err=True)


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """``asyncio.run`` with ``IfsMcpError`` translated to an exit code."""
    try:
        return asyncio.run(coro)
    except NotInstalled as e:
        report_error(e)
        sys.exit(EXIT_NOT_INSTALLED)
    except IfsMcpError as e:
        report_error(e)
        sys.exit(EXIT_ERROR)


def echo_progress(stage: Stage, position: int, total: int) -> None:
    if position == 0:
        click.echo(f"{stage.title}...")
    else:
        click.echo(f"[{position}/{total}] {stage.title}...")


def format_version_line(version: VersionRecord) -> str:
    line = f"{version.id}  ({describe_version(version)})"
    if version.file_count:
        line += f"  {version.file_count} files"
    return line


async def resolve_version(app: AppContext, version: str | None) -> str:
    """Return ``version`` or ask the user to pick one of the listed versions."""
    if version:
        return version

    versions = await app.bridge.list_versions()
    if not versions:
        raise click.UsageError("No versions found; import one with 'ifsmcp import <zip>'")

    picked = await pick_version(app.prompter, versions)
    if picked is None:
        raise click.Abort()
    return picked.id


__all__ = [
    "EXIT_ERROR",
    "EXIT_USAGE",
    "EXIT_NOT_INSTALLED",
    "AppContext",
    "build_context",
    "echo_progress",
    "format_version_line",
    "report_error",
    "resolve_version",
    "run_async",
]
