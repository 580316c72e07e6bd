"""Interactive prompts.

Uses:
- questionary for rich interactive prompts (when TTY available)
- click.prompt / click.confirm as the plain-terminal fallback

All prompts are coroutines because they are awaited from inside the
orchestrators' event loop; questionary is driven through ``ask_async``.
"""

import sys
from dataclasses import dataclass
from typing import Any

import click

from .models import VersionRecord


@dataclass(frozen=True)
class Option:
    title: str
    value: Any


def _mark(flag: bool) -> str:
    return "✓" if flag else "✗"


def describe_version(version: VersionRecord) -> str:
    """One-line annotation shown next to a version in pickers and listings.

    Examples:
        "analyzed, BM25S: ✓, FAISS: ✗"
    """
    flags = version.flags
    parts = [
        "analyzed" if flags.has_analysis else "not analyzed",
        f"BM25S: {_mark(flags.has_lexical_index)}",
        f"FAISS: {_mark(flags.has_vector_index)}",
    ]
    if flags.has_rank:
        parts.append("PageRank: ✓")
    if version.derived_ready:
        parts.append("ready")
    return ", ".join(parts)


class Prompter:
    """Answers every question with its default; used for ``--yes`` runs."""

    async def select(self, message: str, options: list[Option], default: Any = None) -> Any:
        if default is not None:
            return default
        return options[0].value if options else None

    async def confirm(self, message: str, default: bool = False) -> bool | None:
        return default


AutoPrompter = Prompter


class InteractivePrompter(Prompter):
    """questionary on a TTY, numbered click prompts otherwise.

    ``None`` means the user cancelled (Ctrl-C or Escape).
    """

    def __init__(self, use_tty: bool | None = None):
        self.use_tty = sys.stdin.isatty() if use_tty is None else use_tty

    async def select(self, message: str, options: list[Option], default: Any = None) -> Any:
        if not options:
            return None
        if self.use_tty:
            import questionary

            choices = [questionary.Choice(title=o.title, value=o.value) for o in options]
            try:
                return await questionary.select(
                    message, choices=choices, default=_default_choice(choices, default)
                ).ask_async()
            except KeyboardInterrupt:
                return None

        click.echo(message)
        default_index = 1
        for i, option in enumerate(options, start=1):
            click.echo(f"  {i}. {option.title}")
            if option.value == default:
                default_index = i
        try:
            index = click.prompt(
                "Choice", type=click.IntRange(1, len(options)), default=default_index
            )
        except click.Abort:
            return None
        return options[index - 1].value

    async def confirm(self, message: str, default: bool = False) -> bool | None:
        if self.use_tty:
            import questionary

            try:
                return await questionary.confirm(message, default=default).ask_async()
            except KeyboardInterrupt:
                return None
        try:
            return click.confirm(message, default=default)
        except click.Abort:
            return None


def _default_choice(choices: list, default: Any) -> Any:
    for choice in choices:
        if choice.value == default:
            return choice
    return None


async def pick_version(
    prompter: Prompter, versions: list[VersionRecord], message: str = "Select a version:"
) -> VersionRecord | None:
    if not versions:
        return None
    if len(versions) == 1:
        return versions[0]
    options = [Option(f"{v.id} ({describe_version(v)})", v) for v in versions]
    return await prompter.select(message, options, default=versions[0])


__all__ = [
    "Option",
    "Prompter",
    "AutoPrompter",
    "InteractivePrompter",
    "describe_version",
    "pick_version",
]
