"""Status aggregation and the start/stop toggle."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from enum import Enum

import click

from .bridge import CommandBridge
from .errors import IfsMcpError, NotInstalled
from .models import Status, StatusState, VersionRecord
from .readiness import derive_status, ready_versions, warn_disagreements
from .session import LineCallback, ServerSession

VersionPicker = Callable[[list[VersionRecord]], Awaitable[VersionRecord | None]]

STATUS_TEXT = {
    StatusState.NOT_INSTALLED: "IFS MCP: Install",
    StatusState.INSTALL_IN_PROGRESS: "IFS MCP: Installing...",
    StatusState.NO_VERSIONS: "IFS MCP: No data",
    StatusState.VERSIONS_NEED_SETUP: "IFS MCP: {count} needs setup",
    StatusState.VERSIONS_READY: "IFS MCP: {count} ready",
    StatusState.SERVER_RUNNING: "IFS MCP: Running",
}

STATUS_HINT = {
    StatusState.NOT_INSTALLED: "Run 'ifsmcp install' to install the MCP server",
    StatusState.INSTALL_IN_PROGRESS: "An install or update is running",
    StatusState.NO_VERSIONS: "Import a deployment ZIP with 'ifsmcp import <zip>'",
    StatusState.VERSIONS_NEED_SETUP: "Run 'ifsmcp setup fast <version>' to build the indexes",
    StatusState.VERSIONS_READY: "Run 'ifsmcp server' to start the MCP server",
    StatusState.SERVER_RUNNING: "Press Ctrl-C to stop the MCP server",
}

STATUS_COLOR = {
    StatusState.NOT_INSTALLED: "yellow",
    StatusState.INSTALL_IN_PROGRESS: "yellow",
    StatusState.NO_VERSIONS: "red",
    StatusState.VERSIONS_NEED_SETUP: "yellow",
    StatusState.VERSIONS_READY: "green",
    StatusState.SERVER_RUNNING: "green",
}

_logging = logging.getLogger(__name__)


def status_text(status: Status) -> str:
    return STATUS_TEXT[status.state].format(count=status.count)


class StatusDisplay(ABC):
    """Surface that receives every refreshed status."""

    @abstractmethod
    def show(self, status: Status) -> None:
        pass


class ConsoleStatusDisplay(StatusDisplay):
    def __init__(self, show_hint: bool = True):
        self.show_hint = show_hint

    def show(self, status: Status) -> None:
        click.secho(status_text(status), fg=STATUS_COLOR[status.state], bold=True)
        if self.show_hint:
            click.echo(f"  {STATUS_HINT[status.state]}")


class ToggleResult(Enum):
    STOPPED = "stopped"
    STARTED = "started"
    NEEDS_SETUP = "needs_setup"
    NEEDS_INSTALL = "needs_install"
    CANCELLED = "cancelled"


class StatusAggregator:
    """Recomputes the status from the version list and the session.

    ``install_in_progress`` is polled first so a concurrent install is
    reported instead of a half-written install root.
    """

    def __init__(
        self,
        bridge: CommandBridge,
        session: ServerSession,
        display: StatusDisplay | None = None,
        install_in_progress: Callable[[], bool] = lambda: False,
    ):
        self.bridge = bridge
        self.session = session
        self.display = display
        self.install_in_progress = install_in_progress
        self.versions: list[VersionRecord] = []
        self.status: Status | None = None

    async def compute(self) -> Status:
        if self.install_in_progress():
            return Status.install_in_progress()
        if self.session.is_alive:
            return Status.server_running()

        try:
            self.versions = await self.bridge.list_versions()
        except NotInstalled:
            self.versions = []
            return Status.not_installed()
        except IfsMcpError as e:
            _logging.warning(f"Failed to fetch versions: {e}")
            self.versions = []

        warn_disagreements(self.versions)
        return derive_status(self.versions, self.session.is_alive)

    async def refresh(self) -> Status:
        self.status = await self.compute()
        if self.display is not None:
            self.display.show(self.status)
        return self.status

    async def toggle(
        self,
        pick_version: VersionPicker,
        on_stdout: LineCallback | None = None,
        on_stderr: LineCallback | None = None,
    ) -> ToggleResult:
        """Stop a running server, or start one for a ready version."""
        if self.session.is_alive:
            await self.session.stop()
            await self.refresh()
            return ToggleResult.STOPPED

        status = await self.refresh()
        if status.state in (StatusState.NOT_INSTALLED, StatusState.INSTALL_IN_PROGRESS):
            return ToggleResult.NEEDS_INSTALL

        ready = ready_versions(self.versions)
        if not ready:
            return ToggleResult.NEEDS_SETUP

        version = await pick_version(ready)
        if version is None:
            return ToggleResult.CANCELLED

        await self.session.start(version.id, on_stdout=on_stdout, on_stderr=on_stderr)
        await self.refresh()
        return ToggleResult.STARTED


__all__ = [
    "STATUS_TEXT",
    "StatusDisplay",
    "ConsoleStatusDisplay",
    "StatusAggregator",
    "ToggleResult",
    "status_text",
]
