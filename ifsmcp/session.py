"""Ownership of the single long-lived MCP server process."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from .bridge import CommandBridge
from .errors import ServerAlreadyRunning, ServerNotRunning
from .execution import ProcessHandle

LineCallback = Callable[[str], None]

_logging = logging.getLogger(__name__)


async def _pump(stream: asyncio.StreamReader, callback: LineCallback | None) -> None:
    while True:
        try:
            line = await stream.readline()
        except ValueError as e:
            _logging.warning(f"Dropped oversized server output line: {e}")
            continue
        if not line:
            break
        if callback is not None:
            callback(line.decode(errors="replace").rstrip("\r\n"))


class ServerSession:
    """Holds at most one running server and stops it in two phases.

    One session is created per CLI invocation and handed to whatever needs
    to start, stop or query the server.
    """

    def __init__(self, bridge: CommandBridge, grace_period: float | None = None):
        self.bridge = bridge
        self.grace_period = (
            bridge.settings.grace_period if grace_period is None else grace_period
        )
        self._handle: ProcessHandle | None = None
        self._pumps: list[asyncio.Task] = []
        self.version: str | None = None

    @property
    def handle(self) -> ProcessHandle | None:
        return self._handle

    @property
    def is_alive(self) -> bool:
        return self._handle is not None and self._handle.alive

    def server_args(self, version: str) -> list[str]:
        settings = self.bridge.settings
        return [
            "--version",
            version,
            "--name",
            settings.server_name,
            "--transport",
            "stdio",
            "--log-level",
            settings.log_level,
        ]

    async def start(
        self,
        version: str,
        cwd: Path | None = None,
        on_stdout: LineCallback | None = None,
        on_stderr: LineCallback | None = None,
    ) -> ProcessHandle:
        """Start the server for ``version``.

        Raises:
            ServerAlreadyRunning: If this session's server is still alive
        """
        if self.is_alive:
            raise ServerAlreadyRunning(self._handle.pid)

        handle = await self.bridge.spawn_long_running(
            "server", self.server_args(version), cwd=cwd
        )
        _logging.info(f"MCP server started for {version} (pid {handle.pid})")
        self._handle = handle
        self.version = version
        # Both pipes must be drained or the server blocks on a full buffer.
        self._pumps = [
            asyncio.ensure_future(_pump(stream, callback))
            for stream, callback in ((handle.stdout, on_stdout), (handle.stderr, on_stderr))
            if stream is not None
        ]
        return handle

    async def wait(self) -> int:
        """Wait for the server to exit on its own and return its exit code."""
        if self._handle is None:
            raise ServerNotRunning()
        code = await self._handle.wait()
        await self._finish_pumps()
        self._clear()
        return code

    async def stop(self) -> int | None:
        """Terminate, wait the grace period, then kill.

        Raises:
            ServerNotRunning: If no server was started by this session
        """
        handle = self._handle
        if handle is None or handle.has_exited():
            self._clear()
            raise ServerNotRunning()

        handle.terminate()
        try:
            code = await asyncio.wait_for(handle.wait(), timeout=self.grace_period)
        except asyncio.TimeoutError:
            _logging.warning(
                f"Server did not exit within {self.grace_period}s, killing pid {handle.pid}"
            )
            handle.kill()
            code = await handle.wait()

        await self._finish_pumps()
        self._clear()
        _logging.info(f"MCP server stopped (exit code {code})")
        return code

    async def _finish_pumps(self) -> None:
        if self._pumps:
            await asyncio.gather(*self._pumps, return_exceptions=True)
        self._pumps = []

    def _clear(self) -> None:
        self._handle = None
        self.version = None


__all__ = ["ServerSession"]
