"""Async process execution utilities."""

import asyncio
import contextlib
import logging
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from .errors import OutputTooLarge, ProcessSpawnFailed
from .models import CommandResult

DEFAULT_MAX_OUTPUT = 10 * 1024 * 1024
PROBE_TIMEOUT = 30
_CHUNK_SIZE = 64 * 1024
# Longest line a streamed reader accepts from a long-running child.
STREAM_LINE_LIMIT = 1024 * 1024

_logging = logging.getLogger(__name__)


class _OutputBudget:
    """Shared byte budget for the stdout and stderr readers of one process."""

    def __init__(self, limit: int):
        self.limit = limit
        self.used = 0

    @property
    def exceeded(self) -> bool:
        return self.used > self.limit

    def consume(self, size: int) -> bool:
        self.used += size
        return not self.exceeded


async def _drain(stream: asyncio.StreamReader, budget: _OutputBudget) -> bytes:
    chunks = []
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        if not budget.consume(len(chunk)):
            break
        chunks.append(chunk)
    return b"".join(chunks)


def _kill(process: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        process.kill()


def display_command(argv: Sequence[str]) -> str:
    return subprocess.list2cmdline(list(argv))


async def run_process(
    argv: Sequence[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    max_output: int = DEFAULT_MAX_OUTPUT,
) -> CommandResult:
    """Run ``argv`` to completion and capture its output.

    A non-zero exit is reported in ``CommandResult.exit_code``. The combined
    size of stdout and stderr is bounded by ``max_output``; past the bound
    the child is killed and ``OutputTooLarge`` is raised. If the awaiting
    task is cancelled the child is killed before the cancellation propagates.

    Raises:
        ProcessSpawnFailed: If the executable cannot be started
        OutputTooLarge: If the output bound is exceeded
    """
    command = display_command(argv)
    _logging.debug(f"Running command: {command} (cwd={cwd})")
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
        )
    except OSError as e:
        _logging.error(f"Command spawn failed: {type(e).__name__}: {e} | Command: {command}")
        raise ProcessSpawnFailed(argv[0], str(e)) from e

    assert process.stdout is not None and process.stderr is not None
    budget = _OutputBudget(max_output)
    readers = [
        asyncio.ensure_future(_drain(process.stdout, budget)),
        asyncio.ensure_future(_drain(process.stderr, budget)),
    ]
    pending = set(readers)
    try:
        while pending:
            _, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            if budget.exceeded:
                break
        if budget.exceeded:
            _kill(process)
            await asyncio.gather(*readers, return_exceptions=True)
            await process.wait()
            _logging.error(f"Output exceeded {max_output} bytes: {command}")
            raise OutputTooLarge(command, max_output)
        stdout, stderr = (reader.result() for reader in readers)
        returncode = await process.wait()
    except asyncio.CancelledError:
        _kill(process)
        for reader in readers:
            reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)
        await process.wait()
        raise

    if stderr:
        _logging.debug(f"stderr: {stderr.decode(errors='replace').strip()}")
    return CommandResult(
        exit_code=returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


async def probe_command(argv: Sequence[str], timeout: float = PROBE_TIMEOUT) -> bool:
    """Return True if ``argv`` can be started and exits 0."""
    try:
        result = await asyncio.wait_for(run_process(argv), timeout=timeout)
    except (ProcessSpawnFailed, OutputTooLarge):
        return False
    except asyncio.TimeoutError:
        _logging.warning(f"Probe timed out after {timeout} seconds: {display_command(argv)}")
        return False
    return result.exit_code == 0


class ProcessHandle:
    """A long-lived child process with three piped streams.

    The owner must attach readers to ``stdout`` and ``stderr`` promptly, the
    child blocks once an unread pipe fills up.
    """

    def __init__(self, process: asyncio.subprocess.Process, command: str):
        self._process = process
        self.command = command
        self._terminated = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def stdin(self) -> asyncio.StreamWriter | None:
        return self._process.stdin

    @property
    def stdout(self) -> asyncio.StreamReader | None:
        return self._process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader | None:
        return self._process.stderr

    @property
    def exit_code(self) -> int | None:
        return self._process.returncode

    @property
    def terminated(self) -> bool:
        return self._terminated or self._process.returncode is not None

    @property
    def alive(self) -> bool:
        return not self.terminated

    def terminate(self) -> None:
        self._terminated = True
        with contextlib.suppress(ProcessLookupError):
            self._process.terminate()

    def kill(self) -> None:
        self._terminated = True
        _kill(self._process)

    def has_exited(self) -> bool:
        return self._process.returncode is not None

    async def wait(self) -> int:
        return await self._process.wait()


async def spawn_process(
    argv: Sequence[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ProcessHandle:
    """Start ``argv`` with piped stdio and return without waiting."""
    command = display_command(argv)
    _logging.debug(f"Spawning process: {command} (cwd={cwd})")
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            limit=STREAM_LINE_LIMIT,
        )
    except OSError as e:
        _logging.error(f"Process spawn failed: {type(e).__name__}: {e} | Command: {command}")
        raise ProcessSpawnFailed(argv[0], str(e)) from e
    return ProcessHandle(process, command)


__all__ = [
    "DEFAULT_MAX_OUTPUT",
    "PROBE_TIMEOUT",
    "ProcessHandle",
    "display_command",
    "probe_command",
    "run_process",
    "spawn_process",
]
