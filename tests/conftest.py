"""Pytest fixtures and fakes for ifsmcp tests."""

import asyncio
from pathlib import Path

import pytest

from ifsmcp.bridge import CommandBridge
from ifsmcp.config import Settings
from ifsmcp.models import CommandResult, ResolvedEnvironment, VersionFlags, VersionRecord


def make_version(
    version_id: str = "25.1.0",
    rank: bool = False,
    lexical: bool = False,
    vector: bool = False,
    reported_ready: bool | None = None,
    analysis: bool = True,
) -> VersionRecord:
    flags = VersionFlags(
        has_analysis=analysis,
        has_lexical_index=lexical,
        has_vector_index=vector,
        has_rank=rank,
    )
    if reported_ready is None:
        reported_ready = rank and lexical and vector
    return VersionRecord(id=version_id, flags=flags, reported_ready=reported_ready)


def ready_version(version_id: str = "25.1.0") -> VersionRecord:
    return make_version(version_id, rank=True, lexical=True, vector=True)


class FakeResolver:
    """Resolves to a fixed invocation and counts calls."""

    def __init__(self, install_root: Path):
        self.install_root = install_root
        self.calls = 0

    async def resolve(self) -> ResolvedEnvironment:
        self.calls += 1
        return ResolvedEnvironment(
            executable_invocation=("uv", "run", "python", "-m", "server"),
            is_portable=False,
            install_root=self.install_root,
        )


class FakeRunner:
    """Scripted replacement for ``run_process``.

    ``responses`` maps a subcommand name (the token after the invocation) to
    a ``CommandResult`` or a list of them consumed in order.
    """

    def __init__(self, responses: dict | None = None):
        self.responses = dict(responses or {})
        self.calls: list[list[str]] = []

    def names(self) -> list[str]:
        return [argv[5] if len(argv) > 5 else argv[0] for argv in self.calls]

    async def __call__(self, argv, cwd=None, env=None, max_output=None) -> CommandResult:
        self.calls.append(list(argv))
        name = argv[5] if len(argv) > 5 else argv[0]
        response = self.responses.get(name, CommandResult(0, "", ""))
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeStream:
    def __init__(self, lines: list[bytes] | None = None):
        self._lines = list(lines or [])

    async def readline(self) -> bytes:
        if self._lines:
            return self._lines.pop(0)
        return b""


class FakeHandle:
    """Stand-in for ``ProcessHandle`` with scripted shutdown behaviour."""

    def __init__(self, pid: int = 4242, ignores_terminate: bool = False, stdout=None, stderr=None):
        self.pid = pid
        self.ignores_terminate = ignores_terminate
        self.stdin = None
        self.stdout = FakeStream(stdout)
        self.stderr = FakeStream(stderr)
        self.exit_code = None
        self._terminated = False
        self.terminate_calls = 0
        self.kill_calls = 0
        self._exited = asyncio.Event()

    @property
    def terminated(self) -> bool:
        return self._terminated or self.exit_code is not None

    @property
    def alive(self) -> bool:
        return not self.terminated

    def has_exited(self) -> bool:
        return self.exit_code is not None

    def _exit(self, code: int) -> None:
        self.exit_code = code
        self._exited.set()

    def terminate(self) -> None:
        self._terminated = True
        self.terminate_calls += 1
        if not self.ignores_terminate:
            self._exit(-15)

    def kill(self) -> None:
        self._terminated = True
        self.kill_calls += 1
        self._exit(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        return self.exit_code


class FakeSpawner:
    def __init__(self, handle_factory=FakeHandle):
        self.handle_factory = handle_factory
        self.calls: list[list[str]] = []
        self.handles: list[FakeHandle] = []

    async def __call__(self, argv, cwd=None, env=None):
        self.calls.append(list(argv))
        handle = self.handle_factory()
        self.handles.append(handle)
        return handle


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    root = tmp_path / "server"
    root.mkdir()
    return root


@pytest.fixture
def settings(install_root: Path, tmp_path: Path) -> Settings:
    return Settings(install_root=install_root, data_root=tmp_path / "data", lock_timeout=0.3)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def bridge(settings: Settings, runner: FakeRunner, spawner: FakeSpawner) -> CommandBridge:
    return CommandBridge(
        settings,
        resolver=FakeResolver(settings.install_root),
        runner=runner,
        spawner=spawner,
    )
