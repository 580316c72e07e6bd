"""Run server CLI commands through the resolved uv environment."""

import json
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from pathlib import Path

from .classifier import ErrorClassifier
from .config import Settings
from .environment import EnvironmentResolver
from .errors import CommandFailed, ErrorKind, NotInstalled, StructuredError
from .execution import ProcessHandle, run_process, spawn_process
from .models import CommandResult, ResolvedEnvironment, VersionRecord

Runner = Callable[..., Awaitable[CommandResult]]
Spawner = Callable[..., Awaitable[ProcessHandle]]

_logging = logging.getLogger(__name__)


class CommandBridge:
    """Buffered and streamed execution of server subcommands.

    The install root is checked first on every call; a missing root raises
    ``NotInstalled`` before uv is probed or anything is spawned.
    """

    def __init__(
        self,
        settings: Settings,
        resolver: EnvironmentResolver | None = None,
        runner: Runner = run_process,
        spawner: Spawner = spawn_process,
        classifier: ErrorClassifier | None = None,
    ):
        self.settings = settings
        self.resolver = resolver or EnvironmentResolver(
            settings.install_root, settings.server_module
        )
        self._runner = runner
        self._spawner = spawner
        self.classifier = classifier or ErrorClassifier()

    @property
    def install_root(self) -> Path:
        return self.settings.install_root

    def ensure_installed(self) -> None:
        if not self.install_root.exists():
            raise NotInstalled(self.install_root)

    async def resolve(self) -> ResolvedEnvironment:
        self.ensure_installed()
        return await self.resolver.resolve()

    def _argv(self, env: ResolvedEnvironment, command: str, args: Sequence[str]) -> list[str]:
        return [*env.executable_invocation, self.settings.subcommand(command), *args]

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run one subcommand and return its result, whatever the exit code.

        Raises:
            NotInstalled: If the install root does not exist
            EnvironmentNotFound: If no uv can be resolved
            ProcessSpawnFailed: If uv cannot be started
            OutputTooLarge: If the output exceeds ``settings.max_output_bytes``
        """
        env = await self.resolve()
        argv = self._argv(env, command, args)
        result = await self._runner(
            argv,
            cwd=cwd or self.install_root,
            max_output=self.settings.max_output_bytes,
        )
        if result.exit_code != 0:
            _logging.debug(f"'{command}' exited with {result.exit_code}")
        return result

    async def spawn_long_running(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ProcessHandle:
        """Start a subcommand with piped stdio and return immediately."""
        resolved = await self.resolve()
        argv = self._argv(resolved, command, args)
        return await self._spawner(argv, cwd=cwd or self.install_root, env=env)

    async def run_checked(self, command: str, args: Sequence[str] = ()) -> CommandResult:
        """Like ``run`` but raise ``CommandFailed`` on a non-zero exit."""
        result = await self.run(command, args)
        if result.exit_code != 0:
            raise CommandFailed(self.classifier.classify(command, result))
        return result

    async def check_cli(self) -> None:
        """Make sure the server CLI answers ``--help`` before relying on it.

        Raises:
            CommandFailed: If ``--help`` exits non-zero
        """
        env = await self.resolve()
        result = await self._runner(
            [*env.executable_invocation, "--help"],
            cwd=self.install_root,
            max_output=self.settings.max_output_bytes,
        )
        if result.exit_code != 0:
            _logging.debug(f"--help exited with {result.exit_code}: {result.stderr.strip()}")
            raise CommandFailed(
                StructuredError(
                    kind=ErrorKind.COMMAND_FAILED,
                    message="MCP server CLI not accessible. Please ensure the server is properly installed.",
                    originating_command="--help",
                    suggestions=("Run 'ifsmcp install' and choose Reinstall",),
                    exit_code=result.exit_code,
                )
            )

    async def list_versions(self) -> list[VersionRecord]:
        """Return the versions reported by ``list --json``.

        Entries that cannot be parsed are logged and skipped.
        """
        result = await self.run_checked("list", ["--json"])
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise CommandFailed(
                StructuredError(
                    kind=ErrorKind.COMMAND_FAILED,
                    message=f"Could not parse version list: {e.msg} at line {e.lineno}",
                    originating_command="list",
                    exit_code=result.exit_code,
                )
            ) from e

        if not isinstance(data, list):
            _logging.warning(f"Version list is a {type(data).__name__}, expected a list")
            return []

        versions = []
        for i, entry in enumerate(data):
            try:
                versions.append(VersionRecord.from_json(entry))
            except ValueError as e:
                _logging.warning(f"Skipping version entry {i}: {e}")
        return versions


__all__ = ["CommandBridge"]
