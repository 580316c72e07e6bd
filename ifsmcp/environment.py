"""Locate a usable uv invocation for running the server CLI."""

import logging
import sys
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from .config import DEFAULT_SERVER_MODULE
from .errors import EnvironmentNotFound
from .execution import display_command, probe_command
from .models import EnvironmentCandidate, ResolvedEnvironment

GLOBAL_UV = "uv"

Prober = Callable[[Sequence[str]], Awaitable[bool]]

_logging = logging.getLogger(__name__)


def portable_uv_dir(install_root: Path) -> Path:
    return install_root / "uv"


def portable_uv_path(install_root: Path) -> Path:
    name = "uv.exe" if sys.platform == "win32" else "uv"
    return portable_uv_dir(install_root) / name


def server_invocation(uv: str, server_module: str = DEFAULT_SERVER_MODULE) -> tuple[str, ...]:
    return (uv, "run", "python", "-m", server_module)


class EnvironmentResolver:
    """Probe for uv: the global install first, then the portable copy.

    Nothing is cached; every ``resolve()`` probes again because the user may
    install or remove uv between operations.
    """

    def __init__(
        self,
        install_root: Path,
        server_module: str = DEFAULT_SERVER_MODULE,
        prober: Prober = probe_command,
    ):
        self.install_root = install_root
        self.server_module = server_module
        self._prober = prober

    def candidates(self) -> list[EnvironmentCandidate]:
        portable = str(portable_uv_path(self.install_root))
        return [
            EnvironmentCandidate(
                invocation=server_invocation(GLOBAL_UV, self.server_module),
                probe=(GLOBAL_UV, "--version"),
                priority=0,
            ),
            EnvironmentCandidate(
                invocation=server_invocation(portable, self.server_module),
                probe=(portable, "--version"),
                priority=1,
                is_portable=True,
            ),
        ]

    async def resolve(self) -> ResolvedEnvironment:
        """Return the first candidate whose probe succeeds.

        Raises:
            EnvironmentNotFound: If no probe succeeds
        """
        attempted = []
        for candidate in sorted(self.candidates(), key=lambda c: c.priority):
            probe = display_command(candidate.probe)
            attempted.append(probe)
            if candidate.is_portable and not Path(candidate.probe[0]).exists():
                _logging.debug(f"Portable uv not present: {candidate.probe[0]}")
                continue
            if await self._prober(candidate.probe):
                _logging.debug(f"Resolved uv via '{probe}'")
                return ResolvedEnvironment(
                    executable_invocation=candidate.invocation,
                    is_portable=candidate.is_portable,
                    install_root=self.install_root,
                )
            _logging.debug(f"Probe failed: {probe}")
        raise EnvironmentNotFound(attempted)


__all__ = [
    "GLOBAL_UV",
    "EnvironmentResolver",
    "portable_uv_dir",
    "portable_uv_path",
    "server_invocation",
]
