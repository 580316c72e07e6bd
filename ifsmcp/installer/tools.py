"""External tools the installer drives, and how to probe them."""

import logging
import re
import shutil
from collections.abc import Sequence
from dataclasses import dataclass

from packaging import version as pkg_version

from ..errors import IfsMcpError
from ..execution import run_process

UV_MIN_VERSION = "0.3.0"

_logging = logging.getLogger(__name__)


@dataclass
class Tool:
    name: str
    executable: str
    install_hint: str
    version_args: tuple[str, ...] = ("--version",)
    min_version: str | None = None

    def which(self) -> str | None:
        return shutil.which(self.executable)

    def is_available(self) -> bool:
        return self.which() is not None

    async def get_version(self) -> str | None:
        path = self.which()
        if path is None:
            return None
        try:
            result = await run_process([path, *self.version_args])
        except IfsMcpError as e:
            _logging.debug(f"Version probe for {self.name} failed: {e}")
            return None
        if result.exit_code != 0:
            return None
        return _extract_version(result.stdout.strip() or result.stderr.strip())

    def is_version_satisfied(self, version: str | None) -> bool:
        if not version:
            return False
        if not self.min_version:
            return True
        try:
            return pkg_version.parse(version) >= pkg_version.parse(self.min_version)
        except pkg_version.InvalidVersion:
            return True

    async def probe(self) -> "ToolStatus":
        path = self.which()
        if path is None:
            return ToolStatus(name=self.name, available=False, version_satisfied=False)
        found = await self.get_version()
        return ToolStatus(
            name=self.name,
            available=True,
            version=found,
            path=path,
            version_satisfied=self.is_version_satisfied(found) if self.min_version else True,
        )


def _extract_version(output: str) -> str | None:
    for pattern in (r"(\d+\.\d+\.\d+)", r"(\d+\.\d+)"):
        match = re.search(pattern, output)
        if match:
            return match.group(1)
    return None


@dataclass
class ToolStatus:
    name: str
    available: bool
    version: str | None = None
    path: str | None = None
    version_satisfied: bool = True

    @property
    def status_icon(self) -> str:
        if not self.available:
            return "❌"
        if not self.version_satisfied:
            return "⚠️"
        return "✅"


GIT = Tool(
    name="git",
    executable="git",
    install_hint="Install from https://git-scm.com (the archive download is used otherwise)",
)
UV = Tool(
    name="uv",
    executable="uv",
    install_hint="Install from https://docs.astral.sh/uv/ (a portable copy is downloaded otherwise)",
    # `uv sync` first shipped in 0.3.0.
    min_version=UV_MIN_VERSION,
)
NVIDIA_SMI = Tool(
    name="nvidia-smi",
    executable="nvidia-smi",
    install_hint="Install the NVIDIA driver to use the GPU build",
    version_args=("--version",),
)

BUILTIN_TOOLS: tuple[Tool, ...] = (GIT, UV, NVIDIA_SMI)


async def scan_tools(tools: Sequence[Tool] = BUILTIN_TOOLS) -> list[ToolStatus]:
    return [await tool.probe() for tool in tools]


__all__ = [
    "Tool",
    "ToolStatus",
    "GIT",
    "UV",
    "NVIDIA_SMI",
    "BUILTIN_TOOLS",
    "scan_tools",
]
