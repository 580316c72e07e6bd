"""Ways of obtaining the server source tree.

Each strategy writes a complete tree to a target path that does not exist
yet; the orchestrator owns staging and the final move onto the install root.
"""

import asyncio
import logging
import shutil
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path

from ..errors import AcquisitionFailed, IfsMcpError
from ..execution import run_process
from .download import download_file
from .tools import GIT, Tool

_logging = logging.getLogger(__name__)


class AcquisitionStrategy(ABC):
    name: str = ""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether this strategy can run on this machine."""

    @abstractmethod
    async def fetch(self, target: Path, workdir: Path) -> None:
        """Produce the source tree at ``target``.

        ``workdir`` is scratch space inside the staging directory.

        Raises:
            AcquisitionFailed: If no complete tree could be produced
        """


class GitCloneStrategy(AcquisitionStrategy):
    name = "git clone"

    def __init__(self, repo_url: str, branch: str = "main", git: Tool = GIT, runner=run_process):
        self.repo_url = repo_url
        self.branch = branch
        self.git = git
        self._runner = runner

    def is_available(self) -> bool:
        return self.git.is_available()

    async def fetch(self, target: Path, workdir: Path) -> None:
        try:
            result = await self._runner(
                [self.git.executable, "clone", "--branch", self.branch, self.repo_url, str(target)],
                cwd=workdir,
            )
        except IfsMcpError as e:
            raise AcquisitionFailed(self.name, e.message) from e
        if result.exit_code != 0:
            message = result.stderr.strip() or result.stdout.strip() or f"exit code {result.exit_code}"
            raise AcquisitionFailed(self.name, message)


def _extract_zip(archive: Path, dest: Path) -> None:
    with zipfile.ZipFile(archive) as zf:
        zf.extractall(dest)


def find_archive_root(extracted: Path, expected_name: str) -> Path:
    """Locate the source directory inside an extracted archive.

    GitHub archives hold one ``<repo>-<branch>`` directory; if the expected
    name is absent, a single top-level directory is accepted instead.
    """
    expected = extracted / expected_name
    if expected.is_dir():
        return expected
    entries = list(extracted.iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    raise AcquisitionFailed(
        ArchiveDownloadStrategy.name,
        f"archive does not contain '{expected_name}'",
    )


class ArchiveDownloadStrategy(AcquisitionStrategy):
    name = "archive download"

    def __init__(self, archive_url: str, root_name: str, transport=None):
        self.archive_url = archive_url
        self.root_name = root_name
        self._transport = transport

    def is_available(self) -> bool:
        return True

    async def fetch(self, target: Path, workdir: Path) -> None:
        archive = workdir / "source.zip"
        extracted = workdir / "extracted"
        await download_file(
            self.archive_url, archive, source=self.name, transport=self._transport
        )
        try:
            await asyncio.to_thread(_extract_zip, archive, extracted)
        except (zipfile.BadZipFile, OSError) as e:
            raise AcquisitionFailed(self.name, f"could not extract archive: {e}") from e
        source = find_archive_root(extracted, self.root_name)
        try:
            await asyncio.to_thread(shutil.move, str(source), str(target))
        except OSError as e:
            raise AcquisitionFailed(self.name, f"could not move extracted tree: {e}") from e
        _logging.debug(f"Extracted {self.archive_url} to {target}")


def default_strategies(settings) -> list[AcquisitionStrategy]:
    """Static preference order: git first, archive download second."""
    return [
        GitCloneStrategy(settings.repo_url, settings.branch),
        ArchiveDownloadStrategy(settings.archive_url, settings.archive_root_name),
    ]


__all__ = [
    "AcquisitionStrategy",
    "GitCloneStrategy",
    "ArchiveDownloadStrategy",
    "default_strategies",
    "find_archive_root",
]
