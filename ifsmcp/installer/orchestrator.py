"""Fresh install, update and reinstall of the server source tree."""

import asyncio
import contextlib
import logging
import os
import re
import secrets
import shutil
import tempfile
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..config import Settings
from ..errors import AcquisitionFailed, IfsMcpError, InstallFailed
from ..execution import run_process
from ..tui import Option, Prompter
from .acquisition import AcquisitionStrategy, default_strategies
from .lock import install_lock
from .provisioning import ProvisionResult, RuntimeProvisioner
from .tools import GIT

VERSION_PATTERN = re.compile(r'^\s*version\s*=\s*"([^"]+)"', re.MULTILINE)
SHORT_SHA_LENGTH = 7

_logging = logging.getLogger(__name__)


def same_version(current: str, latest: str) -> bool:
    """Compare version ids, treating one commit abbreviation as a prefix of the other.

    git lengthens ``--short`` output when seven characters are ambiguous, so
    a local ``abc1234d`` and a remote ``abc1234`` name the same commit.
    """
    return current.startswith(latest) or latest.startswith(current)


class InstallAction(Enum):
    INSTALLED = "installed"
    UPDATED = "updated"
    REINSTALLED = "reinstalled"
    CANCELLED = "cancelled"


@dataclass
class InstallOutcome:
    action: InstallAction
    strategy: str | None = None
    current_version: str | None = None
    latest_version: str | None = None
    provision: ProvisionResult | None = None
    fell_back: bool = False


class InstallOrchestrator:
    """Installs into ``settings.install_root`` under the install lock.

    New trees are built in a sibling ``<root>.staging-*`` directory and moved
    onto the root with ``os.replace``, so the root is either absent, the old
    tree, or the complete new tree.
    """

    def __init__(
        self,
        settings: Settings,
        prompter: Prompter,
        strategies: list[AcquisitionStrategy] | None = None,
        provisioner: RuntimeProvisioner | None = None,
        runner=run_process,
    ):
        self.settings = settings
        self.prompter = prompter
        self.strategies = strategies if strategies is not None else default_strategies(settings)
        self.provisioner = provisioner or RuntimeProvisioner(settings, prompter, runner=runner)
        self._runner = runner
        self._lock_held = False

    @property
    def install_root(self) -> Path:
        return self.settings.install_root

    @contextlib.asynccontextmanager
    async def _locked(self) -> AsyncIterator[None]:
        if self._lock_held:
            yield
            return
        async with install_lock(self.install_root, self.settings.lock_timeout):
            self._lock_held = True
            try:
                yield
            finally:
                self._lock_held = False

    async def install(self) -> InstallOutcome:
        async with self._locked():
            if self.install_root.exists():
                return await self.reconcile()
            return await self.fresh_install()

    async def fresh_install(self) -> InstallOutcome:
        """Acquire the source tree, then provision the runtime.

        Raises:
            InstallFailed: If every acquisition strategy failed
            DependencyInstallFailed: If provisioning failed
        """
        async with self._locked():
            existed = self.install_root.exists()
            strategy = await self._acquire()
            provision = await self.provision_runtime()
            return InstallOutcome(
                action=InstallAction.REINSTALLED if existed else InstallAction.INSTALLED,
                strategy=strategy,
                provision=provision,
            )

    async def provision_runtime(self) -> ProvisionResult:
        async with self._locked():
            return await self.provisioner.provision(self.install_root)

    async def reconcile(self) -> InstallOutcome:
        """Offer update, reinstall or cancel for an existing install."""
        async with self._locked():
            current = await self.current_version()
            latest = await self.latest_version()
            choice = await self._ask_reconcile(current, latest)

            if choice == "update":
                outcome = await self._update()
            elif choice == "reinstall":
                outcome = await self.fresh_install()
            else:
                outcome = InstallOutcome(action=InstallAction.CANCELLED)

            outcome.current_version = current
            outcome.latest_version = latest
            return outcome

    async def _ask_reconcile(self, current: str | None, latest: str | None) -> str | None:
        if current and latest and not same_version(current, latest):
            return await self.prompter.select(
                f"Update available: {current} -> {latest}",
                [
                    Option("Update (git pull)", "update"),
                    Option("Reinstall from scratch", "reinstall"),
                    Option("Cancel", "cancel"),
                ],
                default="update",
            )
        if current and latest:
            return await self.prompter.select(
                f"The MCP server is up to date ({current})",
                [Option("Reinstall anyway", "reinstall"), Option("Cancel", "cancel")],
                default="cancel",
            )
        return await self.prompter.select(
            "The MCP server is installed but its version could not be determined",
            [Option("Reinstall", "reinstall"), Option("Cancel", "cancel")],
            default="reinstall",
        )

    async def _update(self) -> InstallOutcome:
        try:
            await self._pull()
        except IfsMcpError as e:
            _logging.warning(f"Update failed, reinstalling instead: {e}")
            outcome = await self.fresh_install()
            outcome.fell_back = True
            return outcome

        provision = await self.provision_runtime()
        return InstallOutcome(action=InstallAction.UPDATED, strategy="git pull", provision=provision)

    async def _pull(self) -> None:
        if not (self.install_root / ".git").exists():
            raise AcquisitionFailed("git pull", f"{self.install_root} is not a git checkout")
        if not GIT.is_available():
            raise AcquisitionFailed("git pull", "git is not installed")
        for args in (["fetch", "origin"], ["pull", "origin", self.settings.branch]):
            result = await self._runner([GIT.executable, *args], cwd=self.install_root)
            if result.exit_code != 0:
                raise AcquisitionFailed(
                    f"git {args[0]}", result.stderr.strip() or f"exit code {result.exit_code}"
                )

    async def current_version(self) -> str | None:
        """Short commit of a git checkout, else the pyproject version."""
        root = self.install_root
        if (root / ".git").exists() and GIT.is_available():
            try:
                result = await self._runner(
                    [GIT.executable, "rev-parse", f"--short={SHORT_SHA_LENGTH}", "HEAD"], cwd=root
                )
            except IfsMcpError as e:
                _logging.debug(f"git rev-parse failed: {e}")
            else:
                if result.exit_code == 0 and result.stdout.strip():
                    return result.stdout.strip()

        pyproject = root / "pyproject.toml"
        if pyproject.exists():
            match = VERSION_PATTERN.search(pyproject.read_text(encoding="utf-8", errors="replace"))
            if match:
                return match.group(1)
        return None

    async def latest_version(self) -> str | None:
        """First seven characters of the remote HEAD commit."""
        if not GIT.is_available():
            return None
        try:
            result = await self._runner(
                [GIT.executable, "ls-remote", self.settings.repo_url, "HEAD"]
            )
        except IfsMcpError as e:
            _logging.debug(f"git ls-remote failed: {e}")
            return None
        if result.exit_code != 0 or not result.stdout.strip():
            return None
        return result.stdout.split()[0][:SHORT_SHA_LENGTH]

    def _new_staging_dir(self) -> Path:
        self.install_root.parent.mkdir(parents=True, exist_ok=True)
        return Path(
            tempfile.mkdtemp(
                prefix=f"{self.install_root.name}.staging-", dir=self.install_root.parent
            )
        )

    async def _acquire(self) -> str:
        """Run the strategies in order until one produces a tree.

        The staging directory is removed on every exit path, including
        cancellation.
        """
        failures = []
        try:
            staging = self._new_staging_dir()
        except OSError as e:
            raise InstallFailed([f"could not create a staging directory: {e}"]) from e
        try:
            for index, strategy in enumerate(self.strategies):
                if not strategy.is_available():
                    _logging.info(f"Skipping {strategy.name}: not available")
                    failures.append(f"{strategy.name}: not available")
                    continue

                tree = staging / "tree"
                workdir = staging / f"work-{index}"
                try:
                    workdir.mkdir()
                    await strategy.fetch(tree, workdir)
                except (AcquisitionFailed, OSError) as e:
                    failure = str(e) if isinstance(e, AcquisitionFailed) else f"{strategy.name}: {e}"
                    _logging.warning(f"{strategy.name} failed: {e}")
                    failures.append(failure)
                    await asyncio.to_thread(shutil.rmtree, tree, True)
                    continue

                try:
                    await asyncio.to_thread(self._commit, tree)
                except OSError as e:
                    raise InstallFailed(
                        [f"{strategy.name}: could not move the new tree into place: {e}"]
                    ) from e
                _logging.info(f"Installed {self.install_root} via {strategy.name}")
                return strategy.name
        finally:
            await asyncio.to_thread(shutil.rmtree, staging, True)

        raise InstallFailed(failures)

    def _commit(self, tree: Path) -> None:
        root = self.install_root
        if not root.exists():
            os.replace(tree, root)
            return
        retired = root.with_name(f"{root.name}.old-{secrets.token_hex(4)}")
        os.replace(root, retired)
        try:
            os.replace(tree, root)
        except OSError:
            os.replace(retired, root)
            raise
        shutil.rmtree(retired, ignore_errors=True)


__all__ = ["InstallAction", "InstallOutcome", "InstallOrchestrator", "same_version"]
