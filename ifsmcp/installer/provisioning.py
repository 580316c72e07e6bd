"""Virtual environment and dependency provisioning for the install root."""

import asyncio
import logging
import os
import platform
import shutil
import stat
import sys
import tarfile
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path

from ..config import Settings
from ..environment import GLOBAL_UV, portable_uv_dir, portable_uv_path
from ..errors import AcquisitionFailed, DependencyInstallFailed, IfsMcpError
from ..execution import run_process
from ..tui import Option, Prompter
from .download import download_file
from .tools import NVIDIA_SMI, UV

UV_RELEASE_URL = "https://github.com/astral-sh/uv/releases/latest/download/uv-{target}.{ext}"

CPU_FLAVOR = "cpu"
GPU_FLAVORS = ("gpu129", "gpu128", "gpu126")
GPU_FLAVOR_TITLES = {
    "gpu129": "CUDA 12.9 (recommended)",
    "gpu128": "CUDA 12.8",
    "gpu126": "CUDA 12.6",
}

_logging = logging.getLogger(__name__)


def uv_release_target(system: str | None = None, machine: str | None = None) -> tuple[str, str]:
    """Return the (target triple, archive extension) of the uv release to fetch."""
    system = system or sys.platform
    machine = (machine or platform.machine()).lower()
    arch = "aarch64" if machine in ("arm64", "aarch64") else "x86_64"
    if system == "win32":
        return f"{arch}-pc-windows-msvc", "zip"
    if system == "darwin":
        return f"{arch}-apple-darwin", "tar.gz"
    return f"{arch}-unknown-linux-gnu", "tar.gz"


def uv_release_url(system: str | None = None, machine: str | None = None) -> str:
    target, ext = uv_release_target(system, machine)
    return UV_RELEASE_URL.format(target=target, ext=ext)


def _extract_uv_binaries(archive: Path, dest: Path) -> None:
    """Copy the uv executables out of a release archive, ignoring its layout."""
    wanted = {"uv", "uvx", "uv.exe", "uvx.exe", "uvw.exe"}
    dest.mkdir(parents=True, exist_ok=True)
    if archive.name.endswith(".zip"):
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                name = Path(info.filename).name
                if not info.is_dir() and name in wanted:
                    with zf.open(info) as src, open(dest / name, "wb") as out:
                        shutil.copyfileobj(src, out)
        return

    with tarfile.open(archive, "r:gz") as tf:
        for member in tf.getmembers():
            name = Path(member.name).name
            if not member.isfile() or name not in wanted:
                continue
            src = tf.extractfile(member)
            if src is None:
                continue
            with src, open(dest / name, "wb") as out:
                shutil.copyfileobj(src, out)
            path = dest / name
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


@dataclass
class ProvisionResult:
    uv: str = ""
    venv: Path | None = None
    flavor: str | None = None
    gpu_detected: bool | None = None
    synced: bool = False
    cancelled: bool = False


class RuntimeProvisioner:
    """Recreates ``<root>/venv`` and installs the server's dependencies."""

    def __init__(
        self,
        settings: Settings,
        prompter: Prompter,
        runner=run_process,
        transport=None,
    ):
        self.settings = settings
        self.prompter = prompter
        self._runner = runner
        self._transport = transport

    async def ensure_uv(self, install_root: Path) -> str:
        """Return a uv executable, downloading the portable copy if needed.

        Raises:
            DependencyInstallFailed: If uv is absent and cannot be downloaded
        """
        if UV.is_available():
            return GLOBAL_UV
        portable = portable_uv_path(install_root)
        if portable.exists():
            return str(portable)

        url = uv_release_url()
        _logging.info(f"uv not found, downloading portable copy from {url}")
        with tempfile.TemporaryDirectory() as tmp:
            archive = Path(tmp) / url.rsplit("/", 1)[-1]
            try:
                await download_file(url, archive, source="uv download", transport=self._transport)
                await asyncio.to_thread(_extract_uv_binaries, archive, portable_uv_dir(install_root))
            except AcquisitionFailed as e:
                raise DependencyInstallFailed(f"Could not download uv: {e}") from e
            except (OSError, tarfile.TarError, zipfile.BadZipFile) as e:
                raise DependencyInstallFailed(f"Could not extract uv: {e}") from e

        if not portable.exists():
            raise DependencyInstallFailed(f"uv archive from {url} did not contain {portable.name}")
        return str(portable)

    async def validate_gpu(self) -> bool:
        """True when ``nvidia-smi`` lists at least one GPU."""
        if not NVIDIA_SMI.is_available():
            return False
        try:
            result = await self._runner(
                [NVIDIA_SMI.executable, "--query-gpu=name", "--format=csv,noheader,nounits"]
            )
        except IfsMcpError as e:
            _logging.debug(f"nvidia-smi probe failed: {e}")
            return False
        return result.exit_code == 0 and bool(result.stdout.strip())

    async def choose_flavor(self) -> tuple[str | None, bool | None]:
        """Ask for CPU or GPU; returns (flavor, gpu_detected).

        A cancelled CUDA build choice returns ``(None, None)``.
        """
        kind = await self.prompter.select(
            "Which dependency build should be installed?",
            [
                Option("CPU (works everywhere)", CPU_FLAVOR),
                Option("GPU (NVIDIA CUDA)", "gpu"),
            ],
            default=CPU_FLAVOR,
        )
        if kind != "gpu":
            return CPU_FLAVOR, None

        flavor = await self.prompter.select(
            "Which CUDA build?",
            [Option(GPU_FLAVOR_TITLES[f], f) for f in GPU_FLAVORS],
            default=GPU_FLAVORS[0],
        )
        if flavor is None:
            return None, None

        detected = await self.validate_gpu()
        if detected:
            return flavor, True

        _logging.warning("nvidia-smi did not report a GPU")
        choice = await self.prompter.select(
            "CUDA/nvidia-smi not detected. GPU acceleration may not work properly.",
            [
                Option("Continue with GPU", flavor),
                Option("Switch to CPU", CPU_FLAVOR),
            ],
            default=flavor,
        )
        return (choice or flavor), False

    async def provision(self, install_root: Path) -> ProvisionResult:
        """Create the venv pinned to ``settings.python_version`` and sync.

        Raises:
            DependencyInstallFailed: If the venv or ``uv sync`` fails
        """
        uv = await self.ensure_uv(install_root)
        venv = install_root / "venv"
        result = ProvisionResult(uv=uv, venv=venv)

        if venv.exists():
            _logging.debug(f"Removing stale virtual environment {venv}")
            await asyncio.to_thread(shutil.rmtree, venv)

        created = await self._runner(
            [uv, "venv", str(venv), "--python", self.settings.python_version],
            cwd=install_root,
        )
        if created.exit_code != 0:
            raise DependencyInstallFailed(
                f"Failed to create virtual environment: {created.stderr.strip() or created.stdout.strip()}"
            )

        if not (install_root / "pyproject.toml").exists():
            _logging.warning(f"No pyproject.toml in {install_root}, skipping dependency sync")
            return result

        flavor, detected = await self.choose_flavor()
        if flavor is None:
            result.cancelled = True
            return result
        result.flavor = flavor
        result.gpu_detected = detected

        env = dict(os.environ)
        env["VIRTUAL_ENV"] = str(venv)
        synced = await self._runner(
            [uv, "sync", "--extra", flavor],
            cwd=install_root,
            env=env,
        )
        if synced.exit_code != 0:
            raise DependencyInstallFailed(
                f"Failed to install dependencies ({flavor}): "
                f"{synced.stderr.strip() or synced.stdout.strip()}"
            )
        result.synced = True
        return result


__all__ = [
    "CPU_FLAVOR",
    "GPU_FLAVORS",
    "ProvisionResult",
    "RuntimeProvisioner",
    "uv_release_target",
    "uv_release_url",
]
