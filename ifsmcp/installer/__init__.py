"""Installation, update and runtime provisioning of the MCP server."""

from .acquisition import (
    AcquisitionStrategy,
    ArchiveDownloadStrategy,
    GitCloneStrategy,
    default_strategies,
)
from .lock import install_lock, is_install_locked, lock_path_for
from .orchestrator import InstallAction, InstallOrchestrator, InstallOutcome
from .provisioning import ProvisionResult, RuntimeProvisioner
from .tools import BUILTIN_TOOLS, Tool, ToolStatus, scan_tools

__all__ = [
    "AcquisitionStrategy",
    "ArchiveDownloadStrategy",
    "GitCloneStrategy",
    "default_strategies",
    "install_lock",
    "is_install_locked",
    "lock_path_for",
    "InstallAction",
    "InstallOrchestrator",
    "InstallOutcome",
    "ProvisionResult",
    "RuntimeProvisioner",
    "BUILTIN_TOOLS",
    "Tool",
    "ToolStatus",
    "scan_tools",
]
