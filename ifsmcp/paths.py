"""Filesystem locations used by ifsmcp and the MCP server."""

import os
import sys
from pathlib import Path

APP_DIR_NAME = "ifs_cloud_mcp_server"
SERVER_DIR_NAME = "server"
INDEXES_DIR_NAME = "indexes"
RESERVED_INDEX_NAME = "latest"


def get_data_dir() -> Path:
    """Return the platform application-data directory.

    - Windows: %APPDATA% (or ~/AppData/Roaming)
    - macOS: ~/Library/Application Support
    - Others: $XDG_DATA_HOME (or ~/.local/share)
    """
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        return Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.environ.get("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_app_data_root() -> Path:
    """Return the server's application-data root.

    Priority:
    1. IFSMCP_DATA_ROOT environment variable (if set)
    2. <data dir>/ifs_cloud_mcp_server
    """
    if "IFSMCP_DATA_ROOT" in os.environ:
        return Path(os.environ["IFSMCP_DATA_ROOT"])
    return get_data_dir() / APP_DIR_NAME


def get_install_root() -> Path:
    """Return the directory the server source and venv are installed into.

    Priority:
    1. IFSMCP_INSTALL_ROOT environment variable (if set)
    2. <data dir>/ifs_cloud_mcp_server/server
    """
    if "IFSMCP_INSTALL_ROOT" in os.environ:
        return Path(os.environ["IFSMCP_INSTALL_ROOT"])
    return get_data_dir() / APP_DIR_NAME / SERVER_DIR_NAME


def get_indexes_dir(data_root: Path | None = None) -> Path:
    return (data_root or get_app_data_root()) / INDEXES_DIR_NAME


def get_config_dir() -> Path:
    """Return XDG-compliant config directory: ~/.config/ifsmcp"""
    return Path.home() / ".config" / "ifsmcp"


def get_config_path() -> Path:
    """Return path to the user settings file.

    Priority:
    1. IFSMCP_CONFIG environment variable (if set)
    2. ~/.config/ifsmcp/settings.yaml
    """
    if "IFSMCP_CONFIG" in os.environ:
        return Path(os.environ["IFSMCP_CONFIG"])
    return get_config_dir() / "settings.yaml"


def discover_local_versions(indexes_dir: Path | None = None) -> list[str]:
    """List version ids that have index data on disk.

    Only immediate, non-empty subdirectories count; the reserved
    ``latest`` entry is skipped.
    """
    indexes_dir = indexes_dir or get_indexes_dir()
    if not indexes_dir.is_dir():
        return []

    versions = []
    for entry in indexes_dir.iterdir():
        if not entry.is_dir() or entry.name == RESERVED_INDEX_NAME:
            continue
        if any(entry.iterdir()):
            versions.append(entry.name)
    return sorted(versions)
