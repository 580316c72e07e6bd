"""Settings loading and validation."""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError, format_field_error
from .execution import DEFAULT_MAX_OUTPUT
from .paths import get_app_data_root, get_config_path, get_install_root

DEFAULT_REPO_URL = "https://github.com/graknol/ifs-cloud-core-mcp-server.git"
DEFAULT_ARCHIVE_URL = (
    "https://github.com/graknol/ifs-cloud-core-mcp-server/archive/refs/heads/main.zip"
)
DEFAULT_ARCHIVE_ROOT = "ifs-cloud-core-mcp-server-main"
DEFAULT_SERVER_MODULE = "src.ifs_cloud_mcp_server.main"

# Logical subcommand -> name on the server CLI.
DEFAULT_SUBCOMMANDS = {
    "list": "list",
    "import": "import",
    "delete": "delete",
    "download": "download",
    "analyze": "analyze",
    "calculate-rank": "calculate-rank",
    "embed": "embed",
    "reindex-lexical": "reindex-lexical",
    "server": "server",
}

_logging = logging.getLogger(__name__)


@dataclass
class Settings:
    """Runtime settings; every field has a working default."""

    install_root: Path = field(default_factory=get_install_root)
    data_root: Path = field(default_factory=get_app_data_root)
    repo_url: str = DEFAULT_REPO_URL
    branch: str = "main"
    archive_url: str = DEFAULT_ARCHIVE_URL
    archive_root_name: str = DEFAULT_ARCHIVE_ROOT
    server_module: str = DEFAULT_SERVER_MODULE
    python_version: str = "3.11"
    max_output_bytes: int = DEFAULT_MAX_OUTPUT
    grace_period: float = 2.0
    lock_timeout: float = 10.0
    server_name: str = "ifs-cloud-mcp-server"
    log_level: str = "INFO"
    subcommands: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SUBCOMMANDS))

    def subcommand(self, name: str) -> str:
        return self.subcommands.get(name, name)


_STRING_FIELDS = (
    "repo_url",
    "branch",
    "archive_url",
    "archive_root_name",
    "server_module",
    "python_version",
    "server_name",
    "log_level",
)
_NUMBER_FIELDS = ("grace_period", "lock_timeout")
_PATH_FIELDS = ("install_root", "data_root")


def validate_settings(data: Any) -> Settings:
    """Validate a raw mapping into ``Settings``.

    Raises:
        ConfigError: On unknown keys or wrongly typed values
    """
    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigError(f"Settings must be a mapping, got {type(data).__name__}")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for name in _STRING_FIELDS:
        if name in data:
            value = data[name]
            if not isinstance(value, str) or not value:
                raise ConfigError(format_field_error("settings", name, "must be a non-empty string"))
            values[name] = value

    for name in _NUMBER_FIELDS:
        if name in data:
            value = data[name]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ConfigError(format_field_error("settings", name, "must be a non-negative number"))
            values[name] = float(value)

    if "max_output_bytes" in data:
        value = data["max_output_bytes"]
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(
                format_field_error("settings", "max_output_bytes", "must be a positive integer")
            )
        values["max_output_bytes"] = value

    for name in _PATH_FIELDS:
        if name in data:
            value = data[name]
            if not isinstance(value, str) or not value:
                raise ConfigError(format_field_error("settings", name, "must be a path string"))
            values[name] = Path(value).expanduser()

    if "subcommands" in data:
        mapping = data["subcommands"]
        if not isinstance(mapping, dict) or not all(
            isinstance(k, str) and isinstance(v, str) and v for k, v in mapping.items()
        ):
            raise ConfigError(
                format_field_error("settings", "subcommands", "must map names to non-empty strings")
            )
        merged = dict(DEFAULT_SUBCOMMANDS)
        merged.update(mapping)
        values["subcommands"] = merged

    return Settings(**values)


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from YAML, falling back to defaults if the file is absent.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    config_path = path or get_config_path()
    if not config_path.exists():
        _logging.debug(f"No settings file at {config_path}, using defaults")
        return Settings()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Error reading settings file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Settings file {config_path} is not valid YAML: {e}") from e

    return validate_settings(data)


__all__ = [
    "DEFAULT_REPO_URL",
    "DEFAULT_ARCHIVE_URL",
    "DEFAULT_ARCHIVE_ROOT",
    "DEFAULT_SERVER_MODULE",
    "DEFAULT_SUBCOMMANDS",
    "Settings",
    "validate_settings",
    "load_settings",
]
