"""Error types and formatting utilities.

Every failure this package can surface is an ``IfsMcpError`` carrying an
``ErrorKind``; callers at the CLI boundary catch the base class and render it
with ``format_error`` / ``format_suggestion`` / ``format_structured_error``.

Error Style Guide:
- User-facing errors use 'Error: ' prefix
- Hints follow the message as '. Hint: <hint>'
- Suggestions are rendered as a bulleted 'Suggestions:' block
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ErrorKind(Enum):
    ENVIRONMENT_NOT_FOUND = "environment_not_found"
    NOT_INSTALLED = "not_installed"
    OUTPUT_TOO_LARGE = "output_too_large"
    PROCESS_SPAWN_FAILED = "process_spawn_failed"
    COMMAND_FAILED = "command_failed"
    NETWORK_FAILURE = "network_failure"
    VERSION_NOT_FOUND = "version_not_found"
    NOT_ANALYZED = "not_analyzed"
    DEPENDENCY_INSTALL_FAILED = "dependency_install_failed"
    REMOTE_ARTIFACT_MISSING = "remote_artifact_missing"


@dataclass(frozen=True)
class StructuredError:
    """A classified command failure with remediation hints."""

    kind: ErrorKind
    message: str
    originating_command: str
    suggestions: tuple[str, ...] = field(default_factory=tuple)
    exit_code: int | None = None


class IfsMcpError(Exception):
    """Base class for all errors raised by ifsmcp."""

    kind = ErrorKind.COMMAND_FAILED

    def __init__(self, message: str, suggestions: tuple[str, ...] = ()):
        super().__init__(message)
        self.message = message
        self.suggestions = tuple(suggestions)


class EnvironmentNotFound(IfsMcpError):
    """Neither the global nor the portable uv could be probed."""

    kind = ErrorKind.ENVIRONMENT_NOT_FOUND

    def __init__(self, probes: list[str]):
        self.probes = list(probes)
        attempted = ", ".join(self.probes) if self.probes else "none"
        super().__init__(
            f"uv not found (probes attempted: {attempted})",
            (
                "Install uv globally: https://docs.astral.sh/uv/",
                "Or reinstall the MCP server to download a portable uv",
            ),
        )


class NotInstalled(IfsMcpError):
    kind = ErrorKind.NOT_INSTALLED

    def __init__(self, install_root: Path):
        self.install_root = install_root
        super().__init__(
            f"IFS Cloud MCP Server is not installed ({install_root})",
            ("Run 'ifsmcp install' first",),
        )


class OutputTooLarge(IfsMcpError):
    kind = ErrorKind.OUTPUT_TOO_LARGE

    def __init__(self, command: str, limit: int):
        self.command = command
        self.limit = limit
        super().__init__(f"Output of '{command}' exceeded {limit} bytes")


class ProcessSpawnFailed(IfsMcpError):
    kind = ErrorKind.PROCESS_SPAWN_FAILED

    def __init__(self, command: str, reason: str):
        self.command = command
        super().__init__(f"Could not start '{command}': {reason}")


class CommandFailed(IfsMcpError):
    """A buffered command exited non-zero; wraps its classified error."""

    def __init__(self, error: StructuredError):
        self.error = error
        self.kind = error.kind
        super().__init__(error.message, error.suggestions)

    @property
    def exit_code(self) -> int | None:
        return self.error.exit_code


class StageFailed(CommandFailed):
    """A pipeline stage failed; later stages were not run."""

    def __init__(self, stage: str, error: StructuredError):
        self.stage = stage
        super().__init__(error)


class DependencyInstallFailed(IfsMcpError):
    kind = ErrorKind.DEPENDENCY_INSTALL_FAILED

    def __init__(self, message: str):
        super().__init__(
            message,
            (
                "The server will not work without its dependencies",
                "Re-run 'ifsmcp install' and choose Reinstall",
            ),
        )


class AcquisitionFailed(IfsMcpError):
    """One acquisition strategy could not produce a source tree."""

    def __init__(self, strategy: str, message: str, kind: ErrorKind = ErrorKind.COMMAND_FAILED):
        self.strategy = strategy
        self.kind = kind
        super().__init__(f"{strategy}: {message}")


class InstallFailed(IfsMcpError):
    """Every acquisition strategy failed."""

    def __init__(self, failures: list[str]):
        self.failures = list(failures)
        super().__init__(
            "Installation failed: " + "; ".join(self.failures),
            ("Check your network connection and retry",),
        )


class InstallLocked(IfsMcpError):
    def __init__(self, install_root: Path):
        self.install_root = install_root
        super().__init__(
            f"Another install or update is running for {install_root}",
            ("Wait for it to finish and retry",),
        )


class ServerAlreadyRunning(IfsMcpError):
    def __init__(self, pid: int | None):
        self.pid = pid
        super().__init__(f"MCP server is already running (pid {pid})")


class ServerNotRunning(IfsMcpError):
    def __init__(self):
        super().__init__("MCP server is not running")


class ConfigError(IfsMcpError):
    """Raised when the settings file cannot be read or validated."""


def format_error(message: str) -> str:
    """Format an error message with consistent prefix.

    Examples:
        >>> format_error("version '25.1.0' not found")
        "Error: version '25.1.0' not found"
    """
    return f"Error: {message}"


def format_field_error(entity: str, field_name: str, issue: str) -> str:
    """Format a field validation error.

    Examples:
        >>> format_field_error("settings", "grace_period", "must be a number")
        "settings field 'grace_period' must be a number"
    """
    return f"{entity} field '{field_name}' {issue}"


def format_suggestion(message: str, suggestion: str) -> str:
    """Format an error message with a helpful suggestion.

    Examples:
        >>> format_suggestion("server not installed", "run 'ifsmcp install'")
        "Error: server not installed. Hint: run 'ifsmcp install'"
    """
    return f"{format_error(message)}. Hint: {suggestion}"


def format_structured_error(error: StructuredError) -> str:
    """Render a classified command failure the way it is shown to users."""
    message = f"Command '{error.originating_command}' failed: {error.message}"
    if error.suggestions:
        message += "\n\nSuggestions:"
        for suggestion in error.suggestions:
            message += f"\n  • {suggestion}"
    return message


__all__ = [
    "ErrorKind",
    "StructuredError",
    "IfsMcpError",
    "EnvironmentNotFound",
    "NotInstalled",
    "OutputTooLarge",
    "ProcessSpawnFailed",
    "CommandFailed",
    "StageFailed",
    "DependencyInstallFailed",
    "AcquisitionFailed",
    "InstallFailed",
    "InstallLocked",
    "ServerAlreadyRunning",
    "ServerNotRunning",
    "ConfigError",
    "format_error",
    "format_field_error",
    "format_suggestion",
    "format_structured_error",
]
