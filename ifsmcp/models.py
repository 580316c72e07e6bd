"""Data models shared across the bridge, readiness and status layers."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class EnvironmentCandidate:
    invocation: tuple[str, ...]
    probe: tuple[str, ...]
    priority: int
    is_portable: bool = False


@dataclass(frozen=True)
class ResolvedEnvironment:
    executable_invocation: tuple[str, ...]
    is_portable: bool
    install_root: Path

    @property
    def uv_executable(self) -> str:
        """The uv binary at the head of the invocation."""
        return self.executable_invocation[0]


@dataclass(frozen=True)
class VersionFlags:
    has_analysis: bool = False
    has_lexical_index: bool = False
    has_vector_index: bool = False
    has_rank: bool = False
    has_hybrid_search: bool = False
    has_full_analysis: bool = False


# The server emits bm25s/faiss/pagerank names; generic names are accepted too.
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("version", "id"),
    "extract_path": ("extract_path",),
    "index_path": ("index_path",),
    "analysis_path": ("analysis_path",),
    "lexical_index_path": ("bm25s_path", "lexical_index_path"),
    "vector_index_path": ("faiss_path", "vector_index_path"),
    "rank_path": ("pagerank_path", "rank_path"),
    "has_analysis": ("has_analysis",),
    "has_lexical_index": ("has_bm25s", "has_lexical_index"),
    "has_vector_index": ("has_faiss", "has_vector_index"),
    "has_rank": ("has_pagerank", "has_rank"),
    "has_hybrid_search": ("has_hybrid_search",),
    "has_full_analysis": ("has_full_analysis",),
    "is_ready": ("is_ready",),
    "file_count": ("file_count",),
    "created_at": ("created", "created_at"),
}

_FLAG_FIELDS = (
    "has_analysis",
    "has_lexical_index",
    "has_vector_index",
    "has_rank",
    "has_hybrid_search",
    "has_full_analysis",
)

_PATH_FIELDS = (
    "extract_path",
    "index_path",
    "analysis_path",
    "lexical_index_path",
    "vector_index_path",
    "rank_path",
)


def _lookup(data: dict[str, Any], name: str) -> Any:
    for key in _FIELD_ALIASES[name]:
        if key in data:
            return data[key]
    return None


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class VersionRecord:
    """Read-only snapshot of one imported version, as listed by the server.

    ``reported_ready`` is whatever the server claimed; ``derived_ready`` is the
    conjunction of the three index flags and is the one the status layer uses.
    """

    id: str
    extract_path: Path | None = None
    index_path: Path | None = None
    analysis_path: Path | None = None
    lexical_index_path: Path | None = None
    vector_index_path: Path | None = None
    rank_path: Path | None = None
    flags: VersionFlags = field(default_factory=VersionFlags)
    reported_ready: bool = False
    file_count: int = 0
    created_at: datetime | None = None
    created_raw: str | None = None

    @property
    def derived_ready(self) -> bool:
        return (
            self.flags.has_rank
            and self.flags.has_lexical_index
            and self.flags.has_vector_index
        )

    @property
    def readiness_disagrees(self) -> bool:
        return self.reported_ready != self.derived_ready

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "VersionRecord":
        """Build a record from one element of ``list --json`` output.

        Raises:
            ValueError: If the element is not an object or has no version id
        """
        if not isinstance(data, dict):
            raise ValueError(f"version entry must be an object, got {type(data).__name__}")

        version_id = _lookup(data, "id")
        if not isinstance(version_id, str) or not version_id:
            raise ValueError("version entry is missing a non-empty 'version'")

        paths = {}
        for name in _PATH_FIELDS:
            value = _lookup(data, name)
            paths[name] = Path(value) if isinstance(value, str) and value else None

        flags = VersionFlags(**{name: bool(_lookup(data, name)) for name in _FLAG_FIELDS})

        file_count = _lookup(data, "file_count")
        if not isinstance(file_count, int) or isinstance(file_count, bool):
            file_count = 0

        created = _lookup(data, "created_at")

        return cls(
            id=version_id,
            flags=flags,
            reported_ready=bool(_lookup(data, "is_ready")),
            file_count=file_count,
            created_at=_parse_timestamp(created),
            created_raw=created if isinstance(created, str) else None,
            **paths,
        )


class StatusState(Enum):
    NOT_INSTALLED = "not_installed"
    INSTALL_IN_PROGRESS = "install_in_progress"
    NO_VERSIONS = "no_versions"
    VERSIONS_NEED_SETUP = "versions_need_setup"
    VERSIONS_READY = "versions_ready"
    SERVER_RUNNING = "server_running"


@dataclass(frozen=True)
class Status:
    """One user-facing status; ``count`` is set only for the two version states."""

    state: StatusState
    count: int | None = None

    @classmethod
    def not_installed(cls) -> "Status":
        return cls(StatusState.NOT_INSTALLED)

    @classmethod
    def install_in_progress(cls) -> "Status":
        return cls(StatusState.INSTALL_IN_PROGRESS)

    @classmethod
    def no_versions(cls) -> "Status":
        return cls(StatusState.NO_VERSIONS)

    @classmethod
    def versions_need_setup(cls, count: int) -> "Status":
        return cls(StatusState.VERSIONS_NEED_SETUP, count)

    @classmethod
    def versions_ready(cls, count: int) -> "Status":
        return cls(StatusState.VERSIONS_READY, count)

    @classmethod
    def server_running(cls) -> "Status":
        return cls(StatusState.SERVER_RUNNING)


__all__ = [
    "CommandResult",
    "EnvironmentCandidate",
    "ResolvedEnvironment",
    "VersionFlags",
    "VersionRecord",
    "StatusState",
    "Status",
]
