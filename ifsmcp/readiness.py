"""Reduce version records and server liveness to one status."""

import logging
from collections.abc import Iterable

from .models import Status, VersionRecord

_logging = logging.getLogger(__name__)


def ready_versions(versions: Iterable[VersionRecord]) -> list[VersionRecord]:
    """Versions whose rank, lexical and vector indexes all exist, in input order."""
    return [v for v in versions if v.derived_ready]


def readiness_disagreements(versions: Iterable[VersionRecord]) -> list[VersionRecord]:
    """Versions whose self-reported ``is_ready`` differs from the index flags."""
    return [v for v in versions if v.readiness_disagrees]


def derive_status(versions: list[VersionRecord], server_alive: bool) -> Status:
    """Pure reduction used by every status refresh.

    A live server dominates. Otherwise the ready partition is computed from
    the index flags only; the server's own ``is_ready`` is never consulted.
    """
    if server_alive:
        return Status.server_running()
    if not versions:
        return Status.no_versions()

    ready = ready_versions(versions)
    if ready:
        return Status.versions_ready(len(ready))
    return Status.versions_need_setup(len(versions))


def warn_disagreements(versions: Iterable[VersionRecord]) -> list[VersionRecord]:
    disagreeing = readiness_disagreements(versions)
    for version in disagreeing:
        _logging.warning(
            f"Version {version.id} reports is_ready={version.reported_ready} "
            f"but its index flags say {version.derived_ready}"
        )
    return disagreeing


__all__ = [
    "derive_status",
    "ready_versions",
    "readiness_disagreements",
    "warn_disagreements",
]
