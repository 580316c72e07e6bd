"""Properties of the status reduction, checked over every flag combination."""

import itertools

import pytest

from ifsmcp.models import Status, StatusState
from ifsmcp.readiness import (
    derive_status,
    readiness_disagreements,
    ready_versions,
    warn_disagreements,
)

from .conftest import make_version

# (rank, lexical, vector, reported_ready)
FLAG_COMBINATIONS = list(itertools.product([False, True], repeat=4))


def _records(combos):
    return [
        make_version(f"v{i}", rank=r, lexical=l, vector=v, reported_ready=rep)
        for i, (r, l, v, rep) in enumerate(combos)
    ]


def _version_sets(max_size: int = 2):
    for size in range(0, max_size + 1):
        yield from itertools.product(FLAG_COMBINATIONS, repeat=size)


class TestDeriveStatus:
    def test_server_alive_dominates(self):
        for combos in _version_sets():
            assert derive_status(_records(combos), server_alive=True) == Status.server_running()

    def test_no_versions(self):
        assert derive_status([], server_alive=False) == Status.no_versions()

    def test_ready_count_matches_fully_indexed_records(self):
        for combos in _version_sets():
            versions = _records(combos)
            expected = sum(1 for r, l, v, _ in combos if r and l and v)
            status = derive_status(versions, server_alive=False)

            if not versions:
                continue
            if expected:
                assert status == Status.versions_ready(expected)
                assert status.count <= len(versions)
            else:
                assert status.state is StatusState.VERSIONS_NEED_SETUP

    def test_need_setup_ignores_self_reported_ready(self):
        for combos in _version_sets():
            if not combos or any(r and l and v for r, l, v, _ in combos):
                continue
            status = derive_status(_records(combos), server_alive=False)
            assert status == Status.versions_need_setup(len(combos))

    def test_deterministic(self):
        versions = _records(FLAG_COMBINATIONS)
        assert derive_status(versions, False) == derive_status(versions, False)


def test_ready_versions_keeps_input_order():
    versions = [
        make_version("a", rank=True, lexical=True, vector=True),
        make_version("b"),
        make_version("c", rank=True, lexical=True, vector=True),
    ]
    assert [v.id for v in ready_versions(versions)] == ["a", "c"]


def test_readiness_disagreements():
    versions = [
        make_version("claims-ready", reported_ready=True),
        make_version("agrees", rank=True, lexical=True, vector=True),
        make_version("modest", rank=True, lexical=True, vector=True, reported_ready=False),
    ]
    assert [v.id for v in readiness_disagreements(versions)] == ["claims-ready", "modest"]


def test_warn_disagreements_logs(caplog):
    with caplog.at_level("WARNING"):
        warn_disagreements([make_version("x", reported_ready=True)])
    assert "x reports is_ready=True" in caplog.text


@pytest.mark.parametrize("alive", [True, False])
def test_empty_with_liveness(alive):
    expected = Status.server_running() if alive else Status.no_versions()
    assert derive_status([], alive) == expected
