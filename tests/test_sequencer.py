"""Tests for stage pipelines and the remote-first fallback."""

import asyncio

import pytest

from ifsmcp.bridge import CommandBridge
from ifsmcp.errors import ErrorKind, StageFailed
from ifsmcp.models import CommandResult
from ifsmcp.sequencer import CommandSequencer, Stage, local_pipeline, offers_local_generation

from .conftest import FakeResolver, FakeRunner

OK = CommandResult(0, "", "")


def _sequencer(settings, responses, progress=None):
    runner = FakeRunner(responses)
    bridge = CommandBridge(settings, resolver=FakeResolver(settings.install_root), runner=runner)
    return CommandSequencer(bridge, on_progress=progress), runner


class TestRunPipeline:
    def test_runs_all_stages_in_order(self, settings):
        sequencer, runner = _sequencer(settings, {})

        result = asyncio.run(sequencer.run_pipeline([Stage("a"), Stage("b"), Stage("c")]))

        assert runner.names() == ["a", "b", "c"]
        assert result.completed == ["a", "b", "c"]
        assert result.used_fallback is False

    def test_aborts_at_first_failure(self, settings):
        sequencer, runner = _sequencer(settings, {"b": CommandResult(1, "", "Version 9 is not analyzed")})

        with pytest.raises(StageFailed) as excinfo:
            asyncio.run(sequencer.run_pipeline([Stage("a"), Stage("b"), Stage("c")]))

        assert runner.names() == ["a", "b"]
        assert excinfo.value.stage == "b"
        assert excinfo.value.kind is ErrorKind.NOT_ANALYZED
        assert excinfo.value.exit_code == 1

    def test_reports_progress(self, settings):
        seen = []
        sequencer, _ = _sequencer(settings, {}, progress=lambda s, i, n: seen.append((s.name, i, n)))

        asyncio.run(sequencer.run_pipeline([Stage("a"), Stage("b")]))

        assert seen == [("a", 1, 2), ("b", 2, 2)]


class TestRemoteFallback:
    def test_remote_success_skips_local(self, settings):
        sequencer, runner = _sequencer(settings, {"download": OK})

        result = asyncio.run(sequencer.fast_setup("25.1.0"))

        assert runner.names() == ["download"]
        assert result.completed == ["download"]
        assert result.used_fallback is False

    def test_remote_failure_runs_local_pipeline(self, settings):
        sequencer, runner = _sequencer(
            settings, {"download": CommandResult(1, "", "No release found for 25.1.0")}
        )

        result = asyncio.run(sequencer.fast_setup("25.1.0"))

        assert runner.names() == ["download", "analyze", "calculate-rank", "reindex-lexical"]
        assert result.used_fallback is True
        assert result.remote_error.kind is ErrorKind.REMOTE_ARTIFACT_MISSING

    def test_any_nonzero_exit_falls_back(self, settings):
        sequencer, runner = _sequencer(settings, {"remote": CommandResult(7, "", "")})

        asyncio.run(sequencer.run_with_remote_fallback(Stage("remote"), [Stage("local")]))

        assert runner.names() == ["remote", "local"]

    def test_local_failure_after_fallback_propagates(self, settings):
        sequencer, runner = _sequencer(
            settings,
            {"remote": CommandResult(1, "", ""), "a": CommandResult(1, "", "x")},
        )

        with pytest.raises(StageFailed) as excinfo:
            asyncio.run(
                sequencer.run_with_remote_fallback(Stage("remote"), [Stage("a"), Stage("b")])
            )

        assert excinfo.value.stage == "a"
        assert "b" not in runner.names()


class TestWorkflows:
    def test_download_arguments(self, settings):
        sequencer, runner = _sequencer(settings, {})
        asyncio.run(sequencer.download_indexes("25.1.0"))
        assert runner.calls[0][5:] == ["download", "--version", "25.1.0", "--force"]

    def test_complete_setup_with_embeddings(self, settings):
        sequencer, runner = _sequencer(settings, {})

        asyncio.run(sequencer.complete_setup("25.1.0", include_embeddings=True))

        assert runner.names() == ["analyze", "calculate-rank", "reindex-lexical", "embed"]
        assert all(call[6:] == ["--version", "25.1.0"] for call in runner.calls)

    def test_delete_is_forced(self, settings):
        sequencer, runner = _sequencer(settings, {})
        asyncio.run(sequencer.delete_version("25.1.0"))
        assert runner.calls[0][5:] == ["delete", "--version", "25.1.0", "--force"]

    def test_import_passes_archive_path(self, settings, tmp_path):
        sequencer, runner = _sequencer(settings, {})
        archive = tmp_path / "build.zip"
        asyncio.run(sequencer.import_archive(archive))
        assert runner.calls[0][5:] == ["import", str(archive)]

    @pytest.mark.parametrize(
        "method,name",
        [
            ("analyze", "analyze"),
            ("calculate_rank", "calculate-rank"),
            ("embed", "embed"),
            ("reindex_lexical", "reindex-lexical"),
        ],
    )
    def test_single_stage_helpers(self, settings, method, name):
        sequencer, runner = _sequencer(settings, {})
        asyncio.run(getattr(sequencer, method)("1"))
        assert runner.names() == [name]


@pytest.mark.parametrize(
    "stderr,expected",
    [
        ("No combined asset found", True),
        ("connection refused", True),
        ("Please import the version first", False),
        ("something else", False),
    ],
)
def test_offers_local_generation(settings, stderr, expected):
    sequencer, _ = _sequencer(settings, {"download": CommandResult(1, "", stderr)})

    with pytest.raises(StageFailed) as excinfo:
        asyncio.run(sequencer.download_indexes("1"))

    assert offers_local_generation(excinfo.value) is expected


def test_local_pipeline_order():
    assert [s.name for s in local_pipeline("1")] == ["analyze", "calculate-rank", "reindex-lexical"]
