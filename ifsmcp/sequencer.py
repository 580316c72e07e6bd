"""Ordered server command pipelines with a remote-first fallback."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .bridge import CommandBridge
from .classifier import ErrorClassifier
from .errors import ErrorKind, StageFailed, StructuredError

# Called as on_progress(stage, position, total) before each stage runs.
ProgressCallback = Callable[["Stage", int, int], None]

LOCAL_FALLBACK_KINDS = frozenset(
    {ErrorKind.REMOTE_ARTIFACT_MISSING, ErrorKind.NETWORK_FAILURE}
)

_logging = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    name: str
    args: tuple[str, ...] = ()
    label: str = ""

    @property
    def title(self) -> str:
        return self.label or self.name


@dataclass
class PipelineResult:
    completed: list[str] = field(default_factory=list)
    used_fallback: bool = False
    remote_error: StructuredError | None = None


def _version_args(version: str) -> tuple[str, ...]:
    return ("--version", version)


def analyze_stage(version: str) -> Stage:
    return Stage("analyze", _version_args(version), "Analyzing source files")


def rank_stage(version: str) -> Stage:
    return Stage("calculate-rank", _version_args(version), "Calculating PageRank")


def lexical_stage(version: str) -> Stage:
    return Stage("reindex-lexical", _version_args(version), "Building BM25S index")


def embed_stage(version: str) -> Stage:
    return Stage("embed", _version_args(version), "Creating embeddings")


def download_stage(version: str) -> Stage:
    return Stage("download", (*_version_args(version), "--force"), "Downloading pre-built indexes")


def local_pipeline(version: str, include_embeddings: bool = False) -> list[Stage]:
    stages = [analyze_stage(version), rank_stage(version), lexical_stage(version)]
    if include_embeddings:
        stages.append(embed_stage(version))
    return stages


class CommandSequencer:
    """Runs stages strictly in order and stops at the first failure.

    Earlier stages' artifacts are left in place on failure; an analyzed but
    unindexed version is a valid intermediate state.
    """

    def __init__(
        self,
        bridge: CommandBridge,
        classifier: ErrorClassifier | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self.bridge = bridge
        self.classifier = classifier or bridge.classifier
        self.on_progress = on_progress

    async def run_stage(self, stage: Stage) -> None:
        """Run one stage, raising ``StageFailed`` on a non-zero exit."""
        result = await self.bridge.run(stage.name, stage.args)
        if result.exit_code != 0:
            error = self.classifier.classify(stage.name, result)
            _logging.debug(f"Stage '{stage.name}' failed: {error.kind.value}")
            raise StageFailed(stage.name, error)

    async def run_pipeline(self, stages: Sequence[Stage]) -> PipelineResult:
        """Run ``stages`` in order.

        Raises:
            StageFailed: Naming the first stage that exited non-zero
        """
        result = PipelineResult()
        total = len(stages)
        for position, stage in enumerate(stages, start=1):
            if self.on_progress:
                self.on_progress(stage, position, total)
            await self.run_stage(stage)
            result.completed.append(stage.name)
        return result

    async def run_with_remote_fallback(
        self, remote: Stage, local_stages: Sequence[Stage]
    ) -> PipelineResult:
        """Try ``remote``; on any non-zero exit run ``local_stages`` instead."""
        if self.on_progress:
            self.on_progress(remote, 0, len(local_stages))
        outcome = await self.bridge.run(remote.name, remote.args)
        if outcome.exit_code == 0:
            return PipelineResult(completed=[remote.name])

        remote_error = self.classifier.classify(remote.name, outcome)
        _logging.info(
            f"'{remote.name}' failed ({remote_error.kind.value}), running local pipeline"
        )
        result = await self.run_pipeline(local_stages)
        result.used_fallback = True
        result.remote_error = remote_error
        return result

    async def fast_setup(self, version: str) -> PipelineResult:
        return await self.run_with_remote_fallback(
            download_stage(version), local_pipeline(version)
        )

    async def complete_setup(self, version: str, include_embeddings: bool = False) -> PipelineResult:
        return await self.run_pipeline(local_pipeline(version, include_embeddings))

    async def analyze(self, version: str) -> PipelineResult:
        return await self.run_pipeline([analyze_stage(version)])

    async def calculate_rank(self, version: str) -> PipelineResult:
        return await self.run_pipeline([rank_stage(version)])

    async def embed(self, version: str) -> PipelineResult:
        return await self.run_pipeline([embed_stage(version)])

    async def reindex_lexical(self, version: str) -> PipelineResult:
        return await self.run_pipeline([lexical_stage(version)])

    async def download_indexes(self, version: str) -> PipelineResult:
        return await self.run_pipeline([download_stage(version)])

    async def import_archive(self, archive: Path) -> PipelineResult:
        return await self.run_pipeline(
            [Stage("import", (str(archive),), f"Importing {archive.name}")]
        )

    async def delete_version(self, version: str) -> PipelineResult:
        return await self.run_pipeline(
            [Stage("delete", (*_version_args(version), "--force"), f"Deleting {version}")]
        )


def offers_local_generation(error: StageFailed) -> bool:
    """Whether a failed download should be answered with local generation."""
    return error.kind in LOCAL_FALLBACK_KINDS


__all__ = [
    "LOCAL_FALLBACK_KINDS",
    "Stage",
    "PipelineResult",
    "CommandSequencer",
    "local_pipeline",
    "offers_local_generation",
]
