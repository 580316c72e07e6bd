"""Per-version indexing commands and the index download."""

import click

from ifsmcp.commands.utils import AppContext, build_context, resolve_version, run_async
from ifsmcp.errors import StageFailed, format_structured_error
from ifsmcp.sequencer import offers_local_generation


@click.command()
@click.argument("version", required=False)
@click.option("--yes", "-y", is_flag=True, help="Generate locally without asking if the download fails")
@click.pass_context
def download(ctx, version: str | None, yes: bool):
    """Download pre-built indexes for a version."""
    app = build_context(ctx, yes)
    run_async(run_download(app, version))


async def run_download(app: AppContext, version: str | None):
    version = await resolve_version(app, version)
    sequencer = app.sequencer()
    try:
        await sequencer.download_indexes(version)
    except StageFailed as e:
        if not offers_local_generation(e):
            raise
        click.secho(format_structured_error(e.error), fg="yellow", err=True)
        generate = await app.prompter.confirm(
            "Pre-built indexes are not available. Generate them locally instead?",
            default=True,
        )
        if not generate:
            raise
        await sequencer.complete_setup(version)
        click.secho(f"✅ Indexes for {version} generated locally", fg="green")
        return
    click.secho(f"✅ Indexes for {version} downloaded", fg="green")


def _single_stage_command(name: str, method: str, help_text: str, done: str):
    @click.command(name=name, help=help_text)
    @click.argument("version", required=False)
    @click.pass_context
    def command(ctx, version: str | None):
        app = build_context(ctx)
        run_async(_run_single(app, version, method, done))

    return command


async def _run_single(app: AppContext, version: str | None, method: str, done: str):
    version = await resolve_version(app, version)
    await getattr(app.sequencer(), method)(version)
    click.secho(f"✅ {done} for {version}", fg="green")


analyze = _single_stage_command(
    "analyze", "analyze", "Analyze the source files of a version.", "Analysis complete"
)
rank = _single_stage_command(
    "rank", "calculate_rank", "Calculate PageRank scores for a version.", "PageRank calculated"
)
embed = _single_stage_command(
    "embed", "embed", "Create vector embeddings for a version.", "Embeddings created"
)
reindex = _single_stage_command(
    "reindex", "reindex_lexical", "Rebuild the BM25S lexical index for a version.", "BM25S index rebuilt"
)
