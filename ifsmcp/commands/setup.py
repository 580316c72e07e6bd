"""Setup workflows: fast (download first) and complete (local)."""

import click

from ifsmcp.commands.utils import AppContext, build_context, resolve_version, run_async
from ifsmcp.errors import format_structured_error


@click.group()
def setup():
    """Prepare a version so the MCP server can use it."""


@setup.command()
@click.argument("version", required=False)
@click.pass_context
def fast(ctx, version: str | None):
    """Download pre-built indexes, or build them locally if unavailable."""
    app = build_context(ctx)
    run_async(run_fast(app, version))


async def run_fast(app: AppContext, version: str | None):
    version = await resolve_version(app, version)
    result = await app.sequencer().fast_setup(version)
    if result.used_fallback and result.remote_error is not None:
        click.secho(
            "Download unavailable, indexes were generated locally:\n"
            + format_structured_error(result.remote_error),
            fg="yellow",
            err=True,
        )
    click.secho(f"✅ {version} is ready", fg="green")


@setup.command()
@click.argument("version", required=False)
@click.option("--embeddings/--no-embeddings", default=False, help="Also create vector embeddings")
@click.pass_context
def complete(ctx, version: str | None, embeddings: bool):
    """Run analysis, PageRank and BM25S indexing locally."""
    app = build_context(ctx)
    run_async(run_complete(app, version, embeddings))


async def run_complete(app: AppContext, version: str | None, embeddings: bool):
    version = await resolve_version(app, version)
    result = await app.sequencer().complete_setup(version, include_embeddings=embeddings)
    click.secho(f"✅ {version}: {', '.join(result.completed)}", fg="green")
