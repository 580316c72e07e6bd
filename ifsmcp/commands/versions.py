"""Commands for listing, importing and deleting versions."""

import json
import logging
from dataclasses import asdict
from pathlib import Path

import click

from ifsmcp.commands.utils import (
    AppContext,
    build_context,
    format_version_line,
    resolve_version,
    run_async,
)
from ifsmcp.installer import is_install_locked
from ifsmcp.paths import discover_local_versions, get_indexes_dir
from ifsmcp.readiness import readiness_disagreements
from ifsmcp.status import ConsoleStatusDisplay, StatusAggregator

_logging = logging.getLogger(__name__)


def _version_json(version) -> dict:
    data = asdict(version)
    for key, value in data.items():
        if isinstance(value, Path):
            data[key] = str(value)
    data["created_at"] = version.created_raw
    data.pop("created_raw", None)
    data["is_ready"] = version.derived_ready
    return data


@click.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="Print the versions as JSON")
@click.pass_context
def list_versions(ctx, as_json: bool):
    """List imported versions and their index state."""
    app = build_context(ctx)
    run_async(run_list(app, as_json))


async def run_list(app: AppContext, as_json: bool):
    versions = await app.bridge.list_versions()
    if as_json:
        click.echo(json.dumps([_version_json(v) for v in versions], indent=2))
        return
    if not versions:
        click.echo("No versions imported. Use 'ifsmcp import <zip>' to add one.")
        return
    for version in versions:
        click.echo(format_version_line(version))


@click.command()
@click.pass_context
def status(ctx):
    """Show the overall MCP server status.

    A server is reported as running only by the invocation that started it;
    this command sees the install state and the imported versions.
    """
    app = build_context(ctx)
    run_async(run_status(app))


async def run_status(app: AppContext):
    root = app.settings.install_root
    aggregator = StatusAggregator(
        app.bridge,
        app.session,
        ConsoleStatusDisplay(),
        install_in_progress=lambda: is_install_locked(root),
    )
    await aggregator.refresh()

    for version in aggregator.versions:
        click.echo(f"  {format_version_line(version)}")
    for version in readiness_disagreements(aggregator.versions):
        click.secho(
            f"  ⚠️  {version.id}: server reports is_ready={version.reported_ready}, "
            f"indexes say {version.derived_ready}",
            fg="yellow",
        )


@click.command(name="import")
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_archive(ctx, archive: Path):
    """Import an IFS Cloud deployment ZIP."""
    app = build_context(ctx)
    run_async(run_import(app, archive))


async def run_import(app: AppContext, archive: Path):
    await app.sequencer().import_archive(archive.resolve())
    click.secho(f"✅ Imported {archive.name}", fg="green")
    click.echo("Next: run 'ifsmcp setup fast <version>' to build or download its indexes")


@click.command()
@click.argument("version", required=False)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx, version: str | None, yes: bool):
    """Delete an imported version and its indexes."""
    app = build_context(ctx, yes)
    run_async(run_delete(app, version, yes))


async def run_delete(app: AppContext, version: str | None, yes: bool = False):
    version = await resolve_version(app, version)
    confirmed = yes or await app.prompter.confirm(
        f"Delete version {version} and all of its data?", default=False
    )
    if not confirmed:
        click.echo("Cancelled.")
        return
    await app.sequencer().delete_version(version)
    click.secho(f"✅ Deleted {version}", fg="green")


@click.command(name="versions-local")
@click.pass_context
def versions_local(ctx):
    """List version directories present under the indexes directory."""
    app = build_context(ctx)
    indexes_dir = get_indexes_dir(app.settings.data_root)
    versions = discover_local_versions(indexes_dir)
    if not versions:
        click.echo(f"No local index directories in {indexes_dir}")
        return
    for version in versions:
        click.echo(version)
