"""Run the MCP server in the foreground."""

import asyncio
import logging

import click

from ifsmcp.commands.utils import AppContext, build_context, run_async
from ifsmcp.installer import is_install_locked
from ifsmcp.readiness import ready_versions
from ifsmcp.status import StatusAggregator, ToggleResult
from ifsmcp.tui import Option, pick_version

_logging = logging.getLogger(__name__)


def echo_stdout(line: str) -> None:
    click.echo(line)


def echo_stderr(line: str) -> None:
    click.echo(f"STDERR: {line}", err=True)


async def wait_in_foreground(app: AppContext) -> int | None:
    """Wait for the server; on cancellation (Ctrl-C) stop it in two phases."""
    try:
        return await app.session.wait()
    except asyncio.CancelledError:
        if app.session.is_alive:
            click.echo("Stopping MCP server...", err=True)
            await app.session.stop()
        raise


def _run_foreground(app: AppContext, coro) -> None:
    try:
        code = run_async(coro)
    except KeyboardInterrupt:
        click.echo("MCP server stopped.", err=True)
        return
    if code:
        click.echo(f"MCP server exited with code {code}", err=True)


async def _offer_setup(app: AppContext, versions) -> bool:
    action = await app.prompter.select(
        "No version is ready to serve. Set one up now?",
        [
            Option("Fast setup (download pre-built indexes)", "fast"),
            Option("Complete setup (build indexes locally)", "complete"),
            Option("Cancel", "cancel"),
        ],
        default="cancel",
    )
    if action not in ("fast", "complete"):
        return False

    picked = await pick_version(app.prompter, versions, "Select a version to set up:")
    if picked is None:
        raise click.Abort()
    sequencer = app.sequencer()
    if action == "fast":
        await sequencer.fast_setup(picked.id)
    else:
        await sequencer.complete_setup(picked.id)
    click.secho(f"✅ {picked.id} is ready", fg="green")
    return True


async def pick_ready_version(app: AppContext) -> str:
    """Pick a ready version, offering to set one up when none is ready."""
    versions = await app.bridge.list_versions()
    if not versions:
        raise click.UsageError("No versions found; import one with 'ifsmcp import <zip>'")

    ready = ready_versions(versions)
    if not ready and await _offer_setup(app, versions):
        ready = ready_versions(await app.bridge.list_versions())
    if not ready:
        raise click.UsageError("No ready versions found; run 'ifsmcp setup fast <version>' first")

    picked = await pick_version(app.prompter, ready, "Select version to serve:")
    if picked is None:
        raise click.Abort()
    return picked.id


@click.command()
@click.argument("version", required=False)
@click.pass_context
def server(ctx, version: str | None):
    """Start the MCP server for a version and stream its output.

    The server runs in the foreground and belongs to this invocation; press
    Ctrl-C to stop it. When no version is ready, a fast or complete setup is
    offered first.
    """
    app = build_context(ctx)
    _run_foreground(app, run_server(app, version))


async def run_server(app: AppContext, version: str | None) -> int | None:
    await app.bridge.check_cli()
    if not version:
        version = await pick_ready_version(app)
    await app.session.start(version, on_stdout=echo_stdout, on_stderr=echo_stderr)
    click.echo(f"MCP server running for {version} (Ctrl-C to stop)", err=True)
    return await wait_in_foreground(app)


@click.command()
@click.pass_context
def toggle(ctx):
    """Start the server if a version is ready, otherwise show the next step.

    Each invocation owns the server it starts, so a server started by another
    ifsmcp process is not seen here; stop a running server with Ctrl-C.
    """
    app = build_context(ctx)
    _run_foreground(app, run_toggle(app))


async def run_toggle(app: AppContext) -> int | None:
    root = app.settings.install_root
    aggregator = StatusAggregator(
        app.bridge, app.session, install_in_progress=lambda: is_install_locked(root)
    )

    async def picker(versions):
        return await pick_version(app.prompter, versions)

    result = await aggregator.toggle(picker, on_stdout=echo_stdout, on_stderr=echo_stderr)
    if result is ToggleResult.NEEDS_INSTALL:
        click.echo("The MCP server is not installed (or is being installed). Run 'ifsmcp install'.")
        return None
    if result is ToggleResult.NEEDS_SETUP:
        if aggregator.versions:
            click.echo("No version is ready. Run 'ifsmcp setup fast <version>' first.")
        else:
            click.echo("No versions imported. Run 'ifsmcp import <zip>' first.")
        return None
    if result is ToggleResult.CANCELLED:
        click.echo("Cancelled.")
        return None
    if result is ToggleResult.STOPPED:
        click.echo("MCP server stopped.")
        return None

    click.echo(f"MCP server running for {app.session.version} (Ctrl-C to stop)", err=True)
    return await wait_in_foreground(app)
