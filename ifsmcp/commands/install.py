"""Install command implementation."""

import logging

import click

from ifsmcp.commands.utils import AppContext, build_context, run_async
from ifsmcp.installer import InstallAction, InstallOrchestrator, scan_tools
from ifsmcp.installer.tools import BUILTIN_TOOLS, ToolStatus

_logging = logging.getLogger(__name__)


def display_tool_table(statuses: list[ToolStatus]) -> None:
    hints = {tool.name: tool.install_hint for tool in BUILTIN_TOOLS}
    minimums = {tool.name: tool.min_version for tool in BUILTIN_TOOLS}
    width = max((len(s.name) for s in statuses), default=0)
    for status in statuses:
        version = status.version or ("found" if status.available else "missing")
        line = f"  {status.status_icon} {status.name:<{width}}  {version}"
        if status.available and not status.version_satisfied:
            click.secho(f"{line}  (needs >= {minimums.get(status.name)})", fg="yellow")
        elif status.available:
            click.echo(line)
        else:
            click.secho(line, fg="yellow")
            click.secho(f"      {hints.get(status.name, '')}", dim=True)


@click.command()
@click.option("--yes", "-y", is_flag=True, help="Accept the default answer to every question")
@click.pass_context
def install(ctx, yes: bool):
    """Install, update or reinstall the IFS Cloud MCP server."""
    app = build_context(ctx, yes)
    run_async(run_install(app))


async def run_install(app: AppContext):
    click.echo(f"Install root: {app.settings.install_root}")
    click.echo("Checking tools:")
    display_tool_table(await scan_tools())

    orchestrator = InstallOrchestrator(app.settings, app.prompter)
    outcome = await orchestrator.install()

    if outcome.action is InstallAction.CANCELLED:
        click.echo("Installation cancelled.")
        return

    via = f" via {outcome.strategy}" if outcome.strategy else ""
    if outcome.fell_back:
        click.secho("⚠️  Update failed, the server was reinstalled from scratch", fg="yellow")
    click.secho(f"✅ MCP server {outcome.action.value}{via}", fg="green")

    provision = outcome.provision
    if provision is None:
        return
    if provision.cancelled:
        click.secho(
            "⚠️  Dependency installation was cancelled; the server will not work until "
            "'ifsmcp install' is run again",
            fg="yellow",
        )
    elif provision.synced:
        click.echo(f"Dependencies installed ({provision.flavor})")
    if provision.gpu_detected is False:
        click.secho("⚠️  No NVIDIA GPU was detected; GPU acceleration may not work", fg="yellow")
