"""CLI command definitions for ifsmcp."""

import click

from ifsmcp.commands.indexing import analyze, download, embed, rank, reindex
from ifsmcp.commands.install import install
from ifsmcp.commands.server import server, toggle
from ifsmcp.commands.setup import setup
from ifsmcp.commands.versions import (
    delete,
    import_archive,
    list_versions,
    status,
    versions_local,
)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug output for troubleshooting")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    envvar="IFSMCP_CONFIG",
    help="Settings file (default: ~/.config/ifsmcp/settings.yaml)",
)
@click.pass_context
def cli(ctx, debug, config_path):
    """Install, set up and run the IFS Cloud MCP server."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = config_path


cli.add_command(install)
cli.add_command(list_versions, name="list")
cli.add_command(status)
cli.add_command(import_archive, name="import")
cli.add_command(delete)
cli.add_command(download)
cli.add_command(analyze)
cli.add_command(rank)
cli.add_command(embed)
cli.add_command(reindex)
cli.add_command(setup)
cli.add_command(server)
cli.add_command(toggle)
cli.add_command(versions_local, name="versions-local")

__all__ = ["cli"]


if __name__ == "__main__":
    cli()
