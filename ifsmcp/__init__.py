"""Manage the IFS Cloud MCP server: install it, drive its CLI, run it."""

import logging

from .errors import IfsMcpError

__version__ = "0.1.0"


def setup_logging(debug: bool = False):
    """Route log records to stderr; DEBUG when ``debug`` is set, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


__all__ = [
    "__version__",
    "IfsMcpError",
    "setup_logging",
]
