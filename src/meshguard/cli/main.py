# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""MeshGuard command-line entry point."""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from meshguard import __version__
from meshguard.cli.guard import guard


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(__version__, prog_name="meshguard")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def app(verbose: bool):
    """MeshGuard - Allow/deny filtering for stdio MCP servers.

    Wraps an MCP server and controls which tools, prompts and resources
    its client can see and use.
    """
    _configure_logging(verbose)


app.add_command(guard)


def main():
    app()


if __name__ == "__main__":
    main()
