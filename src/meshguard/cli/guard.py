# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""
MeshGuard guard command

Runs an MCP server behind the guard proxy.

Usage:
    meshguard guard --allow tools:read_* --deny tools:write_* \\
        npx -y @modelcontextprotocol/server-filesystem ~
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from meshguard.config import GuardConfig, parse_pattern_specs
from meshguard.exceptions import ConfigurationError
from meshguard.proxy.session import EXIT_FAILURE, run_guard

logger = logging.getLogger(__name__)

# stdout carries the protocol stream; everything human-readable goes to stderr.
console = Console(stderr=True)

_ALLOW_FLAGS = ("--allow", "-a")
_DENY_FLAGS = ("--deny", "-d")


def _extract_patterns(args: list[str]) -> tuple[list[str], list[str], list[str]]:
    """Pull allow/deny flags out of the trailing arguments, wherever they sit."""
    allow_specs: list[str] = []
    deny_specs: list[str] = []
    command: list[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in _ALLOW_FLAGS and i + 1 < len(args):
            allow_specs.append(args[i + 1])
            i += 2
        elif arg in _DENY_FLAGS and i + 1 < len(args):
            deny_specs.append(args[i + 1])
            i += 2
        else:
            command.append(arg)
            i += 1
    return allow_specs, deny_specs, command


def _print_filtering(config: GuardConfig, command: list[str]) -> None:
    lines = list(config.policy().describe())
    console.print("[bold blue]Guard filtering configuration:[/bold blue]")
    if not lines:
        console.print("  [dim]no patterns configured, everything is allowed[/dim]")
    for line in lines:
        style = "green" if line.startswith("Allowing") else "red"
        console.print(f"  [{style}]{escape(line)}[/{style}]", highlight=False)
    console.print(
        f"Running command with filtered environment: {escape(' '.join(command))}",
        highlight=False,
    )


@click.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.option(
    "--allow",
    "-a",
    "allow_specs",
    multiple=True,
    metavar="TYPE:PATTERN[,...]",
    help="Allow entities matching the pattern (repeatable).",
)
@click.option(
    "--deny",
    "-d",
    "deny_specs",
    multiple=True,
    metavar="TYPE:PATTERN[,...]",
    help="Deny entities matching the pattern (repeatable).",
)
@click.option(
    "--policy-file",
    "-p",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML file with allow/deny lists.",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Guard log location (default: ~/.meshguard/logs/guard.log).",
)
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def guard(
    allow_specs: tuple,
    deny_specs: tuple,
    policy_file: Optional[Path],
    log_file: Optional[Path],
    command: tuple,
):
    """
    Filter tools, prompts, and resources using allow and deny patterns.

    Patterns are TYPE:GLOB items, comma separated. TYPE is tools,
    prompts or resources; a pattern without a type filters tools.
    * matches any sequence of characters. Deny always wins over allow.

    --allow and --deny are also picked out of the arguments after COMMAND,
    so they are never passed to the server.

    Examples:

        meshguard guard --allow tools:read_* --deny edit_*,write_* \\
            npx -y @modelcontextprotocol/server-filesystem ~

        meshguard guard --allow prompts:system_* --deny tools:execute_* \\
            python my_server.py
    """
    target_cmd = list(command)
    if target_cmd and target_cmd[0] == "--":
        target_cmd = target_cmd[1:]
    trailing_allow, trailing_deny, target_cmd = _extract_patterns(target_cmd)

    if not target_cmd:
        click.echo("Error: command to execute is required", err=True)
        click.echo(
            "Example: meshguard guard --allow tools:read_* "
            "npx -y @modelcontextprotocol/server-filesystem ~",
            err=True,
        )
        sys.exit(EXIT_FAILURE)

    try:
        config = GuardConfig.from_file(policy_file) if policy_file else GuardConfig()
        config = config.with_patterns(
            parse_pattern_specs(list(allow_specs) + trailing_allow),
            parse_pattern_specs(list(deny_specs) + trailing_deny),
        )
        log_path = log_file or (config.resolved_log_dir() / "guard.log")
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILURE)

    _print_filtering(config, target_cmd)

    try:
        code = run_guard(target_cmd, policy=config.policy(), log_path=log_path)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILURE)
    except KeyboardInterrupt:
        logger.info("Guard stopped")
        code = 0
    sys.exit(code)
