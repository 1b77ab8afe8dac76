"""xrelay CLI — command line interface."""

import click
from xrelay import __version__
from .shared import console


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="xrelay")
@click.pass_context
def cli(ctx):
    """xrelay — relay alert notifications over XMPP"""
    if ctx.invoked_subcommand is None:
        _show_help()


def _show_help():
    """Show all available commands."""
    console.print(f"[bold]xrelay v{__version__}[/bold] — relay alert notifications over XMPP\n")

    commands = [
        ("start", "Connect and relay notifications until stopped"),
        ("check", "Validate a configuration file and show its destinations"),
    ]
    for name, desc in commands:
        console.print(f"    [bold]xrelay {name:8s}[/bold] {desc}")
    console.print()
    console.print("[dim]Run 'xrelay <command> --help' for details on a specific command.[/dim]")


# Import all command modules (registers commands onto cli group)
from . import cmd_start  # noqa: E402, F401
from . import cmd_check  # noqa: E402, F401
