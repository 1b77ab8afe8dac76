"""Shared utilities for xrelay CLI commands."""

import json

import click
from pydantic import ValidationError
from rich.console import Console

from xrelay.config import RelaySettings, load_settings

console = Console()


def load_or_exit(config_path: str) -> RelaySettings:
    """Load settings, printing a readable error and exiting 2 on failure."""
    try:
        return load_settings(config_path)
    except OSError as e:
        console.print(f"[red]Cannot read the configuration file:[/red] {e}")
    except json.JSONDecodeError as e:
        console.print(f"[red]Configuration is not valid JSON:[/red] {e}")
    except ValidationError as e:
        console.print("[red]Invalid configuration:[/red]")
        for err in e.errors():
            loc = ".".join(str(part) for part in err["loc"])
            console.print(f"  [bold]{loc}[/bold]: {err['msg']}")
    raise click.exceptions.Exit(2)
