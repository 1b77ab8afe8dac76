"""Start command."""

import asyncio
import click

from . import cli
from .shared import console, load_or_exit


@cli.command()
@click.option("--config", "-c", "config_path", required=True, type=click.Path(dir_okay=False),
              help="JSON configuration file")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(config_path, debug):
    """Connect to the XMPP server and relay notifications."""
    from xrelay.communication.errors import SessionStartError
    from xrelay.main import configure_logging, run

    settings = load_or_exit(config_path)
    configure_logging(debug or settings.debug, settings.log_file)

    console.print("[bold blue]Starting xrelay...[/bold blue]")
    try:
        asyncio.run(run(settings))
    except SessionStartError as e:
        console.print(f"[red]Cannot start the XMPP client:[/red] {e}")
        raise click.exceptions.Exit(1)
    except KeyboardInterrupt:
        pass
