"""Check command."""

import click
from rich.table import Table

from . import cli
from .shared import console, load_or_exit


@cli.command()
@click.option("--config", "-c", "config_path", required=True, type=click.Path(dir_okay=False),
              help="JSON configuration file")
def check(config_path):
    """Validate a configuration file without connecting."""
    settings = load_or_exit(config_path)
    xmpp = settings.xmpp

    table = Table(title="xrelay configuration", show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    table.add_row("Account", xmpp.user)
    table.add_row("Server", xmpp.override_server or "[dim]DNS records[/dim]")
    table.add_row("TLS", "[red]disabled[/red]" if xmpp.no_tls else
                  ("[yellow]insecure[/yellow]" if xmpp.tls_insecure else "[green]verified[/green]"))
    table.add_row("Status", xmpp.status)
    table.add_row("Format", settings.format.value)
    table.add_row("Queue size", str(settings.queue_size))
    table.add_row("Startup message", settings.startup_message or "[dim]none[/dim]")
    table.add_row("Recipients", "\n".join(xmpp.send_notif) or "[dim]none[/dim]")
    rooms = [
        f"{room.room} as {room.nick}" + (" (protected)" if room.password else "")
        for room in xmpp.send_muc
    ]
    table.add_row("Rooms", "\n".join(rooms) or "[dim]none[/dim]")

    console.print(table)
    if not xmpp.send_notif and not xmpp.send_muc:
        console.print("[yellow]No recipients or rooms configured; broadcasts go nowhere.[/yellow]")
