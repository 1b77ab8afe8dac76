"""Chat command interpreter.

Commands arrive as direct messages from allow-listed correspondents
(the receiver loop checks the allow-list before calling handle()).
Every reply goes back to the sender as a plain-text direct message.
"""

import logging
from typing import Awaitable, Callable, Optional

from .metrics import MetricLine, RelayMetrics

logger = logging.getLogger("xrelay.commands")

HELP_MESSAGE = """Help:
 - help
 - metrics
 - ping
 - quit"""


class CommandInterpreter:
    """Maps a normalised command string to a reply.

    Args:
        send_to: Coroutine delivering a reply to one recipient.
        close: Coroutine closing the session (``quit``).
        metrics: Counters for received commands.
        snapshot: Metrics snapshot provider; defaults to metrics.snapshot.
    """

    def __init__(
        self,
        send_to: Callable[[str, str], Awaitable[None]],
        close: Callable[[], Awaitable[None]],
        metrics: RelayMetrics,
        snapshot: Optional[Callable[[], list[MetricLine]]] = None,
    ):
        self._send_to = send_to
        self._close = close
        self._metrics = metrics
        self._snapshot = snapshot or metrics.snapshot
        self._commands = {
            "help": self._cmd_help,
            "metrics": self._cmd_metrics,
            "ping": self._cmd_ping,
            "quit": self._cmd_quit,
        }

    async def handle(self, sender: str, text: str):
        """Run one command for an already-authorised sender."""
        self._metrics.messages_received.labels(sender).inc()

        command = text.strip().casefold()
        handler = self._commands.get(command)
        if handler is None:
            logger.debug(f"Unknown command from {sender}: {text!r}")
            await self._send_to(sender, f"Unknown command: {text}\n{HELP_MESSAGE}")
            return

        logger.info(f"Command '{command}' from {sender}")
        await handler(sender)

    async def _cmd_help(self, sender: str):
        await self._send_to(sender, HELP_MESSAGE)

    async def _cmd_ping(self, sender: str):
        await self._send_to(sender, "pong")

    async def _cmd_metrics(self, sender: str):
        try:
            lines = self._snapshot()
        except Exception as e:
            logger.error(f"Could not fetch the metrics: {e}")
            await self._send_to(sender, f"Could not fetch the metrics: {e}")
            return
        for line in lines:
            await self._send_to(sender, line.render())

    async def _cmd_quit(self, sender: str):
        logger.warning(f"Shutdown requested by {sender}")
        await self._close()
