"""xrelay — Main entry point."""

import asyncio
import logging
import signal
from typing import Optional

from .config import RelaySettings
from .metrics import RelayMetrics
from .session import Session

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("xrelay")


def configure_logging(debug: bool = False, log_file: Optional[str] = None):
    """Console logging, plus a file handler when log_file is set."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=logging.INFO, format=_log_format, handlers=handlers, force=True)
    if debug:
        logger.setLevel(logging.DEBUG)
        # slixmpp is very chatty at DEBUG
        logging.getLogger("slixmpp").setLevel(logging.INFO)


async def run(settings: RelaySettings, metrics: Optional[RelayMetrics] = None):
    """Connect and relay until the session shuts down.

    SIGINT/SIGTERM stop the wait; the session is closed on the way out.
    Construction errors propagate.
    """
    metrics = metrics or RelayMetrics()
    stopped = asyncio.Event()

    session = await Session.connect(settings, metrics, on_shutdown=stopped.set)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stopped.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    logger.info("xrelay is running. Press Ctrl+C to stop.")
    try:
        await stopped.wait()
    finally:
        await session.close()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                pass
    logger.info("xrelay stopped.")

