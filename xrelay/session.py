"""Session — one long-lived chat connection and the two tasks that drive it.

Data flow:
    send()/send_to() ──► OutboundQueue ──► sender loop ──► transport
    transport ──► receiver loop ──► PresenceHandler
                                └─► CommandInterpreter ──► send_to()

Everything runs on one event loop. The allow-list and the room list are
fixed at construction and only read afterwards. The closed flag is
checked and set with no await in between, so exactly one close() caller
performs the teardown.

Usage:
    session = await Session.connect(settings, metrics, on_shutdown=stop.set)
    await session.send("disk full on db1", Format.TEXT)
    ...
    await session.close()
"""

import asyncio
import logging
from typing import Callable, Iterable, Optional

from .channels.base import Transport
from .commands import CommandInterpreter
from .communication.allowlist import AllowList
from .communication.errors import (
    SessionStartError,
    TransportEOF,
    TransportError,
    UnknownChatTypeError,
    UnknownFormatError,
)
from .communication.messages import (
    ChatType,
    Format,
    InboundChat,
    InboundEvent,
    InboundPresence,
    OutboundMessage,
    bare_jid,
)
from .communication.queue import OutboundQueue
from .config import RelaySettings
from .metrics import MetricLine, RelayMetrics, SessionInfoCollector
from .presence import PresenceHandler

logger = logging.getLogger("xrelay.session")

# Presence advertised while the relay is up / after close
STATUS_SHOW = "chat"
UNAVAILABLE_STATUS = "No monitoring"

# Receiver fault policy
MAX_RECV_ERRORS = 5
RECV_BACKOFF = 1.0


def _exit_process(error: BaseException):
    """Default escalation for persistent receive faults: end the process."""
    raise SystemExit(1) from error


class Session:
    """Owns the transport, the outbound queue and the sender/receiver tasks.

    Build it with Session.connect(); the constructor only wires objects
    together and assumes the transport is already connected.

    Args:
        transport: Connected transport. The session owns it from now on.
        allow_list: Correspondents receiving broadcasts and allowed to
            send commands or subscribe.
        rooms: Joined group rooms, in delivery order.
        metrics: Metrics sink the session registers itself with.
        status: Presence status text re-asserted when forced offline.
        queue_size: Outbound queue bound (producers block beyond it).
        drain_timeout: Seconds close() waits for the sender to drain.
        on_shutdown: Called once at the end of teardown.
        on_fatal: Called once when receive faults persist; the default
            raises SystemExit.
        recv_backoff: Seconds to sleep after a transient receive fault.
        snapshot: Metrics snapshot provider for the ``metrics`` command.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        allow_list: AllowList,
        rooms: Iterable[str] = (),
        metrics: RelayMetrics,
        status: str = "",
        queue_size: int = 16,
        drain_timeout: float = 10.0,
        on_shutdown: Optional[Callable[[], None]] = None,
        on_fatal: Callable[[BaseException], None] = _exit_process,
        recv_backoff: float = RECV_BACKOFF,
        snapshot: Optional[Callable[[], list[MetricLine]]] = None,
    ):
        self._transport = transport
        self.allow_list = allow_list
        self.rooms: tuple[str, ...] = tuple(rooms)
        self._metrics = metrics
        self._queue = OutboundQueue(queue_size)
        self._drain_timeout = drain_timeout
        self._on_shutdown = on_shutdown
        self._on_fatal = on_fatal
        self._recv_backoff = recv_backoff

        self._closed = False
        self._closed_event = asyncio.Event()
        self._sender_task: Optional[asyncio.Task] = None
        self._receiver_task: Optional[asyncio.Task] = None

        self._collector = SessionInfoCollector(
            jid=lambda: transport.jid,
            encrypted=lambda: transport.is_encrypted,
        )
        self._commands = CommandInterpreter(self.send_to, self.close, metrics, snapshot)
        self._presence = PresenceHandler(transport, allow_list, STATUS_SHOW, status)

    @classmethod
    async def connect(
        cls,
        settings: RelaySettings,
        metrics: RelayMetrics,
        on_shutdown: Optional[Callable[[], None]] = None,
        *,
        transport: Optional[Transport] = None,
        **kwargs,
    ) -> "Session":
        """Handshake, join every configured room, then start the loops.

        Any failure closes the transport before raising, so no half-open
        connection survives a failed construction.

        Raises:
            SessionStartError: the handshake or a room join failed.
        """
        if transport is None:
            from .channels.xmpp import XMPPTransport
            transport = XMPPTransport(settings.xmpp)

        xmpp = settings.xmpp
        try:
            await transport.connect()
            for room in xmpp.send_muc:
                await transport.join_room(room.room, room.nick, room.password)
        except BaseException as e:
            await _close_quietly(transport)
            if isinstance(e, TransportError):
                raise SessionStartError(f"Could not start the XMPP session: {e}") from e
            raise

        session = cls(
            transport,
            allow_list=AllowList(xmpp.send_notif),
            rooms=[room.room for room in xmpp.send_muc],
            metrics=metrics,
            status=xmpp.status,
            queue_size=settings.queue_size,
            drain_timeout=settings.drain_timeout,
            on_shutdown=on_shutdown,
            **kwargs,
        )
        session.start()

        if settings.startup_message:
            await session.send(settings.startup_message, settings.format)
        return session

    def start(self):
        """Register for metrics and spawn the sender and receiver tasks."""
        if self._sender_task is not None:
            logger.warning("Session already started")
            return
        self._metrics.register(self._collector)
        self._sender_task = asyncio.create_task(self._run_sender(), name="xrelay-sender")
        self._receiver_task = asyncio.create_task(self._run_receiver(), name="xrelay-receiver")
        logger.info(
            f"Session started: {len(self.allow_list)} recipient(s), {len(self.rooms)} room(s)"
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def wait_closed(self):
        """Block until teardown has finished."""
        await self._closed_event.wait()

    # ═══════════════════════════════════════════════════════════════
    # PRODUCERS
    # ═══════════════════════════════════════════════════════════════

    async def send(self, text: str, fmt: Format = Format.TEXT):
        """Broadcast to every allow-listed correspondent and every room.

        Empty text is a no-op. Waits while the outbound queue is full.

        Raises:
            QueueClosedError: the session closed while waiting for room.
        """
        if not text:
            return
        await self._enqueue(OutboundMessage(text=text, format=fmt))

    async def send_to(self, to: str, text: str):
        """Send a plain-text direct message to one recipient."""
        if not text:
            return
        await self._enqueue(OutboundMessage(text=text, format=Format.TEXT, to=to))

    async def _enqueue(self, message: OutboundMessage):
        if self._closed:
            logger.warning(f"Session closed, dropping message for {message.to or 'broadcast'}")
            return
        await self._queue.put(message)

    # ═══════════════════════════════════════════════════════════════
    # SENDER LOOP
    # ═══════════════════════════════════════════════════════════════

    async def _run_sender(self):
        async for message in self._queue:
            if not message.is_broadcast:
                await self._deliver(ChatType.DIRECT, message.to, message)
                continue
            for recipient in self.allow_list:
                await self._deliver(ChatType.DIRECT, recipient, message)
            for room in self.rooms:
                await self._deliver(ChatType.GROUP, room, message)
        logger.debug("Sender loop stopped")

    async def _deliver(self, chat_type: ChatType, to: str, message: OutboundMessage):
        fmt = message.format
        self._metrics.messages_sent.labels(to, chat_type.value, getattr(fmt, "value", str(fmt))).inc()
        try:
            if fmt is Format.TEXT:
                await self._transport.send_text(to, message.text, chat_type)
            elif fmt is Format.HTML:
                await self._transport.send_html(to, message.text, chat_type)
            else:
                raise UnknownFormatError(fmt)
        except Exception as e:
            logger.error(f"Delivery to {to} ({chat_type.value}) failed: {e}")

    # ═══════════════════════════════════════════════════════════════
    # RECEIVER LOOP
    # ═══════════════════════════════════════════════════════════════

    async def _run_receiver(self):
        errors = 0
        while not self._closed:
            try:
                event = await self._transport.recv()
            except TransportEOF:
                logger.info("Stream closed by the server")
                await self.close()
                return
            except Exception as e:
                errors += 1
                logger.error(f"Receive error ({errors}/{MAX_RECV_ERRORS}): {e}")
                if errors > MAX_RECV_ERRORS:
                    logger.critical("Too many consecutive receive errors, shutting down")
                    await self.close()
                    self._on_fatal(e)
                    return
                await asyncio.sleep(self._recv_backoff)
                continue

            errors = 0
            logger.debug(f"Stanza: {event}")
            try:
                await self._dispatch(event)
            except Exception as e:
                logger.error(f"Error handling {event}: {e}", exc_info=True)
        logger.debug("Receiver loop stopped")

    async def _dispatch(self, event: InboundEvent):
        match event:
            case InboundChat():
                await self._handle_chat(event)
            case InboundPresence():
                await self._presence.handle(event)
            case _:
                logger.debug(f"Unhandled event: {event!r}")

    async def _handle_chat(self, chat: InboundChat):
        try:
            chat_type = ChatType.from_wire(chat.chat_type)
        except UnknownChatTypeError as e:
            logger.debug(f"Dropped chat from {chat.sender}: {e}")
            return
        if chat_type is not ChatType.DIRECT:
            logger.debug(f"Dropped {chat_type.value} message from {chat.sender}")
            return
        if not chat.text:
            return

        sender = bare_jid(chat.sender)
        if sender not in self.allow_list:
            logger.debug(f"Unknown user: {chat.sender}")
            return
        await self._commands.handle(sender, chat.text)

    # ═══════════════════════════════════════════════════════════════
    # SHUTDOWN
    # ═══════════════════════════════════════════════════════════════

    async def close(self):
        """Tear the session down. Only the first call does anything.

        Order: unregister metrics, close the queue and let the sender
        drain, announce unavailability, close the transport, run the
        shutdown callback. Failures are logged; teardown always finishes.
        """
        if self._closed:
            return
        self._closed = True
        logger.info("Closing session")

        self._metrics.unregister(self._collector)
        await self._queue.close()
        await self._wait_for_sender()

        try:
            await self._transport.send_presence(ptype="unavailable", status=UNAVAILABLE_STATUS)
        except Exception as e:
            logger.error(f"Could not send unavailable presence: {e}")
        try:
            await self._transport.close()
        except Exception as e:
            logger.error(f"Could not close the transport: {e}")

        if self._receiver_task is not None and self._receiver_task is not asyncio.current_task():
            self._receiver_task.cancel()

        if self._on_shutdown is not None:
            try:
                self._on_shutdown()
            except Exception as e:
                logger.error(f"Shutdown callback failed: {e}", exc_info=True)

        self._closed_event.set()
        logger.info("Session closed")

    async def _wait_for_sender(self):
        task = self._sender_task
        if task is None or task is asyncio.current_task():
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Sender did not drain within {self._drain_timeout}s, abandoning queued messages")
            task.cancel()


async def _close_quietly(transport: Transport):
    try:
        await transport.close()
    except Exception as e:
        logger.debug(f"Ignoring error while closing transport: {e}")
