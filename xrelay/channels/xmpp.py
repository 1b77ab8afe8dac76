"""XMPP transport adapter (slixmpp).

slixmpp is callback driven; this adapter turns its events into the pull
model the session expects: every inbound chat/presence stanza lands in
an inbox queue that recv() drains, and a disconnect becomes a sticky
end-of-stream marker.
"""

import asyncio
import logging
import ssl
from typing import Optional

import slixmpp
from slixmpp.exceptions import IqError, IqTimeout, PresenceError

from ..communication.errors import TransportEOF, TransportError
from ..communication.messages import ChatType, InboundChat, InboundEvent, InboundPresence
from ..config import XMPPSettings
from .base import Transport

logger = logging.getLogger("xrelay.xmpp")

# Presence show value advertised while monitoring
STATUS_SHOW = "chat"

# Marker queued when the stream ends
_EOF = object()


class XMPPTransport(Transport):
    """Transport backed by a slixmpp ClientXMPP connection."""

    def __init__(self, settings: XMPPSettings):
        self._settings = settings
        self._client = slixmpp.ClientXMPP(settings.user, settings.password)
        self._client.register_plugin("xep_0030")  # Service discovery
        self._client.register_plugin("xep_0045")  # Multi-user chat
        self._client.register_plugin("xep_0071")  # XHTML-IM
        self._client.register_plugin("xep_0199")  # Ping

        # Subscription requests are decided by the presence handler
        self._client.auto_authorize = None
        self._client.auto_subscribe = False

        if settings.tls_insecure:
            self._client.ssl_context.check_hostname = False
            self._client.ssl_context.verify_mode = ssl.CERT_NONE
        if settings.no_tls:
            self._client.enable_starttls = False
            self._client.enable_direct_tls = False
            self._client.enable_plaintext = True
        else:
            self._client.enable_plaintext = False

        self._inbox: asyncio.Queue = asyncio.Queue()
        self._started: Optional[asyncio.Future] = None
        self._connected = False
        self._encrypted = False

        self._client.add_event_handler("session_start", self._on_session_start)
        self._client.add_event_handler("failed_auth", self._on_failed_auth)
        self._client.add_event_handler("connection_failed", self._on_connection_failed)
        self._client.add_event_handler("tls_success", self._on_tls_success)
        self._client.add_event_handler("disconnected", self._on_disconnected)
        self._client.add_event_handler("message", self._on_message)
        self._client.add_event_handler("presence", self._on_presence)

    # ── Transport interface ──

    @property
    def jid(self) -> str:
        return str(self._client.boundjid)

    @property
    def is_encrypted(self) -> bool:
        return self._encrypted

    async def connect(self) -> None:
        address = self._settings.host_port
        if address:
            logger.info(f"Connect to the XMPP account {self._settings.user} using the server {address[0]}:{address[1]}")
        else:
            logger.info(f"Connect to the XMPP account {self._settings.user} using a server from the DNS records")

        self._started = asyncio.get_running_loop().create_future()
        host, port = address or (None, None)
        self._client.connect(host, port)
        try:
            await asyncio.wait_for(self._started, timeout=self._settings.connect_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"timed out after {self._settings.connect_timeout}s waiting for session") from e

    async def join_room(self, room: str, nick: str, password: Optional[str] = None) -> None:
        muc = self._client.plugin["xep_0045"]
        try:
            await muc.join_muc_wait(
                room,
                nick,
                password=password,
                maxstanzas=0,
                timeout=self._settings.connect_timeout,
            )
        except (PresenceError, asyncio.TimeoutError) as e:
            raise TransportError(f"could not join room {room}: {e}") from e
        logger.info(f"Joined room {room} as {nick}")

    async def recv(self) -> InboundEvent:
        item = await self._inbox.get()
        if item is _EOF:
            self._inbox.put_nowait(_EOF)
            raise TransportEOF("stream closed")
        return item

    async def send_text(self, to: str, text: str, chat_type: ChatType) -> None:
        self._ensure_connected()
        self._client.send_message(mto=to, mbody=text, mtype=chat_type.value)

    async def send_html(self, to: str, text: str, chat_type: ChatType) -> None:
        self._ensure_connected()
        self._client.send_message(mto=to, mbody=text, mhtml=text, mtype=chat_type.value)

    async def send_presence(self, show: Optional[str] = None, status: Optional[str] = None,
                            ptype: Optional[str] = None) -> None:
        self._ensure_connected()
        self._client.send_presence(pshow=show, pstatus=status, ptype=ptype)

    async def approve_subscription(self, jid: str) -> None:
        self._ensure_connected()
        self._client.send_presence(pto=jid, ptype="subscribed")

    async def revoke_subscription(self, jid: str) -> None:
        self._ensure_connected()
        self._client.send_presence(pto=jid, ptype="unsubscribed")

    async def close(self) -> None:
        """Tear down the stream, whether or not the session ever started."""
        if self._started and not self._started.done():
            self._started.cancel()
        if self._connected:
            self._connected = False
            await self._client.disconnect()
        else:
            # Handshake incomplete: drop the socket and stop connect retries
            self._client.cancel_connection_attempt()
            self._client.abort()
        self._inbox.put_nowait(_EOF)

    # ── slixmpp event handlers ──

    def _ensure_connected(self):
        if not self._connected:
            raise TransportError("not connected")

    async def _on_session_start(self, event):
        self._connected = True
        self._client.send_presence(pshow=STATUS_SHOW, pstatus=self._settings.status)
        try:
            await self._client.get_roster()
        except (IqError, IqTimeout) as e:
            self._fail_start(TransportError(f"could not fetch roster: {e}"))
            return
        if self._started and not self._started.done():
            self._started.set_result(None)

    def _on_failed_auth(self, event):
        self._fail_start(TransportError("authentication failed"))

    def _on_connection_failed(self, event):
        self._fail_start(TransportError(f"connection failed: {event}"))

    def _on_tls_success(self, event):
        self._encrypted = True

    def _on_disconnected(self, event):
        self._connected = False
        self._fail_start(TransportEOF("disconnected during handshake"))
        self._inbox.put_nowait(_EOF)

    def _on_message(self, msg):
        self._inbox.put_nowait(InboundChat(
            sender=str(msg["from"]),
            chat_type=msg["type"],
            text=msg["body"],
        ))

    def _on_presence(self, presence):
        self._inbox.put_nowait(InboundPresence(
            sender=str(presence["from"]),
            presence_type=presence["type"],
        ))

    def _fail_start(self, error: TransportError):
        if self._started and not self._started.done():
            self._started.set_exception(error)
