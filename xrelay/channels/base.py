"""Base class for chat transports.

A transport owns one long-lived connection to the chat service. The
session drives it from two tasks: the sender loop (send_* calls) and the
receiver loop (recv). Wire encoding, authentication and TLS live below
this interface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..communication.messages import ChatType, InboundEvent


class Transport(ABC):
    """Abstract chat-protocol connection."""

    @property
    @abstractmethod
    def jid(self) -> str:
        """Full address of the local session (user@host/resource)."""

    @property
    @abstractmethod
    def is_encrypted(self) -> bool:
        """True once the stream is protected by TLS."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the stream and authenticate.

        Raises:
            TransportError: handshake or authentication failed.
        """

    @abstractmethod
    async def join_room(self, room: str, nick: str, password: Optional[str] = None) -> None:
        """Join a group room without history.

        Raises:
            TransportError: the join was refused or timed out.
        """

    @abstractmethod
    async def recv(self) -> InboundEvent:
        """Wait for the next inbound chat or presence event.

        Raises:
            TransportEOF: the remote end closed the stream.
            TransportError: any other read fault.
        """

    @abstractmethod
    async def send_text(self, to: str, text: str, chat_type: ChatType) -> None:
        """Deliver a plain-text chat message."""

    @abstractmethod
    async def send_html(self, to: str, text: str, chat_type: ChatType) -> None:
        """Deliver a marked-up chat message."""

    @abstractmethod
    async def send_presence(self, show: Optional[str] = None, status: Optional[str] = None,
                            ptype: Optional[str] = None) -> None:
        """Broadcast our own presence."""

    @abstractmethod
    async def approve_subscription(self, jid: str) -> None:
        """Accept a presence subscription request."""

    @abstractmethod
    async def revoke_subscription(self, jid: str) -> None:
        """Refuse (or cancel) a presence subscription."""

    @abstractmethod
    async def close(self) -> None:
        """Close the stream. Pending recv() calls raise TransportEOF."""
