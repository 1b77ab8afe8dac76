"""Message value types shared by the session, its loops and handlers.

Outbound:
- OutboundMessage: one item on the outbound queue (broadcast or direct)

Inbound (closed union, see InboundEvent):
- InboundChat: a chat stanza with its raw type tag
- InboundPresence: a presence stanza with its raw type tag
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .errors import UnknownChatTypeError


class Format(str, Enum):
    """How a payload is rendered on the wire."""

    TEXT = "text"
    HTML = "html"

    @classmethod
    def parse(cls, value: str) -> "Format":
        """Parse a configured format name.

        Empty string means plain text. Matching is case-insensitive.

        Raises:
            ValueError: for any other name, or a value that is not a string.
        """
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ValueError(f"format must be a string, got {type(value).__name__}")
        name = value.strip().lower()
        if name in ("", "text"):
            return cls.TEXT
        if name == "html":
            return cls.HTML
        raise ValueError(f"unknown format: {value}")


class ChatType(str, Enum):
    """Chat stanza type, encoded on the wire as 'chat' / 'groupchat'."""

    DIRECT = "chat"
    GROUP = "groupchat"

    @classmethod
    def from_wire(cls, tag: str) -> "ChatType":
        for member in cls:
            if member.value == tag:
                return member
        raise UnknownChatTypeError(tag)


def bare_jid(address: str) -> str:
    """Strip the resource suffix: 'user@host/phone' -> 'user@host'."""
    return address.split("/", 1)[0]


@dataclass(frozen=True)
class OutboundMessage:
    """An item on the outbound queue.

    Attributes:
        text: Payload to deliver.
        format: Rendering format.
        to: Explicit recipient. None broadcasts to every allow-listed
            correspondent and every group room.
    """

    text: str
    format: Format = Format.TEXT
    to: Optional[str] = None

    @property
    def is_broadcast(self) -> bool:
        return self.to is None


@dataclass(frozen=True)
class InboundChat:
    sender: str
    chat_type: str
    text: str


@dataclass(frozen=True)
class InboundPresence:
    sender: str
    presence_type: str


InboundEvent = Union[InboundChat, InboundPresence]
