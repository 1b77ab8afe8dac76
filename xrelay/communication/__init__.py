"""Communication sub-core — transport-agnostic message plumbing.

- Messages: outbound items, inbound events, format and chat-type tags
- Allow-list: authorised correspondents
- Queue: bounded outbound hand-off with close semantics
- Errors: relay exception taxonomy
"""

from .allowlist import AllowList
from .errors import (
    MetricsError,
    QueueClosedError,
    RelayError,
    SessionStartError,
    TransportEOF,
    TransportError,
    UnknownChatTypeError,
    UnknownFormatError,
)
from .messages import (
    ChatType,
    Format,
    InboundChat,
    InboundEvent,
    InboundPresence,
    OutboundMessage,
    bare_jid,
)
from .queue import OutboundQueue

__all__ = [
    "AllowList",
    "OutboundQueue",
    # Messages
    "ChatType",
    "Format",
    "InboundChat",
    "InboundEvent",
    "InboundPresence",
    "OutboundMessage",
    "bare_jid",
    # Errors
    "MetricsError",
    "QueueClosedError",
    "RelayError",
    "SessionStartError",
    "TransportEOF",
    "TransportError",
    "UnknownChatTypeError",
    "UnknownFormatError",
]
