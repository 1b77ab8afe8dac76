"""Relay error taxonomy.

Construction faults abort startup, delivery faults are logged per
destination, receive faults are retried or escalated by the session.
"""


class RelayError(Exception):
    """Base class for all relay errors."""


class SessionStartError(RelayError):
    """Handshake or group-room join failed while building a session."""


class TransportError(RelayError):
    """The chat transport failed to read or write."""


class TransportEOF(TransportError):
    """The remote service closed the stream."""


class QueueClosedError(RelayError):
    """A message was offered to a closed outbound queue."""


class UnknownFormatError(RelayError):
    """A message carries a format the transport cannot render."""

    def __init__(self, fmt: object):
        super().__init__(f"unknown format: {fmt!r}")
        self.format = fmt


class UnknownChatTypeError(RelayError):
    """An inbound chat carries an unrecognised type tag."""

    def __init__(self, tag: str):
        super().__init__(f"unhandled chat type: {tag}")
        self.tag = tag


class MetricsError(RelayError):
    """The metrics snapshot could not be gathered."""
