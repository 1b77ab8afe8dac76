"""xrelay — alert notification relay over XMPP."""

__version__ = "0.1.0"
