"""xrelay configuration management."""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from .communication.messages import Format, bare_jid

logger = logging.getLogger("xrelay.config")


class RoomSettings(BaseModel):
    """A group room joined once at session start."""

    room: str = Field(description="Room address (room@conference.example.org)")
    nick: Optional[str] = Field(default=None, description="Nickname; defaults to the account's bare JID")
    password: Optional[str] = Field(default=None, description="Room password for protected joins")


class XMPPSettings(BaseModel):
    """Connection parameters for the chat account."""

    # Connection
    override_server: str = Field(default="", description="host or host:port; empty uses DNS records")
    user: str = Field(description="Account JID")
    password: str = Field(description="Account password")
    no_tls: bool = Field(default=False, description="Disable STARTTLS")
    tls_insecure: bool = Field(default=False, description="Skip TLS certificate verification")
    connect_timeout: float = Field(default=30.0, gt=0, description="Handshake timeout in seconds")

    # Presence
    status: str = Field(default="Monitoring", description="Presence status text")

    # Destinations
    send_notif: list[str] = Field(default_factory=list, description="Allow-listed correspondents")
    send_muc: list[RoomSettings] = Field(default_factory=list, description="Group rooms")

    @field_validator("send_notif")
    @classmethod
    def _sort_recipients(cls, value: list[str]) -> list[str]:
        return sorted(value)

    @model_validator(mode="after")
    def _default_nicks(self) -> "XMPPSettings":
        nick = bare_jid(self.user)
        for room in self.send_muc:
            if not room.nick:
                room.nick = nick
        return self

    @property
    def host_port(self) -> Optional[tuple[str, int]]:
        """Parsed override_server, or None for DNS discovery."""
        if not self.override_server:
            return None
        host, sep, port = self.override_server.rpartition(":")
        if not sep or not port.isdigit():
            return self.override_server, 5222
        return host, int(port)


class RelaySettings(BaseSettings):
    """Settings loaded from a JSON file, with XRELAY_* environment fallback."""

    debug: bool = Field(default=False, description="Debug logging")
    startup_message: str = Field(default="", description="Broadcast once after connecting")
    format: Format = Field(default=Format.TEXT, description="Format of broadcast payloads")
    queue_size: int = Field(default=16, ge=1, description="Outbound queue bound")
    drain_timeout: float = Field(default=10.0, gt=0, description="Seconds Close waits for the sender to drain")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")

    xmpp: XMPPSettings

    model_config = {"env_prefix": "XRELAY_", "env_nested_delimiter": "__", "extra": "ignore"}

    @field_validator("format", mode="before")
    @classmethod
    def _parse_format(cls, value):
        if isinstance(value, Format):
            return value
        return Format.parse(value)


def load_settings(path: Optional[Union[str, Path]] = None) -> RelaySettings:
    """Load settings from a JSON file (if given) and the environment.

    Raises:
        OSError: the file cannot be read.
        json.JSONDecodeError: the file is not JSON.
        pydantic.ValidationError: a value is missing or invalid.
    """
    data = {}
    if path is not None:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        logger.debug(f"Loaded configuration from {path}")

    settings = RelaySettings(**data)

    if settings.xmpp.tls_insecure:
        logger.warning("TLS certificate verification is disabled (xmpp.tls_insecure)")
    if settings.xmpp.no_tls:
        logger.warning("TLS is disabled (xmpp.no_tls); credentials travel in clear text")

    return settings
