"""Presence handler — subscription gate and presence re-assertion."""

import logging

from .channels.base import Transport
from .communication.allowlist import AllowList
from .communication.messages import InboundPresence, bare_jid

logger = logging.getLogger("xrelay.presence")


class PresenceHandler:
    """Reacts to inbound presence stanzas.

    - subscribe: approved for allow-listed correspondents, revoked otherwise
    - unavailable from our own address: re-assert the configured presence
    - error: logged
    - empty tag: ignored
    """

    def __init__(self, transport: Transport, allow_list: AllowList, show: str, status: str):
        self._transport = transport
        self._allow_list = allow_list
        self._show = show
        self._status = status

    async def handle(self, presence: InboundPresence):
        sender = presence.sender
        ptype = presence.presence_type

        if ptype == "subscribe":
            if bare_jid(sender) in self._allow_list:
                await self._transport.approve_subscription(sender)
                logger.debug(f"Approved subscription to {sender}")
            else:
                await self._transport.revoke_subscription(sender)
                logger.debug(f"Revoked subscription to {sender}")
        elif ptype == "unavailable":
            # Something external put us offline
            if sender == self._transport.jid:
                logger.info("Session marked unavailable, re-asserting presence")
                await self._transport.send_presence(show=self._show, status=self._status)
        elif ptype == "error":
            logger.info(f"Presence error from {sender}")
        elif ptype == "":
            logger.debug(f"Ignored presence without type from {sender}")
        else:
            logger.debug(f"Unhandled presence: {presence}")
