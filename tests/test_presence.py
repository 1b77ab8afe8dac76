"""Tests for the presence handler."""

import pytest

from xrelay.communication.allowlist import AllowList
from xrelay.communication.messages import InboundPresence
from xrelay.presence import PresenceHandler

from conftest import SELF_JID, FakeTransport


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def handler(transport):
    return PresenceHandler(transport, AllowList(["alice@example.org"]), "chat", "Monitoring")


class TestSubscription:
    """Only allow-listed correspondents may subscribe."""

    @pytest.mark.asyncio
    async def test_allowed_subscriber_is_approved(self, handler, transport):
        await handler.handle(InboundPresence("alice@example.org", "subscribe"))
        assert transport.actions == [("approve", "alice@example.org")]

    @pytest.mark.asyncio
    async def test_unknown_subscriber_is_revoked(self, handler, transport):
        await handler.handle(InboundPresence("mallory@example.org", "subscribe"))
        assert transport.actions == [("revoke", "mallory@example.org")]

    @pytest.mark.asyncio
    async def test_resource_is_ignored_for_membership(self, handler, transport):
        await handler.handle(InboundPresence("alice@example.org/laptop", "subscribe"))
        assert transport.actions == [("approve", "alice@example.org/laptop")]


class TestUnavailable:
    """Forced-offline detection."""

    @pytest.mark.asyncio
    async def test_own_unavailable_reasserts_presence(self, handler, transport):
        await handler.handle(InboundPresence(SELF_JID, "unavailable"))
        assert transport.actions == [("presence", "chat", "Monitoring", None)]

    @pytest.mark.asyncio
    async def test_other_unavailable_is_ignored(self, handler, transport):
        await handler.handle(InboundPresence("alice@example.org/phone", "unavailable"))
        assert transport.actions == []


class TestOtherTypes:
    """No state change for anything else."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ptype", ["error", "", "probe", "unsubscribe", "available"])
    async def test_no_action(self, handler, transport, ptype):
        await handler.handle(InboundPresence("alice@example.org", ptype))
        assert transport.actions == []
