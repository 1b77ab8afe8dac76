"""Pytest configuration and shared fixtures."""

import asyncio
from typing import Optional

import pytest

from xrelay.channels.base import Transport
from xrelay.communication.allowlist import AllowList
from xrelay.communication.errors import TransportEOF, TransportError
from xrelay.communication.messages import ChatType, InboundEvent
from xrelay.config import RelaySettings
from xrelay.metrics import RelayMetrics
from xrelay.session import Session

SELF_JID = "relay@example.org/xrelay"


class FakeTransport(Transport):
    """Records every outbound action; recv() replays scripted events.

    Script entries are InboundEvent values or exceptions to raise. Once
    the script is exhausted recv() waits until close() is called and then
    raises TransportEOF.
    """

    def __init__(self, script=(), jid: str = SELF_JID):
        self._jid = jid
        self.actions: list[tuple] = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        for item in script:
            self.inbox.put_nowait(item)
        self.closed = asyncio.Event()
        self.close_calls = 0
        self.fail_connect: Optional[Exception] = None
        self.fail_join: dict[str, Exception] = {}
        self.fail_send: set[str] = set()

    @property
    def jid(self) -> str:
        return self._jid

    @property
    def is_encrypted(self) -> bool:
        return True

    @property
    def deliveries(self) -> list[tuple]:
        return [a for a in self.actions if a[0] in ("text", "html")]

    async def connect(self):
        self.actions.append(("connect",))
        if self.fail_connect:
            raise self.fail_connect

    async def join_room(self, room, nick, password=None):
        self.actions.append(("join", room, nick, password))
        if room in self.fail_join:
            raise self.fail_join[room]

    async def recv(self) -> InboundEvent:
        if self.inbox.empty():
            await self.closed.wait()
            raise TransportEOF("closed")
        item = self.inbox.get_nowait()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send_text(self, to, text, chat_type: ChatType):
        self.actions.append(("text", to, text, chat_type))
        if to in self.fail_send:
            raise TransportError(f"cannot reach {to}")

    async def send_html(self, to, text, chat_type: ChatType):
        self.actions.append(("html", to, text, chat_type))
        if to in self.fail_send:
            raise TransportError(f"cannot reach {to}")

    async def send_presence(self, show=None, status=None, ptype=None):
        self.actions.append(("presence", show, status, ptype))

    async def approve_subscription(self, jid):
        self.actions.append(("approve", jid))

    async def revoke_subscription(self, jid):
        self.actions.append(("revoke", jid))

    async def close(self):
        self.close_calls += 1
        self.actions.append(("close",))
        self.closed.set()


@pytest.fixture
def settings():
    return RelaySettings(
        startup_message="",
        xmpp={
            "user": "relay@example.org",
            "password": "secret",
            "send_notif": ["carol@example.org", "alice@example.org"],
            "send_muc": [
                {"room": "ops@conference.example.org"},
                {"room": "dev@conference.example.org", "nick": "bot", "password": "pw"},
            ],
        },
    )


@pytest.fixture
def metrics():
    return RelayMetrics()


@pytest.fixture
def fatal_calls():
    return []


@pytest.fixture
async def make_session(metrics, fatal_calls):
    """Build a started session around a FakeTransport."""
    sessions = []

    def _make(transport=None, allow=("alice@example.org", "carol@example.org"),
              rooms=("ops@conference.example.org",), **kwargs):
        transport = transport or FakeTransport()
        kwargs.setdefault("on_fatal", fatal_calls.append)
        kwargs.setdefault("recv_backoff", 0)
        session = Session(
            transport,
            allow_list=AllowList(allow),
            rooms=rooms,
            metrics=metrics,
            status="Monitoring",
            **kwargs,
        )
        session.start()
        sessions.append(session)
        return session, transport

    yield _make

    for session in sessions:
        await session.close()
