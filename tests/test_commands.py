"""Tests for the chat command interpreter."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from xrelay.commands import HELP_MESSAGE, CommandInterpreter
from xrelay.communication.errors import MetricsError
from xrelay.metrics import MetricLine, RelayMetrics


@pytest.fixture
def send_to():
    return AsyncMock()


@pytest.fixture
def close():
    return AsyncMock()


@pytest.fixture
def interpreter(send_to, close):
    return CommandInterpreter(send_to, close, RelayMetrics())


def replies(send_to):
    return [call.args for call in send_to.await_args_list]


class TestBuiltinCommands:
    """ping / help / quit."""

    @pytest.mark.asyncio
    async def test_ping(self, interpreter, send_to):
        await interpreter.handle("alice@example.org", "ping")
        assert replies(send_to) == [("alice@example.org", "pong")]

    @pytest.mark.asyncio
    async def test_normalises_whitespace_and_case(self, interpreter, send_to):
        await interpreter.handle("alice@example.org", "\t PiNg \n")
        assert replies(send_to) == [("alice@example.org", "pong")]

    @pytest.mark.asyncio
    async def test_help(self, interpreter, send_to):
        await interpreter.handle("alice@example.org", "HELP")
        assert replies(send_to) == [("alice@example.org", HELP_MESSAGE)]

    def test_help_lists_every_command(self):
        for name in ("help", "metrics", "ping", "quit"):
            assert f" - {name}" in HELP_MESSAGE

    @pytest.mark.asyncio
    async def test_quit_closes_without_reply(self, interpreter, send_to, close):
        await interpreter.handle("alice@example.org", "quit")
        close.assert_awaited_once()
        send_to.assert_not_awaited()


class TestUnknownCommand:
    """Unrecognised text echoes the input plus help."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["reboot", "ping please", "Hello there!", "  metricz"])
    async def test_echoes_input_and_help(self, interpreter, send_to, text):
        await interpreter.handle("carol@example.org", text)

        [(to, reply)] = replies(send_to)
        assert to == "carol@example.org"
        assert text in reply
        assert reply.endswith(HELP_MESSAGE)
        assert reply == f"Unknown command: {text}\n{HELP_MESSAGE}"


class TestMetricsCommand:
    """metrics renders one reply per snapshot line."""

    @pytest.mark.asyncio
    async def test_renders_snapshot_line(self, send_to, close):
        snapshot = MagicMock(return_value=[MetricLine("counter", "x_total", "", 3.0)])
        interpreter = CommandInterpreter(send_to, close, RelayMetrics(), snapshot=snapshot)

        await interpreter.handle("alice@example.org", "metrics")

        assert replies(send_to) == [("alice@example.org", "counter x_total{}: 3.000000")]

    @pytest.mark.asyncio
    async def test_one_message_per_line(self, send_to, close):
        snapshot = MagicMock(return_value=[
            MetricLine("counter", "a_total", 'recipient="x"', 1.0),
            MetricLine("gauge", "b", "", 0.5),
        ])
        interpreter = CommandInterpreter(send_to, close, RelayMetrics(), snapshot=snapshot)

        await interpreter.handle("alice@example.org", "metrics")

        assert replies(send_to) == [
            ("alice@example.org", 'counter a_total{recipient="x"}: 1.000000'),
            ("alice@example.org", "gauge b{}: 0.500000"),
        ]

    @pytest.mark.asyncio
    async def test_snapshot_failure_is_reported_to_sender(self, send_to, close):
        snapshot = MagicMock(side_effect=MetricsError("registry exploded"))
        interpreter = CommandInterpreter(send_to, close, RelayMetrics(), snapshot=snapshot)

        await interpreter.handle("alice@example.org", "metrics")

        assert replies(send_to) == [("alice@example.org", "Could not fetch the metrics: registry exploded")]

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_is_reported_once(self, send_to, close):
        snapshot = MagicMock(side_effect=RuntimeError("collector crashed"))
        interpreter = CommandInterpreter(send_to, close, RelayMetrics(), snapshot=snapshot)

        await interpreter.handle("alice@example.org", "metrics")

        assert replies(send_to) == [("alice@example.org", "Could not fetch the metrics: collector crashed")]

    @pytest.mark.asyncio
    async def test_default_snapshot_uses_registry(self, send_to, close):
        metrics = RelayMetrics()
        interpreter = CommandInterpreter(send_to, close, metrics)

        await interpreter.handle("alice@example.org", "metrics")

        assert ("alice@example.org", 'counter xmpp_messages_received_total{recipient="alice@example.org"}: 1.000000') in replies(send_to)


class TestReceivedCounter:
    """Every command, recognised or not, is counted per sender."""

    @pytest.mark.asyncio
    async def test_counts_per_sender(self, send_to, close):
        metrics = RelayMetrics()
        interpreter = CommandInterpreter(send_to, close, metrics)

        await interpreter.handle("alice@example.org", "ping")
        await interpreter.handle("alice@example.org", "nonsense")
        await interpreter.handle("carol@example.org", "help")

        sample = metrics.registry.get_sample_value
        assert sample("xmpp_messages_received_total", {"recipient": "alice@example.org"}) == 2.0
        assert sample("xmpp_messages_received_total", {"recipient": "carol@example.org"}) == 1.0
