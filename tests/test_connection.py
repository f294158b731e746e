"""Tests for the reconnecting socket controller and the headless session."""
import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError

from lighttrails.client.config import ClientSettings
from lighttrails.client.connection import ConnectionState, ReconnectingClient
from lighttrails.client.session import LightTrailsSession

pytestmark = pytest.mark.asyncio


class FakeConnection:
    """Scripted stand-in for a websockets client connection."""

    def __init__(self, incoming=(), close_code=1000, error=None, hold_s=0.0):
        self.incoming = list(incoming)
        self.close_code = close_code
        self.error = error
        self.hold_s = hold_s
        self.sent: list[dict] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._messages()

    async def _messages(self):
        for m in self.incoming:
            yield m if isinstance(m, str) else json.dumps(m)
            await asyncio.sleep(0)
        if self.hold_s:
            await asyncio.sleep(self.hold_s)
        if self.error is not None:
            raise self.error

    async def send(self, data):
        self.sent.append(json.loads(data))

    async def close(self, code=1000):
        self.close_code = code


def scripted(*outcomes):
    it = iter(outcomes)
    calls = []

    def connect(url, **kwargs):
        calls.append(url)
        outcome = next(it)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    connect.calls = calls
    return connect


async def _noop(msg):
    return None


async def test_normal_closure_is_terminal():
    connect = scripted(FakeConnection(close_code=1000))
    client = ReconnectingClient("ws://x/ws", _noop, reconnect_delay_s=0, connect=connect)
    await client.run()
    assert len(connect.calls) == 1
    assert client.state is ConnectionState.CLOSED
    assert client.last_close_code == 1000


async def test_abnormal_closure_reconnects_once_per_drop():
    connect = scripted(
        FakeConnection(close_code=1006),
        FakeConnection(error=ConnectionClosedError(None, None)),
        OSError("connection refused"),
        FakeConnection(close_code=1000),
    )
    client = ReconnectingClient("ws://x/ws", _noop, reconnect_delay_s=0, connect=connect)
    await client.run()
    assert len(connect.calls) == 4
    assert client.attempts == 4


async def test_messages_dispatched_while_open():
    seen = []

    async def on_message(msg):
        seen.append((msg["type"], client.state))

    connect = scripted(FakeConnection(incoming=[{"type": "pong"}, "garbage", [1, 2], {"type": "clear"}]))
    client = ReconnectingClient("ws://x/ws", on_message, connect=connect)
    await client.run()
    assert seen == [("pong", ConnectionState.OPEN), ("clear", ConnectionState.OPEN)]


async def test_sends_dropped_unless_open():
    client = ReconnectingClient("ws://x/ws", _noop, connect=scripted())
    assert client.state is ConnectionState.CLOSED
    assert await client.send({"type": "lightTrail"}) is False


async def test_keepalive_pings_while_open_and_stops_after():
    conn = FakeConnection(hold_s=0.2)
    client = ReconnectingClient("ws://x/ws", _noop, keepalive_interval_s=0.02, connect=scripted(conn))
    await client.run()
    pings = [m for m in conn.sent if m == {"type": "ping"}]
    assert pings
    count = len(conn.sent)
    await asyncio.sleep(0.06)
    assert len(conn.sent) == count


async def test_session_answers_welcome_and_probe():
    conn = FakeConnection(
        incoming=[
            {"type": "welcome", "clientId": "client_1_abcd", "clientCount": 1, "allSettings": []},
            {"type": "ping", "timestamp": 1},
        ]
    )
    session = LightTrailsSession(ClientSettings(url="ws://x/ws"), connect=scripted(conn))
    await session.run()
    types = [m["type"] for m in conn.sent]
    assert types[:2] == ["updateSettings", "pong"]
    assert session.state.client_id == "client_1_abcd"


async def test_session_draws_locally_while_disconnected():
    session = LightTrailsSession(ClientSettings(url="ws://x/ws"), clock=lambda: 0.0, connect=scripted())
    assert await session.begin_stroke(10, 10) is False
    assert await session.extend_stroke(10.5, 10.2) is False
    assert len(session.state.store.trails["local"]) == 1
    assert session.status is ConnectionState.CLOSED


async def test_close_during_backoff_stops_reconnecting():
    connect = scripted(
        FakeConnection(close_code=1006),
        FakeConnection(close_code=1006),
        FakeConnection(close_code=1006),
    )
    client = ReconnectingClient("ws://x/ws", _noop, reconnect_delay_s=0.1, connect=connect)
    task = asyncio.create_task(client.run())
    await asyncio.sleep(0.03)
    assert len(connect.calls) == 1
    await client.close()
    await asyncio.wait_for(task, 1)
    await asyncio.sleep(0.15)
    assert len(connect.calls) == 1
    assert client.state is ConnectionState.CLOSED


async def test_close_before_connect_is_terminal():
    conn = FakeConnection(close_code=1006)
    client = ReconnectingClient("ws://x/ws", _noop, reconnect_delay_s=0, connect=scripted(conn))
    await client.close()
    await client.run()
    assert client.attempts == 0


async def test_handler_error_does_not_end_connection():
    seen = []

    async def on_message(msg):
        if msg["type"] == "boom":
            raise AttributeError("bad payload")
        seen.append(msg["type"])

    connect = scripted(FakeConnection(incoming=[{"type": "boom"}, {"type": "clear"}]))
    client = ReconnectingClient("ws://x/ws", on_message, connect=connect)
    await client.run()
    assert seen == ["clear"]
    assert len(connect.calls) == 1


async def test_session_survives_malformed_settings_frame():
    conn = FakeConnection(
        incoming=[
            {"type": "welcome", "clientId": "client_1_abcd", "clientCount": 1, "allSettings": []},
            {"type": "userSettings", "clientId": "client_2_zzzz", "settings": [1, 2]},
            {"type": "ping", "timestamp": 1},
        ]
    )
    session = LightTrailsSession(ClientSettings(url="ws://x/ws"), connect=scripted(conn))
    await session.run()
    assert [m["type"] for m in conn.sent][:2] == ["updateSettings", "pong"]
    assert "client_2_zzzz" in session.state.store.settings
