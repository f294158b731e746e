"""Shared fixtures: in-memory stand-ins for server-side WebSockets."""
import json

import pytest
from fastapi.websockets import WebSocketState

from lighttrails.server.hub import Hub


class FakeSocket:
    """Records what the server sends; can be told to fail on send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []
        self.send_attempts = 0
        self.closed_with: int | None = None
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED

    async def send_text(self, data: str) -> None:
        self.send_attempts += 1
        if self.fail:
            raise RuntimeError("transport rejected send")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = code
        self.application_state = WebSocketState.DISCONNECTED

    def of_type(self, t: str) -> list[dict]:
        return [m for m in self.sent if m.get("type") == t]


@pytest.fixture
def hub():
    return Hub()


@pytest.fixture
def make_socket():
    def _make(fail: bool = False) -> FakeSocket:
        return FakeSocket(fail=fail)

    return _make
