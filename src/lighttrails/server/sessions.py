from __future__ import annotations

import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from lighttrails.protocol.settings import SettingsRecord, default_settings, sanitize


class Transport(Protocol):
    """The slice of a server-side WebSocket the registry and hub rely on."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


def _now_ms() -> int:
    return int(time.time() * 1000)


def new_client_id() -> str:
    return f"client_{_now_ms()}_{uuid.uuid4().hex[:9]}"


@dataclass
class ClientInfo:
    client_id: str
    transport: Transport
    settings: SettingsRecord
    ip: str | None = None
    connected_at: int = field(default_factory=_now_ms)
    last_seen: int = field(default_factory=_now_ms)
    # Liveness: cleared when a probe goes out, set again by any inbound frame.
    is_alive: bool = True


class SessionRegistry:
    """
    Live connections -> identity + sanitized settings.

    Keyed by transport object. Each record is only written by the handler of
    its own connection, so concurrent handlers never touch the same entry.
    """

    def __init__(self) -> None:
        self._clients: dict[Transport, ClientInfo] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, transport: object) -> bool:
        return transport in self._clients

    @property
    def count(self) -> int:
        return len(self._clients)

    def get(self, transport: Transport) -> ClientInfo | None:
        return self._clients.get(transport)

    def admit(self, transport: Transport, ip: str | None = None) -> ClientInfo:
        """A fresh identity on default settings, not yet registered."""
        client_id = new_client_id()
        return ClientInfo(client_id=client_id, transport=transport, settings=default_settings(client_id), ip=ip)

    def add(self, info: ClientInfo) -> None:
        self._clients[info.transport] = info

    def connect(self, transport: Transport, ip: str | None = None) -> tuple[ClientInfo, list[ClientInfo]]:
        """Register a new connection; returns it plus every other live peer."""
        info = self.admit(transport, ip)
        peers = self.snapshot()
        self.add(info)
        return info, peers

    def update_settings(self, transport: Transport, raw: Mapping[str, Any]) -> SettingsRecord:
        info = self._clients.get(transport)
        if info is None:
            raise KeyError("transport is not registered")
        info.settings = sanitize(raw, info.settings, info.client_id)
        return info.settings

    def touch(self, transport: Transport) -> None:
        info = self._clients.get(transport)
        if info is not None:
            info.is_alive = True
            info.last_seen = _now_ms()

    def disconnect(self, transport: Transport) -> ClientInfo | None:
        """Remove a connection. Returns None if it was already gone."""
        return self._clients.pop(transport, None)

    def snapshot(self) -> list[ClientInfo]:
        return list(self._clients.values())
