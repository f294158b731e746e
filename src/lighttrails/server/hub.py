from __future__ import annotations

import logging
import time

from fastapi.websockets import WebSocketState
from pydantic import BaseModel

from lighttrails.protocol.messages import (
    ClearIn,
    ClearOut,
    ClientJoined,
    ClientLeft,
    Error,
    LightTrailIn,
    LightTrailOut,
    MalformedMessage,
    Metadata,
    MousePositionIn,
    MousePositionOut,
    PeerSettings,
    PingIn,
    Pong,
    PongIn,
    SettingsAck,
    UpdateSettings,
    UserSettings,
    Welcome,
    decode_envelope,
    encode,
    parse_inbound,
)

from .sessions import ClientInfo, SessionRegistry, Transport

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_open(transport: Transport) -> bool:
    # Starlette tracks both directions; anything else is assumed open.
    for attr in ("application_state", "client_state"):
        state = getattr(transport, attr, WebSocketState.CONNECTED)
        if state != WebSocketState.CONNECTED:
            return False
    return True


class Hub:
    """
    Connection registry + fan-out + per-message dispatch for one canvas.

    All server tasks share a single Hub; it holds no global state.
    """

    def __init__(self, registry: SessionRegistry | None = None, *, debug_log_msgs: bool = False) -> None:
        self.registry = registry if registry is not None else SessionRegistry()
        self.debug_log_msgs = debug_log_msgs

    # --- fan-out ---

    async def broadcast(self, msg: BaseModel | dict, exclude: Transport | None = None) -> int:
        """Send to every open peer but `exclude`; failing peers are evicted."""
        dead: list[Transport] = []
        sent = 0
        data = encode(msg)
        for info in self.registry.snapshot():
            ws = info.transport
            if exclude is ws or not is_open(ws):
                continue
            try:
                await ws.send_text(data)
                sent += 1
            except Exception as e:
                logger.warning("send to %s failed: %r", info.client_id, e)
                dead.append(ws)
        for ws in dead:
            await self.leave(ws, reason="send failure")
        return sent

    async def send(self, transport: Transport, msg: BaseModel | dict) -> bool:
        """Direct reply to one connection; a failure evicts it."""
        if not is_open(transport):
            return False
        try:
            await transport.send_text(encode(msg))
        except Exception as e:
            info = self.registry.get(transport)
            logger.warning("send to %s failed: %r", info.client_id if info else "unknown", e)
            await self.leave(transport, reason="send failure")
            return False
        return True

    # --- membership ---

    async def join(self, transport: Transport, ip: str | None = None) -> ClientInfo:
        """
        Welcome a new connection, then register it and announce it.

        The connection only becomes a broadcast target once its `welcome` is
        out, so nothing reaches it ahead of the welcome. Peers that left while
        the welcome was in flight are reported to it directly.
        """
        info = self.registry.admit(transport, ip)
        peers = self.registry.snapshot()
        welcomed = await self.send(
            transport,
            Welcome(
                client_id=info.client_id,
                client_count=len(peers) + 1,
                metadata=Metadata(settings=info.settings),
                all_settings=[PeerSettings(client_id=p.client_id, settings=p.settings) for p in peers],
            ),
        )
        if not welcomed:
            logger.info("client %s dropped before welcome", info.client_id)
            return info
        self.registry.add(info)
        logger.info("client connected: %s from %s (total %d)", info.client_id, ip, self.registry.count)

        for p in peers:
            if p.transport not in self.registry:
                await self.send(transport, ClientLeft(client_id=p.client_id, client_count=self.registry.count))
        if transport not in self.registry:
            return info
        await self.broadcast(
            ClientJoined(
                client_id=info.client_id,
                client_count=self.registry.count,
                metadata=Metadata(settings=info.settings),
            ),
            exclude=transport,
        )
        return info

    async def leave(self, transport: Transport, reason: str = "closed") -> ClientInfo | None:
        """Evict a connection and announce it. No-op if already evicted."""
        info = self.registry.disconnect(transport)
        if info is None:
            return None
        logger.info("client disconnected: %s (%s, total %d)", info.client_id, reason, self.registry.count)
        await self.broadcast(ClientLeft(client_id=info.client_id, client_count=self.registry.count))
        return info

    # --- inbound ---

    async def handle_text(self, transport: Transport, raw: str) -> None:
        """Handle one inbound text frame to completion."""
        info = self.registry.get(transport)
        if info is None:
            return
        self.registry.touch(transport)

        try:
            obj = decode_envelope(raw)
            msg = parse_inbound(obj)
        except MalformedMessage as e:
            logger.warning("malformed message from %s: %s", info.client_id, e)
            await self.send(transport, Error())
            return

        if self.debug_log_msgs:
            logger.debug("[ws] in type=%s from=%s", obj.get("type"), info.client_id)

        if msg is None:
            logger.info("unknown message type from %s: %r", info.client_id, obj.get("type"))
            return

        if isinstance(msg, UpdateSettings):
            settings = self.registry.update_settings(transport, msg.raw_settings())
            await self.send(transport, SettingsAck(settings=settings))
            await self.broadcast(UserSettings(client_id=info.client_id, settings=settings), exclude=transport)

        elif isinstance(msg, LightTrailIn):
            s = self.registry.update_settings(transport, msg.raw_settings())
            await self.broadcast(
                LightTrailOut(
                    trail=msg.trail,
                    color=s.color,
                    size=s.size,
                    glow=s.glow,
                    cursor_mode=s.cursor_mode,
                    username=s.username,
                    client_id=info.client_id,
                    timestamp=_now_ms(),
                ),
                exclude=transport,
            )

        elif isinstance(msg, MousePositionIn):
            s = self.registry.update_settings(transport, msg.raw_settings())
            await self.broadcast(
                MousePositionOut(
                    x=msg.x,
                    y=msg.y,
                    client_id=info.client_id,
                    color=s.color,
                    size=s.size,
                    glow=s.glow,
                    cursor_mode=s.cursor_mode,
                    username=s.username,
                    timestamp=_now_ms(),
                ),
                exclude=transport,
            )

        elif isinstance(msg, ClearIn):
            await self.broadcast(ClearOut(client_id=info.client_id, timestamp=_now_ms()), exclude=transport)

        elif isinstance(msg, PingIn):
            await self.send(transport, Pong(timestamp=_now_ms()))

        elif isinstance(msg, PongIn):
            # liveness already recorded by touch()
            pass
