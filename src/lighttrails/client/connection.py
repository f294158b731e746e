from __future__ import annotations

import asyncio
import contextlib
import enum
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from lighttrails.protocol.constants import CLOSE_ABNORMAL, CLOSE_NORMAL, T_PING

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict[str, Any]], Awaitable[None]]


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class ReconnectingClient:
    """
    Socket lifecycle: CONNECTING -> OPEN -> CLOSED, retrying abnormal closures.

    A normal closure (1000) ends `run`; anything else sleeps `reconnect_delay_s`
    and connects again. Sends while not OPEN are dropped, never queued.
    """

    def __init__(
        self,
        url: str,
        on_message: MessageHandler,
        *,
        reconnect_delay_s: float = 3.0,
        keepalive_interval_s: float = 25.0,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.url = url
        self.on_message = on_message
        self.reconnect_delay_s = reconnect_delay_s
        self.keepalive_interval_s = keepalive_interval_s
        self._connect = connect
        self._ws: Any = None
        self._keepalive: asyncio.Task | None = None
        self._closing = asyncio.Event()
        self.state = ConnectionState.CLOSED
        self.last_close_code: int | None = None
        self.attempts = 0

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    async def send(self, msg: dict[str, Any]) -> bool:
        if not self.is_open or self._ws is None:
            logger.debug("dropping %s while %s", msg.get("type"), self.state.value)
            return False
        try:
            await self._ws.send(json.dumps(msg, separators=(",", ":"), ensure_ascii=False))
        except ConnectionClosed:
            return False
        return True

    async def close(self) -> None:
        """Normal closure: terminal, no reconnect, whatever state the socket is in."""
        self._closing.set()
        if self._ws is not None:
            await self._ws.close(code=CLOSE_NORMAL)

    async def run(self) -> None:
        while not self._closing.is_set():
            code = await self._run_once()
            self.last_close_code = code
            if code == CLOSE_NORMAL or self._closing.is_set():
                logger.info("connection closed normally")
                return
            logger.info("connection lost (code %s); reconnecting in %.1fs", code, self.reconnect_delay_s)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._closing.wait(), self.reconnect_delay_s)

    async def _run_once(self) -> int:
        self.state = ConnectionState.CONNECTING
        self.attempts += 1
        try:
            async with self._connect(self.url, max_size=2**22) as ws:
                if self._closing.is_set():
                    await ws.close(code=CLOSE_NORMAL)
                    return CLOSE_NORMAL
                self._ws = ws
                self.state = ConnectionState.OPEN
                logger.info("connected to %s", self.url)
                self._keepalive = asyncio.create_task(self._keepalive_loop())
                try:
                    async for raw in ws:
                        await self._dispatch(raw)
                except ConnectionClosed as e:
                    return e.rcvd.code if e.rcvd is not None else CLOSE_ABNORMAL
                finally:
                    await self._stop_keepalive()
                code = getattr(ws, "close_code", None)
                return code if code is not None else CLOSE_ABNORMAL
        except (OSError, InvalidHandshake, InvalidURI, asyncio.TimeoutError) as e:
            logger.warning("connect to %s failed: %r", self.url, e)
            return CLOSE_ABNORMAL
        finally:
            self._ws = None
            self.state = ConnectionState.CLOSED

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            msg = json.loads(raw)
        except ValueError as e:
            logger.error("error parsing message: %s", e)
            return
        if not isinstance(msg, dict):
            return
        try:
            await self.on_message(msg)
        except Exception:
            # errors stay scoped to the frame
            logger.exception("failed to handle %r message", msg.get("type"))

    async def _keepalive_loop(self) -> None:
        while True:
            await asyncio.sleep(self.keepalive_interval_s)
            await self.send({"type": T_PING})

    async def _stop_keepalive(self) -> None:
        task, self._keepalive = self._keepalive, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
