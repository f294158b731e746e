from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from typing import Any

from .config import ClientSettings, get_client_settings
from .connection import ConnectionState, ReconnectingClient
from .state import ClientState, Frame

logger = logging.getLogger(__name__)


def now_ms() -> float:
    return time.time() * 1000.0


class LightTrailsSession:
    """
    Headless LightTrails client: shared-canvas state wired to a live socket.

    Local actions always update local state; they reach the server only while
    the connection is OPEN.
    """

    def __init__(
        self,
        config: ClientSettings | None = None,
        *,
        clock: Callable[[], float] = now_ms,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self.config = config or get_client_settings()
        self.clock = clock
        self.state = ClientState(self.config)
        kwargs: dict[str, Any] = {}
        if connect is not None:
            kwargs["connect"] = connect
        self.connection = ReconnectingClient(
            self.config.url,
            self._on_message,
            reconnect_delay_s=self.config.reconnect_delay_s,
            keepalive_interval_s=self.config.keepalive_interval_s,
            **kwargs,
        )

    @property
    def status(self) -> ConnectionState:
        return self.connection.state

    async def _on_message(self, msg: dict[str, Any]) -> None:
        reply = self.state.handle(msg, self.clock())
        if reply is not None:
            await self.connection.send(reply)

    async def _send(self, msg: dict[str, Any] | None) -> bool:
        if msg is None:
            return False
        return await self.connection.send(msg)

    # --- local actions ---

    async def begin_stroke(self, x: float, y: float) -> bool:
        return await self._send(self.state.begin_stroke(x, y, self.clock()))

    async def extend_stroke(self, x: float, y: float) -> bool:
        return await self._send(self.state.extend_stroke(x, y, self.clock()))

    def end_stroke(self) -> None:
        self.state.end_stroke()

    async def move_cursor(self, x: float, y: float) -> bool:
        return await self._send(self.state.move_cursor(x, y, self.clock()))

    async def clear(self) -> bool:
        return await self._send(self.state.clear())

    async def update_settings(self, **fields: Any) -> bool:
        return await self._send(self.state.update_settings(**fields))

    # --- loops ---

    async def frames(self, on_frame: Callable[[Frame], None]) -> None:
        """Tick the canvas at `fps` forever, handing each frame to `on_frame`."""
        period = 1.0 / max(1.0, self.config.fps)
        while True:
            on_frame(self.state.tick(self.clock()))
            await asyncio.sleep(period)

    async def run(self, on_frame: Callable[[Frame], None] | None = None) -> None:
        """Run the socket (and optionally the frame loop) until a normal closure."""
        frame_task = asyncio.create_task(self.frames(on_frame)) if on_frame is not None else None
        try:
            await self.connection.run()
        finally:
            if frame_task is not None:
                frame_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await frame_task

    async def close(self) -> None:
        await self.connection.close()
