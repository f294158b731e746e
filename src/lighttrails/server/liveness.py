from __future__ import annotations

import asyncio
import logging
import time

from lighttrails.protocol.constants import CLOSE_GOING_AWAY
from lighttrails.protocol.messages import Ping

from .hub import Hub
from .sessions import ClientInfo

logger = logging.getLogger(__name__)


class LivenessMonitor:
    """
    Periodic ping sweep that evicts connections which stayed silent.

    Each sweep: a connection not heard from since the previous sweep is
    terminated; everyone else is marked as awaiting and probed again.
    """

    def __init__(self, hub: Hub, *, interval_s: float = 30.0, close_timeout_s: float = 10.0) -> None:
        self.hub = hub
        self.interval_s = interval_s
        self.close_timeout_s = close_timeout_s

    async def sweep(self) -> list[str]:
        """Run one probe cycle. Returns the identities that were terminated."""
        terminated: list[str] = []
        for info in self.hub.registry.snapshot():
            if info.transport not in self.hub.registry:
                continue
            if not info.is_alive:
                await self._terminate(info)
                terminated.append(info.client_id)
                continue
            info.is_alive = False
            await self.hub.send(info.transport, Ping(timestamp=int(time.time() * 1000)))
        return terminated

    async def _terminate(self, info: ClientInfo) -> None:
        logger.info("terminating dead connection: %s", info.client_id)
        # Evict first so the handler's own cleanup finds nothing left to announce.
        await self.hub.leave(info.transport, reason="liveness timeout")
        try:
            await asyncio.wait_for(
                info.transport.close(code=CLOSE_GOING_AWAY, reason="liveness timeout"),
                timeout=self.close_timeout_s,
            )
        except Exception as e:
            logger.debug("close of %s failed: %r", info.client_id, e)

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                await self.sweep()
            except Exception:
                logger.exception("liveness sweep failed")
