from __future__ import annotations

import asyncio
import logging
import random

from lighttrails.protocol.messages import MeteorShower

from .hub import Hub

logger = logging.getLogger(__name__)

METEOR_COLORS = (
    "#ffb6c1",
    "#ffd6e8",
    "#c8a8f8",
    "#98b9ff",
    "#d6a8ff",
    "#a8d8ff",
)


def make_meteor_shower(rng: random.Random) -> MeteorShower:
    return MeteorShower(
        streak_count=10 + rng.randrange(8),
        direction="leftToRight" if rng.random() > 0.5 else "rightToLeft",
        duration=2.6,
        spread=0.6,
        base_color=rng.choice(METEOR_COLORS),
    )


class MeteorScheduler:
    """Broadcasts a meteor shower to everyone at random intervals."""

    def __init__(
        self,
        hub: Hub,
        *,
        min_interval_s: float = 60.0,
        max_interval_s: float = 120.0,
        rng: random.Random | None = None,
    ) -> None:
        self.hub = hub
        self.min_interval_s = min_interval_s
        self.max_interval_s = max(min_interval_s, max_interval_s)
        self.rng = rng or random.Random()

    def next_delay(self) -> float:
        return self.rng.uniform(self.min_interval_s, self.max_interval_s)

    async def launch(self) -> int:
        if self.hub.registry.count == 0:
            return 0
        event = make_meteor_shower(self.rng)
        logger.info("triggering meteor shower: %d streaks %s", event.streak_count, event.direction)
        return await self.hub.broadcast(event)

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.next_delay())
            try:
                await self.launch()
            except Exception:
                logger.exception("meteor shower failed")
