from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass

from .store import TrailPoint


@dataclass(frozen=True)
class Contact:
    """Two identities' strokes touched; consumed by the decorative layer only."""

    identity: str
    other_identity: str
    x: float
    y: float
    color: str
    other_color: str


class CollisionDetector:
    """
    Recent-points buffer scanned against each trail's newest segment.

    Points are recorded in arrival order, so pruning is a popleft loop.
    """

    def __init__(self, *, window_ms: float = 120.0, distance: float = 16.0) -> None:
        self.window_ms = window_ms
        self.distance = distance
        self._recent: deque[tuple[str, TrailPoint]] = deque()

    def __len__(self) -> int:
        return len(self._recent)

    def record(self, identity: str, point: TrailPoint) -> None:
        self._recent.append((identity, point))

    def prune(self, now: float) -> None:
        while self._recent and now - self._recent[0][1].timestamp >= self.window_ms:
            self._recent.popleft()

    def clear(self) -> None:
        self._recent.clear()

    def scan(
        self,
        identity: str,
        segment: tuple[TrailPoint, TrailPoint],
        now: float,
        *,
        colors: dict[str, str] | None = None,
    ) -> list[Contact]:
        """Foreign recent points closer than `distance` to either segment end."""
        self.prune(now)
        colors = colors or {}
        a, b = segment
        own_color = colors.get(identity, b.color)
        contacts: list[Contact] = []
        for other, p in self._recent:
            if other == identity:
                continue
            d = min(math.hypot(a.x - p.x, a.y - p.y), math.hypot(b.x - p.x, b.y - p.y))
            if d < self.distance:
                contacts.append(
                    Contact(
                        identity=identity,
                        other_identity=other,
                        x=p.x,
                        y=p.y,
                        color=own_color,
                        other_color=colors.get(other, p.color),
                    )
                )
        return contacts
