from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from lighttrails.protocol.settings import SettingsRecord


@dataclass(frozen=True)
class TrailPoint:
    x: float
    y: float
    color: str
    size: float
    glow: float
    timestamp: float  # ms


@dataclass(frozen=True)
class CursorSample:
    x: float
    y: float
    settings: SettingsRecord
    timestamp: float  # ms


def opacity(age_ms: float, fade_ms: float) -> float:
    """Ease-out fade: 1 at birth, 0 at `fade_ms`."""
    if fade_ms <= 0:
        return 0.0
    progress = age_ms / fade_ms
    value = 1.0 - progress * progress
    return 0.0 if value < 0.0 else 1.0 if value > 1.0 else value


class TrailStore:
    """
    Ephemeral per-identity trails, cursors and mirrored settings.

    Trails are bounded deques, so ingest is O(1); `tick` does all the pruning.
    """

    def __init__(
        self,
        *,
        fade_ms: float = 4000.0,
        min_opacity: float = 0.0,
        max_trail_points: int = 500,
        cursor_timeout_ms: float = 2200.0,
    ) -> None:
        self.fade_ms = fade_ms
        self.min_opacity = min_opacity
        self.max_trail_points = max_trail_points
        self.cursor_timeout_ms = cursor_timeout_ms
        self.trails: dict[str, deque[TrailPoint]] = {}
        self.cursors: dict[str, CursorSample] = {}
        self.settings: dict[str, SettingsRecord] = {}

    def ingest_point(self, identity: str, point: TrailPoint) -> None:
        trail = self.trails.get(identity)
        if trail is None:
            trail = self.trails[identity] = deque(maxlen=self.max_trail_points)
        trail.append(point)

    def ingest_cursor(self, identity: str, sample: CursorSample) -> None:
        self.cursors[identity] = sample

    def set_settings(self, identity: str, settings: SettingsRecord) -> None:
        self.settings[identity] = settings

    def is_visible(self, point: TrailPoint, now: float) -> bool:
        age = now - point.timestamp
        if age >= self.fade_ms:
            return False
        return opacity(age, self.fade_ms) > self.min_opacity

    def tick(self, now: float) -> None:
        for identity in list(self.trails):
            trail = self.trails[identity]
            kept = [p for p in trail if self.is_visible(p, now)]
            if not kept:
                del self.trails[identity]
            elif len(kept) != len(trail):
                self.trails[identity] = deque(kept, maxlen=self.max_trail_points)

        for identity in [i for i, c in self.cursors.items() if now - c.timestamp > self.cursor_timeout_ms]:
            del self.cursors[identity]
            self.settings.pop(identity, None)

    def remove(self, identity: str) -> None:
        self.trails.pop(identity, None)
        self.cursors.pop(identity, None)
        self.settings.pop(identity, None)

    def clear(self) -> None:
        """Drop drawn state; mirrored settings survive a canvas clear."""
        self.trails.clear()
        self.cursors.clear()

    def visible_points(self, now: float) -> dict[str, list[tuple[TrailPoint, float]]]:
        """Points with their current opacity, for a renderer."""
        return {
            identity: [(p, opacity(now - p.timestamp, self.fade_ms)) for p in trail]
            for identity, trail in self.trails.items()
        }
