from __future__ import annotations

import math

from lighttrails.protocol.settings import SettingsRecord

from .store import TrailPoint


class StrokeSampler:
    """Turns raw pointer samples of one local stroke into spaced trail points."""

    def __init__(self, spacing: float = 3.0) -> None:
        self.spacing = spacing
        self._last: TrailPoint | None = None

    @property
    def drawing(self) -> bool:
        return self._last is not None

    def begin(self, x: float, y: float, now: float, settings: SettingsRecord) -> TrailPoint:
        self._last = _point(x, y, now, settings)
        return self._last

    def move(self, x: float, y: float, now: float, settings: SettingsRecord) -> TrailPoint | None:
        if self._last is None:
            return None
        if math.hypot(x - self._last.x, y - self._last.y) < self.spacing:
            return None
        self._last = _point(x, y, now, settings)
        return self._last

    def end(self) -> None:
        self._last = None


def _point(x: float, y: float, now: float, settings: SettingsRecord) -> TrailPoint:
    return TrailPoint(x=x, y=y, color=settings.color, size=settings.size, glow=settings.glow, timestamp=now)


class CursorThrottle:
    def __init__(self, interval_ms: float = 50.0) -> None:
        self.interval_ms = interval_ms
        self._last_sent: float | None = None

    def allow(self, now: float) -> bool:
        if self._last_sent is not None and now - self._last_sent < self.interval_ms:
            return False
        self._last_sent = now
        return True
