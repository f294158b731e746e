from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from lighttrails.protocol.constants import (
    T_CLEAR,
    T_CLIENT_JOINED,
    T_CLIENT_LEFT,
    T_ERROR,
    T_LIGHT_TRAIL,
    T_METEOR_SHOWER,
    T_MOUSE_POSITION,
    T_PING,
    T_PONG,
    T_SETTINGS_ACK,
    T_UPDATE_SETTINGS,
    T_USER_SETTINGS,
    T_WELCOME,
)
from lighttrails.protocol.settings import SettingsRecord, sanitize

from .collision import CollisionDetector, Contact
from .config import ClientSettings
from .drawing import CursorThrottle, StrokeSampler
from .store import CursorSample, TrailPoint, TrailStore

logger = logging.getLogger(__name__)

# Trail key for local strokes drawn before the server assigned an identity.
LOCAL_ID = "local"

NAME_PREFIXES = (
    "Aurora",
    "Nebula",
    "Comet",
    "Nova",
    "Lyra",
    "Celeste",
    "Orion",
    "Halo",
    "Stellar",
    "Lumen",
)


def generate_username(rng: random.Random | None = None) -> str:
    rng = rng or random.Random()
    return f"{rng.choice(NAME_PREFIXES)}-{rng.randint(100, 999)}"


def _number(v: object) -> float | None:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return float(v)


@dataclass
class Frame:
    """What one tick leaves for the renderer."""

    now: float
    trails: dict[str, list[tuple[TrailPoint, float]]]
    cursors: dict[str, CursorSample]
    contacts: list[Contact] = field(default_factory=list)


class ClientState:
    """
    Everything a client knows about the shared canvas.

    Feed it server messages with `handle`, local input with the `*_stroke` /
    `move_cursor` methods, and call `tick` once per frame.
    """

    def __init__(self, config: ClientSettings | None = None, settings: SettingsRecord | None = None) -> None:
        config = config or ClientSettings()
        self.config = config
        self.client_id: str | None = None
        self.client_count = 0
        self.local_settings = settings or sanitize({"username": generate_username()}, None, None)
        self.last_pong: float | None = None
        self.store = TrailStore(
            fade_ms=config.fade_ms,
            min_opacity=config.min_opacity,
            max_trail_points=config.max_trail_points,
            cursor_timeout_ms=config.cursor_timeout_ms,
        )
        self.collisions = CollisionDetector(
            window_ms=config.collision_window_ms, distance=config.collision_distance
        )
        self.sampler = StrokeSampler(config.point_spacing)
        self.cursor_throttle = CursorThrottle(config.mouse_throttle_ms)
        # meteor showers etc., drained by the decorative layer
        self.effects: deque[dict[str, Any]] = deque(maxlen=32)

    @property
    def own_key(self) -> str:
        return self.client_id or LOCAL_ID

    # --- settings reconciliation ---

    def apply_local_ack(self, settings: object) -> SettingsRecord:
        if settings:
            self.local_settings = sanitize(settings, self.local_settings, self.client_id)
        return self.local_settings

    def apply_remote_settings(self, identity: object, settings: object) -> SettingsRecord | None:
        if not isinstance(identity, str) or not identity or identity == self.client_id:
            return None
        record = sanitize(settings, self.store.settings.get(identity), identity)
        self.store.set_settings(identity, record)
        cursor = self.store.cursors.get(identity)
        if cursor is not None:
            self.store.ingest_cursor(identity, CursorSample(cursor.x, cursor.y, record, cursor.timestamp))
        return record

    def update_settings(
        self,
        *,
        color: str | None = None,
        size: float | None = None,
        glow: float | None = None,
        cursor_mode: str | None = None,
        username: str | None = None,
    ) -> dict[str, Any]:
        """Apply a local settings change; returns the `updateSettings` message."""
        raw = {"color": color, "size": size, "glow": glow, "cursorMode": cursor_mode, "username": username}
        self.local_settings = sanitize(raw, self.local_settings, self.client_id)
        return self.settings_message()

    def settings_message(self) -> dict[str, Any]:
        return {"type": T_UPDATE_SETTINGS, **self.local_settings.to_wire()}

    # --- server -> client ---

    def handle(self, msg: dict[str, Any], now: float) -> dict[str, Any] | None:
        """Apply one server message. Returns a reply to send, if any."""
        t = msg.get("type")
        if t == T_WELCOME:
            if isinstance(msg.get("clientId"), str):
                self._adopt_identity(msg["clientId"])
            self._set_count(msg.get("clientCount"))
            peers = msg.get("allSettings")
            for entry in peers if isinstance(peers, list) else []:
                if isinstance(entry, dict) and entry.get("clientId") and entry.get("settings"):
                    self.apply_remote_settings(entry["clientId"], entry["settings"])
            # The server starts us on defaults; push our own choice, the ack settles it.
            return self.settings_message()
        elif t == T_LIGHT_TRAIL:
            self._ingest_remote_trail(msg, now)
        elif t == T_MOUSE_POSITION:
            self._ingest_remote_cursor(msg, now)
        elif t == T_CLEAR:
            self.store.clear()
            self.collisions.clear()
        elif t == T_CLIENT_JOINED:
            self._set_count(msg.get("clientCount"))
            metadata = msg.get("metadata") or {}
            if isinstance(metadata, dict) and metadata.get("settings"):
                self.apply_remote_settings(msg.get("clientId"), metadata["settings"])
        elif t == T_CLIENT_LEFT:
            identity = msg.get("clientId")
            if isinstance(identity, str):
                self.store.remove(identity)
            self._set_count(msg.get("clientCount"))
        elif t == T_USER_SETTINGS:
            if msg.get("clientId") == self.client_id:
                self.apply_local_ack(msg.get("settings"))
            else:
                self.apply_remote_settings(msg.get("clientId"), msg.get("settings"))
        elif t == T_SETTINGS_ACK:
            self.apply_local_ack(msg.get("settings"))
        elif t == T_PONG:
            self.last_pong = now
        elif t == T_PING:
            return {"type": T_PONG}
        elif t == T_ERROR:
            logger.warning("server error: %s", msg.get("message"))
        elif t == T_METEOR_SHOWER:
            self.effects.append(msg)
        else:
            logger.info("unknown message type: %r", t)
        return None

    def _adopt_identity(self, client_id: str) -> None:
        # Strokes drawn while anonymous (or under a previous connection) move over.
        for old in (LOCAL_ID, self.client_id):
            if old and old != client_id and old in self.store.trails:
                for p in self.store.trails.pop(old):
                    self.store.ingest_point(client_id, p)
        self.client_id = client_id

    def _set_count(self, count: object) -> None:
        if isinstance(count, int) and not isinstance(count, bool) and count >= 0:
            self.client_count = count

    def _ingest_remote_trail(self, msg: dict[str, Any], now: float) -> None:
        identity = msg.get("clientId")
        trail = msg.get("trail")
        if not isinstance(identity, str) or identity == self.client_id or not isinstance(trail, dict):
            return
        x, y = _number(trail.get("x")), _number(trail.get("y"))
        if x is None or y is None:
            return
        record = sanitize(msg, self.store.settings.get(identity), identity)
        self.store.set_settings(identity, record)
        # Local receive time: decay must not depend on the peers' clocks.
        point = TrailPoint(x=x, y=y, color=record.color, size=record.size, glow=record.glow, timestamp=now)
        self.store.ingest_point(identity, point)
        self.collisions.record(identity, point)
        self.store.ingest_cursor(identity, CursorSample(x, y, record, now))

    def _ingest_remote_cursor(self, msg: dict[str, Any], now: float) -> None:
        identity = msg.get("clientId")
        if not isinstance(identity, str) or identity == self.client_id:
            return
        x, y = _number(msg.get("x")), _number(msg.get("y"))
        if x is None or y is None:
            return
        record = sanitize(msg, self.store.settings.get(identity), identity)
        self.store.set_settings(identity, record)
        self.store.ingest_cursor(identity, CursorSample(x, y, record, now))

    # --- local input ---

    def begin_stroke(self, x: float, y: float, now: float) -> dict[str, Any]:
        point = self.sampler.begin(x, y, now, self.local_settings)
        self._ingest_local(point)
        return self._trail_message(point)

    def extend_stroke(self, x: float, y: float, now: float) -> dict[str, Any] | None:
        """Returns the `lightTrail` message, or None if the point was too close."""
        point = self.sampler.move(x, y, now, self.local_settings)
        if point is None:
            return None
        self._ingest_local(point)
        return self._trail_message(point)

    def end_stroke(self) -> None:
        self.sampler.end()

    def move_cursor(self, x: float, y: float, now: float) -> dict[str, Any] | None:
        if not self.cursor_throttle.allow(now):
            return None
        return {"type": T_MOUSE_POSITION, "x": x, "y": y, **self.local_settings.to_wire()}

    def clear(self) -> dict[str, Any]:
        self.store.clear()
        self.collisions.clear()
        return {"type": T_CLEAR}

    def _ingest_local(self, point: TrailPoint) -> None:
        self.store.ingest_point(self.own_key, point)
        if self.client_id is not None:
            self.collisions.record(self.client_id, point)

    def _trail_message(self, point: TrailPoint) -> dict[str, Any]:
        s = self.local_settings
        return {
            "type": T_LIGHT_TRAIL,
            "trail": {"x": point.x, "y": point.y, "size": s.size, "glow": s.glow},
            **s.to_wire(),
        }

    # --- frame ---

    def tick(self, now: float) -> Frame:
        self.store.tick(now)
        colors = {identity: record.color for identity, record in self.store.settings.items()}
        colors[self.own_key] = self.local_settings.color
        contacts: list[Contact] = []
        for identity, trail in self.store.trails.items():
            if len(trail) < 2:
                continue
            contacts.extend(self.collisions.scan(identity, (trail[-2], trail[-1]), now, colors=colors))
        return Frame(
            now=now,
            trails=self.store.visible_points(now),
            cursors=dict(self.store.cursors),
            contacts=contacts,
        )

    def drain_effects(self) -> list[dict[str, Any]]:
        out = list(self.effects)
        self.effects.clear()
        return out
