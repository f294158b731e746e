from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Optional, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .constants import (
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
from .settings import SettingsRecord

# Coordinates are canvas pixels of the sender; timestamps are unix epoch ms.


class MalformedMessage(ValueError):
    """Inbound frame that is not a valid envelope for a known message type."""


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        allow_inf_nan=False,
    )


class SettingsFields(WireModel):
    # Loosely typed on purpose: `sanitize` decides what is usable.
    color: Any = None
    size: Any = None
    glow: Any = None
    cursor_mode: Any = None
    username: Any = None

    def raw_settings(self) -> dict[str, Any]:
        return {
            "color": self.color,
            "size": self.size,
            "glow": self.glow,
            "cursorMode": self.cursor_mode,
            "username": self.username,
        }


# --- client -> server ---


class UpdateSettings(SettingsFields):
    type: Literal["updateSettings"]


class TrailXY(WireModel):
    x: float
    y: float


class LightTrailIn(SettingsFields):
    type: Literal["lightTrail"]
    trail: TrailXY


class MousePositionIn(SettingsFields):
    type: Literal["mousePosition"]
    x: float
    y: float


class ClearIn(WireModel):
    type: Literal["clear"]


class PingIn(WireModel):
    type: Literal["ping"]


class PongIn(WireModel):
    type: Literal["pong"]


InboundMsg: TypeAlias = Annotated[
    Union[UpdateSettings, LightTrailIn, MousePositionIn, ClearIn, PingIn, PongIn],
    Field(discriminator="type"),
]

INBOUND_TYPES = frozenset(
    {T_UPDATE_SETTINGS, T_LIGHT_TRAIL, T_MOUSE_POSITION, T_CLEAR, T_PING, T_PONG}
)

_inbound = TypeAdapter(InboundMsg)


# --- server -> clients ---


class Metadata(WireModel):
    settings: SettingsRecord


class PeerSettings(WireModel):
    client_id: str
    settings: SettingsRecord


class Welcome(WireModel):
    type: Literal["welcome"] = T_WELCOME
    message: str = "Welcome to LightTrails!"
    client_id: str
    client_count: int
    metadata: Metadata
    all_settings: list[PeerSettings] = Field(default_factory=list)


class ClientJoined(WireModel):
    type: Literal["clientJoined"] = T_CLIENT_JOINED
    client_id: str
    client_count: int
    metadata: Optional[Metadata] = None


class ClientLeft(WireModel):
    type: Literal["clientLeft"] = T_CLIENT_LEFT
    client_id: str
    client_count: int


class LightTrailOut(WireModel):
    type: Literal["lightTrail"] = T_LIGHT_TRAIL
    trail: TrailXY
    color: str
    size: float
    glow: float
    cursor_mode: str
    username: str
    client_id: str
    timestamp: int


class MousePositionOut(WireModel):
    type: Literal["mousePosition"] = T_MOUSE_POSITION
    x: float
    y: float
    client_id: str
    color: str
    size: float
    glow: float
    cursor_mode: str
    username: str
    timestamp: int


class ClearOut(WireModel):
    type: Literal["clear"] = T_CLEAR
    client_id: str
    timestamp: int


class UserSettings(WireModel):
    type: Literal["userSettings"] = T_USER_SETTINGS
    client_id: str
    settings: SettingsRecord


class SettingsAck(WireModel):
    type: Literal["settingsAck"] = T_SETTINGS_ACK
    settings: SettingsRecord


class Ping(WireModel):
    type: Literal["ping"] = T_PING
    timestamp: int


class Pong(WireModel):
    type: Literal["pong"] = T_PONG
    timestamp: int


class Error(WireModel):
    type: Literal["error"] = T_ERROR
    message: str = "Invalid message format"


class MeteorShower(WireModel):
    type: Literal["meteorShower"] = T_METEOR_SHOWER
    streak_count: int
    direction: Literal["leftToRight", "rightToLeft"]
    duration: float
    spread: float
    base_color: str


OutboundMsg: TypeAlias = Union[
    Welcome,
    ClientJoined,
    ClientLeft,
    LightTrailOut,
    MousePositionOut,
    ClearOut,
    UserSettings,
    SettingsAck,
    Ping,
    Pong,
    Error,
    MeteorShower,
]


def encode(msg: BaseModel | dict) -> str:
    if isinstance(msg, BaseModel):
        msg = msg.model_dump(by_alias=True, exclude_none=True)
    return json.dumps(msg, separators=(",", ":"), ensure_ascii=False)


def decode_envelope(raw: str | bytes) -> dict[str, Any]:
    """Parse a frame into `{type, ...}`; raise MalformedMessage otherwise."""
    try:
        obj = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedMessage(f"not JSON: {e}") from e
    if not isinstance(obj, dict):
        raise MalformedMessage("envelope is not an object")
    if not isinstance(obj.get("type"), str):
        raise MalformedMessage("envelope has no string 'type'")
    return obj


def parse_inbound(obj: dict[str, Any]):
    """
    Validate a decoded envelope of a known client->server type.

    Returns None for unknown types (callers log and ignore those).
    """
    if obj.get("type") not in INBOUND_TYPES:
        return None
    try:
        return _inbound.validate_python(obj)
    except ValidationError as e:
        raise MalformedMessage(f"invalid {obj.get('type')}: {e.error_count()} error(s)") from e
