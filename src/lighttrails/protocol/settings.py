from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_COLOR = "#ff6b6b"
DEFAULT_SIZE = 1.0
DEFAULT_GLOW = 1.2
DEFAULT_CURSOR_MODE = "halo"

MIN_SCALE = 0.5
MAX_SCALE = 3.0
MAX_USERNAME_LEN = 18

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")

CursorMode = Literal["halo", "star"]


class SettingsRecord(BaseModel):
    """
    Display preferences of one identity, always complete and in range.

    Wire form uses camelCase (`cursorMode`); build one with `sanitize`.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    color: str = DEFAULT_COLOR
    size: float = Field(default=DEFAULT_SIZE, ge=MIN_SCALE, le=MAX_SCALE)
    glow: float = Field(default=DEFAULT_GLOW, ge=MIN_SCALE, le=MAX_SCALE)
    cursor_mode: CursorMode = DEFAULT_CURSOR_MODE
    username: str = Field(default="", max_length=MAX_USERNAME_LEN)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def _finite_number(v: object) -> float | None:
    # bool is an int subclass; a checkbox value is not a size.
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    x = float(v)
    if not math.isfinite(x):
        return None
    return x


def placeholder_username(identity: str | None) -> str:
    if not identity:
        return "Stellar"
    return f"Star-{identity[-4:].upper()}"


def normalize_username(v: object) -> str:
    """Trimmed, at most 18 chars, no edge whitespace; '' when unusable."""
    if not isinstance(v, str):
        return ""
    return v.strip()[:MAX_USERNAME_LEN].strip()


def sanitize(
    raw: Mapping[str, Any] | object | None,
    fallback: SettingsRecord | None = None,
    identity: str | None = None,
) -> SettingsRecord:
    """
    Merge a loosely-typed settings payload over the previous record.

    - **raw**: wire-shaped mapping (`color`, `size`, `glow`, `cursorMode`, `username`);
      any field may be missing or garbage
    - **fallback**: the identity's previous record, or None on first contact
    - **identity**: used for the placeholder username when nothing better exists

    Out-of-range numbers are clamped; unusable fields keep the fallback's value.
    """
    if not isinstance(raw, Mapping):
        raw = {}

    color = raw.get("color")
    if isinstance(color, str) and _HEX_COLOR.match(color.strip()):
        color = color.strip()
    elif fallback is not None:
        color = fallback.color
    else:
        color = DEFAULT_COLOR

    size = _finite_number(raw.get("size"))
    if size is None:
        size = fallback.size if fallback is not None else DEFAULT_SIZE
    glow = _finite_number(raw.get("glow"))
    if glow is None:
        glow = fallback.glow if fallback is not None else DEFAULT_GLOW

    mode = raw.get("cursorMode")
    if mode is None:
        cursor_mode = fallback.cursor_mode if fallback is not None else DEFAULT_CURSOR_MODE
    else:
        cursor_mode = "star" if mode == "star" else "halo"

    username = normalize_username(raw.get("username"))
    if not username and fallback is not None:
        username = normalize_username(fallback.username)
    if not username:
        username = placeholder_username(identity)

    return SettingsRecord(
        color=color,
        size=_clamp(size, MIN_SCALE, MAX_SCALE),
        glow=_clamp(glow, MIN_SCALE, MAX_SCALE),
        cursor_mode=cursor_mode,
        username=username,
    )


def default_settings(identity: str | None = None) -> SettingsRecord:
    return sanitize({}, None, identity)
