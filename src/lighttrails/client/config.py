from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """
    Runtime config (headless client).

    Time values are milliseconds unless suffixed `_s`; distances are canvas px.
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="LIGHTTRAILS_CLIENT_", extra="ignore")

    url: str = "ws://127.0.0.1:3000/ws"

    # Trail decay
    fade_ms: float = 4000.0
    min_opacity: float = 0.0
    max_trail_points: int = 500
    cursor_timeout_ms: float = 2200.0

    # Local input
    point_spacing: float = 3.0
    mouse_throttle_ms: float = 50.0

    # Contact sparkles
    collision_window_ms: float = 120.0
    collision_distance: float = 16.0

    # Connection
    reconnect_delay_s: float = 3.0
    keepalive_interval_s: float = 25.0

    fps: float = 60.0


@lru_cache(maxsize=1)
def get_client_settings() -> ClientSettings:
    return ClientSettings()
