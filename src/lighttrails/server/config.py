from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime config (server).

    - Loaded from environment variables
    - Also reads `.env` if present (via pydantic-settings + python-dotenv)
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="LIGHTTRAILS_", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    # Liveness probing
    heartbeat_interval_s: float = 30.0
    connection_timeout_s: float = 10.0

    # Ambient meteor showers broadcast to everyone
    meteors_enabled: bool = True
    meteor_min_interval_s: float = 60.0
    meteor_max_interval_s: float = 120.0

    # Debugging
    debug_log_msgs: bool = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
