from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # DB
    database_url: str = Field(
        default="sqlite+pysqlite:///./later_ladder.db",
        validation_alias="DATABASE_URL",
    )
    db_echo: bool = False

    # squiggle
    squiggle_base_url: str = "https://api.squiggle.com.au"
    user_agent: str = "Later Ladder (github.com/heatherpiper/Later-Ladder)"
    http_timeout_s: float = 30.0

    # -----------------------------
    # Live event stream
    # -----------------------------
    stream_base_delay_s: float = 5.0
    stream_max_delay_s: float = 300.0
    stream_max_retries: int = 5
    stream_stable_period_s: float = 30.0
    # Longest event frame buffered before it is dropped.
    stream_max_frame_chars: int = 1 << 20

    # -----------------------------
    # Bulk sync
    # -----------------------------
    # First VFL season; no fallback below this.
    min_season_year: int = 1897
    max_fallback_depth: int = 5

    log_level: str = "INFO"


settings = Settings()
