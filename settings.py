from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Muni Arrivals Board"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 0  # 0 = use the port from config.yaml
    # CORS: "*" for dev; in production set to comma-separated origins
    cors_origins: str = "*"
    log_level: str = "INFO"

    config_path: str = "config.yaml"  # Stops + 511 key; path relative to project root, or absolute
    static_dir: str = "static"  # Mounted at / when it exists

    # Refresh engine
    timezone: str = ""  # IANA name (e.g. America/Los_Angeles); empty = system local time
    pacing_seconds: float = 1.5  # Delay after every upstream call; keeps us under 60 req/hour
    all_failed_policy: Literal["replace", "keep_last_good"] = "replace"  # When every direction fails
    rate_limit: str = "120/minute"  # Per-client limit on the public API


def get_settings() -> Settings:
    return Settings()
