"""Pydantic models for config.yaml (stops, directions, refresh cadence)."""
from pydantic import BaseModel, field_validator

DEFAULT_REFRESH_INTERVAL_SECONDS = 30
DEFAULT_CACHE_REFRESH_INTERVAL_SECONDS = 240
DEFAULT_PORT = 8080


class Direction(BaseModel):
    label: str
    stop_id: str

    @field_validator("stop_id", mode="before")
    @classmethod
    def stop_id_as_str(cls, v):
        # YAML reads bare stop codes like 15726 as ints
        if isinstance(v, int):
            return str(v)
        return v


class Stop(BaseModel):
    name: str
    line: str = ""
    agency: str = ""
    directions: list[Direction]

    @field_validator("line", "agency", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return "" if v is None else str(v)

    @field_validator("directions")
    @classmethod
    def at_least_one_direction(cls, v: list[Direction]) -> list[Direction]:
        if not v:
            raise ValueError("each stop needs at least one direction")
        return v


class AppConfig(BaseModel):
    api_key: str = ""
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL_SECONDS  # UI poll cadence (seconds)
    cache_refresh_interval: int = DEFAULT_CACHE_REFRESH_INTERVAL_SECONDS  # Upstream cadence (seconds)
    port: int = DEFAULT_PORT
    stops: list[Stop] = []

    @field_validator("refresh_interval", "cache_refresh_interval", "port", mode="before")
    @classmethod
    def zero_means_default(cls, v, info):
        if v in (None, 0):
            return {
                "refresh_interval": DEFAULT_REFRESH_INTERVAL_SECONDS,
                "cache_refresh_interval": DEFAULT_CACHE_REFRESH_INTERVAL_SECONDS,
                "port": DEFAULT_PORT,
            }[info.field_name]
        return v

    def direction_count(self) -> int:
        return sum(len(s.directions) for s in self.stops)


class ConfigResponse(BaseModel):
    """Public view of the config for GET /api/config. Never carries the API key."""

    stops: list[Stop]
    refresh_interval: int
