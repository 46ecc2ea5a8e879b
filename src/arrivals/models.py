"""Pydantic models for GET /api/arrivals."""
from pydantic import BaseModel


class ArrivalItem(BaseModel):
    arrival_time: str
    minutes: int
    destination: str
    line_type: str | None = None


class DirectionArrivals(BaseModel):
    label: str
    stop_id: str
    arrivals: list[ArrivalItem]
    error: str | None = None
    quality_warning: str | None = None
    quality_level: str | None = None


class StopArrivals(BaseModel):
    name: str
    line: str
    directions: list[DirectionArrivals]


class ArrivalsResponse(BaseModel):
    stops: list[StopArrivals]
    last_updated: str
    fetched_at: str | None = None  # When the cached data was fetched upstream
