"""Shared test data builders."""
from datetime import datetime, timedelta, timezone

from src.stopmonitor.models import Arrival

# Midday, outside both peak windows
NOON = datetime(2025, 2, 20, 12, 0, 0, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0) -> datetime:
    return NOON.replace(hour=hour, minute=minute)


def arrival_at(now: datetime, minutes: float, destination: str = "Downtown", line_type: str | None = "N") -> Arrival:
    return Arrival(arrival_time=now + timedelta(minutes=minutes), destination=destination, line_type=line_type)
