"""Immutable snapshot of one refresh cycle. Replaced whole, never edited in place."""
from dataclasses import dataclass
from datetime import datetime

from src.stopmonitor.models import Arrival

FETCH_ERROR = "Unable to fetch"


@dataclass(frozen=True)
class DirectionSnapshot:
    label: str
    stop_id: str
    arrivals: tuple[Arrival, ...] = ()
    error: str | None = None  # set => arrivals is empty


@dataclass(frozen=True)
class StopSnapshot:
    name: str
    line: str
    directions: tuple[DirectionSnapshot, ...]


@dataclass(frozen=True)
class CacheSnapshot:
    stops: tuple[StopSnapshot, ...]
    fetched_at: datetime | None  # None until the first cycle completes

    @property
    def is_empty(self) -> bool:
        return not self.stops

    def all_failed(self) -> bool:
        dirs = [d for s in self.stops for d in s.directions]
        return bool(dirs) and all(d.error for d in dirs)


EMPTY_SNAPSHOT = CacheSnapshot(stops=(), fetched_at=None)
