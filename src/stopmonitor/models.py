"""Arrival records parsed from 511 StopMonitoring responses."""
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Arrival:
    arrival_time: datetime  # tz-aware; minutes-away is always derived from this at read time
    destination: str
    line_type: str | None = None


@dataclass(frozen=True)
class ParseIssue:
    """A MonitoredStopVisit that was skipped (missing or malformed timestamp)."""

    index: int
    reason: str
    raw_time: str | None = None
