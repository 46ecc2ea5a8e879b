"""
Read-time projection of the cached snapshot.

The cache holds absolute arrival times captured at fetch time; minutes-away is
computed here, per request, against the current clock.
"""
from datetime import datetime

from src.arrivals.models import ArrivalItem, ArrivalsResponse, DirectionArrivals, StopArrivals
from src.quality.analyzer import analyze
from src.refresh.snapshot import CacheSnapshot, DirectionSnapshot
from src.stopmonitor.models import Arrival

MAX_ARRIVALS_PER_DIRECTION = 3
LOADING = "Loading..."


def format_clock(now: datetime) -> str:
    """3:04:05 PM style, no leading zero on the hour."""
    hour = now.hour % 12 or 12
    return f"{hour}:{now:%M:%S} {'AM' if now.hour < 12 else 'PM'}"


def minutes_until(arrival_time: datetime, now: datetime) -> int:
    """Whole minutes from now, rounded down (30s ago -> -1)."""
    return int((arrival_time - now).total_seconds() // 60)


def _project_direction(direction: DirectionSnapshot, now: datetime) -> DirectionArrivals:
    if direction.error:
        return DirectionArrivals(
            label=direction.label,
            stop_id=direction.stop_id,
            arrivals=[],
            error=direction.error,
        )

    upcoming: list[tuple[Arrival, int]] = []
    for arrival in direction.arrivals:
        minutes = minutes_until(arrival.arrival_time, now)
        if minutes < 0:
            continue
        upcoming.append((arrival, minutes))
    upcoming = upcoming[:MAX_ARRIVALS_PER_DIRECTION]

    quality = analyze([a for a, _ in upcoming], now)
    return DirectionArrivals(
        label=direction.label,
        stop_id=direction.stop_id,
        arrivals=[
            ArrivalItem(
                arrival_time=a.arrival_time.isoformat(),
                minutes=minutes,
                destination=a.destination,
                line_type=a.line_type or None,
            )
            for a, minutes in upcoming
        ],
        quality_warning=quality.warning or None,
        quality_level=quality.level,
    )


def project(snapshot: CacheSnapshot, now: datetime) -> ArrivalsResponse:
    """Build the client response for `now`. Never mutates the snapshot."""
    if snapshot.is_empty:
        return ArrivalsResponse(stops=[], last_updated=LOADING)

    return ArrivalsResponse(
        stops=[
            StopArrivals(
                name=stop.name,
                line=stop.line,
                directions=[_project_direction(d, now) for d in stop.directions],
            )
            for stop in snapshot.stops
        ],
        last_updated=format_clock(now),
        fetched_at=snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
    )
