"""
Feed-quality heuristics for one direction's upcoming arrivals.

511 predictions thin out when a feed is degraded: big holes between buses,
a first bus hours away in the middle of the day, or a single prediction at
rush hour. None of these is proof of a problem, so they surface as warnings.
"""
from datetime import datetime
from typing import NamedTuple, Sequence

from src.stopmonitor.models import Arrival

LEVEL_GOOD = "good"
LEVEL_WARNING = "warning"

MAX_GAP_MINUTES = 40
FAR_FIRST_ARRIVAL_MINUTES = 90
NORMAL_HOURS = (6, 22)  # [start, end)
PEAK_WINDOWS = ((7, 9), (16, 19))  # inclusive hours

WARNING_LARGE_GAP = "Incomplete data - large gap in arrivals"
WARNING_FAR_AWAY = "Next arrival unusually far away"
WARNING_LIMITED = "Limited schedule data available"


class QualityResult(NamedTuple):
    warning: str
    level: str


def _minutes_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / 60.0


def is_normal_hours(hour: int) -> bool:
    return NORMAL_HOURS[0] <= hour < NORMAL_HOURS[1]


def is_peak_hours(hour: int) -> bool:
    return any(start <= hour <= end for start, end in PEAK_WINDOWS)


def analyze(arrivals: Sequence[Arrival], now: datetime) -> QualityResult:
    """
    Classify arrivals (assumed chronological) as good or warning.
    `now` must be in the board's local timezone; its hour picks the time-of-day rules.
    """
    if not arrivals:
        return QualityResult("", LEVEL_GOOD)

    times = [a.arrival_time for a in arrivals]
    for prev, cur in zip(times, times[1:]):
        if _minutes_between(cur, prev) > MAX_GAP_MINUTES:
            return QualityResult(WARNING_LARGE_GAP, LEVEL_WARNING)

    first_minutes = _minutes_between(times[0], now)
    hour = now.hour

    if is_normal_hours(hour) and first_minutes > FAR_FIRST_ARRIVAL_MINUTES:
        return QualityResult(WARNING_FAR_AWAY, LEVEL_WARNING)

    if is_peak_hours(hour) and len(times) == 1 and first_minutes < FAR_FIRST_ARRIVAL_MINUTES:
        return QualityResult(WARNING_LIMITED, LEVEL_WARNING)

    return QualityResult("", LEVEL_GOOD)
