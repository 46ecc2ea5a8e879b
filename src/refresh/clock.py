"""Wall-clock helpers. The board shows local time; the zone comes from settings."""
from datetime import datetime, tzinfo
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def make_clock(timezone_name: str = "") -> Clock:
    """Return a callable giving tz-aware 'now' in the named zone (system local zone when empty)."""
    tz: tzinfo | None = ZoneInfo(timezone_name) if timezone_name else None

    def now() -> datetime:
        if tz is None:
            return datetime.now().astimezone()
        return datetime.now(tz)

    return now
