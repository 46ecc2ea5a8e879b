"""
Background refresh of the arrivals cache.

Every cycle walks all configured (stop, direction) pairs in config order, one
request at a time, pausing after each request so the whole board stays under
the 511 key quota (60 req/hour). The finished snapshot replaces the cached one
in a single write. Cadence: one synchronous cycle at startup, then an
APScheduler interval job every cache_refresh_interval seconds.

Quota sizing is a deployment concern: directions x refreshes/hour must stay
under the key limit (e.g. 4 directions -> 15 cycles/hour -> 4 minute interval).
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol

from apscheduler.schedulers.background import BackgroundScheduler

from src.config.models import AppConfig, Direction, Stop
from src.monitoring.metrics import record_refresh
from src.refresh.cache import SnapshotCache
from src.refresh.clock import Clock
from src.refresh.snapshot import FETCH_ERROR, CacheSnapshot, DirectionSnapshot, StopSnapshot
from src.stopmonitor.client import UpstreamError
from src.stopmonitor.models import Arrival

logger = logging.getLogger(__name__)

DEFAULT_PACING_SECONDS = 1.5
REFRESH_JOB_ID = "cache_refresh"

STATE_IDLE = "idle"
STATE_REFRESHING = "refreshing"

POLICY_REPLACE = "replace"
POLICY_KEEP_LAST_GOOD = "keep_last_good"
ALL_FAILED_POLICIES = frozenset({POLICY_REPLACE, POLICY_KEEP_LAST_GOOD})


class ArrivalsFetcher(Protocol):
    def fetch_arrivals(self, agency: str, stop_id: str) -> list[Arrival]: ...


class IntervalPacer:
    """Fixed pause after every upstream request."""

    def __init__(self, seconds: float = DEFAULT_PACING_SECONDS, sleep: Callable[[float], None] = time.sleep):
        self.seconds = seconds
        self._sleep = sleep

    def wait(self) -> None:
        if self.seconds > 0:
            self._sleep(self.seconds)


@dataclass(frozen=True)
class WorkItem:
    stop_index: int
    stop: Stop
    direction: Direction


def build_work_items(config: AppConfig) -> list[WorkItem]:
    return [
        WorkItem(stop_index=i, stop=stop, direction=direction)
        for i, stop in enumerate(config.stops)
        for direction in stop.directions
    ]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshScheduler:
    def __init__(
        self,
        config: AppConfig,
        client: ArrivalsFetcher,
        cache: SnapshotCache,
        *,
        pacer: IntervalPacer | None = None,
        clock: Clock = _utc_now,
        all_failed_policy: str = POLICY_REPLACE,
        scheduler: BackgroundScheduler | None = None,
    ):
        if all_failed_policy not in ALL_FAILED_POLICIES:
            raise ValueError(
                f"all_failed_policy must be one of {sorted(ALL_FAILED_POLICIES)}, got {all_failed_policy!r}"
            )
        self._config = config
        self._client = client
        self._cache = cache
        self._pacer = pacer or IntervalPacer()
        self._clock = clock
        self._policy = all_failed_policy
        self._scheduler = scheduler or BackgroundScheduler(daemon=True)
        self._work_items = build_work_items(config)
        self.state = STATE_IDLE

    @property
    def interval_seconds(self) -> int:
        return self._config.cache_refresh_interval

    def _fetch_direction(self, item: WorkItem) -> DirectionSnapshot:
        direction = item.direction
        try:
            arrivals = self._client.fetch_arrivals(item.stop.agency, direction.stop_id)
        except UpstreamError as e:
            logger.warning(
                "telemetry direction_error label=%s stop_id=%s status=%s error=%s",
                direction.label,
                direction.stop_id,
                e.status,
                str(e),
            )
            return DirectionSnapshot(label=direction.label, stop_id=direction.stop_id, error=FETCH_ERROR)
        except Exception:
            # One broken direction must not take the rest of the cycle with it
            logger.exception(
                "telemetry direction_error label=%s stop_id=%s unexpected", direction.label, direction.stop_id
            )
            return DirectionSnapshot(label=direction.label, stop_id=direction.stop_id, error=FETCH_ERROR)

        ordered = tuple(sorted(arrivals, key=lambda a: a.arrival_time))
        logger.info(
            "telemetry direction_fetched label=%s stop_id=%s count=%s",
            direction.label,
            direction.stop_id,
            len(ordered),
        )
        return DirectionSnapshot(label=direction.label, stop_id=direction.stop_id, arrivals=ordered)

    def run_cycle(self) -> CacheSnapshot:
        """Fetch every direction sequentially and publish the result. Returns the snapshot now in the cache."""
        self.state = STATE_REFRESHING
        started = time.monotonic()
        fetched_at = self._clock()
        logger.info("telemetry refresh_start directions=%s", len(self._work_items))
        try:
            per_stop: list[list[DirectionSnapshot]] = [[] for _ in self._config.stops]
            for item in self._work_items:
                per_stop[item.stop_index].append(self._fetch_direction(item))
                self._pacer.wait()

            snapshot = CacheSnapshot(
                stops=tuple(
                    StopSnapshot(name=stop.name, line=stop.line, directions=tuple(dirs))
                    for stop, dirs in zip(self._config.stops, per_stop)
                ),
                fetched_at=fetched_at,
            )
            failed = sum(1 for s in snapshot.stops for d in s.directions if d.error)
            ok = len(self._work_items) - failed
            duration = time.monotonic() - started
            record_refresh(duration, ok=ok, failed=failed)

            if snapshot.all_failed() and self._policy == POLICY_KEEP_LAST_GOOD:
                previous = self._cache.read()
                if not previous.is_empty:
                    logger.warning(
                        "telemetry refresh_all_failed policy=%s kept_fetched_at=%s",
                        self._policy,
                        previous.fetched_at.isoformat() if previous.fetched_at else None,
                    )
                    return previous

            self._cache.write(snapshot)
            logger.info(
                "telemetry refresh_complete duration_s=%.1f ok=%s failed=%s", duration, ok, failed
            )
            return snapshot
        finally:
            self.state = STATE_IDLE

    def _run_job(self) -> None:
        try:
            self.run_cycle()
        except Exception:
            logger.exception("telemetry refresh_cycle_crashed")

    def start(self) -> None:
        """Run one cycle now (blocking), then keep refreshing on the configured interval."""
        self.run_cycle()
        self._scheduler.add_job(
            self._run_job,
            "interval",
            seconds=self.interval_seconds,
            id=REFRESH_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "telemetry refresh_scheduled interval_s=%s directions=%s",
            self.interval_seconds,
            len(self._work_items),
        )

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
