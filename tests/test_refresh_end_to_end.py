"""Upstream response -> refresh cycle -> cache -> projection, with only the network and sleep faked."""
import json
from datetime import timedelta
from unittest.mock import MagicMock

import httpx
from helpers import NOON

from src.arrivals.projector import project
from src.config.models import AppConfig, Direction, Stop
from src.refresh.cache import SnapshotCache
from src.refresh.scheduler import IntervalPacer, RefreshScheduler
from src.stopmonitor.client import UTF8_BOM, StopMonitoringClient


def _visit(minutes: int) -> dict:
    expected = (NOON + timedelta(minutes=minutes)).isoformat().replace("+00:00", "Z")
    return {
        "MonitoredVehicleJourney": {
            "LineRef": "N",
            "DestinationName": "Caltrain / Ballpark",
            "MonitoredCall": {"ExpectedArrivalTime": expected},
        }
    }


def _run(minutes: list[int]):
    def handler(request):
        body = {"ServiceDelivery": {"StopMonitoringDelivery": {"MonitoredStopVisit": [_visit(m) for m in minutes]}}}
        return httpx.Response(200, content=UTF8_BOM + json.dumps(body).encode("utf-8"))

    config = AppConfig(
        api_key="k",
        stops=[Stop(name="Carl & Cole", line="N", agency="SF", directions=[Direction(label="Inbound", stop_id="13915")])],
    )
    cache = SnapshotCache()
    sleeps: list[float] = []
    client = StopMonitoringClient(api_key="k", transport=httpx.MockTransport(handler))
    RefreshScheduler(
        config,
        client,
        cache,
        pacer=IntervalPacer(1.5, sleep=sleeps.append),
        clock=lambda: NOON,
        scheduler=MagicMock(),
    ).run_cycle()
    assert sleeps == [1.5]
    return project(cache.read(), NOON).stops[0].directions[0]


def test_upstream_arrivals_projected_to_three_soonest():
    direction = _run([3, 9, 18, 50])
    assert [a.minutes for a in direction.arrivals] == [3, 9, 18]
    assert direction.quality_level == "good"
    assert direction.quality_warning is None
    assert direction.error is None


def test_out_of_order_upstream_arrivals_are_sorted_first():
    direction = _run([50, 18, 3, 9])
    assert [a.minutes for a in direction.arrivals] == [3, 9, 18]


def test_no_upstream_visits_is_empty_without_error():
    direction = _run([])
    assert direction.arrivals == []
    assert direction.error is None
    assert direction.quality_level == "good"
