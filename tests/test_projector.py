"""Tests for read-time projection of cached snapshots."""
from datetime import timedelta

from helpers import NOON, arrival_at, at

from src.arrivals.projector import LOADING, format_clock, minutes_until, project
from src.refresh.snapshot import EMPTY_SNAPSHOT, FETCH_ERROR, CacheSnapshot, DirectionSnapshot, StopSnapshot


def _snapshot(*directions: DirectionSnapshot, fetched_at=NOON) -> CacheSnapshot:
    return CacheSnapshot(
        stops=(StopSnapshot(name="Carl & Cole", line="N", directions=tuple(directions)),),
        fetched_at=fetched_at,
    )


def _direction(*offsets, now=NOON) -> DirectionSnapshot:
    return DirectionSnapshot(
        label="Inbound",
        stop_id="15726",
        arrivals=tuple(arrival_at(now, m) for m in offsets),
    )


def test_empty_snapshot_is_loading():
    resp = project(EMPTY_SNAPSHOT, NOON)
    assert resp.stops == []
    assert resp.last_updated == LOADING
    assert resp.fetched_at is None


def test_caps_at_three_and_keeps_order():
    resp = project(_snapshot(_direction(3, 9, 18, 50)), NOON)
    d = resp.stops[0].directions[0]
    assert [a.minutes for a in d.arrivals] == [3, 9, 18]
    assert d.quality_level == "good"
    assert d.quality_warning is None
    assert d.error is None


def test_past_arrivals_dropped():
    resp = project(_snapshot(_direction(-5, -0.5, 0.5, 4)), NOON)
    assert [a.minutes for a in resp.stops[0].directions[0].arrivals] == [0, 4]


def test_never_emits_negative_minutes():
    snap = _snapshot(_direction(-30, -1, 0, 1, 2, 7))
    for step in range(0, 12):
        resp = project(snap, NOON + timedelta(minutes=step, seconds=17))
        assert all(a.minutes >= 0 for d in resp.stops[0].directions for a in d.arrivals)


def test_minutes_decrease_with_time():
    snap = _snapshot(_direction(3, 9, 18))
    first = project(snap, NOON).stops[0].directions[0].arrivals
    later = project(snap, NOON + timedelta(minutes=2)).stops[0].directions[0].arrivals
    assert [a.minutes for a in first] == [3, 9, 18]
    assert [a.minutes for a in later] == [1, 7, 16]
    gone = project(snap, NOON + timedelta(minutes=4)).stops[0].directions[0].arrivals
    assert [a.minutes for a in gone] == [5, 14]


def test_cap_applies_after_dropping_past_arrivals():
    snap = _snapshot(_direction(1, 5, 10, 15))
    resp = project(snap, NOON + timedelta(minutes=2))
    assert [a.minutes for a in resp.stops[0].directions[0].arrivals] == [3, 8, 13]


def test_error_direction_has_no_arrivals_or_quality():
    failed = DirectionSnapshot(label="Outbound", stop_id="15727", error=FETCH_ERROR)
    resp = project(_snapshot(_direction(3), failed), NOON)
    ok, err = resp.stops[0].directions
    assert ok.arrivals[0].minutes == 3
    assert err.error == FETCH_ERROR
    assert err.arrivals == []
    assert err.quality_warning is None
    assert err.quality_level is None


def test_no_arrivals_is_good_without_error():
    resp = project(_snapshot(_direction()), NOON)
    d = resp.stops[0].directions[0]
    assert d.arrivals == []
    assert d.error is None
    assert d.quality_level == "good"


def test_quality_runs_on_projected_list():
    # At 08:00 two cached arrivals, but one already left: single arrival at peak
    now = at(8)
    snap = _snapshot(_direction(-2, 30, now=now))
    d = project(snap, now).stops[0].directions[0]
    assert [a.minutes for a in d.arrivals] == [30]
    assert d.quality_level == "warning"
    assert d.quality_warning == "Limited schedule data available"


def test_same_now_gives_identical_output():
    snap = _snapshot(_direction(3, 9, 18, 50), DirectionSnapshot(label="X", stop_id="1", error=FETCH_ERROR))
    assert project(snap, NOON).model_dump_json() == project(snap, NOON).model_dump_json()


def test_project_does_not_mutate_snapshot():
    snap = _snapshot(_direction(-5, 3, 9, 18, 50))
    before = repr(snap)
    project(snap, NOON + timedelta(minutes=7))
    assert repr(snap) == before


def test_last_updated_is_request_time_and_fetched_at_is_cache_time():
    snap = _snapshot(_direction(30), fetched_at=NOON - timedelta(minutes=3))
    resp = project(snap, at(15, 4).replace(second=5))
    assert resp.last_updated == "3:04:05 PM"
    assert resp.fetched_at == (NOON - timedelta(minutes=3)).isoformat()


def test_arrival_fields():
    resp = project(_snapshot(_direction(3)), NOON)
    item = resp.stops[0].directions[0].arrivals[0]
    assert item.destination == "Downtown"
    assert item.line_type == "N"
    assert item.arrival_time == (NOON + timedelta(minutes=3)).isoformat()


def test_format_clock():
    assert format_clock(at(0, 5)) == "12:05:00 AM"
    assert format_clock(at(12)) == "12:00:00 PM"
    assert format_clock(at(9, 30)) == "9:30:00 AM"


def test_minutes_until_rounds_down():
    assert minutes_until(NOON + timedelta(seconds=179), NOON) == 2
    assert minutes_until(NOON + timedelta(seconds=180), NOON) == 3
    assert minutes_until(NOON - timedelta(seconds=30), NOON) == -1
