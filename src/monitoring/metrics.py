"""In-memory request and refresh-cycle metrics for the /metrics endpoint."""
import time
from collections.abc import MutableMapping
from threading import Lock

_start_time = time.monotonic()
_counts: MutableMapping[str, int] = {}
_refresh: MutableMapping[str, float] = {}
_lock = Lock()


def record_request(status_code: int) -> None:
    if 200 <= status_code < 300:
        bucket = "2xx"
    elif 400 <= status_code < 500:
        bucket = "4xx"
    elif status_code >= 500:
        bucket = "5xx"
    else:
        bucket = "other"
    with _lock:
        _counts[bucket] = _counts.get(bucket, 0) + 1


def record_refresh(duration_seconds: float, ok: int, failed: int) -> None:
    with _lock:
        _refresh["cycles"] = _refresh.get("cycles", 0) + 1
        _refresh["directions_ok"] = _refresh.get("directions_ok", 0) + ok
        _refresh["directions_failed"] = _refresh.get("directions_failed", 0) + failed
        _refresh["last_duration_seconds"] = duration_seconds


def reset() -> None:
    with _lock:
        _counts.clear()
        _refresh.clear()


def get_metrics() -> dict:
    with _lock:
        counts = dict(_counts)
        refresh = dict(_refresh)
    uptime_seconds = time.monotonic() - _start_time
    return {
        "requests_total": sum(counts.values()),
        "requests_2xx": counts.get("2xx", 0),
        "requests_4xx": counts.get("4xx", 0),
        "requests_5xx": counts.get("5xx", 0),
        "refresh_cycles": int(refresh.get("cycles", 0)),
        "refresh_directions_ok": int(refresh.get("directions_ok", 0)),
        "refresh_directions_failed": int(refresh.get("directions_failed", 0)),
        "refresh_last_duration_seconds": round(refresh.get("last_duration_seconds", 0.0), 2),
        "uptime_seconds": round(uptime_seconds, 1),
    }
