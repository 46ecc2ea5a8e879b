"""
511.org StopMonitoring API client.
One GET per stop code; visits are parsed into absolute arrival times. Malformed
visits are skipped, transport and HTTP failures raise UpstreamError.
No retries: every request counts against the 60 req/hour key quota.
"""
import json
import logging
import re
from datetime import datetime
from typing import Any, Iterator

import httpx

from src.stopmonitor.models import Arrival, ParseIssue

logger = logging.getLogger(__name__)
# httpx logs full request URLs at INFO, and ours carry the api_key query param
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

SF511_BASE = "https://api.511.org/transit"
DEFAULT_AGENCY = "SF"
SF511_REQUEST_TIMEOUT_SECONDS = 15.0
ERROR_BODY_EXCERPT_CHARS = 100
UTF8_BOM = b"\xef\xbb\xbf"

# RFC 3339 date-time with mandatory offset (what Go's time.RFC3339 accepts)
RFC3339_PATTERN = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)


class UpstreamError(Exception):
    def __init__(self, status: int | None, message: str):
        super().__init__(message)
        self.status = status


def parse_rfc3339(value: Any) -> datetime | None:
    """Strictly parse an RFC 3339 timestamp. Returns None on anything else."""
    if not isinstance(value, str):
        return None
    m = RFC3339_PATTERN.match(value.strip())
    if not m:
        return None
    date_part, time_part, frac, offset = m.groups()
    if frac:
        # fromisoformat wants at most microseconds
        frac = (frac[1:] + "000000")[:6]
        time_part = f"{time_part}.{frac}"
    if offset in ("Z", "z"):
        offset = "+00:00"
    try:
        return datetime.fromisoformat(f"{date_part}T{time_part}{offset}")
    except ValueError:
        return None


def _text(value: Any) -> str:
    """511 sometimes wraps names in a single-element list."""
    if isinstance(value, list):
        value = value[0] if value else ""
    if value is None:
        return ""
    return str(value)


def _iter_visits(payload: dict[str, Any]) -> Iterator[dict[str, Any]]:
    root = payload.get("Siri", payload)
    if not isinstance(root, dict):
        return
    service = root.get("ServiceDelivery") or {}
    if not isinstance(service, dict):
        return
    deliveries = service.get("StopMonitoringDelivery") or []
    if isinstance(deliveries, dict):
        deliveries = [deliveries]
    for delivery in deliveries:
        if not isinstance(delivery, dict):
            continue
        visits = delivery.get("MonitoredStopVisit") or []
        if not isinstance(visits, list):
            continue
        for visit in visits:
            if isinstance(visit, dict):
                yield visit


def parse_visits(payload: dict[str, Any]) -> Iterator[Arrival | ParseIssue]:
    """
    Lazily yield one Arrival or ParseIssue per MonitoredStopVisit, in upstream order.
    Uses ExpectedArrivalTime, falling back to ExpectedDepartureTime.
    """
    for i, visit in enumerate(_iter_visits(payload)):
        journey = visit.get("MonitoredVehicleJourney") or {}
        call = (journey.get("MonitoredCall") or {}) if isinstance(journey, dict) else None
        if not isinstance(call, dict):
            yield ParseIssue(index=i, reason="malformed visit")
            continue
        raw_time = call.get("ExpectedArrivalTime") or call.get("ExpectedDepartureTime")
        if not raw_time:
            yield ParseIssue(index=i, reason="missing expected time")
            continue
        arrival_time = parse_rfc3339(raw_time)
        if arrival_time is None:
            yield ParseIssue(index=i, reason="invalid timestamp", raw_time=str(raw_time))
            continue
        yield Arrival(
            arrival_time=arrival_time,
            destination=_text(journey.get("DestinationName")),
            line_type=_text(journey.get("LineRef")) or None,
        )


def decode_body(body: bytes) -> dict[str, Any]:
    """Strip an optional UTF-8 BOM and decode the JSON envelope."""
    if body.startswith(UTF8_BOM):
        body = body[len(UTF8_BOM):]
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise UpstreamError(None, f"failed to parse response: {e}") from e
    if not isinstance(data, dict):
        raise UpstreamError(None, "failed to parse response: expected a JSON object")
    return data


class StopMonitoringClient:
    """Client for the 511.org StopMonitoring endpoint. One pooled connection set per process."""

    def __init__(
        self,
        api_key: str,
        base_url: str = SF511_BASE,
        timeout: float = SF511_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ):
        self._api_key = api_key
        self._base = base_url.rstrip("/")
        self._http = httpx.Client(
            timeout=timeout,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5, keepalive_expiry=30.0),
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def _redact(self, text: str) -> str:
        if self._api_key:
            return text.replace(self._api_key, "***")
        return text

    def fetch_arrivals(self, agency: str, stop_id: str) -> list[Arrival]:
        """
        Fetch arrivals for one stop code. Returns entries in upstream order
        (no sorting, dedupe or limit). Raises UpstreamError on any failure.
        """
        agency = agency or DEFAULT_AGENCY
        url = f"{self._base}/StopMonitoring"
        params = {"api_key": self._api_key, "agency": agency, "stopCode": stop_id, "format": "json"}
        try:
            resp = self._http.get(url, params=params)
        except httpx.TimeoutException as e:
            raise UpstreamError(None, f"request timed out: {self._redact(str(e))}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(None, f"request failed: {self._redact(str(e))}") from e

        body = resp.content
        if resp.status_code != 200:
            excerpt = body[:ERROR_BODY_EXCERPT_CHARS].decode("utf-8", errors="replace")
            raise UpstreamError(resp.status_code, f"HTTP {resp.status_code}: {self._redact(excerpt)}")

        payload = decode_body(body)
        arrivals: list[Arrival] = []
        skipped = 0
        for item in parse_visits(payload):
            if isinstance(item, ParseIssue):
                skipped += 1
                logger.debug(
                    "telemetry sf511_visit_skipped stop_id=%s index=%s reason=%s raw=%s",
                    stop_id,
                    item.index,
                    item.reason,
                    item.raw_time,
                )
                continue
            arrivals.append(item)

        logger.info(
            "telemetry sf511_arrivals_fetched agency=%s stop_id=%s count=%s skipped=%s",
            agency,
            stop_id,
            len(arrivals),
            skipped,
            extra={"stop_id": stop_id, "count": len(arrivals)},
        )
        return arrivals
