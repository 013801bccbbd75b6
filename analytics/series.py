"""
Series normalization helpers shared by the engine components.

Callers hand us timestamps as epoch millis, numeric strings, ISO-8601
strings, or date/datetime objects, and values as anything float() accepts.
Everything is normalized to epoch millis (UTC) and finite floats here.
"""
import math
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from analytics.constants import DAY_MS
from analytics.models import TimeSeriesPoint


def to_finite_float(value: Any) -> Optional[float]:
    """float(value) if it is a finite number, else None."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _parse_date(value: Any) -> Optional[float]:
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return moment.timestamp() * 1000
    if isinstance(value, date):
        moment = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        return moment.timestamp() * 1000
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            moment = datetime.fromisoformat(text.replace('Z', '+00:00') if text.endswith('Z') else text)
        except ValueError:
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.timestamp() * 1000
    return None


def coerce_timestamp(timestamp: Any = None, date_value: Any = None) -> Optional[int]:
    """
    Resolve an epoch-millisecond timestamp.

    An explicit `timestamp` wins over `date_value`. Returns None when
    neither yields a finite instant.
    """
    millis: Optional[float] = None
    if timestamp is not None and not isinstance(timestamp, bool):
        if isinstance(timestamp, (date, datetime)):
            millis = _parse_date(timestamp)
        else:
            millis = to_finite_float(timestamp)
            if millis is None and isinstance(timestamp, str):
                millis = _parse_date(timestamp)
    elif date_value is not None:
        millis = _parse_date(date_value)

    if millis is None or not math.isfinite(millis):
        return None
    return int(round(millis))


def record_timestamp(record: Mapping[str, Any]) -> Optional[int]:
    return coerce_timestamp(record.get("timestamp"), record.get("date"))


def to_points(series: Optional[Iterable[Any]]) -> List[TimeSeriesPoint]:
    """
    Normalize a series into sorted TimeSeriesPoints.

    Accepts TimeSeriesPoint instances, mappings with timestamp/date and
    value, or (timestamp, value) pairs. Entries without a finite
    timestamp and value are dropped.
    """
    points: List[TimeSeriesPoint] = []
    for entry in series or []:
        if isinstance(entry, TimeSeriesPoint):
            timestamp, value = coerce_timestamp(entry.timestamp), to_finite_float(entry.value)
        elif isinstance(entry, Mapping):
            timestamp, value = record_timestamp(entry), to_finite_float(entry.get("value"))
        elif isinstance(entry, (tuple, list)) and len(entry) == 2:
            timestamp, value = coerce_timestamp(entry[0]), to_finite_float(entry[1])
        else:
            continue
        if timestamp is None or value is None:
            continue
        points.append(TimeSeriesPoint(timestamp=timestamp, value=value))

    points.sort(key=lambda p: p.timestamp)
    return points


def days_since_start(points: List[TimeSeriesPoint]) -> List[float]:
    """x-axis in (fractional) days relative to the first point."""
    if not points:
        return []
    origin = points[0].timestamp
    return [(p.timestamp - origin) / DAY_MS for p in points]


def span_days(points: List[TimeSeriesPoint]) -> float:
    if len(points) < 2:
        return 0.0
    return (points[-1].timestamp - points[0].timestamp) / DAY_MS
