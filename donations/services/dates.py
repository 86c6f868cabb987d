from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime


def to_datetime(value) -> Optional[datetime]:
    """Coerce a date, datetime, ISO string or epoch number into an aware datetime.

    Bare dates map to local midnight. Returns ``None`` for blank or unparseable input.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime.combine(value, time.min)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch seconds; legacy exports sometimes carry milliseconds.
        seconds = value / 1000.0 if value > 1e11 else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.get_current_timezone())
    elif isinstance(value, dict) and "seconds" in value:
        # {"seconds": ..., "nanoseconds": ...} timestamp exports
        return to_datetime(int(value["seconds"]))
    elif isinstance(value, str):
        text = value.strip()
        try:
            result = parse_datetime(text) or _date_to_datetime(parse_date(text))
        except ValueError:
            return None
        if result is None:
            return None
    else:
        return None

    if timezone.is_naive(result):
        result = timezone.make_aware(result, timezone.get_current_timezone())
    return result


def _date_to_datetime(value: Optional[date]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.combine(value, time.min)


def local_day(value: Optional[datetime]) -> Optional[date]:
    """Truncate a timestamp to its calendar day in the active time zone."""

    if value is None:
        return None
    if timezone.is_naive(value):
        return value.date()
    return timezone.localtime(value).date()
