from __future__ import annotations

import time as _time
from datetime import date, datetime, timedelta, timezone
from typing import Union

from dateutil import parser as date_parser

DateLike = Union[str, _time.struct_time, datetime, date, None]

TREND_WINDOWS = {
    "1day": timedelta(days=1),
    "1week": timedelta(days=7),
    "1month": timedelta(days=30),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_to_utc(value: DateLike) -> datetime:
    """
    Parse the date forms collectors hand us into an aware UTC datetime.

    Naive values are assumed to already be UTC; ``None`` means "now".
    """
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, _time.struct_time):
        dt = datetime.fromtimestamp(_time.mktime(value), tz=timezone.utc)
    else:
        dt = date_parser.parse(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hours_since(moment: datetime, now: datetime | None = None) -> float:
    reference = now or utcnow()
    return (reference - parse_to_utc(moment)).total_seconds() / 3600.0


def period_key(moment: datetime, window: str) -> str:
    """Bucket label for trend analysis: day, Sunday-started week or month."""
    dt = parse_to_utc(moment)
    if window == "1day":
        return dt.date().isoformat()
    if window == "1week":
        # isoweekday: Monday=1 .. Sunday=7
        week_start = dt.date() - timedelta(days=dt.isoweekday() % 7)
        return f"{week_start.isoformat()}-week"
    if window == "1month":
        return f"{dt.year:04d}-{dt.month:02d}"
    raise ValueError(f"Unsupported trend window: {window}")
