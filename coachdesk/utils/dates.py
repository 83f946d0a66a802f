"""
Date helpers. The store hands back ISO-8601 strings; everything is compared in UTC.
"""

from datetime import date, datetime, timezone
from typing import Optional, Union

from dateutil import parser  # isoparse copes with trailing Z and date-only strings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return utcnow().isoformat()


def today_iso() -> str:
    return utcnow().date().isoformat()


def parse_datetime(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """Parse to an aware datetime. Naive values are taken as UTC. Returns None on junk."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        try:
            dt = parser.isoparse(value)
        except (ValueError, TypeError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def is_past(value, now: Optional[datetime] = None) -> bool:
    dt = parse_datetime(value)
    if dt is None:
        return False
    return dt < (now or utcnow())


def month_key(value) -> Optional[str]:
    dt = parse_datetime(value)
    return dt.strftime("%Y-%m") if dt else None
