"""Jinja filters and date formatting helpers."""
from datetime import datetime, date, time, timezone

import pytz


def fmt_local(value, tz_name: str = "UTC", with_time: bool = False) -> str:
    """
    Format a date/datetime (or ISO string) in the recipient's timezone.
    Supports:
      - date / datetime objects (naive datetimes are taken as UTC)
      - 'YYYY-MM-DD'
      - 'YYYY-MM-DDTHH:MM:SS' with optional 'Z' or offset
    On parse error, returns the original value so copy never goes blank.
    """
    if value is None:
        return ""

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    else:
        s = str(value).strip()
        if not s:
            return ""
        s_norm = s.replace("T", " ")
        if s_norm.endswith("Z"):
            s_norm = s_norm[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s_norm)
        except ValueError:
            return s
        if ":" not in s_norm:
            return dt.strftime("%d/%m/%Y")

    # If naive datetime, assume UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        tz = pytz.utc
    local = dt.astimezone(tz)

    if with_time:
        return local.strftime("%d/%m/%Y %H:%M")
    return local.strftime("%d/%m/%Y")


def plural_variant(count: int) -> str:
    """Variant selector for count-dependent copy."""
    return "one" if count == 1 else "other"


def as_utc(value):
    """
    Aware UTC datetime for a stored instant. Naive datetimes are taken as UTC
    and a bare date means 00:00 UTC that day. Anything else is returned as-is.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return value
