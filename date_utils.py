# date_utils.py
import os
from datetime import date, datetime
from typing import Optional

import pytz

DATE_FORMAT = "%d-%m-%Y"
LOCAL_TZ = os.environ.get("LOCAL_TZ", "Asia/Dhaka")


def parse_date(value) -> Optional[date]:
    """
    Best-effort conversion of a stored date to `datetime.date`.
    Accepts date/datetime objects and ISO strings ('2024-05-01' or
    '2024-05-01T10:00:00'). Returns None for missing or unparsable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    s = str(value).strip()
    if s == "" or s.lower() == "nan":
        return None

    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        return None


def day_span(start, end) -> Optional[int]:
    """Inclusive number of days from start to end; None if either is unusable."""
    s, e = parse_date(start), parse_date(end)
    if s is None or e is None:
        return None
    return (e - s).days + 1


def format_date(value) -> str:
    d = parse_date(value)
    if d is None:
        return "N/A"
    return d.strftime(DATE_FORMAT)


def month_bounds(year: int, month: int):
    first = date(year, month, 1)
    if month == 12:
        nxt = date(year + 1, 1, 1)
    else:
        nxt = date(year, month + 1, 1)
    return first, date.fromordinal(nxt.toordinal() - 1)


def parse_month(value: str):
    """'YYYY-MM' -> (year, month). Raises ValueError on bad input."""
    s = (value or "").strip()
    try:
        y, m = s.split("-", 1)
        year, month = int(y), int(m)
    except ValueError:
        raise ValueError(f"Invalid month '{value}' (expected YYYY-MM)")
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month '{value}' (expected YYYY-MM)")
    return year, month


def local_now() -> datetime:
    return datetime.now(pytz.timezone(LOCAL_TZ))


def local_time(value) -> str:
    """
    Render a stored timestamp as office-local time in 'DD-MM-YYYY HH:MM'.
      - naive ISO strings are treated as UTC (the store writes UTC)
      - aware ISO strings are converted
      - anything else is shown as-is
    """
    if not value:
        return "—"

    s = str(value).strip()
    tz = pytz.timezone(LOCAL_TZ)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return s

    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(tz).strftime(f"{DATE_FORMAT} %H:%M")
