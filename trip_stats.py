# trip_stats.py
from datetime import date
from typing import Dict, Iterable, List

from date_utils import month_bounds, parse_date

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def overlap_days(start: date, end: date, window_start: date, window_end: date) -> int:
    """Inclusive day count shared by [start, end] and [window_start, window_end]."""
    lo = max(start, window_start)
    hi = min(end, window_end)
    if lo > hi:
        return 0
    return (hi - lo).days + 1


def _reservation_spans(bookings: Iterable[Dict]):
    for b in bookings or []:
        if b.get("isSpecialNote"):
            continue
        start = parse_date(b.get("startDate"))
        end = parse_date(b.get("endDate"))
        if start is None or end is None:
            continue
        yield start, end


def monthly_trip_days(bookings: Iterable[Dict], year: int) -> List[Dict]:
    """
    Occupied vehicle-days per calendar month of `year`.

    A booking running across a month (or year) boundary contributes to each
    month only the days it actually covers there.
    """
    spans = list(_reservation_spans(bookings))
    stats = []
    for m in range(1, 13):
        m_start, m_end = month_bounds(year, m)
        count = sum(overlap_days(s, e, m_start, m_end) for s, e in spans)
        stats.append({"month": MONTH_LABELS[m - 1], "count": count})
    return stats


def annual_trip_days(bookings: Iterable[Dict], year: int) -> int:
    return sum(row["count"] for row in monthly_trip_days(bookings, year))
