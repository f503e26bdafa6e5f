# calendar_days.py
from datetime import date, timedelta
from typing import Dict, Iterable, List

from date_utils import month_bounds, parse_date


def _week_start(d: date) -> date:
    # weeks run Sunday..Saturday; date.weekday() has Monday == 0
    return d - timedelta(days=(d.weekday() + 1) % 7)


def calendar_days(reference, bookings: Iterable[Dict]) -> List[Dict]:
    """
    Day cells for the month containing `reference`, padded out to whole
    Sunday-first weeks. Each cell lists the bookings covering that day;
    bookings with a missing or unparsable date never appear.
    """
    ref = parse_date(reference)
    if ref is None:
        raise ValueError(f"Invalid reference date '{reference}'")

    m_start, m_end = month_bounds(ref.year, ref.month)
    first = _week_start(m_start)
    last = _week_start(m_end) + timedelta(days=6)

    spans = []
    for b in bookings or []:
        s, e = parse_date(b.get("startDate")), parse_date(b.get("endDate"))
        if s is None or e is None:
            continue
        spans.append((s, e, b))

    days = []
    d = first
    while d <= last:
        days.append({
            "date": d,
            "isCurrentMonth": d.month == ref.month,
            "bookings": [b for s, e, b in spans if s <= d <= e],
        })
        d += timedelta(days=1)
    return days


def is_booking_start(day, booking: Dict) -> bool:
    d = parse_date(day)
    return d is not None and d == parse_date(booking.get("startDate"))


def is_booking_end(day, booking: Dict) -> bool:
    d = parse_date(day)
    return d is not None and d == parse_date(booking.get("endDate"))
