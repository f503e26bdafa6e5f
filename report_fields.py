# report_fields.py
"""
Per-field display values for the tabular PDF/CSV exports.

Three report variants are supported:
  - "overall":      detailed data report; any field; "-" for blanks;
                    exempt fares read EXEMPTED
  - "payment_slip": monthly payment slip; fixed columns; unpaid fares read UNPAID
  - "slip":         single-booking payment slip; "N/A" for blanks
"""
from typing import Any, Dict, Iterable, List, Optional

from date_utils import day_span, format_date, parse_date
from models import PAID, UNPAID

BOOKING_FIELDS = [
    ("Rank and Name", "rankName"),
    ("Unit", "unit"),
    ("Mobile Number", "mobileNumber"),
    ("Garrison Status", "garrisonStatus"),
    ("From", "startDate"),
    ("To", "endDate"),
    ("Total Days", "totalDays"),
    ("Duration", "duration"),
    ("Destination", "destination"),
    ("Fare", "fare"),
    ("Fare Status", "fareStatus"),
    ("Out Time", "outTime"),
    ("In Time", "inTime"),
    ("Kilometres Start", "kmStart"),
    ("Kilometres End", "kmEnd"),
    ("Total Kilometres", "totalKm"),
    ("Purchased Fuel", "purchasedFuel"),
    ("Rate", "fuelRate"),
    ("Total Taka", "totalFuelPrice"),
    ("Remarks", "remarks"),
]

FIELD_LABELS = {value: label for label, value in BOOKING_FIELDS}

PAYMENT_SLIP_FIELDS = ["rankName", "unit", "startDate", "endDate", "totalDays", "duration", "fare", "remarks"]

SLIP_FIELDS = ["rankName", "unit", "garrisonStatus", "destination", "duration",
               "startDate", "endDate", "totalDays", "outTime", "inTime", "fare", "fareStatus", "remarks"]

REPORT_VARIANTS = {
    "overall": {"placeholder": "-", "mark_unpaid": False, "upper": True,
                "fields": [f for _, f in BOOKING_FIELDS]},
    "payment_slip": {"placeholder": "-", "mark_unpaid": True, "upper": True,
                     "fields": PAYMENT_SLIP_FIELDS},
    "slip": {"placeholder": "N/A", "mark_unpaid": True, "upper": False,
             "fields": SLIP_FIELDS},
}


class ReportFieldError(ValueError):
    """Raised for an unknown field, unknown report variant, or a field the variant does not carry."""
    pass


def _variant(name: str) -> Dict[str, Any]:
    try:
        return REPORT_VARIANTS[name]
    except KeyError:
        raise ReportFieldError(f"Unknown report variant '{name}'")


def check_fields(fields: Iterable[str], variant: str = "overall") -> List[str]:
    """Validate a field selection up front; returns it as a list."""
    cfg = _variant(variant)
    fields = list(fields)
    for f in fields:
        if f not in FIELD_LABELS:
            raise ReportFieldError(f"Unknown report field '{f}'")
        if f not in cfg["fields"]:
            raise ReportFieldError(f"Field '{f}' is not part of the {variant} report")
    return fields


def total_days(booking: Dict[str, Any]) -> Optional[int]:
    return day_span(booking.get("startDate"), booking.get("endDate"))


def fmt_amount(v) -> str:
    """'3,600' for whole amounts, '1,234.50' otherwise."""
    try:
        f = float(v)
    except (TypeError, ValueError):
        return ""
    if f.is_integer():
        return f"{int(f):,}"
    return f"{f:,.2f}"


def format_field(booking: Dict[str, Any], field: str, variant: str = "overall"):
    """
    Display value of one booking field for a report.
    `fare` and `totalDays` come back as numbers unless replaced by a status
    word; everything else is text.
    """
    check_fields([field], variant)
    cfg = _variant(variant)
    placeholder = cfg["placeholder"]

    if field == "totalDays":
        days = total_days(booking)
        return placeholder if days is None else days

    if field in ("startDate", "endDate"):
        if parse_date(booking.get(field)) is None:
            return placeholder
        return format_date(booking.get(field))

    if field == "fare":
        if booking.get("isExempt"):
            return "EXEMPTED"
        if cfg["mark_unpaid"] and booking.get("fareStatus") == UNPAID:
            return "UNPAID"
        return booking.get("fare") or 0

    value = booking.get(field)
    if value is None or str(value).strip() == "":
        return placeholder
    text = str(value)
    return text.upper() if cfg["upper"] else text


def cell_text(value) -> str:
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        return fmt_amount(value)
    return str(value)


def build_rows(bookings: Iterable[Dict[str, Any]], fields: Iterable[str], variant: str = "overall") -> List[List[str]]:
    fields = check_fields(fields, variant)
    return [[cell_text(format_field(b, f, variant)) for f in fields] for b in bookings]


def header_labels(fields: Iterable[str]) -> List[str]:
    return [FIELD_LABELS[f].upper() for f in fields]


def filter_by_range(bookings: Iterable[Dict[str, Any]], start=None, end=None) -> List[Dict[str, Any]]:
    """
    Reservations (special notes excluded) overlapping [start, end], earliest
    first. Without a complete range every reservation is returned.
    Bookings with unusable dates are dropped.
    """
    s, e = parse_date(start), parse_date(end)
    out = []
    for b in bookings or []:
        if b.get("isSpecialNote"):
            continue
        bs, be = parse_date(b.get("startDate")), parse_date(b.get("endDate"))
        if bs is None or be is None:
            continue
        if s is not None and e is not None and not (bs <= e and be >= s):
            continue
        out.append(b)
    return sorted(out, key=lambda b: parse_date(b.get("startDate")))


def total_fare(bookings: Iterable[Dict[str, Any]], paid_only: bool = False) -> float:
    total = 0
    for b in bookings or []:
        if paid_only and b.get("fareStatus") != PAID:
            continue
        try:
            total += float(b.get("fare") or 0)
        except (TypeError, ValueError):
            continue
    return int(total) if float(total).is_integer() else round(total, 2)
