# fare_calc.py
"""
Fare rules for a booking.

All functions are pure: they take a booking dict and the `fares` section of
the settings and hand back a value or a new booking dict. Callers re-run
`apply_fare` after every change to the dates, duration, garrison status or
the exempt/special-note toggles.
"""
from typing import Dict, Any

from date_utils import day_span
from models import IN_GARRISON, OUT_GARRISON, FULL_DAY, PAID, UNPAID

_RATE_KEYS = {
    (IN_GARRISON, True): "inGarrisonFull",
    (IN_GARRISON, False): "inGarrisonHalf",
    (OUT_GARRISON, True): "outGarrisonFull",
    (OUT_GARRISON, False): "outGarrisonHalf",
}


def rate_for(fares: Dict[str, Any], garrison_status: str, duration: str) -> float:
    """Daily rate from the 2x2 table. Anything not In Garrison is billed as Out Garrison."""
    garrison = IN_GARRISON if garrison_status == IN_GARRISON else OUT_GARRISON
    key = _RATE_KEYS[(garrison, duration == FULL_DAY)]
    try:
        return float(fares.get(key) or 0)
    except (TypeError, ValueError):
        return 0.0


def _as_number(v: float):
    return int(v) if float(v).is_integer() else round(v, 2)


def calculate_fare(booking: Dict[str, Any], fares: Dict[str, Any]):
    if booking.get("isExempt") or booking.get("isSpecialNote"):
        return 0

    days = day_span(booking.get("startDate"), booking.get("endDate"))
    if days is None or days <= 0:
        return 0

    rate = rate_for(fares, booking.get("garrisonStatus"), booking.get("duration"))
    return _as_number(rate * days)


def apply_fare(booking: Dict[str, Any], fares: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of `booking` with the fare recomputed (manual fares are overwritten)."""
    out = dict(booking)
    out["fare"] = calculate_fare(booking, fares)
    if out.get("isExempt"):
        out["fareStatus"] = PAID
    elif out.get("fareStatus") not in (PAID, UNPAID):
        out["fareStatus"] = UNPAID
    return out


def set_exempt(booking: Dict[str, Any], exempt: bool, fares: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(booking)
    out["isExempt"] = bool(exempt)
    if exempt:
        out["fareStatus"] = PAID
    return apply_fare(out, fares)


def set_special_note(booking: Dict[str, Any], special: bool, fares: Dict[str, Any]) -> Dict[str, Any]:
    """
    Switch between a reservation and a calendar note. A note keeps only its
    dates and remarks; the reservation fields are blanked and it is never billed.
    """
    out = dict(booking)
    if special:
        out.update({
            "isSpecialNote": True,
            "rankName": "",
            "unit": "",
            "mobileNumber": "",
            "garrisonStatus": IN_GARRISON,
            "duration": FULL_DAY,
            "destination": "",
            "fareStatus": PAID,
            "inTime": "",
            "outTime": "",
            "isExempt": False,
        })
    else:
        out["isSpecialNote"] = False
    return apply_fare(out, fares)
