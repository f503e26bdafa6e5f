# booking_form.py
"""
What the booking form does between keystrokes and the store: shape the
submitted fields into a booking, recompute the derived values, and check it
is fit to save.
"""
import logging
from typing import Any, Dict, Optional

import fare_calc
import fuel_summary
from date_utils import day_span, parse_date
from models import BOOKING_COLUMNS, DURATIONS, GARRISON_STATUSES, FARE_STATUSES, blank_booking

logger = logging.getLogger(__name__)

_FLAGS = ("isExempt", "isSpecialNote", "isFuelEntry")


class BookingValueError(ValueError):
    """Raised when a booking cannot be saved as submitted."""
    pass


def _truthy(v) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(v)


def normalize_booking(data: Dict[str, Any]) -> Dict[str, Any]:
    """Schema-shaped booking: start from a blank form, copy known fields, ignore extras."""
    row = blank_booking()
    for k, v in (data or {}).items():
        if k in BOOKING_COLUMNS:
            row[k] = v

    for flag in _FLAGS:
        row[flag] = _truthy(row.get(flag))

    for k in ("rankName", "unit", "mobileNumber", "destination", "inTime", "outTime", "remarks"):
        row[k] = str(row.get(k) or "").strip()

    for k in ("startDate", "endDate"):
        d = parse_date(row.get(k))
        row[k] = d.isoformat() if d else (str(row.get(k) or "").strip())

    # single-day booking when only the start was picked
    if parse_date(row["startDate"]) is not None and not row["endDate"]:
        row["endDate"] = row["startDate"]

    if not row.get("id"):
        row.pop("id", None)
    return row


def recompute(booking: Dict[str, Any], fares: Dict[str, Any]) -> Dict[str, Any]:
    """Fare plus km total; the fuel summary is left as typed."""
    return fuel_summary.apply_km(fare_calc.apply_fare(booking, fares))


def preview(data: Dict[str, Any], fares: Dict[str, Any], action: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    One step of live form editing. `action` is an optional dict:
      {"type": "exempt", "value": bool}
      {"type": "special_note", "value": bool}
      {"type": "fuel_add"}
      {"type": "fuel_remove", "purchase_id": ...}
      {"type": "fuel_edit", "purchase_id": ..., "field": ..., "value": ...}
    """
    booking = normalize_booking(data)
    kind = (action or {}).get("type")

    if kind == "exempt":
        return fuel_summary.apply_km(fare_calc.set_exempt(booking, _truthy(action.get("value")), fares))
    if kind == "special_note":
        return fuel_summary.apply_km(fare_calc.set_special_note(booking, _truthy(action.get("value")), fares))

    booking = recompute(booking, fares)
    if kind == "fuel_add":
        return fuel_summary.add_booking_purchase(booking)
    if kind == "fuel_remove":
        return fuel_summary.remove_booking_purchase(booking, action.get("purchase_id"))
    if kind == "fuel_edit":
        return fuel_summary.edit_booking_purchase(
            booking, action.get("purchase_id"), action.get("field"), action.get("value")
        )
    if kind is not None:
        raise BookingValueError(f"Unknown form action '{kind}'")
    return booking


def _booking_cap(settings: Dict[str, Any]) -> int:
    """logistics.maxBookingDays as an int; 0 (no cap) when unset or unusable."""
    raw = (settings.get("logistics") or {}).get("maxBookingDays")
    try:
        cap = int(raw or 0)
    except (TypeError, ValueError, OverflowError):
        logger.warning("⚠️ ignoring unusable maxBookingDays %r", raw)
        return 0
    return max(cap, 0)


def validate(booking: Dict[str, Any], settings: Dict[str, Any]) -> None:
    s, e = parse_date(booking.get("startDate")), parse_date(booking.get("endDate"))
    if s is None or e is None:
        raise BookingValueError("Start and end dates are required (YYYY-MM-DD).")
    if e < s:
        raise BookingValueError("End date cannot be before start date.")

    max_days = _booking_cap(settings)
    days = day_span(s, e)
    if max_days and days > max_days:
        raise BookingValueError(f"Bookings are limited to {max_days} days (got {days}).")

    if booking.get("isSpecialNote"):
        if not booking.get("remarks"):
            raise BookingValueError("A special note needs remarks.")
        return

    if not booking.get("rankName"):
        raise BookingValueError("Rank and Name is required.")
    if booking.get("garrisonStatus") not in GARRISON_STATUSES:
        raise BookingValueError(f"Invalid garrison status '{booking.get('garrisonStatus')}'.")
    if booking.get("duration") not in DURATIONS:
        raise BookingValueError(f"Invalid duration '{booking.get('duration')}'.")
    if booking.get("fareStatus") not in FARE_STATUSES:
        raise BookingValueError(f"Invalid fare status '{booking.get('fareStatus')}'.")


def prepare_for_save(data: Dict[str, Any], settings: Dict[str, Any]) -> Dict[str, Any]:
    booking = recompute(normalize_booking(data), settings["fares"])
    validate(booking, settings)
    return booking
