# fuel_summary.py
"""
Fuel log arithmetic for bookings flagged `isFuelEntry`.

A booking carries a list of purchases plus booking-level summary fields
(`purchasedFuel`, `fuelRate`, `totalFuelPrice`). The summary can be typed
over by hand, but any edit to a purchase line recomputes it wholesale.

`fuelRate` is the plain mean of the rates entered, not weighted by liters.
All summary figures are stored rounded to PRICE_DECIMALS places.
"""
import uuid
from typing import Any, Dict, List, Optional

from models import FUEL_PURCHASE_FIELDS

PRICE_DECIMALS = 2


class FuelValueError(ValueError):
    """Raised for edits naming an unknown purchase line or field."""
    pass


def _num(v) -> Optional[float]:
    """Float for a filled-in number, None for blank/absent values."""
    if v is None:
        return None
    if isinstance(v, bool):
        return None
    s = str(v).strip()
    if s == "" or s.lower() == "nan":
        return None
    try:
        return float(s)
    except ValueError:
        return None


def _clean(v: Optional[float]):
    if v is None:
        return None
    v = round(v, PRICE_DECIMALS)
    return int(v) if v.is_integer() else v


def blank_purchase() -> Dict[str, Any]:
    return {"id": uuid.uuid4().hex[:12], "purchasedFuel": None, "fuelRate": None, "totalFuelPrice": None}


def summarize_fuel(purchases: List[Dict[str, Any]]) -> Dict[str, Any]:
    rows = purchases or []
    has_data = any(_num(p.get(f)) is not None for p in rows for f in FUEL_PURCHASE_FIELDS)
    if not has_data:
        return {"purchasedFuel": None, "fuelRate": None, "totalFuelPrice": None}

    fuel = sum(_num(p.get("purchasedFuel")) or 0 for p in rows)
    price = sum(_num(p.get("totalFuelPrice")) or 0 for p in rows)
    rates = [r for r in (_num(p.get("fuelRate")) for p in rows) if r is not None]
    rate = sum(rates) / len(rates) if rates else None

    return {
        "purchasedFuel": _clean(fuel),
        "fuelRate": _clean(rate),
        "totalFuelPrice": _clean(price),
    }


def edit_purchase(purchases: List[Dict[str, Any]], purchase_id: str, field: str, value) -> List[Dict[str, Any]]:
    """
    Set one field of one purchase line. Changing the fuel amount or the rate
    recomputes that line's price when both are filled in.
    """
    if field not in FUEL_PURCHASE_FIELDS:
        raise FuelValueError(f"Unknown fuel field '{field}'")

    out = []
    found = False
    for p in purchases or []:
        p = dict(p)
        if p.get("id") == purchase_id:
            found = True
            p[field] = _clean(_num(value))
            if field in ("purchasedFuel", "fuelRate"):
                fuel, rate = _num(p.get("purchasedFuel")), _num(p.get("fuelRate"))
                if fuel is not None and rate is not None:
                    p["totalFuelPrice"] = _clean(fuel * rate)
        out.append(p)

    if not found:
        raise FuelValueError(f"Fuel purchase '{purchase_id}' not found")
    return out


def add_purchase(purchases: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [dict(p) for p in purchases or []] + [blank_purchase()]


def remove_purchase(purchases: List[Dict[str, Any]], purchase_id: str) -> List[Dict[str, Any]]:
    out = [dict(p) for p in purchases or [] if p.get("id") != purchase_id]
    return out or [blank_purchase()]


def apply_km(booking: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy with `totalKm` recomputed and at least one purchase line.
    Leaves the fuel summary alone so a hand-typed summary survives a save.
    """
    out = dict(booking)
    if not out.get("isFuelEntry"):
        return out

    km_start, km_end = _num(out.get("kmStart")), _num(out.get("kmEnd"))
    out["totalKm"] = _clean(km_end - km_start) if km_start is not None and km_end is not None else None
    out["fuelPurchases"] = [dict(p) for p in out.get("fuelPurchases") or []] or [blank_purchase()]
    return out


def apply_fuel(booking: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of `booking` with km total and fuel summary recomputed."""
    out = apply_km(booking)
    if not out.get("isFuelEntry"):
        return out
    out.update(summarize_fuel(out["fuelPurchases"]))
    return out


# ---- booking-level wrappers: edit the list, then recompute the summary ----

def edit_booking_purchase(booking: Dict[str, Any], purchase_id: str, field: str, value) -> Dict[str, Any]:
    out = dict(booking)
    out["fuelPurchases"] = edit_purchase(booking.get("fuelPurchases"), purchase_id, field, value)
    return apply_fuel(out)


def add_booking_purchase(booking: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(booking)
    out["fuelPurchases"] = add_purchase(booking.get("fuelPurchases"))
    return apply_fuel(out)


def remove_booking_purchase(booking: Dict[str, Any], purchase_id: str) -> Dict[str, Any]:
    out = dict(booking)
    out["fuelPurchases"] = remove_purchase(booking.get("fuelPurchases"), purchase_id)
    return apply_fuel(out)
