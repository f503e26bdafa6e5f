# settings_store.py
import os, json, copy, math, logging
from typing import Any, Dict, Optional

from models import DATA_DIR, DEFAULT_SETTINGS, SETTINGS_ID
from persistence import atomic_write_json

logger = logging.getLogger(__name__)

CACHE_PATH = os.path.join(DATA_DIR, "settings_cache.json")

ROLE_VIEWER = "viewer"
ROLE_ADMIN = "admin"
ROLE_MASTER = "master"

FARE_KEYS = ("inGarrisonFull", "inGarrisonHalf", "outGarrisonFull", "outGarrisonHalf")
FARE_PRECISION_DECIMALS = 2


class SettingsValueError(ValueError):
    """Raised when a settings change carries an unusable fare or booking cap."""
    pass


def _validate_amount(key: str, value) -> float:
    if isinstance(value, bool):
        raise SettingsValueError(f"{key} must be a number.")
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise SettingsValueError(f"{key} must be a number.")
    if not math.isfinite(v):
        raise SettingsValueError(f"{key} must be a number.")
    if v < 0:
        raise SettingsValueError(f"{key} cannot be negative.")
    v = round(v, FARE_PRECISION_DECIMALS)
    return int(v) if v.is_integer() else v


def validate_settings(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check the values the core computes with before a settings record is saved:
    the four daily rates (non-negative numbers) and logistics.maxBookingDays
    (a whole number of days, 0 for no cap). Returns a cleaned copy.
    """
    out = copy.deepcopy(record)
    fares = out.get("fares") or {}
    for key in FARE_KEYS:
        if key in fares:
            fares[key] = _validate_amount(key, fares[key])

    logistics = out.get("logistics") or {}
    if "maxBookingDays" in logistics:
        days = _validate_amount("maxBookingDays", logistics["maxBookingDays"])
        if not isinstance(days, int):
            raise SettingsValueError("maxBookingDays must be a whole number of days.")
        logistics["maxBookingDays"] = days
    return out


def merge_settings(record: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """DEFAULT_SETTINGS overlaid section by section with `record`; unknown sections are kept."""
    merged = copy.deepcopy(DEFAULT_SETTINGS)
    for section, values in (record or {}).items():
        if section == "id":
            continue
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


class SettingsProvider:
    """
    Holds the current settings record for the core.

    On start it bootstraps from the local JSON snapshot (or the defaults),
    so fares and PINs are usable before the store has answered. Every fresh
    record from the store replaces the snapshot wholesale.
    """

    def __init__(self, cache_path: str = None):
        self.cache_path = cache_path or CACHE_PATH
        self._settings = merge_settings(self._read_cache())

    # -------------------------
    # Public API
    # -------------------------
    def current(self) -> Dict[str, Any]:
        return copy.deepcopy(self._settings)

    def fares(self) -> Dict[str, Any]:
        return dict(self._settings["fares"])

    def section(self, name: str) -> Dict[str, Any]:
        return copy.deepcopy(self._settings.get(name) or {})

    def update(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Adopt a settings record (from the store or a save) and refresh the local snapshot."""
        self._settings = merge_settings(record)
        try:
            atomic_write_json(self.cache_path, self._settings, prefix=".settings.")
        except OSError as e:
            logger.warning("⚠️ settings cache write failed: %s", e)
        return self.current()

    def on_store_change(self, rows) -> None:
        """Subscription callback for the `settings` collection."""
        record = next((r for r in rows or [] if r.get("id") == SETTINGS_ID), None)
        if record is not None:
            self.update(record)

    def role_for_pin(self, pin: str) -> str:
        pin = str(pin or "").strip()
        sec = self._settings["security"]
        if pin and pin == str(sec.get("masterPin") or ""):
            return ROLE_MASTER
        if pin and pin == str(sec.get("adminPin") or ""):
            return ROLE_ADMIN
        return ROLE_VIEWER

    def public(self) -> Dict[str, Any]:
        """Settings safe to hand to any viewer (PINs removed)."""
        out = self.current()
        out["security"].pop("adminPin", None)
        out["security"].pop("masterPin", None)
        return out

    # -------------------------
    # Internal helpers
    # -------------------------
    def _read_cache(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self.cache_path):
            return None
        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("⚠️ ignoring unreadable settings cache %s: %s", self.cache_path, e)
            return None
