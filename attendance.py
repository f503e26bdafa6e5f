# attendance.py
from typing import Any, Dict, Iterable, List

from booking_form import _truthy
from date_utils import parse_date
from models import ATTENDANCE_COLUMNS


class AttendanceValueError(ValueError):
    """Raised when an attendance record cannot be saved."""
    pass


def normalize_attendance(data: Dict[str, Any]) -> Dict[str, Any]:
    """Schema-shaped attendance row; rejects a missing/invalid date or driver."""
    row = {c: None for c in ATTENDANCE_COLUMNS}
    for k, v in (data or {}).items():
        if k in row:
            row[k] = v

    d = parse_date(row.get("date"))
    if d is None:
        raise AttendanceValueError("Attendance date is required (YYYY-MM-DD).")
    row["date"] = d.isoformat()

    row["driverName"] = str(row.get("driverName") or "").strip().upper()
    if not row["driverName"]:
        raise AttendanceValueError("Driver name is required.")

    for flag in ("isHoliday", "isOfficeDay", "isDutyDay"):
        row[flag] = _truthy(row.get(flag))

    if row["isHoliday"] and not row["isDutyDay"]:
        row["inTime"] = ""
        row["outTime"] = ""

    if not row.get("id"):
        row.pop("id")
    return row


def attendance_for_month(records: Iterable[Dict[str, Any]], year: int, month: int) -> List[Dict[str, Any]]:
    prefix = f"{year:04d}-{month:02d}"
    rows = [r for r in records or [] if str(r.get("date") or "").startswith(prefix)]
    return sorted(rows, key=lambda r: r.get("date"))


def attendance_status(record: Dict[str, Any]) -> str:
    if record.get("isHoliday") and not record.get("isDutyDay"):
        return "HOLIDAY"
    return "DUTY"
