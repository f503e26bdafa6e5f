from flask import Flask, request, send_file, jsonify
import os
import io
import re
import json
import logging
import pandas as pd

from persistence import get_store, StoreError  # store abstraction (JSON or DB)
from settings_store import SettingsProvider, validate_settings, ROLE_VIEWER, ROLE_ADMIN, ROLE_MASTER
from models import BOOKINGS, ATTENDANCE, SETTINGS, SETTINGS_ID
from date_utils import local_now, local_time, parse_date, parse_month, month_bounds, format_date
from booking_form import prepare_for_save, preview
from calendar_days import calendar_days, is_booking_start, is_booking_end
from trip_stats import monthly_trip_days, annual_trip_days
from attendance import normalize_attendance, attendance_for_month, attendance_status
from report_fields import BOOKING_FIELDS, build_rows, header_labels, filter_by_range
from report_pdf import (
    HandoffInfo, build_booking_slip_pdf, build_payment_slip_pdf,
    build_overall_report_pdf, seal_source_for,
)

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "microbus-dev-key")

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Persistence backend: 'json' (default) or 'db'
PERSISTENCE_BACKEND = os.environ.get("PERSISTENCE_BACKEND", "json").lower()

# ===== Report images (URL or local path; omitted when unavailable) =====
LOGO_SOURCE = os.environ.get("LOGO_SOURCE", "static/logo.png")
PAID_SEAL_SOURCE = os.environ.get("PAID_SEAL_SOURCE", "static/paid_seal.png")
UNPAID_SEAL_SOURCE = os.environ.get("UNPAID_SEAL_SOURCE", "static/unpaid_seal.png")

_ROLE_RANK = {ROLE_VIEWER: 0, ROLE_ADMIN: 1, ROLE_MASTER: 2}

# Live state fed by store subscriptions
_state = {"store": None, "settings": None, BOOKINGS: [], ATTENDANCE: [], "unsubscribe": []}


def _cache_rows(collection):
    def _cb(rows):
        _state[collection] = rows
    return _cb


def wire_store(store, cache_path=None) -> SettingsProvider:
    """
    Bind the app to `store`: bootstrap settings from the local snapshot,
    then keep bookings, attendance and settings current via subscriptions.
    """
    for unsubscribe in _state["unsubscribe"]:
        unsubscribe()

    provider = SettingsProvider(cache_path)
    _state.update({"store": store, "settings": provider, BOOKINGS: [], ATTENDANCE: [], "unsubscribe": []})
    _state["unsubscribe"] = [
        store.subscribe(BOOKINGS, _cache_rows(BOOKINGS)),
        store.subscribe(ATTENDANCE, _cache_rows(ATTENDANCE)),
        store.subscribe(SETTINGS, provider.on_store_change),
    ]
    app.logger.info("store wired (%s): %d bookings", type(store).__name__, len(_state[BOOKINGS]))
    return provider


def _store():
    return _state["store"]


def _settings() -> SettingsProvider:
    return _state["settings"]


# =========================
# Auth / guards
# =========================

def _pin(req):
    pin = req.headers.get("X-Admin-Pin") or req.args.get("pin")
    if not pin and req.is_json:
        pin = (req.get_json(silent=True) or {}).get("pin")
    return pin


def _has_role(req, role) -> bool:
    granted = _settings().role_for_pin(_pin(req))
    return _ROLE_RANK[granted] >= _ROLE_RANK[role]


def _forbidden():
    return jsonify({"ok": False, "error": "forbidden"}), 403


def _maintenance_block(req):
    """503 for writes while maintenance mode is on; the master PIN still gets through."""
    sec = _settings().section("security")
    if sec.get("maintenanceMode") and not _has_role(req, ROLE_MASTER):
        return jsonify({"ok": False, "error": sec.get("maintenanceMessage") or "maintenance"}), 503
    return None


def _write_guard(req, role=ROLE_ADMIN):
    blocked = _maintenance_block(req)
    if blocked is not None:
        return blocked
    if not _has_role(req, role):
        return _forbidden()
    return None


@app.errorhandler(StoreError)
def _store_error(e):
    app.logger.error("⚠️ store failure: %s", e)
    return jsonify({"ok": False, "error": str(e)}), 500


@app.errorhandler(ValueError)
def _value_error(e):
    return jsonify({"ok": False, "error": str(e)}), 400


@app.errorhandler(KeyError)
def _key_error(e):
    msg = e.args[0] if e.args else "not found"
    return jsonify({"ok": False, "error": str(msg)}), 404


def _dated_name(prefix, ext):
    # Dhaka-dated filename, e.g. Payment_Slip_19-10-2026.pdf
    return f"{prefix}_{local_now().strftime('%d-%m-%Y')}.{ext}"


def _safe(s):
    return re.sub(r"[^A-Za-z0-9]+", "_", str(s or "")).strip("_") or "booking"


def _range_args():
    start, end = request.args.get("start"), request.args.get("end")
    if (start and parse_date(start) is None) or (end and parse_date(end) is None):
        raise ValueError("start/end must be YYYY-MM-DD")
    return start, end


# =========================
# Health / login
# =========================

# --- Lightweight health probe ---
@app.route("/healthz", methods=["GET", "HEAD"])
def healthz():
    if request.method == "HEAD":
        return ("", 200, {"Content-Type": "text/plain; charset=utf-8", "Cache-Control": "no-store"})
    return ("ok", 200, {"Content-Type": "text/plain; charset=utf-8", "Cache-Control": "no-store"})


@app.route("/api/v1/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or {}
    role = _settings().role_for_pin(payload.get("pin"))
    return jsonify({"ok": True, "role": role})


# =========================
# Bookings
# =========================

@app.route("/api/v1/bookings", methods=["GET"])
def list_bookings():
    rows = sorted(_state[BOOKINGS], key=lambda b: str(b.get("startDate") or ""))
    return jsonify({"ok": True, "bookings": rows})


@app.route("/api/v1/bookings/<booking_id>", methods=["GET"])
def get_booking(booking_id):
    row = _store().get(BOOKINGS, booking_id)
    if row is None:
        raise KeyError(f"booking '{booking_id}' not found")
    return jsonify({"ok": True, "booking": row, "updatedLocal": local_time(row.get("updatedAt"))})


@app.route("/api/v1/bookings", methods=["POST"])
def save_booking():
    denied = _write_guard(request)
    if denied:
        return denied
    payload = request.get_json(silent=True) or {}
    booking = prepare_for_save(payload.get("booking", payload), _settings().current())
    saved = _store().upsert(BOOKINGS, booking)
    return jsonify({"ok": True, "booking": saved})


@app.route("/api/v1/bookings/<booking_id>", methods=["DELETE"])
def delete_booking(booking_id):
    denied = _write_guard(request)
    if denied:
        return denied
    _store().delete(BOOKINGS, booking_id)
    return jsonify({"ok": True, "id": booking_id})


@app.route("/api/v1/bookings/preview", methods=["POST"])
def preview_booking():
    """
    Live form recalculation, nothing is saved.
    Body: {"booking": {...}, "action": {"type": ..., ...}}
    """
    payload = request.get_json(silent=True) or {}
    booking = preview(payload.get("booking") or {}, _settings().fares(), payload.get("action"))
    return jsonify({"ok": True, "booking": booking})


# =========================
# Calendar / stats
# =========================

@app.route("/api/v1/calendar", methods=["GET"])
def calendar():
    month = request.args.get("month")
    if month:
        year, mon = parse_month(month)
    else:
        today = local_now()
        year, mon = today.year, today.month

    cells = []
    for cell in calendar_days(month_bounds(year, mon)[0], _state[BOOKINGS]):
        day = cell["date"]
        cells.append({
            "date": day.isoformat(),
            "isCurrentMonth": cell["isCurrentMonth"],
            "bookings": [
                {
                    "id": b.get("id"),
                    "rankName": b.get("rankName"),
                    "isSpecialNote": bool(b.get("isSpecialNote")),
                    "isStart": is_booking_start(day, b),
                    "isEnd": is_booking_end(day, b),
                }
                for b in cell["bookings"]
            ],
        })
    return jsonify({"ok": True, "month": f"{year:04d}-{mon:02d}", "days": cells})


@app.route("/api/v1/stats/trips", methods=["GET"])
def trip_stats():
    try:
        year = int(request.args.get("year") or local_now().year)
    except ValueError:
        raise ValueError("year must be a number")
    rows = _state[BOOKINGS]
    return jsonify({
        "ok": True,
        "year": year,
        "months": monthly_trip_days(rows, year),
        "total": annual_trip_days(rows, year),
    })


# =========================
# Attendance
# =========================

def _attendance_rows():
    rows = _state[ATTENDANCE]
    month = request.args.get("month")
    if month:
        year, mon = parse_month(month)
        return attendance_for_month(rows, year, mon)
    return sorted(rows, key=lambda r: str(r.get("date") or ""))


@app.route("/api/v1/attendance", methods=["GET"])
def list_attendance():
    rows = [dict(r, status=attendance_status(r)) for r in _attendance_rows()]
    return jsonify({"ok": True, "attendance": rows})


@app.route("/api/v1/attendance", methods=["POST"])
def save_attendance():
    denied = _write_guard(request)
    if denied:
        return denied
    payload = request.get_json(silent=True) or {}
    record = normalize_attendance(payload.get("record", payload))
    saved = _store().upsert(ATTENDANCE, record)
    return jsonify({"ok": True, "record": saved})


@app.route("/api/v1/attendance/<record_id>", methods=["DELETE"])
def delete_attendance(record_id):
    denied = _write_guard(request)
    if denied:
        return denied
    _store().delete(ATTENDANCE, record_id)
    return jsonify({"ok": True, "id": record_id})


@app.route("/export/attendance.csv")
def export_attendance_csv():
    out_rows = []
    for r in _attendance_rows():
        out_rows.append({
            "Date": format_date(r.get("date")),
            "Driver": r.get("driverName") or "",
            "Status": attendance_status(r),
            "Out Time": r.get("outTime") or "",
            "In Time": r.get("inTime") or "",
            "Office Day": "YES" if r.get("isOfficeDay") else "NO",
            "Last Day Completion": r.get("lastDayCompletionTime") or "",
            "Remarks": r.get("remarks") or "",
        })
    df = pd.DataFrame(out_rows, columns=["Date", "Driver", "Status", "Out Time", "In Time",
                                         "Office Day", "Last Day Completion", "Remarks"])
    buf = io.BytesIO()
    df.to_csv(buf, index=False, encoding="utf-8-sig")
    buf.seek(0)
    return send_file(buf, mimetype="text/csv", as_attachment=True,
                     download_name=_dated_name("Attendance", "csv"))


# =========================
# Settings / admin
# =========================

@app.route("/api/v1/settings", methods=["GET"])
def get_settings():
    return jsonify({"ok": True, "settings": _settings().public()})


@app.route("/admin/settings", methods=["POST"])
def admin_settings_update():
    if not _has_role(request, ROLE_MASTER):
        return _forbidden()
    payload = request.get_json(silent=True) or {}
    changes = payload.get("settings", payload)

    record = _settings().current()
    for section, values in changes.items():
        if section in ("id", "pin"):
            continue
        if not isinstance(values, dict):
            raise ValueError(f"settings section '{section}' must be an object")
        record.setdefault(section, {}).update(values)

    record = validate_settings(record)
    _store().upsert(SETTINGS, dict(record, id=SETTINGS_ID))
    app.logger.info("settings updated: %s", ", ".join(sorted(k for k in changes if k not in ("id", "pin"))))
    return jsonify({"ok": True, "settings": _settings().public()})


@app.route("/admin/wipe", methods=["POST"])
def admin_wipe():
    if not _has_role(request, ROLE_MASTER):
        return _forbidden()
    removed = _store().delete_all(BOOKINGS)
    return jsonify({"ok": True, "deleted": removed})


@app.route("/admin/backup.json", methods=["GET"])
def admin_backup():
    if not _has_role(request, ROLE_MASTER):
        return _forbidden()
    settings = _settings().current()
    backup = {
        "settings": settings,
        "bookings": _store().list(BOOKINGS),
        "exportDate": local_now().isoformat(timespec="seconds"),
        "version": settings["branding"].get("systemVersion"),
    }
    data = json.dumps(backup, ensure_ascii=False, indent=2).encode("utf-8")
    return send_file(io.BytesIO(data), mimetype="application/json", as_attachment=True,
                     download_name=_dated_name("Microbus_Backup", "json"))


# =========================
# PDF reports / CSV export
# =========================

def _send_pdf(pdf_bytes, filename):
    return send_file(io.BytesIO(pdf_bytes), mimetype="application/pdf",
                     as_attachment=True, download_name=filename)


@app.route("/booking/<booking_id>/slip.pdf", methods=["GET"])
def booking_slip_pdf(booking_id):
    booking = _store().get(BOOKINGS, booking_id)
    if booking is None:
        raise KeyError(f"booking '{booking_id}' not found")
    pdf_bytes = build_booking_slip_pdf(
        booking=booking,
        settings=_settings().current(),
        received_by=request.args.get("received_by", ""),
        logo_source=LOGO_SOURCE,
        seal_source=seal_source_for(booking, PAID_SEAL_SOURCE, UNPAID_SEAL_SOURCE),
    )
    return _send_pdf(pdf_bytes, _dated_name(f"Payment_Slip_{_safe(booking.get('rankName'))}", "pdf"))


@app.route("/reports/payment-slip.pdf", methods=["GET"])
def payment_slip_pdf():
    if not _has_role(request, ROLE_ADMIN):
        return _forbidden()
    start, end = _range_args()
    handoff = HandoffInfo.from_mapping({
        "providerArmyNo": request.args.get("provider_army_no"),
        "providerRank": request.args.get("provider_rank"),
        "providerName": request.args.get("provider_name"),
        "receiverArmyNo": request.args.get("receiver_army_no"),
        "receiverRank": request.args.get("receiver_rank"),
        "receiverName": request.args.get("receiver_name"),
    })
    pdf_bytes = build_payment_slip_pdf(
        bookings=_state[BOOKINGS], start=start, end=end,
        settings=_settings().current(), handoff=handoff,
    )
    return _send_pdf(pdf_bytes, _dated_name("Monthly_Payment_Slip", "pdf"))


def _selected_fields():
    return request.args.getlist("field") or [f for _, f in BOOKING_FIELDS]


@app.route("/reports/overall.pdf", methods=["GET"])
def overall_report_pdf():
    if not _has_role(request, ROLE_ADMIN):
        return _forbidden()
    start, end = _range_args()
    pdf_bytes = build_overall_report_pdf(
        bookings=_state[BOOKINGS], start=start, end=end,
        fields=_selected_fields(), settings=_settings().current(),
        with_signatures=request.args.get("signatures", "").strip() in ("1", "true", "yes"),
    )
    return _send_pdf(pdf_bytes, _dated_name("Booking_Data_Report", "pdf"))


@app.route("/export/bookings.csv")
def export_bookings_csv():
    if not _has_role(request, ROLE_ADMIN):
        return _forbidden()
    start, end = _range_args()
    fields = _selected_fields()
    rows = build_rows(filter_by_range(_state[BOOKINGS], start, end), fields, "overall")
    df = pd.DataFrame(rows, columns=header_labels(fields))
    buf = io.BytesIO()
    df.to_csv(buf, index=False, encoding="utf-8-sig")
    buf.seek(0)
    return send_file(buf, mimetype="text/csv", as_attachment=True,
                     download_name=_dated_name("Booking_Data", "csv"))


wire_store(get_store(PERSISTENCE_BACKEND))

# =========================
# Entrypoint
# =========================
if __name__ == "__main__":
    # Useful for local debugging
    app.run(host="0.0.0.0", port=5000, debug=True)
