# models.py
import os

DATA_DIR = os.environ.get("MICROBUS_DATA_DIR", "data")

# Store collections
BOOKINGS = "bookings"
ATTENDANCE = "attendance"
SETTINGS = "settings"
COLLECTIONS = (BOOKINGS, ATTENDANCE, SETTINGS)

# Singleton key of the settings record
SETTINGS_ID = "app"

IN_GARRISON = "In Garrison"
OUT_GARRISON = "Out Garrison"
GARRISON_STATUSES = (IN_GARRISON, OUT_GARRISON)

FULL_DAY = "Full Day"
HALF_DAY = "Half Day"
DURATIONS = (FULL_DAY, HALF_DAY)

PAID = "Paid"
UNPAID = "Unpaid"
FARE_STATUSES = (PAID, UNPAID)

BOOKING_COLUMNS = [
    # identity
    "id",

    # reservation
    "rankName",
    "unit",
    "mobileNumber",
    "garrisonStatus",
    "startDate",
    "endDate",
    "duration",
    "destination",
    "fare",
    "fareStatus",

    # operational
    "inTime",
    "outTime",
    "remarks",

    # flags
    "isExempt",
    "isSpecialNote",
    "isFuelEntry",

    # fuel log (only meaningful when isFuelEntry)
    "kmStart",
    "kmEnd",
    "totalKm",
    "fuelPurchases",
    "purchasedFuel",
    "fuelRate",
    "totalFuelPrice",
]

FUEL_PURCHASE_FIELDS = ["purchasedFuel", "fuelRate", "totalFuelPrice"]

ATTENDANCE_COLUMNS = [
    "id",
    "date",
    "driverName",
    "inTime",
    "outTime",
    "isHoliday",
    "isOfficeDay",
    "isDutyDay",
    "lastDayCompletionTime",
    "remarks",
]


def blank_booking(date_str: str = "") -> dict:
    """A fresh reservation as the booking form starts it."""
    return {
        "rankName": "",
        "unit": "",
        "mobileNumber": "",
        "garrisonStatus": IN_GARRISON,
        "startDate": date_str,
        "endDate": date_str,
        "duration": FULL_DAY,
        "destination": "",
        "fare": None,
        "fareStatus": UNPAID,
        "inTime": "",
        "outTime": "",
        "remarks": "",
        "isExempt": False,
        "isSpecialNote": False,
        "isFuelEntry": False,
    }


DEFAULT_SETTINGS = {
    "security": {
        "adminPin": "4856",
        "masterPin": "0560",
        "maintenanceMode": False,
        "maintenanceMessage": "System is currently being updated.",
        "autoLockTimer": 15,  # minutes
        "maskPinInput": True,
    },
    "fares": {
        "inGarrisonFull": 1200,
        "inGarrisonHalf": 800,
        "outGarrisonFull": 1500,
        "outGarrisonHalf": 1000,
        "currencySymbol": "৳",
        "taxRate": 0,
        "currencyPosition": "prefix",
    },
    "branding": {
        "title": "MICROBUS SCHEDULE",
        "subtitle": "AREA HQ BARISHAL",
        "footerText": "AUTO GENERATED REPORT",
        "footerPhone": "",
        "footerLines": ["AUTO GENERATED REPORT"],
        "systemVersion": "v4.2.0-PRO",
        "pdfSignatureLabel1": "Driver",
        "pdfSignatureLabel2": "JCO/NCO",
    },
    "ui": {
        "watermarkOpacity": 0.12,
        "gridOpacity": 0.05,
        "themeColor": "#10b981",
        "bgColor": "#062c1e",
        "glassIntensity": 0.3,
        "borderRadius": 16,
    },
    "logistics": {
        "drivers": [],
        "driverDetails": [],
        "units": [],
        "weeklyHolidays": ["Friday"],
        "defaultInTime": "08:00",
        "defaultOutTime": "17:00",
        "maxBookingDays": 31,
    },
}


SQLITE_PATH = os.path.join(DATA_DIR, "microbus.db")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
  collection TEXT NOT NULL,
  id TEXT NOT NULL,
  body TEXT NOT NULL,
  PRIMARY KEY (collection, id)
);
"""
