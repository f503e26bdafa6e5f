import pytest

from report_fields import (
    ReportFieldError, build_rows, check_fields, filter_by_range, fmt_amount,
    format_field, header_labels, total_fare,
)


def test_dates_and_days(make_booking):
    b = make_booking()
    assert format_field(b, "startDate") == "01-03-2024"
    assert format_field(b, "totalDays") == 3
    assert format_field(make_booking(endDate="bad"), "totalDays") == "-"
    assert format_field(make_booking(endDate="bad"), "endDate", "slip") == "N/A"


def test_fare_wording_per_variant(make_booking):
    assert format_field(make_booking(isExempt=True), "fare") == "EXEMPTED"
    assert format_field(make_booking(fareStatus="Unpaid"), "fare") == 3600
    assert format_field(make_booking(fareStatus="Unpaid"), "fare", "payment_slip") == "UNPAID"
    assert format_field(make_booking(fareStatus="Paid"), "fare", "payment_slip") == 3600


def test_text_fields_upper_and_placeholder(make_booking):
    b = make_booking(destination="", remarks="late return")
    assert format_field(b, "destination") == "-"
    assert format_field(b, "remarks") == "LATE RETURN"
    assert format_field(b, "rankName", "slip") == "Maj Rahman"


def test_unknown_field_or_variant_raises(make_booking):
    with pytest.raises(ReportFieldError):
        format_field(make_booking(), "colour")
    with pytest.raises(ReportFieldError):
        format_field(make_booking(), "rankName", "poster")
    with pytest.raises(ReportFieldError):
        check_fields(["mobileNumber"], "payment_slip")


def test_fmt_amount():
    assert fmt_amount(3600) == "3,600"
    assert fmt_amount(1234.5) == "1,234.50"
    assert fmt_amount("x") == ""


def test_rows_and_headers(make_booking):
    rows = build_rows([make_booking()], ["rankName", "fare", "totalDays"])
    assert rows == [["MAJ RAHMAN", "3,600", "3"]]
    assert header_labels(["rankName", "fuelRate"]) == ["RANK AND NAME", "RATE"]


def test_filter_by_range_overlap_and_order(make_booking):
    rows = [
        make_booking(id="late", startDate="2024-03-20", endDate="2024-03-21"),
        make_booking(id="early", startDate="2024-02-28", endDate="2024-03-01"),
        make_booking(id="outside", startDate="2024-04-01", endDate="2024-04-01"),
        make_booking(id="note", isSpecialNote=True),
        make_booking(id="broken", startDate=""),
    ]
    picked = filter_by_range(rows, "2024-03-01", "2024-03-31")
    assert [b["id"] for b in picked] == ["early", "late"]
    assert [b["id"] for b in filter_by_range(rows)] == ["early", "late", "outside"]


def test_total_fare_paid_only(make_booking):
    rows = [make_booking(fare=3600), make_booking(fare=800, fareStatus="Unpaid")]
    assert total_fare(rows) == 4400
    assert total_fare(rows, paid_only=True) == 3600
