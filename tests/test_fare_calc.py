from fare_calc import calculate_fare, apply_fare, rate_for, set_exempt, set_special_note


def test_three_full_days_in_garrison(fares, make_booking):
    assert calculate_fare(make_booking(), fares) == 3600


def test_out_garrison_half_day(fares, make_booking):
    b = make_booking(garrisonStatus="Out Garrison", duration="Half Day",
                     startDate="2024-03-01", endDate="2024-03-02")
    assert calculate_fare(b, fares) == 2000


def test_single_day_counts_once(fares, make_booking):
    b = make_booking(startDate="2024-03-05", endDate="2024-03-05")
    assert calculate_fare(b, fares) == 1200


def test_exempt_and_special_note_are_free(fares, make_booking):
    assert calculate_fare(make_booking(isExempt=True), fares) == 0
    assert calculate_fare(make_booking(isSpecialNote=True), fares) == 0


def test_bad_or_reversed_dates_give_zero(fares, make_booking):
    assert calculate_fare(make_booking(startDate="not-a-date"), fares) == 0
    assert calculate_fare(make_booking(endDate=""), fares) == 0
    assert calculate_fare(make_booking(startDate="2024-03-05", endDate="2024-03-01"), fares) == 0


def test_unknown_garrison_is_billed_as_out_garrison(fares):
    assert rate_for(fares, "Somewhere", "Full Day") == 1500
    assert rate_for(fares, "Somewhere", "Half Day") == 1000


def test_fare_follows_settings(fares, make_booking):
    fares["inGarrisonFull"] = 1000
    assert calculate_fare(make_booking(), fares) == 3000


def test_apply_fare_overwrites_manual_fare_and_keeps_input(fares, make_booking):
    b = make_booking(fare=99)
    out = apply_fare(b, fares)
    assert out["fare"] == 3600
    assert b["fare"] == 99


def test_apply_fare_repairs_fare_status(fares, make_booking):
    assert apply_fare(make_booking(fareStatus="Maybe"), fares)["fareStatus"] == "Unpaid"
    assert apply_fare(make_booking(fareStatus="Unpaid", isExempt=True), fares)["fareStatus"] == "Paid"


def test_set_exempt(fares, make_booking):
    out = set_exempt(make_booking(fareStatus="Unpaid"), True, fares)
    assert out["isExempt"] is True
    assert out["fare"] == 0
    assert out["fareStatus"] == "Paid"

    back = set_exempt(out, False, fares)
    assert back["fare"] == 3600


def test_special_note_blanks_reservation_fields(fares, make_booking):
    out = set_special_note(make_booking(remarks="Vehicle servicing", fareStatus="Unpaid"), True, fares)
    assert out["isSpecialNote"] is True
    assert out["rankName"] == ""
    assert out["unit"] == ""
    assert out["fare"] == 0
    assert out["fareStatus"] == "Paid"
    assert out["remarks"] == "Vehicle servicing"
    assert out["startDate"] == "2024-03-01"
