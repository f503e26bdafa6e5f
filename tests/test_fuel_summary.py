import pytest

from fuel_summary import (
    FuelValueError, add_booking_purchase, apply_fuel, apply_km, edit_booking_purchase,
    edit_purchase, remove_booking_purchase, remove_purchase, summarize_fuel,
)


def test_summary_sums_and_averages_entered_rates():
    purchases = [
        {"id": "a", "purchasedFuel": 10, "fuelRate": 100, "totalFuelPrice": 1000},
        {"id": "b", "purchasedFuel": 5, "fuelRate": None, "totalFuelPrice": None},
    ]
    assert summarize_fuel(purchases) == {"purchasedFuel": 15, "fuelRate": 100, "totalFuelPrice": 1000}


def test_rate_is_unweighted_mean():
    purchases = [
        {"id": "a", "purchasedFuel": 10, "fuelRate": 100, "totalFuelPrice": 1000},
        {"id": "b", "purchasedFuel": 30, "fuelRate": 110, "totalFuelPrice": 3300},
    ]
    assert summarize_fuel(purchases)["fuelRate"] == 105


def test_empty_purchases_clear_summary():
    blank = {"purchasedFuel": None, "fuelRate": None, "totalFuelPrice": None}
    assert summarize_fuel([]) == blank
    assert summarize_fuel([{"id": "x", "purchasedFuel": "", "fuelRate": None, "totalFuelPrice": None}]) == blank


def test_editing_amount_or_rate_recomputes_line_price():
    purchases = [{"id": "a", "purchasedFuel": 10, "fuelRate": None, "totalFuelPrice": None}]
    out = edit_purchase(purchases, "a", "fuelRate", "102.5")
    assert out[0]["totalFuelPrice"] == 1025
    assert purchases[0]["fuelRate"] is None

    out = edit_purchase(out, "a", "totalFuelPrice", 999)
    assert out[0]["totalFuelPrice"] == 999


def test_edit_rejects_unknown_field_or_line():
    purchases = [{"id": "a", "purchasedFuel": 1, "fuelRate": 1, "totalFuelPrice": 1}]
    with pytest.raises(FuelValueError):
        edit_purchase(purchases, "a", "octane", 95)
    with pytest.raises(FuelValueError):
        edit_purchase(purchases, "zzz", "fuelRate", 95)


def test_removing_last_line_leaves_a_blank_one():
    out = remove_purchase([{"id": "a", "purchasedFuel": 1, "fuelRate": 1, "totalFuelPrice": 1}], "a")
    assert len(out) == 1
    assert out[0]["id"] != "a"
    assert out[0]["purchasedFuel"] is None


def test_apply_km_keeps_typed_summary(make_booking):
    b = make_booking(isFuelEntry=True, kmStart=1200, kmEnd="1350.5",
                     fuelPurchases=[], purchasedFuel=40, fuelRate=None, totalFuelPrice=None)
    out = apply_km(b)
    assert out["totalKm"] == 150.5
    assert len(out["fuelPurchases"]) == 1
    assert out["purchasedFuel"] == 40


def test_apply_fuel_ignores_non_fuel_bookings(make_booking):
    b = make_booking(kmStart=1, kmEnd=5)
    assert apply_fuel(b) == b


def test_booking_level_edits_recompute_summary(make_booking):
    b = make_booking(isFuelEntry=True, kmStart=100, kmEnd=180,
                     fuelPurchases=[{"id": "a", "purchasedFuel": 10, "fuelRate": 100, "totalFuelPrice": 1000}])
    b = add_booking_purchase(b)
    assert len(b["fuelPurchases"]) == 2
    new_id = b["fuelPurchases"][1]["id"]

    b = edit_booking_purchase(b, new_id, "purchasedFuel", 5)
    assert b["purchasedFuel"] == 15
    assert b["fuelRate"] == 100
    assert b["totalFuelPrice"] == 1000
    assert b["totalKm"] == 80

    b = remove_booking_purchase(b, "a")
    assert b["purchasedFuel"] == 5
    assert b["fuelRate"] is None
    assert b["totalFuelPrice"] == 0


def test_mean_rate_is_rounded_to_two_decimals():
    purchases = [
        {"id": "a", "purchasedFuel": 10, "fuelRate": 100, "totalFuelPrice": 1000},
        {"id": "b", "purchasedFuel": 10, "fuelRate": 100, "totalFuelPrice": 1000},
        {"id": "c", "purchasedFuel": 10, "fuelRate": 101, "totalFuelPrice": 1010},
    ]
    assert summarize_fuel(purchases)["fuelRate"] == 100.33
