from datetime import date

import pytest

from calendar_days import calendar_days, is_booking_end, is_booking_start


def _by_day(cells):
    return {c["date"]: c for c in cells}


def test_grid_is_whole_sunday_first_weeks(make_booking):
    cells = calendar_days("2024-02-10", [])
    assert len(cells) % 7 == 0
    assert cells[0]["date"] == date(2024, 1, 28)
    assert cells[0]["date"].weekday() == 6
    assert cells[-1]["date"] == date(2024, 3, 2)
    assert sum(1 for c in cells if c["isCurrentMonth"]) == 29


def test_booking_only_on_covered_days(make_booking):
    b = make_booking(id="BK-1", startDate="2024-01-30", endDate="2024-02-02")
    days = _by_day(calendar_days(date(2024, 2, 1), [b]))

    covered = {d for d, c in days.items() if c["bookings"]}
    assert covered == {date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1), date(2024, 2, 2)}
    assert days[date(2024, 1, 30)]["isCurrentMonth"] is False


def test_bad_dates_never_appear(make_booking):
    rows = [make_booking(startDate="nope"), make_booking(endDate="")]
    assert all(not c["bookings"] for c in calendar_days("2024-03-01", rows))


def test_bad_reference_raises():
    with pytest.raises(ValueError):
        calendar_days("31/02/2024", [])


def test_start_and_end_markers(make_booking):
    b = make_booking()
    assert is_booking_start("2024-03-01", b)
    assert not is_booking_start("2024-03-02", b)
    assert is_booking_end(date(2024, 3, 3), b)
    assert not is_booking_end("garbage", b)
