import re

import httpx
import pytest
from PIL import Image

import report_pdf
from models import DEFAULT_SETTINGS
from report_fields import ReportFieldError
from report_pdf import (
    HandoffInfo, build_booking_slip_pdf, build_overall_report_pdf, build_payment_slip_pdf,
    circular_logo, load_image, seal_source_for,
)


@pytest.fixture
def png_path(tmp_path):
    path = tmp_path / "logo.png"
    Image.new("RGB", (120, 80), (16, 185, 129)).save(path)
    return str(path)


def test_load_image_local_and_missing(png_path, tmp_path):
    assert load_image(png_path).size == (120, 80)
    assert load_image(str(tmp_path / "nope.png")) is None
    assert load_image("") is None


def test_load_image_url_failure_is_omitted(monkeypatch):
    def refuse(url, **kwargs):
        assert kwargs["timeout"] == report_pdf.IMAGE_TIMEOUT_SECONDS
        raise httpx.ConnectError("offline")

    monkeypatch.setattr(report_pdf.httpx, "get", refuse)
    assert load_image("https://example.invalid/logo.png") is None


def test_circular_logo_is_square_with_alpha(png_path):
    logo = circular_logo(load_image(png_path))
    assert logo.size == (80, 80)
    assert logo.mode == "RGBA"
    assert logo.getpixel((0, 0))[3] == 0
    assert logo.getpixel((40, 40))[3] == 255


def test_seal_choice(make_booking):
    assert seal_source_for(make_booking(), "paid.png", "unpaid.png") == "paid.png"
    assert seal_source_for(make_booking(fareStatus="Unpaid"), "paid.png", "unpaid.png") == "unpaid.png"
    assert seal_source_for(make_booking(isExempt=True), "paid.png", "unpaid.png") is None


def test_booking_slip(make_booking, png_path):
    pdf = build_booking_slip_pdf(booking=make_booking(id="BK-1"), settings=DEFAULT_SETTINGS,
                                 received_by="Sgt Alam", logo_source=png_path, seal_source=png_path)
    assert pdf.startswith(b"%PDF")


def test_booking_slip_refuses_special_note(make_booking):
    with pytest.raises(ValueError):
        build_booking_slip_pdf(booking=make_booking(isSpecialNote=True), settings=DEFAULT_SETTINGS)


def test_payment_slip_with_handoff(make_booking):
    handoff = HandoffInfo.from_mapping({"providerName": "Karim", "receiverRank": "WO"})
    assert handoff["providerName"] == "Karim"
    assert HandoffInfo.from_mapping({}) is None

    rows = [make_booking(fareStatus="Unpaid"), make_booking(startDate="2024-03-10", endDate="2024-03-10")]
    pdf = build_payment_slip_pdf(bookings=rows, start="2024-03-01", end="2024-03-31",
                                 settings=DEFAULT_SETTINGS, handoff=handoff)
    assert pdf.startswith(b"%PDF")


def test_overall_report_spans_pages(make_booking):
    rows = [make_booking(id=f"BK-{i}", remarks="long remark " * 6) for i in range(120)]
    pdf = build_overall_report_pdf(bookings=rows, start="2024-03-01", end="2024-03-31",
                                   fields=["rankName", "unit", "fare", "remarks"],
                                   settings=DEFAULT_SETTINGS, with_signatures=True)
    assert pdf.startswith(b"%PDF")
    counts = [int(n) for n in re.findall(rb"/Count (\d+)", pdf)]
    assert counts and max(counts) > 1


def test_overall_report_field_checks(make_booking):
    with pytest.raises(ValueError):
        build_overall_report_pdf(bookings=[], fields=[], settings=DEFAULT_SETTINGS)
    with pytest.raises(ReportFieldError):
        build_overall_report_pdf(bookings=[], fields=["colour"], settings=DEFAULT_SETTINGS)


def test_load_image_malformed_url_is_omitted():
    assert load_image("http://[::1") is None


def test_load_image_oversized_image_is_omitted(png_path, monkeypatch):
    def bomb(*args, **kwargs):
        raise Image.DecompressionBombError("too many pixels")

    monkeypatch.setattr(report_pdf.PILImage, "open", bomb)
    assert load_image(png_path) is None
