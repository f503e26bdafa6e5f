# report_pdf.py
import logging
import os
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional
from xml.sax.saxutils import escape

import httpx
from PIL import Image as PILImage, ImageDraw
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, Table, TableStyle

from date_utils import format_date, local_now, parse_date
from models import PAID
from report_fields import (
    PAYMENT_SLIP_FIELDS, build_rows, check_fields, filter_by_range,
    fmt_amount, format_field, header_labels, total_days, total_fare,
)

logger = logging.getLogger(__name__)

IMAGE_TIMEOUT_SECONDS = float(os.environ.get("IMAGE_TIMEOUT_SECONDS", "4"))

HEADER_GREY = colors.HexColor("#dcdcdc")
SLIP_BAND = colors.HexColor("#0f172a")


class HandoffInfo(dict):
    """Provider/receiver identities printed under the monthly payment slip."""

    FIELDS = ("providerArmyNo", "providerRank", "providerName",
              "receiverArmyNo", "receiverRank", "receiverName")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> Optional["HandoffInfo"]:
        values = {k: str((data or {}).get(k) or "").strip() for k in cls.FIELDS}
        if not any(values.values()):
            return None
        return cls(values)


# =========================
# Images
# =========================

def load_image(source: Optional[str], timeout: float = IMAGE_TIMEOUT_SECONDS) -> Optional[PILImage.Image]:
    """
    Fetch an image from a URL (bounded by `timeout`) or a local path.
    Any failure returns None so the document is produced without it.
    """
    if not source:
        return None
    try:
        if source.startswith(("http://", "https://")):
            resp = httpx.get(source, timeout=timeout, follow_redirects=True)
            resp.raise_for_status()
            img = PILImage.open(BytesIO(resp.content))
        elif os.path.isfile(source):
            img = PILImage.open(source)
        else:
            return None
        img.load()
        return img
    except (httpx.HTTPError, httpx.InvalidURL, OSError, PILImage.DecompressionBombError) as e:
        logger.warning("⚠️ image unavailable (%s): %s", source, e)
        return None


def circular_logo(img: Optional[PILImage.Image]) -> Optional[PILImage.Image]:
    """Centre-crop to a square and mask it to a circle."""
    if img is None:
        return None
    img = img.convert("RGBA")
    size = min(img.size)
    left = (img.width - size) // 2
    top = (img.height - size) // 2
    img = img.crop((left, top, left + size, top + size))
    mask = PILImage.new("L", (size, size), 0)
    ImageDraw.Draw(mask).ellipse((0, 0, size - 1, size - 1), fill=255)
    img.putalpha(mask)
    return img


def seal_source_for(booking: Dict[str, Any], paid_source: Optional[str], unpaid_source: Optional[str]) -> Optional[str]:
    # exempt bookings carry no seal
    if booking.get("isExempt"):
        return None
    return paid_source if booking.get("fareStatus") == PAID else unpaid_source


def _fit(img, max_w, max_h):
    """Largest (w, h) inside the box that keeps the image's aspect ratio."""
    ratio = img.width / float(img.height)
    w, h = max_w, max_w / ratio
    if h > max_h:
        h = max_h
        w = max_h * ratio
    return w, h


# =========================
# Drawing helpers
# =========================

def _underlined_centre(c, text, x, y, font="Helvetica-Bold", size=14):
    c.setFont(font, size)
    c.drawCentredString(x, y, text)
    half = c.stringWidth(text, font, size) / 2
    c.setLineWidth(0.5)
    c.line(x - half, y - 1.5 * mm, x + half, y - 1.5 * mm)


def _draw_footer(c, page_w, y, lines: List[str], slip: bool = False):
    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 6)
    heading = ["AUTO GENERATED SLIP", "NO SIGNATURE REQUIRED"] if slip else ["AUTO GENERATED REPORT"]
    extra = [ln for ln in lines or [] if ln and ln.strip().upper() not in heading]
    for text in heading + extra:
        c.drawCentredString(page_w / 2, y, text.upper())
        y -= 3 * mm


def _cells(rows: List[List[str]], style) -> List[List[Paragraph]]:
    return [[Paragraph(escape(str(v)), style) for v in row] for row in rows]


def _draw_flowing_table(c, table, x, y, avail_w, top_y, bottom_y, new_page):
    """Draw `table` from y downwards, continuing on new pages as needed. Returns the y below it."""
    pending = [table]
    while pending:
        t = pending.pop(0)
        avail_h = y - bottom_y
        _, h = t.wrapOn(c, avail_w, avail_h)
        if h <= avail_h:
            t.drawOn(c, x, y - h)
            y -= h
            continue

        pieces = t.split(avail_w, avail_h)
        if len(pieces) >= 2:
            _, fh = pieces[0].wrapOn(c, avail_w, avail_h)
            pieces[0].drawOn(c, x, y - fh)
            pending = list(pieces[1:]) + pending
        elif y >= top_y:
            # taller than a page and not splittable; draw it as is
            t.drawOn(c, x, y - h)
            y -= h
            continue
        else:
            pending.insert(0, t)
        new_page()
        y = top_y
    return y


def _grid_style(header_rows: int, footer_row: Optional[int], ncols: int) -> List[tuple]:
    cmds = [
        ("GRID", (0, 0), (-1, -1), 0.25, colors.black),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("BACKGROUND", (0, 0), (ncols - 1, header_rows - 1), HEADER_GREY),
        ("FONT", (0, 0), (ncols - 1, header_rows - 1), "Helvetica-Bold", 7),
        ("LEFTPADDING", (0, 0), (-1, -1), 3),
        ("RIGHTPADDING", (0, 0), (-1, -1), 3),
    ]
    if footer_row is not None:
        cmds += [
            ("BACKGROUND", (0, footer_row), (ncols - 1, footer_row), HEADER_GREY),
            ("FONT", (0, footer_row), (ncols - 1, footer_row), "Helvetica-Bold", 7),
        ]
    return cmds


def _fare_footer(fields: List[str], total) -> Optional[tuple]:
    """Footer row + SPAN commands for a table whose columns are `fields`."""
    if "fare" not in fields:
        return None
    idx = fields.index("fare")
    row = [""] * len(fields)
    spans = []
    if idx > 0:
        row[0] = "TOTAL FARE"
        spans.append((0, idx - 1))
    row[idx] = fmt_amount(total)
    if idx < len(fields) - 1:
        spans.append((idx + 1, len(fields) - 1))
    return row, spans


# =========================
# Individual payment slip
# =========================

def build_booking_slip_pdf(*, booking: Dict[str, Any], settings: Dict[str, Any],
                           received_by: str = "", logo_source: str = None,
                           seal_source: str = None) -> bytes:
    """
    Single-booking payment slip (A4 portrait): passenger details, the fare
    box (NOT REQUIRED / UNPAID / amount) and a paid/unpaid seal when available.
    """
    if booking.get("isSpecialNote"):
        raise ValueError("Special notes do not have payment slips.")

    branding = settings.get("branding") or {}
    logo = circular_logo(load_image(logo_source))
    seal = load_image(seal_source)

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    page_w, page_h = A4
    margin = 20 * mm

    # Header band
    c.setFillColor(SLIP_BAND)
    c.rect(0, page_h - 42 * mm, page_w, 42 * mm, stroke=0, fill=1)
    if logo is not None:
        c.drawImage(ImageReader(logo), 10 * mm, page_h - 37 * mm, width=30 * mm, height=30 * mm, mask="auto")
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 22)
    c.drawCentredString(page_w / 2 + 10 * mm, page_h - 20 * mm, "PAYMENT SLIP")
    c.setFont("Helvetica-Bold", 10)
    heading = " - ".join(s for s in (branding.get("title"), branding.get("subtitle")) if s)
    c.drawCentredString(page_w / 2 + 10 * mm, page_h - 30 * mm, heading.upper())

    # Passenger details
    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(margin, page_h - 55 * mm, "Passenger Details:")
    c.setStrokeColor(colors.HexColor("#c8c8c8"))
    c.line(margin, page_h - 58 * mm, page_w - margin, page_h - 58 * mm)
    c.setStrokeColor(colors.black)

    days = total_days(booking)
    if days is None:
        date_range = "N/A"
    else:
        date_range = (f"{format_date(booking.get('startDate'))} to {format_date(booking.get('endDate'))} "
                      f"({days} {'Day' if days == 1 else 'Days'})")

    def _val(field):
        return str(format_field(booking, field, "slip"))

    details = [
        ["Rank and Name", ":", _val("rankName").upper()],
        ["Unit", ":", _val("unit").upper()],
        ["Garrison Status", ":", _val("garrisonStatus").upper()],
        ["Destination", ":", _val("destination").upper()],
        ["Duration", ":", _val("duration").upper()],
        ["Date Range", ":", date_range],
        ["Out Time", ":", _val("outTime")],
        ["In Time", ":", _val("inTime")],
        ["Payment Received By", ":", (received_by or "N/A").upper()],
        ["Remarks", ":", (booking.get("remarks") or "None").upper()],
    ]
    body_style = ParagraphStyle("SlipBody", parent=getSampleStyleSheet()["BodyText"], fontSize=12, leading=15)
    data = [[label, colon, Paragraph(escape(value), body_style)] for label, colon, value in details]
    table = Table(data, colWidths=[50 * mm, 8 * mm, 110 * mm])
    table.setStyle(TableStyle([
        ("FONT", (0, 0), (1, -1), "Helvetica-Bold", 12),
        ("ALIGN", (1, 0), (1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    _, th = table.wrapOn(c, page_w - 2 * margin, page_h)
    top = page_h - 62 * mm
    table.drawOn(c, margin, top - th)
    y = top - th

    # Total fare box
    box_y = y - 10 * mm - 20 * mm
    c.setFillColor(colors.HexColor("#f8fafc"))
    c.rect(margin, box_y, page_w - 2 * margin, 20 * mm, stroke=0, fill=1)
    c.setFillColor(colors.black)
    c.setLineWidth(0.5)
    c.rect(margin, box_y, page_w - 2 * margin, 20 * mm, stroke=1, fill=0)
    c.setFont("Helvetica-Bold", 16)
    c.drawString(margin + 5 * mm, box_y + 7 * mm, "TOTAL FARE:")
    fare = format_field(booking, "fare", "slip")
    if booking.get("isExempt"):
        fare_text = "NOT REQUIRED"
    elif fare == "UNPAID":
        fare_text = "UNPAID"
    else:
        fare_text = f"BDT {float(fare):,.2f}"
    c.drawRightString(page_w - margin - 5 * mm, box_y + 7 * mm, fare_text)

    # Seal under the fare box, right aligned
    if seal is not None:
        try:
            w, h = _fit(seal, 50 * mm, 50 * mm)
            c.drawImage(ImageReader(seal), page_w - margin - w, box_y - 10 * mm - h, width=w, height=h, mask="auto")
        except (OSError, ValueError) as e:
            logger.warning("⚠️ seal not drawn: %s", e)

    c.setFont("Helvetica", 8)
    c.drawCentredString(page_w / 2, 25 * mm, f"Generated on {local_now().strftime('%d-%m-%Y %H:%M')}")
    _draw_footer(c, page_w, 19 * mm, branding.get("footerLines"), slip=True)

    c.showPage()
    c.save()
    return buf.getvalue()


# =========================
# Monthly payment slip
# =========================

def build_payment_slip_pdf(*, bookings: Iterable[Dict[str, Any]], start=None, end=None,
                           settings: Dict[str, Any], handoff: Optional[HandoffInfo] = None) -> bytes:
    """
    Monthly payment slip (A4 portrait) for the reservations overlapping
    [start, end]. The footer total counts paid fares only.
    """
    branding = settings.get("branding") or {}
    filtered = filter_by_range(bookings, start, end)
    rows = build_rows(filtered, PAYMENT_SLIP_FIELDS, "payment_slip")
    total = total_fare(filtered, paid_only=True)

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    page_w, page_h = A4
    x_margin = 10 * mm
    top_y = page_h - 14 * mm
    bottom_y = 24 * mm

    def new_page():
        _draw_footer(c, page_w, 14 * mm, branding.get("footerLines"))
        c.showPage()

    title = f"MONTHLY PAYMENT SLIP - {(branding.get('title') or '').upper()}".rstrip(" -")
    _underlined_centre(c, title, page_w / 2, page_h - 15 * mm)
    y = page_h - 22 * mm
    start_d = parse_date(start)
    if start_d is not None:
        _underlined_centre(c, start_d.strftime("%B %Y").upper(), page_w / 2, y)
        y -= 8 * mm

    cell = ParagraphStyle("SlipCell", fontName="Helvetica", fontSize=7, leading=9, alignment=1)
    head = [
        ["SER", "RANK AND NAME", "UNIT", "BOOKING DATE", "", "DAYS", "DURATION", "FARE", "REMARKS"],
        ["", "", "", "FROM", "TO", "", "", "", ""],
    ]
    body = _cells([[str(i + 1)] + r for i, r in enumerate(rows)], cell)
    foot = ["TOTAL FARE", "", "", "", "", "", "", fmt_amount(total), ""]
    data = head + body + [foot]
    footer_row = len(data) - 1

    style = _grid_style(2, footer_row, 9)
    for col in (0, 1, 2, 5, 6, 7, 8):
        style.append(("SPAN", (col, 0), (col, 1)))
    style += [
        ("SPAN", (3, 0), (4, 0)),
        ("SPAN", (0, footer_row), (6, footer_row)),
    ]
    col_widths = [10 * mm, 42 * mm, 32 * mm, 18 * mm, 18 * mm, 12 * mm, 18 * mm, 20 * mm, None]
    col_widths[-1] = page_w - 2 * x_margin - sum(w for w in col_widths if w)
    table = Table(data, colWidths=col_widths, repeatRows=2)
    table.setStyle(TableStyle(style))
    y = _draw_flowing_table(c, table, x_margin, y, page_w - 2 * x_margin, top_y, bottom_y, new_page)

    if handoff:
        needed = 95 * mm
        if y - needed < bottom_y:
            new_page()
            y = top_y
        _draw_handoff(c, handoff, y - 15 * mm, page_w)

    _draw_footer(c, page_w, 14 * mm, branding.get("footerLines"))
    c.showPage()
    c.save()
    return buf.getvalue()


def _draw_handoff(c, handoff: HandoffInfo, y, page_w):
    today = local_now().strftime("%d-%m-%Y")
    for title, prefix, x in (("PROVIDER INFORMATION", "provider", 10 * mm),
                             ("RECEIVER INFORMATION", "receiver", 145 * mm)):
        c.setFont("Helvetica-Bold", 9)
        c.drawString(x, y, title)
        c.setLineWidth(0.3)
        c.line(x, y - 1 * mm, x + c.stringWidth(title, "Helvetica-Bold", 9), y - 1 * mm)
        base = y - 25 * mm
        c.line(x, base + 1 * mm, x + 50 * mm, base + 1 * mm)
        c.setFont("Helvetica", 9)
        c.drawString(x, base - 5 * mm, f"Army No: {handoff[prefix + 'ArmyNo'].upper()}")
        c.drawString(x, base - 10 * mm, f"Rank: {handoff[prefix + 'Rank'].upper()}")
        c.drawString(x, base - 15 * mm, f"Name: {handoff[prefix + 'Name'].upper()}")
        c.drawString(x, base - 20 * mm, f"Date: {today}")

    cs_y = y - 25 * mm - 52 * mm
    _underlined_centre(c, "COUNTERSIGN", page_w / 2, cs_y, size=10)


# =========================
# Detailed data report
# =========================

def build_overall_report_pdf(*, bookings: Iterable[Dict[str, Any]], start=None, end=None,
                             fields: List[str], settings: Dict[str, Any],
                             with_signatures: bool = False) -> bytes:
    """
    Detailed data report (A4 landscape) with caller-chosen columns.
    A TOTAL FARE footer is added when the fare column is selected.
    """
    fields = check_fields(fields, "overall")
    if not fields:
        raise ValueError("Select at least one field for the report.")

    branding = settings.get("branding") or {}
    filtered = filter_by_range(bookings, start, end)
    rows = build_rows(filtered, fields, "overall")

    buf = BytesIO()
    page_w, page_h = landscape(A4)
    c = canvas.Canvas(buf, pagesize=(page_w, page_h))
    x_margin = 10 * mm
    top_y = page_h - 12 * mm
    bottom_y = 22 * mm

    def new_page():
        _draw_footer(c, page_w, 12 * mm, branding.get("footerLines"))
        c.showPage()

    title = f"DETAILED BOOKING DATA REPORT - {(branding.get('title') or '').upper()}".rstrip(" -")
    _underlined_centre(c, title, page_w / 2, page_h - 12 * mm)
    date_line = f"FROM {format_date(start).upper()} TO {format_date(end).upper()}"
    _underlined_centre(c, date_line, page_w / 2, page_h - 19 * mm)
    y = page_h - 26 * mm

    cell = ParagraphStyle("ReportCell", fontName="Helvetica", fontSize=8, leading=10, alignment=1)
    data = [header_labels(fields)] + _cells(rows, cell)
    style = _grid_style(1, None, len(fields))

    footer = _fare_footer(fields, total_fare(filtered))
    if footer is not None:
        row, spans = footer
        data.append(row)
        footer_row = len(data) - 1
        style = _grid_style(1, footer_row, len(fields))
        for a, b in spans:
            style.append(("SPAN", (a, footer_row), (b, footer_row)))

    avail_w = page_w - 2 * x_margin
    table = Table(data, colWidths=[avail_w / len(fields)] * len(fields), repeatRows=1)
    table.setStyle(TableStyle(style))
    y = _draw_flowing_table(c, table, x_margin, y, avail_w, top_y, bottom_y, new_page)

    if with_signatures:
        if y - 30 * mm < bottom_y:
            new_page()
            y = top_y
        sig_y = y - 25 * mm
        labels = [branding.get("pdfSignatureLabel1") or "", branding.get("pdfSignatureLabel2") or ""]
        for label, x in zip(labels, (x_margin + 10 * mm, page_w - x_margin - 70 * mm)):
            c.setLineWidth(0.3)
            c.line(x, sig_y, x + 60 * mm, sig_y)
            c.setFont("Helvetica-Bold", 9)
            c.drawCentredString(x + 30 * mm, sig_y - 5 * mm, label.upper())

    _draw_footer(c, page_w, 12 * mm, branding.get("footerLines"))
    c.showPage()
    c.save()
    return buf.getvalue()
