from __future__ import annotations

import io
import os
from decimal import Decimal, ROUND_HALF_UP
from typing import List
from urllib.parse import quote

import qrcode
from PIL import Image, ImageDraw, ImageFont
from django.conf import settings

from dairy.models import DairySettings, Invoice

# ---- Page (A4 @ 150 dpi) ----
PAGE_W, PAGE_H = 1240, 1754
DPI = 150
MARGIN = 80

TITLE_SIZE = 44
BODY_SIZE = 26
SMALL_SIZE = 21
LINE_H = int(BODY_SIZE * 1.55)
QR_SIZE = 260

# Item table columns as fractions of the content width
ITEM_COL_RATIO = 0.46
QTY_COL_RATIO = 0.16
RATE_COL_RATIO = 0.18
AMOUNT_COL_RATIO = 0.20

SEP_COLOR = (40, 40, 40)
MUTED = (110, 110, 110)

FONT_PATHS = [
    str(getattr(settings, "INVOICE_FONT", "") or ""),
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "C:/Windows/Fonts/arial.ttf",
]
BOLD_FONT_PATHS = [
    str(getattr(settings, "INVOICE_FONT_BOLD", "") or ""),
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
    "C:/Windows/Fonts/arialbd.ttf",
]

_font_cache: dict = {}


def _load_font(size: int, bold: bool = False) -> ImageFont.ImageFont:
    key = (size, bold)
    if key in _font_cache:
        return _font_cache[key]
    font = None
    for path in (BOLD_FONT_PATHS if bold else FONT_PATHS):
        if path and os.path.exists(path):
            font = ImageFont.truetype(path, size=size)
            break
    if font is None:
        font = ImageFont.load_default(size=size)
    _font_cache[key] = font
    return font


def _money(v) -> str:
    q = Decimal(str(v or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"Rs. {q:,.2f}"


def _qty2(v) -> str:
    q = Decimal(str(v or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    s = f"{q:f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


def _text_w(draw: ImageDraw.ImageDraw, txt: str, font) -> int:
    bbox = draw.textbbox((0, 0), txt or "", font=font)
    return bbox[2] - bbox[0]


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_w: int) -> List[str]:
    words = (text or "").split()
    if not words:
        return [""]
    lines: List[str] = []
    cur: List[str] = []
    for w in words:
        trial = " ".join(cur + [w])
        if _text_w(draw, trial, font) <= max_w or not cur:
            cur.append(w)
        else:
            lines.append(" ".join(cur))
            cur = [w]
    if cur:
        lines.append(" ".join(cur))
    return lines


def _draw_right(draw, x_right: int, y: int, txt: str, font, fill="black"):
    draw.text((x_right - _text_w(draw, txt, font), y), txt, font=font, fill=fill)


def _draw_divider(draw, y: int) -> int:
    draw.line((MARGIN, y, PAGE_W - MARGIN, y), fill=SEP_COLOR, width=2)
    return y + 14


def _draw_kv_row(draw, y: int, left_txt: str, right_txt: str, font, x_left: int) -> int:
    draw.text((x_left, y), left_txt, font=font, fill="black")
    _draw_right(draw, PAGE_W - MARGIN, y, right_txt, font)
    return y + LINE_H


def upi_uri(upi_handle: str, payee: str, amount, invoice_number: str) -> str:
    amt = Decimal(str(amount or 0)).quantize(Decimal("0.01"))
    return f"upi://pay?pa={quote(upi_handle)}&pn={quote(payee)}&am={amt}&cu=INR&tn={quote(invoice_number)}"


def _qr_image(data: str) -> Image.Image:
    qr = qrcode.QRCode(border=1, box_size=8, error_correction=qrcode.constants.ERROR_CORRECT_M)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white").convert("RGB")
    return img.resize((QR_SIZE, QR_SIZE))


def render_invoice_image(invoice: Invoice) -> Image.Image:
    from dairy.services.invoice_service import compute_totals, effective_status, parse_invoice_notes

    dairy = DairySettings.get_solo()
    img = Image.new("RGB", (PAGE_W, PAGE_H), color=(255, 255, 255))
    draw = ImageDraw.Draw(img)
    title_f = _load_font(TITLE_SIZE, bold=True)
    body_f = _load_font(BODY_SIZE)
    bold_f = _load_font(BODY_SIZE, bold=True)
    small_f = _load_font(SMALL_SIZE)
    content_w = PAGE_W - 2 * MARGIN

    # header
    y = MARGIN
    draw.text((MARGIN, y), dairy.dairy_name, font=title_f, fill="black")
    _draw_right(draw, PAGE_W - MARGIN, y + 8, "INVOICE", bold_f)
    y += int(TITLE_SIZE * 1.4)
    for line in filter(None, [dairy.address, dairy.phone, dairy.email]):
        for wrapped in _wrap(draw, line, small_f, content_w // 2):
            draw.text((MARGIN, y), wrapped, font=small_f, fill=MUTED)
            y += int(SMALL_SIZE * 1.4)
    y = _draw_divider(draw, y + 10)

    # meta
    customer = invoice.customer
    left = [
        ("Bill To", customer.name),
        ("Phone", customer.phone or "-"),
        ("Address", customer.address or "-"),
    ]
    right = [
        ("Invoice #", invoice.invoice_number),
        ("Period", f"{invoice.billing_period_start:%d %b %Y} - {invoice.billing_period_end:%d %b %Y}"),
        ("Due", f"{invoice.due_date:%d %b %Y}" if invoice.due_date else "-"),
        ("Status", effective_status(invoice).capitalize()),
    ]
    y0 = y
    for label, value in left:
        draw.text((MARGIN, y), f"{label}:", font=bold_f, fill="black")
        for wrapped in _wrap(draw, value, body_f, content_w // 2 - 150):
            draw.text((MARGIN + 140, y), wrapped, font=body_f, fill="black")
            y += LINE_H
    y_left = y
    y = y0
    for label, value in right:
        x = MARGIN + content_w // 2 + 40
        draw.text((x, y), f"{label}:", font=bold_f, fill="black")
        _draw_right(draw, PAGE_W - MARGIN, y, value, body_f)
        y += LINE_H
    y = _draw_divider(draw, max(y, y_left) + 10)

    # items
    col_x = [MARGIN]
    for ratio in (ITEM_COL_RATIO, QTY_COL_RATIO, RATE_COL_RATIO):
        col_x.append(col_x[-1] + int(content_w * ratio))
    draw.text((col_x[0], y), "Item", font=bold_f, fill="black")
    _draw_right(draw, col_x[2] - 10, y, "Qty", bold_f)
    _draw_right(draw, col_x[3] - 10, y, "Rate", bold_f)
    _draw_right(draw, PAGE_W - MARGIN, y, "Amount", bold_f)
    y = _draw_divider(draw, y + LINE_H)

    lines = parse_invoice_notes(invoice.notes)
    for line in lines:
        name = f"{line.product_name} (add-on)" if line.is_addon else line.product_name
        wrapped = _wrap(draw, name, body_f, int(content_w * ITEM_COL_RATIO) - 10)
        _draw_right(draw, col_x[2] - 10, y, f"{_qty2(line.quantity)} {line.unit}", body_f)
        _draw_right(draw, col_x[3] - 10, y, _money(line.rate), body_f)
        _draw_right(draw, PAGE_W - MARGIN, y, _money(line.amount), body_f)
        for w in wrapped:
            draw.text((col_x[0], y), w, font=body_f, fill="black")
            y += LINE_H
    if not lines:
        draw.text((col_x[0], y), "Milk & dairy products as delivered", font=body_f, fill=MUTED)
        y += LINE_H
    y = _draw_divider(draw, y + 6)

    # totals (stored amounts are authoritative)
    tx = MARGIN + content_w // 2
    y = _draw_kv_row(draw, y, "Subtotal", _money(invoice.total_amount), body_f, tx)
    if invoice.tax_amount:
        y = _draw_kv_row(draw, y, "Tax", _money(invoice.tax_amount), body_f, tx)
    if invoice.discount_amount:
        y = _draw_kv_row(draw, y, "Discount", f"- {_money(invoice.discount_amount)}", body_f, tx)
    y = _draw_kv_row(draw, y, "Total", _money(invoice.final_amount), bold_f, tx)
    if invoice.paid_amount:
        y = _draw_kv_row(draw, y, "Paid", _money(invoice.paid_amount), body_f, tx)
    y = _draw_kv_row(draw, y, "Balance Due", _money(invoice.remaining), bold_f, tx)
    if lines and compute_totals(lines)["subtotal"] != invoice.total_amount:
        draw.text((MARGIN, y), "Line items shown as recorded; totals reflect adjustments.", font=small_f, fill=MUTED)
        y += LINE_H

    # UPI QR
    upi = invoice.upi_handle or dairy.upi_handle
    if upi and invoice.remaining > 0:
        y += 30
        qr = _qr_image(upi_uri(upi, dairy.dairy_name, invoice.remaining, invoice.invoice_number))
        img.paste(qr, (MARGIN, y))
        draw.text((MARGIN + QR_SIZE + 30, y + 40), "Scan to pay with any UPI app", font=bold_f, fill="black")
        draw.text((MARGIN + QR_SIZE + 30, y + 40 + LINE_H), upi, font=body_f, fill=MUTED)

    footer = f"Thank you for choosing {dairy.dairy_name}"
    draw.text(((PAGE_W - _text_w(draw, footer, small_f)) // 2, PAGE_H - MARGIN), footer, font=small_f, fill=MUTED)
    return img


def render_invoice_pdf(invoice: Invoice) -> bytes:
    buf = io.BytesIO()
    render_invoice_image(invoice).save(buf, "PDF", resolution=DPI)
    return buf.getvalue()
