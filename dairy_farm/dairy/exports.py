"""Excel (.xlsx) exports: invoices, customer ledger, archive backup."""
import io
from datetime import datetime
from decimal import Decimal

from django.http import HttpResponse
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _header(ws, headers, row=1):
    for col, h in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=h)
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal="center", vertical="center")


def _cell_value(v):
    if isinstance(v, Decimal):
        return float(v)
    if isinstance(v, datetime):
        # openpyxl refuses tz-aware datetimes
        return timezone.localtime(v).replace(tzinfo=None) if timezone.is_aware(v) else v
    if isinstance(v, (dict, list)):
        return str(v)
    return v


def _to_bytes(wb) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def xlsx_response(content: bytes, filename: str) -> HttpResponse:
    resp = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
    resp["Content-Disposition"] = f'attachment; filename="{filename}"'
    return resp


def export_invoices_xlsx(invoices) -> bytes:
    from dairy.services.invoice_service import effective_status

    today = timezone.localdate()
    wb = Workbook()
    ws = wb.active
    ws.title = "Invoices"
    headers = ["Invoice #", "Customer", "Period Start", "Period End", "Subtotal", "Tax",
               "Discount", "Total", "Paid", "Balance", "Status", "Due Date"]
    _header(ws, headers)
    row_num = 2
    for inv in invoices.select_related("customer"):
        values = [
            inv.invoice_number,
            inv.customer.name,
            inv.billing_period_start,
            inv.billing_period_end,
            inv.total_amount,
            inv.tax_amount,
            inv.discount_amount,
            inv.final_amount,
            inv.paid_amount,
            inv.remaining,
            effective_status(inv, today).capitalize(),
            inv.due_date,
        ]
        for col, v in enumerate(values, 1):
            ws.cell(row=row_num, column=col, value=_cell_value(v))
        row_num += 1
    ws.column_dimensions["B"].width = 28
    return _to_bytes(wb)


def export_ledger_xlsx(customer, rows, totals) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Ledger"
    ws.cell(row=1, column=1, value=f"Ledger: {customer.name}").font = Font(bold=True, size=13)
    _header(ws, ["Date", "Type", "Description", "Debit", "Credit", "Balance", "Dr/Cr"], row=3)
    row_num = 4
    for r in rows:
        values = [r.date, r.source, r.note, r.dr or None, r.cr or None, r.run_amount, r.run_side]
        for col, v in enumerate(values, 1):
            ws.cell(row=row_num, column=col, value=_cell_value(v))
        row_num += 1
    ws.cell(row=row_num, column=3, value="Total").font = Font(bold=True)
    ws.cell(row=row_num, column=4, value=float(totals["total_dr"]))
    ws.cell(row=row_num, column=5, value=float(totals["total_cr"]))
    ws.cell(row=row_num, column=6, value=float(totals["balance_abs"]))
    ws.cell(row=row_num, column=7, value=totals["balance_side"])
    ws.column_dimensions["C"].width = 48
    return _to_bytes(wb)


def export_archive_xlsx(data: dict) -> bytes:
    """One sheet per table from archive_service.export()."""
    wb = Workbook()
    wb.remove(wb.active)
    for table, rows in data.items():
        ws = wb.create_sheet(title=table[:31])
        if not rows:
            continue
        headers = list(rows[0].keys())
        _header(ws, headers)
        for row_num, row in enumerate(rows, 2):
            for col, key in enumerate(headers, 1):
                ws.cell(row=row_num, column=col, value=_cell_value(row.get(key)))
    if not wb.sheetnames:
        ws = wb.create_sheet(title="Empty")
        ws.cell(row=1, column=1, value=f"No records to archive as of {timezone.localdate():%Y-%m-%d}")
    return _to_bytes(wb)
