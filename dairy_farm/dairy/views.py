# dairy/views.py
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.contrib.auth import logout
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import accounts
from .exports import export_archive_xlsx, export_invoices_xlsx, export_ledger_xlsx, xlsx_response
from .ledger import build_ledger
from .models import (
    Bottle, Customer, CustomerAccount, FeedInventory, Invoice, MilkVendor, Payment,
    PayrollRecord, Product,
)
from .services import (
    archive_service, cattle_service, customer_service, delivery_service, integrity_service, inventory_service,
    invoice_service, notification_service, payroll_service, procurement_service,
)
from .services.ledger_service import recalculate_ledger_balances
from .utils.auth_helpers import (
    FARM_ROLES, FINANCE_ROLES, OPERATIONS_ROLES, customer_required, error_response, json_body,
    role_required, super_admin_required,
)
from .utils.invoice_render import render_invoice_pdf

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# parsing helpers
# ---------------------------------------------------------
def _parse_date(s: str | None) -> Optional[date]:
    if not s:
        return None
    try:
        return datetime.strptime(str(s), "%Y-%m-%d").date()
    except ValueError:
        return None


def _require_date(data, key) -> date:
    d = _parse_date(data.get(key))
    if d is None:
        raise ValidationError(f"{key} must be a date (YYYY-MM-DD)")
    return d


def _dec(v, key, default=None) -> Optional[Decimal]:
    if v in (None, ""):
        if default is None:
            return None
        return Decimal(default)
    try:
        return Decimal(str(v))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{key} must be a number")


def _invoice_json(inv: Invoice) -> dict:
    return {
        "id": inv.pk,
        "invoice_number": inv.invoice_number,
        "customer_id": inv.customer_id,
        "customer_name": inv.customer.name,
        "billing_period_start": inv.billing_period_start,
        "billing_period_end": inv.billing_period_end,
        "total_amount": inv.total_amount,
        "tax_amount": inv.tax_amount,
        "discount_amount": inv.discount_amount,
        "final_amount": inv.final_amount,
        "paid_amount": inv.paid_amount,
        "payment_status": invoice_service.effective_status(inv),
        "due_date": inv.due_date,
        "notes": inv.notes,
    }


# ---------------------------------------------------------
# Auth
# ---------------------------------------------------------
@require_POST
def staff_login_api(request):
    data = json_body(request)
    try:
        profile = accounts.staff_login(request, data.get("phone", ""), data.get("pin", ""))
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({
        "ok": True,
        "profile": {"id": profile.pk, "full_name": profile.full_name, "role": profile.role},
    })


@require_POST
def logout_api(request):
    logout(request)
    return JsonResponse({"ok": True})


@require_POST
def customer_register_api(request):
    data = json_body(request)
    try:
        result = accounts.register_customer(data.get("phone"), data.get("pin"))
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, **result})


@require_POST
def customer_login_api(request):
    data = json_body(request)
    try:
        account = accounts.customer_login(request, data.get("phone"), data.get("pin"))
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "customer_id": account.customer_id, "name": account.customer.name})


@require_POST
def bootstrap_admin_api(request):
    data = json_body(request)
    try:
        profile = accounts.bootstrap_admin(data.get("phone", ""), data.get("pin", ""))
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "profile_id": profile.pk, "message": "Super admin ready"})


@require_POST
@login_required
def change_pin_api(request):
    data = json_body(request)
    try:
        if hasattr(request.user, "customer_account") and not hasattr(request.user, "staff_profile"):
            accounts.change_customer_pin(request.user.customer_account, data.get("currentPin"), data.get("newPin"))
        else:
            accounts.change_pin(request.user, data.get("currentPin"), data.get("newPin"))
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "message": "PIN updated successfully"})


# ---------------------------------------------------------
# Users (super admin)
# ---------------------------------------------------------
@require_POST
@login_required
def create_user_api(request):
    data = json_body(request)
    try:
        profile = accounts.create_staff_user(
            request.user, data.get("phone"), data.get("pin"), data.get("fullName"), data.get("role"),
        )
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "id": profile.pk, "message": f"User {profile.full_name} created"})


@require_POST
@login_required
def reset_user_pin_api(request, pk):
    data = json_body(request)
    try:
        accounts.reset_user_pin(request.user, pk, data.get("newPin"))
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "message": "PIN reset successfully"})


@require_POST
@login_required
def update_user_status_api(request, pk):
    data = json_body(request)
    is_active = data.get("isActive")
    if isinstance(is_active, str):
        is_active = is_active.lower() in ("1", "true", "yes", "on")
    try:
        profile = accounts.update_user_status(request.user, pk, is_active)
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "is_active": profile.is_active})


@require_POST
@login_required
def delete_user_api(request, pk):
    try:
        result = accounts.delete_user(request.user, pk)
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, **result})


@require_POST
@login_required
@role_required(*FINANCE_ROLES)
def customer_account_decision_api(request, pk, decision):
    account = get_object_or_404(CustomerAccount, pk=pk)
    try:
        if decision == "approve":
            accounts.approve_customer_account(request.user, account)
        else:
            accounts.reject_customer_account(request.user, account)
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "approval_status": account.approval_status})


# ---------------------------------------------------------
# Invoices & payments
# ---------------------------------------------------------
@require_POST
@login_required
@role_required(*FINANCE_ROLES)
def bulk_generate_invoices_api(request):
    data = json_body(request)
    try:
        start = _require_date(data, "period_start")
        end = _require_date(data, "period_end")
        result = invoice_service.generate_bulk_invoices(
            start, end,
            customer_ids=data.get("customer_ids") or None,
            discount=_dec(data.get("discount"), "discount", "0"),
            user=request.user,
        )
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({
        "ok": True,
        "created": result["created"],
        "skipped": result["skipped"],
        "failed": result["failed"],
        "total_amount": result["total_amount"],
        "invoices": [_invoice_json(i) for i in result["invoices"]],
        "errors": result["errors"],
    })


def _extra_lines(raw):
    lines = []
    for row in raw or []:
        product = None
        if row.get("product_id"):
            product = get_object_or_404(Product, pk=row["product_id"])
        lines.append(invoice_service.InvoiceLine(
            product_id=product.pk if product else None,
            product_name=row.get("product_name") or (product.name if product else "Item"),
            quantity=_dec(row.get("quantity"), "quantity", "0"),
            unit=row.get("unit") or (product.unit if product else "unit"),
            rate=_dec(row.get("rate"), "rate", "0"),
            tax_percentage=product.tax_percentage if product else Decimal("0"),
            is_addon=bool(row.get("is_addon", True)),
        ))
    return lines


@require_POST
@login_required
@role_required(*FINANCE_ROLES)
def smart_invoice_api(request):
    data = json_body(request)
    customer = get_object_or_404(Customer, pk=data.get("customer_id"))
    try:
        invoice = invoice_service.create_smart_invoice(
            customer,
            _require_date(data, "period_start"),
            _require_date(data, "period_end"),
            discount=_dec(data.get("discount"), "discount", "0"),
            extra_lines=_extra_lines(data.get("extra_lines")),
            user=request.user,
        )
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "invoice": _invoice_json(invoice)})


@require_POST
@login_required
@role_required(*FINANCE_ROLES)
def edit_invoice_api(request, pk):
    invoice = get_object_or_404(Invoice, pk=pk)
    data = json_body(request)
    try:
        lines = _extra_lines(data["lines"]) if "lines" in data else None
        if lines is not None:
            for line, row in zip(lines, data["lines"]):
                line.is_addon = bool(row.get("is_addon", False))
        invoice = invoice_service.update_invoice(
            invoice,
            lines=lines,
            discount=_dec(data.get("discount"), "discount"),
            due_date=_parse_date(data.get("due_date")),
            notes=data.get("notes"),
            user=request.user,
        )
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "invoice": _invoice_json(invoice)})


@require_POST
@login_required
@role_required(*FINANCE_ROLES)
def delete_invoice_api(request, pk):
    invoice = get_object_or_404(Invoice, pk=pk)
    try:
        invoice_service.delete_invoice(invoice)
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True})


@require_POST
@login_required
@role_required(*FINANCE_ROLES, *OPERATIONS_ROLES)
def record_payment_api(request):
    data = json_body(request)
    customer = get_object_or_404(Customer, pk=data.get("customer_id"))
    invoice = None
    if data.get("invoice_id"):
        invoice = get_object_or_404(Invoice, pk=data["invoice_id"])
    mode = data.get("payment_mode") or Payment.Mode.CASH
    if mode not in Payment.Mode.values:
        return JsonResponse({"ok": False, "error": "Invalid payment mode"}, status=400)
    try:
        payment = invoice_service.record_payment(
            customer,
            _dec(data.get("amount"), "amount", "0"),
            mode=mode,
            invoice=invoice,
            payment_date=_parse_date(data.get("payment_date")),
            reference=data.get("reference_number", ""),
            notes=data.get("notes", ""),
            user=request.user,
        )
    except ValidationError as e:
        return error_response(e)
    customer.refresh_from_db(fields=["credit_balance"])
    return JsonResponse({"ok": True, "payment_id": payment.pk, "credit_balance": customer.credit_balance})


@require_GET
@login_required
def invoice_pdf(request, pk):
    invoice = get_object_or_404(Invoice.objects.select_related("customer"), pk=pk)
    account = getattr(request.user, "customer_account", None)
    if account is not None and account.customer_id != invoice.customer_id and not hasattr(request.user, "staff_profile"):
        return JsonResponse({"ok": False, "error": "Not found"}, status=404)
    resp = HttpResponse(render_invoice_pdf(invoice), content_type="application/pdf")
    resp["Content-Disposition"] = f'inline; filename="{invoice.invoice_number}.pdf"'
    return resp


@require_GET
@login_required
@role_required(*FINANCE_ROLES, "auditor")
def invoices_excel(request):
    qs = Invoice.objects.all().order_by("-created_at")
    date_from = _parse_date(request.GET.get("date_from"))
    date_to = _parse_date(request.GET.get("date_to"))
    if date_from:
        qs = qs.filter(billing_period_start__gte=date_from)
    if date_to:
        qs = qs.filter(billing_period_end__lte=date_to)
    if request.GET.get("customer_id"):
        qs = qs.filter(customer_id=request.GET["customer_id"])
    filename = f"invoices_{timezone.localdate():%Y-%m-%d}.xlsx"
    return xlsx_response(export_invoices_xlsx(qs), filename)


@require_GET
@login_required
@role_required(*FINANCE_ROLES, "auditor")
def outstanding_api(request):
    return JsonResponse({"ok": True, **invoice_service.outstanding_summary()})


# ---------------------------------------------------------
# Ledger
# ---------------------------------------------------------
def _ledger_window(request):
    date_from = _parse_date(request.GET.get("date_from"))
    date_to = _parse_date(request.GET.get("date_to"))
    if date_from and date_to and date_from > date_to:
        date_from, date_to = date_to, date_from
    return date_from, date_to


def _ledger_rows_json(rows):
    return [
        {"date": r.date, "type": r.source, "description": r.note, "debit": r.dr, "credit": r.cr,
         "balance": r.run_amount, "side": r.run_side, "reference_id": r.ref}
        for r in rows
    ]


@require_GET
@login_required
@role_required(*FINANCE_ROLES, "auditor")
def ledger_statement_api(request, pk):
    customer = get_object_or_404(Customer, pk=pk)
    date_from, date_to = _ledger_window(request)
    rows, totals = build_ledger(customer, date_from, date_to)
    return JsonResponse({
        "ok": True,
        "customer": {"id": customer.pk, "name": customer.name, "credit_balance": customer.credit_balance},
        "rows": _ledger_rows_json(rows),
        "totals": totals,
    })


@require_GET
@login_required
@role_required(*FINANCE_ROLES, "auditor")
def ledger_excel(request, pk):
    customer = get_object_or_404(Customer, pk=pk)
    date_from, date_to = _ledger_window(request)
    rows, totals = build_ledger(customer, date_from, date_to)
    filename = f"ledger_{customer.pk}_{timezone.localdate():%Y-%m-%d}.xlsx"
    return xlsx_response(export_ledger_xlsx(customer, rows, totals), filename)


@require_POST
@login_required
@role_required(*FINANCE_ROLES)
def recalculate_ledger_api(request, pk):
    customer = get_object_or_404(Customer, pk=pk)
    balance = recalculate_ledger_balances(customer)
    return JsonResponse({"ok": True, "balance": balance})


# ---------------------------------------------------------
# Customer portal
# ---------------------------------------------------------
def _subscription_json(sub) -> dict:
    return {
        "id": sub.pk,
        "product_id": sub.product_id,
        "product_name": sub.product.name,
        "unit": sub.product.unit,
        "quantity": sub.quantity,
        "custom_price": sub.custom_price,
        "base_price": sub.product.base_price,
        "is_active": sub.is_active,
    }


def _customer_json(customer) -> dict:
    return {
        "id": customer.pk,
        "name": customer.name,
        "phone": customer.phone,
        "email": customer.email,
        "address": customer.address,
        "credit_balance": customer.credit_balance,
    }


@require_GET
@login_required
@customer_required
def customer_deliveries_api(request):
    deliveries = customer_service.recent_deliveries(request.customer)
    return JsonResponse({
        "ok": True,
        "deliveries": [
            {
                "id": d.pk,
                "delivery_date": d.delivery_date,
                "status": d.status,
                "delivery_time": d.delivery_time,
                "items": [
                    {"product_name": i.product.name, "quantity": i.quantity,
                     "unit_price": i.unit_price, "total_amount": i.total_amount}
                    for i in d.items.all()
                ],
                "total": sum((i.total_amount for i in d.items.all()), Decimal("0")),
            }
            for d in deliveries
        ],
    })


@require_GET
@login_required
@customer_required
def customer_billing_api(request):
    customer = request.customer
    date_from, date_to = _ledger_window(request)
    rows, totals = build_ledger(customer, date_from, date_to)
    overview = customer_service.billing_overview(customer)
    return JsonResponse({
        "ok": True,
        "credit_balance": customer.credit_balance,
        "outstanding": overview["summary"],
        "invoices": [_invoice_json(i) for i in overview["invoices"]],
        "rows": _ledger_rows_json(rows),
        "totals": totals,
    })


@require_GET
@login_required
@customer_required
def customer_subscriptions_api(request):
    subs = customer_service.subscriptions(request.customer)
    return JsonResponse({"ok": True, "subscriptions": [_subscription_json(s) for s in subs]})


@require_POST
@login_required
@customer_required
def customer_subscription_update_api(request, pk):
    data = json_body(request)
    try:
        sub = customer_service.update_subscription(
            request.customer, pk,
            quantity=data.get("quantity"),
            is_active=data.get("is_active"),
            user=request.user,
        )
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "subscription": _subscription_json(sub)})


@require_POST
@login_required
@customer_required
def customer_vacation_api(request):
    data = json_body(request)
    try:
        vacation = customer_service.schedule_vacation(
            request.customer,
            _require_date(data, "start_date"),
            _require_date(data, "end_date"),
            reason=data.get("reason", ""),
            user=request.user,
        )
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({
        "ok": True,
        "vacation": {"id": vacation.pk, "start_date": vacation.start_date, "end_date": vacation.end_date},
    })


@require_http_methods(["GET", "POST"])
@login_required
@customer_required
def customer_profile_api(request):
    customer = request.customer
    if request.method == "POST":
        data = json_body(request)
        try:
            customer_service.update_profile(
                customer,
                name=data.get("name"),
                email=data.get("email"),
                address=data.get("address"),
                user=request.user,
            )
        except ValidationError as e:
            return error_response(e)
    return JsonResponse({"ok": True, "customer": _customer_json(customer)})


# ---------------------------------------------------------
# Integrity
# ---------------------------------------------------------
@require_GET
@login_required
@role_required(*FINANCE_ROLES, "auditor")
def integrity_check_api(request):
    results = integrity_service.check_financial_integrity()
    return JsonResponse({
        "ok": True,
        "passed": all(r.passed for r in results),
        "checks": [r.as_dict() for r in results],
    })


INTEGRITY_FIXES = {
    "recalculate": integrity_service.fix_recalculate_all,
    "sync_invoices": integrity_service.sync_invoices_to_ledger,
    "remove_orphans": integrity_service.remove_orphaned_ledger_entries,
}


@require_POST
@login_required
@role_required("super_admin", "manager")
def integrity_fix_api(request):
    action = json_body(request).get("action")
    fix = INTEGRITY_FIXES.get(action)
    if fix is None:
        return JsonResponse({"ok": False, "error": f"Unknown fix. Use one of: {', '.join(INTEGRITY_FIXES)}"}, status=400)
    count = fix(request.user) if action == "sync_invoices" else fix()
    return JsonResponse({"ok": True, "action": action, "count": count})


@require_GET
@login_required
@super_admin_required
def account_orphans_api(request):
    return JsonResponse({"ok": True, **integrity_service.find_account_orphans()})


@require_POST
@login_required
@super_admin_required
def account_orphans_cleanup_api(request):
    return JsonResponse({"ok": True, **integrity_service.cleanup_account_orphans(request.user)})


# ---------------------------------------------------------
# Operations
# ---------------------------------------------------------
@require_POST
@login_required
@role_required(*OPERATIONS_ROLES)
def auto_deliver_api(request):
    data = json_body(request)
    day = _parse_date(data.get("date")) or timezone.localdate()
    return JsonResponse({"ok": True, "result": delivery_service.auto_deliver_daily(day, user=request.user)})


@require_GET
@login_required
@role_required()
def delivery_summary_api(request):
    day = _parse_date(request.GET.get("date")) or timezone.localdate()
    return JsonResponse({"ok": True, "date": day, "counts": delivery_service.delivery_summary(day)})


@require_POST
@login_required
@role_required(*FARM_ROLES)
def cattle_automation_api(request):
    data = json_body(request)
    updates = cattle_service.run_lactation_automation(
        _parse_date(data.get("date")), dry_run=bool(data.get("dry_run")),
    )
    return JsonResponse({"ok": True, "updated": len(updates), "updates": [u.as_dict() for u in updates]})


@require_GET
@login_required
@role_required()
def production_totals_api(request):
    day = _parse_date(request.GET.get("date")) or timezone.localdate()
    return JsonResponse({"ok": True, **cattle_service.production_totals(day)})


@require_POST
@login_required
@role_required(*FARM_ROLES, "accountant")
def record_procurement_api(request):
    data = json_body(request)
    vendor = get_object_or_404(MilkVendor, pk=data.get("vendor_id"))
    try:
        procurement = procurement_service.record_procurement(
            vendor,
            _parse_date(data.get("procurement_date")) or timezone.localdate(),
            data.get("session") or "morning",
            _dec(data.get("quantity_liters"), "quantity_liters", "0"),
            rate_per_liter=_dec(data.get("rate_per_liter"), "rate_per_liter"),
            fat_percentage=_dec(data.get("fat_percentage"), "fat_percentage"),
            snf_percentage=_dec(data.get("snf_percentage"), "snf_percentage"),
            base_rate=_dec(data.get("base_rate"), "base_rate"),
            notes=data.get("notes", ""),
            user=request.user,
        )
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({
        "ok": True, "id": procurement.pk,
        "rate_per_liter": procurement.rate_per_liter, "total_amount": procurement.total_amount,
    })


@require_POST
@login_required
@role_required(*FINANCE_ROLES)
def vendor_payment_api(request, pk):
    vendor = get_object_or_404(MilkVendor, pk=pk)
    data = json_body(request)
    try:
        payment = procurement_service.record_vendor_payment(
            vendor,
            _dec(data.get("amount"), "amount", "0"),
            payment_date=_parse_date(data.get("payment_date")),
            mode=data.get("payment_mode") or Payment.Mode.CASH,
            reference=data.get("reference_number", ""),
            notes=data.get("notes", ""),
            user=request.user,
        )
    except ValidationError as e:
        return error_response(e)
    vendor.refresh_from_db(fields=["current_balance"])
    return JsonResponse({"ok": True, "id": payment.pk, "current_balance": vendor.current_balance})


@require_POST
@login_required
@role_required(*FINANCE_ROLES)
def generate_payroll_api(request):
    data = json_body(request)
    try:
        records = payroll_service.generate_payroll(
            _require_date(data, "period_start"), _require_date(data, "period_end"), user=request.user,
        )
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "created": len(records)})


@require_POST
@login_required
@role_required(*FINANCE_ROLES)
def mark_payroll_paid_api(request, pk):
    record = get_object_or_404(PayrollRecord.objects.select_related("employee"), pk=pk)
    data = json_body(request)
    try:
        payroll_service.mark_payroll_paid(
            record, mode=data.get("payment_mode") or "cash",
            day=_parse_date(data.get("payment_date")), user=request.user,
        )
    except ValidationError as e:
        return error_response(e)
    return JsonResponse({"ok": True, "net_salary": record.net_salary})


@require_POST
@login_required
@role_required(*FARM_ROLES, "accountant")
def feed_stock_api(request, pk, action):
    feed = get_object_or_404(FeedInventory, pk=pk)
    data = json_body(request)
    try:
        if action == "purchase":
            inventory_service.purchase_feed(
                feed, _dec(data.get("quantity"), "quantity", "0"),
                _dec(data.get("unit_cost"), "unit_cost", "0"),
                day=_parse_date(data.get("date")), user=request.user,
            )
        else:
            inventory_service.record_feed_consumption(
                feed, _dec(data.get("quantity"), "quantity", "0"),
                day=_parse_date(data.get("date")), user=request.user,
            )
    except ValidationError as e:
        return error_response(e)
    feed.refresh_from_db()
    return JsonResponse({"ok": True, "current_stock": feed.current_stock, "is_low": feed.is_low})


@require_POST
@login_required
@role_required(*OPERATIONS_ROLES)
def bottle_transaction_api(request, pk):
    bottle = get_object_or_404(Bottle, pk=pk)
    data = json_body(request)
    customer = get_object_or_404(Customer, pk=data["customer_id"]) if data.get("customer_id") else None
    try:
        inventory_service.record_bottle_transaction(
            bottle, data.get("transaction_type"), data.get("quantity") or 0,
            customer=customer, day=_parse_date(data.get("date")),
            notes=data.get("notes", ""), user=request.user,
        )
    except (ValidationError, ValueError) as e:
        if isinstance(e, ValueError):
            e = ValidationError("quantity must be a whole number")
        return error_response(e)
    bottle.refresh_from_db()
    return JsonResponse({"ok": True, "available_quantity": bottle.available_quantity, "total_quantity": bottle.total_quantity})


# ---------------------------------------------------------
# Archive & notifications
# ---------------------------------------------------------
@require_POST
@login_required
def archive_api(request):
    data = json_body(request)
    try:
        result = archive_service.archive_old_data(
            request.user, data.get("mode"), data.get("retention_years"), pin=data.get("pin"),
        )
    except ValidationError as e:
        return error_response(e)
    if result["mode"] == "export" and data.get("format") == "xlsx":
        filename = f"archive_{result['cutoff']}.xlsx"
        return xlsx_response(export_archive_xlsx(result["export"]), filename)
    return JsonResponse({"ok": True, **result})


@require_POST
@login_required
@role_required("super_admin", "manager")
def daily_summary_api(request):
    data = json_body(request)
    day = _parse_date(data.get("date")) or timezone.localdate()
    result = notification_service.send_daily_summary(day)
    if result.get("error"):
        return JsonResponse({"ok": False, **result}, status=503)
    return JsonResponse({"ok": True, **result})
