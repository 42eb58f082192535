"""
Retention-based data archival (super admin only).

preview -> row counts per table older than the cutoff
export  -> the rows themselves (capped per table) for an offline backup
execute -> PIN-confirmed deletion in one transaction

Ledger rows that point at archived invoices or payments are folded into a
single opening-balance row per customer so balances do not move.
"""
import logging
from collections import OrderedDict, defaultdict
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from dairy.accounts import AuthError, check_pin, log_activity
from dairy.models import (
    ActivityLog, BottleTransaction, BreedingRecord, CattleHealth, CustomerLedger,
    Delivery, DeliveryItem, Expense, FeedConsumption, Invoice, MaintenanceRecord,
    MilkProcurement, MilkProduction, NotificationLog, Payment, PayrollRecord, VendorPayment,
)
from dairy.services.ledger_service import recalculate_ledger_balances

logger = logging.getLogger(__name__)

MODES = ("preview", "export", "execute")
RETENTION_CHOICES = (0, 1, 2, 3, 5)
EXPORT_LIMIT = 10000
ZERO = Decimal("0.00")

# table -> (model, date field, extra filter)
ARCHIVABLE = OrderedDict([
    ("deliveries",          (Delivery,          "delivery_date",    {})),
    ("activity_logs",       (ActivityLog,       "created_at",       {})),
    ("bottle_transactions", (BottleTransaction, "transaction_date", {})),
    ("breeding_records",    (BreedingRecord,    "record_date",      {})),
    ("cattle_health",       (CattleHealth,      "record_date",      {})),
    ("feed_consumption",    (FeedConsumption,   "consumption_date", {})),
    ("maintenance_records", (MaintenanceRecord, "maintenance_date", {})),
    ("milk_procurement",    (MilkProcurement,   "procurement_date", {})),
    ("milk_production",     (MilkProduction,    "production_date",  {})),
    ("notification_logs",   (NotificationLog,   "created_at",       {})),
    ("invoices",            (Invoice,           "created_at",       {"payment_status": Invoice.PaymentStatus.PAID})),
    ("expenses",            (Expense,           "expense_date",     {})),
    ("payments",            (Payment,           "payment_date",     {})),
    ("payroll_records",     (PayrollRecord,     "pay_period_start", {})),
    ("vendor_payments",     (VendorPayment,     "payment_date",     {})),
])


def cutoff_for(retention_years: int, today=None):
    today = today or timezone.localdate()
    if retention_years == 0:
        # factory reset: everything up to and including today
        return today + timedelta(days=1)
    try:
        return today.replace(year=today.year - retention_years)
    except ValueError:  # 29 Feb
        return today.replace(year=today.year - retention_years, day=28)


def _queryset(table, cutoff):
    model, date_field, extra = ARCHIVABLE[table]
    field = model._meta.get_field(date_field)
    if field.get_internal_type() == "DateTimeField":
        lookup = {f"{date_field}__date__lt": cutoff}
    else:
        lookup = {f"{date_field}__lt": cutoff}
    return model.objects.filter(**lookup, **extra)


def preview(cutoff) -> dict:
    return {table: _queryset(table, cutoff).count() for table in ARCHIVABLE}


def export(cutoff) -> dict:
    data = {}
    for table in ARCHIVABLE:
        rows = list(_queryset(table, cutoff).order_by("pk").values()[:EXPORT_LIMIT])
        if rows:
            data[table] = rows
    return data


def _fold_ledger(invoice_ids, payment_ids, cutoff, user=None) -> set:
    """Replace ledger rows of archived documents with one opening balance per customer."""
    refs = (
        list(CustomerLedger.objects.filter(
            transaction_type=CustomerLedger.TxType.INVOICE, reference_id__in=[str(i) for i in invoice_ids]))
        + list(CustomerLedger.objects.filter(
            transaction_type=CustomerLedger.TxType.PAYMENT, reference_id__in=[str(i) for i in payment_ids]))
    )
    by_customer = defaultdict(list)
    for row in refs:
        by_customer[row.customer_id].append(row)

    for customer_id, rows in by_customer.items():
        net = sum(((r.debit_amount or ZERO) - (r.credit_amount or ZERO) for r in rows), ZERO)
        first_date = min(r.transaction_date for r in rows)
        CustomerLedger.objects.filter(pk__in=[r.pk for r in rows]).delete()
        if net != ZERO:
            CustomerLedger.objects.create(
                customer_id=customer_id,
                transaction_date=first_date,
                transaction_type=CustomerLedger.TxType.OPENING_BALANCE,
                description=f"Archived balance before {cutoff:%d %b %Y}",
                debit_amount=net if net > 0 else None,
                credit_amount=-net if net < 0 else None,
                created_by=user,
            )
    return set(by_customer)


def execute(user, cutoff, factory_reset=False) -> dict:
    deleted = {}
    with transaction.atomic():
        invoice_ids = list(_queryset("invoices", cutoff).values_list("pk", flat=True))
        payment_ids = list(_queryset("payments", cutoff).values_list("pk", flat=True))
        affected = _fold_ledger(invoice_ids, payment_ids, cutoff, user)

        delivery_ids = _queryset("deliveries", cutoff).values_list("pk", flat=True)
        deleted["delivery_items"], _ = DeliveryItem.objects.filter(delivery_id__in=list(delivery_ids)).delete()

        for table in ARCHIVABLE:
            qs = _queryset(table, cutoff)
            n = qs.count()
            qs.delete()
            deleted[table] = n

        for customer_id in affected:
            recalculate_ledger_balances(customer_id)

    total = sum(deleted.values())
    log_activity(
        user,
        "factory_reset" if factory_reset else "data_archived",
        "system",
        "factory_reset" if factory_reset else "archive",
        {"cutoff": cutoff.isoformat(), "deleted": deleted, "total_deleted": total},
    )
    logger.warning("Archive by %s (cutoff %s): %s rows deleted", user, cutoff, total)
    return {"deleted": deleted, "total_deleted": total}


def archive_old_data(user, mode, retention_years, pin=None) -> dict:
    profile = getattr(user, "staff_profile", None)
    if profile is None or not profile.is_active or not profile.is_super_admin:
        raise AuthError("Only super admin can perform data archival", code="forbidden", status=403)
    if mode not in MODES:
        raise AuthError("Invalid mode. Use 'preview', 'export', or 'execute'", code="invalid_mode")
    try:
        retention_years = int(retention_years)
    except (TypeError, ValueError):
        retention_years = None
    if retention_years not in RETENTION_CHOICES:
        raise AuthError("Invalid retention_years. Use 0, 1, 2, 3, or 5", code="invalid_retention")

    cutoff = cutoff_for(retention_years)
    result = {"mode": mode, "retention_years": retention_years, "cutoff": cutoff.isoformat()}

    if mode == "preview":
        result["counts"] = preview(cutoff)
        return result
    if mode == "export":
        result["export"] = export(cutoff)
        return result

    if not pin or not str(pin).isdigit() or len(str(pin)) != 6:
        raise AuthError("Valid 6-digit PIN required for deletion", code="invalid_pin")
    if not check_pin(str(pin), profile.pin_hash):
        raise AuthError("Incorrect PIN", code="incorrect_pin", status=401)
    result.update(execute(user, cutoff, factory_reset=retention_years == 0))
    return result
