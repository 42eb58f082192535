"""
Automatic expense entries for money that leaves the farm through other
screens (payroll, equipment, maintenance, vet bills, feed, bottles,
procurement). Auto entries carry "[AUTO] <type>:<id>" at the start of
their notes, which is also the dedupe key.
"""
import logging
from decimal import Decimal

from django.utils import timezone

from dairy.models import Expense, ExpenseCategory

logger = logging.getLogger(__name__)

AUTO_PREFIX = "[AUTO]"


def auto_reference(reference_type: str, reference_id) -> str:
    return f"{AUTO_PREFIX} {reference_type}:{reference_id}"


def auto_expense_exists(reference_type: str, reference_id) -> bool:
    ref = auto_reference(reference_type, reference_id)
    # exact key, or key followed by the " | extra" separator
    return (
        Expense.objects.filter(notes=ref).exists()
        or Expense.objects.filter(notes__startswith=f"{ref} |").exists()
    )


def create_auto_expense(
    category,
    title,
    amount,
    expense_date=None,
    reference_type=None,
    reference_id=None,
    notes="",
    cattle=None,
    user=None,
):
    """
    Create an expense unless the amount is not positive or an expense for
    the same reference already exists. Returns the Expense or None.
    """
    amount = Decimal(str(amount or 0)).quantize(Decimal("0.01"))
    if amount <= 0:
        return None

    if reference_type and reference_id is not None:
        if auto_expense_exists(reference_type, reference_id):
            logger.debug("Expense already exists for %s:%s", reference_type, reference_id)
            return None
        key = auto_reference(reference_type, reference_id)
        notes = f"{key} | {notes}" if notes else key

    expense = Expense.objects.create(
        category=category,
        title=title[:255],
        amount=amount,
        expense_date=expense_date or timezone.localdate(),
        notes=notes or "",
        cattle=cattle,
        created_by=user,
    )
    logger.info("Auto expense %s: %s ₹%s", category, expense.title, amount)
    return expense


def log_salary_expense(record, user=None):
    start, end = record.pay_period_start, record.pay_period_end
    return create_auto_expense(
        ExpenseCategory.SALARY,
        f"Salary - {record.employee.name}",
        record.net_salary,
        expense_date=record.payment_date or timezone.localdate(),
        reference_type="payroll",
        reference_id=record.pk,
        notes=f"Pay period: {start:%d %b} - {end:%d %b %Y}",
        user=user,
    )


def log_equipment_purchase(equipment, user=None):
    return create_auto_expense(
        ExpenseCategory.MISC,
        f"Equipment Purchase - {equipment.name}",
        equipment.purchase_cost,
        expense_date=equipment.purchase_date,
        reference_type="equipment",
        reference_id=equipment.pk,
        user=user,
    )


def log_maintenance_expense(record, user=None):
    return create_auto_expense(
        ExpenseCategory.MAINTENANCE,
        f"{record.maintenance_type.capitalize()} - {record.equipment.name}",
        record.cost,
        expense_date=record.maintenance_date,
        reference_type="maintenance",
        reference_id=record.pk,
        user=user,
    )


def log_health_expense(record, user=None):
    return create_auto_expense(
        ExpenseCategory.MEDICINE,
        f"{record.record_type.capitalize()} - {record.cattle.tag_number}: {record.title}",
        record.cost,
        expense_date=record.record_date,
        reference_type="health",
        reference_id=record.pk,
        cattle=record.cattle,
        user=user,
    )


def log_feed_purchase(feed, quantity, unit_cost, purchase_date=None, user=None):
    total = Decimal(str(quantity)) * Decimal(str(unit_cost))
    stamp = timezone.now().strftime("%Y%m%d%H%M%S%f")
    return create_auto_expense(
        ExpenseCategory.FEED,
        f"Feed Purchase - {feed.name}",
        total,
        expense_date=purchase_date,
        reference_type="feed_purchase",
        reference_id=f"feed_{feed.pk}_{stamp}",
        notes=f"{quantity} {feed.unit} @ ₹{unit_cost}/{feed.unit}",
        user=user,
    )


def log_bottle_loss(bottle, quantity, reason="", expense_date=None, user=None):
    total = Decimal(quantity) * (bottle.deposit_amount or Decimal("0"))
    stamp = timezone.now().strftime("%Y%m%d%H%M%S%f")
    return create_auto_expense(
        ExpenseCategory.MISC,
        f"Bottle Loss - {bottle}",
        total,
        expense_date=expense_date,
        reference_type="bottle_loss",
        reference_id=f"bottle_{bottle.pk}_{stamp}",
        notes=reason or f"{quantity} bottles lost/damaged",
        user=user,
    )


def log_transport_expense(description, amount, expense_date=None, user=None):
    return create_auto_expense(ExpenseCategory.TRANSPORT, description, amount, expense_date=expense_date, user=user)


def log_utility_expense(description, amount, expense_date=None, user=None):
    return create_auto_expense(ExpenseCategory.ELECTRICITY, description, amount, expense_date=expense_date, user=user)


def log_procurement_expense(procurement, user=None):
    session = "AM" if procurement.session == "morning" else "PM"
    return create_auto_expense(
        ExpenseCategory.FEED,
        f"Milk Procurement - {procurement.vendor_name or procurement.vendor}",
        procurement.total_amount,
        expense_date=procurement.procurement_date,
        reference_type="milk_procurement",
        reference_id=procurement.pk,
        notes=f"{procurement.quantity_liters}L @ ₹{procurement.rate_per_liter}/L ({session})",
        user=user,
    )


def log_vendor_payment_expense(payment, user=None):
    ref = f" (Ref: {payment.reference_number})" if payment.reference_number else ""
    return create_auto_expense(
        ExpenseCategory.FEED,
        f"Vendor Payment - {payment.vendor.name}",
        payment.amount,
        expense_date=payment.payment_date,
        reference_type="vendor_payment",
        reference_id=payment.pk,
        notes=f"Payment via {payment.get_payment_mode_display()}{ref}",
        user=user,
    )
