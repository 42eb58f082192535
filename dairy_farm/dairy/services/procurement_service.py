import logging
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from dairy.models import MilkProcurement, MilkVendor, Payment, PriceRule, VendorPayment
from dairy.services import expense_service, notification_service

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _q(v) -> Decimal:
    return Decimal(str(v or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _sum(qs, field):
    return qs.aggregate(
        t=Coalesce(Sum(field), Value(ZERO), output_field=DecimalField(max_digits=14, decimal_places=2))
    )["t"]


def vendor_balance(vendor) -> Decimal:
    """Σ procurement totals − Σ payments made to the vendor."""
    procured = _sum(MilkProcurement.objects.filter(vendor=vendor), "total_amount")
    paid = _sum(VendorPayment.objects.filter(vendor=vendor), "amount")
    return _q(procured - paid)


def sync_vendor_balance(vendor_id) -> Decimal:
    balance = vendor_balance(vendor_id)
    MilkVendor.objects.filter(pk=vendor_id).update(current_balance=balance)
    return balance


def _in_range(value, lo, hi) -> bool:
    if lo is None and hi is None:
        return True
    if value is None:
        return False
    if lo is not None and value < lo:
        return False
    if hi is not None and value > hi:
        return False
    return True


def apply_price_rules(base_rate, fat=None, snf=None, product=None) -> Decimal:
    """
    Adjust a base ₹/L rate by every active rule whose fat/SNF bounds contain
    the sample. Product-specific rules apply only to that product.
    """
    base = Decimal(str(base_rate))
    fat = Decimal(str(fat)) if fat is not None else None
    snf = Decimal(str(snf)) if snf is not None else None

    rules = PriceRule.objects.filter(is_active=True)
    if product is not None:
        rules = rules.filter(Q(product=product) | Q(product__isnull=True))
    else:
        rules = rules.filter(product__isnull=True)

    rate = base
    for rule in rules.order_by("created_at", "id"):
        if not _in_range(fat, rule.min_fat_percentage, rule.max_fat_percentage):
            continue
        if not _in_range(snf, rule.min_snf_percentage, rule.max_snf_percentage):
            continue
        if rule.adjustment_type == PriceRule.AdjustmentType.PERCENTAGE:
            rate += base * rule.price_adjustment / Decimal("100")
        else:
            rate += rule.price_adjustment
    return _q(rate)


def record_procurement(vendor, procurement_date, session, quantity_liters, rate_per_liter=None,
                       fat_percentage=None, snf_percentage=None, base_rate=None, product=None,
                       notes="", user=None) -> MilkProcurement:
    qty = Decimal(str(quantity_liters))
    if qty <= 0:
        raise ValidationError("Quantity must be positive.")
    if rate_per_liter is None:
        if base_rate is None:
            raise ValidationError("Provide a rate or a base rate for price rules.")
        rate_per_liter = apply_price_rules(base_rate, fat_percentage, snf_percentage, product)

    procurement = MilkProcurement.objects.create(
        vendor=vendor,
        procurement_date=procurement_date,
        session=session,
        quantity_liters=qty,
        fat_percentage=fat_percentage,
        snf_percentage=snf_percentage,
        rate_per_liter=_q(rate_per_liter),
        notes=notes,
        created_by=user,
    )
    logger.info("Procurement %sL from %s @ ₹%s", qty, procurement.vendor_name, procurement.rate_per_liter)
    notification_service.notify_event(notification_service.EVENT_PROCUREMENT_RECORDED, {
        "vendor_name": procurement.vendor_name,
        "quantity": str(qty),
        "rate": str(procurement.rate_per_liter),
        "total_amount": str(procurement.total_amount),
    })
    return procurement


@transaction.atomic
def mark_procurement_paid(procurement, user=None):
    if procurement.payment_status == MilkProcurement.PaymentStatus.PAID:
        return None
    procurement.payment_status = MilkProcurement.PaymentStatus.PAID
    procurement.updated_by = user
    procurement.save(update_fields=["payment_status", "updated_by", "updated_at"])
    return expense_service.log_procurement_expense(procurement, user=user)


@transaction.atomic
def record_vendor_payment(vendor, amount, payment_date=None, mode=Payment.Mode.CASH,
                          reference="", notes="", user=None) -> VendorPayment:
    amount = _q(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be positive.")
    payment = VendorPayment.objects.create(
        vendor=vendor,
        amount=amount,
        payment_date=payment_date or timezone.localdate(),
        payment_mode=mode,
        reference_number=reference or "",
        notes=notes or "",
        created_by=user,
    )
    expense_service.log_vendor_payment_expense(payment, user=user)
    return payment
