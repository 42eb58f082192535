"""
Invoice generation and settlement.

Invoices are built from *delivered* delivery items. Each invoice is mirrored
by one "invoice" debit in CustomerLedger (reference_id = invoice pk) and each
payment by one "payment" credit (reference_id = payment pk).
"""
from __future__ import annotations

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import DecimalField, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from dairy.ledger import month_end
from dairy.models import (
    Customer, CustomerLedger, CustomerProduct, DairySettings, Delivery,
    DeliveryItem, Invoice, Payment, Product,
)
from dairy.services import notification_service
from dairy.services.ledger_service import (
    find_invoice_entry, insert_ledger_with_balance, recalculate_ledger_balances,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
DUE_DAYS = 15
AMOUNT_TOLERANCE = Decimal("0.01")


def _q(v) -> Decimal:
    return Decimal(str(v or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _fmt_num(v) -> str:
    """2.000 -> '2', 1.500 -> '1.5' for invoice notes."""
    s = f"{Decimal(str(v)):f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


# ---------------------------------------------------------
# Line items
# ---------------------------------------------------------
@dataclass
class InvoiceLine:
    product_id: int | None
    product_name: str
    quantity: Decimal
    unit: str
    rate: Decimal
    tax_percentage: Decimal = ZERO
    is_addon: bool = False
    amount: Decimal | None = None
    tax_amount: Decimal = field(init=False)

    def __post_init__(self):
        self.quantity = Decimal(str(self.quantity))
        self.rate = Decimal(str(self.rate))
        self.tax_percentage = Decimal(str(self.tax_percentage or 0))
        # a passed amount is the billed total and wins over quantity x rate
        self.amount = _q(self.quantity * self.rate) if self.amount is None else _q(self.amount)
        self.tax_amount = _q(self.amount * self.tax_percentage / Decimal("100"))

    def as_dict(self):
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": str(self.quantity),
            "unit": self.unit,
            "rate": str(self.rate),
            "tax_percentage": str(self.tax_percentage),
            "amount": str(self.amount),
            "tax_amount": str(self.tax_amount),
            "is_addon": self.is_addon,
        }


def compute_totals(lines, discount=ZERO) -> dict:
    subtotal = _q(sum((l.amount for l in lines), ZERO))
    tax = _q(sum((l.tax_amount for l in lines), ZERO))
    discount = _q(discount)
    return {
        "subtotal": subtotal,
        "tax": tax,
        "discount": discount,
        "grand_total": _q(subtotal + tax - discount),
    }


def build_invoice_lines(customer, start: date, end: date) -> list[InvoiceLine]:
    """
    Aggregate delivered items per product for the period. Products outside the
    customer's active subscriptions are add-ons; subscriptions list first.
    """
    subscribed = set(
        CustomerProduct.objects.filter(customer=customer, is_active=True).values_list("product_id", flat=True)
    )
    items = (
        DeliveryItem.objects
        .filter(
            delivery__customer=customer,
            delivery__status=Delivery.Status.DELIVERED,
            delivery__delivery_date__gte=start,
            delivery__delivery_date__lte=end,
        )
        .select_related("product")
        .order_by("id")
    )

    grouped: "OrderedDict[int, dict]" = OrderedDict()
    for item in items:
        g = grouped.setdefault(item.product_id, {
            "product": item.product, "quantity": Decimal("0"), "amount": ZERO,
        })
        g["quantity"] += item.quantity
        g["amount"] += item.total_amount

    lines = []
    for product_id, g in grouped.items():
        product = g["product"]
        qty = g["quantity"]
        # display rate only; the line bills the delivered amount
        rate = _q(g["amount"] / qty) if qty else product.base_price
        lines.append(InvoiceLine(
            product_id=product_id,
            product_name=product.name,
            quantity=qty,
            unit=product.unit,
            rate=rate,
            tax_percentage=product.tax_percentage,
            is_addon=product_id not in subscribed,
            amount=g["amount"],
        ))
    lines.sort(key=lambda l: (l.is_addon, l.product_name.lower()))
    return lines


# ---------------------------------------------------------
# Notes encoding (human readable, parsed back by the edit flow)
# ---------------------------------------------------------
ADDON_TAG = "[ADD-ON]"
_NOTE_RE = re.compile(r"(?:\[ADD-ON\]\s*)?(.+?):\s*([\d.]+)\s*(\w+)\s*@\s*₹?([\d.]+)")


def _line_text(line: InvoiceLine) -> str:
    return f"{line.product_name}: {_fmt_num(line.quantity)} {line.unit} @ ₹{_fmt_num(line.rate)}/{line.unit}"


def format_invoice_notes(lines) -> str:
    subs = "; ".join(_line_text(l) for l in lines if not l.is_addon)
    addons = "; ".join(f"{ADDON_TAG} {_line_text(l)}" for l in lines if l.is_addon)
    return " | ".join(part for part in (subs, addons) if part)


def parse_invoice_notes(notes: str) -> list[InvoiceLine]:
    """Rebuild lines from invoice notes. Product and tax are resolved by name."""
    lines = []
    if not notes:
        return lines
    products = {p.name: p for p in Product.objects.all()}
    for group in notes.split("|"):
        for part in group.split(";"):
            part = part.strip()
            m = _NOTE_RE.match(part)
            if not m:
                continue
            name, qty, unit, rate = m.groups()
            product = products.get(name.strip())
            lines.append(InvoiceLine(
                product_id=product.pk if product else None,
                product_name=name.strip(),
                quantity=Decimal(qty),
                unit=unit,
                rate=Decimal(rate),
                tax_percentage=product.tax_percentage if product else ZERO,
                is_addon=part.startswith(ADDON_TAG),
            ))
    return lines


# ---------------------------------------------------------
# Numbering & period helpers
# ---------------------------------------------------------
def generate_invoice_number(day: date | None = None, offset: int = 0) -> str:
    day = day or timezone.localdate()
    prefix = f"{DairySettings.get_solo().invoice_prefix or 'INV'}-{day:%Y%m}-"
    count = Invoice.objects.filter(invoice_number__startswith=prefix).count()
    return f"{prefix}{count + 1 + offset:04d}"


def delivery_totals(start: date, end: date, customer_ids=None) -> dict:
    """{customer_id: Σ total_amount} of delivered items in the period."""
    qs = DeliveryItem.objects.filter(
        delivery__status=Delivery.Status.DELIVERED,
        delivery__delivery_date__gte=start,
        delivery__delivery_date__lte=end,
    )
    if customer_ids is not None:
        qs = qs.filter(delivery__customer_id__in=list(customer_ids))
    rows = qs.values("delivery__customer_id").annotate(
        total=Coalesce(Sum("total_amount"), Value(ZERO), output_field=DecimalField(max_digits=14, decimal_places=2))
    )
    return {r["delivery__customer_id"]: _q(r["total"]) for r in rows}


def invoice_exists_for_period(customer_id, start: date, end: date) -> bool:
    return Invoice.objects.filter(
        customer_id=customer_id, billing_period_start=start, billing_period_end=end,
    ).exists()


def _ledger_description(invoice_number, start, end) -> str:
    return f"Invoice {invoice_number} ({start:%d %b} - {end:%d %b %Y})"


def _create_invoice_with_ledger(customer, start, end, lines, discount, due_date, number, user=None) -> Invoice:
    totals = compute_totals(lines, discount)
    invoice = Invoice.objects.create(
        invoice_number=number,
        customer=customer,
        billing_period_start=start,
        billing_period_end=end,
        total_amount=totals["subtotal"],
        tax_amount=totals["tax"],
        discount_amount=totals["discount"],
        final_amount=totals["grand_total"],
        payment_status=Invoice.PaymentStatus.PENDING,
        due_date=due_date,
        upi_handle=DairySettings.get_solo().upi_handle,
        notes=format_invoice_notes(lines),
        created_by=user,
    )
    insert_ledger_with_balance(
        customer,
        timezone.localdate(),
        CustomerLedger.TxType.INVOICE,
        _ledger_description(number, start, end),
        debit=invoice.final_amount,
        reference_id=invoice.pk,
        user=user,
    )
    return invoice


# ---------------------------------------------------------
# Generation
# ---------------------------------------------------------
def generate_bulk_invoices(start: date, end: date, customer_ids=None, discount=ZERO,
                           due_date: date | None = None, user=None) -> dict:
    """
    One invoice per customer with delivered items in the period, skipping
    customers already invoiced for exactly this period or with nothing due.
    Each invoice is created in its own transaction so one failure does not
    roll back the batch.
    """
    if end < start:
        raise ValidationError("Period end cannot be before period start.")

    totals = delivery_totals(start, end, customer_ids)
    customers = Customer.objects.filter(pk__in=list(totals.keys())).order_by("name")
    due = due_date or (timezone.localdate() + timedelta(days=DUE_DAYS))

    created, skipped, errors = [], [], []
    for customer in customers:
        if invoice_exists_for_period(customer.pk, start, end):
            skipped.append({"customer_id": customer.pk, "reason": "already invoiced"})
            continue
        if totals.get(customer.pk, ZERO) <= ZERO:
            skipped.append({"customer_id": customer.pk, "reason": "no amount"})
            continue
        lines = build_invoice_lines(customer, start, end)
        try:
            with transaction.atomic():
                number = generate_invoice_number()
                invoice = _create_invoice_with_ledger(customer, start, end, lines, discount, due, number, user)
        except Exception as exc:
            logger.exception("Invoice generation failed for customer %s", customer.pk)
            errors.append({"customer_id": customer.pk, "error": str(exc)})
            continue
        created.append(invoice)

    total_amount = _q(sum((i.final_amount for i in created), ZERO))
    logger.info(
        "Bulk invoices %s..%s: created=%s skipped=%s failed=%s total=%s",
        start, end, len(created), len(skipped), len(errors), total_amount,
    )
    return {
        "created": len(created),
        "skipped": len(skipped),
        "failed": len(errors),
        "total_amount": total_amount,
        "invoices": created,
        "skipped_detail": skipped,
        "errors": errors,
    }


def generate_monthly_invoices(year: int, month: int, user=None) -> dict:
    start = date(year, month, 1)
    end = month_end(start)
    active_ids = Customer.objects.filter(is_active=True).values_list("pk", flat=True)
    return generate_bulk_invoices(
        start, end,
        customer_ids=list(active_ids),
        due_date=end + timedelta(days=DUE_DAYS),
        user=user,
    )


@transaction.atomic
def create_smart_invoice(customer, start: date, end: date, discount=ZERO, extra_lines=(), user=None) -> Invoice:
    if end < start:
        raise ValidationError("Period end cannot be before period start.")
    if invoice_exists_for_period(customer.pk, start, end):
        raise ValidationError(f"An invoice already exists for {customer.name} for this period.")

    lines = build_invoice_lines(customer, start, end) + list(extra_lines)
    lines = [l for l in lines if l.quantity > 0 and l.rate >= 0]
    if not lines:
        raise ValidationError("Add at least one line item with quantity and rate.")
    lines.sort(key=lambda l: (l.is_addon, l.product_name.lower()))

    due = timezone.localdate() + timedelta(days=DUE_DAYS)
    invoice = _create_invoice_with_ledger(
        customer, start, end, lines, discount, due, generate_invoice_number(), user,
    )
    logger.info("Invoice %s created for %s: ₹%s", invoice.invoice_number, customer.name, invoice.final_amount)
    return invoice


def _derive_status(invoice: Invoice) -> str:
    if invoice.paid_amount >= invoice.final_amount and invoice.final_amount > 0:
        return Invoice.PaymentStatus.PAID
    if invoice.paid_amount <= 0:
        return Invoice.PaymentStatus.PENDING
    return Invoice.PaymentStatus.PARTIAL


@transaction.atomic
def update_invoice(invoice: Invoice, lines=None, discount=None, due_date=None, notes=None, user=None) -> Invoice:
    """
    Edit an unpaid invoice. When the payable amount moves, the matching
    ledger debit is corrected and the customer's chain is recalculated.
    """
    invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
    if invoice.payment_status == Invoice.PaymentStatus.PAID:
        raise ValidationError("Paid invoices cannot be edited.")

    if discount is None:
        discount = invoice.discount_amount

    if lines is None:
        # header-only edit: the billed lines and their tax stay as stored
        discount = _q(discount)
        totals = {
            "subtotal": invoice.total_amount,
            "tax": invoice.tax_amount,
            "discount": discount,
            "grand_total": _q(invoice.total_amount + invoice.tax_amount - discount),
        }
        line_notes = invoice.notes
    else:
        lines = [l for l in lines if l.quantity > 0]
        if not lines:
            raise ValidationError("Add at least one line item with quantity and rate.")
        totals = compute_totals(lines, discount)
        line_notes = format_invoice_notes(lines)

    old_amount = invoice.final_amount
    invoice.total_amount = totals["subtotal"]
    invoice.tax_amount = totals["tax"]
    invoice.discount_amount = totals["discount"]
    invoice.final_amount = totals["grand_total"]
    invoice.notes = notes if notes is not None else line_notes
    if due_date is not None:
        invoice.due_date = due_date
    invoice.payment_status = _derive_status(invoice)
    if invoice.payment_status == Invoice.PaymentStatus.PAID and not invoice.payment_date:
        invoice.payment_date = timezone.localdate()
    invoice.updated_by = user
    invoice.save()

    if abs(invoice.final_amount - old_amount) > AMOUNT_TOLERANCE:
        entry = find_invoice_entry(invoice)
        if entry:
            entry.debit_amount = invoice.final_amount if invoice.final_amount else None
            entry.save(update_fields=["debit_amount"])
            recalculate_ledger_balances(invoice.customer_id)
        else:
            logger.warning("Invoice %s has no ledger entry to update", invoice.invoice_number)
    return invoice


@transaction.atomic
def delete_invoice(invoice: Invoice) -> None:
    if invoice.payment_status == Invoice.PaymentStatus.PAID or invoice.paid_amount > 0:
        raise ValidationError("Invoices with payments cannot be deleted.")
    customer_id = invoice.customer_id
    CustomerLedger.objects.filter(
        transaction_type=CustomerLedger.TxType.INVOICE, reference_id=str(invoice.pk),
    ).delete()
    invoice.delete()
    recalculate_ledger_balances(customer_id)


# ---------------------------------------------------------
# Payments
# ---------------------------------------------------------
def record_payment(customer, amount, mode=Payment.Mode.CASH, invoice=None, payment_date=None,
                   reference="", notes="", user=None) -> Payment:
    amount = _q(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be positive.")
    payment_date = payment_date or timezone.localdate()

    with transaction.atomic():
        if invoice is not None:
            invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
            if invoice.customer_id != customer.pk:
                raise ValidationError("Invoice belongs to a different customer.")
            remaining = invoice.final_amount - invoice.paid_amount
            applied = min(amount, max(remaining, ZERO))
            invoice.paid_amount = _q(invoice.paid_amount + applied)
            if invoice.final_amount - invoice.paid_amount <= 0:
                invoice.payment_status = Invoice.PaymentStatus.PAID
                invoice.payment_date = payment_date
            elif invoice.paid_amount <= 0:
                invoice.payment_status = Invoice.PaymentStatus.PENDING
            else:
                invoice.payment_status = Invoice.PaymentStatus.PARTIAL
            invoice.updated_by = user
            invoice.save(update_fields=["paid_amount", "payment_status", "payment_date", "updated_by", "updated_at"])

        payment = Payment.objects.create(
            customer=customer,
            invoice=invoice,
            amount=amount,
            payment_date=payment_date,
            payment_mode=mode,
            reference_number=reference or "",
            notes=notes or "",
            created_by=user,
        )
        description = f"Payment for {invoice.invoice_number}" if invoice else "General Payment"
        insert_ledger_with_balance(
            customer, payment_date, CustomerLedger.TxType.PAYMENT, description,
            credit=amount, reference_id=payment.pk, user=user,
        )

    logger.info("Payment ₹%s from %s (%s)", amount, customer.name, mode)
    event = {
        "amount": str(amount),
        "customer_name": customer.name,
        "payment_mode": payment.get_payment_mode_display(),
        "reference": reference,
    }
    notification_service.notify_event(notification_service.EVENT_PAYMENT_RECEIVED, event)
    notification_service.notify_event(notification_service.EVENT_LARGE_TRANSACTION, event)
    return payment


# ---------------------------------------------------------
# Status & outstanding
# ---------------------------------------------------------
def effective_status(invoice: Invoice, today: date | None = None) -> str:
    if invoice.payment_status == Invoice.PaymentStatus.PAID:
        return Invoice.PaymentStatus.PAID
    today = today or timezone.localdate()
    if invoice.due_date and invoice.due_date < today:
        return Invoice.PaymentStatus.OVERDUE
    return invoice.payment_status


def outstanding_summary(today: date | None = None, customer=None) -> dict:
    today = today or timezone.localdate()
    qs = Invoice.objects.exclude(payment_status=Invoice.PaymentStatus.PAID)
    if customer is not None:
        qs = qs.filter(customer=customer)
    outstanding = ZERO
    overdue = ZERO
    overdue_count = 0
    for inv in qs:
        balance = inv.final_amount - inv.paid_amount
        outstanding += balance
        if effective_status(inv, today) == Invoice.PaymentStatus.OVERDUE:
            overdue += balance
            overdue_count += 1
    return {
        "outstanding": _q(outstanding),
        "overdue": _q(overdue),
        "overdue_count": overdue_count,
        "open_count": qs.count(),
    }
