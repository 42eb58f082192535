from decimal import Decimal

from django.db.models import DecimalField, F, OuterRef, Subquery, Sum
from django.db.models.functions import Coalesce

from dairy.models import CustomerLedger, MilkProcurement, VendorPayment


def _sub_sum(model, link_field, amount_field, extra_filter=None):
    sub_qs = model.objects.filter(**{link_field: OuterRef("pk")})
    if extra_filter:
        sub_qs = sub_qs.filter(**extra_filter)
    return Coalesce(
        Subquery(
            sub_qs.values(link_field)
            .annotate(total=Sum(amount_field))
            .values("total")
        ),
        Decimal("0.00"),
        output_field=DecimalField(max_digits=14, decimal_places=2),
    )


def get_customer_balances(qs, date_to=None):
    """
    Annotates a Customer queryset with 'ledger_debit', 'ledger_credit' and
    'ledger_balance' (debit − credit) straight from CustomerLedger rows.
    Subqueries keep the two sums from multiplying each other.
    """
    extra = {"transaction_date__lte": date_to} if date_to else None
    return qs.annotate(
        ledger_debit=_sub_sum(CustomerLedger, "customer_id", "debit_amount", extra),
        ledger_credit=_sub_sum(CustomerLedger, "customer_id", "credit_amount", extra),
    ).annotate(
        ledger_balance=F("ledger_debit") - F("ledger_credit"),
    )


def get_vendor_balances(qs):
    """Annotates a MilkVendor queryset with 'procured', 'paid' and 'computed_balance'."""
    return qs.annotate(
        procured=_sub_sum(MilkProcurement, "vendor_id", "total_amount"),
        paid=_sub_sum(VendorPayment, "vendor_id", "amount"),
    ).annotate(
        computed_balance=F("procured") - F("paid"),
    )
