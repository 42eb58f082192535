"""
Customer ledger bookkeeping.

Every write to CustomerLedger goes through insert_ledger_with_balance so the
running balance chain stays ordered by (transaction_date, created_at, id).
Back-dated or edited rows are repaired with recalculate_ledger_balances.
Customer.credit_balance is refreshed by the CustomerLedger signals.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum, Value, DecimalField
from django.db.models.functions import Coalesce

from dairy.models import Customer, CustomerLedger

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _q(v) -> Decimal:
    return (Decimal(v) if v is not None else ZERO).quantize(Decimal("0.01"))


def _nullable(v):
    """Zero amounts are stored as NULL so a row is clearly a debit or a credit."""
    v = _q(v)
    return v if v != ZERO else None


def _customer_id(customer):
    return customer.pk if isinstance(customer, Customer) else int(customer)


def latest_entry(customer_id, for_update=False):
    qs = CustomerLedger.objects.filter(customer_id=customer_id)
    if for_update:
        qs = qs.select_for_update()
    return qs.order_by("-transaction_date", "-created_at", "-id").first()


@transaction.atomic
def insert_ledger_with_balance(
    customer,
    transaction_date,
    transaction_type,
    description,
    debit=None,
    credit=None,
    reference_id="",
    user=None,
) -> CustomerLedger:
    """
    Append a ledger row whose running balance is the previous balance
    plus debit minus credit. The previous row is locked for the duration of
    the transaction so concurrent inserts for one customer serialize.
    """
    customer_id = _customer_id(customer)
    prev = latest_entry(customer_id, for_update=True)
    prev_balance = prev.running_balance if prev else ZERO

    debit_v = _nullable(debit)
    credit_v = _nullable(credit)
    balance = _q(prev_balance + (debit_v or ZERO) - (credit_v or ZERO))

    entry = CustomerLedger.objects.create(
        customer_id=customer_id,
        transaction_date=transaction_date,
        transaction_type=transaction_type,
        description=description[:255],
        debit_amount=debit_v,
        credit_amount=credit_v,
        running_balance=balance,
        reference_id=str(reference_id or ""),
        created_by=user,
    )
    logger.debug(
        "ledger insert customer=%s type=%s dr=%s cr=%s bal=%s",
        customer_id, transaction_type, debit_v, credit_v, balance,
    )

    # A back-dated row lands in the middle of the chain; rebuild from scratch.
    if prev and (transaction_date < prev.transaction_date):
        recalculate_ledger_balances(customer_id)
        entry.refresh_from_db(fields=["running_balance"])
    return entry


@transaction.atomic
def recalculate_ledger_balances(customer) -> Decimal:
    """
    Rewrite running_balance for every row of one customer in chronological
    order. Returns the closing balance.
    """
    customer_id = _customer_id(customer)
    rows = list(
        CustomerLedger.objects.select_for_update()
        .filter(customer_id=customer_id)
        .order_by("transaction_date", "created_at", "id")
    )
    running = ZERO
    changed = []
    for row in rows:
        running = _q(running + (row.debit_amount or ZERO) - (row.credit_amount or ZERO))
        if row.running_balance != running:
            row.running_balance = running
            changed.append(row)

    batch_size = 500
    for i in range(0, len(changed), batch_size):
        CustomerLedger.objects.bulk_update(changed[i:i + batch_size], ["running_balance"])

    sync_customer_balance(customer_id)
    if changed:
        logger.info("Recalculated %s ledger rows for customer %s (balance %s)", len(changed), customer_id, running)
    return running


def calculate_balance(customer) -> Decimal:
    """Σ debit − Σ credit for one customer, without touching stored balances."""
    agg = CustomerLedger.objects.filter(customer_id=_customer_id(customer)).aggregate(
        dr=Coalesce(Sum("debit_amount"), Value(ZERO), output_field=DecimalField(max_digits=14, decimal_places=2)),
        cr=Coalesce(Sum("credit_amount"), Value(ZERO), output_field=DecimalField(max_digits=14, decimal_places=2)),
    )
    return _q(agg["dr"] - agg["cr"])


def sync_customer_balance(customer_id) -> Decimal:
    balance = calculate_balance(customer_id)
    Customer.objects.filter(pk=customer_id).update(credit_balance=balance)
    return balance


def find_invoice_entry(invoice):
    return (
        CustomerLedger.objects
        .filter(transaction_type=CustomerLedger.TxType.INVOICE, reference_id=str(invoice.pk))
        .order_by("created_at", "id")
        .first()
    )
