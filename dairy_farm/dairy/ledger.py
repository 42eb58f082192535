# dairy/ledger.py
from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from django.utils import timezone

from .models import Customer, CustomerLedger


@dataclass
class LedgerRow:
    date: date
    ref: str
    note: str
    dr: Decimal
    cr: Decimal
    source: str   # transaction_type or B/F
    pk: int | None = None
    run_amount: Decimal = Decimal("0.00")
    run_side: str = ""


def _q(v: Decimal | None) -> Decimal:
    return (v or Decimal("0.00")).quantize(Decimal("0.01"))


def _as_date(dt) -> date:
    if isinstance(dt, date) and not isinstance(dt, datetime):
        return dt
    if isinstance(dt, datetime):
        return timezone.localtime(dt).date() if timezone.is_aware(dt) else dt.date()
    return timezone.localdate()


# ----- date helpers -----------------------------------------------------------
def month_start(d: date) -> date:
    return date(d.year, d.month, 1)


def month_end(d: date) -> date:
    return date(d.year, d.month, monthrange(d.year, d.month)[1])


def _row_from_entry(e: CustomerLedger) -> LedgerRow:
    return LedgerRow(
        date=e.transaction_date,
        ref=e.reference_id or "",
        note=e.description,
        dr=_q(e.debit_amount),
        cr=_q(e.credit_amount),
        source=e.transaction_type,
        pk=e.pk,
    )


def _brought_forward(customer_id: int, as_of: date) -> Optional[LedgerRow]:
    """Balance of every entry strictly before as_of, as a single B/F row."""
    pre = CustomerLedger.objects.filter(customer_id=customer_id, transaction_date__lt=as_of)
    pre_dr = _q(sum((e.debit_amount or Decimal("0.00") for e in pre), Decimal("0.00")))
    pre_cr = _q(sum((e.credit_amount or Decimal("0.00") for e in pre), Decimal("0.00")))
    bal = _q(pre_dr - pre_cr)
    if bal == Decimal("0.00"):
        return None
    if bal > 0:
        return LedgerRow(date=as_of, ref="B/F", note="Balance brought forward", dr=bal, cr=_q(0), source="B/F")
    return LedgerRow(date=as_of, ref="B/F", note="Balance brought forward", dr=_q(0), cr=abs(bal), source="B/F")


def build_ledger(
    customer: Customer,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    """
    Customer statement for a window.
    Returns (rows, totals) where rows carry a progressive run_amount/run_side
    starting from the brought-forward balance.
    """
    qs = CustomerLedger.objects.filter(customer=customer).order_by("transaction_date", "created_at", "id")
    if date_from:
        qs = qs.filter(transaction_date__gte=date_from)
    if date_to:
        qs = qs.filter(transaction_date__lte=date_to)

    rows: list[LedgerRow] = []
    if date_from:
        bf = _brought_forward(customer.pk, date_from)
        if bf:
            rows.append(bf)
    rows.extend(_row_from_entry(e) for e in qs)

    curr_bal = Decimal("0.00")
    for r in rows:
        curr_bal += (r.dr - r.cr)
        r.run_amount = abs(curr_bal)
        r.run_side = "Dr" if curr_bal > 0 else ("Cr" if curr_bal < 0 else "")

    total_dr = _q(sum((r.dr for r in rows), Decimal("0.00")))
    total_cr = _q(sum((r.cr for r in rows), Decimal("0.00")))
    balance = _q(total_dr - total_cr)  # positive → customer owes
    opening = rows[0] if rows and rows[0].source == "B/F" else None

    return rows, {
        "opening": _q(opening.dr - opening.cr) if opening else Decimal("0.00"),
        "total_dr": total_dr,
        "total_cr": total_cr,
        "balance": balance,
        "balance_abs": abs(balance),
        "balance_side": "Dr" if balance > 0 else ("Cr" if balance < 0 else ""),
    }
