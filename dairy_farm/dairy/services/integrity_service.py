"""
Financial integrity checks and repairs.

  A. Ledger ↔ balance sync: Customer.credit_balance == Σ debit − Σ credit
  B. Orphaned invoices: invoice without an "invoice" ledger debit
  C. Orphaned ledger entries: "invoice" ledger debit whose invoice is gone

Plus account orphans (profiles / customer accounts / sessions whose
counterpart disappeared).
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from django.contrib.auth import get_user_model
from django.contrib.sessions.models import Session
from django.db import transaction
from django.utils import timezone

from dairy.models import ActivityLog, Customer, CustomerAccount, CustomerLedger, Invoice, StaffProfile
from dairy.services.ledger_service import insert_ledger_with_balance, recalculate_ledger_balances

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000
ZERO = Decimal("0.00")


def _r2(v) -> Decimal:
    return Decimal(str(v or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass
class CheckResult:
    name: str
    passed: bool
    detail: str
    issues: list = field(default_factory=list)

    def as_dict(self):
        return {
            "name": self.name,
            "status": "pass" if self.passed else "fail",
            "detail": self.detail,
            "count": len(self.issues),
            "issues": self.issues,
        }


def _ledger_totals() -> dict:
    totals = defaultdict(lambda: ZERO)
    rows = CustomerLedger.objects.values_list("customer_id", "debit_amount", "credit_amount")
    for customer_id, dr, cr in rows.iterator(chunk_size=PAGE_SIZE):
        totals[customer_id] += (dr or ZERO) - (cr or ZERO)
    return totals


def _invoice_ledger_refs() -> set:
    qs = (
        CustomerLedger.objects
        .filter(transaction_type=CustomerLedger.TxType.INVOICE)
        .exclude(reference_id="")
        .values_list("reference_id", flat=True)
    )
    return set(qs.iterator(chunk_size=PAGE_SIZE))


def _invoice_ids() -> set:
    return {str(pk) for pk in Invoice.objects.values_list("pk", flat=True).iterator(chunk_size=PAGE_SIZE)}


def check_ledger_sync() -> CheckResult:
    name = "Ledger ↔ Balance Sync"
    customers = list(Customer.objects.filter(is_active=True).values_list("pk", "name", "credit_balance"))
    if not customers:
        return CheckResult(name, True, "No active customers to check.")

    totals = _ledger_totals()
    mismatches = []
    for pk, cname, stored in customers:
        expected = _r2(totals.get(pk, ZERO))
        actual = _r2(stored)
        if expected != actual:
            mismatches.append({"customer_id": pk, "name": cname, "expected": str(expected), "actual": str(actual)})

    if not mismatches:
        return CheckResult(name, True, f"All {len(customers)} active customers in sync.")
    return CheckResult(name, False, f"{len(mismatches)} customer(s) have mismatched balances.", mismatches)


def check_orphaned_invoices() -> CheckResult:
    name = "Orphaned Invoices"
    invoice_ids = _invoice_ids()
    if not invoice_ids:
        return CheckResult(name, True, "No invoices in the system.")

    refs = _invoice_ledger_refs()
    orphaned = sorted(invoice_ids - refs, key=int)
    if not orphaned:
        return CheckResult(name, True, f"All {len(invoice_ids)} invoices have ledger entries.")
    return CheckResult(
        name, False,
        f"{len(orphaned)} invoice(s) have no corresponding ledger debit entry.",
        [{"invoice_id": int(pk)} for pk in orphaned],
    )


def _orphaned_ledger_qs():
    return (
        CustomerLedger.objects
        .filter(transaction_type=CustomerLedger.TxType.INVOICE)
        .exclude(reference_id="")
    )


def check_orphaned_ledger_entries() -> CheckResult:
    name = "Orphaned Ledger Entries"
    entries = list(_orphaned_ledger_qs().values_list("pk", "customer_id", "reference_id", "debit_amount"))
    if not entries:
        return CheckResult(name, True, "No invoice ledger entries to check.")

    invoice_ids = _invoice_ids()
    orphaned = [
        {"entry_id": pk, "customer_id": cid, "reference_id": ref, "amount": str(_r2(dr))}
        for pk, cid, ref, dr in entries if ref not in invoice_ids
    ]
    if not orphaned:
        return CheckResult(name, True, f"All {len(entries)} invoice ledger entries have matching invoices.")
    return CheckResult(
        name, False,
        f"{len(orphaned)} ledger debit(s) reference invoices that no longer exist.",
        orphaned,
    )


def check_financial_integrity() -> list[CheckResult]:
    results = [check_ledger_sync(), check_orphaned_invoices(), check_orphaned_ledger_entries()]
    for r in results:
        log = logger.info if r.passed else logger.warning
        log("Integrity %s: %s", r.name, r.detail)
    return results


# ---------------------------------------------------------
# Fixes
# ---------------------------------------------------------
def fix_recalculate_all() -> int:
    """Recalculate running balances for every customer with ledger rows."""
    customer_ids = list(CustomerLedger.objects.values_list("customer_id", flat=True).distinct())
    for customer_id in customer_ids:
        recalculate_ledger_balances(customer_id)
    # customers without rows must read zero
    Customer.objects.exclude(pk__in=customer_ids).exclude(credit_balance=ZERO).update(credit_balance=ZERO)
    logger.info("Recalculated ledgers for %s customers", len(customer_ids))
    return len(customer_ids)


def sync_invoices_to_ledger(user=None) -> int:
    """Post the missing ledger debit for every orphaned invoice."""
    refs = _invoice_ledger_refs()
    created = 0
    for invoice in Invoice.objects.select_related("customer").order_by("created_at", "id").iterator(chunk_size=PAGE_SIZE):
        if str(invoice.pk) in refs:
            continue
        start, end = invoice.billing_period_start, invoice.billing_period_end
        insert_ledger_with_balance(
            invoice.customer,
            timezone.localtime(invoice.created_at).date(),
            CustomerLedger.TxType.INVOICE,
            f"Invoice {invoice.invoice_number} ({start:%d %b} - {end:%d %b %Y})",
            debit=invoice.final_amount,
            reference_id=invoice.pk,
            user=user,
        )
        created += 1
    if created:
        logger.info("Posted %s missing invoice ledger entries", created)
    return created


@transaction.atomic
def remove_orphaned_ledger_entries() -> int:
    invoice_ids = _invoice_ids()
    orphan_pks, customer_ids = [], set()
    for pk, cid, ref in _orphaned_ledger_qs().values_list("pk", "customer_id", "reference_id"):
        if ref not in invoice_ids:
            orphan_pks.append(pk)
            customer_ids.add(cid)
    if not orphan_pks:
        return 0
    CustomerLedger.objects.filter(pk__in=orphan_pks).delete()
    for cid in customer_ids:
        recalculate_ledger_balances(cid)
    logger.info("Removed %s orphaned ledger entries for %s customers", len(orphan_pks), len(customer_ids))
    return len(orphan_pks)


# ---------------------------------------------------------
# Account orphans
# ---------------------------------------------------------
def _orphan_sessions():
    User = get_user_model()
    user_ids = set(User.objects.values_list("pk", flat=True))
    linked = set(StaffProfile.objects.exclude(user__isnull=True).values_list("user_id", flat=True))
    linked |= set(CustomerAccount.objects.exclude(user__isnull=True).values_list("user_id", flat=True))
    superusers = set(User.objects.filter(is_superuser=True).values_list("pk", flat=True))

    orphans = []
    for session in Session.objects.filter(expire_date__gt=timezone.now()).iterator(chunk_size=PAGE_SIZE):
        raw = session.get_decoded().get("_auth_user_id")
        if raw is None:
            continue
        uid = int(raw)
        if uid not in user_ids or (uid not in linked and uid not in superusers):
            orphans.append(session)
    return orphans


def find_account_orphans() -> dict:
    profiles = StaffProfile.objects.filter(user__isnull=True)
    accounts = CustomerAccount.objects.filter(customer__isnull=True)
    sessions = _orphan_sessions()
    return {
        "orphaned_profiles": [{"id": p.pk, "full_name": p.full_name, "phone": p.phone} for p in profiles],
        "orphaned_customer_accounts": [{"id": a.pk, "phone": a.phone} for a in accounts],
        "orphaned_sessions": [{"session_key": s.session_key[:8] + "…"} for s in sessions],
        "total": profiles.count() + accounts.count() + len(sessions),
    }


@transaction.atomic
def cleanup_account_orphans(actor) -> dict:
    """Delete orphaned profiles, customer accounts and sessions. Never touches the actor."""
    actor_profile_id = getattr(getattr(actor, "staff_profile", None), "pk", None)

    profiles = StaffProfile.objects.filter(user__isnull=True)
    if actor_profile_id:
        profiles = profiles.exclude(pk=actor_profile_id)
    n_profiles = profiles.count()
    profiles.delete()

    accounts = CustomerAccount.objects.filter(customer__isnull=True)
    n_accounts = accounts.count()
    # a customer account without a customer has nothing to log into
    User = get_user_model()
    user_ids = [uid for uid in accounts.values_list("user_id", flat=True) if uid and uid != actor.pk]
    accounts.delete()
    User.objects.filter(pk__in=user_ids, is_superuser=False, staff_profile__isnull=True).delete()

    sessions = [s for s in _orphan_sessions() if s.get_decoded().get("_auth_user_id") != str(actor.pk)]
    Session.objects.filter(session_key__in=[s.session_key for s in sessions]).delete()

    result = {
        "profiles_deleted": n_profiles,
        "customer_accounts_deleted": n_accounts,
        "sessions_deleted": len(sessions),
    }
    ActivityLog.objects.create(
        user=actor, action="cleanup_orphans", entity_type="accounts", details=result,
    )
    logger.info("Account orphan cleanup by %s: %s", actor, result)
    return result
