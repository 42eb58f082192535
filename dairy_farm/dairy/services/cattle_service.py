"""
Lactation status automation for milking animals.

Rules, first one that changes the status wins:
  1. pregnancy confirmed and calving due within 60 days, lactating -> dry
  2. calved within the last 7 days, not lactating -> lactating
  3. pregnancy confirmed, calving not yet due, status empty/dry -> pregnant
  4. lactating with no production for 30 days -> dry
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Max, Sum
from django.utils import timezone

from dairy.models import BreedingRecord, Cattle, MilkProduction

logger = logging.getLogger(__name__)

DRY_OFF_DAYS = 60
CALVING_WINDOW_DAYS = 7
NO_PRODUCTION_DAYS = 30


@dataclass
class StatusUpdate:
    cattle_id: int
    tag_number: str
    old_value: str
    new_value: str
    reason: str

    def as_dict(self):
        return asdict(self)


def _latest_breeding(cattle_ids):
    """{cattle_id: (latest confirmed pregnancy check, latest calving)}"""
    pregnancy, calving = {}, {}
    records = (
        BreedingRecord.objects
        .filter(cattle_id__in=cattle_ids)
        .filter(record_type__in=[BreedingRecord.RecordType.PREGNANCY, BreedingRecord.RecordType.CALVING])
        .order_by("-record_date", "-id")
    )
    for r in records:
        if r.record_type == BreedingRecord.RecordType.PREGNANCY and r.pregnancy_confirmed:
            pregnancy.setdefault(r.cattle_id, r)
        elif r.record_type == BreedingRecord.RecordType.CALVING and r.actual_calving_date:
            prev = calving.get(r.cattle_id)
            if prev is None or r.actual_calving_date > prev.actual_calving_date:
                calving[r.cattle_id] = r
    return pregnancy, calving


def _evaluate(cow: Cattle, pregnancy, calving, last_production, today: date):
    """Return (new_status, reason, extra_fields) or None."""
    status = cow.lactation_status or ""

    if pregnancy and pregnancy.expected_calving_date:
        days_to_calving = (pregnancy.expected_calving_date - today).days
        if 0 < days_to_calving <= DRY_OFF_DAYS and status == Cattle.Lactation.LACTATING:
            return Cattle.Lactation.DRY, "60 days before expected calving - dry-off required", {}

    if calving:
        since = (today - calving.actual_calving_date).days
        if 0 <= since <= CALVING_WINDOW_DAYS and status != Cattle.Lactation.LACTATING:
            extra = {}
            if cow.last_calving_date != calving.actual_calving_date:
                extra = {
                    "last_calving_date": calving.actual_calving_date,
                    "lactation_number": cow.lactation_number + 1,
                }
            return Cattle.Lactation.LACTATING, "Recent calving - now lactating", extra

    if pregnancy and status in ("", Cattle.Lactation.DRY):
        due = pregnancy.expected_calving_date
        if due is None or due >= today:
            return Cattle.Lactation.PREGNANT, "Pregnancy confirmed", {"expected_calving_date": due}

    if status == Cattle.Lactation.LACTATING:
        if last_production is None or (today - last_production).days > NO_PRODUCTION_DAYS:
            return Cattle.Lactation.DRY, "No milk production recorded for 30+ days", {}

    return None


def run_lactation_automation(today: date | None = None, dry_run: bool = False) -> list[StatusUpdate]:
    today = today or timezone.localdate()
    herd = list(
        Cattle.objects.filter(
            status=Cattle.Status.ACTIVE,
            cattle_type__in=[Cattle.CattleType.COW, Cattle.CattleType.BUFFALO],
        )
    )
    ids = [c.pk for c in herd]
    pregnancy, calving = _latest_breeding(ids)
    last_production = dict(
        MilkProduction.objects
        .filter(cattle_id__in=ids, production_date__gte=today - timedelta(days=NO_PRODUCTION_DAYS))
        .values("cattle_id")
        .annotate(last=Max("production_date"))
        .values_list("cattle_id", "last")
    )

    updates: list[StatusUpdate] = []
    with transaction.atomic():
        for cow in herd:
            outcome = _evaluate(cow, pregnancy.get(cow.pk), calving.get(cow.pk), last_production.get(cow.pk), today)
            if outcome is None:
                continue
            new_status, reason, extra = outcome
            if new_status == cow.lactation_status:
                continue
            updates.append(StatusUpdate(cow.pk, cow.tag_number, cow.lactation_status or "", new_status, reason))
            if dry_run:
                continue
            cow.lactation_status = new_status
            for k, v in extra.items():
                setattr(cow, k, v)
            cow.save(update_fields=["lactation_status", "updated_at", *extra.keys()])

    logger.info("Lactation automation %s: %s update(s)%s", today, len(updates), " (dry run)" if dry_run else "")
    return updates


def production_totals(day: date) -> dict:
    qs = MilkProduction.objects.filter(production_date=day)
    morning = qs.filter(session=MilkProduction.Session.MORNING).aggregate(t=Sum("quantity_liters"))["t"] or Decimal("0")
    evening = qs.filter(session=MilkProduction.Session.EVENING).aggregate(t=Sum("quantity_liters"))["t"] or Decimal("0")
    return {
        "date": day.isoformat(),
        "morning": morning,
        "evening": evening,
        "total": morning + evening,
        "cattle_count": qs.values("cattle_id").distinct().count(),
    }
