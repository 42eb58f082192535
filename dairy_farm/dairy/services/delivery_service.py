"""
Daily subscription deliveries.

auto_deliver_daily is meant to be run once a day by cron through the
`auto_deliver_daily` management command.
"""
import json
import logging
import re
from collections import defaultdict
from datetime import date

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from dairy.models import Customer, CustomerProduct, CustomerVacation, Delivery, DeliveryItem
from dairy.services import notification_service

logger = logging.getLogger(__name__)

AUTO_NOTE = "[AUTO] Scheduled delivery"
ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]

_SCHEDULE_RE = re.compile(r"Schedule:\s*({[^}]+})")


def is_on_vacation(customer, day: date) -> bool:
    return CustomerVacation.objects.filter(
        customer=customer, is_active=True, start_date__lte=day, end_date__gte=day,
    ).exists()


def effective_price(subscription: CustomerProduct):
    return subscription.unit_price


def parse_schedule(notes: str) -> dict:
    """JSON object following "Schedule:" in customer notes, or {}."""
    if not notes:
        return {}
    m = _SCHEDULE_RE.search(notes)
    if not m:
        return {}
    try:
        schedule = json.loads(m.group(1))
    except ValueError:
        return {}
    return schedule if isinstance(schedule, dict) else {}


def _weekday(day: date) -> int:
    # Sunday = 0 ... Saturday = 6
    return (day.weekday() + 1) % 7


def should_deliver_on(customer, day: date) -> bool:
    schedule = parse_schedule(customer.notes)
    frequency = schedule.get("frequency") or customer.subscription_type or "daily"

    if frequency == "daily":
        return True
    if frequency == "alternate":
        return day.day % 2 == 1
    if frequency == "weekly":
        delivery_day = schedule.get("day")
        return _weekday(day) == (delivery_day if delivery_day is not None else 0)
    if frequency == "custom":
        days = schedule.get("days") or ALL_DAYS
        return _weekday(day) in days
    return True


def _create_items(delivery, subscriptions):
    for sub in subscriptions:
        DeliveryItem.objects.create(
            delivery=delivery,
            product=sub.product,
            quantity=sub.quantity,
            unit_price=sub.unit_price,
        )


def auto_deliver_daily(day: date = None, user=None) -> dict:
    day = day or timezone.localdate()
    result = {"date": day.isoformat(), "scheduled": 0, "delivered": 0, "skipped": 0, "errors": []}

    subs_by_customer = defaultdict(list)
    for sub in CustomerProduct.objects.filter(is_active=True).select_related("product"):
        subs_by_customer[sub.customer_id].append(sub)
    if not subs_by_customer:
        return result

    customers = {
        c.pk: c for c in Customer.objects.filter(pk__in=list(subs_by_customer), is_active=True)
    }
    on_vacation = set(
        CustomerVacation.objects.filter(is_active=True, start_date__lte=day, end_date__gte=day)
        .values_list("customer_id", flat=True)
    )
    existing = {d.customer_id: d for d in Delivery.objects.filter(delivery_date=day)}

    for customer_id, subs in subs_by_customer.items():
        customer = customers.get(customer_id)
        if customer is None or customer_id in on_vacation or not should_deliver_on(customer, day):
            result["skipped"] += 1
            continue

        delivery = existing.get(customer_id)
        try:
            with transaction.atomic():
                if delivery is not None:
                    if delivery.status != Delivery.Status.PENDING:
                        result["skipped"] += 1
                        continue
                    delivery.status = Delivery.Status.DELIVERED
                    delivery.delivery_time = timezone.now()
                    delivery.updated_by = user
                    delivery.save(update_fields=["status", "delivery_time", "updated_by", "updated_at"])
                    if not delivery.items.exists():
                        _create_items(delivery, subs)
                    result["delivered"] += 1
                else:
                    delivery = Delivery.objects.create(
                        customer=customer,
                        delivery_date=day,
                        status=Delivery.Status.DELIVERED,
                        delivery_time=timezone.now(),
                        notes=AUTO_NOTE,
                        created_by=user,
                    )
                    _create_items(delivery, subs)
                    result["scheduled"] += 1
                    result["delivered"] += 1
        except Exception as exc:
            logger.exception("Auto delivery failed for %s", customer.name)
            result["errors"].append(f"Error creating delivery for {customer.name}: {exc}")

    logger.info(
        "Auto deliver %s: scheduled=%s delivered=%s skipped=%s errors=%s",
        day, result["scheduled"], result["delivered"], result["skipped"], len(result["errors"]),
    )
    return result


def delivery_summary(day: date) -> dict:
    counts = {s: 0 for s in Delivery.Status.values}
    rows = Delivery.objects.filter(delivery_date=day).values("status").annotate(n=Count("id"))
    for row in rows:
        counts[row["status"]] = row["n"]
    counts["total"] = sum(counts[s] for s in Delivery.Status.values)
    return counts


def notify_route_progress(route, day: date) -> dict:
    """Send a delivery_completed update for one route."""
    qs = Delivery.objects.filter(delivery_date=day, customer__route=route)
    total = qs.count()
    completed = qs.filter(status=Delivery.Status.DELIVERED).count()
    pending = qs.filter(status=Delivery.Status.PENDING).count()
    return notification_service.notify_event(notification_service.EVENT_DELIVERY_COMPLETED, {
        "route_name": route.name,
        "completed_count": completed,
        "total_count": total,
        "pending_count": pending,
    })
