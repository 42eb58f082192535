"""
Feed stock and returnable bottle tracking.

Stock columns are moved with F() expressions so concurrent writers do not
overwrite each other; instances are refreshed afterwards.
"""
import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from dairy.models import BottleTransaction, CustomerBottle, FeedConsumption, FeedInventory
from dairy.services import notification_service
from dairy.services.expense_service import log_bottle_loss, log_feed_purchase

logger = logging.getLogger(__name__)


@transaction.atomic
def purchase_feed(feed, quantity, unit_cost, day=None, user=None):
    quantity = Decimal(str(quantity))
    if quantity <= 0:
        raise ValidationError("Quantity must be positive.")
    FeedInventory.objects.filter(pk=feed.pk).update(
        current_stock=F("current_stock") + quantity,
        cost_per_unit=Decimal(str(unit_cost)),
    )
    feed.refresh_from_db()
    log_feed_purchase(feed, quantity, unit_cost, purchase_date=day, user=user)
    return feed


def check_low_stock(feed) -> bool:
    if not feed.is_low:
        return False
    notification_service.notify_event(notification_service.EVENT_LOW_INVENTORY, {
        "item_name": feed.name,
        "current_stock": str(feed.current_stock),
        "min_level": str(feed.min_stock_level),
        "unit": feed.unit,
    })
    return True


def record_feed_consumption(feed, quantity, day=None, cattle=None, user=None) -> FeedConsumption:
    """Stock is decremented by the FeedConsumption post_save signal."""
    quantity = Decimal(str(quantity))
    if quantity <= 0:
        raise ValidationError("Quantity must be positive.")
    with transaction.atomic():
        entry = FeedConsumption.objects.create(
            feed=feed,
            cattle=cattle,
            consumption_date=day or timezone.localdate(),
            quantity=quantity,
            created_by=user,
        )
    feed.refresh_from_db()
    check_low_stock(feed)
    return entry


def low_stock_items():
    return [f for f in FeedInventory.objects.all() if f.is_low]


@transaction.atomic
def record_bottle_transaction(bottle, transaction_type, quantity, customer=None, day=None, notes="", user=None):
    quantity = int(quantity)
    if quantity <= 0:
        raise ValidationError("Quantity must be positive.")
    day = day or timezone.localdate()
    bottle = type(bottle).objects.select_for_update().get(pk=bottle.pk)

    holder = None
    if customer is not None:
        holder, _ = CustomerBottle.objects.select_for_update().get_or_create(customer=customer, bottle=bottle)

    if transaction_type == BottleTransaction.TxType.ISSUED:
        if quantity > bottle.available_quantity:
            raise ValidationError(f"Only {bottle.available_quantity} {bottle} bottles available.")
        bottle.available_quantity -= quantity
        if holder:
            holder.quantity_pending += quantity
            holder.last_issued_date = day
    elif transaction_type == BottleTransaction.TxType.RETURNED:
        bottle.available_quantity += quantity
        if holder:
            holder.quantity_pending = max(holder.quantity_pending - quantity, 0)
            holder.last_returned_date = day
    elif transaction_type in (BottleTransaction.TxType.DAMAGED, BottleTransaction.TxType.LOST):
        bottle.total_quantity = max(bottle.total_quantity - quantity, 0)
        if holder:
            holder.quantity_pending = max(holder.quantity_pending - quantity, 0)
        else:
            bottle.available_quantity = max(bottle.available_quantity - quantity, 0)
    else:
        raise ValidationError(f"Unknown bottle transaction type: {transaction_type}")

    bottle.save()
    if holder:
        holder.save()

    tx = BottleTransaction.objects.create(
        bottle=bottle,
        customer=customer,
        transaction_type=transaction_type,
        transaction_date=day,
        quantity=quantity,
        notes=notes,
        created_by=user,
    )
    if transaction_type in (BottleTransaction.TxType.DAMAGED, BottleTransaction.TxType.LOST):
        log_bottle_loss(
            bottle, quantity, reason=notes or f"{quantity} bottles {transaction_type}", expense_date=day, user=user,
        )
    logger.info("Bottle %s %s x%s%s", transaction_type, bottle, quantity, f" ({customer})" if customer else "")
    return tx
