from decimal import Decimal

from django.db.models import F
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from .models import (
    CattleHealth, CustomerLedger, DairySettings, Equipment, FeedConsumption,
    FeedInventory, MaintenanceRecord, MilkProcurement, VendorPayment,
)
from .services import expense_service, notification_service
from .services.ledger_service import sync_customer_balance
from .services.procurement_service import sync_vendor_balance


def capture_orig(instance, fields):
    if instance.pk:
        try:
            orig = instance.__class__.objects.only(*fields).get(pk=instance.pk)
            for f in fields:
                setattr(instance, f'_orig_{f}', getattr(orig, f))
        except instance.__class__.DoesNotExist:
            for f in fields:
                setattr(instance, f'_orig_{f}', None)
    else:
        for f in fields:
            setattr(instance, f'_orig_{f}', None)


@receiver(post_save, sender=DairySettings)
def ensure_singleton(sender, instance, **kwargs):
    if instance.pk != 1:
        instance.delete()
        raise ValueError("DairySettings is a singleton and must have pk=1")


# ---------------------------------------------------------
# 1. Customer ledger -> Customer.credit_balance
# ---------------------------------------------------------
@receiver(pre_save, sender=CustomerLedger)
def ledger_pre_save(sender, instance, **kwargs):
    capture_orig(instance, ['customer_id'])


@receiver(post_save, sender=CustomerLedger)
def ledger_post_save(sender, instance, **kwargs):
    old_customer_id = getattr(instance, '_orig_customer_id', None)
    if old_customer_id and old_customer_id != instance.customer_id:
        sync_customer_balance(old_customer_id)
    sync_customer_balance(instance.customer_id)


@receiver(post_delete, sender=CustomerLedger)
def ledger_post_delete(sender, instance, **kwargs):
    sync_customer_balance(instance.customer_id)


# ---------------------------------------------------------
# 2. Procurement / vendor payments -> MilkVendor.current_balance
# ---------------------------------------------------------
@receiver(pre_save, sender=MilkProcurement)
def procurement_pre_save(sender, instance, **kwargs):
    capture_orig(instance, ['vendor_id'])


@receiver(pre_save, sender=VendorPayment)
def vendor_payment_pre_save(sender, instance, **kwargs):
    capture_orig(instance, ['vendor_id'])


@receiver(post_save, sender=MilkProcurement)
@receiver(post_save, sender=VendorPayment)
def vendor_doc_post_save(sender, instance, **kwargs):
    old_vendor_id = getattr(instance, '_orig_vendor_id', None)
    if old_vendor_id and old_vendor_id != instance.vendor_id:
        sync_vendor_balance(old_vendor_id)
    if instance.vendor_id:
        sync_vendor_balance(instance.vendor_id)


@receiver(post_delete, sender=MilkProcurement)
@receiver(post_delete, sender=VendorPayment)
def vendor_doc_post_delete(sender, instance, **kwargs):
    if instance.vendor_id:
        sync_vendor_balance(instance.vendor_id)


# ---------------------------------------------------------
# 3. Feed consumption -> FeedInventory.current_stock
# ---------------------------------------------------------
@receiver(pre_save, sender=FeedConsumption)
def consumption_pre_save(sender, instance, **kwargs):
    capture_orig(instance, ['feed_id', 'quantity'])


@receiver(post_save, sender=FeedConsumption)
def consumption_post_save(sender, instance, created, **kwargs):
    old_feed_id = getattr(instance, '_orig_feed_id', None)
    old_qty = getattr(instance, '_orig_quantity', None) or Decimal("0")
    new_qty = instance.quantity or Decimal("0")

    if old_feed_id and old_feed_id != instance.feed_id:
        FeedInventory.objects.filter(pk=old_feed_id).update(current_stock=F('current_stock') + old_qty)
        old_qty = Decimal("0")

    diff = new_qty - old_qty
    if diff != 0:
        FeedInventory.objects.filter(pk=instance.feed_id).update(current_stock=F('current_stock') - diff)


@receiver(post_delete, sender=FeedConsumption)
def consumption_post_delete(sender, instance, **kwargs):
    FeedInventory.objects.filter(pk=instance.feed_id).update(
        current_stock=F('current_stock') + (instance.quantity or 0)
    )


# ---------------------------------------------------------
# 4. Automatic expenses and alerts
# ---------------------------------------------------------
@receiver(post_save, sender=CattleHealth)
def health_post_save(sender, instance, created, **kwargs):
    if instance.cost and instance.cost > 0:
        expense_service.log_health_expense(instance, user=instance.updated_by or instance.created_by)
    if created and instance.record_type == CattleHealth.RecordType.ILLNESS:
        notification_service.notify_event(notification_service.EVENT_HEALTH_ALERT, {
            "tag_number": instance.cattle.tag_number,
            "name": instance.cattle.name,
            "title": instance.title,
            "description": instance.description,
        })


@receiver(post_save, sender=MaintenanceRecord)
def maintenance_post_save(sender, instance, **kwargs):
    if instance.cost and instance.cost > 0:
        expense_service.log_maintenance_expense(instance, user=instance.updated_by or instance.created_by)


@receiver(post_save, sender=Equipment)
def equipment_post_save(sender, instance, **kwargs):
    if instance.purchase_cost and instance.purchase_cost > 0:
        expense_service.log_equipment_purchase(instance, user=instance.updated_by or instance.created_by)
