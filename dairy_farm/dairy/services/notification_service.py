"""
Telegram notifications for farm events and the daily summary.

Sending is best-effort: transport failures are logged and written to
NotificationLog, never raised into the business operation that triggered them.
"""
import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db.models import Sum
from django.utils import timezone
from django.utils.html import escape

from dairy.models import (
    CattleHealth, DairySettings, Delivery, FeedInventory, Invoice, MilkProcurement,
    MilkProduction, NotificationLog, Payment, TelegramConfig,
)

logger = logging.getLogger(__name__)

EVENT_HEALTH_ALERT = "health_alert"
EVENT_LOW_INVENTORY = "low_inventory"
EVENT_PAYMENT_RECEIVED = "payment_received"
EVENT_LARGE_TRANSACTION = "large_transaction"
EVENT_PRODUCTION_RECORDED = "production_recorded"
EVENT_PROCUREMENT_RECORDED = "procurement_recorded"
EVENT_DELIVERY_COMPLETED = "delivery_completed"

# event type -> TelegramConfig flag that opts a chat in
NOTIFY_FLAGS = {
    EVENT_HEALTH_ALERT: "notify_health_alerts",
    EVENT_LOW_INVENTORY: "notify_inventory_alerts",
    EVENT_PAYMENT_RECEIVED: "notify_payments",
    EVENT_LARGE_TRANSACTION: "notify_payments",
    EVENT_PRODUCTION_RECORDED: "notify_production",
    EVENT_PROCUREMENT_RECORDED: "notify_procurement",
    EVENT_DELIVERY_COMPLETED: "notify_deliveries",
}

DEFAULT_LARGE_PAYMENT_THRESHOLD = Decimal("10000")


def _money(v) -> str:
    q = Decimal(str(v or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    s = f"{q:,.2f}"
    if s.endswith(".00"):
        s = s[:-3]
    return s


def _qty(v) -> str:
    s = f"{Decimal(str(v or 0)).quantize(Decimal('0.001')):f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


def _e(v, default=""):
    return escape(str(v)) if v not in (None, "") else default


def format_event_message(event_type: str, data: dict) -> str:
    if event_type == EVENT_HEALTH_ALERT:
        lines = [
            "🏥 <b>HEALTH ALERT</b>",
            f"Cattle {_e(data.get('tag_number'), 'Unknown')} ({_e(data.get('name'), 'No name')})",
            f"<b>Issue:</b> {_e(data.get('title'), 'Health concern')}",
        ]
        if data.get("description"):
            lines.append(f"<i>{_e(data['description'])}</i>")
        lines.append("<b>Action Required:</b> Immediate attention needed")
        return "\n".join(lines)

    if event_type == EVENT_LOW_INVENTORY:
        unit = _e(data.get("unit"))
        return "\n".join([
            "📉 <b>LOW STOCK ALERT</b>",
            f"<b>{_e(data.get('item_name'))}</b>",
            f"Current: {_e(data.get('current_stock'))} {unit}",
            f"Minimum: {_e(data.get('min_level'))} {unit}",
            "<i>Please restock soon!</i>",
        ])

    if event_type in (EVENT_PAYMENT_RECEIVED, EVENT_LARGE_TRANSACTION):
        title = "💳 <b>PAYMENT RECEIVED</b>" if event_type == EVENT_PAYMENT_RECEIVED else "🔔 <b>LARGE PAYMENT ALERT</b>"
        lines = [
            title,
            f"Amount: ₹{_money(data.get('amount'))}",
            f"From: {_e(data.get('customer_name'), 'Customer')}",
            f"Mode: {_e(data.get('payment_mode'), 'Cash')}",
        ]
        if data.get("reference"):
            lines.append(f"Ref: {_e(data['reference'])}")
        if event_type == EVENT_LARGE_TRANSACTION:
            lines.append("<i>This payment exceeds your notification threshold</i>")
        return "\n".join(lines)

    if event_type == EVENT_PRODUCTION_RECORDED:
        lines = [
            "🥛 <b>PRODUCTION RECORDED</b>",
            f"Session: {_e(data.get('session'), 'Unknown')}",
            f"Quantity: {_e(data.get('quantity'))}L",
        ]
        if data.get("cattle_count"):
            lines.append(f"From {data['cattle_count']} cattle")
        return "\n".join(lines)

    if event_type == EVENT_PROCUREMENT_RECORDED:
        return "\n".join([
            "📦 <b>PROCUREMENT RECORDED</b>",
            f"Vendor: {_e(data.get('vendor_name'), 'Unknown')}",
            f"Quantity: {_e(data.get('quantity'))}L @ ₹{_money(data.get('rate'))}/L",
            f"Total: ₹{_money(data.get('total_amount'))}",
        ])

    if event_type == EVENT_DELIVERY_COMPLETED:
        pending = int(data.get("pending_count") or 0)
        return "\n".join([
            "🚚 <b>DELIVERY UPDATE</b>",
            f"Route: {_e(data.get('route_name'), 'Default')}",
            f"Completed: {data.get('completed_count', 0)}/{data.get('total_count', 0)}",
            f"⚠️ {pending} still pending" if pending > 0 else "✅ All delivered!",
        ])

    body = "\n".join(f"{_e(k)}: {_e(v)}" for k, v in data.items())
    return f"📢 <b>NOTIFICATION</b>\n{body}"


def send_telegram_message(chat_id: str, text: str):
    """
    POST one message to the Bot API. Returns (ok, description).
    Raises ImproperlyConfigured when no bot token is set.
    """
    token = getattr(settings, "TELEGRAM_BOT_TOKEN", "")
    if not token:
        raise ImproperlyConfigured("TELEGRAM_BOT_TOKEN is not configured")
    url = f"{settings.TELEGRAM_API_BASE}/bot{token}/sendMessage"
    data = {"chat_id": chat_id, "text": text, "parse_mode": "HTML"}
    try:
        response = requests.post(url, json=data, timeout=settings.TELEGRAM_TIMEOUT)
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Telegram send to %s failed: %s", chat_id, exc)
        return False, str(exc)
    if not payload.get("ok"):
        return False, payload.get("description") or f"HTTP {response.status_code}"
    return True, ""


def _deliver(configs, recipient_type: str, message: str) -> dict:
    results = []
    for config in configs:
        ok, error = send_telegram_message(config.chat_id, message)
        NotificationLog.objects.create(
            channel="telegram",
            recipient_type=recipient_type,
            recipient_id=str(config.pk),
            recipient_contact=config.chat_id,
            body=message,
            status=NotificationLog.Status.SENT if ok else NotificationLog.Status.FAILED,
            sent_at=timezone.now() if ok else None,
            error_message=error,
        )
        results.append({"chat_id": config.chat_id, "success": ok, "error": error or None})
    sent = sum(1 for r in results if r["success"])
    logger.info("Telegram %s sent to %s/%s chats", recipient_type, sent, len(results))
    return {"sent_count": sent, "total_count": len(results), "results": results}


def notify_event(event_type: str, data: dict) -> dict:
    """Fan an event out to every active chat subscribed to it."""
    if not getattr(settings, "TELEGRAM_BOT_TOKEN", ""):
        logger.debug("Telegram not configured, skipping %s", event_type)
        return {"sent_count": 0, "total_count": 0, "results": []}

    flag = NOTIFY_FLAGS.get(event_type, "is_active")
    configs = list(TelegramConfig.objects.filter(is_active=True, **{flag: True}))

    if event_type == EVENT_LARGE_TRANSACTION:
        amount = Decimal(str(data.get("amount") or 0))
        configs = [
            c for c in configs
            if amount >= (c.large_payment_threshold or DEFAULT_LARGE_PAYMENT_THRESHOLD)
        ]

    if not configs:
        return {"sent_count": 0, "total_count": 0, "results": []}
    return _deliver(configs, event_type, format_event_message(event_type, data))


def build_daily_summary(day: date) -> str:
    production = MilkProduction.objects.filter(production_date=day)
    morning = production.filter(session="morning").aggregate(t=Sum("quantity_liters"))["t"] or Decimal("0")
    evening = production.filter(session="evening").aggregate(t=Sum("quantity_liters"))["t"] or Decimal("0")
    total_production = morning + evening

    procurement = MilkProcurement.objects.filter(procurement_date=day)
    agg = procurement.aggregate(liters=Sum("quantity_liters"), cost=Sum("total_amount"))
    procured = agg["liters"] or Decimal("0")
    procurement_cost = agg["cost"] or Decimal("0")
    vendor_count = procurement.exclude(vendor__isnull=True).values("vendor_id").distinct().count()

    deliveries = Delivery.objects.filter(delivery_date=day)
    delivered = deliveries.filter(status=Delivery.Status.DELIVERED).count()
    pending = deliveries.filter(status=Delivery.Status.PENDING).count()
    missed = deliveries.filter(status=Delivery.Status.MISSED).count()

    revenue = Payment.objects.filter(payment_date=day).aggregate(t=Sum("amount"))["t"] or Decimal("0")
    outstanding = sum(
        (inv.final_amount - inv.paid_amount for inv in
         Invoice.objects.filter(payment_status=Invoice.PaymentStatus.PENDING)),
        Decimal("0"),
    )

    health = list(CattleHealth.objects.filter(record_date=day, record_type=CattleHealth.RecordType.ILLNESS))
    low_stock = [f for f in FeedInventory.objects.all() if f.is_low]
    alert_lines = [f"🏥 {escape(h.title)}" for h in health]
    alert_lines += [f"📉 Low: {escape(f.name)} ({_qty(f.current_stock)} {escape(f.unit)})" for f in low_stock]

    dairy_name = escape(DairySettings.get_solo().dairy_name).upper()
    lines = [
        f"📊 <b>{dairy_name} - Daily Summary</b>",
        f"📅 {day.strftime('%A, %d %b %Y')}",
        "",
        f"🥛 <b>Production:</b> {total_production:.1f}L",
        f"   Morning: {morning:.1f}L | Evening: {evening:.1f}L",
        "",
        f"📦 <b>Procurement:</b> {procured:.1f}L from {vendor_count} vendor{'s' if vendor_count != 1 else ''}",
        f"   Cost: ₹{_money(procurement_cost)}",
        "",
        f"🚚 <b>Deliveries:</b> {delivered} completed",
        f"   Pending: {pending} | Missed: {missed}",
        "",
        f"💰 <b>Revenue Today:</b> ₹{_money(revenue)}",
        f"   Outstanding: ₹{_money(outstanding)}",
        "",
        f"⚠️ <b>Alerts:</b> {len(alert_lines)}",
    ]
    lines.extend(alert_lines)
    lines.append("━━━━━━━━━━━━━━━━━━━━━")
    return "\n".join(lines)


def send_daily_summary(day: date | None = None) -> dict:
    day = day or timezone.localdate()
    if not getattr(settings, "TELEGRAM_BOT_TOKEN", ""):
        logger.warning("Daily summary skipped: TELEGRAM_BOT_TOKEN is not configured")
        return {"date": day.isoformat(), "sent_count": 0, "total_count": 0, "results": [],
                "error": "Telegram bot not configured"}
    configs = list(TelegramConfig.objects.filter(is_active=True, notify_daily_summary=True))
    if not configs:
        logger.info("No Telegram chats subscribed to the daily summary")
        return {"date": day.isoformat(), "sent_count": 0, "total_count": 0, "results": []}
    result = _deliver(configs, "daily_summary", build_daily_summary(day))
    result["date"] = day.isoformat()
    return result
