from datetime import date
from decimal import Decimal
from unittest import mock

import requests
from django.test import TestCase, override_settings

from .models import (
    Cattle, CattleHealth, Customer, FeedInventory, MilkProduction, NotificationLog, Payment, TelegramConfig,
)
from .services import notification_service as ns

DAY = date(2026, 10, 17)


def telegram_reply(ok=True, description=""):
    response = mock.Mock(status_code=200 if ok else 400)
    response.json.return_value = {"ok": ok, "description": description}
    return response


class FormatMessageTest(TestCase):
    def test_payment_message(self):
        text = ns.format_event_message(ns.EVENT_PAYMENT_RECEIVED, {
            "amount": "1500", "customer_name": "Asha & Sons", "payment_mode": "UPI", "reference": "UTR9",
        })
        self.assertIn("💳 <b>PAYMENT RECEIVED</b>", text)
        self.assertIn("Amount: ₹1,500", text)
        self.assertIn("From: Asha &amp; Sons", text)
        self.assertIn("Ref: UTR9", text)

    def test_large_transaction_footer(self):
        text = ns.format_event_message(ns.EVENT_LARGE_TRANSACTION, {"amount": "25000.50"})
        self.assertIn("Amount: ₹25,000.50", text)
        self.assertIn("exceeds your notification threshold", text)
        self.assertIn("From: Customer", text)

    def test_low_stock_and_delivery(self):
        text = ns.format_event_message(ns.EVENT_LOW_INVENTORY, {
            "item_name": "Cattle Feed", "current_stock": "40", "min_level": "50", "unit": "kg",
        })
        self.assertIn("Current: 40 kg", text)
        self.assertIn("Minimum: 50 kg", text)

        done = ns.format_event_message(ns.EVENT_DELIVERY_COMPLETED, {"completed_count": 12, "total_count": 12})
        self.assertIn("✅ All delivered!", done)
        partial = ns.format_event_message(ns.EVENT_DELIVERY_COMPLETED, {
            "route_name": "North", "completed_count": 9, "total_count": 12, "pending_count": 3,
        })
        self.assertIn("⚠️ 3 still pending", partial)

    def test_unknown_event_lists_data(self):
        text = ns.format_event_message("custom", {"key": "value"})
        self.assertTrue(text.startswith("📢 <b>NOTIFICATION</b>"))
        self.assertIn("key: value", text)


class NotifyEventTest(TestCase):
    def setUp(self):
        self.owner = TelegramConfig.objects.create(chat_id="1001", label="Owner")
        self.manager = TelegramConfig.objects.create(
            chat_id="1002", label="Manager", notify_payments=True, large_payment_threshold=Decimal("50000"),
        )
        TelegramConfig.objects.create(chat_id="1003", label="Muted", is_active=False)

    @override_settings(TELEGRAM_BOT_TOKEN="")
    def test_no_token_is_a_no_op(self):
        result = ns.notify_event(ns.EVENT_HEALTH_ALERT, {"tag_number": "C-1"})
        self.assertEqual(result["total_count"], 0)
        self.assertFalse(NotificationLog.objects.exists())

    @override_settings(TELEGRAM_BOT_TOKEN="123:abc")
    @mock.patch("dairy.services.notification_service.requests.post")
    def test_sent_and_failed_are_logged(self, post):
        def reply(url, json=None, timeout=None):
            if json["chat_id"] == "1001":
                return telegram_reply()
            return telegram_reply(ok=False, description="Bad Request: chat not found")
        post.side_effect = reply

        result = ns.notify_event(ns.EVENT_HEALTH_ALERT, {"tag_number": "C-1", "title": "Fever"})

        self.assertEqual(result["sent_count"], 1)
        self.assertEqual(result["total_count"], 2)
        url = post.call_args_list[0][0][0]
        self.assertEqual(url, "https://api.telegram.org/bot123:abc/sendMessage")
        self.assertEqual(post.call_args_list[0][1]["json"]["parse_mode"], "HTML")

        sent = NotificationLog.objects.get(recipient_contact="1001")
        self.assertEqual(sent.status, NotificationLog.Status.SENT)
        self.assertIsNotNone(sent.sent_at)
        failed = NotificationLog.objects.get(recipient_contact="1002")
        self.assertEqual(failed.status, NotificationLog.Status.FAILED)
        self.assertEqual(failed.error_message, "Bad Request: chat not found")

    @override_settings(TELEGRAM_BOT_TOKEN="123:abc")
    @mock.patch("dairy.services.notification_service.requests.post")
    def test_network_error_does_not_raise(self, post):
        post.side_effect = requests.ConnectionError("boom")
        result = ns.notify_event(ns.EVENT_HEALTH_ALERT, {"tag_number": "C-1"})
        self.assertEqual(result["sent_count"], 0)
        self.assertEqual(NotificationLog.objects.filter(status=NotificationLog.Status.FAILED).count(), 2)

    @override_settings(TELEGRAM_BOT_TOKEN="123:abc")
    @mock.patch("dairy.services.notification_service.requests.post")
    def test_large_transaction_respects_threshold(self, post):
        post.return_value = telegram_reply()

        result = ns.notify_event(ns.EVENT_LARGE_TRANSACTION, {"amount": "20000"})

        self.assertEqual([r["chat_id"] for r in result["results"]], ["1001"])

    @override_settings(TELEGRAM_BOT_TOKEN="123:abc")
    @mock.patch("dairy.services.notification_service.requests.post")
    def test_opt_in_flag(self, post):
        post.return_value = telegram_reply()
        self.manager.notify_procurement = True
        self.manager.save()

        result = ns.notify_event(ns.EVENT_PROCUREMENT_RECORDED, {"vendor_name": "Gopal"})

        self.assertEqual([r["chat_id"] for r in result["results"]], ["1002"])


class DailySummaryTest(TestCase):
    def setUp(self):
        cow = Cattle.objects.create(tag_number="C-301", breed="Gir")
        MilkProduction.objects.create(cattle=cow, production_date=DAY, session="morning", quantity_liters=Decimal("13.5"))
        MilkProduction.objects.create(cattle=cow, production_date=DAY, session="evening", quantity_liters=Decimal("5"))
        customer = Customer.objects.create(name="Asha")
        Payment.objects.create(customer=customer, amount=Decimal("2500"), payment_date=DAY)
        CattleHealth.objects.create(cattle=cow, record_type=CattleHealth.RecordType.ILLNESS, title="Fever", record_date=DAY)
        FeedInventory.objects.create(name="Bran", category="feed", current_stock=Decimal("5"), min_stock_level=Decimal("20"))

    def test_summary_text(self):
        text = ns.build_daily_summary(DAY)

        self.assertIn("📊 <b>MY DAIRY - Daily Summary</b>", text)
        self.assertIn("📅 Saturday, 17 Oct 2026", text)
        self.assertIn("🥛 <b>Production:</b> 18.5L", text)
        self.assertIn("Morning: 13.5L | Evening: 5.0L", text)
        self.assertIn("from 0 vendors", text)
        self.assertIn("💰 <b>Revenue Today:</b> ₹2,500", text)
        self.assertIn("⚠️ <b>Alerts:</b> 2", text)
        self.assertIn("🏥 Fever", text)
        self.assertIn("📉 Low: Bran (5 kg)", text)

    @override_settings(TELEGRAM_BOT_TOKEN="")
    def test_without_token_reports_error(self):
        result = ns.send_daily_summary(DAY)
        self.assertEqual(result["error"], "Telegram bot not configured")
        self.assertEqual(result["date"], "2026-10-17")

    @override_settings(TELEGRAM_BOT_TOKEN="123:abc")
    @mock.patch("dairy.services.notification_service.requests.post")
    def test_sent_to_subscribed_chats(self, post):
        post.return_value = telegram_reply()
        TelegramConfig.objects.create(chat_id="2001")
        TelegramConfig.objects.create(chat_id="2002", notify_daily_summary=False)

        result = ns.send_daily_summary(DAY)

        self.assertEqual(result["sent_count"], 1)
        self.assertEqual(NotificationLog.objects.get().recipient_type, "daily_summary")
