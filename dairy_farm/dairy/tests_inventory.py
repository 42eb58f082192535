from datetime import date
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings

from .models import (
    Bottle, BottleTransaction, Customer, CustomerBottle, Expense, ExpenseCategory, FeedConsumption,
    FeedInventory, NotificationLog, TelegramConfig,
)
from .services import inventory_service

DAY = date(2026, 10, 16)


class FeedStockTest(TestCase):
    def setUp(self):
        self.feed = FeedInventory.objects.create(
            name="Cattle Feed", category="concentrate", current_stock=Decimal("100"), min_stock_level=Decimal("50"),
        )

    def test_purchase_adds_stock_and_expense(self):
        inventory_service.purchase_feed(self.feed, Decimal("200"), Decimal("28.50"), day=DAY)

        self.assertEqual(self.feed.current_stock, Decimal("300.000"))
        self.assertEqual(self.feed.cost_per_unit, Decimal("28.50"))
        expense = Expense.objects.get()
        self.assertEqual(expense.category, ExpenseCategory.FEED)
        self.assertEqual(expense.title, "Feed Purchase - Cattle Feed")
        self.assertEqual(expense.amount, Decimal("5700.00"))

    def test_two_purchases_are_two_expenses(self):
        inventory_service.purchase_feed(self.feed, 10, 20, day=DAY)
        inventory_service.purchase_feed(self.feed, 10, 20, day=DAY)
        self.assertEqual(Expense.objects.count(), 2)

    def test_consumption_edit_and_delete_move_stock(self):
        entry = inventory_service.record_feed_consumption(self.feed, Decimal("30"), day=DAY)
        self.feed.refresh_from_db()
        self.assertEqual(self.feed.current_stock, Decimal("70.000"))

        entry.quantity = Decimal("20")
        entry.save()
        self.feed.refresh_from_db()
        self.assertEqual(self.feed.current_stock, Decimal("80.000"))

        entry.delete()
        self.feed.refresh_from_db()
        self.assertEqual(self.feed.current_stock, Decimal("100.000"))

    def test_consumption_moved_to_other_feed(self):
        bran = FeedInventory.objects.create(name="Bran", category="feed", current_stock=Decimal("40"))
        entry = inventory_service.record_feed_consumption(self.feed, Decimal("10"), day=DAY)

        entry.feed = bran
        entry.save()

        self.feed.refresh_from_db()
        bran.refresh_from_db()
        self.assertEqual(self.feed.current_stock, Decimal("100.000"))
        self.assertEqual(bran.current_stock, Decimal("30.000"))

    def test_invalid_quantity(self):
        with self.assertRaises(ValidationError):
            inventory_service.record_feed_consumption(self.feed, 0)
        self.assertFalse(FeedConsumption.objects.exists())

    @override_settings(TELEGRAM_BOT_TOKEN="123:abc")
    @mock.patch("dairy.services.notification_service.requests.post")
    def test_low_stock_alert(self, post):
        post.return_value.json.return_value = {"ok": True}
        TelegramConfig.objects.create(chat_id="3001")

        inventory_service.record_feed_consumption(self.feed, Decimal("20"), day=DAY)
        self.assertFalse(post.called)

        inventory_service.record_feed_consumption(self.feed, Decimal("40"), day=DAY)
        self.assertEqual(post.call_count, 1)
        self.assertIn("LOW STOCK ALERT", post.call_args[1]["json"]["text"])
        self.assertEqual(NotificationLog.objects.get().recipient_type, "low_inventory")
        self.assertEqual([f.name for f in inventory_service.low_stock_items()], ["Cattle Feed"])


class BottleTest(TestCase):
    def setUp(self):
        self.bottle = Bottle.objects.create(
            bottle_type=Bottle.BottleType.GLASS, size=Bottle.Size.L_1,
            total_quantity=100, available_quantity=100, deposit_amount=Decimal("30"),
        )
        self.customer = Customer.objects.create(name="Asha")

    def test_issue_and_return(self):
        inventory_service.record_bottle_transaction(self.bottle, BottleTransaction.TxType.ISSUED, 5, customer=self.customer, day=DAY)
        inventory_service.record_bottle_transaction(self.bottle, BottleTransaction.TxType.RETURNED, 3, customer=self.customer, day=DAY)

        self.bottle.refresh_from_db()
        self.assertEqual(self.bottle.available_quantity, 98)
        holder = CustomerBottle.objects.get(customer=self.customer, bottle=self.bottle)
        self.assertEqual(holder.quantity_pending, 2)
        self.assertEqual(holder.last_returned_date, DAY)
        self.assertEqual(BottleTransaction.objects.count(), 2)

    def test_cannot_issue_more_than_available(self):
        with self.assertRaisesMessage(ValidationError, "Only 100"):
            inventory_service.record_bottle_transaction(self.bottle, BottleTransaction.TxType.ISSUED, 101, customer=self.customer)
        self.assertFalse(BottleTransaction.objects.exists())

    def test_lost_by_customer_logs_deposit_loss(self):
        inventory_service.record_bottle_transaction(self.bottle, BottleTransaction.TxType.ISSUED, 4, customer=self.customer, day=DAY)
        inventory_service.record_bottle_transaction(self.bottle, BottleTransaction.TxType.LOST, 2, customer=self.customer, day=DAY)

        self.bottle.refresh_from_db()
        self.assertEqual(self.bottle.total_quantity, 98)
        self.assertEqual(self.bottle.available_quantity, 96)
        self.assertEqual(CustomerBottle.objects.get().quantity_pending, 2)
        expense = Expense.objects.get()
        self.assertEqual(expense.amount, Decimal("60.00"))
        self.assertEqual(expense.expense_date, DAY)
        self.assertTrue(expense.title.startswith("Bottle Loss - "))

    def test_damaged_in_store(self):
        inventory_service.record_bottle_transaction(self.bottle, BottleTransaction.TxType.DAMAGED, 3, day=DAY)

        self.bottle.refresh_from_db()
        self.assertEqual(self.bottle.total_quantity, 97)
        self.assertEqual(self.bottle.available_quantity, 97)
        self.assertEqual(Expense.objects.get().expense_date, DAY)
