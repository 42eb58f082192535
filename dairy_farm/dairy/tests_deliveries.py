from datetime import date
from decimal import Decimal

from django.test import TestCase

from .models import Customer, CustomerProduct, CustomerVacation, Delivery, DeliveryItem, Product
from .services import delivery_service

SATURDAY = date(2026, 10, 17)
SUNDAY = date(2026, 10, 18)
MONDAY = date(2026, 10, 19)


class ScheduleTest(TestCase):
    def customer(self, subscription_type=Customer.Subscription.DAILY, notes=""):
        return Customer(name="Test", subscription_type=subscription_type, notes=notes)

    def test_parse_schedule_from_notes(self):
        notes = 'Gate code 42. Schedule: {"frequency": "custom", "days": [1, 3, 5]}'
        self.assertEqual(delivery_service.parse_schedule(notes), {"frequency": "custom", "days": [1, 3, 5]})
        self.assertEqual(delivery_service.parse_schedule("Schedule: {not json}"), {})
        self.assertEqual(delivery_service.parse_schedule(""), {})

    def test_daily_and_alternate(self):
        self.assertTrue(delivery_service.should_deliver_on(self.customer(), MONDAY))
        alternate = self.customer(Customer.Subscription.ALTERNATE)
        self.assertTrue(delivery_service.should_deliver_on(alternate, SATURDAY))
        self.assertFalse(delivery_service.should_deliver_on(alternate, SUNDAY))

    def test_weekly_defaults_to_sunday(self):
        weekly = self.customer(Customer.Subscription.WEEKLY)
        self.assertTrue(delivery_service.should_deliver_on(weekly, SUNDAY))
        self.assertFalse(delivery_service.should_deliver_on(weekly, MONDAY))

        wednesday = self.customer(notes='Schedule: {"frequency": "weekly", "day": 3}')
        self.assertTrue(delivery_service.should_deliver_on(wednesday, date(2026, 10, 21)))

    def test_custom_days(self):
        custom = self.customer(notes='Schedule: {"frequency": "custom", "days": [1, 3, 5]}')
        self.assertTrue(delivery_service.should_deliver_on(custom, MONDAY))
        self.assertFalse(delivery_service.should_deliver_on(custom, SUNDAY))


class AutoDeliverTest(TestCase):
    def setUp(self):
        self.milk = Product.objects.create(name="Toned Milk", base_price=Decimal("56"), unit="L")
        self.curd = Product.objects.create(name="Curd", base_price=Decimal("80"), unit="kg")

        self.daily = Customer.objects.create(name="Daily Dairy Home")
        CustomerProduct.objects.create(customer=self.daily, product=self.milk, quantity=Decimal("1.5"))
        CustomerProduct.objects.create(
            customer=self.daily, product=self.curd, quantity=Decimal("0.5"), custom_price=Decimal("70"),
        )

        self.away = Customer.objects.create(name="On Holiday")
        CustomerProduct.objects.create(customer=self.away, product=self.milk, quantity=Decimal("1"))
        CustomerVacation.objects.create(customer=self.away, start_date=date(2026, 10, 15), end_date=date(2026, 10, 25))

    def test_creates_delivered_rows_with_items(self):
        result = delivery_service.auto_deliver_daily(MONDAY)

        self.assertEqual(result["date"], "2026-10-19")
        self.assertEqual(result["scheduled"], 1)
        self.assertEqual(result["delivered"], 1)
        self.assertEqual(result["skipped"], 1)
        self.assertEqual(result["errors"], [])

        delivery = Delivery.objects.get(customer=self.daily, delivery_date=MONDAY)
        self.assertEqual(delivery.status, Delivery.Status.DELIVERED)
        self.assertEqual(delivery.notes, delivery_service.AUTO_NOTE)
        totals = sorted(DeliveryItem.objects.filter(delivery=delivery).values_list("total_amount", flat=True))
        self.assertEqual(totals, [Decimal("35.00"), Decimal("84.00")])
        self.assertFalse(Delivery.objects.filter(customer=self.away).exists())

    def test_second_run_does_not_duplicate(self):
        delivery_service.auto_deliver_daily(MONDAY)
        result = delivery_service.auto_deliver_daily(MONDAY)

        self.assertEqual(result["scheduled"], 0)
        self.assertEqual(result["delivered"], 0)
        self.assertEqual(Delivery.objects.filter(delivery_date=MONDAY).count(), 1)
        self.assertEqual(DeliveryItem.objects.count(), 2)

    def test_pending_delivery_is_completed(self):
        Delivery.objects.create(customer=self.daily, delivery_date=MONDAY, status=Delivery.Status.PENDING)

        result = delivery_service.auto_deliver_daily(MONDAY)

        self.assertEqual(result["scheduled"], 0)
        self.assertEqual(result["delivered"], 1)
        delivery = Delivery.objects.get(customer=self.daily, delivery_date=MONDAY)
        self.assertEqual(delivery.status, Delivery.Status.DELIVERED)
        self.assertEqual(delivery.items.count(), 2)

    def test_inactive_customers_and_off_days_skipped(self):
        Customer.objects.filter(pk=self.daily.pk).update(is_active=False)
        weekly = Customer.objects.create(name="Weekly", subscription_type=Customer.Subscription.WEEKLY)
        CustomerProduct.objects.create(customer=weekly, product=self.milk, quantity=Decimal("3"))

        result = delivery_service.auto_deliver_daily(MONDAY)

        self.assertEqual(result["delivered"], 0)
        self.assertEqual(result["skipped"], 3)

    def test_summary_counts_statuses(self):
        delivery_service.auto_deliver_daily(MONDAY)
        Delivery.objects.create(customer=self.away, delivery_date=MONDAY, status=Delivery.Status.MISSED)

        counts = delivery_service.delivery_summary(MONDAY)
        self.assertEqual(counts["delivered"], 1)
        self.assertEqual(counts["missed"], 1)
        self.assertEqual(counts["pending"], 0)
        self.assertEqual(counts["total"], 2)
