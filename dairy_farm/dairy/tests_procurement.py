from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from .models import Expense, ExpenseCategory, MilkProcurement, MilkVendor, PriceRule, Product
from .services import procurement_service

DAY = date(2026, 10, 12)


class PriceRuleTest(TestCase):
    def setUp(self):
        PriceRule.objects.create(
            name="High fat bonus", min_fat_percentage=Decimal("4.5"), price_adjustment=Decimal("2"),
        )
        PriceRule.objects.create(
            name="Low SNF penalty", max_snf_percentage=Decimal("8.0"),
            price_adjustment=Decimal("-5"), adjustment_type=PriceRule.AdjustmentType.PERCENTAGE,
        )
        self.buffalo = Product.objects.create(name="Buffalo Milk", base_price=Decimal("80"))
        PriceRule.objects.create(
            name="Buffalo premium", product=self.buffalo, price_adjustment=Decimal("3"),
        )

    def test_no_matching_rules(self):
        self.assertEqual(procurement_service.apply_price_rules(Decimal("40"), fat=Decimal("4.0"), snf=Decimal("8.5")),
                         Decimal("40.00"))

    def test_fixed_and_percentage_accumulate(self):
        rate = procurement_service.apply_price_rules(Decimal("40"), fat=Decimal("5.0"), snf=Decimal("7.8"))
        self.assertEqual(rate, Decimal("40.00"))  # +2 and -5% of 40

        rate = procurement_service.apply_price_rules(Decimal("50"), fat=Decimal("5.0"), snf=Decimal("8.6"))
        self.assertEqual(rate, Decimal("52.00"))

    def test_missing_reading_does_not_match_bounded_rule(self):
        self.assertEqual(procurement_service.apply_price_rules(Decimal("40")), Decimal("40.00"))

    def test_product_rules_only_for_that_product(self):
        rate = procurement_service.apply_price_rules(Decimal("60"), fat=Decimal("4.0"), snf=Decimal("8.5"),
                                                     product=self.buffalo)
        self.assertEqual(rate, Decimal("63.00"))

    def test_inactive_rule_ignored(self):
        PriceRule.objects.update(is_active=False)
        rate = procurement_service.apply_price_rules(Decimal("40"), fat=Decimal("5.0"), snf=Decimal("7.0"))
        self.assertEqual(rate, Decimal("40.00"))


class ProcurementTest(TestCase):
    def setUp(self):
        self.vendor = MilkVendor.objects.create(name="Shyam Lal", phone="9700000001")

    def test_record_procurement_totals_and_vendor_balance(self):
        p = procurement_service.record_procurement(
            self.vendor, DAY, "morning", Decimal("42.5"), rate_per_liter=Decimal("38"),
            fat_percentage=Decimal("4.1"), snf_percentage=Decimal("8.4"),
        )
        self.assertEqual(p.total_amount, Decimal("1615.00"))
        self.assertEqual(p.vendor_name, "Shyam Lal")

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.current_balance, Decimal("1615.00"))

    def test_rate_from_price_rules(self):
        PriceRule.objects.create(name="Fat bonus", min_fat_percentage=Decimal("4.5"), price_adjustment=Decimal("1.50"))
        p = procurement_service.record_procurement(
            self.vendor, DAY, "evening", Decimal("10"), base_rate=Decimal("36"), fat_percentage=Decimal("4.8"),
        )
        self.assertEqual(p.rate_per_liter, Decimal("37.50"))
        self.assertEqual(p.total_amount, Decimal("375.00"))

    def test_rate_required(self):
        with self.assertRaises(ValidationError):
            procurement_service.record_procurement(self.vendor, DAY, "morning", Decimal("10"))
        with self.assertRaises(ValidationError):
            procurement_service.record_procurement(self.vendor, DAY, "morning", Decimal("0"), rate_per_liter=Decimal("40"))

    def test_vendor_payment_reduces_balance_and_logs_expense(self):
        procurement_service.record_procurement(self.vendor, DAY, "morning", Decimal("100"), rate_per_liter=Decimal("40"))

        payment = procurement_service.record_vendor_payment(self.vendor, Decimal("2500"), payment_date=DAY, reference="UTR123")

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.current_balance, Decimal("1500.00"))
        expense = Expense.objects.get(title="Vendor Payment - Shyam Lal")
        self.assertEqual(expense.amount, Decimal("2500.00"))
        self.assertIn(f"[AUTO] vendor_payment:{payment.pk}", expense.notes)
        self.assertIn("(Ref: UTR123)", expense.notes)

        payment.delete()
        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.current_balance, Decimal("4000.00"))

    def test_mark_paid_logs_expense_once(self):
        p = procurement_service.record_procurement(self.vendor, DAY, "morning", Decimal("20"), rate_per_liter=Decimal("40"))

        expense = procurement_service.mark_procurement_paid(p)
        self.assertEqual(expense.category, ExpenseCategory.FEED)
        self.assertEqual(expense.amount, Decimal("800.00"))
        self.assertIn("20L @ ₹40.00/L (AM)", expense.notes)

        self.assertIsNone(procurement_service.mark_procurement_paid(p))
        self.assertEqual(Expense.objects.count(), 1)
        p.refresh_from_db()
        self.assertEqual(p.payment_status, MilkProcurement.PaymentStatus.PAID)

    def test_moving_procurement_between_vendors(self):
        other = MilkVendor.objects.create(name="Gopal")
        p = procurement_service.record_procurement(self.vendor, DAY, "morning", Decimal("10"), rate_per_liter=Decimal("40"))

        p.vendor = other
        p.vendor_name = other.name
        p.save()

        self.vendor.refresh_from_db()
        other.refresh_from_db()
        self.assertEqual(self.vendor.current_balance, Decimal("0.00"))
        self.assertEqual(other.current_balance, Decimal("400.00"))
