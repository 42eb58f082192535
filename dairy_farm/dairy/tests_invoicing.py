from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone

from .models import (
    Customer, CustomerLedger, CustomerProduct, DairySettings, Delivery, DeliveryItem,
    Invoice, Payment, Product,
)
from .services import invoice_service
from .services.invoice_service import InvoiceLine

PERIOD_START = date(2026, 9, 1)
PERIOD_END = date(2026, 9, 30)


def deliver(customer, day, product, quantity, price, status=Delivery.Status.DELIVERED):
    delivery, _ = Delivery.objects.get_or_create(customer=customer, delivery_date=day, defaults={"status": status})
    DeliveryItem.objects.create(delivery=delivery, product=product, quantity=Decimal(quantity), unit_price=Decimal(price))
    return delivery


class InvoiceTestBase(TestCase):
    def setUp(self):
        self.user = User.objects.create_superuser(username="admin", password="password", email="admin@example.com")
        settings_row = DairySettings.get_solo()
        settings_row.upi_handle = "greenfarm@upi"
        settings_row.save()

        self.milk = Product.objects.create(name="Cow Milk", base_price=Decimal("60"), unit="L")
        self.paneer = Product.objects.create(name="Paneer", base_price=Decimal("400"), unit="kg", category="dairy")

        self.customer = Customer.objects.create(name="Asha Verma", phone="9800000001")
        CustomerProduct.objects.create(customer=self.customer, product=self.milk, quantity=Decimal("2"))

        deliver(self.customer, date(2026, 9, 3), self.milk, "2", "60")
        deliver(self.customer, date(2026, 9, 4), self.milk, "2", "60")
        deliver(self.customer, date(2026, 9, 4), self.paneer, "0.5", "400")
        # outside the period and not delivered: never billed
        deliver(self.customer, date(2026, 10, 1), self.milk, "2", "60")
        deliver(self.customer, date(2026, 9, 5), self.milk, "2", "60", status=Delivery.Status.MISSED)

    def bill(self, customer=None):
        return invoice_service.create_smart_invoice(customer or self.customer, PERIOD_START, PERIOD_END, user=self.user)


class InvoiceLineTest(InvoiceTestBase):
    def test_lines_group_delivered_items_with_addons_last(self):
        lines = invoice_service.build_invoice_lines(self.customer, PERIOD_START, PERIOD_END)

        self.assertEqual([l.product_name for l in lines], ["Cow Milk", "Paneer"])
        milk, paneer = lines
        self.assertEqual(milk.quantity, Decimal("4"))
        self.assertEqual(milk.rate, Decimal("60.00"))
        self.assertEqual(milk.amount, Decimal("240.00"))
        self.assertFalse(milk.is_addon)
        self.assertTrue(paneer.is_addon)
        self.assertEqual(paneer.amount, Decimal("200.00"))

    def test_notes_format_and_parse_back(self):
        lines = invoice_service.build_invoice_lines(self.customer, PERIOD_START, PERIOD_END)
        notes = invoice_service.format_invoice_notes(lines)

        self.assertEqual(notes, "Cow Milk: 4 L @ ₹60/L | [ADD-ON] Paneer: 0.5 kg @ ₹400/kg")
        parsed = invoice_service.parse_invoice_notes(notes)
        self.assertEqual([(p.product_name, p.quantity, p.rate, p.is_addon) for p in parsed], [
            ("Cow Milk", Decimal("4"), Decimal("60"), False),
            ("Paneer", Decimal("0.5"), Decimal("400"), True),
        ])

    def test_mixed_prices_bill_the_delivered_amount(self):
        village = Customer.objects.create(name="Chandni Dhaba")
        deliver(village, date(2026, 9, 6), self.milk, "1", "60")
        deliver(village, date(2026, 9, 7), self.milk, "1", "60")
        deliver(village, date(2026, 9, 8), self.milk, "1", "56")

        line = invoice_service.build_invoice_lines(village, PERIOD_START, PERIOD_END)[0]
        self.assertEqual(line.rate, Decimal("58.67"))
        self.assertEqual(line.amount, Decimal("176.00"))

        result = invoice_service.generate_bulk_invoices(PERIOD_START, PERIOD_END, customer_ids=[village.pk])
        delivered = invoice_service.delivery_totals(PERIOD_START, PERIOD_END, [village.pk])[village.pk]
        self.assertEqual(result["invoices"][0].final_amount, delivered)
        self.assertEqual(delivered, Decimal("176.00"))
        entry = CustomerLedger.objects.get(customer=village, transaction_type=CustomerLedger.TxType.INVOICE)
        self.assertEqual(entry.debit_amount, Decimal("176.00"))

    def test_parsed_notes_restore_product_tax(self):
        ghee = Product.objects.create(name="Ghee", base_price=Decimal("650"), unit="kg", tax_percentage=Decimal("12"))

        parsed = invoice_service.parse_invoice_notes("Ghee: 1 kg @ ₹650/kg | [ADD-ON] Bottle deposit: 1 unit @ ₹30/unit")

        self.assertEqual(parsed[0].product_id, ghee.pk)
        self.assertEqual(parsed[0].tax_amount, Decimal("78.00"))
        self.assertIsNone(parsed[1].product_id)
        self.assertEqual(parsed[1].tax_amount, Decimal("0.00"))

    def test_totals_apply_tax_and_discount(self):
        lines = [
            InvoiceLine(1, "Ghee", Decimal("1"), "kg", Decimal("650"), tax_percentage=Decimal("12")),
            InvoiceLine(2, "Cow Milk", Decimal("10"), "L", Decimal("60")),
        ]
        totals = invoice_service.compute_totals(lines, Decimal("50"))
        self.assertEqual(totals["subtotal"], Decimal("1250.00"))
        self.assertEqual(totals["tax"], Decimal("78.00"))
        self.assertEqual(totals["grand_total"], Decimal("1278.00"))


class InvoiceGenerationTest(InvoiceTestBase):
    def test_bulk_generation_posts_ledger_debit(self):
        result = invoice_service.generate_bulk_invoices(PERIOD_START, PERIOD_END, user=self.user)

        self.assertEqual(result["created"], 1)
        self.assertEqual(result["failed"], 0)
        invoice = result["invoices"][0]
        self.assertEqual(invoice.final_amount, Decimal("440.00"))
        self.assertEqual(invoice.upi_handle, "greenfarm@upi")
        self.assertEqual(invoice.due_date, timezone.localdate() + timedelta(days=15))
        self.assertEqual(invoice.invoice_number, f"INV-{timezone.localdate():%Y%m}-0001")

        entry = CustomerLedger.objects.get(transaction_type=CustomerLedger.TxType.INVOICE)
        self.assertEqual(entry.reference_id, str(invoice.pk))
        self.assertEqual(entry.debit_amount, Decimal("440.00"))
        self.assertEqual(entry.description, f"Invoice {invoice.invoice_number} (01 Sep - 30 Sep 2026)")
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("440.00"))

    def test_bulk_generation_skips_invoiced_period(self):
        invoice_service.generate_bulk_invoices(PERIOD_START, PERIOD_END)
        result = invoice_service.generate_bulk_invoices(PERIOD_START, PERIOD_END)

        self.assertEqual(result["created"], 0)
        self.assertEqual(result["skipped"], 1)
        self.assertEqual(result["skipped_detail"][0]["reason"], "already invoiced")
        self.assertEqual(Invoice.objects.count(), 1)

    def test_bulk_generation_numbers_each_invoice(self):
        other = Customer.objects.create(name="Bharat Sweets")
        deliver(other, date(2026, 9, 10), self.milk, "5", "58")

        result = invoice_service.generate_bulk_invoices(PERIOD_START, PERIOD_END)

        numbers = sorted(i.invoice_number for i in result["invoices"])
        prefix = f"INV-{timezone.localdate():%Y%m}-"
        self.assertEqual(numbers, [f"{prefix}0001", f"{prefix}0002"])
        self.assertEqual(result["total_amount"], Decimal("730.00"))

    def test_number_offset_skips_ahead(self):
        prefix = f"INV-{date(2026, 9, 1):%Y%m}-"
        self.assertEqual(invoice_service.generate_invoice_number(date(2026, 9, 1)), f"{prefix}0001")
        self.assertEqual(invoice_service.generate_invoice_number(date(2026, 9, 1), offset=2), f"{prefix}0003")

    def test_bulk_generation_limited_to_selected_customers(self):
        other = Customer.objects.create(name="Bharat Sweets")
        deliver(other, date(2026, 9, 10), self.milk, "5", "58")

        result = invoice_service.generate_bulk_invoices(PERIOD_START, PERIOD_END, customer_ids=[other.pk])

        self.assertEqual(result["created"], 1)
        self.assertEqual(result["invoices"][0].customer, other)

    def test_monthly_invoices_due_after_month_end(self):
        result = invoice_service.generate_monthly_invoices(2026, 9)
        invoice = result["invoices"][0]
        self.assertEqual(invoice.billing_period_end, PERIOD_END)
        self.assertEqual(invoice.due_date, date(2026, 10, 15))

    def test_reversed_period_rejected(self):
        with self.assertRaises(ValidationError):
            invoice_service.generate_bulk_invoices(PERIOD_END, PERIOD_START)

    def test_smart_invoice_with_extra_line_and_duplicate_guard(self):
        extra = InvoiceLine(None, "Bottle deposit", Decimal("1"), "unit", Decimal("30"), is_addon=True)
        invoice = invoice_service.create_smart_invoice(
            self.customer, PERIOD_START, PERIOD_END, discount=Decimal("10"), extra_lines=[extra],
        )
        self.assertEqual(invoice.total_amount, Decimal("470.00"))
        self.assertEqual(invoice.final_amount, Decimal("460.00"))
        self.assertIn("[ADD-ON] Bottle deposit: 1 unit @ ₹30/unit", invoice.notes)

        with self.assertRaises(ValidationError):
            self.bill()

    def test_smart_invoice_needs_lines(self):
        empty = Customer.objects.create(name="No Deliveries")
        with self.assertRaises(ValidationError):
            self.bill(empty)


class InvoiceEditTest(InvoiceTestBase):
    def test_edit_moves_ledger_debit(self):
        invoice = self.bill()
        lines = invoice_service.parse_invoice_notes(invoice.notes)
        lines[0] = InvoiceLine(None, "Cow Milk", Decimal("5"), "L", Decimal("60"))

        invoice = invoice_service.update_invoice(invoice, lines=lines, user=self.user)

        self.assertEqual(invoice.final_amount, Decimal("500.00"))
        entry = CustomerLedger.objects.get(reference_id=str(invoice.pk), transaction_type=CustomerLedger.TxType.INVOICE)
        self.assertEqual(entry.debit_amount, Decimal("500.00"))
        self.assertEqual(entry.running_balance, Decimal("500.00"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("500.00"))

    def test_header_edit_keeps_tax(self):
        ghee = Product.objects.create(name="Ghee", base_price=Decimal("650"), unit="kg", tax_percentage=Decimal("12"))
        buyer = Customer.objects.create(name="Devi Caterers")
        deliver(buyer, date(2026, 9, 12), ghee, "1", "650")
        invoice = self.bill(buyer)
        self.assertEqual(invoice.final_amount, Decimal("728.00"))

        invoice = invoice_service.update_invoice(invoice, due_date=date(2026, 11, 30), user=self.user)

        self.assertEqual(invoice.due_date, date(2026, 11, 30))
        self.assertEqual(invoice.tax_amount, Decimal("78.00"))
        self.assertEqual(invoice.final_amount, Decimal("728.00"))
        entry = CustomerLedger.objects.get(reference_id=str(invoice.pk), transaction_type=CustomerLedger.TxType.INVOICE)
        self.assertEqual(entry.debit_amount, Decimal("728.00"))

        invoice = invoice_service.update_invoice(invoice, discount=Decimal("28"))
        self.assertEqual(invoice.final_amount, Decimal("700.00"))
        self.assertIn("Ghee: 1 kg", invoice.notes)
        buyer.refresh_from_db()
        self.assertEqual(buyer.credit_balance, Decimal("700.00"))

    def test_paid_invoice_cannot_be_edited_or_deleted(self):
        invoice = self.bill()
        invoice_service.record_payment(self.customer, invoice.final_amount, invoice=invoice)
        invoice.refresh_from_db()

        with self.assertRaises(ValidationError):
            invoice_service.update_invoice(invoice, discount=Decimal("5"))
        with self.assertRaises(ValidationError):
            invoice_service.delete_invoice(invoice)

    def test_delete_removes_ledger_debit(self):
        invoice = self.bill()
        invoice_service.delete_invoice(invoice)

        self.assertFalse(Invoice.objects.exists())
        self.assertFalse(CustomerLedger.objects.filter(transaction_type=CustomerLedger.TxType.INVOICE).exists())
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("0.00"))


class PaymentTest(InvoiceTestBase):
    def test_partial_then_full_payment(self):
        invoice = self.bill()

        invoice_service.record_payment(self.customer, Decimal("140"), invoice=invoice, mode=Payment.Mode.UPI)
        invoice.refresh_from_db()
        self.assertEqual(invoice.payment_status, Invoice.PaymentStatus.PARTIAL)
        self.assertEqual(invoice.paid_amount, Decimal("140.00"))

        invoice_service.record_payment(self.customer, Decimal("300"), invoice=invoice)
        invoice.refresh_from_db()
        self.assertEqual(invoice.payment_status, Invoice.PaymentStatus.PAID)
        self.assertEqual(invoice.payment_date, timezone.localdate())

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("0.00"))
        descriptions = list(
            CustomerLedger.objects.filter(transaction_type=CustomerLedger.TxType.PAYMENT)
            .values_list("description", flat=True)
        )
        self.assertEqual(descriptions, [f"Payment for {invoice.invoice_number}"] * 2)

    def test_general_payment_leaves_advance(self):
        invoice_service.record_payment(self.customer, Decimal("250"))

        entry = CustomerLedger.objects.get(transaction_type=CustomerLedger.TxType.PAYMENT)
        self.assertEqual(entry.description, "General Payment")
        self.assertEqual(entry.credit_amount, Decimal("250.00"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("-250.00"))

    def test_payment_validation(self):
        with self.assertRaises(ValidationError):
            invoice_service.record_payment(self.customer, Decimal("0"))

        stranger = Customer.objects.create(name="Someone Else")
        invoice = self.bill()
        with self.assertRaises(ValidationError):
            invoice_service.record_payment(stranger, Decimal("10"), invoice=invoice)
        self.assertFalse(Payment.objects.exists())


class OutstandingTest(InvoiceTestBase):
    def test_overdue_is_derived_from_due_date(self):
        invoice = self.bill()
        today = timezone.localdate()
        self.assertEqual(invoice_service.effective_status(invoice, today), Invoice.PaymentStatus.PENDING)
        self.assertEqual(
            invoice_service.effective_status(invoice, invoice.due_date + timedelta(days=1)),
            Invoice.PaymentStatus.OVERDUE,
        )

        summary = invoice_service.outstanding_summary(invoice.due_date + timedelta(days=1))
        self.assertEqual(summary["outstanding"], Decimal("440.00"))
        self.assertEqual(summary["overdue"], Decimal("440.00"))
        self.assertEqual(summary["overdue_count"], 1)

    def test_paid_invoices_drop_out(self):
        invoice = self.bill()
        invoice_service.record_payment(self.customer, Decimal("440"), invoice=invoice)
        summary = invoice_service.outstanding_summary()
        self.assertEqual(summary["outstanding"], Decimal("0.00"))
        self.assertEqual(summary["open_count"], 0)
