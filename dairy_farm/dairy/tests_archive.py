from datetime import datetime, time, timedelta
from decimal import Decimal

from django.contrib.auth.models import User
from django.test import TestCase
from django.utils import timezone

from . import accounts
from .accounts import AuthError
from .models import (
    ActivityLog, Customer, CustomerLedger, Delivery, Invoice, Payment, StaffProfile, StaffRole,
)
from .services import archive_service
from .services.ledger_service import insert_ledger_with_balance


class ArchiveTestBase(TestCase):
    def setUp(self):
        self.today = timezone.localdate()
        self.old = self.today - timedelta(days=800)
        self.recent = self.today - timedelta(days=5)

        self.owner = User.objects.create_user(username="9000000001", password="123456")
        StaffProfile.objects.create(
            user=self.owner, full_name="Owner", phone="9000000001",
            role=StaffRole.SUPER_ADMIN, pin_hash=accounts.hash_pin("123456"),
        )
        self.customer = Customer.objects.create(name="Asha Verma")

    def aware(self, day):
        return timezone.make_aware(datetime.combine(day, time(9, 0)))


class ArchivePermissionTest(ArchiveTestBase):
    def test_only_super_admin(self):
        manager = User.objects.create_user(username="9000000002", password="654321")
        StaffProfile.objects.create(user=manager, full_name="Manager", phone="9000000002", role=StaffRole.MANAGER)

        with self.assertRaises(AuthError) as ctx:
            archive_service.archive_old_data(manager, "preview", 1)
        self.assertEqual(ctx.exception.status, 403)

    def test_invalid_mode_and_retention(self):
        with self.assertRaisesMessage(AuthError, "Invalid mode"):
            archive_service.archive_old_data(self.owner, "purge", 1)
        with self.assertRaisesMessage(AuthError, "Invalid retention_years"):
            archive_service.archive_old_data(self.owner, "preview", 4)
        with self.assertRaisesMessage(AuthError, "Invalid retention_years"):
            archive_service.archive_old_data(self.owner, "preview", "two")

    def test_execute_requires_pin(self):
        with self.assertRaisesMessage(AuthError, "Valid 6-digit PIN required"):
            archive_service.archive_old_data(self.owner, "execute", 1)
        with self.assertRaisesMessage(AuthError, "Valid 6-digit PIN required"):
            archive_service.archive_old_data(self.owner, "execute", 1, pin="12a456")
        with self.assertRaises(AuthError) as ctx:
            archive_service.archive_old_data(self.owner, "execute", 1, pin="000000")
        self.assertEqual(ctx.exception.status, 401)


class ArchiveRunTest(ArchiveTestBase):
    def setUp(self):
        super().setUp()
        Delivery.objects.create(customer=self.customer, delivery_date=self.old, status=Delivery.Status.DELIVERED)
        Delivery.objects.create(customer=self.customer, delivery_date=self.recent, status=Delivery.Status.DELIVERED)

        # old, fully paid invoice plus an advance paid at the time
        old_invoice = Invoice.objects.create(
            invoice_number="INV-202408-0001", customer=self.customer,
            billing_period_start=self.old, billing_period_end=self.old, final_amount=Decimal("500"),
            paid_amount=Decimal("500"), payment_status=Invoice.PaymentStatus.PAID, created_at=self.aware(self.old),
        )
        insert_ledger_with_balance(self.customer, self.old, CustomerLedger.TxType.INVOICE, "Old invoice",
                                   debit=Decimal("500"), reference_id=old_invoice.pk)
        for amount in (Decimal("500"), Decimal("100")):
            payment = Payment.objects.create(customer=self.customer, invoice=old_invoice, amount=amount, payment_date=self.old)
            insert_ledger_with_balance(self.customer, self.old, CustomerLedger.TxType.PAYMENT, "Old payment",
                                       credit=amount, reference_id=payment.pk)

        new_invoice = Invoice.objects.create(
            invoice_number="INV-202610-0001", customer=self.customer,
            billing_period_start=self.recent, billing_period_end=self.recent, final_amount=Decimal("300"),
        )
        insert_ledger_with_balance(self.customer, self.recent, CustomerLedger.TxType.INVOICE, "New invoice",
                                   debit=Decimal("300"), reference_id=new_invoice.pk)

    def test_preview_counts_old_rows_only(self):
        result = archive_service.archive_old_data(self.owner, "preview", 1)

        self.assertEqual(result["retention_years"], 1)
        self.assertEqual(result["counts"]["deliveries"], 1)
        self.assertEqual(result["counts"]["invoices"], 1)
        self.assertEqual(result["counts"]["payments"], 2)
        self.assertEqual(Delivery.objects.count(), 2)

    def test_export_returns_rows(self):
        result = archive_service.archive_old_data(self.owner, "export", 1)
        self.assertEqual([row["invoice_number"] for row in result["export"]["invoices"]], ["INV-202408-0001"])
        self.assertNotIn("expenses", result["export"])

    def test_execute_folds_ledger_and_keeps_balance(self):
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("200.00"))

        result = archive_service.archive_old_data(self.owner, "execute", 1, pin="123456")

        self.assertEqual(result["deleted"]["invoices"], 1)
        self.assertEqual(result["deleted"]["payments"], 2)
        self.assertEqual(result["deleted"]["deliveries"], 1)
        self.assertEqual(Invoice.objects.get().invoice_number, "INV-202610-0001")

        opening = CustomerLedger.objects.get(transaction_type=CustomerLedger.TxType.OPENING_BALANCE)
        self.assertIsNone(opening.debit_amount)
        self.assertEqual(opening.credit_amount, Decimal("100.00"))
        self.assertEqual(CustomerLedger.objects.filter(customer=self.customer).count(), 2)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("200.00"))
        latest = CustomerLedger.objects.filter(customer=self.customer).last()
        self.assertEqual(latest.running_balance, Decimal("200.00"))
        self.assertTrue(ActivityLog.objects.filter(action="data_archived").exists())

    def test_factory_reset_removes_everything_dated(self):
        result = archive_service.archive_old_data(self.owner, "execute", 0, pin="123456")

        self.assertEqual(result["cutoff"], (self.today + timedelta(days=1)).isoformat())
        self.assertFalse(Delivery.objects.exists())
        self.assertFalse(Payment.objects.exists())
        # pending invoices are never archived
        self.assertEqual(Invoice.objects.count(), 1)
        self.assertTrue(ActivityLog.objects.filter(action="factory_reset").exists())
