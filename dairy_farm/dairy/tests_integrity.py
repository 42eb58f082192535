from datetime import date
from decimal import Decimal

from django.contrib.auth.models import User
from django.contrib.sessions.models import Session
from django.test import TestCase

from .models import ActivityLog, Customer, CustomerAccount, CustomerLedger, Invoice, StaffProfile, StaffRole
from .services import integrity_service
from .services.ledger_service import insert_ledger_with_balance


def results_by_name():
    return {r.name: r for r in integrity_service.check_financial_integrity()}


class FinancialIntegrityTest(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Asha Verma")
        self.invoice = Invoice.objects.create(
            invoice_number="INV-202609-0001",
            customer=self.customer,
            billing_period_start=date(2026, 9, 1),
            billing_period_end=date(2026, 9, 30),
            total_amount=Decimal("600"),
            final_amount=Decimal("600"),
        )
        insert_ledger_with_balance(
            self.customer, date(2026, 10, 1), CustomerLedger.TxType.INVOICE,
            "Invoice INV-202609-0001", debit=Decimal("600"), reference_id=self.invoice.pk,
        )

    def test_consistent_books_pass(self):
        results = results_by_name()
        self.assertTrue(all(r.passed for r in results.values()), [r.detail for r in results.values()])
        self.assertEqual(len(results), 3)

    def test_stale_cached_balance_detected_and_fixed(self):
        Customer.objects.filter(pk=self.customer.pk).update(credit_balance=Decimal("10"))

        sync = results_by_name()["Ledger ↔ Balance Sync"]
        self.assertFalse(sync.passed)
        self.assertEqual(sync.issues[0]["expected"], "600.00")
        self.assertEqual(sync.issues[0]["actual"], "10.00")

        self.assertEqual(integrity_service.fix_recalculate_all(), 1)
        self.assertTrue(results_by_name()["Ledger ↔ Balance Sync"].passed)

    def test_customer_without_rows_is_zeroed(self):
        empty = Customer.objects.create(name="Nobody", credit_balance=Decimal("45"))
        integrity_service.fix_recalculate_all()
        empty.refresh_from_db()
        self.assertEqual(empty.credit_balance, Decimal("0.00"))

    def test_invoice_without_ledger_entry(self):
        orphan = Invoice.objects.create(
            invoice_number="INV-202609-0002",
            customer=self.customer,
            billing_period_start=date(2026, 8, 1),
            billing_period_end=date(2026, 8, 31),
            final_amount=Decimal("150"),
        )

        check = results_by_name()["Orphaned Invoices"]
        self.assertFalse(check.passed)
        self.assertEqual(check.issues, [{"invoice_id": orphan.pk}])

        self.assertEqual(integrity_service.sync_invoices_to_ledger(), 1)
        self.assertTrue(results_by_name()["Orphaned Invoices"].passed)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("750.00"))

    def test_ledger_entry_for_missing_invoice(self):
        insert_ledger_with_balance(
            self.customer, date(2026, 10, 2), CustomerLedger.TxType.INVOICE,
            "Invoice gone", debit=Decimal("99"), reference_id=987654,
        )

        check = results_by_name()["Orphaned Ledger Entries"]
        self.assertFalse(check.passed)
        self.assertEqual(check.issues[0]["reference_id"], "987654")

        self.assertEqual(integrity_service.remove_orphaned_ledger_entries(), 1)
        self.assertTrue(results_by_name()["Orphaned Ledger Entries"].passed)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("600.00"))

    def test_result_serialises(self):
        data = integrity_service.check_orphaned_invoices().as_dict()
        self.assertEqual(data["status"], "pass")
        self.assertEqual(data["count"], 0)


class AccountOrphanTest(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="9000000001", password="111111")
        StaffProfile.objects.create(user=self.admin, full_name="Owner", phone="9000000001", role=StaffRole.SUPER_ADMIN)

    def test_nothing_to_clean(self):
        self.assertEqual(integrity_service.find_account_orphans()["total"], 0)

    def test_orphans_found_and_removed(self):
        StaffProfile.objects.create(full_name="Ghost Worker", phone="9000000002", role=StaffRole.FARM_WORKER)
        CustomerAccount.objects.create(phone="9000000003")
        loose_user = User.objects.create_user(username="9000000004", password="222222")
        self.client.force_login(loose_user)

        found = integrity_service.find_account_orphans()
        self.assertEqual(len(found["orphaned_profiles"]), 1)
        self.assertEqual(len(found["orphaned_customer_accounts"]), 1)
        self.assertEqual(len(found["orphaned_sessions"]), 1)
        self.assertEqual(found["total"], 3)

        result = integrity_service.cleanup_account_orphans(self.admin)

        self.assertEqual(result, {"profiles_deleted": 1, "customer_accounts_deleted": 1, "sessions_deleted": 1})
        self.assertEqual(integrity_service.find_account_orphans()["total"], 0)
        self.assertFalse(Session.objects.exists())
        self.assertTrue(ActivityLog.objects.filter(action="cleanup_orphans").exists())

    def test_linked_staff_session_is_kept(self):
        self.client.force_login(self.admin)
        self.assertEqual(integrity_service.find_account_orphans()["orphaned_sessions"], [])
