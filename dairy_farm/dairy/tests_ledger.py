from datetime import date
from decimal import Decimal

from django.test import TestCase

from .ledger import build_ledger, month_end, month_start
from .models import Customer, CustomerLedger
from .services.ledger_service import (
    calculate_balance, insert_ledger_with_balance, recalculate_ledger_balances,
)

INVOICE = CustomerLedger.TxType.INVOICE
PAYMENT = CustomerLedger.TxType.PAYMENT


class LedgerBalanceTest(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Asha Verma", phone="9800000001")

    def test_running_balance_chain(self):
        e1 = insert_ledger_with_balance(self.customer, date(2026, 9, 1), INVOICE, "Invoice A", debit=Decimal("500"))
        e2 = insert_ledger_with_balance(self.customer, date(2026, 9, 5), PAYMENT, "Payment", credit=Decimal("200"))
        e3 = insert_ledger_with_balance(self.customer, date(2026, 9, 9), INVOICE, "Invoice B", debit=Decimal("150.50"))

        self.assertEqual(e1.running_balance, Decimal("500.00"))
        self.assertEqual(e2.running_balance, Decimal("300.00"))
        self.assertEqual(e3.running_balance, Decimal("450.50"))

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("450.50"))

    def test_zero_amounts_are_stored_as_null(self):
        entry = insert_ledger_with_balance(
            self.customer, date(2026, 9, 1), INVOICE, "Invoice", debit=Decimal("100"), credit=Decimal("0"),
        )
        entry.refresh_from_db()
        self.assertEqual(entry.debit_amount, Decimal("100.00"))
        self.assertIsNone(entry.credit_amount)

    def test_backdated_insert_rebuilds_chain(self):
        later = insert_ledger_with_balance(self.customer, date(2026, 9, 10), INVOICE, "Later", debit=Decimal("100"))
        earlier = insert_ledger_with_balance(self.customer, date(2026, 9, 2), INVOICE, "Earlier", debit=Decimal("50"))

        later.refresh_from_db()
        self.assertEqual(earlier.running_balance, Decimal("50.00"))
        self.assertEqual(later.running_balance, Decimal("150.00"))

    def test_recalculate_repairs_tampered_rows(self):
        insert_ledger_with_balance(self.customer, date(2026, 9, 1), INVOICE, "Invoice", debit=Decimal("400"))
        insert_ledger_with_balance(self.customer, date(2026, 9, 3), PAYMENT, "Payment", credit=Decimal("100"))
        CustomerLedger.objects.filter(customer=self.customer).update(running_balance=Decimal("999"))

        closing = recalculate_ledger_balances(self.customer)

        self.assertEqual(closing, Decimal("300.00"))
        balances = list(
            CustomerLedger.objects.filter(customer=self.customer)
            .order_by("transaction_date", "created_at", "id")
            .values_list("running_balance", flat=True)
        )
        self.assertEqual(balances, [Decimal("400.00"), Decimal("300.00")])

    def test_deleting_entry_updates_cached_balance(self):
        insert_ledger_with_balance(self.customer, date(2026, 9, 1), INVOICE, "Invoice", debit=Decimal("250"))
        payment = insert_ledger_with_balance(self.customer, date(2026, 9, 2), PAYMENT, "Payment", credit=Decimal("250"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("0.00"))

        payment.delete()
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.credit_balance, Decimal("250.00"))
        self.assertEqual(calculate_balance(self.customer), Decimal("250.00"))

    def test_customers_are_independent(self):
        other = Customer.objects.create(name="Ravi Kumar")
        insert_ledger_with_balance(self.customer, date(2026, 9, 1), INVOICE, "Invoice", debit=Decimal("100"))
        entry = insert_ledger_with_balance(other, date(2026, 9, 1), INVOICE, "Invoice", debit=Decimal("70"))
        self.assertEqual(entry.running_balance, Decimal("70.00"))


class LedgerStatementTest(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Meena Dairy Stall")
        insert_ledger_with_balance(self.customer, date(2026, 8, 20), INVOICE, "August", debit=Decimal("300"))
        insert_ledger_with_balance(self.customer, date(2026, 9, 4), PAYMENT, "Payment", credit=Decimal("100"))
        insert_ledger_with_balance(self.customer, date(2026, 9, 30), INVOICE, "September", debit=Decimal("80"))

    def test_window_starts_with_brought_forward_row(self):
        rows, totals = build_ledger(self.customer, date(2026, 9, 1), date(2026, 9, 30))

        self.assertEqual(rows[0].source, "B/F")
        self.assertEqual(rows[0].dr, Decimal("300.00"))
        self.assertEqual(totals["opening"], Decimal("300.00"))
        self.assertEqual(totals["total_dr"], Decimal("380.00"))
        self.assertEqual(totals["total_cr"], Decimal("100.00"))
        self.assertEqual(totals["balance"], Decimal("280.00"))
        self.assertEqual(totals["balance_side"], "Dr")
        self.assertEqual([r.run_amount for r in rows], [Decimal("300.00"), Decimal("200.00"), Decimal("280.00")])

    def test_full_history_has_no_brought_forward(self):
        rows, totals = build_ledger(self.customer)
        self.assertEqual(len(rows), 3)
        self.assertEqual(totals["opening"], Decimal("0.00"))
        self.assertEqual(totals["balance"], Decimal("280.00"))

    def test_month_helpers(self):
        self.assertEqual(month_start(date(2026, 2, 17)), date(2026, 2, 1))
        self.assertEqual(month_end(date(2028, 2, 3)), date(2028, 2, 29))
