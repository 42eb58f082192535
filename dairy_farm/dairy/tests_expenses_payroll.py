from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from .models import (
    Cattle, CattleHealth, Employee, Equipment, Expense, ExpenseCategory, MaintenanceRecord, PayrollRecord,
)
from .services import expense_service, payroll_service

DAY = date(2026, 10, 10)


class AutoExpenseTest(TestCase):
    def test_dedupe_by_reference(self):
        first = expense_service.create_auto_expense(
            ExpenseCategory.TRANSPORT, "Tempo hire", Decimal("750"), expense_date=DAY,
            reference_type="trip", reference_id=12, notes="Route A",
        )
        second = expense_service.create_auto_expense(
            ExpenseCategory.TRANSPORT, "Tempo hire", Decimal("750"), expense_date=DAY,
            reference_type="trip", reference_id=12,
        )
        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(first.notes, "[AUTO] trip:12 | Route A")
        self.assertTrue(expense_service.auto_expense_exists("trip", 12))
        self.assertFalse(expense_service.auto_expense_exists("trip", 1))

    def test_non_positive_amount_skipped(self):
        self.assertIsNone(expense_service.create_auto_expense(ExpenseCategory.MISC, "Nothing", 0))
        self.assertIsNone(expense_service.create_auto_expense(ExpenseCategory.MISC, "Refund", Decimal("-5")))
        self.assertFalse(Expense.objects.exists())

    def test_vet_bill_logged_once(self):
        cow = Cattle.objects.create(tag_number="C-201", breed="Gir")
        record = CattleHealth.objects.create(
            cattle=cow, record_type=CattleHealth.RecordType.TREATMENT, title="Mastitis",
            record_date=DAY, cost=Decimal("1200"),
        )
        record.vet_name = "Dr. Rao"
        record.save()

        expense = Expense.objects.get()
        self.assertEqual(expense.category, ExpenseCategory.MEDICINE)
        self.assertEqual(expense.title, "Treatment - C-201: Mastitis")
        self.assertEqual(expense.cattle, cow)

    def test_free_checkup_has_no_expense(self):
        cow = Cattle.objects.create(tag_number="C-202", breed="Gir")
        CattleHealth.objects.create(cattle=cow, record_type=CattleHealth.RecordType.CHECKUP, title="Routine", record_date=DAY)
        self.assertFalse(Expense.objects.exists())

    def test_equipment_purchase_and_maintenance(self):
        machine = Equipment.objects.create(
            name="Milking Machine", category="milking", purchase_date=DAY, purchase_cost=Decimal("45000"),
        )
        MaintenanceRecord.objects.create(
            equipment=machine, maintenance_type="service", maintenance_date=DAY, cost=Decimal("1800"),
        )

        titles = dict(Expense.objects.values_list("title", "category"))
        self.assertEqual(titles["Equipment Purchase - Milking Machine"], ExpenseCategory.MISC)
        self.assertEqual(titles["Service - Milking Machine"], ExpenseCategory.MAINTENANCE)


class PayrollTest(TestCase):
    def setUp(self):
        self.ravi = Employee.objects.create(name="Ravi", salary=Decimal("12000"))
        self.sunita = Employee.objects.create(name="Sunita", salary=Decimal("10000"))
        Employee.objects.create(name="Left Last Year", salary=Decimal("9000"), is_active=False)
        self.start, self.end = date(2026, 9, 1), date(2026, 9, 30)

    def test_generate_for_active_employees_once(self):
        created = payroll_service.generate_payroll(self.start, self.end)
        self.assertEqual(sorted(r.employee.name for r in created), ["Ravi", "Sunita"])

        again = payroll_service.generate_payroll(self.start, self.end)
        self.assertEqual(again, [])
        self.assertEqual(PayrollRecord.objects.count(), 2)

    def test_invalid_period(self):
        with self.assertRaises(ValidationError):
            payroll_service.generate_payroll(self.end, self.start)

    def test_net_salary(self):
        record = PayrollRecord.objects.create(
            employee=self.ravi, pay_period_start=self.start, pay_period_end=self.end,
            base_salary=Decimal("12000"), overtime_hours=Decimal("10"), overtime_rate=Decimal("80"),
            bonus=Decimal("500"), deductions=Decimal("300"),
        )
        self.assertEqual(record.net_salary, Decimal("13000.00"))

    def test_mark_paid_logs_salary_expense(self):
        record = PayrollRecord.objects.create(
            employee=self.sunita, pay_period_start=self.start, pay_period_end=self.end, base_salary=Decimal("10000"),
        )

        payroll_service.mark_payroll_paid(record, mode="upi", day=date(2026, 10, 1))

        expense = Expense.objects.get(category=ExpenseCategory.SALARY)
        self.assertEqual(expense.title, "Salary - Sunita")
        self.assertEqual(expense.amount, Decimal("10000.00"))
        self.assertEqual(expense.expense_date, date(2026, 10, 1))
        self.assertIn("Pay period: 01 Sep - 30 Sep 2026", expense.notes)

        with self.assertRaises(ValidationError):
            payroll_service.mark_payroll_paid(record)
        self.assertEqual(Expense.objects.count(), 1)
