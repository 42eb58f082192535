import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from dairy.models import Employee, PayrollRecord
from dairy.services.expense_service import log_salary_expense

logger = logging.getLogger(__name__)


@transaction.atomic
def generate_payroll(period_start, period_end, user=None) -> list:
    """Pending payroll rows for active employees not yet on this period."""
    if period_end < period_start:
        raise ValidationError("Pay period end cannot be before its start.")
    existing = set(
        PayrollRecord.objects.filter(pay_period_start=period_start, pay_period_end=period_end)
        .values_list("employee_id", flat=True)
    )
    created = []
    for employee in Employee.objects.filter(is_active=True).exclude(pk__in=existing):
        created.append(PayrollRecord.objects.create(
            employee=employee,
            pay_period_start=period_start,
            pay_period_end=period_end,
            base_salary=employee.salary,
            created_by=user,
        ))
    logger.info("Payroll %s..%s: %s record(s) created", period_start, period_end, len(created))
    return created


@transaction.atomic
def mark_payroll_paid(record, mode="cash", day=None, user=None):
    if record.payment_status == PayrollRecord.Status.PAID:
        raise ValidationError(f"Payroll for {record.employee.name} is already paid.")
    record.payment_status = PayrollRecord.Status.PAID
    record.payment_mode = mode
    record.payment_date = day or timezone.localdate()
    record.updated_by = user
    record.save()
    log_salary_expense(record, user=user)
    return record
