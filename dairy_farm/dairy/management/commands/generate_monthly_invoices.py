from datetime import timedelta

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from dairy.services.invoice_service import generate_monthly_invoices


class Command(BaseCommand):
    help = 'Generates invoices for every active customer for one calendar month (default: last month)'

    def add_arguments(self, parser):
        parser.add_argument('--year', type=int)
        parser.add_argument('--month', type=int)

    def handle(self, *args, **options):
        last_month = timezone.localdate().replace(day=1) - timedelta(days=1)
        year = options['year'] or last_month.year
        month = options['month'] or last_month.month
        if not 1 <= month <= 12:
            raise CommandError("--month must be between 1 and 12")

        try:
            result = generate_monthly_invoices(year, month)
        except ValidationError as e:
            raise CommandError(" ".join(e.messages))

        self.stdout.write(
            f"{year}-{month:02d}: created {result['created']}, skipped {result['skipped']}, failed {result['failed']}"
        )
        for err in result['errors']:
            self.stdout.write(self.style.ERROR(f"  customer {err['customer_id']}: {err['error']}"))
        self.stdout.write(self.style.SUCCESS(f"Invoiced total ₹{result['total_amount']}"))
