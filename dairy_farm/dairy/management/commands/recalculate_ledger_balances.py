from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from decimal import Decimal

from dairy.models import Customer, MilkVendor
from dairy.services.balance_service import get_customer_balances, get_vendor_balances
from dairy.services.ledger_service import recalculate_ledger_balances


class Command(BaseCommand):
    help = 'Rebuilds ledger running balances and refreshes cached customer and vendor balances'

    def add_arguments(self, parser):
        parser.add_argument('--customer', type=int, help='Only this customer id')

    def handle(self, *args, **options):
        qs = Customer.objects.all()
        if options['customer']:
            qs = qs.filter(pk=options['customer'])
            if not qs.exists():
                raise CommandError(f"Customer {options['customer']} not found")

        self.stdout.write("Rebuilding customer ledgers...")
        drifted = 0
        count = 0
        for customer in get_customer_balances(qs).iterator(chunk_size=500):
            if (customer.ledger_balance or Decimal("0.00")) != customer.credit_balance:
                drifted += 1
            recalculate_ledger_balances(customer)
            count += 1
        self.stdout.write(f"Rebuilt {count} customers ({drifted} had a stale cached balance)")

        if options['customer']:
            self.stdout.write(self.style.SUCCESS('Done.'))
            return

        self.stdout.write("Refreshing vendor balances...")
        vendors = []
        for vendor in get_vendor_balances(MilkVendor.objects.all()):
            vendor.current_balance = vendor.computed_balance or Decimal("0.00")
            vendor.updated_at = timezone.now()
            vendors.append(vendor)

        batch_size = 500
        for i in range(0, len(vendors), batch_size):
            batch = vendors[i:i + batch_size]
            MilkVendor.objects.bulk_update(batch, ['current_balance', 'updated_at'])
            self.stdout.write(f"Updated {min(i + batch_size, len(vendors))}/{len(vendors)}")

        self.stdout.write(self.style.SUCCESS(f'Balances refreshed for {count} customers and {len(vendors)} vendors.'))
