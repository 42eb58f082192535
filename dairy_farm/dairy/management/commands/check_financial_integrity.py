from django.core.management.base import BaseCommand

from dairy.services import integrity_service


class Command(BaseCommand):
    help = 'Runs the ledger / invoice integrity checks, optionally repairing what they find'

    def add_arguments(self, parser):
        parser.add_argument('--fix', action='store_true', help='Post missing invoice debits, drop orphaned entries and recalculate')

    def handle(self, *args, **options):
        results = integrity_service.check_financial_integrity()
        failed = 0
        for r in results:
            if r.passed:
                self.stdout.write(self.style.SUCCESS(f"PASS  {r.name}: {r.detail}"))
            else:
                failed += 1
                self.stdout.write(self.style.ERROR(f"FAIL  {r.name}: {r.detail}"))
                for issue in r.issues[:20]:
                    self.stdout.write(f"      {issue}")

        if not failed:
            self.stdout.write(self.style.SUCCESS("All checks passed."))
            return
        if not options['fix']:
            self.stdout.write(self.style.WARNING(f"{failed} check(s) failed. Re-run with --fix to repair."))
            return

        posted = integrity_service.sync_invoices_to_ledger()
        removed = integrity_service.remove_orphaned_ledger_entries()
        customers = integrity_service.fix_recalculate_all()
        self.stdout.write(self.style.SUCCESS(
            f"Posted {posted} missing invoice entries, removed {removed} orphaned entries, "
            f"recalculated {customers} customers."
        ))
