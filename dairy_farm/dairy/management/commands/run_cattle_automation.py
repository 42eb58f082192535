from django.core.management.base import BaseCommand

from dairy.services.cattle_service import run_lactation_automation


class Command(BaseCommand):
    help = 'Applies lactation status rules (dry-off, calving, pregnancy, no production) to active cattle'

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Report changes without saving them')

    def handle(self, *args, **options):
        updates = run_lactation_automation(dry_run=options['dry_run'])
        for u in updates:
            self.stdout.write(f"{u.tag_number}: {u.old_value or '-'} -> {u.new_value} ({u.reason})")
        verb = "would change" if options['dry_run'] else "changed"
        self.stdout.write(self.style.SUCCESS(f"{len(updates)} animal(s) {verb}."))
