from datetime import datetime

from django.core.management.base import BaseCommand, CommandError

from dairy.services.delivery_service import auto_deliver_daily


class Command(BaseCommand):
    help = 'Creates and marks delivered the scheduled subscription deliveries for a day (default: today)'

    def add_arguments(self, parser):
        parser.add_argument('--date', help='YYYY-MM-DD')

    def handle(self, *args, **options):
        day = None
        if options['date']:
            try:
                day = datetime.strptime(options['date'], "%Y-%m-%d").date()
            except ValueError:
                raise CommandError("--date must be YYYY-MM-DD")

        result = auto_deliver_daily(day)
        for err in result['errors']:
            self.stdout.write(self.style.ERROR(err))
        self.stdout.write(self.style.SUCCESS(
            f"{result['date']}: {result['scheduled']} created, {result['delivered']} delivered, "
            f"{result['skipped']} skipped, {len(result['errors'])} errors"
        ))
