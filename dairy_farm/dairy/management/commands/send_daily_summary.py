from datetime import datetime

from django.core.management.base import BaseCommand, CommandError

from dairy.services.notification_service import send_daily_summary


class Command(BaseCommand):
    help = 'Sends the daily farm summary to subscribed Telegram chats'

    def add_arguments(self, parser):
        parser.add_argument('--date', help='YYYY-MM-DD (default: today)')

    def handle(self, *args, **options):
        day = None
        if options['date']:
            try:
                day = datetime.strptime(options['date'], "%Y-%m-%d").date()
            except ValueError:
                raise CommandError("--date must be YYYY-MM-DD")

        result = send_daily_summary(day)
        if result.get('error'):
            raise CommandError(result['error'])
        for r in result['results']:
            if not r['success']:
                self.stdout.write(self.style.WARNING(f"{r['chat_id']}: {r['error']}"))
        self.stdout.write(self.style.SUCCESS(
            f"Summary for {result['date']} sent to {result['sent_count']}/{result['total_count']} chats."
        ))
