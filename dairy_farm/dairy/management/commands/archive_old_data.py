from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from dairy.models import StaffProfile
from dairy.services.archive_service import MODES, RETENTION_CHOICES, archive_old_data


class Command(BaseCommand):
    help = 'Previews or deletes data older than the retention period (super admin PIN required to delete)'

    def add_arguments(self, parser):
        parser.add_argument('--mode', choices=[m for m in MODES if m != 'export'], default='preview')
        parser.add_argument('--years', type=int, choices=RETENTION_CHOICES, default=2)
        parser.add_argument('--phone', required=True, help='Phone of the super admin running the archive')
        parser.add_argument('--pin', help='Required with --mode execute')

    def handle(self, *args, **options):
        profile = StaffProfile.objects.select_related('user').filter(phone=options['phone']).first()
        if profile is None or profile.user is None:
            raise CommandError(f"No staff account for {options['phone']}")

        try:
            result = archive_old_data(profile.user, options['mode'], options['years'], options['pin'])
        except ValidationError as e:
            raise CommandError(" ".join(e.messages))

        self.stdout.write(f"Cutoff: {result['cutoff']}")
        counts = result.get('counts') or result.get('deleted') or {}
        for table, n in counts.items():
            self.stdout.write(f"  {table:<22} {n}")
        if options['mode'] == 'execute':
            self.stdout.write(self.style.SUCCESS(f"Deleted {result['total_deleted']} rows."))
        else:
            self.stdout.write(self.style.SUCCESS(f"{sum(counts.values())} rows would be archived."))
