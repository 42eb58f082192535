from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from dairy.accounts import bootstrap_admin


class Command(BaseCommand):
    help = 'Creates or promotes the super admin named by DAIRY_BOOTSTRAP_PHONE / DAIRY_BOOTSTRAP_PIN'

    def handle(self, *args, **options):
        try:
            profile = bootstrap_admin(settings.DAIRY_BOOTSTRAP_PHONE, settings.DAIRY_BOOTSTRAP_PIN)
        except ValidationError as e:
            raise CommandError(" ".join(e.messages))
        self.stdout.write(self.style.SUCCESS(f"Super admin ready: {profile.phone}"))
