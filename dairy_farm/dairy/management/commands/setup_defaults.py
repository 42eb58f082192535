# dairy/management/commands/setup_defaults.py

from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from dairy.models import Bottle, DairySettings, Product

DEFAULT_PRODUCTS = [
    {"name": "Full Cream Milk",   "category": "milk",    "unit": "L",  "base_price": "70"},
    {"name": "Toned Milk",        "category": "milk",    "unit": "L",  "base_price": "56"},
    {"name": "Double Toned Milk", "category": "milk",    "unit": "L",  "base_price": "50"},
    {"name": "Buffalo Milk",      "category": "milk",    "unit": "L",  "base_price": "80"},
    {"name": "Cow Milk",          "category": "milk",    "unit": "L",  "base_price": "60"},
    {"name": "Curd",              "category": "dairy",   "unit": "kg", "base_price": "80"},
    {"name": "Paneer",            "category": "dairy",   "unit": "kg", "base_price": "400"},
    {"name": "Ghee",              "category": "dairy",   "unit": "kg", "base_price": "650"},
]

DEFAULT_DEPOSITS = {"glass": Decimal("30.00"), "plastic": Decimal("10.00")}


class Command(BaseCommand):
    help = "Create the settings row, the standard bottle sizes and the default product list (idempotent)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--skip-products",
            action="store_true",
            help="Only create settings and bottles",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        settings_row = DairySettings.get_solo()
        self.stdout.write(f"Settings: {settings_row.dairy_name}")

        bottles_created = 0
        for bottle_type in Bottle.BottleType.values:
            for size in Bottle.Size.values:
                _, created = Bottle.objects.get_or_create(
                    bottle_type=bottle_type,
                    size=size,
                    defaults={"deposit_amount": DEFAULT_DEPOSITS[bottle_type]},
                )
                bottles_created += created
        self.stdout.write(f"Bottles: {bottles_created} created")

        if not options["skip_products"]:
            products_created = 0
            for tpl in DEFAULT_PRODUCTS:
                _, created = Product.objects.get_or_create(
                    name=tpl["name"],
                    defaults={
                        "category": tpl["category"],
                        "unit": tpl["unit"],
                        "base_price": Decimal(tpl["base_price"]),
                    },
                )
                products_created += created
            self.stdout.write(f"Products: {products_created} created")

        self.stdout.write(self.style.SUCCESS("Defaults are in place."))
