from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase

from .models import BreedingRecord, Cattle, MilkProduction
from .services.cattle_service import production_totals, run_lactation_automation

TODAY = date(2026, 10, 17)


class LactationAutomationTest(TestCase):
    def cow(self, tag, lactation=Cattle.Lactation.LACTATING, **kwargs):
        return Cattle.objects.create(tag_number=tag, breed="Gir", lactation_status=lactation, **kwargs)

    def confirm_pregnancy(self, cow, due):
        BreedingRecord.objects.create(
            cattle=cow, record_type=BreedingRecord.RecordType.PREGNANCY, record_date=TODAY - timedelta(days=90),
            pregnancy_confirmed=True, expected_calving_date=due,
        )

    def produce(self, cow, day):
        MilkProduction.objects.create(
            cattle=cow, production_date=day, session=MilkProduction.Session.MORNING, quantity_liters=Decimal("8"),
        )

    def test_dry_off_before_calving(self):
        cow = self.cow("C-001")
        self.produce(cow, TODAY)
        self.confirm_pregnancy(cow, TODAY + timedelta(days=40))

        updates = run_lactation_automation(TODAY)

        self.assertEqual(len(updates), 1)
        self.assertEqual(updates[0].old_value, "lactating")
        self.assertEqual(updates[0].new_value, "dry")
        cow.refresh_from_db()
        self.assertEqual(cow.lactation_status, Cattle.Lactation.DRY)

    def test_recent_calving_starts_new_lactation(self):
        cow = self.cow("C-002", lactation=Cattle.Lactation.PREGNANT, lactation_number=2)
        BreedingRecord.objects.create(
            cattle=cow, record_type=BreedingRecord.RecordType.CALVING,
            record_date=TODAY - timedelta(days=3), actual_calving_date=TODAY - timedelta(days=3),
        )

        updates = run_lactation_automation(TODAY)

        self.assertEqual([u.new_value for u in updates], ["lactating"])
        cow.refresh_from_db()
        self.assertEqual(cow.lactation_status, Cattle.Lactation.LACTATING)
        self.assertEqual(cow.lactation_number, 3)
        self.assertEqual(cow.last_calving_date, TODAY - timedelta(days=3))

    def test_confirmed_pregnancy_marks_dry_cow_pregnant(self):
        cow = self.cow("C-003", lactation=Cattle.Lactation.DRY)
        due = TODAY + timedelta(days=200)
        self.confirm_pregnancy(cow, due)

        updates = run_lactation_automation(TODAY)

        self.assertEqual(updates[0].reason, "Pregnancy confirmed")
        cow.refresh_from_db()
        self.assertEqual(cow.lactation_status, Cattle.Lactation.PREGNANT)
        self.assertEqual(cow.expected_calving_date, due)

    def test_no_production_dries_off(self):
        idle = self.cow("C-004")
        milking = self.cow("C-005")
        self.produce(idle, TODAY - timedelta(days=45))
        self.produce(milking, TODAY - timedelta(days=1))

        updates = run_lactation_automation(TODAY)

        self.assertEqual([u.tag_number for u in updates], ["C-004"])
        milking.refresh_from_db()
        self.assertEqual(milking.lactation_status, Cattle.Lactation.LACTATING)

    def test_dry_run_saves_nothing(self):
        cow = self.cow("C-006")

        updates = run_lactation_automation(TODAY, dry_run=True)

        self.assertEqual(len(updates), 1)
        cow.refresh_from_db()
        self.assertEqual(cow.lactation_status, Cattle.Lactation.LACTATING)

    def test_buffalo_included_bulls_and_sold_excluded(self):
        self.cow("B-001", cattle_type=Cattle.CattleType.BUFFALO)
        self.cow("X-001", cattle_type=Cattle.CattleType.BULL)
        self.cow("S-001", status=Cattle.Status.SOLD)

        updates = run_lactation_automation(TODAY)

        self.assertEqual([u.tag_number for u in updates], ["B-001"])


class ProductionTotalsTest(TestCase):
    def test_sessions_summed(self):
        a = Cattle.objects.create(tag_number="C-101", breed="Sahiwal")
        b = Cattle.objects.create(tag_number="C-102", breed="Sahiwal")
        MilkProduction.objects.create(cattle=a, production_date=TODAY, session="morning", quantity_liters=Decimal("6.5"))
        MilkProduction.objects.create(cattle=a, production_date=TODAY, session="evening", quantity_liters=Decimal("5"))
        MilkProduction.objects.create(cattle=b, production_date=TODAY, session="morning", quantity_liters=Decimal("7"))

        totals = production_totals(TODAY)

        self.assertEqual(totals["morning"], Decimal("13.5"))
        self.assertEqual(totals["evening"], Decimal("5"))
        self.assertEqual(totals["total"], Decimal("18.5"))
        self.assertEqual(totals["cattle_count"], 2)
