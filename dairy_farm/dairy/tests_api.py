import json
from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth.models import User
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from . import accounts
from .models import (
    Customer, CustomerProduct, CustomerVacation, Delivery, DeliveryItem, Invoice, Product, StaffProfile,
    StaffRole,
)
from .services import delivery_service, invoice_service


class ApiTestBase(TestCase):
    def setUp(self):
        self.owner = self.staff("9000000001", StaffRole.SUPER_ADMIN, "Owner")
        self.milk = Product.objects.create(name="Cow Milk", base_price=Decimal("60"), unit="L")
        self.customer = Customer.objects.create(name="Asha Verma", phone="9800000001")
        CustomerProduct.objects.create(customer=self.customer, product=self.milk, quantity=Decimal("2"))
        for day in (date(2026, 9, 3), date(2026, 9, 4)):
            delivery = Delivery.objects.create(customer=self.customer, delivery_date=day, status=Delivery.Status.DELIVERED)
            DeliveryItem.objects.create(delivery=delivery, product=self.milk, quantity=Decimal("2"), unit_price=Decimal("60"))

    def staff(self, phone, role, name):
        user = User.objects.create_user(username=phone, password="123456")
        StaffProfile.objects.create(user=user, full_name=name, phone=phone, role=role, pin_hash=accounts.hash_pin("123456"))
        return user

    def post_json(self, name, data, **kwargs):
        return self.client.post(reverse(name, kwargs=kwargs or None), json.dumps(data), content_type="application/json")

    def generate(self):
        return self.post_json("bulk_generate_invoices_api", {"period_start": "2026-09-01", "period_end": "2026-09-30"})


class AuthApiTest(ApiTestBase):
    def test_staff_login(self):
        resp = self.post_json("staff_login_api", {"phone": "9000000001", "pin": "123456"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["profile"]["role"], "super_admin")
        self.assertEqual(self.client.session.get_expiry_age(), 7 * 24 * 60 * 60)

        resp = self.client.get(reverse("outstanding_api"))
        self.assertEqual(resp.status_code, 200)

    def test_wrong_pin(self):
        resp = self.post_json("staff_login_api", {"phone": "9000000001", "pin": "000000"})
        self.assertEqual(resp.status_code, 401)
        self.assertFalse(resp.json()["ok"])

    def test_anonymous_redirected(self):
        resp = self.client.get(reverse("outstanding_api"))
        self.assertEqual(resp.status_code, 302)

    def test_role_checked(self):
        driver = self.staff("9000000002", StaffRole.DELIVERY_STAFF, "Driver")
        self.client.force_login(driver)

        self.assertEqual(self.generate().status_code, 403)
        self.assertEqual(self.client.get(reverse("delivery_summary_api")).status_code, 200)

    def test_customer_cannot_use_staff_endpoints(self):
        accounts.register_customer("9800000001", "135790")
        resp = self.post_json("customer_login_api", {"phone": "9800000001", "pin": "135790"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.session.get_expiry_age(), 30 * 24 * 60 * 60)

        self.assertEqual(self.client.get(reverse("delivery_summary_api")).status_code, 403)


class InvoiceApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.client.force_login(self.owner)

    def test_bulk_generate_then_pay(self):
        resp = self.generate()
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["created"], 1)
        self.assertEqual(Decimal(data["invoices"][0]["final_amount"]), Decimal("240"))
        invoice_id = data["invoices"][0]["id"]

        self.assertEqual(self.generate().json()["skipped"], 1)

        resp = self.post_json("record_payment_api", {
            "customer_id": self.customer.pk, "invoice_id": invoice_id, "amount": "100", "payment_mode": "upi",
        })
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.json()["credit_balance"]), Decimal("140"))
        self.assertEqual(Invoice.objects.get(pk=invoice_id).payment_status, Invoice.PaymentStatus.PARTIAL)

    def test_invalid_input(self):
        resp = self.post_json("bulk_generate_invoices_api", {"period_start": "yesterday", "period_end": "2026-09-30"})
        self.assertEqual(resp.status_code, 400)

        resp = self.post_json("record_payment_api", {"customer_id": self.customer.pk, "amount": "10", "payment_mode": "barter"})
        self.assertEqual(resp.status_code, 400)

    def test_ledger_statement(self):
        self.generate()
        resp = self.client.get(reverse("ledger_statement_api", kwargs={"pk": self.customer.pk}))

        data = resp.json()
        self.assertEqual(len(data["rows"]), 1)
        self.assertEqual(data["rows"][0]["type"], "invoice")
        self.assertEqual(Decimal(data["totals"]["balance"]), Decimal("240"))

    def test_integrity_check(self):
        self.generate()
        data = self.client.get(reverse("integrity_check_api")).json()
        self.assertTrue(data["passed"])
        self.assertEqual(len(data["checks"]), 3)

    def test_pdf_and_excel(self):
        invoice_id = self.generate().json()["invoices"][0]["id"]

        pdf = self.client.get(reverse("invoice_pdf", kwargs={"pk": invoice_id}))
        self.assertEqual(pdf["Content-Type"], "application/pdf")
        self.assertTrue(pdf.content.startswith(b"%PDF"))

        xlsx = self.client.get(reverse("invoices_excel"))
        self.assertEqual(xlsx.status_code, 200)
        self.assertTrue(xlsx.content.startswith(b"PK"))
        self.assertIn("attachment", xlsx["Content-Disposition"])


class OperationsApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.client.force_login(self.owner)

    def test_archive_preview(self):
        resp = self.post_json("archive_api", {"mode": "preview", "retention_years": 2})
        self.assertEqual(resp.status_code, 200)
        self.assertIn("deliveries", resp.json()["counts"])

    def test_archive_needs_super_admin(self):
        self.client.force_login(self.staff("9000000003", StaffRole.MANAGER, "Manager"))
        resp = self.post_json("archive_api", {"mode": "preview", "retention_years": 2})
        self.assertEqual(resp.status_code, 403)

    @override_settings(TELEGRAM_BOT_TOKEN="")
    def test_daily_summary_without_bot(self):
        resp = self.post_json("daily_summary_api", {"date": "2026-10-17"})
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["error"], "Telegram bot not configured")

    def test_integrity_fix_unknown_action(self):
        resp = self.post_json("integrity_fix_api", {"action": "everything"})
        self.assertEqual(resp.status_code, 400)


class CustomerPortalApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.today = timezone.localdate()
        self.subscription = CustomerProduct.objects.get(customer=self.customer)

        self.neighbour = Customer.objects.create(name="Bharat Sweets", phone="9800000002")
        self.neighbour_sub = CustomerProduct.objects.create(
            customer=self.neighbour, product=self.milk, quantity=Decimal("5"),
        )

        accounts.register_customer("9800000001", "135790")
        resp = self.post_json("customer_login_api", {"phone": "9800000001", "pin": "135790"})
        self.assertEqual(resp.status_code, 200)

    def test_own_recent_deliveries_only(self):
        Delivery.objects.filter(customer=self.customer).delete()
        recent = Delivery.objects.create(customer=self.customer, delivery_date=self.today, status=Delivery.Status.DELIVERED)
        DeliveryItem.objects.create(delivery=recent, product=self.milk, quantity=Decimal("2"), unit_price=Decimal("60"))
        stale = Delivery.objects.create(customer=self.customer, delivery_date=self.today - timedelta(days=45))
        other = Delivery.objects.create(customer=self.neighbour, delivery_date=self.today)

        data = self.client.get(reverse("customer_deliveries_api")).json()

        ids = [d["id"] for d in data["deliveries"]]
        self.assertIn(recent.pk, ids)
        self.assertNotIn(stale.pk, ids)
        self.assertNotIn(other.pk, ids)
        row = next(d for d in data["deliveries"] if d["id"] == recent.pk)
        self.assertEqual(Decimal(row["total"]), Decimal("120.00"))

    def test_billing_shows_own_ledger_and_invoices(self):
        invoice_service.create_smart_invoice(self.customer, date(2026, 9, 1), date(2026, 9, 30))

        data = self.client.get(reverse("customer_billing_api")).json()

        self.assertEqual(len(data["invoices"]), 1)
        self.assertEqual(Decimal(data["invoices"][0]["final_amount"]), Decimal("240.00"))
        self.assertEqual(Decimal(data["outstanding"]["outstanding"]), Decimal("240.00"))
        self.assertEqual([r["type"] for r in data["rows"]], ["invoice"])
        self.assertEqual(Decimal(data["credit_balance"]), Decimal("240.00"))

    def test_subscription_quantity_and_pause(self):
        subs = self.client.get(reverse("customer_subscriptions_api")).json()["subscriptions"]
        self.assertEqual([s["id"] for s in subs], [self.subscription.pk])

        resp = self.post_json("customer_subscription_update_api", {"quantity": "3"}, pk=self.subscription.pk)
        self.assertEqual(resp.status_code, 200)
        resp = self.post_json("customer_subscription_update_api", {"is_active": False}, pk=self.subscription.pk)
        self.assertFalse(resp.json()["subscription"]["is_active"])

        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.quantity, Decimal("3"))
        self.assertFalse(self.subscription.is_active)

    def test_subscription_rules(self):
        resp = self.post_json("customer_subscription_update_api", {"quantity": "-1"}, pk=self.subscription.pk)
        self.assertEqual(resp.status_code, 400)

        resp = self.post_json("customer_subscription_update_api", {"quantity": "9"}, pk=self.neighbour_sub.pk)
        self.assertEqual(resp.status_code, 404)
        self.neighbour_sub.refresh_from_db()
        self.assertEqual(self.neighbour_sub.quantity, Decimal("5"))

    def test_schedule_vacation(self):
        start = self.today + timedelta(days=1)
        resp = self.post_json("customer_vacation_api", {
            "start_date": start.isoformat(), "end_date": (start + timedelta(days=2)).isoformat(),
        })
        self.assertEqual(resp.status_code, 200)
        vacation = CustomerVacation.objects.get()
        self.assertEqual(vacation.customer, self.customer)
        self.assertTrue(delivery_service.is_on_vacation(self.customer, start + timedelta(days=1)))

        resp = self.post_json("customer_vacation_api", {
            "start_date": (self.today - timedelta(days=1)).isoformat(), "end_date": start.isoformat(),
        })
        self.assertEqual(resp.status_code, 400)

    def test_profile_update(self):
        resp = self.post_json("customer_profile_api", {
            "name": "Asha V.", "email": "asha@example.com", "address": "12 Dairy Lane",
        })
        self.assertEqual(resp.status_code, 200)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.name, "Asha V.")
        self.assertEqual(self.customer.address, "12 Dairy Lane")

        self.assertEqual(self.post_json("customer_profile_api", {"email": "not-an-email"}).status_code, 400)
        self.assertEqual(self.client.get(reverse("customer_profile_api")).json()["customer"]["email"], "asha@example.com")

    def test_staff_cannot_use_portal(self):
        self.client.force_login(self.owner)
        self.assertEqual(self.client.get(reverse("customer_deliveries_api")).status_code, 403)
