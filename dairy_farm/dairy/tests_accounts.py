from django.contrib.auth.models import User
from django.test import TestCase, override_settings

from . import accounts
from .accounts import AuthError
from .models import AuthAttempt, Customer, CustomerAccount, StaffProfile, StaffRole


class StaffProvisioningTest(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="9000000001", password="123456")
        self.admin_profile = StaffProfile.objects.create(
            user=self.admin, full_name="Owner", phone="9000000001",
            role=StaffRole.SUPER_ADMIN, pin_hash=accounts.hash_pin("123456"),
        )

    def test_create_staff_user(self):
        profile = accounts.create_staff_user(self.admin, "9000000002", "654321", "Ramesh", StaffRole.DELIVERY_STAFF)

        self.assertEqual(profile.user.username, "9000000002")
        self.assertTrue(profile.user.check_password("654321"))
        self.assertTrue(accounts.check_pin("654321", profile.pin_hash))
        self.assertFalse(profile.user.is_superuser)

    def test_super_admin_role_gets_django_admin(self):
        profile = accounts.create_staff_user(self.admin, "9000000003", "654321", "Co-owner", StaffRole.SUPER_ADMIN)
        self.assertTrue(profile.user.is_staff)
        self.assertTrue(profile.user.is_superuser)

    def test_only_super_admin_may_create(self):
        worker = accounts.create_staff_user(self.admin, "9000000004", "654321", "Worker", StaffRole.FARM_WORKER)
        with self.assertRaises(AuthError) as ctx:
            accounts.create_staff_user(worker.user, "9000000005", "654321", "Another", StaffRole.FARM_WORKER)
        self.assertEqual(ctx.exception.status, 403)

    def test_create_validation(self):
        with self.assertRaisesMessage(AuthError, "PIN must be exactly 6 digits"):
            accounts.create_staff_user(self.admin, "9000000006", "12ab", "Bad Pin", StaffRole.MANAGER)
        with self.assertRaisesMessage(AuthError, "Invalid role"):
            accounts.create_staff_user(self.admin, "9000000006", "123456", "Bad Role", "milkman")
        with self.assertRaisesMessage(AuthError, "A user with this phone number already exists"):
            accounts.create_staff_user(self.admin, "9000000001", "123456", "Dup", StaffRole.MANAGER)

    def test_reset_pin_clears_lockout(self):
        worker = accounts.create_staff_user(self.admin, "9000000007", "654321", "Worker", StaffRole.FARM_WORKER)
        AuthAttempt.objects.create(phone="9000000007", failed_count=3)

        accounts.reset_user_pin(self.admin, worker.pk, "111222")

        worker.refresh_from_db()
        self.assertTrue(accounts.check_pin("111222", worker.pin_hash))
        self.assertTrue(worker.user.check_password("111222"))
        self.assertFalse(AuthAttempt.objects.exists())

    def test_deactivate_and_delete(self):
        worker = accounts.create_staff_user(self.admin, "9000000008", "654321", "Worker", StaffRole.FARM_WORKER)

        accounts.update_user_status(self.admin, worker.pk, False)
        worker.refresh_from_db()
        self.assertFalse(worker.is_active)
        self.assertFalse(worker.user.is_active)

        result = accounts.delete_user(self.admin, worker.pk)
        self.assertEqual(result["deleted"], "9000000008")
        self.assertFalse(StaffProfile.objects.filter(pk=worker.pk).exists())
        self.assertFalse(User.objects.filter(username="9000000008").exists())

    def test_cannot_delete_self_or_super_admin(self):
        with self.assertRaisesMessage(AuthError, "Cannot delete your own account"):
            accounts.delete_user(self.admin, self.admin_profile.pk)
        other_admin = accounts.create_staff_user(self.admin, "9000000009", "654321", "Partner", StaffRole.SUPER_ADMIN)
        with self.assertRaisesMessage(AuthError, "Cannot delete super_admin accounts"):
            accounts.delete_user(self.admin, other_admin.pk)

    def test_change_pin(self):
        with self.assertRaisesMessage(AuthError, "Current PIN is incorrect"):
            accounts.change_pin(self.admin, "000000", "222333")

        accounts.change_pin(self.admin, "123456", "222333")
        self.admin_profile.refresh_from_db()
        self.admin.refresh_from_db()
        self.assertTrue(accounts.check_pin("222333", self.admin_profile.pin_hash))
        self.assertTrue(self.admin.check_password("222333"))


class LockoutTest(TestCase):
    def setUp(self):
        user = User.objects.create_user(username="9000000010", password="123456")
        StaffProfile.objects.create(
            user=user, full_name="Manager", phone="9000000010",
            role=StaffRole.MANAGER, pin_hash=accounts.hash_pin("123456"),
        )

    def fail(self, times):
        for _ in range(times):
            with self.assertRaisesMessage(AuthError, "Invalid phone number or PIN"):
                accounts.verify_staff_pin("9000000010", "000000")

    def test_success_resets_counter(self):
        self.fail(4)
        profile = accounts.verify_staff_pin("9000000010", "123456")
        self.assertEqual(profile.full_name, "Manager")
        self.assertFalse(AuthAttempt.objects.filter(phone="9000000010").exists())

    def test_fifth_failure_locks_account(self):
        self.fail(5)
        attempt = AuthAttempt.objects.get(phone="9000000010")
        self.assertTrue(attempt.is_locked())

        with self.assertRaises(AuthError) as ctx:
            accounts.verify_staff_pin("9000000010", "123456")
        self.assertEqual(ctx.exception.status, 429)

    def test_unknown_phone(self):
        with self.assertRaises(AuthError) as ctx:
            accounts.verify_staff_pin("9111111111", "123456")
        self.assertEqual(ctx.exception.status, 401)

    def test_deactivated_account(self):
        StaffProfile.objects.filter(phone="9000000010").update(is_active=False)
        with self.assertRaisesMessage(AuthError, "Account is deactivated"):
            accounts.verify_staff_pin("9000000010", "123456")


class BootstrapAdminTest(TestCase):
    @override_settings(DAIRY_BOOTSTRAP_PHONE="9999999999", DAIRY_BOOTSTRAP_PIN="246810")
    def test_bootstrap_is_repeatable(self):
        first = accounts.bootstrap_admin("9999999999", "246810")
        second = accounts.bootstrap_admin("9999999999", "246810")

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(second.role, StaffRole.SUPER_ADMIN)
        self.assertTrue(second.user.is_superuser)
        self.assertEqual(StaffProfile.objects.count(), 1)

    @override_settings(DAIRY_BOOTSTRAP_PHONE="9999999999", DAIRY_BOOTSTRAP_PIN="246810")
    def test_wrong_credentials(self):
        with self.assertRaises(AuthError) as ctx:
            accounts.bootstrap_admin("9999999999", "000000")
        self.assertEqual(ctx.exception.status, 401)

    @override_settings(DAIRY_BOOTSTRAP_PHONE="", DAIRY_BOOTSTRAP_PIN="")
    def test_not_configured(self):
        with self.assertRaisesMessage(AuthError, "Bootstrap not configured"):
            accounts.bootstrap_admin("9999999999", "246810")


class CustomerRegistrationTest(TestCase):
    def setUp(self):
        self.approver = User.objects.create_superuser(username="admin", password="password", email="a@example.com")

    def test_known_customer_is_auto_approved(self):
        customer = Customer.objects.create(name="Asha Verma", phone="9800000001")

        result = accounts.register_customer("98000-00001", "135790")

        self.assertTrue(result["approved"])
        account = CustomerAccount.objects.get(phone="9800000001")
        self.assertEqual(account.customer, customer)
        self.assertTrue(account.user.check_password("135790"))

    def test_unknown_phone_waits_for_approval(self):
        result = accounts.register_customer("9800000002", "135790")

        self.assertFalse(result["approved"])
        account = CustomerAccount.objects.get(phone="9800000002")
        self.assertEqual(account.approval_status, CustomerAccount.Approval.PENDING)
        self.assertFalse(account.customer.is_active)
        with self.assertRaisesMessage(AuthError, "Account pending approval"):
            accounts.register_customer("9800000002", "135790")

        accounts.approve_customer_account(self.approver, account)

        account.refresh_from_db()
        self.assertTrue(account.is_approved)
        self.assertTrue(account.user.check_password("135790"))
        self.assertTrue(Customer.objects.get(pk=account.customer_id).is_active)

    def test_invalid_input(self):
        with self.assertRaisesMessage(AuthError, "Phone number must be 10 digits"):
            accounts.register_customer("12345", "135790")
        with self.assertRaisesMessage(AuthError, "PIN must be 6 digits"):
            accounts.register_customer("9800000003", "1357")
