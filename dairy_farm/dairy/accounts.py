"""
Phone + PIN accounts for staff and customers.

Staff sign in with a StaffProfile, customers with a CustomerAccount. Both
are backed by a django User (username = phone) so the regular session
machinery and login_required work unchanged. The PIN is hashed with the
configured password hashers and kept in sync on the User and the profile.
"""
import logging
import re
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model, login
from django.contrib.auth.hashers import check_password, make_password
from django.contrib.sessions.models import Session
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from .models import (
    ActivityLog, AuthAttempt, Customer, CustomerAccount, CustomerAuthAttempt,
    StaffProfile, StaffRole,
)

logger = logging.getLogger(__name__)

MAX_FAILED_BEFORE_LOCK = 4
LOCKOUT_MINUTES = 15

_PIN_RE = re.compile(r"^\d{6}$")
_PHONE_RE = re.compile(r"^\d{10}$")


class AuthError(ValidationError):
    """Authentication / authorisation failure. `code` is machine readable."""

    def __init__(self, message, code="invalid", status=400):
        super().__init__(message, code=code)
        self.status = status

    def __str__(self):
        return self.message


# ---------------------------------------------------------
# PIN / phone helpers
# ---------------------------------------------------------
def hash_pin(pin: str) -> str:
    return make_password(pin)


def check_pin(pin: str, pin_hash: str) -> bool:
    return bool(pin_hash) and check_password(pin, pin_hash)


def validate_pin(pin, message="PIN must be exactly 6 digits"):
    if not pin or not _PIN_RE.match(str(pin)):
        raise AuthError(message, code="invalid_pin")
    return str(pin)


def validate_phone(phone, message="Phone number must be 10 digits"):
    phone = re.sub(r"\D", "", str(phone or ""))
    if not _PHONE_RE.match(phone):
        raise AuthError(message, code="invalid_phone")
    return phone


def log_activity(user, action, entity_type, entity_id="", details=None, ip_address=""):
    return ActivityLog.objects.create(
        user=user if getattr(user, "pk", None) else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id or ""),
        details=details or {},
        ip_address=ip_address or "",
    )


def client_ip(request) -> str:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "")


# ---------------------------------------------------------
# Lockout
# ---------------------------------------------------------
def _verify_with_lockout(attempt_model, phone, pin_hash, pin) -> bool:
    now = timezone.now()
    attempt = attempt_model.objects.filter(phone=phone).first()
    if attempt and attempt.is_locked(now):
        raise AuthError("Account temporarily locked. Try again in 15 minutes.", code="locked", status=429)

    if pin_hash and check_pin(pin, pin_hash):
        attempt_model.objects.filter(phone=phone).delete()
        return True

    attempt = attempt or attempt_model(phone=phone)
    if attempt.failed_count >= MAX_FAILED_BEFORE_LOCK:
        attempt.locked_until = now + timedelta(minutes=LOCKOUT_MINUTES)
    attempt.failed_count += 1
    attempt.last_attempt = now
    attempt.save()
    logger.warning("Failed PIN attempt %s for %s", attempt.failed_count, phone)
    return False


def verify_staff_pin(phone, pin) -> StaffProfile:
    profile = StaffProfile.objects.select_related("user").filter(phone=phone).first()
    ok = _verify_with_lockout(AuthAttempt, phone, profile.pin_hash if profile else "", pin)
    if not ok or profile is None:
        raise AuthError("Invalid phone number or PIN", code="invalid_credentials", status=401)
    if not profile.is_active or profile.user is None or not profile.user.is_active:
        raise AuthError("Account is deactivated", code="inactive", status=403)
    return profile


def verify_customer_pin(phone, pin) -> CustomerAccount:
    account = CustomerAccount.objects.select_related("user", "customer").filter(phone=phone).first()
    ok = _verify_with_lockout(CustomerAuthAttempt, phone, account.pin_hash if account else "", pin)
    if not ok or account is None:
        raise AuthError("Invalid phone number or PIN", code="invalid_credentials", status=401)
    return account


# ---------------------------------------------------------
# Login
# ---------------------------------------------------------
def staff_login(request, phone, pin) -> StaffProfile:
    profile = verify_staff_pin(phone, pin)
    login(request, profile.user)
    request.session.set_expiry(settings.STAFF_SESSION_AGE)
    log_activity(profile.user, "login", "staff_profile", profile.pk, ip_address=client_ip(request))
    return profile


def customer_login(request, phone, pin) -> CustomerAccount:
    phone = validate_phone(phone)
    validate_pin(pin, "PIN must be 6 digits")
    account = verify_customer_pin(phone, pin)
    if not account.is_approved:
        raise AuthError("Account pending approval", code="pending", status=403)
    if account.user is None or account.customer_id is None:
        raise AuthError("Authentication failed", code="no_user", status=401)
    login(request, account.user)
    request.session.set_expiry(settings.CUSTOMER_SESSION_AGE)
    account.last_login = timezone.now()
    account.save(update_fields=["last_login", "updated_at"])
    return account


# ---------------------------------------------------------
# Staff provisioning (super admin only)
# ---------------------------------------------------------
def _require_super_admin(actor, message):
    profile = getattr(actor, "staff_profile", None)
    if not (getattr(actor, "is_superuser", False) or (profile and profile.is_active and profile.is_super_admin)):
        raise AuthError(message, code="forbidden", status=403)


def _get_profile(profile_id) -> StaffProfile:
    profile = StaffProfile.objects.select_related("user").filter(pk=profile_id).first()
    if profile is None:
        raise AuthError("User not found", code="not_found", status=404)
    return profile


def _set_user_pin(user, pin):
    user.set_password(pin)
    user.save(update_fields=["password"])


@transaction.atomic
def create_staff_user(actor, phone, pin, full_name, role) -> StaffProfile:
    _require_super_admin(actor, "Only super admin can create users")
    if not phone or not pin or not full_name or not role:
        raise AuthError("Missing required fields: phone, pin, fullName, role", code="missing_fields")
    validate_pin(pin)
    if role not in StaffRole.values:
        raise AuthError("Invalid role", code="invalid_role")
    phone = str(phone).strip()

    User = get_user_model()
    if StaffProfile.objects.filter(phone=phone).exists():
        raise AuthError("A user with this phone number already exists", code="duplicate")
    if User.objects.filter(username=phone).exists() or CustomerAccount.objects.filter(phone=phone).exists():
        raise AuthError(
            "A user with this phone number already exists in the system. Please use a different "
            "phone number or contact support to reset the existing account.",
            code="duplicate",
        )

    is_admin = role == StaffRole.SUPER_ADMIN
    user = User.objects.create_user(
        username=phone, password=pin, first_name=full_name[:150],
        is_staff=is_admin, is_superuser=is_admin,
    )
    profile = StaffProfile.objects.create(
        user=user, full_name=full_name, phone=phone, role=role,
        pin_hash=hash_pin(pin), created_by=actor,
    )
    log_activity(actor, "create_user", "staff_profile", profile.pk, {"phone": phone, "role": role})
    logger.info("Staff user %s (%s) created by %s", phone, role, actor)
    return profile


@transaction.atomic
def bootstrap_admin(phone, pin) -> StaffProfile:
    """Create or promote the configured bootstrap super admin. Safe to repeat."""
    expected_phone = getattr(settings, "DAIRY_BOOTSTRAP_PHONE", "")
    expected_pin = getattr(settings, "DAIRY_BOOTSTRAP_PIN", "")
    if not expected_phone or not expected_pin:
        raise AuthError("Bootstrap not configured", code="not_configured", status=500)
    if str(phone) != expected_phone or str(pin) != expected_pin:
        raise AuthError("Invalid bootstrap credentials", code="invalid_credentials", status=401)

    User = get_user_model()
    user, created = User.objects.get_or_create(username=phone)
    user.is_active = True
    user.is_staff = True
    user.is_superuser = True
    user.set_password(pin)
    user.save()

    profile = StaffProfile.objects.filter(phone=phone).first()
    if profile is None:
        profile = StaffProfile.objects.create(
            user=user, phone=phone, full_name="Super Admin",
            role=StaffRole.SUPER_ADMIN, pin_hash=hash_pin(pin),
        )
    else:
        profile.user = user
        profile.role = StaffRole.SUPER_ADMIN
        profile.is_active = True
        profile.pin_hash = hash_pin(pin)
        profile.save()
    log_activity(user, "bootstrap_admin", "staff_profile", profile.pk, {"created": created})
    logger.info("Bootstrap admin %s %s", phone, "created" if created else "promoted")
    return profile


@transaction.atomic
def change_pin(user, current_pin, new_pin) -> None:
    if not current_pin or not new_pin:
        raise AuthError("Missing required fields: currentPin, newPin", code="missing_fields")
    validate_pin(new_pin, "New PIN must be exactly 6 digits")
    profile = getattr(user, "staff_profile", None)
    if profile is None:
        raise AuthError("User profile not found", code="not_found", status=404)
    if not check_pin(current_pin, profile.pin_hash):
        raise AuthError("Current PIN is incorrect", code="invalid_pin", status=401)
    profile.pin_hash = hash_pin(new_pin)
    profile.save(update_fields=["pin_hash", "updated_at"])
    _set_user_pin(user, new_pin)
    log_activity(user, "change_pin", "staff_profile", profile.pk)


@transaction.atomic
def change_customer_pin(account, current_pin, new_pin) -> None:
    if not current_pin or not new_pin:
        raise AuthError("Customer ID, current PIN, and new PIN are required", code="missing_fields")
    validate_pin(new_pin, "New PIN must be 6 digits")
    if not check_pin(current_pin, account.pin_hash):
        raise AuthError("Current PIN is incorrect", code="invalid_pin", status=401)
    account.pin_hash = hash_pin(new_pin)
    account.save(update_fields=["pin_hash", "updated_at"])
    if account.user:
        _set_user_pin(account.user, new_pin)


@transaction.atomic
def reset_user_pin(actor, profile_id, new_pin) -> StaffProfile:
    _require_super_admin(actor, "Only super admin can reset user PINs")
    if not profile_id or not new_pin:
        raise AuthError("Missing required fields: userId, newPin", code="missing_fields")
    validate_pin(new_pin)
    profile = _get_profile(profile_id)
    profile.pin_hash = hash_pin(new_pin)
    profile.save(update_fields=["pin_hash", "updated_at"])
    if profile.user:
        _set_user_pin(profile.user, new_pin)
    AuthAttempt.objects.filter(phone=profile.phone).delete()
    log_activity(actor, "reset_pin", "staff_profile", profile.pk)
    return profile


def _delete_sessions_for(user_ids):
    user_ids = {str(uid) for uid in user_ids}
    doomed = [
        s.session_key for s in Session.objects.all()
        if s.get_decoded().get("_auth_user_id") in user_ids
    ]
    Session.objects.filter(session_key__in=doomed).delete()
    return len(doomed)


@transaction.atomic
def update_user_status(actor, profile_id, is_active) -> StaffProfile:
    _require_super_admin(actor, "Only super admin can update user status")
    if profile_id is None or is_active is None:
        raise AuthError("Missing required fields: userId, isActive", code="missing_fields")
    profile = _get_profile(profile_id)
    if not is_active and profile.user_id == actor.pk:
        raise AuthError("Cannot deactivate your own account", code="self")
    profile.is_active = bool(is_active)
    profile.updated_by = actor
    profile.save(update_fields=["is_active", "updated_by", "updated_at"])
    if profile.user:
        profile.user.is_active = bool(is_active)
        profile.user.save(update_fields=["is_active"])
        if not is_active:
            _delete_sessions_for([profile.user_id])
    log_activity(actor, "update_status", "staff_profile", profile.pk, {"is_active": bool(is_active)})
    return profile


@transaction.atomic
def delete_user(actor, profile_id) -> dict:
    _require_super_admin(actor, "Only super_admin can delete users")
    if not profile_id:
        raise AuthError("User ID is required", code="missing_fields")
    profile = _get_profile(profile_id)
    if profile.user_id == actor.pk:
        raise AuthError("Cannot delete your own account", code="self")
    if profile.is_super_admin:
        raise AuthError("Cannot delete super_admin accounts", code="forbidden", status=403)

    user = profile.user
    phone = profile.phone
    sessions = _delete_sessions_for([user.pk]) if user else 0
    profile.delete()
    if user:
        user.delete()
    AuthAttempt.objects.filter(phone=phone).delete()
    log_activity(actor, "delete_user", "staff_profile", profile_id, {"phone": phone})
    logger.info("Staff user %s deleted by %s", phone, actor)
    return {"deleted": phone, "sessions_deleted": sessions}


# ---------------------------------------------------------
# Customer self-registration
# ---------------------------------------------------------
def _create_customer_user(phone, pin):
    User = get_user_model()
    user, _ = User.objects.get_or_create(username=phone)
    user.set_password(pin)
    user.is_active = True
    user.save()
    return user


@transaction.atomic
def register_customer(phone, pin) -> dict:
    if not phone or not pin:
        raise AuthError("Phone and PIN are required", code="missing_fields")
    phone = validate_phone(phone)
    validate_pin(pin, "PIN must be 6 digits")

    existing = CustomerAccount.objects.filter(phone=phone).first()
    if existing:
        if existing.is_approved:
            raise AuthError("Account already exists. Please login with your PIN.", code="exists")
        raise AuthError("Account pending approval. Please wait for admin approval.", code="pending")
    if StaffProfile.objects.filter(phone=phone).exists():
        raise AuthError("This phone number is registered as staff", code="exists")

    customer = Customer.objects.filter(phone=phone, is_active=True).first()
    if customer is not None:
        account = CustomerAccount.objects.create(
            customer=customer,
            user=_create_customer_user(phone, pin),
            phone=phone,
            pin_hash=hash_pin(pin),
            is_approved=True,
            approval_status=CustomerAccount.Approval.APPROVED,
            approved_at=timezone.now(),
        )
        logger.info("Customer account %s auto-approved for %s", phone, customer.name)
        return {
            "approved": True, "customer_id": customer.pk, "account_id": account.pk,
            "message": "Account created successfully. You can now login.",
        }

    customer = Customer.objects.create(name="Pending Registration", phone=phone, is_active=False)
    account = CustomerAccount.objects.create(customer=customer, phone=phone, pin_hash=hash_pin(pin))
    logger.info("Customer registration %s awaiting approval", phone)
    return {
        "approved": False, "customer_id": customer.pk, "account_id": account.pk,
        "message": "Registration submitted. Please wait for admin approval.",
    }


@transaction.atomic
def approve_customer_account(actor, account) -> CustomerAccount:
    if account.customer_id is None:
        raise AuthError("Customer record missing for this account", code="orphan")
    if account.user is None:
        User = get_user_model()
        user, _ = User.objects.get_or_create(username=account.phone)
        # keep the PIN the customer registered with
        user.password = account.pin_hash
        user.is_active = True
        user.save()
        account.user = user
    account.is_approved = True
    account.approval_status = CustomerAccount.Approval.APPROVED
    account.approved_by = actor
    account.approved_at = timezone.now()
    account.save()
    Customer.objects.filter(pk=account.customer_id).update(is_active=True)
    log_activity(actor, "approve_customer", "customer_account", account.pk)
    return account


@transaction.atomic
def reject_customer_account(actor, account) -> CustomerAccount:
    account.is_approved = False
    account.approval_status = CustomerAccount.Approval.REJECTED
    account.approved_by = actor
    account.approved_at = timezone.now()
    account.save()
    log_activity(actor, "reject_customer", "customer_account", account.pk)
    return account
