"""Role checks and small request helpers shared by the JSON views."""
import json
from functools import wraps

from django.core.exceptions import ValidationError
from django.http import JsonResponse

from dairy.models import StaffRole

FINANCE_ROLES = (StaffRole.SUPER_ADMIN, StaffRole.MANAGER, StaffRole.ACCOUNTANT)
OPERATIONS_ROLES = (StaffRole.SUPER_ADMIN, StaffRole.MANAGER, StaffRole.DELIVERY_STAFF)
FARM_ROLES = (StaffRole.SUPER_ADMIN, StaffRole.MANAGER, StaffRole.FARM_WORKER, StaffRole.VET_STAFF)


def staff_profile(request):
    """Active StaffProfile of the signed-in user, or None."""
    if not getattr(request, "user", None) or not request.user.is_authenticated:
        return None
    profile = getattr(request.user, "staff_profile", None)
    if profile is None or not profile.is_active:
        return None
    return profile


def user_has_role(request, roles) -> bool:
    if getattr(request.user, "is_superuser", False):
        return True
    profile = staff_profile(request)
    return bool(profile and profile.role in roles)


def role_required(*roles):
    """403 JSON unless the user is staff with one of `roles` (any staff when empty)."""
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if roles and not user_has_role(request, roles):
                return JsonResponse({"ok": False, "error": "You do not have permission for this action"}, status=403)
            if not roles and staff_profile(request) is None and not request.user.is_superuser:
                return JsonResponse({"ok": False, "error": "Staff account required"}, status=403)
            return view(request, *args, **kwargs)
        return wrapper
    return decorator


super_admin_required = role_required(StaffRole.SUPER_ADMIN)


def customer_account(request):
    """Approved CustomerAccount of the signed-in user, or None."""
    if not getattr(request, "user", None) or not request.user.is_authenticated:
        return None
    account = getattr(request.user, "customer_account", None)
    if account is None or not account.is_approved or account.customer_id is None:
        return None
    return account


def customer_required(view):
    """403 JSON unless the user holds an approved customer account; sets request.customer."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        account = customer_account(request)
        if account is None:
            return JsonResponse({"ok": False, "error": "Customer account required"}, status=403)
        request.customer = account.customer
        return view(request, *args, **kwargs)
    return wrapper


def json_body(request) -> dict:
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except ValueError:
            raise ValidationError("Invalid JSON body")
        if not isinstance(data, dict):
            raise ValidationError("JSON body must be an object")
        return data
    return request.POST.dict()


def error_response(exc: ValidationError) -> JsonResponse:
    status = getattr(exc, "status", 400)
    if hasattr(exc, "message_dict"):
        return JsonResponse({"ok": False, "errors": exc.message_dict}, status=status)
    return JsonResponse({"ok": False, "error": " ".join(exc.messages)}, status=status)
