"""
Self-service for signed-in customers: their deliveries, bills, subscription
lines, vacations and contact details. Every function takes the customer the
session belongs to and never reaches another customer's rows.
"""
import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.utils import timezone

from dairy.accounts import AuthError, log_activity
from dairy.models import CustomerProduct, CustomerVacation, Delivery, Invoice
from dairy.services import invoice_service

logger = logging.getLogger(__name__)

DELIVERY_HISTORY_DAYS = 30


def recent_deliveries(customer, days=DELIVERY_HISTORY_DAYS, today=None):
    today = today or timezone.localdate()
    return (
        Delivery.objects
        .filter(customer=customer, delivery_date__gte=today - timedelta(days=days))
        .prefetch_related("items__product")
        .order_by("-delivery_date")
    )


def billing_overview(customer, today=None) -> dict:
    invoices = list(Invoice.objects.filter(customer=customer).order_by("-billing_period_start", "-pk"))
    return {
        "invoices": invoices,
        "summary": invoice_service.outstanding_summary(today, customer=customer),
    }


def subscriptions(customer):
    return CustomerProduct.objects.filter(customer=customer).select_related("product").order_by("product__name")


@transaction.atomic
def update_subscription(customer, subscription_id, quantity=None, is_active=None, user=None) -> CustomerProduct:
    sub = (
        CustomerProduct.objects.select_for_update().select_related("product")
        .filter(pk=subscription_id, customer=customer).first()
    )
    if sub is None:
        raise AuthError("Subscription not found", code="not_found", status=404)

    fields = []
    if quantity is not None:
        try:
            quantity = Decimal(str(quantity))
        except (InvalidOperation, ValueError):
            raise ValidationError("quantity must be a number")
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative.")
        sub.quantity = quantity
        fields.append("quantity")
    if is_active is not None:
        sub.is_active = bool(is_active)
        fields.append("is_active")
    if not fields:
        raise ValidationError("Nothing to update.")

    sub.updated_by = user
    sub.save(update_fields=fields + ["updated_by", "updated_at"])
    log_activity(user, "subscription_updated", "customer_product", sub.pk,
                 {"quantity": str(sub.quantity), "is_active": sub.is_active})
    logger.info("Customer %s updated %s: qty=%s active=%s", customer.pk, sub.product.name, sub.quantity, sub.is_active)
    return sub


def schedule_vacation(customer, start_date, end_date, reason="", user=None, today=None) -> CustomerVacation:
    today = today or timezone.localdate()
    if start_date < today:
        raise ValidationError("Vacation cannot start in the past.")
    if end_date < start_date:
        raise ValidationError("End date cannot be before start date.")
    vacation = CustomerVacation.objects.create(
        customer=customer,
        start_date=start_date,
        end_date=end_date,
        reason=(reason or "")[:255],
        is_active=True,
        created_by=user,
    )
    log_activity(user, "vacation_scheduled", "customer", customer.pk,
                 {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()})
    return vacation


def update_profile(customer, name=None, email=None, address=None, user=None):
    fields = []
    if name is not None:
        name = str(name).strip()
        if not name:
            raise ValidationError({"name": "Name is required."})
        customer.name = name[:200]
        fields.append("name")
    if email is not None:
        email = str(email).strip()
        if email:
            try:
                validate_email(email)
            except ValidationError:
                raise ValidationError({"email": "Enter a valid email address."})
        customer.email = email
        fields.append("email")
    if address is not None:
        customer.address = str(address).strip()
        fields.append("address")
    if not fields:
        raise ValidationError("Nothing to update.")

    customer.updated_by = user
    customer.save(update_fields=fields + ["updated_by", "updated_at"])
    log_activity(user, "profile_updated", "customer", customer.pk, {"fields": fields})
    return customer
