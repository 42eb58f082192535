# dairy/models.py
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import UniqueConstraint
from django.utils import timezone

# --------------------------------
# Common field presets
# --------------------------------
DECIMAL_12_2 = {"max_digits": 12, "decimal_places": 2}
DECIMAL_10_3 = {"max_digits": 10, "decimal_places": 3}   # liters, kg, feed stock
DECIMAL_5_2 = {"max_digits": 5, "decimal_places": 2}     # fat / snf / tax percentages

ZERO = Decimal("0.00")


# --------------------------------
# Core mixins
# --------------------------------
class TimeStampedBy(models.Model):
    created_at = models.DateTimeField(default=timezone.now, db_index=True, editable=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="%(class)s_created"
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="%(class)s_updated"
    )

    class Meta:
        abstract = True


# --------------------------------
# Dairy settings (singleton)
# --------------------------------
class DairySettings(models.Model):
    dairy_name = models.CharField(max_length=255, default="My Dairy")
    phone = models.CharField(max_length=50, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    address = models.TextField(blank=True, default="")
    currency = models.CharField(max_length=10, default="INR")
    invoice_prefix = models.CharField(max_length=10, default="INV")
    financial_year_start = models.PositiveSmallIntegerField(default=4, help_text="Month number (4 = April)")
    upi_handle = models.CharField(max_length=100, blank=True, default="")
    extra = models.JSONField(default=dict, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Dairy Settings"

    def __str__(self):
        return self.dairy_name

    @classmethod
    def get_solo(cls):
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj


# --------------------------------
# Staff accounts & auth bookkeeping
# --------------------------------
class StaffRole(models.TextChoices):
    SUPER_ADMIN    = "super_admin",    "Super Admin"
    MANAGER        = "manager",        "Manager"
    ACCOUNTANT     = "accountant",     "Accountant"
    DELIVERY_STAFF = "delivery_staff", "Delivery Staff"
    FARM_WORKER    = "farm_worker",    "Farm Worker"
    VET_STAFF      = "vet_staff",      "Vet Staff"
    AUDITOR        = "auditor",        "Auditor"


class StaffProfile(TimeStampedBy):
    """
    Staff member who signs in with phone + 6 digit PIN.
    The Django user is kept nullable so a profile survives (and can be
    detected as an orphan) if its login is removed out of band.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL, null=True, blank=True,
        related_name="staff_profile",
    )
    full_name = models.CharField(max_length=150, db_index=True)
    phone = models.CharField(max_length=20, unique=True)
    role = models.CharField(max_length=30, choices=StaffRole.choices, default=StaffRole.FARM_WORKER, db_index=True)
    pin_hash = models.CharField(max_length=255, blank=True, default="")
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["full_name"]

    def __str__(self):
        return f"{self.full_name} ({self.get_role_display()})"

    @property
    def is_super_admin(self):
        return self.role == StaffRole.SUPER_ADMIN


class LoginAttemptBase(models.Model):
    phone = models.CharField(max_length=20, unique=True)
    failed_count = models.PositiveIntegerField(default=0)
    last_attempt = models.DateTimeField(default=timezone.now)
    locked_until = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True

    def __str__(self):
        return f"{self.phone}: {self.failed_count} failed"

    def is_locked(self, now=None):
        now = now or timezone.now()
        return bool(self.locked_until and self.locked_until > now)


class AuthAttempt(LoginAttemptBase):
    pass


class CustomerAuthAttempt(LoginAttemptBase):
    pass


class ActivityLog(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="activity_logs")
    action = models.CharField(max_length=100, db_index=True)
    entity_type = models.CharField(max_length=50, db_index=True)
    entity_id = models.CharField(max_length=64, blank=True, default="")
    details = models.JSONField(default=dict, blank=True)
    ip_address = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.action} {self.entity_type}:{self.entity_id}"


# --------------------------------
# Farm: cattle, breeding, health, production
# --------------------------------
class Cattle(TimeStampedBy):
    class CattleType(models.TextChoices):
        COW     = "cow",     "Cow"
        BUFFALO = "buffalo", "Buffalo"
        BULL    = "bull",    "Bull"
        CALF    = "calf",    "Calf"

    class Status(models.TextChoices):
        ACTIVE   = "active",   "Active"
        SOLD     = "sold",     "Sold"
        DECEASED = "deceased", "Deceased"
        DRY      = "dry",      "Dry"

    class Lactation(models.TextChoices):
        LACTATING = "lactating", "Lactating"
        DRY       = "dry",       "Dry"
        PREGNANT  = "pregnant",  "Pregnant"
        CALVING   = "calving",   "Calving"

    tag_number = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=100, blank=True, default="")
    breed = models.CharField(max_length=100)
    cattle_type = models.CharField(max_length=20, choices=CattleType.choices, default=CattleType.COW)
    date_of_birth = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    lactation_status = models.CharField(max_length=20, choices=Lactation.choices, default=Lactation.DRY, blank=True)
    lactation_number = models.PositiveSmallIntegerField(default=0)
    weight = models.DecimalField(**DECIMAL_10_3, null=True, blank=True)
    purchase_date = models.DateField(null=True, blank=True)
    purchase_cost = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)
    last_calving_date = models.DateField(null=True, blank=True)
    expected_calving_date = models.DateField(null=True, blank=True)
    sire = models.ForeignKey("self", null=True, blank=True, on_delete=models.SET_NULL, related_name="sired")
    dam = models.ForeignKey("self", null=True, blank=True, on_delete=models.SET_NULL, related_name="offspring")
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["tag_number"]
        verbose_name_plural = "Cattle"

    def __str__(self):
        return f"{self.tag_number} {self.name}".strip()

    def clean(self):
        if self.sire_id and self.sire_id == self.pk:
            raise ValidationError({"sire": "An animal cannot be its own sire."})
        if self.dam_id and self.dam_id == self.pk:
            raise ValidationError({"dam": "An animal cannot be its own dam."})


class BreedingRecord(TimeStampedBy):
    class RecordType(models.TextChoices):
        HEAT        = "heat_detection",          "Heat Detection"
        AI          = "artificial_insemination", "Artificial Insemination"
        PREGNANCY   = "pregnancy_check",         "Pregnancy Check"
        CALVING     = "calving",                 "Calving"

    cattle = models.ForeignKey(Cattle, on_delete=models.CASCADE, related_name="breeding_records")
    record_type = models.CharField(max_length=30, choices=RecordType.choices, db_index=True)
    record_date = models.DateField(db_index=True)
    heat_cycle_day = models.PositiveSmallIntegerField(null=True, blank=True)
    insemination_bull = models.CharField(max_length=100, blank=True, default="")
    insemination_technician = models.CharField(max_length=100, blank=True, default="")
    pregnancy_confirmed = models.BooleanField(null=True, blank=True)
    expected_calving_date = models.DateField(null=True, blank=True)
    actual_calving_date = models.DateField(null=True, blank=True)
    calf_details = models.JSONField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-record_date", "-id"]

    def __str__(self):
        return f"{self.cattle.tag_number} {self.get_record_type_display()} {self.record_date}"


class CattleHealth(TimeStampedBy):
    class RecordType(models.TextChoices):
        VACCINATION = "vaccination", "Vaccination"
        TREATMENT   = "treatment",   "Treatment"
        CHECKUP     = "checkup",     "Checkup"
        ILLNESS     = "illness",     "Illness"

    cattle = models.ForeignKey(Cattle, on_delete=models.CASCADE, related_name="health_records")
    record_type = models.CharField(max_length=20, choices=RecordType.choices, db_index=True)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    record_date = models.DateField(db_index=True)
    next_due_date = models.DateField(null=True, blank=True)
    vet_name = models.CharField(max_length=100, blank=True, default="")
    cost = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)

    class Meta:
        ordering = ["-record_date", "-id"]
        verbose_name_plural = "Cattle health records"

    def __str__(self):
        return f"{self.cattle.tag_number}: {self.title}"


class MilkProduction(TimeStampedBy):
    class Session(models.TextChoices):
        MORNING = "morning", "Morning"
        EVENING = "evening", "Evening"

    cattle = models.ForeignKey(Cattle, on_delete=models.CASCADE, related_name="production")
    production_date = models.DateField(db_index=True)
    session = models.CharField(max_length=10, choices=Session.choices)
    quantity_liters = models.DecimalField(**DECIMAL_10_3, validators=[MinValueValidator(0)])
    fat_percentage = models.DecimalField(**DECIMAL_5_2, null=True, blank=True)
    snf_percentage = models.DecimalField(**DECIMAL_5_2, null=True, blank=True)
    quality_notes = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-production_date", "session"]
        constraints = [
            UniqueConstraint(fields=["cattle", "production_date", "session"], name="uniq_production_cattle_date_session"),
        ]

    def __str__(self):
        return f"{self.cattle.tag_number} {self.production_date} {self.session}: {self.quantity_liters}L"


# --------------------------------
# Customers, products, subscriptions
# --------------------------------
class Route(TimeStampedBy):
    name = models.CharField(max_length=100)
    area = models.CharField(max_length=100, blank=True, default="")
    assigned_staff = models.ForeignKey(StaffProfile, null=True, blank=True, on_delete=models.SET_NULL, related_name="routes")
    sequence_order = models.PositiveIntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["sequence_order", "name"]

    def __str__(self):
        return self.name


class Customer(TimeStampedBy):
    class Subscription(models.TextChoices):
        DAILY     = "daily",     "Daily"
        ALTERNATE = "alternate", "Alternate Days"
        WEEKLY    = "weekly",    "Weekly"
        CUSTOM    = "custom",    "Custom"

    class BillingCycle(models.TextChoices):
        DAILY   = "daily",   "Daily"
        WEEKLY  = "weekly",  "Weekly"
        MONTHLY = "monthly", "Monthly"

    name = models.CharField(max_length=200, db_index=True)
    phone = models.CharField(max_length=20, blank=True, default="", db_index=True)
    email = models.EmailField(blank=True, default="")
    address = models.TextField(blank=True, default="")
    area = models.CharField(max_length=100, blank=True, default="")
    route = models.ForeignKey(Route, null=True, blank=True, on_delete=models.SET_NULL, related_name="customers")
    subscription_type = models.CharField(max_length=20, choices=Subscription.choices, default=Subscription.DAILY)
    billing_cycle = models.CharField(max_length=20, choices=BillingCycle.choices, default=BillingCycle.MONTHLY)
    # Σ debit − Σ credit of the customer ledger; kept in sync by signals
    credit_balance = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    advance_balance = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    is_active = models.BooleanField(default=True, db_index=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Product(TimeStampedBy):
    name = models.CharField(max_length=150)
    category = models.CharField(max_length=50, default="milk")
    description = models.TextField(blank=True, default="")
    base_price = models.DecimalField(**DECIMAL_12_2, validators=[MinValueValidator(0)])
    unit = models.CharField(max_length=20, default="L")
    tax_percentage = models.DecimalField(**DECIMAL_5_2, default=ZERO)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.unit})"


class CustomerProduct(TimeStampedBy):
    """A standing subscription line: quantity of a product delivered on each scheduled day."""
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="subscriptions")
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="subscriptions")
    quantity = models.DecimalField(**DECIMAL_10_3, validators=[MinValueValidator(0)])
    custom_price = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        indexes = [models.Index(fields=["customer", "is_active"], name="idx_subscription_active")]

    def __str__(self):
        return f"{self.customer.name}: {self.quantity} {self.product.name}"

    @property
    def unit_price(self) -> Decimal:
        if self.custom_price is not None:
            return self.custom_price
        return self.product.base_price


class CustomerVacation(TimeStampedBy):
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="vacations")
    start_date = models.DateField()
    end_date = models.DateField()
    reason = models.CharField(max_length=255, blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-start_date"]

    def __str__(self):
        return f"{self.customer.name}: {self.start_date} → {self.end_date}"

    def clean(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({"end_date": "End date cannot be before start date."})


class CustomerAccount(TimeStampedBy):
    class Approval(models.TextChoices):
        PENDING  = "pending",  "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    customer = models.OneToOneField(Customer, null=True, blank=True, on_delete=models.SET_NULL, related_name="account")
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="customer_account",
    )
    phone = models.CharField(max_length=20, unique=True)
    pin_hash = models.CharField(max_length=255, blank=True, default="")
    is_approved = models.BooleanField(default=False, db_index=True)
    approval_status = models.CharField(max_length=20, choices=Approval.choices, default=Approval.PENDING)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="approved_customer_accounts",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    last_login = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.phone} ({self.get_approval_status_display()})"


# --------------------------------
# Deliveries
# --------------------------------
class Delivery(TimeStampedBy):
    class Status(models.TextChoices):
        PENDING   = "pending",   "Pending"
        DELIVERED = "delivered", "Delivered"
        MISSED    = "missed",    "Missed"
        PARTIAL   = "partial",   "Partial"

    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="deliveries")
    delivery_date = models.DateField(db_index=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    delivery_time = models.DateTimeField(null=True, blank=True)
    delivered_by = models.ForeignKey(StaffProfile, null=True, blank=True, on_delete=models.SET_NULL, related_name="deliveries")
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-delivery_date", "-id"]
        verbose_name_plural = "Deliveries"
        constraints = [
            UniqueConstraint(fields=["customer", "delivery_date"], name="uniq_delivery_customer_date"),
        ]

    def __str__(self):
        return f"{self.customer.name} {self.delivery_date} [{self.status}]"


class DeliveryItem(models.Model):
    delivery = models.ForeignKey(Delivery, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="delivery_items")
    quantity = models.DecimalField(**DECIMAL_10_3, validators=[MinValueValidator(0)])
    unit_price = models.DecimalField(**DECIMAL_12_2)
    total_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["id"]

    def save(self, *args, **kwargs):
        self.total_amount = ((self.quantity or 0) * (self.unit_price or 0)).quantize(Decimal("0.01"))
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.product.name} x {self.quantity}"


# --------------------------------
# Customer ledger, invoices, payments
# --------------------------------
class CustomerLedger(models.Model):
    """
    Append-mostly customer account. debit = amount owed (invoices),
    credit = amount received (payments). Zero amounts are stored as NULL.
    """
    class TxType(models.TextChoices):
        INVOICE         = "invoice",         "Invoice"
        PAYMENT         = "payment",         "Payment"
        ADJUSTMENT      = "adjustment",      "Adjustment"
        OPENING_BALANCE = "opening_balance", "Opening Balance"

    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="ledger_entries")
    transaction_date = models.DateField(default=timezone.localdate, db_index=True)
    transaction_type = models.CharField(max_length=20, choices=TxType.choices, db_index=True)
    description = models.CharField(max_length=255)
    debit_amount = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)
    credit_amount = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)
    running_balance = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    reference_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["transaction_date", "created_at", "id"]
        indexes = [
            models.Index(fields=["customer", "transaction_date", "created_at"], name="idx_ledger_customer_date"),
            models.Index(fields=["transaction_type", "reference_id"], name="idx_ledger_type_ref"),
        ]
        verbose_name_plural = "Customer ledger"

    def __str__(self):
        return f"{self.customer.name} {self.transaction_date} {self.description}"


class Invoice(TimeStampedBy):
    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PARTIAL = "partial", "Partial"
        PAID    = "paid",    "Paid"
        OVERDUE = "overdue", "Overdue"

    invoice_number = models.CharField(max_length=30, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="invoices")
    billing_period_start = models.DateField()
    billing_period_end = models.DateField()
    total_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    tax_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    discount_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    final_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True)
    paid_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    payment_date = models.DateField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True, db_index=True)
    upi_handle = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["customer", "billing_period_start", "billing_period_end"], name="idx_invoice_customer_period")]

    def __str__(self):
        return f"{self.invoice_number} — {self.customer.name} — {self.final_amount}"

    @property
    def remaining(self) -> Decimal:
        return max((self.final_amount or ZERO) - (self.paid_amount or ZERO), ZERO)

    def clean(self):
        if self.billing_period_start and self.billing_period_end and self.billing_period_end < self.billing_period_start:
            raise ValidationError({"billing_period_end": "Period end cannot be before period start."})
        if self.discount_amount and self.discount_amount < 0:
            raise ValidationError({"discount_amount": "Discount cannot be negative."})


class Payment(TimeStampedBy):
    class Mode(models.TextChoices):
        CASH          = "cash",          "Cash"
        UPI           = "upi",           "UPI"
        BANK_TRANSFER = "bank_transfer", "Bank Transfer"
        CHEQUE        = "cheque",        "Cheque"

    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="payments")
    invoice = models.ForeignKey(Invoice, null=True, blank=True, on_delete=models.SET_NULL, related_name="payments")
    amount = models.DecimalField(**DECIMAL_12_2, validators=[MinValueValidator(0)])
    payment_date = models.DateField(default=timezone.localdate, db_index=True)
    payment_mode = models.CharField(max_length=20, choices=Mode.choices, default=Mode.CASH)
    reference_number = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-payment_date", "-id"]

    def __str__(self):
        return f"{self.customer.name} — {self.amount} on {self.payment_date}"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError({"amount": "Amount must be positive."})
        if self.invoice_id and self.invoice.customer_id != self.customer_id:
            raise ValidationError({"invoice": "Invoice belongs to a different customer."})


# --------------------------------
# Milk procurement
# --------------------------------
class MilkVendor(TimeStampedBy):
    name = models.CharField(max_length=150)
    phone = models.CharField(max_length=20, blank=True, default="")
    address = models.TextField(blank=True, default="")
    area = models.CharField(max_length=100, blank=True, default="")
    # Σ procurement total − Σ vendor payments; kept in sync by signals
    current_balance = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class MilkProcurement(TimeStampedBy):
    class Session(models.TextChoices):
        MORNING = "morning", "Morning"
        EVENING = "evening", "Evening"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID    = "paid",    "Paid"

    vendor = models.ForeignKey(MilkVendor, null=True, blank=True, on_delete=models.SET_NULL, related_name="procurements")
    vendor_name = models.CharField(max_length=150, blank=True, default="")
    procurement_date = models.DateField(db_index=True)
    session = models.CharField(max_length=10, choices=Session.choices)
    quantity_liters = models.DecimalField(**DECIMAL_10_3, validators=[MinValueValidator(0)])
    fat_percentage = models.DecimalField(**DECIMAL_5_2, null=True, blank=True)
    snf_percentage = models.DecimalField(**DECIMAL_5_2, null=True, blank=True)
    rate_per_liter = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)
    total_amount = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-procurement_date", "-id"]
        verbose_name_plural = "Milk procurement"

    def __str__(self):
        return f"{self.vendor_name or self.vendor} {self.procurement_date} {self.quantity_liters}L"

    def save(self, *args, **kwargs):
        if self.vendor_id and not self.vendor_name:
            self.vendor_name = self.vendor.name
        if self.rate_per_liter is not None and self.quantity_liters is not None:
            self.total_amount = (self.quantity_liters * self.rate_per_liter).quantize(Decimal("0.01"))
        super().save(*args, **kwargs)


class VendorPayment(TimeStampedBy):
    vendor = models.ForeignKey(MilkVendor, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(**DECIMAL_12_2, validators=[MinValueValidator(0)])
    payment_date = models.DateField(default=timezone.localdate, db_index=True)
    payment_mode = models.CharField(max_length=20, choices=Payment.Mode.choices, default=Payment.Mode.CASH)
    reference_number = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-payment_date", "-id"]

    def __str__(self):
        return f"{self.vendor.name} — {self.amount}"


class PriceRule(TimeStampedBy):
    class AdjustmentType(models.TextChoices):
        FIXED      = "fixed",      "Fixed (₹/L)"
        PERCENTAGE = "percentage", "Percentage"

    name = models.CharField(max_length=150)
    product = models.ForeignKey(Product, null=True, blank=True, on_delete=models.SET_NULL, related_name="price_rules")
    min_fat_percentage = models.DecimalField(**DECIMAL_5_2, null=True, blank=True)
    max_fat_percentage = models.DecimalField(**DECIMAL_5_2, null=True, blank=True)
    min_snf_percentage = models.DecimalField(**DECIMAL_5_2, null=True, blank=True)
    max_snf_percentage = models.DecimalField(**DECIMAL_5_2, null=True, blank=True)
    price_adjustment = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    adjustment_type = models.CharField(max_length=12, choices=AdjustmentType.choices, default=AdjustmentType.FIXED)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.name

    def clean(self):
        for lo, hi in (("min_fat_percentage", "max_fat_percentage"), ("min_snf_percentage", "max_snf_percentage")):
            a, b = getattr(self, lo), getattr(self, hi)
            if a is not None and b is not None and a > b:
                raise ValidationError({hi: "Maximum must not be below minimum."})


# --------------------------------
# Staff payroll & expenses
# --------------------------------
class Employee(TimeStampedBy):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="employee_records")
    name = models.CharField(max_length=150)
    phone = models.CharField(max_length=20, blank=True, default="")
    address = models.TextField(blank=True, default="")
    role = models.CharField(max_length=30, choices=StaffRole.choices, default=StaffRole.FARM_WORKER)
    salary = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    joining_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class PayrollRecord(TimeStampedBy):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID    = "paid",    "Paid"

    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="payroll")
    pay_period_start = models.DateField(db_index=True)
    pay_period_end = models.DateField()
    base_salary = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    overtime_hours = models.DecimalField(**DECIMAL_10_3, null=True, blank=True)
    overtime_rate = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)
    bonus = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    deductions = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    net_salary = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    payment_status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    payment_date = models.DateField(null=True, blank=True)
    payment_mode = models.CharField(max_length=20, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-pay_period_start", "employee__name"]

    def __str__(self):
        return f"{self.employee.name} {self.pay_period_start} → {self.pay_period_end}"

    def compute_net(self) -> Decimal:
        overtime = (self.overtime_hours or 0) * (self.overtime_rate or 0)
        net = (self.base_salary or ZERO) + overtime + (self.bonus or ZERO) - (self.deductions or ZERO)
        return Decimal(net).quantize(Decimal("0.01"))

    def save(self, *args, **kwargs):
        self.net_salary = self.compute_net()
        super().save(*args, **kwargs)


class ExpenseCategory(models.TextChoices):
    FEED        = "feed",        "Feed"
    MEDICINE    = "medicine",    "Medicine"
    SALARY      = "salary",      "Salary"
    TRANSPORT   = "transport",   "Transport"
    ELECTRICITY = "electricity", "Electricity"
    MAINTENANCE = "maintenance", "Maintenance"
    MISC        = "misc",        "Miscellaneous"


class Expense(TimeStampedBy):
    title = models.CharField(max_length=255)
    category = models.CharField(max_length=20, choices=ExpenseCategory.choices, db_index=True)
    amount = models.DecimalField(**DECIMAL_12_2, validators=[MinValueValidator(0)])
    expense_date = models.DateField(default=timezone.localdate, db_index=True)
    cattle = models.ForeignKey(Cattle, null=True, blank=True, on_delete=models.SET_NULL, related_name="expenses")
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-expense_date", "-id"]

    def __str__(self):
        return f"{self.get_category_display()} — {self.title} — {self.amount}"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Amount must be positive.")


# --------------------------------
# Inventory: feed, equipment, bottles
# --------------------------------
class FeedInventory(TimeStampedBy):
    name = models.CharField(max_length=150)
    category = models.CharField(max_length=50)
    unit = models.CharField(max_length=20, default="kg")
    current_stock = models.DecimalField(**DECIMAL_10_3, default=ZERO)
    min_stock_level = models.DecimalField(**DECIMAL_10_3, default=ZERO)
    cost_per_unit = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)
    supplier = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Feed inventory"

    def __str__(self):
        return f"{self.name} ({self.current_stock} {self.unit})"

    @property
    def is_low(self):
        return self.current_stock < self.min_stock_level


class FeedConsumption(TimeStampedBy):
    feed = models.ForeignKey(FeedInventory, on_delete=models.CASCADE, related_name="consumption")
    cattle = models.ForeignKey(Cattle, null=True, blank=True, on_delete=models.SET_NULL, related_name="feed_consumption")
    consumption_date = models.DateField(db_index=True)
    quantity = models.DecimalField(**DECIMAL_10_3, validators=[MinValueValidator(0)])

    class Meta:
        ordering = ["-consumption_date", "-id"]

    def __str__(self):
        return f"{self.feed.name} {self.quantity} on {self.consumption_date}"


class Equipment(TimeStampedBy):
    class Status(models.TextChoices):
        ACTIVE      = "active",      "Active"
        MAINTENANCE = "maintenance", "Under Maintenance"
        RETIRED     = "retired",     "Retired"

    name = models.CharField(max_length=150)
    category = models.CharField(max_length=50)
    model = models.CharField(max_length=100, blank=True, default="")
    serial_number = models.CharField(max_length=100, blank=True, default="")
    purchase_date = models.DateField(null=True, blank=True)
    purchase_cost = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)
    warranty_expiry = models.DateField(null=True, blank=True)
    location = models.CharField(max_length=100, blank=True, default="")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Equipment"

    def __str__(self):
        return self.name


class MaintenanceRecord(TimeStampedBy):
    equipment = models.ForeignKey(Equipment, on_delete=models.CASCADE, related_name="maintenance")
    maintenance_type = models.CharField(max_length=50)
    maintenance_date = models.DateField(db_index=True)
    description = models.TextField(blank=True, default="")
    cost = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    performed_by = models.CharField(max_length=100, blank=True, default="")
    next_maintenance_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-maintenance_date", "-id"]

    def __str__(self):
        return f"{self.equipment.name} {self.maintenance_type} {self.maintenance_date}"


class Bottle(models.Model):
    class BottleType(models.TextChoices):
        GLASS   = "glass",   "Glass"
        PLASTIC = "plastic", "Plastic"

    class Size(models.TextChoices):
        ML_500 = "500ml", "500 ml"
        L_1    = "1L",    "1 L"
        L_2    = "2L",    "2 L"

    bottle_type = models.CharField(max_length=10, choices=BottleType.choices)
    size = models.CharField(max_length=10, choices=Size.choices)
    total_quantity = models.IntegerField(default=0)
    available_quantity = models.IntegerField(default=0)
    deposit_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["bottle_type", "size"]
        constraints = [UniqueConstraint(fields=["bottle_type", "size"], name="uniq_bottle_type_size")]

    def __str__(self):
        return f"{self.get_bottle_type_display()} {self.size}"


class CustomerBottle(models.Model):
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="bottles")
    bottle = models.ForeignKey(Bottle, on_delete=models.CASCADE, related_name="holders")
    quantity_pending = models.IntegerField(default=0)
    last_issued_date = models.DateField(null=True, blank=True)
    last_returned_date = models.DateField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [UniqueConstraint(fields=["customer", "bottle"], name="uniq_customer_bottle")]

    def __str__(self):
        return f"{self.customer.name}: {self.quantity_pending} x {self.bottle}"


class BottleTransaction(TimeStampedBy):
    class TxType(models.TextChoices):
        ISSUED   = "issued",   "Issued"
        RETURNED = "returned", "Returned"
        DAMAGED  = "damaged",  "Damaged"
        LOST     = "lost",     "Lost"

    bottle = models.ForeignKey(Bottle, on_delete=models.CASCADE, related_name="transactions")
    customer = models.ForeignKey(Customer, null=True, blank=True, on_delete=models.SET_NULL, related_name="bottle_transactions")
    transaction_type = models.CharField(max_length=10, choices=TxType.choices)
    transaction_date = models.DateField(db_index=True)
    quantity = models.PositiveIntegerField()
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-transaction_date", "-id"]

    def __str__(self):
        return f"{self.get_transaction_type_display()} {self.quantity} x {self.bottle}"


# --------------------------------
# Notifications
# --------------------------------
class TelegramConfig(TimeStampedBy):
    chat_id = models.CharField(max_length=64)
    label = models.CharField(max_length=100, blank=True, default="")
    is_active = models.BooleanField(default=True)
    notify_health_alerts = models.BooleanField(default=True)
    notify_inventory_alerts = models.BooleanField(default=True)
    notify_payments = models.BooleanField(default=True)
    notify_production = models.BooleanField(default=False)
    notify_procurement = models.BooleanField(default=False)
    notify_deliveries = models.BooleanField(default=False)
    notify_daily_summary = models.BooleanField(default=True)
    large_payment_threshold = models.DecimalField(**DECIMAL_12_2, default=Decimal("10000.00"))

    def __str__(self):
        return self.label or self.chat_id


class NotificationLog(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        SENT    = "sent",    "Sent"
        FAILED  = "failed",  "Failed"

    channel = models.CharField(max_length=20, default="telegram")
    recipient_type = models.CharField(max_length=50)
    recipient_id = models.CharField(max_length=64)
    recipient_contact = models.CharField(max_length=100, blank=True, default="")
    subject = models.CharField(max_length=255, blank=True, default="")
    body = models.TextField()
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["channel", "status"], name="idx_notification_channel_status")]

    def __str__(self):
        return f"{self.channel}:{self.recipient_type} [{self.status}]"
