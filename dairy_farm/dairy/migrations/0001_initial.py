# Initial schema for the dairy app

import decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

ZERO = decimal.Decimal("0.00")


def money(**kwargs):
    return models.DecimalField(decimal_places=2, max_digits=12, **kwargs)


def qty(**kwargs):
    return models.DecimalField(decimal_places=3, max_digits=10, **kwargs)


def pct(**kwargs):
    return models.DecimalField(decimal_places=2, max_digits=5, **kwargs)


def stamps(model_name):
    return [
        ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
        ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
        ("created_by", models.ForeignKey(
            blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
            related_name=f"{model_name}_created", to=settings.AUTH_USER_MODEL)),
        ("updated_by", models.ForeignKey(
            blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
            related_name=f"{model_name}_updated", to=settings.AUTH_USER_MODEL)),
    ]


def pk():
    return ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"))


ROLE_CHOICES = [
    ("super_admin", "Super Admin"), ("manager", "Manager"), ("accountant", "Accountant"),
    ("delivery_staff", "Delivery Staff"), ("farm_worker", "Farm Worker"), ("vet_staff", "Vet Staff"),
    ("auditor", "Auditor"),
]
SESSION_CHOICES = [("morning", "Morning"), ("evening", "Evening")]
PAYMENT_MODE_CHOICES = [("cash", "Cash"), ("upi", "UPI"), ("bank_transfer", "Bank Transfer"), ("cheque", "Cheque")]
NON_NEGATIVE = [django.core.validators.MinValueValidator(0)]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="DairySettings",
            fields=[
                pk(),
                ("dairy_name", models.CharField(default="My Dairy", max_length=255)),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("address", models.TextField(blank=True, default="")),
                ("currency", models.CharField(default="INR", max_length=10)),
                ("invoice_prefix", models.CharField(default="INV", max_length=10)),
                ("financial_year_start", models.PositiveSmallIntegerField(default=4, help_text="Month number (4 = April)")),
                ("upi_handle", models.CharField(blank=True, default="", max_length=100)),
                ("extra", models.JSONField(blank=True, default=dict)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"verbose_name_plural": "Dairy Settings"},
        ),
        migrations.CreateModel(
            name="StaffProfile",
            fields=[
                pk(),
                *stamps("staffprofile"),
                ("user", models.OneToOneField(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="staff_profile", to=settings.AUTH_USER_MODEL)),
                ("full_name", models.CharField(db_index=True, max_length=150)),
                ("phone", models.CharField(max_length=20, unique=True)),
                ("role", models.CharField(choices=ROLE_CHOICES, db_index=True, default="farm_worker", max_length=30)),
                ("pin_hash", models.CharField(blank=True, default="", max_length=255)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
            ],
            options={"ordering": ["full_name"]},
        ),
        migrations.CreateModel(
            name="AuthAttempt",
            fields=[
                pk(),
                ("phone", models.CharField(max_length=20, unique=True)),
                ("failed_count", models.PositiveIntegerField(default=0)),
                ("last_attempt", models.DateTimeField(default=django.utils.timezone.now)),
                ("locked_until", models.DateTimeField(blank=True, null=True)),
            ],
        ),
        migrations.CreateModel(
            name="CustomerAuthAttempt",
            fields=[
                pk(),
                ("phone", models.CharField(max_length=20, unique=True)),
                ("failed_count", models.PositiveIntegerField(default=0)),
                ("last_attempt", models.DateTimeField(default=django.utils.timezone.now)),
                ("locked_until", models.DateTimeField(blank=True, null=True)),
            ],
        ),
        migrations.CreateModel(
            name="ActivityLog",
            fields=[
                pk(),
                ("user", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="activity_logs", to=settings.AUTH_USER_MODEL)),
                ("action", models.CharField(db_index=True, max_length=100)),
                ("entity_type", models.CharField(db_index=True, max_length=50)),
                ("entity_id", models.CharField(blank=True, default="", max_length=64)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("ip_address", models.CharField(blank=True, default="", max_length=64)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
        migrations.CreateModel(
            name="Cattle",
            fields=[
                pk(),
                *stamps("cattle"),
                ("tag_number", models.CharField(max_length=50, unique=True)),
                ("name", models.CharField(blank=True, default="", max_length=100)),
                ("breed", models.CharField(max_length=100)),
                ("cattle_type", models.CharField(
                    choices=[("cow", "Cow"), ("buffalo", "Buffalo"), ("bull", "Bull"), ("calf", "Calf")],
                    default="cow", max_length=20)),
                ("date_of_birth", models.DateField(blank=True, null=True)),
                ("status", models.CharField(
                    choices=[("active", "Active"), ("sold", "Sold"), ("deceased", "Deceased"), ("dry", "Dry")],
                    db_index=True, default="active", max_length=20)),
                ("lactation_status", models.CharField(
                    blank=True,
                    choices=[("lactating", "Lactating"), ("dry", "Dry"), ("pregnant", "Pregnant"), ("calving", "Calving")],
                    default="dry", max_length=20)),
                ("lactation_number", models.PositiveSmallIntegerField(default=0)),
                ("weight", qty(blank=True, null=True)),
                ("purchase_date", models.DateField(blank=True, null=True)),
                ("purchase_cost", money(blank=True, null=True)),
                ("last_calving_date", models.DateField(blank=True, null=True)),
                ("expected_calving_date", models.DateField(blank=True, null=True)),
                ("sire", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="sired", to="dairy.cattle")),
                ("dam", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="offspring", to="dairy.cattle")),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["tag_number"], "verbose_name_plural": "Cattle"},
        ),
        migrations.CreateModel(
            name="BreedingRecord",
            fields=[
                pk(),
                *stamps("breedingrecord"),
                ("cattle", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="breeding_records", to="dairy.cattle")),
                ("record_type", models.CharField(
                    choices=[
                        ("heat_detection", "Heat Detection"), ("artificial_insemination", "Artificial Insemination"),
                        ("pregnancy_check", "Pregnancy Check"), ("calving", "Calving"),
                    ],
                    db_index=True, max_length=30)),
                ("record_date", models.DateField(db_index=True)),
                ("heat_cycle_day", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("insemination_bull", models.CharField(blank=True, default="", max_length=100)),
                ("insemination_technician", models.CharField(blank=True, default="", max_length=100)),
                ("pregnancy_confirmed", models.BooleanField(blank=True, null=True)),
                ("expected_calving_date", models.DateField(blank=True, null=True)),
                ("actual_calving_date", models.DateField(blank=True, null=True)),
                ("calf_details", models.JSONField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["-record_date", "-id"]},
        ),
        migrations.CreateModel(
            name="CattleHealth",
            fields=[
                pk(),
                *stamps("cattlehealth"),
                ("cattle", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="health_records", to="dairy.cattle")),
                ("record_type", models.CharField(
                    choices=[
                        ("vaccination", "Vaccination"), ("treatment", "Treatment"),
                        ("checkup", "Checkup"), ("illness", "Illness"),
                    ],
                    db_index=True, max_length=20)),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("record_date", models.DateField(db_index=True)),
                ("next_due_date", models.DateField(blank=True, null=True)),
                ("vet_name", models.CharField(blank=True, default="", max_length=100)),
                ("cost", money(blank=True, null=True)),
            ],
            options={"ordering": ["-record_date", "-id"], "verbose_name_plural": "Cattle health records"},
        ),
        migrations.CreateModel(
            name="MilkProduction",
            fields=[
                pk(),
                *stamps("milkproduction"),
                ("cattle", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="production", to="dairy.cattle")),
                ("production_date", models.DateField(db_index=True)),
                ("session", models.CharField(choices=SESSION_CHOICES, max_length=10)),
                ("quantity_liters", qty(validators=NON_NEGATIVE)),
                ("fat_percentage", pct(blank=True, null=True)),
                ("snf_percentage", pct(blank=True, null=True)),
                ("quality_notes", models.CharField(blank=True, default="", max_length=255)),
            ],
            options={
                "ordering": ["-production_date", "session"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("cattle", "production_date", "session"), name="uniq_production_cattle_date_session"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Route",
            fields=[
                pk(),
                *stamps("route"),
                ("name", models.CharField(max_length=100)),
                ("area", models.CharField(blank=True, default="", max_length=100)),
                ("assigned_staff", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="routes", to="dairy.staffprofile")),
                ("sequence_order", models.PositiveIntegerField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={"ordering": ["sequence_order", "name"]},
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                pk(),
                *stamps("customer"),
                ("name", models.CharField(db_index=True, max_length=200)),
                ("phone", models.CharField(blank=True, db_index=True, default="", max_length=20)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("address", models.TextField(blank=True, default="")),
                ("area", models.CharField(blank=True, default="", max_length=100)),
                ("route", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="customers", to="dairy.route")),
                ("subscription_type", models.CharField(
                    choices=[("daily", "Daily"), ("alternate", "Alternate Days"), ("weekly", "Weekly"), ("custom", "Custom")],
                    default="daily", max_length=20)),
                ("billing_cycle", models.CharField(
                    choices=[("daily", "Daily"), ("weekly", "Weekly"), ("monthly", "Monthly")],
                    default="monthly", max_length=20)),
                ("credit_balance", money(default=ZERO)),
                ("advance_balance", money(default=ZERO)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                pk(),
                *stamps("product"),
                ("name", models.CharField(max_length=150)),
                ("category", models.CharField(default="milk", max_length=50)),
                ("description", models.TextField(blank=True, default="")),
                ("base_price", money(validators=NON_NEGATIVE)),
                ("unit", models.CharField(default="L", max_length=20)),
                ("tax_percentage", pct(default=ZERO)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="CustomerProduct",
            fields=[
                pk(),
                *stamps("customerproduct"),
                ("customer", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="subscriptions", to="dairy.customer")),
                ("product", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="subscriptions", to="dairy.product")),
                ("quantity", qty(validators=NON_NEGATIVE)),
                ("custom_price", money(blank=True, null=True)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
            ],
            options={
                "indexes": [models.Index(fields=["customer", "is_active"], name="idx_subscription_active")],
            },
        ),
        migrations.CreateModel(
            name="CustomerVacation",
            fields=[
                pk(),
                *stamps("customervacation"),
                ("customer", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="vacations", to="dairy.customer")),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("reason", models.CharField(blank=True, default="", max_length=255)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={"ordering": ["-start_date"]},
        ),
        migrations.CreateModel(
            name="CustomerAccount",
            fields=[
                pk(),
                *stamps("customeraccount"),
                ("customer", models.OneToOneField(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="account", to="dairy.customer")),
                ("user", models.OneToOneField(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="customer_account", to=settings.AUTH_USER_MODEL)),
                ("phone", models.CharField(max_length=20, unique=True)),
                ("pin_hash", models.CharField(blank=True, default="", max_length=255)),
                ("is_approved", models.BooleanField(db_index=True, default=False)),
                ("approval_status", models.CharField(
                    choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")],
                    default="pending", max_length=20)),
                ("approved_by", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="approved_customer_accounts", to=settings.AUTH_USER_MODEL)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("last_login", models.DateTimeField(blank=True, null=True)),
            ],
        ),
        migrations.CreateModel(
            name="Delivery",
            fields=[
                pk(),
                *stamps("delivery"),
                ("customer", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="deliveries", to="dairy.customer")),
                ("delivery_date", models.DateField(db_index=True)),
                ("status", models.CharField(
                    choices=[("pending", "Pending"), ("delivered", "Delivered"), ("missed", "Missed"), ("partial", "Partial")],
                    db_index=True, default="pending", max_length=20)),
                ("delivery_time", models.DateTimeField(blank=True, null=True)),
                ("delivered_by", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="deliveries", to="dairy.staffprofile")),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={
                "ordering": ["-delivery_date", "-id"],
                "verbose_name_plural": "Deliveries",
                "constraints": [
                    models.UniqueConstraint(fields=("customer", "delivery_date"), name="uniq_delivery_customer_date"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DeliveryItem",
            fields=[
                pk(),
                ("delivery", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="items", to="dairy.delivery")),
                ("product", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="delivery_items", to="dairy.product")),
                ("quantity", qty(validators=NON_NEGATIVE)),
                ("unit_price", money()),
                ("total_amount", money(default=ZERO)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="CustomerLedger",
            fields=[
                pk(),
                ("customer", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="ledger_entries", to="dairy.customer")),
                ("transaction_date", models.DateField(db_index=True, default=django.utils.timezone.localdate)),
                ("transaction_type", models.CharField(
                    choices=[
                        ("invoice", "Invoice"), ("payment", "Payment"),
                        ("adjustment", "Adjustment"), ("opening_balance", "Opening Balance"),
                    ],
                    db_index=True, max_length=20)),
                ("description", models.CharField(max_length=255)),
                ("debit_amount", money(blank=True, null=True)),
                ("credit_amount", money(blank=True, null=True)),
                ("running_balance", money(default=ZERO)),
                ("reference_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("created_by", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="+", to=settings.AUTH_USER_MODEL)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={
                "ordering": ["transaction_date", "created_at", "id"],
                "verbose_name_plural": "Customer ledger",
                "indexes": [
                    models.Index(fields=["customer", "transaction_date", "created_at"], name="idx_ledger_customer_date"),
                    models.Index(fields=["transaction_type", "reference_id"], name="idx_ledger_type_ref"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                pk(),
                *stamps("invoice"),
                ("invoice_number", models.CharField(max_length=30, unique=True)),
                ("customer", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="dairy.customer")),
                ("billing_period_start", models.DateField()),
                ("billing_period_end", models.DateField()),
                ("total_amount", money(default=ZERO)),
                ("tax_amount", money(default=ZERO)),
                ("discount_amount", money(default=ZERO)),
                ("final_amount", money(default=ZERO)),
                ("payment_status", models.CharField(
                    choices=[("pending", "Pending"), ("partial", "Partial"), ("paid", "Paid"), ("overdue", "Overdue")],
                    db_index=True, default="pending", max_length=10)),
                ("paid_amount", money(default=ZERO)),
                ("payment_date", models.DateField(blank=True, null=True)),
                ("due_date", models.DateField(blank=True, db_index=True, null=True)),
                ("upi_handle", models.CharField(blank=True, default="", max_length=100)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["customer", "billing_period_start", "billing_period_end"],
                        name="idx_invoice_customer_period"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                pk(),
                *stamps("payment"),
                ("customer", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="dairy.customer")),
                ("invoice", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="payments", to="dairy.invoice")),
                ("amount", money(validators=NON_NEGATIVE)),
                ("payment_date", models.DateField(db_index=True, default=django.utils.timezone.localdate)),
                ("payment_mode", models.CharField(choices=PAYMENT_MODE_CHOICES, default="cash", max_length=20)),
                ("reference_number", models.CharField(blank=True, default="", max_length=100)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["-payment_date", "-id"]},
        ),
        migrations.CreateModel(
            name="MilkVendor",
            fields=[
                pk(),
                *stamps("milkvendor"),
                ("name", models.CharField(max_length=150)),
                ("phone", models.CharField(blank=True, default="", max_length=20)),
                ("address", models.TextField(blank=True, default="")),
                ("area", models.CharField(blank=True, default="", max_length=100)),
                ("current_balance", money(default=ZERO)),
                ("is_active", models.BooleanField(default=True)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="MilkProcurement",
            fields=[
                pk(),
                *stamps("milkprocurement"),
                ("vendor", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="procurements", to="dairy.milkvendor")),
                ("vendor_name", models.CharField(blank=True, default="", max_length=150)),
                ("procurement_date", models.DateField(db_index=True)),
                ("session", models.CharField(choices=SESSION_CHOICES, max_length=10)),
                ("quantity_liters", qty(validators=NON_NEGATIVE)),
                ("fat_percentage", pct(blank=True, null=True)),
                ("snf_percentage", pct(blank=True, null=True)),
                ("rate_per_liter", money(blank=True, null=True)),
                ("total_amount", money(blank=True, null=True)),
                ("payment_status", models.CharField(
                    choices=[("pending", "Pending"), ("paid", "Paid")], default="pending", max_length=10)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["-procurement_date", "-id"], "verbose_name_plural": "Milk procurement"},
        ),
        migrations.CreateModel(
            name="VendorPayment",
            fields=[
                pk(),
                *stamps("vendorpayment"),
                ("vendor", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="payments", to="dairy.milkvendor")),
                ("amount", money(validators=NON_NEGATIVE)),
                ("payment_date", models.DateField(db_index=True, default=django.utils.timezone.localdate)),
                ("payment_mode", models.CharField(choices=PAYMENT_MODE_CHOICES, default="cash", max_length=20)),
                ("reference_number", models.CharField(blank=True, default="", max_length=100)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["-payment_date", "-id"]},
        ),
        migrations.CreateModel(
            name="PriceRule",
            fields=[
                pk(),
                *stamps("pricerule"),
                ("name", models.CharField(max_length=150)),
                ("product", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="price_rules", to="dairy.product")),
                ("min_fat_percentage", pct(blank=True, null=True)),
                ("max_fat_percentage", pct(blank=True, null=True)),
                ("min_snf_percentage", pct(blank=True, null=True)),
                ("max_snf_percentage", pct(blank=True, null=True)),
                ("price_adjustment", money(default=ZERO)),
                ("adjustment_type", models.CharField(
                    choices=[("fixed", "Fixed (₹/L)"), ("percentage", "Percentage")], default="fixed", max_length=12)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={"ordering": ["-created_at"]},
        ),
        migrations.CreateModel(
            name="Employee",
            fields=[
                pk(),
                *stamps("employee"),
                ("user", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="employee_records", to=settings.AUTH_USER_MODEL)),
                ("name", models.CharField(max_length=150)),
                ("phone", models.CharField(blank=True, default="", max_length=20)),
                ("address", models.TextField(blank=True, default="")),
                ("role", models.CharField(choices=ROLE_CHOICES, default="farm_worker", max_length=30)),
                ("salary", money(default=ZERO)),
                ("joining_date", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="PayrollRecord",
            fields=[
                pk(),
                *stamps("payrollrecord"),
                ("employee", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="payroll", to="dairy.employee")),
                ("pay_period_start", models.DateField(db_index=True)),
                ("pay_period_end", models.DateField()),
                ("base_salary", money(default=ZERO)),
                ("overtime_hours", qty(blank=True, null=True)),
                ("overtime_rate", money(blank=True, null=True)),
                ("bonus", money(default=ZERO)),
                ("deductions", money(default=ZERO)),
                ("net_salary", money(default=ZERO)),
                ("payment_status", models.CharField(
                    choices=[("pending", "Pending"), ("paid", "Paid")], default="pending", max_length=10)),
                ("payment_date", models.DateField(blank=True, null=True)),
                ("payment_mode", models.CharField(blank=True, default="", max_length=20)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["-pay_period_start", "employee__name"]},
        ),
        migrations.CreateModel(
            name="Expense",
            fields=[
                pk(),
                *stamps("expense"),
                ("title", models.CharField(max_length=255)),
                ("category", models.CharField(
                    choices=[
                        ("feed", "Feed"), ("medicine", "Medicine"), ("salary", "Salary"), ("transport", "Transport"),
                        ("electricity", "Electricity"), ("maintenance", "Maintenance"), ("misc", "Miscellaneous"),
                    ],
                    db_index=True, max_length=20)),
                ("amount", money(validators=NON_NEGATIVE)),
                ("expense_date", models.DateField(db_index=True, default=django.utils.timezone.localdate)),
                ("cattle", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="expenses", to="dairy.cattle")),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["-expense_date", "-id"]},
        ),
        migrations.CreateModel(
            name="FeedInventory",
            fields=[
                pk(),
                *stamps("feedinventory"),
                ("name", models.CharField(max_length=150)),
                ("category", models.CharField(max_length=50)),
                ("unit", models.CharField(default="kg", max_length=20)),
                ("current_stock", qty(default=ZERO)),
                ("min_stock_level", qty(default=ZERO)),
                ("cost_per_unit", money(blank=True, null=True)),
                ("supplier", models.CharField(blank=True, default="", max_length=150)),
            ],
            options={"ordering": ["name"], "verbose_name_plural": "Feed inventory"},
        ),
        migrations.CreateModel(
            name="FeedConsumption",
            fields=[
                pk(),
                *stamps("feedconsumption"),
                ("feed", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="consumption", to="dairy.feedinventory")),
                ("cattle", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="feed_consumption", to="dairy.cattle")),
                ("consumption_date", models.DateField(db_index=True)),
                ("quantity", qty(validators=NON_NEGATIVE)),
            ],
            options={"ordering": ["-consumption_date", "-id"]},
        ),
        migrations.CreateModel(
            name="Equipment",
            fields=[
                pk(),
                *stamps("equipment"),
                ("name", models.CharField(max_length=150)),
                ("category", models.CharField(max_length=50)),
                ("model", models.CharField(blank=True, default="", max_length=100)),
                ("serial_number", models.CharField(blank=True, default="", max_length=100)),
                ("purchase_date", models.DateField(blank=True, null=True)),
                ("purchase_cost", money(blank=True, null=True)),
                ("warranty_expiry", models.DateField(blank=True, null=True)),
                ("location", models.CharField(blank=True, default="", max_length=100)),
                ("status", models.CharField(
                    choices=[("active", "Active"), ("maintenance", "Under Maintenance"), ("retired", "Retired")],
                    default="active", max_length=20)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["name"], "verbose_name_plural": "Equipment"},
        ),
        migrations.CreateModel(
            name="MaintenanceRecord",
            fields=[
                pk(),
                *stamps("maintenancerecord"),
                ("equipment", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="maintenance", to="dairy.equipment")),
                ("maintenance_type", models.CharField(max_length=50)),
                ("maintenance_date", models.DateField(db_index=True)),
                ("description", models.TextField(blank=True, default="")),
                ("cost", money(default=ZERO)),
                ("performed_by", models.CharField(blank=True, default="", max_length=100)),
                ("next_maintenance_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["-maintenance_date", "-id"]},
        ),
        migrations.CreateModel(
            name="Bottle",
            fields=[
                pk(),
                ("bottle_type", models.CharField(choices=[("glass", "Glass"), ("plastic", "Plastic")], max_length=10)),
                ("size", models.CharField(choices=[("500ml", "500 ml"), ("1L", "1 L"), ("2L", "2 L")], max_length=10)),
                ("total_quantity", models.IntegerField(default=0)),
                ("available_quantity", models.IntegerField(default=0)),
                ("deposit_amount", money(default=ZERO)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["bottle_type", "size"],
                "constraints": [models.UniqueConstraint(fields=("bottle_type", "size"), name="uniq_bottle_type_size")],
            },
        ),
        migrations.CreateModel(
            name="CustomerBottle",
            fields=[
                pk(),
                ("customer", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="bottles", to="dairy.customer")),
                ("bottle", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="holders", to="dairy.bottle")),
                ("quantity_pending", models.IntegerField(default=0)),
                ("last_issued_date", models.DateField(blank=True, null=True)),
                ("last_returned_date", models.DateField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("customer", "bottle"), name="uniq_customer_bottle")],
            },
        ),
        migrations.CreateModel(
            name="BottleTransaction",
            fields=[
                pk(),
                *stamps("bottletransaction"),
                ("bottle", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="transactions", to="dairy.bottle")),
                ("customer", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="bottle_transactions", to="dairy.customer")),
                ("transaction_type", models.CharField(
                    choices=[("issued", "Issued"), ("returned", "Returned"), ("damaged", "Damaged"), ("lost", "Lost")],
                    max_length=10)),
                ("transaction_date", models.DateField(db_index=True)),
                ("quantity", models.PositiveIntegerField()),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["-transaction_date", "-id"]},
        ),
        migrations.CreateModel(
            name="TelegramConfig",
            fields=[
                pk(),
                *stamps("telegramconfig"),
                ("chat_id", models.CharField(max_length=64)),
                ("label", models.CharField(blank=True, default="", max_length=100)),
                ("is_active", models.BooleanField(default=True)),
                ("notify_health_alerts", models.BooleanField(default=True)),
                ("notify_inventory_alerts", models.BooleanField(default=True)),
                ("notify_payments", models.BooleanField(default=True)),
                ("notify_production", models.BooleanField(default=False)),
                ("notify_procurement", models.BooleanField(default=False)),
                ("notify_deliveries", models.BooleanField(default=False)),
                ("notify_daily_summary", models.BooleanField(default=True)),
                ("large_payment_threshold", money(default=decimal.Decimal("10000.00"))),
            ],
        ),
        migrations.CreateModel(
            name="NotificationLog",
            fields=[
                pk(),
                ("channel", models.CharField(default="telegram", max_length=20)),
                ("recipient_type", models.CharField(max_length=50)),
                ("recipient_id", models.CharField(max_length=64)),
                ("recipient_contact", models.CharField(blank=True, default="", max_length=100)),
                ("subject", models.CharField(blank=True, default="", max_length=255)),
                ("body", models.TextField()),
                ("status", models.CharField(
                    choices=[("pending", "Pending"), ("sent", "Sent"), ("failed", "Failed")],
                    db_index=True, default="pending", max_length=10)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["channel", "status"], name="idx_notification_channel_status")],
            },
        ),
    ]
