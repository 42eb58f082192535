# dairy/admin.py
from django.contrib import admin, messages
from django.core.exceptions import ValidationError

from . import accounts
from .models import (
    ActivityLog, AuthAttempt, Bottle, BottleTransaction, BreedingRecord, Cattle, CattleHealth,
    Customer, CustomerAccount, CustomerAuthAttempt, CustomerBottle, CustomerLedger,
    CustomerProduct, CustomerVacation, DairySettings, Delivery, DeliveryItem, Employee,
    Equipment, Expense, FeedConsumption, FeedInventory, Invoice, MaintenanceRecord,
    MilkProcurement, MilkProduction, MilkVendor, NotificationLog, Payment, PayrollRecord,
    PriceRule, Product, Route, StaffProfile, TelegramConfig, VendorPayment,
)
from .services import payroll_service, procurement_service
from .services.invoice_service import effective_status
from .services.ledger_service import recalculate_ledger_balances

AUDIT_FIELDS = ("created_at", "updated_at", "created_by", "updated_by")


class TrackedAdmin(admin.ModelAdmin):
    """Stamps created_by / updated_by and runs model validation on save."""
    readonly_fields = AUDIT_FIELDS

    def save_model(self, request, obj, form, change):
        if not change and not obj.created_by_id:
            obj.created_by = request.user
        obj.updated_by = request.user
        obj.full_clean()
        super().save_model(request, obj, form, change)


@admin.register(DairySettings)
class DairySettingsAdmin(admin.ModelAdmin):
    list_display = ("dairy_name", "phone", "invoice_prefix", "upi_handle", "updated_at")

    def has_add_permission(self, request):
        return not DairySettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StaffProfile)
class StaffProfileAdmin(TrackedAdmin):
    list_display = ("full_name", "phone", "role", "is_active", "linked_username")
    list_select_related = ("user",)
    list_filter = ("role", "is_active")
    search_fields = ("full_name", "phone", "user__username")
    exclude = ("pin_hash",)

    @admin.display(description="Username", ordering="user__username")
    def linked_username(self, obj):
        return obj.user.username if obj.user_id else "—"


@admin.register(AuthAttempt, CustomerAuthAttempt)
class LoginAttemptAdmin(admin.ModelAdmin):
    list_display = ("phone", "failed_count", "last_attempt", "locked_until")
    search_fields = ("phone",)


@admin.register(CustomerAccount)
class CustomerAccountAdmin(admin.ModelAdmin):
    list_display = ("phone", "customer", "approval_status", "is_approved", "approved_at", "last_login")
    list_select_related = ("customer",)
    list_filter = ("approval_status", "is_approved")
    search_fields = ("phone", "customer__name")
    exclude = ("pin_hash",)
    actions = ("action_approve", "action_reject")

    def action_approve(self, request, queryset):
        approved = 0
        for account in queryset.select_related("customer", "user"):
            try:
                accounts.approve_customer_account(request.user, account)
            except ValidationError as e:
                self.message_user(request, f"{account.phone}: {' '.join(e.messages)}", level=messages.ERROR)
                continue
            approved += 1
        self.message_user(request, f"Approved {approved} account(s).", level=messages.SUCCESS)

    action_approve.short_description = "Approve selected customer accounts"

    def action_reject(self, request, queryset):
        for account in queryset:
            accounts.reject_customer_account(request.user, account)
        self.message_user(request, f"Rejected {queryset.count()} account(s).", level=messages.SUCCESS)

    action_reject.short_description = "Reject selected customer accounts"


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "user", "action", "entity_type", "entity_id")
    list_filter = ("action", "entity_type")
    search_fields = ("action", "entity_id", "user__username")
    date_hierarchy = "created_at"


# ---------- Farm ----------
class BreedingInline(admin.TabularInline):
    model = BreedingRecord
    fk_name = "cattle"
    extra = 0
    fields = ("record_type", "record_date", "pregnancy_confirmed", "expected_calving_date", "actual_calving_date")


@admin.register(Cattle)
class CattleAdmin(TrackedAdmin):
    list_display = ("tag_number", "name", "breed", "cattle_type", "status", "lactation_status", "lactation_number")
    list_filter = ("cattle_type", "status", "lactation_status")
    search_fields = ("tag_number", "name", "breed")
    inlines = [BreedingInline]


@admin.register(BreedingRecord)
class BreedingRecordAdmin(TrackedAdmin):
    list_display = ("cattle", "record_type", "record_date", "pregnancy_confirmed", "expected_calving_date")
    list_filter = ("record_type", ("record_date", admin.DateFieldListFilter))
    search_fields = ("cattle__tag_number",)


@admin.register(CattleHealth)
class CattleHealthAdmin(TrackedAdmin):
    list_display = ("cattle", "record_type", "title", "record_date", "next_due_date", "cost")
    list_filter = ("record_type", ("record_date", admin.DateFieldListFilter))
    search_fields = ("cattle__tag_number", "title", "vet_name")


@admin.register(MilkProduction)
class MilkProductionAdmin(TrackedAdmin):
    list_display = ("production_date", "session", "cattle", "quantity_liters", "fat_percentage", "snf_percentage")
    list_filter = ("session", ("production_date", admin.DateFieldListFilter))
    search_fields = ("cattle__tag_number",)
    date_hierarchy = "production_date"


# ---------- Customers ----------
class SubscriptionInline(admin.TabularInline):
    model = CustomerProduct
    extra = 0
    fields = ("product", "quantity", "custom_price", "is_active")


@admin.register(Route)
class RouteAdmin(TrackedAdmin):
    list_display = ("name", "area", "assigned_staff", "sequence_order", "is_active")
    list_filter = ("is_active",)


@admin.register(Customer)
class CustomerAdmin(TrackedAdmin):
    list_display = ("name", "phone", "area", "route", "subscription_type", "credit_balance", "is_active")
    list_filter = ("is_active", "subscription_type", "billing_cycle", "route")
    search_fields = ("name", "phone", "area")
    readonly_fields = AUDIT_FIELDS + ("credit_balance",)
    inlines = [SubscriptionInline]
    actions = ("action_recalculate_ledger",)

    def action_recalculate_ledger(self, request, queryset):
        for customer in queryset:
            recalculate_ledger_balances(customer)
        self.message_user(request, f"Recalculated ledger for {queryset.count()} customer(s).", level=messages.SUCCESS)

    action_recalculate_ledger.short_description = "Recalculate ledger balances"


@admin.register(Product)
class ProductAdmin(TrackedAdmin):
    list_display = ("name", "category", "base_price", "unit", "tax_percentage", "is_active")
    list_filter = ("category", "is_active")
    search_fields = ("name",)


@admin.register(CustomerVacation)
class CustomerVacationAdmin(TrackedAdmin):
    list_display = ("customer", "start_date", "end_date", "reason", "is_active")
    list_filter = ("is_active",)
    search_fields = ("customer__name",)


# ---------- Deliveries ----------
class DeliveryItemInline(admin.TabularInline):
    model = DeliveryItem
    extra = 0
    readonly_fields = ("total_amount",)


@admin.register(Delivery)
class DeliveryAdmin(TrackedAdmin):
    list_display = ("delivery_date", "customer", "status", "delivered_by", "delivery_time")
    list_filter = ("status", ("delivery_date", admin.DateFieldListFilter))
    search_fields = ("customer__name",)
    date_hierarchy = "delivery_date"
    inlines = [DeliveryItemInline]


# ---------- Billing ----------
@admin.register(CustomerLedger)
class CustomerLedgerAdmin(admin.ModelAdmin):
    list_display = ("transaction_date", "customer", "transaction_type", "description",
                    "debit_amount", "credit_amount", "running_balance")
    list_filter = ("transaction_type",)
    search_fields = ("customer__name", "description", "reference_id")
    date_hierarchy = "transaction_date"
    readonly_fields = ("running_balance", "created_at", "created_by")


@admin.register(Invoice)
class InvoiceAdmin(TrackedAdmin):
    list_display = ("invoice_number", "customer", "billing_period_start", "billing_period_end",
                    "final_amount", "paid_amount", "status_display", "due_date")
    list_filter = ("payment_status",)
    search_fields = ("invoice_number", "customer__name")
    readonly_fields = AUDIT_FIELDS + ("paid_amount",)

    @admin.display(description="Status", ordering="payment_status")
    def status_display(self, obj):
        return effective_status(obj).capitalize()


@admin.register(Payment)
class PaymentAdmin(TrackedAdmin):
    list_display = ("payment_date", "customer", "invoice", "amount", "payment_mode", "reference_number")
    list_filter = ("payment_mode", ("payment_date", admin.DateFieldListFilter))
    search_fields = ("customer__name", "reference_number", "invoice__invoice_number")


# ---------- Procurement ----------
@admin.register(MilkVendor)
class MilkVendorAdmin(TrackedAdmin):
    list_display = ("name", "phone", "area", "current_balance", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "phone")
    readonly_fields = AUDIT_FIELDS + ("current_balance",)


@admin.register(MilkProcurement)
class MilkProcurementAdmin(TrackedAdmin):
    list_display = ("procurement_date", "session", "vendor_name", "quantity_liters",
                    "rate_per_liter", "total_amount", "payment_status")
    list_filter = ("session", "payment_status", ("procurement_date", admin.DateFieldListFilter))
    search_fields = ("vendor_name", "vendor__name")
    readonly_fields = AUDIT_FIELDS + ("total_amount",)
    actions = ("action_mark_paid",)

    def action_mark_paid(self, request, queryset):
        paid = 0
        for procurement in queryset.select_related("vendor"):
            if procurement.payment_status != MilkProcurement.PaymentStatus.PAID:
                procurement_service.mark_procurement_paid(procurement, user=request.user)
                paid += 1
        self.message_user(request, f"Marked {paid} procurement(s) paid.", level=messages.SUCCESS)

    action_mark_paid.short_description = "Mark selected procurement paid"


@admin.register(VendorPayment)
class VendorPaymentAdmin(TrackedAdmin):
    list_display = ("payment_date", "vendor", "amount", "payment_mode", "reference_number")
    list_filter = ("payment_mode",)
    search_fields = ("vendor__name", "reference_number")


@admin.register(PriceRule)
class PriceRuleAdmin(TrackedAdmin):
    list_display = ("name", "product", "min_fat_percentage", "max_fat_percentage",
                    "min_snf_percentage", "max_snf_percentage", "price_adjustment", "adjustment_type", "is_active")
    list_filter = ("adjustment_type", "is_active")


# ---------- Staff & expenses ----------
@admin.register(Employee)
class EmployeeAdmin(TrackedAdmin):
    list_display = ("name", "phone", "role", "salary", "joining_date", "is_active")
    list_filter = ("role", "is_active")
    search_fields = ("name", "phone")


@admin.register(PayrollRecord)
class PayrollRecordAdmin(TrackedAdmin):
    list_display = ("employee", "pay_period_start", "pay_period_end", "base_salary", "net_salary",
                    "payment_status", "payment_date")
    list_filter = ("payment_status",)
    search_fields = ("employee__name",)
    readonly_fields = AUDIT_FIELDS + ("net_salary",)
    actions = ("action_mark_paid",)

    def action_mark_paid(self, request, queryset):
        paid = 0
        for record in queryset.select_related("employee"):
            try:
                payroll_service.mark_payroll_paid(record, user=request.user)
            except ValidationError:
                continue
            paid += 1
        self.message_user(request, f"Marked {paid} payroll record(s) paid.", level=messages.SUCCESS)

    action_mark_paid.short_description = "Mark selected payroll paid"


@admin.register(Expense)
class ExpenseAdmin(TrackedAdmin):
    list_display = ("expense_date", "category", "title", "amount", "cattle")
    list_filter = ("category", ("expense_date", admin.DateFieldListFilter))
    search_fields = ("title", "notes")
    date_hierarchy = "expense_date"


# ---------- Inventory ----------
@admin.register(FeedInventory)
class FeedInventoryAdmin(TrackedAdmin):
    list_display = ("name", "category", "current_stock", "min_stock_level", "unit", "cost_per_unit", "low")
    list_filter = ("category",)
    search_fields = ("name", "supplier")

    @admin.display(boolean=True, description="Low")
    def low(self, obj):
        return obj.is_low


@admin.register(FeedConsumption)
class FeedConsumptionAdmin(TrackedAdmin):
    list_display = ("consumption_date", "feed", "cattle", "quantity")
    list_filter = (("consumption_date", admin.DateFieldListFilter),)


class MaintenanceInline(admin.TabularInline):
    model = MaintenanceRecord
    extra = 0
    fields = ("maintenance_type", "maintenance_date", "cost", "performed_by", "next_maintenance_date")


@admin.register(Equipment)
class EquipmentAdmin(TrackedAdmin):
    list_display = ("name", "category", "model", "status", "purchase_date", "purchase_cost", "warranty_expiry")
    list_filter = ("status", "category")
    search_fields = ("name", "serial_number")
    inlines = [MaintenanceInline]


@admin.register(MaintenanceRecord)
class MaintenanceRecordAdmin(TrackedAdmin):
    list_display = ("maintenance_date", "equipment", "maintenance_type", "cost", "next_maintenance_date")
    search_fields = ("equipment__name", "maintenance_type")


@admin.register(Bottle)
class BottleAdmin(admin.ModelAdmin):
    list_display = ("bottle_type", "size", "total_quantity", "available_quantity", "deposit_amount")


@admin.register(CustomerBottle)
class CustomerBottleAdmin(admin.ModelAdmin):
    list_display = ("customer", "bottle", "quantity_pending", "last_issued_date", "last_returned_date")
    search_fields = ("customer__name",)


@admin.register(BottleTransaction)
class BottleTransactionAdmin(TrackedAdmin):
    list_display = ("transaction_date", "bottle", "customer", "transaction_type", "quantity")
    list_filter = ("transaction_type",)


# ---------- Notifications ----------
@admin.register(TelegramConfig)
class TelegramConfigAdmin(TrackedAdmin):
    list_display = ("label", "chat_id", "is_active", "notify_payments", "notify_daily_summary", "large_payment_threshold")
    list_filter = ("is_active",)


@admin.register(NotificationLog)
class NotificationLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "channel", "recipient_type", "recipient_contact", "status", "sent_at")
    list_filter = ("channel", "status")
    search_fields = ("recipient_contact", "body")
