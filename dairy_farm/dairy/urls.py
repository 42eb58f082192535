# dairy/urls.py
from django.urls import path

from . import views

urlpatterns = [
    # Auth
    path("api/auth/staff/login/", views.staff_login_api, name="staff_login_api"),
    path("api/auth/logout/", views.logout_api, name="logout_api"),
    path("api/auth/customer/register/", views.customer_register_api, name="customer_register_api"),
    path("api/auth/customer/login/", views.customer_login_api, name="customer_login_api"),
    path("api/auth/change-pin/", views.change_pin_api, name="change_pin_api"),
    path("api/auth/bootstrap-admin/", views.bootstrap_admin_api, name="bootstrap_admin_api"),

    # Users (super admin)
    path("api/users/create/", views.create_user_api, name="create_user_api"),
    path("api/users/<int:pk>/reset-pin/", views.reset_user_pin_api, name="reset_user_pin_api"),
    path("api/users/<int:pk>/status/", views.update_user_status_api, name="update_user_status_api"),
    path("api/users/<int:pk>/delete/", views.delete_user_api, name="delete_user_api"),
    path("api/customer-accounts/<int:pk>/approve/", views.customer_account_decision_api,
         {"decision": "approve"}, name="approve_customer_account_api"),
    path("api/customer-accounts/<int:pk>/reject/", views.customer_account_decision_api,
         {"decision": "reject"}, name="reject_customer_account_api"),

    # Invoices & payments
    path("api/invoices/bulk-generate/", views.bulk_generate_invoices_api, name="bulk_generate_invoices_api"),
    path("api/invoices/smart/", views.smart_invoice_api, name="smart_invoice_api"),
    path("api/invoices/outstanding/", views.outstanding_api, name="outstanding_api"),
    path("api/invoices/export/", views.invoices_excel, name="invoices_excel"),
    path("api/invoices/<int:pk>/edit/", views.edit_invoice_api, name="edit_invoice_api"),
    path("api/invoices/<int:pk>/delete/", views.delete_invoice_api, name="delete_invoice_api"),
    path("api/invoices/<int:pk>/pdf/", views.invoice_pdf, name="invoice_pdf"),
    path("api/payments/record/", views.record_payment_api, name="record_payment_api"),

    # Ledger
    path("api/customers/<int:pk>/ledger/", views.ledger_statement_api, name="ledger_statement_api"),
    path("api/customers/<int:pk>/ledger/export/", views.ledger_excel, name="ledger_excel"),
    path("api/customers/<int:pk>/ledger/recalculate/", views.recalculate_ledger_api, name="recalculate_ledger_api"),

    # Customer portal
    path("api/me/deliveries/", views.customer_deliveries_api, name="customer_deliveries_api"),
    path("api/me/billing/", views.customer_billing_api, name="customer_billing_api"),
    path("api/me/subscriptions/", views.customer_subscriptions_api, name="customer_subscriptions_api"),
    path("api/me/subscriptions/<int:pk>/", views.customer_subscription_update_api,
         name="customer_subscription_update_api"),
    path("api/me/vacations/", views.customer_vacation_api, name="customer_vacation_api"),
    path("api/me/profile/", views.customer_profile_api, name="customer_profile_api"),

    # Integrity
    path("api/integrity/check/", views.integrity_check_api, name="integrity_check_api"),
    path("api/integrity/fix/", views.integrity_fix_api, name="integrity_fix_api"),
    path("api/accounts/orphans/", views.account_orphans_api, name="account_orphans_api"),
    path("api/accounts/orphans/cleanup/", views.account_orphans_cleanup_api, name="account_orphans_cleanup_api"),

    # Operations
    path("api/deliveries/auto-deliver/", views.auto_deliver_api, name="auto_deliver_api"),
    path("api/deliveries/summary/", views.delivery_summary_api, name="delivery_summary_api"),
    path("api/cattle/automation/", views.cattle_automation_api, name="cattle_automation_api"),
    path("api/production/totals/", views.production_totals_api, name="production_totals_api"),
    path("api/procurement/record/", views.record_procurement_api, name="record_procurement_api"),
    path("api/vendors/<int:pk>/payments/", views.vendor_payment_api, name="vendor_payment_api"),
    path("api/payroll/generate/", views.generate_payroll_api, name="generate_payroll_api"),
    path("api/payroll/<int:pk>/paid/", views.mark_payroll_paid_api, name="mark_payroll_paid_api"),
    path("api/inventory/feed/<int:pk>/purchase/", views.feed_stock_api, {"action": "purchase"}, name="feed_purchase_api"),
    path("api/inventory/feed/<int:pk>/consume/", views.feed_stock_api, {"action": "consume"}, name="feed_consume_api"),
    path("api/inventory/bottles/<int:pk>/transaction/", views.bottle_transaction_api, name="bottle_transaction_api"),

    # Archive & notifications
    path("api/archive/", views.archive_api, name="archive_api"),
    path("api/notifications/daily-summary/", views.daily_summary_api, name="daily_summary_api"),
]
