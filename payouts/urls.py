from django.urls import path

from .views import (
    AdminCancelPayoutView,
    AdminPayoutListView,
    AdminPayoutStatsView,
    AdminRetryPayoutView,
    AdminSubmitPayoutView,
    BankListView,
    PaystackWebhookView,
    VendorBankAccountDetailView,
    VendorBankAccountListView,
    VendorPayoutView,
)

urlpatterns = [
    path("", VendorPayoutView.as_view(), name="vendor-payouts"),
    path("accounts/", VendorBankAccountListView.as_view(), name="vendor-bank-accounts"),
    path(
        "accounts/<int:account_id>/",
        VendorBankAccountDetailView.as_view(),
        name="vendor-bank-account-detail",
    ),
    path("banks/", BankListView.as_view(), name="payout-banks"),
    # Admin endpoints
    path("admin/", AdminPayoutListView.as_view(), name="admin-payouts"),
    path("admin/stats/", AdminPayoutStatsView.as_view(), name="admin-payout-stats"),
    path("admin/<int:payout_id>/submit/", AdminSubmitPayoutView.as_view(), name="admin-payout-submit"),
    path("admin/<int:payout_id>/retry/", AdminRetryPayoutView.as_view(), name="admin-payout-retry"),
    path("admin/<int:payout_id>/cancel/", AdminCancelPayoutView.as_view(), name="admin-payout-cancel"),
    # Processor callbacks
    path("webhooks/paystack/", PaystackWebhookView.as_view(), name="paystack-webhook"),
]
