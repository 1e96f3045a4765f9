from django.urls import path
from . import views

from .views import CommissionSettingsView, VendorEarningsView

urlpatterns = [
    # Vendor endpoints (admins pass vendor_id or vendor_name)
    path("summary/", VendorEarningsView.as_view(), name="vendor_earnings"),
    path("balance/", views.vendor_balance, name="vendor_balance"),
    path("transactions/", views.vendor_transactions, name="vendor_transactions"),
    # Admin endpoints
    path("all-vendors/", views.all_vendors_stats, name="all_vendors_stats"),
    path("commission/", CommissionSettingsView.as_view(), name="commission_settings"),
    path("commission/preview/", views.commission_preview, name="commission_preview"),
]
