# notifications/urls.py
from django.urls import path
from .views import (
    ListNotificationsView, UnreadCountView, MarkAsReadView, MarkAllAsReadView,
    VendorLowStockProductsView, LowStockAlertTestView,
)

urlpatterns = [
    path('', ListNotificationsView.as_view(), name='notif-list'),
    path('unread-count/', UnreadCountView.as_view(), name='notif-unread-count'),
    path('mark-read/', MarkAsReadView.as_view(), name='notif-mark-read'),
    path('mark-all-read/', MarkAllAsReadView.as_view(), name='notif-mark-all'),
    path('low-stock/', VendorLowStockProductsView.as_view(), name='notif-low-stock'),
    path('admin/test/low-stock-alert/', LowStockAlertTestView.as_view(), name='notif-test-low-stock'),
]
