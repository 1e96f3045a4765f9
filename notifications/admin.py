# notifications/admin.py
from django.contrib import admin
from .models import InAppNotifications, LowStockAlertRecord


@admin.register(InAppNotifications)
class InAppNotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'user_type', 'type', 'title', 'is_read', 'is_urgent', 'created_at', 'expires_at')
    list_filter = ('user_type', 'type', 'is_read', 'is_urgent', 'created_at')
    search_fields = ('title', 'message', 'phone', 'user__email', 'user__username')


@admin.register(LowStockAlertRecord)
class LowStockAlertRecordAdmin(admin.ModelAdmin):
    list_display = ('vendor', 'product', 'alert_type', 'last_alerted_at')
    list_filter = ('alert_type',)
    search_fields = ('vendor__username', 'product__title')
