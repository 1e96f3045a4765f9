from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, VendorProfile


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ["username", "email", "role", "business_name", "status", "created_at"]
    list_filter = ["role", "status", "is_staff"]
    search_fields = ["username", "email", "business_name", "phone"]

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Marketplace", {"fields": ("full_name", "role", "phone", "business_name", "status")}),
    )


@admin.register(VendorProfile)
class VendorProfileAdmin(admin.ModelAdmin):
    list_display = [
        "user",
        "business_type",
        "commission_rate",
        "low_stock_alerts",
        "low_stock_threshold",
    ]
    list_filter = ["low_stock_alerts"]
    search_fields = ["user__username", "user__business_name"]
    readonly_fields = ["created_at", "updated_at"]
