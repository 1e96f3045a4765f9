from django.contrib import admin
from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ["product", "quantity", "unit_price", "price"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "vendor", "total_amount", "status", "created_at"]
    list_filter = ["status", "payment_method", "created_at"]
    search_fields = ["id", "user__username", "vendor__username", "vendor__business_name"]
    readonly_fields = ["created_at", "updated_at", "delivered_at"]
    inlines = [OrderItemInline]
