from django.contrib import admin
from .models import Categories, Products


@admin.register(Categories)
class CategoriesAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "commission_rate", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Products)
class ProductsAdmin(admin.ModelAdmin):
    list_display = [
        "title",
        "vendor",
        "category",
        "regular_price",
        "quantity",
        "track_quantity",
        "is_active",
    ]
    list_filter = ["is_active", "track_quantity", "category"]
    search_fields = ["title", "vendor__username", "vendor__business_name"]
    readonly_fields = ["created_at", "updated_at"]
