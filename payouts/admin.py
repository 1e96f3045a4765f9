from django.contrib import admin

from .models import Payout, PayoutEvent, VendorBankAccount


class PayoutEventInline(admin.TabularInline):
    model = PayoutEvent
    extra = 0
    can_delete = False
    readonly_fields = ["action", "from_status", "to_status", "actor", "note", "created_at"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    list_display = [
        "reference",
        "vendor",
        "amount",
        "fee",
        "net_amount",
        "status",
        "created_at",
    ]
    list_filter = ["status", "account_type", "currency", "created_at"]
    search_fields = ["reference", "transfer_code", "vendor__username", "vendor__business_name"]
    ordering = ["-created_at"]
    inlines = [PayoutEventInline]

    fieldsets = (
        ("Payout Info", {"fields": ("reference", "vendor", "status", "failure_reason")}),
        ("Financial Details", {"fields": ("amount", "fee", "net_amount", "currency")}),
        (
            "Destination",
            {
                "fields": (
                    "bank_account",
                    "account_type",
                    "bank_account_name",
                    "bank_name",
                    "bank_code",
                    "mobile_money_provider",
                    "account_number",
                )
            },
        ),
        ("Processor", {"fields": ("recipient_code", "transfer_code")}),
        ("Timestamps", {"fields": ("created_at", "updated_at", "processed_at"), "classes": ("collapse",)}),
    )

    def get_readonly_fields(self, request, obj=None):
        # Status only moves through the payout services
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        # Payouts are an audit trail
        return False


@admin.register(VendorBankAccount)
class VendorBankAccountAdmin(admin.ModelAdmin):
    list_display = [
        "vendor",
        "account_type",
        "account_name",
        "bank_name",
        "mobile_money_provider",
        "is_primary",
        "is_verified",
    ]
    list_filter = ["account_type", "is_primary", "is_verified"]
    search_fields = ["account_name", "account_number", "vendor__username", "vendor__business_name"]
    readonly_fields = ["recipient_code", "created_at", "updated_at"]
