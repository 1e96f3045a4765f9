from django.conf import settings
from django.db import models


class VendorBankAccount(models.Model):
    """
    A saved payout destination of a vendor: a bank account or a mobile money
    wallet. recipient_code caches the Paystack transfer recipient so an
    account is registered once.
    """

    ACCOUNT_BANK = "bank"
    ACCOUNT_MOBILE_MONEY = "mobile_money"

    ACCOUNT_TYPE_CHOICES = [
        (ACCOUNT_BANK, "Bank Account"),
        (ACCOUNT_MOBILE_MONEY, "Mobile Money"),
    ]

    PROVIDER_CHOICES = [
        ("mtn", "MTN Mobile Money"),
        ("vodafone", "Vodafone Cash"),
        ("airteltigo", "AirtelTigo Money"),
    ]

    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bank_accounts",
        limit_choices_to={"role": "vendor"},
    )
    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPE_CHOICES)
    account_name = models.CharField(max_length=255)
    account_number = models.CharField(max_length=50)
    bank_name = models.CharField(max_length=255, blank=True)
    bank_code = models.CharField(max_length=20, blank=True)
    mobile_money_provider = models.CharField(max_length=20, choices=PROVIDER_CHOICES, blank=True)

    recipient_code = models.CharField(max_length=100, blank=True)
    is_primary = models.BooleanField(default=False)
    is_verified = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-is_primary", "-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["vendor"],
                condition=models.Q(is_primary=True),
                name="uniq_primary_bank_account",
            ),
        ]
        indexes = [
            models.Index(fields=["vendor", "is_primary"], name="idx_bank_account_vendor"),
        ]

    def __str__(self):
        return f"{self.vendor_id}: {self.destination_label}"

    @property
    def destination_code(self):
        """Bank code, or the provider code for mobile money wallets."""
        if self.account_type == self.ACCOUNT_MOBILE_MONEY:
            return self.mobile_money_provider
        return self.bank_code

    @property
    def destination_label(self):
        provider = self.bank_name or self.get_mobile_money_provider_display()
        return f"{self.account_name} - {provider} ({self.account_number})"




class Payout(models.Model):
    """
    A vendor withdrawal against their withdrawable earnings.
    Rows are never deleted; every status change is recorded as a PayoutEvent.
    """

    STATUS_PENDING = "pending"
    STATUS_PROCESSING = "processing"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"
    STATUS_REVERSED = "reversed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
        (STATUS_REVERSED, "Reversed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    # Amounts held against the vendor's balance
    RESERVED_STATUSES = (STATUS_PENDING, STATUS_PROCESSING)
    # Amounts that left the platform (a reversal is not restored)
    WITHDRAWN_STATUSES = (STATUS_COMPLETED, STATUS_REVERSED)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_REVERSED, STATUS_CANCELLED)

    ACCOUNT_BANK = VendorBankAccount.ACCOUNT_BANK
    ACCOUNT_MOBILE_MONEY = VendorBankAccount.ACCOUNT_MOBILE_MONEY
    ACCOUNT_TYPE_CHOICES = VendorBankAccount.ACCOUNT_TYPE_CHOICES

    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payouts",
        limit_choices_to={"role": "vendor"},
    )
    reference = models.CharField(max_length=64, unique=True)

    # Financial details
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    net_amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=8, default="GHS")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    # Destination, copied from the saved account when the payout is requested
    bank_account = models.ForeignKey(
        VendorBankAccount,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payouts",
    )
    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPE_CHOICES)
    bank_account_name = models.CharField(max_length=255)
    bank_name = models.CharField(max_length=255, blank=True)
    bank_code = models.CharField(max_length=20, blank=True)
    mobile_money_provider = models.CharField(max_length=50, blank=True)
    account_number = models.CharField(max_length=50)

    # Processor details
    recipient_code = models.CharField(max_length=100, blank=True)
    transfer_code = models.CharField(max_length=100, blank=True)
    failure_reason = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["vendor", "status"], name="idx_payout_vendor_status"),
            models.Index(fields=["vendor", "created_at"], name="idx_payout_vendor_created"),
            models.Index(fields=["status"], name="idx_payout_status"),
        ]

    def __str__(self):
        return f"Payout {self.reference} to {self.vendor_id} - {self.currency} {self.amount} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def destination_label(self):
        provider = self.bank_name or self.mobile_money_provider
        return f"{self.bank_account_name} - {provider} ({self.account_number})"


class PayoutEvent(models.Model):
    """Audit trail of payout status changes."""

    payout = models.ForeignKey(Payout, on_delete=models.PROTECT, related_name="events")
    action = models.CharField(max_length=30)
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payout_events",
    )
    note = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["payout", "created_at"], name="idx_payout_event_created"),
        ]

    def __str__(self):
        return f"{self.payout_id}: {self.from_status or '-'} -> {self.to_status} ({self.action})"
