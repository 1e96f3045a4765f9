from django.db import models
from django.conf import settings
from django.utils import timezone


class UserTypes(models.TextChoices):
    BUYER = 'buyer', 'Buyer'
    VENDOR = 'vendor', 'Vendor'
    ADMIN = 'admin', 'Admin'


class NotificationTypes(models.TextChoices):
    GENERAL            = 'general', 'General'
    ORDER_UPDATE       = 'order_update', 'Order Update'          # for buyers
    PAYMENT_UPDATE     = 'payment_update', 'Payment Update'      # payouts, for vendors
    LOW_STOCK_ALERT    = 'low_stock_alert', 'Low Stock Alert'
    OUT_OF_STOCK_ALERT = 'out_of_stock_alert', 'Out Of Stock Alert'


# Which notification types each side of the marketplace sees
VISIBLE_TYPES = {
    UserTypes.BUYER: [NotificationTypes.GENERAL, NotificationTypes.ORDER_UPDATE],
    UserTypes.VENDOR: [
        NotificationTypes.GENERAL,
        NotificationTypes.PAYMENT_UPDATE,
        NotificationTypes.LOW_STOCK_ALERT,
        NotificationTypes.OUT_OF_STOCK_ALERT,
    ],
    UserTypes.ADMIN: [NotificationTypes.GENERAL],
}


# In-app notification model
class InAppNotifications(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications'
    )

    user_type = models.CharField(max_length=12, choices=UserTypes.choices)
    phone = models.CharField(max_length=20, blank=True)

    type = models.CharField(max_length=32, choices=NotificationTypes.choices, db_index=True)
    title = models.CharField(max_length=255)
    message = models.TextField()

    is_read = models.BooleanField(default=False, db_index=True)
    is_urgent = models.BooleanField(default=False)

    # product / order / payout details for the client
    metadata = models.JSONField(null=True, blank=True)

    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['user', 'user_type'], name='idx_notif_user_type'),
            models.Index(fields=['type', 'is_read'], name='idx_notif_type_read'),
            models.Index(fields=['-created_at'], name='idx_notif_created'),
        ]
        ordering = ['-is_urgent', '-created_at']

    def __str__(self):
        return f"[{self.type}] {self.title} -> {self.user_id}"

    @property
    def is_expired(self):
        return bool(self.expires_at and self.expires_at <= timezone.now())


class LowStockAlertRecord(models.Model):
    """
    When a vendor was last alerted about a product. One row per
    (vendor, product); written only after an alert went out.
    """
    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='low_stock_alert_records'
    )
    product = models.ForeignKey(
        'productManagement.Products',
        on_delete=models.CASCADE,
        related_name='low_stock_alert_records'
    )
    alert_type = models.CharField(max_length=32, choices=NotificationTypes.choices, blank=True)
    last_alerted_at = models.DateTimeField()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['vendor', 'product'], name='uniq_low_stock_alert_vendor_product'),
        ]

    def __str__(self):
        return f"{self.vendor_id}/{self.product_id} alerted at {self.last_alerted_at}"
