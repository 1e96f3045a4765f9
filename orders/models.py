from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError


class OrderQuerySet(models.QuerySet):
    def update(self, **kwargs):
        # update() bypasses save()
        if "total_amount" in kwargs and self.filter(status=Order.STATUS_DELIVERED).exists():
            raise ValidationError("The total of a delivered order cannot be changed.")
        return super().update(**kwargs)


# Order model
class Order(models.Model):
    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_PROCESSING = "processing"
    STATUS_SHIPPED = "shipped"
    STATUS_DELIVERED = "delivered"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "pending"),
        (STATUS_CONFIRMED, "confirmed"),
        (STATUS_PROCESSING, "processing"),
        (STATUS_SHIPPED, "shipped"),
        (STATUS_DELIVERED, "delivered"),
        (STATUS_CANCELLED, "cancelled"),
    ]

    OPEN_STATUSES = frozenset({STATUS_PENDING, STATUS_CONFIRMED, STATUS_PROCESSING, STATUS_SHIPPED})
    TERMINAL_STATUSES = frozenset({STATUS_DELIVERED, STATUS_CANCELLED})

    # Fulfilment moves a vendor or admin may make
    ALLOWED_TRANSITIONS = {
        STATUS_PENDING: {STATUS_CONFIRMED, STATUS_CANCELLED},
        STATUS_CONFIRMED: {STATUS_PROCESSING, STATUS_CANCELLED},
        STATUS_PROCESSING: {STATUS_SHIPPED, STATUS_CANCELLED},
        STATUS_SHIPPED: {STATUS_DELIVERED},
        STATUS_DELIVERED: set(),
        STATUS_CANCELLED: set(),
    }

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="orders"
    )
    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="vendor_orders",
        limit_choices_to={'role': 'vendor'}
    )
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    delivery_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    payment_method = models.CharField(max_length=50)
    delivery_address = models.CharField(max_length=255)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING
    )
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OrderQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["user", "status"], name="idx_order_user_status"),
            models.Index(fields=["vendor", "status"], name="idx_order_vendor_status"),
            models.Index(fields=["vendor", "created_at"], name="idx_order_vendor_created"),
        ]

    def __str__(self):
        return f"Order #{self.pk}"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        # remember what was loaded so save() can guard the settled total
        instance._loaded_status = instance.__dict__.get("status")
        instance._loaded_total = instance.__dict__.get("total_amount")
        return instance

    def save(self, *args, **kwargs):
        loaded_status = getattr(self, "_loaded_status", None)
        loaded_total = getattr(self, "_loaded_total", None)
        if (
            self.pk
            and loaded_status == self.STATUS_DELIVERED
            and loaded_total is not None
            and self.total_amount != loaded_total
        ):
            raise ValidationError("The total of a delivered order cannot be changed.")
        super().save(*args, **kwargs)
        self._loaded_status = self.status
        self._loaded_total = self.total_amount

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in self.ALLOWED_TRANSITIONS.get(self.status, set())

    @property
    def primary_item(self):
        """
        The line item with the largest line total (first one on ties).
        Uses prefetched items when available.
        """
        best = None
        for item in self.items.all():
            if best is None or item.price > best.price:
                best = item
        return best

    @property
    def primary_category(self):
        item = self.primary_item
        if item is None or item.product is None:
            return None
        return item.product.category


# Order item model
class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        "productManagement.Products",
        on_delete=models.SET_NULL,
        null=True,
        related_name="order_items",
    )
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["order", "product"], name="idx_orderitem_order_product"),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.product_id} (Order #{self.order_id})"
