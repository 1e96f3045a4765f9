from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal

User = settings.AUTH_USER_MODEL


# These are the categories displayed under categories on the app
class Categories(models.Model):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True, null=True, blank=True)
    description = models.TextField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)

    # Fraction kept by the platform for sales in this category (0.05 == 5%).
    # NULL falls through to the platform default.
    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))],
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Categories"
        ordering = ['name']

    def __str__(self):
        return self.name


# Product model
class Products(models.Model):
    vendor = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="products_as_vendor",
        limit_choices_to={'role': 'vendor'},
        db_column='vendor_id'
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    regular_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        db_index=True
    )

    # Inventory
    quantity = models.PositiveIntegerField(default=0)
    track_quantity = models.BooleanField(default=True)

    category = models.ForeignKey(
        Categories,
        on_delete=models.PROTECT,
        related_name="products",
        db_column='category_id'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'productManagement_products'
        verbose_name_plural = "Products"
        indexes = [
            models.Index(fields=['title'], name='idx_product_title'),
            models.Index(fields=['category'], name='idx_product_category'),
            models.Index(fields=['vendor'], name='idx_product_vendor'),
            models.Index(fields=['vendor', 'track_quantity', 'quantity'], name='idx_product_vendor_stock'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} - {self.category.name}"

    def category_name(self):
        return self.category.name

    def vendor_name(self):
        return self.vendor.username if self.vendor else "Unknown"
