from django.db import models
from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.core.validators import MinValueValidator, MaxValueValidator

from decimal import Decimal


# User roles
ROLES_DATA = (
    ('admin', 'Admin'),
    ('vendor', 'Vendor'),
    ('buyer', 'Buyer')
)

# status
STATUS_CHOICES = (
    ('active', 'Active'),
    ('inactive', 'Inactive'),
    ('suspended', 'Suspended'),
    ('pending', 'Pending'),
)


# User management model
class UserManager(DjangoUserManager):
    """
    Custom manager for the User model, extending Django's built-in UserManager.
    Provides convenience methods for querying users by their role.
    """

    def admins(self):
        return self.get_queryset().filter(role='admin')

    def vendors(self):
        return self.get_queryset().filter(role='vendor')

    def buyers(self):
        return self.get_queryset().filter(role='buyer')


# The user model
class User(AbstractUser):
    """
    Marketplace user. The role decides which side of the marketplace the
    account acts on: buyers place orders, vendors sell and withdraw earnings,
    admins configure commission and process payouts.
    """

    full_name = models.CharField(max_length=255, blank=True)

    email = models.EmailField(unique=True, blank=True, null=True)
    role = models.CharField(max_length=20, choices=ROLES_DATA, db_index=True)

    phone = models.CharField(max_length=20, blank=True, null=True, db_index=True)
    business_name = models.CharField(max_length=255, blank=True, null=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active', db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    class Meta:
        indexes = [
            models.Index(name='idx_user_role', fields=['role']),
            models.Index(name='idx_user_role_status', fields=['role', 'status']),
            models.Index(name='idx_user_username_role', fields=['username', 'role']),
        ]

    def __str__(self):
        return f"{self.full_name or self.username} ({self.role})"

    def save(self, *args, **kwargs):
        if self.email == '':
            self.email = None
        super().save(*args, **kwargs)

    @property
    def is_vendor(self):
        return self.role == 'vendor'

    @property
    def is_marketplace_admin(self):
        return self.role == 'admin'


class VendorProfile(models.Model):
    """
    Vendor specific settings.

    ``commission_rate`` is a negotiated override expressed as a fraction
    (0.03 == 3%). NULL means "no override"; 0 is a valid zero-commission deal.
    """

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='vendor_profile')
    business_type = models.CharField(max_length=100, blank=True, null=True)

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('1'))],
    )

    # Store notification preferences
    low_stock_alerts = models.BooleanField(default=True)
    low_stock_threshold = models.PositiveIntegerField(null=True, blank=True)
    email_notifications = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(name='idx_vendor_commission', fields=['commission_rate']),
        ]

    def __str__(self):
        return f"Vendor: {self.user.username} - {self.user.business_name}"
