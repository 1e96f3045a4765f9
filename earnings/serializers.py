from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import serializers

from orders.models import Order
from productManagement.models import Categories

User = get_user_model()


class VendorSerializer(serializers.ModelSerializer):
    """Serializer for vendor basic info"""

    class Meta:
        model = User
        fields = ["id", "username", "full_name", "business_name", "email", "phone"]


class OrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = [
            "id",
            "total_amount",
            "payment_method",
            "status",
            "created_at",
            "delivered_at",
        ]


class CategoryCommissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Categories
        fields = ["id", "name", "slug", "commission_rate"]


class VendorCommissionSerializer(serializers.ModelSerializer):
    commission_rate = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "business_name", "email", "commission_rate"]

    def get_commission_rate(self, obj):
        profile = getattr(obj, "vendor_profile", None)
        if profile is None or profile.commission_rate is None:
            return None
        return str(profile.commission_rate)


class CommissionUpdateSerializer(serializers.Serializer):
    TYPE_DEFAULT = "default"
    TYPE_CATEGORY = "category"
    TYPE_VENDOR = "vendor"

    type = serializers.ChoiceField(choices=[TYPE_DEFAULT, TYPE_CATEGORY, TYPE_VENDOR])
    rate = serializers.DecimalField(
        max_digits=10,
        decimal_places=6,
        min_value=Decimal("0"),
        max_value=Decimal("1"),
        allow_null=True,
        help_text="Fraction between 0 and 1; null clears a category or vendor rate",
    )
    category_id = serializers.IntegerField(required=False)
    vendor_id = serializers.IntegerField(required=False)

    def validate(self, attrs):
        kind = attrs["type"]
        if kind == self.TYPE_DEFAULT and attrs["rate"] is None:
            raise serializers.ValidationError({"rate": "The default rate cannot be cleared"})
        if kind == self.TYPE_CATEGORY and not attrs.get("category_id"):
            raise serializers.ValidationError({"category_id": "This field is required"})
        if kind == self.TYPE_VENDOR and not attrs.get("vendor_id"):
            raise serializers.ValidationError({"vendor_id": "This field is required"})
        return attrs
