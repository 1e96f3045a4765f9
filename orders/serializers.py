from rest_framework import serializers
from .models import Order, OrderItem


class UpdateOrderStatusSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    new_status = serializers.ChoiceField(
        choices=[
            (Order.STATUS_CONFIRMED, "confirmed"),
            (Order.STATUS_PROCESSING, "processing"),
            (Order.STATUS_SHIPPED, "shipped"),
            (Order.STATUS_DELIVERED, "delivered"),
            (Order.STATUS_CANCELLED, "cancelled"),
        ]
    )


class OrderCreateSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)
    payment_method = serializers.ChoiceField(
        choices=["mobile_money", "card", "cash_on_delivery", "bank_transfer"]
    )
    delivery_address = serializers.CharField(max_length=255)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    delivery_fee = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)


class OrderItemSerializer(serializers.ModelSerializer):
    product_title = serializers.CharField(source="product.title", read_only=True, default=None)

    class Meta:
        model = OrderItem
        fields = ["id", "product", "product_title", "quantity", "unit_price", "price"]


class OrderResponseSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "vendor",
            "subtotal",
            "delivery_fee",
            "total_amount",
            "payment_method",
            "status",
            "delivered_at",
            "created_at",
            "items",
        ]
