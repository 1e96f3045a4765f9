# business logic, atomic and locked

import logging

from decimal import Decimal
from django.db import transaction
from django.utils import timezone

from rest_framework import serializers

from .models import Order, OrderItem

from productManagement.models import Products

logger = logging.getLogger(__name__)


def get_product(product_id: int, *, for_update: bool = False) -> Products:
    """
    Fetch an active product, optionally locking its row for a stock update.
    """
    qs = Products.objects.select_related('vendor', 'category')
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(id=product_id, is_active=True)
    except Products.DoesNotExist:
        raise serializers.ValidationError("This product does not exist!")


def _price_guard(calc_subtotal: Decimal, expected_subtotal: Decimal) -> None:
    if abs(calc_subtotal - expected_subtotal) > Decimal("0.01"):
        raise ValueError("Price mismatch with current product price")


# Creating an individual order
def create_individual_order(
    *, buyer_id: int, product_id: int, quantity: int,
    payment_method: str, delivery_address: str,
    subtotal: Decimal, delivery_fee: Decimal = Decimal("0.00"),
):
    with transaction.atomic():  # ensures all-or-nothing
        product = get_product(product_id, for_update=True)
        expected_subtotal = product.regular_price * quantity
        _price_guard(subtotal, expected_subtotal)

        if product.track_quantity and product.quantity < quantity:
            raise ValueError(f"Only {product.quantity} units of {product.title} left in stock")

        order = Order.objects.create(
            user_id=buyer_id,
            vendor_id=product.vendor_id,
            subtotal=expected_subtotal,
            delivery_fee=delivery_fee,
            total_amount=expected_subtotal + delivery_fee,
            payment_method=payment_method,
            delivery_address=delivery_address,
            status=Order.STATUS_PENDING,
        )
        OrderItem.objects.create(
            order=order,
            product=product,
            quantity=quantity,
            unit_price=product.regular_price,
            price=expected_subtotal,
        )

        if product.track_quantity:
            product.quantity -= quantity
            product.save(update_fields=["quantity", "updated_at"])

            # Side effects after commit (Celery task from notifications app)
            from notifications.tasks import check_product_stock_task
            transaction.on_commit(lambda: check_product_stock_task.delay(product.id))

    logger.info("Order #%s placed by buyer %s for product %s", order.id, buyer_id, product_id)
    return order


def update_order_status(*, order_id: int, new_status: str) -> Order:
    """
    Move an order along its fulfilment path. Illegal moves raise ValueError.
    """
    with transaction.atomic():
        order = Order.objects.select_for_update().get(id=order_id)

        if order.status == new_status:
            raise ValueError(f"Order #{order.id} is already {new_status}")
        if not order.can_transition_to(new_status):
            raise ValueError(f"Cannot move order #{order.id} from {order.status} to {new_status}")

        order.status = new_status
        update_fields = ["status", "updated_at"]
        if new_status == Order.STATUS_DELIVERED:
            order.delivered_at = timezone.now()
            update_fields.append("delivered_at")
        order.save(update_fields=update_fields)

    logger.info("Order #%s moved to %s", order.id, new_status)
    return order
