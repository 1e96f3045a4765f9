# notifications/services.py
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import models, transaction
from django.utils import timezone

from .models import InAppNotifications, NotificationTypes, UserTypes, VISIBLE_TYPES
from .utils import CACHE_TTL, COUNT_CACHE_KEY, LIST_CACHE_KEY, invalidate_user_cache

User = get_user_model()

ORDER_STATUS_TITLES = {
    'pending': 'Order Placed Successfully',
    'confirmed': 'Order Confirmed',
    'processing': 'Order Processing',
    'shipped': 'Order Shipped',
    'delivered': 'Order Delivered',
    'cancelled': 'Order Cancelled',
}
ORDER_STATUS_MESSAGES = {
    'pending': 'Your order is pending and will be processed soon.',
    'confirmed': 'The vendor has confirmed your order.',
    'processing': 'Your order is being processed by the vendor.',
    'shipped': 'Great news! Your order has been shipped and is on its way.',
    'delivered': 'Your order has been delivered successfully.',
    'cancelled': 'Your order has been cancelled.',
}

PAYOUT_STATUS_TITLES = {
    'completed': 'Payout Completed',
    'failed': 'Payout Failed',
    'reversed': 'Payout Reversed',
}


def _create(*, user, user_type: str, type_: str, title: str, message: str,
            is_urgent=False, metadata=None, expires_at=None):
    return InAppNotifications.objects.create(
        user=user,
        user_type=user_type,
        phone=getattr(user, 'phone', '') or '',
        type=type_,
        title=title,
        message=message,
        is_urgent=is_urgent,
        metadata=metadata,
        expires_at=expires_at,
    )


@transaction.atomic
def create_order_update_notification(*, user_id: int, order_id: int, new_status: str):
    user = User.objects.get(pk=user_id)
    message = ORDER_STATUS_MESSAGES.get(new_status, f'Your order status has been updated to {new_status}.')
    return _create(
        user=user,
        user_type=UserTypes.BUYER,
        type_=NotificationTypes.ORDER_UPDATE,
        title=ORDER_STATUS_TITLES.get(new_status, "Order Status Updated"),
        message=f"{message} Order ID: #{order_id}",
        is_urgent=new_status in {'shipped', 'delivered', 'cancelled'},
        metadata={'order_id': order_id, 'status': new_status},
    )


@transaction.atomic
def create_payout_notification(*, payout, status: str):
    amount = f"{payout.currency} {payout.net_amount:.2f}"
    if status == 'completed':
        message = f"Your withdrawal of {amount} to {payout.destination_label} has been paid."
    elif status == 'failed':
        reason = payout.failure_reason or 'Transfer failed'
        message = f"Your withdrawal of {amount} could not be completed: {reason}. The amount is back in your balance."
    else:
        message = f"Your withdrawal of {amount} was reversed by the bank. Contact support for help."

    return _create(
        user=payout.vendor,
        user_type=UserTypes.VENDOR,
        type_=NotificationTypes.PAYMENT_UPDATE,
        title=PAYOUT_STATUS_TITLES.get(status, "Payout Updated"),
        message=message,
        is_urgent=status != 'completed',
        metadata={'payout_id': payout.pk, 'reference': payout.reference, 'status': status},
    )


def create_low_stock_notification(*, vendor, product, quantity: int, threshold: int):
    out_of_stock = quantity == 0
    if out_of_stock:
        title = 'Out of Stock Alert'
        message = (f'"{product.title}" is now out of stock. '
                   f'Update your inventory to continue receiving orders.')
    else:
        title = 'Low Stock Alert'
        message = (f'"{product.title}" has only {quantity} units left '
                   f'(threshold: {threshold}). Consider restocking soon.')

    return _create(
        user=vendor,
        user_type=UserTypes.VENDOR,
        type_=NotificationTypes.OUT_OF_STOCK_ALERT if out_of_stock else NotificationTypes.LOW_STOCK_ALERT,
        title=title,
        message=message,
        is_urgent=out_of_stock,
        metadata={'product_id': product.pk, 'quantity': quantity, 'threshold': threshold},
    )


def _visible(qs, user_type: str):
    qs = qs.filter(models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=timezone.now()))
    return qs.filter(type__in=VISIBLE_TYPES.get(user_type, []))


def get_user_notifications(*, user, user_type: str, unread_only: bool = False, limit: int = 50):
    key = LIST_CACHE_KEY.format(uid=user.id, utype=user_type, unread=int(unread_only), limit=limit)
    cached = cache.get(key)
    if cached is not None:
        return cached, True

    qs = _visible(InAppNotifications.objects.filter(user=user, user_type=user_type), user_type)
    if unread_only:
        qs = qs.filter(is_read=False)

    data = list(qs.values(
        'id', 'type', 'title', 'message', 'metadata', 'is_read', 'is_urgent', 'created_at', 'expires_at'
    )[:limit])

    cache.set(key, data, CACHE_TTL)
    return data, False


def get_unread_count(*, user, user_type: str):
    key = COUNT_CACHE_KEY.format(uid=user.id, utype=user_type)
    cached = cache.get(key)
    if cached is not None:
        return cached, True

    qs = _visible(InAppNotifications.objects.filter(user=user, user_type=user_type, is_read=False), user_type)
    count = qs.count()
    cache.set(key, count, CACHE_TTL)
    return count, False


@transaction.atomic
def mark_as_read(notification_id: int, *, user, user_type: str):
    updated = InAppNotifications.objects.filter(id=notification_id, user=user).update(is_read=True)
    invalidate_user_cache(user.id, user_type)
    return updated


@transaction.atomic
def mark_all_as_read(*, user, user_type: str):
    InAppNotifications.objects.filter(user=user, user_type=user_type, is_read=False).update(is_read=True)
    invalidate_user_cache(user.id, user_type)
