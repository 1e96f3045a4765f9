from celery import shared_task
from notifications.services import create_order_update_notification


@shared_task
def notify_buyer_on_status_change(*, buyer_id: int, order_id: int, status: str):
    create_order_update_notification(
        user_id=buyer_id,
        order_id=order_id,
        new_status=status,
    )
