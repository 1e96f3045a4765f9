from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from .exceptions import InvalidStateTransition
from .models import Payout
from .paystack import PaystackAPIError
from .processor import sync_payout
from .selectors import stuck_processing_payouts
from .utils import log_transaction

# processing payouts untouched for this long are polled
SYNC_AFTER = timedelta(minutes=10)


@shared_task
def notify_vendor_payout_status(payout_id: int, status: str):
    from notifications.services import create_payout_notification

    payout = Payout.objects.select_related("vendor").get(pk=payout_id)
    create_payout_notification(payout=payout, status=status)


@shared_task
def sync_processing_payouts():
    """
    Poll Paystack for payouts still processing, in case a webhook was missed.
    """
    synced = 0
    for payout in stuck_processing_payouts(timezone.now() - SYNC_AFTER):
        try:
            updated = sync_payout(payout)
        except (PaystackAPIError, InvalidStateTransition) as e:
            log_transaction(f"Could not sync payout {payout.reference}: {e}", "warning")
            continue
        if updated is not None and updated.status != Payout.STATUS_PROCESSING:
            synced += 1
    log_transaction(f"Payout sync finished, {synced} payout(s) updated")
    return synced
