from decimal import Decimal
from typing import Optional

from django.db.models import Count, Q, Sum

from .models import Payout

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def get_payout_by_reference(reference: str) -> Optional[Payout]:
    try:
        return Payout.objects.get(reference=reference)
    except Payout.DoesNotExist:
        return None


def vendor_payouts(vendor):
    return Payout.objects.filter(vendor=vendor).order_by("-created_at")


def admin_payouts(status: str = None, vendor_id=None):
    qs = Payout.objects.select_related("vendor").order_by("-created_at")
    if status:
        qs = qs.filter(status=status)
    if vendor_id:
        qs = qs.filter(vendor_id=vendor_id)
    return qs


def stuck_processing_payouts(older_than):
    return Payout.objects.filter(
        status=Payout.STATUS_PROCESSING, updated_at__lt=older_than
    ).order_by("updated_at")


def payout_stats() -> dict:
    completed = Q(status=Payout.STATUS_COMPLETED)
    in_flight = Q(status__in=Payout.RESERVED_STATUSES)
    failed = Q(status=Payout.STATUS_FAILED)
    reversed_ = Q(status=Payout.STATUS_REVERSED)

    row = Payout.objects.aggregate(
        total_paid_out=Sum("amount", filter=completed),
        total_pending=Sum("amount", filter=in_flight),
        total_failed=Sum("amount", filter=failed),
        total_reversed=Sum("amount", filter=reversed_),
        count_completed=Count("id", filter=completed),
        count_pending=Count("id", filter=in_flight),
        count_failed=Count("id", filter=failed),
        count_reversed=Count("id", filter=reversed_),
    )
    # two decimal places on every backend
    return {
        key: Decimal(str(value or ZERO)).quantize(CENTS) if key.startswith("total_") else value
        for key, value in row.items()
    }
