"""
Vendor earnings.

Earnings are never stored. They are folded on demand from the vendor's
orders: delivered orders are withdrawable ("completed"), open orders are
"pending" and cancelled orders are left out entirely.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Callable, Iterable, List, Optional

from django.db.models import Sum

from orders.models import Order
from payouts.models import Payout

from .commission import (
    CENTS,
    RATE_PLACES,
    ResolvedRate,
    get_default_commission_rate,
    get_vendor_rate,
    resolve_rate,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

BUCKET_PENDING = "pending"
BUCKET_COMPLETED = "completed"


def _money(value: Decimal) -> str:
    return str(value.quantize(CENTS, rounding=ROUND_HALF_UP))


def _rate(value: Decimal) -> str:
    return str(value.quantize(RATE_PLACES, rounding=ROUND_HALF_UP))


def classify_order(status: str) -> Optional[str]:
    """Bucket an order status falls into, or None when it is excluded."""
    if status == Order.STATUS_DELIVERED:
        return BUCKET_COMPLETED
    if status in Order.OPEN_STATUSES:
        return BUCKET_PENDING
    return None


@dataclass(frozen=True)
class OrderEarning:
    order_id: int
    status: str
    bucket: str
    gross: Decimal
    rate: Decimal
    source: str
    commission: Decimal
    net: Decimal

    def as_dict(self):
        return {
            "order_id": self.order_id,
            "status": self.status,
            "bucket": self.bucket,
            "gross": _money(self.gross),
            "commission_rate": _rate(self.rate),
            "commission_source": self.source,
            "commission": _money(self.commission),
            "net": _money(self.net),
        }


@dataclass
class EarningsSummary:
    vendor_id: int
    gross_sales: Decimal = ZERO
    commission: Decimal = ZERO
    total: Decimal = ZERO
    pending: Decimal = ZERO
    completed: Decimal = ZERO
    commission_rate: Decimal = ZERO
    commission_source: Optional[str] = None
    lines: List[OrderEarning] = field(default_factory=list)

    @property
    def order_count(self):
        return len(self.lines)

    def as_dict(self, include_lines=False):
        data = {
            "gross_sales": _money(self.gross_sales),
            "commission_rate": _rate(self.commission_rate),
            "commission_source": self.commission_source,
            "commission": _money(self.commission),
            "total": _money(self.total),
            "pending": _money(self.pending),
            "completed": _money(self.completed),
            "order_count": self.order_count,
        }
        if include_lines:
            data["orders"] = [line.as_dict() for line in self.lines]
        return data


def _summary_rate(lines, commission, gross_sales):
    """
    The rate shown on a summary. A single rate is reported as is; a mix of
    rates is reported as the effective rate with the source that carried
    the most gross sales.
    """
    rates = {(line.rate, line.source) for line in lines}
    if len(rates) == 1:
        return rates.pop()

    gross_by_source = defaultdict(lambda: ZERO)
    for line in lines:
        gross_by_source[line.source] += line.gross
    source = max(gross_by_source, key=lambda s: gross_by_source[s])

    if gross_sales == ZERO:
        return lines[0].rate, source
    return commission / gross_sales, source


def compute_earnings(
    vendor_id: int,
    orders: Iterable,
    rate_for: Callable[[object], ResolvedRate],
    fallback: Optional[ResolvedRate] = None,
) -> EarningsSummary:
    """
    Fold a vendor's orders into an EarningsSummary.

    ``rate_for(order)`` supplies the commission rate of one order. Orders
    belonging to other vendors are ignored. ``fallback`` is the rate
    reported when no order contributes.
    """
    summary = EarningsSummary(vendor_id=vendor_id)

    for order in orders:
        if order.vendor_id != vendor_id:
            continue
        bucket = classify_order(order.status)
        if bucket is None:
            continue

        resolved = rate_for(order)
        gross = Decimal(str(order.total_amount))
        commission = gross * resolved.rate
        net = gross - commission

        summary.lines.append(OrderEarning(
            order_id=order.id,
            status=order.status,
            bucket=bucket,
            gross=gross,
            rate=resolved.rate,
            source=resolved.source,
            commission=commission,
            net=net,
        ))
        summary.gross_sales += gross
        summary.commission += commission
        if bucket == BUCKET_COMPLETED:
            summary.completed += net
        else:
            summary.pending += net

    summary.total = summary.gross_sales - summary.commission

    if summary.lines:
        summary.commission_rate, summary.commission_source = _summary_rate(
            summary.lines, summary.commission, summary.gross_sales
        )
    elif fallback is not None:
        summary.commission_rate, summary.commission_source = fallback.rate, fallback.source

    return summary


def vendor_rate_resolver(vendor, default_rate=None):
    """
    Build a rate_for callable for one vendor. The vendor override and the
    platform default are read once; the category comes from each order's
    dominant line item.
    """
    if default_rate is None:
        default_rate = get_default_commission_rate()
    vendor_rate = get_vendor_rate(vendor)

    def rate_for(order):
        category = order.primary_category if order is not None else None
        category_rate = category.commission_rate if category is not None else None
        return resolve_rate(vendor_rate, category_rate, default_rate)

    return rate_for


def get_vendor_earnings(vendor, start=None, end=None) -> EarningsSummary:
    orders = (
        Order.objects.filter(vendor=vendor)
        .prefetch_related("items__product__category")
        .order_by("created_at", "id")
    )
    if start is not None:
        orders = orders.filter(created_at__gte=start)
    if end is not None:
        orders = orders.filter(created_at__lte=end)

    rate_for = vendor_rate_resolver(vendor)
    return compute_earnings(vendor.id, orders, rate_for, fallback=rate_for(None))


@dataclass(frozen=True)
class VendorBalance:
    vendor_id: int
    completed_earnings: Decimal
    pending_earnings: Decimal
    reserved: Decimal
    withdrawn: Decimal

    @property
    def available(self) -> Decimal:
        """
        Withdrawable amount in whole cents. Sub-cent earnings are truncated,
        never rounded up, so the shown figure can always be requested.
        """
        raw = self.completed_earnings - self.reserved - self.withdrawn
        return raw.quantize(CENTS, rounding=ROUND_DOWN)

    def as_dict(self):
        return {
            "completed_earnings": _money(self.completed_earnings),
            "pending_earnings": _money(self.pending_earnings),
            "reserved": _money(self.reserved),
            "withdrawn": _money(self.withdrawn),
            "available": _money(self.available),
        }


def _payout_total(vendor, statuses) -> Decimal:
    total = Payout.objects.filter(vendor=vendor, status__in=statuses).aggregate(
        total=Sum("amount")
    )["total"]
    return total or ZERO


def get_vendor_balance(vendor) -> VendorBalance:
    """
    Withdrawable balance: completed earnings minus payouts in flight and
    payouts already paid out. Reversed payouts stay counted as withdrawn.
    """
    earnings = get_vendor_earnings(vendor)
    return VendorBalance(
        vendor_id=vendor.id,
        completed_earnings=earnings.completed,
        pending_earnings=earnings.pending,
        reserved=_payout_total(vendor, Payout.RESERVED_STATUSES),
        withdrawn=_payout_total(vendor, Payout.WITHDRAWN_STATUSES),
    )
