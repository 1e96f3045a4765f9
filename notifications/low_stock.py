"""
Low stock alerts for vendors.

An alert for a (vendor, product) pair is suppressed for
LOW_STOCK_ALERT_COOLDOWN_HOURS after the last one that was actually
delivered. Admins can bypass the cooldown with ``skip_cooldown``.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import timedelta
from smtplib import SMTPException
from typing import List, Optional

from django.conf import settings
from django.core.mail import send_mail
from django.db import DatabaseError, models, transaction
from django.utils import timezone

from productManagement.models import Products

from .models import LowStockAlertRecord, NotificationTypes
from .services import create_low_stock_notification

logger = logging.getLogger(__name__)


class AlertOutcome(models.TextChoices):
    SENT = 'sent', 'Sent'
    COOLDOWN_ACTIVE = 'cooldown_active', 'Cooldown active'
    DISABLED = 'disabled', 'Alerts disabled'
    FAILED = 'failed', 'Dispatch failed'


@dataclass
class LowStockAlertResult:
    product_id: int
    product_name: str
    vendor_id: int
    quantity: int
    threshold: int
    alert_type: str
    outcome: str
    email_sent: bool = False
    error: Optional[str] = None

    @property
    def notification_sent(self) -> bool:
        return self.outcome == AlertOutcome.SENT

    def as_dict(self):
        data = asdict(self)
        data['outcome'] = str(self.outcome)
        data['alert_type'] = str(self.alert_type)
        data['notification_sent'] = self.notification_sent
        return data


class LowStockCooldownTracker:
    """Per (vendor, product) alert cooldown backed by LowStockAlertRecord."""

    def __init__(self, cooldown: timedelta = None):
        if cooldown is None:
            cooldown = timedelta(hours=settings.LOW_STOCK_ALERT_COOLDOWN_HOURS)
        self.cooldown = cooldown

    def last_alerted_at(self, vendor_id, product_id):
        return (LowStockAlertRecord.objects
                .filter(vendor_id=vendor_id, product_id=product_id)
                .values_list('last_alerted_at', flat=True)
                .first())

    def should_alert(self, vendor_id, product_id, now, skip_cooldown: bool = False) -> bool:
        if skip_cooldown:
            return True
        last = self.last_alerted_at(vendor_id, product_id)
        if last is None:
            return True
        return now - last >= self.cooldown

    def record_alert(self, vendor_id, product_id, now, alert_type: str = ''):
        record, _ = LowStockAlertRecord.objects.update_or_create(
            vendor_id=vendor_id,
            product_id=product_id,
            defaults={'last_alerted_at': now, 'alert_type': alert_type},
        )
        return record


def _vendor_profile(vendor):
    return getattr(vendor, 'vendor_profile', None)


def vendor_alert_settings(vendor):
    """(alerts enabled, threshold, email enabled) for a vendor."""
    profile = _vendor_profile(vendor)
    if profile is None:
        return True, settings.LOW_STOCK_DEFAULT_THRESHOLD, True
    threshold = profile.low_stock_threshold
    if threshold is None:
        threshold = settings.LOW_STOCK_DEFAULT_THRESHOLD
    return profile.low_stock_alerts, threshold, profile.email_notifications


def _send_email(vendor, notification) -> bool:
    if not vendor.email:
        return False
    try:
        send_mail(
            subject=notification.title,
            message=notification.message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[vendor.email],
        )
    except (SMTPException, OSError) as e:
        logger.warning("Low stock email to vendor %s failed: %s", vendor.pk, e)
        return False
    return True


def send_low_stock_alert(product, quantity: int = None, threshold: int = None,
                         skip_cooldown: bool = False, tracker: LowStockCooldownTracker = None,
                         now=None) -> LowStockAlertResult:
    vendor = product.vendor
    tracker = tracker or LowStockCooldownTracker()
    now = now or timezone.now()

    enabled, vendor_threshold, email_enabled = vendor_alert_settings(vendor)
    quantity = product.quantity if quantity is None else quantity
    threshold = vendor_threshold if threshold is None else threshold

    result = LowStockAlertResult(
        product_id=product.pk,
        product_name=product.title,
        vendor_id=vendor.pk,
        quantity=quantity,
        threshold=threshold,
        alert_type=NotificationTypes.OUT_OF_STOCK_ALERT if quantity == 0 else NotificationTypes.LOW_STOCK_ALERT,
        outcome=AlertOutcome.DISABLED,
    )

    if not enabled:
        logger.info("Low stock alerts disabled for vendor %s", vendor.pk)
        return result

    if not tracker.should_alert(vendor.pk, product.pk, now, skip_cooldown=skip_cooldown):
        logger.info("Low stock alert already sent recently for product %s", product.pk)
        result.outcome = AlertOutcome.COOLDOWN_ACTIVE
        return result

    try:
        with transaction.atomic():
            notification = create_low_stock_notification(
                vendor=vendor, product=product, quantity=quantity, threshold=threshold
            )
    except DatabaseError as e:
        # no record, so the next check tries again
        logger.error("Failed to create low stock notification for product %s: %s", product.pk, e)
        result.outcome = AlertOutcome.FAILED
        result.error = str(e)
        return result

    tracker.record_alert(vendor.pk, product.pk, now, alert_type=result.alert_type)
    result.outcome = AlertOutcome.SENT
    logger.info("Low stock notification sent for product %s", product.pk)

    if email_enabled:
        result.email_sent = _send_email(vendor, notification)
    return result


def check_product_stock(product, tracker: LowStockCooldownTracker = None) -> Optional[LowStockAlertResult]:
    """Alert the vendor if a tracked, active product is at or below threshold."""
    if not product.track_quantity or not product.is_active:
        return None

    _, threshold, _ = vendor_alert_settings(product.vendor)
    if product.quantity > threshold:
        return None
    return send_low_stock_alert(product, product.quantity, threshold, tracker=tracker)


def run_low_stock_check(vendor_id=None) -> List[LowStockAlertResult]:
    products = (Products.objects
                .filter(track_quantity=True, is_active=True)
                .select_related('vendor', 'vendor__vendor_profile')
                .order_by('vendor_id', 'quantity'))
    if vendor_id:
        products = products.filter(vendor_id=vendor_id)

    tracker = LowStockCooldownTracker()
    results = []
    for product in products.iterator():
        result = check_product_stock(product, tracker=tracker)
        if result is not None:
            results.append(result)
    return results


def get_vendor_low_stock_products(vendor) -> list:
    _, threshold, _ = vendor_alert_settings(vendor)
    products = (Products.objects
                .filter(vendor=vendor, track_quantity=True, is_active=True, quantity__lte=threshold)
                .order_by('quantity', 'id'))
    return [
        {
            'id': p.pk,
            'title': p.title,
            'quantity': p.quantity,
            'threshold': threshold,
            'status': 'out_of_stock' if p.quantity == 0 else 'low_stock',
        }
        for p in products
    ]
