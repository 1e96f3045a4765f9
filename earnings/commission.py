"""
Commission rate resolution.

Priority:
1. Vendor-specific rate (VendorProfile.commission_rate)
2. Category rate (Categories.commission_rate)
3. Platform default (AppSettings "default_commission_rate")

A stored rate of 0 is a real zero-commission agreement. Only NULL falls
through to the next tier.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings
from django.db import models

from app_settings.models import AppSettings

from .exceptions import RateResolutionAmbiguous

logger = logging.getLogger(__name__)

DEFAULT_RATE_KEY = "default_commission_rate"

RATE_PLACES = Decimal("0.0001")
CENTS = Decimal("0.01")


class CommissionSource(models.TextChoices):
    VENDOR = "vendor", "Vendor override"
    CATEGORY = "category", "Category rate"
    DEFAULT = "default", "Platform default"


@dataclass(frozen=True)
class ResolvedRate:
    rate: Decimal
    source: str


def _as_decimal(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None


def is_rate_present(value) -> bool:
    """True for a finite rate within [0, 1]. Zero counts as present."""
    rate = _as_decimal(value)
    if rate is None or not rate.is_finite():
        return False
    return Decimal("0") <= rate <= Decimal("1")


def resolve_rate(vendor_rate, category_rate, default_rate) -> ResolvedRate:
    if is_rate_present(vendor_rate):
        return ResolvedRate(_as_decimal(vendor_rate), CommissionSource.VENDOR)
    if is_rate_present(category_rate):
        return ResolvedRate(_as_decimal(category_rate), CommissionSource.CATEGORY)
    if is_rate_present(default_rate):
        return ResolvedRate(_as_decimal(default_rate), CommissionSource.DEFAULT)
    raise RateResolutionAmbiguous(
        f"Platform default commission rate {default_rate!r} is not a usable rate"
    )


def normalize_rate(rate):
    """
    Validate an admin supplied rate and round it to 4 places.
    None is passed through and means "clear the override".
    """
    if rate is None:
        return None
    value = _as_decimal(rate)
    if value is None or not value.is_finite():
        raise ValueError("Commission rate must be a number")
    if value < 0 or value > 1:
        raise ValueError("Commission rate must be between 0 and 1 (0% to 100%)")
    return value.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def get_default_commission_rate() -> Decimal:
    fallback = Decimal(str(settings.DEFAULT_COMMISSION_RATE))
    stored = AppSettings.get_value(DEFAULT_RATE_KEY)
    if stored is None:
        return fallback

    rate = _as_decimal(stored)
    if not is_rate_present(rate):
        logger.warning("Ignoring unusable %s setting %r", DEFAULT_RATE_KEY, stored)
        return fallback
    return rate


def set_default_commission_rate(rate, updated_by=None) -> Decimal:
    if rate is None:
        raise ValueError("The platform default commission rate cannot be cleared")
    rate = normalize_rate(rate)
    AppSettings.set_value(DEFAULT_RATE_KEY, rate, updated_by=updated_by)
    logger.info("Default commission rate set to %s", rate)
    return rate


def set_vendor_commission_rate(vendor, rate):
    from accounts.models import VendorProfile

    rate = normalize_rate(rate)
    profile, _ = VendorProfile.objects.get_or_create(user=vendor)
    profile.commission_rate = rate
    profile.save(update_fields=["commission_rate", "updated_at"])
    logger.info("Vendor %s commission rate set to %s", vendor.pk, rate)
    return profile


def set_category_commission_rate(category, rate):
    category.commission_rate = normalize_rate(rate)
    category.save(update_fields=["commission_rate", "updated_at"])
    logger.info("Category %s commission rate set to %s", category.pk, category.commission_rate)
    return category


def get_vendor_rate(vendor):
    profile = getattr(vendor, "vendor_profile", None) if vendor is not None else None
    return profile.commission_rate if profile is not None else None


def get_commission_rates(vendor, category=None, default_rate=None) -> dict:
    """All three tiers for a vendor/category pair plus the one that applies."""
    if default_rate is None:
        default_rate = get_default_commission_rate()
    vendor_rate = get_vendor_rate(vendor)
    category_rate = category.commission_rate if category is not None else None
    resolved = resolve_rate(vendor_rate, category_rate, default_rate)
    return {
        "default_rate": default_rate,
        "category_rate": category_rate,
        "vendor_rate": vendor_rate,
        "effective_rate": resolved.rate,
        "source": resolved.source,
    }


def calculate_commission(subtotal, vendor, category=None) -> dict:
    subtotal = Decimal(str(subtotal))
    rates = get_commission_rates(vendor, category)
    commission_amount = (subtotal * rates["effective_rate"]).quantize(CENTS, rounding=ROUND_HALF_UP)
    return {
        "subtotal": subtotal,
        "commission_rate": rates["effective_rate"],
        "commission_amount": commission_amount,
        "vendor_earnings": subtotal - commission_amount,
        "source": rates["source"],
    }
