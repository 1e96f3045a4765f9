import logging
import uuid

from django.conf import settings
from django.http import HttpRequest

logger = logging.getLogger("payments")


def log_transaction(message: str, level: str = "info"):
    """Structured logging for money movement"""
    log_method = getattr(logger, level, logger.info)
    log_method(f"[PAYOUTS] {message}")


def get_client_ip(request: HttpRequest) -> str:
    """Extract client IP address from request, considering proxy headers"""
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR", "Unknown")
    return ip


def generate_reference(retry: bool = False) -> str:
    token = uuid.uuid4().hex[:16].upper()
    if retry:
        return f"PO-RETRY-{token}"
    return f"{settings.PAYOUT_REFERENCE_PREFIX}_{token}"
