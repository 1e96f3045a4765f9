import hashlib
import hmac
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings

from .exceptions import InvalidPayoutAmount

logger = logging.getLogger("payments")

TRANSFER_EVENTS = ("transfer.success", "transfer.failed", "transfer.reversed")


def verify_paystack_signature(headers: dict, raw_body: bytes) -> bool:
    """
    Paystack signs the raw request body with HMAC-SHA512 using the secret
    key and sends the hex digest in x-paystack-signature.
    """
    secret = getattr(settings, "PAYSTACK_SECRET_KEY", "")
    if not secret:
        logger.error("PAYSTACK_SECRET_KEY not configured, rejecting webhook")
        return False

    signature = headers.get("x-paystack-signature", "")
    if not signature:
        logger.error("No signature header found in webhook request")
        return False

    expected_signature = hmac.new(
        secret.encode("utf-8"), raw_body, hashlib.sha512
    ).hexdigest()

    is_valid = hmac.compare_digest(signature, expected_signature)
    if not is_valid:
        logger.error("Paystack webhook signature verification failed")
    return is_valid


def validate_paystack_payload(payload: dict) -> tuple[bool, str]:
    """
    Validate the basic structure of a Paystack webhook payload
    """
    if not isinstance(payload, dict):
        return False, "Payload must be a JSON object"

    event = payload.get("event")
    if not event:
        return False, "Missing required field: event"

    data = payload.get("data")
    if not isinstance(data, dict):
        return False, "Missing required field: data"

    if event in TRANSFER_EVENTS:
        reference = data.get("reference", "")
        if not reference or len(reference) > 64:
            return False, "Invalid transfer reference"

    return True, ""


def validate_payout_amount(amount, fee=Decimal("0.00")) -> tuple[Decimal, Decimal]:
    """
    Convert and check a withdrawal amount and its fee.
    Raises InvalidPayoutAmount.
    """
    try:
        amount = Decimal(str(amount))
        fee = Decimal(str(fee))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidPayoutAmount("Invalid amount")

    if not amount.is_finite() or not fee.is_finite():
        raise InvalidPayoutAmount("Invalid amount")
    if amount <= 0:
        raise InvalidPayoutAmount("Amount must be greater than zero")
    if amount != amount.quantize(Decimal("0.01")):
        raise InvalidPayoutAmount("Amount cannot have more than 2 decimal places")
    if fee < 0:
        raise InvalidPayoutAmount("Fee cannot be negative")
    if fee > amount:
        raise InvalidPayoutAmount("Fee cannot exceed the withdrawal amount")

    return amount, fee


def check_minimum_amount(amount: Decimal, available: Decimal):
    """
    Partial withdrawals must reach PAYOUT_MINIMUM_AMOUNT. Withdrawing the
    whole available balance is always allowed. Raises InvalidPayoutAmount.
    """
    minimum = settings.PAYOUT_MINIMUM_AMOUNT
    if amount < minimum and amount != available:
        raise InvalidPayoutAmount(
            f"Minimum withdrawal is {settings.PAYOUT_CURRENCY} {minimum:.2f}"
        )
