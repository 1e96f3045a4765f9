"""
Glue between the payout lifecycle and Paystack.
"""
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from . import paystack, services
from .bank_accounts import create_recipient, register_recipient
from .models import Payout
from .selectors import get_payout_by_reference
from .utils import log_transaction

TRANSFER_SUCCESS = "transfer.success"
TRANSFER_FAILED = "transfer.failed"
TRANSFER_REVERSED = "transfer.reversed"

# Paystack transfer status -> webhook event carrying the same outcome
VERIFY_STATUS_EVENTS = {
    "success": TRANSFER_SUCCESS,
    "failed": TRANSFER_FAILED,
    "reversed": TRANSFER_REVERSED,
}


def ensure_recipient(payout: Payout) -> str:
    """
    Recipient code for the payout. Saved accounts are registered once and
    reuse their code; a payout whose account was removed registers its own
    copy of the destination.
    """
    if payout.recipient_code:
        return payout.recipient_code

    if payout.bank_account is not None:
        recipient_code = register_recipient(payout.bank_account, currency=payout.currency)
    else:
        bank_code = payout.bank_code
        if payout.account_type == Payout.ACCOUNT_MOBILE_MONEY:
            bank_code = payout.mobile_money_provider
        recipient_code = create_recipient(
            account_type=payout.account_type,
            name=payout.bank_account_name,
            account_number=payout.account_number,
            bank_code=bank_code,
            currency=payout.currency,
            vendor_id=payout.vendor_id,
        )

    payout.recipient_code = recipient_code
    Payout.objects.filter(pk=payout.pk).update(recipient_code=recipient_code)
    return recipient_code


def dispatch_payout(payout: Payout, actor=None) -> Payout:
    """
    Send a pending payout to Paystack and move it to processing.

    A PaystackAPIError leaves the payout pending and is re-raised; an admin
    can dispatch it again or cancel it.
    """
    services.check_transition(payout, services.ACTION_SUBMIT)

    try:
        recipient_code = ensure_recipient(payout)
        data = paystack.initiate_transfer(
            amount=payout.net_amount,
            recipient=recipient_code,
            reference=payout.reference,
            reason="KIOSK vendor payout",
            currency=payout.currency,
        )
    except paystack.PaystackAPIError as e:
        log_transaction(f"Transfer initiation failed for {payout.reference}: {e}", "error")
        raise

    payout = services.submit(
        payout.pk,
        transfer_code=data.get("transfer_code", ""),
        actor=actor,
        recipient_code=recipient_code,
    )

    # Paystack settles some transfers synchronously
    transfer_status = data.get("status")
    if transfer_status == "success":
        payout = services.mark_completed(payout.pk, actor=actor)
    elif transfer_status == "failed":
        payout = services.mark_failed(
            payout.pk, reason=data.get("reason") or "Transfer failed", actor=actor
        )
    return payout


def apply_transfer_event(event: str, data: dict):
    """
    Apply a Paystack transfer outcome to the payout with the same reference.
    Returns the updated payout, or None when no payout matches.
    Repeated or out of order events raise InvalidStateTransition.
    """
    reference = data.get("reference", "")
    payout = get_payout_by_reference(reference)
    if payout is None:
        log_transaction(f"No payout found for reference: {reference}", "warning")
        return None

    if event == TRANSFER_SUCCESS:
        processed_at = parse_datetime(data.get("transferred_at") or "") or timezone.now()
        return services.mark_completed(payout.pk, processed_at=processed_at)
    if event == TRANSFER_FAILED:
        return services.mark_failed(payout.pk, reason=data.get("reason") or "Transfer failed")
    if event == TRANSFER_REVERSED:
        return services.reverse(payout.pk, reason="Transfer was reversed by the bank")

    log_transaction(f"Unhandled transfer event {event} for {reference}", "warning")
    return None


def sync_payout(payout: Payout):
    """Ask Paystack for the outcome of a processing payout and apply it."""
    data = paystack.verify_transfer(payout.reference)
    event = VERIFY_STATUS_EVENTS.get(data.get("status"))
    if event is None:
        return payout
    data.setdefault("reference", payout.reference)
    return apply_transfer_event(event, data)
