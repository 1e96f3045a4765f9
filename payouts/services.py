"""
Payout lifecycle.

    pending -> processing -> completed -> reversed
                          -> failed -> pending (retry)
    pending | processing -> cancelled

Every operation locks the payout row, checks the move against TRANSITIONS
and records a PayoutEvent. Balance checks hold the vendor lock so requests
for the same vendor are serialised.
"""
import threading
from contextlib import contextmanager
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import connection, transaction
from django.utils import timezone

from earnings.services import get_vendor_balance

from .bank_accounts import get_payout_account
from .exceptions import InsufficientBalance, InvalidStateTransition
from .models import Payout, PayoutEvent
from .utils import generate_reference, log_transaction
from .validators import check_minimum_amount, validate_payout_amount

User = get_user_model()

# In-process vendor locks for backends without SELECT ... FOR UPDATE
VENDOR_MUTEXES = tuple(threading.Lock() for _ in range(32))

ACTION_REQUEST = "request"
ACTION_SUBMIT = "submit"
ACTION_MARK_COMPLETED = "mark_completed"
ACTION_MARK_FAILED = "mark_failed"
ACTION_RETRY = "retry"
ACTION_CANCEL = "cancel"
ACTION_REVERSE = "reverse"

# action -> (statuses it may start from, status it ends in)
TRANSITIONS = {
    ACTION_SUBMIT: ({Payout.STATUS_PENDING}, Payout.STATUS_PROCESSING),
    ACTION_MARK_COMPLETED: ({Payout.STATUS_PROCESSING}, Payout.STATUS_COMPLETED),
    ACTION_MARK_FAILED: ({Payout.STATUS_PROCESSING}, Payout.STATUS_FAILED),
    ACTION_RETRY: ({Payout.STATUS_FAILED}, Payout.STATUS_PENDING),
    ACTION_CANCEL: ({Payout.STATUS_PENDING, Payout.STATUS_PROCESSING}, Payout.STATUS_CANCELLED),
    ACTION_REVERSE: ({Payout.STATUS_COMPLETED}, Payout.STATUS_REVERSED),
}

# Statuses the vendor is told about
NOTIFY_STATUSES = {Payout.STATUS_COMPLETED, Payout.STATUS_FAILED, Payout.STATUS_REVERSED}


def can_transition(status: str, action: str) -> bool:
    sources, _ = TRANSITIONS[action]
    return status in sources


def check_transition(payout: Payout, action: str) -> str:
    """Return the target status of ``action`` or raise InvalidStateTransition."""
    sources, target = TRANSITIONS[action]
    if payout.status not in sources:
        raise InvalidStateTransition(
            action=action, current=payout.status, target=target, payout_id=payout.pk
        )
    return target


def _lock_payout(payout_id) -> Payout:
    return Payout.objects.select_for_update().get(pk=payout_id)


def _lock_vendor(vendor_id):
    return User.objects.select_for_update().get(pk=vendor_id)


@contextmanager
def vendor_lock(vendor_id):
    """
    Open a transaction holding the vendor's balance lock and yield the
    locked vendor. The vendor row lock does the work where the database
    supports it; SQLite falls back to an in-process mutex per vendor.
    """
    if connection.features.has_select_for_update:
        with transaction.atomic():
            yield _lock_vendor(vendor_id)
        return

    with VENDOR_MUTEXES[int(vendor_id) % len(VENDOR_MUTEXES)]:
        with transaction.atomic():
            yield _lock_vendor(vendor_id)


def _record_event(payout, *, action, from_status, actor=None, note=""):
    return PayoutEvent.objects.create(
        payout=payout,
        action=action,
        from_status=from_status or "",
        to_status=payout.status,
        actor=actor,
        note=note or "",
    )


def _transition(payout, action, *, actor=None, note="", fields=()):
    """Move a locked payout to the target of ``action`` and save ``fields``."""
    from_status = payout.status
    payout.status = check_transition(payout, action)
    payout.save(update_fields=["status", "updated_at", *fields])
    _record_event(payout, action=action, from_status=from_status, actor=actor, note=note)

    log_transaction(
        f"Payout {payout.reference}: {from_status} -> {payout.status} ({action})"
    )

    if payout.status in NOTIFY_STATUSES:
        from .tasks import notify_vendor_payout_status

        payout_id, new_status = payout.pk, payout.status
        transaction.on_commit(
            lambda: notify_vendor_payout_status.delay(payout_id=payout_id, status=new_status)
        )
    return payout


def _ensure_funds(vendor, amount: Decimal):
    balance = get_vendor_balance(vendor)
    if amount > balance.available:
        log_transaction(
            f"Insufficient balance for vendor {vendor.pk}: "
            f"requested={amount}, available={balance.available}",
            "warning",
        )
        raise InsufficientBalance(
            requested=amount,
            available=balance.available,
            currency=settings.PAYOUT_CURRENCY,
        )
    return balance


def request_payout(*, vendor, amount, account_id=None, fee=None, actor=None) -> Payout:
    """
    Reserve ``amount`` of the vendor's withdrawable balance as a pending
    payout to one of the vendor's saved accounts (the primary one when
    ``account_id`` is None).

    The balance is checked before the withdrawal minimum, so a request
    the vendor cannot fund always fails with InsufficientBalance.
    """
    if fee is None:
        fee = settings.PAYOUT_FLAT_FEE
    amount, fee = validate_payout_amount(amount, fee)

    with vendor_lock(vendor.pk) as locked_vendor:
        account = get_payout_account(locked_vendor, account_id)
        balance = _ensure_funds(locked_vendor, amount)
        check_minimum_amount(amount, balance.available)

        payout = Payout.objects.create(
            vendor=locked_vendor,
            reference=generate_reference(),
            amount=amount,
            fee=fee,
            net_amount=amount - fee,
            currency=settings.PAYOUT_CURRENCY,
            status=Payout.STATUS_PENDING,
            bank_account=account,
            account_type=account.account_type,
            bank_account_name=account.account_name,
            bank_name=account.bank_name,
            bank_code=account.bank_code,
            mobile_money_provider=account.mobile_money_provider,
            account_number=account.account_number,
            recipient_code=account.recipient_code,
        )
        _record_event(payout, action=ACTION_REQUEST, from_status="", actor=actor or vendor)

    log_transaction(
        f"Payout requested: {payout.reference}, vendor={vendor.pk}, "
        f"amount={amount}, fee={fee}, net={payout.net_amount}"
    )
    return payout


def submit(payout_id, transfer_code: str, actor=None, recipient_code: str = "") -> Payout:
    with transaction.atomic():
        payout = _lock_payout(payout_id)
        check_transition(payout, ACTION_SUBMIT)
        payout.transfer_code = transfer_code or ""
        fields = ["transfer_code"]
        if recipient_code:
            payout.recipient_code = recipient_code
            fields.append("recipient_code")
        return _transition(payout, ACTION_SUBMIT, actor=actor, fields=fields)


def mark_completed(payout_id, processed_at=None, actor=None) -> Payout:
    with transaction.atomic():
        payout = _lock_payout(payout_id)
        check_transition(payout, ACTION_MARK_COMPLETED)
        payout.processed_at = processed_at or timezone.now()
        return _transition(payout, ACTION_MARK_COMPLETED, actor=actor, fields=["processed_at"])


def mark_failed(payout_id, reason: str, actor=None) -> Payout:
    with transaction.atomic():
        payout = _lock_payout(payout_id)
        check_transition(payout, ACTION_MARK_FAILED)
        payout.failure_reason = reason or "Transfer failed"
        return _transition(
            payout, ACTION_MARK_FAILED, actor=actor,
            note=payout.failure_reason, fields=["failure_reason"],
        )


def retry(payout_id, actor=None) -> Payout:
    """
    Put a failed payout back in the queue under a fresh reference. The
    amount is reserved again, so the vendor must still have the funds.
    """
    vendor_id = Payout.objects.values_list("vendor_id", flat=True).get(pk=payout_id)
    with vendor_lock(vendor_id) as vendor:
        payout = _lock_payout(payout_id)
        check_transition(payout, ACTION_RETRY)
        # a failed payout is not reserved, so available excludes it
        _ensure_funds(vendor, payout.amount)

        old_reference = payout.reference
        payout.reference = generate_reference(retry=True)
        payout.failure_reason = None
        payout.transfer_code = ""
        return _transition(
            payout, ACTION_RETRY, actor=actor,
            note=f"Previous reference {old_reference}",
            fields=["reference", "failure_reason", "transfer_code"],
        )


def cancel(payout_id, actor=None, reason: str = "") -> Payout:
    with transaction.atomic():
        payout = _lock_payout(payout_id)
        return _transition(payout, ACTION_CANCEL, actor=actor, note=reason)


def reverse(payout_id, actor=None, reason: str = "") -> Payout:
    with transaction.atomic():
        payout = _lock_payout(payout_id)
        return _transition(payout, ACTION_REVERSE, actor=actor, note=reason)

