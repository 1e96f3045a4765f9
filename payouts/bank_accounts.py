"""
Saved vendor payout destinations.

A vendor keeps any number of bank accounts and mobile money wallets, one of
them primary. Each is registered with Paystack once; the recipient code is
kept on the account and reused by every payout sent to it.
"""
from typing import Optional

from django.core.cache import cache
from django.db import transaction

from . import paystack
from .exceptions import InvalidPayoutAccount
from .models import VendorBankAccount
from .utils import log_transaction

BANK_LIST_CACHE_KEY = "payouts:banks:{country}"
BANK_LIST_CACHE_TTL = 60 * 60 * 24

RECIPIENT_TYPES = {
    VendorBankAccount.ACCOUNT_BANK: "ghipss",
    VendorBankAccount.ACCOUNT_MOBILE_MONEY: "mobile_money",
}


def get_vendor_bank_accounts(vendor):
    return VendorBankAccount.objects.filter(vendor=vendor)


def get_primary_bank_account(vendor) -> Optional[VendorBankAccount]:
    """The primary account, else the most recently added one."""
    return get_vendor_bank_accounts(vendor).first()


def get_payout_account(vendor, account_id=None) -> VendorBankAccount:
    """
    Account a payout goes to: ``account_id`` when given, the primary
    account otherwise. Raises InvalidPayoutAccount.
    """
    if account_id is None:
        account = get_primary_bank_account(vendor)
        if account is None:
            raise InvalidPayoutAccount("Add a payout account before requesting a withdrawal")
        return account

    account = get_vendor_bank_accounts(vendor).filter(pk=account_id).first()
    if account is None:
        raise InvalidPayoutAccount("Payout account not found")
    return account


def _clear_primary(vendor):
    VendorBankAccount.objects.filter(vendor=vendor, is_primary=True).update(is_primary=False)


def add_bank_account(*, vendor, account_type, account_name, account_number,
                     bank_name="", bank_code="", mobile_money_provider="",
                     is_primary=False) -> VendorBankAccount:
    """Save a destination. The first account of a vendor is always primary."""
    with transaction.atomic():
        is_first = not get_vendor_bank_accounts(vendor).exists()
        if is_primary and not is_first:
            _clear_primary(vendor)
        account = VendorBankAccount.objects.create(
            vendor=vendor,
            account_type=account_type,
            account_name=account_name,
            account_number=account_number,
            bank_name=bank_name or "",
            bank_code=bank_code or "",
            mobile_money_provider=mobile_money_provider or "",
            is_primary=is_primary or is_first,
        )

    log_transaction(f"Payout account {account.pk} added for vendor {vendor.pk}")
    return account


def set_primary_bank_account(vendor, account_id) -> VendorBankAccount:
    with transaction.atomic():
        account = get_payout_account(vendor, account_id)
        if not account.is_primary:
            _clear_primary(vendor)
            account.is_primary = True
            account.save(update_fields=["is_primary", "updated_at"])
    return account


def delete_bank_account(vendor, account_id):
    """
    Remove a saved destination. Payouts already sent to it keep their copy
    of the destination. When the primary goes, the newest remaining account
    takes its place.
    """
    with transaction.atomic():
        account = get_payout_account(vendor, account_id)
        was_primary = account.is_primary
        account.delete()
        if was_primary:
            successor = get_vendor_bank_accounts(vendor).order_by("-created_at", "-id").first()
            if successor is not None:
                successor.is_primary = True
                successor.save(update_fields=["is_primary", "updated_at"])

    log_transaction(f"Payout account {account_id} removed for vendor {vendor.pk}")


def create_recipient(*, account_type, name, account_number, bank_code, currency="GHS",
                     vendor_id=None) -> str:
    data = paystack.create_transfer_recipient(
        recipient_type=RECIPIENT_TYPES[account_type],
        name=name,
        account_number=account_number,
        bank_code=bank_code,
        currency=currency,
        metadata={"vendor_id": vendor_id} if vendor_id else None,
    )
    recipient_code = data.get("recipient_code")
    if not recipient_code:
        raise paystack.PaystackAPIError("Paystack did not return a recipient code")
    return recipient_code


def register_recipient(account: VendorBankAccount, currency="GHS") -> str:
    """
    Register the account as a Paystack transfer recipient, once.
    Marks the account verified. Raises PaystackAPIError.
    """
    if account.recipient_code:
        return account.recipient_code

    recipient_code = create_recipient(
        account_type=account.account_type,
        name=account.account_name,
        account_number=account.account_number,
        bank_code=account.destination_code,
        currency=currency,
        vendor_id=account.vendor_id,
    )
    account.recipient_code = recipient_code
    account.is_verified = True
    VendorBankAccount.objects.filter(pk=account.pk).update(
        recipient_code=recipient_code, is_verified=True
    )
    log_transaction(f"Payout account {account.pk} registered as {recipient_code}")
    return recipient_code


def list_banks(country: str = "ghana"):
    """Paystack's bank list, cached for a day."""
    key = BANK_LIST_CACHE_KEY.format(country=country)
    banks = cache.get(key)
    if banks is None:
        banks = [
            {"name": bank.get("name"), "code": bank.get("code"), "type": bank.get("type")}
            for bank in paystack.list_banks(country=country)
            if bank.get("active", True)
        ]
        cache.set(key, banks, BANK_LIST_CACHE_TTL)
    return banks
