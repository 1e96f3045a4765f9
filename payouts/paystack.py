"""
Paystack Transfers API client used for vendor payouts.

Amounts are sent in the currency's minor unit (GHS x 100 = pesewas).
"""
import logging
import time
from decimal import Decimal, ROUND_HALF_UP

import requests
from django.conf import settings

logger = logging.getLogger("payments")

USER_AGENT = "Django-KioskPayouts/1.0"


class PaystackAPIError(Exception):
    """Custom exception for Paystack API errors"""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data


def to_minor_units(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount) -> Decimal:
    return (Decimal(str(amount)) / 100).quantize(Decimal("0.01"))


def _response_json(resp):
    try:
        return resp.json()
    except ValueError:
        return None


def make_paystack_request(
    method: str, path: str, data: dict = None, timeout: int = 30, retry_count: int = 1
) -> dict:
    """
    Make an authenticated request to Paystack and return the ``data`` member
    of the response. Timeouts and connection errors are retried with
    exponential backoff; HTTP errors are not.
    """
    secret_key = getattr(settings, "PAYSTACK_SECRET_KEY", "")
    if not secret_key:
        raise PaystackAPIError("Paystack secret key not configured")

    url = f"{settings.PAYSTACK_BASE_URL.rstrip('/')}/{path.lstrip('/')}"
    headers = {
        "Authorization": f"Bearer {secret_key}",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }

    for attempt in range(retry_count + 1):
        try:
            if method.upper() == "GET":
                resp = requests.get(url, headers=headers, params=data, timeout=timeout)
            elif method.upper() == "POST":
                resp = requests.post(url, headers=headers, json=data, timeout=timeout)
            else:
                raise PaystackAPIError(f"Unsupported HTTP method: {method}")

            resp.raise_for_status()

        except requests.exceptions.HTTPError as e:
            body = _response_json(e.response)
            message = (body or {}).get("message") or f"HTTP {e.response.status_code}"
            raise PaystackAPIError(message, e.response.status_code, body)

        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            if attempt == retry_count:
                raise PaystackAPIError(
                    f"Request failed after {retry_count + 1} attempts: {e}"
                )
            logger.warning(f"Paystack request to {path} failed (attempt {attempt + 1}): {e}")
            time.sleep(2**attempt)
            continue

        except requests.RequestException as e:
            raise PaystackAPIError(f"Request failed: {e}")

        body = _response_json(resp)
        if not isinstance(body, dict):
            raise PaystackAPIError("Invalid response from Paystack", resp.status_code)
        if not body.get("status"):
            raise PaystackAPIError(
                body.get("message") or "Paystack request failed", resp.status_code, body
            )
        return body.get("data") or {}

    raise PaystackAPIError("Max retry attempts exceeded")


def create_transfer_recipient(
    *,
    recipient_type: str,
    name: str,
    account_number: str,
    bank_code: str,
    currency: str = "GHS",
    metadata: dict = None,
) -> dict:
    """
    Register a bank account or mobile money wallet as a transfer recipient.
    ``recipient_type`` is "ghipss" for Ghanaian bank accounts and
    "mobile_money" for wallets.
    """
    payload = {
        "type": recipient_type,
        "name": name,
        "account_number": account_number,
        "bank_code": bank_code,
        "currency": currency,
    }
    if metadata:
        payload["metadata"] = metadata

    logger.info(f"Creating Paystack transfer recipient for {name}")
    return make_paystack_request("POST", "/transferrecipient", payload)


def initiate_transfer(
    *,
    amount,
    recipient: str,
    reference: str,
    reason: str = "Vendor payout",
    currency: str = "GHS",
) -> dict:
    """Initiate a balance transfer. ``amount`` is in major units."""
    payload = {
        "source": "balance",
        "amount": to_minor_units(amount),
        "recipient": recipient,
        "reference": reference,
        "reason": reason,
        "currency": currency,
    }
    logger.info(f"Initiating Paystack transfer: {reference}")
    # Not retried: a timed out transfer may still have been accepted
    return make_paystack_request("POST", "/transfer", payload, timeout=45, retry_count=0)


def verify_transfer(reference: str) -> dict:
    return make_paystack_request("GET", f"/transfer/verify/{reference}")


def list_banks(country: str = "ghana", currency: str = "GHS") -> list:
    """Banks and mobile money operators Paystack can pay out to."""
    data = make_paystack_request(
        "GET", "/bank", {"country": country, "currency": currency, "perPage": 100}
    )
    return data if isinstance(data, list) else []
