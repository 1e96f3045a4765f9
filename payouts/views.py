import json

from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle
from rest_framework.views import APIView

from accounts.permissions import IsAdmin, IsVendor
from earnings.services import get_vendor_balance

from . import bank_accounts, services
from .exceptions import InvalidStateTransition, PayoutError
from .models import Payout, VendorBankAccount
from .paystack import PaystackAPIError
from .processor import apply_transfer_event, dispatch_payout
from .selectors import admin_payouts, payout_stats, vendor_payouts
from .serializers import (
    AdminPayoutSerializer,
    BankAccountActionSerializer,
    CancelPayoutSerializer,
    PayoutRequestSerializer,
    PayoutSerializer,
    SubmitPayoutSerializer,
    VendorBankAccountSerializer,
)
from .utils import get_client_ip, log_transaction
from .validators import verify_paystack_signature, validate_paystack_payload


class PayoutThrottle(UserRateThrottle):
    scope = "payout"


def _error(exc, status_code=None):
    return Response(
        {"status": "error", "message": str(exc)},
        status=status_code or getattr(exc, "status_code", status.HTTP_400_BAD_REQUEST),
    )


def _processor_error(exc: PaystackAPIError, payout: Payout):
    return Response(
        {
            "status": "error",
            "message": f"Transfer could not be initiated: {exc.message}",
            "payout": PayoutSerializer(payout).data,
        },
        status=status.HTTP_502_BAD_GATEWAY,
    )


class VendorPayoutView(APIView):
    """
    GET: balance and payout history of the requesting vendor.
    POST: request a withdrawal and send it to Paystack.
    """

    permission_classes = [IsVendor]

    def get_throttles(self):
        if self.request.method == "POST":
            return [PayoutThrottle()]
        return super().get_throttles()

    def get(self, request):
        balance = get_vendor_balance(request.user)
        payouts = vendor_payouts(request.user)[:50]
        return Response(
            {
                "status": "success",
                "balance": balance.as_dict(),
                "payouts": PayoutSerializer(payouts, many=True).data,
            }
        )

    def post(self, request):
        client_ip = get_client_ip(request)
        serializer = PayoutRequestSerializer(data=request.data)
        if not serializer.is_valid():
            log_transaction(
                f"Invalid payout request from {client_ip}: {serializer.errors}", "warning"
            )
            return Response(
                {"status": "error", "message": "Invalid input", "errors": serializer.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            payout = services.request_payout(
                vendor=request.user,
                amount=serializer.validated_data["amount"],
                account_id=serializer.validated_data.get("account_id"),
            )
        except PayoutError as e:
            return _error(e)

        log_transaction(f"Payout {payout.reference} requested from {client_ip}")

        try:
            payout = dispatch_payout(payout, actor=request.user)
        except PaystackAPIError as e:
            return _processor_error(e, payout)

        return Response(
            {
                "status": "success",
                "message": "Withdrawal request submitted",
                "payout": PayoutSerializer(payout).data,
            },
            status=status.HTTP_201_CREATED,
        )


class VendorBankAccountListView(APIView):
    """
    GET: the vendor's saved payout accounts, primary first.
    POST: save a bank account or mobile money wallet.
    """

    permission_classes = [IsVendor]

    def get(self, request):
        accounts = bank_accounts.get_vendor_bank_accounts(request.user)
        return Response(
            {"status": "success", "accounts": VendorBankAccountSerializer(accounts, many=True).data}
        )

    def post(self, request):
        serializer = VendorBankAccountSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {"status": "error", "message": "Invalid input", "errors": serializer.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )

        account = bank_accounts.add_bank_account(vendor=request.user, **serializer.validated_data)
        return Response(
            {
                "status": "success",
                "message": "Payout account saved",
                "account": VendorBankAccountSerializer(account).data,
            },
            status=status.HTTP_201_CREATED,
        )


class VendorBankAccountDetailView(APIView):
    """
    PATCH {"action": "set_primary" | "verify"}: make the account primary,
    or register it with Paystack ahead of the first payout.
    DELETE: remove the account.
    """

    permission_classes = [IsVendor]

    def patch(self, request, account_id):
        serializer = BankAccountActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        action = serializer.validated_data["action"]

        try:
            if action == BankAccountActionSerializer.ACTION_SET_PRIMARY:
                account = bank_accounts.set_primary_bank_account(request.user, account_id)
            else:
                account = bank_accounts.get_payout_account(request.user, account_id)
                bank_accounts.register_recipient(account, currency=settings.PAYOUT_CURRENCY)
        except PayoutError as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        except PaystackAPIError as e:
            return Response(
                {"status": "error", "message": f"Account could not be verified: {e.message}"},
                status=status.HTTP_502_BAD_GATEWAY,
            )

        return Response({"status": "success", "account": VendorBankAccountSerializer(account).data})

    def delete(self, request, account_id):
        try:
            bank_accounts.delete_bank_account(request.user, account_id)
        except PayoutError as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        return Response({"status": "success", "message": "Payout account removed"})


class BankListView(APIView):
    """Banks and mobile money providers a payout account can point at."""

    permission_classes = [IsVendor]

    def get(self, request):
        try:
            banks = bank_accounts.list_banks()
        except PaystackAPIError as e:
            return Response(
                {"status": "error", "message": f"Bank list unavailable: {e.message}"},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        return Response(
            {
                "status": "success",
                "banks": banks,
                "mobile_money_providers": [
                    {"code": code, "name": name} for code, name in VendorBankAccount.PROVIDER_CHOICES
                ],
            }
        )


class AdminPayoutListView(generics.ListAPIView):
    """
    Endpoint: GET /api/payouts/admin/?status=failed&vendor_id=12
    """

    permission_classes = [IsAdmin]
    serializer_class = AdminPayoutSerializer
    pagination_class = LimitOffsetPagination

    def get_queryset(self):
        return admin_payouts(
            status=self.request.query_params.get("status"),
            vendor_id=self.request.query_params.get("vendor_id"),
        ).prefetch_related("events")


class AdminPayoutStatsView(APIView):
    permission_classes = [IsAdmin]

    def get(self, request):
        stats = payout_stats()
        return Response(
            {
                "status": "success",
                "stats": {
                    key: str(value) if key.startswith("total_") else value
                    for key, value in stats.items()
                },
            }
        )


class AdminSubmitPayoutView(APIView):
    """
    Send a pending payout to Paystack, or record a transfer made by hand
    when a transfer_code is supplied.
    """

    permission_classes = [IsAdmin]

    def post(self, request, payout_id):
        payout = get_object_or_404(Payout, pk=payout_id)
        serializer = SubmitPayoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        transfer_code = serializer.validated_data.get("transfer_code")

        try:
            if transfer_code:
                payout = services.submit(payout.pk, transfer_code=transfer_code, actor=request.user)
            else:
                payout = dispatch_payout(payout, actor=request.user)
        except PayoutError as e:
            return _error(e)
        except PaystackAPIError as e:
            return _processor_error(e, payout)

        return Response({"status": "success", "payout": AdminPayoutSerializer(payout).data})


class AdminRetryPayoutView(APIView):
    permission_classes = [IsAdmin]

    def post(self, request, payout_id):
        payout = get_object_or_404(Payout, pk=payout_id)
        try:
            payout = services.retry(payout.pk, actor=request.user)
        except PayoutError as e:
            return _error(e)

        try:
            payout = dispatch_payout(payout, actor=request.user)
        except PaystackAPIError as e:
            return _processor_error(e, payout)

        return Response(
            {
                "status": "success",
                "message": "Payout retried",
                "payout": AdminPayoutSerializer(payout).data,
            }
        )


class AdminCancelPayoutView(APIView):
    permission_classes = [IsAdmin]

    def post(self, request, payout_id):
        payout = get_object_or_404(Payout, pk=payout_id)
        serializer = CancelPayoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            payout = services.cancel(
                payout.pk, actor=request.user, reason=serializer.validated_data["reason"]
            )
        except PayoutError as e:
            return _error(e)

        return Response(
            {
                "status": "success",
                "message": "Payout cancelled",
                "payout": AdminPayoutSerializer(payout).data,
            }
        )


class PaystackWebhookView(APIView):
    """
    Transfer outcome callbacks from Paystack.
    """

    authentication_classes = []
    permission_classes = []

    def post(self, request):
        raw_body = request.body
        headers = {k.lower(): v for k, v in request.headers.items()}
        client_ip = get_client_ip(request)

        if not verify_paystack_signature(headers, raw_body):
            log_transaction(f"Webhook signature verification failed from IP: {client_ip}", "error")
            return Response({"detail": "Invalid signature"}, status=status.HTTP_401_UNAUTHORIZED)

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            log_transaction(f"Invalid JSON payload from IP {client_ip}: {e}", "error")
            return Response({"detail": "Invalid JSON payload"}, status=status.HTTP_400_BAD_REQUEST)

        is_valid, validation_error = validate_paystack_payload(payload)
        if not is_valid:
            log_transaction(f"Invalid payload from IP {client_ip}: {validation_error}", "error")
            return Response(
                {"detail": f"Invalid payload: {validation_error}"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        event = payload["event"]
        data = payload["data"]
        log_transaction(f"Processing webhook: event={event}, reference={data.get('reference')}")

        try:
            payout = apply_transfer_event(event, data)
        except InvalidStateTransition as e:
            # duplicate or out-of-order event
            log_transaction(f"Ignoring webhook {event} for {data.get('reference')}: {e}", "warning")
            return Response({"detail": "Already processed"}, status=status.HTTP_200_OK)

        if payout is None:
            return Response({"detail": "Acknowledged"}, status=status.HTTP_200_OK)
        return Response({"detail": "Processed", "status": payout.status}, status=status.HTTP_200_OK)
