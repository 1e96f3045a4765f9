from decimal import Decimal

from rest_framework import serializers

from .models import Payout, PayoutEvent, VendorBankAccount


class VendorBankAccountSerializer(serializers.ModelSerializer):
    is_primary = serializers.BooleanField(required=False, default=False)

    class Meta:
        model = VendorBankAccount
        fields = [
            "id",
            "account_type",
            "account_name",
            "account_number",
            "bank_name",
            "bank_code",
            "mobile_money_provider",
            "is_primary",
            "is_verified",
            "created_at",
        ]
        read_only_fields = ["id", "is_verified", "created_at"]

    def validate_account_number(self, value):
        cleaned = value.replace(" ", "").replace("-", "")
        if not cleaned.isdigit() or len(cleaned) < 6:
            raise serializers.ValidationError("Invalid account number")
        return cleaned

    def validate_account_name(self, value):
        if len(value.strip()) < 2:
            raise serializers.ValidationError("Account name must be at least 2 characters")
        return value.strip()

    def validate(self, attrs):
        """Cross-field validation"""
        if attrs["account_type"] == VendorBankAccount.ACCOUNT_BANK:
            if not attrs.get("bank_code"):
                raise serializers.ValidationError({"bank_code": "Bank code is required for bank accounts"})
            attrs["mobile_money_provider"] = ""
        elif not attrs.get("mobile_money_provider"):
            raise serializers.ValidationError(
                {"mobile_money_provider": "Provider is required for mobile money wallets"}
            )
        return attrs


class BankAccountActionSerializer(serializers.Serializer):
    ACTION_SET_PRIMARY = "set_primary"
    ACTION_VERIFY = "verify"

    action = serializers.ChoiceField(choices=[ACTION_SET_PRIMARY, ACTION_VERIFY])


class PayoutRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        help_text="Amount to withdraw, fee included",
    )
    account_id = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="Saved payout account; the primary account when omitted",
    )


class PayoutEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = PayoutEvent
        fields = ["action", "from_status", "to_status", "actor", "note", "created_at"]


class PayoutSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payout
        fields = [
            "id",
            "reference",
            "amount",
            "fee",
            "net_amount",
            "currency",
            "status",
            "is_terminal",
            "bank_account",
            "account_type",
            "bank_account_name",
            "bank_name",
            "mobile_money_provider",
            "account_number",
            "transfer_code",
            "failure_reason",
            "created_at",
            "processed_at",
        ]
        read_only_fields = fields


class AdminPayoutSerializer(PayoutSerializer):
    vendor_username = serializers.CharField(source="vendor.username", read_only=True)
    vendor_business_name = serializers.CharField(source="vendor.business_name", read_only=True)
    events = PayoutEventSerializer(many=True, read_only=True)

    class Meta(PayoutSerializer.Meta):
        fields = PayoutSerializer.Meta.fields + [
            "vendor", "vendor_username", "vendor_business_name", "events",
        ]
        read_only_fields = fields


class SubmitPayoutSerializer(serializers.Serializer):
    # Record a transfer made outside Paystack instead of dispatching
    transfer_code = serializers.CharField(max_length=100, required=False, allow_blank=True)


class CancelPayoutSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
