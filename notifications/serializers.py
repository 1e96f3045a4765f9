from rest_framework import serializers


class MarkReadSerializer(serializers.Serializer):
    notification_id = serializers.IntegerField()


class LowStockAlertTestSerializer(serializers.Serializer):
    MODE_MANUAL = 'manual'
    MODE_SCAN = 'scan'

    mode = serializers.ChoiceField(choices=[MODE_MANUAL, MODE_SCAN])
    vendor_id = serializers.IntegerField(required=False)
    product_id = serializers.IntegerField(required=False)
    quantity = serializers.IntegerField(required=False, min_value=0, default=2)
    threshold = serializers.IntegerField(required=False, min_value=0, default=5)
    skip_cooldown = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if attrs['mode'] == self.MODE_MANUAL and not (attrs.get('vendor_id') and attrs.get('product_id')):
            raise serializers.ValidationError("Manual mode requires vendor_id and product_id")
        return attrs
