from rest_framework import serializers

from .models import AppSettings

class AppSettingsSerializer(serializers.ModelSerializer):
    updated_by = serializers.SerializerMethodField()

    class Meta:
        model = AppSettings
        fields = [
            "id", "setting_key", "setting_value", "updated_by", "updated_at"
        ]
        read_only_fields = ["updated_at"]

    def get_updated_by(self, obj):
        return obj.updated_by.username if obj.updated_by_id else None
