from django.conf import settings
from django.db import models


# Platform wide key/value settings editable by admins
class AppSettings(models.Model):
    setting_key = models.CharField(max_length=100, unique=True)
    setting_value = models.TextField()
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="settings_updated",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "App Setting"
        verbose_name_plural = "App Settings"

    def __str__(self):
        return f"{self.setting_key} = {self.setting_value}"

    @classmethod
    def get_value(cls, key, default=None):
        value = (
            cls.objects.filter(setting_key=key)
            .values_list("setting_value", flat=True)
            .first()
        )
        return default if value is None else value

    @classmethod
    def set_value(cls, key, value, updated_by=None):
        obj, _ = cls.objects.update_or_create(
            setting_key=key,
            defaults={"setting_value": str(value), "updated_by": updated_by},
        )
        return obj
