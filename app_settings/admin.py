from django.contrib import admin

from .models import AppSettings


@admin.register(AppSettings)
class AppSettingsAdmin(admin.ModelAdmin):
    list_display = ["setting_key", "setting_value", "updated_by", "updated_at"]
    search_fields = ["setting_key"]
