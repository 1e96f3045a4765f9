from django.apps import AppConfig


class ProductmanagementConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'productManagement'
