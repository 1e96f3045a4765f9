import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'main.settings')

app = Celery('main')

# Load settings from Django config with CELERY_ prefix
app.config_from_object('django.conf:settings', namespace='CELERY')

app.conf.beat_schedule = {
    "low-stock-scan-every-hour": {
        "task": "notifications.tasks.run_low_stock_check_task",
        "schedule": 3600.0,
    },
    "sync-processing-payouts-every-15-min": {
        "task": "payouts.tasks.sync_processing_payouts",
        "schedule": 900.0,
    },
}

# Discover tasks.py in all installed apps
app.autodiscover_tasks()
