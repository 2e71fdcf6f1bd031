import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'app.settings')

app = Celery('recurring_billing')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django app configs.
app.autodiscover_tasks()

app.conf.update(
    task_track_started=True,
    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],
    enable_utc=True,

    # Task routing
    task_routes={
        'subscriptions.tasks.*': {'queue': 'subscriptions'},
    },

    # Periodic lifecycle jobs. Every job body is idempotent, so a late or
    # repeated beat tick is harmless.
    beat_schedule={
        'detect-overdue-subscriptions': {
            'task': 'subscriptions.tasks.detect_overdue_subscriptions',
            'schedule': crontab(hour=2, minute=0),  # Daily at 02:00
        },
        'expire-overdue-subscriptions': {
            'task': 'subscriptions.tasks.expire_overdue_subscriptions',
            'schedule': crontab(hour=3, minute=0),  # Daily at 03:00
        },
        'send-payment-reminders': {
            'task': 'subscriptions.tasks.send_payment_reminders',
            'schedule': crontab(hour=9, minute=0),  # Daily at 09:00
        },
        'send-expiry-reminders': {
            'task': 'subscriptions.tasks.send_expiry_reminders',
            'schedule': crontab(hour=9, minute=0),  # Daily at 09:00
        },
        'send-overdue-reminders': {
            'task': 'subscriptions.tasks.send_overdue_reminders',
            'schedule': crontab(hour=10, minute=0),  # Daily at 10:00
        },
        'process-pending-notifications': {
            'task': 'subscriptions.tasks.process_pending_notifications',
            'schedule': 300.0,  # Every 5 minutes
        },
    },
)
