"""
Django settings for the recurring billing backend.

Every deploy-specific value is read from the environment; the defaults are
suitable for local development and the test suite.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    """Read a boolean flag from the environment"""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-recurring-billing-dev-key')
DEBUG = env_bool('DEBUG', True)
ALLOWED_HOSTS = [host for host in os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if host]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'accounts',
    'subscriptions',
    'notifications',
]

MIDDLEWARE = []

# Database
DATABASES = {
    'default': {
        'ENGINE': os.getenv('DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.getenv('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        'USER': os.getenv('DB_USER', ''),
        'PASSWORD': os.getenv('DB_PASSWORD', ''),
        'HOST': os.getenv('DB_HOST', ''),
        'PORT': os.getenv('DB_PORT', ''),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'UTC')
USE_I18N = True
USE_TZ = True

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'WARNING'),
            'propagate': False,
        },
        'celery': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

# Celery
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
CELERY_TIMEZONE = TIME_ZONE

# Email (notification channel)
EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', 'localhost')
EMAIL_PORT = int(os.getenv('EMAIL_PORT', '25'))
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = env_bool('EMAIL_USE_TLS', False)
EMAIL_TIMEOUT = int(os.getenv('EMAIL_TIMEOUT', '10'))
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', 'billing@localhost')

# SMS (notification channel)
SMS_ENABLED = env_bool('SMS_ENABLED', False)
SMS_API_URL = os.getenv('SMS_API_URL', 'https://rest.payamak-panel.com/api/SendSMS/SendSMS')
SMS_USERNAME = os.getenv('SMS_USERNAME', '')
SMS_PASSWORD = os.getenv('SMS_PASSWORD', '')
SMS_LINE_NUMBER = os.getenv('SMS_LINE_NUMBER', '')

# Notification delivery
NOTIFICATION_SEND_TIMEOUT = int(os.getenv('NOTIFICATION_SEND_TIMEOUT', '10'))
NOTIFICATIONS_DELIVER_IMMEDIATELY = env_bool('NOTIFICATIONS_DELIVER_IMMEDIATELY', True)
SENDER_CIRCUIT_FAILURE_THRESHOLD = int(os.getenv('SENDER_CIRCUIT_FAILURE_THRESHOLD', '5'))
SENDER_CIRCUIT_TIMEOUT = int(os.getenv('SENDER_CIRCUIT_TIMEOUT', '300'))

# Simulated payment gateway
PAYMENT_GATEWAY_URL = os.getenv('PAYMENT_GATEWAY_URL', 'http://localhost:8000/payment-gateway/')
PAYMENT_LINK_BASE_URL = os.getenv('PAYMENT_LINK_BASE_URL', 'https://payment.example.com/pay/')

# Subscription lifecycle
SUBSCRIPTION_EXPIRY_THRESHOLD_DAYS = int(os.getenv('SUBSCRIPTION_EXPIRY_THRESHOLD_DAYS', '30'))
PAYMENT_REMINDER_DAYS = int(os.getenv('PAYMENT_REMINDER_DAYS', '3'))
EXPIRY_REMINDER_DAYS = int(os.getenv('EXPIRY_REMINDER_DAYS', '3'))
BILLING_CURRENCY_LABEL = os.getenv('BILLING_CURRENCY_LABEL', 'IRT')

# Intervals (seconds) used by the standalone job runner
LIFECYCLE_JOB_INTERVALS = {
    'overdue_detection': 86400,
    'auto_expiration': 86400,
    'payment_reminders': 86400,
    'pending_notifications': 300,
    'expiry_reminders': 86400,
    'overdue_reminders': 86400,
}
