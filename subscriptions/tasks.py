"""
Celery Tasks for Subscription Lifecycle
Thin adapters around the lifecycle jobs; see app/celery.py for the schedule
"""
from celery import shared_task
import logging

from .jobs import build_job

logger = logging.getLogger(__name__)


def _run(job_name):
    result = build_job(job_name).run()
    logger.info(f"Task for job {job_name} finished: {result.as_dict()}")
    return result.as_dict()


@shared_task
def detect_overdue_subscriptions():
    """
    Mark ACTIVE subscriptions with a past next payment date as OVERDUE
    Run daily
    """
    return _run('overdue_detection')


@shared_task
def expire_overdue_subscriptions():
    """
    Expire subscriptions overdue for longer than the expiry threshold
    Run daily
    """
    return _run('auto_expiration')


@shared_task
def send_payment_reminders():
    """
    Remind customers of payments due in the next few days
    Run daily
    """
    return _run('payment_reminders')


@shared_task
def send_expiry_reminders():
    """
    SMS customers whose subscription is about to end
    Run daily
    """
    return _run('expiry_reminders')


@shared_task
def send_overdue_reminders():
    """
    SMS customers with overdue subscriptions
    Run daily
    """
    return _run('overdue_reminders')


@shared_task
def process_pending_notifications():
    """
    Deliver notifications that are still pending
    Run every 5 minutes
    """
    return _run('pending_notifications')
