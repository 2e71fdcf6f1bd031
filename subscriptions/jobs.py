"""
Scheduled Lifecycle Jobs

Each job is a plain object holding its collaborators. ``run()`` loads the
candidates for the clock's current date and handles them one at a time, each
in its own transaction. A failing item is logged and counted; it never stops
the rest of the run. Every job can be re-run on the same day without
repeating its effects.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from notifications import messages
from notifications.models import Notification
from notifications.senders import SendResult, SmsSender
from notifications.services import NotificationDispatcher
from . import billing
from .clock import system_clock
from .exceptions import InvalidArgument
from .models import Payment, Subscription
from .services import SubscriptionService

logger = logging.getLogger(__name__)

PROCESSED = 'processed'
SKIPPED = 'skipped'
FAILED = 'failed'


@dataclass
class JobResult:
    job: str
    candidates: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self):
        return asdict(self)


class LifecycleJob:
    """Base class: subclasses provide ``get_candidates`` and ``process``"""

    name = None

    def __init__(self, clock=None, subscription_service=None, dispatcher=None, sms_sender=None):
        self.clock = clock or system_clock
        self.subscription_service = subscription_service or SubscriptionService(clock=self.clock)
        self._dispatcher = dispatcher
        self._sms_sender = sms_sender

    @property
    def dispatcher(self):
        if self._dispatcher is None:
            self._dispatcher = NotificationDispatcher(clock=self.clock)
        return self._dispatcher

    @property
    def sms_sender(self):
        if self._sms_sender is None:
            self._sms_sender = SmsSender()
        return self._sms_sender

    def get_candidates(self, today):
        raise NotImplementedError

    def process(self, item, today) -> str:
        """Handle one candidate and return PROCESSED, SKIPPED or FAILED"""
        raise NotImplementedError

    def run(self) -> JobResult:
        today = self.clock.today()
        logger.info(f"Starting job {self.name} for {today}")

        # Errors while loading candidates abort the run
        candidates = list(self.get_candidates(today))
        result = JobResult(job=self.name, candidates=len(candidates))

        for item in candidates:
            try:
                with self.dispatcher.deferred_delivery() as outbox:
                    with transaction.atomic():
                        outcome = self.process(item, today)
            except Exception:
                logger.exception(f"Job {self.name} failed on {item!r}")
                outcome = FAILED
            else:
                self._deliver_outbox(outbox)
            setattr(result, outcome, getattr(result, outcome) + 1)

        logger.info(
            f"Completed job {self.name}. Candidates: {result.candidates}, "
            f"Processed: {result.processed}, Skipped: {result.skipped}, Failed: {result.failed}"
        )
        return result

    def _deliver_outbox(self, outbox):
        # The item is committed; a delivery error leaves the notification PENDING
        for notification in outbox:
            try:
                self.dispatcher.deliver(notification)
            except Exception:
                logger.exception(f"Delivery of notification {notification.id} failed, left for retry")

    def _reminded_today(self, subscription, today):
        if subscription.last_reminder_sent is None:
            return False
        return timezone.localtime(subscription.last_reminder_sent).date() == today

    def _send_sms_reminder(self, subscription, message) -> str:
        phone_number = subscription.customer.phone_number
        try:
            send_result = self.sms_sender.send(phone_number, message)
        except Exception as e:
            logger.exception(f"SMS sender raised for subscription {subscription.id}")
            send_result = SendResult.failed(e)

        if not send_result.success:
            logger.warning(f"Failed to send reminder for subscription {subscription.id}: {send_result.error}")
            return FAILED

        subscription.last_reminder_sent = self.clock.now()
        subscription.save(update_fields=['last_reminder_sent', 'updated_at'])
        logger.debug(f"Sent reminder for subscription {subscription.id}")
        return PROCESSED


class OverdueDetectionJob(LifecycleJob):
    """ACTIVE subscriptions past their next payment date become OVERDUE"""

    name = 'overdue_detection'

    def get_candidates(self, today):
        return Subscription.objects.filter(
            status=Subscription.STATUS_ACTIVE,
            next_payment_date__lt=today,
        ).select_related('customer', 'payment_plan')

    def process(self, subscription, today):
        if not self.subscription_service.mark_overdue(subscription):
            return SKIPPED

        logger.info(
            f"Marked subscription {subscription.id} as OVERDUE. "
            f"Next payment was due on: {subscription.next_payment_date}"
        )
        self.dispatcher.send_overdue_notice(subscription)
        return PROCESSED


class AutoExpirationJob(LifecycleJob):
    """OVERDUE subscriptions past the expiry threshold become EXPIRED"""

    name = 'auto_expiration'

    @property
    def threshold_days(self):
        return getattr(settings, 'SUBSCRIPTION_EXPIRY_THRESHOLD_DAYS', 30)

    def get_candidates(self, today):
        # overdue for strictly more than threshold_days
        cutoff = today - timedelta(days=self.threshold_days)
        return Subscription.objects.filter(
            status=Subscription.STATUS_OVERDUE,
            next_payment_date__lt=cutoff,
        ).select_related('customer', 'payment_plan')

    def process(self, subscription, today):
        changed = self.subscription_service.mark_expired(subscription)

        customer = subscription.customer
        if subscription.status == Subscription.STATUS_EXPIRED:
            has_active = customer.subscriptions.filter(status=Subscription.STATUS_ACTIVE).exists()
            if not has_active and customer.deactivate():
                logger.info(f"Deactivated customer {customer.id} - no active subscriptions remaining")

        if not changed:
            return SKIPPED

        logger.info(
            f"Expired subscription {subscription.id} which has been overdue "
            f"for {subscription.days_overdue(today)} days"
        )
        self.dispatcher.send_subscription_expired(subscription)
        return PROCESSED


class PaymentReminderJob(LifecycleJob):
    """One payment reminder per subscription per day for payments due soon"""

    name = 'payment_reminders'

    @property
    def reminder_days(self):
        return getattr(settings, 'PAYMENT_REMINDER_DAYS', 3)

    def get_candidates(self, today):
        return Subscription.objects.filter(
            status=Subscription.STATUS_ACTIVE,
            next_payment_date__gte=today,
            next_payment_date__lte=today + timedelta(days=self.reminder_days),
        ).select_related('customer', 'payment_plan')

    def process(self, subscription, today):
        if self.dispatcher.has_reminder_since(subscription, self.clock.start_of_day(today)):
            logger.debug(f"Reminder already sent today for subscription {subscription.id}")
            return SKIPPED

        self.dispatcher.send_payment_reminder(subscription)
        return PROCESSED


class PendingNotificationJob(LifecycleJob):
    """
    Retry delivery of notifications still PENDING.

    Each row is claimed with a locking re-read before sending, so a delayed run
    skips rows that an overlapping run has already delivered or is delivering.
    A notification whose channel circuit is open stays PENDING and is counted
    as skipped: it is not lost, the next run picks it up again.
    """

    name = 'pending_notifications'

    def get_candidates(self, today):
        return Notification.objects.filter(
            status=Notification.STATUS_PENDING,
        ).select_related('customer').order_by('created_at')

    def process(self, notification, today):
        claimed = Notification.objects.select_for_update(skip_locked=True).filter(
            pk=notification.pk,
            status=Notification.STATUS_PENDING,
        ).first()
        if claimed is None:
            logger.debug(f"Notification {notification.id} already handled by another run")
            return SKIPPED

        self.dispatcher.deliver(claimed)

        if claimed.status == Notification.STATUS_SENT:
            return PROCESSED
        if claimed.status == Notification.STATUS_FAILED:
            return FAILED
        # channel circuit open, left for the next run
        return SKIPPED


class ExpiryReminderJob(LifecycleJob):
    """SMS to customers whose subscription ends in EXPIRY_REMINDER_DAYS days"""

    name = 'expiry_reminders'

    @property
    def reminder_days(self):
        return getattr(settings, 'EXPIRY_REMINDER_DAYS', 3)

    def get_candidates(self, today):
        return Subscription.objects.filter(
            status=Subscription.STATUS_ACTIVE,
            end_date=today + timedelta(days=self.reminder_days),
        ).select_related('customer')

    def process(self, subscription, today):
        if self._reminded_today(subscription, today):
            logger.debug(f"Reminder already sent today for subscription {subscription.id}")
            return SKIPPED

        message = messages.expiry_reminder_sms(subscription.customer, subscription)
        return self._send_sms_reminder(subscription, message)


class OverdueReminderJob(LifecycleJob):
    """SMS to customers of OVERDUE subscriptions with the amount still owed"""

    name = 'overdue_reminders'

    def get_candidates(self, today):
        return Subscription.objects.filter(
            status=Subscription.STATUS_OVERDUE,
        ).select_related('customer', 'payment_plan')

    @staticmethod
    def remaining_amount(subscription) -> Decimal:
        """Total minus completed payments, never below zero; late fees are not included"""
        paid = subscription.payments.filter(
            status=Payment.STATUS_COMPLETED,
        ).aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
        return max(subscription.total_amount - paid, Decimal('0.00'))

    def process(self, subscription, today):
        if self._reminded_today(subscription, today):
            logger.debug(f"Overdue reminder already sent today for subscription {subscription.id}")
            return SKIPPED

        days_overdue = subscription.days_overdue(today)
        late_fee = billing.late_fee(subscription.payment_plan, days_overdue) if days_overdue else Decimal('0.00')

        message = messages.overdue_reminder_sms(
            subscription.customer,
            self.remaining_amount(subscription),
            late_fee,
        )
        return self._send_sms_reminder(subscription, message)


JOB_CLASSES = {
    job_class.name: job_class
    for job_class in (
        OverdueDetectionJob,
        AutoExpirationJob,
        PaymentReminderJob,
        PendingNotificationJob,
        ExpiryReminderJob,
        OverdueReminderJob,
    )
}


def build_job(name, **overrides) -> LifecycleJob:
    """Instantiate a job by name, passing collaborator overrides through"""
    try:
        job_class = JOB_CLASSES[name]
    except KeyError:
        raise InvalidArgument(f"Unknown job: {name}. Choices: {', '.join(sorted(JOB_CLASSES))}")
    return job_class(**overrides)
