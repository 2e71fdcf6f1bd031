"""
Notification Dispatch

Builds customer messages, records them as Notification rows and delivers them
through the channel senders. Delivery outcome is always written back to the
row; sender exceptions are treated as failed sends.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from django.conf import settings

from subscriptions.clock import system_clock
from . import messages
from .models import Notification
from .senders import SendResult, SenderCircuitBreaker, build_channel_senders

logger = logging.getLogger(__name__)


class NotificationDispatcher:

    def __init__(self, clock=None, senders=None, circuit_breaker=None, deliver_immediately=None):
        self.clock = clock or system_clock
        self.senders = senders if senders is not None else build_channel_senders()
        self.circuit_breaker = circuit_breaker or SenderCircuitBreaker()
        if deliver_immediately is None:
            deliver_immediately = getattr(settings, 'NOTIFICATIONS_DELIVER_IMMEDIATELY', True)
        self.deliver_immediately = deliver_immediately
        self._outbox = None

    @contextmanager
    def deferred_delivery(self):
        """
        Collect the notifications created inside the block instead of sending them.

        The caller delivers the yielded list after its transaction commits, so no
        provider call runs while database locks are held.
        """
        outbox = []
        previous, self._outbox = self._outbox, outbox
        try:
            yield outbox
        finally:
            self._outbox = previous

    # ------------------------------------------------------------------
    # Notification types
    # ------------------------------------------------------------------

    def send_payment_reminder(self, subscription) -> Notification:
        customer = subscription.customer
        logger.info(f"Sending payment reminder for customer {customer.id} and subscription {subscription.id}")
        return self._notify(
            customer,
            subscription,
            Notification.TYPE_PAYMENT_REMINDER,
            messages.payment_reminder(customer, subscription),
        )

    def send_overdue_notice(self, subscription) -> Notification:
        customer = subscription.customer
        logger.info(f"Sending overdue notification for customer {customer.id} and subscription {subscription.id}")
        return self._notify(
            customer,
            subscription,
            Notification.TYPE_OVERDUE_NOTICE,
            messages.overdue_notice(customer, subscription, self.clock.today()),
        )

    def send_subscription_expired(self, subscription) -> Notification:
        customer = subscription.customer
        logger.info(f"Sending subscription expired notification for customer {customer.id} and subscription {subscription.id}")
        return self._notify(
            customer,
            subscription,
            Notification.TYPE_SUBSCRIPTION_EXPIRED,
            messages.subscription_expired(customer, subscription),
        )

    def send_payment_confirmation(self, payment) -> Notification:
        subscription = payment.subscription
        customer = subscription.customer
        logger.info(f"Sending payment confirmation for payment {payment.id}")
        return self._notify(
            customer,
            subscription,
            Notification.TYPE_PAYMENT_CONFIRMATION,
            messages.payment_confirmation(customer, payment),
        )

    def has_reminder_since(self, subscription, since: datetime) -> bool:
        """True if a payment reminder for this subscription was recorded at or after ``since``"""
        return Notification.objects.filter(
            customer_id=subscription.customer_id,
            subscription=subscription,
            notification_type=Notification.TYPE_PAYMENT_REMINDER,
            created_at__gte=since,
        ).exists()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def deliver(self, notification: Notification) -> SendResult:
        """
        Attempt delivery of a notification and store the outcome.

        When the channel's circuit is open the notification is left PENDING
        for a later retry.
        """
        channel = notification.channel

        sender = self.senders.get(channel)
        if sender is None:
            return self._record_result(notification, SendResult.failed(f"No sender for channel {channel}"))

        recipient = self.resolve_recipient(notification)
        if not recipient:
            return self._record_result(notification, SendResult.failed(f"Missing contact address for {channel}"))

        if not self.circuit_breaker.is_available(channel):
            logger.warning(f"Skipping {channel} notification {notification.id} - circuit breaker open")
            return SendResult.failed(f"{channel} circuit open")

        try:
            result = sender.send(recipient, notification.message, subject=notification.subject)
        except Exception as e:
            logger.exception(f"Sender for {channel} raised while delivering notification {notification.id}")
            result = SendResult.failed(e)

        if result.success:
            self.circuit_breaker.record_success(channel)
        else:
            self.circuit_breaker.record_failure(channel)

        return self._record_result(notification, result)

    @staticmethod
    def resolve_recipient(notification) -> Optional[str]:
        customer = notification.customer
        if notification.channel == Notification.CHANNEL_EMAIL:
            return customer.email
        if notification.channel == Notification.CHANNEL_SMS:
            return customer.phone_number
        if notification.channel == Notification.CHANNEL_PUSH:
            return str(customer.id)
        return None

    @staticmethod
    def determine_channel(customer) -> str:
        # Email when the customer has an address, otherwise SMS
        if customer.email:
            return Notification.CHANNEL_EMAIL
        return Notification.CHANNEL_SMS

    def _notify(self, customer, subscription, notification_type, message) -> Notification:
        notification = Notification.objects.create(
            customer=customer,
            subscription=subscription,
            notification_type=notification_type,
            channel=self.determine_channel(customer),
            subject=messages.SUBJECTS[notification_type],
            message=message,
            status=Notification.STATUS_PENDING,
            created_at=self.clock.now(),
        )
        logger.debug(f"Notification created: type={notification_type}, customer={customer.id}")

        if self.deliver_immediately:
            if self._outbox is not None:
                self._outbox.append(notification)
            else:
                self.deliver(notification)
        return notification

    def _record_result(self, notification, result: SendResult) -> SendResult:
        if result.success:
            notification.status = Notification.STATUS_SENT
            notification.sent_at = self.clock.now()
            notification.provider_message_id = result.message_id or ''
            notification.failure_reason = ''
        else:
            notification.status = Notification.STATUS_FAILED
            notification.failure_reason = result.error or 'Unknown error'
            logger.warning(f"Notification {notification.id} failed: {notification.failure_reason}")

        notification.save(update_fields=[
            'status', 'sent_at', 'provider_message_id', 'failure_reason', 'updated_at'
        ])
        return result
