import uuid
from django.db import models
from django.utils import timezone


class Notification(models.Model):
    """A message addressed to a customer, recorded before delivery is attempted"""
    TYPE_PAYMENT_REMINDER = 'PAYMENT_REMINDER'
    TYPE_OVERDUE_NOTICE = 'OVERDUE_NOTICE'
    TYPE_SUBSCRIPTION_EXPIRED = 'SUBSCRIPTION_EXPIRED'
    TYPE_PAYMENT_CONFIRMATION = 'PAYMENT_CONFIRMATION'

    NOTIFICATION_TYPE_CHOICES = [
        (TYPE_PAYMENT_REMINDER, 'Payment Reminder'),
        (TYPE_OVERDUE_NOTICE, 'Overdue Notice'),
        (TYPE_SUBSCRIPTION_EXPIRED, 'Subscription Expired'),
        (TYPE_PAYMENT_CONFIRMATION, 'Payment Confirmation'),
    ]

    CHANNEL_EMAIL = 'EMAIL'
    CHANNEL_SMS = 'SMS'
    CHANNEL_PUSH = 'PUSH'

    CHANNEL_CHOICES = [
        (CHANNEL_EMAIL, 'Email'),
        (CHANNEL_SMS, 'SMS'),
        (CHANNEL_PUSH, 'Push'),
    ]

    STATUS_PENDING = 'PENDING'
    STATUS_SENT = 'SENT'
    STATUS_FAILED = 'FAILED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_SENT, 'Sent'),
        (STATUS_FAILED, 'Failed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey('accounts.Customer', on_delete=models.PROTECT, related_name='notifications')
    subscription = models.ForeignKey(
        'subscriptions.Subscription',
        on_delete=models.PROTECT,
        related_name='notifications',
        null=True,
        blank=True
    )
    notification_type = models.CharField(max_length=30, choices=NOTIFICATION_TYPE_CHOICES)
    channel = models.CharField(max_length=10, choices=CHANNEL_CHOICES)
    subject = models.CharField(max_length=200, blank=True)
    message = models.TextField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(blank=True)
    provider_message_id = models.CharField(max_length=100, blank=True)
    # Set explicitly from the dispatcher's clock; reminder de-duplication compares against it
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer', 'notification_type', 'created_at'], name='notificatio_custome_6d0e2a_idx'),
            models.Index(fields=['subscription', 'notification_type', 'created_at'], name='notificatio_subscri_c47f18_idx'),
        ]

    def __str__(self):
        return f"{self.notification_type} -> {self.customer_id} ({self.status})"
