"""
End-to-end subscription lifecycle: create, fall behind, expire, and recover by payment
"""
from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase

from accounts.models import Customer
from notifications.models import Notification
from notifications.services import NotificationDispatcher
from subscriptions.clock import FixedClock
from subscriptions.jobs import AutoExpirationJob, OverdueDetectionJob, PaymentReminderJob
from subscriptions.models import Payment, Subscription
from subscriptions.payments import PaymentService
from subscriptions.services import PaymentPlanService, SubscriptionService
from tests.utils import create_business, create_customer, recording_senders


class SubscriptionLifecycleWorkflowTest(TestCase):

    def setUp(self):
        self.business = create_business(name='Yoga Studio')
        self.customer = create_customer(business=self.business, email=None)
        self.plan = PaymentPlanService().create_plan(
            self.business.id,
            name='Monthly',
            period_type='MONTHLY',
            base_amount=Decimal('500000.00'),
            discount_percentage=Decimal('10.00'),
            late_fee_per_day=Decimal('10000.00'),
            grace_period_days=3,
        )
        self.senders = recording_senders()

    def run_job(self, job_class, today):
        clock = FixedClock(today)
        dispatcher = NotificationDispatcher(clock=clock, senders=self.senders, deliver_immediately=True)
        return job_class(clock=clock, dispatcher=dispatcher).run()

    def test_unpaid_subscription_expires_and_deactivates_customer(self):
        start = date(2025, 1, 1)
        subscription = SubscriptionService(clock=FixedClock(start)).create_subscription(
            self.customer.id, self.plan.id, start, periods=3
        )
        self.assertEqual(subscription.total_amount, Decimal('1350000.00'))

        # Reminder window opens three days before the first due date
        self.run_job(PaymentReminderJob, start - timedelta(days=3))
        self.run_job(PaymentReminderJob, start - timedelta(days=3))
        self.assertEqual(
            Notification.objects.filter(notification_type=Notification.TYPE_PAYMENT_REMINDER).count(), 1
        )

        # Ten days past due: overdue
        self.run_job(OverdueDetectionJob, start + timedelta(days=10))
        subscription.refresh_from_db()
        self.assertEqual(subscription.status, Subscription.STATUS_OVERDUE)

        # Exactly 30 days overdue is still within the threshold
        self.run_job(AutoExpirationJob, start + timedelta(days=30))
        subscription.refresh_from_db()
        self.assertEqual(subscription.status, Subscription.STATUS_OVERDUE)

        # 31 days overdue: expired, and the customer had no other subscription
        self.run_job(AutoExpirationJob, start + timedelta(days=31))
        subscription.refresh_from_db()
        self.assertEqual(subscription.status, Subscription.STATUS_EXPIRED)
        self.assertFalse(Customer.objects.get(pk=self.customer.pk).is_active)

        notification_types = list(
            Notification.objects.order_by('created_at').values_list('notification_type', flat=True)
        )
        self.assertEqual(notification_types, [
            Notification.TYPE_PAYMENT_REMINDER,
            Notification.TYPE_OVERDUE_NOTICE,
            Notification.TYPE_SUBSCRIPTION_EXPIRED,
        ])
        # customer has no email, so every message went out by SMS
        self.assertEqual(len(self.senders['SMS'].sent), 3)
        self.assertEqual(self.senders['EMAIL'].sent, [])

    def test_late_payment_through_gateway_restores_subscription(self):
        start = date(2025, 1, 1)
        subscription = SubscriptionService(clock=FixedClock(start)).create_subscription(
            self.customer.id, self.plan.id, start
        )
        self.run_job(OverdueDetectionJob, date(2025, 1, 5))

        payments = PaymentService(clock=FixedClock(date(2025, 1, 10)))
        initiation = payments.initiate_payment(subscription.id, Decimal('500000.00'))
        verification = payments.verify_payment(initiation.transaction_id, True)
        self.assertTrue(verification.success)

        subscription.refresh_from_db()
        self.assertEqual(subscription.status, Subscription.STATUS_ACTIVE)
        self.assertEqual(subscription.next_payment_date, date(2025, 2, 10))

        # A direct payment on a late subscription records the late fee separately
        self.run_job(OverdueDetectionJob, date(2025, 2, 11))
        payment = PaymentService(clock=FixedClock(date(2025, 2, 19))).process_payment(
            subscription.id, Decimal('500000.00'), Payment.METHOD_CASH
        )
        self.assertEqual(payment.late_fee, Decimal('60000.00'))
        self.assertEqual(payment.amount, Decimal('500000.00'))

        # Nothing left to expire
        self.run_job(AutoExpirationJob, date(2025, 3, 30))
        subscription.refresh_from_db()
        self.assertEqual(subscription.status, Subscription.STATUS_ACTIVE)
        self.assertTrue(Customer.objects.get(pk=self.customer.pk).is_active)
