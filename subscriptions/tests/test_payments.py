"""
Tests for direct payments, the two-phase gateway flow and payment queries
"""
import re
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone

from subscriptions.clock import FixedClock
from subscriptions.exceptions import (
    BusinessNotFound,
    InvalidArgument,
    InvalidPayment,
    PaymentNotFound,
    SubscriptionNotFound,
)
from subscriptions.models import Payment, Subscription
from subscriptions.payment_gateway import SimulatedPaymentGateway
from subscriptions.payments import PaymentService
from tests.utils import create_business, create_customer, create_payment, create_plan, create_subscription


def aware(day, hour=12):
    return timezone.make_aware(datetime.combine(day, time(hour, 0)))


class ProcessPaymentTestCase(TestCase):

    def setUp(self):
        self.clock = FixedClock(date(2025, 1, 10))
        self.service = PaymentService(clock=self.clock)
        plan = create_plan(late_fee_per_day=Decimal('10000.00'), grace_period_days=3)
        self.subscription = create_subscription(
            plan=plan,
            customer=create_customer(business=plan.business),
            next_payment_date=date(2025, 1, 1),
            status=Subscription.STATUS_OVERDUE,
        )

    def test_late_payment_records_fee_and_reactivates(self):
        payment = self.service.process_payment(
            self.subscription.id, Decimal('500000.00'), Payment.METHOD_CASH, notes='front desk'
        )

        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.STATUS_COMPLETED)
        self.assertEqual(payment.amount, Decimal('500000.00'))
        self.assertEqual(payment.late_fee, Decimal('60000.00'))
        self.assertEqual(payment.due_date, date(2025, 1, 1))
        self.assertEqual(payment.payment_date, self.clock.now())
        self.assertEqual(payment.notes, 'front desk')
        self.assertTrue(payment.transaction_id.startswith('TXN-'))

        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.status, Subscription.STATUS_ACTIVE)
        self.assertEqual(self.subscription.last_payment_date, date(2025, 1, 10))
        self.assertEqual(self.subscription.next_payment_date, date(2025, 2, 10))

    def test_on_time_payment_has_no_fee(self):
        self.subscription.next_payment_date = date(2025, 1, 10)
        self.subscription.save()

        payment = self.service.process_payment(self.subscription.id, Decimal('500000.00'), Payment.METHOD_CARD)
        self.assertEqual(payment.late_fee, Decimal('0.00'))

    def test_explicit_transaction_id(self):
        payment = self.service.process_payment(
            self.subscription.id, '1000', Payment.METHOD_BANK_TRANSFER, transaction_id='BANK-42'
        )
        self.assertEqual(payment.transaction_id, 'BANK-42')
        self.assertEqual(payment.amount, Decimal('1000.00'))

    def test_cancelled_subscription(self):
        self.subscription.status = Subscription.STATUS_CANCELLED
        self.subscription.save()

        with self.assertRaises(InvalidPayment):
            self.service.process_payment(self.subscription.id, Decimal('1.00'), Payment.METHOD_CASH)
        self.assertFalse(Payment.objects.exists())

    def test_non_positive_amount(self):
        for amount in (Decimal('0'), Decimal('-5'), 'abc', None):
            with self.assertRaises(InvalidArgument):
                self.service.process_payment(self.subscription.id, amount, Payment.METHOD_CASH)
        self.assertFalse(Payment.objects.exists())

    def test_unknown_subscription(self):
        with self.assertRaises(SubscriptionNotFound):
            self.service.process_payment(uuid.uuid4(), Decimal('1.00'), Payment.METHOD_CASH)


class GatewayFlowTestCase(TestCase):

    def setUp(self):
        self.clock = FixedClock(date(2025, 1, 5))
        gateway = SimulatedPaymentGateway(
            checkout_url='https://pay.test/checkout',
            link_base_url='https://pay.test/pay/',
        )
        self.service = PaymentService(clock=self.clock, gateway=gateway)
        self.subscription = create_subscription(
            next_payment_date=date(2025, 1, 1),
            status=Subscription.STATUS_OVERDUE,
        )

    def test_initiate_creates_pending_payment(self):
        initiation = self.service.initiate_payment(
            self.subscription.id, Decimal('500000.00'), description='January'
        )

        self.assertRegex(initiation.transaction_id, r'^TXN-\d+-[0-9a-f]{8}$')
        self.assertTrue(initiation.payment_url.startswith('https://pay.test/checkout?'))
        self.assertIn(f'transactionId={initiation.transaction_id}', initiation.payment_url)

        payment = Payment.objects.get(transaction_id=initiation.transaction_id)
        self.assertEqual(payment.status, Payment.STATUS_PENDING)
        self.assertIsNone(payment.payment_date)
        self.assertEqual(payment.description, 'January')

        # Nothing changes on the subscription until verification
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.status, Subscription.STATUS_OVERDUE)
        self.assertIsNone(self.subscription.last_payment_date)

    def test_initiate_rejects_cancelled_and_bad_amounts(self):
        with self.assertRaises(InvalidArgument):
            self.service.initiate_payment(self.subscription.id, Decimal('0'))

        self.subscription.status = Subscription.STATUS_CANCELLED
        self.subscription.save()
        with self.assertRaises(InvalidPayment):
            self.service.initiate_payment(self.subscription.id, Decimal('10.00'))

        with self.assertRaises(SubscriptionNotFound):
            self.service.initiate_payment(uuid.uuid4(), Decimal('10.00'))

    def test_successful_verification_applies_payment_once(self):
        initiation = self.service.initiate_payment(self.subscription.id, Decimal('500000.00'))

        with patch.object(
            self.service.subscription_service, 'apply_payment',
            wraps=self.service.subscription_service.apply_payment
        ) as apply_payment:
            first = self.service.verify_payment(initiation.transaction_id, True)
            second = self.service.verify_payment(initiation.transaction_id, True)

        self.assertEqual(apply_payment.call_count, 1)

        self.assertTrue(first.success)
        self.assertFalse(first.already_processed)
        self.assertEqual(first.status, Payment.STATUS_COMPLETED)

        self.assertTrue(second.success)
        self.assertTrue(second.already_processed)
        self.assertEqual(second.status, Payment.STATUS_COMPLETED)

        payment = Payment.objects.get(transaction_id=initiation.transaction_id)
        self.assertEqual(payment.payment_date, self.clock.now())

        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.status, Subscription.STATUS_ACTIVE)
        self.assertEqual(self.subscription.last_payment_date, date(2025, 1, 5))
        self.assertEqual(self.subscription.next_payment_date, date(2025, 2, 5))

    def test_failed_verification(self):
        initiation = self.service.initiate_payment(self.subscription.id, Decimal('500000.00'))

        result = self.service.verify_payment(initiation.transaction_id, False)
        self.assertFalse(result.success)
        self.assertEqual(result.status, Payment.STATUS_FAILED)

        # A later success callback cannot flip a failed transaction
        again = self.service.verify_payment(initiation.transaction_id, True)
        self.assertFalse(again.success)
        self.assertTrue(again.already_processed)
        self.assertEqual(again.status, Payment.STATUS_FAILED)

        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.status, Subscription.STATUS_OVERDUE)
        self.assertIsNone(self.subscription.last_payment_date)

    def test_verify_unknown_transaction(self):
        with self.assertRaises(PaymentNotFound):
            self.service.verify_payment('TXN-missing', True)

    def test_payment_details(self):
        initiation = self.service.initiate_payment(self.subscription.id, Decimal('250.00'))
        details = self.service.get_payment_details(initiation.transaction_id)

        self.assertEqual(details['amount'], Decimal('250.00'))
        self.assertEqual(details['customer']['full_name'], self.subscription.customer.full_name)
        self.assertEqual(details['plan']['name'], self.subscription.payment_plan.name)

        with self.assertRaises(PaymentNotFound):
            self.service.get_payment_details('TXN-missing')

    def test_payment_link(self):
        link = self.service.generate_payment_link(self.subscription.id)
        self.assertTrue(re.match(rf'^https://pay\.test/pay/{self.subscription.id}/[0-9a-f-]{{36}}$', link))

        self.subscription.status = Subscription.STATUS_CANCELLED
        self.subscription.save()
        with self.assertRaises(InvalidPayment):
            self.service.generate_payment_link(self.subscription.id)


class PendingPaymentsTestCase(TestCase):

    def setUp(self):
        self.service = PaymentService(clock=FixedClock(date(2025, 1, 10)))
        self.customer = create_customer()
        plan = create_plan(business=self.customer.business)
        self.overdue = create_subscription(
            customer=self.customer, plan=plan,
            next_payment_date=date(2025, 1, 1), status=Subscription.STATUS_OVERDUE,
        )
        self.upcoming = create_subscription(
            customer=self.customer, plan=plan, next_payment_date=date(2025, 1, 20),
        )
        create_subscription(customer=self.customer, plan=plan, status=Subscription.STATUS_CANCELLED)

    def test_pending_payments(self):
        pending = self.service.get_pending_payments(self.customer.id)

        self.assertEqual([p.subscription for p in pending], [self.overdue, self.upcoming])
        overdue, upcoming = pending
        self.assertEqual(overdue.amount, Decimal('500000.00'))
        self.assertEqual(overdue.days_overdue, 9)
        # grace 3 days, 5000 per day
        self.assertEqual(overdue.late_fee, Decimal('30000.00'))
        self.assertTrue(overdue.is_overdue)
        self.assertEqual(upcoming.late_fee, Decimal('0.00'))
        self.assertFalse(upcoming.is_overdue)

        # previews are not persisted
        self.assertFalse(Payment.objects.exists())


class PaymentHistoryTestCase(TestCase):

    def setUp(self):
        self.service = PaymentService()
        self.business = create_business()
        self.customer = create_customer(business=self.business)
        self.subscription = create_subscription(customer=self.customer)
        self.january = create_payment(self.subscription, payment_date=aware(date(2025, 1, 15)))
        self.february = create_payment(self.subscription, payment_date=aware(date(2025, 2, 15)))
        self.failed = create_payment(
            self.subscription, status=Payment.STATUS_FAILED, payment_date=aware(date(2025, 2, 20))
        )
        create_payment(create_subscription(), payment_date=aware(date(2025, 2, 1)))

    def test_customer_history(self):
        self.assertEqual(
            self.service.get_payment_history(self.customer.id),
            [self.failed, self.february, self.january]
        )

    def test_subscription_payments(self):
        self.assertEqual(len(self.service.get_subscription_payments(self.subscription.id)), 3)

    def test_business_history_filters(self):
        history = self.service.get_business_payment_history(
            self.business.id, start_date=date(2025, 2, 1), end_date=date(2025, 2, 15),
        )
        self.assertEqual(history, [self.february])

        completed = self.service.get_business_payment_history(self.business.id, status=Payment.STATUS_COMPLETED)
        self.assertEqual(set(completed), {self.january, self.february})

        with self.assertRaises(BusinessNotFound):
            self.service.get_business_payment_history(uuid.uuid4())

    def test_get_payment(self):
        self.assertEqual(self.service.get_payment(self.january.id), self.january)
        with self.assertRaises(PaymentNotFound):
            self.service.get_payment(uuid.uuid4())
