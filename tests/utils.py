import itertools
from datetime import date
from decimal import Decimal

from accounts.models import Business, Customer
from notifications.senders import SendResult
from subscriptions.models import Payment, PaymentPlan, Subscription

_phone_numbers = itertools.count(9120000001)
_transactions = itertools.count(1)


def create_business(name="Test Business", **extra):
    return Business.objects.create(name=name, owner_name="Owner", **extra)


def create_customer(business=None, email="customer@example.com", **extra):
    """Create a customer with a unique phone number."""
    business = business or create_business()
    defaults = {
        "first_name": "Sara",
        "last_name": "Ahmadi",
        "phone_number": f"0{next(_phone_numbers)}",
        "email": email,
    }
    defaults.update(extra)
    return Customer.objects.create(business=business, **defaults)


def create_plan(business=None, **extra):
    business = business or create_business()
    defaults = {
        "name": "Monthly Plan",
        "period_type": PaymentPlan.PERIOD_MONTHLY,
        "period_count": 1,
        "base_amount": Decimal("500000.00"),
        "discount_percentage": Decimal("10.00"),
        "late_fee_per_day": Decimal("5000.00"),
        "grace_period_days": 3,
    }
    defaults.update(extra)
    return PaymentPlan.objects.create(business=business, **defaults)


def create_subscription(customer=None, plan=None, start_date=date(2025, 1, 1), **extra):
    """Create a subscription row directly, bypassing the lifecycle service."""
    customer = customer or create_customer()
    plan = plan or create_plan(business=customer.business)
    defaults = {
        "end_date": date(2025, 2, 1),
        "status": Subscription.STATUS_ACTIVE,
        "total_amount": plan.base_amount,
        "next_payment_date": start_date,
    }
    defaults.update(extra)
    return Subscription.objects.create(customer=customer, payment_plan=plan, start_date=start_date, **defaults)


def create_payment(subscription, amount=Decimal("100000.00"), status=Payment.STATUS_COMPLETED, **extra):
    defaults = {
        "transaction_id": f"TXN-TEST-{next(_transactions)}",
        "payment_method": Payment.METHOD_CASH,
    }
    defaults.update(extra)
    return Payment.objects.create(subscription=subscription, amount=amount, status=status, **defaults)


class RecordingSender:
    """Channel sender double that records every send and returns a fixed outcome."""

    def __init__(self, success=True, error="provider unavailable", exception=None):
        self.success = success
        self.error = error
        self.exception = exception
        self.sent = []

    def send(self, recipient, message, subject=None):
        self.sent.append((recipient, message))
        if self.exception is not None:
            raise self.exception
        if self.success:
            return SendResult(success=True, message_id=f"msg-{len(self.sent)}")
        return SendResult.failed(self.error)


def recording_senders(**overrides):
    """Channel -> RecordingSender mapping for NotificationDispatcher"""
    senders = {
        "EMAIL": RecordingSender(),
        "SMS": RecordingSender(),
        "PUSH": RecordingSender(),
    }
    senders.update(overrides)
    return senders
