"""
Customer-facing message texts.
"""
from django.conf import settings

from .models import Notification

DATE_FORMAT = '%Y-%m-%d'
DATETIME_FORMAT = '%Y-%m-%d %H:%M'

SUBJECTS = {
    Notification.TYPE_PAYMENT_REMINDER: 'Payment Reminder',
    Notification.TYPE_OVERDUE_NOTICE: 'Overdue Payment Notice',
    Notification.TYPE_SUBSCRIPTION_EXPIRED: 'Subscription Expired',
    Notification.TYPE_PAYMENT_CONFIRMATION: 'Payment Confirmation',
}


def format_amount(amount):
    currency = getattr(settings, 'BILLING_CURRENCY_LABEL', '')
    return f"{amount:,} {currency}".strip()


def payment_reminder(customer, subscription):
    plan = subscription.payment_plan
    return (
        f"Dear {customer.first_name},\n\n"
        f"This is a reminder that your next payment is due on "
        f"{subscription.next_payment_date.strftime(DATE_FORMAT)}.\n"
        f"Amount due: {format_amount(plan.base_amount)}\n"
        f"Plan: {plan.name}\n\n"
        "Please make your payment before the due date.\n\n"
        "Thank you"
    )


def overdue_notice(customer, subscription, today):
    plan = subscription.payment_plan
    return (
        f"Dear {customer.first_name},\n\n"
        "Your payment is overdue.\n"
        f"Due date: {subscription.next_payment_date.strftime(DATE_FORMAT)} "
        f"({subscription.days_overdue(today)} days ago)\n"
        f"Amount due: {format_amount(plan.base_amount)}\n"
        f"Plan: {plan.name}\n\n"
        "Please pay as soon as possible. Late fees apply after the grace period.\n\n"
        "Thank you"
    )


def subscription_expired(customer, subscription):
    return (
        f"Dear {customer.first_name},\n\n"
        "Your subscription has expired.\n"
        f"Plan: {subscription.payment_plan.name}\n"
        f"Start date: {subscription.start_date.strftime(DATE_FORMAT)}\n"
        f"End date: {subscription.end_date.strftime(DATE_FORMAT)}\n\n"
        "It was deactivated after a long period without payment. "
        "Please contact us to renew or reactivate it.\n\n"
        "Thank you"
    )


def payment_confirmation(customer, payment):
    paid_at = payment.payment_date.strftime(DATETIME_FORMAT) if payment.payment_date else '-'
    return (
        f"Dear {customer.first_name},\n\n"
        "Your payment was received.\n"
        f"Amount paid: {format_amount(payment.amount)}\n"
        f"Payment date: {paid_at}\n"
        f"Transaction: {payment.transaction_id}\n"
        f"Payment method: {payment.get_payment_method_display() or '-'}\n\n"
        "Thank you for your support."
    )


# Short SMS texts

def expiry_reminder_sms(customer, subscription):
    return (
        f"Dear {customer.full_name}, your subscription ends on "
        f"{subscription.end_date.strftime(DATE_FORMAT)}. Please renew it to keep your service."
    )


def overdue_reminder_sms(customer, remaining_amount, late_fee):
    text = (
        f"Dear {customer.full_name}, your subscription payment is overdue. "
        f"Please renew as soon as possible. Amount due: {format_amount(remaining_amount)}"
    )
    if late_fee > 0:
        text += f" (late fee: {format_amount(late_fee)})"
    return text
