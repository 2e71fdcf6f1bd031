"""
Payment Service

Direct (already settled) payments and the two-phase gateway flow:
initiate_payment creates a PENDING payment and a checkout URL, and
verify_payment resolves it exactly once when the gateway reports back.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation as DecimalException
from typing import Dict, List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction

from accounts.models import Business, Customer
from . import billing
from .clock import system_clock
from .exceptions import (
    BusinessNotFound,
    CustomerNotFound,
    InvalidArgument,
    InvalidPayment,
    PaymentNotFound,
    SubscriptionNotFound,
)
from .models import Payment, Subscription
from .payment_gateway import payment_gateway as default_gateway
from .services import SubscriptionService

logger = logging.getLogger(__name__)


@dataclass
class PaymentInitiation:
    transaction_id: str
    payment_url: str


@dataclass
class PaymentVerification:
    transaction_id: str
    success: bool
    status: str
    message: str
    already_processed: bool = False


@dataclass
class PendingPayment:
    """Preview of an upcoming or overdue payment; nothing is persisted"""
    subscription: Subscription
    amount: Decimal
    due_date: date
    late_fee: Decimal
    days_overdue: int

    @property
    def is_overdue(self) -> bool:
        return self.days_overdue > 0


class PaymentService:
    """Takes payments against subscriptions and answers payment history queries"""

    def __init__(self, clock=None, subscription_service=None, gateway=None):
        self.clock = clock or system_clock
        self.subscription_service = subscription_service or SubscriptionService(clock=self.clock)
        self.gateway = gateway or default_gateway

    # ------------------------------------------------------------------
    # Direct payments
    # ------------------------------------------------------------------

    @transaction.atomic
    def process_payment(
        self,
        subscription_id,
        amount,
        payment_method: str,
        notes: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> Payment:
        """
        Record a settled payment and advance the subscription.

        A late fee is assessed when the subscription's next payment date has
        passed. It is stored on the payment but not added to ``amount``.

        Raises:
            SubscriptionNotFound: unknown subscription
            InvalidPayment: the subscription is cancelled
            InvalidArgument: amount is not positive
        """
        logger.info(f"Processing payment for subscription: {subscription_id}")

        subscription = self._get_subscription(subscription_id)
        amount = self._validate_amount(amount)
        self._ensure_payable(subscription)

        today = self.clock.today()
        late_fee = Decimal('0.00')
        if subscription.next_payment_date and subscription.next_payment_date < today:
            days_late = billing.days_between(subscription.next_payment_date, today)
            late_fee = billing.late_fee(subscription.payment_plan, days_late)
            logger.info(f"Payment is {days_late} days late. Late fee: {late_fee}")

        payment = Payment.objects.create(
            subscription=subscription,
            amount=amount,
            payment_date=self.clock.now(),
            due_date=subscription.next_payment_date,
            status=Payment.STATUS_COMPLETED,
            payment_method=payment_method or '',
            transaction_id=transaction_id or self.gateway.generate_transaction_id(),
            late_fee=late_fee,
            notes=notes,
        )

        self.subscription_service.apply_payment(subscription, amount, today)

        logger.info(f"Payment processed successfully with id: {payment.id}")
        return payment

    # ------------------------------------------------------------------
    # Gateway flow
    # ------------------------------------------------------------------

    @transaction.atomic
    def initiate_payment(self, subscription_id, amount, description: Optional[str] = None) -> PaymentInitiation:
        """Create a PENDING payment and return the checkout URL for it"""
        logger.info(f"Initiating payment for subscription: {subscription_id}")

        subscription = self._get_subscription(subscription_id)
        amount = self._validate_amount(amount)
        self._ensure_payable(subscription)

        payment = Payment.objects.create(
            subscription=subscription,
            amount=amount,
            due_date=subscription.next_payment_date,
            status=Payment.STATUS_PENDING,
            payment_method=Payment.METHOD_ONLINE,
            transaction_id=self.gateway.generate_transaction_id(),
            description=description,
        )
        logger.info(f"Payment created with transaction ID: {payment.transaction_id}")

        return PaymentInitiation(
            transaction_id=payment.transaction_id,
            payment_url=self.gateway.build_checkout_url(payment.transaction_id, amount),
        )

    @transaction.atomic
    def verify_payment(self, transaction_id: str, success: bool) -> PaymentVerification:
        """
        Resolve a PENDING gateway payment.

        The payment row is locked so that concurrent callbacks for the same
        transaction resolve it once; later calls report the stored outcome
        with ``already_processed`` set and change nothing.
        """
        logger.info(f"Verifying payment with transaction ID: {transaction_id} - Success: {success}")

        try:
            payment = Payment.objects.select_for_update().get(transaction_id=transaction_id)
        except Payment.DoesNotExist:
            raise PaymentNotFound(transaction_id, f"Transaction not found: {transaction_id}")

        if payment.is_resolved:
            completed = payment.status == Payment.STATUS_COMPLETED
            message = (
                "Transaction has already been completed"
                if completed else "Transaction has already been processed"
            )
            return PaymentVerification(
                transaction_id=transaction_id,
                success=completed,
                status=payment.status,
                message=message,
                already_processed=True,
            )

        if success:
            payment.status = Payment.STATUS_COMPLETED
            payment.payment_date = self.clock.now()
            payment.save(update_fields=['status', 'payment_date', 'updated_at'])

            subscription = self._get_subscription(payment.subscription_id)
            self.subscription_service.apply_payment(subscription, payment.amount, self.clock.today())

            logger.info(f"Payment {transaction_id} verified successfully")
            return PaymentVerification(
                transaction_id=transaction_id,
                success=True,
                status=payment.status,
                message="Payment completed successfully",
            )

        payment.status = Payment.STATUS_FAILED
        payment.save(update_fields=['status', 'updated_at'])
        logger.info(f"Payment {transaction_id} marked as failed")

        return PaymentVerification(
            transaction_id=transaction_id,
            success=False,
            status=payment.status,
            message="Payment was cancelled or failed",
        )

    def generate_payment_link(self, subscription_id) -> str:
        logger.info(f"Generating payment link for subscription: {subscription_id}")
        subscription = self._get_subscription(subscription_id)
        if subscription.status == Subscription.STATUS_CANCELLED:
            raise InvalidPayment("Cannot generate payment link for cancelled subscription")
        return self.gateway.build_payment_link(subscription.id)

    # ------------------------------------------------------------------
    # Previews
    # ------------------------------------------------------------------

    def calculate_late_fee(self, subscription: Subscription) -> Decimal:
        """Late fee the subscription would be charged if paid today"""
        days_overdue = subscription.days_overdue(self.clock.today())
        if days_overdue <= 0:
            return Decimal('0.00')
        return billing.late_fee(subscription.payment_plan, days_overdue)

    def get_pending_payments(self, customer_id) -> List[PendingPayment]:
        """Upcoming payment for every ACTIVE or OVERDUE subscription of the customer"""
        customer = self._get_customer(customer_id)
        today = self.clock.today()

        subscriptions = customer.subscriptions.filter(
            status__in=[Subscription.STATUS_ACTIVE, Subscription.STATUS_OVERDUE],
            next_payment_date__isnull=False,
        ).select_related('payment_plan').order_by('next_payment_date')

        return [
            PendingPayment(
                subscription=subscription,
                amount=subscription.payment_plan.base_amount,
                due_date=subscription.next_payment_date,
                late_fee=self.calculate_late_fee(subscription),
                days_overdue=subscription.days_overdue(today),
            )
            for subscription in subscriptions
        ]

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_payment(self, payment_id) -> Payment:
        try:
            return Payment.objects.select_related('subscription').get(pk=payment_id)
        except (Payment.DoesNotExist, ValidationError, ValueError):
            raise PaymentNotFound(payment_id)

    def get_payment_history(self, customer_id) -> List[Payment]:
        customer = self._get_customer(customer_id)
        return list(
            Payment.objects.filter(subscription__customer=customer)
            .select_related('subscription')
            .order_by('-payment_date', '-created_at')
        )

    def get_subscription_payments(self, subscription_id) -> List[Payment]:
        subscription = self._get_subscription(subscription_id)
        return list(subscription.payments.order_by('-payment_date', '-created_at'))

    def get_business_payment_history(
        self,
        business_id,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[str] = None,
    ) -> List[Payment]:
        """Payments of all customers of a business; the date range is inclusive"""
        logger.debug(f"Fetching payment history for business: {business_id}")
        if not Business.objects.filter(pk=business_id).exists():
            raise BusinessNotFound(business_id)

        queryset = Payment.objects.filter(subscription__customer__business_id=business_id)
        if start_date:
            queryset = queryset.filter(payment_date__date__gte=start_date)
        if end_date:
            queryset = queryset.filter(payment_date__date__lte=end_date)
        if status:
            queryset = queryset.filter(status=status)

        return list(queryset.select_related('subscription').order_by('-payment_date'))

    def get_payment_details(self, transaction_id: str) -> Dict:
        """Customer and plan summary shown on the hosted payment page"""
        try:
            payment = Payment.objects.select_related(
                'subscription__customer', 'subscription__payment_plan'
            ).get(transaction_id=transaction_id)
        except Payment.DoesNotExist:
            raise PaymentNotFound(transaction_id, f"Transaction not found: {transaction_id}")

        customer = payment.subscription.customer
        plan = payment.subscription.payment_plan
        return {
            'transaction_id': payment.transaction_id,
            'amount': payment.amount,
            'status': payment.status,
            'customer': {
                'id': customer.id,
                'full_name': customer.full_name,
                'email': customer.email,
                'phone': customer.phone_number,
            },
            'plan': {
                'id': plan.id,
                'name': plan.name,
                'period_type': plan.period_type,
                'period_count': plan.period_count,
            },
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_subscription(self, subscription_id) -> Subscription:
        try:
            return Subscription.objects.select_related('payment_plan', 'customer').get(pk=subscription_id)
        except (Subscription.DoesNotExist, ValidationError, ValueError):
            raise SubscriptionNotFound(subscription_id)

    def _get_customer(self, customer_id) -> Customer:
        try:
            return Customer.objects.get(pk=customer_id)
        except (Customer.DoesNotExist, ValidationError, ValueError):
            raise CustomerNotFound(customer_id)

    @staticmethod
    def _ensure_payable(subscription):
        if subscription.status == Subscription.STATUS_CANCELLED:
            raise InvalidPayment("Cannot process payment for cancelled subscription")

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        try:
            amount = Decimal(str(amount))
        except (DecimalException, TypeError, ValueError):
            raise InvalidArgument(f"Invalid payment amount: {amount!r}")
        if not amount.is_finite() or amount <= 0:
            raise InvalidArgument("Payment amount must be positive")
        return billing.quantize(amount)
