"""
Subscription Lifecycle Service

Creates, renews and cancels subscriptions, applies payments and performs the
status transitions used by the scheduled jobs. Payment plan administration
lives here as well since plans are only meaningful through subscriptions, and
so does the read-only business dashboard.
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q, Sum

from accounts.models import Business, Customer
from . import billing
from .clock import system_clock
from .exceptions import (
    BusinessNotFound,
    CustomerNotFound,
    InvalidArgument,
    InvalidOperation,
    PaymentPlanNotFound,
    SubscriptionNotFound,
)
from .models import Payment, PaymentPlan, Subscription

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Subscription state machine and payment application"""

    def __init__(self, clock=None):
        self.clock = clock or system_clock

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_subscription(self, customer_id, plan_id, start_date: date, periods: int = 1) -> Subscription:
        """
        Subscribe a customer to a plan for ``periods`` plan periods.

        Raises:
            CustomerNotFound / PaymentPlanNotFound: unknown ids
            InvalidOperation: the plan has been deactivated
            InvalidArgument: bad start date or period count
        """
        logger.info(f"Creating subscription for customer: {customer_id}")

        customer = self._get_customer(customer_id)
        plan = self._get_plan(plan_id)

        if not plan.is_active:
            raise InvalidOperation("Payment plan is not active")

        end_date = billing.period_end_date(start_date, plan.period_type, plan.period_count * periods)
        total = billing.total_amount(plan, periods)
        discount = billing.discount_amount(plan, periods)

        subscription = Subscription.objects.create(
            customer=customer,
            payment_plan=plan,
            start_date=start_date,
            end_date=end_date,
            status=Subscription.STATUS_ACTIVE,
            total_amount=total,
            discount_applied=discount,
            next_payment_date=start_date,
        )

        logger.info(f"Subscription created successfully with id: {subscription.id}")
        return subscription

    @transaction.atomic
    def renew_subscription(self, subscription_id) -> Subscription:
        """
        Renew for exactly one plan period starting the day after the current end.
        Renewal is not an advance purchase, so no discount is applied.
        """
        logger.info(f"Renewing subscription: {subscription_id}")
        subscription = self.get_subscription(subscription_id)

        if subscription.status == Subscription.STATUS_CANCELLED:
            raise InvalidOperation("Cannot renew a cancelled subscription")

        plan = subscription.payment_plan
        new_start_date = subscription.end_date + timedelta(days=1)

        subscription.start_date = new_start_date
        subscription.end_date = billing.period_end_date(new_start_date, plan.period_type, plan.period_count)
        subscription.status = Subscription.STATUS_ACTIVE
        subscription.next_payment_date = new_start_date
        subscription.total_amount = billing.quantize(plan.base_amount)
        subscription.discount_applied = Decimal('0.00')
        subscription.save()

        logger.info(f"Subscription renewed successfully: {subscription.id}")
        return subscription

    def cancel_subscription(self, subscription_id) -> Subscription:
        """Cancel a subscription. Cancelling twice is a no-op."""
        logger.info(f"Cancelling subscription: {subscription_id}")
        subscription = self.get_subscription(subscription_id)

        if subscription.status != Subscription.STATUS_CANCELLED:
            subscription.status = Subscription.STATUS_CANCELLED
            subscription.save(update_fields=['status', 'updated_at'])
            logger.info(f"Subscription cancelled successfully: {subscription.id}")
        else:
            logger.debug(f"Subscription {subscription.id} already cancelled")

        return subscription

    def apply_payment(self, subscription: Subscription, payment_amount: Decimal, payment_date: date) -> Subscription:
        """
        Record a completed payment on the subscription.

        Moves the next payment date one plan period past ``payment_date`` and
        reactivates OVERDUE/PENDING subscriptions. The amount is not reconciled
        against the subscription total here.
        """
        logger.debug(f"Applying payment of {payment_amount} to subscription {subscription.id}")
        plan = subscription.payment_plan

        subscription.last_payment_date = payment_date
        subscription.next_payment_date = billing.period_end_date(payment_date, plan.period_type, plan.period_count)

        update_fields = ['last_payment_date', 'next_payment_date', 'updated_at']
        if subscription.status in (Subscription.STATUS_OVERDUE, Subscription.STATUS_PENDING):
            logger.info(f"Subscription {subscription.id} status changed from {subscription.status} to ACTIVE")
            subscription.status = Subscription.STATUS_ACTIVE
            update_fields.append('status')

        subscription.save(update_fields=update_fields)
        return subscription

    def mark_overdue(self, subscription: Subscription) -> bool:
        """ACTIVE -> OVERDUE. Returns False when the subscription was not ACTIVE."""
        return self._transition(subscription, Subscription.STATUS_ACTIVE, Subscription.STATUS_OVERDUE)

    def mark_expired(self, subscription: Subscription) -> bool:
        """OVERDUE -> EXPIRED. Returns False when the subscription was not OVERDUE."""
        return self._transition(subscription, Subscription.STATUS_OVERDUE, Subscription.STATUS_EXPIRED)

    def _transition(self, subscription, from_status, to_status):
        # Conditional write: a concurrent run or payment that already moved the
        # row makes this a no-op instead of clobbering it.
        changed = Subscription.objects.filter(
            pk=subscription.pk,
            status=from_status,
        ).update(status=to_status, updated_at=self.clock.now())

        subscription.refresh_from_db(fields=['status', 'updated_at'])

        if changed:
            logger.info(f"Subscription {subscription.id} moved from {from_status} to {to_status}")
        return bool(changed)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_subscription(self, subscription_id) -> Subscription:
        try:
            return Subscription.objects.select_related(
                'customer', 'payment_plan'
            ).get(pk=subscription_id)
        except (Subscription.DoesNotExist, ValidationError, ValueError):
            raise SubscriptionNotFound(subscription_id)

    def get_active_subscriptions(self, customer_id) -> List[Subscription]:
        customer = self._get_customer(customer_id)
        return list(
            customer.subscriptions.filter(status=Subscription.STATUS_ACTIVE).select_related('payment_plan')
        )

    def get_customer_subscriptions(self, customer_id) -> List[Subscription]:
        customer = self._get_customer(customer_id)
        return list(customer.subscriptions.select_related('payment_plan'))

    def get_business_subscriptions(self, business_id, status: Optional[str] = None) -> List[Subscription]:
        if not Business.objects.filter(pk=business_id).exists():
            raise BusinessNotFound(business_id)
        queryset = Subscription.objects.filter(customer__business_id=business_id)
        if status:
            queryset = queryset.filter(status=status)
        return list(queryset.select_related('customer', 'payment_plan'))

    def get_subscriptions_by_status(self, status: str) -> List[Subscription]:
        return list(Subscription.objects.filter(status=status).select_related('customer', 'payment_plan'))

    def calculate_next_payment_date(self, subscription: Subscription) -> date:
        """Next due date: the start date until the first payment, then one period after the last one"""
        if subscription.last_payment_date is None:
            return subscription.start_date
        plan = subscription.payment_plan
        return billing.period_end_date(subscription.last_payment_date, plan.period_type, plan.period_count)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_customer(self, customer_id) -> Customer:
        try:
            return Customer.objects.get(pk=customer_id)
        except (Customer.DoesNotExist, ValidationError, ValueError):
            raise CustomerNotFound(customer_id)

    def _get_plan(self, plan_id) -> PaymentPlan:
        try:
            return PaymentPlan.objects.get(pk=plan_id)
        except (PaymentPlan.DoesNotExist, ValidationError, ValueError):
            raise PaymentPlanNotFound(plan_id)


class PaymentPlanService:
    """Administrative operations on payment plans"""

    EDITABLE_FIELDS = (
        'name',
        'period_type',
        'period_count',
        'base_amount',
        'discount_percentage',
        'late_fee_per_day',
        'grace_period_days',
    )

    def create_plan(
        self,
        business_id,
        name: str,
        period_type: str,
        base_amount: Decimal,
        period_count: int = 1,
        discount_percentage: Optional[Decimal] = None,
        late_fee_per_day: Optional[Decimal] = None,
        grace_period_days: Optional[int] = None,
    ) -> PaymentPlan:
        logger.info(f"Creating payment plan for business: {business_id}")
        try:
            business = Business.objects.get(pk=business_id)
        except (Business.DoesNotExist, ValidationError, ValueError):
            raise BusinessNotFound(business_id)

        plan = PaymentPlan(
            business=business,
            name=name,
            period_type=period_type,
            period_count=period_count,
            base_amount=base_amount,
            discount_percentage=discount_percentage if discount_percentage is not None else Decimal('0.00'),
            late_fee_per_day=late_fee_per_day if late_fee_per_day is not None else Decimal('0.00'),
            grace_period_days=grace_period_days if grace_period_days is not None else 0,
            is_active=True,
        )
        self._validate(plan)
        plan.save()

        logger.info(f"Payment plan created successfully with id: {plan.id}")
        return plan

    def get_plan(self, plan_id) -> PaymentPlan:
        try:
            return PaymentPlan.objects.select_related('business').get(pk=plan_id)
        except (PaymentPlan.DoesNotExist, ValidationError, ValueError):
            raise PaymentPlanNotFound(plan_id)

    def update_plan(self, plan_id, **fields) -> PaymentPlan:
        """Administrative edit; unknown field names are rejected"""
        logger.info(f"Updating payment plan with id: {plan_id}")
        plan = self.get_plan(plan_id)

        unknown = set(fields) - set(self.EDITABLE_FIELDS)
        if unknown:
            raise InvalidArgument(f"Cannot update fields: {', '.join(sorted(unknown))}")

        for field, value in fields.items():
            setattr(plan, field, value)

        self._validate(plan)
        plan.save()

        logger.info(f"Payment plan updated successfully: {plan.id}")
        return plan

    def deactivate_plan(self, plan_id) -> PaymentPlan:
        """Plans are never deleted; deactivation blocks new subscriptions"""
        logger.info(f"Deactivating payment plan with id: {plan_id}")
        plan = self.get_plan(plan_id)
        if plan.is_active:
            plan.is_active = False
            plan.save(update_fields=['is_active', 'updated_at'])
        return plan

    def get_business_plans(self, business_id) -> List[PaymentPlan]:
        if not Business.objects.filter(pk=business_id).exists():
            raise BusinessNotFound(business_id)
        return list(PaymentPlan.objects.filter(business_id=business_id, is_active=True))

    @staticmethod
    def _validate(plan):
        try:
            plan.full_clean()
        except ValidationError as e:
            raise InvalidArgument(f"Invalid payment plan: {e.message_dict}")


@dataclass
class BusinessDashboard:
    business_id: object
    business_name: str
    total_customers: int
    active_customers: int
    active_subscriptions: int
    overdue_subscriptions: int
    total_revenue: Decimal
    pending_payments: Decimal
    overdue_amount: Decimal


class BusinessService:
    """Read-only summaries over a business's customers, subscriptions and payments"""

    def get_business_dashboard(self, business_id) -> BusinessDashboard:
        """
        Headline figures for one business.

        Revenue counts COMPLETED payments only. Pending payments is the total
        amount of ACTIVE and OVERDUE subscriptions; overdue amount covers the
        OVERDUE ones alone.
        """
        logger.debug(f"Fetching dashboard for business: {business_id}")
        try:
            business = Business.objects.get(pk=business_id)
        except (Business.DoesNotExist, ValidationError, ValueError):
            raise BusinessNotFound(business_id)

        customers = business.customers.aggregate(
            total=Count('id'),
            active=Count('id', filter=Q(is_active=True)),
        )
        subscriptions = Subscription.objects.filter(customer__business=business).aggregate(
            active=Count('id', filter=Q(status=Subscription.STATUS_ACTIVE)),
            overdue=Count('id', filter=Q(status=Subscription.STATUS_OVERDUE)),
            pending_amount=Sum(
                'total_amount',
                filter=Q(status__in=[Subscription.STATUS_ACTIVE, Subscription.STATUS_OVERDUE]),
            ),
            overdue_amount=Sum('total_amount', filter=Q(status=Subscription.STATUS_OVERDUE)),
        )
        revenue = Payment.objects.filter(
            subscription__customer__business=business,
            status=Payment.STATUS_COMPLETED,
        ).aggregate(total=Sum('amount'))['total']

        return BusinessDashboard(
            business_id=business.id,
            business_name=business.name,
            total_customers=customers['total'],
            active_customers=customers['active'],
            active_subscriptions=subscriptions['active'],
            overdue_subscriptions=subscriptions['overdue'],
            total_revenue=revenue or Decimal('0.00'),
            pending_payments=subscriptions['pending_amount'] or Decimal('0.00'),
            overdue_amount=subscriptions['overdue_amount'] or Decimal('0.00'),
        )
