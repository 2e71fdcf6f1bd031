import uuid
from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal


class PaymentPlan(models.Model):
    """Billing template owned by a business"""
    PERIOD_DAILY = 'DAILY'
    PERIOD_WEEKLY = 'WEEKLY'
    PERIOD_MONTHLY = 'MONTHLY'
    PERIOD_QUARTERLY = 'QUARTERLY'
    PERIOD_SEMI_ANNUAL = 'SEMI_ANNUAL'
    PERIOD_YEARLY = 'YEARLY'

    PERIOD_TYPE_CHOICES = [
        (PERIOD_DAILY, 'Daily'),
        (PERIOD_WEEKLY, 'Weekly'),
        (PERIOD_MONTHLY, 'Monthly'),
        (PERIOD_QUARTERLY, 'Quarterly'),
        (PERIOD_SEMI_ANNUAL, 'Semi-annual'),
        (PERIOD_YEARLY, 'Yearly'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business = models.ForeignKey('accounts.Business', on_delete=models.PROTECT, related_name='payment_plans')
    name = models.CharField(max_length=100)
    period_type = models.CharField(max_length=20, choices=PERIOD_TYPE_CHOICES)
    period_count = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    base_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    discount_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00')), MaxValueValidator(Decimal('100.00'))],
        help_text="Applied only when paying for two or more periods in advance"
    )
    late_fee_per_day = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    grace_period_days = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payment_plans'
        ordering = ['business', 'name']
        indexes = [
            models.Index(fields=['business', 'is_active'], name='payment_pla_busines_8d2c41_idx'),
        ]

    def __str__(self):
        return f"{self.name} - {self.base_amount}/{self.period_count} {self.period_type}"


class Subscription(models.Model):
    """A customer's subscription to a payment plan"""
    STATUS_PENDING = 'PENDING'
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_OVERDUE = 'OVERDUE'
    STATUS_EXPIRED = 'EXPIRED'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_OVERDUE, 'Overdue'),  # Next payment date has passed
        (STATUS_EXPIRED, 'Expired'),  # Overdue past the expiry threshold
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    TERMINAL_STATUSES = (STATUS_EXPIRED, STATUS_CANCELLED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey('accounts.Customer', on_delete=models.PROTECT, related_name='subscriptions')
    payment_plan = models.ForeignKey(PaymentPlan, on_delete=models.PROTECT, related_name='subscriptions')
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    total_amount = models.DecimalField(max_digits=19, decimal_places=2)
    discount_applied = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    next_payment_date = models.DateField(null=True, blank=True)
    last_payment_date = models.DateField(null=True, blank=True)
    last_reminder_sent = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'subscriptions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer', 'status'], name='subscriptio_custome_4e7a10_idx'),
            models.Index(fields=['status', 'next_payment_date'], name='subscriptio_status_a91c3d_idx'),
            models.Index(fields=['status', 'end_date'], name='subscriptio_status_0f62be_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__gte=models.F('start_date')),
                name='subscription_end_after_start',
            ),
        ]

    def __str__(self):
        return f"{self.customer} - {self.payment_plan.name} - {self.status}"

    def clean(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({'end_date': 'End date cannot be before start date.'})

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def days_overdue(self, today):
        """Days since the next payment date, 0 when not yet due"""
        if not self.next_payment_date or self.next_payment_date >= today:
            return 0
        return (today - self.next_payment_date).days


class Payment(models.Model):
    """A payment against a subscription"""
    STATUS_PENDING = 'PENDING'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_FAILED = 'FAILED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),  # Awaiting gateway confirmation
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]

    METHOD_CASH = 'CASH'
    METHOD_CARD = 'CARD'
    METHOD_BANK_TRANSFER = 'BANK_TRANSFER'
    METHOD_ONLINE = 'ONLINE'

    PAYMENT_METHOD_CHOICES = [
        (METHOD_CASH, 'Cash'),
        (METHOD_CARD, 'Card'),
        (METHOD_BANK_TRANSFER, 'Bank Transfer'),
        (METHOD_ONLINE, 'Online Gateway'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    subscription = models.ForeignKey(Subscription, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    payment_date = models.DateTimeField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True)
    transaction_id = models.CharField(max_length=64, unique=True)
    late_fee = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Late fee assessed when the payment was made; not included in amount"
    )
    notes = models.TextField(blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['subscription', 'status'], name='payments_subscri_3c9e57_idx'),
            models.Index(fields=['payment_date'], name='payments_payment_7b21d4_idx'),
        ]

    def __str__(self):
        return f"{self.transaction_id} - {self.amount} - {self.status}"

    @property
    def is_resolved(self):
        return self.status != self.STATUS_PENDING
