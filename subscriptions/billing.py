"""
Billing Calculator

Pure functions for period arithmetic, discounted totals and late fees.
No side effects and no database access; any object exposing the PaymentPlan
pricing attributes can be passed as ``plan``.
"""
import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from dateutil.relativedelta import relativedelta

from .exceptions import InvalidArgument
from .models import PaymentPlan

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
HUNDRED = Decimal('100')

# period_type -> (relativedelta unit, multiplier)
PERIOD_UNITS = {
    PaymentPlan.PERIOD_DAILY: ('days', 1),
    PaymentPlan.PERIOD_WEEKLY: ('weeks', 1),
    PaymentPlan.PERIOD_MONTHLY: ('months', 1),
    PaymentPlan.PERIOD_QUARTERLY: ('months', 3),
    PaymentPlan.PERIOD_SEMI_ANNUAL: ('months', 6),
    PaymentPlan.PERIOD_YEARLY: ('years', 1),
}

UNITS = ('days', 'weeks', 'months', 'years')


def quantize(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half up"""
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def _require_int(value, name):
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{name} must be an integer, got {value!r}")


def _require_date(value, name):
    if isinstance(value, datetime) or not isinstance(value, date):
        raise InvalidArgument(f"{name} must be a date, got {value!r}")


def add_period(start: date, unit: str, count: int) -> date:
    """Add ``count`` whole ``unit``s (days/weeks/months/years) to ``start``"""
    _require_date(start, 'start')
    _require_int(count, 'count')
    if unit not in UNITS:
        raise InvalidArgument(f"Unknown period unit: {unit}")
    return start + relativedelta(**{unit: count})


def period_end_date(start: date, period_type: str, period_count: int) -> date:
    """
    Date reached after ``period_count`` periods of ``period_type`` from ``start``.

    Month arithmetic clamps to the last day of shorter months
    (2025-01-31 + 1 month = 2025-02-28).
    """
    _require_int(period_count, 'period_count')
    if period_count < 1:
        raise InvalidArgument("Period count must be at least 1")
    try:
        unit, multiplier = PERIOD_UNITS[period_type]
    except KeyError:
        raise InvalidArgument(f"Unknown period type: {period_type}")
    return add_period(start, unit, multiplier * period_count)


def total_amount(plan, periods: int) -> Decimal:
    """
    Total charged for ``periods`` periods paid at once.

    The advance-period discount only applies when more than one period is
    bought; a single period is always charged at the full base amount.
    """
    _require_int(periods, 'periods')
    if periods <= 0:
        raise InvalidArgument("Number of periods must be positive")

    base_total = Decimal(plan.base_amount) * periods
    discount_percentage = Decimal(plan.discount_percentage or 0)

    if periods > 1 and discount_percentage > 0:
        multiplier = Decimal('1') - discount_percentage / HUNDRED
        discounted = quantize(base_total * multiplier)
        logger.debug(
            "Discount applied: %s%% on %s periods. Original: %s, Discounted: %s",
            discount_percentage, periods, base_total, discounted
        )
        return discounted

    return quantize(base_total)


def discount_amount(plan, periods: int) -> Decimal:
    """Difference between the undiscounted and the charged total"""
    base_total = quantize(Decimal(plan.base_amount) * periods)
    return base_total - total_amount(plan, periods)


def late_fee(plan, days_late: int) -> Decimal:
    """
    Late fee for a payment ``days_late`` days after its due date.

    Nothing accrues inside the grace period; after it, each chargeable day
    costs ``late_fee_per_day``.
    """
    _require_int(days_late, 'days_late')
    grace_period_days = plan.grace_period_days or 0

    if days_late <= grace_period_days:
        return Decimal('0.00')

    chargeable_days = days_late - grace_period_days
    fee = quantize(Decimal(plan.late_fee_per_day or 0) * chargeable_days)
    return max(fee, Decimal('0.00'))


def days_between(start: date, end: date) -> int:
    """Whole days from ``start`` to ``end`` (negative when end is earlier)"""
    _require_date(start, 'start')
    _require_date(end, 'end')
    return (end - start).days
