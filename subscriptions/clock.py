"""
Clock abstraction so that date-boundary behaviour can be pinned in tests.
"""
from datetime import date, datetime, time

from django.utils import timezone


class SystemClock:
    """Clock backed by django.utils.timezone (honours TIME_ZONE/USE_TZ)"""

    def today(self) -> date:
        return timezone.localdate()

    def now(self) -> datetime:
        return timezone.now()

    def start_of_day(self, day: date = None) -> datetime:
        """Aware datetime for midnight at the start of ``day`` (default today)"""
        day = day or self.today()
        return timezone.make_aware(datetime.combine(day, time.min))


class FixedClock(SystemClock):
    """Clock frozen on a given date; ``now`` defaults to noon of that date"""

    def __init__(self, today: date, now: datetime = None):
        self._today = today
        if now is None:
            now = timezone.make_aware(datetime.combine(today, time(12, 0)))
        self._now = now

    def today(self) -> date:
        return self._today

    def now(self) -> datetime:
        return self._now


system_clock = SystemClock()
