"""
Weekly Aggregator.

Calendar weeks run Monday 00:00:00.000 to Sunday 23:59:59.999. The boundary
functions are pure so they can be checked without a database.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Callable, Optional, Tuple

from backend.app.domain.trips.records import TripCriteria
from backend.app.domain.trips.store import TripStore

WeekWindow = Tuple[datetime, datetime]

START_OF_DAY = time(0, 0, 0, 0)
END_OF_DAY = time(23, 59, 59, 999000)


def days_since_monday(day: datetime) -> int:
    # isoweekday() % 7 gives 0 for Sunday .. 6 for Saturday
    weekday_from_sunday = day.isoweekday() % 7
    return (weekday_from_sunday + 6) % 7


def week_bounds(now: datetime) -> WeekWindow:
    """Monday and Sunday boundaries of the week containing now."""
    monday = datetime.combine(
        (now - timedelta(days=days_since_monday(now))).date(),
        START_OF_DAY,
        tzinfo=now.tzinfo,
    )
    sunday = datetime.combine(
        (monday + timedelta(days=6)).date(),
        END_OF_DAY,
        tzinfo=now.tzinfo,
    )
    return monday, sunday


def previous_week_bounds(now: datetime) -> WeekWindow:
    monday, sunday = week_bounds(now)
    return monday - timedelta(days=7), sunday - timedelta(days=7)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WeeklyAggregator:
    """Counts a tenant's trips whose start_date falls within a calendar week."""

    def __init__(self, store: TripStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    async def _count_within(self, company_id: int, window: WeekWindow) -> int:
        start, end = window
        return await self.store.count(TripCriteria(
            company_id=company_id,
            start_from=start,
            start_to=end,
        ))

    async def count_current_week(self, company_id: int, now: Optional[datetime] = None) -> int:
        return await self._count_within(company_id, week_bounds(now or self.clock()))

    async def count_previous_week(self, company_id: int, now: Optional[datetime] = None) -> int:
        return await self._count_within(company_id, previous_week_bounds(now or self.clock()))
