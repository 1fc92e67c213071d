"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timedelta
from typing import List

_EPOCH = datetime(1970, 1, 1)


def generate_date_range(start: date, end: date) -> List[date]:
    """Generate list of dates from start to end (inclusive)"""
    days = (end - start).days + 1
    return [start + timedelta(days=i) for i in range(days)]


def last_day_of_month(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length"""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def epoch_ms(moment: datetime) -> int:
    """Milliseconds since the epoch for a naive UTC datetime"""
    return int((moment - _EPOCH).total_seconds() * 1000)
