from datetime import date, datetime, time, timezone
from typing import Optional


def ensure_datetime(value):
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        # default to midnight UTC
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_month(any_day: date) -> date:
    y, m = any_day.year, any_day.month
    if m == 12:
        return date(y + 1, 1, 1)
    return date(y, m + 1, 1)


def billing_period_label(any_day: Optional[date] = None) -> str:
    """Human-readable period for a calendar month, e.g. 'September 2025'."""
    any_day = any_day or utcnow()
    months = [
        "January", "February", "March", "April", "May", "June", "July",
        "August", "September", "October", "November", "December",
    ]
    return f"{months[any_day.month - 1]} {any_day.year}"


def first_day_of_next_month(any_day: Optional[date] = None) -> datetime:
    """Due date for bills issued during `any_day`'s month."""
    any_day = any_day or utcnow()
    return ensure_datetime(next_month(any_day))
