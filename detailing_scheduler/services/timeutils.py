"""
Time-of-day helpers. All slot arithmetic is done in minutes since midnight.
"""
from datetime import date, datetime, time

from detailing_scheduler.errors import ValidationError

MINUTES_PER_DAY = 24 * 60


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValidationError(
            f"Time out of range: {minutes} minutes after midnight",
            code="TIME_OUT_OF_RANGE",
        )
    return time(hour=minutes // 60, minute=minutes % 60)


def add_minutes(value: time, minutes: int) -> time:
    """Add minutes to a time of day; crossing midnight is a validation error"""
    return from_minutes(to_minutes(value) + minutes)


def parse_time(value) -> time:
    """Accept a ``time`` or an 'HH:MM' string"""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError):
        raise ValidationError(
            "Invalid time format. Use HH:MM (24-hour format)",
            code="INVALID_TIME",
            details={"value": str(value)},
        ) from None


def parse_date(value) -> date:
    """Accept a ``date`` or a 'YYYY-MM-DD' string"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(
            "Invalid date format. Use YYYY-MM-DD",
            code="INVALID_DATE",
            details={"value": str(value)},
        ) from None


def day_of_week(value: date) -> str:
    """Lower-case English day name, e.g. 'monday'"""
    return value.strftime("%A").lower()


def require_ordered(start: time, end: time) -> None:
    if start >= end:
        raise ValidationError(
            "Start time must be before end time",
            code="INVALID_INTERVAL",
            details={"start_time": start.strftime("%H:%M"), "end_time": end.strftime("%H:%M")},
        )


def format_time(value: time) -> str:
    return value.strftime("%H:%M")
