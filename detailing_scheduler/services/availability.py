"""
Availability Service
Resolves a business's effective open hours for a date and manages the
weekly pattern and special-day overrides behind it, plus the per-date
working windows of individual staff members.
"""
import logging
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from detailing_scheduler.config import settings
from detailing_scheduler.database import run_in_transaction
from detailing_scheduler.errors import (
    NotFoundError,
    UnauthorizedError,
    UnavailableError,
    ValidationError,
)
from detailing_scheduler.models import (
    DAYS_OF_WEEK,
    Business,
    BusinessAvailability,
    SpecialDayAvailability,
    StaffAvailability,
)
from detailing_scheduler.services.timeutils import day_of_week, format_time, parse_date, parse_time

logger = logging.getLogger(__name__)

MAX_STAFF_RANGE_DAYS = 90


@dataclass(frozen=True)
class ResolvedHours:
    """Effective hours for one business on one date"""

    is_open: bool
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    source: str = "closed"  # "special_day", "weekly" or "closed"
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "is_open": self.is_open,
            "open_time": format_time(self.open_time) if self.open_time else None,
            "close_time": format_time(self.close_time) if self.close_time else None,
            "source": self.source,
            "reason": self.reason,
        }


def default_hours() -> tuple:
    return parse_time(settings.default_open_time), parse_time(settings.default_close_time)


def get_business(db: Session, business_id: int) -> Business:
    business = db.get(Business, business_id)
    if not business:
        raise NotFoundError(
            "Business not found", code="BUSINESS_NOT_FOUND", details={"business_id": business_id}
        )
    return business


def require_owner(business: Business, actor_id: Optional[str]) -> None:
    if not actor_id or business.owner_id != actor_id:
        raise UnauthorizedError(
            "You can only manage your own business availability",
            details={"business_id": business.id},
        )


def resolve(db: Session, business_id: int, target_date: date) -> ResolvedHours:
    """
    Resolve open hours for a business on a date.

    Precedence: special-day override, then weekly pattern, then closed.
    A closed day is a normal result, not an error.
    """
    weekly = (
        db.query(BusinessAvailability)
        .filter(
            BusinessAvailability.business_id == business_id,
            BusinessAvailability.day_of_week == day_of_week(target_date),
        )
        .first()
    )
    special = (
        db.query(SpecialDayAvailability)
        .filter(
            SpecialDayAvailability.business_id == business_id,
            SpecialDayAvailability.date == target_date,
        )
        .first()
    )

    fallback_open, fallback_close = default_hours()
    if weekly is not None:
        fallback_open = weekly.open_time or fallback_open
        fallback_close = weekly.close_time or fallback_close

    if special is not None:
        if not special.is_open:
            return ResolvedHours(is_open=False, source="special_day", reason=special.reason)
        hours = ResolvedHours(
            is_open=True,
            open_time=special.open_time or fallback_open,
            close_time=special.close_time or fallback_close,
            source="special_day",
            reason=special.reason,
        )
    elif weekly is None or not weekly.is_open:
        return ResolvedHours(is_open=False)
    else:
        hours = ResolvedHours(
            is_open=True, open_time=fallback_open, close_time=fallback_close, source="weekly"
        )

    if hours.open_time >= hours.close_time:
        logger.warning(
            "Business %s has inverted hours on %s, treating as closed", business_id, target_date
        )
        return ResolvedHours(is_open=False, source=hours.source, reason=hours.reason)
    return hours


def check_window(db: Session, business_id: int, target_date: date, start: time, end: time) -> ResolvedHours:
    """Raise UnavailableError unless [start, end) lies inside the open hours"""
    hours = resolve(db, business_id, target_date)
    if not hours.is_open:
        raise UnavailableError(
            "Business is closed on this day",
            code="BUSINESS_CLOSED",
            details={"business_id": business_id, "date": target_date.isoformat()},
        )
    if start < hours.open_time or end > hours.close_time:
        raise UnavailableError(
            "Requested time is outside business hours",
            code="OUTSIDE_BUSINESS_HOURS",
            details={
                "business_id": business_id,
                "open_time": format_time(hours.open_time),
                "close_time": format_time(hours.close_time),
            },
        )
    return hours


def _validate_hours(is_open: bool, open_time: Optional[time], close_time: Optional[time]) -> None:
    if not is_open or open_time is None or close_time is None:
        return
    if open_time >= close_time:
        raise ValidationError(
            "Opening time must be before closing time",
            code="INVALID_HOURS",
            details={"open_time": format_time(open_time), "close_time": format_time(close_time)},
        )


def set_weekly_availability(
    db: Session,
    business_id: int,
    actor_id: str,
    day: str,
    is_open: bool,
    open_time=None,
    close_time=None,
) -> BusinessAvailability:
    """Create or update the weekly record for one day of the week"""
    day = (day or "").lower()
    if day not in DAYS_OF_WEEK:
        raise ValidationError(
            f"Unknown day of week: {day}", code="INVALID_DAY", details={"day_of_week": day}
        )
    open_time = parse_time(open_time) if open_time else None
    close_time = parse_time(close_time) if close_time else None
    _validate_hours(is_open, open_time, close_time)

    def work():
        business = get_business(db, business_id)
        require_owner(business, actor_id)

        record = (
            db.query(BusinessAvailability)
            .filter(
                BusinessAvailability.business_id == business_id,
                BusinessAvailability.day_of_week == day,
            )
            .first()
        )
        if record is None:
            record = BusinessAvailability(business_id=business_id, day_of_week=day)
            db.add(record)
        record.is_open = is_open
        record.open_time = open_time
        record.close_time = close_time
        db.flush()
        return record

    record = run_in_transaction(db, work)
    logger.info("Weekly availability set for business %s on %s (open=%s)", business_id, day, is_open)
    return record


def set_special_day(
    db: Session,
    business_id: int,
    actor_id: str,
    target_date: date,
    is_open: bool,
    open_time=None,
    close_time=None,
    reason: Optional[str] = None,
) -> SpecialDayAvailability:
    """Create or update the override for one calendar date"""
    open_time = parse_time(open_time) if open_time else None
    close_time = parse_time(close_time) if close_time else None
    _validate_hours(is_open, open_time, close_time)

    def work():
        business = get_business(db, business_id)
        require_owner(business, actor_id)

        record = (
            db.query(SpecialDayAvailability)
            .filter(
                SpecialDayAvailability.business_id == business_id,
                SpecialDayAvailability.date == target_date,
            )
            .first()
        )
        if record is None:
            record = SpecialDayAvailability(business_id=business_id, date=target_date)
            db.add(record)
        record.is_open = is_open
        record.open_time = open_time
        record.close_time = close_time
        record.reason = reason
        db.flush()
        return record

    record = run_in_transaction(db, work)
    logger.info("Special day set for business %s on %s (open=%s)", business_id, target_date, is_open)
    return record


def get_weekly_availability(db: Session, business_id: int) -> dict:
    """Weekly pattern keyed by day name"""
    get_business(db, business_id)
    records = (
        db.query(BusinessAvailability)
        .filter(BusinessAvailability.business_id == business_id)
        .all()
    )
    return {
        record.day_of_week: {
            "is_open": record.is_open,
            "open_time": format_time(record.open_time) if record.open_time else None,
            "close_time": format_time(record.close_time) if record.close_time else None,
        }
        for record in records
    }


# ----------------------------------------------------------------------
# Staff availability
# ----------------------------------------------------------------------


def _staff_record(db: Session, staff_id: str, target_date: date) -> Optional[StaffAvailability]:
    return (
        db.query(StaffAvailability)
        .filter(StaffAvailability.staff_id == staff_id, StaffAvailability.date == target_date)
        .first()
    )


def set_staff_availability(
    db: Session,
    staff_id: str,
    actor_id: Optional[str],
    target_date: date,
    is_available: bool,
    start_time=None,
    end_time=None,
    reason: Optional[str] = None,
) -> StaffAvailability:
    """
    Create or update a staff member's window for one date.

    Without a window an available staff member works whatever hours the
    business is open. Only the staff member may change their own record.
    """
    if not actor_id or actor_id != staff_id:
        raise UnauthorizedError(
            "You can only manage your own availability", details={"staff_id": staff_id}
        )
    start_time = parse_time(start_time) if start_time else None
    end_time = parse_time(end_time) if end_time else None
    if (start_time is None) != (end_time is None):
        raise ValidationError(
            "Both start and end time are required for a working window",
            code="INVALID_HOURS",
        )
    _validate_hours(is_available, start_time, end_time)

    def work():
        record = _staff_record(db, staff_id, target_date)
        if record is None:
            record = StaffAvailability(staff_id=staff_id, date=target_date)
            db.add(record)
        record.is_available = is_available
        record.start_time = start_time if is_available else None
        record.end_time = end_time if is_available else None
        record.reason = reason
        db.flush()
        return record

    record = run_in_transaction(db, work)
    logger.info(
        "Staff availability set for %s on %s (available=%s)", staff_id, target_date, is_available
    )
    return record


def get_staff_availability(db: Session, staff_id: str, start_date, end_date) -> dict:
    """One entry per date in [start_date, end_date]; dates without a record are open days"""
    start_date, end_date = parse_date(start_date), parse_date(end_date)
    if end_date < start_date:
        raise ValidationError("End date must not be before start date", code="INVALID_RANGE")
    if (end_date - start_date).days >= MAX_STAFF_RANGE_DAYS:
        raise ValidationError(
            f"Date range cannot exceed {MAX_STAFF_RANGE_DAYS} days", code="INVALID_RANGE"
        )

    records = {
        record.date: record
        for record in db.query(StaffAvailability).filter(
            StaffAvailability.staff_id == staff_id,
            StaffAvailability.date >= start_date,
            StaffAvailability.date <= end_date,
        )
    }

    dates = []
    current = start_date
    while current <= end_date:
        record = records.get(current)
        if record is None:
            dates.append(
                {
                    "date": current.isoformat(),
                    "is_available": True,
                    "start_time": None,
                    "end_time": None,
                    "reason": None,
                    "is_custom": False,
                }
            )
        else:
            dates.append(
                {
                    "date": current.isoformat(),
                    "is_available": record.is_available,
                    "start_time": format_time(record.start_time) if record.start_time else None,
                    "end_time": format_time(record.end_time) if record.end_time else None,
                    "reason": record.reason,
                    "is_custom": True,
                }
            )
        current += timedelta(days=1)
    return {"staff_id": staff_id, "dates": dates}


def check_staff_window(db: Session, staff_id: str, target_date: date, start: time, end: time) -> None:
    """Raise UnavailableError when the staff member is off or [start, end) leaves their window"""
    record = _staff_record(db, staff_id, target_date)
    if record is None:
        return
    if not record.is_available:
        raise UnavailableError(
            "Staff member is not available on this date",
            code="STAFF_UNAVAILABLE",
            details={"staff_id": staff_id, "date": target_date.isoformat(), "reason": record.reason},
        )
    if record.start_time and record.end_time and (start < record.start_time or end > record.end_time):
        raise UnavailableError(
            "Requested time is outside the staff member's available hours",
            code="OUTSIDE_STAFF_HOURS",
            details={
                "staff_id": staff_id,
                "start_time": format_time(record.start_time),
                "end_time": format_time(record.end_time),
            },
        )
