"""
Conflict detection.

Two reservations conflict when they share a scope (a staff member, or a
business as a whole) and their half-open [start, end) intervals overlap on
the same date. Touching endpoints do not conflict. Both booking validation
and slot filtering go through ``first_conflict``. A staff member booked at a
business is also blocked by that business's unstaffed reservations.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Iterable, List, Optional, Union

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from detailing_scheduler.errors import SlotConflictError
from detailing_scheduler.models import Reservation, ReservationStatus
from detailing_scheduler.services.slots import Slot
from detailing_scheduler.services.timeutils import format_time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Execute:
    """Run the lookup with these column filters"""

    params: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Skip:
    """Lookup intentionally not run"""

    reason: str = ""


Query = Union[Execute, Skip]


@dataclass(frozen=True)
class Scope:
    """The dimension conflicts are checked against"""

    kind: str  # "staff", "business" or "none"
    value: Optional[Union[str, int]] = None
    # Staff scope only: unstaffed bookings at this business block the staff member too
    business_id: Optional[int] = None

    STAFF = "staff"
    BUSINESS = "business"
    NONE = "none"

    @classmethod
    def for_staff(cls, staff_id: str, business_id: Optional[int] = None) -> "Scope":
        return cls(cls.STAFF, staff_id, business_id)

    @classmethod
    def for_business(cls, business_id: int) -> "Scope":
        return cls(cls.BUSINESS, business_id)

    @classmethod
    def none(cls) -> "Scope":
        return cls(cls.NONE)

    @classmethod
    def resolve(cls, staff_id: Optional[str], business_id: Optional[int]) -> "Scope":
        """Staff scope when a staff member is requested, business scope otherwise"""
        if staff_id:
            return cls.for_staff(staff_id, business_id)
        if business_id is not None:
            return cls.for_business(business_id)
        return cls.none()

    def includes(self, reservation: Reservation) -> bool:
        if self.kind == self.STAFF:
            if reservation.staff_id is None:
                return self.business_id is not None and reservation.business_id == self.business_id
            return reservation.staff_id == self.value
        if self.kind == self.BUSINESS:
            return reservation.business_id == self.value
        return False

    def query(self) -> Query:
        if self.kind == self.STAFF:
            return Execute({"staff_id": self.value})
        if self.kind == self.BUSINESS:
            return Execute({"business_id": self.value})
        return Skip("reservation has neither staff member nor business")

    def describe(self) -> str:
        return "staff member" if self.kind == self.STAFF else "business"


def overlaps(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    return start_a < end_b and start_b < end_a


def first_conflict(
    candidate: Slot,
    scope: Scope,
    existing: Iterable[Reservation],
    exclude_id: Optional[int] = None,
) -> Optional[Reservation]:
    """Return the first active in-scope reservation overlapping the candidate"""
    for reservation in existing:
        if exclude_id is not None and reservation.id == exclude_id:
            continue
        if not reservation.is_active:
            continue
        if not scope.includes(reservation):
            continue
        if overlaps(candidate.start, candidate.end, reservation.start_time, reservation.end_time):
            return reservation
    return None


def has_conflict(
    candidate: Slot,
    scope: Scope,
    existing: Iterable[Reservation],
    exclude_id: Optional[int] = None,
) -> bool:
    return first_conflict(candidate, scope, existing, exclude_id) is not None


def load_scope_reservations(
    db: Session,
    scope: Scope,
    day: date,
    exclude_id: Optional[int] = None,
) -> List[Reservation]:
    """Active reservations in the scope on the given date, ordered by start"""
    query = scope.query()
    if isinstance(query, Skip):
        return []

    criteria = and_(*(getattr(Reservation, column) == value for column, value in query.params.items()))
    if scope.kind == Scope.STAFF and scope.business_id is not None:
        criteria = or_(
            criteria,
            and_(Reservation.staff_id.is_(None), Reservation.business_id == scope.business_id),
        )

    q = db.query(Reservation).filter(
        Reservation.date == day,
        Reservation.status != ReservationStatus.CANCELLED,
        criteria,
    )
    if exclude_id is not None:
        q = q.filter(Reservation.id != exclude_id)
    return q.order_by(Reservation.start_time).all()


def ensure_available(
    db: Session,
    scope: Scope,
    day: date,
    start: time,
    end: time,
    exclude_id: Optional[int] = None,
) -> None:
    """Raise SlotConflictError when the interval overlaps anything in scope"""
    existing = load_scope_reservations(db, scope, day, exclude_id)
    conflict = first_conflict(Slot(start, end), scope, existing, exclude_id)
    if conflict is None:
        return

    logger.info(
        "Conflict on %s for %s %s: %s-%s overlaps reservation %s",
        day,
        scope.kind,
        scope.value,
        format_time(start),
        format_time(end),
        conflict.id,
    )
    raise SlotConflictError(
        f"The selected {scope.describe()} is not available at this time",
        scope=scope.kind,
        details={
            "conflicting_reservation_id": conflict.id,
            "date": day.isoformat(),
            "start_time": format_time(start),
            "end_time": format_time(end),
        },
    )
