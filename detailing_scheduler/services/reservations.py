"""
Reservation Service
Owns the reservation state machine: create, update, reschedule, cancel,
confirm, start and complete, plus slot lookup, dry-run slot validation
and read-only listings.

Every mutation runs inside ``run_in_transaction`` so the conflict scan and
the write it guards commit together. Notifications go out after commit.
"""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from detailing_scheduler.clock import SystemClock
from detailing_scheduler.config import settings
from detailing_scheduler.database import run_in_transaction
from detailing_scheduler.errors import (
    InvalidTransitionError,
    NotFoundError,
    SchedulingError,
    UnauthorizedError,
    ValidationError,
)
from detailing_scheduler.models import (
    Bundle,
    InventoryTransaction,
    Reservation,
    ReservationStatus,
    Service,
    ServiceHistoryRecord,
)
from detailing_scheduler.services import availability, notifications
from detailing_scheduler.services.conflicts import (
    Execute,
    Query,
    Scope,
    Skip,
    ensure_available,
    has_conflict,
    load_scope_reservations,
    overlaps,
)
from detailing_scheduler.services.slots import Slot, generate
from detailing_scheduler.services.timeutils import (
    format_time,
    parse_date,
    parse_time,
    require_ordered,
    to_minutes,
)

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = frozenset({"date", "start_time", "end_time", "staff_id"})
PATCHABLE_FIELDS = SCHEDULE_FIELDS | {"vehicle_id", "service_type", "status", "price", "notes"}
NON_NULL_FIELDS = frozenset({"date", "start_time", "end_time", "service_type", "status"})

ACTOR_CUSTOMER = "customer"
ACTOR_BUSINESS = "business"


def _status_filter(status: Optional[str]) -> Query:
    return Execute({"status": status}) if status else Skip("no status filter")


def _apply(q, query: Query):
    if isinstance(query, Execute):
        return q.filter_by(**query.params)
    return q


def _append_note(existing: Optional[str], line: str) -> str:
    return f"{existing}\n{line}" if existing else line


def _scopes_meet(a: Scope, b: Scope) -> bool:
    """Whether bookings in the two scopes compete for the same time"""
    if Scope.NONE in (a.kind, b.kind):
        return False
    if a.kind == b.kind:
        return a.value == b.value
    staff, business = (a, b) if a.kind == Scope.STAFF else (b, a)
    return staff.business_id == business.value


class ReservationService:
    """Reservation lifecycle bound to one database session"""

    def __init__(self, db: Session, clock=None, notifier=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.notifier = notifier or notifications.get_publisher()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_reservation(self, reservation_id: int) -> Reservation:
        reservation = self.db.get(Reservation, reservation_id)
        if not reservation:
            raise NotFoundError(
                "Reservation not found",
                code="RESERVATION_NOT_FOUND",
                details={"reservation_id": reservation_id},
            )
        return reservation

    def list_by_date(self, target_date, status: Optional[str] = None) -> List[Reservation]:
        q = self.db.query(Reservation).filter(Reservation.date == parse_date(target_date))
        q = _apply(q, _status_filter(status))
        return q.order_by(Reservation.start_time).all()

    def list_for_customer(
        self, customer_id: str, status: Optional[str] = None, limit: int = 10
    ) -> List[Reservation]:
        q = self.db.query(Reservation).filter(Reservation.customer_id == customer_id)
        q = _apply(q, _status_filter(status))
        return (
            q.order_by(Reservation.date.desc(), Reservation.start_time.desc()).limit(limit).all()
        )

    def list_for_staff(
        self,
        staff_id: str,
        start_date,
        end_date=None,
        status: Optional[str] = None,
    ) -> List[Reservation]:
        start_date = parse_date(start_date)
        end_date = parse_date(end_date) if end_date else start_date
        q = self.db.query(Reservation).filter(
            Reservation.staff_id == staff_id,
            Reservation.date >= start_date,
            Reservation.date <= end_date,
        )
        q = _apply(q, _status_filter(status))
        return q.order_by(Reservation.date, Reservation.start_time).all()

    def list_upcoming(self, days: int = 7) -> dict:
        """Open reservations for the next ``days`` days grouped by ISO date"""
        today = self.clock.today()
        reservations = (
            self.db.query(Reservation)
            .filter(
                Reservation.date >= today,
                Reservation.date <= today + timedelta(days=days),
                Reservation.status.notin_(list(ReservationStatus.TERMINAL)),
            )
            .order_by(Reservation.date, Reservation.start_time)
            .all()
        )
        grouped = defaultdict(list)
        for reservation in reservations:
            grouped[reservation.date.isoformat()].append(reservation)
        return dict(grouped)

    def get_reschedule_history(self, reservation_id: int) -> list:
        return list(self.get_reservation(reservation_id).reschedule_history or [])

    def can_reschedule(self, reservation_id: int) -> dict:
        """Whether a reservation may still be moved, with the reason if not"""
        try:
            reservation = self.get_reservation(reservation_id)
        except NotFoundError:
            return {"can_reschedule": False, "reason": "Reservation not found"}

        if reservation.status not in ReservationStatus.MUTABLE:
            return {"can_reschedule": False, "reason": f"Reservation is {reservation.status}"}

        starts_at = datetime.combine(reservation.date, reservation.start_time)
        hours_until = (starts_at - self.clock.now()).total_seconds() / 3600
        if hours_until < settings.reschedule_notice_hours:
            return {
                "can_reschedule": False,
                "reason": (
                    f"Cannot reschedule within {settings.reschedule_notice_hours} hours "
                    "of the appointment"
                ),
            }
        return {"can_reschedule": True, "reason": None}

    def get_cancellation_policy(self, reservation_id: int) -> dict:
        """
        Whether cancelling still falls inside the free-cancellation window.

        Advisory only: cancel_reservation does not enforce the deadline.
        """
        reservation = self.get_reservation(reservation_id)
        deadline = settings.cancellation_deadline_hours
        starts_at = datetime.combine(reservation.date, reservation.start_time)
        hours_until = (starts_at - self.clock.now()).total_seconds() / 3600
        policy = {
            "can_cancel": False,
            "reason": None,
            "hours_until_appointment": round(max(0.0, hours_until), 2),
            "deadline_hours": deadline,
        }

        if reservation.status == ReservationStatus.CANCELLED:
            policy["reason"] = "Reservation is already cancelled"
        elif reservation.status not in ReservationStatus.MUTABLE:
            policy["reason"] = f"Reservation is {reservation.status}"
        elif hours_until < deadline:
            policy["reason"] = f"Cannot cancel within {deadline} hours of appointment"
        else:
            policy["can_cancel"] = True
        return policy

    # ------------------------------------------------------------------
    # Pre-booking validation
    # ------------------------------------------------------------------

    def validate_slot(
        self,
        business_id: int,
        date,
        start_time,
        end_time,
        service_type: str,
        staff_id: Optional[str] = None,
        exclude_reservation_id: Optional[int] = None,
    ) -> dict:
        """
        Dry-run the booking checks for a slot without writing anything.

        Stops at the first failing check. A slot whose length differs from
        the service's duration by more than the configured tolerance is
        still valid but carries a warning.

        Returns:
            dict with is_valid, errors and warnings
        """
        result = {"is_valid": True, "errors": [], "warnings": []}
        try:
            day = parse_date(date)
            start, end = parse_time(start_time), parse_time(end_time)
            require_ordered(start, end)
            self.ensure_not_past(day, start)
            availability.get_business(self.db, business_id)
            availability.check_window(self.db, business_id, day, start, end)
            if staff_id:
                availability.check_staff_window(self.db, staff_id, day, start, end)
            ensure_available(
                self.db,
                Scope.resolve(staff_id, business_id),
                day,
                start,
                end,
                exclude_id=exclude_reservation_id,
            )
        except SchedulingError as exc:
            result["is_valid"] = False
            result["errors"].append(exc.message)
            return result

        service = (
            self.db.query(Service)
            .filter(Service.business_id == business_id, Service.name == service_type)
            .first()
        )
        if service is None or not service.is_active:
            result["is_valid"] = False
            result["errors"].append("Selected service does not exist")
            return result

        booked_minutes = to_minutes(end) - to_minutes(start)
        if abs(booked_minutes - service.duration_minutes) > settings.duration_warning_minutes:
            result["warnings"].append(
                f"Appointment duration ({booked_minutes}min) differs from "
                f"service duration ({service.duration_minutes}min)"
            )
        return result

    def validate_batch(self, requests: List[dict]) -> List[dict]:
        """
        Validate several prospective bookings.

        Besides the per-slot checks, a request that overlaps an earlier
        valid request of the same batch in the same scope is rejected.
        """
        results = []
        accepted = []
        for index, request in enumerate(requests):
            result = self.validate_slot(**request)
            if result["is_valid"]:
                scope = Scope.resolve(request.get("staff_id"), request["business_id"])
                day = parse_date(request["date"])
                candidate = Slot(parse_time(request["start_time"]), parse_time(request["end_time"]))
                clash = next(
                    (
                        other_index
                        for other_index, other_scope, other_day, other_slot in accepted
                        if other_day == day
                        and _scopes_meet(scope, other_scope)
                        and overlaps(candidate.start, candidate.end, other_slot.start, other_slot.end)
                    ),
                    None,
                )
                if clash is None:
                    accepted.append((index, scope, day, candidate))
                else:
                    result["is_valid"] = False
                    result["errors"].append(f"Overlaps request {clash} in this batch")
            results.append({"index": index, **result})
        return results

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def get_available_slots(self, business_id: int, target_date, duration_minutes: int) -> List[Slot]:
        """
        Slots of the given duration that are free at business scope.

        A closed day yields an empty list. Slots already in the past are
        left out since booking them would fail validation.
        """
        target_date = parse_date(target_date)
        availability.get_business(self.db, business_id)
        self._validate_duration(duration_minutes)

        hours = availability.resolve(self.db, business_id, target_date)
        if not hours.is_open:
            return []

        scope = Scope.for_business(business_id)
        existing = load_scope_reservations(self.db, scope, target_date)
        now = self.clock.now()
        return [
            slot
            for slot in generate(hours.open_time, hours.close_time, duration_minutes)
            if datetime.combine(target_date, slot.start) >= now
            and not has_conflict(slot, scope, existing)
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_reservation(
        self,
        customer_id: str,
        date,
        start_time,
        end_time,
        service_type: str,
        staff_id: Optional[str] = None,
        vehicle_id: Optional[str] = None,
        business_id: Optional[int] = None,
        price: Optional[float] = None,
        notes: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> Reservation:
        """
        Book a single service.

        Raises:
            ValidationError: malformed or inverted interval, or a past slot
            NotFoundError: unknown business
            UnavailableError: business closed for the requested window
            SlotConflictError: overlaps an active reservation in scope
        """
        if not customer_id:
            raise ValidationError("Customer is required", code="MISSING_CUSTOMER")
        if not service_type:
            raise ValidationError("Service is required", code="MISSING_SERVICE")
        day = parse_date(date)
        start, end = parse_time(start_time), parse_time(end_time)
        require_ordered(start, end)
        self.ensure_not_past(day, start)
        scope = Scope.resolve(staff_id, business_id)

        def work():
            if business_id is not None:
                availability.get_business(self.db, business_id)
                availability.check_window(self.db, business_id, day, start, end)
            if staff_id:
                availability.check_staff_window(self.db, staff_id, day, start, end)
            ensure_available(self.db, scope, day, start, end)

            reservation = Reservation(
                customer_id=customer_id,
                staff_id=staff_id,
                vehicle_id=vehicle_id,
                business_id=business_id,
                date=day,
                start_time=start,
                end_time=end,
                service_type=service_type,
                status=ReservationStatus.SCHEDULED,
                price=price,
                notes=notes,
                customer_phone=customer_phone,
                reschedule_history=[],
                reminder_sent=False,
                followup_sent=False,
            )
            self.db.add(reservation)
            self.db.flush()
            return reservation

        reservation = run_in_transaction(self.db, work)
        logger.info(
            "Reservation %s created for %s on %s %s-%s",
            reservation.id,
            customer_id,
            day,
            format_time(start),
            format_time(end),
        )
        self.publish(notifications.BOOKING_CREATED, reservation)
        return reservation

    def update_reservation(self, reservation_id: int, **fields) -> Reservation:
        """
        Patch a reservation.

        Changing date, times or staff re-runs the conflict check against
        everything but the reservation itself. A status change must be a
        legal transition; cancelling or completing through a patch carries
        the same side effects as the dedicated operations.
        """
        unknown = set(fields) - PATCHABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update fields: {', '.join(sorted(unknown))}",
                code="UNKNOWN_FIELDS",
            )
        nulls = sorted(key for key in fields if key in NON_NULL_FIELDS and fields[key] is None)
        if nulls:
            raise ValidationError(
                f"Fields cannot be null: {', '.join(nulls)}",
                code="NULL_FIELDS",
                details={"fields": nulls},
            )

        def work():
            reservation = self.get_reservation(reservation_id)

            schedule_changes = {k: v for k, v in fields.items() if k in SCHEDULE_FIELDS}
            if schedule_changes:
                self._apply_schedule_change(reservation, schedule_changes)

            for key in ("vehicle_id", "service_type", "price", "notes"):
                if key in fields:
                    setattr(reservation, key, fields[key])

            target = fields.get("status")
            if target and target != reservation.status:
                self._apply_status(reservation, target)

            self.db.flush()
            return reservation

        reservation = run_in_transaction(self.db, work)
        logger.info("Reservation %s updated (%s)", reservation_id, ", ".join(sorted(fields)))
        return reservation

    def reschedule_reservation(
        self,
        reservation_id: int,
        actor_id: str,
        new_date,
        new_start_time,
        new_end_time,
        reason: Optional[str] = None,
    ) -> Reservation:
        """
        Move a reservation and record where it was before.

        Only the customer or the owning business (or the assigned staff
        member) may reschedule.
        """
        day = parse_date(new_date)
        start, end = parse_time(new_start_time), parse_time(new_end_time)
        require_ordered(start, end)

        def work():
            reservation = self.get_reservation(reservation_id)
            actor = self._actor_role(reservation, actor_id)
            if reservation.status not in ReservationStatus.MUTABLE:
                raise InvalidTransitionError(reservation.status, "rescheduled")
            self.ensure_not_past(day, start)

            if reservation.business_id is not None:
                availability.check_window(self.db, reservation.business_id, day, start, end)
            if reservation.staff_id:
                availability.check_staff_window(self.db, reservation.staff_id, day, start, end)
            scope = Scope.resolve(reservation.staff_id, reservation.business_id)
            ensure_available(self.db, scope, day, start, end, exclude_id=reservation.id)

            entry = {
                "original_date": reservation.date.isoformat(),
                "original_start_time": format_time(reservation.start_time),
                "original_end_time": format_time(reservation.end_time),
                "new_date": day.isoformat(),
                "new_start_time": format_time(start),
                "new_end_time": format_time(end),
                "reason": reason,
                "rescheduled_by": actor,
                "rescheduled_at": self.clock.now().isoformat(),
            }
            reservation.reschedule_history = list(reservation.reschedule_history or []) + [entry]
            reservation.date = day
            reservation.start_time = start
            reservation.end_time = end
            # Reminder is due again for the new date
            reservation.reminder_sent = False
            self.db.flush()
            return reservation, entry

        reservation, entry = run_in_transaction(self.db, work)
        logger.info(
            "Reservation %s rescheduled by %s from %s %s to %s %s",
            reservation_id,
            entry["rescheduled_by"],
            entry["original_date"],
            entry["original_start_time"],
            entry["new_date"],
            entry["new_start_time"],
        )

        if entry["rescheduled_by"] == ACTOR_CUSTOMER and reservation.business is not None:
            recipient = reservation.business.owner_id
            phone = reservation.business.phone
        else:
            recipient, phone = reservation.customer_id, reservation.customer_phone
        self.publish(
            notifications.BOOKING_RESCHEDULED,
            reservation,
            recipient=recipient,
            phone=phone,
            data={
                "previous": {
                    "date": entry["original_date"],
                    "start_time": entry["original_start_time"],
                },
                "reason": reason,
            },
        )
        return reservation

    def cancel_reservation(
        self,
        reservation_id: int,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> dict:
        """
        Cancel a reservation.

        Cancelling an already-cancelled reservation succeeds and only adds
        the note line; bundle counters are released exactly once.
        """

        def work():
            reservation = self.get_reservation(reservation_id)
            if actor_id is not None:
                self._actor_role(reservation, actor_id)
            already_cancelled = reservation.status == ReservationStatus.CANCELLED
            self._apply_cancel(reservation, reason, actor_id)
            self.db.flush()
            return reservation, already_cancelled

        reservation, already_cancelled = run_in_transaction(self.db, work)
        if already_cancelled:
            logger.info("Reservation %s was already cancelled", reservation_id)
            return {"success": True}

        logger.info("Reservation %s cancelled", reservation_id)
        self.publish(notifications.BOOKING_CANCELLED, reservation, data={"reason": reason})
        return {"success": True}

    def confirm_reservation(self, reservation_id: int) -> Reservation:
        return self._transition(reservation_id, ReservationStatus.CONFIRMED)

    def start_reservation(self, reservation_id: int) -> Reservation:
        return self._transition(reservation_id, ReservationStatus.IN_PROGRESS)

    def complete_reservation(
        self,
        reservation_id: int,
        notes: Optional[str] = None,
        products_used: Optional[List[str]] = None,
    ) -> dict:
        """
        Mark a reservation completed.

        With a vehicle attached this also writes the service-history record
        and one inventory decrement per product, all in the same
        transaction as the status change.
        """

        def work():
            reservation = self.get_reservation(reservation_id)
            history = self._apply_complete(reservation, notes, products_used or [])
            self.db.flush()
            return reservation, history.id if history is not None else None

        reservation, history_record_id = run_in_transaction(self.db, work)
        logger.info(
            "Reservation %s completed (history record %s)", reservation_id, history_record_id
        )
        self.publish(notifications.BOOKING_COMPLETED, reservation)
        return {"reservation_id": reservation.id, "history_record_id": history_record_id}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(self, reservation_id: int, target: str) -> Reservation:
        def work():
            reservation = self.get_reservation(reservation_id)
            self._apply_status(reservation, target)
            self.db.flush()
            return reservation

        reservation = run_in_transaction(self.db, work)
        logger.info("Reservation %s moved to %s", reservation_id, target)
        return reservation

    def _apply_status(self, reservation: Reservation, target: str) -> None:
        if target not in ReservationStatus.ALL:
            raise ValidationError(
                f"Unknown status: {target}", code="INVALID_STATUS", details={"status": target}
            )
        if target == ReservationStatus.CANCELLED:
            self._apply_cancel(reservation, None)
        elif target == ReservationStatus.COMPLETED:
            self._apply_complete(reservation, None, [])
        elif ReservationStatus.can_transition(reservation.status, target):
            reservation.status = target
        else:
            raise InvalidTransitionError(reservation.status, target)

    def _apply_schedule_change(self, reservation: Reservation, changes: dict) -> None:
        day = parse_date(changes["date"]) if changes.get("date") else reservation.date
        start = parse_time(changes["start_time"]) if changes.get("start_time") else reservation.start_time
        end = parse_time(changes["end_time"]) if changes.get("end_time") else reservation.end_time
        staff_id = changes["staff_id"] if "staff_id" in changes else reservation.staff_id

        moved = (day, start, end) != (reservation.date, reservation.start_time, reservation.end_time)
        if not moved and staff_id == reservation.staff_id:
            return
        if reservation.status in ReservationStatus.TERMINAL:
            raise InvalidTransitionError(reservation.status, "rescheduled")
        require_ordered(start, end)

        if moved:
            self.ensure_not_past(day, start)
            if reservation.business_id is not None:
                availability.check_window(self.db, reservation.business_id, day, start, end)
        if staff_id:
            availability.check_staff_window(self.db, staff_id, day, start, end)
        scope = Scope.resolve(staff_id, reservation.business_id)
        ensure_available(self.db, scope, day, start, end, exclude_id=reservation.id)

        reservation.date = day
        reservation.start_time = start
        reservation.end_time = end
        reservation.staff_id = staff_id

    def _apply_cancel(
        self, reservation: Reservation, reason: Optional[str], actor_id: Optional[str] = None
    ) -> None:
        note = f"Cancellation reason: {reason}" if reason else None

        if reservation.status == ReservationStatus.CANCELLED:
            if note:
                reservation.notes = _append_note(reservation.notes, note)
            return
        if not ReservationStatus.can_transition(reservation.status, ReservationStatus.CANCELLED):
            raise InvalidTransitionError(reservation.status, ReservationStatus.CANCELLED)

        reservation.status = ReservationStatus.CANCELLED
        reservation.cancelled_by = actor_id
        reservation.cancelled_at = self.clock.now()
        if note:
            reservation.notes = _append_note(reservation.notes, note)

        if reservation.bundle_id is not None:
            bundle = (
                self.db.query(Bundle)
                .filter(Bundle.id == reservation.bundle_id)
                .with_for_update()
                .first()
            )
            if bundle is not None:
                bundle.current_redemptions = max(0, (bundle.current_redemptions or 0) - 1)
            for record in reservation.service_records:
                record.status = "cancelled"

    def _apply_complete(
        self,
        reservation: Reservation,
        notes: Optional[str],
        products_used: List[str],
    ) -> Optional[ServiceHistoryRecord]:
        if not ReservationStatus.can_transition(reservation.status, ReservationStatus.COMPLETED):
            raise InvalidTransitionError(reservation.status, ReservationStatus.COMPLETED)

        reservation.status = ReservationStatus.COMPLETED
        if notes:
            reservation.notes = _append_note(reservation.notes, notes)
        for record in reservation.service_records:
            if record.status != "cancelled":
                record.status = "completed"

        if not reservation.vehicle_id:
            return None

        history = ServiceHistoryRecord(
            vehicle_id=reservation.vehicle_id,
            customer_id=reservation.customer_id,
            reservation_id=reservation.id,
            service=reservation.service_type,
            date=reservation.date,
            price=reservation.price,
            staff_id=reservation.staff_id,
            notes=notes or reservation.notes,
            products=list(products_used),
        )
        self.db.add(history)
        for product_id in products_used:
            self.db.add(
                InventoryTransaction(
                    product_id=product_id,
                    type="use",
                    quantity=-1,
                    date=reservation.date,
                    staff_id=reservation.staff_id,
                    reservation_id=reservation.id,
                    notes=f"Used for {reservation.service_type}",
                )
            )
        # Feedback request goes out with the completion notice
        reservation.followup_sent = True
        self.db.flush()
        return history

    def _actor_role(self, reservation: Reservation, actor_id: Optional[str]) -> str:
        if actor_id and actor_id == reservation.customer_id:
            return ACTOR_CUSTOMER
        business = reservation.business
        if actor_id and business is not None and business.owner_id == actor_id:
            return ACTOR_BUSINESS
        if actor_id and reservation.staff_id and reservation.staff_id == actor_id:
            return ACTOR_BUSINESS
        raise UnauthorizedError(
            "You can only change your own appointments",
            details={"reservation_id": reservation.id},
        )

    def ensure_not_past(self, day: date, start) -> None:
        if datetime.combine(day, start) < self.clock.now():
            raise ValidationError(
                "Cannot book in the past. Please choose a future date.",
                code="PAST_SLOT",
                details={"date": day.isoformat(), "start_time": format_time(start)},
            )

    def _validate_duration(self, duration_minutes: int) -> None:
        low, high = settings.min_duration_minutes, settings.max_duration_minutes
        if not low <= duration_minutes <= high:
            raise ValidationError(
                f"Duration must be between {low} and {high} minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": duration_minutes},
            )

    def publish(
        self,
        event_type: str,
        reservation: Reservation,
        recipient: Optional[str] = None,
        phone: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> None:
        data = dict(data or {})
        if reservation.business is not None:
            data.setdefault("business_name", reservation.business.name)
        event = notifications.ReservationEvent(
            type=event_type,
            recipient=recipient or reservation.customer_id,
            phone=phone if recipient else reservation.customer_phone,
            reservation=reservation.snapshot(),
            data=data,
        )
        self.notifier.publish(event)
