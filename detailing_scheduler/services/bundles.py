"""
Bundle Service
Books a group of services as one reservation spanning their combined
duration and keeps the bundle's redemption counter in step with it.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from detailing_scheduler.clock import SystemClock
from detailing_scheduler.database import run_in_transaction
from detailing_scheduler.errors import (
    BundleExpiredError,
    BundleInactiveError,
    BundleNotYetValidError,
    BundleSoldOutError,
    NotFoundError,
    ValidationError,
)
from detailing_scheduler.models import (
    Bundle,
    BundleServiceRecord,
    Reservation,
    ReservationStatus,
    Service,
)
from detailing_scheduler.services import availability, notifications
from detailing_scheduler.services.conflicts import Scope, ensure_available
from detailing_scheduler.services.reservations import ReservationService
from detailing_scheduler.services.timeutils import add_minutes, format_time, parse_date, parse_time

logger = logging.getLogger(__name__)


class BundleService:
    """Bundle catalog and bundle booking bound to one database session"""

    def __init__(self, db: Session, clock=None, notifier=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.reservations = ReservationService(db, clock=self.clock, notifier=notifier)

    def get_bundle(self, bundle_id: int) -> Bundle:
        bundle = self.db.get(Bundle, bundle_id)
        if not bundle:
            raise NotFoundError(
                "Bundle not found", code="BUNDLE_NOT_FOUND", details={"bundle_id": bundle_id}
            )
        return bundle

    def _lock_bundle(self, bundle_id: int) -> Bundle:
        bundle = self.db.query(Bundle).filter(Bundle.id == bundle_id).with_for_update().first()
        if not bundle:
            raise NotFoundError(
                "Bundle not found", code="BUNDLE_NOT_FOUND", details={"bundle_id": bundle_id}
            )
        return bundle

    def _load_services(self, service_ids: List[int]) -> List[Service]:
        services = []
        for service_id in service_ids:
            service = self.db.get(Service, service_id)
            if not service:
                raise NotFoundError(
                    f"Service {service_id} not found",
                    code="SERVICE_NOT_FOUND",
                    details={"service_id": service_id},
                )
            services.append(service)
        return services

    def create_bundle(
        self,
        business_id: int,
        actor_id: str,
        name: str,
        service_ids: List[int],
        total_price: Optional[float] = None,
        description: Optional[str] = None,
        valid_from: Optional[datetime] = None,
        valid_until: Optional[datetime] = None,
        max_redemptions: Optional[int] = None,
        is_active: bool = True,
    ) -> Bundle:
        """Create a bundle; duration is the sum of its services' durations"""
        if not service_ids:
            raise ValidationError("A bundle needs at least one service", code="EMPTY_BUNDLE")
        if valid_from and valid_until and valid_from > valid_until:
            raise ValidationError("Bundle validity window is inverted", code="INVALID_WINDOW")
        if max_redemptions is not None and max_redemptions < 1:
            raise ValidationError("Max redemptions must be at least 1", code="INVALID_CAP")

        def work():
            business = availability.get_business(self.db, business_id)
            availability.require_owner(business, actor_id)
            services = self._load_services(service_ids)
            foreign = [s.id for s in services if s.business_id != business_id]
            if foreign:
                raise ValidationError(
                    "Bundle services must belong to the bundle's business",
                    code="FOREIGN_SERVICE",
                    details={"service_ids": foreign},
                )

            bundle = Bundle(
                business_id=business_id,
                name=name,
                description=description,
                service_ids=list(service_ids),
                total_duration=sum(s.duration_minutes for s in services),
                total_price=(
                    total_price if total_price is not None else sum(s.price or 0 for s in services)
                ),
                is_active=is_active,
                valid_from=valid_from,
                valid_until=valid_until,
                max_redemptions=max_redemptions,
                current_redemptions=0,
            )
            self.db.add(bundle)
            self.db.flush()
            return bundle

        bundle = run_in_transaction(self.db, work)
        logger.info(
            "Bundle %s '%s' created for business %s (%d min)",
            bundle.id,
            name,
            business_id,
            bundle.total_duration,
        )
        return bundle

    def book_bundle(
        self,
        bundle_id: int,
        customer_id: str,
        date,
        start_time,
        customer_info: Optional[dict] = None,
        vehicle_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        """
        Book a bundle as one reservation.

        Preconditions are checked in order: the bundle exists, is active,
        is inside its validity window, and is not sold out. The redemption
        counter is incremented in the same transaction as the insert.

        Returns:
            dict with reservation_id and bundle_id
        """
        day = parse_date(date)
        start = parse_time(start_time)
        customer_info = customer_info or {}

        def work():
            bundle = self._lock_bundle(bundle_id)
            self._check_redeemable(bundle)
            services = self._load_services(bundle.service_ids)

            end = add_minutes(start, bundle.total_duration)
            self.reservations.ensure_not_past(day, start)
            availability.check_window(self.db, bundle.business_id, day, start, end)
            ensure_available(self.db, Scope.for_business(bundle.business_id), day, start, end)

            reservation = Reservation(
                customer_id=customer_id,
                business_id=bundle.business_id,
                vehicle_id=vehicle_id,
                bundle_id=bundle.id,
                date=day,
                start_time=start,
                end_time=end,
                service_type=f"Bundle: {bundle.name}",
                status=ReservationStatus.SCHEDULED,
                price=bundle.total_price,
                notes=notes,
                customer_name=customer_info.get("name"),
                customer_email=customer_info.get("email"),
                customer_phone=customer_info.get("phone"),
                reschedule_history=[],
                reminder_sent=False,
                followup_sent=False,
            )
            for service in services:
                reservation.service_records.append(
                    BundleServiceRecord(
                        bundle_id=bundle.id,
                        service_id=service.id,
                        service_name=service.name,
                        status="pending",
                    )
                )
            self.db.add(reservation)
            bundle.current_redemptions = (bundle.current_redemptions or 0) + 1
            self.db.flush()
            return reservation

        reservation = run_in_transaction(self.db, work)
        logger.info(
            "Bundle %s booked as reservation %s on %s %s-%s",
            bundle_id,
            reservation.id,
            day,
            format_time(reservation.start_time),
            format_time(reservation.end_time),
        )
        self.reservations.publish(notifications.BOOKING_CREATED, reservation)
        return {"reservation_id": reservation.id, "bundle_id": bundle_id}

    def _check_redeemable(self, bundle: Bundle) -> None:
        now = self.clock.now()
        if not bundle.is_active:
            raise BundleInactiveError(bundle.id)
        if bundle.valid_from and now < bundle.valid_from:
            raise BundleNotYetValidError(bundle.id, bundle.valid_from.isoformat())
        if bundle.valid_until and now > bundle.valid_until:
            raise BundleExpiredError(bundle.id, bundle.valid_until.isoformat())
        if bundle.is_capped and bundle.current_redemptions >= bundle.max_redemptions:
            logger.info("Bundle %s sold out (%d redemptions)", bundle.id, bundle.max_redemptions)
            raise BundleSoldOutError(bundle.id, bundle.max_redemptions)

    def cancel_bundle_booking(
        self, reservation_id: int, reason: Optional[str] = None, actor_id: Optional[str] = None
    ) -> dict:
        """Cancel a bundle reservation; the redemption is released with it"""
        reservation = self.reservations.get_reservation(reservation_id)
        if reservation.bundle_id is None:
            raise ValidationError(
                "This is not a bundle booking",
                code="NOT_A_BUNDLE",
                details={"reservation_id": reservation_id},
            )
        return self.reservations.cancel_reservation(reservation_id, reason=reason, actor_id=actor_id)

    def get_bundle_availability(self, bundle_id: int, target_date) -> dict:
        bundle = self.get_bundle(bundle_id)
        target_date = parse_date(target_date)
        slots = self.reservations.get_available_slots(
            bundle.business_id, target_date, bundle.total_duration
        )
        return {
            "date": target_date.isoformat(),
            "bundle_id": bundle.id,
            "duration": bundle.total_duration,
            "available_slots": [slot.to_dict() for slot in slots],
        }

    def list_service_records(self, reservation_id: int) -> List[BundleServiceRecord]:
        self.reservations.get_reservation(reservation_id)
        return (
            self.db.query(BundleServiceRecord)
            .filter(BundleServiceRecord.reservation_id == reservation_id)
            .order_by(BundleServiceRecord.id)
            .all()
        )
