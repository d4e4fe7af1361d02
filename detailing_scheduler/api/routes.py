import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from detailing_scheduler.api.schemas import (
    BundleBooked,
    BundleBookingRequest,
    BundleCreate,
    BundleResponse,
    BatchSlotValidation,
    BatchValidationRequest,
    BundleSlotsResponse,
    CancellationPolicy,
    CancelRequest,
    CancelResult,
    CompleteRequest,
    CompletionResult,
    HoursRequest,
    HoursResponse,
    RescheduleCheck,
    RescheduleEntry,
    RescheduleRequest,
    ReservationCreate,
    ReservationCreated,
    ReservationResponse,
    ReservationUpdate,
    ServiceRecordResponse,
    SlotsResponse,
    SlotValidation,
    SlotValidationRequest,
    StaffAvailabilityRequest,
    StaffAvailabilityResponse,
    StaffDay,
    UpcomingResponse,
)
from detailing_scheduler.clock import SystemClock
from detailing_scheduler.config import settings
from detailing_scheduler.database import get_db
from detailing_scheduler.errors import ValidationError
from detailing_scheduler.models import Reservation
from detailing_scheduler.services import availability, notifications
from detailing_scheduler.services.bundles import BundleService
from detailing_scheduler.services.reservations import ReservationService
from detailing_scheduler.services.timeutils import parse_date

logger = logging.getLogger(__name__)

router = APIRouter()


def get_clock():
    return SystemClock()


def get_notifier():
    return notifications.get_publisher()


def get_reservation_service(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    notifier=Depends(get_notifier),
) -> ReservationService:
    return ReservationService(db, clock=clock, notifier=notifier)


def get_bundle_service(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    notifier=Depends(get_notifier),
) -> BundleService:
    return BundleService(db, clock=clock, notifier=notifier)


def _reservation_out(reservation: Reservation) -> ReservationResponse:
    return ReservationResponse(
        **reservation.snapshot(),
        reschedule_count=len(reservation.reschedule_history or []),
    )


@router.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "ok", "app": settings.app_name}


# ----------------------------------------------------------------------
# Reservations
# ----------------------------------------------------------------------


@router.post("/reservations", response_model=ReservationCreated, status_code=201)
def create_reservation(
    request: ReservationCreate,
    service: ReservationService = Depends(get_reservation_service),
):
    """Book a single service"""
    reservation = service.create_reservation(**request.model_dump())
    return ReservationCreated(reservation_id=reservation.id)


@router.get("/reservations", response_model=List[ReservationResponse])
def list_reservations(
    date: Optional[str] = None,
    end_date: Optional[str] = None,
    status: Optional[str] = None,
    customer_id: Optional[str] = None,
    staff_id: Optional[str] = None,
    limit: int = 10,
    service: ReservationService = Depends(get_reservation_service),
):
    """
    List reservations.

    - customer_id: the customer's most recent reservations
    - staff_id + date (+ end_date): a staff member's schedule
    - date: everything booked on that day
    """
    if customer_id:
        reservations = service.list_for_customer(customer_id, status=status, limit=limit)
    elif staff_id:
        if not date:
            raise ValidationError("date is required with staff_id", code="MISSING_DATE")
        reservations = service.list_for_staff(staff_id, date, end_date, status=status)
    elif date:
        reservations = service.list_by_date(date, status=status)
    else:
        raise ValidationError(
            "One of date, customer_id or staff_id is required", code="MISSING_FILTER"
        )
    return [_reservation_out(r) for r in reservations]


@router.post("/reservations/validate", response_model=SlotValidation)
def validate_slot(
    request: SlotValidationRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    """Dry-run the booking checks; nothing is written"""
    return service.validate_slot(**request.model_dump())


@router.post("/reservations/validate-batch", response_model=List[BatchSlotValidation])
def validate_batch(
    request: BatchValidationRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    return service.validate_batch([item.model_dump() for item in request.reservations])


@router.get("/reservations/upcoming", response_model=UpcomingResponse)
def list_upcoming(days: int = 7, service: ReservationService = Depends(get_reservation_service)):
    """Open reservations for the next few days, grouped by date"""
    grouped = service.list_upcoming(days)
    return {day: [_reservation_out(r) for r in items] for day, items in grouped.items()}


@router.get("/reservations/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: int, service: ReservationService = Depends(get_reservation_service)
):
    return _reservation_out(service.get_reservation(reservation_id))


@router.patch("/reservations/{reservation_id}", response_model=ReservationResponse)
def update_reservation(
    reservation_id: int,
    request: ReservationUpdate,
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = service.update_reservation(
        reservation_id, **request.model_dump(exclude_unset=True)
    )
    return _reservation_out(reservation)


@router.post("/reservations/{reservation_id}/reschedule", response_model=ReservationResponse)
def reschedule_reservation(
    reservation_id: int,
    request: RescheduleRequest,
    x_actor_id: Optional[str] = Header(default=None),
    service: ReservationService = Depends(get_reservation_service),
):
    """Move a reservation; the caller must be its customer or business"""
    reservation = service.reschedule_reservation(
        reservation_id,
        actor_id=x_actor_id,
        new_date=request.new_date,
        new_start_time=request.new_start_time,
        new_end_time=request.new_end_time,
        reason=request.reason,
    )
    return _reservation_out(reservation)


@router.post("/reservations/{reservation_id}/cancel", response_model=CancelResult)
def cancel_reservation(
    reservation_id: int,
    request: Optional[CancelRequest] = None,
    x_actor_id: Optional[str] = Header(default=None),
    service: ReservationService = Depends(get_reservation_service),
):
    reason = request.reason if request else None
    return service.cancel_reservation(reservation_id, reason=reason, actor_id=x_actor_id)


@router.post("/reservations/{reservation_id}/confirm", response_model=ReservationResponse)
def confirm_reservation(
    reservation_id: int, service: ReservationService = Depends(get_reservation_service)
):
    return _reservation_out(service.confirm_reservation(reservation_id))


@router.post("/reservations/{reservation_id}/start", response_model=ReservationResponse)
def start_reservation(
    reservation_id: int, service: ReservationService = Depends(get_reservation_service)
):
    return _reservation_out(service.start_reservation(reservation_id))


@router.post("/reservations/{reservation_id}/complete", response_model=CompletionResult)
def complete_reservation(
    reservation_id: int,
    request: Optional[CompleteRequest] = None,
    service: ReservationService = Depends(get_reservation_service),
):
    request = request or CompleteRequest()
    return service.complete_reservation(
        reservation_id, notes=request.notes, products_used=request.products_used
    )


@router.get("/reservations/{reservation_id}/history", response_model=List[RescheduleEntry])
def get_reschedule_history(
    reservation_id: int, service: ReservationService = Depends(get_reservation_service)
):
    return service.get_reschedule_history(reservation_id)


@router.get("/reservations/{reservation_id}/can-reschedule", response_model=RescheduleCheck)
def can_reschedule(
    reservation_id: int, service: ReservationService = Depends(get_reservation_service)
):
    return service.can_reschedule(reservation_id)


@router.get(
    "/reservations/{reservation_id}/cancellation-policy", response_model=CancellationPolicy
)
def get_cancellation_policy(
    reservation_id: int, service: ReservationService = Depends(get_reservation_service)
):
    return service.get_cancellation_policy(reservation_id)


@router.get(
    "/reservations/{reservation_id}/services", response_model=List[ServiceRecordResponse]
)
def list_service_records(
    reservation_id: int, service: BundleService = Depends(get_bundle_service)
):
    """Per-service progress of a bundle reservation"""
    return [
        ServiceRecordResponse(
            id=record.id,
            service_id=record.service_id,
            service_name=record.service_name,
            status=record.status,
        )
        for record in service.list_service_records(reservation_id)
    ]


# ----------------------------------------------------------------------
# Businesses
# ----------------------------------------------------------------------


@router.get("/businesses/{business_id}/slots", response_model=SlotsResponse)
def get_available_slots(
    business_id: int,
    date: str,
    duration: int,
    service: ReservationService = Depends(get_reservation_service),
):
    """Free slots of the requested duration on a date"""
    slots = service.get_available_slots(business_id, date, duration)
    return {
        "business_id": business_id,
        "date": parse_date(date).isoformat(),
        "duration": duration,
        "available_slots": [slot.to_dict() for slot in slots],
    }


@router.get("/businesses/{business_id}/hours", response_model=HoursResponse)
def get_business_hours(business_id: int, date: str, db: Session = Depends(get_db)):
    """Effective open hours on a date"""
    availability.get_business(db, business_id)
    return availability.resolve(db, business_id, parse_date(date)).to_dict()


@router.get("/businesses/{business_id}/availability")
def get_weekly_availability(business_id: int, db: Session = Depends(get_db)):
    return availability.get_weekly_availability(db, business_id)


@router.put("/businesses/{business_id}/availability/{day}", response_model=HoursResponse)
def set_weekly_availability(
    business_id: int,
    day: str,
    request: HoursRequest,
    x_actor_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
):
    """Set the weekly open hours for one day (owner only)"""
    availability.set_weekly_availability(
        db,
        business_id,
        x_actor_id,
        day,
        request.is_open,
        request.open_time,
        request.close_time,
    )
    return HoursResponse(
        is_open=request.is_open,
        open_time=request.open_time if request.is_open else None,
        close_time=request.close_time if request.is_open else None,
        source="weekly",
    )


@router.put("/businesses/{business_id}/special-days/{day}", response_model=HoursResponse)
def set_special_day(
    business_id: int,
    day: str,
    request: HoursRequest,
    x_actor_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
):
    """Override the open hours for one calendar date (owner only)"""
    target_date = parse_date(day)
    availability.set_special_day(
        db,
        business_id,
        x_actor_id,
        target_date,
        request.is_open,
        request.open_time,
        request.close_time,
        request.reason,
    )
    return availability.resolve(db, business_id, target_date).to_dict()


@router.post("/businesses/{business_id}/bundles", response_model=BundleResponse, status_code=201)
def create_bundle(
    business_id: int,
    request: BundleCreate,
    x_actor_id: Optional[str] = Header(default=None),
    service: BundleService = Depends(get_bundle_service),
):
    bundle = service.create_bundle(business_id, x_actor_id, **request.model_dump())
    return BundleResponse(
        id=bundle.id,
        business_id=bundle.business_id,
        name=bundle.name,
        service_ids=bundle.service_ids,
        total_duration=bundle.total_duration,
        total_price=bundle.total_price,
        is_active=bundle.is_active,
        max_redemptions=bundle.max_redemptions,
        current_redemptions=bundle.current_redemptions,
    )


# ----------------------------------------------------------------------
# Staff
# ----------------------------------------------------------------------


@router.get("/staff/{staff_id}/availability", response_model=StaffAvailabilityResponse)
def get_staff_availability(
    staff_id: str, start_date: str, end_date: str, db: Session = Depends(get_db)
):
    """Working windows for each date in the range"""
    return availability.get_staff_availability(db, staff_id, start_date, end_date)


@router.put("/staff/{staff_id}/availability/{day}", response_model=StaffDay)
def set_staff_availability(
    staff_id: str,
    day: str,
    request: StaffAvailabilityRequest,
    x_actor_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
):
    """Set a staff member's window for one date (the staff member only)"""
    target_date = parse_date(day)
    availability.set_staff_availability(
        db,
        staff_id,
        x_actor_id,
        target_date,
        request.is_available,
        request.start_time,
        request.end_time,
        request.reason,
    )
    return availability.get_staff_availability(db, staff_id, target_date, target_date)["dates"][0]


# ----------------------------------------------------------------------
# Bundles
# ----------------------------------------------------------------------


@router.post("/bundles/{bundle_id}/book", response_model=BundleBooked, status_code=201)
def book_bundle(
    bundle_id: int,
    request: BundleBookingRequest,
    service: BundleService = Depends(get_bundle_service),
):
    """Book every service in a bundle as one reservation"""
    customer_info = request.customer_info.model_dump() if request.customer_info else {}
    return service.book_bundle(
        bundle_id,
        customer_id=request.customer_id,
        date=request.date,
        start_time=request.start_time,
        customer_info=customer_info,
        vehicle_id=request.vehicle_id,
        notes=request.notes,
    )


@router.get("/bundles/{bundle_id}/slots", response_model=BundleSlotsResponse)
def get_bundle_availability(
    bundle_id: int, date: str, service: BundleService = Depends(get_bundle_service)
):
    return service.get_bundle_availability(bundle_id, date)


@router.post("/bundles/reservations/{reservation_id}/cancel", response_model=CancelResult)
def cancel_bundle_booking(
    reservation_id: int,
    request: Optional[CancelRequest] = None,
    x_actor_id: Optional[str] = Header(default=None),
    service: BundleService = Depends(get_bundle_service),
):
    reason = request.reason if request else None
    return service.cancel_bundle_booking(reservation_id, reason=reason, actor_id=x_actor_id)
