"""
Request and response models for the booking API.

Dates and times travel as "YYYY-MM-DD" / "HH:MM" strings and are parsed by
the service layer, so malformed values come back with the same error body
as every other domain validation failure.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ReservationCreate(BaseModel):
    """Request model for POST /reservations"""

    customer_id: str
    date: str
    start_time: str
    end_time: str
    service_type: str
    staff_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    business_id: Optional[int] = None
    price: Optional[float] = None
    notes: Optional[str] = None
    customer_phone: Optional[str] = None


class ReservationUpdate(BaseModel):
    """Request model for PATCH /reservations/{id}; only sent fields apply"""

    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    staff_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    service_type: Optional[str] = None
    status: Optional[str] = None
    price: Optional[float] = None
    notes: Optional[str] = None


class RescheduleRequest(BaseModel):
    new_date: str
    new_start_time: str
    new_end_time: str
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class CompleteRequest(BaseModel):
    notes: Optional[str] = None
    products_used: List[str] = Field(default_factory=list)


class ReservationResponse(BaseModel):
    id: int
    customer_id: str
    staff_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    business_id: Optional[int] = None
    bundle_id: Optional[int] = None
    date: str
    start_time: str
    end_time: str
    service_type: str
    status: str
    price: Optional[float] = None
    notes: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[str] = None
    reschedule_count: int = 0


class ReservationCreated(BaseModel):
    reservation_id: int


class CancelResult(BaseModel):
    success: bool


class CompletionResult(BaseModel):
    reservation_id: int
    history_record_id: Optional[int] = None


class RescheduleEntry(BaseModel):
    original_date: str
    original_start_time: str
    original_end_time: str
    new_date: str
    new_start_time: str
    new_end_time: str
    reason: Optional[str] = None
    rescheduled_by: str
    rescheduled_at: str


class RescheduleCheck(BaseModel):
    can_reschedule: bool
    reason: Optional[str] = None


class CancellationPolicy(BaseModel):
    can_cancel: bool
    reason: Optional[str] = None
    hours_until_appointment: float
    deadline_hours: int


class SlotValidationRequest(BaseModel):
    """Request model for a dry-run booking check"""

    business_id: int
    date: str
    start_time: str
    end_time: str
    service_type: str
    staff_id: Optional[str] = None
    exclude_reservation_id: Optional[int] = None


class BatchValidationRequest(BaseModel):
    reservations: List[SlotValidationRequest]


class SlotValidation(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class BatchSlotValidation(SlotValidation):
    index: int


class SlotResponse(BaseModel):
    start_time: str
    end_time: str


class SlotsResponse(BaseModel):
    business_id: int
    date: str
    duration: int
    available_slots: List[SlotResponse]


class HoursRequest(BaseModel):
    """Request model for weekly pattern and special-day overrides"""

    is_open: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    reason: Optional[str] = None


class HoursResponse(BaseModel):
    is_open: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    source: Optional[str] = None
    reason: Optional[str] = None


class StaffAvailabilityRequest(BaseModel):
    is_available: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None


class StaffDay(BaseModel):
    date: str
    is_available: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None
    is_custom: bool


class StaffAvailabilityResponse(BaseModel):
    staff_id: str
    dates: List[StaffDay]


class CustomerInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class BundleCreate(BaseModel):
    name: str
    service_ids: List[int]
    total_price: Optional[float] = None
    description: Optional[str] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    max_redemptions: Optional[int] = None


class BundleResponse(BaseModel):
    id: int
    business_id: int
    name: str
    service_ids: List[int]
    total_duration: int
    total_price: float
    is_active: bool
    max_redemptions: Optional[int] = None
    current_redemptions: int


class BundleBookingRequest(BaseModel):
    customer_id: str
    date: str
    start_time: str
    customer_info: Optional[CustomerInfo] = None
    vehicle_id: Optional[str] = None
    notes: Optional[str] = None


class BundleBooked(BaseModel):
    reservation_id: int
    bundle_id: int


class BundleSlotsResponse(BaseModel):
    bundle_id: int
    date: str
    duration: int
    available_slots: List[SlotResponse]


class ServiceRecordResponse(BaseModel):
    id: int
    service_id: int
    service_name: str
    status: str


UpcomingResponse = Dict[str, List[ReservationResponse]]
