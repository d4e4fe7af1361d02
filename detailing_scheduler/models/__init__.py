from detailing_scheduler.models.business import Business, Service
from detailing_scheduler.models.availability import (
    DAYS_OF_WEEK,
    BusinessAvailability,
    SpecialDayAvailability,
    StaffAvailability,
)
from detailing_scheduler.models.reservation import Reservation, ReservationStatus
from detailing_scheduler.models.bundle import Bundle, BundleServiceRecord
from detailing_scheduler.models.service_history import InventoryTransaction, ServiceHistoryRecord

__all__ = [
    "Business",
    "Service",
    "DAYS_OF_WEEK",
    "BusinessAvailability",
    "SpecialDayAvailability",
    "StaffAvailability",
    "Reservation",
    "ReservationStatus",
    "Bundle",
    "BundleServiceRecord",
    "InventoryTransaction",
    "ServiceHistoryRecord",
]
