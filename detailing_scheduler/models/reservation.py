from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    func,
    text,
)
from sqlalchemy.orm import relationship
from detailing_scheduler.database import Base


class ReservationStatus:
    """Reservation state machine"""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (SCHEDULED, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED)
    TERMINAL = frozenset({COMPLETED, CANCELLED})
    # Only these may be cancelled or rescheduled
    MUTABLE = frozenset({SCHEDULED, CONFIRMED})

    TRANSITIONS = {
        SCHEDULED: frozenset({CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED}),
        CONFIRMED: frozenset({IN_PROGRESS, COMPLETED, CANCELLED}),
        IN_PROGRESS: frozenset({COMPLETED}),
        COMPLETED: frozenset(),
        CANCELLED: frozenset(),
    }

    @classmethod
    def can_transition(cls, current: str, target: str) -> bool:
        return target in cls.TRANSITIONS.get(current, frozenset())


_ACTIVE_STAFFED = text("staff_id IS NOT NULL AND status != 'cancelled'")


class Reservation(Base):
    """A booked time interval for one customer"""
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_reservations_start_before_end"),
        Index("ix_reservations_business_date", "business_id", "date"),
        Index("ix_reservations_staff_date", "staff_id", "date"),
        # Backstop for concurrent writers on the same staff member
        Index(
            "uq_reservations_staff_slot",
            "staff_id",
            "date",
            "start_time",
            unique=True,
            sqlite_where=_ACTIVE_STAFFED,
            postgresql_where=_ACTIVE_STAFFED,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(String(255), index=True, nullable=False)
    staff_id = Column(String(255), nullable=True)
    vehicle_id = Column(String(255), nullable=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True)
    bundle_id = Column(Integer, ForeignKey("bundles.id"), nullable=True, index=True)
    date = Column(Date, index=True, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    service_type = Column(String(255), nullable=False)
    status = Column(String(20), default=ReservationStatus.SCHEDULED, nullable=False, index=True)
    price = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)

    # Contact details captured for bundle bookings
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(20), nullable=True)

    reschedule_history = Column(JSON, default=list, nullable=False)
    cancelled_by = Column(String(255), nullable=True)  # Actor id, None for system cancellations
    cancelled_at = Column(DateTime, nullable=True)
    reminder_sent = Column(Boolean, default=False)  # Track if reminder sent
    followup_sent = Column(Boolean, default=False)  # Track if feedback request sent
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    business = relationship("Business", back_populates="reservations")
    bundle = relationship("Bundle")
    service_records = relationship(
        "BundleServiceRecord",
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="BundleServiceRecord.id",
    )

    @property
    def is_active(self) -> bool:
        return self.status != ReservationStatus.CANCELLED

    def snapshot(self) -> dict:
        """Plain-data view handed to notification and read-only consumers"""
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "staff_id": self.staff_id,
            "vehicle_id": self.vehicle_id,
            "business_id": self.business_id,
            "bundle_id": self.bundle_id,
            "date": self.date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "service_type": self.service_type,
            "status": self.status,
            "price": self.price,
            "notes": self.notes,
            "cancelled_by": self.cancelled_by,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
