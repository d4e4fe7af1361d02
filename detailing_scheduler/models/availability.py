from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship
from detailing_scheduler.database import Base

DAYS_OF_WEEK = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class BusinessAvailability(Base):
    """Weekly open hours, one row per business per day of week"""
    __tablename__ = "business_availability"
    __table_args__ = (
        UniqueConstraint("business_id", "day_of_week", name="uq_business_availability_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    day_of_week = Column(String(10), nullable=False)  # "monday", "tuesday", ...
    is_open = Column(Boolean, default=False, nullable=False)
    open_time = Column(Time, nullable=True)
    close_time = Column(Time, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    business = relationship("Business", back_populates="weekly_availability")


class SpecialDayAvailability(Base):
    """Per-date override of the weekly pattern (holidays, events)"""
    __tablename__ = "special_day_availability"
    __table_args__ = (
        UniqueConstraint("business_id", "date", name="uq_special_day_availability_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    date = Column(Date, nullable=False)
    is_open = Column(Boolean, default=False, nullable=False)
    open_time = Column(Time, nullable=True)
    close_time = Column(Time, nullable=True)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    business = relationship("Business", back_populates="special_days")


class StaffAvailability(Base):
    """Per-date working window for one staff member"""
    __tablename__ = "staff_availability"
    __table_args__ = (
        UniqueConstraint("staff_id", "date", name="uq_staff_availability_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(String(255), index=True, nullable=False)
    date = Column(Date, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    reason = Column(String(255), nullable=True)  # "vacation", "training", ...
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
