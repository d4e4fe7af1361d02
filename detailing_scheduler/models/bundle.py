from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship
from detailing_scheduler.database import Base


class Bundle(Base):
    """A named group of services booked as one reservation"""
    __tablename__ = "bundles"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    service_ids = Column(JSON, nullable=False)  # Ordered list of Service ids
    total_duration = Column(Integer, nullable=False)  # Minutes
    total_price = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    valid_from = Column(DateTime, nullable=True)
    valid_until = Column(DateTime, nullable=True)
    max_redemptions = Column(Integer, nullable=True)
    current_redemptions = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=func.now())

    business = relationship("Business")

    @property
    def is_capped(self) -> bool:
        return self.max_redemptions is not None


class BundleServiceRecord(Base):
    """Per-service progress inside a booked bundle"""
    __tablename__ = "bundle_service_records"

    id = Column(Integer, primary_key=True, index=True)
    reservation_id = Column(
        Integer, ForeignKey("reservations.id", ondelete="CASCADE"), index=True, nullable=False
    )
    bundle_id = Column(Integer, ForeignKey("bundles.id"), index=True, nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    service_name = Column(String(255), nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending/in-progress/completed/cancelled
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    reservation = relationship("Reservation", back_populates="service_records")
