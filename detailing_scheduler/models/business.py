from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship
from detailing_scheduler.database import Base


class Business(Base):
    """A detailing shop that publishes its open hours"""
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    owner_id = Column(String(255), index=True, nullable=False)  # Actor id of the owning account
    phone = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=func.now())

    # Relationships
    services = relationship("Service", back_populates="business", cascade="all, delete-orphan")
    weekly_availability = relationship(
        "BusinessAvailability", back_populates="business", cascade="all, delete-orphan"
    )
    special_days = relationship(
        "SpecialDayAvailability", back_populates="business", cascade="all, delete-orphan"
    )
    reservations = relationship("Reservation", back_populates="business")


class Service(Base):
    """A single service offered by a business"""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, default=0.0)
    is_active = Column(Boolean, default=True)

    # Relationships
    business = relationship("Business", back_populates="services")
