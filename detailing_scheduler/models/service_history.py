from sqlalchemy import JSON, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, func
from detailing_scheduler.database import Base


class ServiceHistoryRecord(Base):
    """Detailing record kept per vehicle once a reservation is completed"""
    __tablename__ = "service_history_records"

    id = Column(Integer, primary_key=True, index=True)
    vehicle_id = Column(String(255), index=True, nullable=False)
    customer_id = Column(String(255), index=True, nullable=False)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), index=True, nullable=False)
    service = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)
    price = Column(Float, nullable=True)
    staff_id = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    products = Column(JSON, default=list)
    created_at = Column(DateTime, default=func.now())


class InventoryTransaction(Base):
    """Stock movement, negative quantity for consumption"""
    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(String(255), index=True, nullable=False)
    type = Column(String(20), nullable=False)  # "use", "restock", "adjustment"
    quantity = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    staff_id = Column(String(255), nullable=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), index=True, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
