import enum

from sqlalchemy import Column, DateTime, Numeric, String
from sqlalchemy.sql import func

from eventpass.db.base import Base


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class PaymentStatus(str, enum.Enum):
    NONE = "NONE"
    INITIATED = "INITIATED"
    PAID = "PAID"
    FAILED = "FAILED"


class Booking(Base):
    __tablename__ = "bookings"
    # externally assigned; doubles as the gateway merchant_order_id
    id = Column(String(64), primary_key=True)
    amount = Column(Numeric(10, 2), nullable=False)
    payer_name = Column(String(255), nullable=True)
    payer_phone = Column(String(32), nullable=False)
    event_title = Column(String(255), nullable=True)
    event_date = Column(String(128), nullable=True)
    status = Column(String(32), nullable=False, default=BookingStatus.PENDING.value, index=True)
    payment_status = Column(String(32), nullable=False, default=PaymentStatus.NONE.value, index=True)
    gateway_order_id = Column(String(128), nullable=True, index=True)
    gateway_transaction_id = Column(String(128), nullable=True)
    amount_paid = Column(Numeric(10, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
