import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from .db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileModel(Base):
    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)
    email = Column(String(255))
    full_name = Column(String(255))
    role = Column(String(16), nullable=False, default="customer")


class CatalogItemModel(Base):
    __tablename__ = "packages"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)
    price = Column(Integer, nullable=False)          # minor units
    available = Column(Boolean, nullable=False, default=True)


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    # the unique index is what makes concurrent reference allocation safe
    reference = Column(String(32), unique=True, index=True, nullable=False)
    owner_id = Column(String(64), ForeignKey("profiles.id"), index=True, nullable=False)
    item_ref = Column(String(64), ForeignKey("packages.id"), nullable=True)
    booking_type = Column(String(16), nullable=False, default="package")
    traveler_count = Column(Integer, nullable=False)
    travel_date = Column(Date, nullable=False)
    total_amount = Column(Integer, nullable=False)   # minor units
    currency = Column(String(8), nullable=False)
    status = Column(String(16), nullable=False, default="PENDING", index=True)
    traveler_details = Column(JSON, default=list)
    contact_email = Column(String(255))
    contact_phone = Column(String(64))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    payments = relationship("PaymentModel", back_populates="booking")


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id"), index=True, nullable=False)
    owner_id = Column(String(64), index=True, nullable=False)
    amount = Column(Integer, nullable=False)         # minor units
    currency = Column(String(8), nullable=False)
    internal_reference = Column(String(64), unique=True, index=True, nullable=False)
    gateway_reference = Column(String(128), index=True, nullable=True)
    status = Column(String(16), nullable=False, default="PENDING")
    raw_metadata = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    booking = relationship("BookingModel", back_populates="payments")
