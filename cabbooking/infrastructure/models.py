"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``             -- registered customers
* ``bookings``          -- trip requests / contracts
* ``payments``          -- funding attempts against a booking
* ``taxi_assignments``  -- driver + vehicle bound to a booking (one per booking)
* ``fare_adjustments``  -- itemised charges added at trip completion
* ``booking_notes``     -- free-text admin annotations
* ``audit_logs``        -- immutable trail of admin mutations

Indexes
-------
* **B-Tree** on ``status``, ``user_id``, ``booking_id`` and
  ``provider_txn_id`` for the look-ups used by the lifecycle engine and
  the admin views.

Timestamps are filled application-side so that objects returned after
commit never need a lazy refresh.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base
from cabbooking.domain.enums import (
    AdjustmentType,
    AuditAction,
    BookingStatus,
    PaymentStatus,
    TaxiAssignStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    bookings = relationship("BookingModel", back_populates="user")


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    pickup_location = Column(String(500), nullable=False)
    drop_location = Column(String(500), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    car_model = Column(String(120), nullable=True)

    # Estimate captured at booking time; never overwritten at completion
    distance_km = Column(Float, nullable=True)
    estimated_fare = Column(Float, nullable=True)
    total_amount = Column(Float, nullable=False)

    # Filled in when the trip completes
    actual_km = Column(Float, nullable=True)
    extra_km = Column(Float, nullable=True)
    extra_charge = Column(Float, nullable=True)

    cancellation_reason = Column(Text, nullable=True)
    status = Column(
        Enum(BookingStatus), default=BookingStatus.PENDING_PAYMENT, nullable=False
    )
    taxi_assign_status = Column(
        Enum(TaxiAssignStatus),
        default=TaxiAssignStatus.NOT_ASSIGNED,
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("UserModel", back_populates="bookings")
    payments = relationship(
        "PaymentModel", back_populates="booking", order_by="PaymentModel.id"
    )
    assignments = relationship("TaxiAssignmentModel", back_populates="booking")
    fare_adjustments = relationship(
        "FareAdjustmentModel",
        back_populates="booking",
        order_by="FareAdjustmentModel.id",
    )

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_user", "user_id"),
    )


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(8), default="INR", nullable=False)
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    provider = Column(String(50), default="unknown", nullable=False)
    # Gateway order id while PENDING, gateway payment id once reconciled
    provider_txn_id = Column(String(255), nullable=True)
    remaining_amount = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    booking = relationship("BookingModel", back_populates="payments")

    __table_args__ = (
        Index("idx_payments_booking", "booking_id"),
        Index("idx_payments_provider_txn", "provider_txn_id", "status"),
    )


class TaxiAssignmentModel(Base):
    __tablename__ = "taxi_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    driver_name = Column(String(120), nullable=False)
    driver_number = Column(String(32), nullable=False)
    cab_number = Column(String(32), nullable=False)
    cab_name = Column(String(120), nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    booking = relationship("BookingModel", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("booking_id", name="uq_taxi_assignments_booking"),
    )


class FareAdjustmentModel(Base):
    __tablename__ = "fare_adjustments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    type = Column(Enum(AdjustmentType), nullable=False)
    amount = Column(Float, nullable=False)
    description = Column(String(255), nullable=True)
    admin_id = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    booking = relationship("BookingModel", back_populates="fare_adjustments")

    __table_args__ = (Index("idx_fare_adjustments_booking", "booking_id"),)


class BookingNoteModel(Base):
    __tablename__ = "booking_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    admin_id = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_booking_notes_booking", "booking_id"),)


class AuditLogModel(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(Enum(AuditAction), nullable=False)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    admin_id = Column(Integer, nullable=False, default=0)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_audit_logs_entity", "entity_type", "entity_id"),)
