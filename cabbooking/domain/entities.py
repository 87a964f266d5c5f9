"""
Domain value objects and lifecycle rules.

Patterns used
-------------
- **State Pattern** helpers (``ensure_transition``) enforce the booking
  lifecycle (PENDING_PAYMENT -> PAID -> IN_PROGRESS -> COMPLETED, with
  CANCELLED reachable from every non-terminal status).
- ``BookingRequest.validate`` runs before any write so a rejected request
  never touches the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import BOOKING_TRANSITIONS, TERMINAL_STATUSES, BookingStatus, PaymentStatus
from .errors import InvalidTransitionError, ValidationError


def ensure_transition(current: BookingStatus, new_status: BookingStatus) -> None:
    """Raise ``InvalidTransitionError`` unless *current* -> *new_status* is legal."""
    allowed = BOOKING_TRANSITIONS.get(current, set())
    if new_status not in allowed:
        raise InvalidTransitionError(current.value, new_status.value)


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_STATUSES


def remaining_after(total_amount: float, payment_amount: Optional[float]) -> float:
    """Money still owed once *payment_amount* is collected (full payment if None)."""
    paid = total_amount if payment_amount is None else payment_amount
    return max(0.0, total_amount - paid)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class BookingRequest:
    user_id: Optional[int]
    pickup_location: Optional[str]
    drop_location: Optional[str]
    total_amount: Optional[float]
    scheduled_at: Optional[datetime] = None
    distance_km: Optional[float] = None
    estimated_fare: Optional[float] = None
    car_model: Optional[str] = None

    def validate(self, *, require_positive_total: bool) -> None:
        if not self.user_id:
            raise ValidationError("user_id is required")
        if _is_blank(self.pickup_location) or _is_blank(self.drop_location):
            raise ValidationError("pickup_location and drop_location are required")
        if self.total_amount is None:
            raise ValidationError("total_amount is required")
        if require_positive_total and self.total_amount <= 0:
            raise ValidationError("total_amount must be greater than 0")
        if self.total_amount < 0:
            raise ValidationError("total_amount cannot be negative")
        if self.distance_km is not None and self.distance_km < 0:
            raise ValidationError("distance_km cannot be negative")


@dataclass(frozen=True)
class PaymentPayload:
    """A payment captured outside the gateway flow (cash, manual transfer)."""

    amount: Optional[float]
    currency: Optional[str] = None
    status: Optional[str] = None
    provider: Optional[str] = None
    provider_txn_id: Optional[str] = None

    def resolved_status(self) -> PaymentStatus:
        if self.status is None:
            return PaymentStatus.SUCCESS
        try:
            return PaymentStatus(self.status)
        except ValueError:
            raise ValidationError(f"Unknown payment status {self.status!r}") from None

    def validate(self) -> None:
        if self.amount is None:
            raise ValidationError("payment.amount is required")
        if self.amount < 0:
            raise ValidationError("payment.amount cannot be negative")
        self.resolved_status()


@dataclass(frozen=True)
class AssignmentDetails:
    driver_name: str
    driver_number: str
    cab_number: str
    cab_name: str

    def validate(self) -> None:
        for name in ("driver_name", "driver_number", "cab_number", "cab_name"):
            if _is_blank(getattr(self, name)):
                raise ValidationError(f"{name} is required")
