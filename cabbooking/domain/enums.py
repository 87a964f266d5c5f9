"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING_PAYMENT: {BookingStatus.PAID, BookingStatus.CANCELLED},
    BookingStatus.PAID: {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in BOOKING_TRANSITIONS.items() if not targets
)

# Trip completion is allowed straight from PAID (no explicit start)
COMPLETABLE_STATUSES = frozenset({BookingStatus.PAID, BookingStatus.IN_PROGRESS})


class PaymentStatus(str, enum.Enum):
    CREATED = "CREATED"
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    PAID = "PAID"
    FAILED = "FAILED"


# Statuses that count towards money actually collected
SETTLED_PAYMENT_STATUSES = frozenset({PaymentStatus.SUCCESS, PaymentStatus.PAID})


class TaxiAssignStatus(str, enum.Enum):
    NOT_ASSIGNED = "NOT_ASSIGNED"
    ASSIGNED = "ASSIGNED"


class AdjustmentType(str, enum.Enum):
    EXTRA_KM = "EXTRA_KM"
    TOLL = "TOLL"
    WAITING = "WAITING"


class AuditAction(str, enum.Enum):
    STATUS_CHANGE = "STATUS_CHANGE"
    CANCEL = "CANCEL"
    TAXI_ASSIGNED = "TAXI_ASSIGNED"
