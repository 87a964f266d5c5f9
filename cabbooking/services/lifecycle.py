"""
Booking Lifecycle Engine
========================

Owns every booking / payment state change:

1. Booking creation -- already paid (cash / manual) or pending a gateway
   payment (optionally partial).
2. Payment-success reconciliation of a gateway callback.
3. Admin status transitions along ``BOOKING_TRANSITIONS``.
4. Trip completion with fare adjustment.
5. Cancellation.
6. Taxi assignment upsert, gated on customer + driver notifications.

Consistency
-----------
* Validation and state checks run before any write.
* Each operation runs in one ``session.begin()`` block: booking, payment,
  fare-adjustment and audit rows commit together or not at all.
* Booking rows are read ``FOR UPDATE`` inside that transaction, so two
  admins acting on the same booking serialise on the row.
* Notifications never roll back committed state.  The booking
  confirmation is dispatched detached; the assignment notifications are
  awaited because their success gates the ASSIGNED / IN_PROGRESS flip.

The engine holds no state between calls beyond its injected collaborators.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cabbooking.domain.entities import (
    AssignmentDetails,
    BookingRequest,
    PaymentPayload,
    ensure_transition,
    is_terminal,
    remaining_after,
)
from cabbooking.domain.enums import (
    COMPLETABLE_STATUSES,
    AuditAction,
    BookingStatus,
    PaymentStatus,
    TaxiAssignStatus,
)
from cabbooking.domain.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PartialSuccess,
    ValidationError,
)
from cabbooking.domain.fares import (
    DEFAULT_RATE_PER_KM,
    FareBreakdown,
    compute_fare_adjustment,
)
from cabbooking.infrastructure.models import (
    AuditLogModel,
    BookingModel,
    BookingNoteModel,
    FareAdjustmentModel,
    PaymentModel,
    TaxiAssignmentModel,
)
from cabbooking.infrastructure.repositories import (
    BookingNoteRepository,
    BookingRepository,
    FareAdjustmentRepository,
    PaymentRepository,
    TaxiAssignmentRepository,
    UserRepository,
)
from cabbooking.services.audit import AuditRecorder

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send_booking_confirmation(self, phone, booking) -> bool: ...

    async def send_taxi_assignment(self, phone, booking, assignment) -> bool: ...

    async def send_driver_assignment(self, phone, booking, assignment) -> bool: ...

    def dispatch(self, coro, *, label: str = ...): ...


def _as_status(value: Union[str, BookingStatus]) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown booking status {value!r}") from None


def _validate_pending(request: BookingRequest, payment_amount: Optional[float]) -> None:
    request.validate(require_positive_total=False)
    if payment_amount is None:
        return
    if payment_amount < 0:
        raise ValidationError("payment_amount cannot be negative")
    if payment_amount > request.total_amount:
        raise ValidationError("payment_amount cannot exceed total_amount")


def _customer_phone(booking: BookingModel) -> Optional[str]:
    return booking.user.phone if booking.user is not None else None


class BookingLifecycleEngine:
    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        *,
        default_rate_per_km: float = DEFAULT_RATE_PER_KM,
        currency: str = "INR",
        provider: str = "razorpay",
    ):
        self.sessions = sessions
        self.notifier = notifier
        self.default_rate_per_km = default_rate_per_km
        self.currency = currency
        self.provider = provider

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self.sessions() as session:
            async with session.begin():
                yield session

    @staticmethod
    async def _locked_booking(session: AsyncSession, booking_id: int) -> BookingModel:
        booking = await BookingRepository(session).get_for_update(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    @staticmethod
    async def _require_user(session: AsyncSession, user_id: int) -> None:
        if await UserRepository(session).get_by_id(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

    # ── Creation ──────────────────────────────────────────────────

    async def create_paid_booking(
        self, request: BookingRequest, payment: Optional[PaymentPayload] = None
    ) -> BookingModel:
        """Booking whose payment is already settled (cash / manual flow)."""
        request.validate(require_positive_total=True)
        if payment is not None:
            payment.validate()

        async with self._transaction() as session:
            await self._require_user(session, request.user_id)
            bookings = BookingRepository(session)
            booking = await bookings.create(
                BookingModel(
                    user_id=request.user_id,
                    pickup_location=request.pickup_location,
                    drop_location=request.drop_location,
                    scheduled_at=request.scheduled_at,
                    distance_km=request.distance_km,
                    estimated_fare=request.estimated_fare,
                    total_amount=request.total_amount,
                    car_model=request.car_model,
                    status=BookingStatus.PAID,
                )
            )
            if payment is not None:
                await PaymentRepository(session).create(
                    PaymentModel(
                        booking_id=booking.id,
                        amount=payment.amount,
                        currency=payment.currency or self.currency,
                        status=payment.resolved_status(),
                        provider=payment.provider or "unknown",
                        provider_txn_id=payment.provider_txn_id,
                    )
                )
            booking = await bookings.get_detailed(booking.id)

        logger.info("Booking %s created as PAID", booking.id)
        return booking

    async def check_pending_request(
        self, request: BookingRequest, payment_amount: Optional[float] = None
    ) -> None:
        """Everything ``create_pending_booking`` rejects, run before a gateway
        order is opened so a bad request never reaches the gateway."""
        _validate_pending(request, payment_amount)
        async with self._transaction() as session:
            await self._require_user(session, request.user_id)

    async def create_pending_booking(
        self,
        request: BookingRequest,
        gateway_order_id: str,
        payment_amount: Optional[float] = None,
    ) -> BookingModel:
        """Booking awaiting the gateway callback for *gateway_order_id*."""
        _validate_pending(request, payment_amount)
        if not gateway_order_id:
            raise ValidationError("gateway_order_id is required")

        amount = request.total_amount if payment_amount is None else payment_amount
        remaining = remaining_after(request.total_amount, payment_amount)

        async with self._transaction() as session:
            await self._require_user(session, request.user_id)
            bookings = BookingRepository(session)
            booking = await bookings.create(
                BookingModel(
                    user_id=request.user_id,
                    pickup_location=request.pickup_location,
                    drop_location=request.drop_location,
                    scheduled_at=request.scheduled_at,
                    distance_km=request.distance_km,
                    estimated_fare=request.estimated_fare,
                    total_amount=request.total_amount,
                    car_model=request.car_model,
                    status=BookingStatus.PENDING_PAYMENT,
                )
            )
            await PaymentRepository(session).create(
                PaymentModel(
                    booking_id=booking.id,
                    amount=amount,
                    currency=self.currency,
                    status=PaymentStatus.PENDING,
                    provider=self.provider,
                    provider_txn_id=gateway_order_id,
                    remaining_amount=remaining,
                )
            )
            booking = await bookings.get_detailed(booking.id)

        logger.info(
            "Booking %s created PENDING_PAYMENT (order=%s, remaining=%.2f)",
            booking.id,
            gateway_order_id,
            remaining,
        )
        return booking

    # ── Payment reconciliation ────────────────────────────────────

    async def reconcile_payment(self, order_id: str, payment_id: str) -> BookingModel:
        """
        Settle the PENDING payment for *order_id* with gateway *payment_id*.

        The caller has already verified the callback signature.  A replayed
        callback finds no PENDING row and fails with ``NotFoundError``.
        """
        if not order_id or not payment_id:
            raise ValidationError("order_id and payment_id are required")

        async with self._transaction() as session:
            payment = await PaymentRepository(session).get_pending_by_provider_txn_id(
                order_id
            )
            if payment is None:
                raise NotFoundError("Payment record not found")

            is_full_payment = not payment.remaining_amount
            booking = await self._locked_booking(session, payment.booking_id)

            payment.status = PaymentStatus.SUCCESS
            payment.provider_txn_id = payment_id

            if is_terminal(booking.status):
                # Money arrived for a closed booking; record it, keep status
                logger.warning(
                    "Payment %s settled for %s booking %s; status left unchanged",
                    payment_id,
                    booking.status.value,
                    booking.id,
                )
            elif is_full_payment and booking.status == BookingStatus.PENDING_PAYMENT:
                booking.status = BookingStatus.PAID

            booking = await BookingRepository(session).get_detailed(booking.id)

        logger.info(
            "Payment %s reconciled for booking %s (%s payment, status=%s)",
            payment_id,
            booking.id,
            "full" if is_full_payment else "partial",
            booking.status.value,
        )
        self.notifier.dispatch(
            self.notifier.send_booking_confirmation(_customer_phone(booking), booking),
            label=f"booking confirmation for #{booking.id}",
        )
        return booking

    # ── Admin transitions ─────────────────────────────────────────

    async def change_status(
        self,
        booking_id: int,
        new_status: Union[str, BookingStatus],
        actor_id: int = 0,
        reason: Optional[str] = None,
    ) -> BookingModel:
        target = _as_status(new_status)

        async with self._transaction() as session:
            booking = await self._locked_booking(session, booking_id)
            old_status = booking.status
            ensure_transition(old_status, target)

            booking.status = target
            await AuditRecorder(session).record(
                booking.id,
                AuditAction.STATUS_CHANGE,
                {"status": old_status.value},
                {"status": target.value},
                actor_id,
                reason
                or f"Status changed from {old_status.value} to {target.value}",
            )
            booking = await BookingRepository(session).get_detailed(booking.id)

        logger.info(
            "Booking %s: %s -> %s by admin %s",
            booking_id,
            old_status.value,
            target.value,
            actor_id,
        )
        return booking

    async def complete_trip(
        self,
        booking_id: int,
        actor_id: int = 0,
        *,
        actual_km: Optional[float] = None,
        rate_per_km: Optional[float] = None,
        toll_charges: Optional[float] = None,
        waiting_charges: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> tuple[BookingModel, FareBreakdown]:
        async with self._transaction() as session:
            booking = await self._locked_booking(session, booking_id)
            if booking.status not in COMPLETABLE_STATUSES:
                raise InvalidStateError("Trip must be in progress or paid to complete")

            fare = compute_fare_adjustment(
                booking.total_amount,
                booking.distance_km,
                actual_km=actual_km,
                rate_per_km=rate_per_km,
                toll_charges=toll_charges,
                waiting_charges=waiting_charges,
                default_rate_per_km=self.default_rate_per_km,
            )
            old_value = {
                "status": booking.status.value,
                "total_amount": booking.total_amount,
            }

            booking.status = BookingStatus.COMPLETED
            booking.total_amount = fare.new_total
            booking.actual_km = fare.actual_km
            booking.extra_km = fare.extra_km
            booking.extra_charge = fare.total_adjustments

            await FareAdjustmentRepository(session).add_many(
                [
                    FareAdjustmentModel(
                        booking_id=booking.id,
                        type=kind,
                        amount=amount,
                        description=description,
                        admin_id=actor_id,
                    )
                    for kind, amount, description in fare.line_items()
                ]
            )
            await AuditRecorder(session).record(
                booking.id,
                AuditAction.STATUS_CHANGE,
                old_value,
                {
                    "status": BookingStatus.COMPLETED.value,
                    "total_amount": fare.new_total,
                    "adjustments": fare.total_adjustments,
                },
                actor_id,
                notes or "Trip completed with fare adjustment",
            )
            booking = await BookingRepository(session).get_detailed(booking.id)

        logger.info(
            "Booking %s completed: +%.2f adjustments, new total %.2f",
            booking_id,
            fare.total_adjustments,
            fare.new_total,
        )
        return booking, fare

    async def cancel_booking(
        self, booking_id: int, reason: Optional[str], actor_id: int = 0
    ) -> BookingModel:
        # An in-flight gateway order is not voided here
        if not reason or not reason.strip():
            raise ValidationError("Cancellation reason is required")

        async with self._transaction() as session:
            booking = await self._locked_booking(session, booking_id)
            if is_terminal(booking.status):
                raise InvalidStateError(f"Cannot cancel a {booking.status.value} booking")

            old_status = booking.status
            booking.status = BookingStatus.CANCELLED
            booking.cancellation_reason = reason
            await AuditRecorder(session).record(
                booking.id,
                AuditAction.CANCEL,
                {"status": old_status.value},
                {"status": BookingStatus.CANCELLED.value},
                actor_id,
                reason,
            )
            booking = await BookingRepository(session).get_detailed(booking.id)

        logger.info("Booking %s cancelled by admin %s", booking_id, actor_id)
        return booking

    # ── Taxi assignment ───────────────────────────────────────────

    async def assign_taxi(
        self, booking_id: int, details: AssignmentDetails, actor_id: int = 0
    ) -> TaxiAssignmentModel:
        """
        Create or update the booking's single taxi assignment.

        The row is saved first.  Customer then driver are notified; only
        when both succeed is the booking marked ASSIGNED / IN_PROGRESS.
        A notification failure raises ``PartialSuccess`` carrying the
        saved assignment; nothing is rolled back.
        """
        details.validate()

        try:
            async with self._transaction() as session:
                booking = await BookingRepository(session).get_detailed(booking_id)
                if booking is None:
                    raise NotFoundError(f"Booking {booking_id} not found")
                if is_terminal(booking.status):
                    raise InvalidStateError(
                        f"Cannot assign a taxi to a {booking.status.value} booking"
                    )

                assignments = TaxiAssignmentRepository(session)
                assignment = await assignments.get_by_booking_id(booking_id)
                if assignment is not None:
                    assignment.driver_name = details.driver_name
                    assignment.driver_number = details.driver_number
                    assignment.cab_number = details.cab_number
                    assignment.cab_name = details.cab_name
                    await session.flush()
                else:
                    assignment = await assignments.create(
                        TaxiAssignmentModel(
                            booking_id=booking_id,
                            driver_name=details.driver_name,
                            driver_number=details.driver_number,
                            cab_number=details.cab_number,
                            cab_name=details.cab_name,
                        )
                    )
        except IntegrityError as exc:
            raise ConflictError(
                f"Booking {booking_id} was assigned concurrently; retry the request"
            ) from exc

        logger.info("Taxi assignment saved for booking %s", booking_id)

        try:
            await self.notifier.send_taxi_assignment(
                _customer_phone(booking), booking, assignment
            )
            await self.notifier.send_driver_assignment(
                assignment.driver_number, booking, assignment
            )
        except Exception as exc:
            logger.exception("Assignment notifications failed for booking %s", booking_id)
            raise PartialSuccess(
                "Taxi assignment saved, but WhatsApp messages could not be sent. "
                "Please verify Twilio configuration.",
                payload=assignment,
            ) from exc

        async with self._transaction() as session:
            booking = await self._locked_booking(session, booking_id)
            if is_terminal(booking.status):
                logger.warning(
                    "Booking %s became %s before assignment completed; not flipped",
                    booking_id,
                    booking.status.value,
                )
                return assignment

            old_value = {
                "status": booking.status.value,
                "taxi_assign_status": booking.taxi_assign_status.value,
            }
            booking.taxi_assign_status = TaxiAssignStatus.ASSIGNED
            booking.status = BookingStatus.IN_PROGRESS
            await AuditRecorder(session).record(
                booking.id,
                AuditAction.TAXI_ASSIGNED,
                old_value,
                {
                    "status": BookingStatus.IN_PROGRESS.value,
                    "taxi_assign_status": TaxiAssignStatus.ASSIGNED.value,
                },
                actor_id,
                f"Cab {details.cab_number} assigned to driver {details.driver_name}",
            )

        logger.info("Booking %s assigned and in progress", booking_id)
        return assignment

    # ── Notes & reads ─────────────────────────────────────────────

    async def add_note(
        self, booking_id: int, content: Optional[str], actor_id: int = 0
    ) -> BookingNoteModel:
        if not content or not content.strip():
            raise ValidationError("Note content is required")

        async with self._transaction() as session:
            if await BookingRepository(session).get_by_id(booking_id) is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            return await BookingNoteRepository(session).create(
                BookingNoteModel(booking_id=booking_id, admin_id=actor_id, content=content)
            )

    async def list_notes(self, booking_id: int) -> list[BookingNoteModel]:
        async with self._transaction() as session:
            if await BookingRepository(session).get_by_id(booking_id) is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            return await BookingNoteRepository(session).list_for_booking(booking_id)

    async def get_booking(self, booking_id: int) -> BookingModel:
        async with self._transaction() as session:
            booking = await BookingRepository(session).get_detailed(booking_id)
            if booking is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            return booking

    async def audit_trail(self, booking_id: int) -> list[AuditLogModel]:
        async with self._transaction() as session:
            if await BookingRepository(session).get_by_id(booking_id) is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            return await AuditRecorder(session).trail(booking_id)
