"""
Booking lifecycle engine tests (SQLite-backed, notifications faked).

Covers:
1. Both creation paths and their validation.
2. Gateway reconciliation: full, partial, replayed and late payments.
3. Admin transitions, trip completion and cancellation with audit rows.
4. Taxi assignment upsert gated on notifications.
5. Internal notes.
6. Multi-row writes roll back together.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from cabbooking.domain.entities import AssignmentDetails, PaymentPayload
from cabbooking.domain.enums import (
    AdjustmentType,
    AuditAction,
    BookingStatus,
    PaymentStatus,
    TaxiAssignStatus,
)
from cabbooking.domain.errors import (
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PartialSuccess,
    UpstreamError,
    ValidationError,
)
from cabbooking.infrastructure.models import (
    AuditLogModel,
    BookingModel,
    FareAdjustmentModel,
    PaymentModel,
)
from cabbooking.infrastructure.repositories import BookingRepository

DETAILS = AssignmentDetails(
    driver_name="Ramesh",
    driver_number="9930000001",
    cab_number="MH01AB1234",
    cab_name="Toyota Innova",
)


# ── Creation ──────────────────────────────────────────────────────────


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_pending_booking_with_full_payment(self, lifecycle, make_request):
        booking = await lifecycle.create_pending_booking(make_request(), "order_1")

        assert booking.status == BookingStatus.PENDING_PAYMENT
        assert booking.taxi_assign_status == TaxiAssignStatus.NOT_ASSIGNED
        assert len(booking.payments) == 1
        payment = booking.payments[0]
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == 500.0
        assert payment.remaining_amount == 0.0
        assert payment.provider == "razorpay"
        assert payment.provider_txn_id == "order_1"

    @pytest.mark.asyncio
    async def test_pending_booking_with_part_payment(self, lifecycle, make_request):
        booking = await lifecycle.create_pending_booking(
            make_request(total_amount=600.0), "order_2", payment_amount=200.0
        )
        payment = booking.payments[0]
        assert payment.amount == 200.0
        assert payment.remaining_amount == 400.0

    @pytest.mark.asyncio
    async def test_pending_payment_above_total_rejected(self, lifecycle, make_request):
        with pytest.raises(ValidationError, match="exceed"):
            await lifecycle.create_pending_booking(
                make_request(total_amount=500.0), "order_1", payment_amount=650.0
            )

    @pytest.mark.asyncio
    async def test_check_pending_request(self, lifecycle, make_request):
        await lifecycle.check_pending_request(make_request(), payment_amount=200.0)

        with pytest.raises(NotFoundError, match="User 999 not found"):
            await lifecycle.check_pending_request(make_request(user_id=999))
        with pytest.raises(ValidationError):
            await lifecycle.check_pending_request(make_request(), payment_amount=-1.0)

    @pytest.mark.asyncio
    async def test_pending_booking_requires_order_id(self, lifecycle, make_request):
        with pytest.raises(ValidationError):
            await lifecycle.create_pending_booking(make_request(), "")

    @pytest.mark.asyncio
    async def test_paid_booking_without_payment(self, lifecycle, make_request):
        booking = await lifecycle.create_paid_booking(make_request())
        assert booking.status == BookingStatus.PAID
        assert booking.payments == []
        assert booking.user.phone == "9876543210"

    @pytest.mark.asyncio
    async def test_paid_booking_payment_defaults(self, lifecycle, make_request):
        booking = await lifecycle.create_paid_booking(
            make_request(), PaymentPayload(amount=500.0)
        )
        payment = booking.payments[0]
        assert payment.status == PaymentStatus.SUCCESS
        assert payment.currency == "INR"
        assert payment.provider == "unknown"

    @pytest.mark.asyncio
    async def test_paid_booking_rejects_zero_total(
        self, lifecycle, make_request, session_factory
    ):
        with pytest.raises(ValidationError):
            await lifecycle.create_paid_booking(make_request(total_amount=0))

        async with session_factory() as session:
            assert await BookingRepository(session).list_all() == []

    @pytest.mark.asyncio
    async def test_missing_locations_rejected(self, lifecycle, make_request):
        with pytest.raises(ValidationError):
            await lifecycle.create_paid_booking(make_request(pickup_location="  "))

    @pytest.mark.asyncio
    async def test_unknown_payment_status_rejected(self, lifecycle, make_request):
        with pytest.raises(ValidationError):
            await lifecycle.create_paid_booking(
                make_request(), PaymentPayload(amount=500.0, status="REFUNDED")
            )

    @pytest.mark.asyncio
    async def test_unknown_user(self, lifecycle, make_request):
        with pytest.raises(NotFoundError):
            await lifecycle.create_paid_booking(make_request(user_id=999))


# ── Reconciliation ────────────────────────────────────────────────────


class TestReconcilePayment:
    @pytest.mark.asyncio
    async def test_full_payment_marks_booking_paid(
        self, lifecycle, make_request, notifier
    ):
        created = await lifecycle.create_pending_booking(make_request(), "order_1")

        booking = await lifecycle.reconcile_payment("order_1", "pay_1")

        assert booking.id == created.id
        assert booking.status == BookingStatus.PAID
        payment = booking.payments[0]
        assert payment.status == PaymentStatus.SUCCESS
        assert payment.provider_txn_id == "pay_1"

        notifier.send_booking_confirmation.assert_called_once()
        phone, _ = notifier.send_booking_confirmation.call_args.args
        assert phone == "9876543210"
        assert notifier.dispatched == [f"booking confirmation for #{booking.id}"]

    @pytest.mark.asyncio
    async def test_part_payment_keeps_pending_payment(self, lifecycle, make_request):
        await lifecycle.create_pending_booking(
            make_request(total_amount=600.0), "order_2", payment_amount=200.0
        )

        booking = await lifecycle.reconcile_payment("order_2", "pay_2")

        assert booking.status == BookingStatus.PENDING_PAYMENT
        assert booking.payments[0].status == PaymentStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_replayed_callback_not_found(self, lifecycle, make_request):
        await lifecycle.create_pending_booking(make_request(), "order_1")
        await lifecycle.reconcile_payment("order_1", "pay_1")

        with pytest.raises(NotFoundError, match="Payment record not found"):
            await lifecycle.reconcile_payment("order_1", "pay_1")

    @pytest.mark.asyncio
    async def test_unknown_order(self, lifecycle):
        with pytest.raises(NotFoundError):
            await lifecycle.reconcile_payment("order_missing", "pay_1")

    @pytest.mark.asyncio
    async def test_late_payment_on_cancelled_booking(self, lifecycle, make_request):
        created = await lifecycle.create_pending_booking(make_request(), "order_3")
        await lifecycle.cancel_booking(created.id, "Customer no-show")

        booking = await lifecycle.reconcile_payment("order_3", "pay_3")

        assert booking.status == BookingStatus.CANCELLED
        assert booking.payments[0].status == PaymentStatus.SUCCESS


# ── Admin transitions ─────────────────────────────────────────────────


class TestChangeStatus:
    @pytest.mark.asyncio
    async def test_paid_to_in_progress_then_back_fails(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())

        booking = await lifecycle.change_status(
            created.id, BookingStatus.IN_PROGRESS, actor_id=7
        )
        assert booking.status == BookingStatus.IN_PROGRESS

        with pytest.raises(InvalidTransitionError):
            await lifecycle.change_status(created.id, "PENDING_PAYMENT", actor_id=7)

        trail = await lifecycle.audit_trail(created.id)
        assert len(trail) == 1
        entry = trail[0]
        assert entry.action == AuditAction.STATUS_CHANGE
        assert entry.old_value == {"status": "PAID"}
        assert entry.new_value == {"status": "IN_PROGRESS"}
        assert entry.admin_id == 7
        assert entry.reason == "Status changed from PAID to IN_PROGRESS"

    @pytest.mark.asyncio
    async def test_custom_reason_recorded(self, lifecycle, make_request):
        created = await lifecycle.create_pending_booking(make_request(), "order_1")
        await lifecycle.change_status(
            created.id, "PAID", actor_id=3, reason="Cash collected at counter"
        )

        trail = await lifecycle.audit_trail(created.id)
        assert trail[0].reason == "Cash collected at counter"

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        with pytest.raises(ValidationError):
            await lifecycle.change_status(created.id, "ON_HOLD")

    @pytest.mark.asyncio
    async def test_unknown_booking(self, lifecycle):
        with pytest.raises(NotFoundError):
            await lifecycle.change_status(404, BookingStatus.PAID)


class TestCompleteTrip:
    @pytest.mark.asyncio
    async def test_completion_adds_adjustments(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(
            make_request(total_amount=1000.0, distance_km=10.0)
        )

        booking, fare = await lifecycle.complete_trip(
            created.id, 5, actual_km=13.0, rate_per_km=15.0, toll_charges=50.0
        )

        assert fare.extra_km == 3.0
        assert fare.extra_km_charge == 45.0
        assert booking.status == BookingStatus.COMPLETED
        assert booking.total_amount == 1095.0
        assert booking.actual_km == 13.0
        assert booking.extra_km == 3.0
        assert booking.extra_charge == 95.0
        assert booking.distance_km == 10.0

        rows = booking.fare_adjustments
        assert [row.type for row in rows] == [
            AdjustmentType.EXTRA_KM,
            AdjustmentType.TOLL,
        ]
        assert [row.amount for row in rows] == [45.0, 50.0]
        assert all(row.admin_id == 5 for row in rows)

        trail = await lifecycle.audit_trail(created.id)
        assert trail[-1].old_value == {"status": "PAID", "total_amount": 1000.0}
        assert trail[-1].new_value["total_amount"] == 1095.0
        assert trail[-1].reason == "Trip completed with fare adjustment"

    @pytest.mark.asyncio
    async def test_complete_from_in_progress(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        await lifecycle.change_status(created.id, BookingStatus.IN_PROGRESS)

        booking, fare = await lifecycle.complete_trip(created.id, notes="Smooth ride")

        assert booking.status == BookingStatus.COMPLETED
        assert fare.total_adjustments == 0.0
        assert booking.fare_adjustments == []
        trail = await lifecycle.audit_trail(created.id)
        assert trail[-1].reason == "Smooth ride"

    @pytest.mark.asyncio
    async def test_pending_payment_cannot_complete(self, lifecycle, make_request):
        created = await lifecycle.create_pending_booking(make_request(), "order_1")
        with pytest.raises(InvalidStateError, match="in progress or paid"):
            await lifecycle.complete_trip(created.id)

    @pytest.mark.asyncio
    async def test_negative_toll_rejected_without_writes(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        with pytest.raises(ValidationError):
            await lifecycle.complete_trip(created.id, toll_charges=-5.0)

        booking = await lifecycle.get_booking(created.id)
        assert booking.status == BookingStatus.PAID
        assert await lifecycle.audit_trail(created.id) == []


class TestCancelBooking:
    @pytest.mark.asyncio
    async def test_cancel_records_reason(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())

        booking = await lifecycle.cancel_booking(created.id, "Flight delayed", 2)

        assert booking.status == BookingStatus.CANCELLED
        assert booking.cancellation_reason == "Flight delayed"
        trail = await lifecycle.audit_trail(created.id)
        assert trail[0].action == AuditAction.CANCEL
        assert trail[0].old_value == {"status": "PAID"}
        assert trail[0].reason == "Flight delayed"

    @pytest.mark.asyncio
    async def test_blank_reason_rejected(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        with pytest.raises(ValidationError):
            await lifecycle.cancel_booking(created.id, "   ")

    @pytest.mark.asyncio
    async def test_cancel_completed_writes_no_audit(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        await lifecycle.complete_trip(created.id)
        before = await lifecycle.audit_trail(created.id)

        with pytest.raises(InvalidStateError):
            await lifecycle.cancel_booking(created.id, "Too late")

        after = await lifecycle.audit_trail(created.id)
        assert len(after) == len(before)
        booking = await lifecycle.get_booking(created.id)
        assert booking.status == BookingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_cancel_twice_fails(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        await lifecycle.cancel_booking(created.id, "Duplicate booking")
        with pytest.raises(InvalidStateError):
            await lifecycle.cancel_booking(created.id, "Duplicate booking")


# ── Taxi assignment ───────────────────────────────────────────────────


class TestAssignTaxi:
    @pytest.mark.asyncio
    async def test_assignment_notifies_and_flips(self, lifecycle, make_request, notifier):
        created = await lifecycle.create_paid_booking(make_request())

        assignment = await lifecycle.assign_taxi(created.id, DETAILS, actor_id=9)

        assert assignment.booking_id == created.id
        assert assignment.cab_number == "MH01AB1234"
        notifier.send_taxi_assignment.assert_called_once()
        assert notifier.send_taxi_assignment.call_args.args[0] == "9876543210"
        notifier.send_driver_assignment.assert_called_once()
        assert notifier.send_driver_assignment.call_args.args[0] == "9930000001"

        booking = await lifecycle.get_booking(created.id)
        assert booking.status == BookingStatus.IN_PROGRESS
        assert booking.taxi_assign_status == TaxiAssignStatus.ASSIGNED
        trail = await lifecycle.audit_trail(created.id)
        assert trail[-1].action == AuditAction.TAXI_ASSIGNED
        assert trail[-1].admin_id == 9

    @pytest.mark.asyncio
    async def test_upsert_keeps_single_row(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        await lifecycle.assign_taxi(created.id, DETAILS)

        replacement = AssignmentDetails(
            driver_name="Suresh",
            driver_number="9930000002",
            cab_number="MH02CD5678",
            cab_name="Maruti Ertiga",
        )
        assignment = await lifecycle.assign_taxi(created.id, replacement)

        assert assignment.driver_name == "Suresh"
        booking = await lifecycle.get_booking(created.id)
        assert len(booking.assignments) == 1
        assert booking.assignments[0].id == assignment.id
        assert booking.assignments[0].cab_name == "Maruti Ertiga"

    @pytest.mark.asyncio
    async def test_driver_notification_failure_is_partial_success(
        self, lifecycle, make_request, notifier
    ):
        created = await lifecycle.create_paid_booking(make_request())
        notifier.send_driver_assignment.side_effect = UpstreamError("Twilio down")

        with pytest.raises(PartialSuccess) as exc_info:
            await lifecycle.assign_taxi(created.id, DETAILS)

        saved = exc_info.value.payload
        assert saved is not None and saved.driver_name == "Ramesh"

        booking = await lifecycle.get_booking(created.id)
        assert booking.status == BookingStatus.PAID
        assert booking.taxi_assign_status == TaxiAssignStatus.NOT_ASSIGNED
        assert len(booking.assignments) == 1
        assert await lifecycle.audit_trail(created.id) == []

    @pytest.mark.asyncio
    async def test_customer_notification_failure_skips_driver(
        self, lifecycle, make_request, notifier
    ):
        created = await lifecycle.create_paid_booking(make_request())
        notifier.send_taxi_assignment.side_effect = UpstreamError("Twilio down")

        with pytest.raises(PartialSuccess):
            await lifecycle.assign_taxi(created.id, DETAILS)

        notifier.send_driver_assignment.assert_not_called()

    @pytest.mark.asyncio
    async def test_terminal_booking_rejected(self, lifecycle, make_request, notifier):
        created = await lifecycle.create_paid_booking(make_request())
        await lifecycle.cancel_booking(created.id, "Customer cancelled")

        with pytest.raises(InvalidStateError):
            await lifecycle.assign_taxi(created.id, DETAILS)
        notifier.send_taxi_assignment.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_booking(self, lifecycle):
        with pytest.raises(NotFoundError):
            await lifecycle.assign_taxi(404, DETAILS)

    @pytest.mark.asyncio
    async def test_blank_driver_rejected(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        details = AssignmentDetails(
            driver_name="", driver_number="1", cab_number="X", cab_name="Y"
        )
        with pytest.raises(ValidationError, match="driver_name"):
            await lifecycle.assign_taxi(created.id, details)

    @pytest.mark.asyncio
    async def test_concurrent_insert_is_conflict(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        await lifecycle.assign_taxi(created.id, DETAILS)

        # Simulate losing the race: the existing row is invisible to the lookup
        with patch(
            "cabbooking.services.lifecycle.TaxiAssignmentRepository.get_by_booking_id",
            new=AsyncMock(return_value=None),
        ):
            with pytest.raises(ConflictError):
                await lifecycle.assign_taxi(created.id, DETAILS)


# ── Notes ─────────────────────────────────────────────────────────────


class TestNotes:
    @pytest.mark.asyncio
    async def test_notes_newest_first(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        await lifecycle.add_note(created.id, "Called customer", actor_id=1)
        await lifecycle.add_note(created.id, "Driver confirmed", actor_id=2)

        notes = await lifecycle.list_notes(created.id)

        assert [n.content for n in notes] == ["Driver confirmed", "Called customer"]
        assert notes[0].admin_id == 2

    @pytest.mark.asyncio
    async def test_empty_note_rejected(self, lifecycle, make_request):
        created = await lifecycle.create_paid_booking(make_request())
        with pytest.raises(ValidationError):
            await lifecycle.add_note(created.id, "")

    @pytest.mark.asyncio
    async def test_note_on_unknown_booking(self, lifecycle):
        with pytest.raises(NotFoundError):
            await lifecycle.add_note(404, "Hello")


# ── Atomic writes ─────────────────────────────────────────────────────


async def _row_count(session_factory, model) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar()


class TestAtomicWrites:
    """A failure after the first write leaves no trace of the operation."""

    @pytest.mark.asyncio
    async def test_paid_booking_rolled_back_when_payment_insert_fails(
        self, lifecycle, make_request, session_factory
    ):
        with patch(
            "cabbooking.services.lifecycle.PaymentRepository.create",
            new=AsyncMock(side_effect=RuntimeError("insert failed")),
        ):
            with pytest.raises(RuntimeError):
                await lifecycle.create_paid_booking(
                    make_request(), PaymentPayload(amount=500.0)
                )

        assert await _row_count(session_factory, BookingModel) == 0
        assert await _row_count(session_factory, PaymentModel) == 0

    @pytest.mark.asyncio
    async def test_status_change_rolled_back_when_audit_fails(
        self, lifecycle, make_request, session_factory
    ):
        created = await lifecycle.create_paid_booking(make_request())

        with patch(
            "cabbooking.services.lifecycle.AuditRecorder.record",
            new=AsyncMock(side_effect=RuntimeError("audit failed")),
        ):
            with pytest.raises(RuntimeError):
                await lifecycle.change_status(created.id, BookingStatus.IN_PROGRESS)

        booking = await lifecycle.get_booking(created.id)
        assert booking.status == BookingStatus.PAID
        assert await _row_count(session_factory, AuditLogModel) == 0

    @pytest.mark.asyncio
    async def test_completion_rolled_back_when_adjustments_fail(
        self, lifecycle, make_request, session_factory
    ):
        created = await lifecycle.create_paid_booking(
            make_request(total_amount=1000.0, distance_km=10.0)
        )

        with patch(
            "cabbooking.services.lifecycle.FareAdjustmentRepository.add_many",
            new=AsyncMock(side_effect=RuntimeError("insert failed")),
        ):
            with pytest.raises(RuntimeError):
                await lifecycle.complete_trip(
                    created.id, actual_km=13.0, rate_per_km=15.0, toll_charges=50.0
                )

        booking = await lifecycle.get_booking(created.id)
        assert booking.status == BookingStatus.PAID
        assert booking.total_amount == 1000.0
        assert booking.actual_km is None
        assert await _row_count(session_factory, FareAdjustmentModel) == 0
        assert await _row_count(session_factory, AuditLogModel) == 0

    @pytest.mark.asyncio
    async def test_completion_discards_flushed_adjustments_when_audit_fails(
        self, lifecycle, make_request, session_factory
    ):
        created = await lifecycle.create_paid_booking(
            make_request(total_amount=1000.0, distance_km=10.0)
        )

        with patch(
            "cabbooking.services.lifecycle.AuditRecorder.record",
            new=AsyncMock(side_effect=RuntimeError("audit failed")),
        ):
            with pytest.raises(RuntimeError):
                await lifecycle.complete_trip(
                    created.id, actual_km=13.0, rate_per_km=15.0, toll_charges=50.0
                )

        booking = await lifecycle.get_booking(created.id)
        assert booking.status == BookingStatus.PAID
        assert booking.total_amount == 1000.0
        assert booking.fare_adjustments == []
        assert await _row_count(session_factory, FareAdjustmentModel) == 0

    @pytest.mark.asyncio
    async def test_cancel_rolled_back_when_audit_fails(
        self, lifecycle, make_request, session_factory
    ):
        created = await lifecycle.create_paid_booking(make_request())

        with patch(
            "cabbooking.services.lifecycle.AuditRecorder.record",
            new=AsyncMock(side_effect=RuntimeError("audit failed")),
        ):
            with pytest.raises(RuntimeError):
                await lifecycle.cancel_booking(created.id, "Customer request")

        booking = await lifecycle.get_booking(created.id)
        assert booking.status == BookingStatus.PAID
        assert booking.cancellation_reason is None
