"""
Admin endpoints
===============

GET   /api/v1/admin/bookings                    -- every booking with payments + assignment
GET   /api/v1/admin/bookings/{id}               -- single booking ticket
POST  /api/v1/admin/bookings/{id}/assign-taxi   -- create / update the taxi assignment
PATCH /api/v1/admin/bookings/{id}/status        -- manual lifecycle transition
POST  /api/v1/admin/bookings/{id}/complete      -- complete trip with fare adjustment
POST  /api/v1/admin/bookings/{id}/cancel        -- cancel with reason
GET   /api/v1/admin/bookings/{id}/notes         -- internal notes, newest first
POST  /api/v1/admin/bookings/{id}/notes         -- add an internal note
GET   /api/v1/admin/bookings/{id}/audit-log     -- audit trail for a booking
GET   /api/v1/admin/history/completed           -- completed trips
GET   /api/v1/admin/history/cancelled           -- cancelled trips
GET   /api/v1/admin/pending-payments            -- gateway orders never paid
GET   /api/v1/admin/health                      -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from cabbooking.api.dependencies import get_actor_id, get_db, get_lifecycle_engine
from cabbooking.api.middleware import limiter
from cabbooking.api.schemas import (
    AdjustmentSummary,
    AssignmentEnvelope,
    AssignTaxiRequest,
    AuditLogResponse,
    BookingEnvelope,
    BookingResponse,
    CancelRequest,
    CompleteTripRequest,
    CompleteTripResponse,
    ErrorResponse,
    HealthResponse,
    NoteCreateRequest,
    NoteResponse,
    StatusUpdateRequest,
    TaxiAssignmentResponse,
)
from cabbooking.config import settings
from cabbooking.domain.entities import AssignmentDetails
from cabbooking.domain.enums import BookingStatus
from cabbooking.domain.errors import PartialSuccess
from cabbooking.infrastructure.repositories import BookingRepository
from cabbooking.services.lifecycle import BookingLifecycleEngine

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Listings ──────────────────────────────────────────────────────────


@router.get(
    "/bookings",
    response_model=list[BookingResponse],
    summary="List all bookings with payments and assignments",
)
@limiter.limit(settings.rate_limit)
async def list_bookings(request: Request, db: AsyncSession = Depends(get_db)):
    return await BookingRepository(db).list_all()


@router.get(
    "/history/completed",
    response_model=list[BookingResponse],
    summary="Completed trips, most recently updated first",
)
@limiter.limit(settings.rate_limit)
async def completed_history(request: Request, db: AsyncSession = Depends(get_db)):
    return await BookingRepository(db).list_by_status(BookingStatus.COMPLETED)


@router.get(
    "/history/cancelled",
    response_model=list[BookingResponse],
    summary="Cancelled bookings, most recently updated first",
)
@limiter.limit(settings.rate_limit)
async def cancelled_history(request: Request, db: AsyncSession = Depends(get_db)):
    return await BookingRepository(db).list_by_status(BookingStatus.CANCELLED)


@router.get(
    "/pending-payments",
    response_model=list[BookingResponse],
    summary="Bookings whose gateway order was created but never paid",
)
@limiter.limit(settings.rate_limit)
async def pending_payments(request: Request, db: AsyncSession = Depends(get_db)):
    return await BookingRepository(db).list_awaiting_gateway()


# ── Single booking ────────────────────────────────────────────────────


@router.get(
    "/bookings/{booking_id}",
    response_model=BookingResponse,
    summary="Booking ticket with customer, payments and assignment",
)
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: int,
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    return await lifecycle.get_booking(booking_id)


@router.post(
    "/bookings/{booking_id}/assign-taxi",
    response_model=AssignmentEnvelope,
    summary="Create or update the taxi assignment",
    description=(
        "Saves the driver / vehicle, then notifies customer and driver. "
        "Only when both messages go out is the booking marked ASSIGNED "
        "and IN_PROGRESS. If a message fails the assignment stays saved "
        "and the response is a 500 carrying it."
    ),
    responses={500: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def assign_taxi(
    request: Request,
    booking_id: int,
    body: AssignTaxiRequest,
    actor_id: int = Depends(get_actor_id),
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    details = AssignmentDetails(
        driver_name=body.driver_name,
        driver_number=body.driver_number,
        cab_number=body.cab_number,
        cab_name=body.cab_name,
    )
    try:
        assignment = await lifecycle.assign_taxi(booking_id, details, actor_id)
    except PartialSuccess as exc:
        content = {"detail": exc.message, "kind": exc.kind.value}
        if exc.payload is not None:
            content["assignment"] = TaxiAssignmentResponse.model_validate(
                exc.payload
            ).model_dump(mode="json")
        return JSONResponse(status_code=500, content=content)

    return AssignmentEnvelope(
        message="Taxi assignment saved successfully",
        assignment=TaxiAssignmentResponse.model_validate(assignment),
    )


@router.patch(
    "/bookings/{booking_id}/status",
    response_model=BookingEnvelope,
    summary="Move a booking along its lifecycle",
)
@limiter.limit(settings.rate_limit)
async def update_status(
    request: Request,
    booking_id: int,
    body: StatusUpdateRequest,
    actor_id: int = Depends(get_actor_id),
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    booking = await lifecycle.change_status(
        booking_id, body.status, actor_id, body.reason
    )
    return BookingEnvelope(
        message=f"Booking status updated to {booking.status.value}",
        booking=BookingResponse.model_validate(booking),
    )


@router.post(
    "/bookings/{booking_id}/complete",
    response_model=CompleteTripResponse,
    summary="Complete a trip, adding extra-km, toll and waiting charges",
)
@limiter.limit(settings.rate_limit)
async def complete_trip(
    request: Request,
    booking_id: int,
    body: CompleteTripRequest,
    actor_id: int = Depends(get_actor_id),
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    booking, fare = await lifecycle.complete_trip(
        booking_id,
        actor_id,
        actual_km=body.actual_km,
        rate_per_km=body.rate_per_km,
        toll_charges=body.toll_charges,
        waiting_charges=body.waiting_charges,
        notes=body.notes,
    )
    return CompleteTripResponse(
        message="Trip completed successfully",
        booking=BookingResponse.model_validate(booking),
        adjustments=AdjustmentSummary(**fare.summary()),
    )


@router.post(
    "/bookings/{booking_id}/cancel",
    response_model=BookingEnvelope,
    summary="Cancel a booking",
)
@limiter.limit(settings.rate_limit)
async def cancel_booking(
    request: Request,
    booking_id: int,
    body: CancelRequest,
    actor_id: int = Depends(get_actor_id),
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    booking = await lifecycle.cancel_booking(booking_id, body.reason, actor_id)
    return BookingEnvelope(
        message="Booking cancelled successfully",
        booking=BookingResponse.model_validate(booking),
    )


@router.get(
    "/bookings/{booking_id}/notes",
    response_model=list[NoteResponse],
    summary="Internal notes, newest first",
)
@limiter.limit(settings.rate_limit)
async def list_notes(
    request: Request,
    booking_id: int,
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    return await lifecycle.list_notes(booking_id)


@router.post(
    "/bookings/{booking_id}/notes",
    status_code=201,
    response_model=NoteResponse,
    summary="Add an internal note",
)
@limiter.limit(settings.rate_limit)
async def add_note(
    request: Request,
    booking_id: int,
    body: NoteCreateRequest,
    actor_id: int = Depends(get_actor_id),
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    return await lifecycle.add_note(booking_id, body.content, actor_id)


@router.get(
    "/bookings/{booking_id}/audit-log",
    response_model=list[AuditLogResponse],
    summary="Audit trail of admin actions on a booking",
)
@limiter.limit(settings.rate_limit)
async def audit_log(
    request: Request,
    booking_id: int,
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    return await lifecycle.audit_trail(booking_id)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
