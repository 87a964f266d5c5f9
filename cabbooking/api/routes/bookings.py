"""
Customer booking endpoints
==========================

POST /api/v1/bookings/after-payment   -- booking whose payment is already settled
GET  /api/v1/bookings/user/{user_id}  -- a customer's bookings, newest first
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cabbooking.api.dependencies import get_db, get_lifecycle_engine
from cabbooking.api.middleware import limiter
from cabbooking.api.schemas import BookingCreateRequest, BookingResponse
from cabbooking.config import settings
from cabbooking.domain.entities import BookingRequest, PaymentPayload
from cabbooking.infrastructure.repositories import BookingRepository
from cabbooking.services.lifecycle import BookingLifecycleEngine

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "/after-payment",
    status_code=201,
    response_model=BookingResponse,
    summary="Create a booking that is already paid",
)
@limiter.limit(settings.rate_limit)
async def create_booking_after_payment(
    request: Request,
    body: BookingCreateRequest,
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    payment = (
        PaymentPayload(**body.payment.model_dump()) if body.payment is not None else None
    )
    return await lifecycle.create_paid_booking(
        BookingRequest(
            user_id=body.user_id,
            pickup_location=body.pickup_location,
            drop_location=body.drop_location,
            total_amount=body.total_amount,
            scheduled_at=body.scheduled_at,
            distance_km=body.distance_km,
            estimated_fare=body.estimated_fare,
            car_model=body.car_model,
        ),
        payment,
    )


@router.get(
    "/user/{user_id}",
    response_model=list[BookingResponse],
    summary="List a customer's bookings",
)
@limiter.limit(settings.rate_limit)
async def list_user_bookings(
    request: Request,
    user_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await BookingRepository(db).list_by_user(user_id)
