"""
Payment endpoints
=================

POST /api/v1/payments/create-order     -- open a gateway order + PENDING_PAYMENT booking
POST /api/v1/payments/verify-and-book  -- verify the checkout signature, settle the payment
"""

import time

from fastapi import APIRouter, Depends, HTTPException, Request

from cabbooking.api.dependencies import get_gateway, get_lifecycle_engine
from cabbooking.api.middleware import limiter
from cabbooking.api.schemas import (
    BookingEnvelope,
    BookingResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    VerifyPaymentRequest,
)
from cabbooking.config import settings
from cabbooking.domain.entities import BookingRequest
from cabbooking.infrastructure.gateway import RazorpayGateway
from cabbooking.services.lifecycle import BookingLifecycleEngine

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/create-order",
    status_code=201,
    response_model=CreateOrderResponse,
    summary="Create a gateway order and a booking awaiting payment",
)
@limiter.limit(settings.rate_limit)
async def create_order(
    request: Request,
    body: CreateOrderRequest,
    gateway: RazorpayGateway = Depends(get_gateway),
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    booking_request = BookingRequest(
        user_id=body.user_id,
        pickup_location=body.pickup_location,
        drop_location=body.drop_location,
        total_amount=body.total_amount,
        scheduled_at=body.scheduled_at,
        distance_km=body.distance_km,
        estimated_fare=body.estimated_fare,
        car_model=body.car_model,
    )
    # Reject bad input and unknown users before a gateway order exists
    await lifecycle.check_pending_request(booking_request, payment_amount=body.amount)

    order = await gateway.create_order(
        body.amount,
        body.currency,
        receipt=f"user_{body.user_id}_{int(time.time() * 1000)}",
    )
    booking = await lifecycle.create_pending_booking(
        booking_request, order.order_id, payment_amount=body.amount
    )
    return CreateOrderResponse(
        key_id=gateway.key_id,
        order_id=order.order_id,
        amount=order.amount,
        currency=order.currency,
        booking_id=booking.id,
        payment_id=booking.payments[0].id if booking.payments else None,
    )


@router.post(
    "/verify-and-book",
    response_model=BookingEnvelope,
    summary="Verify the gateway callback and confirm the booking",
)
@limiter.limit(settings.rate_limit)
async def verify_and_book(
    request: Request,
    body: VerifyPaymentRequest,
    gateway: RazorpayGateway = Depends(get_gateway),
    lifecycle: BookingLifecycleEngine = Depends(get_lifecycle_engine),
):
    if not gateway.verify_signature(
        body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature
    ):
        raise HTTPException(status_code=400, detail="Invalid payment signature")

    booking = await lifecycle.reconcile_payment(
        body.razorpay_order_id, body.razorpay_payment_id
    )
    return BookingEnvelope(
        message="Payment verified and booking confirmed",
        booking=BookingResponse.model_validate(booking),
    )
