"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from cabbooking.domain.enums import (
    AdjustmentType,
    AuditAction,
    BookingStatus,
    PaymentStatus,
    TaxiAssignStatus,
)


# ── Requests ──────────────────────────────────────────────────────────


class PaymentIn(BaseModel):
    amount: float = Field(..., ge=0)
    currency: Optional[str] = Field(None, max_length=8)
    status: Optional[str] = Field(None, description="Defaults to SUCCESS.")
    provider: Optional[str] = Field(None, max_length=50)
    provider_txn_id: Optional[str] = Field(None, max_length=255)


class BookingCreateRequest(BaseModel):
    user_id: int
    pickup_location: str = Field(..., min_length=1, max_length=500)
    drop_location: str = Field(..., min_length=1, max_length=500)
    scheduled_at: Optional[datetime] = None
    distance_km: Optional[float] = Field(None, gt=0)
    estimated_fare: Optional[float] = Field(None, gt=0)
    total_amount: float = Field(..., gt=0)
    car_model: Optional[str] = Field(None, max_length=120)
    payment: Optional[PaymentIn] = None


class CreateOrderRequest(BaseModel):
    user_id: int
    amount: float = Field(
        ..., gt=0, description="Amount charged now; less than total_amount for a part payment."
    )
    currency: str = Field("INR", max_length=8)
    pickup_location: str = Field(..., min_length=1, max_length=500)
    drop_location: str = Field(..., min_length=1, max_length=500)
    scheduled_at: Optional[datetime] = None
    distance_km: Optional[float] = Field(None, gt=0)
    estimated_fare: Optional[float] = Field(None, gt=0)
    total_amount: float = Field(..., gt=0)
    car_model: Optional[str] = Field(None, max_length=120)

    @model_validator(mode="after")
    def amount_within_total(self) -> "CreateOrderRequest":
        if self.amount > self.total_amount:
            raise ValueError("amount cannot exceed total_amount")
        return self


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class AssignTaxiRequest(BaseModel):
    driver_name: str = Field(..., min_length=1, max_length=120)
    driver_number: str = Field(..., min_length=1, max_length=32)
    cab_number: str = Field(..., min_length=1, max_length=32)
    cab_name: str = Field(..., min_length=1, max_length=120)


class StatusUpdateRequest(BaseModel):
    status: str
    reason: Optional[str] = None


class CompleteTripRequest(BaseModel):
    actual_km: Optional[float] = Field(None, ge=0)
    rate_per_km: Optional[float] = Field(None, ge=0)
    toll_charges: Optional[float] = Field(None, ge=0)
    waiting_charges: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class NoteCreateRequest(BaseModel):
    content: Optional[str] = None


# ── Responses ─────────────────────────────────────────────────────────


class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    amount: float
    currency: str
    status: PaymentStatus
    provider: str
    provider_txn_id: Optional[str] = None
    remaining_amount: Optional[float] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TaxiAssignmentResponse(BaseModel):
    id: int
    booking_id: int
    driver_name: str
    driver_number: str
    cab_number: str
    cab_name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FareAdjustmentResponse(BaseModel):
    id: int
    type: AdjustmentType
    amount: float
    description: Optional[str] = None
    admin_id: int
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    user_id: int
    pickup_location: str
    drop_location: str
    scheduled_at: Optional[datetime] = None
    car_model: Optional[str] = None
    distance_km: Optional[float] = None
    estimated_fare: Optional[float] = None
    total_amount: float
    actual_km: Optional[float] = None
    extra_km: Optional[float] = None
    extra_charge: Optional[float] = None
    cancellation_reason: Optional[str] = None
    status: BookingStatus
    taxi_assign_status: TaxiAssignStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[UserSummary] = None
    payments: list[PaymentResponse] = []
    assignments: list[TaxiAssignmentResponse] = []
    fare_adjustments: list[FareAdjustmentResponse] = []

    model_config = {"from_attributes": True}


class CreateOrderResponse(BaseModel):
    key_id: str
    order_id: str
    amount: int  # paise, as returned by the gateway
    currency: str
    booking_id: int
    payment_id: Optional[int] = None


class BookingEnvelope(BaseModel):
    message: str
    booking: BookingResponse


class AssignmentEnvelope(BaseModel):
    message: str
    assignment: TaxiAssignmentResponse


class AdjustmentSummary(BaseModel):
    extra_km: float
    extra_km_charge: float
    toll_charges: float
    waiting_charges: float
    total_adjustments: float
    new_total: float


class CompleteTripResponse(BaseModel):
    message: str
    booking: BookingResponse
    adjustments: AdjustmentSummary


class NoteResponse(BaseModel):
    id: int
    booking_id: int
    admin_id: int
    content: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuditLogResponse(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    action: AuditAction
    old_value: Optional[dict] = None
    new_value: Optional[dict] = None
    admin_id: int
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    kind: Optional[str] = None
