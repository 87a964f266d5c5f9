"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Commits belong to the caller.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .models import (
    AuditLogModel,
    BookingModel,
    BookingNoteModel,
    FareAdjustmentModel,
    PaymentModel,
    TaxiAssignmentModel,
    UserModel,
)
from cabbooking.domain.enums import BookingStatus, PaymentStatus

# Everything a booking snapshot / notification needs, loaded eagerly
_BOOKING_GRAPH = (
    selectinload(BookingModel.payments),
    selectinload(BookingModel.user),
    selectinload(BookingModel.assignments),
    selectinload(BookingModel.fare_adjustments),
)


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def get_for_update(self, booking_id: int) -> Optional[BookingModel]:
        """SELECT ... FOR UPDATE so concurrent admins serialise on the row."""
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.id == booking_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def get_detailed(self, booking_id: int) -> Optional[BookingModel]:
        """Booking with payments, user, assignments and fare adjustments."""
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.id == booking_id)
            .options(*_BOOKING_GRAPH)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .options(*_BOOKING_GRAPH)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())

    async def list_by_status(self, status: BookingStatus) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.status == status)
            .options(*_BOOKING_GRAPH)
            .order_by(BookingModel.updated_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())

    async def list_by_user(self, user_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.user_id == user_id)
            .options(*_BOOKING_GRAPH)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())

    async def list_awaiting_gateway(self) -> list[BookingModel]:
        """PENDING_PAYMENT bookings whose gateway order was never paid."""
        result = await self.session.execute(
            select(BookingModel)
            .where(
                BookingModel.status == BookingStatus.PENDING_PAYMENT,
                BookingModel.payments.any(
                    PaymentModel.status.in_(
                        [PaymentStatus.CREATED, PaymentStatus.PENDING]
                    )
                ),
            )
            .options(*_BOOKING_GRAPH)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(BookingModel))
        return result.rowcount or 0


class PaymentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, payment: PaymentModel) -> PaymentModel:
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def get_pending_by_provider_txn_id(
        self, provider_txn_id: str
    ) -> Optional[PaymentModel]:
        """The payment still awaiting the gateway callback for this order."""
        result = await self.session.execute(
            select(PaymentModel)
            .where(
                PaymentModel.provider_txn_id == provider_txn_id,
                PaymentModel.status == PaymentStatus.PENDING,
            )
            .order_by(PaymentModel.id)
            .limit(1)
            .with_for_update()
        )
        return result.scalars().first()

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(PaymentModel))
        return result.rowcount or 0


class TaxiAssignmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, assignment: TaxiAssignmentModel) -> TaxiAssignmentModel:
        self.session.add(assignment)
        await self.session.flush()
        return assignment

    async def get_by_booking_id(
        self, booking_id: int
    ) -> Optional[TaxiAssignmentModel]:
        result = await self.session.execute(
            select(TaxiAssignmentModel).where(
                TaxiAssignmentModel.booking_id == booking_id
            )
        )
        return result.scalars().first()

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(TaxiAssignmentModel))
        return result.rowcount or 0


class FareAdjustmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_many(
        self, adjustments: list[FareAdjustmentModel]
    ) -> list[FareAdjustmentModel]:
        self.session.add_all(adjustments)
        await self.session.flush()
        return adjustments

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(FareAdjustmentModel))
        return result.rowcount or 0


class BookingNoteRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, note: BookingNoteModel) -> BookingNoteModel:
        self.session.add(note)
        await self.session.flush()
        return note

    async def list_for_booking(self, booking_id: int) -> list[BookingNoteModel]:
        """Newest first."""
        result = await self.session.execute(
            select(BookingNoteModel)
            .where(BookingNoteModel.booking_id == booking_id)
            .order_by(BookingNoteModel.created_at.desc(), BookingNoteModel.id.desc())
        )
        return list(result.scalars().all())

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(BookingNoteModel))
        return result.rowcount or 0


class AuditLogRepository:
    """Append-only: no update helper."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: AuditLogModel) -> AuditLogModel:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for_entity(
        self, entity_type: str, entity_id: int
    ) -> list[AuditLogModel]:
        result = await self.session.execute(
            select(AuditLogModel)
            .where(
                AuditLogModel.entity_type == entity_type,
                AuditLogModel.entity_id == entity_id,
            )
            .order_by(AuditLogModel.id)
        )
        return list(result.scalars().all())

    async def delete_for_entity_type(self, entity_type: str) -> int:
        """Maintenance purge only; audit rows are never edited."""
        result = await self.session.execute(
            delete(AuditLogModel).where(AuditLogModel.entity_type == entity_type)
        )
        return result.rowcount or 0
