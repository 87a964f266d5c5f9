"""
Maintenance: purge every booking-related row.

Deletes children before parents so foreign keys never block the purge.
Runs inside the caller's transaction; see ``cleanup.py`` for the CLI
that wraps it in a Redis lock.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cabbooking.infrastructure.repositories import (
    AuditLogRepository,
    BookingNoteRepository,
    BookingRepository,
    FareAdjustmentRepository,
    PaymentRepository,
    TaxiAssignmentRepository,
)
from cabbooking.services.audit import BOOKING_ENTITY

logger = logging.getLogger(__name__)


async def purge_booking_data(session: AsyncSession) -> dict[str, int]:
    counts = {
        "fare_adjustments": await FareAdjustmentRepository(session).delete_all(),
        "booking_notes": await BookingNoteRepository(session).delete_all(),
        "audit_logs": await AuditLogRepository(session).delete_for_entity_type(
            BOOKING_ENTITY
        ),
        "taxi_assignments": await TaxiAssignmentRepository(session).delete_all(),
        "payments": await PaymentRepository(session).delete_all(),
        "bookings": await BookingRepository(session).delete_all(),
    }
    logger.info("Purged booking data: %s", counts)
    return counts
