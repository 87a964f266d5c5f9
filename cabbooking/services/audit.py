"""Audit Recorder: appends an immutable row for every admin mutation."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cabbooking.domain.enums import AuditAction
from cabbooking.infrastructure.models import AuditLogModel
from cabbooking.infrastructure.repositories import AuditLogRepository

BOOKING_ENTITY = "BOOKING"


class AuditRecorder:
    """Writes inside the caller's transaction, so the audit row commits
    (or rolls back) together with the mutation it documents."""

    def __init__(self, session: AsyncSession):
        self.repo = AuditLogRepository(session)

    async def record(
        self,
        booking_id: int,
        action: AuditAction,
        old_value: dict[str, Any],
        new_value: dict[str, Any],
        actor_id: int,
        reason: Optional[str] = None,
    ) -> AuditLogModel:
        return await self.repo.append(
            AuditLogModel(
                entity_type=BOOKING_ENTITY,
                entity_id=booking_id,
                action=action,
                old_value=old_value,
                new_value=new_value,
                admin_id=actor_id,
                reason=reason,
            )
        )

    async def trail(self, booking_id: int) -> list[AuditLogModel]:
        return await self.repo.list_for_entity(BOOKING_ENTITY, booking_id)
