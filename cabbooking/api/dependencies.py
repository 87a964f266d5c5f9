"""FastAPI dependency injection helpers."""

from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from cabbooking.config import settings
from cabbooking.infrastructure.database import async_session_factory
from cabbooking.infrastructure.gateway import RazorpayGateway
from cabbooking.infrastructure.notifications import WhatsAppNotifier
from cabbooking.services.lifecycle import BookingLifecycleEngine


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@lru_cache
def get_notifier() -> WhatsAppNotifier:
    """Process-wide notifier; it owns the detached notification tasks."""
    return WhatsAppNotifier(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_whatsapp_from,
        brand=settings.brand_name,
        country_code=settings.default_country_code,
        reset_content_sid=settings.twilio_reset_content_sid,
    )


def get_gateway() -> RazorpayGateway:
    return RazorpayGateway(settings.razorpay_key_id, settings.razorpay_key_secret)


def get_lifecycle_engine(
    notifier: WhatsAppNotifier = Depends(get_notifier),
) -> BookingLifecycleEngine:
    return BookingLifecycleEngine(
        async_session_factory,
        notifier,
        default_rate_per_km=settings.default_rate_per_km,
        currency=settings.currency,
        provider=settings.payment_provider,
    )


def get_actor_id(x_actor_id: int = Header(0)) -> int:
    """Acting admin id; authentication happens upstream of this service."""
    return x_actor_id
