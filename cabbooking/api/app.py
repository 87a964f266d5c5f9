"""
FastAPI application factory.

* Registers routes for bookings, payments and admin.
* Maps lifecycle errors onto HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from cabbooking.api.errors import lifecycle_error_handler
from cabbooking.api.middleware import limiter
from cabbooking.api.routes import admin, bookings, payments
from cabbooking.domain.errors import LifecycleError
from cabbooking.infrastructure.database import engine

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release pooled DB connections on shutdown."""
    logger.info("Cab booking API starting")
    yield
    await engine.dispose()
    logger.info("Cab booking API stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Cab Booking API",
        description=(
            "Taxi bookings tied to payment confirmation: gateway-first or "
            "already-paid booking creation, payment reconciliation, taxi "
            "assignment, trip completion with fare adjustment, and an "
            "audit trail of every admin action."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(LifecycleError, lifecycle_error_handler)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
