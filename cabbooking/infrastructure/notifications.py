"""
WhatsApp notification dispatcher (Twilio).

Every ``send_*`` coroutine returns ``True`` once Twilio accepted the
message, ``False`` when there is no usable destination number, and
raises ``UpstreamError`` when Twilio is unconfigured or the API call
fails.  Callers that must not wait use ``dispatch`` which runs the send
as a detached task whose failures are only logged.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Optional

from twilio.rest import Client

from cabbooking.domain.enums import SETTLED_PAYMENT_STATUSES
from cabbooking.domain.errors import UpstreamError

logger = logging.getLogger(__name__)


def format_whatsapp_number(phone: Optional[str], country_code: str = "91") -> Optional[str]:
    if not phone:
        return None
    trimmed = phone.strip()
    if trimmed.lower().startswith("whatsapp:"):
        return trimmed
    if trimmed.startswith("+"):
        return f"whatsapp:{trimmed}"
    digits = re.sub(r"\D", "", trimmed)
    if not digits:
        return None
    # Bare 10-digit mobile numbers are local
    if len(digits) == 10:
        return f"whatsapp:+{country_code}{digits}"
    return f"whatsapp:+{digits}"


def _money(value: Optional[float]) -> str:
    return f"₹{(value or 0):.2f}"


def _amount_due(booking: Any) -> float:
    paid = sum(
        p.amount or 0
        for p in (booking.payments or [])
        if p.status in SETTLED_PAYMENT_STATUSES
    )
    return max(0.0, (booking.total_amount or 0) - paid)


# ── Message bodies ────────────────────────────────────────────────────


def booking_confirmation_body(booking: Any, brand: str) -> str:
    user_name = booking.user.name if booking.user else "Customer"
    when = (
        booking.scheduled_at.strftime("%d/%m/%Y, %H:%M")
        if booking.scheduled_at
        else "ASAP"
    )
    total = booking.total_amount or 0
    primary = booking.payments[0] if booking.payments else None
    paid_now = primary.amount if primary is not None else total
    remaining = max(total - paid_now, 0)
    return "\n".join(
        [
            f"Hi {user_name}, 👋",
            "",
            f"Your {brand} booking #{booking.id} is *confirmed*.",
            "",
            f"🚖 Trip: {booking.pickup_location} ➜ {booking.drop_location}",
            f"🕒 Pickup: {when}",
            "",
            "💰 Invoice Summary",
            f"• Total Fare: {_money(total)}",
            f"• Paid Now: {_money(paid_now)}",
            f"• Remaining: {_money(remaining)}",
            "",
            "A cab will be assigned shortly. You will receive driver & vehicle details soon.",
            "",
            f"Thank you for riding with {brand}!",
        ]
    )


def taxi_assignment_body(booking: Any, assignment: Any, brand: str) -> str:
    return "\n".join(
        [
            f"*{brand} Booking Confirmation* 🚖",
            f"Booking ID: #{booking.id}",
            f"Trip: {booking.pickup_location} ➜ {booking.drop_location}",
            "------------------",
            f"Vehicle: {assignment.cab_name} ({assignment.cab_number})",
            f"Driver: {assignment.driver_name} ({assignment.driver_number})",
            "------------------",
            f"Thank you for choosing {brand}!",
        ]
    )


def driver_assignment_body(booking: Any, assignment: Any) -> str:
    customer = booking.user
    return "\n".join(
        [
            "*New Trip Assignment* 🚨",
            f"Booking ID: #{booking.id}",
            f"Customer: {customer.name if customer else ''} "
            f"({customer.phone if customer else ''})",
            f"From: {booking.pickup_location}",
            f"To: {booking.drop_location}",
            f"Fare to Collect: {_money(_amount_due(booking))}",
            "------------------",
            "Please contact the customer for pickup.",
        ]
    )


def password_reset_body(otp: str, ttl_minutes: int, brand: str) -> str:
    minutes = "1 minute" if ttl_minutes == 1 else f"{ttl_minutes} minutes"
    return "\n".join(
        [
            f"{brand} password reset request.",
            "",
            f"OTP: *{otp}*",
            f"Valid for {minutes}.",
            "",
            "Do not share this code with anyone.",
        ]
    )


# ── Dispatcher ────────────────────────────────────────────────────────


class WhatsAppNotifier:
    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        brand: str = "Urban Cabz",
        country_code: str = "91",
        reset_content_sid: str = "",
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.brand = brand
        self.country_code = country_code
        self.reset_content_sid = reset_content_sid
        self._client: Optional[Client] = None
        self._tasks: set[asyncio.Task] = set()

    def _get_client(self) -> Client:
        if not self.account_sid or not self.auth_token or not self.from_number:
            raise UpstreamError("Twilio WhatsApp is not configured")
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    async def _send(self, purpose: str, phone: Optional[str], **message: Any) -> bool:
        client = self._get_client()
        to = format_whatsapp_number(phone, self.country_code)
        if not to:
            logger.warning("No usable WhatsApp number for %s; skipping", purpose)
            return False
        try:
            await asyncio.to_thread(
                client.messages.create, from_=self.from_number, to=to, **message
            )
        except Exception as exc:
            raise UpstreamError(f"WhatsApp {purpose} failed: {exc}") from exc
        logger.info("WhatsApp %s sent to %s", purpose, to)
        return True

    async def send_booking_confirmation(self, phone: Optional[str], booking: Any) -> bool:
        return await self._send(
            "booking confirmation",
            phone,
            body=booking_confirmation_body(booking, self.brand),
        )

    async def send_taxi_assignment(
        self, phone: Optional[str], booking: Any, assignment: Any
    ) -> bool:
        return await self._send(
            "taxi assignment",
            phone,
            body=taxi_assignment_body(booking, assignment, self.brand),
        )

    async def send_driver_assignment(
        self, phone: Optional[str], booking: Any, assignment: Any
    ) -> bool:
        return await self._send(
            "driver assignment",
            phone,
            body=driver_assignment_body(booking, assignment),
        )

    async def send_password_reset_otp(
        self, phone: Optional[str], otp: str, ttl_minutes: int = 5
    ) -> bool:
        if self.reset_content_sid:
            # Approved template: {{1}} receives the OTP
            return await self._send(
                "password reset OTP",
                phone,
                content_sid=self.reset_content_sid,
                content_variables=json.dumps({"1": otp}),
            )
        return await self._send(
            "password reset OTP",
            phone,
            body=password_reset_body(otp, ttl_minutes, self.brand),
        )

    # ── Fire-and-forget ───────────────────────────────────────────

    def dispatch(self, coro: Awaitable[Any], *, label: str = "notification") -> asyncio.Task:
        """Run *coro* detached; failures are logged and never re-raised."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                logger.warning("Detached %s was cancelled", label)
                return
            exc = t.exception()
            if exc is not None:
                logger.error("Detached %s failed: %s", label, exc, exc_info=exc)

        task.add_done_callback(_done)
        return task
