"""
Razorpay payment gateway adapter.

* ``create_order`` opens a charge intent; amounts are sent in paise.
* ``verify_signature`` authenticates the checkout callback: hex
  HMAC-SHA256 of ``"<order_id>|<payment_id>"`` keyed with the API secret.

The Razorpay SDK is synchronous, so calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
from dataclasses import dataclass

from cabbooking.domain.errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayOrder:
    order_id: str
    amount: int  # paise
    currency: str


def sign(secret: str, order_id: str, payment_id: str) -> str:
    body = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()


class RazorpayGateway:
    def __init__(self, key_id: str, key_secret: str):
        self.key_id = key_id
        self.key_secret = key_secret

    def _client(self):
        if not self.key_id or not self.key_secret:
            raise UpstreamError("Payment gateway is not configured")
        import razorpay

        return razorpay.Client(auth=(self.key_id, self.key_secret))

    async def create_order(
        self, amount: float, currency: str, receipt: str
    ) -> GatewayOrder:
        client = self._client()
        payload = {
            "amount": int(round(amount * 100)),  # rupees -> paise
            "currency": currency,
            "receipt": receipt,
        }
        try:
            order = await asyncio.to_thread(client.order.create, payload)
        except Exception as exc:
            logger.exception("Razorpay order creation failed (receipt=%s)", receipt)
            raise UpstreamError(f"Payment gateway error: {exc}") from exc
        return GatewayOrder(
            order_id=order["id"],
            amount=order["amount"],
            currency=order["currency"],
        )

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret:
            raise UpstreamError("Payment gateway is not configured")
        expected = sign(self.key_secret, order_id, payment_id)
        return hmac.compare_digest(expected, signature or "")
