"""
Canteen Portal — Razorpay payment gateway client

Orders and refunds go over the Razorpay REST API; amounts cross the wire in
the currency's minor unit (paise for INR). Capture callbacks are trusted only
if their HMAC-SHA256 signature matches.
"""
import hashlib
import hmac
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

import httpx

from canteen_portal.core.config import get_settings
from canteen_portal.core.errors import GatewayError, GatewayTimeout, GatewayUnavailable

settings = get_settings()
logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def callback_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    message = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class RazorpayGateway:
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.key_id = key_id
        self._key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.key_id, self._key_secret),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload)
        except httpx.TimeoutException:
            logger.error("Razorpay %s timed out", path)
            raise GatewayTimeout()
        except httpx.RequestError as exc:
            logger.error("Razorpay %s unreachable: %s", path, exc)
            raise GatewayUnavailable(f"Payment gateway unreachable: {exc}")

        if not response.is_success:
            try:
                detail = response.json().get("error", {}).get("description")
            except ValueError:
                detail = None
            logger.error("Razorpay %s failed with %s: %s", path, response.status_code, detail)
            raise GatewayError(detail or f"Payment gateway returned {response.status_code}")

        return response.json()

    async def create_order(
        self, amount: float, currency: str, receipt: str, notes: dict[str, str] | None = None
    ) -> dict[str, Any]:
        """Create a payment intent (a Razorpay "order") for `amount` major units."""
        return await self._post(
            "/orders",
            {
                "amount": to_minor_units(amount),
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            },
        )

    async def refund(self, gateway_payment_id: str, amount: float) -> dict[str, Any]:
        return await self._post(
            f"/payments/{gateway_payment_id}/refund",
            {"amount": to_minor_units(amount)},
        )

    def verify_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        expected = callback_signature(self._key_secret, gateway_order_id, gateway_payment_id)
        return hmac.compare_digest(expected.encode(), signature.encode())


_gateway: RazorpayGateway | None = None


def get_gateway() -> RazorpayGateway:
    global _gateway
    if _gateway is None:
        _gateway = RazorpayGateway(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            base_url=settings.RAZORPAY_BASE_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    return _gateway
