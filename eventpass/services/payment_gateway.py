import logging
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Union
from urllib.parse import urlencode

import httpx

from eventpass.config import GatewayConfig
from eventpass.metrics import GATEWAY_LATENCY, PAYMENT_SESSIONS
from eventpass.services.booking_state import BookingStateMachine

logger = logging.getLogger(__name__)

PAYMENT_KEY_EXPIRATION_SECONDS = 3600
# billing fields the gateway requires but this service does not collect
BILLING_PLACEHOLDER = "NA"


class GatewayError(Exception):
    pass


@dataclass(frozen=True)
class PaymentSession:
    url: str
    order_id: str
    payment_token: str


def to_minor_units(amount: Union[Decimal, float, int, str]) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def split_name(full_name: Optional[str]):
    parts = (full_name or "").split()
    first = parts[0] if parts else BILLING_PLACEHOLDER
    last = " ".join(parts[1:]) or BILLING_PLACEHOLDER
    return first, last


def billing_data(payer_name: Optional[str], payer_phone: str) -> Dict[str, str]:
    first, last = split_name(payer_name)
    return {
        "first_name": first,
        "last_name": last,
        "phone_number": payer_phone or BILLING_PLACEHOLDER,
        "email": BILLING_PLACEHOLDER,
        "apartment": BILLING_PLACEHOLDER,
        "floor": BILLING_PLACEHOLDER,
        "building": BILLING_PLACEHOLDER,
        "street": BILLING_PLACEHOLDER,
        "city": BILLING_PLACEHOLDER,
        "state": BILLING_PLACEHOLDER,
        "country": BILLING_PLACEHOLDER,
        "postal_code": BILLING_PLACEHOLDER,
        "shipping_method": BILLING_PLACEHOLDER,
    }


class PaymentGatewayClient:
    """Opens Paymob hosted payment sessions.

    Session creation is three dependent calls: authenticate with the API
    key, register the order, then request a payment key for the iframe.
    """

    provider_name = "paymob"

    def __init__(self, config: GatewayConfig, http: httpx.AsyncClient, bookings: BookingStateMachine):
        self.config = config
        self.http = http
        self.bookings = bookings

    async def initiate(
        self,
        booking_id: str,
        amount: Union[Decimal, float],
        payer_name: Optional[str],
        payer_phone: str,
        method: str = "CARD",
    ) -> PaymentSession:
        amount_cents = to_minor_units(amount)
        try:
            auth_token = await self.authenticate()
            order_id = await self.register_order(auth_token, booking_id, amount_cents)
            payment_token = await self.request_payment_key(
                auth_token, order_id, amount_cents, billing_data(payer_name, payer_phone), method
            )
        except GatewayError:
            PAYMENT_SESSIONS.labels(result="failed").inc()
            logger.exception("Payment session creation failed for booking=%s", booking_id)
            raise

        url = f"{self.config.iframe_url}?{urlencode({'payment_token': payment_token})}"
        PAYMENT_SESSIONS.labels(result="created").inc()

        # the session exists at the gateway whether or not this write lands
        try:
            await self.bookings.mark_initiated(booking_id, order_id)
        except Exception:
            logger.exception("Could not mark booking=%s INITIATED (order=%s)", booking_id, order_id)

        return PaymentSession(url=url, order_id=order_id, payment_token=payment_token)

    async def authenticate(self) -> str:
        data = await self._post("auth", "/auth/tokens", {"api_key": self.config.api_key.get_secret_value()})
        return str(self._require(data, "token", "auth"))

    async def register_order(self, auth_token: str, merchant_order_id: str, amount_cents: int) -> str:
        data = await self._post(
            "order",
            "/ecommerce/orders",
            {
                "auth_token": auth_token,
                "delivery_needed": False,
                "amount_cents": amount_cents,
                "currency": self.config.currency,
                "merchant_order_id": merchant_order_id,
                "items": [],
            },
        )
        return str(self._require(data, "id", "order"))

    async def request_payment_key(
        self, auth_token: str, order_id: str, amount_cents: int, billing: Dict[str, str], method: str
    ) -> str:
        data = await self._post(
            "payment_key",
            "/acceptance/payment_keys",
            {
                "auth_token": auth_token,
                "amount_cents": amount_cents,
                "expiration": PAYMENT_KEY_EXPIRATION_SECONDS,
                "order_id": order_id,
                "billing_data": billing,
                "currency": self.config.currency,
                "integration_id": self.config.integration_for(method),
                "lock_order_when_paid": True,
            },
        )
        return str(self._require(data, "token", "payment_key"))

    async def _post(self, step: str, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            resp = await self.http.post(
                f"{self.config.base_url}{path}", json=body, timeout=self.config.timeout_seconds
            )
        except httpx.TimeoutException as exc:
            raise GatewayError(f"{step}: gateway timed out") from exc
        except httpx.HTTPError as exc:
            raise GatewayError(f"{step}: {exc.__class__.__name__}: {exc}") from exc
        finally:
            GATEWAY_LATENCY.labels(step=step).observe(time.perf_counter() - start)

        if resp.is_error:
            raise GatewayError(f"{step}: HTTP {resp.status_code}: {resp.text[:500]}")
        try:
            return resp.json()
        except ValueError as exc:
            raise GatewayError(f"{step}: response is not JSON") from exc

    @staticmethod
    def _require(data: Any, key: str, step: str) -> Any:
        value = data.get(key) if isinstance(data, dict) else None
        if value in (None, ""):
            raise GatewayError(f"{step}: response missing '{key}'")
        return value
