"""Test doubles and payload builders shared by the test modules."""
import copy
import json

import httpx
from redis.exceptions import ConnectionError as RedisConnectionError

from eventpass.services.notification_providers import MessagingProvider
from eventpass.services.webhook_verifier import compute_signature

ADMIN_TOKEN = "test-admin-token"
HMAC_SECRET = "test-hmac-secret"
GATEWAY_BASE = "https://accept.paymob.test/api"
IFRAME_ID = 830412
PAYMENT_TOKEN = "pk_test_token_123"


class InMemoryRedis:
    """Just enough of redis.asyncio.Redis for the identity registry."""

    def __init__(self):
        self.data = {}
        self.down = False

    def _check(self):
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, **kwargs):
        self._check()
        self.data[key] = value
        return True

    async def ping(self):
        self._check()
        return True


class RecordingProvider(MessagingProvider):
    def __init__(self):
        self.sent = []
        self.error = None

    async def send_photo(self, identity, photo, caption, meta=None):
        if self.error is not None:
            raise self.error
        self.sent.append({"identity": identity, "photo": photo, "caption": caption, "meta": meta})
        return {"status": "sent", "provider": "recording"}


class FakePaymob:
    """httpx.MockTransport handler mimicking the three session calls."""

    def __init__(self):
        self.requests = []
        self.fail_step = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        path = request.url.path
        self.requests.append((path, body))
        if path.endswith("/auth/tokens"):
            if self.fail_step == "auth":
                return httpx.Response(401, json={"detail": "incorrect credentials"})
            return httpx.Response(201, json={"token": "auth-token-xyz"})
        if path.endswith("/ecommerce/orders"):
            if self.fail_step == "order":
                return httpx.Response(422, json={"message": "duplicate"})
            return httpx.Response(201, json={"id": 217503754})
        if path.endswith("/acceptance/payment_keys"):
            if self.fail_step == "payment_key":
                raise httpx.ConnectError("connection reset", request=request)
            if self.fail_step == "timeout":
                raise httpx.ReadTimeout("read timed out", request=request)
            return httpx.Response(201, json={"token": PAYMENT_TOKEN})
        return httpx.Response(404)


def sample_transaction(merchant_order_id="BK1", success=True, **overrides):
    obj = {
        "id": 192036465,
        "pending": False,
        "amount_cents": 15000,
        "success": success,
        "is_auth": False,
        "is_capture": False,
        "is_standalone_payment": True,
        "is_voided": False,
        "is_refunded": False,
        "is_3d_secure": True,
        "integration_id": 4097558,
        "has_parent_transaction": False,
        "order": {"id": 217503754, "merchant_order_id": merchant_order_id},
        "created_at": "2024-06-13T11:33:44.592345",
        "currency": "EGP",
        "source_data": {"pan": "2346", "type": "card", "sub_type": "MasterCard"},
        "error_occured": False,
        "owner": 302852,
    }
    obj.update(overrides)
    return obj


def signed_webhook(obj, secret=HMAC_SECRET):
    return {"type": "TRANSACTION", "obj": copy.deepcopy(obj), "hmac": compute_signature(obj, secret)}
