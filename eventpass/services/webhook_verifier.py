"""Authentication of Paymob "transaction processed" callbacks.

Paymob signs a callback by HMAC-SHA512 over a fixed list of transaction
fields concatenated without separators. The order below is the one
published by the gateway and must not change.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

TRANSACTION_TYPE = "TRANSACTION"

HMAC_FIELDS: Tuple[str, ...] = (
    "amount_cents",
    "created_at",
    "currency",
    "error_occured",
    "has_parent_transaction",
    "id",
    "integration_id",
    "is_3d_secure",
    "is_auth",
    "is_capture",
    "is_refunded",
    "is_standalone_payment",
    "is_voided",
    "order.id",
    "owner",
    "pending",
    "source_data.pan",
    "source_data.sub_type",
    "source_data.type",
    "success",
)


class SignatureError(Exception):
    """Webhook HMAC did not match."""


@dataclass(frozen=True)
class VerifiedTransaction:
    success: bool
    merchant_order_id: Optional[str]
    transaction_id: Optional[str]
    amount: Optional[Decimal]


def _lookup(obj: Mapping[str, Any], path: str) -> Any:
    value: Any = obj
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _stringify(value: Any) -> str:
    # the gateway signs JSON literals: true/false, and nothing for null
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def signature_payload(obj: Mapping[str, Any]) -> str:
    return "".join(_stringify(_lookup(obj, field)) for field in HMAC_FIELDS)


def compute_signature(obj: Mapping[str, Any], secret: str) -> str:
    return hmac.new(secret.encode(), signature_payload(obj).encode(), hashlib.sha512).hexdigest()


class WebhookVerifier:
    def __init__(self, secret: str):
        self.secret = secret

    def verify(self, payload: Mapping[str, Any], hmac_value: Optional[str] = None) -> Optional[VerifiedTransaction]:
        """Return the verified transaction, or None for callback types we do not handle.

        `hmac_value` is used when the payload carries no `hmac` field (the
        gateway also passes it as a query parameter).
        """
        if payload.get("type") != TRANSACTION_TYPE:
            return None

        obj = payload.get("obj")
        if not isinstance(obj, Mapping):
            obj = {}
        supplied = payload.get("hmac") or hmac_value or ""
        expected = compute_signature(obj, self.secret)
        if not hmac.compare_digest(expected.encode(), str(supplied).lower().encode()):
            logger.warning("Rejected webhook with invalid signature (txn=%s)", obj.get("id"))
            raise SignatureError("invalid signature")

        merchant_order_id = _lookup(obj, "order.merchant_order_id")
        transaction_id = obj.get("id")
        amount_cents = obj.get("amount_cents")
        return VerifiedTransaction(
            success=obj.get("success") is True,
            merchant_order_id=str(merchant_order_id) if merchant_order_id is not None else None,
            transaction_id=str(transaction_id) if transaction_id is not None else None,
            amount=(Decimal(str(amount_cents)) / 100) if amount_cents is not None else None,
        )
