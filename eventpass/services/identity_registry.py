import logging
import re
from typing import Optional

from redis.exceptions import RedisError

from eventpass.services.notification_providers import StorageUnavailableError

logger = logging.getLogger(__name__)


IDENTITY_KEY_TPL = "identity:{phone}"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: Optional[str]) -> str:
    """Reduce a phone number to the local subscriber number used as registry key.

    Non-digits are dropped, then a leading country code ("20") or trunk
    prefix ("0") is stripped. Stripping repeats until nothing changes so
    normalizing an already normalized value is a no-op.
    """
    digits = _NON_DIGITS.sub("", phone or "")
    while True:
        if digits.startswith("20"):
            stripped = digits[2:]
        elif digits.startswith("0"):
            stripped = digits[1:]
        else:
            return digits
        digits = stripped


class IdentityRegistry:
    """Phone number -> messaging identity (Telegram chat id) directory backed by Redis."""

    def __init__(self, redis):
        self.redis = redis

    async def register(self, phone: str, identity: str) -> str:
        key_phone = normalize_phone(phone)
        if not key_phone:
            raise ValueError("phone number has no digits")
        try:
            # last write wins
            await self.redis.set(IDENTITY_KEY_TPL.format(phone=key_phone), str(identity))
        except RedisError as exc:
            raise StorageUnavailableError("identity registry unavailable") from exc
        logger.info("Registered messaging identity for phone=%s", key_phone)
        return key_phone

    async def lookup(self, phone: str) -> Optional[str]:
        key_phone = normalize_phone(phone)
        if not key_phone:
            return None
        try:
            value = await self.redis.get(IDENTITY_KEY_TPL.format(phone=key_phone))
        except RedisError as exc:
            raise StorageUnavailableError("identity registry unavailable") from exc
        return value or None

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except RedisError:
            return False
