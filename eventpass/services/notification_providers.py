from abc import ABC, abstractmethod
from typing import Dict, Optional
import logging

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import Forbidden, TelegramError

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Messaging or storage I/O failed."""


class StorageUnavailableError(TransportError):
    pass


class MessagingUnavailableError(TransportError):
    pass


class RecipientBlockedError(TransportError):
    """The recipient blocked the bot or deactivated their account."""


class MessagingProvider(ABC):
    """Abstract transport able to deliver a photo with an HTML caption."""

    @abstractmethod
    async def send_photo(self, identity: str, photo: bytes, caption: str, meta: Optional[Dict] = None) -> Dict:
        raise NotImplementedError()

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass


class TelegramProvider(MessagingProvider):
    def __init__(self, bot: Bot):
        self.bot = bot

    @classmethod
    def from_token(cls, token: str) -> "TelegramProvider":
        return cls(Bot(token=token))

    async def start(self) -> None:
        try:
            await self.bot.initialize()
        except TelegramError:
            # sends will fail individually and surface as dispatch errors
            logger.exception("Telegram bot initialization failed")

    async def close(self) -> None:
        await self.bot.shutdown()

    async def send_photo(self, identity: str, photo: bytes, caption: str, meta: Optional[Dict] = None) -> Dict:
        try:
            message = await self.bot.send_photo(
                chat_id=identity,
                photo=photo,
                caption=caption,
                parse_mode=ParseMode.HTML,
            )
        except Forbidden as exc:
            raise RecipientBlockedError(str(exc)) from exc
        except TelegramError as exc:
            raise TransportError(str(exc)) from exc
        return {"status": "sent", "provider": "telegram", "message_id": message.message_id}


class LogProvider(MessagingProvider):
    """Provider that only logs deliveries (useful for dev/testing)."""

    async def send_photo(self, identity: str, photo: bytes, caption: str, meta: Optional[Dict] = None) -> Dict:
        logger.info("[LogProvider] Sending photo to %s (%d bytes)", identity, len(photo))
        logger.debug("Caption: %s", caption)
        return {"status": "sent", "provider": "log"}
