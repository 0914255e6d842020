import asyncio
import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from eventpass.metrics import TICKETS_DISPATCHED
from eventpass.services.identity_registry import IdentityRegistry, normalize_phone
from eventpass.services.notification_providers import (
    MessagingProvider,
    MessagingUnavailableError,
    RecipientBlockedError,
    TransportError,
)
from eventpass.services.qr import render_qr_png

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "notifications" / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml", "txt"]),
)

CAPTION_TEMPLATE = "ticket_caption.html"


class DispatchStatus(str, enum.Enum):
    DELIVERED = "delivered"
    USER_NOT_REGISTERED = "user_not_found"
    RECIPIENT_BLOCKED = "bot_blocked"
    FAILED = "dispatch_error"


@dataclass(frozen=True)
class DispatchResult:
    status: DispatchStatus
    identity: Optional[str] = None
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status is DispatchStatus.DELIVERED


class TicketDispatcher:
    def __init__(
        self,
        registry: IdentityRegistry,
        provider: Optional[MessagingProvider],
        locale: str = "en",
        timeout: float = 20.0,
        qr_renderer: Callable[[str], bytes] = render_qr_png,
    ):
        self.registry = registry
        self.provider = provider
        self.locale = locale
        self.timeout = timeout
        self.qr_renderer = qr_renderer

    def render(self, template_name: str, locale: Optional[str] = None, context: Dict = None) -> str:
        ctx = context or {}
        # try locale-specific template, fallback to en
        for tpl in (f"{locale or self.locale}/{template_name}", f"en/{template_name}"):
            try:
                template = _env.get_template(tpl)
            except TemplateNotFound:
                continue
            return template.render(**ctx).strip()
        raise RuntimeError("Template not found: %s" % template_name)

    async def send_ticket(
        self,
        booking_id: str,
        payer_phone: str,
        payer_name: str,
        event_title: str,
        event_date: str,
        source: str = "admin",
    ) -> DispatchResult:
        """Deliver the QR ticket for `booking_id` to whoever registered `payer_phone`.

        Not-registered and blocked recipients are ordinary results. Only an
        unreachable registry or a missing messaging provider raise.
        """
        if self.provider is None:
            raise MessagingUnavailableError("messaging provider is not configured")

        identity = await self.registry.lookup(payer_phone)
        if identity is None:
            logger.info("No messaging identity for phone=%s booking=%s", normalize_phone(payer_phone), booking_id)
            return self._result(DispatchResult(DispatchStatus.USER_NOT_REGISTERED), source)

        try:
            caption = self.render(
                CAPTION_TEMPLATE,
                context={
                    "payer_name": payer_name,
                    "event_title": event_title,
                    "event_date": event_date,
                    "booking_id": booking_id,
                },
            )
            # qr encoding is CPU bound
            photo = await asyncio.to_thread(self.qr_renderer, booking_id)
        except Exception as exc:
            logger.exception("Could not build ticket for booking=%s", booking_id)
            return self._result(
                DispatchResult(DispatchStatus.FAILED, identity=identity, error=f"ticket rendering failed: {exc}"),
                source,
            )

        try:
            await asyncio.wait_for(
                self.provider.send_photo(identity, photo, caption, meta={"booking_id": booking_id}),
                timeout=self.timeout,
            )
        except RecipientBlockedError as exc:
            logger.warning("Recipient %s blocked the bot (booking=%s): %s", identity, booking_id, exc)
            return self._result(DispatchResult(DispatchStatus.RECIPIENT_BLOCKED, identity=identity), source)
        except asyncio.TimeoutError:
            logger.error("Ticket send to %s timed out after %ss (booking=%s)", identity, self.timeout, booking_id)
            return self._result(
                DispatchResult(DispatchStatus.FAILED, identity=identity, error="messaging send timed out"), source
            )
        except TransportError as exc:
            logger.exception("Ticket send failed for booking=%s", booking_id)
            return self._result(DispatchResult(DispatchStatus.FAILED, identity=identity, error=str(exc)), source)

        logger.info("Ticket delivered for booking=%s to %s", booking_id, identity)
        return self._result(DispatchResult(DispatchStatus.DELIVERED, identity=identity), source)

    @staticmethod
    def _result(result: DispatchResult, source: str) -> DispatchResult:
        TICKETS_DISPATCHED.labels(result=result.status.value, source=source).inc()
        return result
