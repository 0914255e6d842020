import logging
from dataclasses import dataclass
from functools import partial
from typing import Optional

import httpx
from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from eventpass.config import ConfigurationError, Settings
from eventpass.services.booking_state import BookingStateMachine
from eventpass.services.identity_registry import IdentityRegistry
from eventpass.services.notification_providers import LogProvider, MessagingProvider, TelegramProvider
from eventpass.services.payment_gateway import PaymentGatewayClient
from eventpass.services.qr import render_qr_png
from eventpass.services.ticket_dispatcher import TicketDispatcher
from eventpass.services.webhook_verifier import WebhookVerifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Collaborators shared by the routers; stored on ``app.state.services``."""

    bookings: BookingStateMachine
    identities: IdentityRegistry
    dispatcher: TicketDispatcher
    gateway: Optional[PaymentGatewayClient] = None
    verifier: Optional[WebhookVerifier] = None
    gateway_error: Optional[ConfigurationError] = None
    send_ticket_on_payment: bool = True
    http_client: Optional[httpx.AsyncClient] = None
    provider: Optional[MessagingProvider] = None
    # shared secret for the x-admin-token header; empty rejects every request
    admin_token: str = ""

    def require_gateway(self) -> PaymentGatewayClient:
        if self.gateway is None:
            raise self.gateway_error or ConfigurationError("payment gateway is not configured")
        return self.gateway

    def require_verifier(self) -> WebhookVerifier:
        if self.verifier is None:
            raise self.gateway_error or ConfigurationError("webhook secret is not configured")
        return self.verifier

    async def database_ready(self) -> bool:
        try:
            async with self.bookings.session_factory() as db:
                await db.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError):
            return False
        return True

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.provider is not None:
            await self.provider.close()


async def build_services(settings: Settings, session_factory, redis) -> Services:
    bookings = BookingStateMachine(session_factory)
    identities = IdentityRegistry(redis)

    token = settings.TELEGRAM_TOKEN.get_secret_value()
    provider: Optional[MessagingProvider]
    if token:
        provider = TelegramProvider.from_token(token)
        await provider.start()
    elif settings.DEBUG:
        provider = LogProvider()
    else:
        logger.warning("TELEGRAM_TOKEN is not set; ticket delivery is unavailable")
        provider = None

    dispatcher = TicketDispatcher(
        identities,
        provider,
        locale=settings.TICKET_LOCALE,
        timeout=settings.MESSAGING_TIMEOUT_SECONDS,
        qr_renderer=partial(render_qr_png, box_size=settings.QR_BOX_SIZE),
    )

    services = Services(
        bookings=bookings,
        identities=identities,
        dispatcher=dispatcher,
        send_ticket_on_payment=settings.SEND_TICKET_ON_PAYMENT,
        provider=provider,
        admin_token=settings.ADMIN_TOKEN.get_secret_value(),
    )

    try:
        services.verifier = WebhookVerifier(settings.webhook_secret().get_secret_value())
        gateway_config = settings.gateway_config()
    except ConfigurationError as exc:
        # keep serving; payment endpoints answer 500 until configured
        logger.error("Payment gateway disabled: %s", exc)
        services.gateway_error = exc
        return services

    services.http_client = httpx.AsyncClient(timeout=gateway_config.timeout_seconds)
    services.gateway = PaymentGatewayClient(gateway_config, services.http_client, bookings)
    return services


def get_services(request: Request) -> Services:
    return request.app.state.services
