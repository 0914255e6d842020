"""
Shared fixtures: a per-test SQLite booking store, an in-memory Redis
double, a recording messaging provider and a mocked Paymob API.

Environment is configured before any eventpass import so that module
level settings pick up the test values.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["TELEGRAM_TOKEN"] = ""
os.environ["SENTRY_DSN"] = ""

from decimal import Decimal

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from eventpass.config import GatewayConfig
from eventpass.db.base import Base
from eventpass.main import create_app
from eventpass.models.models import Booking
from eventpass.services.booking_state import BookingStateMachine
from eventpass.services.container import Services
from eventpass.services.identity_registry import IdentityRegistry
from eventpass.services.payment_gateway import PaymentGatewayClient
from eventpass.services.ticket_dispatcher import TicketDispatcher
from eventpass.services.webhook_verifier import WebhookVerifier
from tests.helpers import ADMIN_TOKEN, FakePaymob, GATEWAY_BASE, HMAC_SECRET, IFRAME_ID, InMemoryRedis, RecordingProvider


@pytest.fixture
async def session_factory(tmp_path):
    # file backed so concurrent sessions get their own connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'eventpass.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def add_booking(session_factory):
    async def _add(booking_id="BK1", amount="150.00", phone="01099999999", name="Mina Samy", **fields):
        fields.setdefault("event_title", "Youth Conference")
        fields.setdefault("event_date", "2026-11-20")
        booking = Booking(id=booking_id, amount=Decimal(amount), payer_phone=phone, payer_name=name, **fields)
        async with session_factory() as db:
            async with db.begin():
                db.add(booking)
        return booking

    return _add


@pytest.fixture
def bookings(session_factory):
    return BookingStateMachine(session_factory)


@pytest.fixture
def redis():
    return InMemoryRedis()


@pytest.fixture
def identities(redis):
    return IdentityRegistry(redis)


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def dispatcher(identities, provider):
    return TicketDispatcher(
        identities, provider, locale="en", timeout=5, qr_renderer=lambda data: b"PNG:" + data.encode()
    )


@pytest.fixture
def gateway_config():
    return GatewayConfig(
        base_url=GATEWAY_BASE,
        api_key="test-api-key",
        hmac_secret=HMAC_SECRET,
        iframe_id=IFRAME_ID,
        card_integration_id=4097558,
        wallet_integration_id=4097600,
        currency="EGP",
        timeout_seconds=5,
    )


@pytest.fixture
def paymob():
    return FakePaymob()


@pytest.fixture
async def gateway(gateway_config, paymob, bookings):
    async with httpx.AsyncClient(transport=httpx.MockTransport(paymob)) as http:
        yield PaymentGatewayClient(gateway_config, http, bookings)


@pytest.fixture
def services(bookings, identities, dispatcher, gateway, provider):
    return Services(
        bookings=bookings,
        identities=identities,
        dispatcher=dispatcher,
        gateway=gateway,
        verifier=WebhookVerifier(HMAC_SECRET),
        provider=provider,
        admin_token=ADMIN_TOKEN,
    )


@pytest.fixture
async def client(services):
    app = create_app(services)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
