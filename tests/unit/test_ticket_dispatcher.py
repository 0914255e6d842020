import asyncio

import pytest

from eventpass.services.notification_providers import (
    MessagingUnavailableError,
    RecipientBlockedError,
    StorageUnavailableError,
    TransportError,
)
from eventpass.services.ticket_dispatcher import DispatchStatus, TicketDispatcher


async def _send(dispatcher, phone="01099999999"):
    return await dispatcher.send_ticket("BK1", phone, "Mina Samy", "Youth Conference", "2026-11-20")


async def test_unregistered_user_is_a_result_and_nothing_is_sent(dispatcher, provider):
    result = await _send(dispatcher)
    assert result.status is DispatchStatus.USER_NOT_REGISTERED
    assert result.identity is None
    assert provider.sent == []


async def test_delivers_qr_and_caption(dispatcher, identities, provider):
    await identities.register("201099999999", "555001")
    result = await _send(dispatcher, phone="+20 109 999 9999")

    assert result.delivered
    assert result.identity == "555001"
    [sent] = provider.sent
    assert sent["identity"] == "555001"
    assert sent["photo"] == b"PNG:BK1"
    assert "<b>Mina Samy</b>" in sent["caption"]
    assert "Youth Conference" in sent["caption"]
    assert "2026-11-20" in sent["caption"]
    assert "<code>BK1</code>" in sent["caption"]


async def test_caption_escapes_user_input(dispatcher, identities, provider):
    await identities.register("01099999999", "555001")
    await dispatcher.send_ticket("BK1", "01099999999", "<i>Mina</i>", "A & B", "today")
    caption = provider.sent[0]["caption"]
    assert "&lt;i&gt;Mina&lt;/i&gt;" in caption
    assert "A &amp; B" in caption


async def test_arabic_caption_and_unknown_locale_fallback(identities, provider):
    await identities.register("01099999999", "555001")
    ar = TicketDispatcher(identities, provider, locale="ar", qr_renderer=lambda d: b"")
    await ar.send_ticket("BK1", "01099999999", "Mina", "Conf", "today")
    assert "رقم الحجز" in provider.sent[-1]["caption"]

    fr = TicketDispatcher(identities, provider, locale="fr", qr_renderer=lambda d: b"")
    await fr.send_ticket("BK1", "01099999999", "Mina", "Conf", "today")
    assert "Booking number" in provider.sent[-1]["caption"]


async def test_blocked_recipient_is_distinct(dispatcher, identities, provider):
    await identities.register("01099999999", "555001")
    provider.error = RecipientBlockedError("Forbidden: bot was blocked by the user")
    result = await _send(dispatcher)
    assert result.status is DispatchStatus.RECIPIENT_BLOCKED
    assert result.identity == "555001"


async def test_other_transport_failures_are_dispatch_errors(dispatcher, identities, provider):
    await identities.register("01099999999", "555001")
    provider.error = TransportError("Bad Request: chat not found")
    result = await _send(dispatcher)
    assert result.status is DispatchStatus.FAILED
    assert "chat not found" in result.error


async def test_slow_transport_times_out(identities):
    class SlowProvider:
        async def send_photo(self, identity, photo, caption, meta=None):
            await asyncio.sleep(1)

    await identities.register("01099999999", "555001")
    dispatcher = TicketDispatcher(identities, SlowProvider(), timeout=0.01, qr_renderer=lambda d: b"")
    result = await _send(dispatcher)
    assert result.status is DispatchStatus.FAILED
    assert result.error == "messaging send timed out"


async def test_unavailable_collaborators_raise(identities, redis):
    with pytest.raises(MessagingUnavailableError):
        await _send(TicketDispatcher(identities, None))

    redis.down = True
    with pytest.raises(StorageUnavailableError):
        await _send(TicketDispatcher(identities, object()))


async def test_unencodable_booking_id_is_a_failed_result(identities, provider):
    await identities.register("01099999999", "555001")
    # real QR codec: 5000 characters exceed the largest QR version
    dispatcher = TicketDispatcher(identities, provider, locale="en")
    result = await dispatcher.send_ticket("B" * 5000, "01099999999", "Mina", "Conf", "today")

    assert result.status is DispatchStatus.FAILED
    assert result.identity == "555001"
    assert result.error.startswith("ticket rendering failed")
    assert provider.sent == []


async def test_renderer_errors_do_not_escape(identities, provider):
    def broken(data):
        raise RuntimeError("codec exploded")

    await identities.register("01099999999", "555001")
    result = await _send(TicketDispatcher(identities, provider, qr_renderer=broken))
    assert result.status is DispatchStatus.FAILED
    assert "codec exploded" in result.error
