import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from eventpass.config import ConfigurationError
from eventpass.metrics import PAYMENT_FAILURE, PAYMENT_SUCCESS, WEBHOOK_EVENTS
from eventpass.schemas.payment import PaymentInitiateRequest, PaymentInitiateResponse, WebhookAck
from eventpass.services.booking_state import PaymentOutcome
from eventpass.services.container import Services, get_services
from eventpass.services.notification_providers import TransportError
from eventpass.services.payment_gateway import GatewayError
from eventpass.services.webhook_verifier import SignatureError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


@router.post("/initiate", response_model=PaymentInitiateResponse)
async def initiate_payment(req: PaymentInitiateRequest, services: Services = Depends(get_services)):
    try:
        gateway = services.require_gateway()
        session = await gateway.initiate(
            req.booking_id,
            req.amount,
            req.payer_details.name,
            req.payer_details.phone,
            req.method,
        )
    except ConfigurationError as exc:
        logger.error("Payment initiation refused: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Payment gateway is not configured"},
        )
    except GatewayError:
        # details are logged by the client; do not echo gateway responses to callers
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Payment gateway request failed"},
        )
    return PaymentInitiateResponse(success=True, url=session.url)


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    hmac: Optional[str] = None,
    services: Services = Depends(get_services),
):
    try:
        payload: Dict[str, Any] = await request.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    try:
        verifier = services.require_verifier()
    except ConfigurationError as exc:
        logger.error("Webhook refused: %s", exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"received": False})

    try:
        txn = verifier.verify(payload, hmac_value=hmac)
    except SignatureError:
        WEBHOOK_EVENTS.labels(outcome="rejected").inc()
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"received": False, "error": "invalid signature"},
        )

    if txn is None:
        WEBHOOK_EVENTS.labels(outcome="ignored").inc()
        logger.info("Ignoring webhook of type %r", payload.get("type"))
        return WebhookAck(received=True)

    if not txn.merchant_order_id:
        WEBHOOK_EVENTS.labels(outcome=PaymentOutcome.UNKNOWN_BOOKING.value).inc()
        logger.warning("Verified transaction %s carries no merchant order id", txn.transaction_id)
        return WebhookAck(received=True)

    try:
        outcome = await services.bookings.apply_payment_result(
            txn.merchant_order_id, txn.success, txn.transaction_id, txn.amount
        )
    except SQLAlchemyError:
        # the only case the gateway should retry
        WEBHOOK_EVENTS.labels(outcome="error").inc()
        logger.exception("Could not apply payment result for booking=%s", txn.merchant_order_id)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"received": False})

    WEBHOOK_EVENTS.labels(outcome=outcome.value).inc()
    if outcome is PaymentOutcome.APPLIED:
        if txn.success:
            PAYMENT_SUCCESS.labels(provider="paymob").inc()
            if services.send_ticket_on_payment:
                await send_paid_ticket(services, txn.merchant_order_id)
        else:
            PAYMENT_FAILURE.labels(provider="paymob").inc()

    return WebhookAck(received=True)


async def send_paid_ticket(services: Services, booking_id: str) -> None:
    """Deliver the ticket for a booking that just became PAID."""
    try:
        booking = await services.bookings.get(booking_id)
    except SQLAlchemyError:
        logger.exception("Could not load paid booking=%s for ticket delivery", booking_id)
        return
    if booking is None:
        return
    try:
        result = await services.dispatcher.send_ticket(
            booking.id,
            booking.payer_phone,
            booking.payer_name or "",
            booking.event_title or "",
            booking.event_date or "",
            source="webhook",
        )
    except TransportError as exc:
        logger.error("Ticket for paid booking=%s not sent: %s", booking_id, exc)
        return
    logger.info("Ticket dispatch for paid booking=%s: %s", booking_id, result.status.value)
