import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from eventpass.auth.deps import require_admin_token
from eventpass.schemas.ticket import SendTicketRequest, SendTicketResponse
from eventpass.services.container import Services, get_services
from eventpass.services.notification_providers import MessagingUnavailableError, StorageUnavailableError
from eventpass.services.ticket_dispatcher import DispatchStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tickets"])


@router.post(
    "/send",
    response_model=SendTicketResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admin_token)],
)
async def send_ticket(req: SendTicketRequest, services: Services = Depends(get_services)):
    """Manually approve a booking by delivering its ticket to the payer."""
    try:
        result = await services.dispatcher.send_ticket(
            req.booking_id, req.phone, req.user_name, req.event_title, req.date
        )
    except (StorageUnavailableError, MessagingUnavailableError) as exc:
        logger.error("Ticket send unavailable: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"success": False, "error": str(exc)},
        )

    if result.status is DispatchStatus.FAILED:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": result.error or "ticket delivery failed"},
        )
    if not result.delivered:
        return SendTicketResponse(success=False, reason=result.status.value)

    # bookings created elsewhere may not be stored here; approval is best-effort
    try:
        await services.bookings.approve(req.booking_id)
    except SQLAlchemyError:
        logger.exception("Ticket sent but booking=%s could not be marked APPROVED", req.booking_id)
    return SendTicketResponse(success=True, identity=result.identity)
