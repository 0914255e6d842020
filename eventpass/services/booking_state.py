import enum
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select as sa_select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventpass.models.models import Booking, BookingStatus, PaymentStatus

logger = logging.getLogger(__name__)


class PaymentOutcome(str, enum.Enum):
    APPLIED = "applied"
    ALREADY_PAID = "already_paid"
    UNKNOWN_BOOKING = "unknown_booking"


class BookingStateMachine:
    """Owns the booking status fields.

    Every mutation is a single conditional UPDATE keyed by booking id, so
    duplicate webhooks and a webhook racing a manual approval cannot
    interleave a read and a write.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, booking_id: str) -> Optional[Booking]:
        async with self.session_factory() as db:
            res = await db.execute(sa_select(Booking).where(Booking.id == booking_id))
            return res.scalars().first()

    async def mark_initiated(self, booking_id: str, gateway_order_id: str) -> bool:
        upd = (
            sa_update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.payment_status.in_([PaymentStatus.NONE.value, PaymentStatus.INITIATED.value]))
            .values(payment_status=PaymentStatus.INITIATED.value, gateway_order_id=str(gateway_order_id))
            .execution_options(synchronize_session=False)
        )
        rowcount = await self._execute(upd)
        if not rowcount:
            logger.warning("Booking %s not marked INITIATED (missing or already settled)", booking_id)
        return bool(rowcount)

    async def apply_payment_result(
        self, booking_id: str, success: bool, transaction_id: Optional[str], amount: Optional[Decimal]
    ) -> PaymentOutcome:
        upd = (
            sa_update(Booking)
            .where(Booking.id == booking_id)
            # PAID is terminal: redeliveries and late failures leave it alone
            .where(Booking.payment_status != PaymentStatus.PAID.value)
            .execution_options(synchronize_session=False)
        )
        if success:
            upd = upd.values(
                status=BookingStatus.APPROVED.value,
                payment_status=PaymentStatus.PAID.value,
                gateway_transaction_id=transaction_id,
                amount_paid=amount,
            )
        else:
            upd = upd.values(payment_status=PaymentStatus.FAILED.value)

        if await self._execute(upd):
            logger.info("Booking %s payment %s (txn=%s)", booking_id, "PAID" if success else "FAILED", transaction_id)
            return PaymentOutcome.APPLIED

        # nothing updated: either already paid or not ours
        if await self.get(booking_id) is None:
            logger.warning("Payment result for unknown booking %s (txn=%s)", booking_id, transaction_id)
            return PaymentOutcome.UNKNOWN_BOOKING
        logger.info("Booking %s already PAID; ignoring redelivered result (txn=%s)", booking_id, transaction_id)
        return PaymentOutcome.ALREADY_PAID

    async def approve(self, booking_id: str) -> bool:
        """Manual approval; returns False when the booking is unknown or already approved."""
        upd = (
            sa_update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.status != BookingStatus.APPROVED.value)
            .values(status=BookingStatus.APPROVED.value)
            .execution_options(synchronize_session=False)
        )
        return bool(await self._execute(upd))

    async def _execute(self, stmt) -> int:
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(stmt)
            return result.rowcount
