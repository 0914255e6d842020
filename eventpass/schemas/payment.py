from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class PayerDetails(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)


class PaymentInitiateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(..., alias="bookingId", min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0)
    payer_details: PayerDetails = Field(..., alias="payerDetails")
    method: Literal["CARD", "WALLET"] = "CARD"


class PaymentInitiateResponse(BaseModel):
    success: bool = True
    url: str


class WebhookAck(BaseModel):
    received: bool
