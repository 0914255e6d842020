from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SendTicketRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone: str = Field(..., min_length=1)
    user_name: str = Field("", alias="userName")
    event_title: str = Field("", alias="eventTitle")
    date: str = ""
    booking_id: str = Field(..., alias="bookingId", min_length=1, max_length=64)


class SendTicketResponse(BaseModel):
    success: bool
    identity: Optional[str] = None
    reason: Optional[str] = None
