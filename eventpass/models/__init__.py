from .models import *

__all__ = [
    "Booking",
    "BookingStatus",
    "PaymentStatus",
]
