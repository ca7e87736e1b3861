from marketplace.models.business import Business
from marketplace.models.client import Client
from marketplace.models.service import Service
from marketplace.models.availability import Availability, SlotStatus
from marketplace.models.booking import Booking, BookingStatus
from marketplace.models.review import Review

__all__ = [
    "Business", "Client", "Service",
    "Availability", "SlotStatus",
    "Booking", "BookingStatus",
    "Review",
]
