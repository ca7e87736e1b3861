from marketplace.schemas.auth import ClientRegister, BusinessRegister, LoginRequest, AuthResponse
from marketplace.schemas.catalog import (
    ServiceCreate, ServiceUpdate, ServiceResponse,
    BusinessListing, BusinessDetail, BusinessProfile, BusinessStats,
)
from marketplace.schemas.availability import SlotUpsertRequest, SlotUpsertResponse, SlotResponse
from marketplace.schemas.booking import (
    BookingCreate, BookingResponse, BookingCreatedResponse, BookingActionResponse,
)
from marketplace.schemas.review import ReviewCreate, ReviewResponse

__all__ = [
    "ClientRegister", "BusinessRegister", "LoginRequest", "AuthResponse",
    "ServiceCreate", "ServiceUpdate", "ServiceResponse",
    "BusinessListing", "BusinessDetail", "BusinessProfile", "BusinessStats",
    "SlotUpsertRequest", "SlotUpsertResponse", "SlotResponse",
    "BookingCreate", "BookingResponse", "BookingCreatedResponse", "BookingActionResponse",
    "ReviewCreate", "ReviewResponse",
]
