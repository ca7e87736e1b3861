"""
Domain errors raised by the booking core.

Services raise these; the API layer translates them into JSON responses
through a single exception handler registered in `marketplace.main`.
None of them is fatal to the process.
"""

from fastapi import status


class MarketplaceError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "marketplace_error"
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(MarketplaceError):
    """Entity absent OR not owned by the caller. The two are not distinguished."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Not found"


class SlotUnavailable(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "slot_unavailable"
    default_detail = "Time slot is not available"


class ServiceNotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "service_not_found"
    default_detail = "Service not found"


class InvalidRating(MarketplaceError):
    code = "invalid_rating"
    default_detail = "Rating must be an integer between 1 and 5"


class InvalidState(MarketplaceError):
    code = "invalid_state"
    default_detail = "Booking cannot make this transition from its current status"


class DuplicateReview(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_review"
    default_detail = "This booking has already been reviewed"


class AlreadyCancelled(MarketplaceError):
    code = "already_cancelled"
    default_detail = "Booking is already cancelled"


class Forbidden(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "Operation not allowed for this account type"


class Unauthenticated(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_detail = "Authentication token required"


class InvalidToken(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_token"
    default_detail = "Invalid or expired token"


class InvalidCredentials(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_credentials"
    default_detail = "Invalid email or password"


class EmailAlreadyRegistered(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "email_registered"
    default_detail = "Email already registered"


class ConfirmationCodeTaken(MarketplaceError):
    """A concurrent booking committed the same code first. The engine retries."""

    status_code = status.HTTP_409_CONFLICT
    code = "confirmation_code_taken"
    default_detail = "Confirmation code already in use"


class ConfirmationCodeExhausted(MarketplaceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "confirmation_code_exhausted"
    default_detail = "Could not allocate a unique confirmation code"
