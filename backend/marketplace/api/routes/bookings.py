"""
Booking endpoints: creation, lifecycle transitions, listings and reviews.
"""

from fastapi import APIRouter, Depends, status

from marketplace.api.deps import get_booking_engine
from marketplace.core.logging import get_logger
from marketplace.core.security import Subject, get_current_subject, require_business, require_client
from marketplace.schemas.booking import (
    BookingActionResponse, BookingCreate, BookingCreatedResponse, BookingReceipt, BookingResponse,
    BusinessContact,
)
from marketplace.schemas.review import ReviewCreate, ReviewResponse
from marketplace.services.booking_engine import BookingEngine
from marketplace.services.cache_service import invalidate_listing_cache

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    subject: Subject = Depends(require_client),
    engine: BookingEngine = Depends(get_booking_engine),
):
    """
    Book a slot.

    The slot is reserved with a conditional update in the same transaction
    that inserts the booking; of two concurrent requests for one slot, one
    gets 201 and the other 409.
    """
    created = await engine.create_booking(subject.id, data.business_id, data.service_id, data.date, data.time)
    await invalidate_listing_cache()

    booking = created.booking
    return BookingCreatedResponse(
        message="Booking created",
        booking=BookingReceipt(
            id=booking.id,
            confirmation_code=booking.confirmation_code,
            date=booking.date,
            time=booking.time,
            status=booking.status,
            service=created.service.name,
            price=booking.price,
            commission_amount=booking.commission_amount,
            business=BusinessContact.model_validate(created.business),
            cancellation_policy=created.cancellation_policy,
        ),
    )


@router.get("/my", response_model=list[BookingResponse])
async def list_my_bookings(
    subject: Subject = Depends(get_current_subject),
    engine: BookingEngine = Depends(get_booking_engine),
):
    """Clients: own bookings, newest first. Businesses: agenda, earliest first."""
    if subject.type == "client":
        return await engine.client_bookings(subject.id)
    return await engine.business_bookings(subject.id)


@router.get("/pending", response_model=list[BookingResponse])
async def list_pending_bookings(
    subject: Subject = Depends(require_business),
    engine: BookingEngine = Depends(get_booking_engine),
):
    return await engine.pending_bookings(subject.id)


@router.put("/{booking_id}/confirm", response_model=BookingActionResponse)
async def confirm_booking(
    booking_id: int,
    subject: Subject = Depends(require_business),
    engine: BookingEngine = Depends(get_booking_engine),
):
    booking = await engine.confirm(booking_id, subject.id)
    return BookingActionResponse(message="Booking confirmed", booking_id=booking.id, status=booking.status)


@router.put("/{booking_id}/reject", response_model=BookingActionResponse)
async def reject_booking(
    booking_id: int,
    subject: Subject = Depends(require_business),
    engine: BookingEngine = Depends(get_booking_engine),
):
    """Reject a booking; the slot is released and the client is not charged."""
    booking = await engine.reject(booking_id, subject.id)
    await invalidate_listing_cache()
    return BookingActionResponse(
        message="Booking rejected, slot released", booking_id=booking.id, status=booking.status
    )


@router.put("/{booking_id}/complete", response_model=BookingActionResponse)
async def complete_booking(
    booking_id: int,
    subject: Subject = Depends(require_business),
    engine: BookingEngine = Depends(get_booking_engine),
):
    booking = await engine.complete(booking_id, subject.id)
    return BookingActionResponse(message="Booking completed", booking_id=booking.id, status=booking.status)


@router.put("/{booking_id}/cancel", response_model=BookingActionResponse)
async def cancel_booking(
    booking_id: int,
    subject: Subject = Depends(require_client),
    engine: BookingEngine = Depends(get_booking_engine),
):
    """
    Cancel a booking. Less than 24 hours before the appointment the client is
    charged half the price and the slot stays blocked.
    """
    booking = await engine.cancel(booking_id, subject.id)
    await invalidate_listing_cache()
    if booking.cancellation_charge > 0:
        message = f"Cancelled with a charge of {booking.cancellation_charge} (less than 24h notice)"
    else:
        message = "Cancelled free of charge"
    return BookingActionResponse(
        message=message,
        booking_id=booking.id,
        status=booking.status,
        cancellation_charge=booking.cancellation_charge,
    )


@router.post("/{booking_id}/review", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def review_booking(
    booking_id: int,
    data: ReviewCreate,
    subject: Subject = Depends(require_client),
    engine: BookingEngine = Depends(get_booking_engine),
):
    review, business = await engine.attach_review(booking_id, subject.id, data.rating, data.comment)
    await invalidate_listing_cache()
    return ReviewResponse(
        id=review.id,
        booking_id=review.booking_id,
        business_id=review.business_id,
        rating=review.rating,
        comment=review.comment,
        created_at=review.created_at,
        business_rating=business.rating,
        business_total_reviews=business.total_reviews,
    )
