"""
Booking engine: the booking lifecycle and everything it touches atomically.

STATE MACHINE
=============

    pending   --confirm (business)-->  confirmed
    pending   --reject  (business)-->  cancelled   slot released, never charged
    confirmed --reject  (business)-->  cancelled   slot released, never charged
    pending   --cancel  (client)---->  cancelled   slot released only without charge
    confirmed --cancel  (client)---->  cancelled   slot released only without charge
    confirmed --complete (business)->  completed   once the appointment has started

cancelled and completed are terminal.

Every operation is one store transaction. In create_booking the slot flip
(conditional update in the slot ledger) and the booking insert commit
together, so a lost race leaves neither a booked slot nor a booking behind.

Status changes are conditional writes (`... WHERE status IN (expected)`).
The status check at the top of each action is only a fast path: if a
concurrent action committed first, the write matches nothing and the loser
raises instead of overwriting it. Cancelling transitions run before the
slot is released, so a lost cancel never frees a slot.

MONEY
=====

commission_amount = price x commission_rate, 2dp half-up, fixed at creation.
Cancelling with less than FREE_CANCELLATION_HOURS notice costs
price x LATE_CANCELLATION_RATE (2dp half-up) AND keeps the slot blocked;
the business can reopen it later through the slot ledger.
"""

import time as perf
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from marketplace.core.config import Settings, get_settings
from marketplace.core.exceptions import (
    AlreadyCancelled, ConfirmationCodeExhausted, ConfirmationCodeTaken, DuplicateReview, InvalidRating,
    InvalidState, MarketplaceError, NotFound, SlotUnavailable,
)
from marketplace.core.logging import get_logger
from marketplace.core.metrics import (
    booking_latency, confirmation_code_collisions, record_booking_attempt, record_cancellation, record_notification_failure,
    record_transition, reviews_submitted,
)
from marketplace.models import Booking, BookingStatus, Business, Review, Service
from marketplace.repositories.base import MarketplaceStore, StoreTransaction
from marketplace.services import catalog_service, review_aggregator, slot_ledger
from marketplace.services.confirmation_codes import ConfirmationCodeGenerator
from marketplace.services.notifier import Notifier

logger = get_logger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_commission(price: Decimal, commission_rate: Decimal) -> Decimal:
    return to_cents(Decimal(str(price)) * Decimal(str(commission_rate)))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CreatedBooking:
    booking: Booking
    business: Business
    service: Service
    cancellation_policy: str


class BookingEngine:
    def __init__(
        self,
        store: MarketplaceStore,
        notifier: Notifier,
        codes: Optional[ConfirmationCodeGenerator] = None,
        clock: Callable[[], datetime] = utcnow,
        settings: Optional[Settings] = None,
        tz: Optional[tzinfo] = None,
    ):
        settings = settings or get_settings()
        self.store = store
        self.notifier = notifier
        self.codes = codes or ConfirmationCodeGenerator(
            prefix=settings.CONFIRMATION_CODE_PREFIX,
            length=settings.CONFIRMATION_CODE_LENGTH,
            max_attempts=settings.CONFIRMATION_CODE_MAX_ATTEMPTS,
        )
        self.clock = clock
        self.tz = tz or ZoneInfo(settings.MARKETPLACE_TIMEZONE)
        self.free_cancellation_window = timedelta(hours=settings.FREE_CANCELLATION_HOURS)
        self.late_cancellation_rate = Decimal(str(settings.LATE_CANCELLATION_RATE))

    # Policy

    @property
    def cancellation_policy(self) -> str:
        hours = int(self.free_cancellation_window.total_seconds() // 3600)
        percent = (self.late_cancellation_rate * 100).normalize()
        return (
            f"Free cancellation up to {hours} hours before the appointment. "
            f"Later cancellations are charged {percent:f}% of the price."
        )

    def today(self) -> date:
        return self.clock().astimezone(self.tz).date()

    def appointment_at(self, booking: Booking) -> datetime:
        return datetime.combine(booking.date, booking.time, tzinfo=self.tz)

    def cancellation_charge(self, booking: Booking, now: datetime) -> Decimal:
        """Charge for cancelling `booking` at `now`; zero with enough notice."""
        if self.appointment_at(booking) - now < self.free_cancellation_window:
            return to_cents(Decimal(str(booking.price)) * self.late_cancellation_rate)
        return ZERO

    # Creation

    async def create_booking(
        self,
        client_id: int,
        business_id: int,
        service_id: int,
        slot_date,
        slot_time,
    ) -> CreatedBooking:
        """
        Reserve the slot and create a pending booking in one transaction.

        Raises SlotUnavailable (slot missing, booked, or lost to a concurrent
        request) or ServiceNotFound (inactive or another business's service).
        ConfirmationCodeExhausted if no unused code turns up in time.
        """
        started = perf.perf_counter()
        try:
            async with self.store.transaction() as tx:
                if not await slot_ledger.is_available(tx, business_id, slot_date, slot_time):
                    raise SlotUnavailable()
                service = await catalog_service.get_service(tx, service_id, business_id)
                business = await catalog_service.get_business(tx, business_id)

                price = Decimal(str(service.price))
                commission = compute_commission(price, business.commission_rate)

                slot = await slot_ledger.reserve(tx, business_id, slot_date, slot_time)
                booking = await self._insert_booking(
                    tx,
                    client_id=client_id,
                    business_id=business_id,
                    service_id=service.id,
                    availability_id=slot.id,
                    date=slot.date,
                    time=slot.time,
                    price=price,
                    commission_amount=commission,
                    status=BookingStatus.PENDING,
                    cancellation_charge=ZERO,
                )
        except SlotUnavailable:
            record_booking_attempt("conflict")
            logger.warning(
                "booking_failed_slot_unavailable",
                business_id=business_id,
                date=str(slot_date),
                time=str(slot_time),
            )
            raise
        except MarketplaceError as e:
            record_booking_attempt("error")
            logger.warning("booking_failed", business_id=business_id, service_id=service_id, error=e.code)
            raise
        finally:
            booking_latency.observe(perf.perf_counter() - started)

        record_booking_attempt("success")
        logger.info(
            "booking_created",
            booking_id=booking.id,
            client_id=client_id,
            business_id=business_id,
            confirmation_code=booking.confirmation_code,
            price=str(booking.price),
            commission=str(booking.commission_amount),
        )
        await self._notify(
            "booking_requested",
            business.email,
            self._booking_fields(booking, service=service.name),
        )
        return CreatedBooking(
            booking=booking,
            business=business,
            service=service,
            cancellation_policy=self.cancellation_policy,
        )

    # Business actions

    async def confirm(self, booking_id: int, business_id: int) -> Booking:
        async with self.store.transaction() as tx:
            booking = await self._business_booking(tx, booking_id, business_id)
            if booking.status != BookingStatus.PENDING:
                raise InvalidState(f"Only pending bookings can be confirmed (status: {booking.status})")

            booking = await self._transition(
                tx, booking, [BookingStatus.PENDING], status=BookingStatus.CONFIRMED
            )
            recipient, business_name = await self._client_email_and_business_name(tx, booking)

        record_transition("confirm")
        logger.info("booking_confirmed", booking_id=booking.id, business_id=business_id)
        await self._notify("booking_confirmed", recipient, self._booking_fields(booking, business=business_name))
        return booking

    async def reject(self, booking_id: int, business_id: int) -> Booking:
        """Cancel on the business's side. Always frees the slot, never charges."""
        async with self.store.transaction() as tx:
            booking = await self._business_booking(tx, booking_id, business_id)
            if booking.status == BookingStatus.CANCELLED:
                raise AlreadyCancelled()
            if booking.status == BookingStatus.COMPLETED:
                raise InvalidState("Completed bookings cannot be rejected")

            booking = await self._transition(
                tx, booking, BookingStatus.CANCELLABLE,
                status=BookingStatus.CANCELLED, cancellation_charge=ZERO,
            )
            await slot_ledger.release(tx, booking.availability_id)
            recipient, business_name = await self._client_email_and_business_name(tx, booking)

        record_transition("reject")
        logger.info("booking_rejected", booking_id=booking.id, business_id=business_id)
        await self._notify("booking_rejected", recipient, self._booking_fields(booking, business=business_name))
        return booking

    async def complete(self, booking_id: int, business_id: int) -> Booking:
        async with self.store.transaction() as tx:
            booking = await self._business_booking(tx, booking_id, business_id)
            if booking.status != BookingStatus.CONFIRMED:
                raise InvalidState(f"Only confirmed bookings can be completed (status: {booking.status})")
            if self.clock() < self.appointment_at(booking):
                raise InvalidState("The appointment has not started yet")

            booking = await self._transition(
                tx, booking, [BookingStatus.CONFIRMED], status=BookingStatus.COMPLETED
            )

        record_transition("complete")
        logger.info("booking_completed", booking_id=booking.id, business_id=business_id)
        return booking

    # Client actions

    async def cancel(self, booking_id: int, client_id: int) -> Booking:
        """
        Cancel on the client's side.

        With at least FREE_CANCELLATION_HOURS of notice the slot goes back on
        sale at no charge. With less, the client is charged and the slot stays
        booked.
        """
        async with self.store.transaction() as tx:
            booking = await tx.get_booking(booking_id)
            if not booking or booking.client_id != client_id:
                raise NotFound("Booking not found")
            if booking.status == BookingStatus.CANCELLED:
                raise AlreadyCancelled()
            if booking.status == BookingStatus.COMPLETED:
                raise InvalidState("Completed bookings cannot be cancelled")

            charge = self.cancellation_charge(booking, self.clock())
            late = charge > ZERO
            booking = await self._transition(
                tx, booking, BookingStatus.CANCELLABLE,
                status=BookingStatus.CANCELLED, cancellation_charge=charge,
            )
            if not late:
                await slot_ledger.release(tx, booking.availability_id)
            business = await tx.get_business(booking.business_id)

        record_transition("cancel")
        record_cancellation(late)
        logger.info(
            "booking_cancelled",
            booking_id=booking.id,
            client_id=client_id,
            cancellation_charge=str(charge),
            slot_released=not late,
        )
        await self._notify(
            "booking_cancelled",
            business.email if business else None,
            self._booking_fields(booking, cancellation_charge=str(charge)),
        )
        return booking

    async def attach_review(
        self,
        booking_id: int,
        client_id: int,
        rating: Any,
        comment: Optional[str] = None,
    ) -> tuple[Review, Business]:
        """Review a completed booking and refresh the business's rating in the same transaction."""
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidRating()

        async with self.store.transaction() as tx:
            booking = await tx.get_booking(booking_id)
            if not booking or booking.client_id != client_id or booking.status != BookingStatus.COMPLETED:
                raise InvalidState("Only completed bookings can be reviewed")
            if await tx.get_review_for_booking(booking_id):
                raise DuplicateReview()

            review = await tx.add_review(
                Review(
                    booking_id=booking.id,
                    client_id=client_id,
                    business_id=booking.business_id,
                    rating=rating,
                    comment=comment,
                )
            )
            business = await review_aggregator.recompute(tx, booking.business_id)

        reviews_submitted.inc()
        logger.info("review_attached", booking_id=booking_id, business_id=business.id, rating=rating)
        return review, business

    # Listings

    async def client_bookings(self, client_id: int) -> list[Booking]:
        """Newest appointment first."""
        async with self.store.transaction() as tx:
            bookings = await tx.list_bookings(client_id=client_id)
        return sorted(bookings, key=lambda b: (b.date, b.time), reverse=True)

    async def business_bookings(self, business_id: int) -> list[Booking]:
        """Upcoming agenda order: earliest appointment first."""
        async with self.store.transaction() as tx:
            bookings = await tx.list_bookings(business_id=business_id)
        return sorted(bookings, key=lambda b: (b.date, b.time))

    async def pending_bookings(self, business_id: int) -> list[Booking]:
        """Oldest request first."""
        async with self.store.transaction() as tx:
            bookings = await tx.list_bookings(business_id=business_id, statuses=[BookingStatus.PENDING])
        return sorted(bookings, key=lambda b: (b.created_at, b.id))

    # Helpers

    async def _insert_booking(self, tx: StoreTransaction, **fields) -> Booking:
        # The pre-check in issue() cannot see codes a concurrent transaction is
        # about to commit; the unique constraint can.
        for attempt in range(1, self.codes.max_attempts + 1):
            code = await self.codes.issue(tx.confirmation_code_exists)
            try:
                return await tx.add_booking(Booking(confirmation_code=code, **fields))
            except ConfirmationCodeTaken:
                confirmation_code_collisions.inc()
                logger.warning("confirmation_code_taken", code=code, attempt=attempt)

        logger.error("confirmation_code_exhausted", attempts=self.codes.max_attempts)
        raise ConfirmationCodeExhausted()

    async def _transition(
        self, tx: StoreTransaction, booking: Booking, expected, **values
    ) -> Booking:
        """
        Apply `values` only if the booking is still in one of the `expected`
        statuses, and return the booking as stored afterwards.

        The status read before this call may be stale: a concurrent transition
        that committed in between makes the conditional write match nothing.
        """
        if not await tx.transition_booking(booking.id, expected, **values):
            current = await tx.get_booking(booking.id)
            status = current.status if current else None
            logger.info("booking_transition_lost", booking_id=booking.id, status=status)
            if status == BookingStatus.CANCELLED and values.get("status") == BookingStatus.CANCELLED:
                raise AlreadyCancelled()
            raise InvalidState(f"Booking changed concurrently (status: {status})")
        return await tx.get_booking(booking.id)

    async def _business_booking(self, tx: StoreTransaction, booking_id: int, business_id: int) -> Booking:
        booking = await tx.get_booking(booking_id)
        if not booking or booking.business_id != business_id:
            raise NotFound("Booking not found")
        return booking

    async def _client_email_and_business_name(self, tx: StoreTransaction, booking: Booking):
        client = await tx.get_client(booking.client_id)
        business = await tx.get_business(booking.business_id)
        return (client.email if client else None), (business.name if business else "")

    def _booking_fields(self, booking: Booking, **extra) -> dict[str, Any]:
        fields = {
            "confirmation_code": booking.confirmation_code,
            "date": booking.date.isoformat(),
            "time": booking.time.strftime("%H:%M"),
        }
        fields.update(extra)
        return fields

    async def _notify(self, template_id: str, recipient: Optional[str], fields: dict[str, Any]) -> None:
        if not recipient:
            return
        try:
            await self.notifier.notify(template_id, recipient, fields)
        except Exception as e:
            # Notifications never fail a booking operation
            record_notification_failure(template_id)
            logger.error("notification_failed", template=template_id, to=recipient, error=str(e))
