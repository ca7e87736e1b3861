"""
SQLAlchemy implementation of the marketplace store.

CONCURRENCY STRATEGY: Conditional Update
========================================

Problem:
  Two clients try to book the same slot simultaneously.
  Both read status='available', both flip it to 'booked', both insert a booking.
  Result: Double-booking.

Solution:
  The flip is a single statement that re-checks the precondition:

    UPDATE availability SET status = 'booked'
    WHERE id = :slot_id AND status = 'available'

  If rows_affected == 0, another transaction already took the slot.
  Under PostgreSQL READ COMMITTED the second UPDATE blocks on the row lock,
  then re-evaluates the WHERE clause against the committed row and matches
  nothing. No retry is needed: losing the race is a final answer
  (SlotUnavailable), unlike a seat counter where another attempt may succeed.

  Safety net: partial unique index on bookings(availability_id) for
  non-cancelled rows. Any path that slipped past the conditional update fails
  the INSERT, which surfaces as SlotUnavailable.

Booking transitions use the same pattern:

    UPDATE bookings SET status = :new WHERE id = :id AND status IN (:expected)

  so a confirm racing a cancel cannot overwrite it; the loser sees rowcount 0.

Rating recomputation locks the business row (SELECT ... FOR UPDATE) before
reading the review set, so concurrent reviews are aggregated one at a time.
"""

from contextlib import asynccontextmanager
from datetime import date, time
from decimal import Decimal
from typing import AsyncIterator, Callable, Iterable, Optional

from sqlalchemy import Select, exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from marketplace.core.exceptions import (
    ConfirmationCodeTaken, DuplicateReview, EmailAlreadyRegistered, MarketplaceError, SlotUnavailable,
)
from marketplace.db.session import create_session_factory
from marketplace.models import (
    Availability, Booking, BookingStatus, Business, Client, Review, Service, SlotStatus,
)
from marketplace.repositories.base import MarketplaceStore, StoreTransaction


ConflictMapper = Callable[[str], Optional[MarketplaceError]]


def _email_conflict(message: str) -> Optional[MarketplaceError]:
    return EmailAlreadyRegistered() if "email" in message else None


def _booking_conflict(message: str) -> Optional[MarketplaceError]:
    if "confirmation_code" in message:
        return ConfirmationCodeTaken()
    if "availability" in message:
        return SlotUnavailable()
    return None


def _review_conflict(message: str) -> Optional[MarketplaceError]:
    return DuplicateReview() if "booking_id" in message else None


def business_for_update(business_id: int) -> Select:
    return select(Business).where(Business.id == business_id).with_for_update()


class SqlAlchemyTransaction(StoreTransaction):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _add(self, obj, conflict: Optional[ConflictMapper] = None):
        if conflict is None:
            self.session.add(obj)
            await self.session.flush()
        else:
            # Savepoint: a unique violation must not poison the outer transaction
            try:
                async with self.session.begin_nested():
                    self.session.add(obj)
                    await self.session.flush()
            except IntegrityError as e:
                message = str(e.orig)
                error = conflict(message) if "unique" in message.lower() else None
                if error is None:
                    raise
                raise error from e
        await self.session.refresh(obj)
        return obj

    async def _save(self, obj) -> None:
        await self.session.flush()
        await self.session.refresh(obj)

    # Businesses & clients

    async def get_business(self, business_id: int) -> Optional[Business]:
        return await self.session.get(Business, business_id)

    async def get_business_by_email(self, email: str) -> Optional[Business]:
        result = await self.session.execute(select(Business).where(Business.email == email))
        return result.scalar_one_or_none()

    async def add_business(self, business: Business) -> Business:
        return await self._add(business, _email_conflict)

    async def get_business_for_update(self, business_id: int) -> Optional[Business]:
        result = await self.session.execute(
            business_for_update(business_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def save_business(self, business: Business) -> None:
        await self._save(business)

    async def list_businesses(
        self,
        category: Optional[str] = None,
        slot_date: Optional[date] = None,
        slot_time: Optional[time] = None,
    ) -> list[tuple[Business, Optional[Decimal]]]:
        min_price = (
            select(func.min(Service.price))
            .where(Service.business_id == Business.id, Service.active.is_(True))
            .correlate(Business)
            .scalar_subquery()
        )
        query = select(Business, min_price.label("min_price")).where(Business.active.is_(True))

        if category:
            query = query.where(Business.category == category)
        if slot_date is not None and slot_time is not None:
            query = query.where(
                exists().where(
                    Availability.business_id == Business.id,
                    Availability.date == slot_date,
                    Availability.time == slot_time,
                    Availability.status == SlotStatus.AVAILABLE,
                )
            )

        result = await self.session.execute(query.order_by(Business.rating.desc(), Business.id.asc()))
        return [(row.Business, row.min_price) for row in result.all()]

    async def get_client(self, client_id: int) -> Optional[Client]:
        return await self.session.get(Client, client_id)

    async def get_client_by_email(self, email: str) -> Optional[Client]:
        result = await self.session.execute(select(Client).where(Client.email == email))
        return result.scalar_one_or_none()

    async def add_client(self, client: Client) -> Client:
        return await self._add(client, _email_conflict)

    # Services

    async def get_service(self, service_id: int, business_id: int, active_only: bool = True) -> Optional[Service]:
        query = select(Service).where(Service.id == service_id, Service.business_id == business_id)
        if active_only:
            query = query.where(Service.active.is_(True))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_services(self, business_id: int, active_only: bool = True) -> list[Service]:
        query = select(Service).where(Service.business_id == business_id)
        if active_only:
            query = query.where(Service.active.is_(True))
        result = await self.session.execute(query.order_by(Service.id))
        return list(result.scalars().all())

    async def add_service(self, service: Service) -> Service:
        return await self._add(service)

    async def save_service(self, service: Service) -> None:
        await self._save(service)

    # Availability slots

    async def find_slot(self, business_id: int, slot_date: date, slot_time: time) -> Optional[Availability]:
        result = await self.session.execute(
            select(Availability).where(
                Availability.business_id == business_id,
                Availability.date == slot_date,
                Availability.time == slot_time,
            )
        )
        return result.scalar_one_or_none()

    async def get_slot(self, slot_id: int) -> Optional[Availability]:
        return await self.session.get(Availability, slot_id)

    async def mark_slot_booked(self, slot_id: int) -> bool:
        result = await self.session.execute(
            update(Availability)
            .where(Availability.id == slot_id, Availability.status == SlotStatus.AVAILABLE)
            .values(status=SlotStatus.BOOKED)
        )
        return result.rowcount == 1

    async def mark_slot_available(self, slot_id: int) -> None:
        await self.session.execute(
            update(Availability)
            .where(Availability.id == slot_id)
            .values(status=SlotStatus.AVAILABLE)
        )

    async def upsert_slot(self, business_id: int, slot_date: date, slot_time: time, status: str) -> None:
        # Portable upsert: the unique constraint serializes concurrent inserts,
        # and the conditional UPDATE never touches a booked row.
        slot = await self.find_slot(business_id, slot_date, slot_time)
        if slot is None:
            self.session.add(
                Availability(business_id=business_id, date=slot_date, time=slot_time, status=status)
            )
            await self.session.flush()
            return
        await self.session.execute(
            update(Availability)
            .where(Availability.id == slot.id, Availability.status != SlotStatus.BOOKED)
            .values(status=status)
        )

    async def list_slots(
        self,
        business_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[Availability]:
        query = select(Availability).where(Availability.business_id == business_id)
        if date_from is not None:
            query = query.where(Availability.date >= date_from)
        if date_to is not None:
            query = query.where(Availability.date <= date_to)
        if status is not None:
            query = query.where(Availability.status == status)
        result = await self.session.execute(query.order_by(Availability.date, Availability.time))
        return list(result.scalars().all())

    # Bookings

    async def confirmation_code_exists(self, code: str) -> bool:
        result = await self.session.execute(
            select(Booking.id).where(Booking.confirmation_code == code).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def add_booking(self, booking: Booking) -> Booking:
        return await self._add(booking, _booking_conflict)

    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        return await self.session.get(Booking, booking_id, populate_existing=True)

    async def transition_booking(self, booking_id: int, expected: Iterable[str], **values) -> bool:
        result = await self.session.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status.in_(list(expected)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_bookings(
        self,
        client_id: Optional[int] = None,
        business_id: Optional[int] = None,
        statuses: Optional[Iterable[str]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Booking]:
        query = select(Booking)
        if client_id is not None:
            query = query.where(Booking.client_id == client_id)
        if business_id is not None:
            query = query.where(Booking.business_id == business_id)
        if statuses is not None:
            query = query.where(Booking.status.in_(list(statuses)))
        if date_from is not None:
            query = query.where(Booking.date >= date_from)
        if date_to is not None:
            query = query.where(Booking.date <= date_to)
        result = await self.session.execute(query.order_by(Booking.id))
        return list(result.scalars().all())

    async def live_bookings_for_slot(self, slot_id: int) -> list[Booking]:
        result = await self.session.execute(
            select(Booking).where(
                Booking.availability_id == slot_id,
                Booking.status != BookingStatus.CANCELLED,
            )
        )
        return list(result.scalars().all())

    # Reviews

    async def get_review_for_booking(self, booking_id: int) -> Optional[Review]:
        result = await self.session.execute(select(Review).where(Review.booking_id == booking_id))
        return result.scalar_one_or_none()

    async def add_review(self, review: Review) -> Review:
        return await self._add(review, _review_conflict)

    async def list_review_ratings(self, business_id: int) -> list[int]:
        result = await self.session.execute(
            select(Review.rating).where(Review.business_id == business_id)
        )
        return list(result.scalars().all())


class SqlAlchemyStore(MarketplaceStore):
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.sessionmaker = create_session_factory(engine)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlAlchemyTransaction]:
        async with self.sessionmaker() as session:
            async with session.begin():
                yield SqlAlchemyTransaction(session)

    async def close(self) -> None:
        await self.engine.dispose()
