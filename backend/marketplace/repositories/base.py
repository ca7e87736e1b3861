"""
Storage interface for the booking core.

The booking engine, slot ledger, catalog and review aggregator talk to a
`StoreTransaction` only. Each call to `MarketplaceStore.transaction()` opens
one atomic unit: everything written through the yielded transaction commits
together when the block exits normally and is discarded if it raises.

Implementations:
- SqlAlchemyStore: PostgreSQL (asyncpg) in production, SQLite in tests
- MemoryStore: single-process fake, transactions serialized by a lock
"""

from abc import ABC, abstractmethod
from datetime import date, time
from decimal import Decimal
from typing import AsyncContextManager, Iterable, Optional

from marketplace.models import Availability, Booking, Business, Client, Review, Service


class StoreTransaction(ABC):
    """One atomic unit of work against the marketplace tables."""

    # Businesses & clients

    @abstractmethod
    async def get_business(self, business_id: int) -> Optional[Business]:
        pass

    @abstractmethod
    async def get_business_by_email(self, email: str) -> Optional[Business]:
        pass

    @abstractmethod
    async def add_business(self, business: Business) -> Business:
        """Raises EmailAlreadyRegistered on a duplicate email."""
        pass

    @abstractmethod
    async def get_business_for_update(self, business_id: int) -> Optional[Business]:
        """Read the business and lock its row until the transaction ends."""
        pass

    @abstractmethod
    async def save_business(self, business: Business) -> None:
        pass

    @abstractmethod
    async def list_businesses(
        self,
        category: Optional[str] = None,
        slot_date: Optional[date] = None,
        slot_time: Optional[time] = None,
    ) -> list[tuple[Business, Optional[Decimal]]]:
        """
        Active businesses with the minimum price of their active services.

        When both slot_date and slot_time are given, only businesses holding an
        available slot at exactly that date/time are returned. Ordered by
        rating, best first.
        """
        pass

    @abstractmethod
    async def get_client(self, client_id: int) -> Optional[Client]:
        pass

    @abstractmethod
    async def get_client_by_email(self, email: str) -> Optional[Client]:
        pass

    @abstractmethod
    async def add_client(self, client: Client) -> Client:
        """Raises EmailAlreadyRegistered on a duplicate email."""
        pass

    # Services

    @abstractmethod
    async def get_service(self, service_id: int, business_id: int, active_only: bool = True) -> Optional[Service]:
        pass

    @abstractmethod
    async def list_services(self, business_id: int, active_only: bool = True) -> list[Service]:
        pass

    @abstractmethod
    async def add_service(self, service: Service) -> Service:
        pass

    @abstractmethod
    async def save_service(self, service: Service) -> None:
        pass

    # Availability slots

    @abstractmethod
    async def find_slot(self, business_id: int, slot_date: date, slot_time: time) -> Optional[Availability]:
        pass

    @abstractmethod
    async def get_slot(self, slot_id: int) -> Optional[Availability]:
        pass

    @abstractmethod
    async def mark_slot_booked(self, slot_id: int) -> bool:
        """
        Flip the slot to booked only if it is currently available.

        Must be a single conditional write, never a read followed by a write.
        Returns False when the slot was not available (a concurrent
        reservation won).
        """
        pass

    @abstractmethod
    async def mark_slot_available(self, slot_id: int) -> None:
        pass

    @abstractmethod
    async def upsert_slot(self, business_id: int, slot_date: date, slot_time: time, status: str) -> None:
        """Insert the slot, or overwrite its status unless it is booked."""
        pass

    @abstractmethod
    async def list_slots(
        self,
        business_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[Availability]:
        """Slots ordered by date then time; date bounds are inclusive."""
        pass

    # Bookings

    @abstractmethod
    async def confirmation_code_exists(self, code: str) -> bool:
        pass

    @abstractmethod
    async def add_booking(self, booking: Booking) -> Booking:
        """
        Insert a booking.

        Raises SlotUnavailable if another live booking holds the slot and
        ConfirmationCodeTaken if the code is already used.
        """
        pass

    @abstractmethod
    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        """Current committed state of the booking, never a cached copy."""
        pass

    @abstractmethod
    async def transition_booking(self, booking_id: int, expected: Iterable[str], **values) -> bool:
        """
        Apply `values` only if the booking status is still one of `expected`.

        Returns False when a concurrent transaction moved the booking first;
        nothing is written in that case.
        """
        pass

    @abstractmethod
    async def list_bookings(
        self,
        client_id: Optional[int] = None,
        business_id: Optional[int] = None,
        statuses: Optional[Iterable[str]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Booking]:
        """Bookings matching every given filter, ordered by id."""
        pass

    @abstractmethod
    async def live_bookings_for_slot(self, slot_id: int) -> list[Booking]:
        """Non-cancelled bookings holding the slot."""
        pass

    # Reviews

    @abstractmethod
    async def get_review_for_booking(self, booking_id: int) -> Optional[Review]:
        pass

    @abstractmethod
    async def add_review(self, review: Review) -> Review:
        """Raises DuplicateReview if the booking already has one."""
        pass

    @abstractmethod
    async def list_review_ratings(self, business_id: int) -> list[int]:
        pass


class MarketplaceStore(ABC):
    """Factory of atomic transactions over the marketplace tables."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager[StoreTransaction]:
        pass

    async def close(self) -> None:
        """Release pooled resources on shutdown."""
        pass
