"""
In-memory implementation of the marketplace store.

Used by the test suite and by `STORAGE_BACKEND=memory` for local runs.
Rows are kept as plain column dicts; callers always receive fresh model
instances, so nothing they mutate is visible until the store writes it.

Isolation: one asyncio.Lock held for the whole transaction, so transactions
are serial. Writes are staged per transaction and merged on normal exit;
an exception inside the block discards them.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import AsyncIterator, Iterable, Optional

from marketplace.core.exceptions import (
    ConfirmationCodeTaken, DuplicateReview, EmailAlreadyRegistered, SlotUnavailable,
)
from marketplace.models import (
    Availability, Booking, BookingStatus, Business, Client, Review, Service, SlotStatus,
)
from marketplace.repositories.base import MarketplaceStore, StoreTransaction


def _columns(model) -> list:
    return list(model.__table__.columns)


class MemoryTransaction(StoreTransaction):
    def __init__(self, store: "MemoryStore"):
        self._store = store
        self._staged: dict[str, dict[int, dict]] = {}
        self._next_ids = dict(store.next_ids)

    # Row plumbing

    def _table(self, model) -> str:
        return model.__tablename__

    def _rows(self, model) -> list[dict]:
        table = self._table(model)
        merged = dict(self._store.tables.get(table, {}))
        merged.update(self._staged.get(table, {}))
        return [merged[key] for key in sorted(merged)]

    def _row(self, model, row_id: int) -> Optional[dict]:
        table = self._table(model)
        staged = self._staged.get(table, {})
        if row_id in staged:
            return staged[row_id]
        return self._store.tables.get(table, {}).get(row_id)

    def _load(self, model, row: Optional[dict]):
        if row is None:
            return None
        return model(**row)

    def _all(self, model, predicate=None) -> list:
        return [model(**row) for row in self._rows(model) if predicate is None or predicate(row)]

    def _first(self, model, predicate):
        for row in self._rows(model):
            if predicate(row):
                return model(**row)
        return None

    def _put(self, obj) -> None:
        model = type(obj)
        row = {column.key: getattr(obj, column.key) for column in _columns(model)}
        row["updated_at"] = datetime.now(timezone.utc)
        self._staged.setdefault(self._table(model), {})[row["id"]] = row

    def _insert(self, obj):
        model = type(obj)
        table = self._table(model)
        for column in _columns(model):
            if getattr(obj, column.key) is None and column.default is not None and column.default.is_scalar:
                setattr(obj, column.key, column.default.arg)
        self._next_ids[table] = self._next_ids.get(table, 0) + 1
        obj.id = self._next_ids[table]
        obj.created_at = datetime.now(timezone.utc)
        self._put(obj)
        obj.updated_at = obj.created_at
        return obj

    def commit(self) -> None:
        for table, rows in self._staged.items():
            self._store.tables.setdefault(table, {}).update(rows)
        self._store.next_ids = self._next_ids
        self._staged = {}

    # Businesses & clients

    async def get_business(self, business_id: int) -> Optional[Business]:
        return self._load(Business, self._row(Business, business_id))

    async def get_business_by_email(self, email: str) -> Optional[Business]:
        return self._first(Business, lambda row: row["email"] == email)

    async def add_business(self, business: Business) -> Business:
        if await self.get_business_by_email(business.email):
            raise EmailAlreadyRegistered()
        return self._insert(business)

    async def get_business_for_update(self, business_id: int) -> Optional[Business]:
        # Transactions are already serial
        return await self.get_business(business_id)

    async def save_business(self, business: Business) -> None:
        self._put(business)

    async def list_businesses(
        self,
        category: Optional[str] = None,
        slot_date: Optional[date] = None,
        slot_time: Optional[time] = None,
    ) -> list[tuple[Business, Optional[Decimal]]]:
        listing = []
        for business in self._all(Business, lambda row: row["active"]):
            if category and business.category != category:
                continue
            if slot_date is not None and slot_time is not None:
                slot = await self.find_slot(business.id, slot_date, slot_time)
                if slot is None or slot.status != SlotStatus.AVAILABLE:
                    continue
            prices = [service.price for service in await self.list_services(business.id)]
            listing.append((business, min(prices) if prices else None))
        listing.sort(key=lambda item: (-item[0].rating, item[0].id))
        return listing

    async def get_client(self, client_id: int) -> Optional[Client]:
        return self._load(Client, self._row(Client, client_id))

    async def get_client_by_email(self, email: str) -> Optional[Client]:
        return self._first(Client, lambda row: row["email"] == email)

    async def add_client(self, client: Client) -> Client:
        if await self.get_client_by_email(client.email):
            raise EmailAlreadyRegistered()
        return self._insert(client)

    # Services

    async def get_service(self, service_id: int, business_id: int, active_only: bool = True) -> Optional[Service]:
        row = self._row(Service, service_id)
        if row is None or row["business_id"] != business_id:
            return None
        if active_only and not row["active"]:
            return None
        return Service(**row)

    async def list_services(self, business_id: int, active_only: bool = True) -> list[Service]:
        return self._all(
            Service,
            lambda row: row["business_id"] == business_id and (row["active"] or not active_only),
        )

    async def add_service(self, service: Service) -> Service:
        return self._insert(service)

    async def save_service(self, service: Service) -> None:
        self._put(service)

    # Availability slots

    async def find_slot(self, business_id: int, slot_date: date, slot_time: time) -> Optional[Availability]:
        return self._first(
            Availability,
            lambda row: (
                row["business_id"] == business_id
                and row["date"] == slot_date
                and row["time"] == slot_time
            ),
        )

    async def get_slot(self, slot_id: int) -> Optional[Availability]:
        return self._load(Availability, self._row(Availability, slot_id))

    async def mark_slot_booked(self, slot_id: int) -> bool:
        slot = await self.get_slot(slot_id)
        if slot is None or slot.status != SlotStatus.AVAILABLE:
            return False
        slot.status = SlotStatus.BOOKED
        self._put(slot)
        return True

    async def mark_slot_available(self, slot_id: int) -> None:
        slot = await self.get_slot(slot_id)
        if slot is not None:
            slot.status = SlotStatus.AVAILABLE
            self._put(slot)

    async def upsert_slot(self, business_id: int, slot_date: date, slot_time: time, status: str) -> None:
        slot = await self.find_slot(business_id, slot_date, slot_time)
        if slot is None:
            self._insert(Availability(business_id=business_id, date=slot_date, time=slot_time, status=status))
        elif slot.status != SlotStatus.BOOKED:
            slot.status = status
            self._put(slot)

    async def list_slots(
        self,
        business_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[Availability]:
        slots = self._all(
            Availability,
            lambda row: (
                row["business_id"] == business_id
                and (date_from is None or row["date"] >= date_from)
                and (date_to is None or row["date"] <= date_to)
                and (status is None or row["status"] == status)
            ),
        )
        return sorted(slots, key=lambda slot: (slot.date, slot.time))

    # Bookings

    async def confirmation_code_exists(self, code: str) -> bool:
        return self._first(Booking, lambda row: row["confirmation_code"] == code) is not None

    async def add_booking(self, booking: Booking) -> Booking:
        if await self.confirmation_code_exists(booking.confirmation_code):
            raise ConfirmationCodeTaken()
        if await self.live_bookings_for_slot(booking.availability_id):
            raise SlotUnavailable()
        return self._insert(booking)

    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self._load(Booking, self._row(Booking, booking_id))

    async def transition_booking(self, booking_id: int, expected: Iterable[str], **values) -> bool:
        booking = await self.get_booking(booking_id)
        if booking is None or booking.status not in set(expected):
            return False
        for field, value in values.items():
            setattr(booking, field, value)
        self._put(booking)
        return True

    async def list_bookings(
        self,
        client_id: Optional[int] = None,
        business_id: Optional[int] = None,
        statuses: Optional[Iterable[str]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Booking]:
        wanted = set(statuses) if statuses is not None else None
        return self._all(
            Booking,
            lambda row: (
                (client_id is None or row["client_id"] == client_id)
                and (business_id is None or row["business_id"] == business_id)
                and (wanted is None or row["status"] in wanted)
                and (date_from is None or row["date"] >= date_from)
                and (date_to is None or row["date"] <= date_to)
            ),
        )

    async def live_bookings_for_slot(self, slot_id: int) -> list[Booking]:
        return self._all(
            Booking,
            lambda row: row["availability_id"] == slot_id and row["status"] != BookingStatus.CANCELLED,
        )

    # Reviews

    async def get_review_for_booking(self, booking_id: int) -> Optional[Review]:
        return self._first(Review, lambda row: row["booking_id"] == booking_id)

    async def add_review(self, review: Review) -> Review:
        if await self.get_review_for_booking(review.booking_id):
            raise DuplicateReview()
        return self._insert(review)

    async def list_review_ratings(self, business_id: int) -> list[int]:
        return [row["rating"] for row in self._rows(Review) if row["business_id"] == business_id]


class MemoryStore(MarketplaceStore):
    def __init__(self):
        self.tables: dict[str, dict[int, dict]] = {}
        self.next_ids: dict[str, int] = {}
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[MemoryTransaction]:
        async with self._lock:
            tx = MemoryTransaction(self)
            yield tx
            tx.commit()
