"""
Pytest fixtures: in-memory store, fixed clock, recording notifier, seeded
business with a service and slots, and an HTTP client wired to all of them.

No PostgreSQL or Redis is needed; the environment below is set before the
application module reads its settings.
"""

import os

os.environ["STORAGE_BACKEND"] = "memory"
os.environ["REDIS_ENABLED"] = "false"
os.environ["RESEND_API_KEY"] = ""

import random
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from marketplace.api.deps import get_booking_engine, get_notifier, get_store
from marketplace.core.security import hash_password, issue_token
from marketplace.main import app
from marketplace.models import Availability, Business, Client, Service, SlotStatus
from marketplace.repositories import MemoryStore
from marketplace.services.booking_engine import BookingEngine
from marketplace.services.confirmation_codes import ConfirmationCodeGenerator
from marketplace.services.notifier import Notifier

# Tuesday 10 March 2026, 09:00 UTC
NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
SLOT_DATE = date(2026, 3, 12)
SLOT_TIME = time(10, 0)
PASSWORD = "testpassword123"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    async def notify(self, template_id, recipient, fields):
        self.sent.append((template_id, recipient, fields))

    def templates(self) -> list[str]:
        return [template_id for template_id, _, _ in self.sent]


class ScriptedCodes(ConfirmationCodeGenerator):
    """
    Hands out the given codes in order without checking for existing ones,
    the way a code committed by a concurrent booking slips past the check.
    """

    def __init__(self, codes, max_attempts: int = 5):
        super().__init__(max_attempts=max_attempts)
        self.codes = iter(codes)

    async def issue(self, exists) -> str:
        return next(self.codes)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def engine(store, notifier, clock) -> BookingEngine:
    return BookingEngine(
        store,
        notifier,
        codes=ConfirmationCodeGenerator(rng=random.Random(1234)),
        clock=clock,
        tz=timezone.utc,
    )


@pytest_asyncio.fixture
async def business(store) -> Business:
    """Hair salon, 15% commission, no reviews yet."""
    async with store.transaction() as tx:
        return await tx.add_business(
            Business(
                name="Peluquería Sol",
                email="sol@example.com",
                hashed_password=hash_password(PASSWORD),
                phone="+34 600 000 000",
                category="hair",
                address="Calle Corrida 1",
                zone="Centro",
                commission_rate=Decimal("0.15"),
            )
        )


@pytest_asyncio.fixture
async def service(store, business) -> Service:
    async with store.transaction() as tx:
        return await tx.add_service(
            Service(business_id=business.id, name="Haircut", duration_minutes=30, price=Decimal("40.00"))
        )


@pytest_asyncio.fixture
async def slots(store, business) -> list[Availability]:
    """Three free slots on SLOT_DATE: 10:00, 11:00 and 12:00."""
    async with store.transaction() as tx:
        for hour in (10, 11, 12):
            await tx.upsert_slot(business.id, SLOT_DATE, time(hour, 0), SlotStatus.AVAILABLE)
        return await tx.list_slots(business.id)


@pytest_asyncio.fixture
async def client_account(store) -> Client:
    async with store.transaction() as tx:
        return await tx.add_client(
            Client(name="Ana", email="ana@example.com", hashed_password=hash_password(PASSWORD))
        )


@pytest_asyncio.fixture
async def other_client(store) -> Client:
    async with store.transaction() as tx:
        return await tx.add_client(
            Client(name="Luis", email="luis@example.com", hashed_password=hash_password(PASSWORD))
        )


@pytest.fixture
def client_headers(client_account) -> dict:
    return {"Authorization": f"Bearer {issue_token(client_account.id, 'client', client_account.name)}"}


@pytest.fixture
def other_client_headers(other_client) -> dict:
    return {"Authorization": f"Bearer {issue_token(other_client.id, 'client', other_client.name)}"}


@pytest.fixture
def business_headers(business) -> dict:
    return {"Authorization": f"Bearer {issue_token(business.id, 'business', business.name)}"}


@pytest_asyncio.fixture
async def client(store, notifier, engine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with storage, notifications and the booking engine overridden."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_booking_engine] = lambda: engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
