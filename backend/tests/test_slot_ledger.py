"""
Tests for the slot ledger: reservation, release, bulk upsert and reopen.
"""

from datetime import date, datetime, time, timezone

import pytest

from marketplace.core.exceptions import InvalidState, NotFound, SlotUnavailable
from marketplace.models import SlotStatus
from marketplace.services import slot_ledger
from conftest import SLOT_DATE, SLOT_TIME


@pytest.mark.asyncio
async def test_reserve_and_release(store, business, slots):
    async with store.transaction() as tx:
        slot = await slot_ledger.reserve(tx, business.id, SLOT_DATE, SLOT_TIME)
        assert slot.status == SlotStatus.BOOKED

    async with store.transaction() as tx:
        assert not await slot_ledger.is_available(tx, business.id, SLOT_DATE, SLOT_TIME)
        with pytest.raises(SlotUnavailable):
            await slot_ledger.reserve(tx, business.id, SLOT_DATE, SLOT_TIME)

    async with store.transaction() as tx:
        await slot_ledger.release(tx, slot.id)
        assert await slot_ledger.is_available(tx, business.id, SLOT_DATE, SLOT_TIME)


@pytest.mark.asyncio
async def test_failed_transaction_leaves_slot_available(store, business, slots):
    with pytest.raises(RuntimeError):
        async with store.transaction() as tx:
            await slot_ledger.reserve(tx, business.id, SLOT_DATE, SLOT_TIME)
            raise RuntimeError("booking insert failed")

    async with store.transaction() as tx:
        assert await slot_ledger.is_available(tx, business.id, SLOT_DATE, SLOT_TIME)


@pytest.mark.asyncio
async def test_upsert_creates_and_updates(store, business):
    day = date(2026, 4, 1)
    async with store.transaction() as tx:
        count = await slot_ledger.upsert_many(tx, business.id, [
            (day, time(9, 0), SlotStatus.AVAILABLE),
            (day, time(9, 30), SlotStatus.AVAILABLE),
        ])
    assert count == 2

    async with store.transaction() as tx:
        await slot_ledger.upsert_many(tx, business.id, [(day, time(9, 0), SlotStatus.BOOKED)])
        statuses = {s.time: s.status for s in await slot_ledger.list_slots(tx, business.id)}

    assert statuses == {time(9, 0): SlotStatus.BOOKED, time(9, 30): SlotStatus.AVAILABLE}


@pytest.mark.asyncio
async def test_upsert_never_frees_booked_slot(store, business, slots):
    async with store.transaction() as tx:
        await slot_ledger.reserve(tx, business.id, SLOT_DATE, SLOT_TIME)

    async with store.transaction() as tx:
        await slot_ledger.upsert_many(tx, business.id, [(SLOT_DATE, SLOT_TIME, SlotStatus.AVAILABLE)])
        slot = await tx.find_slot(business.id, SLOT_DATE, SLOT_TIME)

    assert slot.status == SlotStatus.BOOKED


@pytest.mark.asyncio
async def test_upsert_rejects_unknown_status(store, business):
    async with store.transaction() as tx:
        with pytest.raises(ValueError):
            await slot_ledger.upsert_many(tx, business.id, [(SLOT_DATE, SLOT_TIME, "closed")])


@pytest.mark.asyncio
async def test_list_slots_date_range(store, business):
    async with store.transaction() as tx:
        await slot_ledger.upsert_many(tx, business.id, [
            (date(2026, 4, d), time(10, 0), SlotStatus.AVAILABLE) for d in (1, 2, 3, 4)
        ])
        listed = await slot_ledger.list_slots(tx, business.id, date_from=date(2026, 4, 2), date_to=date(2026, 4, 3))

    assert [s.date for s in listed] == [date(2026, 4, 2), date(2026, 4, 3)]


@pytest.mark.asyncio
async def test_reopen_after_late_cancellation(engine, clock, store, business, service, slots, client_account):
    created = await engine.create_booking(client_account.id, business.id, service.id, SLOT_DATE, SLOT_TIME)
    clock.now = datetime(2026, 3, 12, 8, 0, tzinfo=timezone.utc)
    await engine.cancel(created.booking.id, client_account.id)

    async with store.transaction() as tx:
        slot = await slot_ledger.reopen(tx, business.id, created.booking.availability_id)
    assert slot.status == SlotStatus.AVAILABLE

    async with store.transaction() as tx:
        assert await slot_ledger.is_available(tx, business.id, SLOT_DATE, SLOT_TIME)


@pytest.mark.asyncio
async def test_reopen_slot_held_by_live_booking(engine, store, business, service, slots, client_account):
    created = await engine.create_booking(client_account.id, business.id, service.id, SLOT_DATE, SLOT_TIME)
    async with store.transaction() as tx:
        with pytest.raises(InvalidState):
            await slot_ledger.reopen(tx, business.id, created.booking.availability_id)


@pytest.mark.asyncio
async def test_reopen_available_slot(store, business, slots):
    async with store.transaction() as tx:
        with pytest.raises(InvalidState):
            await slot_ledger.reopen(tx, business.id, slots[0].id)


@pytest.mark.asyncio
async def test_reopen_other_business_slot(store, business, slots):
    async with store.transaction() as tx:
        with pytest.raises(NotFound):
            await slot_ledger.reopen(tx, business.id + 1, slots[0].id)
