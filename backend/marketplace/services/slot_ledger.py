"""
Slot ledger: owns the available <-> booked state machine of availability slots.

All functions run inside a transaction opened by the caller, so a reservation
and the booking it backs commit or roll back together.
"""

from datetime import date, time
from typing import Iterable, Optional

from marketplace.core.exceptions import InvalidState, NotFound, SlotUnavailable
from marketplace.core.logging import get_logger
from marketplace.core.metrics import record_slot_operation
from marketplace.models import Availability, SlotStatus
from marketplace.repositories.base import StoreTransaction

logger = get_logger(__name__)


async def is_available(tx: StoreTransaction, business_id: int, slot_date: date, slot_time: time) -> bool:
    slot = await tx.find_slot(business_id, slot_date, slot_time)
    return slot is not None and slot.status == SlotStatus.AVAILABLE


async def reserve(tx: StoreTransaction, business_id: int, slot_date: date, slot_time: time) -> Availability:
    """
    Flip the slot at (business, date, time) from available to booked.

    Raises SlotUnavailable if no such slot exists or it is already booked,
    including when a concurrent reservation wins between lookup and flip.
    """
    slot = await tx.find_slot(business_id, slot_date, slot_time)
    if slot is None or slot.status != SlotStatus.AVAILABLE:
        raise SlotUnavailable()

    if not await tx.mark_slot_booked(slot.id):
        logger.info("slot_reservation_lost", slot_id=slot.id, business_id=business_id)
        raise SlotUnavailable()

    slot.status = SlotStatus.BOOKED
    record_slot_operation("reserve")
    logger.info("slot_reserved", slot_id=slot.id, business_id=business_id)
    return slot


async def release(tx: StoreTransaction, slot_id: int) -> None:
    """Return a booked slot to available. Only call for slots known to be booked."""
    await tx.mark_slot_available(slot_id)
    record_slot_operation("release")
    logger.info("slot_released", slot_id=slot_id)


async def upsert_many(
    tx: StoreTransaction,
    business_id: int,
    entries: Iterable[tuple[date, time, str]],
) -> int:
    """
    Create missing slots and overwrite the status of existing ones.

    Booked slots are left untouched: a bulk schedule edit must never free or
    double-book a slot a client already holds.
    """
    count = 0
    for slot_date, slot_time, status in entries:
        if status not in SlotStatus.ALL:
            raise ValueError(f"Unknown slot status: {status}")
        await tx.upsert_slot(business_id, slot_date, slot_time, status)
        count += 1

    record_slot_operation("upsert", count)
    logger.info("slots_upserted", business_id=business_id, count=count)
    return count


async def list_slots(
    tx: StoreTransaction,
    business_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[str] = None,
) -> list[Availability]:
    return await tx.list_slots(business_id, date_from=date_from, date_to=date_to, status=status)


async def reopen(tx: StoreTransaction, business_id: int, slot_id: int) -> Availability:
    """
    Release a booked slot that no live booking holds.

    Late client cancellations keep the slot blocked; this is the business's
    way to put it back on sale.
    """
    slot = await tx.get_slot(slot_id)
    if slot is None or slot.business_id != business_id:
        raise NotFound("Slot not found")
    if slot.status != SlotStatus.BOOKED:
        raise InvalidState("Slot is already available")
    if await tx.live_bookings_for_slot(slot_id):
        raise InvalidState("Slot is held by an active booking")

    await tx.mark_slot_available(slot_id)
    slot.status = SlotStatus.AVAILABLE
    record_slot_operation("reopen")
    logger.info("slot_reopened", slot_id=slot_id, business_id=business_id)
    return slot
