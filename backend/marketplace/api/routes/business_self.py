"""
Business self-service endpoints: profile, services, availability, stats.
All require a business token and act on the caller's own business only.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from marketplace.api.deps import get_store
from marketplace.core.logging import get_logger
from marketplace.core.security import Subject, require_business
from marketplace.repositories import MarketplaceStore
from marketplace.schemas.availability import SlotResponse, SlotUpsertRequest, SlotUpsertResponse
from marketplace.schemas.catalog import (
    BusinessProfile, BusinessStats, ServiceCreate, ServiceResponse, ServiceUpdate,
)
from marketplace.services import catalog_service, slot_ledger, stats_service
from marketplace.services.cache_service import invalidate_listing_cache

logger = get_logger(__name__)
router = APIRouter(prefix="/businesses/me", tags=["Business self-service"])

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


@router.get("/profile", response_model=BusinessProfile)
async def get_profile(
    subject: Subject = Depends(require_business),
    store: MarketplaceStore = Depends(get_store),
):
    async with store.transaction() as tx:
        return await catalog_service.get_business(tx, subject.id)


@router.get("/stats", response_model=BusinessStats)
async def get_stats(
    month: Optional[str] = Query(None, pattern=MONTH_PATTERN, description="YYYY-MM"),
    subject: Subject = Depends(require_business),
    store: MarketplaceStore = Depends(get_store),
):
    """Booking counts and revenue, optionally restricted to one month."""
    async with store.transaction() as tx:
        return await stats_service.business_stats(tx, subject.id, month)


@router.get("/services", response_model=list[ServiceResponse])
async def list_services(
    subject: Subject = Depends(require_business),
    store: MarketplaceStore = Depends(get_store),
):
    async with store.transaction() as tx:
        return await catalog_service.list_services(tx, subject.id)


@router.post("/services", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    data: ServiceCreate,
    subject: Subject = Depends(require_business),
    store: MarketplaceStore = Depends(get_store),
):
    async with store.transaction() as tx:
        service = await catalog_service.create_service(tx, subject.id, data)
    await invalidate_listing_cache()
    return service


@router.put("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: int,
    data: ServiceUpdate,
    subject: Subject = Depends(require_business),
    store: MarketplaceStore = Depends(get_store),
):
    """Partial update. Existing bookings keep the price they were made at."""
    async with store.transaction() as tx:
        service = await catalog_service.update_service(tx, subject.id, service_id, data)
    await invalidate_listing_cache()
    return service


@router.get("/availability", response_model=list[SlotResponse])
async def list_availability(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    subject: Subject = Depends(require_business),
    store: MarketplaceStore = Depends(get_store),
):
    async with store.transaction() as tx:
        return await slot_ledger.list_slots(tx, subject.id, date_from=date_from, date_to=date_to)


@router.post("/availability", response_model=SlotUpsertResponse)
async def upsert_availability(
    data: SlotUpsertRequest,
    subject: Subject = Depends(require_business),
    store: MarketplaceStore = Depends(get_store),
):
    """Bulk create/update slots. Booked slots keep their status."""
    async with store.transaction() as tx:
        count = await slot_ledger.upsert_many(
            tx, subject.id, [(slot.date, slot.time, slot.status) for slot in data.slots]
        )
    await invalidate_listing_cache()
    return SlotUpsertResponse(message=f"{count} slots updated", count=count)


@router.post("/availability/{slot_id}/reopen", response_model=SlotResponse)
async def reopen_slot(
    slot_id: int,
    subject: Subject = Depends(require_business),
    store: MarketplaceStore = Depends(get_store),
):
    """Put a slot blocked by a late cancellation back on sale."""
    async with store.transaction() as tx:
        slot = await slot_ledger.reopen(tx, subject.id, slot_id)
    await invalidate_listing_cache()
    return slot
