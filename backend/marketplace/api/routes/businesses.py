"""
Public catalog endpoints. Listings are cached in Redis.

Contact details (address, phone, email) never appear here; a client sees
them only in the response to creating a booking.
"""

from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, Query

from marketplace.api.deps import get_booking_engine, get_store
from marketplace.core.logging import get_logger
from marketplace.repositories import MarketplaceStore
from marketplace.schemas.catalog import BusinessDetail, BusinessListing, OpenSlot, ServiceResponse
from marketplace.services import catalog_service
from marketplace.services.booking_engine import BookingEngine
from marketplace.services.cache_service import get_cached_listing, set_cached_listing

logger = get_logger(__name__)
router = APIRouter(prefix="/businesses", tags=["Businesses"])


@router.get("/", response_model=list[BusinessListing])
async def list_businesses_endpoint(
    category: Optional[str] = Query(None, max_length=100),
    slot_date: Optional[date] = Query(None, alias="date"),
    slot_time: Optional[time] = Query(None, alias="time"),
    store: MarketplaceStore = Depends(get_store),
):
    """
    Active businesses, best rated first, with their cheapest active service.
    With both `date` and `time`, only businesses with that slot free.
    """
    date_key = slot_date.isoformat() if slot_date else None
    time_key = slot_time.strftime("%H:%M") if slot_time else None

    cached = await get_cached_listing(category, date_key, time_key)
    if cached is not None:
        logger.info("business_list_cache_hit", category=category)
        return [BusinessListing(**item) for item in cached]

    async with store.transaction() as tx:
        rows = await catalog_service.list_businesses(tx, category, slot_date, slot_time)

    listing = [
        BusinessListing(
            id=business.id,
            name=business.name,
            category=business.category,
            city=business.city,
            rating=business.rating,
            total_reviews=business.total_reviews,
            min_price=min_price,
        )
        for business, min_price in rows
    ]
    await set_cached_listing(category, date_key, time_key, [item.model_dump(mode="json") for item in listing])
    return listing


@router.get("/{business_id}", response_model=BusinessDetail)
async def get_business_endpoint(
    business_id: int,
    store: MarketplaceStore = Depends(get_store),
    engine: BookingEngine = Depends(get_booking_engine),
):
    """Business card with active services and free slots from today on. Not cached."""
    today = engine.today()
    async with store.transaction() as tx:
        business, services, slots = await catalog_service.get_business_detail(tx, business_id, today)

    return BusinessDetail(
        id=business.id,
        name=business.name,
        category=business.category,
        city=business.city,
        description=business.description,
        rating=business.rating,
        total_reviews=business.total_reviews,
        services=[ServiceResponse.model_validate(s) for s in services],
        available_slots=[OpenSlot.model_validate(s) for s in slots],
    )
