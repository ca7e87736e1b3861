"""
Catalog service: businesses and their services.

Read-only from the booking engine's point of view; the write paths here are
the business's own service management.
"""

from datetime import date, time
from decimal import Decimal
from typing import Optional

from marketplace.core.exceptions import NotFound, ServiceNotFound
from marketplace.core.logging import get_logger
from marketplace.models import Availability, Business, Service, SlotStatus
from marketplace.repositories.base import StoreTransaction
from marketplace.schemas.catalog import ServiceCreate, ServiceUpdate

logger = get_logger(__name__)


async def get_business(tx: StoreTransaction, business_id: int) -> Business:
    business = await tx.get_business(business_id)
    if not business:
        raise NotFound(f"Business {business_id} not found")
    return business


async def get_service(tx: StoreTransaction, service_id: int, business_id: int) -> Service:
    """Active service owned by `business_id`; any other id is ServiceNotFound."""
    service = await tx.get_service(service_id, business_id, active_only=True)
    if not service:
        raise ServiceNotFound()
    return service


async def list_businesses(
    tx: StoreTransaction,
    category: Optional[str] = None,
    slot_date: Optional[date] = None,
    slot_time: Optional[time] = None,
) -> list[tuple[Business, Optional[Decimal]]]:
    """Public listing. The date/time filter applies only when both are given."""
    if slot_date is None or slot_time is None:
        slot_date = slot_time = None
    return await tx.list_businesses(category=category, slot_date=slot_date, slot_time=slot_time)


async def get_business_detail(
    tx: StoreTransaction,
    business_id: int,
    today: date,
) -> tuple[Business, list[Service], list[Availability]]:
    """Public detail: active services and available slots from `today` on."""
    business = await tx.get_business(business_id)
    if not business or not business.active:
        raise NotFound(f"Business {business_id} not found")

    services = await tx.list_services(business_id, active_only=True)
    slots = await tx.list_slots(business_id, date_from=today, status=SlotStatus.AVAILABLE)
    return business, services, slots


async def list_services(tx: StoreTransaction, business_id: int) -> list[Service]:
    """All services of a business, inactive included (owner view)."""
    return await tx.list_services(business_id, active_only=False)


async def create_service(tx: StoreTransaction, business_id: int, data: ServiceCreate) -> Service:
    service = await tx.add_service(
        Service(
            business_id=business_id,
            name=data.name,
            duration_minutes=data.duration_minutes,
            price=data.price,
            active=True,
        )
    )
    logger.info("service_created", service_id=service.id, business_id=business_id, price=str(service.price))
    return service


async def update_service(
    tx: StoreTransaction,
    business_id: int,
    service_id: int,
    data: ServiceUpdate,
) -> Service:
    """
    Partial update. Bookings hold their own copy of the price, so a price
    change only affects bookings created afterwards.
    """
    service = await tx.get_service(service_id, business_id, active_only=False)
    if not service:
        raise NotFound("Service not found")

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(service, field, value)
    await tx.save_service(service)

    logger.info("service_updated", service_id=service.id, business_id=business_id)
    return service
