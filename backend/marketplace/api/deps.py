"""
FastAPI dependencies wiring the booking core to its collaborators.

Tests override `get_store`, `get_notifier` and `get_booking_engine` through
`app.dependency_overrides`.
"""

from typing import Optional

from fastapi import Depends

from marketplace.core.config import get_settings
from marketplace.core.logging import get_logger
from marketplace.repositories import MarketplaceStore, MemoryStore, SqlAlchemyStore
from marketplace.services.booking_engine import BookingEngine
from marketplace.services.notifier import Notifier, build_notifier

logger = get_logger(__name__)

_store: Optional[MarketplaceStore] = None
_notifier: Optional[Notifier] = None


def build_store() -> MarketplaceStore:
    settings = get_settings()
    if settings.STORAGE_BACKEND == "memory":
        logger.warning("memory_store_selected", message="Data is not persisted")
        return MemoryStore()
    if settings.STORAGE_BACKEND == "sqlalchemy":
        from marketplace.db.session import create_engine_from_settings

        return SqlAlchemyStore(create_engine_from_settings())
    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")


def get_store() -> MarketplaceStore:
    global _store
    if _store is None:
        _store = build_store()
    return _store


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier


def get_booking_engine(
    store: MarketplaceStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> BookingEngine:
    return BookingEngine(store, notifier)


async def close_dependencies() -> None:
    global _store, _notifier
    if _store is not None:
        await _store.close()
    close = getattr(_notifier, "close", None)
    if close is not None:
        await close()
    _store = None
    _notifier = None
