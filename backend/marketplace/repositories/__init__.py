"""
Storage layer. The booking core depends only on the interfaces in `base`.
"""

from marketplace.repositories.base import MarketplaceStore, StoreTransaction
from marketplace.repositories.memory_store import MemoryStore
from marketplace.repositories.sqlalchemy_store import SqlAlchemyStore

__all__ = ["MarketplaceStore", "StoreTransaction", "MemoryStore", "SqlAlchemyStore"]
