"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from marketplace.api.routes import auth, business_self, businesses, bookings

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
# /businesses/me/* must be registered before /businesses/{business_id}
api_router.include_router(business_self.router)
api_router.include_router(businesses.router)
api_router.include_router(bookings.router)
