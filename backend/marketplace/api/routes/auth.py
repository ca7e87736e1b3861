"""
Authentication endpoints: register and login for clients and businesses.
"""

from fastapi import APIRouter, Depends, status

from marketplace.api.deps import get_notifier, get_store
from marketplace.repositories import MarketplaceStore
from marketplace.schemas.auth import AuthResponse, BusinessRegister, ClientRegister, LoginRequest
from marketplace.services import auth_service
from marketplace.services.notifier import Notifier

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/client/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_client(data: ClientRegister, store: MarketplaceStore = Depends(get_store)):
    """Register a client account and receive a token."""
    return await auth_service.register_client(store, data)


@router.post("/client/login", response_model=AuthResponse)
async def login_client(data: LoginRequest, store: MarketplaceStore = Depends(get_store)):
    return await auth_service.login_client(store, data)


@router.post("/business/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_business(
    data: BusinessRegister,
    store: MarketplaceStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Register a business account and receive a token."""
    return await auth_service.register_business(store, notifier, data)


@router.post("/business/login", response_model=AuthResponse)
async def login_business(data: LoginRequest, store: MarketplaceStore = Depends(get_store)):
    return await auth_service.login_business(store, data)
