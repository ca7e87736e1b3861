"""
Authentication service: registration and login for clients and businesses.
"""

from decimal import Decimal

from marketplace.core.config import get_settings
from marketplace.core.exceptions import EmailAlreadyRegistered, InvalidCredentials
from marketplace.core.logging import get_logger
from marketplace.core.security import hash_password, issue_token, verify_password
from marketplace.models import Business, Client
from marketplace.repositories.base import MarketplaceStore
from marketplace.schemas.auth import Account, AuthResponse, BusinessRegister, ClientRegister, LoginRequest
from marketplace.services.notifier import Notifier

logger = get_logger(__name__)


def _auth_response(account_id: int, account_type: str, name: str, email: str) -> AuthResponse:
    return AuthResponse(
        access_token=issue_token(account_id, account_type, name),
        account=Account(id=account_id, type=account_type, name=name, email=email),
    )


async def register_client(store: MarketplaceStore, data: ClientRegister) -> AuthResponse:
    """Register a client account. Raises 409 if the email is taken."""
    async with store.transaction() as tx:
        if await tx.get_client_by_email(data.email):
            logger.warning("registration_failed", reason="email_exists", account_type="client")
            raise EmailAlreadyRegistered()

        client = await tx.add_client(
            Client(
                name=data.name,
                email=data.email,
                hashed_password=hash_password(data.password),
                phone=data.phone,
            )
        )

    logger.info("client_registered", client_id=client.id)
    return _auth_response(client.id, "client", client.name, client.email)


async def register_business(store: MarketplaceStore, notifier: Notifier, data: BusinessRegister) -> AuthResponse:
    """
    Register a business account with the default commission rate.
    Sends a welcome email and notifies the marketplace admin.
    """
    settings = get_settings()
    async with store.transaction() as tx:
        if await tx.get_business_by_email(data.email):
            logger.warning("registration_failed", reason="email_exists", account_type="business")
            raise EmailAlreadyRegistered()

        business = await tx.add_business(
            Business(
                name=data.name,
                email=data.email,
                hashed_password=hash_password(data.password),
                phone=data.phone,
                category=data.category,
                description=data.description,
                address=data.address,
                zone=data.zone,
                commission_rate=Decimal(str(settings.DEFAULT_COMMISSION_RATE)),
            )
        )

    logger.info("business_registered", business_id=business.id, category=business.category)

    await notifier.notify("business_welcome", business.email, {"name": business.name})
    await notifier.notify(
        "admin_new_business",
        settings.ADMIN_EMAIL,
        {
            "name": business.name,
            "email": business.email,
            "category": business.category,
            "zone": business.zone or "not specified",
        },
    )
    return _auth_response(business.id, "business", business.name, business.email)


async def login_client(store: MarketplaceStore, data: LoginRequest) -> AuthResponse:
    async with store.transaction() as tx:
        client = await tx.get_client_by_email(data.email)

    if not client or not verify_password(data.password, client.hashed_password):
        logger.warning("login_failed", account_type="client")
        raise InvalidCredentials()

    logger.info("client_logged_in", client_id=client.id)
    return _auth_response(client.id, "client", client.name, client.email)


async def login_business(store: MarketplaceStore, data: LoginRequest) -> AuthResponse:
    async with store.transaction() as tx:
        business = await tx.get_business_by_email(data.email)

    if not business or not verify_password(data.password, business.hashed_password):
        logger.warning("login_failed", account_type="business")
        raise InvalidCredentials()

    logger.info("business_logged_in", business_id=business.id)
    return _auth_response(business.id, "business", business.name, business.email)
