"""
Identity tokens and password hashing.

Tokens are HS256 JWTs carrying `sub` (account id), `type` (client or
business) and `name`. FastAPI dependencies below turn the Authorization
header into a verified `Subject` and enforce the account type per route.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from marketplace.core.config import get_settings
from marketplace.core.exceptions import Forbidden, InvalidToken, Unauthenticated

SUBJECT_TYPES = ("client", "business")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Subject:
    id: int
    type: str
    name: str = ""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def issue_token(subject_id: int, subject_type: str, name: str = "") -> str:
    return create_access_token(data={"sub": str(subject_id), "type": subject_type, "name": name})


def verify_token(token: str) -> Subject:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = Subject(id=int(payload["sub"]), type=payload["type"], name=payload.get("name", ""))
    except (JWTError, KeyError, TypeError, ValueError):
        raise InvalidToken()

    if subject.type not in SUBJECT_TYPES:
        raise InvalidToken()
    return subject


async def get_current_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Subject:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    return verify_token(credentials.credentials)


async def require_client(subject: Subject = Depends(get_current_subject)) -> Subject:
    if subject.type != "client":
        raise Forbidden("Only clients can do this")
    return subject


async def require_business(subject: Subject = Depends(get_current_subject)) -> Subject:
    if subject.type != "business":
        raise Forbidden("Only businesses can do this")
    return subject
