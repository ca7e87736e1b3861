"""
Pydantic schemas for registration and login of clients and businesses.
"""

from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class ClientRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    phone: Optional[str] = Field(None, max_length=50)


class BusinessRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    category: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=2000)
    address: Optional[str] = Field(None, max_length=255)
    zone: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Account(BaseModel):
    id: int
    type: Literal["client", "business"]
    name: str
    email: str


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: Account
