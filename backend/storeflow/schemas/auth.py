"""Signup, login and token payloads."""

import uuid

from pydantic import BaseModel, EmailStr, Field

from storeflow.models.enums import StoreCategory
from storeflow.schemas.common import CamelModel


class CustomerSignupRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    store_id: uuid.UUID
    name: str = Field(min_length=2, max_length=100)
    phone: str = Field(min_length=10, max_length=15)


class CustomerLoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    store_id: uuid.UUID


class MerchantSignupRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    store_name: str = Field(min_length=2, max_length=100)
    store_description: str | None = None
    store_category: StoreCategory = StoreCategory.OUTROS
    custom_category: str | None = None


class MerchantLoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class TokenPair(BaseModel):
    token: str
    refresh_token: str
    expires_in: int | None = None


class CustomerSession(TokenPair):
    user_id: str
    customer_id: uuid.UUID
    name: str
    phone: str
    store_id: uuid.UUID


class MerchantSession(TokenPair):
    user_id: str
    merchant_id: uuid.UUID
    email: str
    role: str
    store_id: uuid.UUID | None


class SignupResult(BaseModel):
    user_id: str
    customer_id: uuid.UUID | None = None
    merchant_id: uuid.UUID | None = None
    store_id: uuid.UUID
