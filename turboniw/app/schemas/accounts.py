"""API schemas for account endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..entitlements.models import PackageType, Principal


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AccountOut(BaseModel):
    email: str
    paid: bool
    package_type: Optional[PackageType] = Field(alias="packageType", default=None)
    created_at: datetime = Field(alias="createdAt")
    is_admin: bool = Field(alias="isAdmin", default=False)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_principal(cls, principal: Principal, *, is_admin: bool = False) -> "AccountOut":
        return cls(
            email=principal.email,
            paid=principal.paid,
            package_type=principal.package_type,
            created_at=principal.created_at,
            is_admin=is_admin,
        )


class AuthResponse(BaseModel):
    user: AccountOut
    token: Optional[str] = None


class MeResponse(BaseModel):
    user: Optional[AccountOut] = None


class StripeConfigResponse(BaseModel):
    publishable_key: Optional[str] = Field(alias="publishableKey", default=None)
    enabled: bool = False

    model_config = ConfigDict(populate_by_name=True)
