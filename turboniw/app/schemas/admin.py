"""API schemas for administrative endpoints."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from ..entitlements.models import PackageType


class EntitlementGrantRequest(BaseModel):
    email: EmailStr
    package_type: Optional[PackageType] = Field(alias="packageType", default=None)
    paid: bool = True

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _package_required_when_paid(self) -> "EntitlementGrantRequest":
        if self.paid and self.package_type is None:
            raise ValueError("packageType is required when granting a paid entitlement")
        return self


class PaymentPurgeResponse(BaseModel):
    deleted: int
