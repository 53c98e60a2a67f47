"""Domain models for principals, entitlements, and payment events."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class PackageType(str, Enum):
    """Purchasable packages that gate access to the questionnaire."""

    FORM_FILLING = "form-filling"
    FULL = "full"


class PaymentType(str, Enum):
    """Whether a payment bought a package outright or upgraded an existing one."""

    INITIAL = "initial"
    UPGRADE = "upgrade"


class PaymentMethodClass(str, Enum):
    """Payment method families offered at checkout."""

    CARD = "card"
    BANK_TRANSFER = "bank-transfer"

    @property
    def settles_asynchronously(self) -> bool:
        """Bank transfers report ``processing`` before the funds settle."""
        return self is PaymentMethodClass.BANK_TRANSFER


class PaymentStatus(str, Enum):
    """Settlement status of a stored payment event."""

    PROCESSING = "processing"
    COMPLETED = "completed"


_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(value: str) -> str:
    """Return the canonical identity key for an email address."""

    return (value or "").strip().lower()


def is_email(value: Optional[str]) -> bool:
    return bool(value) and bool(_EMAIL_PATTERN.match(value.strip()))


class EntitlementSnapshot(BaseModel):
    """The ``{paid, package_type}`` pair for one principal at a point in time."""

    email: str
    paid: bool = False
    package_type: Optional[PackageType] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)

    def to_claims(self) -> Dict[str, object]:
        return {
            "sub": self.email,
            "paid": self.paid,
            "packageType": self.package_type.value if self.package_type else None,
        }

    def grants(self, package_type: PackageType) -> bool:
        """Return ``True`` when this entitlement unlocks ``package_type`` content."""

        if not self.paid or self.package_type is None:
            return False
        if package_type == PackageType.FORM_FILLING:
            return True
        return self.package_type == PackageType.FULL


class Principal(BaseModel):
    """A registered user, keyed by case-normalized email."""

    id: Optional[int] = None
    email: str
    password_hash: str
    paid: bool = False
    package_type: Optional[PackageType] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)

    def entitlement(self) -> EntitlementSnapshot:
        return EntitlementSnapshot(email=self.email, paid=self.paid, package_type=self.package_type)


class PaymentEvent(BaseModel):
    """Immutable record of one reconciled provider checkout."""

    id: Optional[int] = None
    user_email: str
    stripe_session_id: str = Field(min_length=1)
    amount_cents: int = Field(ge=0)
    package_type: PackageType
    payment_type: PaymentType
    payment_method: PaymentMethodClass
    status: PaymentStatus
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("user_email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)

    @computed_field  # type: ignore[misc]
    @property
    def amount_dollars(self) -> Decimal:
        return (Decimal(self.amount_cents) / Decimal(100)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )

    @property
    def is_settled(self) -> bool:
        return self.status == PaymentStatus.COMPLETED
