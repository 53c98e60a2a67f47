"""API schemas for billing endpoints."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..billing import ReconciliationOutcome, ReconciliationResult
from ..entitlements.models import (
    EntitlementSnapshot,
    PackageType,
    PaymentEvent,
    PaymentMethodClass,
    PaymentStatus,
    PaymentType,
)


class CheckoutSessionRequest(BaseModel):
    package_type: PackageType = Field(alias="packageType")
    payment_method: PaymentMethodClass = Field(alias="paymentMethod", default=PaymentMethodClass.CARD)

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSessionResponse(BaseModel):
    url: str


class EntitlementOut(BaseModel):
    email: str
    paid: bool
    package_type: Optional[PackageType] = Field(alias="packageType", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_snapshot(cls, snapshot: EntitlementSnapshot) -> "EntitlementOut":
        return cls(email=snapshot.email, paid=snapshot.paid, package_type=snapshot.package_type)


class CheckoutConfirmResponse(BaseModel):
    paid: bool
    status: ReconciliationOutcome
    entitlement: Optional[EntitlementOut] = None
    token: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> "CheckoutConfirmResponse":
        entitlement = None
        if result.entitlement is not None:
            entitlement = EntitlementOut.from_snapshot(result.entitlement)
        return cls(
            paid=result.granted,
            status=result.outcome,
            entitlement=entitlement,
            token=result.token,
        )


class WebhookAck(BaseModel):
    received: bool = True


class PaymentOut(BaseModel):
    stripe_session_id: str = Field(alias="stripeSessionId")
    amount_cents: int = Field(alias="amountCents")
    amount_dollars: Decimal = Field(alias="amountDollars")
    package_type: PackageType = Field(alias="packageType")
    payment_type: PaymentType = Field(alias="paymentType")
    payment_method: PaymentMethodClass = Field(alias="paymentMethod")
    status: PaymentStatus
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_event(cls, event: PaymentEvent) -> "PaymentOut":
        return cls(
            stripe_session_id=event.stripe_session_id,
            amount_cents=event.amount_cents,
            amount_dollars=event.amount_dollars,
            package_type=event.package_type,
            payment_type=event.payment_type,
            payment_method=event.payment_method,
            status=event.status,
            created_at=event.created_at,
        )


class PaymentListResponse(BaseModel):
    payments: List[PaymentOut]

    model_config = ConfigDict(populate_by_name=True)
