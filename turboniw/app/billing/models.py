"""Domain models for checkout creation and reconciliation."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..entitlements.models import (
    EntitlementSnapshot,
    PackageType,
    PaymentEvent,
    PaymentMethodClass,
    PaymentType,
)


class ProviderPaymentStatus(str, Enum):
    """Checkout payment statuses reported by the provider."""

    PAID = "paid"
    UNPAID = "unpaid"
    PROCESSING = "processing"
    NO_PAYMENT_REQUIRED = "no_payment_required"


class WebhookEventType(str, Enum):
    """Webhook event types that the application reacts to."""

    CHECKOUT_COMPLETED = "checkout.session.completed"
    ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
    ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"


class ReconciliationOutcome(str, Enum):
    """Where a checkout ended up after one reconciliation attempt."""

    COMPLETED = "completed"
    PROCESSING = "processing"
    UNRESOLVED = "unresolved"


class ReconciliationSource(str, Enum):
    """Transport path that triggered a reconciliation."""

    REDIRECT = "redirect"
    WEBHOOK = "webhook"


class ProviderCheckout(BaseModel):
    """Authoritative checkout state as reported by the payment provider."""

    id: str
    url: Optional[str] = None
    payment_status: Optional[str] = None
    amount_total: Optional[int] = None
    payment_method_types: List[str] = Field(default_factory=list)
    client_reference_id: Optional[str] = None
    customer_email: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("metadata", mode="before")
    @classmethod
    def _stringify_metadata(cls, value: object) -> Dict[str, str]:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items() if v is not None}
        return {}

    @property
    def is_paid(self) -> bool:
        return self.payment_status == ProviderPaymentStatus.PAID.value


class WebhookEvent(BaseModel):
    """A verified provider webhook delivery."""

    id: str
    type: str
    checkout: Optional[ProviderCheckout] = None
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class CheckoutQuote(BaseModel):
    """Price breakdown computed when a checkout is created."""

    email: str
    package_type: PackageType
    payment_type: PaymentType
    payment_method: PaymentMethodClass
    base_price_cents: int = Field(ge=0)
    fee_cents: int = Field(ge=0)
    product_name: str

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def total_cents(self) -> int:
        return self.base_price_cents + self.fee_cents

    def metadata(self) -> Dict[str, str]:
        """Metadata echoed back by the provider and read during reconciliation."""

        return {
            "email": self.email,
            "packageType": self.package_type.value,
            "paymentType": self.payment_type.value,
            "paymentMethod": self.payment_method.value,
            "basePrice": str(self.base_price_cents),
            "fee": str(self.fee_cents),
            "total": str(self.total_cents),
        }


class PaymentClassification(BaseModel):
    """Package and payment type derived from checkout metadata."""

    package_type: PackageType
    payment_type: PaymentType
    payment_method: PaymentMethodClass
    amount_matched: bool

    model_config = ConfigDict(frozen=True)


class CheckoutSession(BaseModel):
    """Return value of a checkout session creation request."""

    session_id: str
    url: str
    quote: CheckoutQuote

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ReconciliationResult(BaseModel):
    """Outcome of reconciling one provider checkout."""

    outcome: ReconciliationOutcome
    provider_session_id: str
    source: ReconciliationSource = ReconciliationSource.REDIRECT
    entitlement: Optional[EntitlementSnapshot] = None
    payment: Optional[PaymentEvent] = None
    already_processed: bool = False
    token: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def granted(self) -> bool:
        return self.outcome != ReconciliationOutcome.UNRESOLVED


class BillingAuditEventType(str, Enum):
    """Audit event categories emitted by the billing subsystem."""

    PAYMENT_RECORDED = "payment_recorded"
    PAYMENT_DUPLICATE = "payment_duplicate"
    PAYMENT_SETTLED = "payment_settled"
    ENTITLEMENT_GRANTED = "entitlement_granted"
    ASYNC_PAYMENT_FAILED = "async_payment_failed"
    MANUAL_GRANT = "manual_grant"
    PAYMENTS_PURGED = "payments_purged"


class BillingAuditEvent(BaseModel):
    """Structured audit event for operators."""

    event_type: BillingAuditEventType
    email: Optional[str] = None
    provider_session_id: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)
