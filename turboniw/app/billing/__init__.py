"""Billing domain package: checkout pricing, creation, and reconciliation."""

from .exceptions import (
    CheckoutNotAllowed,
    InvalidCheckoutMetadata,
    MissingIdentity,
    ProviderUnavailable,
    ReconciliationError,
    UnknownCheckoutSession,
    WebhookVerificationFailed,
)
from .identity import IdentityResolution, Resolved, Unresolved, resolve_checkout_identity
from .models import (
    BillingAuditEvent,
    BillingAuditEventType,
    CheckoutQuote,
    CheckoutSession,
    PaymentClassification,
    ProviderCheckout,
    ProviderPaymentStatus,
    ReconciliationOutcome,
    ReconciliationResult,
    ReconciliationSource,
    WebhookEvent,
    WebhookEventType,
)
from .pricing import PricingPolicy, classify_payment, quote_checkout
from .reconciler import (
    BillingEventLogger,
    CheckoutReconciler,
    CredentialRefresher,
    PaymentProvider,
    settlement_status,
)

__all__ = [
    "BillingAuditEvent",
    "BillingAuditEventType",
    "BillingEventLogger",
    "CheckoutNotAllowed",
    "CheckoutQuote",
    "CheckoutReconciler",
    "CheckoutSession",
    "CredentialRefresher",
    "IdentityResolution",
    "InvalidCheckoutMetadata",
    "MissingIdentity",
    "PaymentClassification",
    "PaymentProvider",
    "PricingPolicy",
    "ProviderCheckout",
    "ProviderPaymentStatus",
    "ProviderUnavailable",
    "ReconciliationError",
    "ReconciliationOutcome",
    "ReconciliationResult",
    "ReconciliationSource",
    "Resolved",
    "UnknownCheckoutSession",
    "Unresolved",
    "WebhookEvent",
    "WebhookEventType",
    "WebhookVerificationFailed",
    "classify_payment",
    "quote_checkout",
    "resolve_checkout_identity",
    "settlement_status",
]
