"""Entitlement store: principals, their paid package, and payment history."""

from .exceptions import (
    DuplicateIdentity,
    DuplicatePaymentEvent,
    EntitlementStoreError,
    PaymentEventNotFound,
    PersistenceFailure,
    PrincipalNotFound,
)
from .models import (
    EntitlementSnapshot,
    PackageType,
    PaymentEvent,
    PaymentMethodClass,
    PaymentStatus,
    PaymentType,
    Principal,
    normalize_email,
)
from .store import EntitlementStore, InMemoryEntitlementStore

__all__ = [
    "DuplicateIdentity",
    "DuplicatePaymentEvent",
    "EntitlementSnapshot",
    "EntitlementStore",
    "EntitlementStoreError",
    "InMemoryEntitlementStore",
    "PackageType",
    "PaymentEvent",
    "PaymentEventNotFound",
    "PaymentMethodClass",
    "PaymentStatus",
    "PaymentType",
    "PersistenceFailure",
    "Principal",
    "PrincipalNotFound",
    "normalize_email",
]
