"""Errors raised while creating and reconciling checkouts."""
from __future__ import annotations

from typing import Optional, Sequence

from fastapi import status

from ..entitlements.exceptions import EntitlementStoreError


class ReconciliationError(EntitlementStoreError):
    """Base class for checkout failures with a user-facing message."""


class ProviderUnavailable(ReconciliationError):
    """The payment provider could not be reached; retry with backoff."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(
            code="payment_provider_unavailable",
            message="The payment provider is temporarily unavailable. Please try again.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


class MissingIdentity(ReconciliationError):
    """A checkout carries no usable email reference."""

    def __init__(self, provider_session_id: str, tried: Sequence[str] = ()) -> None:
        self.provider_session_id = provider_session_id
        self.tried = tuple(tried)
        super().__init__(
            code="payment_identity_missing",
            message="Payment could not be confirmed. Please contact support.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class InvalidCheckoutMetadata(ReconciliationError):
    """Metadata recorded at checkout creation is absent or unreadable."""

    def __init__(self, provider_session_id: str, reason: str) -> None:
        self.provider_session_id = provider_session_id
        self.reason = reason
        super().__init__(
            code="payment_metadata_invalid",
            message="Payment could not be confirmed. Please contact support.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class UnknownCheckoutSession(ReconciliationError, LookupError):
    def __init__(self, provider_session_id: str) -> None:
        self.provider_session_id = provider_session_id
        super().__init__(
            code="checkout_session_not_found",
            message="Checkout session not found",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class CheckoutNotAllowed(ReconciliationError):
    def __init__(self, message: str) -> None:
        super().__init__(
            code="checkout_not_allowed",
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class WebhookVerificationFailed(ReconciliationError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            code="webhook_signature_invalid",
            message="Invalid webhook signature",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


__all__ = [
    "CheckoutNotAllowed",
    "InvalidCheckoutMetadata",
    "MissingIdentity",
    "ProviderUnavailable",
    "ReconciliationError",
    "UnknownCheckoutSession",
    "WebhookVerificationFailed",
]
