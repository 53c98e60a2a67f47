"""Errors raised by the entitlement store."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status

from .models import PaymentEvent


@dataclass
class EntitlementStoreError(Exception):
    """Base class for store failures that can be surfaced to API callers."""

    code: str
    message: str
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        base_detail: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            base_detail.update(self.detail)
        object.__setattr__(self, "_payload", base_detail)
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        return self._payload

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=dict(self.payload))


class DuplicateIdentity(EntitlementStoreError):
    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(
            code="email_already_registered",
            message="Email already registered",
            status_code=status.HTTP_409_CONFLICT,
        )


class PrincipalNotFound(EntitlementStoreError, LookupError):
    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(
            code="account_not_found",
            message="No account found. Please create an account.",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class PaymentEventNotFound(EntitlementStoreError, LookupError):
    def __init__(self, stripe_session_id: str) -> None:
        self.stripe_session_id = stripe_session_id
        super().__init__(
            code="payment_not_found",
            message="Payment not found",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class DuplicatePaymentEvent(EntitlementStoreError):
    """The provider session was already recorded; callers treat this as done."""

    def __init__(self, stripe_session_id: str, existing: Optional[PaymentEvent] = None) -> None:
        self.stripe_session_id = stripe_session_id
        self.existing = existing
        super().__init__(
            code="payment_already_recorded",
            message="Payment already recorded",
            status_code=status.HTTP_200_OK,
        )


class PersistenceFailure(EntitlementStoreError):
    """The relational store rejected or failed an operation."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(
            code="persistence_failure",
            message="The service is temporarily unavailable. Please try again.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
