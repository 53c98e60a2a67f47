"""Entitlement store protocol and an in-memory implementation."""
from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, List, Optional, Protocol

from .exceptions import (
    DuplicateIdentity,
    DuplicatePaymentEvent,
    PaymentEventNotFound,
    PrincipalNotFound,
)
from .models import PackageType, PaymentEvent, PaymentStatus, Principal, normalize_email


class EntitlementStore(Protocol):
    """Durable source of truth for principals and their payment history."""

    def create_principal(self, email: str, password_hash: str) -> Principal:
        ...

    def get_principal(self, email: str) -> Principal:
        ...

    def set_entitlement(
        self, email: str, paid: bool, package_type: Optional[PackageType]
    ) -> Principal:
        ...

    def record_payment(self, event: PaymentEvent) -> int:
        ...

    def mark_payment_completed(self, stripe_session_id: str) -> PaymentEvent:
        ...

    def get_payment(self, stripe_session_id: str) -> Optional[PaymentEvent]:
        ...

    def list_payments(self, email: str) -> List[PaymentEvent]:
        ...

    def list_principals(self) -> List[Principal]:
        ...

    def purge_payments(self, email: Optional[str] = None) -> int:
        ...


class InMemoryEntitlementStore:
    """Dictionary backed store suitable for tests and local development."""

    def __init__(self, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = Lock()
        self._principals: Dict[str, Principal] = {}
        self._payments: Dict[str, PaymentEvent] = {}
        self._next_principal_id = 1
        self._next_payment_id = 1

    def create_principal(self, email: str, password_hash: str) -> Principal:
        key = normalize_email(email)
        with self._lock:
            if key in self._principals:
                raise DuplicateIdentity(key)
            principal = Principal(
                id=self._next_principal_id,
                email=key,
                password_hash=password_hash,
                created_at=self._clock(),
            )
            self._next_principal_id += 1
            self._principals[key] = principal
            return principal

    def get_principal(self, email: str) -> Principal:
        key = normalize_email(email)
        principal = self._principals.get(key)
        if principal is None:
            raise PrincipalNotFound(key)
        return principal

    def set_entitlement(
        self, email: str, paid: bool, package_type: Optional[PackageType]
    ) -> Principal:
        key = normalize_email(email)
        with self._lock:
            principal = self._principals.get(key)
            if principal is None:
                raise PrincipalNotFound(key)
            updated = principal.model_copy(update={"paid": paid, "package_type": package_type})
            self._principals[key] = updated
            return updated

    def record_payment(self, event: PaymentEvent) -> int:
        with self._lock:
            existing = self._payments.get(event.stripe_session_id)
            if existing is not None:
                raise DuplicatePaymentEvent(event.stripe_session_id, existing)
            if event.user_email not in self._principals:
                raise PrincipalNotFound(event.user_email)
            payment_id = self._next_payment_id
            self._next_payment_id += 1
            self._payments[event.stripe_session_id] = event.model_copy(
                update={"id": payment_id, "created_at": self._clock()}
            )
            return payment_id

    def mark_payment_completed(self, stripe_session_id: str) -> PaymentEvent:
        with self._lock:
            event = self._payments.get(stripe_session_id)
            if event is None:
                raise PaymentEventNotFound(stripe_session_id)
            if event.status == PaymentStatus.COMPLETED:
                return event
            updated = event.model_copy(update={"status": PaymentStatus.COMPLETED})
            self._payments[stripe_session_id] = updated
            return updated

    def get_payment(self, stripe_session_id: str) -> Optional[PaymentEvent]:
        return self._payments.get(stripe_session_id)

    def list_payments(self, email: str) -> List[PaymentEvent]:
        key = normalize_email(email)
        matching = [event for event in self._payments.values() if event.user_email == key]
        return sorted(matching, key=lambda event: (event.created_at, event.id or 0), reverse=True)

    def list_principals(self) -> List[Principal]:
        return sorted(self._principals.values(), key=lambda principal: principal.created_at, reverse=True)

    def purge_payments(self, email: Optional[str] = None) -> int:
        with self._lock:
            if email is None:
                removed = len(self._payments)
                self._payments.clear()
                return removed
            key = normalize_email(email)
            doomed = [sid for sid, event in self._payments.items() if event.user_email == key]
            for sid in doomed:
                self._payments.pop(sid, None)
            return len(doomed)


__all__ = ["EntitlementStore", "InMemoryEntitlementStore"]
