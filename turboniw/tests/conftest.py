"""Shared fakes for the billing, account, and survey tests."""
from __future__ import annotations

import json
from typing import Dict, List, Optional

import pytest

from turboniw import app_context
from turboniw.app.billing import (
    BillingAuditEvent,
    BillingEventLogger,
    CheckoutQuote,
    CheckoutReconciler,
    PaymentProvider,
    ProviderCheckout,
    ProviderUnavailable,
    UnknownCheckoutSession,
    WebhookEvent,
    WebhookVerificationFailed,
)
from turboniw.app.billing.pricing import METHOD_TYPES
from turboniw.app.entitlements import InMemoryEntitlementStore
from turboniw.config import load_app_config


TEST_ENV = {
    "JWT_SECRET_KEY": "test-secret",
    "STRIPE_SECRET_KEY": "sk_test_123",
    "STRIPE_PUBLISHABLE_KEY": "pk_test_123",
    "STRIPE_WEBHOOK_SECRET": "whsec_test",
    "APP_BASE_URL": "https://turboniw.test",
    "ADMIN_EMAILS": "admin@example.com",
}

VALID_SIGNATURE = "t=1,v1=valid"


class FakePaymentProvider(PaymentProvider):
    def __init__(self) -> None:
        self.sessions: Dict[str, ProviderCheckout] = {}
        self.created: List[CheckoutQuote] = []
        self.unavailable = False
        self.retrieve_calls = 0

    def create_checkout_session(
        self,
        *,
        quote: CheckoutQuote,
        success_url: str,
        cancel_url: str,
    ) -> ProviderCheckout:
        if self.unavailable:
            raise ProviderUnavailable("create_checkout_session")
        session_id = f"cs_test_{len(self.sessions) + 1}"
        checkout = ProviderCheckout(
            id=session_id,
            url=f"https://checkout.stripe.test/{session_id}",
            payment_status="unpaid",
            amount_total=quote.total_cents,
            payment_method_types=list(METHOD_TYPES[quote.payment_method]),
            client_reference_id=quote.email,
            customer_email=quote.email,
            metadata=quote.metadata(),
        )
        self.sessions[session_id] = checkout
        self.created.append(quote)
        return checkout

    def retrieve_checkout_session(self, session_id: str) -> ProviderCheckout:
        self.retrieve_calls += 1
        if self.unavailable:
            raise ProviderUnavailable("retrieve_checkout_session")
        if session_id not in self.sessions:
            raise UnknownCheckoutSession(session_id)
        return self.sessions[session_id]

    def construct_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        if signature != VALID_SIGNATURE:
            raise WebhookVerificationFailed("signature mismatch")
        data = json.loads(payload)
        checkout = data.get("checkout")
        return WebhookEvent(
            id=data["id"],
            type=data["type"],
            checkout=ProviderCheckout(**checkout) if checkout else None,
        )

    def set_status(self, session_id: str, payment_status: str) -> ProviderCheckout:
        updated = self.sessions[session_id].model_copy(update={"payment_status": payment_status})
        self.sessions[session_id] = updated
        return updated

    def add_session(self, checkout: ProviderCheckout) -> ProviderCheckout:
        self.sessions[checkout.id] = checkout
        return checkout


class RecordingEventLogger(BillingEventLogger):
    def __init__(self) -> None:
        self.events: List[BillingAuditEvent] = []

    def log(self, event: BillingAuditEvent) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [event.event_type.value for event in self.events]


class FakeResponse:
    """Collects cookies written by the credential writers."""

    def __init__(self) -> None:
        self.cookies: Dict[str, Dict[str, object]] = {}
        self.deleted: List[str] = []

    def set_cookie(self, key: str, value: str, **kwargs: object) -> None:
        self.cookies[key] = {"value": value, **kwargs}

    def delete_cookie(self, key: str, **kwargs: object) -> None:
        self.deleted.append(key)
        self.cookies.pop(key, None)


def _unavailable_connection():
    raise AssertionError("tests must not open a database connection")


@pytest.fixture
def app_config():
    config = load_app_config(TEST_ENV)
    app_context.configure(get_conn=_unavailable_connection, config=config)
    return config


@pytest.fixture
def store() -> InMemoryEntitlementStore:
    return InMemoryEntitlementStore()


@pytest.fixture
def provider() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture
def event_logger() -> RecordingEventLogger:
    return RecordingEventLogger()


@pytest.fixture
def reconciler(store, provider, event_logger) -> CheckoutReconciler:
    return CheckoutReconciler(store=store, provider=provider, event_logger=event_logger)


def make_checkout(
    session_id: str,
    *,
    email: Optional[str] = "ana@example.com",
    payment_status: str = "paid",
    package_type: str = "form-filling",
    payment_type: str = "initial",
    payment_method: str = "card",
    base_price: int = 29900,
    fee: int = 897,
    amount_total: Optional[int] = None,
    method_types: Optional[List[str]] = None,
    use_metadata_email: bool = False,
) -> ProviderCheckout:
    metadata = {
        "packageType": package_type,
        "paymentType": payment_type,
        "paymentMethod": payment_method,
        "basePrice": str(base_price),
        "fee": str(fee),
    }
    if use_metadata_email and email:
        metadata["email"] = email
    return ProviderCheckout(
        id=session_id,
        payment_status=payment_status,
        amount_total=base_price + fee if amount_total is None else amount_total,
        payment_method_types=method_types
        or (["us_bank_account"] if payment_method == "bank-transfer" else ["card"]),
        client_reference_id=None if use_metadata_email else email,
        metadata=metadata,
    )
