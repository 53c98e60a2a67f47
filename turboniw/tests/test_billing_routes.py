from __future__ import annotations

import asyncio
import json

import pytest
from fastapi import HTTPException

from conftest import VALID_SIGNATURE, FakeResponse
from turboniw import app_context
from turboniw.app.auth import AuthenticationContext, BearerTokenWriter, RequestPrincipal, SessionCookieWriter, TokenCodec
from turboniw.app.billing import ReconciliationOutcome
from turboniw.app.entitlements import PackageType, PaymentMethodClass, PaymentStatus
from turboniw.app.routes import billing as billing_routes
from turboniw.app.schemas.billing import CheckoutSessionRequest
from turboniw.config import load_app_config


class _WebhookRequest:
    def __init__(self, payload: dict) -> None:
        self._body = json.dumps(payload).encode()

    async def body(self) -> bytes:
        return self._body


@pytest.fixture
def wired(monkeypatch, app_config, store, reconciler):
    monkeypatch.setattr(billing_routes, "get_checkout_reconciler", lambda: reconciler)
    monkeypatch.setattr(billing_routes, "get_entitlement_store", lambda: store)
    store.create_principal("ana@example.com", "hash")
    return reconciler


def _principal(email="ana@example.com") -> RequestPrincipal:
    return RequestPrincipal(email=email, paid=False, package_type=None, source="cookie")


def _auth(response: FakeResponse, email="ana@example.com") -> AuthenticationContext:
    codec = TokenCodec("test-secret")
    return AuthenticationContext(
        principal=_principal(email),
        writers=(SessionCookieWriter(response, codec), BearerTokenWriter(codec)),
    )


def _start_checkout(method=PaymentMethodClass.CARD) -> str:
    response = billing_routes.create_checkout_session(
        CheckoutSessionRequest(packageType="form-filling", paymentMethod=method.value),
        principal=_principal(),
    )
    return response.url.rsplit("/", 1)[-1]


def test_checkout_request_accepts_camel_case_aliases():
    payload = CheckoutSessionRequest.model_validate({"packageType": "full", "paymentMethod": "bank-transfer"})

    assert payload.package_type == PackageType.FULL
    assert payload.payment_method == PaymentMethodClass.BANK_TRANSFER


def test_create_checkout_session_returns_provider_url(wired, provider):
    response = billing_routes.create_checkout_session(
        CheckoutSessionRequest(packageType="form-filling", paymentMethod="card"),
        principal=_principal(),
    )

    assert response.url == "https://checkout.stripe.test/cs_test_1"
    assert provider.created[0].total_cents == 30797


def test_create_checkout_session_without_stripe_is_503(monkeypatch, app_config):
    monkeypatch.setattr(billing_routes, "get_checkout_reconciler", lambda: None)

    with pytest.raises(HTTPException) as excinfo:
        billing_routes.create_checkout_session(
            CheckoutSessionRequest(packageType="full"),
            principal=_principal(),
        )

    assert excinfo.value.status_code == 503


def test_create_checkout_session_maps_provider_outage(wired, provider):
    provider.unavailable = True

    with pytest.raises(HTTPException) as excinfo:
        _start_checkout()

    assert excinfo.value.status_code == 503
    assert excinfo.value.detail["error"] == "payment_provider_unavailable"


def test_create_checkout_session_for_owned_package_is_400(wired, store):
    store.set_entitlement("ana@example.com", True, PackageType.FULL)

    with pytest.raises(HTTPException) as excinfo:
        _start_checkout()

    assert excinfo.value.status_code == 400


def test_confirm_checkout_grants_and_refreshes_credentials(wired, provider, store):
    session_id = _start_checkout()
    provider.set_status(session_id, "paid")
    response = FakeResponse()

    result = billing_routes.confirm_checkout(session_id, auth=_auth(response))

    assert result.paid is True
    assert result.status == ReconciliationOutcome.COMPLETED
    assert result.entitlement.package_type == PackageType.FORM_FILLING
    assert result.token is not None
    assert "session" in response.cookies
    assert store.get_principal("ana@example.com").paid is True


def test_confirm_checkout_for_unpaid_session_reports_not_paid(wired, provider):
    session_id = _start_checkout()

    result = billing_routes.confirm_checkout(session_id, auth=_auth(FakeResponse()))

    assert result.paid is False
    assert result.status == ReconciliationOutcome.UNRESOLVED
    assert result.entitlement is None


def test_confirm_checkout_unknown_session_is_404(wired):
    with pytest.raises(HTTPException) as excinfo:
        billing_routes.confirm_checkout("cs_missing", auth=_auth(FakeResponse()))

    assert excinfo.value.status_code == 404


def test_confirm_checkout_serializes_with_aliases(wired, provider):
    session_id = _start_checkout()
    provider.set_status(session_id, "paid")

    result = billing_routes.confirm_checkout(session_id, auth=_auth(FakeResponse()))
    body = result.model_dump(by_alias=True, mode="json")

    assert body["entitlement"]["packageType"] == "form-filling"
    assert body["status"] == "completed"


def test_webhook_settles_bank_transfer(wired, provider, store):
    session_id = _start_checkout(PaymentMethodClass.BANK_TRANSFER)
    provider.set_status(session_id, "processing")
    billing_routes.confirm_checkout(session_id, auth=_auth(FakeResponse()))
    settled = provider.set_status(session_id, "paid")

    ack = asyncio.run(
        billing_routes.receive_stripe_webhook(
            _WebhookRequest(
                {
                    "id": "evt_1",
                    "type": "checkout.session.async_payment_succeeded",
                    "checkout": settled.model_dump(),
                }
            ),
            stripe_signature=VALID_SIGNATURE,
        )
    )

    assert ack.received is True
    payments = store.list_payments("ana@example.com")
    assert len(payments) == 1
    assert payments[0].status == PaymentStatus.COMPLETED


def test_webhook_rejects_bad_signature(wired, store):
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(
            billing_routes.receive_stripe_webhook(
                _WebhookRequest({"id": "evt_1", "type": "checkout.session.completed"}),
                stripe_signature="t=1,v1=forged",
            )
        )

    assert excinfo.value.status_code == 400
    assert store.list_payments("ana@example.com") == []


def test_webhook_without_signing_secret_is_503(monkeypatch, reconciler):
    env = {"JWT_SECRET_KEY": "test-secret", "STRIPE_SECRET_KEY": "sk_test_123"}
    app_context.configure(get_conn=lambda: None, config=load_app_config(env))
    monkeypatch.setattr(billing_routes, "get_checkout_reconciler", lambda: reconciler)

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(
            billing_routes.receive_stripe_webhook(
                _WebhookRequest({"id": "evt_1", "type": "checkout.session.completed"}),
                stripe_signature=VALID_SIGNATURE,
            )
        )

    assert excinfo.value.status_code == 503


def test_list_payments_returns_callers_history(wired, provider):
    session_id = _start_checkout()
    provider.set_status(session_id, "paid")
    billing_routes.confirm_checkout(session_id, auth=_auth(FakeResponse()))

    response = billing_routes.list_payments(principal=_principal())

    assert len(response.payments) == 1
    body = response.model_dump(by_alias=True, mode="json")
    assert body["payments"][0]["amountCents"] == 30797
    assert body["payments"][0]["stripeSessionId"] == session_id
