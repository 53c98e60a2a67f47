"""Application wiring for the checkout reconciler."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, Dict, Optional

import stripe

from ...app_context import get_config
from ..billing import (
    BillingAuditEvent,
    BillingEventLogger,
    CheckoutQuote,
    CheckoutReconciler,
    PaymentProvider,
    PricingPolicy,
    ProviderCheckout,
    ProviderUnavailable,
    UnknownCheckoutSession,
    WebhookEvent,
    WebhookVerificationFailed,
)
from ..billing.pricing import METHOD_TYPES
from ..entitlements.repository import PostgresEntitlementStore
from ..entitlements.store import EntitlementStore


logger = logging.getLogger("billing")


class LoggingBillingEventLogger(BillingEventLogger):
    """Forwards billing audit events to the application logger."""

    def log(self, event: BillingAuditEvent) -> None:
        logger.info(
            "Billing event %s email=%s session=%s metadata=%s",
            event.event_type.value,
            event.email,
            event.provider_session_id,
            event.metadata,
            extra={
                "billing_event": event.event_type.value,
                "email": event.email,
                "provider_session_id": event.provider_session_id,
            },
        )


def _to_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, Mapping):
        return dict(obj)
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return {}


def checkout_from_stripe(obj: Any) -> ProviderCheckout:
    """Normalize a Stripe checkout session object or event payload."""

    data = _to_dict(obj)
    customer_details = _to_dict(data.get("customer_details"))
    return ProviderCheckout(
        id=str(data["id"]),
        url=data.get("url"),
        payment_status=data.get("payment_status"),
        amount_total=data.get("amount_total"),
        payment_method_types=list(data.get("payment_method_types") or []),
        client_reference_id=data.get("client_reference_id"),
        customer_email=data.get("customer_email") or customer_details.get("email"),
        metadata=_to_dict(data.get("metadata")),
    )


class StripePaymentProvider:
    """Hosted checkout through Stripe."""

    def __init__(
        self,
        *,
        secret_key: str,
        webhook_secret: Optional[str] = None,
        currency: str = "usd",
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must be provided")
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._currency = currency

    def create_checkout_session(
        self,
        *,
        quote: CheckoutQuote,
        success_url: str,
        cancel_url: str,
    ) -> ProviderCheckout:
        try:
            session = stripe.checkout.Session.create(
                api_key=self._secret_key,
                mode="payment",
                payment_method_types=list(METHOD_TYPES[quote.payment_method]),
                line_items=[
                    {
                        "price_data": {
                            "currency": self._currency,
                            "product_data": {"name": quote.product_name},
                            "unit_amount": quote.total_cents,
                        },
                        "quantity": 1,
                    }
                ],
                customer_email=quote.email,
                client_reference_id=quote.email,
                metadata=quote.metadata(),
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe checkout session creation failed: %s", exc)
            raise ProviderUnavailable("create_checkout_session", exc) from exc
        return checkout_from_stripe(session)

    def retrieve_checkout_session(self, session_id: str) -> ProviderCheckout:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self._secret_key)
        except stripe.InvalidRequestError as exc:
            raise UnknownCheckoutSession(session_id) from exc
        except stripe.StripeError as exc:
            raise ProviderUnavailable("retrieve_checkout_session", exc) from exc
        return checkout_from_stripe(session)

    def construct_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        if not self._webhook_secret:
            raise WebhookVerificationFailed("webhook signing secret is not configured")
        if not signature:
            raise WebhookVerificationFailed("missing signature header")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("Invalid Stripe webhook signature: %s", exc)
            raise WebhookVerificationFailed(str(exc)) from exc

        data = _to_dict(event)
        obj = _to_dict(data.get("data")).get("object")
        checkout = None
        if _to_dict(obj).get("object") == "checkout.session":
            checkout = checkout_from_stripe(obj)
        return WebhookEvent(id=str(data.get("id", "")), type=str(data.get("type", "")), checkout=checkout)


@lru_cache(maxsize=1)
def get_entitlement_store() -> EntitlementStore:
    return PostgresEntitlementStore()


@lru_cache(maxsize=1)
def get_payment_provider() -> Optional[PaymentProvider]:
    config = get_config()
    if not config.stripe_secret_key:
        logger.warning("STRIPE_SECRET_KEY is not set; checkout is disabled")
        return None
    return StripePaymentProvider(
        secret_key=config.stripe_secret_key,
        webhook_secret=config.stripe_webhook_secret,
        currency=config.pricing.currency,
    )


def get_checkout_reconciler() -> Optional[CheckoutReconciler]:
    provider = get_payment_provider()
    if provider is None:
        return None
    return _build_reconciler(provider)


@lru_cache(maxsize=1)
def _build_reconciler(provider: PaymentProvider) -> CheckoutReconciler:
    config = get_config()
    return CheckoutReconciler(
        store=get_entitlement_store(),
        provider=provider,
        event_logger=LoggingBillingEventLogger(),
        pricing=PricingPolicy(
            card_surcharge_percent=config.pricing.card_surcharge_percent,
            bank_transfer_fee_cents=config.pricing.bank_transfer_fee_cents,
        ),
    )


__all__ = [
    "LoggingBillingEventLogger",
    "StripePaymentProvider",
    "checkout_from_stripe",
    "get_checkout_reconciler",
    "get_entitlement_store",
    "get_payment_provider",
]
