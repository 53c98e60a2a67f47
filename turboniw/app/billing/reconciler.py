"""Turns provider checkout outcomes into entitlement changes exactly once."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from ..entitlements.exceptions import DuplicatePaymentEvent, PrincipalNotFound
from ..entitlements.models import (
    EntitlementSnapshot,
    PackageType,
    PaymentEvent,
    PaymentMethodClass,
    PaymentStatus,
    Principal,
)
from ..entitlements.store import EntitlementStore
from .exceptions import InvalidCheckoutMetadata, MissingIdentity, ProviderUnavailable
from .identity import Unresolved, resolve_checkout_identity
from .models import (
    BillingAuditEvent,
    BillingAuditEventType,
    CheckoutQuote,
    CheckoutSession,
    ProviderCheckout,
    ProviderPaymentStatus,
    ReconciliationOutcome,
    ReconciliationResult,
    ReconciliationSource,
    WebhookEvent,
    WebhookEventType,
)
from .pricing import PricingPolicy, classify_payment, infer_payment_method, quote_checkout


logger = logging.getLogger("billing")

_ASYNC_INITIATED_STATUSES = frozenset(
    {ProviderPaymentStatus.PROCESSING.value, ProviderPaymentStatus.UNPAID.value}
)
_PACKAGE_RANK = {None: 0, PackageType.FORM_FILLING: 1, PackageType.FULL: 2}


class PaymentProvider(Protocol):
    """Hosted checkout provider integration."""

    def create_checkout_session(
        self,
        *,
        quote: CheckoutQuote,
        success_url: str,
        cancel_url: str,
    ) -> ProviderCheckout:
        """Create a provider checkout session for ``quote``."""

    def retrieve_checkout_session(self, session_id: str) -> ProviderCheckout:
        """Fetch the authoritative state of a checkout session."""

    def construct_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify a webhook delivery and return the parsed event."""


class BillingEventLogger(Protocol):
    """Captures structured billing audit events."""

    def log(self, event: BillingAuditEvent) -> None:
        ...


class CredentialRefresher(Protocol):
    """Caller credentials that cache a principal's entitlement."""

    def matches(self, email: str) -> bool:
        ...

    def refresh(self, snapshot: EntitlementSnapshot) -> Optional[str]:
        ...


def settlement_status(checkout: ProviderCheckout) -> Optional[PaymentStatus]:
    """Map provider status to the status a payment event is stored with.

    ``None`` means the checkout is not eligible for reconciliation yet.
    """

    if checkout.is_paid:
        return PaymentStatus.COMPLETED
    method = infer_payment_method(checkout.metadata, checkout.payment_method_types)
    if method.settles_asynchronously and checkout.payment_status in _ASYNC_INITIATED_STATUSES:
        return PaymentStatus.PROCESSING
    return None


def _dominant_package(
    current: Optional[PackageType], incoming: PackageType
) -> PackageType:
    # A late confirmation of an older purchase never downgrades.
    if _PACKAGE_RANK[current] > _PACKAGE_RANK[incoming]:
        return current  # type: ignore[return-value]
    return incoming


@dataclass
class CheckoutReconciler:
    """Creates checkouts and reconciles their outcome into the entitlement store."""

    store: EntitlementStore
    provider: PaymentProvider
    event_logger: BillingEventLogger
    pricing: PricingPolicy = field(default_factory=PricingPolicy)

    def create_checkout(
        self,
        *,
        email: str,
        package_type: PackageType,
        payment_method: PaymentMethodClass,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        principal = self.store.get_principal(email)
        quote = quote_checkout(principal, package_type, payment_method, self.pricing)
        checkout = self.provider.create_checkout_session(
            quote=quote,
            success_url=success_url,
            cancel_url=cancel_url,
        )
        if not checkout.url:
            raise ProviderUnavailable("create_checkout_session")

        logger.info(
            "Created checkout %s for %s: %s %s via %s, %s cents",
            checkout.id,
            principal.email,
            quote.payment_type.value,
            quote.package_type.value,
            quote.payment_method.value,
            quote.total_cents,
            extra={"provider_session_id": checkout.id, "email": principal.email},
        )
        return CheckoutSession(session_id=checkout.id, url=checkout.url, quote=quote)

    def reconcile(
        self,
        provider_session_id: str,
        auth: Optional[CredentialRefresher] = None,
    ) -> ReconciliationResult:
        """Reconcile a checkout the caller was redirected back from.

        Safe to call any number of times for the same session id. Re-polling
        never promotes a ``processing`` payment to ``completed``; only the
        webhook path does.
        """

        try:
            checkout = self.provider.retrieve_checkout_session(provider_session_id)
        except ProviderUnavailable:
            logger.warning(
                "Payment provider unavailable while retrieving checkout %s",
                provider_session_id,
                extra={"provider_session_id": provider_session_id},
            )
            raise
        return self._apply(checkout, ReconciliationSource.REDIRECT, auth)

    def handle_webhook_event(self, event: WebhookEvent) -> Optional[ReconciliationResult]:
        """Apply a verified webhook delivery. Duplicate deliveries are harmless."""

        try:
            event_type = WebhookEventType(event.type)
        except ValueError:
            logger.debug("Ignoring webhook event %s of type %s", event.id, event.type)
            return None

        checkout = event.checkout
        if checkout is None:
            logger.error("Webhook event %s (%s) carries no checkout session", event.id, event.type)
            return None

        if event_type == WebhookEventType.ASYNC_PAYMENT_FAILED:
            self._record_async_failure(event, checkout)
            return None

        return self._apply(checkout, ReconciliationSource.WEBHOOK, None)

    def _apply(
        self,
        checkout: ProviderCheckout,
        source: ReconciliationSource,
        auth: Optional[CredentialRefresher],
    ) -> ReconciliationResult:
        log_extra = {"provider_session_id": checkout.id, "reconcile_source": source.value}

        status = settlement_status(checkout)
        if status is None:
            logger.info(
                "Checkout %s not reconciled: provider status %s",
                checkout.id,
                checkout.payment_status,
                extra={**log_extra, "reconcile_outcome": ReconciliationOutcome.UNRESOLVED.value},
            )
            return ReconciliationResult(
                outcome=ReconciliationOutcome.UNRESOLVED,
                provider_session_id=checkout.id,
                source=source,
            )

        identity = resolve_checkout_identity(checkout)
        if isinstance(identity, Unresolved):
            logger.error(
                "Checkout %s has no identity reference (tried %s)",
                checkout.id,
                ", ".join(identity.tried),
                extra=log_extra,
            )
            raise MissingIdentity(checkout.id, identity.tried)
        email = identity.email
        log_extra["email"] = email

        try:
            classification = classify_payment(checkout)
        except InvalidCheckoutMetadata as exc:
            logger.error("Checkout %s metadata invalid: %s", checkout.id, exc.reason, extra=log_extra)
            raise

        try:
            principal = self.store.get_principal(email)
        except PrincipalNotFound:
            logger.error("Checkout %s references unknown account %s", checkout.id, email, extra=log_extra)
            raise

        payment, already_processed = self._record(
            PaymentEvent(
                user_email=email,
                stripe_session_id=checkout.id,
                amount_cents=checkout.amount_total or 0,
                package_type=classification.package_type,
                payment_type=classification.payment_type,
                payment_method=classification.payment_method,
                status=status,
            ),
            promote=source == ReconciliationSource.WEBHOOK and status == PaymentStatus.COMPLETED,
        )

        snapshot = self._grant(principal, classification.package_type, checkout.id)

        token = None
        if auth is not None and auth.matches(email):
            token = auth.refresh(snapshot)

        outcome = (
            ReconciliationOutcome.PROCESSING
            if payment is not None and payment.status == PaymentStatus.PROCESSING
            else ReconciliationOutcome.COMPLETED
        )
        logger.info(
            "Checkout %s reconciled for %s: %s%s",
            checkout.id,
            email,
            outcome.value,
            " (already processed)" if already_processed else "",
            extra={**log_extra, "reconcile_outcome": outcome.value},
        )
        return ReconciliationResult(
            outcome=outcome,
            provider_session_id=checkout.id,
            source=source,
            entitlement=snapshot,
            payment=payment,
            already_processed=already_processed,
            token=token,
        )

    def _record(
        self, event: PaymentEvent, *, promote: bool
    ) -> tuple[Optional[PaymentEvent], bool]:
        try:
            payment_id = self.store.record_payment(event)
        except DuplicatePaymentEvent as duplicate:
            existing = duplicate.existing or self.store.get_payment(event.stripe_session_id)
            self.event_logger.log(
                BillingAuditEvent(
                    event_type=BillingAuditEventType.PAYMENT_DUPLICATE,
                    email=event.user_email,
                    provider_session_id=event.stripe_session_id,
                )
            )
            if promote and existing is not None and existing.status == PaymentStatus.PROCESSING:
                existing = self.store.mark_payment_completed(event.stripe_session_id)
                self.event_logger.log(
                    BillingAuditEvent(
                        event_type=BillingAuditEventType.PAYMENT_SETTLED,
                        email=event.user_email,
                        provider_session_id=event.stripe_session_id,
                    )
                )
            return existing, True

        self.event_logger.log(
            BillingAuditEvent(
                event_type=BillingAuditEventType.PAYMENT_RECORDED,
                email=event.user_email,
                provider_session_id=event.stripe_session_id,
                metadata={
                    "amount_cents": str(event.amount_cents),
                    "package_type": event.package_type.value,
                    "payment_type": event.payment_type.value,
                    "payment_method": event.payment_method.value,
                    "status": event.status.value,
                },
            )
        )
        return event.model_copy(update={"id": payment_id}), False

    def _grant(
        self, principal: Principal, package_type: PackageType, provider_session_id: str
    ) -> EntitlementSnapshot:
        current = principal.package_type if principal.paid else None
        package = _dominant_package(current, package_type)
        updated = self.store.set_entitlement(principal.email, True, package)
        self.event_logger.log(
            BillingAuditEvent(
                event_type=BillingAuditEventType.ENTITLEMENT_GRANTED,
                email=principal.email,
                provider_session_id=provider_session_id,
                metadata={"package_type": package.value},
            )
        )
        return updated.entitlement()

    def _record_async_failure(self, event: WebhookEvent, checkout: ProviderCheckout) -> None:
        identity = resolve_checkout_identity(checkout)
        email = identity.email if not isinstance(identity, Unresolved) else None
        logger.error(
            "Asynchronous payment failed for checkout %s (%s); provisional entitlement needs review",
            checkout.id,
            email or "unknown email",
            extra={"provider_session_id": checkout.id, "email": email, "webhook_event_id": event.id},
        )
        self.event_logger.log(
            BillingAuditEvent(
                event_type=BillingAuditEventType.ASYNC_PAYMENT_FAILED,
                email=email,
                provider_session_id=checkout.id,
                metadata={"webhook_event_id": event.id},
            )
        )


__all__ = [
    "BillingEventLogger",
    "CheckoutReconciler",
    "CredentialRefresher",
    "PaymentProvider",
    "settlement_status",
]
