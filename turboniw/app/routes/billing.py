"""API routes exposing checkout creation and reconciliation."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool

from ...app_context import get_config
from ..auth import AuthenticationContext, RequestPrincipal
from ..auth.dependencies import get_auth_context, require_principal
from ..billing import CheckoutReconciler
from ..entitlements.exceptions import EntitlementStoreError
from ..schemas.billing import (
    CheckoutConfirmResponse,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PaymentListResponse,
    PaymentOut,
    WebhookAck,
)
from ..services.billing import get_checkout_reconciler, get_entitlement_store


logger = logging.getLogger("billing")

router = APIRouter(prefix="/api", tags=["billing"])


def _require_reconciler() -> CheckoutReconciler:
    reconciler = get_checkout_reconciler()
    if reconciler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stripe not configured. Set STRIPE_SECRET_KEY.",
        )
    return reconciler


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(
    payload: CheckoutSessionRequest,
    *,
    principal: RequestPrincipal = Depends(require_principal),
) -> CheckoutSessionResponse:
    reconciler = _require_reconciler()
    base_url = get_config().app_base_url
    try:
        session = reconciler.create_checkout(
            email=principal.email,
            package_type=payload.package_type,
            payment_method=payload.payment_method,
            success_url=f"{base_url}/account?success=1&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base_url}/account?canceled=1",
        )
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc
    return CheckoutSessionResponse(url=session.url)


@router.get("/checkout/confirm", response_model=CheckoutConfirmResponse)
def confirm_checkout(
    session_id: str = Query(..., min_length=1),
    *,
    auth: AuthenticationContext = Depends(get_auth_context),
) -> CheckoutConfirmResponse:
    reconciler = _require_reconciler()
    try:
        result = reconciler.reconcile(session_id, auth=auth)
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc
    return CheckoutConfirmResponse.from_result(result)


@router.post("/stripe-webhook", response_model=WebhookAck)
async def receive_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
) -> WebhookAck:
    if not get_config().webhook_enabled:
        logger.error("Rejecting Stripe webhook: STRIPE_WEBHOOK_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook signing secret not configured",
        )
    reconciler = _require_reconciler()
    payload = await request.body()
    try:
        event = reconciler.provider.construct_webhook_event(payload, stripe_signature or "")
        await run_in_threadpool(reconciler.handle_webhook_event, event)
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc
    return WebhookAck(received=True)


@router.get("/payments", response_model=PaymentListResponse)
def list_payments(
    *,
    principal: RequestPrincipal = Depends(require_principal),
) -> PaymentListResponse:
    try:
        payments = get_entitlement_store().list_payments(principal.email)
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc
    return PaymentListResponse(payments=[PaymentOut.from_event(event) for event in payments])
