"""Registration, login, and session endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from passlib.hash import bcrypt

from ...app_context import get_config
from ..auth import AuthenticationContext
from ..auth.dependencies import build_auth_context, clear_session_cookie, get_auth_context
from ..entitlements.exceptions import EntitlementStoreError, PrincipalNotFound
from ..entitlements.models import Principal
from ..schemas.accounts import (
    AccountOut,
    AuthResponse,
    LoginRequest,
    MeResponse,
    RegisterRequest,
    StripeConfigResponse,
)
from ..services.billing import get_entitlement_store


logger = logging.getLogger("accounts")

router = APIRouter(prefix="/api", tags=["accounts"])


def _account_out(principal: Principal) -> AccountOut:
    return AccountOut.from_principal(
        principal, is_admin=principal.email in get_config().admin_emails
    )


def _sign_in(response: Response, principal: Principal) -> AuthResponse:
    token = build_auth_context(response, None).refresh(principal.entitlement())
    return AuthResponse(user=_account_out(principal), token=token)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, response: Response) -> AuthResponse:
    config = get_config()
    password = payload.password
    if not config.password_min_length <= len(password) <= config.password_max_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Password must be {config.password_min_length}-"
                f"{config.password_max_length} characters."
            ),
        )

    try:
        principal = get_entitlement_store().create_principal(payload.email, bcrypt.hash(password))
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc

    logger.info("Registered account %s", principal.email, extra={"email": principal.email})
    return _sign_in(response, principal)


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, response: Response) -> AuthResponse:
    try:
        principal = get_entitlement_store().get_principal(payload.email)
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc

    if not bcrypt.verify(payload.password, principal.password_hash):
        logger.info("Rejected login for %s", principal.email, extra={"email": principal.email})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect password")
    return _sign_in(response, principal)


@router.post("/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"ok": True}


@router.get("/me", response_model=MeResponse)
def read_current_account(auth: AuthenticationContext = Depends(get_auth_context)) -> MeResponse:
    principal = auth.principal
    if principal is None:
        return MeResponse(user=None)

    try:
        stored = get_entitlement_store().get_principal(principal.email)
    except PrincipalNotFound:
        return MeResponse(user=None)
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc

    # The token only caches the entitlement; rewrite it when the store moved on.
    if stored.entitlement() != principal.snapshot():
        auth.refresh(stored.entitlement())
    return MeResponse(user=_account_out(stored))


@router.get("/stripe-config", response_model=StripeConfigResponse)
def stripe_config() -> StripeConfigResponse:
    config = get_config()
    return StripeConfigResponse(
        publishable_key=config.stripe_publishable_key,
        enabled=config.stripe_enabled,
    )
