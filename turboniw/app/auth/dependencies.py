"""FastAPI dependencies resolving the caller once per request."""
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, Response, status

from ...app_context import get_config
from .context import AuthenticationContext, BearerTokenWriter, SessionCookieWriter, resolve_request_principal
from .tokens import RequestPrincipal, TokenCodec


def get_token_codec() -> TokenCodec:
    config = get_config()
    return TokenCodec(
        config.jwt_secret_key,
        algorithm=config.jwt_algorithm,
        ttl=timedelta(minutes=config.jwt_exp_minutes),
    )


def get_request_principal(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[RequestPrincipal]:
    config = get_config()
    return resolve_request_principal(
        get_token_codec(),
        authorization=authorization,
        session_token=request.cookies.get(config.session_cookie_name),
    )


def require_principal(
    principal: Optional[RequestPrincipal] = Depends(get_request_principal),
) -> RequestPrincipal:
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return principal


def build_auth_context(
    response: Response, principal: Optional[RequestPrincipal]
) -> AuthenticationContext:
    config = get_config()
    codec = get_token_codec()
    return AuthenticationContext(
        principal=principal,
        writers=(
            SessionCookieWriter(
                response,
                codec,
                cookie_name=config.session_cookie_name,
                secure=config.session_cookie_secure,
            ),
            BearerTokenWriter(codec),
        ),
    )


def get_auth_context(
    response: Response,
    principal: Optional[RequestPrincipal] = Depends(get_request_principal),
) -> AuthenticationContext:
    return build_auth_context(response, principal)


def clear_session_cookie(response: Response) -> None:
    config = get_config()
    SessionCookieWriter(
        response,
        get_token_codec(),
        cookie_name=config.session_cookie_name,
        secure=config.session_cookie_secure,
    ).clear()
