"""Authentication context: credentials caching a principal's entitlement."""

from .context import (
    AuthenticationContext,
    BearerTokenWriter,
    CredentialWriter,
    SessionCookieWriter,
    resolve_request_principal,
)
from .tokens import RequestPrincipal, TokenCodec

__all__ = [
    "AuthenticationContext",
    "BearerTokenWriter",
    "CredentialWriter",
    "RequestPrincipal",
    "SessionCookieWriter",
    "TokenCodec",
    "resolve_request_principal",
]
