"""Caller credentials and the one operation that refreshes them."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from fastapi import Response

from ..entitlements.models import EntitlementSnapshot, normalize_email
from .tokens import RequestPrincipal, TokenCodec


class CredentialWriter(Protocol):
    """A place where the caller keeps a copy of their entitlement."""

    def refresh(self, snapshot: EntitlementSnapshot) -> Optional[str]:
        ...


class SessionCookieWriter:
    """Writes the session cookie onto the outgoing response."""

    def __init__(
        self,
        response: Response,
        codec: TokenCodec,
        *,
        cookie_name: str = "session",
        secure: bool = False,
    ) -> None:
        self._response = response
        self._codec = codec
        self._cookie_name = cookie_name
        self._secure = secure

    def refresh(self, snapshot: EntitlementSnapshot) -> Optional[str]:
        self._response.set_cookie(
            key=self._cookie_name,
            value=self._codec.encode(snapshot),
            httponly=True,
            samesite="lax",
            secure=self._secure,
            max_age=int(self._codec.ttl.total_seconds()),
            path="/",
        )
        return None

    def clear(self) -> None:
        self._response.delete_cookie(
            self._cookie_name,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self._secure,
        )


class BearerTokenWriter:
    """Mints a bearer token that is handed back in the response body."""

    def __init__(self, codec: TokenCodec) -> None:
        self._codec = codec
        self.token: Optional[str] = None

    def refresh(self, snapshot: EntitlementSnapshot) -> Optional[str]:
        self.token = self._codec.encode(snapshot)
        return self.token


def resolve_request_principal(
    codec: TokenCodec,
    *,
    authorization: Optional[str],
    session_token: Optional[str],
) -> Optional[RequestPrincipal]:
    """Resolve the caller from a bearer header first, then the session cookie."""

    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            principal = codec.decode(credentials.strip(), source="bearer")
            if principal is not None:
                return principal
    if session_token:
        return codec.decode(session_token, source="cookie")
    return None


@dataclass(frozen=True)
class AuthenticationContext:
    """Request-scoped view of the caller and their credential writers."""

    principal: Optional[RequestPrincipal]
    writers: Sequence[CredentialWriter] = field(default_factory=tuple)

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None

    def matches(self, email: str) -> bool:
        return self.principal is not None and self.principal.email == normalize_email(email)

    def refresh(self, snapshot: EntitlementSnapshot) -> Optional[str]:
        """Rewrite every credential from ``snapshot``; returns the bearer token."""

        token: Optional[str] = None
        for writer in self.writers:
            minted = writer.refresh(snapshot)
            if minted:
                token = minted
        return token
