"""Ordered resolution of the email that owns a checkout."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple, Union

from ..entitlements.models import is_email, normalize_email
from .models import ProviderCheckout


@dataclass(frozen=True)
class Resolved:
    email: str
    source: str


@dataclass(frozen=True)
class Unresolved:
    tried: Tuple[str, ...] = ()


IdentityResolution = Union[Resolved, Unresolved]

# Checked in order; the first well-formed email wins.
CHECKOUT_IDENTITY_SOURCES: Sequence[Tuple[str, Callable[[ProviderCheckout], Optional[str]]]] = (
    ("client_reference_id", lambda checkout: checkout.client_reference_id),
    ("metadata.email", lambda checkout: checkout.metadata.get("email")),
)


def resolve_checkout_identity(checkout: ProviderCheckout) -> IdentityResolution:
    tried = []
    for source, read in CHECKOUT_IDENTITY_SOURCES:
        tried.append(source)
        candidate = read(checkout)
        if is_email(candidate):
            return Resolved(email=normalize_email(candidate), source=source)
    return Unresolved(tried=tuple(tried))


__all__ = [
    "CHECKOUT_IDENTITY_SOURCES",
    "IdentityResolution",
    "Resolved",
    "Unresolved",
    "resolve_checkout_identity",
]
