"""Signed, time-bound tokens carrying an entitlement snapshot."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from ..entitlements.models import EntitlementSnapshot, PackageType, is_email, normalize_email


@dataclass(frozen=True)
class RequestPrincipal:
    """Who is calling, as claimed by their credential. A cache, not the truth."""

    email: str
    paid: bool
    package_type: Optional[PackageType]
    source: str
    expires_at: Optional[datetime] = None

    def snapshot(self) -> EntitlementSnapshot:
        return EntitlementSnapshot(email=self.email, paid=self.paid, package_type=self.package_type)


class TokenCodec:
    """Encodes entitlement snapshots as HS256 JWTs."""

    def __init__(self, secret: str, *, algorithm: str = "HS256", ttl: timedelta = timedelta(days=7)) -> None:
        if not secret:
            raise ValueError("secret must be provided")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = ttl

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def encode(self, snapshot: EntitlementSnapshot, *, expires_delta: Optional[timedelta] = None) -> str:
        issued_at = datetime.now(timezone.utc)
        claims = dict(snapshot.to_claims())
        claims["iat"] = issued_at
        claims["exp"] = issued_at + (expires_delta if expires_delta is not None else self._ttl)
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def decode(self, token: str, *, source: str = "token") -> Optional[RequestPrincipal]:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError:
            return None

        subject = payload.get("sub")
        if not isinstance(subject, str) or not is_email(subject):
            return None

        package_type: Optional[PackageType] = None
        raw_package = payload.get("packageType")
        if raw_package:
            try:
                package_type = PackageType(raw_package)
            except ValueError:
                package_type = None

        expires_at = None
        raw_exp = payload.get("exp")
        if isinstance(raw_exp, (int, float)):
            expires_at = datetime.fromtimestamp(raw_exp, tz=timezone.utc)

        return RequestPrincipal(
            email=normalize_email(subject),
            paid=bool(payload.get("paid")),
            package_type=package_type,
            source=source,
            expires_at=expires_at,
        )
