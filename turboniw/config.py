"""Application configuration helpers."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the PostgreSQL entitlement store."""

    host: str
    port: int
    dbname: str
    user: str
    password: str
    connect_timeout: int

    def connect_kwargs(self) -> Dict[str, object]:
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
        }


@dataclass(frozen=True)
class PricingConfig:
    """Surcharges applied on top of a package's base price."""

    card_surcharge_percent: float = 3.0
    bank_transfer_fee_cents: int = 500
    currency: str = "usd"


@dataclass(frozen=True)
class AppConfig:
    """Configuration for the survey backend."""

    database: DatabaseConfig
    jwt_secret_key: str
    jwt_algorithm: str
    jwt_exp_minutes: int
    session_cookie_name: str
    session_cookie_secure: bool
    stripe_secret_key: Optional[str]
    stripe_publishable_key: Optional[str]
    stripe_webhook_secret: Optional[str]
    app_base_url: str
    pricing: PricingConfig = field(default_factory=PricingConfig)
    admin_emails: FrozenSet[str] = frozenset()
    password_min_length: int = 8
    password_max_length: int = 12

    @property
    def stripe_enabled(self) -> bool:
        return bool(self.stripe_secret_key)

    @property
    def webhook_enabled(self) -> bool:
        return bool(self.stripe_webhook_secret)


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def _parse_connect_timeout(raw_value: Optional[str]) -> int:
    timeout = _to_float(raw_value, default=5.0)
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


def _parse_email_list(raw_value: Optional[str]) -> FrozenSet[str]:
    if not raw_value:
        return frozenset()
    return frozenset(
        token.strip().lower() for token in raw_value.split(",") if token.strip()
    )


def load_app_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load :class:`AppConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    database = DatabaseConfig(
        host=env_mapping.get("DB_HOST", "127.0.0.1"),
        port=_to_int(env_mapping.get("DB_PORT"), default=5432),
        dbname=env_mapping.get("DB_NAME", "turboniw"),
        user=env_mapping.get("DB_USER", "turboniw"),
        password=env_mapping.get("DB_PASSWORD", "turboniw"),
        connect_timeout=_parse_connect_timeout(env_mapping.get("DB_CONNECT_TIMEOUT")),
    )

    surcharge = _to_float(env_mapping.get("CARD_SURCHARGE_PERCENT"), default=3.0)
    bank_fee = _to_int(env_mapping.get("BANK_TRANSFER_FEE_CENTS"), default=500)
    if surcharge < 0:
        raise ValueError("CARD_SURCHARGE_PERCENT must be non-negative")
    if bank_fee < 0:
        raise ValueError("BANK_TRANSFER_FEE_CENTS must be non-negative")
    pricing = PricingConfig(
        card_surcharge_percent=surcharge,
        bank_transfer_fee_cents=bank_fee,
        currency=(env_mapping.get("CURRENCY") or "usd").strip().lower(),
    )

    password_min = max(1, _to_int(env_mapping.get("PASSWORD_MIN_LENGTH"), default=8))
    password_max = max(password_min, _to_int(env_mapping.get("PASSWORD_MAX_LENGTH"), default=12))

    app_base_url = env_mapping.get("APP_BASE_URL", "http://localhost:3000")

    return AppConfig(
        database=database,
        jwt_secret_key=env_mapping.get("JWT_SECRET_KEY", "dev-secret-change-me"),
        jwt_algorithm="HS256",
        jwt_exp_minutes=_to_int(env_mapping.get("JWT_EXP_MINUTES"), default=60 * 24 * 7),
        session_cookie_name=env_mapping.get("SESSION_COOKIE_NAME", "session"),
        session_cookie_secure=_to_bool(env_mapping.get("SESSION_COOKIE_SECURE"), default=False),
        stripe_secret_key=env_mapping.get("STRIPE_SECRET_KEY") or None,
        stripe_publishable_key=env_mapping.get("STRIPE_PUBLISHABLE_KEY") or None,
        stripe_webhook_secret=env_mapping.get("STRIPE_WEBHOOK_SECRET") or None,
        app_base_url=app_base_url.rstrip("/"),
        pricing=pricing,
        admin_emails=_parse_email_list(env_mapping.get("ADMIN_EMAILS")),
        password_min_length=password_min,
        password_max_length=password_max,
    )


__all__ = ["AppConfig", "DatabaseConfig", "PricingConfig", "load_app_config"]
