"""Shared application context for reusable dependencies."""
from __future__ import annotations

from typing import Any, Callable, Optional

from .config import AppConfig

_get_conn: Optional[Callable[[], Any]] = None
_config: Optional[AppConfig] = None


def configure(*, get_conn: Callable[[], Any], config: AppConfig) -> None:
    """Register application-wide dependencies required by modular routers."""

    global _get_conn
    global _config

    _get_conn = get_conn
    _config = config


def _require(value: Optional[Any], name: str) -> Any:
    if value is None:
        raise RuntimeError(f"Application context has not been configured yet: {name}")
    return value


def get_conn() -> Any:
    conn_factory = _require(_get_conn, "get_conn")
    return conn_factory()


def get_config() -> AppConfig:
    return _require(_config, "config")
