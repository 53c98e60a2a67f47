"""Relational schema for the survey backend."""
from __future__ import annotations

import contextlib
import logging
from typing import Any, Callable, Sequence

logger = logging.getLogger("entitlements")

SCHEMA_STATEMENTS: Sequence[str] = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        paid BOOLEAN NOT NULL DEFAULT FALSE,
        package_type TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
        id SERIAL PRIMARY KEY,
        user_email TEXT NOT NULL REFERENCES users (email),
        stripe_session_id TEXT UNIQUE NOT NULL,
        amount_cents INTEGER NOT NULL CHECK (amount_cents >= 0),
        amount_dollars NUMERIC(10, 2) NOT NULL,
        package_type TEXT NOT NULL,
        payment_type TEXT NOT NULL,
        payment_method TEXT NOT NULL DEFAULT 'card',
        status TEXT NOT NULL DEFAULT 'completed',
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS payments_user_email_idx ON payments (user_email, created_at DESC)",
    """
    CREATE TABLE IF NOT EXISTS survey_responses (
        id UUID PRIMARY KEY,
        kind TEXT NOT NULL,
        user_email TEXT NOT NULL,
        full_name TEXT,
        responses JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "ALTER TABLE survey_responses DROP CONSTRAINT IF EXISTS survey_responses_kind_user_email_key",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS survey_responses_owner_idx
        ON survey_responses (kind, user_email)
        WHERE kind <> 'evaluation'
    """,
    "CREATE INDEX IF NOT EXISTS survey_responses_kind_idx ON survey_responses (kind, created_at DESC)",
)


def initialize_schema(get_conn: Callable[[], Any]) -> None:
    """Create missing tables and indexes; safe to run on every startup."""

    with contextlib.closing(get_conn()) as conn:
        with conn:
            with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    cur.execute(statement)
    logger.info("Database schema ready (%d statements)", len(SCHEMA_STATEMENTS))


__all__ = ["SCHEMA_STATEMENTS", "initialize_schema"]
