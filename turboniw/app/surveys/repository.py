"""PostgreSQL persistence for survey responses."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional
from uuid import UUID

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ..entitlements.exceptions import PersistenceFailure
from ..entitlements.models import normalize_email
from ..entitlements.repository import managed_connection
from .models import SurveyKind, SurveyResponse


logger = logging.getLogger("surveys")

_COLUMNS = "id, kind, user_email, full_name, responses, created_at"

# Matches the partial unique index on paid kinds in app/db.py.
_REPLACE_CURRENT = """
ON CONFLICT (kind, user_email) WHERE kind <> 'evaluation' DO UPDATE
SET full_name = EXCLUDED.full_name,
    responses = EXCLUDED.responses,
    created_at = NOW()
"""


def _row_to_response(row: dict) -> SurveyResponse:
    return SurveyResponse(
        id=UUID(str(row["id"])),
        kind=SurveyKind(row["kind"]),
        user_email=row["user_email"],
        full_name=row.get("full_name"),
        responses=row.get("responses") or {},
        created_at=row["created_at"],
    )


class PostgresSurveyStore:
    """Survey store backed by the ``survey_responses`` table."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self, operation: str) -> Iterator[PgCursor]:
        try:
            with managed_connection(self._conn) as connection:
                cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
                try:
                    yield cursor
                finally:
                    cursor.close()
        except psycopg2.Error as exc:
            logger.error(
                "Survey store operation %s failed: %s",
                operation,
                exc,
                extra={"store_operation": operation},
            )
            raise PersistenceFailure(operation, exc) from exc

    def save_response(self, response: SurveyResponse) -> SurveyResponse:
        conflict = _REPLACE_CURRENT if response.kind.replaces_previous else ""
        with self._cursor("save_response") as cursor:
            cursor.execute(
                f"""
                INSERT INTO survey_responses (id, kind, user_email, full_name, responses)
                VALUES (%s, %s, %s, %s, %s)
                {conflict}
                RETURNING {_COLUMNS}
                """,
                (
                    str(response.id),
                    response.kind.value,
                    response.user_email,
                    response.full_name,
                    psycopg2.extras.Json(response.responses),
                ),
            )
            return _row_to_response(cursor.fetchone())

    def get_response(self, kind: SurveyKind, email: str) -> Optional[SurveyResponse]:
        with self._cursor("get_response") as cursor:
            cursor.execute(
                f"""
                SELECT {_COLUMNS}
                FROM survey_responses
                WHERE kind = %s AND user_email = %s
                ORDER BY created_at DESC
                LIMIT 1
                """,
                (kind.value, normalize_email(email)),
            )
            row = cursor.fetchone()
            return _row_to_response(row) if row else None

    def list_responses(self, kind: Optional[SurveyKind] = None) -> List[SurveyResponse]:
        with self._cursor("list_responses") as cursor:
            if kind is None:
                cursor.execute(
                    f"SELECT {_COLUMNS} FROM survey_responses ORDER BY created_at DESC"
                )
            else:
                cursor.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM survey_responses
                    WHERE kind = %s
                    ORDER BY created_at DESC
                    """,
                    (kind.value,),
                )
            rows = cursor.fetchall() or []
            return [_row_to_response(row) for row in rows]


__all__ = ["PostgresSurveyStore"]
