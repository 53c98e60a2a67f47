"""PostgreSQL persistence for principals and payment events."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

import psycopg2
import psycopg2.errors
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from .exceptions import (
    DuplicateIdentity,
    DuplicatePaymentEvent,
    PaymentEventNotFound,
    PersistenceFailure,
    PrincipalNotFound,
)
from .models import (
    PackageType,
    PaymentEvent,
    PaymentMethodClass,
    PaymentStatus,
    PaymentType,
    Principal,
    normalize_email,
)

from ...app_context import get_conn


logger = logging.getLogger("entitlements")


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None) -> Iterator[PgConnection]:
    """Yield a connection and commit once the block finishes without error.

    Connections passed in by the caller are committed but left open.
    """

    connection = conn if conn is not None else get_conn()
    try:
        yield connection
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        if conn is None:
            connection.close()


def _row_to_principal(row: dict) -> Principal:
    package_type = row.get("package_type")
    return Principal(
        id=row.get("id"),
        email=row["email"],
        password_hash=row["password_hash"],
        paid=bool(row["paid"]),
        package_type=PackageType(package_type) if package_type else None,
        created_at=row["created_at"],
    )


def _row_to_payment(row: dict) -> PaymentEvent:
    return PaymentEvent(
        id=row["id"],
        user_email=row["user_email"],
        stripe_session_id=row["stripe_session_id"],
        amount_cents=int(row["amount_cents"]),
        package_type=PackageType(row["package_type"]),
        payment_type=PaymentType(row["payment_type"]),
        payment_method=PaymentMethodClass(row["payment_method"]),
        status=PaymentStatus(row["status"]),
        created_at=row["created_at"],
    )


class PostgresEntitlementStore:
    """Entitlement store backed by the ``users`` and ``payments`` tables."""

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
                "Entitlement store operation %s failed: %s",
                operation,
                exc,
                extra={"store_operation": operation},
            )
            raise PersistenceFailure(operation, exc) from exc

    def create_principal(self, email: str, password_hash: str) -> Principal:
        key = normalize_email(email)
        with self._cursor("create_principal") as cursor:
            cursor.execute(
                """
                INSERT INTO users (email, password_hash)
                VALUES (%s, %s)
                ON CONFLICT (email) DO NOTHING
                RETURNING id, email, password_hash, paid, package_type, created_at
                """,
                (key, password_hash),
            )
            row = cursor.fetchone()
            if not row:
                raise DuplicateIdentity(key)
            return _row_to_principal(row)

    def get_principal(self, email: str) -> Principal:
        key = normalize_email(email)
        with self._cursor("get_principal") as cursor:
            cursor.execute(
                """
                SELECT id, email, password_hash, paid, package_type, created_at
                FROM users
                WHERE email = %s
                LIMIT 1
                """,
                (key,),
            )
            row = cursor.fetchone()
            if not row:
                raise PrincipalNotFound(key)
            return _row_to_principal(row)

    def set_entitlement(
        self, email: str, paid: bool, package_type: Optional[PackageType]
    ) -> Principal:
        key = normalize_email(email)
        with self._cursor("set_entitlement") as cursor:
            cursor.execute(
                """
                UPDATE users
                SET paid = %s, package_type = %s
                WHERE email = %s
                RETURNING id, email, password_hash, paid, package_type, created_at
                """,
                (paid, package_type.value if package_type else None, key),
            )
            row = cursor.fetchone()
            if not row:
                raise PrincipalNotFound(key)
            return _row_to_principal(row)

    def record_payment(self, event: PaymentEvent) -> int:
        with self._cursor("record_payment") as cursor:
            try:
                cursor.execute(
                    """
                    INSERT INTO payments (
                        user_email,
                        stripe_session_id,
                        amount_cents,
                        amount_dollars,
                        package_type,
                        payment_type,
                        payment_method,
                        status
                    )
                    VALUES (%(user_email)s, %(stripe_session_id)s, %(amount_cents)s,
                            %(amount_dollars)s, %(package_type)s, %(payment_type)s,
                            %(payment_method)s, %(status)s)
                    ON CONFLICT (stripe_session_id) DO NOTHING
                    RETURNING id
                    """,
                    {
                        "user_email": event.user_email,
                        "stripe_session_id": event.stripe_session_id,
                        "amount_cents": event.amount_cents,
                        "amount_dollars": event.amount_dollars,
                        "package_type": event.package_type.value,
                        "payment_type": event.payment_type.value,
                        "payment_method": event.payment_method.value,
                        "status": event.status.value,
                    },
                )
            except psycopg2.errors.ForeignKeyViolation as exc:
                raise PrincipalNotFound(event.user_email) from exc
            row = cursor.fetchone()
            if row:
                return int(row["id"])

            cursor.execute(
                "SELECT * FROM payments WHERE stripe_session_id = %s LIMIT 1",
                (event.stripe_session_id,),
            )
            existing = cursor.fetchone()
            raise DuplicatePaymentEvent(
                event.stripe_session_id,
                _row_to_payment(existing) if existing else None,
            )

    def mark_payment_completed(self, stripe_session_id: str) -> PaymentEvent:
        with self._cursor("mark_payment_completed") as cursor:
            cursor.execute(
                """
                UPDATE payments
                SET status = %s
                WHERE stripe_session_id = %s
                RETURNING *
                """,
                (PaymentStatus.COMPLETED.value, stripe_session_id),
            )
            row = cursor.fetchone()
            if not row:
                raise PaymentEventNotFound(stripe_session_id)
            return _row_to_payment(row)

    def get_payment(self, stripe_session_id: str) -> Optional[PaymentEvent]:
        with self._cursor("get_payment") as cursor:
            cursor.execute(
                "SELECT * FROM payments WHERE stripe_session_id = %s LIMIT 1",
                (stripe_session_id,),
            )
            row = cursor.fetchone()
            return _row_to_payment(row) if row else None

    def list_payments(self, email: str) -> List[PaymentEvent]:
        with self._cursor("list_payments") as cursor:
            cursor.execute(
                """
                SELECT *
                FROM payments
                WHERE user_email = %s
                ORDER BY created_at DESC, id DESC
                """,
                (normalize_email(email),),
            )
            rows = cursor.fetchall() or []
            return [_row_to_payment(row) for row in rows]

    def list_principals(self) -> List[Principal]:
        with self._cursor("list_principals") as cursor:
            cursor.execute(
                """
                SELECT id, email, password_hash, paid, package_type, created_at
                FROM users
                ORDER BY created_at DESC
                """
            )
            rows = cursor.fetchall() or []
            return [_row_to_principal(row) for row in rows]

    def purge_payments(self, email: Optional[str] = None) -> int:
        with self._cursor("purge_payments") as cursor:
            if email is None:
                cursor.execute("DELETE FROM payments")
            else:
                cursor.execute(
                    "DELETE FROM payments WHERE user_email = %s",
                    (normalize_email(email),),
                )
            return cursor.rowcount


__all__ = ["PostgresEntitlementStore", "managed_connection"]
