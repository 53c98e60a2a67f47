from datetime import datetime, timezone
from typing import List, Optional

import psycopg2
import psycopg2.errors
import pytest

from turboniw.app.entitlements import (
    DuplicateIdentity,
    DuplicatePaymentEvent,
    PackageType,
    PaymentEvent,
    PaymentMethodClass,
    PaymentStatus,
    PaymentType,
    PersistenceFailure,
    PrincipalNotFound,
)
from turboniw.app.entitlements.repository import PostgresEntitlementStore
from turboniw.app.surveys import SurveyKind, SurveyResponse
from turboniw.app.surveys.repository import PostgresSurveyStore


NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)

PAYMENT_ROW = {
    "id": 7,
    "user_email": "ana@example.com",
    "stripe_session_id": "cs_1",
    "amount_cents": 30797,
    "amount_dollars": "307.97",
    "package_type": "form-filling",
    "payment_type": "initial",
    "payment_method": "card",
    "status": "completed",
    "created_at": NOW,
}


class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection
        self.rowcount = 0

    def execute(self, sql: str, params=None) -> None:
        self.connection.executed.append((" ".join(sql.split()), params))
        if self.connection.errors:
            error = self.connection.errors.pop(0)
            if error is not None:
                raise error

    def fetchone(self) -> Optional[dict]:
        return self.connection.rows.pop(0) if self.connection.rows else None

    def fetchall(self) -> List[dict]:
        rows, self.connection.rows = self.connection.rows, []
        return rows

    def close(self) -> None:
        self.connection.cursors_closed += 1


class FakeConnection:
    def __init__(self, rows=None, errors=None) -> None:
        self.rows = list(rows or [])
        self.errors = list(errors or [])
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.cursors_closed = 0

    def cursor(self, cursor_factory=None) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


def _event(**overrides) -> PaymentEvent:
    values = dict(
        user_email="ana@example.com",
        stripe_session_id="cs_1",
        amount_cents=30797,
        package_type=PackageType.FORM_FILLING,
        payment_type=PaymentType.INITIAL,
        payment_method=PaymentMethodClass.CARD,
        status=PaymentStatus.COMPLETED,
    )
    values.update(overrides)
    return PaymentEvent(**values)


def test_create_principal_conflict_raises_duplicate_identity():
    conn = FakeConnection(rows=[None])

    with pytest.raises(DuplicateIdentity):
        PostgresEntitlementStore(conn=conn).create_principal("Ana@Example.com", "hash")

    sql, params = conn.executed[0]
    assert "ON CONFLICT (email) DO NOTHING" in sql
    assert params == ("ana@example.com", "hash")
    assert conn.rollbacks == 1


def test_get_principal_maps_row():
    conn = FakeConnection(
        rows=[
            {
                "id": 1,
                "email": "ana@example.com",
                "password_hash": "hash",
                "paid": True,
                "package_type": "full",
                "created_at": NOW,
            }
        ]
    )

    principal = PostgresEntitlementStore(conn=conn).get_principal("ANA@example.com")

    assert principal.package_type == PackageType.FULL
    assert principal.paid is True
    assert conn.commits == 1
    assert conn.cursors_closed == 1


def test_get_principal_missing_row():
    with pytest.raises(PrincipalNotFound):
        PostgresEntitlementStore(conn=FakeConnection(rows=[None])).get_principal("ghost@example.com")


def test_record_payment_inserts_with_conflict_guard():
    conn = FakeConnection(rows=[{"id": 7}])

    payment_id = PostgresEntitlementStore(conn=conn).record_payment(_event())

    sql, params = conn.executed[0]
    assert payment_id == 7
    assert "ON CONFLICT (stripe_session_id) DO NOTHING" in sql
    assert params["amount_cents"] == 30797
    assert str(params["amount_dollars"]) == "307.97"
    assert params["status"] == "completed"


def test_record_payment_duplicate_returns_existing_row():
    conn = FakeConnection(rows=[None, PAYMENT_ROW])

    with pytest.raises(DuplicatePaymentEvent) as excinfo:
        PostgresEntitlementStore(conn=conn).record_payment(_event(amount_cents=1))

    assert excinfo.value.existing.amount_cents == 30797
    assert excinfo.value.existing.id == 7
    assert len(conn.executed) == 2


def test_record_payment_for_unknown_user_maps_foreign_key_violation():
    conn = FakeConnection(errors=[psycopg2.errors.ForeignKeyViolation("fk")])

    with pytest.raises(PrincipalNotFound):
        PostgresEntitlementStore(conn=conn).record_payment(_event())
    assert conn.rollbacks == 1


def test_database_errors_become_persistence_failures():
    conn = FakeConnection(errors=[psycopg2.OperationalError("connection lost")])

    with pytest.raises(PersistenceFailure) as excinfo:
        PostgresEntitlementStore(conn=conn).set_entitlement("ana@example.com", True, PackageType.FULL)

    assert excinfo.value.status_code == 503
    assert excinfo.value.operation == "set_entitlement"
    assert conn.rollbacks == 1


def test_purge_payments_reports_rowcount():
    conn = FakeConnection()
    store = PostgresEntitlementStore(conn=conn)

    assert store.purge_payments("ANA@example.com") == 0
    assert conn.executed[0] == ("DELETE FROM payments WHERE user_email = %s", ("ana@example.com",))


def test_survey_upsert_uses_kind_and_email_key():
    stored_id = "3f0e4f3a-8f2a-4c3e-9a53-1f7c2b0c9d11"
    conn = FakeConnection(
        rows=[
            {
                "id": stored_id,
                "kind": "first",
                "user_email": "ana@example.com",
                "full_name": "Ana",
                "responses": {"q1": "a"},
                "created_at": NOW,
            }
        ]
    )

    stored = PostgresSurveyStore(conn=conn).save_response(
        SurveyResponse(kind=SurveyKind.FIRST, user_email="ana@example.com", full_name="Ana", responses={"q1": "a"})
    )

    sql, params = conn.executed[0]
    assert "ON CONFLICT (kind, user_email) WHERE kind <> 'evaluation' DO UPDATE" in sql
    assert params[1:3] == ("first", "ana@example.com")
    assert str(stored.id) == stored_id
    assert stored.responses == {"q1": "a"}


def test_evaluation_submissions_are_plain_inserts():
    conn = FakeConnection(
        rows=[
            {
                "id": "8a1d2c55-4b6e-4f0a-9d3c-2e7f1b9a0c44",
                "kind": "evaluation",
                "user_email": "bo@example.com",
                "full_name": "Bo",
                "responses": {},
                "created_at": NOW,
            }
        ]
    )

    PostgresSurveyStore(conn=conn).save_response(
        SurveyResponse(kind=SurveyKind.EVALUATION, user_email="bo@example.com", full_name="Bo")
    )

    sql, params = conn.executed[0]
    assert "ON CONFLICT" not in sql
    assert params[1] == "evaluation"


def test_survey_lookup_returns_newest_row():
    conn = FakeConnection()

    assert PostgresSurveyStore(conn=conn).get_response(SurveyKind.EVALUATION, "BO@example.com") is None
    sql, params = conn.executed[0]
    assert "ORDER BY created_at DESC LIMIT 1" in sql
    assert params == ("evaluation", "bo@example.com")
