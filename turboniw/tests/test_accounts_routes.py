import pytest
from fastapi import HTTPException
from passlib.hash import bcrypt

from conftest import FakeResponse
from turboniw.app.auth import AuthenticationContext, RequestPrincipal, SessionCookieWriter, TokenCodec
from turboniw.app.auth.dependencies import clear_session_cookie
from turboniw.app.entitlements import PackageType
from turboniw.app.routes import accounts as accounts_routes
from turboniw.app.schemas.accounts import LoginRequest, RegisterRequest


CODEC = TokenCodec("test-secret")


@pytest.fixture
def wired(monkeypatch, app_config, store):
    monkeypatch.setattr(accounts_routes, "get_entitlement_store", lambda: store)
    return store


def _me(response: FakeResponse, principal):
    return accounts_routes.read_current_account(
        auth=AuthenticationContext(principal=principal, writers=(SessionCookieWriter(response, CODEC),))
    )


def test_register_creates_account_and_signs_in(wired):
    response = FakeResponse()

    result = accounts_routes.register(
        RegisterRequest(email="Ana@Example.com", password="secret123"), response
    )

    assert result.user.email == "ana@example.com"
    assert result.user.paid is False
    assert CODEC.decode(result.token).email == "ana@example.com"
    assert CODEC.decode(response.cookies["session"]["value"]).paid is False
    stored = wired.get_principal("ana@example.com")
    assert stored.password_hash != "secret123"
    assert bcrypt.verify("secret123", stored.password_hash)


@pytest.mark.parametrize("password", ["short", "much-too-long-password"])
def test_register_enforces_password_length(wired, password):
    with pytest.raises(HTTPException) as excinfo:
        accounts_routes.register(RegisterRequest(email="ana@example.com", password=password), FakeResponse())

    assert excinfo.value.status_code == 400
    assert wired.list_principals() == []


def test_register_duplicate_email_is_409(wired):
    wired.create_principal("ana@example.com", "hash")

    with pytest.raises(HTTPException) as excinfo:
        accounts_routes.register(RegisterRequest(email="ANA@example.com", password="secret123"), FakeResponse())

    assert excinfo.value.status_code == 409


def test_register_rejects_malformed_email():
    with pytest.raises(ValueError):
        RegisterRequest(email="not-an-email", password="secret123")


def test_login_unknown_email_is_404(wired):
    with pytest.raises(HTTPException) as excinfo:
        accounts_routes.login(LoginRequest(email="ghost@example.com", password="secret123"), FakeResponse())

    assert excinfo.value.status_code == 404


def test_login_wrong_password_is_401(wired):
    wired.create_principal("ana@example.com", bcrypt.hash("secret123"))

    with pytest.raises(HTTPException) as excinfo:
        accounts_routes.login(LoginRequest(email="ana@example.com", password="wrong-pass"), FakeResponse())

    assert excinfo.value.status_code == 401


def test_login_token_carries_stored_entitlement(wired):
    wired.create_principal("admin@example.com", bcrypt.hash("secret123"))
    wired.set_entitlement("admin@example.com", True, PackageType.FULL)
    response = FakeResponse()

    result = accounts_routes.login(LoginRequest(email="admin@example.com", password="secret123"), response)

    assert result.user.is_admin is True
    claims = CODEC.decode(result.token)
    assert claims.paid is True
    assert claims.package_type == PackageType.FULL


def test_me_rereads_store_and_refreshes_stale_cookie(wired):
    wired.create_principal("ana@example.com", "hash")
    wired.set_entitlement("ana@example.com", True, PackageType.FORM_FILLING)
    stale = RequestPrincipal(email="ana@example.com", paid=False, package_type=None, source="cookie")
    response = FakeResponse()

    result = _me(response, stale)

    assert result.user.paid is True
    assert result.user.package_type == PackageType.FORM_FILLING
    assert CODEC.decode(response.cookies["session"]["value"]).paid is True


def test_me_leaves_current_cookie_alone(wired):
    wired.create_principal("ana@example.com", "hash")
    current = RequestPrincipal(email="ana@example.com", paid=False, package_type=None, source="cookie")
    response = FakeResponse()

    result = _me(response, current)

    assert result.user.email == "ana@example.com"
    assert response.cookies == {}


def test_me_anonymous_or_deleted_account(wired):
    assert _me(FakeResponse(), None).user is None
    ghost = RequestPrincipal(email="ghost@example.com", paid=True, package_type=None, source="cookie")
    assert _me(FakeResponse(), ghost).user is None


def test_logout_clears_session_cookie(app_config):
    response = FakeResponse()
    response.cookies["session"] = {"value": "token"}

    assert accounts_routes.logout(response) == {"ok": True}
    assert response.deleted == ["session"]


def test_clear_session_cookie_uses_configured_name(app_config):
    response = FakeResponse()

    clear_session_cookie(response)

    assert response.deleted == [app_config.session_cookie_name]


def test_stripe_config_exposes_publishable_key(app_config):
    result = accounts_routes.stripe_config()

    assert result.publishable_key == "pk_test_123"
    assert result.enabled is True
    assert result.model_dump(by_alias=True)["publishableKey"] == "pk_test_123"
